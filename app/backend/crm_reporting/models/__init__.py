"""ORM model package."""

from crm_reporting.models.entities import (
    Customer,
    Deal,
    DealLineItem,
    DealStage,
    EntityActivityLog,
    EntityActivityType,
    EntityType,
    Lead,
    LeadStatus,
    Product,
    Task,
    TaskPriority,
    TaskStatus,
)

__all__ = [
    "Customer",
    "Deal",
    "DealLineItem",
    "DealStage",
    "EntityActivityLog",
    "EntityActivityType",
    "EntityType",
    "Lead",
    "LeadStatus",
    "Product",
    "Task",
    "TaskPriority",
    "TaskStatus",
]
