"""ORM entities for the CRM entity store."""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crm_reporting.db.base import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _enum_column(enum_cls: type[enum.Enum], name: str) -> SQLEnum:
    return SQLEnum(
        enum_cls,
        name=name,
        values_callable=lambda cls: [member.value for member in cls],
    )


class LeadStatus(str, enum.Enum):
    NEW = "New"
    CONTACTED = "Contacted"
    QUALIFIED = "Qualified"
    PROPOSAL_SENT = "Proposal Sent"
    NEGOTIATION = "Negotiation"
    LOST = "Lost"
    WON = "Converted to Customer"


class DealStage(str, enum.Enum):
    PROSPECTING = "Prospecting"
    QUALIFICATION = "Qualification"
    NEEDS_ANALYSIS = "Needs Analysis"
    PROPOSAL = "Value Proposition"
    NEGOTIATION = "Negotiation/Review"
    CLOSED_WON = "Closed Won"
    CLOSED_LOST = "Closed Lost"


class TaskStatus(str, enum.Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    DEFERRED = "Deferred"
    CANCELLED = "Cancelled"


class TaskPriority(str, enum.Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class EntityType(str, enum.Enum):
    LEAD = "Lead"
    CUSTOMER = "Customer"
    DEAL = "Deal"
    TASK = "Task"
    PRODUCT = "Product"
    USER = "User"
    SYSTEM = "System"
    CUSTOM_FIELD_DEFINITION = "CustomFieldDefinition"
    ATTACHMENT = "Attachment"


class EntityActivityType(str, enum.Enum):
    CREATED = "CREATED"
    FIELD_UPDATED = "FIELD_UPDATED"
    CUSTOM_FIELD_UPDATED = "CUSTOM_FIELD_UPDATED"
    STATUS_UPDATED = "STATUS_UPDATED"
    STAGE_UPDATED = "STAGE_UPDATED"
    NOTE_ADDED = "NOTE_ADDED"
    NOTE_UPDATED = "NOTE_UPDATED"
    TASK_CREATED_LINKED = "TASK_CREATED_LINKED"
    TASK_STATUS_CHANGED_LINKED = "TASK_STATUS_CHANGED_LINKED"
    TASK_UPDATED_LINKED = "TASK_UPDATED_LINKED"
    FILE_ATTACHED = "FILE_ATTACHED"
    FILE_REMOVED = "FILE_REMOVED"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    SOFT_DELETED = "SOFT_DELETED"
    RESTORED = "RESTORED"
    PERMANENTLY_DELETED = "PERMANENTLY_DELETED"
    PROFILE_UPDATED = "PROFILE_UPDATED"
    PASSWORD_CHANGED = "PASSWORD_CHANGED"
    ROLE_CHANGED = "ROLE_CHANGED"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    SYSTEM_SETTINGS_UPDATED = "SYSTEM_SETTINGS_UPDATED"
    PRODUCT_ACTIVATED = "PRODUCT_ACTIVATED"
    PRODUCT_DEACTIVATED = "PRODUCT_DEACTIVATED"
    CUSTOM_FIELD_DEFINITION_CREATED = "CUSTOM_FIELD_DEFINITION_CREATED"
    CUSTOM_FIELD_DEFINITION_UPDATED = "CUSTOM_FIELD_DEFINITION_UPDATED"
    CUSTOM_FIELD_DEFINITION_DELETED = "CUSTOM_FIELD_DEFINITION_DELETED"


class Lead(Base):
    __tablename__ = "leads"
    __table_args__ = (
        Index("ix_leads_status", "status"),
        Index("ix_leads_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[LeadStatus] = mapped_column(
        _enum_column(LeadStatus, "lead_status"), nullable=False, default=LeadStatus.NEW
    )
    source: Mapped[str | None] = mapped_column(String(128), nullable=True)
    assigned_to: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_contacted: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (Index("ix_customers_account_manager", "account_manager"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    last_purchase_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_revenue: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    account_manager: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class Deal(Base):
    __tablename__ = "deals"
    __table_args__ = (
        Index("ix_deals_stage", "stage"),
        Index("ix_deals_close_date", "close_date"),
        Index("ix_deals_lead_id", "lead_id"),
        Index("ix_deals_customer_id", "customer_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    deal_name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Loose references: a deal may outlive the lead or customer it points at.
    customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    lead_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    stage: Mapped[DealStage] = mapped_column(
        _enum_column(DealStage, "deal_stage"), nullable=False, default=DealStage.PROSPECTING
    )
    value: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    close_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    owner: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    line_items: Mapped[list[DealLineItem]] = relationship(
        back_populates="deal",
        cascade="all, delete-orphan",
        order_by="DealLineItem.id",
    )


class DealLineItem(Base):
    __tablename__ = "deal_line_items"
    __table_args__ = (Index("ix_deal_line_items_deal_id", "deal_id"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    deal_id: Mapped[str] = mapped_column(String(64), ForeignKey("deals.id"), nullable=False)
    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    total_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    deal: Mapped[Deal] = relationship(back_populates="line_items")


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_assigned_to", "assigned_to"),
        Index("ix_tasks_due_date", "due_date"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[TaskStatus] = mapped_column(
        _enum_column(TaskStatus, "task_status"), nullable=False, default=TaskStatus.PENDING
    )
    priority: Mapped[TaskPriority | None] = mapped_column(_enum_column(TaskPriority, "task_priority"), nullable=True)
    assigned_to: Mapped[str | None] = mapped_column(String(255), nullable=True)
    related_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    related_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    related_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class Product(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    category: Mapped[str | None] = mapped_column(String(128), nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    sku: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class EntityActivityLog(Base):
    """Append-only audit trail of user and system actions."""

    __tablename__ = "entity_activity_logs"
    __table_args__ = (
        Index("ix_entity_activity_logs_timestamp", "timestamp"),
        Index("ix_entity_activity_logs_entity", "entity_type", "entity_id"),
        Index("ix_entity_activity_logs_user_id", "user_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_type: Mapped[EntityType] = mapped_column(_enum_column(EntityType, "entity_type"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    activity_type: Mapped[EntityActivityType] = mapped_column(
        _enum_column(EntityActivityType, "entity_activity_type"), nullable=False
    )
    description: Mapped[str] = mapped_column(String(2000), nullable=False)
    # Keys: field, old_value, new_value, task_title, task_status, file_name,
    # file_size, target_user_id, target_user_name, parent_entity_*.
    details: Mapped[dict | None] = mapped_column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
