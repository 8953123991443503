"""crm entity store schema

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None


lead_status = sa.Enum(
    "New",
    "Contacted",
    "Qualified",
    "Proposal Sent",
    "Negotiation",
    "Lost",
    "Converted to Customer",
    name="lead_status",
)
deal_stage = sa.Enum(
    "Prospecting",
    "Qualification",
    "Needs Analysis",
    "Value Proposition",
    "Negotiation/Review",
    "Closed Won",
    "Closed Lost",
    name="deal_stage",
)
task_status = sa.Enum("Pending", "In Progress", "Completed", "Deferred", "Cancelled", name="task_status")
task_priority = sa.Enum("Low", "Medium", "High", name="task_priority")
entity_type = sa.Enum(
    "Lead",
    "Customer",
    "Deal",
    "Task",
    "Product",
    "User",
    "System",
    "CustomFieldDefinition",
    "Attachment",
    name="entity_type",
)
entity_activity_type = sa.Enum(
    "CREATED",
    "FIELD_UPDATED",
    "CUSTOM_FIELD_UPDATED",
    "STATUS_UPDATED",
    "STAGE_UPDATED",
    "NOTE_ADDED",
    "NOTE_UPDATED",
    "TASK_CREATED_LINKED",
    "TASK_STATUS_CHANGED_LINKED",
    "TASK_UPDATED_LINKED",
    "FILE_ATTACHED",
    "FILE_REMOVED",
    "FILE_TOO_LARGE",
    "SOFT_DELETED",
    "RESTORED",
    "PERMANENTLY_DELETED",
    "PROFILE_UPDATED",
    "PASSWORD_CHANGED",
    "ROLE_CHANGED",
    "LOGIN",
    "LOGOUT",
    "SYSTEM_SETTINGS_UPDATED",
    "PRODUCT_ACTIVATED",
    "PRODUCT_DEACTIVATED",
    "CUSTOM_FIELD_DEFINITION_CREATED",
    "CUSTOM_FIELD_DEFINITION_UPDATED",
    "CUSTOM_FIELD_DEFINITION_DELETED",
    name="entity_activity_type",
)

ENUM_TYPES = (lead_status, deal_stage, task_status, task_priority, entity_type, entity_activity_type)


def _soft_delete_columns() -> list[sa.Column]:
    return [
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "leads",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("company", sa.String(length=255), nullable=True),
        sa.Column("status", lead_status, nullable=False),
        sa.Column("source", sa.String(length=128), nullable=True),
        sa.Column("assigned_to", sa.String(length=255), nullable=True),
        sa.Column("last_contacted", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("notes", sa.String(length=4000), nullable=True),
        *_soft_delete_columns(),
    )
    op.create_index("ix_leads_status", "leads", ["status"])
    op.create_index("ix_leads_created_at", "leads", ["created_at"])

    op.create_table(
        "customers",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("company", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("last_purchase_date", sa.Date(), nullable=True),
        sa.Column("total_revenue", sa.Numeric(14, 2), nullable=True),
        sa.Column("account_manager", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.String(length=4000), nullable=True),
        *_soft_delete_columns(),
    )
    op.create_index("ix_customers_account_manager", "customers", ["account_manager"])

    op.create_table(
        "deals",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("deal_name", sa.String(length=255), nullable=False),
        sa.Column("customer_id", sa.String(length=64), nullable=True),
        sa.Column("lead_id", sa.String(length=64), nullable=True),
        sa.Column("stage", deal_stage, nullable=False),
        sa.Column("value", sa.Numeric(14, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("close_date", sa.Date(), nullable=True),
        sa.Column("owner", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(length=4000), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("notes", sa.String(length=4000), nullable=True),
        *_soft_delete_columns(),
    )
    op.create_index("ix_deals_stage", "deals", ["stage"])
    op.create_index("ix_deals_close_date", "deals", ["close_date"])
    op.create_index("ix_deals_lead_id", "deals", ["lead_id"])
    op.create_index("ix_deals_customer_id", "deals", ["customer_id"])

    op.create_table(
        "deal_line_items",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("deal_id", sa.String(length=64), sa.ForeignKey("deals.id"), nullable=False),
        sa.Column("product_id", sa.String(length=64), nullable=False),
        sa.Column("product_name", sa.String(length=255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(14, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("total_price", sa.Numeric(14, 2), nullable=False),
    )
    op.create_index("ix_deal_line_items_deal_id", "deal_line_items", ["deal_id"])

    op.create_table(
        "tasks",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(length=4000), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("status", task_status, nullable=False),
        sa.Column("priority", task_priority, nullable=True),
        sa.Column("assigned_to", sa.String(length=255), nullable=True),
        sa.Column("related_type", sa.String(length=32), nullable=True),
        sa.Column("related_id", sa.String(length=64), nullable=True),
        sa.Column("related_name", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.String(length=4000), nullable=True),
        *_soft_delete_columns(),
    )
    op.create_index("ix_tasks_assigned_to", "tasks", ["assigned_to"])
    op.create_index("ix_tasks_due_date", "tasks", ["due_date"])

    op.create_table(
        "products",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(length=4000), nullable=True),
        sa.Column("category", sa.String(length=128), nullable=True),
        sa.Column("price", sa.Numeric(14, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "entity_activity_logs",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("entity_type", entity_type, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("user_name", sa.String(length=255), nullable=False),
        sa.Column("activity_type", entity_activity_type, nullable=False),
        sa.Column("description", sa.String(length=2000), nullable=False),
        sa.Column("details", sa.JSON().with_variant(postgresql.JSONB(), "postgresql"), nullable=True),
    )
    op.create_index("ix_entity_activity_logs_timestamp", "entity_activity_logs", ["timestamp"])
    op.create_index("ix_entity_activity_logs_entity", "entity_activity_logs", ["entity_type", "entity_id"])
    op.create_index("ix_entity_activity_logs_user_id", "entity_activity_logs", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_entity_activity_logs_user_id", table_name="entity_activity_logs")
    op.drop_index("ix_entity_activity_logs_entity", table_name="entity_activity_logs")
    op.drop_index("ix_entity_activity_logs_timestamp", table_name="entity_activity_logs")
    op.drop_table("entity_activity_logs")

    op.drop_table("products")

    op.drop_index("ix_tasks_due_date", table_name="tasks")
    op.drop_index("ix_tasks_assigned_to", table_name="tasks")
    op.drop_table("tasks")

    op.drop_index("ix_deal_line_items_deal_id", table_name="deal_line_items")
    op.drop_table("deal_line_items")

    op.drop_index("ix_deals_customer_id", table_name="deals")
    op.drop_index("ix_deals_lead_id", table_name="deals")
    op.drop_index("ix_deals_close_date", table_name="deals")
    op.drop_index("ix_deals_stage", table_name="deals")
    op.drop_table("deals")

    op.drop_index("ix_customers_account_manager", table_name="customers")
    op.drop_table("customers")

    op.drop_index("ix_leads_created_at", table_name="leads")
    op.drop_index("ix_leads_status", table_name="leads")
    op.drop_table("leads")

    bind = op.get_bind()
    for enum_type in ENUM_TYPES:
        enum_type.drop(bind, checkfirst=True)
