"""Read-only repository supplying CRM entity snapshots to the report engine."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from crm_reporting.models.entities import Customer, Deal, EntityActivityLog, Lead, Task


class CrmRepository:
    """Snapshot reads over the entity store. Nothing here writes."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Leads ----------
    def list_leads(self, *, include_deleted: bool = False) -> list[Lead]:
        query = select(Lead).order_by(Lead.created_at.asc(), Lead.id.asc())
        if not include_deleted:
            query = query.where(Lead.is_deleted.is_(False))
        return list(self.db.scalars(query).all())

    # ---------- Customers ----------
    def list_customers(self, *, include_deleted: bool = False) -> list[Customer]:
        query = select(Customer).order_by(Customer.name.asc(), Customer.id.asc())
        if not include_deleted:
            query = query.where(Customer.is_deleted.is_(False))
        return list(self.db.scalars(query).all())

    # ---------- Deals ----------
    def list_deals(self, *, include_deleted: bool = False) -> list[Deal]:
        query = (
            select(Deal)
            .options(selectinload(Deal.line_items))
            .order_by(Deal.created_at.asc(), Deal.id.asc())
        )
        if not include_deleted:
            query = query.where(Deal.is_deleted.is_(False))
        return list(self.db.scalars(query).all())

    # ---------- Tasks ----------
    def list_tasks(self, *, include_deleted: bool = False) -> list[Task]:
        query = select(Task).order_by(Task.due_date.asc(), Task.id.asc())
        if not include_deleted:
            query = query.where(Task.is_deleted.is_(False))
        return list(self.db.scalars(query).all())

    # ---------- Activity log ----------
    def list_activity_logs(self) -> list[EntityActivityLog]:
        return list(
            self.db.scalars(
                select(EntityActivityLog).order_by(EntityActivityLog.timestamp.asc(), EntityActivityLog.id.asc())
            ).all()
        )
