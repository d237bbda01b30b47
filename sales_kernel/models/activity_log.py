"""
Module: sales_kernel.models.activity_log
Responsibility: ORM persistence for the user-visible activity log.
Architecture position: Kernel > Models.  Written by the SQL activity sink in
    ``sales_kernel.services.activity_log`` only.

Invariants enforced:
    - Rows are never updated; the sink only inserts and evicts the oldest
      rows beyond the configured capacity.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from sales_kernel.db.base import Base
from sales_kernel.db.types import LongText, Name, ShortCode
from sales_kernel.domain.documents import ActivityLogEntry


class ActivityLogModel(Base):
    """One activity-log entry.  Ordered newest first by (occurred_at, id)."""

    __tablename__ = "activity_log"

    __table_args__ = (
        Index("idx_activity_occurred", "occurred_at"),
        Index("idx_activity_entity", "entity_type", "entity_id"),
    )

    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    actor: Mapped[Name] = mapped_column(nullable=False)
    action: Mapped[ShortCode] = mapped_column(nullable=False)
    entity_type: Mapped[ShortCode] = mapped_column(nullable=False)
    entity_id: Mapped[ShortCode] = mapped_column(nullable=False)
    label: Mapped[LongText] = mapped_column(nullable=False)
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    def to_dto(self) -> ActivityLogEntry:
        return ActivityLogEntry(
            timestamp=self.occurred_at,
            actor=self.actor,
            action=self.action,
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            label=self.label,
            details=dict(self.details or {}),
        )
