"""ReconcileAttempt ORM — persisted once-per-view-session guard for reconciliation.

Invariants:
    - (order_id, view_session_id) is unique; the INSERT is the guard
"""

from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from plantbid.db.base import Base


class ReconcileAttempt(Base):
    __tablename__ = "reconcile_attempts"
    __table_args__ = (
        UniqueConstraint("order_id", "view_session_id", name="uq_reconcile_view"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(String(64), nullable=False)
    view_session_id: Mapped[str] = mapped_column(String(64), nullable=False)
    attempted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
