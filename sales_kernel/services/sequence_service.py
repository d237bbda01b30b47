"""
SequenceService -- document numbering via locked counter rows.

Responsibility:
    Provides strictly monotonically increasing sequence numbers for
    quotations, orders, deliveries, invoices and credit notes.  Uses a
    dedicated counter table with row-level locking (``SELECT ... FOR
    UPDATE``) so two concurrent invoices never receive the same consecutive.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Called by the
    SQLAlchemy sales repository when the orchestrator asks for a number.

Invariants enforced:
    - The locked counter row is the sole source of truth for the next
      value; the aggregate-max-plus-one pattern is never used.
    - The increment is transactional: it is only visible after the
      caller's transaction commits.  Rollback returns the value.
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from sales_kernel.db.base import Base
from sales_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


def format_document_number(prefix: str, value: int, width: int) -> str:
    """``format_document_number("FC", 7, 6) -> "FC-000007"``; empty prefix omits the dash."""
    body = str(value).zfill(width)
    return f"{prefix}-{body}" if prefix else body


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    QUOTATION = "quotation"
    ORDER = "order"
    DELIVERY = "delivery"
    INVOICE = "invoice"
    CREDIT_NOTE = "credit_note"

    def __init__(self, session: Session):
        self._session = session

    def next_value(self, sequence_name: str) -> int:
        """
        Lock the counter row (creating it on first use), increment it and
        return the new value (always > 0).
        """
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if counter is None:
            counter = SequenceCounter(name=sequence_name, current_value=0)
            self._session.add(counter)

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Get the current value of a sequence without incrementing."""
        return self._session.execute(
            select(SequenceCounter.current_value).where(
                SequenceCounter.name == sequence_name
            )
        ).scalar_one_or_none()
