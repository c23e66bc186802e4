"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly increasing numbers for audit events and the
    human-readable proposal and payment numbers (``PROP-2024-00001``).
    Uses a dedicated counter table with row-level locking
    (``SELECT ... FOR UPDATE``) to guarantee uniqueness under concurrent
    access.

Architecture position:
    Kernel > Services.  Called by AuditorService and by the proposal and
    payment services.  Never commits; the caller owns the transaction.

Invariants enforced:
    - Monotonicity: the locked counter row is the sole source of truth for
      the next value.  MAX(x)+1 over business tables is never used.
    - Transactional: an increment becomes visible only when the caller's
      transaction commits.  On rollback the value is returned.

Failure modes:
    - IntegrityError on a concurrent first use of a counter, handled via
      savepoint rollback and retry.
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from gls_kernel.db.base import Base
from gls_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row is a named sequence with its current value.
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


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Contract:
        Accepts a sequence name and returns the next strictly increasing
        integer.  The increment commits with the caller's transaction.

    Non-goals:
        - Does NOT call ``session.commit()``.
    """

    AUDIT_EVENT = "audit_event"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Preconditions:
            - ``sequence_name`` is a non-empty string of at most 50 chars.
        Postconditions:
            - Returns an integer > 0, strictly greater than any value
              previously returned for this name.
            - The counter row stays locked until the transaction ends.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use: create under a savepoint so a concurrent creator
            # does not roll back the caller's other work.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def next_document_number(self, prefix: str, year: int, width: int = 5) -> str:
        """
        Allocate the next human-readable number for ``prefix`` in ``year``.

        Numbering restarts every year: ``PROP-2024-00001``, ``PROP-2024-00002``,
        then ``PROP-2025-00001``.
        """
        value = self.next_value(f"{prefix}-{year}")
        return f"{prefix}-{year}-{value:0{width}d}"

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None if unused."""
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

        return counter.current_value if counter else None
