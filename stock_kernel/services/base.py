"""
BaseService -- abstract base for the kernel's flush-only services.

Responsibility:
    Provides the common constructor and session-handling contract for the
    services that write inside a caller's transaction (Catalog,
    LocationRegistry, StockLedger).  They use ``session.flush()`` and never
    ``session.commit()``.

Architecture position:
    Kernel > Services.  The two engines (MovementEngine, TransferEngine) are
    the only components that own a transaction boundary; they hold the key
    locks for the lifetime of that boundary and publish notifications after it.

Failure modes:
    - A subclass that commits breaks the all-or-nothing guarantee of
      transfers, because a partial unit of work would become visible.
"""

from abc import ABC

from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for flush-only kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``; the caller controls transaction boundaries.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        """
        Args:
            session: SQLAlchemy session for database operations.
            clock: Time source for written timestamps. Defaults to SystemClock.
        """
        self.session = session
        self.clock = clock or SystemClock()
