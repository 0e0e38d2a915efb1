"""Optimistic transaction harness with read-then-write enforcement"""

import asyncio
import logging
import random
import time
from typing import Any, Awaitable, Callable, Dict, Iterable, List, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from clubportal.exceptions import PortalError, TransactionAborted
from clubportal.monitoring.metrics import record_conflict, record_transaction

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TransactionOrderError(RuntimeError):
    """A read was attempted after the transaction issued its first write"""
    pass


class Transaction:
    """
    Unit of work handed to a transaction body.

    Bodies follow three phases: read every document they need, decide purely
    from what was read, then write. Reads are refused once the first write
    has been issued.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self._writing = False

    @property
    def writing(self) -> bool:
        return self._writing

    def _check_read(self) -> None:
        if self._writing:
            raise TransactionOrderError("All reads must happen before the first write")

    async def get(self, model: Any, key: Any) -> Any:
        """Point-read a row by primary key, None if missing"""
        self._check_read()
        return await self.session.get(model, key)

    async def get_many(self, model: Any, keys: Iterable[Any]) -> Dict[Any, Any]:
        """
        Read several rows by primary key in one round trip.

        Returns a dict keyed by id; missing ids are simply absent.
        """
        self._check_read()
        wanted = list(dict.fromkeys(keys))
        if not wanted:
            return {}
        result = await self.session.execute(select(model).where(model.id.in_(wanted)))
        return {row.id: row for row in result.scalars().all()}

    async def scalars(self, statement: Any) -> List[Any]:
        """Run a SELECT and return the first column of each row"""
        self._check_read()
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    def update(self, instance: Any, **fields: Any) -> Any:
        self._writing = True
        for field, value in fields.items():
            setattr(instance, field, value)
        return instance

    def add(self, instance: Any) -> Any:
        self._writing = True
        self.session.add(instance)
        return instance

    async def delete(self, instance: Any) -> None:
        self._writing = True
        await self.session.delete(instance)


class TransactionRunner:
    """
    Runs transaction bodies with optimistic-concurrency retries.

    Each attempt gets a fresh session. Versioned rows make a concurrent
    committed write surface as ``StaleDataError`` at commit, in which case
    the whole body is re-run after an exponential backoff with jitter:
    - Attempt 1: Immediate
    - Attempt 2: base_delay
    - Attempt 3: base_delay * 2
    - Attempt 4: base_delay * 4

    Application errors (``PortalError``) are final and never retried.
    """

    MAX_ATTEMPTS = 5
    BASE_DELAY = 0.05  # 50ms base delay
    MAX_JITTER = 0.3  # 30% jitter to spread out competing writers

    # serialization_failure, deadlock_detected
    CONFLICT_SQLSTATES = {"40001", "40P01"}

    def __init__(
        self,
        session_factory: async_sessionmaker,
        max_attempts: int = MAX_ATTEMPTS,
        base_delay: float = BASE_DELAY,
    ):
        self.session_factory = session_factory
        self.max_attempts = max_attempts
        self.base_delay = base_delay

    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate delay before the given attempt (1-indexed).

        Formula: delay = base_delay * (2 ^ (attempt - 2)) + jitter
        """
        if attempt <= 1:
            return 0.0

        delay = self.base_delay * (2 ** (attempt - 2))
        jitter = random.uniform(0, self.MAX_JITTER * delay)
        return delay + jitter

    @classmethod
    def is_conflict(cls, error: Exception) -> bool:
        """
        Determine if an error means another writer got there first.

        Conflicts (retry):
        - Version mismatch on a versioned row (StaleDataError)
        - PostgreSQL serialization failure or deadlock
        - SQLite writer lock timeout
        """
        if isinstance(error, StaleDataError):
            return True

        if isinstance(error, DBAPIError):
            orig = getattr(error, "orig", None)
            sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
            if sqlstate in cls.CONFLICT_SQLSTATES:
                return True
            if isinstance(error, OperationalError) and "database is locked" in str(error).lower():
                return True

        return False

    async def run(
        self,
        body: Callable[[Transaction], Awaitable[T]],
        operation: str = "transaction",
    ) -> T:
        """
        Execute ``body`` atomically, retrying on concurrency conflicts.

        Args:
            body: Coroutine function receiving a Transaction. It must be free
                of side effects other than transaction reads and writes,
                since it may run several times.
            operation: Name used in logs and metrics

        Returns:
            Whatever ``body`` returned on the committed attempt

        Raises:
            PortalError: Invariant violation detected by the body
            TransactionAborted: Conflicts persisted for every attempt
        """
        started = time.monotonic()

        for attempt in range(1, self.max_attempts + 1):
            async with self.session_factory() as session:
                tx = Transaction(session)
                try:
                    result = await body(tx)
                    await session.commit()
                except PortalError as e:
                    await session.rollback()
                    logger.info(f"{operation} rejected: {type(e).__name__}: {e.detail}")
                    record_transaction(operation, "rejected", time.monotonic() - started)
                    raise
                except Exception as e:
                    await session.rollback()
                    if not self.is_conflict(e):
                        record_transaction(operation, "error", time.monotonic() - started)
                        raise

                    record_conflict(operation)
                    if attempt >= self.max_attempts:
                        logger.error(
                            f"{operation} aborted after {attempt} conflicting attempts: {e}"
                        )
                        record_transaction(operation, "aborted", time.monotonic() - started)
                        raise TransactionAborted(
                            f"{operation} could not commit after {attempt} attempts"
                        ) from e

                    logger.warning(
                        f"Conflict in {operation} (attempt {attempt}/{self.max_attempts}), retrying: {e}"
                    )
                else:
                    if attempt > 1:
                        logger.info(f"{operation} committed on attempt {attempt}")
                    record_transaction(operation, "committed", time.monotonic() - started)
                    return result

            delay = self.calculate_delay(attempt + 1)
            if delay > 0:
                await asyncio.sleep(delay)

        # Unreachable: the last attempt either returns or raises
        raise TransactionAborted(f"{operation} could not commit")
