"""
Execution context: one connection, one command batch, one deferred-data
registry and one record cache, driven to completion by ``exec()``.

Execution flow:
1. Fire waiters that are already ready (traversal needing no round trip).
2. While commands are queued: flush them as one MULTI/EXEC round trip,
   dispatch the replies, then fire waiters the replies satisfied. Waiters
   may queue more commands, which keeps the loop going.
3. Finish when no commands and no waiters remain; fail with
   DependencyDeadlockError when commands run out but waiters do not.
4. Release the connection exactly once, whatever happened.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

from typed_records.batch import CommandBatch, Handler
from typed_records.deferred import DeferredData
from typed_records.errors import DependencyDeadlockError
from typed_records.logger import get_logger

if TYPE_CHECKING:
    import redis

    from typed_records.connection import ConnectionPool
    from typed_records.types import TypeRegistry

logger = get_logger(__name__)


class TransactionState(Enum):
    """Where a transaction is in its execution loop."""

    PENDING = "pending"
    FLUSHING = "flushing"
    RESOLVING = "resolving"
    DONE = "done"
    FAILED = "failed"


class Transaction:
    """One logical unit of batched store operations.

    Usable as a context manager: leaving the block with an exception discards
    whatever is still queued and releases the connection.
    """

    def __init__(self, registry: TypeRegistry, pool: ConnectionPool) -> None:
        self.registry = registry
        self._pool = pool
        self.conn: redis.Redis | None = pool.acquire()
        self.batch = CommandBatch()
        self.data = DeferredData()
        self.record_cache: dict[str, Any] = {}
        self.state = TransactionState.PENDING
        self.round_trips = 0

    # -- building -------------------------------------------------------

    def command(self, name: str, args: list[Any] | tuple[Any, ...], handler: Handler | None = None) -> None:
        """Queue a command for the next round trip."""
        self.batch.enqueue(name, args, handler)

    def publish(self, key: str, value: Any) -> None:
        """Make a value available to waiters."""
        self.data.publish(key, value)

    def when_ready(self, keys: list[str] | tuple[str, ...], callback: Callable[[], None]) -> None:
        """Run callback once every key has been published."""
        self.data.when_ready(keys, callback)

    # -- execution ------------------------------------------------------

    def exec(self) -> None:
        """Drain every queued command and waiter.

        Raises:
            DependencyDeadlockError: If waiters remain once commands run out.
            RemoteProtocolError: If a round trip fails.
            RecordError: Whatever a handler or waiter raised.
        """
        if self.conn is None:
            raise RuntimeError("transaction has already been executed or discarded")
        try:
            self._resolve()
            while self.batch:
                self.state = TransactionState.FLUSHING
                self.batch.flush(self.conn)
                self.round_trips += 1
                self._resolve()

            if self.data.waiting:
                pending = self.data.pending_keys()
                logger.warning(
                    f"Transaction stopped with {self.data.waiting} waiter(s) pending on {pending}"
                )
                raise DependencyDeadlockError(self.data.waiting, pending)
            self.state = TransactionState.DONE
            logger.debug(f"Transaction done after {self.round_trips} round trip(s)")
        except Exception:
            self.state = TransactionState.FAILED
            self.batch.clear()
            raise
        finally:
            self.release()

    def _resolve(self) -> None:
        self.state = TransactionState.RESOLVING
        self.data.resolve_pending()
        self.state = TransactionState.PENDING

    def discard(self) -> None:
        """Drop everything still queued and release the connection."""
        dropped = self.batch.clear()
        if dropped:
            logger.debug(f"Discarded {dropped} queued command(s)")
        self.data.clear()
        if self.state is not TransactionState.DONE:
            self.state = TransactionState.FAILED
        self.release()

    def release(self) -> None:
        """Return the connection to the pool; later calls do nothing."""
        if self.conn is None:
            return
        conn, self.conn = self.conn, None
        self._pool.release(conn)

    @property
    def released(self) -> bool:
        return self.conn is None

    def __enter__(self) -> Transaction:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if exc_type is not None:
            self.discard()
        else:
            self.release()
