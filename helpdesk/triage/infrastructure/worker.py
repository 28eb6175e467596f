"""
Triage Background Worker
========================

Fire-and-forget execution of triage runs.

A bounded asyncio queue feeds N consumer tasks started in the application
lifespan. Submitting never waits for the run. Failed runs are logged, kept
in a bounded failure history and dropped; there is no retry.
"""

import asyncio
import contextlib
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncContextManager, Awaitable, Callable, Deque, Dict, List, Optional, Tuple

from helpdesk.core import QueueFullException
from helpdesk.shared.infrastructure.logging import get_logger, get_context_logger, log_latency
from helpdesk.triage.application import ITriageScheduler

logger = get_logger(__name__)

TriageRun = Callable[[str, str], Awaitable[Any]]


@dataclass(frozen=True)
class FailedRun:
    """A triage run that ended with an error."""
    ticket_id: str
    correlation_id: str
    error: str
    error_type: str
    failed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "ticket_id": self.ticket_id,
            "correlation_id": self.correlation_id,
            "error": self.error,
            "error_type": self.error_type,
            "failed_at": self.failed_at.isoformat(),
        }


class TriageWorker(ITriageScheduler):
    """
    Queue-backed triage executor.

    Runs for the same ticket are serialized in-process with a per-ticket
    lock when `serialize_per_ticket` is set. Locks are dropped once no run
    for the ticket is queued on them.
    """

    def __init__(
        self,
        run: TriageRun,
        concurrency: int = 4,
        queue_size: int = 1000,
        failure_history: int = 100,
        serialize_per_ticket: bool = True
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._run = run
        self._concurrency = concurrency
        self._queue_size = queue_size
        self._serialize = serialize_per_ticket
        self._queue: Optional[asyncio.Queue] = None
        self._consumers: List[asyncio.Task] = []
        self._ticket_locks: Dict[str, Tuple[asyncio.Lock, int]] = {}
        self._failures: Deque[FailedRun] = deque(maxlen=failure_history)
        self._running = False

        self.submitted = 0
        self.completed = 0
        self.failed = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def queue_depth(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    @property
    def failures(self) -> List[FailedRun]:
        """Recent failed runs, oldest first."""
        return list(self._failures)

    async def start(self) -> None:
        """Start consumer tasks on the running event loop."""
        if self._running:
            logger.warning("Triage worker already running")
            return

        self._queue = asyncio.Queue(maxsize=self._queue_size)
        self._consumers = [
            asyncio.create_task(self._consume(), name=f"triage-worker-{index}")
            for index in range(self._concurrency)
        ]
        self._running = True
        logger.info(
            "Triage worker started",
            extra={"concurrency": self._concurrency, "queue_size": self._queue_size}
        )

    def submit(self, ticket_id: str, correlation_id: str) -> None:
        """
        Enqueue a triage run without waiting for it.

        Raises:
            QueueFullException: If the worker is stopped or the queue is full
        """
        if not self._running or self._queue is None:
            raise QueueFullException("Triage worker is not running")
        try:
            self._queue.put_nowait((ticket_id, correlation_id))
        except asyncio.QueueFull:
            raise QueueFullException(
                "Triage queue is full",
                {"queue_size": self._queue_size, "ticket_id": ticket_id}
            )
        self.submitted += 1
        logger.debug(
            "Triage run queued",
            extra={"ticket_id": ticket_id, "correlation_id": correlation_id}
        )

    async def drain(self) -> None:
        """Wait until every queued run has finished."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self, drain: bool = True, timeout: Optional[float] = 10.0) -> None:
        """
        Stop the worker.

        Args:
            drain: Wait for queued runs before cancelling consumers
            timeout: Upper bound on the drain wait, in seconds
        """
        if not self._running:
            return
        self._running = False

        if drain:
            try:
                await asyncio.wait_for(self.drain(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "Triage worker drain timed out, cancelling pending runs",
                    extra={"queue_depth": self.queue_depth}
                )

        for task in self._consumers:
            task.cancel()
        await asyncio.gather(*self._consumers, return_exceptions=True)
        self._consumers = []
        logger.info(
            "Triage worker stopped",
            extra={"completed": self.completed, "failed": self.failed}
        )

    def stats(self) -> dict:
        return {
            "running": self._running,
            "concurrency": self._concurrency,
            "queue_depth": self.queue_depth,
            "submitted": self.submitted,
            "completed": self.completed,
            "failed": self.failed,
            "recent_failures": [failure.to_dict() for failure in self._failures],
        }

    async def _consume(self) -> None:
        while True:
            ticket_id, correlation_id = await self._queue.get()
            try:
                await self._execute(ticket_id, correlation_id)
            finally:
                self._queue.task_done()

    async def _execute(self, ticket_id: str, correlation_id: str) -> None:
        log = get_context_logger(__name__, correlation_id)
        lock = self._acquire_lock(ticket_id)
        try:
            async with lock:
                with log_latency(log, "triage_run", ticket_id=ticket_id):
                    await self._run(ticket_id, correlation_id)
            self.completed += 1
        except Exception as e:
            self.failed += 1
            self._failures.append(FailedRun(
                ticket_id=ticket_id,
                correlation_id=correlation_id,
                error=str(e),
                error_type=type(e).__name__
            ))
            log.error(
                "Background triage failed",
                extra={"ticket_id": ticket_id, "error": str(e), "error_type": type(e).__name__},
                exc_info=True
            )
        finally:
            self._release_lock(ticket_id)

    def _acquire_lock(self, ticket_id: str) -> AsyncContextManager:
        if not self._serialize:
            return contextlib.nullcontext()
        lock, users = self._ticket_locks.get(ticket_id, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._ticket_locks[ticket_id] = (lock, users + 1)
        return lock

    def _release_lock(self, ticket_id: str) -> None:
        if not self._serialize:
            return
        lock, users = self._ticket_locks[ticket_id]
        if users <= 1:
            del self._ticket_locks[ticket_id]
        else:
            self._ticket_locks[ticket_id] = (lock, users - 1)

