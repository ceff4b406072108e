"""Best-effort audit logging.

``AuditLogger.record`` never blocks the response: it schedules the sink call
as a detached asyncio task and returns immediately. Sink failures and
timeouts are logged and swallowed. Pending tasks are tracked so they are not
garbage-collected mid-flight; ``drain`` gives them a bounded grace period at
shutdown, after which any still running are cancelled and dropped.
"""

import asyncio
import hashlib
import logging
from typing import Optional, Set

from gateway.core import metrics
from gateway.core.collaborators import AuditRecord, AuditSink

logger = logging.getLogger(__name__)


def hash_input(text: str) -> str:
    """SHA-256 of the (sanitized) input that was persisted."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def status_label(status_code: int) -> str:
    """Outcome label for a status code when no error object is available."""
    if status_code < 400:
        return "success"
    return {
        400: "bad_request",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        429: "rate_limited",
    }.get(status_code, "error")


class AuditLogger:
    """Fire-and-forget writer in front of an AuditSink."""

    def __init__(self, sink: AuditSink, timeout_seconds: float = 10.0):
        self.sink = sink
        self.timeout_seconds = timeout_seconds
        self._pending: Set[asyncio.Task] = set()

    def record(self, record: AuditRecord) -> Optional[asyncio.Task]:
        """Schedule one audit write. Returns the task (tests may await it)."""
        try:
            task = asyncio.get_running_loop().create_task(self._write(record))
        except RuntimeError:
            logger.warning("Audit record %s dropped: no running event loop", record.request_id)
            metrics.audit_write_failures_total.inc()
            return None
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _write(self, record: AuditRecord) -> None:
        try:
            await asyncio.wait_for(
                asyncio.to_thread(self.sink.insert_audit_log, record),
                timeout=self.timeout_seconds,
            )
        except asyncio.CancelledError:
            logger.warning("Audit write for request %s cancelled", record.request_id)
            metrics.audit_write_failures_total.inc()
            raise
        except Exception as e:
            # Audit failures never affect the caller-visible outcome
            logger.warning("Audit log failed for request %s: %s", record.request_id, e)
            metrics.audit_write_failures_total.inc()

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self, timeout: float) -> int:
        """Wait up to ``timeout`` seconds for pending writes; cancel the rest.

        Returns the number of writes that were dropped.
        """
        if not self._pending:
            return 0
        _, not_done = await asyncio.wait(set(self._pending), timeout=timeout)
        for task in not_done:
            task.cancel()
        if not_done:
            logger.warning("Dropped %d pending audit write(s) at shutdown", len(not_done))
        return len(not_done)
