from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from time import perf_counter

import anyio
import structlog
from starlette.concurrency import run_in_threadpool

from pedidos.errors import StoreUnavailable
from pedidos.models.domain import UNKNOWN_SUBJECT, Identity, MetricRecord
from pedidos.observability.store import MetricsStore


class RequestObservation:
    """One-shot latch for a single request.

    Starts ARMED when the request is first seen. The first terminal event
    (response fully sent, connection closed, handler failed) fires it and builds
    the record; every later call is a no-op.
    """

    def __init__(
        self,
        *,
        method: str,
        path: str,
        client_ip: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        self.method = method
        self.path = path
        self.client_ip = client_ip
        self.user_agent = user_agent
        self._start = perf_counter()
        self.record: MetricRecord | None = None

    def fire(self, *, status_code: int | None, identity: Identity | None) -> MetricRecord | None:
        """Build the record on the first call; return None on any later call."""

        if self.record is not None:
            return None

        elapsed_ms = max(0, int(round((perf_counter() - self._start) * 1000.0)))
        self.record = MetricRecord(
            subject_id=identity.subject_id if identity is not None else UNKNOWN_SUBJECT,
            method=self.method,
            path=self.path,
            status_code=status_code,
            elapsed_ms=elapsed_ms,
            captured_at=datetime.now(timezone.utc),
            client_ip=self.client_ip,
            user_agent=self.user_agent,
        )
        return self.record


class MetricsRecorder:
    """Best-effort persistence of metric records.

    Failures are logged and dropped; they never reach the request.
    """

    def __init__(self, store: MetricsStore) -> None:
        self.store = store
        self._log = structlog.get_logger("metrics")
        self._pending: set[asyncio.Task[bool]] = set()

    async def persist(self, record: MetricRecord) -> bool:
        try:
            # The response is already out; finish the write even if the request task is cancelled.
            with anyio.CancelScope(shield=True):
                await run_in_threadpool(self.store.insert, record)
        except StoreUnavailable as exc:
            self._log.warning("metric_record_dropped", reason=str(exc), record_path=record.path)
            return False
        except Exception:  # noqa: BLE001
            self._log.exception("metric_record_dropped", record_path=record.path)
            return False
        return True

    def persist_later(self, record: MetricRecord) -> None:
        """Write the record in a background task so the caller can keep going."""

        task = asyncio.get_running_loop().create_task(self.persist(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for background writes started by `persist_later`."""

        while self._pending:
            await asyncio.gather(*list(self._pending))
