from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from starlette.concurrency import run_in_threadpool

from pedidos.config import get_settings
from pedidos.errors import StoreUnavailable
from pedidos.models.domain import Identity, MetricRecord
from pedidos.models.schemas import MetricRecordOut, MetricsResponse
from pedidos.observability.store import MetricsStore
from pedidos.services.auth_dependencies import require_identity


router = APIRouter(tags=["metrics"])


def _require_endpoint_enabled() -> None:
    if not get_settings().enable_metrics_endpoint:
        raise HTTPException(status_code=404, detail="Not found")


def _resolve_subject(identity: Identity, subject: str | None) -> str | None:
    """Clients only ever see their own records; internal callers may pick any subject."""

    if identity.role == "client":
        if subject is not None and subject != identity.subject_id:
            raise HTTPException(status_code=403, detail="Cannot access another subject's metrics")
        return identity.subject_id
    return subject


def _to_out(record: MetricRecord) -> MetricRecordOut:
    return MetricRecordOut(
        subject_id=record.subject_id,
        method=record.method,
        path=record.path,
        status_code=record.status_code,
        elapsed_ms=record.elapsed_ms,
        captured_at=record.captured_at,
        client_ip=record.client_ip,
        user_agent=record.user_agent,
    )


@router.get("/metrics", response_model=MetricsResponse, dependencies=[Depends(_require_endpoint_enabled)])
async def read_metrics(
    request: Request,
    subject: str | None = None,
    limit: int | None = Query(default=None, ge=1),
    identity: Identity = Depends(require_identity),
) -> MetricsResponse:
    settings = get_settings()
    subject_id = _resolve_subject(identity, subject)
    capped = min(limit or settings.metrics_query_limit, settings.metrics_max_query_limit)
    store: MetricsStore = request.app.state.metrics_store

    try:
        if subject_id is None:
            records = await run_in_threadpool(store.find_recent, capped)
        else:
            records = await run_in_threadpool(store.find_by_subject, subject_id, capped)
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail="Metrics store unavailable") from exc

    return MetricsResponse(subject_id=subject_id, count=len(records), records=[_to_out(r) for r in records])


@router.delete("/metrics", dependencies=[Depends(_require_endpoint_enabled)])
async def clear_metrics(
    request: Request,
    subject: str | None = None,
    identity: Identity = Depends(require_identity),
) -> dict[str, object]:
    subject_id = _resolve_subject(identity, subject)
    if subject_id is None:
        raise HTTPException(status_code=400, detail="subject is required")

    store: MetricsStore = request.app.state.metrics_store
    try:
        deleted = await run_in_threadpool(store.clear_subject, subject_id)
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail="Metrics store unavailable") from exc
    return {"status": "cleared", "subject_id": subject_id, "deleted": deleted}
