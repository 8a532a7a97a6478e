from __future__ import annotations

import uuid
from collections.abc import Iterable
from typing import Any, Callable

import structlog
from starlette.datastructures import Headers, MutableHeaders

from pedidos.observability.metrics import MetricsRecorder, RequestObservation


def _client_ip(scope: dict[str, Any], headers: Headers) -> str | None:
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    client = scope.get("client")
    return client[0] if client else None


class RequestContextMiddleware:
    """Adds request_id context, access logs, and one persisted metric record per request."""

    def __init__(
        self,
        app: Callable[..., Any],
        recorder: MetricsRecorder,
        excluded_paths: Iterable[str] = (),
    ) -> None:
        self.app = app
        self.recorder = recorder
        self._excluded_metric_paths = set(excluded_paths)

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request_id = str(uuid.uuid4())
        path = scope.get("path", "")
        method = scope.get("method", "")
        query_string = scope.get("query_string", b"")
        raw_path = f"{path}?{query_string.decode('latin-1')}" if query_string else path
        headers = Headers(scope=scope)

        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            path=path,
            method=method,
        )

        # `request.state` writes land in this dict; require_identity stores the caller here.
        state: dict[str, Any] = scope.setdefault("state", {})
        observation = RequestObservation(
            method=method,
            path=raw_path,
            client_ip=_client_ip(scope, headers),
            user_agent=headers.get("user-agent"),
        )
        status_code: int | None = None

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal status_code

            if message.get("type") == "http.response.start":
                status_code = int(message.get("status", 500))
                response_headers = MutableHeaders(scope=message)
                response_headers["X-Request-ID"] = request_id

            await send(message)

            if message.get("type") == "http.response.body" and not message.get("more_body", False):
                observation.fire(status_code=status_code, identity=state.get("identity"))

        async def receive_wrapper() -> dict[str, Any]:
            message = await receive()
            if message.get("type") == "http.disconnect":
                observation.fire(status_code=status_code, identity=state.get("identity"))
            return message

        failed = False
        try:
            await self.app(scope, receive_wrapper, send_wrapper)
        except Exception:
            failed = True
            raise
        finally:
            error_pending = failed and status_code is None
            if error_pending:
                observation.fire(status_code=500, identity=state.get("identity"))
            else:
                # Returned or cancelled without completing the body: closed early.
                observation.fire(status_code=status_code, identity=state.get("identity"))

            record = observation.record
            if record is not None:
                if path not in self._excluded_metric_paths:
                    if error_pending:
                        # The 500 is sent by the server error handler after we re-raise.
                        self.recorder.persist_later(record)
                    else:
                        await self.recorder.persist(record)

                structlog.get_logger("access").info(
                    "http_request",
                    status_code=record.status_code,
                    elapsed_ms=record.elapsed_ms,
                    subject_id=record.subject_id,
                )

            structlog.contextvars.clear_contextvars()
