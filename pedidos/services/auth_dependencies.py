from __future__ import annotations

import structlog
from fastapi import HTTPException, Request

from pedidos.errors import Unauthenticated
from pedidos.models.domain import Identity
from pedidos.services.auth_service import Authenticator


async def require_identity(request: Request) -> Identity:
    """Authenticate the caller and attach the identity to the request state.

    The metrics middleware reads `request.state.identity` when the request ends,
    so this has to run before the handler produces a response.
    """

    authenticator: Authenticator = request.app.state.authenticator
    try:
        identity = await authenticator.authenticate(request.headers.get("authorization"))
    except Unauthenticated as exc:
        raise HTTPException(
            status_code=401,
            detail=exc.detail,
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc

    request.state.identity = identity
    structlog.contextvars.bind_contextvars(subject_id=identity.subject_id)
    return identity
