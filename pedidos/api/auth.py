from __future__ import annotations

import hmac

from fastapi import APIRouter, Depends, HTTPException, Request

from pedidos.config import get_settings
from pedidos.errors import Unauthenticated
from pedidos.models.domain import Identity
from pedidos.models.schemas import ClientLoginRequest, ClientTokenResponse, IdentityOut, LoginRequest, TokenResponse
from pedidos.services.auth_dependencies import require_identity
from pedidos.services.auth_service import CredentialVerifier, create_access_token, verify_password

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest) -> TokenResponse:
    settings = get_settings()
    user_ok = hmac.compare_digest(payload.username.encode("utf-8"), settings.api_user.encode("utf-8"))
    # Always run bcrypt so a wrong username costs the same as a wrong password.
    password_ok = verify_password(payload.password, settings.api_pass_hash)
    if not (user_ok and password_ok):
        raise HTTPException(status_code=401, detail="Invalid username or password")

    token = create_access_token(subject_id=payload.username, role="internal", label=payload.username)
    return TokenResponse(token=token)


@router.post("/client-login", response_model=ClientTokenResponse)
async def client_login(payload: ClientLoginRequest, request: Request) -> ClientTokenResponse:
    verifier: CredentialVerifier = request.app.state.provider_verifier
    try:
        provider_identity = await verifier.verify(payload.id_token)
    except Unauthenticated as exc:
        raise HTTPException(status_code=401, detail=exc.detail) from exc

    token = create_access_token(
        subject_id=provider_identity.subject_id,
        role="client",
        label=provider_identity.label,
    )
    return ClientTokenResponse(token=token, client_id=provider_identity.subject_id)


@router.get("/me", response_model=IdentityOut)
async def me(identity: Identity = Depends(require_identity)) -> IdentityOut:
    return IdentityOut(
        subject_id=identity.subject_id,
        role=identity.role,
        label=identity.label,
        expires_at=identity.expires_at,
    )
