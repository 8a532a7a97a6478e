from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

import bcrypt
import jwt
import structlog
from starlette.concurrency import run_in_threadpool

from pedidos.config import get_settings
from pedidos.errors import Unauthenticated
from pedidos.models.domain import Identity, Role

_ROLES: frozenset[str] = frozenset({"internal", "client"})


def hash_password(password: str) -> str:
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=12))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except Exception:
        return False


def create_access_token(subject_id: str, role: Role, label: str | None = None) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": subject_id,
        "type": role,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=settings.jwt_exp_minutes)).timestamp()),
    }
    if label:
        payload["name"] = label
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


class CredentialVerifier(Protocol):
    algorithm: str

    async def verify(self, token: str) -> Identity:
        """Return the verified identity or raise Unauthenticated."""


class LocalTokenVerifier:
    """Verifies HS256 tokens minted by `create_access_token`."""

    algorithm = "HS256"

    def __init__(self, secret: str) -> None:
        self._secret = secret

    async def verify(self, token: str) -> Identity:
        try:
            claims = jwt.decode(token, self._secret, algorithms=[self.algorithm], options={"require": ["sub", "exp"]})
        except jwt.ExpiredSignatureError as exc:
            raise Unauthenticated("Token expired") from exc
        except jwt.PyJWTError as exc:
            raise Unauthenticated("Invalid token") from exc

        role = claims.get("type")
        if role not in _ROLES:
            raise Unauthenticated("Invalid token")

        return Identity(
            subject_id=str(claims["sub"]),
            role=role,
            expires_at=datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc),
            label=claims.get("name"),
        )


class IdentityProviderVerifier:
    """Verifies RS256 ID tokens issued by an external identity provider.

    Signing keys come from the provider's JWKS endpoint unless a `key_resolver`
    is given. Accepted callers are always `client`s.
    """

    algorithm = "RS256"

    def __init__(
        self,
        *,
        audience: str,
        issuer: str,
        jwks_url: str | None = None,
        key_resolver: Callable[[str], Any] | None = None,
    ) -> None:
        self._audience = audience
        self._issuer = issuer
        if key_resolver is None and jwks_url:
            jwks_client = jwt.PyJWKClient(jwks_url, cache_keys=True)
            key_resolver = lambda token: jwks_client.get_signing_key_from_jwt(token).key  # noqa: E731
        self._key_resolver = key_resolver

    def _decode(self, token: str) -> dict[str, Any]:
        if self._key_resolver is None or not self._audience:
            raise Unauthenticated("Identity provider is not configured")
        key = self._key_resolver(token)
        return jwt.decode(
            token,
            key,
            algorithms=[self.algorithm],
            audience=self._audience,
            issuer=self._issuer,
            options={"require": ["sub", "exp", "iat"]},
        )

    async def verify(self, token: str) -> Identity:
        try:
            # JWKS lookups may hit the network.
            claims = await run_in_threadpool(self._decode, token)
        except jwt.ExpiredSignatureError as exc:
            raise Unauthenticated("Identity provider token expired") from exc
        except (jwt.PyJWTError, OSError) as exc:
            structlog.get_logger("auth").warning("provider_token_rejected", error=str(exc))
            raise Unauthenticated("Invalid identity provider token") from exc

        return Identity(
            subject_id=str(claims["sub"]),
            role="client",
            expires_at=datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc),
            label=claims.get("email"),
        )


class Authenticator:
    """Turns an `Authorization` header value into an Identity.

    Only verifiers whose algorithm matches the token header are consulted, in
    order; the first one that accepts the token wins.
    """

    scheme = "bearer"

    def __init__(self, verifiers: Sequence[CredentialVerifier]) -> None:
        if not verifiers:
            raise ValueError("at least one verifier is required")
        self._verifiers = list(verifiers)

    async def authenticate(self, header_value: str | None) -> Identity:
        if not header_value:
            raise Unauthenticated("Token not sent")

        parts = header_value.split()
        if len(parts) != 2 or parts[0].lower() != self.scheme:
            raise Unauthenticated("Invalid authorization scheme")

        token = parts[1]
        try:
            algorithm = jwt.get_unverified_header(token).get("alg")
        except jwt.PyJWTError as exc:
            raise Unauthenticated("Invalid token") from exc

        error = Unauthenticated("Invalid token")
        for verifier in self._verifiers:
            if verifier.algorithm != algorithm:
                continue
            try:
                return await verifier.verify(token)
            except Unauthenticated as exc:
                error = exc
        raise error
