from __future__ import annotations

import time
from collections.abc import AsyncIterator, Callable
from typing import Any

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient

from pedidos.config import get_settings
from pedidos.db.session import Database
from pedidos.main import create_app
from pedidos.services.auth_service import IdentityProviderVerifier, create_access_token, hash_password

API_USER = "painel"
API_PASS = "senha-do-painel"
PROJECT_ID = "delibery-test"

# bcrypt is deliberately slow; hash once per run.
_API_PASS_HASH = hash_password(API_PASS)


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def make_provider_token(rsa_key) -> Callable[..., str]:
    def _make(uid: str, email: str | None = None, expires_in: int = 3600, **overrides: Any) -> str:
        now = int(time.time())
        claims: dict[str, Any] = {
            "sub": uid,
            "user_id": uid,
            "aud": PROJECT_ID,
            "iss": f"https://securetoken.google.com/{PROJECT_ID}",
            "iat": now,
            "exp": now + expires_in,
        }
        if email:
            claims["email"] = email
        claims.update(overrides)
        return jwt.encode(claims, rsa_key, algorithm="RS256")

    return _make


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'pedidos.db'}")
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("API_USER", API_USER)
    monkeypatch.setenv("API_PASS_HASH", _API_PASS_HASH)
    monkeypatch.setenv("FIREBASE_PROJECT_ID", PROJECT_ID)
    get_settings.cache_clear()

    yield

    get_settings.cache_clear()


@pytest.fixture
def database() -> Database:
    db = Database(get_settings().database_url)
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def provider_verifier(rsa_key) -> IdentityProviderVerifier:
    settings = get_settings()
    public_key = rsa_key.public_key()
    return IdentityProviderVerifier(
        audience=settings.firebase_project_id,
        issuer=settings.firebase_issuer,
        key_resolver=lambda _token: public_key,
    )


@pytest.fixture
def app(database, provider_verifier):
    return create_app(database=database, provider_verifier=provider_verifier)


@pytest.fixture
async def api_client(app) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers() -> Callable[..., dict[str, str]]:
    def _headers(subject_id: str, role: str = "client") -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(subject_id, role)}"}  # type: ignore[arg-type]

    return _headers
