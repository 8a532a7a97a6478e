from datetime import datetime, timedelta, timezone

import jwt
import pytest

from pedidos.errors import Unauthenticated
from pedidos.services.auth_service import (
    Authenticator,
    IdentityProviderVerifier,
    LocalTokenVerifier,
    create_access_token,
)

from conftest import API_PASS, API_USER, PROJECT_ID


def _local_authenticator() -> Authenticator:
    return Authenticator([LocalTokenVerifier("test-secret")])


async def test_valid_token_yields_identity_from_verified_claims() -> None:
    token = create_access_token("u1", "client", label="u1@example.com")

    identity = await _local_authenticator().authenticate(f"Bearer {token}")

    assert identity.subject_id == "u1"
    assert identity.role == "client"
    assert identity.label == "u1@example.com"
    assert identity.expires_at > datetime.now(timezone.utc)


@pytest.mark.parametrize("header", [None, "", "Basic dTE6cHc=", "Bearer", "Token abc", "Bearer a b"])
async def test_missing_or_malformed_header_is_rejected(header) -> None:
    with pytest.raises(Unauthenticated):
        await _local_authenticator().authenticate(header)


async def test_expired_token_is_rejected() -> None:
    past = datetime.now(timezone.utc) - timedelta(hours=1)
    token = jwt.encode({"sub": "u1", "type": "client", "exp": int(past.timestamp())}, "test-secret", algorithm="HS256")

    with pytest.raises(Unauthenticated, match="expired"):
        await _local_authenticator().authenticate(f"Bearer {token}")


async def test_token_signed_with_another_secret_is_rejected() -> None:
    future = datetime.now(timezone.utc) + timedelta(hours=1)
    token = jwt.encode({"sub": "u1", "type": "client", "exp": int(future.timestamp())}, "other-secret", algorithm="HS256")

    with pytest.raises(Unauthenticated):
        await _local_authenticator().authenticate(f"Bearer {token}")


async def test_token_with_unknown_role_is_rejected() -> None:
    future = datetime.now(timezone.utc) + timedelta(hours=1)
    token = jwt.encode({"sub": "u1", "type": "admin", "exp": int(future.timestamp())}, "test-secret", algorithm="HS256")

    with pytest.raises(Unauthenticated):
        await _local_authenticator().authenticate(f"Bearer {token}")


async def test_provider_verifier_accepts_provider_token(provider_verifier, make_provider_token) -> None:
    identity = await provider_verifier.verify(make_provider_token("fb-uid-1", email="cliente@example.com"))

    assert identity.subject_id == "fb-uid-1"
    assert identity.role == "client"
    assert identity.label == "cliente@example.com"


async def test_provider_verifier_rejects_wrong_audience(provider_verifier, make_provider_token) -> None:
    with pytest.raises(Unauthenticated):
        await provider_verifier.verify(make_provider_token("fb-uid-1", aud="another-project"))


async def test_provider_verifier_rejects_expired_token(provider_verifier, make_provider_token) -> None:
    token = make_provider_token("fb-uid-1", iat=1_600_000_000, exp=1_600_000_100)
    with pytest.raises(Unauthenticated, match="expired"):
        await provider_verifier.verify(token)


async def test_provider_verifier_network_failure_is_unauthenticated(make_provider_token) -> None:
    def _unreachable(_token: str):
        raise jwt.PyJWKClientConnectionError("Fail to fetch data from the url")

    verifier = IdentityProviderVerifier(
        audience=PROJECT_ID,
        issuer=f"https://securetoken.google.com/{PROJECT_ID}",
        key_resolver=_unreachable,
    )
    with pytest.raises(Unauthenticated):
        await verifier.verify(make_provider_token("fb-uid-1"))


async def test_unconfigured_provider_verifier_rejects_everything(make_provider_token) -> None:
    verifier = IdentityProviderVerifier(audience="", issuer="https://securetoken.google.com/")
    with pytest.raises(Unauthenticated):
        await verifier.verify(make_provider_token("fb-uid-1"))


async def test_both_strategies_converge_on_the_same_identity_shape(provider_verifier, make_provider_token) -> None:
    authenticator = Authenticator([LocalTokenVerifier("test-secret"), provider_verifier])

    from_provider = await authenticator.authenticate(f"Bearer {make_provider_token('fb-uid-2')}")
    from_local = await authenticator.authenticate(f"Bearer {create_access_token('fb-uid-2', 'client')}")

    assert type(from_provider) is type(from_local)
    assert from_provider.subject_id == from_local.subject_id == "fb-uid-2"
    assert from_provider.role == from_local.role == "client"


def test_authenticator_needs_a_verifier() -> None:
    with pytest.raises(ValueError):
        Authenticator([])


async def test_internal_login_returns_working_token(api_client) -> None:
    resp = await api_client.post("/auth/login", json={"username": API_USER, "password": API_PASS})
    assert resp.status_code == 200
    token = resp.json()["token"]

    me = await api_client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["subject_id"] == API_USER
    assert me.json()["role"] == "internal"


async def test_internal_login_rejects_wrong_password(api_client) -> None:
    resp = await api_client.post("/auth/login", json={"username": API_USER, "password": "nope"})
    assert resp.status_code == 401
    assert "token" not in resp.json()


async def test_client_login_rewraps_provider_token(api_client, make_provider_token) -> None:
    resp = await api_client.post("/auth/client-login", json={"id_token": make_provider_token("fb-uid-3", email="c@example.com")})
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["client_id"] == "fb-uid-3"

    me = await api_client.get("/auth/me", headers={"Authorization": f"Bearer {payload['token']}"})
    assert me.status_code == 200
    assert me.json() | {"expires_at": None} == {
        "subject_id": "fb-uid-3",
        "role": "client",
        "label": "c@example.com",
        "expires_at": None,
    }


async def test_client_login_rejects_invalid_provider_token(api_client) -> None:
    resp = await api_client.post("/auth/client-login", json={"id_token": "not-a-jwt"})
    assert resp.status_code == 401


async def test_me_requires_bearer_token(api_client) -> None:
    resp = await api_client.get("/auth/me")
    assert resp.status_code == 401
    assert resp.headers.get("www-authenticate") == "Bearer"


class _RecordingVerifier:
    algorithm = "RS256"

    def __init__(self) -> None:
        self.tokens: list[str] = []

    async def verify(self, token: str):
        self.tokens.append(token)
        raise Unauthenticated("Invalid identity provider token")


async def test_expired_local_token_is_not_handed_to_the_provider() -> None:
    provider = _RecordingVerifier()
    authenticator = Authenticator([LocalTokenVerifier("test-secret"), provider])
    past = datetime.now(timezone.utc) - timedelta(minutes=5)
    token = jwt.encode({"sub": "u1", "type": "client", "exp": int(past.timestamp())}, "test-secret", algorithm="HS256")

    with pytest.raises(Unauthenticated, match="Token expired"):
        await authenticator.authenticate(f"Bearer {token}")
    assert provider.tokens == []


async def test_provider_tokens_skip_the_local_verifier(provider_verifier, make_provider_token) -> None:
    class _ExplodingLocal(LocalTokenVerifier):
        async def verify(self, token: str):
            raise AssertionError("local verifier must not see RS256 tokens")

    authenticator = Authenticator([_ExplodingLocal("test-secret"), provider_verifier])

    identity = await authenticator.authenticate(f"Bearer {make_provider_token('fb-uid-4')}")
    assert identity.subject_id == "fb-uid-4"


async def test_token_with_unsupported_algorithm_is_rejected() -> None:
    token = jwt.encode({"sub": "u1", "type": "client"}, "test-secret", algorithm="HS512")
    with pytest.raises(Unauthenticated):
        await _local_authenticator().authenticate(f"Bearer {token}")
