from pedidos.config import FIREBASE_JWKS_URL, Settings, get_settings


def test_settings_read_environment_aliases(monkeypatch) -> None:
    monkeypatch.setenv("METRICS_QUERY_LIMIT", "50")
    monkeypatch.setenv("METRICS_EXCLUDED_PATHS", '["/health"]')
    monkeypatch.setenv("AUTH_ACCEPT_PROVIDER_TOKENS", "true")
    get_settings.cache_clear()

    settings = get_settings()

    assert settings.metrics_query_limit == 50
    assert settings.metrics_excluded_paths == ["/health"]
    assert settings.auth_accept_provider_tokens is True
    assert settings.jwt_secret == "test-secret"


def test_defaults(monkeypatch) -> None:
    for name in ("DATABASE_URL", "JWT_SECRET", "FIREBASE_PROJECT_ID"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.jwt_exp_minutes == 600
    assert settings.metrics_query_limit == 200
    assert settings.metrics_max_query_limit == 1000
    assert settings.metrics_excluded_paths == []
    assert settings.firebase_jwks_url == FIREBASE_JWKS_URL
    assert settings.database_url.startswith("postgresql+psycopg://")


def test_firebase_issuer_uses_project_id() -> None:
    assert get_settings().firebase_issuer == "https://securetoken.google.com/delibery-test"
