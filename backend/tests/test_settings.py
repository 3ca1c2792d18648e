import pytest
from pydantic import ValidationError

from dicey.core.settings import DEFAULT_JWT_SECRET, reload_settings


@pytest.fixture
def production(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")
    monkeypatch.delenv("JWT_SECRET", raising=False)
    yield monkeypatch
    monkeypatch.undo()
    reload_settings()


def test_production_refuses_default_jwt_secret(production):
    with pytest.raises(ValidationError):
        reload_settings()

    production.setenv("JWT_SECRET", DEFAULT_JWT_SECRET)
    with pytest.raises(ValidationError):
        reload_settings()


def test_production_with_real_secret_uses_secure_cookies(production):
    production.setenv("JWT_SECRET", "a-long-random-deployment-secret")
    settings = reload_settings()
    assert settings.cookie_secure is True
    assert settings.jwt_secret == "a-long-random-deployment-secret"


def test_development_keeps_local_defaults(monkeypatch):
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    monkeypatch.delenv("JWT_SECRET", raising=False)
    try:
        settings = reload_settings()
        assert settings.cookie_secure is False
        assert settings.jwt_secret == DEFAULT_JWT_SECRET
    finally:
        monkeypatch.undo()
        reload_settings()
