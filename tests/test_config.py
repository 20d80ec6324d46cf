from __future__ import annotations

import pytest

from placement.config import ProductionConfig, TestingConfig, get_config


def test_testing_config_defaults(monkeypatch):
    monkeypatch.delenv("CALENDAR_SYNC_MODE", raising=False)
    monkeypatch.setenv("ENV", "testing")
    cfg = get_config()
    assert isinstance(cfg, TestingConfig)
    assert cfg.CALENDAR_SYNC_MODE == "inline"
    assert cfg.CALENDAR_ORGANIZER == "Placement Cell"


def test_sync_mode_from_env(monkeypatch):
    monkeypatch.setenv("CALENDAR_SYNC_MODE", "Deferred")
    assert TestingConfig().CALENDAR_SYNC_MODE == "deferred"


def test_invalid_sync_mode_rejected(monkeypatch):
    monkeypatch.setenv("CALENDAR_SYNC_MODE", "sometimes")
    with pytest.raises(RuntimeError):
        TestingConfig().validate()


def test_production_requires_real_jwt_secret(monkeypatch):
    monkeypatch.delenv("JWT_SECRET", raising=False)
    with pytest.raises(RuntimeError):
        ProductionConfig().validate()


def test_env_values_are_typed(monkeypatch):
    monkeypatch.setenv("JWT_EXP_MINUTES", "15")
    monkeypatch.setenv("TRUST_PROXY_HEADERS", "no")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")
    monkeypatch.setenv("DRIVES_PAGE_SIZE_MAX", "oops")
    monkeypatch.setenv("BCRYPT_ROUNDS", "1")
    monkeypatch.setenv("ENV", "production")

    cfg = TestingConfig()
    assert cfg.JWT_EXP_MINUTES == 15
    assert cfg.TRUST_PROXY_HEADERS is False
    assert cfg.CORS_ORIGINS == ["https://a.example", "https://b.example"]
    assert cfg.DRIVES_PAGE_SIZE_MAX == 100
    assert cfg.BCRYPT_ROUNDS == 4
    assert cfg.ENV == "testing"


def test_cors_wildcard(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "*")
    assert TestingConfig().CORS_ORIGINS == "*"
