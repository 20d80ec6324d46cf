from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, Callable


def _csv(value: str) -> list[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


def _as_bool(raw: str, default: bool) -> bool:
    raw = raw.strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


def _as_int(raw: str, default: int) -> int:
    try:
        return int(raw)
    except ValueError:
        return default


def _as_origins(raw: str, default: Any) -> list[str] | str:
    raw = raw.strip()
    return "*" if raw == "*" else _csv(raw)


_PARSERS: dict[type, Callable[[str, Any], Any]] = {bool: _as_bool, int: _as_int}

SYNC_MODES = {"inline", "deferred"}


@dataclass(frozen=True)
class BaseConfig:
    """Settings are read from the environment; class attributes are the defaults."""

    ENV: str = "development"
    DEBUG: bool = False
    TESTING: bool = False

    APP_VERSION: str = "dev"
    TIMEZONE_DISPLAY: str = "Asia/Kolkata"

    MONGODB_URI: str = "mongodb://localhost:27017"
    DB_NAME: str = "placement"
    MONGO_SERVER_SELECTION_TIMEOUT_MS: int = 5000

    JWT_SECRET: str = "dev-secret"
    JWT_EXP_MINUTES: int = 720
    BOOTSTRAP_TOKEN: str = ""
    BCRYPT_ROUNDS: int = 12

    CORS_ORIGINS: list[str] | str = (
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,http://127.0.0.1:3000"
    )
    CORS_ALLOW_CREDENTIALS: bool = False

    LOG_LEVEL: str = "INFO"

    RATE_LIMIT_GLOBAL: str = "1200 per minute"
    RATE_LIMIT_DEFAULT: str = "300 per minute"
    RATE_LIMIT_LOGIN: str = "30 per minute"
    RATE_LIMIT_APPLY: str = "20 per minute"
    TRUST_PROXY_HEADERS: bool = True

    # inline: calendar sync jobs run right after the primary write.
    # deferred: jobs stay pending until an admin replays them.
    CALENDAR_SYNC_MODE: str = "inline"
    CALENDAR_ORGANIZER: str = "Placement Cell"

    DRIVES_PAGE_SIZE_MAX: int = 100

    # ENV/DEBUG/TESTING come from the subclass, never from the environment.
    _FIXED = frozenset({"ENV", "DEBUG", "TESTING"})

    def __post_init__(self) -> None:
        for f in fields(self):
            if f.name in self._FIXED:
                continue
            raw = os.getenv(f.name)
            if raw is None:
                if f.name == "CORS_ORIGINS":
                    object.__setattr__(self, f.name, _csv(str(self.CORS_ORIGINS)))
                continue
            object.__setattr__(self, f.name, self._parse(f.name, raw))

        object.__setattr__(self, "LOG_LEVEL", self.LOG_LEVEL.upper())
        object.__setattr__(self, "CALENDAR_SYNC_MODE", self.CALENDAR_SYNC_MODE.strip().lower())
        object.__setattr__(self, "DRIVES_PAGE_SIZE_MAX", max(1, self.DRIVES_PAGE_SIZE_MAX))
        object.__setattr__(self, "BCRYPT_ROUNDS", min(max(4, self.BCRYPT_ROUNDS), 31))

    def _parse(self, name: str, raw: str) -> Any:
        current = getattr(self, name)
        if name == "CORS_ORIGINS":
            return _as_origins(raw, current)
        parser = _PARSERS.get(type(current))
        if parser is not None:
            return parser(raw, current)
        return raw.strip() or current

    @property
    def IS_PRODUCTION(self) -> bool:
        return str(self.ENV or "").lower() == "production"

    def validate(self) -> None:
        if self.IS_PRODUCTION and str(self.JWT_SECRET or "").strip() in {"", "dev-secret"}:
            raise RuntimeError("JWT_SECRET must be set in production")
        if self.IS_PRODUCTION and (not str(self.MONGODB_URI or "").strip() or not str(self.DB_NAME or "").strip()):
            raise RuntimeError("MONGODB_URI and DB_NAME must be set in production")
        if self.CALENDAR_SYNC_MODE not in SYNC_MODES:
            raise RuntimeError(f"CALENDAR_SYNC_MODE must be one of {'|'.join(sorted(SYNC_MODES))}")


@dataclass(frozen=True)
class DevelopmentConfig(BaseConfig):
    ENV: str = "development"
    DEBUG: bool = True


@dataclass(frozen=True)
class ProductionConfig(BaseConfig):
    ENV: str = "production"
    DEBUG: bool = False


@dataclass(frozen=True)
class TestingConfig(BaseConfig):
    ENV: str = "testing"
    TESTING: bool = True
    JWT_SECRET: str = "test-secret"
    BCRYPT_ROUNDS: int = 4


def get_config() -> BaseConfig:
    env = str(os.getenv("ENV") or os.getenv("APP_ENV") or "development").strip().lower()
    if env in {"prod", "production"}:
        cfg: BaseConfig = ProductionConfig()
    elif env in {"test", "testing"}:
        cfg = TestingConfig()
    else:
        cfg = DevelopmentConfig()

    cfg.validate()
    return cfg
