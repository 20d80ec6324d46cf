from __future__ import annotations

from flask import Flask, request

from placement.middlewares.client_ip import client_ip
from placement.utils.rate_limiter import InMemoryRateLimiter

limiter = InMemoryRateLimiter()

_EXEMPT = {"/health", "/version"}


def _bucket(path: str, method: str) -> str | None:
    if path == "/api/v1/auth/login" or path == "/api/v1/auth/register":
        return "AUTH"
    if method == "POST" and path.endswith("/apply"):
        return "APPLY"
    return None


def init_rate_limiting(app: Flask) -> None:
    cfg = app.config["CFG"]
    bucket_limits = {"AUTH": cfg.RATE_LIMIT_LOGIN, "APPLY": cfg.RATE_LIMIT_APPLY}

    @app.before_request
    def _rate_limit():
        path = request.path or ""
        if path in _EXEMPT or not path.startswith("/api/"):
            return None

        ip = client_ip()
        limiter.check(f"{ip}:GLOBAL", cfg.RATE_LIMIT_GLOBAL)

        bucket = _bucket(path, request.method)
        if bucket:
            limiter.check(f"{ip}:{bucket}", bucket_limits[bucket])
        else:
            limiter.check(f"{ip}:PATH:{path}", cfg.RATE_LIMIT_DEFAULT)
        return None
