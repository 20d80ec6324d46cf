from __future__ import annotations

import logging
import os
import time

from flask import Flask, g, request

from placement.middlewares.client_ip import client_ip
from placement.utils.logging import log_event

logger = logging.getLogger("placement.request")

_MAX_REQUEST_ID = 64


def init_request_context(app: Flask) -> None:
    """Request ids, response hardening headers and one JSON access-log line per request."""

    @app.before_request
    def _start():
        incoming = str(request.headers.get("X-Request-ID") or "").strip()
        g.request_id = incoming[:_MAX_REQUEST_ID] or os.urandom(8).hex()
        g.started_at = time.monotonic()

    @app.after_request
    def _finish(resp):
        rid = getattr(g, "request_id", "")
        if rid:
            resp.headers["X-Request-ID"] = rid

        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("X-Frame-Options", "DENY")
        resp.headers.setdefault("Referrer-Policy", "no-referrer")
        if request.path.startswith("/api/"):
            # responses carry per-user application data
            resp.headers.setdefault("Cache-Control", "no-store")

        cfg = app.config["CFG"]
        forwarded_https = str(request.headers.get("X-Forwarded-Proto") or "").lower() == "https"
        if cfg.IS_PRODUCTION and (request.is_secure or forwarded_https):
            resp.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")

        started = getattr(g, "started_at", None)
        user = getattr(g, "current_user", None) or {}
        log_event(
            logger,
            "request",
            requestId=rid,
            method=request.method,
            path=request.path,
            status=resp.status_code,
            latencyMs=int((time.monotonic() - started) * 1000) if started is not None else None,
            ip=client_ip(),
            userId=str(user["id"]) if user.get("id") else None,
            role=user.get("role"),
        )
        return resp
