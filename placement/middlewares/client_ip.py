from __future__ import annotations

from flask import current_app, request


def client_ip() -> str:
    cfg = current_app.config.get("CFG")
    ip = ""
    if getattr(cfg, "TRUST_PROXY_HEADERS", False):
        ip = str(request.headers.get("X-Forwarded-For") or "")
    ip = ip or request.remote_addr or ""
    if "," in ip:
        ip = ip.split(",", 1)[0].strip()
    return ip
