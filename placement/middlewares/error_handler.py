from __future__ import annotations

import logging
from typing import Any

from flask import Flask, g, jsonify
from werkzeug.exceptions import HTTPException

from placement.utils.errors import ApiError, ErrorCode
from placement.utils.logging import log_event

logger = logging.getLogger("placement.errors")


def error_body(code: str, message: str, details: Any = None) -> dict[str, Any]:
    body: dict[str, Any] = {
        "success": False,
        "error": {"code": code, "message": message, "details": details},
    }
    rid = getattr(g, "request_id", None)
    if rid:
        body["request_id"] = rid
    return body


def init_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def _api_error(err: ApiError):
        if err.code in (ErrorCode.CONFLICT, ErrorCode.CAPACITY_EXCEEDED):
            log_event(logger, "request_refused", level=logging.INFO, code=err.code.value, message=err.message)

        resp = jsonify(error_body(err.code.value, err.message, err.details))
        if err.code is ErrorCode.RATE_LIMITED and isinstance(err.details, dict) and err.details.get("retryAfter"):
            resp.headers["Retry-After"] = str(err.details["retryAfter"])
        return resp, err.status

    @app.errorhandler(HTTPException)
    def _http_error(err: HTTPException):
        status = int(err.code or 500)
        return jsonify(error_body(f"HTTP_{status}", str(err.description or "HTTP error"))), status

    @app.errorhandler(Exception)
    def _unhandled(err: Exception):
        logger.exception("unhandled exception request_id=%s", getattr(g, "request_id", ""))
        return jsonify(error_body(ErrorCode.INTERNAL.value, "Unexpected error")), ErrorCode.INTERNAL.http_status
