from __future__ import annotations

from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS

from placement.config import get_config
from placement.db import init_mongo
from placement.middlewares.error_handler import init_error_handlers
from placement.middlewares.rate_limit import init_rate_limiting
from placement.middlewares.request_context import init_request_context
from placement.routes.admin import admin_bp
from placement.routes.auth import auth_bp
from placement.routes.core import core_bp
from placement.routes.counselling import counselling_bp
from placement.routes.drives import drives_bp
from placement.routes.events import events_bp
from placement.utils.logging import setup_logging


def create_app() -> Flask:
    load_dotenv()

    cfg = get_config()
    setup_logging(cfg.LOG_LEVEL)

    app = Flask(__name__)
    app.config["CFG"] = cfg

    CORS(
        app,
        origins=cfg.CORS_ORIGINS,
        supports_credentials=cfg.CORS_ALLOW_CREDENTIALS,
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        max_age=3600,
    )

    init_request_context(app)
    init_rate_limiting(app)
    init_error_handlers(app)

    init_mongo(app)

    app.register_blueprint(core_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")
    app.register_blueprint(drives_bp, url_prefix="/api/v1/drives")
    app.register_blueprint(counselling_bp, url_prefix="/api/v1/counselling")
    app.register_blueprint(events_bp, url_prefix="/api/v1/events")
    app.register_blueprint(admin_bp, url_prefix="/api/v1/admin")

    return app
