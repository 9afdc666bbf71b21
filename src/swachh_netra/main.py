from __future__ import annotations

import asyncio
import importlib
import logging
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify

from .analytics.controller import register as register_analytics
from .attendance.controller import register as register_attendance
from .config import get_settings_module
from .container import Container, build_container
from .core.exceptions import AuthorizationError, CollaboratorError, DomainError, NotFoundError, ValidationError
from .database.bootstrap import apply_schema, list_tables, seed_demo_data, seed_store
from .trips.controller import register as register_trips

logger = logging.getLogger(__name__)


def _status_for(exc: DomainError) -> int:
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, AuthorizationError):
        return 403
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, CollaboratorError):
        return 503
    return 500


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(exc: DomainError):
        status = _status_for(exc)
        if status >= 500:
            logger.error("Request failed: %s", exc)
        return jsonify({"success": False, "message": str(exc)}), status


def create_app(container: Optional[Container] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    logging.basicConfig(
        level=getattr(settings, "LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    backend = getattr(settings, "STORE_BACKEND", "memory")
    db_config = getattr(settings, "DB_CONFIG", None)
    logger.info("settings=%s store=%s", settings_module, backend)

    if container is None and backend == "mysql":
        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(db_config)
            logger.info("schema ready (tables=%s)", len(list_tables(db_config)))
        if bool(getattr(settings, "AUTO_SEED_DB", False)):
            seed_demo_data(db_config)
            logger.info("demo seed ready")

    if container is None:
        container = build_container(settings=settings)
        if backend == "memory" and bool(getattr(settings, "AUTO_SEED_DB", False)):
            asyncio.run(seed_store(container.store))
    app.extensions["swachh_netra"] = container

    register_error_handlers(app)
    register_trips(app, container)
    register_attendance(app, container)
    register_analytics(app, container)

    return app
