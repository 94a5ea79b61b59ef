from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .common.responses import ok, register_error_handlers
from .container import Container, build_container
from .core.constants import DEFAULT_LATE_MINUTES_ALLOWED, RECOMPUTE_RETRY_BACKOFF_SECONDS
from .classes.controller import register as register_classes
from .database.bootstrap import apply_schema, list_tables
from .excuses.controller import register as register_excuses
from .reports.controller import register as register_reports
from .roster.controller import register as register_roster
from .sessions.controller import register as register_sessions
from .users.controller import register as register_users

logger = logging.getLogger(__package__)

SCHEMA_PATH = Path(__file__).resolve().parents[3] / "database" / "schema.sql"


def setup_logging(level: str) -> None:
    """Attach one stream handler to the package logger."""

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]")
        )
        logger.addHandler(handler)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))


def create_app(container: Optional[Container] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = getattr(settings, "DB_CONFIG")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    setup_logging(getattr(settings, "LOG_LEVEL", "INFO"))
    logger.info(
        "settings=%s db=%s@%s:%s/%s",
        settings_module,
        db_config.get("user"),
        db_config.get("host"),
        db_config.get("port", 3306),
        db_config.get("database"),
    )

    if container is None:
        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(db_config, schema_path=SCHEMA_PATH)
            logger.info("schema ready (tables=%s)", len(list_tables(db_config)))

        container = build_container(
            db_config=db_config,
            default_late_minutes=int(getattr(settings, "DEFAULT_LATE_MINUTES", DEFAULT_LATE_MINUTES_ALLOWED)),
            retry_backoff_seconds=float(
                getattr(settings, "RECOMPUTE_RETRY_BACKOFF_SECONDS", RECOMPUTE_RETRY_BACKOFF_SECONDS)
            ),
        )

    register_error_handlers(app)
    register_users(app, container)
    register_classes(app, container)
    register_sessions(app, container)
    register_roster(app, container)
    register_excuses(app, container)
    register_reports(app, container)

    @app.route("/health", endpoint="health")
    def health():
        return ok(service="class-attendance", status="healthy")

    return app
