"""School attendance service.

This package is organized by feature modules (attendance, summary, audit,
bulk, ...) with a thin Flask controller layer on top of service and
repository layers.
"""
from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from .api.errors import register_error_handlers
from .attendance.validation import DateWindow
from .common.logging_setup import configure_logging
from .config import get_settings_module
from .container import Container, build_container
from .database.bootstrap import apply_schema, apply_seed_sql, ensure_demo_users, list_tables

from .attendance.controller import register as register_attendance
from .audit.controller import register as register_audit
from .auth.controller import register as register_auth
from .bulk.controller import register as register_bulk
from .reports.controller import register as register_reports
from .summary.controller import register as register_summary

logger = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[2]


def _optional_days(value) -> Optional[int]:
    if value is None or str(value).strip() == "":
        return None
    return int(value)


def _register_routes(app: Flask, container: Container) -> None:
    register_auth(app, container)
    register_attendance(app, container)
    register_summary(app, container)
    register_bulk(app, container)
    register_audit(app, container)
    register_reports(app, container)


def create_app(container: Optional[Container] = None) -> Flask:
    """App factory.

    Pass a ready ``container`` (e.g. built on in-memory repositories) to skip
    the database bootstrap.
    """

    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))

    if container is None:
        db_config = getattr(settings, "DB_CONFIG")
        logger.info(
            "settings=%s db=%s@%s:%s/%s",
            settings_module,
            db_config.get("user"),
            db_config.get("host"),
            db_config.get("port", 3306),
            db_config.get("database"),
        )

        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(db_config, schema_path=REPO_ROOT / "database" / "schema.sql")
            logger.info("schema ready (tables=%s)", len(list_tables(db_config)))
        if bool(getattr(settings, "AUTO_SEED_DB", False)):
            apply_seed_sql(db_config, seed_path=REPO_ROOT / "database" / "seed.sql")
            ensure_demo_users(db_config)
            logger.info("demo seed ready")

        container = build_container(
            db_config=db_config,
            jwt_secret=getattr(settings, "JWT_SECRET", app.secret_key),
            jwt_expire_minutes=int(getattr(settings, "JWT_EXPIRE_MINUTES", 60)),
            date_window=DateWindow(
                max_past_days=_optional_days(getattr(settings, "ATTENDANCE_MAX_PAST_DAYS", None)),
                max_future_days=_optional_days(getattr(settings, "ATTENDANCE_MAX_FUTURE_DAYS", None)),
            ),
            allow_default_sessions=bool(getattr(settings, "ALLOW_DEFAULT_SESSIONS", False)),
            strict_once=bool(getattr(settings, "ATTENDANCE_STRICT_ONCE", False)),
            max_batch_size=int(getattr(settings, "MAX_BATCH_SIZE", 500)),
        )

    app.extensions["school_attendance"] = container
    register_error_handlers(app)
    _register_routes(app, container)
    return app
