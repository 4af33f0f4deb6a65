"""Rebuild every attendance summary of one school from its raw records."""

from __future__ import annotations

import argparse
import importlib
import logging

from school_attendance.common.logging_setup import configure_logging
from school_attendance.config import get_settings_module
from school_attendance.container import build_container

logger = logging.getLogger("scripts.recalculate_summaries")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("school_id", type=int)
    args = parser.parse_args()

    settings = importlib.import_module(get_settings_module())
    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))
    container = build_container(
        db_config=dict(settings.DB_CONFIG),
        jwt_secret=getattr(settings, "JWT_SECRET", settings.SECRET_KEY),
    )

    results = container.summary_service.recalculate_all_summaries(args.school_id)
    logger.info(
        "school=%s processed=%s updated=%s errors=%s",
        args.school_id,
        results["processed"],
        results["updated"],
        results["errors"],
    )
    for detail in results["errorDetails"]:
        logger.warning("failed: %s", detail)


if __name__ == "__main__":
    main()
