"""Backup the attendance database.

Uses `mysqldump`, so the MySQL client tools must be installed.
"""

from __future__ import annotations

import importlib
import logging
import subprocess
from datetime import datetime
from pathlib import Path

from school_attendance.common.logging_setup import configure_logging
from school_attendance.config import get_settings_module

logger = logging.getLogger("scripts.backup")


def main() -> None:
    settings = importlib.import_module(get_settings_module())
    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))
    db = settings.DB_CONFIG

    out_dir = Path(__file__).resolve().parents[1] / "backups"
    out_dir.mkdir(parents=True, exist_ok=True)

    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    out_file = out_dir / f"{db['database']}_{ts}.sql"

    cmd = [
        "mysqldump",
        f"-h{db['host']}",
        f"-P{db.get('port', 3306)}",
        f"-u{db['user']}",
        f"-p{db['password']}",
        "--single-transaction",
        db["database"],
    ]

    try:
        with out_file.open("wb") as f:
            subprocess.run(cmd, stdout=f, stderr=subprocess.PIPE, check=True)
    except FileNotFoundError:
        raise SystemExit("`mysqldump` not found. Install the MySQL client tools first.")
    logger.info("Backup created: %s", out_file)


if __name__ == "__main__":
    main()
