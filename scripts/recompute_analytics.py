"""Full analytics sweep, meant to be invoked by an external scheduler (e.g. weekly cron)."""

from __future__ import annotations

import importlib
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv

from config import get_settings_module

from src.attendance_analytics.attendance_analytics.container import build_container


def main() -> int:
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    logging.basicConfig(level=getattr(settings, "LOG_LEVEL", "INFO"))

    container = build_container(db_config=settings.DB_CONFIG, email_config=getattr(settings, "EMAIL_CONFIG", {}))
    count = container.analytics_engine.recompute_all_students_analytics()
    print(f"OK: recomputed analytics for {count} students")
    return 0


if __name__ == "__main__":
    sys.exit(main())
