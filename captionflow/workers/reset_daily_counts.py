"""
Daily quota reset.

Zeroes free-tier caption counters that were last reset before today (UTC).
Meant for a daily scheduler; the API also resets stale counters lazily.
Dry-run by default. Use --live to apply.
"""
from __future__ import annotations

import argparse
import os
from typing import Dict, Optional, Sequence

from captionflow.core.config import Settings, settings as default_settings
from captionflow.core.database import Database
from captionflow.core.logging import configure_logging, log_event
from captionflow.features.quota.service import count_stale_counters, reset_daily_counts


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def run(db: Database, *, dry_run: bool) -> Dict:
    if dry_run:
        report = {"stale": count_stale_counters(db), "reset": 0, "dry_run": True}
    else:
        report = {"stale": None, "reset": reset_daily_counts(db), "dry_run": False}
    log_event("info", "quota.reset_run", event_type="quota", extra=report)
    return report


def main(argv: Optional[Sequence[str]] = None, settings: Optional[Settings] = None) -> int:
    parser = argparse.ArgumentParser(description="Reset stale daily caption counters.")
    parser.add_argument("--live", dest="dry_run", action="store_false", help="Apply the reset.")
    parser.add_argument("--dry-run", dest="dry_run", action="store_true", help="Count stale counters only.")
    parser.set_defaults(dry_run=_parse_bool(os.getenv("CAPTIONFLOW_QUOTA_RESET_DRY_RUN", "1"), True))
    args = parser.parse_args(argv)

    cfg = settings or default_settings
    configure_logging(cfg.ENV)
    db = Database(cfg.DATABASE_URL, echo=cfg.DATABASE_ECHO)
    try:
        report = run(db, dry_run=args.dry_run)
    finally:
        db.dispose()

    print(report)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
