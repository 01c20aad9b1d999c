#!/usr/bin/env python3
"""
Run the due-reminder sweep outside the API process (cron, systemd timer).

Usage:
    python scripts/sweep_reminders.py                 # one sweep, then exit
    python scripts/sweep_reminders.py --dry-run       # list due reminders, send nothing
    python scripts/sweep_reminders.py --loop --interval 60
"""

import argparse
import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from server.config import Settings
from server.db.session import get_session_factory, init_db
from server.logging_config import LOGGER_NAME, configure_logging
from server.services import dispatch_service
from server.services.notification_service import sender_from_settings
from server.timeutils import as_utc, utcnow

logger = logging.getLogger(LOGGER_NAME)


def _parse_now(value):
    if value is None:
        return None
    return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def cmd_dry_run(settings: Settings, now) -> int:
    factory = get_session_factory(settings)
    db = factory()
    try:
        due = dispatch_service.find_due_reminders(db, now or utcnow())
    finally:
        db.close()
    if not due:
        print("No reminders due.")
        return 0
    print(f"{len(due)} reminder(s) due:")
    for d in due:
        print(f"  #{d.reminder_id}  user={d.user_id}  due={d.due_datetime.isoformat()}  "
              f"{dispatch_service.build_message(d.problem_name)}")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Send notifications for due reminders")
    parser.add_argument("--dry-run", action="store_true", help="List due reminders without sending or marking")
    parser.add_argument("--loop", action="store_true", help="Keep sweeping until interrupted")
    parser.add_argument("--interval", type=float, default=None, help="Seconds between sweeps with --loop")
    parser.add_argument("--now", default=None, help="ISO timestamp to treat as now (testing)")
    args = parser.parse_args(argv)

    settings = Settings()
    configure_logging(settings.log_level)
    init_db(settings)
    now = _parse_now(args.now)

    if args.dry_run:
        return cmd_dry_run(settings, now)

    factory = get_session_factory(settings)
    sender = sender_from_settings(settings, factory)
    interval = args.interval if args.interval is not None else settings.reminder_sweep_interval_s

    while True:
        result = dispatch_service.run_sweep(factory, sender, now=now)
        print(json.dumps(result.to_dict()))
        if not args.loop:
            return 0
        try:
            time.sleep(interval)
        except KeyboardInterrupt:
            logger.info("Sweep loop interrupted")
            return 0


if __name__ == "__main__":
    sys.exit(main())
