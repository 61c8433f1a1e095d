#!/usr/bin/env python3
"""
Basic Usage Example for the cron scheduler

Add this script to the crontab so it runs once a minute:

    * * * * * /usr/bin/python3 /path/to/examples/basic_usage.py

Each run registers all jobs and executes the ones that are due.
"""

import json
import shutil
import sys
import tempfile
from pathlib import Path

# Add parent directory to path for imports (if running as standalone script)
sys.path.insert(0, str(Path(__file__).parent.parent))

from cronscheduler import Scheduler

DATA_DIR = Path(tempfile.gettempdir()) / "cron_scheduler_example"


def disk_usage(path: str) -> str:
    """Callable jobs return their output instead of printing it"""
    usage = shutil.disk_usage(path)
    return f"{path}: {usage.used / usage.total:.1%} used\n"


def is_weekday() -> bool:
    from datetime import date
    return date.today().weekday() < 5


def main():
    lock_dir = DATA_DIR / "locks"
    lock_dir.mkdir(parents=True, exist_ok=True)

    scheduler = Scheduler(lock_dir=lock_dir, output_file=DATA_DIR / "output.log")

    # Every minute (the default)
    scheduler.raw('uptime', 'uptime')

    # Every 15 minutes, only on weekdays
    scheduler.call('disk-usage', disk_usage, '/').every_minutes(15).when(is_weekday)

    # Mondays at 16:30, with its own output file
    scheduler.raw('weekly-report', 'df -h').monday('16:30').output(DATA_DIR / "weekly.log")

    # Raw cron expression, allowed to overlap with itself
    scheduler.raw('heartbeat', 'date').at('*/5 9-17 * * 1-5').always()

    report = scheduler.tick()
    print(json.dumps(report.to_dict(), indent=2))

    for label in scheduler.get_jobs():
        print(f"{label:<15} next run: {scheduler.next_run(label)}")


if __name__ == "__main__":
    main()
