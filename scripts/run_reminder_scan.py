"""Run reminder scan passes once, outside Celery (cron or manual use)."""
import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.logging import setup_logging
from app.database import AsyncSessionLocal, close_db
from app.services.reminder_service import PASS_OVERDUE, PASS_RECURRENCE, PASS_REMINDER
from app.tasks.reminders import run_pass

PASSES = (PASS_REMINDER, PASS_OVERDUE, PASS_RECURRENCE)


async def run_scan(kinds):
    try:
        for kind in kinds:
            result = await run_pass(kind, session_factory=AsyncSessionLocal)
            print(f"✓ {kind} pass: {result}")
    finally:
        await close_db()


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "passes",
        nargs="*",
        choices=PASSES,
        default=list(PASSES),
        help="passes to run (default: all)",
    )
    args = parser.parse_args()

    setup_logging()
    asyncio.run(run_scan(args.passes))


if __name__ == "__main__":
    main()
