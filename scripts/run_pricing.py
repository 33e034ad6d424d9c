"""Run pricing work from the command line, without Celery.

Drives the same code paths as the scheduled tasks: one slice of today's
daily run, or a drain of due scrape jobs. Useful to catch up after an
outage or to backfill a missed date.

Usage:
    docker compose exec backend python -m scripts.run_pricing daily
    # Keep slicing until today's run has nothing pending:
    docker compose exec backend python -m scripts.run_pricing daily --until-done
    # Backfill a specific date:
    docker compose exec backend python -m scripts.run_pricing daily --date 2026-10-18
    # Run up to 50 due scrape jobs:
    docker compose exec backend python -m scripts.run_pricing jobs --limit 50
"""

import argparse
import logging
import socket
from datetime import date

from pricetrack.models.base import SyncSessionLocal
from pricetrack.services.daily_run import process_due_work
from pricetrack.services.job_runner import run_next

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)


def worker_id(kind: str) -> str:
    return f"cli:{kind}:{socket.gethostname()}"


def run_daily(as_of_date: date | None, until_done: bool, max_slices: int):
    db = SyncSessionLocal()
    try:
        for slice_number in range(1, max_slices + 1):
            report = process_due_work(db, worker_id=worker_id("daily"), as_of_date=as_of_date)
            logger.info(
                f"Slice {slice_number}: run {report.run_id} ({report.date}) ok={report.processed_ok} "
                f"fail={report.processed_fail} pending={report.pending_remaining} in {report.time_ms}ms"
            )
            if not until_done or report.pending_remaining == 0 or report.batch_size == 0:
                break
    finally:
        db.close()


def run_jobs(limit: int):
    db = SyncSessionLocal()
    try:
        processed = 0
        while processed < limit:
            outcome = run_next(db, worker_id("jobs"))
            if outcome is None:
                break
            processed += 1
            logger.info(f"Job {outcome.job_id} -> {outcome.state.value} {outcome.error or ''}")
        logger.info(f"Processed {processed} jobs")
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run daily pricing or scrape jobs")
    sub = parser.add_subparsers(dest="command", required=True)

    daily = sub.add_parser("daily", help="Process today's (or --date's) pricing run")
    daily.add_argument("--date", type=date.fromisoformat, help="Run date (YYYY-MM-DD), defaults to today")
    daily.add_argument("--until-done", action="store_true", help="Repeat slices until nothing is pending")
    daily.add_argument("--max-slices", type=int, default=100, help="Upper bound on slices with --until-done")

    jobs = sub.add_parser("jobs", help="Claim and run due scrape jobs")
    jobs.add_argument("--limit", type=int, default=20, help="Maximum jobs to run")

    args = parser.parse_args()
    if args.command == "daily":
        run_daily(args.date, args.until_done, args.max_slices)
    else:
        run_jobs(args.limit)
