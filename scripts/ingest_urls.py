"""Track supplier product URLs listed in a text file, one per line.

Each URL becomes a tracked item, and every presentation found on its page
becomes an offer that the next daily run will price.

Usage:
    docker compose exec backend python -m scripts.ingest_urls urls.txt
    docker compose exec backend python -m scripts.ingest_urls urls.txt --engine-id 1
"""

import argparse
import logging
from pathlib import Path

from pricetrack.models.base import SyncSessionLocal
from pricetrack.services.ingestion import ingest_urls

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)


def ingest(path: Path, engine_id: int):
    urls = [line.strip() for line in path.read_text().splitlines() if line.strip() and not line.startswith("#")]
    logger.info(f"Ingesting {len(urls)} URLs from {path} with engine {engine_id}")

    db = SyncSessionLocal()
    try:
        report = ingest_urls(db, urls, engine_id)
    finally:
        db.close()

    for outcome in report.results:
        if outcome.ok:
            logger.info(f"  OK   {outcome.url} -> item {outcome.item_id}, {outcome.offers} offers")
        else:
            logger.warning(f"  FAIL {outcome.url}: {outcome.error}")
    logger.info(f"Created {report.created_items} items and {report.created_offers} offers")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Track supplier URLs from a file")
    parser.add_argument("path", type=Path, help="Text file with one URL per line")
    parser.add_argument("--engine-id", type=int, default=1, help="Engine used to read the pages")
    args = parser.parse_args()
    ingest(args.path, args.engine_id)
