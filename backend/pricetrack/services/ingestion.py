"""Bulk URL ingestion — create tracked items and offers straight from supplier URLs."""

import logging
import re
from dataclasses import dataclass, field

import httpx
from sqlalchemy.orm import Session

from pricetrack.config import get_settings
from pricetrack.engines.registry import extract, get_engine_class
from pricetrack.exceptions import EngineNotImplemented, truncate_error
from pricetrack.models.base import dialect_insert
from pricetrack.models.offer import Offer, OfferState
from pricetrack.models.tracked_item import ItemState, TrackedItem

logger = logging.getLogger(__name__)
settings = get_settings()

_HTTP_URL = re.compile(r"^https?://", re.IGNORECASE)


@dataclass
class UrlOutcome:
    url: str
    ok: bool
    item_id: int | None = None
    offers: int = 0
    error: str | None = None


@dataclass
class IngestReport:
    created_items: int = 0
    created_offers: int = 0
    results: list[UrlOutcome] = field(default_factory=list)


def normalize_url(raw) -> str | None:
    url = str(raw or "").strip()
    return url if _HTTP_URL.match(url) else None


def ingest_urls(
    db: Session,
    urls: list[str],
    engine_id: int,
    client: httpx.Client | None = None,
) -> IngestReport:
    """Track each URL and create one offer per presentation its page lists.

    Invalid URLs and engine failures are reported per URL; an unknown engine
    fails the whole request up front.
    """
    if get_engine_class(engine_id) is None:
        raise EngineNotImplemented(engine_id)

    report = IngestReport()
    for raw in urls:
        url = normalize_url(raw)
        if url is None:
            report.results.append(UrlOutcome(url=str(raw), ok=False, error="invalid_url"))
            continue

        item = TrackedItem(
            engine_id=engine_id,
            url_original=url,
            url_canonical=url,
            selected=True,
            state=ItemState.OK,
        )
        db.add(item)
        db.commit()
        report.created_items += 1

        try:
            result = extract(engine_id, url, client=client)
        except Exception as e:
            message = truncate_error(e, settings.error_message_max_length)
            item.state = ItemState.ERROR
            item.error_message = message
            db.commit()
            logger.warning(f"Ingestion of {url} failed: {message}")
            report.results.append(UrlOutcome(url=url, ok=False, item_id=item.id, error=message))
            continue

        created = 0
        for point in result.prices:
            stmt = dialect_insert(db, Offer).values(
                item_id=item.id,
                engine_id=engine_id,
                url_original=url,
                url_canonical=result.canonical_url,
                presentation=point.presentation,
                state=OfferState.OK,
            )
            stmt = stmt.on_conflict_do_nothing(
                index_elements=[Offer.item_id, Offer.url_canonical, Offer.presentation],
            )
            created += max(db.execute(stmt).rowcount or 0, 0)

        item.url_canonical = result.canonical_url
        db.commit()

        report.created_offers += created
        report.results.append(UrlOutcome(url=url, ok=True, item_id=item.id, offers=created))

    logger.info(f"Ingested {report.created_items} items, {report.created_offers} offers")
    return report
