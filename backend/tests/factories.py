"""Row builders and a scripted engine shared by the test modules."""

from datetime import timedelta

from pricetrack.engines.base import BaseEngine, ExtractResult
from pricetrack.engines.parsing import PricePoint
from pricetrack.models.base import store_now
from pricetrack.models.job import Job, JobState, JobType
from pricetrack.models.offer import Offer, OfferState
from pricetrack.models.tracked_item import ItemState, TrackedItem

SCRIPTED_ENGINE_ID = 99


class ScriptedEngine(BaseEngine):
    """Engine whose outcomes are scripted per URL; the last outcome repeats."""

    name = "scripted"
    version = "test-v1"
    engine_id = SCRIPTED_ENGINE_ID

    scripts: dict = {}
    calls: list = []

    def extract(self, url):
        self.calls.append(url)
        script = self.scripts[url]
        outcome = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def page(url, prices, canonical_url=None):
    """ExtractResult for ``url`` with ``{presentation: price}``."""
    return ExtractResult(
        canonical_url=canonical_url or url,
        prices=[PricePoint(presentation=p, price=v, source="test") for p, v in sorted(prices.items())],
    )


def make_item(db, url="https://shop.example/p/solvent", engine_id=SCRIPTED_ENGINE_ID, **kwargs):
    item = TrackedItem(
        engine_id=engine_id,
        url_original=url,
        url_canonical=kwargs.pop("url_canonical", url),
        selected=kwargs.pop("selected", True),
        state=kwargs.pop("state", ItemState.OK),
        **kwargs,
    )
    db.add(item)
    db.commit()
    return item


def make_offer(db, item, presentation, state=OfferState.OK, engine_id=SCRIPTED_ENGINE_ID, url=None):
    url = url or item.url_canonical or item.url_original
    offer = Offer(
        item_id=item.id,
        engine_id=engine_id,
        url_original=url,
        url_canonical=url,
        presentation=presentation,
        state=state,
    )
    db.add(offer)
    db.commit()
    return offer


def make_job(db, item=None, now=None, **kwargs):
    now = now or store_now(db)
    job = Job(
        job_type=JobType.SCRAPE_URL,
        state=kwargs.pop("state", JobState.PENDING),
        priority=kwargs.pop("priority", 100),
        item_id=item.id if item is not None else None,
        payload=kwargs.pop("payload", {"source": "test"}),
        attempts=kwargs.pop("attempts", 0),
        max_attempts=kwargs.pop("max_attempts", 3),
        next_run_at=kwargs.pop("next_run_at", now - timedelta(minutes=1)),
        **kwargs,
    )
    db.add(job)
    db.commit()
    return job
