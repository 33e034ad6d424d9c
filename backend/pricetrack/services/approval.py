"""Approval workflow — promotes a reviewed job's candidates into offers."""

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import Session

from pricetrack.engines.parsing import parse_presentation
from pricetrack.exceptions import InvalidJobState, JobNotFound, NoCandidate
from pricetrack.models.base import store_now
from pricetrack.models.job import Job, JobState, ResultStatus
from pricetrack.models.offer import Offer, OfferState
from pricetrack.models.tracked_item import ItemState, TrackedItem

logger = logging.getLogger(__name__)


@dataclass
class ApprovalResult:
    offer_ids: list[int] = field(default_factory=list)
    inserted_count: int = 0
    updated_count: int = 0
    already_succeeded: bool = False


def select_candidates(
    candidates: list[dict[str, Any]],
    candidate_index: int | None = None,
    candidate: dict[str, Any] | None = None,
) -> list[dict[str, Any]]:
    """An explicit candidate wins, then an index; with neither, every candidate is selected."""
    if candidate:
        return [candidate]
    if candidate_index is not None:
        if candidate_index < 0 or candidate_index >= len(candidates):
            raise NoCandidate(f"candidate_index {candidate_index} out of range ({len(candidates)} candidates)")
        return [candidates[candidate_index]]
    if not candidates:
        raise NoCandidate("job result has no candidates")
    return list(candidates)


def _offer_from_candidate(db: Session, item: TrackedItem, engine_id: int | None, c: dict[str, Any]) -> tuple[Offer, bool]:
    presentation = parse_presentation(c.get("presentation"))
    if presentation is None or presentation <= 0:
        raise NoCandidate(f"candidate has no usable presentation: {c.get('presentation')!r}")

    url_original = c.get("url_original") or item.url_original
    url_canonical = c.get("url_canonical") or url_original

    offer = db.query(Offer).filter(
        Offer.item_id == item.id,
        Offer.url_canonical == url_canonical,
        Offer.presentation == presentation,
    ).first()

    created = offer is None
    if created:
        offer = Offer(item_id=item.id, url_canonical=url_canonical, presentation=presentation)
        db.add(offer)

    offer.engine_id = c.get("engine_id") or engine_id or item.engine_id
    offer.url_original = url_original
    if c.get("description"):
        offer.description = str(c["description"])[:500]
    offer.state = OfferState.OK
    return offer, created


def approve_job(
    db: Session,
    job_id: int,
    candidate_index: int | None = None,
    candidate: dict[str, Any] | None = None,
) -> ApprovalResult:
    job = db.get(Job, job_id)
    if job is None:
        raise JobNotFound(job_id)
    if job.item_id is None:
        raise InvalidJobState(f"Job {job_id} has no item_id")

    if job.state == JobState.SUCCEEDED:
        existing = db.query(Offer.id).filter(Offer.item_id == job.item_id).order_by(Offer.id.asc()).all()
        return ApprovalResult(offer_ids=[row.id for row in existing], already_succeeded=True)

    if job.state != JobState.WAITING_REVIEW:
        raise InvalidJobState(f"Job {job_id} is not WAITING_REVIEW (current state: {job.state.value})")

    result = job.result
    if result is None:
        raise InvalidJobState(f"Job {job_id} has no result")
    if result.status not in (ResultStatus.OK, ResultStatus.WARNING):
        raise InvalidJobState(f"Job {job_id} result status {result.status.value} cannot be approved")
    if result.errors:
        raise InvalidJobState(f"Job {job_id} result has errors")

    selected = select_candidates(list(result.candidates or []), candidate_index, candidate)
    item = db.get(TrackedItem, job.item_id)

    approval = ApprovalResult()
    for c in selected:
        if not isinstance(c, dict):
            raise NoCandidate("candidate must be an object")
        offer, created = _offer_from_candidate(db, item, result.engine_id, c)
        db.flush()
        if offer.id not in approval.offer_ids:
            approval.offer_ids.append(offer.id)
        if created:
            approval.inserted_count += 1
        else:
            approval.updated_count += 1

    now = store_now(db)
    job.state = JobState.SUCCEEDED
    job.finished_at = job.finished_at or now
    job.lease_owner = None
    job.lease_expires_at = None

    item.state = ItemState.OK
    item.error_message = None
    if not item.url_canonical and selected[0].get("url_canonical"):
        item.url_canonical = selected[0]["url_canonical"]

    db.commit()
    logger.info(
        f"Job {job_id} approved: {approval.inserted_count} offers created, "
        f"{approval.updated_count} updated"
    )
    return approval
