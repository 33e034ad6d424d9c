import pytest

from pricetrack.exceptions import InvalidJobState, JobNotFound, NoCandidate
from pricetrack.models.job import JobState, ResultStatus
from pricetrack.models.offer import Offer, OfferState
from pricetrack.models.tracked_item import ItemState
from pricetrack.services.approval import approve_job, select_candidates
from pricetrack.services.job_runner import run_next, upsert_job_result

from factories import make_item, make_job, make_offer, page

URL = "https://shop.example/p/solvent"


@pytest.fixture
def reviewed_job(db, scripted_engine, sleeps):
    """A job that scraped two presentations and now waits for review."""
    item = make_item(db, url=URL)
    job = make_job(db, item)
    scripted_engine.scripts[URL] = [page(URL, {0.5: 2100.0, 1.0: 4000.0})]
    run_next(db, "w1", sleep=sleeps.append)
    db.refresh(job)
    assert job.state == JobState.WAITING_REVIEW
    return job


def offers_for(db, item_id):
    return db.query(Offer).filter(Offer.item_id == item_id).order_by(Offer.presentation).all()


def test_approve_all_candidates(db, reviewed_job):
    result = approve_job(db, reviewed_job.id)

    assert result.inserted_count == 2
    assert result.updated_count == 0
    assert not result.already_succeeded

    offers = offers_for(db, reviewed_job.item_id)
    assert [o.presentation for o in offers] == [0.5, 1.0]
    assert sorted(result.offer_ids) == sorted(o.id for o in offers)
    assert all(o.state == OfferState.OK and o.engine_id == 99 for o in offers)

    db.refresh(reviewed_job)
    assert reviewed_job.state == JobState.SUCCEEDED
    assert reviewed_job.item.state == ItemState.OK


def test_approval_is_idempotent(db, reviewed_job):
    first = approve_job(db, reviewed_job.id)
    second = approve_job(db, reviewed_job.id)

    assert second.already_succeeded
    assert sorted(second.offer_ids) == sorted(first.offer_ids)
    assert len(offers_for(db, reviewed_job.item_id)) == 2


def test_approve_single_candidate_by_index(db, reviewed_job):
    result = approve_job(db, reviewed_job.id, candidate_index=1)

    assert result.inserted_count == 1
    assert [o.presentation for o in offers_for(db, reviewed_job.item_id)] == [1.0]


def test_approve_edited_candidate(db, reviewed_job):
    candidate = {"presentation": "4-0000", "url_canonical": URL, "description": "Drum 4 kg"}
    approve_job(db, reviewed_job.id, candidate=candidate)

    offers = offers_for(db, reviewed_job.item_id)
    assert [(o.presentation, o.description) for o in offers] == [(4.0, "Drum 4 kg")]


def test_existing_offer_is_updated_and_reactivated(db, reviewed_job):
    stale = make_offer(db, reviewed_job.item, 0.5, state=OfferState.INACTIVE, engine_id=None, url=URL)

    result = approve_job(db, reviewed_job.id, candidate_index=0)

    assert result.updated_count == 1
    assert result.offer_ids == [stale.id]
    db.refresh(stale)
    assert stale.state == OfferState.OK
    assert stale.engine_id == 99


def test_candidate_index_out_of_range(db, reviewed_job):
    with pytest.raises(NoCandidate):
        approve_job(db, reviewed_job.id, candidate_index=5)


def test_only_reviewed_jobs_can_be_approved(db):
    job = make_job(db, make_item(db))
    with pytest.raises(InvalidJobState):
        approve_job(db, job.id)


def test_result_with_errors_cannot_be_approved(db):
    job = make_job(db, make_item(db), state=JobState.WAITING_REVIEW)
    upsert_job_result(
        db, job.id, ResultStatus.WARNING,
        candidates=[{"presentation": 1.0}],
        errors=[{"code": "x", "message": "half-parsed"}],
    )
    with pytest.raises(InvalidJobState):
        approve_job(db, job.id)


def test_missing_job(db):
    with pytest.raises(JobNotFound):
        approve_job(db, 4040)


def test_select_candidates_precedence():
    candidates = [{"presentation": 0.5}, {"presentation": 1.0}]
    explicit = {"presentation": 2.0}

    assert select_candidates(candidates, candidate_index=0, candidate=explicit) == [explicit]
    assert select_candidates(candidates, candidate_index=1) == [candidates[1]]
    assert select_candidates(candidates) == candidates
    with pytest.raises(NoCandidate):
        select_candidates([])
