import pytest

from pricetrack.exceptions import FetchFailed, NoPricesFound
from pricetrack.models.job import Job, JobResult, JobState, ResultStatus
from pricetrack.models.tracked_item import ItemState
from pricetrack.services.job_runner import run_job, run_next, upsert_job_result
from pricetrack.services.job_store import claim_next
from pricetrack.services.retry import MAX_JITTER_SECONDS, backoff_seconds

from factories import make_item, make_job, page

URL = "https://shop.example/p/solvent"


def test_success_waits_for_review(db, scripted_engine, sleeps):
    item = make_item(db, url=URL)
    job = make_job(db, item)
    scripted_engine.scripts[URL] = [page(URL, {0.5: 2100.0, 1.0: 4000.0})]

    outcome = run_next(db, "w1", sleep=sleeps.append)

    assert outcome.job_id == job.id
    assert outcome.state == JobState.WAITING_REVIEW
    assert sleeps == []

    db.refresh(job)
    assert job.state == JobState.WAITING_REVIEW
    assert job.attempts == 1
    assert job.lease_owner is None
    assert job.finished_at is not None

    result = job.result
    assert result.status == ResultStatus.OK
    assert result.engine_version == "test-v1"
    assert [c["presentation"] for c in result.candidates] == [0.5, 1.0]
    assert result.candidates[0]["price"] == 2100.0
    assert result.candidates[0]["url_canonical"] == URL

    db.refresh(item)
    assert item.state == ItemState.WAITING_REVIEW


def test_canonical_change_is_a_warning(db, scripted_engine, sleeps):
    item = make_item(db, url=URL)
    job = make_job(db, item)
    scripted_engine.scripts[URL] = [page(URL, {1.0: 10.0}, canonical_url=URL + "/")]

    run_next(db, "w1", sleep=sleeps.append)

    db.refresh(job)
    assert job.result.status == ResultStatus.WARNING
    assert job.result.warnings[0]["code"] == "CANONICAL_URL_CHANGED"


def test_retries_then_succeeds(db, scripted_engine, sleeps):
    item = make_item(db, url=URL)
    job = make_job(db, item)
    scripted_engine.scripts[URL] = [FetchFailed(503, URL), page(URL, {1.0: 10.0})]

    outcome = run_next(db, "w1", sleep=sleeps.append)

    assert outcome.state == JobState.WAITING_REVIEW
    assert len(sleeps) == 1
    db.refresh(job)
    assert job.attempts == 2


def test_exhausted_attempts_fail_the_job(db, scripted_engine, sleeps):
    item = make_item(db, url=URL)
    job = make_job(db, item, max_attempts=3)
    scripted_engine.scripts[URL] = [FetchFailed(503, URL)]

    outcome = run_next(db, "w1", sleep=sleeps.append)

    assert outcome.state == JobState.FAILED
    assert outcome.error == "fetch_failed_http_503"
    assert len(scripted_engine.calls) == 3
    assert len(sleeps) == 2
    assert 0.5 <= sleeps[0] <= 0.75
    assert 2.0 <= sleeps[1] <= 2.25

    db.refresh(job)
    assert job.state == JobState.FAILED
    assert job.attempts == 3
    assert job.last_error == "fetch_failed_http_503"
    assert job.result.status == ResultStatus.ERROR

    db.refresh(item)
    assert item.state == ItemState.ERROR
    assert item.error_message == "fetch_failed_http_503"


def test_attempts_resume_from_stored_count(db, scripted_engine, sleeps):
    item = make_item(db, url=URL)
    make_job(db, item, attempts=2, max_attempts=3)
    scripted_engine.scripts[URL] = [NoPricesFound()]

    outcome = run_next(db, "w1", sleep=sleeps.append)

    assert outcome.state == JobState.FAILED
    assert len(scripted_engine.calls) == 1
    assert sleeps == []


def test_unresolved_engine_is_terminal(db, scripted_engine, sleeps):
    item = make_item(db, url=URL, engine_id=None)
    job = make_job(db, item)

    outcome = run_next(db, "w1", sleep=sleeps.append)

    assert outcome.state == JobState.FAILED
    assert scripted_engine.calls == []
    assert sleeps == []
    db.refresh(job)
    assert job.attempts == 1
    assert job.result.errors[0]["code"] == "engine_unresolved"


def test_unknown_engine_is_not_retried(db, sleeps):
    item = make_item(db, url=URL, engine_id=4242)
    job = make_job(db, item)

    outcome = run_next(db, "w1", sleep=sleeps.append)

    assert outcome.state == JobState.FAILED
    assert outcome.error == "engine_not_implemented:4242"
    assert sleeps == []
    db.refresh(job)
    assert job.attempts == 1


def test_payload_engine_and_url_take_precedence(db, scripted_engine, sleeps):
    item = make_item(db, url="https://other.example/item", engine_id=1)
    make_job(db, item, payload={"engine_id": 99, "url": URL})
    scripted_engine.scripts[URL] = [page(URL, {1.0: 10.0})]

    outcome = run_next(db, "w1", sleep=sleeps.append)

    assert outcome.state == JobState.WAITING_REVIEW
    assert scripted_engine.calls == [URL]


def test_lost_lease_stops_the_runner(db, scripted_engine, sleeps):
    item = make_item(db, url=URL)
    job = make_job(db, item)
    scripted_engine.scripts[URL] = [page(URL, {1.0: 10.0})]

    claimed = claim_next(db, "slow-worker")
    db.query(Job).filter(Job.id == job.id).update({"lease_owner": "rescuer"}, synchronize_session=False)
    db.commit()

    outcome = run_job(db, claimed, "slow-worker", sleep=sleeps.append)

    assert outcome.lease_lost
    assert scripted_engine.calls == []
    db.refresh(job)
    assert job.lease_owner == "rescuer"
    assert job.attempts == 0


def test_run_next_with_empty_queue(db):
    assert run_next(db, "w1") is None


def test_job_result_is_upserted_per_job(db):
    job = make_job(db)
    upsert_job_result(db, job.id, ResultStatus.ERROR, errors=[{"code": "x", "message": "x"}])
    upsert_job_result(db, job.id, ResultStatus.OK, candidates=[{"presentation": 1.0}])

    results = db.query(JobResult).filter(JobResult.job_id == job.id).all()
    assert len(results) == 1
    assert results[0].status == ResultStatus.OK
    assert results[0].errors == []


@pytest.mark.parametrize("attempt, low, high", [(1, 0.5, 0.75), (2, 2.0, 2.25), (5, 2.0, 2.25)])
def test_backoff_bounds(attempt, low, high):
    assert low <= backoff_seconds(attempt) <= high


def test_first_backoff_is_shorter_than_later_ones_whatever_the_jitter():
    assert backoff_seconds(1, jitter=MAX_JITTER_SECONDS) < backoff_seconds(2, jitter=0)
    assert backoff_seconds(2, jitter=0) == backoff_seconds(3, jitter=0)
