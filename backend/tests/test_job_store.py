from datetime import timedelta

import pytest

from pricetrack.exceptions import InvalidJobState, JobNotFound
from pricetrack.models.job import Job, JobState
from pricetrack.schemas.job import JobChangeSet
from pricetrack.services.changeset import build_update_values
from pricetrack.services.job_store import (
    cancel_job,
    claim_next,
    create_jobs,
    release_lease,
    update_job,
)

from factories import make_item, make_job


def test_claim_orders_by_priority_then_due_time_then_id(db, now):
    low = make_job(db, priority=10, next_run_at=now - timedelta(minutes=30))
    later = make_job(db, priority=50, next_run_at=now - timedelta(minutes=1))
    earlier = make_job(db, priority=50, next_run_at=now - timedelta(minutes=5))
    tie = make_job(db, priority=50, next_run_at=now - timedelta(minutes=5))
    unprioritized = make_job(db, next_run_at=now - timedelta(hours=1))
    # An explicit None still gets the column default, so clear it afterwards
    db.query(Job).filter(Job.id == unprioritized.id).update({"priority": None}, synchronize_session=False)
    db.commit()
    assert db.query(Job.priority).filter(Job.id == unprioritized.id).scalar() is None

    order = [claim_next(db, "w1", lease_seconds=60, now=now).id for _ in range(5)]

    assert order == [earlier.id, tie.id, later.id, low.id, unprioritized.id]
    assert claim_next(db, "w1", lease_seconds=60, now=now) is None


def test_claim_sets_lease_and_started_at(db, now):
    job = make_job(db)
    claimed = claim_next(db, "worker-a", lease_seconds=120, now=now)

    assert claimed.id == job.id
    assert claimed.state == JobState.RUNNING
    assert claimed.lease_owner == "worker-a"
    assert claimed.lease_expires_at == now + timedelta(seconds=120)
    assert claimed.started_at == now


def test_claimed_job_is_not_handed_out_twice(db, now):
    make_job(db)
    first = claim_next(db, "worker-a", lease_seconds=300, now=now)
    second = claim_next(db, "worker-b", lease_seconds=300, now=now + timedelta(seconds=30))

    assert first is not None
    assert second is None


def test_future_jobs_are_not_claimable(db, now):
    make_job(db, next_run_at=now + timedelta(hours=1))
    assert claim_next(db, "w1", now=now) is None


def test_expired_running_lease_is_reclaimed(db, now):
    job = make_job(
        db,
        state=JobState.RUNNING,
        lease_owner="crashed-worker",
        lease_expires_at=now - timedelta(seconds=1),
        attempts=1,
    )
    claimed = claim_next(db, "rescuer", lease_seconds=60, now=now)

    assert claimed.id == job.id
    assert claimed.lease_owner == "rescuer"
    assert claimed.attempts == 1


def test_live_running_lease_is_not_reclaimed(db, now):
    make_job(db, state=JobState.RUNNING, lease_owner="busy", lease_expires_at=now + timedelta(minutes=5))
    assert claim_next(db, "other", now=now) is None


def test_terminal_jobs_are_never_claimed(db, now):
    for state in (JobState.WAITING_REVIEW, JobState.SUCCEEDED, JobState.FAILED, JobState.CANCELLED):
        make_job(db, state=state)
    assert claim_next(db, "w1", now=now) is None


def test_claim_requires_worker_id(db):
    with pytest.raises(ValueError):
        claim_next(db, "")


def test_release_is_guarded_by_owner(db, now):
    job = make_job(db)
    claim_next(db, "owner", now=now)

    assert release_lease(db, job.id, "intruder", state=JobState.FAILED) is False
    db.refresh(job)
    assert job.state == JobState.RUNNING

    assert release_lease(db, job.id, "owner", state=JobState.FAILED) is True
    db.refresh(job)
    assert job.state == JobState.FAILED
    assert job.lease_owner is None
    assert job.lease_expires_at is None


def test_create_jobs_dedupes_and_skips_unknown_items(db):
    a = make_item(db, url="https://shop.example/a")
    b = make_item(db, url="https://shop.example/b")

    created, skipped = create_jobs(db, [a.id, b.id, a.id, 9999, "x", -1], priority=200, source="manual_ui")

    assert len(created) == 2
    assert skipped == [9999]
    jobs = db.query(Job).order_by(Job.id).all()
    assert [j.item_id for j in jobs] == [a.id, b.id]
    assert all(j.state == JobState.PENDING and j.priority == 200 for j in jobs)
    assert jobs[0].payload == {"source": "manual_ui", "item_id": a.id}


def test_cancel_job(db, now):
    job = make_job(db)
    cancelled = cancel_job(db, job.id, now=now)
    assert cancelled.state == JobState.CANCELLED
    assert cancelled.finished_at == now

    with pytest.raises(InvalidJobState):
        cancel_job(db, job.id, now=now)


def test_cancel_refuses_live_lease(db, now):
    job = make_job(db, state=JobState.RUNNING, lease_owner="busy", lease_expires_at=now + timedelta(minutes=5))
    with pytest.raises(InvalidJobState):
        cancel_job(db, job.id, now=now)


def test_cancel_missing_job(db):
    with pytest.raises(JobNotFound):
        cancel_job(db, 12345)


def test_change_set_translates_only_provided_fields():
    change_set = JobChangeSet.model_validate({"payload": {"url": "https://shop.example/x"}, "priority": 7})
    assert list(build_update_values(change_set)) == ["priority", "payload"]
    assert build_update_values(JobChangeSet()) == {}


def test_change_set_rejects_unknown_fields():
    with pytest.raises(ValueError):
        JobChangeSet.model_validate({"state": "SUCCEEDED"})


def test_update_job_applies_change_set(db, now):
    job = make_job(db, priority=100)
    updated = update_job(db, job.id, JobChangeSet(priority=5, max_attempts=6), now=now)

    assert updated.priority == 5
    assert updated.max_attempts == 6
    assert updated.payload == {"source": "test"}
