from datetime import timedelta

from sqlalchemy import select

from app.models.scheduled_task import ScheduledTask, TaskStatus
from app.models.sync_job import SyncJobStatus, SyncJobType
from app.services import sync_jobs, task_queue
from conftest import NOW


def test_delayed_task_is_not_claimed_early(db_session):
    task_queue.enqueue(db_session, "demo", {"n": 1}, delay_ms=5000, now=NOW)
    db_session.commit()

    assert task_queue.claim_due(db_session, ["demo"], now=NOW + timedelta(seconds=4)) == []
    claimed = task_queue.claim_due(db_session, ["demo"], now=NOW + timedelta(seconds=5))
    assert [task.payload for task in claimed] == [{"n": 1}]
    assert claimed[0].attempts == 1


def test_claims_only_known_task_names(db_session):
    task_queue.enqueue(db_session, "demo", {}, now=NOW)
    task_queue.enqueue(db_session, "other", {}, now=NOW)
    db_session.commit()

    claimed = task_queue.claim_due(db_session, ["demo"], now=NOW)
    assert [task.task_name for task in claimed] == ["demo"]
    assert len(task_queue.pending_tasks(db_session, "other")) == 1


def test_abandoned_claim_is_redelivered_after_visibility_timeout(db_session, other_session):
    task_queue.enqueue(db_session, "demo", {"n": 1}, now=NOW)
    db_session.commit()

    assert len(task_queue.claim_due(db_session, ["demo"], now=NOW, visibility_timeout_s=60)) == 1
    assert task_queue.claim_due(other_session, ["demo"], now=NOW + timedelta(seconds=30), visibility_timeout_s=60) == []

    redelivered = task_queue.claim_due(
        other_session, ["demo"], now=NOW + timedelta(seconds=61), visibility_timeout_s=60
    )
    assert len(redelivered) == 1
    assert redelivered[0].attempts == 2


def test_successful_task_is_marked_done(db_session, make_context):
    seen = []
    task_queue.enqueue(db_session, "demo", {"n": 7}, now=NOW)
    db_session.commit()

    result = task_queue.run_due_tasks(
        db_session, make_context(), {"demo": lambda ctx, payload: seen.append(payload["n"])}, now=NOW
    )

    assert seen == [7]
    assert result.as_dict() == {"claimed": 1, "done": 1, "failed": 0, "retried": 0}
    task = db_session.scalars(select(ScheduledTask)).one()
    db_session.refresh(task)
    assert task.status == TaskStatus.DONE


def test_one_failure_does_not_stop_the_drain(db_session, make_context):
    seen = []

    def handler(ctx, payload):
        if payload["n"] == 1:
            raise RuntimeError("bad item")
        seen.append(payload["n"])

    for n in (1, 2):
        task_queue.enqueue(db_session, "demo", {"n": n}, now=NOW)
    db_session.commit()

    result = task_queue.run_due_tasks(db_session, make_context(), {"demo": handler}, now=NOW)
    assert seen == [2]
    assert result.failed == 1
    assert result.done == 1
    assert result.retried == 0


def test_retry_policy_exhausts_after_max_retries(db_session, make_context):
    job = sync_jobs.create_sync_job(
        db_session, job_type=SyncJobType.ARTIST_IMPORT, entity_id=None, total_steps=3, max_retries=3, now=NOW
    )
    task_queue.enqueue(db_session, "flaky", {"sync_job_id": job.id}, now=NOW)
    db_session.commit()

    def handler(ctx, payload):
        raise RuntimeError("upstream down")

    failures = 0
    for _ in range(6):
        result = task_queue.run_due_tasks(
            db_session, make_context(), {"flaky": handler}, now=NOW, retry_delay_ms=0
        )
        failures += result.failed

    db_session.refresh(job)
    assert failures == 4
    assert job.status == SyncJobStatus.FAILED
    assert job.retry_count == 3
    assert job.error_message == "upstream down"
    assert task_queue.pending_tasks(db_session, "flaky") == []


def test_permanent_error_fails_job_without_retry(db_session, make_context):
    job = sync_jobs.create_sync_job(
        db_session, job_type=SyncJobType.ARTIST_IMPORT, entity_id=None, total_steps=3, now=NOW
    )
    task_queue.enqueue(db_session, "broken", {"sync_job_id": job.id}, now=NOW)
    db_session.commit()

    def handler(ctx, payload):
        raise sync_jobs.PermanentSyncError("artist vanished")

    result = task_queue.run_due_tasks(db_session, make_context(), {"broken": handler}, now=NOW, retry_delay_ms=0)

    db_session.refresh(job)
    assert result.retried == 0
    assert job.status == SyncJobStatus.FAILED
    assert job.retry_count == 0
