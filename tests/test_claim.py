import threading
from datetime import timedelta

from media_worker.db.base import as_utc, utcnow
from media_worker.db.session import SessionLocal
from media_worker.models import MediaJob
from media_worker.services.jobs import claim_next_job

from tests.fakes import fetch, queue_job


def _claim(worker_id="w1"):
    with SessionLocal() as db:
        return claim_next_job(db, worker_id)


def test_claim_returns_none_when_queue_empty():
    assert _claim() is None


def test_claim_takes_oldest_due_job_and_marks_it_running():
    now = utcnow()
    newer = queue_job("ingest_meta_ad", {"swipe_id": "s2"}, run_after=now - timedelta(seconds=5))
    older = queue_job("ingest_meta_ad", {"swipe_id": "s1"}, run_after=now - timedelta(minutes=5))

    job = _claim("worker-a")
    assert job is not None
    assert job.id == older.id
    assert job.status == "running"
    assert job.attempts == 1
    assert job.locked_by == "worker-a"
    assert job.locked_at is not None

    assert fetch(MediaJob, newer.id).status == "queued"


def test_claim_breaks_run_after_ties_by_created_at():
    now = utcnow()
    due = now - timedelta(seconds=30)
    second = queue_job("ingest_research_file", {"file_id": "b"}, run_after=due, created_at=now - timedelta(seconds=1))
    first = queue_job("ingest_research_file", {"file_id": "a"}, run_after=due, created_at=now - timedelta(seconds=10))

    assert _claim().id == first.id
    assert _claim().id == second.id


def test_claim_skips_jobs_not_yet_due():
    queue_job("ingest_meta_ad", {"swipe_id": "s1"}, run_after=utcnow() + timedelta(minutes=1))
    assert _claim() is None


def test_claim_ignores_unknown_job_types():
    unknown = queue_job("transcode_podcast", {"x": 1})
    assert _claim() is None
    assert fetch(MediaJob, unknown.id).status == "queued"


def test_claim_increments_attempts_on_each_claim():
    job = queue_job("ingest_meta_ad", {"swipe_id": "s1"})
    with SessionLocal() as db:
        row = db.get(MediaJob, job.id)
        row.attempts = 2
        db.commit()

    claimed = _claim()
    assert claimed.attempts == 3
    assert as_utc(claimed.locked_at) <= utcnow()


def test_concurrent_claims_hand_out_a_job_exactly_once():
    job = queue_job("ingest_meta_ad", {"swipe_id": "s1"})
    workers = 6
    barrier = threading.Barrier(workers)
    results = []
    errors = []

    def worker(i):
        try:
            barrier.wait()
            claimed = _claim(f"w{i}")
            results.append(claimed.id if claimed else None)
        except Exception as e:  # surfaced below
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert [r for r in results if r is not None] == [job.id]
    assert fetch(MediaJob, job.id).attempts == 1
