from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Iterable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from media_worker.db.base import utcnow
from media_worker.models.media_job import (
    JOB_COMPLETED,
    JOB_FAILED,
    JOB_QUEUED,
    JOB_RUNNING,
    SUPPORTED_JOB_TYPES,
    MediaJob,
)

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
ERROR_MESSAGE_MAX_CHARS = 2000


def backoff_seconds(attempts: int) -> int:
    if attempts <= 1:
        return 60
    if attempts == 2:
        return 5 * 60
    return 20 * 60


def will_retry(attempts: int) -> bool:
    return attempts < MAX_ATTEMPTS


def create_job(db: Session, job_type: str, payload: dict[str, Any], *, commit: bool = True) -> MediaJob:
    job = MediaJob(type=job_type, status=JOB_QUEUED, input=dict(payload or {}), attempts=0, run_after=utcnow())
    db.add(job)
    if commit:
        db.commit()
        db.refresh(job)
    else:
        db.flush()
    return job


def get_job(db: Session, job_id: str) -> MediaJob | None:
    return db.get(MediaJob, job_id)


def find_inflight_job(db: Session, job_type: str, input_key: str, value: str) -> MediaJob | None:
    """Latest queued/running job of `job_type` whose input[input_key] == value."""
    return (
        db.execute(
            select(MediaJob)
            .where(
                MediaJob.type == job_type,
                MediaJob.status.in_((JOB_QUEUED, JOB_RUNNING)),
                MediaJob.input[input_key].as_string() == value,
            )
            .order_by(MediaJob.created_at.desc())
            .limit(1)
        )
        .scalars()
        .first()
    )


def find_latest_job(db: Session, job_type: str, input_key: str, value: str) -> MediaJob | None:
    return (
        db.execute(
            select(MediaJob)
            .where(MediaJob.type == job_type, MediaJob.input[input_key].as_string() == value)
            .order_by(MediaJob.created_at.desc())
            .limit(1)
        )
        .scalars()
        .first()
    )


def claim_next_job(
    db: Session,
    worker_id: str,
    *,
    job_types: Iterable[str] = SUPPORTED_JOB_TYPES,
    now: datetime | None = None,
) -> MediaJob | None:
    """
    Atomically take the oldest eligible queued job for this worker.

    SELECT ... FOR UPDATE SKIP LOCKED finds a row no other transaction holds,
    and the guarded UPDATE (status still 'queued') marks it running in the
    same transaction. A concurrent claimer skips the row, or on stores
    without row locks loses the guard and gets None.
    """
    now = now or utcnow()
    try:
        candidate = (
            db.execute(
                select(MediaJob.id)
                .where(
                    MediaJob.type.in_(tuple(job_types)),
                    MediaJob.status == JOB_QUEUED,
                    MediaJob.run_after <= now,
                )
                .order_by(MediaJob.run_after.asc(), MediaJob.created_at.asc())
                .limit(1)
                .with_for_update(skip_locked=True)
            )
            .scalars()
            .first()
        )
        if candidate is None:
            db.commit()
            return None

        res = db.execute(
            update(MediaJob)
            .where(MediaJob.id == candidate, MediaJob.status == JOB_QUEUED)
            .values(
                status=JOB_RUNNING,
                locked_by=worker_id,
                locked_at=now,
                attempts=MediaJob.attempts + 1,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            db.rollback()
            return None

        db.commit()
    except Exception:
        db.rollback()
        raise

    job = db.get(MediaJob, candidate, populate_existing=True)
    # end the read so nothing is held while the pipeline runs
    db.commit()
    return job


def _release(db: Session, job_id: str, worker_id: str | None, values: dict[str, Any]) -> bool:
    """
    Move a running job out of `running`, but only while `worker_id` still owns
    it. A manual retry can force-fail a stale job under a live worker; that
    worker must not overwrite the outcome. Returns False when ownership is lost.
    """
    res = db.execute(
        update(MediaJob)
        .where(
            MediaJob.id == job_id,
            MediaJob.status == JOB_RUNNING,
            MediaJob.locked_by == worker_id,
        )
        .values(locked_by=None, locked_at=None, **values)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


def complete_job(
    db: Session,
    job_id: str,
    worker_id: str | None,
    output: dict[str, Any],
    *,
    commit: bool = True,
    now: datetime | None = None,
) -> bool:
    now = now or utcnow()
    owned = _release(
        db,
        job_id,
        worker_id,
        {"status": JOB_COMPLETED, "output": output, "error_message": None, "updated_at": now},
    )
    if owned and commit:
        db.commit()
    return owned


def requeue_job(
    db: Session,
    job_id: str,
    worker_id: str | None,
    error_message: str,
    delay_sec: int,
    *,
    now: datetime | None = None,
) -> bool:
    now = now or utcnow()
    owned = _release(
        db,
        job_id,
        worker_id,
        {
            "status": JOB_QUEUED,
            "run_after": now + timedelta(seconds=delay_sec),
            "error_message": error_message,
            "updated_at": now,
        },
    )
    if not owned:
        db.rollback()
        return False
    db.commit()
    return True


def fail_job(db: Session, job_id: str, worker_id: str | None, error_message: str, *, now: datetime | None = None) -> bool:
    now = now or utcnow()
    owned = _release(
        db,
        job_id,
        worker_id,
        {"status": JOB_FAILED, "error_message": error_message, "updated_at": now},
    )
    if not owned:
        db.rollback()
        return False
    db.commit()
    return True


def error_text(error: BaseException) -> str:
    msg = str(error).strip() or type(error).__name__
    return msg[:ERROR_MESSAGE_MAX_CHARS]
