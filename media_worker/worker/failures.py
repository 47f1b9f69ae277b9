from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from media_worker.models.media_job import JOB_TYPE_META_AD, JOB_TYPE_RESEARCH_FILE, MediaJob
from media_worker.services.jobs import backoff_seconds, error_text, fail_job, requeue_job, will_retry
from media_worker.services.research import mark_research_failed, mark_research_retrying
from media_worker.services.swipes import mark_swipe_failed, mark_swipe_retrying

logger = logging.getLogger(__name__)


def _mirror_downstream(db: Session, job_type: str, payload: dict, message: str, retry: bool) -> None:
    if job_type == JOB_TYPE_META_AD:
        swipe_id = str(payload.get("swipe_id") or "")
        if not swipe_id:
            return
        if retry:
            mark_swipe_retrying(db, swipe_id, message)
        else:
            mark_swipe_failed(db, swipe_id, message)
    elif job_type == JOB_TYPE_RESEARCH_FILE:
        item_id = str(payload.get("research_item_id") or "")
        if not item_id:
            return
        if retry:
            mark_research_retrying(db, item_id, message)
        else:
            mark_research_failed(db, item_id, message)


def on_job_failure(db: Session, job: MediaJob, error: BaseException) -> None:
    """
    Retry with backoff while attempts < MAX_ATTEMPTS, else fail terminally.
    While retrying the downstream record stays in processing; on terminal
    failure it becomes failed with the error surfaced.

    Never raises: a failure to record the failure is logged and dropped so
    the worker loop keeps running.
    """
    job_id = job.id
    job_type = job.type
    owner = job.locked_by
    attempts = job.attempts or 1
    payload = dict(job.input or {})
    message = error_text(error)
    retry = will_retry(attempts)

    try:
        db.rollback()
    except Exception:
        logger.exception("Rollback failed before recording failure of job %s", job_id)

    try:
        if retry:
            delay = backoff_seconds(attempts)
            owned = requeue_job(db, job_id, owner, message, delay)
            if owned:
                logger.warning("Job %s attempt %s failed, retrying in %ss: %s", job_id, attempts, delay, message)
        else:
            owned = fail_job(db, job_id, owner, message)
            if owned:
                logger.error("Job %s failed permanently after %s attempts: %s", job_id, attempts, message)
    except Exception:
        logger.exception("Failed to mark job %s failed", job_id)
        db.rollback()
    else:
        if not owned:
            # a manual retry already failed this job and queued a replacement
            logger.warning("Job %s is no longer held by %s; dropping its failure: %s", job_id, owner, message)
            return

    try:
        _mirror_downstream(db, job_type, payload, message, retry)
    except Exception:
        logger.exception("Failed to record failure of job %s on its %s record", job_id, job_type)
        db.rollback()
