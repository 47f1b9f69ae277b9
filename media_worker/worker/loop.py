from __future__ import annotations

import logging
import threading

from media_worker.models.media_job import MediaJob
from media_worker.services.jobs import claim_next_job
from media_worker.worker.context import WorkerContext
from media_worker.worker.dispatch import dispatch_job

logger = logging.getLogger(__name__)


def run_once(ctx: WorkerContext) -> MediaJob | None:
    """Claim one job and run it to completion. Returns the job, or None when idle."""
    db = ctx.session_factory()
    try:
        job = claim_next_job(db, ctx.worker_id)
        if job is None:
            return None
        logger.info("Claimed job %s attempt %s type %s", job.id, job.attempts, job.type)
        dispatch_job(ctx, db, job)
        return job
    finally:
        db.close()


def run_worker(ctx: WorkerContext, stop_event: threading.Event | None = None) -> None:
    stop_event = stop_event or threading.Event()
    while not stop_event.is_set():
        try:
            job = run_once(ctx)
        except Exception as e:
            logger.error("Claim error: %s", e)
            job = None

        if job is None:
            stop_event.wait(ctx.settings.poll_interval_sec)
