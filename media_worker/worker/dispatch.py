from __future__ import annotations

import logging
from typing import Any, Callable

from sqlalchemy.orm import Session

from media_worker.models.media_job import JOB_TYPE_META_AD, JOB_TYPE_RESEARCH_FILE, MediaJob
from media_worker.worker.context import WorkerContext
from media_worker.worker.failures import on_job_failure
from media_worker.worker.meta_ad_tasks import process_ingest_meta_ad
from media_worker.worker.research_tasks import process_ingest_research_file

logger = logging.getLogger(__name__)

JobHandler = Callable[[WorkerContext, Session, MediaJob], dict[str, Any]]

# Map job type -> pipeline
JOB_TYPE_TO_HANDLER: dict[str, JobHandler] = {
    JOB_TYPE_META_AD: process_ingest_meta_ad,
    JOB_TYPE_RESEARCH_FILE: process_ingest_research_file,
}


def dispatch_job(ctx: WorkerContext, db: Session, job: MediaJob) -> bool:
    """
    Run the pipeline for a claimed job. Returns True on success.
    Every Exception goes to the failure handler unchanged; BaseException
    (shutdown) propagates.
    """
    try:
        handler = JOB_TYPE_TO_HANDLER.get(job.type)
        if handler is None:
            raise ValueError(f"Unsupported job type: {job.type}")
        handler(ctx, db, job)
        return True
    except Exception as e:
        logger.warning("Job %s failed: %s", job.id, e, exc_info=True)
        on_job_failure(db, job, e)
        return False
