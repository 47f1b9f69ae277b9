from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from media_worker.db.base import merge_meta
from media_worker.models.media_job import JOB_TYPE_RESEARCH_FILE, MediaJob
from media_worker.models.research import (
    FILE_PROCESSED,
    ITEM_FAILED,
    ITEM_INBOX,
    ITEM_PROCESSING,
    ResearchFile,
    ResearchItem,
)
from media_worker.services.jobs import create_job, find_inflight_job

logger = logging.getLogger(__name__)


class ResearchFileNotFound(LookupError):
    pass


def enqueue_research_file(
    db: Session, file_id: str, *, user_id: str | None = None
) -> tuple[ResearchItem, MediaJob]:
    """
    Create the inbox item for an uploaded file and queue its ingestion.
    Re-enqueueing a file that already has an in-flight job returns that job.
    """
    f = db.get(ResearchFile, file_id)
    if f is None:
        raise ResearchFileNotFound(file_id)

    existing = find_inflight_job(db, JOB_TYPE_RESEARCH_FILE, "file_id", f.id)
    if existing is not None:
        item = db.get(ResearchItem, existing.input.get("research_item_id"))
        if item is not None:
            return item, existing

    item = ResearchItem(
        product_id=f.product_id,
        type="file",
        title=f.filename,
        file_id=f.id,
        status=ITEM_PROCESSING,
        created_by=user_id,
        meta={},
    )
    db.add(item)
    db.flush()

    job = create_job(
        db,
        JOB_TYPE_RESEARCH_FILE,
        {
            "research_item_id": item.id,
            "file_id": f.id,
            "product_id": f.product_id,
            "r2_key": f.r2_key,
            "filename": f.filename,
            "mime": f.mime or "",
        },
        commit=False,
    )
    db.commit()
    logger.info("Enqueued %s job %s for research item %s", JOB_TYPE_RESEARCH_FILE, job.id, item.id)
    return item, job


def mark_research_ready(
    db: Session,
    item_id: str,
    file_id: str,
    *,
    title: str | None,
    summary: str | None,
    content: str,
    keywords: list[str],
    commit: bool = True,
) -> ResearchItem:
    item = db.get(ResearchItem, item_id)
    if item is None:
        raise LookupError(f"Research item {item_id} not found")

    merged = merge_meta(item.meta, {"keywords": keywords})
    merged.pop("error", None)

    item.status = ITEM_INBOX
    item.title = title if title is not None else item.title
    item.summary = summary if summary is not None else item.summary
    item.content = content
    item.meta = merged

    f = db.get(ResearchFile, file_id)
    if f is not None:
        f.status = FILE_PROCESSED
    else:
        logger.warning("Research file %s not found; item %s marked ready anyway", file_id, item_id)

    if commit:
        db.commit()
    return item


def mark_research_retrying(db: Session, item_id: str, error_message: str) -> None:
    item = db.get(ResearchItem, item_id)
    if item is None:
        logger.warning("Research item %s not found while recording retry", item_id)
        return
    item.status = ITEM_PROCESSING
    item.meta = merge_meta(item.meta, {"error": error_message})
    db.commit()


def mark_research_failed(db: Session, item_id: str, error_message: str) -> None:
    item = db.get(ResearchItem, item_id)
    if item is None:
        logger.warning("Research item %s not found while recording failure", item_id)
        return
    item.status = ITEM_FAILED
    item.meta = merge_meta(item.meta, {"error": error_message})
    db.commit()
