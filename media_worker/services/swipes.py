from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from urllib.parse import urlparse

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from media_worker.db.base import as_utc, merge_meta, utcnow
from media_worker.models.media_job import JOB_FAILED, JOB_QUEUED, JOB_RUNNING, JOB_TYPE_META_AD, MediaJob
from media_worker.models.swipe import SWIPE_FAILED, SWIPE_PROCESSING, SWIPE_READY, Swipe
from media_worker.services.jobs import create_job, find_inflight_job, find_latest_job

logger = logging.getLogger(__name__)

STALE_PROCESSING = timedelta(minutes=10)


class UnsupportedSwipeUrl(ValueError):
    pass


class SwipeNotFound(LookupError):
    pass


class RetryNotAllowed(Exception):
    pass


@dataclass
class IngestResult:
    swipe: Swipe
    job: MediaJob | None
    created_job: bool = False


def classify_swipe_url(url: str) -> str | None:
    """Return the swipe `source` for a supported Facebook URL, else None."""
    try:
        u = urlparse(url)
    except ValueError:
        return None
    host = (u.hostname or "").lower()
    if host != "facebook.com" and not host.endswith(".facebook.com"):
        return None
    if "/ads/library" in u.path:
        return "meta_ad_library"
    if "/reel/" in u.path:
        return "facebook_reel"
    if "/posts/" in u.path or "/permalink/" in u.path:
        return "facebook_post"
    return None


def _find_swipe(db: Session, product_id: str, source: str, source_url: str, *, lock: bool = False) -> Swipe | None:
    stmt = select(Swipe).where(
        Swipe.product_id == product_id,
        Swipe.source == source,
        Swipe.source_url == source_url,
    )
    if lock:
        stmt = stmt.with_for_update()
    return db.execute(stmt).scalars().first()


def upsert_swipe(db: Session, product_id: str, source: str, source_url: str, *, user_id: str | None = None) -> Swipe:
    """
    Insert in `processing`, or reuse the row for (product, source, url).
    A previously failed swipe is revived to `processing` with its error cleared;
    any other status is left alone.
    """
    swipe = _find_swipe(db, product_id, source, source_url, lock=True)
    if swipe is None:
        swipe = Swipe(
            product_id=product_id,
            source=source,
            source_url=source_url,
            status=SWIPE_PROCESSING,
            created_by=user_id,
        )
        db.add(swipe)
        try:
            db.flush()
        except IntegrityError:
            # a parallel request inserted the same key first
            db.rollback()
            swipe = _find_swipe(db, product_id, source, source_url, lock=True)
            if swipe is None:
                raise
        else:
            return swipe

    if swipe.status == SWIPE_FAILED:
        swipe.status = SWIPE_PROCESSING
        swipe.error_message = None
    swipe.updated_at = utcnow()
    db.flush()
    return swipe


def ingest_meta_ad(db: Session, product_id: str, url: str, *, user_id: str | None = None) -> IngestResult:
    product_id = (product_id or "").strip()
    url = (url or "").strip()
    if not product_id or not url:
        raise ValueError("product_id and url are required")

    source = classify_swipe_url(url)
    if source is None:
        raise UnsupportedSwipeUrl("Unsupported URL. Supported: Meta Ad Library, Facebook posts, Facebook reels.")

    swipe = upsert_swipe(db, product_id, source, url, user_id=user_id)

    if swipe.status == SWIPE_READY:
        db.commit()
        return IngestResult(swipe=swipe, job=None)

    existing = find_inflight_job(db, JOB_TYPE_META_AD, "swipe_id", swipe.id)
    if existing is not None:
        db.commit()
        return IngestResult(swipe=swipe, job=existing)

    job = create_job(
        db,
        JOB_TYPE_META_AD,
        {"swipe_id": swipe.id, "product_id": product_id, "url": url, "user_id": user_id},
        commit=False,
    )
    db.commit()
    logger.info("Enqueued %s job %s for swipe %s", JOB_TYPE_META_AD, job.id, swipe.id)
    return IngestResult(swipe=swipe, job=job, created_job=True)


def retry_swipe(db: Session, swipe_id: str, *, user_id: str | None = None, now: datetime | None = None) -> IngestResult:
    """
    Manual retry: allowed for failed swipes, or processing ones that have not
    moved for STALE_PROCESSING. Any in-flight job is force-failed first.
    """
    now = now or utcnow()
    swipe = db.get(Swipe, swipe_id)
    if swipe is None:
        raise SwipeNotFound(swipe_id)
    if not swipe.source_url:
        raise RetryNotAllowed("Retry is only available for URL-based swipes")

    job = find_latest_job(db, JOB_TYPE_META_AD, "swipe_id", swipe.id)
    reference = as_utc(job.updated_at if job else None) or as_utc(swipe.updated_at) or as_utc(swipe.created_at)
    stale = reference is not None and now - reference > STALE_PROCESSING

    if not (swipe.status == SWIPE_FAILED or (swipe.status == SWIPE_PROCESSING and stale)):
        raise RetryNotAllowed("Retry is only available for failed or stale processing swipes")

    if job is not None and job.status in (JOB_QUEUED, JOB_RUNNING):
        job.status = JOB_FAILED
        job.error_message = "manual_retry"
        job.locked_by = None
        job.locked_at = None

    swipe.status = SWIPE_PROCESSING
    swipe.error_message = None

    new_job = create_job(
        db,
        JOB_TYPE_META_AD,
        {"swipe_id": swipe.id, "product_id": swipe.product_id, "url": swipe.source_url, "user_id": user_id},
        commit=False,
    )
    db.commit()
    return IngestResult(swipe=swipe, job=new_job, created_job=True)


# -----------------------------
# Worker-side state changes
# -----------------------------

def mark_swipe_ready(
    db: Session,
    swipe_id: str,
    *,
    r2_video_key: str,
    transcript: str,
    title: str | None,
    summary: str | None,
    meta: dict,
    commit: bool = True,
) -> Swipe:
    swipe = db.get(Swipe, swipe_id)
    if swipe is None:
        raise SwipeNotFound(swipe_id)

    merged = merge_meta(swipe.meta, meta)
    merged.pop("error", None)

    swipe.status = SWIPE_READY
    swipe.r2_video_key = r2_video_key
    swipe.transcript = transcript
    swipe.title = title if title is not None else swipe.title
    swipe.summary = summary if summary is not None else swipe.summary
    swipe.meta = merged
    swipe.error_message = None
    if commit:
        db.commit()
    return swipe


def mark_swipe_retrying(db: Session, swipe_id: str, error_message: str) -> None:
    """Keep the swipe in processing; the latest error lives in metadata only."""
    swipe = db.get(Swipe, swipe_id)
    if swipe is None:
        logger.warning("Swipe %s not found while recording retry", swipe_id)
        return
    swipe.status = SWIPE_PROCESSING
    swipe.error_message = None
    swipe.meta = merge_meta(swipe.meta, {"error": error_message})
    db.commit()


def mark_swipe_failed(db: Session, swipe_id: str, error_message: str) -> None:
    swipe = db.get(Swipe, swipe_id)
    if swipe is None:
        logger.warning("Swipe %s not found while recording failure", swipe_id)
        return
    swipe.status = SWIPE_FAILED
    swipe.error_message = error_message
    db.commit()
