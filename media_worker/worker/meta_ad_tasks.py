from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import Any

from sqlalchemy.orm import Session

from media_worker.models.media_job import MediaJob
from media_worker.services.audio_utils import extract_audio_mp3
from media_worker.services.blob_transfer import download_to_file
from media_worker.services.jobs import complete_job
from media_worker.services.meta_ad_scraper import scrape_meta_ad_video
from media_worker.services.object_store import swipe_video_key
from media_worker.services.prompt_blocks import load_global_prompt_blocks
from media_worker.services.stt import transcribe_audio
from media_worker.services.summaries import summarize_swipe
from media_worker.services.swipes import mark_swipe_ready
from media_worker.worker.context import WorkerContext
from media_worker.worker.errors import require_fields

logger = logging.getLogger(__name__)

TMP_PREFIX = "media-swipe-"


class ScrapeError(Exception):
    pass


def process_ingest_meta_ad(ctx: WorkerContext, db: Session, job: MediaJob) -> dict[str, Any]:
    """
    scrape -> download -> upload original -> ffmpeg audio -> transcribe
    -> summarize -> persist.

    No stage is rolled back on failure: a retry re-derives everything from
    the source URL and overwrites the same object-store key. The temp
    folder is removed on every exit path.
    """
    fields = require_fields(job.input, ("swipe_id", "product_id", "url"))
    swipe_id, product_id, url = fields["swipe_id"], fields["product_id"], fields["url"]
    s = ctx.settings

    blocks = load_global_prompt_blocks(db)
    # don't hold a transaction open across the pipeline
    db.commit()

    with tempfile.TemporaryDirectory(prefix=TMP_PREFIX) as td:
        tmp_dir = Path(td)
        mp4_path = tmp_dir / "source.mp4"
        audio_path = tmp_dir / "audio.mp3"

        logger.info("Job %s: scraping video URL %s", job.id, url)
        scraped = scrape_meta_ad_video(url, nav_timeout_ms=s.scrape_nav_timeout_ms, settle_ms=s.scrape_settle_ms)
        if not scraped.video_url:
            raise ScrapeError("Failed to locate MP4 URL from Meta page")

        logger.info("Job %s: downloading video", job.id)
        download_to_file(scraped.video_url, mp4_path, s.max_video_bytes)

        r2_key = swipe_video_key(product_id, swipe_id)
        logger.info("Job %s: uploading to object store %s", job.id, r2_key)
        ctx.object_store.upload_file(r2_key, mp4_path, "video/mp4")

        logger.info("Job %s: extracting audio", job.id)
        extract_audio_mp3(mp4_path, audio_path, ffmpeg_bin=s.ffmpeg_bin)

        logger.info("Job %s: transcribing", job.id)
        transcript = transcribe_audio(ctx.openai, audio_path, model=s.openai_stt_model)

        logger.info("Job %s: summarizing", job.id)
        summary = summarize_swipe(
            ctx.openai,
            model=s.openai_summarize_model,
            url=url,
            transcript=transcript,
            blocks=blocks,
        )

    meta = {**scraped.meta, "video_url": scraped.video_url}
    output = {
        "swipe_id": swipe_id,
        "r2_video_key": r2_key,
        "transcript_len": len(transcript),
        "title": summary.title,
    }

    job_id = job.id
    if not complete_job(db, job_id, ctx.worker_id, output, commit=False):
        db.rollback()
        logger.warning("Job %s: no longer held by %s; discarding result for swipe %s", job_id, ctx.worker_id, swipe_id)
        return output

    mark_swipe_ready(
        db,
        swipe_id,
        r2_video_key=r2_key,
        transcript=transcript,
        title=summary.title,
        summary=summary.summary,
        meta=meta,
        commit=False,
    )
    db.commit()

    logger.info("Job %s: swipe %s ready", job_id, swipe_id)
    return output
