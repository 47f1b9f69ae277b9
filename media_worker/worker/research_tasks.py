from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import Any

from sqlalchemy.orm import Session

from media_worker.models.media_job import MediaJob
from media_worker.services.jobs import complete_job
from media_worker.services.prompt_blocks import load_global_prompt_blocks
from media_worker.services.research import mark_research_ready
from media_worker.services.summaries import summarize_research
from media_worker.services.text_extraction import ExtractionError, extract_text_from_file
from media_worker.worker.context import WorkerContext
from media_worker.worker.errors import require_fields

logger = logging.getLogger(__name__)

TMP_PREFIX = "media-research-"
MIN_TEXT_CHARS = 20


def _safe_filename(filename: str) -> str:
    # only the basename; the key may carry a path
    name = Path(filename).name if filename else ""
    return name or "upload"


def process_ingest_research_file(ctx: WorkerContext, db: Session, job: MediaJob) -> dict[str, Any]:
    fields = require_fields(job.input, ("research_item_id", "file_id", "product_id", "r2_key"))
    item_id, file_id, r2_key = fields["research_item_id"], fields["file_id"], fields["r2_key"]
    filename = str((job.input or {}).get("filename") or "").strip()
    mime = str((job.input or {}).get("mime") or "").strip()
    s = ctx.settings

    blocks = load_global_prompt_blocks(db)
    db.commit()

    with tempfile.TemporaryDirectory(prefix=TMP_PREFIX) as td:
        file_path = Path(td) / _safe_filename(filename)

        logger.info("Job %s: downloading research file %s", job.id, r2_key)
        ctx.object_store.download_file(r2_key, file_path)

        logger.info("Job %s: extracting text", job.id)
        text = extract_text_from_file(file_path, mime, filename)
        if not text or len(text.strip()) < MIN_TEXT_CHARS:
            raise ExtractionError("No extractable text found in file")

        logger.info("Job %s: summarizing research", job.id)
        summary = summarize_research(
            ctx.openai,
            model=s.openai_summarize_model,
            title=filename,
            text=text,
            blocks=blocks,
        )

    output = {
        "research_item_id": item_id,
        "file_id": file_id,
        "text_len": len(text),
        "title": summary.title,
    }

    job_id = job.id
    if not complete_job(db, job_id, ctx.worker_id, output, commit=False):
        db.rollback()
        logger.warning("Job %s: no longer held by %s; discarding result for research item %s", job_id, ctx.worker_id, item_id)
        return output

    mark_research_ready(
        db,
        item_id,
        file_id,
        title=summary.title,
        summary=summary.summary,
        content=text,
        keywords=summary.keywords,
        commit=False,
    )
    db.commit()

    logger.info("Job %s: research item %s in inbox", job_id, item_id)
    return output
