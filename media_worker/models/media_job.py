import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from media_worker.db.base import Base, JSONType, utcnow

JOB_TYPE_META_AD = "ingest_meta_ad"
JOB_TYPE_RESEARCH_FILE = "ingest_research_file"
SUPPORTED_JOB_TYPES = (JOB_TYPE_META_AD, JOB_TYPE_RESEARCH_FILE)

JOB_QUEUED = "queued"
JOB_RUNNING = "running"
JOB_COMPLETED = "completed"
JOB_FAILED = "failed"


class MediaJob(Base):
    __tablename__ = "media_jobs"
    __table_args__ = (
        Index("idx_media_jobs_status_run_after", "status", "run_after"),
        Index("idx_media_jobs_type_status", "type", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    type: Mapped[str] = mapped_column(String(64), nullable=False)  # ingest_meta_ad | ingest_research_file
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=JOB_QUEUED)  # queued|running|completed|failed

    input: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    output: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    run_after: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    locked_by: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
