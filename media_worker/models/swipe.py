import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from media_worker.db.base import Base, JSONType, utcnow

SWIPE_PROCESSING = "processing"
SWIPE_READY = "ready"
SWIPE_FAILED = "failed"


class Swipe(Base):
    __tablename__ = "swipes"
    __table_args__ = (
        UniqueConstraint("product_id", "source", "source_url", name="idx_swipes_unique_source"),
        Index("idx_swipes_product_status", "product_id", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    product_id: Mapped[str] = mapped_column(String(36), nullable=False)

    # source
    source: Mapped[str] = mapped_column(String(64), nullable=False, default="meta_ad_library")
    source_url: Mapped[str] = mapped_column(Text, nullable=False)
    source_id: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default=SWIPE_PROCESSING)  # processing|ready|failed

    # ingestion outputs
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    transcript: Mapped[str | None] = mapped_column(Text, nullable=True)
    r2_video_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    r2_video_mime: Mapped[str] = mapped_column(String(64), nullable=False, default="video/mp4")
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # `metadata` is reserved on declarative classes
    meta: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, nullable=False, default=dict)

    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
