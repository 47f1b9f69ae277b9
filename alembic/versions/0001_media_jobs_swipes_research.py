"""media jobs queue, swipes, research files/items, prompt blocks

Revision ID: 0001_media_jobs
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "0001_media_jobs"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "media_jobs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("type", sa.String(64), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="queued"),
        sa.Column("input", JSONType, nullable=False),
        sa.Column("output", JSONType, nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("run_after", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("locked_by", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_media_jobs_status_run_after", "media_jobs", ["status", "run_after"])
    op.create_index("idx_media_jobs_type_status", "media_jobs", ["type", "status"])

    op.create_table(
        "swipes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("product_id", sa.String(36), nullable=False),
        sa.Column("source", sa.String(64), nullable=False, server_default="meta_ad_library"),
        sa.Column("source_url", sa.Text(), nullable=False),
        sa.Column("source_id", sa.Text(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="processing"),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("transcript", sa.Text(), nullable=True),
        sa.Column("r2_video_key", sa.Text(), nullable=True),
        sa.Column("r2_video_mime", sa.String(64), nullable=False, server_default="video/mp4"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("metadata", JSONType, nullable=False, server_default=sa.text("'{}'")),
        sa.Column("created_by", sa.String(36), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("product_id", "source", "source_url", name="idx_swipes_unique_source"),
    )
    op.create_index("idx_swipes_product_status", "swipes", ["product_id", "status"])

    op.create_table(
        "research_files",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("product_id", sa.String(36), nullable=False),
        sa.Column("filename", sa.Text(), nullable=False),
        sa.Column("mime", sa.String(255), nullable=True),
        sa.Column("size_bytes", sa.Integer(), nullable=True),
        sa.Column("r2_key", sa.Text(), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="uploaded"),
        *_timestamps(),
    )
    op.create_index("ix_research_files_product_id", "research_files", ["product_id"])

    op.create_table(
        "research_items",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("product_id", sa.String(36), nullable=False),
        sa.Column("category_id", sa.String(36), nullable=True),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("source_url", sa.Text(), nullable=True),
        sa.Column(
            "file_id",
            sa.String(36),
            sa.ForeignKey("research_files.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("status", sa.String(32), nullable=False, server_default="inbox"),
        sa.Column("metadata", JSONType, nullable=False, server_default=sa.text("'{}'")),
        sa.Column("created_by", sa.String(36), nullable=True),
        *_timestamps(),
    )
    op.create_index("research_items_status_idx", "research_items", ["product_id", "status"])

    op.create_table(
        "prompt_blocks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("type", sa.String(64), nullable=False),
        sa.Column("scope", sa.String(32), nullable=False, server_default="global"),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("metadata", JSONType, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("prompt_blocks")
    op.drop_index("research_items_status_idx", table_name="research_items")
    op.drop_table("research_items")
    op.drop_index("ix_research_files_product_id", table_name="research_files")
    op.drop_table("research_files")
    op.drop_index("idx_swipes_product_status", table_name="swipes")
    op.drop_table("swipes")
    op.drop_index("idx_media_jobs_type_status", table_name="media_jobs")
    op.drop_index("idx_media_jobs_status_run_after", table_name="media_jobs")
    op.drop_table("media_jobs")
