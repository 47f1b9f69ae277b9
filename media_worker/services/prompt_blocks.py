from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from media_worker.models.prompt_block import PromptBlock
from media_worker.services.llm.prompts import DEFAULT_PROMPT_BLOCKS


def load_global_prompt_blocks(db: Session) -> dict[str, str]:
    """Active global overrides keyed by metadata.key (or type when no key)."""
    rows = db.execute(
        select(PromptBlock).where(PromptBlock.is_active.is_(True), PromptBlock.scope == "global")
    ).scalars()

    blocks: dict[str, str] = {}
    for row in rows:
        meta = row.meta if isinstance(row.meta, dict) else {}
        key = meta.get("key") or row.type
        if key:
            blocks[key] = row.content
    return blocks


def get_prompt_block(blocks: dict[str, str], key: str) -> str:
    if key in blocks:
        return blocks[key]
    return DEFAULT_PROMPT_BLOCKS.get(key, "")
