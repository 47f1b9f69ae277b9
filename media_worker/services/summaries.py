from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

from openai import OpenAI

from media_worker.services.llm.openai_client import complete_text, parse_json_object, strip_code_fence
from media_worker.services.llm.prompts import apply_template
from media_worker.services.prompt_blocks import get_prompt_block

logger = logging.getLogger(__name__)

TRANSCRIPT_MAX_CHARS = 12000
RESEARCH_TEXT_MAX_CHARS = 14000
TITLE_MAX_CHARS = 140
FALLBACK_SUMMARY_CHARS = 800
MAX_KEYWORDS = 8


@dataclass
class SwipeSummary:
    title: str | None
    summary: str | None


@dataclass
class ResearchSummary:
    title: str | None
    summary: str | None
    keywords: list[str] = field(default_factory=list)


def _title(value: object) -> str | None:
    return value[:TITLE_MAX_CHARS] if isinstance(value, str) else None


def parse_swipe_summary(raw: str) -> SwipeSummary:
    cleaned = strip_code_fence(raw)
    try:
        parsed = parse_json_object(cleaned)
    except (json.JSONDecodeError, ValueError):
        # Keep it usable even if the model didn't comply
        logger.warning("Swipe summary was not JSON; storing raw text")
        return SwipeSummary(title=None, summary=cleaned[:FALLBACK_SUMMARY_CHARS])

    summary = parsed.get("summary")
    return SwipeSummary(title=_title(parsed.get("title")), summary=summary if isinstance(summary, str) else None)


def parse_research_summary(raw: str, *, fallback_title: str | None = None) -> ResearchSummary:
    cleaned = strip_code_fence(raw)
    try:
        parsed = parse_json_object(cleaned)
    except (json.JSONDecodeError, ValueError):
        logger.warning("Research summary was not JSON; storing raw text")
        return ResearchSummary(title=fallback_title or None, summary=cleaned[:FALLBACK_SUMMARY_CHARS], keywords=[])

    summary = parsed.get("summary")
    keywords = parsed.get("keywords")
    if isinstance(keywords, list):
        keywords = [k for k in keywords if isinstance(k, str)][:MAX_KEYWORDS]
    else:
        keywords = []

    return ResearchSummary(
        title=_title(parsed.get("title")),
        summary=summary if isinstance(summary, str) else None,
        keywords=keywords,
    )


def summarize_swipe(
    client: OpenAI,
    *,
    model: str,
    url: str,
    transcript: str,
    blocks: dict[str, str],
) -> SwipeSummary:
    system = get_prompt_block(blocks, "swipe_summarizer_system")
    prompt = apply_template(
        get_prompt_block(blocks, "swipe_summarizer_prompt"),
        {"url": url, "transcript": transcript[:TRANSCRIPT_MAX_CHARS]},
    )
    raw = complete_text(client, model=model, system=system, prompt=prompt)
    return parse_swipe_summary(raw)


def summarize_research(
    client: OpenAI,
    *,
    model: str,
    title: str,
    text: str,
    blocks: dict[str, str],
) -> ResearchSummary:
    system = get_prompt_block(blocks, "research_summarizer_system")
    prompt = apply_template(
        get_prompt_block(blocks, "research_summarizer_prompt"),
        {"title": title, "text": text[:RESEARCH_TEXT_MAX_CHARS]},
    )
    raw = complete_text(client, model=model, system=system, prompt=prompt)
    return parse_research_summary(raw, fallback_title=title)
