from __future__ import annotations

import json
import re
from typing import Any

from openai import OpenAI

from media_worker.core.config import Settings

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


def build_openai_client(s: Settings) -> OpenAI:
    api_key = (s.openai_api_key or "").strip()
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY is not set")
    return OpenAI(api_key=api_key, timeout=s.openai_timeout_sec, max_retries=s.openai_max_retries)


def strip_code_fence(text: str) -> str:
    """Models like to wrap JSON in ```json fences even when told not to."""
    text = (text or "").strip()
    m = _FENCE_RE.search(text)
    if m:
        return m.group(1).strip()
    return text


def parse_json_object(text: str) -> dict[str, Any]:
    payload = json.loads(text)
    if not isinstance(payload, dict):
        raise ValueError(f"Expected a JSON object, got {type(payload).__name__}")
    return payload


def complete_text(client: OpenAI, *, model: str, system: str, prompt: str, max_tokens: int = 350) -> str:
    chat = client.chat.completions.create(
        model=model,
        max_tokens=max_tokens,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ],
    )
    if not chat.choices:
        return ""
    return (chat.choices[0].message.content or "").strip()
