from __future__ import annotations

from pathlib import Path

from openai import OpenAI


def transcribe_audio(client: OpenAI, audio_path: Path, *, model: str = "whisper-1") -> str:
    """
    Speech-to-text via the OpenAI transcription endpoint.
    A response without a string `text` counts as an empty transcript.
    """
    with open(audio_path, "rb") as f:
        res = client.audio.transcriptions.create(file=f, model=model)

    text = getattr(res, "text", None)
    return text if isinstance(text, str) else ""
