from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from openai import OpenAI
from sqlalchemy.orm import Session

from media_worker.core.config import Settings
from media_worker.db.session import SessionLocal
from media_worker.services.llm.openai_client import build_openai_client
from media_worker.services.object_store import ObjectStore


@dataclass
class WorkerContext:
    """Everything a pipeline needs, built once at process start and reused across jobs."""

    settings: Settings
    session_factory: Callable[[], Session]
    object_store: ObjectStore
    openai: OpenAI

    @property
    def worker_id(self) -> str:
        return self.settings.worker_id

    @classmethod
    def from_settings(cls, s: Settings) -> "WorkerContext":
        return cls(
            settings=s,
            session_factory=SessionLocal,
            object_store=ObjectStore.from_settings(s),
            openai=build_openai_client(s),
        )
