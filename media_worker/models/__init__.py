from media_worker.models.media_job import MediaJob
from media_worker.models.prompt_block import PromptBlock
from media_worker.models.research import ResearchFile, ResearchItem
from media_worker.models.swipe import Swipe

__all__ = ["MediaJob", "PromptBlock", "ResearchFile", "ResearchItem", "Swipe"]
