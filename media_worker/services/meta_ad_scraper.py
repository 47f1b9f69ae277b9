"""
Locate the MP4 behind a Meta Ad Library (or Facebook post/reel) page.

The page is rendered in headless Chromium. Every network response that
looks like video is recorded with its declared size; the largest one wins.
If nothing was observed, the rendered HTML is scanned for an .mp4 URL.
This is a heuristic against a page we don't control; a miss is normal.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Response, sync_playwright

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)

_MP4_PATH_RE = re.compile(r"\.mp4(\?|$)", re.IGNORECASE)
_MP4_IN_HTML_RE = re.compile(r"https?://[^\"'\s>]+\.mp4[^\"'\s>]*", re.IGNORECASE)

MAX_CANDIDATES = 200


@dataclass
class VideoCandidate:
    url: str
    content_length: int = 0


@dataclass
class ScrapeResult:
    video_url: str | None
    meta: dict[str, Any] = field(default_factory=dict)


def looks_like_video(url: str, content_type: str) -> bool:
    return (content_type or "").lower().startswith("video/") or bool(_MP4_PATH_RE.search(url or ""))


class VideoResponseCollector:
    """
    Receives response events during the browser session.
    Playwright's sync API delivers events on the calling thread, so no locking.
    """

    def __init__(self, limit: int = MAX_CANDIDATES) -> None:
        self.limit = limit
        self.candidates: list[VideoCandidate] = []
        self.observed = 0

    def add(self, url: str, headers: dict[str, str]) -> None:
        content_type = headers.get("content-type", "")
        if not looks_like_video(url, content_type):
            return
        raw_len = headers.get("content-length", "0")
        length = int(raw_len) if raw_len.isdigit() else 0
        self.observed += 1
        candidate = VideoCandidate(url=url, content_length=length)

        if len(self.candidates) < self.limit:
            self.candidates.append(candidate)
            return
        # full: the full-length file often arrives after many range fetches,
        # so evict the smallest entry rather than dropping the newcomer
        smallest = min(range(len(self.candidates)), key=lambda i: self.candidates[i].content_length)
        if candidate.content_length > self.candidates[smallest].content_length:
            del self.candidates[smallest]
            self.candidates.append(candidate)

    def on_response(self, response: Response) -> None:
        try:
            self.add(response.url, response.headers)
        except PlaywrightError:
            # response detached before headers were readable
            pass

    def best(self) -> VideoCandidate | None:
        return pick_best_candidate(self.candidates)


def pick_best_candidate(candidates: list[VideoCandidate]) -> VideoCandidate | None:
    with_url = [c for c in candidates if c.url]
    if not with_url:
        return None
    # stable: first seen wins among equal sizes
    return max(with_url, key=lambda c: c.content_length or 0)


def find_mp4_in_html(html: str) -> str | None:
    m = _MP4_IN_HTML_RE.search(html or "")
    return m.group(0) if m else None


def scrape_meta_ad_video(url: str, *, nav_timeout_ms: int = 60_000, settle_ms: int = 6_000) -> ScrapeResult:
    collector = VideoResponseCollector()

    with sync_playwright() as pw:
        browser = pw.chromium.launch(headless=True, args=["--no-sandbox", "--disable-dev-shm-usage"])
        try:
            page = browser.new_page(
                user_agent=USER_AGENT,
                viewport={"width": 1360, "height": 768},
                locale="en-US",
            )
            page.on("response", collector.on_response)

            page.goto(url, wait_until="domcontentloaded", timeout=nav_timeout_ms)

            # Poke the player so lazy video requests fire
            page.wait_for_timeout(2_000)
            video = page.locator("video").first
            if video.count() > 0:
                try:
                    video.click(timeout=2_000)
                except PlaywrightError:
                    pass
            page.mouse.wheel(0, 900)
            page.wait_for_timeout(settle_ms)

            best = collector.best()
            video_url = best.url if best else None
            if not video_url:
                video_url = find_mp4_in_html(page.content())
                if video_url:
                    logger.info("Using MP4 URL found in page HTML")

            try:
                title = page.title()
            except PlaywrightError:
                title = None

            logger.info("Observed %s video responses on %s", collector.observed, url)
            return ScrapeResult(video_url=video_url, meta={"page_title": title})
        finally:
            browser.close()
