import tempfile
from datetime import timedelta
from pathlib import Path

import pytest

from media_worker.db.base import as_utc, utcnow
from media_worker.db.session import SessionLocal
from media_worker.models import MediaJob, PromptBlock, ResearchFile, ResearchItem, Swipe
from media_worker.services.meta_ad_scraper import ScrapeResult
from media_worker.services.swipes import retry_swipe
from media_worker.worker import meta_ad_tasks
from media_worker.worker.loop import run_once

from tests.fakes import FakeObjectStore, FakeOpenAI, add, fetch, make_context, make_due, queue_job, seed_research_job, seed_swipe_job

VIDEO_URL = "https://video.fbcdn.example/v/ad.mp4?tok=1"


@pytest.fixture
def temp_dirs(monkeypatch):
    """Record every TemporaryDirectory the pipelines open."""
    created = []
    real = tempfile.TemporaryDirectory

    def recording(*args, **kwargs):
        td = real(*args, **kwargs)
        created.append(Path(td.name))
        return td

    monkeypatch.setattr(tempfile, "TemporaryDirectory", recording)
    return created


@pytest.fixture
def fake_media(monkeypatch):
    calls = {"scrape": [], "download": [], "ffmpeg": []}

    def fake_scrape(url, *, nav_timeout_ms, settle_ms):
        calls["scrape"].append(url)
        return ScrapeResult(video_url=VIDEO_URL, meta={"page_title": "Ad Library"})

    def fake_download(url, dest, max_bytes, **kwargs):
        calls["download"].append((url, max_bytes))
        Path(dest).write_bytes(b"\x00\x00\x00\x18ftypmp42")
        return 12

    def fake_ffmpeg(video_path, out_path, *, ffmpeg_bin="ffmpeg"):
        calls["ffmpeg"].append(Path(video_path).name)
        Path(out_path).write_bytes(b"ID3")
        return out_path

    monkeypatch.setattr(meta_ad_tasks, "scrape_meta_ad_video", fake_scrape)
    monkeypatch.setattr(meta_ad_tasks, "download_to_file", fake_download)
    monkeypatch.setattr(meta_ad_tasks, "extract_audio_mp3", fake_ffmpeg)
    return calls


def test_meta_ad_job_end_to_end(fake_media, temp_dirs):
    job = seed_swipe_job()
    store = FakeObjectStore()
    openai = FakeOpenAI(
        transcript="Tired of slow mornings? Try our coffee.",
        completion='```json\n{"title": "Coffee hook", "summary": "Problem-agitate ad for coffee."}\n```',
    )

    assert run_once(make_context(object_store=store, openai=openai)) is not None

    done = fetch(MediaJob, job.id)
    assert done.status == "completed"
    assert done.attempts == 1
    assert done.locked_by is None and done.locked_at is None
    assert done.output == {
        "swipe_id": "s1",
        "r2_video_key": "products/p1/swipes/s1/source.mp4",
        "transcript_len": len("Tired of slow mornings? Try our coffee."),
        "title": "Coffee hook",
    }

    swipe = fetch(Swipe, "s1")
    assert swipe.status == "ready"
    assert swipe.transcript == "Tired of slow mornings? Try our coffee."
    assert swipe.title == "Coffee hook"
    assert swipe.summary == "Problem-agitate ad for coffee."
    assert swipe.r2_video_key == "products/p1/swipes/s1/source.mp4"
    assert swipe.meta["video_url"] == VIDEO_URL
    assert swipe.meta["page_title"] == "Ad Library"
    assert "error" not in swipe.meta

    data, content_type = store.uploads["products/p1/swipes/s1/source.mp4"]
    assert content_type == "video/mp4"
    assert data.startswith(b"\x00\x00\x00\x18ftyp")
    assert fake_media["download"] == [(VIDEO_URL, 250 * 1024 * 1024)]
    assert openai.transcribe_calls[0]["model"] == "whisper-1"
    assert "Tired of slow mornings" in openai.chat_calls[0]["messages"][1]["content"]

    assert len(temp_dirs) == 1
    assert not temp_dirs[0].exists()


def test_meta_ad_job_without_video_url_is_retried(monkeypatch, temp_dirs):
    monkeypatch.setattr(meta_ad_tasks, "scrape_meta_ad_video", lambda url, **kw: ScrapeResult(video_url=None))
    job = seed_swipe_job()
    before = utcnow()

    run_once(make_context())

    row = fetch(MediaJob, job.id)
    assert row.status == "queued"
    assert row.attempts == 1
    assert row.error_message == "Failed to locate MP4 URL from Meta page"
    delay = (as_utc(row.run_after) - before).total_seconds()
    assert 55 <= delay <= 65

    swipe = fetch(Swipe, "s1")
    assert swipe.status == "processing"
    assert swipe.meta["error"] == "Failed to locate MP4 URL from Meta page"

    assert len(temp_dirs) == 1
    assert not temp_dirs[0].exists()


def test_meta_ad_job_fails_permanently_after_three_attempts(monkeypatch):
    monkeypatch.setattr(meta_ad_tasks, "scrape_meta_ad_video", lambda url, **kw: ScrapeResult(video_url=None))
    job = seed_swipe_job()
    ctx = make_context()

    run_once(ctx)
    assert fetch(MediaJob, job.id).status == "queued"

    # not due yet: backoff holds it back
    assert run_once(ctx) is None

    make_due(job.id)
    run_once(ctx)
    row = fetch(MediaJob, job.id)
    assert row.status == "queued"
    assert row.attempts == 2

    make_due(job.id)
    run_once(ctx)
    row = fetch(MediaJob, job.id)
    assert row.status == "failed"
    assert row.attempts == 3

    swipe = fetch(Swipe, "s1")
    assert swipe.status == "failed"
    assert swipe.error_message == "Failed to locate MP4 URL from Meta page"


def test_meta_ad_job_cleans_temp_dir_when_upload_fails(fake_media, temp_dirs):
    class BrokenStore(FakeObjectStore):
        def upload_file(self, key, path, content_type):
            raise RuntimeError("bucket unreachable")

    job = seed_swipe_job()
    run_once(make_context(object_store=BrokenStore()))

    assert fetch(MediaJob, job.id).error_message == "bucket unreachable"
    assert fake_media["ffmpeg"] == []
    assert not temp_dirs[0].exists()


def test_meta_ad_job_with_missing_input_is_retried_like_any_failure():
    job = queue_job("ingest_meta_ad", {"swipe_id": "s1"})
    run_once(make_context())

    row = fetch(MediaJob, job.id)
    assert row.status == "queued"
    assert row.error_message == "Invalid job input (missing product_id/url)"


def test_meta_ad_job_keeps_raw_summary_when_model_returns_prose(fake_media):
    seed_swipe_job()
    openai = FakeOpenAI(transcript="words", completion="Great ad about shoes.")

    run_once(make_context(openai=openai))

    swipe = fetch(Swipe, "s1")
    assert swipe.status == "ready"
    assert swipe.title is None
    assert swipe.summary == "Great ad about shoes."


def test_meta_ad_job_uses_prompt_block_override(fake_media):
    add(PromptBlock(type="system", scope="global", content="Custom: {{ URL }} / {{transcript}}", meta={"key": "swipe_summarizer_prompt"}))
    seed_swipe_job(url="https://www.facebook.com/ads/library/?id=9")
    openai = FakeOpenAI(transcript="hello", completion='{"title": "t", "summary": "s"}')

    run_once(make_context(openai=openai))

    assert openai.chat_calls[0]["messages"][1]["content"] == "Custom: https://www.facebook.com/ads/library/?id=9 / hello"


def test_research_job_end_to_end(temp_dirs):
    text = "Customer interviews show onboarding friction in week one."
    job = seed_research_job()
    store = FakeObjectStore({"products/p1/research/notes.txt": text.encode()})
    openai = FakeOpenAI(completion='{"title": "Onboarding friction", "summary": "Week one hurts.", "keywords": ["onboarding", 3, "churn"]}')

    run_once(make_context(object_store=store, openai=openai))

    row = fetch(MediaJob, job.id)
    assert row.status == "completed"
    assert row.output == {"research_item_id": "ri1", "file_id": "f1", "text_len": len(text), "title": "Onboarding friction"}

    item = fetch(ResearchItem, "ri1")
    assert item.status == "inbox"
    assert item.content == text
    assert item.summary == "Week one hurts."
    assert item.meta["keywords"] == ["onboarding", "churn"]
    assert fetch(ResearchFile, "f1").status == "processed"
    assert not temp_dirs[0].exists()


def test_research_job_with_too_little_text_is_retried(temp_dirs):
    job = seed_research_job()
    store = FakeObjectStore({"products/p1/research/notes.txt": b"hello"})
    before = utcnow()

    run_once(make_context(object_store=store))

    row = fetch(MediaJob, job.id)
    assert row.status == "queued"
    assert row.error_message == "No extractable text found in file"
    delay = (as_utc(row.run_after) - before).total_seconds()
    assert 55 <= delay <= 65

    item = fetch(ResearchItem, "ri1")
    assert item.status == "processing"
    assert item.meta["error"] == "No extractable text found in file"
    assert fetch(ResearchFile, "f1").status == "uploaded"
    assert not temp_dirs[0].exists()


def test_research_job_falls_back_to_filename_title():
    seed_research_job(filename="q3-survey.txt", r2_key="products/p1/research/q3.txt")
    store = FakeObjectStore({"products/p1/research/q3.txt": b"Respondents want a cheaper annual plan option."})

    run_once(make_context(object_store=store, openai=FakeOpenAI(completion="not json at all")))

    item = fetch(ResearchItem, "ri1")
    assert item.status == "inbox"
    assert item.title == "q3-survey.txt"
    assert item.summary == "not json at all"
    assert item.meta["keywords"] == []


def test_result_is_discarded_when_job_was_retried_mid_run(fake_media, monkeypatch):
    job = seed_swipe_job()
    replacement = {}

    def slow_scrape(url, *, nav_timeout_ms, settle_ms):
        # an operator retries the swipe while this worker is still scraping
        with SessionLocal() as db:
            replacement["job"] = retry_swipe(db, "s1", now=utcnow() + timedelta(minutes=11)).job
        return ScrapeResult(video_url=VIDEO_URL, meta={})

    monkeypatch.setattr(meta_ad_tasks, "scrape_meta_ad_video", slow_scrape)
    openai = FakeOpenAI(transcript="late words", completion='{"title": "t", "summary": "s"}')

    run_once(make_context(openai=openai))

    old = fetch(MediaJob, job.id)
    assert old.status == "failed"
    assert old.error_message == "manual_retry"
    assert old.output is None
    assert fetch(MediaJob, replacement["job"].id).status == "queued"

    swipe = fetch(Swipe, "s1")
    assert swipe.status == "processing"
    assert swipe.transcript is None
