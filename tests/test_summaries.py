import pytest

from media_worker.services.llm.openai_client import complete_text, parse_json_object, strip_code_fence
from media_worker.services.llm.prompts import apply_template
from media_worker.services.summaries import (
    parse_research_summary,
    parse_swipe_summary,
    summarize_research,
    summarize_swipe,
)

from tests.fakes import FakeOpenAI


def test_strip_code_fence_variants():
    assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fence('```\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fence('  {"a": 1}  ') == '{"a": 1}'


def test_parse_json_object_rejects_arrays():
    with pytest.raises(ValueError):
        parse_json_object("[1, 2]")


def test_apply_template_is_case_and_space_insensitive():
    out = apply_template("{{URL}} | {{ transcript }} | {{ missing }}", {"url": "u", "Transcript": "t"})
    assert out == "u | t | {{ missing }}"


def test_apply_template_keeps_backslashes_and_blanks_none():
    assert apply_template("{{x}}/{{y}}", {"x": r"C:\new\1", "y": None}) == r"C:\new\1/"


def test_parse_swipe_summary_json():
    s = parse_swipe_summary('{"title": "T", "summary": "S"}')
    assert (s.title, s.summary) == ("T", "S")


def test_parse_swipe_summary_truncates_title():
    s = parse_swipe_summary('{"title": "%s", "summary": 5}' % ("x" * 300))
    assert len(s.title) == 140
    assert s.summary is None


def test_parse_swipe_summary_falls_back_to_raw_text():
    s = parse_swipe_summary("y" * 2000)
    assert s.title is None
    assert s.summary == "y" * 800


def test_parse_research_summary_caps_keywords():
    raw = '{"title": "R", "summary": "S", "keywords": [%s]}' % ", ".join(f'"k{i}"' for i in range(12))
    r = parse_research_summary(raw)
    assert r.keywords == [f"k{i}" for i in range(8)]


def test_parse_research_summary_fallback_uses_filename():
    r = parse_research_summary("plain prose", fallback_title="notes.pdf")
    assert (r.title, r.summary, r.keywords) == ("notes.pdf", "plain prose", [])


def test_summarize_swipe_truncates_transcript_and_passes_limits():
    client = FakeOpenAI(completion='{"title": "t", "summary": "s"}')
    summary = summarize_swipe(client, model="m", url="https://fb/ad", transcript="a" * 20000, blocks={})

    call = client.chat_calls[0]
    assert call["model"] == "m"
    assert call["max_tokens"] == 350
    assert call["messages"][0]["role"] == "system"
    user_prompt = call["messages"][1]["content"]
    assert "https://fb/ad" in user_prompt
    assert "a" * 12000 in user_prompt and "a" * 12001 not in user_prompt
    assert summary.title == "t"


def test_summarize_research_uses_block_overrides():
    client = FakeOpenAI(completion='{"title": "t", "summary": "s", "keywords": ["x"]}')
    blocks = {"research_summarizer_system": "SYS", "research_summarizer_prompt": "{{title}}::{{text}}"}

    r = summarize_research(client, model="m", title="doc.txt", text="b" * 20000, blocks=blocks)

    messages = client.chat_calls[0]["messages"]
    assert messages[0]["content"] == "SYS"
    assert messages[1]["content"] == "doc.txt::" + "b" * 14000
    assert r.keywords == ["x"]


def test_complete_text_handles_empty_choices():
    client = FakeOpenAI()
    client.chat.completions.create = lambda **kw: type("R", (), {"choices": []})()
    assert complete_text(client, model="m", system="s", prompt="p") == ""
