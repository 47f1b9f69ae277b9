import re

SWIPE_SUMMARIZER_SYSTEM = (
    "You create short swipe titles and high-signal summaries for ad/transcript libraries. Output ONLY JSON."
)

SWIPE_SUMMARIZER_PROMPT = """Return JSON with keys: title, summary.

URL: {{url}}

Transcript:
{{transcript}}"""

RESEARCH_SUMMARIZER_SYSTEM = "You summarize research notes into short, useful briefs. Output ONLY JSON."

RESEARCH_SUMMARIZER_PROMPT = """Return JSON with keys: title, summary, keywords (array of 3-6).

Title: {{title}}

Text:
{{text}}"""

DEFAULT_PROMPT_BLOCKS = {
    "swipe_summarizer_system": SWIPE_SUMMARIZER_SYSTEM,
    "swipe_summarizer_prompt": SWIPE_SUMMARIZER_PROMPT,
    "research_summarizer_system": RESEARCH_SUMMARIZER_SYSTEM,
    "research_summarizer_prompt": RESEARCH_SUMMARIZER_PROMPT,
}


def apply_template(template: str, values: dict[str, object]) -> str:
    out = template
    for key, value in values.items():
        pattern = re.compile(r"{{\s*" + re.escape(key) + r"\s*}}", re.IGNORECASE)
        safe = value if isinstance(value, str) else ("" if value is None else str(value))
        # lambda keeps backslashes in `safe` literal
        out = pattern.sub(lambda _m: safe, out)
    return out
