"""
Prompt builders for draft, longform and news batch generation.

All prompts ask for JSON only. References are listed with their URLs so the
model can cite them in ``sourceCitation``; synthetic placeholder rows are
never offered as citable sources.
"""

from typing import Optional

from ..state import GenerationMode, GenerationRequest, Issue, ReferenceArticle

_DRAFT_SCHEMA = """{
    "title": "Headline",
    "content": "Full article body",
    "sections": {
        "core": "Core facts",
        "deepDive": "Background and analysis",
        "conclusion": "Closing perspective"
    },
    "mediaSlots": [
        {"id": "m1", "type": "image", "anchorLabel": "core", "position": "after", "caption": "..."}
    ],
    "sourceCitation": {"title": "Reference title", "url": "Reference URL", "source": "Publisher"}
}"""

_NEWS_SCHEMA = """{
    "items": [
        {
            "title": "Headline",
            "summary": "One or two sentence summary",
            "content": "Article body (3-4 short paragraphs)",
            "source": "Publisher of the cited reference",
            "emotion": "immersion | clarity | serenity | vibrance | gravity | spectrum",
            "imagePrompt": "One English keyword for image search",
            "sourceCitation": {"title": "Reference title", "url": "Reference URL", "source": "Publisher"}
        }
    ]
}"""


def format_references(references: list[ReferenceArticle]) -> str:
    """Numbered reference block; synthetic rows are listed as non-citable context."""
    if not references:
        return "(no references available)"
    lines = []
    for index, ref in enumerate(references, start=1):
        if ref.synthetic:
            lines.append(f"[{index}] (context only, NOT citable) {ref.title}")
            continue
        lines.append(f"[{index}] {ref.title}")
        if ref.source:
            lines.append(f"    Source: {ref.source}")
        if ref.url:
            lines.append(f"    URL: {ref.url}")
        if ref.summary:
            lines.append(f"    Summary: {ref.summary}")
    return "\n".join(lines)


def _mode_rules(request: GenerationRequest) -> str:
    c = request.constraints
    if request.mode is GenerationMode.LONGFORM:
        return f"""MODE: interactive long-form
- Write at least {c.min_sentences} sentences across core, deepDive and conclusion
- "content" joins the three sections in order
- Provide {c.media_slots_min}-{c.media_slots_max} mediaSlots anchored to sections"""
    limit = c.content_max_chars or 1200
    return f"""MODE: quick draft
- Keep "content" around 500 characters and never above {limit} characters
- Provide {c.media_slots_min}-{c.media_slots_max} mediaSlots anchored to sections"""


def build_draft_prompt(request: GenerationRequest) -> str:
    """Prompt for a draft or interactive longform article."""
    c = request.constraints
    return f"""You are a newsroom writing assistant. Write an original article draft.

TOPIC: {request.topic_seed}

REFERENCES:
{format_references(request.reference_set)}

{_mode_rules(request)}

REQUIREMENTS:
1. Title of at most {c.title_max_chars} characters
2. Neutral, factual tone; every claim must be supported by the references
3. Do NOT copy reference wording: rephrase titles, sentences and paragraph structure
4. sections.core, sections.deepDive and sections.conclusion must all be non-empty
5. sourceCitation must use the exact URL of one of the numbered references above
6. No personal data, no guaranteed outcomes, no unattributed quotes

Return ONLY JSON in this format:
{_DRAFT_SCHEMA}
"""


def build_news_prompt(request: GenerationRequest, count: int) -> str:
    """Prompt for a batch of short news items under one emotion category."""
    c = request.constraints
    emotion = request.emotion_category.value if request.emotion_category else "spectrum"
    return f"""Role: Veteran news journalist.
Task: Write {count} short, original news items for the "{emotion}" emotion category.

KEYWORDS: {request.topic_seed}

REFERENCES:
{format_references(request.reference_set)}

REQUIREMENTS:
1. Each item is based on exactly one numbered reference and cites its exact URL in sourceCitation
2. Titles of at most {c.title_max_chars} characters, written in your own words
3. Content of at most {c.content_max_chars or 2000} characters; professional and objective
4. Do NOT copy reference wording or sentence structure
5. Title, summary and content must all be non-empty

Return ONLY JSON in this format:
{_NEWS_SCHEMA}
"""


def amend_for_similarity(prompt: str, issues: list[Issue]) -> str:
    """Append an explicit rephrase instruction after a similarity block."""
    details = "\n".join(f"- {issue.message}" for issue in issues) or "- Output was too close to a reference"
    return f"""{prompt}

PREVIOUS ATTEMPT WAS REJECTED FOR COPYING REFERENCE TEXT:
{details}

Rewrite with a new title, new sentence structure and new paragraph order.
Preserve every fact and keep the same citation. Do not reuse any phrase of
more than a few words from the references.
"""


def build_repair_prompt(raw_text: str, mode: GenerationMode, limit: Optional[int] = 6000) -> str:
    """Ask a model to re-emit malformed output as strict JSON for the target schema."""
    schema = _NEWS_SCHEMA if mode is GenerationMode.NEWS else _DRAFT_SCHEMA
    body = raw_text if limit is None else raw_text[:limit]
    return f"""The following output was supposed to be JSON but could not be parsed.
Convert it into strict JSON matching the schema below. Keep the wording and
facts unchanged; do not add information. Return ONLY the JSON.

SCHEMA:
{schema}

OUTPUT TO REPAIR:
{body}
"""
