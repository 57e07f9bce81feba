"""Prompt text for bookmark analysis."""
import json
from typing import Any

SYSTEM_PROMPT = "You are a helpful AI assistant specializing in content analysis."

# Long page excerpts are cut to keep every stage well inside small context windows
MAX_SOURCE_TEXT_CHARS = 8000

OUTPUT_SCHEMA = """{
  "title": "concise title of the page",
  "category": "broad category, e.g. Technology, Science, Hobby, Work",
  "group": "subcategory within the category, e.g. AI, Programming, Hardware",
  "status": "reading status, e.g. To read",
  "contentValue": "high | medium | low",
  "tags": ["tag1", "tag2", "tag3"],
  "summary": "one or two sentence summary",
  "keyPoints": ["point 1", "point 2", "point 3"],
  "suggestedFolder": "folder to file this bookmark under",
  "sentiment": "positive | negative | neutral",
  "confidence": 0.85
}"""


def serialize_input(
    url: str,
    title: str | None,
    source_text: str | None,
    source: str,
    tags: list[str],
) -> str:
    """Render the bookmark as the JSON block embedded in every prompt."""
    data: dict[str, Any] = {"url": url, "source": source}
    if title:
        data["title"] = title
    if source_text:
        data["sourceText"] = source_text[:MAX_SOURCE_TEXT_CHARS]
    if tags:
        data["tags"] = tags
    return json.dumps(data, indent=2, ensure_ascii=False)


def _messages(user_prompt: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]


def single_pass_messages(bookmark_json: str) -> list[dict[str, str]]:
    """Messages for the one-call analysis that goes straight to structured output."""
    return _messages(f"""Analyze the bookmark below and produce:
1. A title (keep the given one if it is good)
2. A category and a group (subcategory)
3. A reading status
4. 5-8 tags describing the content
5. A short summary (1-2 sentences) and the key points
6. A suggested folder, the sentiment, the value of the content and your confidence (0.0-1.0)

Bookmark:
{bookmark_json}

Return ONLY a JSON object in this format:
{OUTPUT_SCHEMA}""")


def ideation_messages(bookmark_json: str) -> list[dict[str, str]]:
    """Stage 1 of the reflective chain: free-form reasoning, no output format."""
    return _messages(f"""Think out loud about the bookmark below. Consider what the page is
most likely about, who it is for, which category and subcategory fit it best, which
tags would help find it again, and where a reader would file it.

Bookmark:
{bookmark_json}

Write your reasoning as plain prose. Do not produce JSON yet.""")


def critique_messages(bookmark_json: str, ideation: str) -> list[dict[str, str]]:
    """Stage 2: review the stage 1 reasoning for gaps and inconsistencies."""
    return _messages(f"""Below is a bookmark and an earlier analysis of it.

Bookmark:
{bookmark_json}

Earlier analysis:
\"\"\"
{ideation}
\"\"\"

Critically review the earlier analysis. Point out gaps, inconsistencies, unsupported
assumptions and missed aspects, and say how the categorization and tags should change.
Write plain prose. Do not produce JSON yet.""")


def synthesis_messages(bookmark_json: str, ideation: str, critique: str) -> list[dict[str, str]]:
    """Stage 3: fold the reasoning and its critique into the final structured result."""
    return _messages(f"""Produce the final analysis of the bookmark below, taking both the
initial analysis and its critique into account.

Bookmark:
{bookmark_json}

Initial analysis:
\"\"\"
{ideation}
\"\"\"

Critique:
\"\"\"
{critique}
\"\"\"

Return ONLY a JSON object in this format:
{OUTPUT_SCHEMA}""")
