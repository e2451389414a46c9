"""Best-effort cleanup of model output before it is posted.

Nothing in here raises on malformed input; the worst case is an empty
string, which callers treat as "skip this unit of work".
"""

from __future__ import annotations

import json
import re

MAX_POST_LENGTH = 280

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")
_QUOTES = "\"'“”‘’"


def _strip_quotes(text: str) -> str:
    while len(text) >= 2 and text[0] in _QUOTES and text[-1] in _QUOTES:
        text = text[1:-1].strip()
    return text


def clean_generated_text(raw: str | None) -> str:
    """Unwrap JSON/fences/quotes and fix escaped newlines."""
    if not raw:
        return ""
    text = _FENCE_RE.sub("", raw.strip()).strip()

    if text.startswith("{") or text.startswith('"'):
        try:
            parsed = json.loads(text)
            if isinstance(parsed, dict):
                text = str(parsed.get("text") or parsed.get("content") or "")
            elif isinstance(parsed, str):
                text = parsed
        except (ValueError, TypeError):
            pass

    text = text.replace("\\n", "\n").replace('\\"', '"').replace("\\'", "'")
    text = _strip_quotes(text.strip())
    return text.strip()


def truncate_to_complete_sentence(text: str, max_length: int = MAX_POST_LENGTH) -> str:
    if len(text) <= max_length:
        return text

    cut = text.rfind(".", 0, max_length)
    if cut > 0 and text[: cut + 1].strip():
        return text[: cut + 1].strip()

    cut = text.rfind(" ", 0, max_length - 3)
    if cut > 0 and text[:cut].strip():
        return text[:cut].strip() + "..."

    return text[: max_length - 3].strip() + "..."


def _split_long(paragraph: str, max_length: int) -> list[str]:
    sentences = re.split(r"(?<=[.!?])\s+", paragraph)
    parts: list[str] = []
    current = ""
    for sentence in sentences:
        if len(sentence) > max_length:
            # Fall back to words for a single oversized sentence
            for word in sentence.split():
                candidate = f"{current} {word}".strip()
                if len(candidate) <= max_length:
                    current = candidate
                else:
                    if current:
                        parts.append(current)
                    # Chunk a token longer than a whole post
                    while len(word) > max_length:
                        parts.append(word[:max_length])
                        word = word[max_length:]
                    current = word
            continue
        candidate = f"{current} {sentence}".strip()
        if len(candidate) <= max_length:
            current = candidate
        else:
            if current:
                parts.append(current)
            current = sentence
    if current:
        parts.append(current)
    return parts


def split_post_content(text: str, max_length: int = MAX_POST_LENGTH) -> list[str]:
    """Split text into chained-post chunks, each at most ``max_length`` chars.

    Paragraphs stay together when they fit; otherwise they are split by
    sentence, then by word.
    """
    text = text.strip()
    if not text:
        return []
    if len(text) <= max_length:
        return [text]

    chunks: list[str] = []
    current = ""
    for paragraph in (p.strip() for p in text.split("\n\n")):
        if not paragraph:
            continue
        candidate = f"{current}\n\n{paragraph}" if current else paragraph
        if len(candidate) <= max_length:
            current = candidate
            continue
        if current:
            chunks.append(current)
            current = ""
        if len(paragraph) <= max_length:
            current = paragraph
        else:
            pieces = _split_long(paragraph, max_length)
            chunks.extend(pieces[:-1])
            current = pieces[-1] if pieces else ""
    if current:
        chunks.append(current)
    return chunks
