"""Pull the question out of a post."""

from __future__ import annotations

import re

from tmagent.models import CandidatePost

_MENTION_RE = re.compile(r"(?<!\w)@\w+")
_URL_RE = re.compile(r"https?://\S+")
_WS_RE = re.compile(r"\s+")

MIN_QUESTION_CHARS = 8


def strip_post_text(text: str) -> str:
    text = _URL_RE.sub(" ", text or "")
    text = _MENTION_RE.sub(" ", text)
    return _WS_RE.sub(" ", text).strip()


def extract_question(post: CandidatePost, thread: list[CandidatePost], lookback: int = 3) -> str:
    """The post text without mentions/links.

    If that leaves too little to work with (a bare "@agent ?" ping), fall back
    to the last few earlier posts of the thread.
    """
    question = strip_post_text(post.text)
    if len(question) >= MIN_QUESTION_CHARS:
        return question

    earlier = [p for p in thread if p.id != post.id][-lookback:]
    fallback = " ".join(strip_post_text(p.text) for p in earlier).strip()
    return fallback or question
