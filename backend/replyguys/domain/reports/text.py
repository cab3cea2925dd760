"""Text normalization used by ingestion and the evaluation pre-filter."""

from __future__ import annotations

import re

_MENTION_RE = re.compile(r"@[A-Za-z0-9_]{1,15}")
_URL_RE = re.compile(r"https?://\S+")
_WHITESPACE_RE = re.compile(r"\s+")


def strip_mentions_and_urls(text: str) -> str:
    """Remove @handles and links, collapse whitespace, trim."""
    cleaned = _MENTION_RE.sub("", text or "")
    cleaned = _URL_RE.sub("", cleaned)
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def meaningful_length(text: str) -> int:
    """Length of the text once mentions and URLs are discounted."""
    return len(strip_mentions_and_urls(text))


def is_meaningful(text: str, min_length: int) -> bool:
    if min_length <= 0:
        return True
    return meaningful_length(text) >= min_length
