"""Small text and vector utilities shared by the chat pipeline."""

import math
import re

MAX_NORMALISED_CHARS = 8000
CHARS_PER_TOKEN = 4

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_text(text: str | None, max_chars: int = MAX_NORMALISED_CHARS) -> str:
    """Collapse whitespace runs, drop non-printable characters, strip and truncate.

    Args:
        text (str | None): Raw input text.
        max_chars (int): Maximum length of the result.

    Returns:
        str: The normalised text, possibly empty.
    """
    if not text:
        return ""
    collapsed = _WHITESPACE_RE.sub(" ", text)
    printable = "".join(ch for ch in collapsed if ch.isprintable())
    return printable.strip()[:max_chars]


def estimate_tokens(text: str | None) -> int:
    """Rough token count: one token per four characters, rounded up."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity of two vectors, clamped to [0, 1]. Mismatched or zero vectors give 0."""
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return max(0.0, min(1.0, dot / (norm_a * norm_b)))
