"""Low-level text helpers and token budget estimation.

No dependency on schemas, services, or any other project module.
"""

import math
import re


TOKEN_ESTIMATION_FACTOR = 3.5  # chars per token
NUMBERED_LINE_REGEX = r"^\d+\.\s*.+"


def normalize_whitespace(text: str) -> str:
    return " ".join((text or "").split()).strip()


def split_sentences(text: str) -> list[str]:
    return [s for s in re.split(r"[.!?]+", text or "") if s.strip()]


def extract_numbered_items(text: str) -> list[str]:
    """Return the bodies of lines shaped like ``1. something``."""
    items = []
    for line in (text or "").split("\n"):
        line = line.strip()
        if not re.match(NUMBERED_LINE_REGEX, line):
            continue
        body = re.sub(r"^\d+\.\s*", "", line)
        if body:
            items.append(body)
    return items


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text or "") / TOKEN_ESTIMATION_FACTOR)


def compress_if_needed(text: str, max_tokens: int, preserve_context: bool = True) -> str:
    """Shrink *text* to fit *max_tokens*, keeping whole sentences when asked."""
    if estimate_tokens(text) <= max_tokens:
        return text

    max_length = math.floor(max_tokens * TOKEN_ESTIMATION_FACTOR * 0.9)
    if not preserve_context:
        return text[:max_length]

    compressed = ""
    for sentence in split_sentences(text):
        piece = sentence.strip() + ". "
        if len(compressed) + len(piece) > max_length:
            break
        compressed += piece
    return compressed.strip() or text[:max_length]


def calculate_available_tokens(prompt: str, max_total_tokens: int, completion_tokens: int) -> int:
    available = max_total_tokens - estimate_tokens(prompt) - completion_tokens
    return max(0, available)
