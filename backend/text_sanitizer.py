"""Untrusted-text sanitization, injection flagging, and AI output cleanup.

No dependency on services, schemas, or the provider client.
"""

import re
from typing import Literal, Optional

from pydantic import BaseModel, Field


Language = Literal["english", "german", "french", "spanish"]

TEXT_DELIMITER = '"""'
USER_INPUT_START = "USER_INPUT_START"
USER_INPUT_END = "USER_INPUT_END"
REDACTION_MARKER = "[REDACTED]"

SQL_INJECTION_WARNING = "Potential SQL injection patterns detected"
COMMAND_INJECTION_WARNING = "Potential command injection patterns detected"
PROMPT_INJECTION_WARNING = "Potential prompt injection patterns detected"


class SanitizationResult(BaseModel):
    sanitized_text: str
    original_language: Language = "english"
    warnings: list[str] = Field(default_factory=list)


LANGUAGE_WORDS = {
    "german": (
        "der", "die", "das", "und", "für", "mit", "von", "zu", "den", "dem", "ein",
        "eine", "ist", "sind", "wird", "werden", "ich", "du", "er", "sie", "es",
    ),
    "french": (
        "le", "la", "les", "et", "pour", "avec", "de", "à", "dans", "sur", "est",
        "sont", "sera", "ce", "cette", "un", "une",
    ),
    "spanish": (
        "el", "la", "los", "las", "y", "para", "con", "de", "en", "sobre", "es",
        "son", "será", "este", "esta", "esto", "un", "una",
    ),
    "english": (
        "the", "and", "for", "with", "from", "to", "in", "on", "at", "by", "is",
        "are", "will", "would", "could", "should", "this", "that", "these", "those",
    ),
}

SQL_INJECTION_PATTERNS = (
    re.compile(
        r"\b(union|select|insert|update|delete|drop|create|alter|exec|execute|script|declare|cast|convert)\b"
        r".*\b(from|where|and|or|table|database)\b",
        re.IGNORECASE,
    ),
    re.compile(r"(--|/\*|\*/|xp_)", re.IGNORECASE),
    re.compile(r"\b(or|and)\b.*=.*\b(or|and)\b", re.IGNORECASE),
    re.compile(r"'.*or.*'.*=", re.IGNORECASE),
)

COMMAND_INJECTION_PATTERNS = (
    re.compile(
        r"\b(cat|echo|ls|dir|rm|del|mkdir|rmdir|chmod|chown|sudo|su|wget|curl|nc|netcat)\b",
        re.IGNORECASE,
    ),
    re.compile(r"[;&|`]"),
    re.compile(r"\$\("),
    re.compile(r"\|\|"),
    re.compile(r"&&"),
)

PROMPT_INJECTION_PATTERNS = (
    re.compile(r"ignore.*previous.*instructions", re.IGNORECASE),
    re.compile(r"forget.*everything.*before", re.IGNORECASE),
    re.compile(r"disregard.*all.*prior", re.IGNORECASE),
    re.compile(r"you.*are.*now", re.IGNORECASE),
    re.compile(r"from.*now.*on", re.IGNORECASE),
    re.compile(r"system.*prompt", re.IGNORECASE),
    re.compile(r"role.*play", re.IGNORECASE),
    re.compile(r"act.*as", re.IGNORECASE),
    re.compile(r"pretend.*to.*be", re.IGNORECASE),
)

# Only the unambiguous takeover phrases are rewritten; the rest are flagged.
REDACTABLE_INJECTION_PATTERNS = (
    re.compile(r"ignore.*previous.*instructions", re.IGNORECASE),
    re.compile(r"forget.*everything.*before", re.IGNORECASE),
    re.compile(r"disregard.*all.*prior", re.IGNORECASE),
    re.compile(r"you.*are.*now.*a", re.IGNORECASE),
    re.compile(r"from.*now.*on", re.IGNORECASE),
)

CONTROL_CHARS_REGEX = re.compile(r"[\x00-\x08\x0B-\x1F\x7F]")
ZERO_WIDTH_REGEX = re.compile("[\u200B-\u200D\uFEFF]")

META_PREFIX_PATTERNS = (
    re.compile(r"^(?:here is|here's|this is|below is|following is)\b[^\n:]*:\s*", re.IGNORECASE),
    re.compile(r"^output:\s*", re.IGNORECASE),
    re.compile(r"^result:\s*", re.IGNORECASE),
    re.compile(r"^translation:\s*", re.IGNORECASE),
    re.compile(r"^summary:\s*", re.IGNORECASE),
    re.compile(r"^analysis:\s*", re.IGNORECASE),
    re.compile(r"^plan:\s*", re.IGNORECASE),
    re.compile(r"^recipe:\s*", re.IGNORECASE),
)

META_SUFFIX_PATTERNS = (
    re.compile(r"let me know if you need[^\n]*$", re.IGNORECASE),
    re.compile(r"feel free to ask[^\n]*$", re.IGNORECASE),
    re.compile(r"i hope this helps[^\n]*$", re.IGNORECASE),
    re.compile(r"please note[^\n]*$", re.IGNORECASE),
    re.compile(r"important:[^\n]*$", re.IGNORECASE),
)

FACTS_DISCIPLINE = (
    "CRITICAL FACTS DISCIPLINE: Use ONLY facts from the user context provided. "
    "Do NOT change numbers, locations, legal choices, or invent any information. "
    "Stick strictly to the provided facts."
)


def detect_language(text: str) -> Language:
    tokens = set(re.findall(r"[^\W\d_]+", (text or "").lower()))
    scores = {
        lang: sum(1 for w in words if w in tokens)
        for lang, words in LANGUAGE_WORDS.items()
    }
    for lang in ("german", "french", "spanish"):
        others = [score for other, score in scores.items() if other != lang]
        if scores[lang] >= 2 and scores[lang] > max(others):
            return lang
    return "english"


def contains_sql_injection(text: str) -> bool:
    return any(p.search(text) for p in SQL_INJECTION_PATTERNS)


def contains_command_injection(text: str) -> bool:
    return any(p.search(text) for p in COMMAND_INJECTION_PATTERNS)


def contains_prompt_injection(text: str) -> bool:
    return any(p.search(text) for p in PROMPT_INJECTION_PATTERNS)


def redact_prompt_injection(text: str) -> str:
    cleaned = text
    for pattern in REDACTABLE_INJECTION_PATTERNS:
        cleaned = pattern.sub(REDACTION_MARKER, cleaned)
    return cleaned


def escape_backticks(text: str) -> str:
    return text.replace("`", "\\`")


def unescape_backticks(text: str) -> str:
    return text.replace("\\`", "`")


def sanitize_user_text(text: str) -> SanitizationResult:
    """Clean untrusted user text and wrap it in the prompt delimiter.

    Injection-shaped fragments are only flagged, except prompt-injection
    phrasing, which is also replaced with ``[REDACTED]``.
    """
    raw = text or ""
    warnings: list[str] = []
    language = detect_language(raw)

    sanitized = escape_backticks(raw)
    sanitized = CONTROL_CHARS_REGEX.sub("", sanitized)
    sanitized = ZERO_WIDTH_REGEX.sub("", sanitized)

    if contains_sql_injection(sanitized):
        warnings.append(SQL_INJECTION_WARNING)
    if contains_command_injection(sanitized):
        warnings.append(COMMAND_INJECTION_WARNING)
    if contains_prompt_injection(sanitized):
        warnings.append(PROMPT_INJECTION_WARNING)
        sanitized = redact_prompt_injection(sanitized)

    return SanitizationResult(
        sanitized_text=f"{TEXT_DELIMITER}{sanitized}{TEXT_DELIMITER}",
        original_language=language,
        warnings=warnings,
    )


def create_protected_user_text(text: str) -> str:
    sanitized = sanitize_user_text(text)
    return f"{USER_INPUT_START}\n{sanitized.sanitized_text}\n{USER_INPUT_END}"


_PROTECTED_REGEX = re.compile(
    rf"{USER_INPUT_START}\n{TEXT_DELIMITER}(.*?){TEXT_DELIMITER}\n{USER_INPUT_END}",
    re.DOTALL,
)


def extract_protected_user_text(protected_text: str) -> str:
    """Return the user span of a protected block, or the input when it is not one."""
    match = _PROTECTED_REGEX.search(protected_text or "")
    if not match:
        return protected_text
    return unescape_backticks(match.group(1))


def create_facts_discipline_context(protected_context: Optional[str] = None) -> str:
    """*protected_context* is the delimited output of ``sanitize_user_text``."""
    if protected_context:
        return f"{FACTS_DISCIPLINE}\n\nUser Context:\n{protected_context}"
    return FACTS_DISCIPLINE


def sanitize_ai_output(content: str, mode: Optional[str] = None) -> str:
    """Strip leading and trailing boilerplate from a completion.

    Each pattern is tried once, in order, whatever the mode.
    """
    cleaned = (content or "").strip()
    for pattern in META_PREFIX_PATTERNS:
        cleaned = pattern.sub("", cleaned, count=1)
    for pattern in META_SUFFIX_PATTERNS:
        cleaned = pattern.sub("", cleaned, count=1)
    return cleaned.strip()
