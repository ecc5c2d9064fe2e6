"""
Output-shape contracts: one validator per task shape plus the static registry.
"""

import json
import re
from abc import ABC, abstractmethod
from typing import Optional, Union

from pydantic import BaseModel, Field, model_validator

from task_modes import TaskMode, parse_task_mode


class ValidationResult(BaseModel):
    is_valid: bool
    violations: list[str] = Field(default_factory=list)
    suggested_fix: Optional[str] = None

    @model_validator(mode="after")
    def _check_consistency(self):
        if self.is_valid == bool(self.violations):
            raise ValueError("is_valid must be True exactly when there are no violations")
        return self

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(is_valid=True, violations=[])

    @classmethod
    def from_violations(cls, violations: list[str], suggested_fix: Optional[str] = None) -> "ValidationResult":
        if not violations:
            return cls.ok()
        return cls(is_valid=False, violations=list(violations), suggested_fix=suggested_fix)


class OutputContract(ABC):
    """Validation and description capability bound to one output shape."""

    name = "contract"

    @abstractmethod
    def validate(self, content: str) -> ValidationResult:
        ...

    @abstractmethod
    def describe_contract(self) -> str:
        ...

    @abstractmethod
    def re_prompt_instruction(self) -> str:
        ...


# --------------- Code ---------------

FENCED_BLOCK_REGEX = re.compile(r"```([\w+#.-]+)?[ \t]*\n(.*?)```", re.DOTALL)
SINGLE_BLOCK_REGEX = re.compile(r"```([\w+#.-]+)?[ \t]*\n(.*)\n```", re.DOTALL)
FENCE_LINE_REGEX = re.compile(r"^[ \t]*```([\w+#.-]*)[ \t]*$", re.MULTILINE)
CODE_PROSE_MARKERS = ("Here is", "This code", "The following")


class CodeOutputValidator(OutputContract):
    """Exactly one fenced block, optionally tagged with the expected language."""

    name = "code"

    def __init__(self, language: Optional[str] = None):
        self.language = (language or "").strip() or None

    def validate(self, content: str) -> ValidationResult:
        text = (content or "").strip()
        violations: list[str] = []
        single = SINGLE_BLOCK_REGEX.fullmatch(text)
        if single and self._fences_nest(single.group(2)):
            blocks = [single]
        else:
            blocks = list(FENCED_BLOCK_REGEX.finditer(text))

        if len(blocks) > 1:
            violations.append("Multiple code blocks detected. Only one code block allowed.")

        if not blocks:
            if any(marker in text for marker in CODE_PROSE_MARKERS):
                violations.append("Prose detected before/after code block. Only code block allowed.")
            violations.append("No properly formatted code block found.")
            return ValidationResult.from_violations(
                violations, "Provide exactly one code block with proper formatting."
            )

        before = text[: blocks[0].start()].strip()
        after = text[blocks[-1].end():].strip()
        if before or after:
            violations.append("Prose detected before/after code block. Only code block allowed.")

        if len(blocks) == 1:
            found = blocks[0].group(1)
            if self.language and (found or "").lower() != self.language.lower():
                violations.append(f"Language mismatch. Expected: {self.language}, Found: {found or 'none'}")
            if not blocks[0].group(2).strip():
                violations.append("Code block is empty.")

        return ValidationResult.from_violations(violations, self._suggested_fix(violations))

    @staticmethod
    def _fences_nest(body: str) -> bool:
        """True when fence lines inside *body* pair up as nested blocks.

        A bare fence seen at depth 0 closes the outer block, so the text
        holds more than one block.
        """
        depth = 0
        for fence in FENCE_LINE_REGEX.finditer(body):
            if fence.group(1):
                depth += 1
            elif depth == 0:
                return False
            else:
                depth -= 1
        return True

    def _suggested_fix(self, violations: list[str]) -> str:
        if any(v.startswith("Language mismatch") for v in violations):
            return f"Use code block with language: ```{self.language}"
        if violations == ["Code block is empty."]:
            return "Provide actual code content in the code block."
        if any(v.startswith("Prose") for v in violations):
            return "Remove all prose and provide only the code block."
        return "Provide exactly one code block with proper formatting."

    def describe_contract(self) -> str:
        return (
            f"Output must be exactly one code block (```{self.language or '<language>'}) "
            "with no prose before or after."
        )

    def re_prompt_instruction(self) -> str:
        return "CRITICAL: Provide ONLY the code block with no introduction, explanation, or conclusion. No prose allowed."


# --------------- JSON ---------------

JSON_PROSE_MARKERS = ("Here is", "This JSON", "The following", "```")


def _reject_constant(value: str):
    raise ValueError(f"non-standard JSON constant: {value}")


class JsonOutputValidator(OutputContract):
    name = "json"

    def validate(self, content: str) -> ValidationResult:
        text = (content or "").strip()
        violations: list[str] = []

        if any(marker in text for marker in JSON_PROSE_MARKERS):
            violations.append("Prose or markdown detected. Only JSON allowed.")

        try:
            json.loads(text, parse_constant=_reject_constant)
        except (ValueError, RecursionError):
            violations.append("Invalid JSON format.")

        return ValidationResult.from_violations(
            violations, "Provide valid JSON without any additional text."
        )

    def describe_contract(self) -> str:
        return "Output must be valid JSON only, no prose or markdown."

    def re_prompt_instruction(self) -> str:
        return "CRITICAL: Provide ONLY valid JSON. No text, no markdown, no explanation."


# --------------- Text only ---------------

TEXT_META_PATTERNS = (
    re.compile(r"^(Here is|This is|Translation:|Summary:|Note:|Please note)", re.IGNORECASE),
    re.compile(r"(translation|summary|result|output):", re.IGNORECASE),
    re.compile(r"```"),
    re.compile(r"^\d+\."),
    re.compile(r"^[-*]\s+"),
)
MIN_TEXT_LENGTH = 10


class TextOnlyValidator(OutputContract):
    """Plain target text: translations, summaries, copy, and free writing."""

    name = "text_only"

    def validate(self, content: str) -> ValidationResult:
        text = (content or "").strip()
        violations: list[str] = []

        if any(p.search(text) for p in TEXT_META_PATTERNS):
            violations.append("Meta text or formatting detected. Only target text allowed.")
        if len(text) < MIN_TEXT_LENGTH:
            violations.append("Text too short. Provide complete translation/summary.")

        return ValidationResult.from_violations(
            violations,
            "Provide only the translated/summarized text without any introduction or formatting.",
        )

    def describe_contract(self) -> str:
        return "Output must be only the target text, no meta commentary or formatting."

    def re_prompt_instruction(self) -> str:
        return "CRITICAL: Provide ONLY the text itself. No introduction, no notes, no formatting."


# --------------- Structured content ---------------

TLDR_REGEX = re.compile(r"^#{1,3}\s*TL;DR\b", re.IGNORECASE | re.MULTILINE)
NUMBERED_STEP_REGEX = re.compile(r"^\d+\.", re.MULTILINE)
SECTION_HEADING_REGEX = re.compile(r"^#{2,3}\s+\S.*$", re.MULTILINE)
STRUCTURED_META_PATTERNS = (
    re.compile(r"\b(here is|this is|below is|following is)\b", re.IGNORECASE),
    re.compile(r"\b(analysis|plan|recipe):", re.IGNORECASE),
)
MIN_NUMBERED_STEPS = 3
MIN_HEADINGS = 2


class StructuredContentValidator(OutputContract):
    """TL;DR section, H2/H3 headings, and numbered steps (analysis, plan, recipe)."""

    name = "structured"

    def validate(self, content: str) -> ValidationResult:
        text = (content or "").strip()
        violations: list[str] = []

        if not TLDR_REGEX.search(text):
            violations.append("Missing TL;DR section.")
        if len(NUMBERED_STEP_REGEX.findall(text)) < MIN_NUMBERED_STEPS:
            violations.append(f"Missing numbered steps (minimum {MIN_NUMBERED_STEPS} required).")
        if len(SECTION_HEADING_REGEX.findall(text)) < MIN_HEADINGS:
            violations.append(f"Missing H2/H3 headings (minimum {MIN_HEADINGS} required).")
        if any(p.search(text) for p in STRUCTURED_META_PATTERNS):
            violations.append("Excessive meta text detected.")

        return ValidationResult.from_violations(
            violations,
            "Structure content with TL;DR section, H2/H3 headings, and numbered steps.",
        )

    def describe_contract(self) -> str:
        return "Output must have TL;DR section, H2/H3 headings, and numbered steps."

    def re_prompt_instruction(self) -> str:
        return "CRITICAL: Structure with TL;DR, H2/H3 headings, and numbered steps. No meta text."


# --------------- Table ---------------

TABLE_ROW_REGEX = re.compile(r"^\|.*\|$", re.MULTILINE)
TABLE_SEPARATOR_REGEX = re.compile(r"^\|(?:\s*:?-+:?\s*\|)+$", re.MULTILINE)
TABLE_META_MARKERS = ("Here is", "Table:", "This table")


class TableOutputValidator(OutputContract):
    name = "table"

    def validate(self, content: str) -> ValidationResult:
        text = (content or "").strip()
        violations: list[str] = []

        if not TABLE_ROW_REGEX.search(text) or not TABLE_SEPARATOR_REGEX.search(text):
            violations.append("Invalid table format. Must be markdown table with header and separator.")
        if any(marker in text for marker in TABLE_META_MARKERS):
            violations.append("Meta text detected. Only table allowed.")

        return ValidationResult.from_violations(
            violations,
            "Provide proper markdown table format with header row and separator, and nothing else.",
        )

    def describe_contract(self) -> str:
        return "Output must be valid markdown table format only."

    def re_prompt_instruction(self) -> str:
        return "CRITICAL: Provide ONLY the markdown table. No text, no introduction."


# --------------- Registry ---------------

VALIDATOR_REGISTRY: dict[TaskMode, type[OutputContract]] = {
    TaskMode.CODE: CodeOutputValidator,
    TaskMode.JSON: JsonOutputValidator,
    TaskMode.TRANSLATE: TextOnlyValidator,
    TaskMode.SUMMARIZE: TextOnlyValidator,
    TaskMode.ANALYSIS: StructuredContentValidator,
    TaskMode.PLAN: StructuredContentValidator,
    TaskMode.RECIPE: StructuredContentValidator,
    TaskMode.TABLE: TableOutputValidator,
    TaskMode.SUPPORT: TextOnlyValidator,
    TaskMode.MARKETING: TextOnlyValidator,
    TaskMode.WRITE: TextOnlyValidator,
}

FALLBACK_VALIDATOR = TextOnlyValidator


def select_validator(mode: Union[TaskMode, str, None], language: Optional[str] = None) -> OutputContract:
    """Return the contract for *mode*; unrecognized modes get the text-only contract."""
    task_mode = parse_task_mode(mode)
    validator_cls = VALIDATOR_REGISTRY.get(task_mode, FALLBACK_VALIDATOR)
    if validator_cls is CodeOutputValidator:
        return CodeOutputValidator(language)
    return validator_cls()
