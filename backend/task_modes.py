"""
Task modes and legacy enhancement modes.
"""

from enum import Enum
from typing import Optional, Union


class TaskMode(str, Enum):
    CODE = "code"
    JSON = "json"
    TRANSLATE = "translate"
    SUMMARIZE = "summarize"
    ANALYSIS = "analysis"
    PLAN = "plan"
    RECIPE = "recipe"
    SUPPORT = "support"
    MARKETING = "marketing"
    WRITE = "write"
    TABLE = "table"


class LegacyMode(str, Enum):
    STANDARD = "standard"
    CREATIVE = "creative"
    TECHNICAL = "technical"
    SCIENTIFICALLY = "scientifically"


# Modes whose prompts are treated as technical for timeout and retry tuning.
TECHNICAL_MODES = (
    TaskMode.ANALYSIS,
    TaskMode.SUMMARIZE,
    TaskMode.CODE,
    TaskMode.JSON,
)


def parse_task_mode(value: Union[str, TaskMode, None]) -> Optional[TaskMode]:
    """Return the TaskMode for *value*, or None when it is not a task mode."""
    if value is None:
        return None
    if isinstance(value, TaskMode):
        return value
    try:
        return TaskMode(str(value).strip().lower())
    except ValueError:
        return None


def is_legacy_mode(value: Union[str, Enum, None]) -> bool:
    raw = value.value if isinstance(value, Enum) else value
    return (raw or "").strip().lower() in {m.value for m in LegacyMode}


def all_task_modes() -> list[str]:
    return [mode.value for mode in TaskMode]
