"""Task-mode classification, role personas, and per-mode contract rules.

Depends only on task_modes (no validator/enforcer/service dependencies).
"""

from typing import Dict, List, Union

from task_modes import TaskMode, parse_task_mode


# Checked in this order; the first mode with a matching keyword wins.
INTENT_KEYWORDS = (
    (TaskMode.CODE, ("code", "programming", "function", "class", "algorithm", "script", "compile", "debug")),
    (TaskMode.JSON, ("json", "api", "data structure", "object", "array")),
    (TaskMode.TRANSLATE, (
        "translate", "translation", "übersetz", "traduc", "traduire",
        "english", "german", "french", "spanish", "chinese", "japanese",
    )),
    (TaskMode.SUMMARIZE, ("summarize", "summary", "tl;dr", "abstract", "overview", "condense")),
    (TaskMode.ANALYSIS, ("analyze", "analysis", "evaluate", "assess", "examine", "review")),
    (TaskMode.PLAN, ("plan", "strategy", "approach", "method", "steps", "procedure")),
    (TaskMode.RECIPE, ("recipe", "how to", "instructions", "guide", "tutorial", "steps")),
    (TaskMode.TABLE, ("table", "list", "compare", "comparison", "columns", "rows")),
    (TaskMode.SUPPORT, ("help", "support", "assist", "problem", "issue", "error", "fix")),
    (TaskMode.MARKETING, ("marketing", "advertising", "promotion", "campaign", "sales", "copy")),
)

# Matched against the raw prompt, case preserved.
CODE_MARKERS = ("```", "def ", "function ", "class ")

DEFAULT_MODE = TaskMode.WRITE


def classify(prompt: str, explicit_mode: Union[TaskMode, str, None] = None) -> TaskMode:
    """Resolve *prompt* to a TaskMode; a valid *explicit_mode* always wins."""
    chosen = parse_task_mode(explicit_mode)
    if chosen is not None:
        return chosen

    raw = prompt or ""
    lowered = raw.lower()
    for mode, keywords in INTENT_KEYWORDS:
        if any(k in lowered for k in keywords):
            return mode
        if mode is TaskMode.CODE and any(m in raw for m in CODE_MARKERS):
            return mode
    return DEFAULT_MODE


ROLE_TEMPLATES: Dict[TaskMode, str] = {
    TaskMode.CODE: (
        "Senior Software Engineer with 10+ years experience in multiple programming languages. "
        "Expert in clean code, best practices, and performance optimization."
    ),
    TaskMode.JSON: (
        "Data Engineer specializing in JSON APIs and data structures. "
        "Expert in schema design and data validation."
    ),
    TaskMode.TRANSLATE: (
        "Professional translator fluent in multiple languages. "
        "Expert in cultural context and accurate translation."
    ),
    TaskMode.SUMMARIZE: (
        "Professional editor and content strategist. "
        "Expert in concise communication and key point extraction."
    ),
    TaskMode.ANALYSIS: "Senior Business Analyst with expertise in data analysis and strategic evaluation.",
    TaskMode.PLAN: "Project Manager and strategic planner with expertise in detailed execution planning.",
    TaskMode.RECIPE: "Professional chef and culinary instructor with expertise in clear, actionable recipes.",
    TaskMode.SUPPORT: "Technical Support Specialist with expertise in clear problem-solving communication.",
    TaskMode.MARKETING: "Marketing Professional with expertise in persuasive copywriting and campaign strategy.",
    TaskMode.WRITE: "Professional writer and editor with expertise in clear, engaging content creation.",
    TaskMode.TABLE: "Data Analyst specializing in structured data presentation and comparison tables.",
}


CONTRACT_RULES: Dict[TaskMode, List[str]] = {
    TaskMode.CODE: [
        "Provide ONLY the code block with no explanation",
        "Use proper syntax and best practices",
        "Include necessary imports/dependencies",
        "Add error handling where appropriate",
        "Follow language conventions",
        "Optimize for readability and performance",
    ],
    TaskMode.JSON: [
        "Provide ONLY valid JSON",
        "No markdown or formatting",
        "Use proper data types",
        "Follow JSON schema conventions",
        "No comments or explanations",
        "Ensure valid syntax",
    ],
    TaskMode.TRANSLATE: [
        "Provide ONLY the translation",
        "Maintain original meaning",
        "Use natural language flow",
        "Consider cultural context",
        "No explanation needed",
        "Preserve tone when possible",
    ],
    TaskMode.SUMMARIZE: [
        "Provide ONLY the summary",
        "Keep it concise but complete",
        "Highlight key points",
        "Use clear language",
        "Maintain logical flow",
        "No personal commentary",
    ],
    TaskMode.ANALYSIS: [
        "Start with TL;DR section",
        "Use H2/H3 headings",
        "Provide numbered steps",
        "Be objective and factual",
        "Include actionable insights",
        "No unnecessary prose",
    ],
    TaskMode.PLAN: [
        "Start with TL;DR section",
        "Use H2/H3 headings",
        "Provide numbered steps",
        "Be specific and detailed",
        "Include timelines where relevant",
        "Focus on actionable items",
    ],
    TaskMode.RECIPE: [
        "Start with TL;DR section",
        "Use H2/H3 headings",
        "Provide numbered steps",
        "Include ingredients list",
        "Be clear and specific",
        "Include timing information",
    ],
    TaskMode.SUPPORT: [
        "Provide ONLY the solution",
        "Be clear and direct",
        "Include step-by-step instructions",
        "Anticipate common issues",
        "Use simple language",
        "Focus on problem resolution",
    ],
    TaskMode.MARKETING: [
        "Provide ONLY the marketing copy",
        "Be persuasive and engaging",
        "Know your audience",
        "Include clear call-to-action",
        "Use compelling language",
        "Focus on benefits",
    ],
    TaskMode.WRITE: [
        "Be clear and engaging",
        "Use appropriate tone",
        "Structure content logically",
        "Provide value to reader",
        "Maintain consistency",
        "Focus on readability",
    ],
    TaskMode.TABLE: [
        "Provide ONLY the markdown table",
        "Use proper table formatting",
        "Include header row",
        "Align columns properly",
        "Keep data organized",
        "No explanation needed",
    ],
}


def role_template(mode: Union[TaskMode, str, None]) -> str:
    return ROLE_TEMPLATES.get(parse_task_mode(mode), ROLE_TEMPLATES[DEFAULT_MODE])


def contract_rules(mode: Union[TaskMode, str, None]) -> List[str]:
    """Always six rules; a copy, so callers may extend it."""
    return list(CONTRACT_RULES.get(parse_task_mode(mode), CONTRACT_RULES[DEFAULT_MODE]))

