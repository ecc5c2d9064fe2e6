"""Tests for task-mode classification, role personas, and contract rules."""

import pytest

from intent_router import CONTRACT_RULES, ROLE_TEMPLATES, classify, contract_rules, role_template
from task_modes import TaskMode, all_task_modes, is_legacy_mode, parse_task_mode


class TestClassify:
    @pytest.mark.parametrize(
        "prompt,expected",
        [
            ("Write a function to calculate fibonacci", TaskMode.CODE),
            ("Create a JSON API response structure", TaskMode.JSON),
            ("Translate this text to German", TaskMode.TRANSLATE),
            ("Summarize this article about climate change", TaskMode.SUMMARIZE),
            ("Analyze the market trends for Q4", TaskMode.ANALYSIS),
            ("Create a project plan for website development", TaskMode.PLAN),
            ("Give me a recipe for chocolate cake", TaskMode.RECIPE),
            ("Create a comparison table of running shoes", TaskMode.TABLE),
            ("Help me fix this error in my account settings", TaskMode.SUPPORT),
            ("Write marketing copy for our new product", TaskMode.MARKETING),
            ("Write a story about a magical forest", TaskMode.WRITE),
        ],
    )
    def test_infers_mode_from_keywords(self, prompt, expected):
        assert classify(prompt) == expected

    def test_case_insensitive(self):
        assert classify("WRITE A FUNCTION TO CALCULATE FIBONACCI") == TaskMode.CODE

    def test_explicit_mode_overrides_inference(self):
        assert classify("Write a function to calculate fibonacci", TaskMode.MARKETING) == TaskMode.MARKETING
        assert classify("Translate this text to German", "table") == TaskMode.TABLE

    def test_legacy_or_unknown_explicit_mode_falls_back_to_inference(self):
        assert classify("Give me a recipe for chocolate cake", "standard") == TaskMode.RECIPE
        assert classify("Write a story about a magical forest", "nonsense") == TaskMode.WRITE

    def test_raw_code_markers(self):
        assert classify("```\nx = 1\n```") == TaskMode.CODE
        assert classify("def add(a, b): return a + b") == TaskMode.CODE

    def test_priority_order_first_match_wins(self):
        # "code" and "summary" both present: code comes first
        assert classify("Give me a summary of this code") == TaskMode.CODE
        # "plan" before "table"
        assert classify("A plan presented as a table") == TaskMode.PLAN

    def test_empty_prompt_is_write(self):
        assert classify("") == TaskMode.WRITE


class TestTables:
    def test_every_mode_has_six_rules(self):
        for mode in TaskMode:
            assert len(contract_rules(mode)) == 6
        assert set(CONTRACT_RULES) == set(TaskMode)

    def test_every_mode_has_role(self):
        assert set(ROLE_TEMPLATES) == set(TaskMode)

    def test_unknown_mode_falls_back_to_write(self):
        assert role_template("unknown") == ROLE_TEMPLATES[TaskMode.WRITE]
        assert contract_rules("unknown") == CONTRACT_RULES[TaskMode.WRITE]

    def test_rules_are_copies(self):
        rules = contract_rules(TaskMode.CODE)
        rules.append("extra")
        assert len(contract_rules(TaskMode.CODE)) == 6

    def test_role_content(self):
        assert role_template(TaskMode.CODE).startswith("Senior Software Engineer")
        assert contract_rules("json")[0] == "Provide ONLY valid JSON"


class TestTaskModes:
    def test_parse(self):
        assert parse_task_mode(" Code ") == TaskMode.CODE
        assert parse_task_mode("standard") is None
        assert parse_task_mode(None) is None

    def test_legacy_detection(self):
        assert is_legacy_mode("creative")
        assert is_legacy_mode("SCIENTIFICALLY")
        assert not is_legacy_mode("code")
        assert not is_legacy_mode(None)

    def test_all_modes(self):
        assert len(all_task_modes()) == 11
