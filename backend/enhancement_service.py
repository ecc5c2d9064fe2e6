"""Prompt enhancement orchestration.

Assembles the system and user prompts for a request, applies per-request tuning
(timeouts, contract attempts), calls the provider, cleans and contract-checks
the completion, and reports token usage. Legacy modes skip contract retry.
"""

import hashlib
import json
import logging
import re
import time
import uuid
from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel

from contract_enforcer import ContractEnforcementConfig, ContractEnforcer, add_usage
from errors import AIServiceError
from intent_router import classify, contract_rules, role_template
from llm_client import LLMClient
from output_validators import ValidationResult, select_validator
from schemas import (
    CompletionRequest,
    EnhancedPrompt,
    EnhancementMetadata,
    Message,
    PromptQuality,
    Usage,
    UserInput,
    ValidationSummary,
)
from task_modes import TECHNICAL_MODES, LegacyMode, TaskMode, is_legacy_mode, parse_task_mode
from telemetry import DiagnosticLog
from text_sanitizer import create_facts_discipline_context, sanitize_ai_output, sanitize_user_text
from text_utils import calculate_available_tokens, compress_if_needed, estimate_tokens, extract_numbered_items

logger = logging.getLogger(__name__)

DEFAULT_CONTRACT_ATTEMPTS = 2
LONG_PROMPT_CHARS = 3000
TOKEN_BUDGET_RATIO = 0.8
SUGGESTION_MAX_TOKENS = 500
MIN_PROMPT_CHARS = 5
MAX_PROMPT_CHARS = 50000

CONTRACT_FAILURE_SENTENCE = "VIOLATION OF THESE RULES WILL RESULT IN IMMEDIATE CONTRACT FAILURE."

LEGACY_SYSTEM_PROMPTS = {
    LegacyMode.STANDARD: (
        "You are an AI prompt enhancement expert. Your task is to improve user prompts to make them "
        "more effective, clear, and specific while maintaining their original intent. "
    ),
    LegacyMode.CREATIVE: (
        "You are a creative writing and artistic prompt enhancement expert. Your task is to enhance "
        "prompts to unlock more imaginative, artistic, and creative responses while maintaining "
        "coherence and purpose. "
    ),
    LegacyMode.TECHNICAL: (
        "You are a technical prompt enhancement expert specializing in precise specifications and "
        "technical accuracy. Your task is to enhance prompts to be more detailed, specific, and "
        "technically precise. "
    ),
    LegacyMode.SCIENTIFICALLY: (
        "You are a scientific research and academic communication expert. Your task is to enhance "
        "prompts to be more academically rigorous, methodologically sound, and scientifically precise. "
        "Focus on incorporating proper scientific methodology, academic terminology, research-oriented "
        "language, and scholarly context. "
    ),
}
LEGACY_LANGUAGE_RULE = (
    "IMPORTANT: You must respond in the same language as the original prompt. Provide the enhanced "
    "prompt and a list of specific improvements made in the same language as the original prompt."
)

LEGACY_MODE_DESCRIPTIONS = {
    LegacyMode.STANDARD: "Standard enhancement for general purpose prompts",
    LegacyMode.CREATIVE: "Creative enhancement with imaginative and artistic elements",
    LegacyMode.TECHNICAL: "Technical enhancement with precise and detailed specifications",
    LegacyMode.SCIENTIFICALLY: "Scientific enhancement focusing on academic rigor and methodological precision",
}

ENHANCED_SECTION_REGEX = re.compile(
    r"ENHANCED[ _]PROMPT:\s*\n?(.*?)(?=\n\s*IMPROVEMENTS:|\Z)", re.IGNORECASE | re.DOTALL
)
IMPROVEMENTS_SECTION_REGEX = re.compile(r"IMPROVEMENTS:\s*\n?(.*)\Z", re.IGNORECASE | re.DOTALL)


class GenerationResult(BaseModel):
    content: str
    validation_result: ValidationResult
    attempts: int = 1
    usage: Usage
    contract_enforced: bool = False


def generate_short_id() -> str:
    return f"req_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def deterministic_id(prompt: str, mode: str, config: dict) -> str:
    """Same prompt, mode, and client config always give the same id."""
    raw = json.dumps({"prompt": prompt, "mode": mode, "config": config}, sort_keys=True, default=str)
    return f"prompt_{hashlib.sha256(raw.encode('utf-8')).hexdigest()[:16]}"


def parse_enhanced_response(content: str) -> tuple[str, list[str]]:
    enhanced_match = ENHANCED_SECTION_REGEX.search(content)
    improvements_match = IMPROVEMENTS_SECTION_REGEX.search(content)
    enhanced = enhanced_match.group(1).strip() if enhanced_match else ""
    improvements = extract_numbered_items(improvements_match.group(1)) if improvements_match else []
    return enhanced or content.strip(), improvements


def contract_config_for(mode: Union[TaskMode, str], original_prompt: str) -> ContractEnforcementConfig:
    """Long technical prompts get a single contract attempt."""
    attempts = DEFAULT_CONTRACT_ATTEMPTS
    if len(original_prompt or "") > LONG_PROMPT_CHARS and parse_task_mode(mode) in TECHNICAL_MODES:
        attempts = 1
        logger.info(
            "Reduced contract attempts for long technical prompt: length=%d mode=%s",
            len(original_prompt), mode,
        )
    return ContractEnforcementConfig(max_attempts=attempts)


class EnhancementService:
    def __init__(
        self,
        client: LLMClient,
        diagnostics: Optional[DiagnosticLog] = None,
        logging_enabled: bool = True,
    ):
        self.client = client
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
        self.logging_enabled = logging_enabled
        if self.client.diagnostics is None and logging_enabled:
            self.client.diagnostics = self.diagnostics

    def _log(self, prompt_id: str, event: str, data: Optional[dict] = None) -> None:
        if self.logging_enabled:
            self.diagnostics.log(prompt_id, event, data)

    # --------------- enhancement ---------------

    async def enhance_prompt(self, user_input: UserInput) -> EnhancedPrompt:
        started = time.perf_counter()
        prompt_id = generate_short_id()
        mode_value = user_input.mode.value

        self._log(prompt_id, "enhancement_started", {
            "mode": mode_value,
            "prompt_length": len(user_input.prompt),
            "max_tokens": user_input.max_tokens,
        })

        context = user_input.context
        estimated = estimate_tokens(user_input.prompt)
        if context:
            estimated += estimate_tokens(context)
        budget = int(user_input.max_tokens * TOKEN_BUDGET_RATIO)
        if estimated > budget:
            self._log(prompt_id, "token_budget_warning", {
                "estimated_tokens": estimated,
                "max_tokens": user_input.max_tokens,
            })
            if context:
                context = self._fit_context(prompt_id, user_input.prompt, context, budget)

        try:
            if is_legacy_mode(user_input.mode):
                task_mode = TaskMode.WRITE
                enhanced, improvements, result = await self._legacy_enhance(user_input, prompt_id)
            else:
                task_mode = classify(user_input.prompt, user_input.mode)
                enhanced, improvements, result = await self._task_routing_enhance(
                    user_input, task_mode, prompt_id, context
                )
            if not enhanced:
                raise AIServiceError("No content generated", details={"prompt_id": prompt_id})
        except Exception as exc:
            self._log(prompt_id, "enhancement_failed", {
                "error": str(exc),
                "processing_time": round(time.perf_counter() - started, 4),
            })
            raise

        processing_time = round(time.perf_counter() - started, 4)
        validation = ValidationSummary(
            is_valid=result.validation_result.is_valid,
            violations=result.validation_result.violations,
        )
        enhanced_prompt = EnhancedPrompt(
            original_prompt=user_input.prompt,
            enhanced_prompt=enhanced,
            mode=user_input.mode,
            improvements=improvements,
            metadata=EnhancementMetadata(
                processing_time=processing_time,
                token_usage=result.usage,
                model=self.client.model,
                timestamp=datetime.now(timezone.utc),
                task_mode=task_mode.value,
                validation_result=validation,
                attempts=result.attempts,
                prompt_id=prompt_id,
                contract_enforced=result.contract_enforced,
            ),
        )

        if result.attempts > 1:
            self._log(prompt_id, "contract_retry", {"attempts": result.attempts, "task_mode": task_mode.value})
        self._log(prompt_id, "enhancement_completed", {
            "processing_time": processing_time,
            "token_usage": result.usage.model_dump(),
            "task_mode": task_mode.value,
            "validation_result": validation.model_dump(),
            "attempts": result.attempts,
        })
        return enhanced_prompt

    def _fit_context(self, prompt_id: str, prompt: str, context: str, budget: int) -> Optional[str]:
        """Compress *context* into what the prompt leaves of *budget*; None when nothing fits."""
        available = calculate_available_tokens(prompt, budget, 0)
        compressed = compress_if_needed(context, available) if available else ""
        self._log(prompt_id, "context_compressed", {
            "original_tokens": estimate_tokens(context),
            "compressed_tokens": estimate_tokens(compressed),
            "available_tokens": available,
        })
        return compressed or None

    async def _legacy_enhance(self, user_input: UserInput, prompt_id: str):
        self._log(prompt_id, "using_legacy_enhancement", {"mode": user_input.mode.value})
        mode = LegacyMode(user_input.mode.value)
        protected = sanitize_user_text(user_input.prompt).sanitized_text
        user_prompt = (
            f"Please enhance the following prompt for {LEGACY_MODE_DESCRIPTIONS[mode]}:\n\n"
            f"Original Prompt: {protected}\n\n"
            "Please provide:\n"
            "1. An enhanced version of the prompt (respond in the same language as the original prompt)\n"
            "2. A numbered list of specific improvements made (in the same language as the original prompt)\n\n"
            "Format your response as:\n"
            "ENHANCED PROMPT:\n[Your enhanced prompt here]\n\n"
            "IMPROVEMENTS:\n1. [First improvement]\n2. [Second improvement]\n..."
        )
        request = CompletionRequest(
            messages=[
                Message(role="system", content=LEGACY_SYSTEM_PROMPTS[mode] + LEGACY_LANGUAGE_RULE),
                Message(role="user", content=user_prompt),
            ],
            max_tokens=user_input.max_tokens,
        )
        result = await self.generate_with_contract(
            request,
            TaskMode.WRITE,
            user_input.prompt,
            enable_contract_enforcement=False,
            prompt_id=prompt_id,
        )
        enhanced, improvements = parse_enhanced_response(result.content)
        return enhanced, improvements, result

    async def _task_routing_enhance(
        self,
        user_input: UserInput,
        task_mode: TaskMode,
        prompt_id: str,
        context: Optional[str] = None,
    ):
        self._log(prompt_id, "using_task_routing_enhancement", {
            "mode": user_input.mode.value,
            "task_mode": task_mode.value,
        })
        protected_context = None
        if context:
            sanitized_context = sanitize_user_text(context)
            protected_context = sanitized_context.sanitized_text
            if sanitized_context.warnings:
                self._log(prompt_id, "context_warnings", {"warnings": sanitized_context.warnings})

        language = user_input.code_language if task_mode is TaskMode.CODE else None
        system_prompt = self.build_system_prompt(task_mode, protected_context, user_input.language, language)
        user_prompt = self.build_user_prompt(
            sanitize_user_text(user_input.prompt).sanitized_text,
            protected_context,
            user_input.target_language if task_mode is TaskMode.TRANSLATE else None,
        )
        request = CompletionRequest(
            messages=[
                Message(role="system", content=system_prompt),
                Message(role="user", content=user_prompt),
            ],
            max_tokens=user_input.max_tokens,
        )
        result = await self.generate_with_contract(
            request,
            task_mode,
            user_input.prompt,
            context=context,
            language=language,
            enable_contract_enforcement=user_input.enable_contract_enforcement,
            prompt_id=prompt_id,
        )
        enhanced, improvements = parse_enhanced_response(result.content)
        return enhanced, improvements, result

    def build_system_prompt(
        self,
        task_mode: TaskMode,
        protected_context: Optional[str] = None,
        language: Optional[str] = None,
        code_language: Optional[str] = None,
    ) -> str:
        language_instruction = ""
        if language and language.lower() != "english":
            language_instruction = f"IMPORTANT: Respond in {language}. "
        rules = "\n".join(f"• {rule}" for rule in contract_rules(task_mode))
        return (
            f"{language_instruction}{role_template(task_mode)}\n\n"
            f"{create_facts_discipline_context(protected_context)}\n\n"
            f"CONTRACT RULES (MUST FOLLOW EXACTLY):\n{rules}\n\n"
            f"{CONTRACT_FAILURE_SENTENCE}\n\n"
            f"FINAL OUTPUT REQUIREMENTS:\n{select_validator(task_mode, code_language).describe_contract()}"
        )

    @staticmethod
    def build_user_prompt(
        sanitized_prompt: str,
        protected_context: Optional[str] = None,
        target_language: Optional[str] = None,
    ) -> str:
        """Both text arguments must already be delimited by ``sanitize_user_text``."""
        prompt = (
            "Process this user request and provide the contracted output:\n\n"
            f"USER_REQUEST:\n{sanitized_prompt}"
        )
        if target_language:
            prompt += f"\n\nTARGET_LANGUAGE: {target_language}"
        if protected_context:
            prompt += f"\n\nADDITIONAL_CONTEXT:\n{protected_context}"
        return prompt

    async def generate_with_contract(
        self,
        request: CompletionRequest,
        mode: TaskMode,
        original_prompt: str,
        context: Optional[str] = None,
        language: Optional[str] = None,
        enable_contract_enforcement: bool = True,
        prompt_id: Optional[str] = None,
    ) -> GenerationResult:
        """One stable-parameter completion, cleaned, then contract-checked."""
        stable = self.client.apply_stable_parameters(request)
        response = await self.client.generate_completion(stable, mode=mode, prompt_id=prompt_id)
        content = sanitize_ai_output(response.content, mode.value)

        enforcer = ContractEnforcer(self.client, contract_config_for(mode, original_prompt))
        if not enable_contract_enforcement:
            return GenerationResult(
                content=content,
                validation_result=enforcer.validate_content(content, mode, language),
                attempts=1,
                usage=response.usage,
                contract_enforced=False,
            )

        enforced = await enforcer.enforce_contract(
            content, mode, original_prompt, context, language=language, prompt_id=prompt_id
        )
        return GenerationResult(
            content=enforced.content,
            validation_result=enforced.validation_result,
            attempts=enforced.attempts,
            usage=add_usage(response.usage, enforced.usage),
            contract_enforced=True,
        )

    # --------------- helpers exposed over HTTP ---------------

    async def get_suggestions(self, user_input: UserInput) -> list[str]:
        """3-5 improvement ideas; empty when the provider fails."""
        suggestions_prompt = (
            "Analyze this prompt and provide 3-5 specific suggestions for improvement:\n\n"
            f"Prompt: {sanitize_user_text(user_input.prompt).sanitized_text}\n"
            f"Mode: {user_input.mode.value}\n\n"
            "Please provide suggestions in a numbered list format."
        )
        request = CompletionRequest(
            messages=[
                Message(
                    role="system",
                    content="You are an expert in prompt engineering. Provide constructive suggestions to improve prompts.",
                ),
                Message(role="user", content=suggestions_prompt),
            ],
            max_tokens=SUGGESTION_MAX_TOKENS,
        )
        try:
            result = await self.generate_with_contract(
                request, TaskMode.WRITE, user_input.prompt, enable_contract_enforcement=False
            )
        except AIServiceError as exc:
            logger.warning("Failed to get suggestions: %s", exc)
            return []
        return extract_numbered_items(result.content)

    @staticmethod
    def validate_prompt(prompt: str) -> PromptQuality:
        issues: list[str] = []
        warnings: list[str] = []
        text = prompt or ""
        stripped = text.strip()

        if not stripped:
            issues.append("Prompt cannot be empty")
        if len(text) < MIN_PROMPT_CHARS:
            issues.append(f"Prompt is too short (minimum {MIN_PROMPT_CHARS} characters)")
        if len(text) > MAX_PROMPT_CHARS:
            issues.append(f"Prompt is too long (maximum {MAX_PROMPT_CHARS} characters)")

        if "????" in text or "!!!!" in text:
            warnings.append("Avoid excessive punctuation")
        if stripped and len(stripped) < 20 and stripped[-1] not in ".!?":
            warnings.append("Consider ending your prompt with proper punctuation for clarity")

        return PromptQuality(is_valid=not issues, issues=issues, warnings=warnings)

    async def get_service_status(self) -> dict:
        return {
            "available": await self.client.is_available(),
            "model": self.client.model,
        }

    def get_deterministic_prompt_id(self, user_input: UserInput) -> str:
        return deterministic_id(user_input.prompt, user_input.mode.value, self.get_client_config())

    def get_logs(self, prompt_id: Optional[str] = None) -> list[dict]:
        return self.diagnostics.get_logs(prompt_id)

    def clear_logs(self) -> None:
        self.diagnostics.clear()

    def get_client_config(self) -> dict:
        return self.client.public_config()
