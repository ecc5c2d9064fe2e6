"""
Contract enforcement: validate a completion, re-prompt on violations, re-validate.

Transport retry lives in the provider; every re-prompt here is one contract attempt.
"""

import logging
from typing import Optional, Protocol, Union

from pydantic import BaseModel, Field, model_validator

from errors import AIServiceError
from output_validators import OutputContract, ValidationResult, select_validator
from schemas import CompletionRequest, CompletionResponse, Message, Usage
from task_modes import TaskMode
from text_sanitizer import sanitize_user_text

logger = logging.getLogger(__name__)

RE_PROMPT_TEMPERATURE = 0.1
RE_PROMPT_MAX_TOKENS = 2000
COMPLIANCE_PERSONA = (
    "You are a contract compliance specialist. "
    "Your ONLY job is to fix contract violations. "
)


class CompletionProvider(Protocol):
    """Anything that can run one chat completion; failures normally raise AIServiceError."""

    @property
    def model(self) -> str:
        ...

    async def generate_completion(
        self,
        request: CompletionRequest,
        mode: Union[TaskMode, str, None] = None,
        prompt_id: Optional[str] = None,
    ) -> CompletionResponse:
        ...


class ContractEnforcementConfig(BaseModel):
    max_attempts: int = Field(2, ge=1)
    enable_auto_retry: bool = True
    enable_contract_reminder: bool = True


class ContractEnforcementResult(BaseModel):
    success: bool
    content: str
    validation_result: ValidationResult
    attempts: int = Field(..., ge=1)
    # Tokens spent on re-prompts only; the first completion is counted by the caller.
    usage: Usage = Field(default_factory=Usage)

    @model_validator(mode="after")
    def _success_matches_validation(self):
        if self.success != self.validation_result.is_valid:
            raise ValueError("success must equal validation_result.is_valid")
        return self


class EmptyCompletionError(AIServiceError):
    pass


def add_usage(left: Usage, right: Usage) -> Usage:
    return Usage(
        prompt_tokens=left.prompt_tokens + right.prompt_tokens,
        completion_tokens=left.completion_tokens + right.completion_tokens,
        total_tokens=left.total_tokens + right.total_tokens,
    )


def build_re_prompt(
    violating_content: str,
    validation: ValidationResult,
    validator: OutputContract,
    original_prompt: str,
    context: Optional[str] = None,
    include_reminder: bool = True,
) -> str:
    violations = "\n".join(f"- {v}" for v in validation.violations)
    reminder = validator.re_prompt_instruction() if include_reminder else ""
    extra = f"\n\nAdditional context:\n{sanitize_user_text(context).sanitized_text}" if context else ""
    return (
        "CONTRACT VIOLATION DETECTED\n\n"
        f'Previous output (VIOLATES CONTRACT):\n"""\n{violating_content}\n"""\n\n'
        f"Contract violations:\n{violations}\n\n"
        f"{reminder}\n\n"
        f"Original user request:\n{sanitize_user_text(original_prompt).sanitized_text}"
        f"{extra}\n\n"
        "PRODUCE CORRECT OUTPUT THAT FULLY COMPLIES WITH THE CONTRACT ABOVE.\n"
        "NO EXPLANATIONS. NO APOLOGIES. JUST THE CORRECT OUTPUT."
    )


class ContractEnforcer:
    def __init__(self, provider: CompletionProvider, config: Optional[ContractEnforcementConfig] = None):
        self.provider = provider
        self.config = config or ContractEnforcementConfig()

    async def enforce_contract(
        self,
        content: str,
        mode: Union[TaskMode, str],
        original_prompt: str,
        context: Optional[str] = None,
        config: Optional[ContractEnforcementConfig] = None,
        language: Optional[str] = None,
        prompt_id: Optional[str] = None,
    ) -> ContractEnforcementResult:
        """Return the first content satisfying the mode's contract, or the last attempt."""
        cfg = config or self.config
        validator = select_validator(mode, language)
        current = content
        attempts = 1
        usage = Usage()
        validation = validator.validate(current)

        if validation.is_valid or not cfg.enable_auto_retry:
            return ContractEnforcementResult(
                success=validation.is_valid,
                content=current,
                validation_result=validation,
                attempts=attempts,
            )

        while attempts < cfg.max_attempts and not validation.is_valid:
            attempts += 1
            try:
                response = await self._re_prompt(
                    current, validation, validator, original_prompt, context,
                    cfg.enable_contract_reminder, mode, prompt_id,
                )
            except Exception as exc:
                logger.warning("Contract enforcement attempt %d failed (%s): %s", attempts, validator.name, exc)
                break
            usage = add_usage(usage, response.usage)
            current = response.content.strip()
            validation = validator.validate(current)
            logger.debug("Contract attempt %d for %s: valid=%s", attempts, validator.name, validation.is_valid)

        return ContractEnforcementResult(
            success=validation.is_valid,
            content=current,
            validation_result=validation,
            attempts=attempts,
            usage=usage,
        )

    async def _re_prompt(
        self,
        violating_content: str,
        validation: ValidationResult,
        validator: OutputContract,
        original_prompt: str,
        context: Optional[str],
        include_reminder: bool,
        mode: Union[TaskMode, str, None] = None,
        prompt_id: Optional[str] = None,
    ) -> CompletionResponse:
        request = CompletionRequest(
            model=self.provider.model,
            messages=[
                Message(role="system", content=COMPLIANCE_PERSONA + validator.describe_contract()),
                Message(
                    role="user",
                    content=build_re_prompt(
                        violating_content, validation, validator, original_prompt, context, include_reminder
                    ),
                ),
            ],
            max_tokens=RE_PROMPT_MAX_TOKENS,
            temperature=RE_PROMPT_TEMPERATURE,
        )
        response = await self.provider.generate_completion(request, mode=mode, prompt_id=prompt_id)
        if not response.content.strip():
            raise EmptyCompletionError("No content generated during contract enforcement")
        return response

    def validate_content(self, content: str, mode: Union[TaskMode, str], language: Optional[str] = None) -> ValidationResult:
        return select_validator(mode, language).validate(content)

    def describe_contract(self, mode: Union[TaskMode, str], language: Optional[str] = None) -> str:
        return select_validator(mode, language).describe_contract()
