from datetime import datetime
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from task_modes import LegacyMode, TaskMode


# Provider wire format
class Message(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class CompletionRequest(BaseModel):
    model_config = ConfigDict(protected_namespaces=())
    model: Optional[str] = None
    messages: List[Message]
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    seed: Optional[int] = None


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChoiceMessage(BaseModel):
    role: str = "assistant"
    content: Optional[str] = ""


class Choice(BaseModel):
    index: int = 0
    message: ChoiceMessage = Field(default_factory=ChoiceMessage)
    finish_reason: Optional[str] = None


class CompletionResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())
    id: str = ""
    object: str = "chat.completion"
    created: int = 0
    model: str = ""
    choices: List[Choice] = Field(default_factory=list)
    usage: Usage = Field(default_factory=Usage)

    @property
    def content(self) -> str:
        if not self.choices:
            return ""
        return self.choices[0].message.content or ""


# Enhancement API
class UserInput(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=50000)
    mode: Union[TaskMode, LegacyMode] = LegacyMode.STANDARD
    context: Optional[str] = None
    max_tokens: int = Field(2000, ge=100, le=4000)
    language: Optional[str] = None
    enable_contract_enforcement: bool = True
    target_language: Optional[str] = None
    code_language: Optional[str] = None


class ValidationSummary(BaseModel):
    is_valid: bool
    violations: List[str] = Field(default_factory=list)


class EnhancementMetadata(BaseModel):
    model_config = ConfigDict(protected_namespaces=())
    processing_time: float = Field(..., ge=0)
    token_usage: Usage
    model: str
    timestamp: datetime
    task_mode: Optional[str] = None
    validation_result: Optional[ValidationSummary] = None
    attempts: int = Field(1, ge=1)
    prompt_id: Optional[str] = None
    contract_enforced: bool = False


class EnhancedPrompt(BaseModel):
    original_prompt: str = Field(..., min_length=1)
    enhanced_prompt: str = Field(..., min_length=1)
    mode: Union[TaskMode, LegacyMode]
    improvements: List[str] = Field(default_factory=list)
    metadata: EnhancementMetadata


class PromptQuality(BaseModel):
    is_valid: bool
    issues: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class ContractCheckRequest(BaseModel):
    content: str
    mode: TaskMode
    language: Optional[str] = None


class ContractCheckResponse(BaseModel):
    mode: TaskMode
    contract: str
    is_valid: bool
    violations: List[str] = Field(default_factory=list)
    suggested_fix: Optional[str] = None
