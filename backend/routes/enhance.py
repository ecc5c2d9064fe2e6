"""Enhancement routes: enhance, suggestions, validate, status, logs, config, contract checks."""

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends

from deps import get_diagnostics, get_enhancement_service
from enhancement_service import EnhancementService
from errors import ValidationError
from output_validators import select_validator
from schemas import ContractCheckRequest, ContractCheckResponse, UserInput
from telemetry import DiagnosticLog

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/enhance", tags=["enhance"])
# Mounted only when ENABLE_LOGGING is on.
logs_router = APIRouter(prefix="/api/enhance/logs", tags=["enhance"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.post("")
async def enhance(payload: UserInput, service: EnhancementService = Depends(get_enhancement_service)):
    started = time.perf_counter()
    quality = service.validate_prompt(payload.prompt)
    if not quality.is_valid:
        raise ValidationError("Invalid prompt", details=quality.issues)
    if quality.warnings:
        logger.info("Prompt warnings for request: %s", ", ".join(quality.warnings))

    enhanced = await service.enhance_prompt(payload)
    body = enhanced.model_dump(mode="json")
    if quality.warnings:
        body["warnings"] = quality.warnings
    body["_meta"] = {
        "processing_time": round(time.perf_counter() - started, 4),
        "request_id": f"req_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}",
    }
    return body


@router.post("/suggestions")
async def suggestions(payload: UserInput, service: EnhancementService = Depends(get_enhancement_service)):
    return {
        "suggestions": await service.get_suggestions(payload),
        "prompt": payload.prompt,
        "mode": payload.mode.value,
    }


@router.post("/validate")
async def validate(payload: UserInput, service: EnhancementService = Depends(get_enhancement_service)):
    quality = service.validate_prompt(payload.prompt)
    found = await service.get_suggestions(payload) if quality.is_valid else []
    return {"validation": quality.model_dump(), "suggestions": found}


@router.get("/status")
async def status(service: EnhancementService = Depends(get_enhancement_service)):
    state = await service.get_service_status()
    return {"service": "enhancement", **state, "timestamp": _now()}


@router.post("/deterministic-id")
async def deterministic_prompt_id(payload: UserInput, service: EnhancementService = Depends(get_enhancement_service)):
    return {
        "prompt_id": service.get_deterministic_prompt_id(payload),
        "input": payload.model_dump(mode="json"),
        "timestamp": _now(),
    }


@router.get("/config")
async def client_config(service: EnhancementService = Depends(get_enhancement_service)):
    return {"config": service.get_client_config(), "timestamp": _now()}


@router.post("/contract/validate", response_model=ContractCheckResponse)
async def validate_contract(payload: ContractCheckRequest):
    """Check content against a mode's contract once, without re-prompting."""
    validator = select_validator(payload.mode, payload.language)
    result = validator.validate(payload.content)
    return ContractCheckResponse(
        mode=payload.mode,
        contract=validator.describe_contract(),
        is_valid=result.is_valid,
        violations=result.violations,
        suggested_fix=result.suggested_fix,
    )


@logs_router.get("")
async def get_logs(service: EnhancementService = Depends(get_enhancement_service)):
    return _logs_payload(service, None)


@logs_router.get("/summary")
async def logs_summary(hours: int = 24, limit: int = 6, diagnostics: DiagnosticLog = Depends(get_diagnostics)):
    return diagnostics.summary(hours=hours, limit=limit)


@logs_router.get("/{prompt_id}")
async def get_prompt_logs(prompt_id: str, service: EnhancementService = Depends(get_enhancement_service)):
    return _logs_payload(service, prompt_id)


@logs_router.delete("")
async def clear_logs(service: EnhancementService = Depends(get_enhancement_service)):
    service.clear_logs()
    return {"message": "AI logs cleared successfully", "timestamp": _now()}


def _logs_payload(service: EnhancementService, prompt_id: Optional[str]) -> dict:
    logs = service.get_logs(prompt_id)
    return {"logs": logs, "count": len(logs), "timestamp": _now()}
