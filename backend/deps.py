"""Shared FastAPI dependencies used across route modules."""

from fastapi import Request

from enhancement_service import EnhancementService
from telemetry import DiagnosticLog


def get_enhancement_service(request: Request) -> EnhancementService:
    return request.app.state.enhancement_service


def get_diagnostics(request: Request) -> DiagnosticLog:
    return request.app.state.diagnostics
