"""
OpenAI-compatible completion client with classified errors and transport retry.
"""

import asyncio
import logging
import re
from typing import Optional, Union

import httpx

from errors import (
    ConfigurationError,
    NetworkUnreachableError,
    RateLimitedError,
    TransportError,
    classify_status,
)
from schemas import CompletionRequest, CompletionResponse
from settings import AIConfig, load_ai_config
from task_modes import TECHNICAL_MODES, TaskMode, parse_task_mode
from telemetry import DiagnosticLog

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = (429, 500, 502, 503, 504)
TECHNICAL_TIMEOUT_FLOOR_SEC = 60.0
LONG_REQUEST_TOKENS = 2000


class LLMClient:
    """Completion provider backed by ``POST {base_url}/chat/completions``."""

    def __init__(
        self,
        config: Optional[AIConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        diagnostics: Optional[DiagnosticLog] = None,
    ):
        self.config = config or load_ai_config()
        self._transport = transport
        self.diagnostics = diagnostics

    @property
    def model(self) -> str:
        return self.config.model

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    def timeout_for(self, mode: Union[TaskMode, str, None] = None, max_tokens: Optional[int] = None) -> float:
        """Configured timeout, raised to a 60 s floor for technical or long requests."""
        timeout = self.config.timeout
        tokens = max_tokens if max_tokens is not None else self.config.max_tokens
        if parse_task_mode(mode) in TECHNICAL_MODES or tokens > LONG_REQUEST_TOKENS:
            timeout = max(timeout, TECHNICAL_TIMEOUT_FLOOR_SEC)
        return timeout

    def apply_stable_parameters(self, request: CompletionRequest) -> CompletionRequest:
        """Pin sampling parameters to the configured values."""
        return request.model_copy(
            update={
                "model": request.model or self.config.model,
                "temperature": self.config.temperature,
                "top_p": self.config.top_p,
                "frequency_penalty": self.config.frequency_penalty,
                "presence_penalty": self.config.presence_penalty,
                "max_tokens": request.max_tokens or self.config.max_tokens,
                "seed": self.config.seed,
            }
        )

    @staticmethod
    def _parse_retry_after(response: httpx.Response) -> Optional[float]:
        """Wait hint from rate-limit headers, in seconds."""
        ra = response.headers.get("retry-after", "")
        if ra:
            try:
                return float(ra)
            except ValueError:
                pass
        # x-ratelimit-reset-* values look like "1m26.4s", "305ms", "6.5s"
        for hdr in ("x-ratelimit-reset-tokens", "x-ratelimit-reset-requests"):
            val = response.headers.get(hdr, "")
            if not val:
                continue
            total = 0.0
            m = re.search(r"(\d+)m(?!s)", val)
            if m:
                total += int(m.group(1)) * 60
            ms = re.search(r"(\d+)ms", val)
            if ms:
                total += int(ms.group(1)) / 1000.0
            s = re.search(r"(?<![\d.])(\d+(?:\.\d+)?)s\b", val)
            if s:
                total += float(s.group(1))
            if total > 0:
                return total
        return None

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200] or response.reason_phrase
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            return str(body["error"].get("message") or response.reason_phrase)
        return response.reason_phrase

    def _record(self, event: str, data: dict, prompt_id: Optional[str]) -> None:
        if self.diagnostics is not None:
            self.diagnostics.log(prompt_id or "provider", event, data)

    def _backoff(self, attempt: int, response: Optional[httpx.Response] = None) -> float:
        backoff = self.config.retry_delay * (2 ** attempt)
        if response is not None and response.status_code == 429:
            retry_after = self._parse_retry_after(response)
            if retry_after is not None:
                backoff = max(retry_after, backoff)
        return backoff

    async def generate_completion(
        self,
        request: CompletionRequest,
        mode: Union[TaskMode, str, None] = None,
        prompt_id: Optional[str] = None,
    ) -> CompletionResponse:
        """Issue one completion call, retrying transient transport failures."""
        payload = request.model_dump(exclude_none=True)
        payload["model"] = request.model or self.config.model
        max_attempts = 1 + (self.config.max_retries if self.config.enable_retries else 0)
        timeout = self.timeout_for(mode, request.max_tokens)

        async with self._client(timeout) as client:
            for attempt in range(max_attempts):
                last_attempt = attempt == max_attempts - 1
                try:
                    response = await client.post(
                        self._url("chat/completions"), json=payload, headers=self._headers()
                    )
                except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
                    raise ConfigurationError("AI service configuration error", details={"error": str(exc)}) from exc
                except httpx.RequestError as exc:
                    if last_attempt:
                        logger.warning("Provider unreachable after %d attempts: %s", attempt + 1, exc)
                        raise NetworkUnreachableError(
                            "Unable to connect to AI service", details={"error": str(exc)}
                        ) from exc
                    backoff = self._backoff(attempt)
                    self._record("provider_retry", {"attempt": attempt + 1, "error": type(exc).__name__, "backoff": backoff}, prompt_id)
                    await asyncio.sleep(backoff)
                    continue

                if response.is_success:
                    try:
                        return CompletionResponse.model_validate(response.json())
                    except ValueError as exc:
                        raise ConfigurationError(
                            "AI service returned an undecodable response", details={"error": str(exc)[:200]}
                        ) from exc

                status = response.status_code
                if status in RETRYABLE_STATUSES and not last_attempt:
                    backoff = self._backoff(attempt, response)
                    self._record("provider_retry", {"attempt": attempt + 1, "status": status, "backoff": backoff}, prompt_id)
                    logger.info("Provider returned %d, retrying in %.1fs", status, backoff)
                    await asyncio.sleep(backoff)
                    continue

                message = self._error_message(response)
                error = classify_status(status, message, details={"status": status, "message": message})
                if isinstance(error, RateLimitedError):
                    error.retry_after = self._parse_retry_after(response)
                logger.warning("Provider call failed: status=%d attempts=%d", status, attempt + 1)
                raise error

        raise TransportError("Failed to generate completion")

    async def is_available(self) -> bool:
        try:
            async with self._client(self.config.timeout) as client:
                response = await client.get(self._url("models"), headers=self._headers())
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.info("Availability probe failed: %s", exc)
            return False
        return response.is_success

    def public_config(self) -> dict:
        """Client configuration without the API key."""
        return self.config.model_dump(exclude={"api_key"})
