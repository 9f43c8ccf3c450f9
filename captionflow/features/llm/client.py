"""
Completion provider client.

GenerationClient is the seam the caption pipeline and the copy tools depend on.
GroqGenerationClient talks to Groq's chat-completions API; every provider
failure leaves this module as GenerationFailedError.
"""
from __future__ import annotations

import json
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Protocol

import groq

from captionflow.core.config import Settings
from captionflow.core.errors import GenerationFailedError
from captionflow.core.logging import log_event


DEFAULT_TEMPERATURE = 0.8
DEFAULT_MAX_TOKENS = 500

# Transient provider failures worth another attempt
RETRYABLE_ERRORS = (
    groq.APIConnectionError,  # includes APITimeoutError
    groq.RateLimitError,
    groq.InternalServerError,
)


@dataclass(frozen=True)
class ImagePayload:
    data_base64: str
    mime_type: str

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data_base64}"


@dataclass(frozen=True)
class CompletionRequest:
    system: str
    user: str
    image: Optional[ImagePayload] = None
    model: Optional[str] = None
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: Optional[int] = DEFAULT_MAX_TOKENS
    json_mode: bool = False


class GenerationClient(Protocol):
    def complete(self, request: CompletionRequest) -> str:
        """Return the raw completion text or raise GenerationFailedError."""
        ...


def _compute_backoff(attempt: int, base_seconds: float = 0.5, cap_seconds: float = 8.0) -> timedelta:
    """Exponential backoff: 0.5s, 1s, 2s ... capped."""
    return timedelta(seconds=min(cap_seconds, base_seconds * (2 ** attempt)))


def build_messages(request: CompletionRequest) -> List[Dict[str, Any]]:
    if request.image is not None:
        user_content: Any = [
            {
                "type": "image_url",
                "image_url": {"url": request.image.data_url, "detail": "low"},
            },
            {"type": "text", "text": request.user},
        ]
    else:
        user_content = request.user
    return [
        {"role": "system", "content": request.system},
        {"role": "user", "content": user_content},
    ]


class GroqGenerationClient:
    """Groq implementation of GenerationClient."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        text_model: str,
        vision_model: str,
        max_retries: int = 2,
        timeout_seconds: float = 30.0,
        client: Optional[Any] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.text_model = text_model
        self.vision_model = vision_model
        self.max_retries = max(0, max_retries)
        self._sleep = sleep
        # SDK-level retries off: retry policy lives here
        self._client = client or groq.Groq(api_key=api_key, timeout=timeout_seconds, max_retries=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> "GroqGenerationClient":
        return cls(
            settings.GROQ_API_KEY,
            text_model=settings.LLM_TEXT_MODEL,
            vision_model=settings.LLM_VISION_MODEL,
            max_retries=settings.LLM_MAX_RETRIES,
            timeout_seconds=settings.LLM_TIMEOUT_SECONDS,
        )

    def _model_for(self, request: CompletionRequest) -> str:
        if request.model:
            return request.model
        return self.vision_model if request.image is not None else self.text_model

    def complete(self, request: CompletionRequest) -> str:
        model = self._model_for(request)
        params: Dict[str, Any] = {
            "model": model,
            "messages": build_messages(request),
            "temperature": request.temperature,
        }
        if request.max_tokens:
            params["max_tokens"] = request.max_tokens
        if request.json_mode:
            params["response_format"] = {"type": "json_object"}

        attempt = 0
        while True:
            try:
                response = self._client.chat.completions.create(**params)
                break
            except RETRYABLE_ERRORS as e:
                if attempt >= self.max_retries:
                    log_event("error", "llm.failed", event_type="llm", error_code="generation_failed",
                              extra={"model": model, "attempts": attempt + 1, "error": repr(e)})
                    raise GenerationFailedError() from e
                delay = _compute_backoff(attempt).total_seconds()
                log_event("warning", "llm.retry", event_type="llm",
                          extra={"model": model, "attempt": attempt + 1, "delay_s": delay, "error": type(e).__name__})
                self._sleep(delay)
                attempt += 1
            except groq.APIError as e:
                # Request-level errors (4xx) are not retried
                log_event("error", "llm.failed", event_type="llm", error_code="generation_failed",
                          extra={"model": model, "attempts": attempt + 1, "error": repr(e)})
                raise GenerationFailedError() from e

        return self._extract_text(response, model)

    @staticmethod
    def _extract_text(response: Any, model: str) -> str:
        try:
            choice = response.choices[0]
            message = choice.message
        except (AttributeError, IndexError, TypeError) as e:
            log_event("error", "llm.failed", event_type="llm", error_code="generation_failed",
                      extra={"model": model, "error": "malformed response"})
            raise GenerationFailedError() from e

        refusal = getattr(message, "refusal", None)
        if refusal:
            log_event("warning", "llm.refused", event_type="llm", error_code="generation_failed",
                      extra={"model": model, "refusal": refusal})
            raise GenerationFailedError()

        content = (message.content or "").strip()
        if not content:
            log_event("error", "llm.failed", event_type="llm", error_code="generation_failed",
                      extra={"model": model, "error": "empty content",
                             "finish_reason": getattr(choice, "finish_reason", None)})
            raise GenerationFailedError()
        return content


def complete_json(client: GenerationClient, request: CompletionRequest) -> Dict[str, Any]:
    """Run a JSON-mode completion and decode the object it returns."""
    if not request.json_mode:
        raise ValueError("complete_json requires a json_mode request")
    text = client.complete(request)
    try:
        doc = json.loads(text)
    except json.JSONDecodeError as e:
        log_event("error", "llm.invalid_json", event_type="llm", error_code="generation_failed",
                  extra={"error": str(e)})
        raise GenerationFailedError() from e
    if not isinstance(doc, dict):
        raise GenerationFailedError()
    return doc
