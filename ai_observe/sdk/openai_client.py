"""
Observed OpenAI client wrapper.

Forwards a single prompt to the chat completions API and records one call
record per attempt, success or failure.
"""

import time
from dataclasses import dataclass
from typing import Any, Optional

from loguru import logger
from openai import OpenAI

from ..config.loader import get_config
from ..core.breakdown import TokenBreakdown, build_breakdown
from ..core.token_counter import TokenUsage
from ..errors import ProviderError, ValidationError
from ..storage.models import CallRecord
from ..storage.repository import CallRepository, get_repository


@dataclass(frozen=True)
class CompletionResult:
    """Outcome of a successful completion call."""
    text: str
    tokens_in: int
    tokens_out: int
    latency_ms: int
    breakdown: TokenBreakdown
    record_id: str

    def to_dict(self) -> dict:
        """Serialize to the completion endpoint response shape."""
        return {
            "response": self.text,
            "tokensIn": self.tokens_in,
            "tokensOut": self.tokens_out,
            "latencyMs": self.latency_ms,
            "tokenBreakdown": self.breakdown.to_dict(),
        }


# Global provider client
_openai_client: Optional[OpenAI] = None


def get_openai_client() -> OpenAI:
    """Get the shared OpenAI client, creating it on first use.

    The API key is read from OPENAI_API_KEY by the openai library.
    """
    global _openai_client
    if _openai_client is None:
        _openai_client = OpenAI()
    return _openai_client


def reset_openai_client() -> None:
    """Close and drop the shared OpenAI client."""
    global _openai_client
    if _openai_client is not None:
        _openai_client.close()
    _openai_client = None


def _elapsed_ms(started: float) -> int:
    return max(0, int(round((time.perf_counter() - started) * 1000)))


def _provider_message(error: Exception) -> str:
    return getattr(error, "message", None) or str(error) or type(error).__name__


class ObservedOpenAI:
    """OpenAI client wrapper that records every completion attempt.

    No retries are made: one failed provider call is terminal for that
    request and is recorded before the error is raised.
    """

    def __init__(
        self,
        repository: Optional[CallRepository] = None,
        client: Optional[Any] = None,
        persist_breakdowns: Optional[bool] = None,
        use_tokenizer: Optional[bool] = None
    ):
        """Initialize the observed client.

        Args:
            repository: Call record repository (defaults to the shared one
                for the configured database path)
            client: OpenAI client (defaults to the shared lazily-created one)
            persist_breakdowns: Store prompt/response text and breakdown
                with successful records (defaults to configuration)
            use_tokenizer: Consult the tokenizer for real token ids
                (defaults to configuration)
        """
        config = get_config()
        self.repository = repository or get_repository(config.db_path)
        self._client = client
        self.persist_breakdowns = (
            config.breakdown.persist if persist_breakdowns is None else persist_breakdowns
        )
        self.use_tokenizer = (
            config.breakdown.use_tokenizer if use_tokenizer is None else use_tokenizer
        )

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_openai_client()
        return self._client

    def complete(self, prompt: str, model: str) -> CompletionResult:
        """Send a prompt as a single user message and record the outcome.

        Args:
            prompt: Prompt text (required)
            model: Model identifier (required)

        Returns:
            CompletionResult with response text, token counts, latency
            and token breakdown

        Raises:
            ValidationError: If prompt or model is missing; nothing is called
                or recorded
            ProviderError: If the provider call fails; an error record has
                been stored
            StorageError: If the call record cannot be stored
        """
        if not isinstance(prompt, str) or not prompt:
            raise ValidationError("prompt is required and cannot be empty")
        if not isinstance(model, str) or not model:
            raise ValidationError("model is required and cannot be empty")

        logger.debug("Sending {} char prompt to {}", len(prompt), model)
        started = time.perf_counter()
        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": prompt}]
            )
        except Exception as e:
            latency_ms = _elapsed_ms(started)
            message = _provider_message(e)
            logger.warning("Completion failed for {} after {}ms: {}", model, latency_ms, message)
            self.repository.insert(CallRecord.failure(
                model=model,
                prompt=prompt,
                latency_ms=latency_ms,
                error=message,
                retain_text=self.persist_breakdowns
            ))
            raise ProviderError(message, latency_ms) from e
        latency_ms = _elapsed_ms(started)

        usage = TokenUsage(
            prompt_tokens=_usage_count(response, "prompt_tokens"),
            completion_tokens=_usage_count(response, "completion_tokens")
        )
        text = _first_choice_text(response)
        breakdown = build_breakdown(prompt, text, usage, model, self.use_tokenizer)

        record = CallRecord.success(
            model=model,
            prompt=prompt,
            tokens_in=usage.prompt_tokens,
            tokens_out=usage.completion_tokens,
            latency_ms=latency_ms,
            response_text=text,
            token_breakdown=breakdown.to_json() if self.persist_breakdowns else None,
            retain_text=self.persist_breakdowns
        )
        self.repository.insert(record)

        logger.info(
            "Completion ok: model={} tokens_in={} tokens_out={} latency={}ms",
            model, usage.prompt_tokens, usage.completion_tokens, latency_ms
        )
        return CompletionResult(
            text=text,
            tokens_in=usage.prompt_tokens,
            tokens_out=usage.completion_tokens,
            latency_ms=latency_ms,
            breakdown=breakdown,
            record_id=record.id
        )


def _usage_count(response: Any, name: str) -> int:
    usage = getattr(response, "usage", None)
    if usage is None:
        return 0
    return getattr(usage, name, None) or 0


def _first_choice_text(response: Any) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    return getattr(message, "content", None) or ""
