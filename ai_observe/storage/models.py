"""
Data models for storage layer.

Defines the persisted call record and its status.
"""

import hashlib
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class CallStatus(Enum):
    """Outcome of a single completion attempt."""
    OK = "ok"
    ERROR = "error"


def hash_prompt(prompt: str) -> str:
    """Return the SHA-256 hex digest of a prompt."""
    return hashlib.sha256(prompt.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CallRecord:
    """Immutable record of one completion attempt.

    Append-only rows that form the history the dashboard reads from.
    Once written, these records must never be modified.
    """
    id: str
    created_at: datetime
    model: str
    prompt_hash: str
    prompt_chars: int
    tokens_in: int
    tokens_out: int
    latency_ms: int
    status: CallStatus
    error: Optional[str] = None
    prompt_text: Optional[str] = None
    response_text: Optional[str] = None
    token_breakdown: Optional[str] = None

    def __post_init__(self):
        """Validate status-dependent fields and non-negative counters."""
        for name in ("prompt_chars", "tokens_in", "tokens_out", "latency_ms"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")

        if self.status == CallStatus.ERROR:
            if self.tokens_in != 0 or self.tokens_out != 0:
                raise ValueError("error records must have zero tokens")
            if not self.error:
                raise ValueError("error records require an error message")
            if self.token_breakdown is not None:
                raise ValueError("error records cannot carry a token breakdown")
        elif self.error is not None:
            raise ValueError("ok records cannot carry an error message")

    @classmethod
    def success(
        cls,
        model: str,
        prompt: str,
        tokens_in: int,
        tokens_out: int,
        latency_ms: int,
        response_text: Optional[str] = None,
        token_breakdown: Optional[str] = None,
        retain_text: bool = False
    ) -> "CallRecord":
        """Build a successful record with a fresh id and timestamp."""
        return cls(
            id=uuid.uuid4().hex,
            created_at=datetime.now(timezone.utc),
            model=model,
            prompt_hash=hash_prompt(prompt),
            prompt_chars=len(prompt),
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            latency_ms=latency_ms,
            status=CallStatus.OK,
            prompt_text=prompt if retain_text else None,
            response_text=response_text if retain_text else None,
            token_breakdown=token_breakdown
        )

    @classmethod
    def failure(
        cls,
        model: str,
        prompt: str,
        latency_ms: int,
        error: str,
        retain_text: bool = False
    ) -> "CallRecord":
        """Build an error record with zero tokens."""
        return cls(
            id=uuid.uuid4().hex,
            created_at=datetime.now(timezone.utc),
            model=model,
            prompt_hash=hash_prompt(prompt),
            prompt_chars=len(prompt),
            tokens_in=0,
            tokens_out=0,
            latency_ms=latency_ms,
            status=CallStatus.ERROR,
            error=error or "Unknown provider error",
            prompt_text=prompt if retain_text else None
        )

    @property
    def total_tokens(self) -> int:
        return self.tokens_in + self.tokens_out

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the metrics endpoint listing."""
        return {
            "id": self.id,
            "createdAt": self.created_at.isoformat(),
            "model": self.model,
            "promptHash": self.prompt_hash,
            "promptChars": self.prompt_chars,
            "tokensIn": self.tokens_in,
            "tokensOut": self.tokens_out,
            "latencyMs": self.latency_ms,
            "status": self.status.value,
            "error": self.error,
            "promptText": self.prompt_text,
            "responseText": self.response_text,
            "tokenBreakdown": self.token_breakdown,
        }
