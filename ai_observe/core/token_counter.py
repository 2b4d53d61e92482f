"""
Token counting and tokenizer capability.

Holds provider-reported token usage and a one-time probe for a real
tokenizer. The probe result is cached for the life of the process.
"""

from dataclasses import dataclass
from typing import List, Optional

import tiktoken
from loguru import logger

FALLBACK_ENCODING = "cl100k_base"


@dataclass(frozen=True)
class TokenUsage:
    """Token counts reported by the provider for one call."""
    prompt_tokens: int
    completion_tokens: int

    def __post_init__(self):
        """Validate token counts are non-negative."""
        if self.prompt_tokens < 0:
            raise ValueError("prompt_tokens cannot be negative")
        if self.completion_tokens < 0:
            raise ValueError("completion_tokens cannot be negative")

    @property
    def total_tokens(self) -> int:
        """Total tokens used (prompt + completion)."""
        return self.prompt_tokens + self.completion_tokens


_tokenizer_available: Optional[bool] = None


def tokenizer_available() -> bool:
    """Report whether a real tokenizer can be used.

    The first call loads the fallback encoding; encoding files may need to
    be fetched, so this can fail offline. The answer is cached and never
    re-probed.
    """
    global _tokenizer_available
    if _tokenizer_available is None:
        try:
            tiktoken.get_encoding(FALLBACK_ENCODING)
            _tokenizer_available = True
            logger.debug("Tokenizer available, using real token boundaries")
        except Exception as e:
            _tokenizer_available = False
            logger.info("Tokenizer unavailable, using approximate segmentation: {}", e)
    return _tokenizer_available


def reset_tokenizer_probe() -> None:
    """Forget the cached probe result."""
    global _tokenizer_available
    _tokenizer_available = None


def _encoding_for(model: str) -> "tiktoken.Encoding":
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        return tiktoken.get_encoding(FALLBACK_ENCODING)


def encode(text: str, model: str) -> List[int]:
    """Encode text into token ids using the model's encoding."""
    return _encoding_for(model).encode(text)


def decode_token(token_id: int, model: str) -> str:
    """Decode a single token id back into its text."""
    return _encoding_for(model).decode([token_id])
