"""
Token breakdown records.

A breakdown captures the token ids for a prompt and its response together
with the original text, so the dashboard can later draw a token map. It is
persisted as versioned JSON and decoded strictly on read.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from loguru import logger

from ai_observe.errors import BreakdownDecodeError
from .segmenter import segment
from .token_counter import TokenUsage, decode_token, encode, tokenizer_available

BREAKDOWN_VERSION = 1

SOURCE_TOKENIZER = "tokenizer"
SOURCE_APPROXIMATE = "approximate"
_VALID_SOURCES = {SOURCE_TOKENIZER, SOURCE_APPROXIMATE}


@dataclass(frozen=True)
class TokenBreakdown:
    """Token ids and source text for one prompt/response pair."""
    prompt: Tuple[int, ...]
    response: Tuple[int, ...]
    prompt_text: str
    response_text: str
    source: str = SOURCE_APPROXIMATE
    version: int = BREAKDOWN_VERSION

    def __post_init__(self):
        """Validate source and version."""
        if self.source not in _VALID_SOURCES:
            raise ValueError(f"source must be one of: {sorted(_VALID_SOURCES)}")
        if self.version != BREAKDOWN_VERSION:
            raise ValueError(f"unsupported breakdown version: {self.version}")

    @property
    def total_tokens(self) -> int:
        return len(self.prompt) + len(self.response)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the API shape."""
        return {
            "version": self.version,
            "source": self.source,
            "prompt": list(self.prompt),
            "response": list(self.response),
            "promptText": self.prompt_text,
            "responseText": self.response_text,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_json(cls, raw: str) -> "TokenBreakdown":
        """Decode a persisted breakdown.

        Args:
            raw: JSON text previously produced by to_json

        Returns:
            Decoded TokenBreakdown

        Raises:
            BreakdownDecodeError: If the JSON is malformed, the version is
                unsupported, or a field is missing or has the wrong type
        """
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise BreakdownDecodeError(f"Breakdown is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise BreakdownDecodeError("Breakdown must be a JSON object")

        version = data.get("version")
        if version != BREAKDOWN_VERSION:
            raise BreakdownDecodeError(f"Unsupported breakdown version: {version!r}")

        prompt = _int_list(data, "prompt")
        response = _int_list(data, "response")
        prompt_text = _text(data, "promptText")
        response_text = _text(data, "responseText")

        source = data.get("source")
        if source not in _VALID_SOURCES:
            raise BreakdownDecodeError(f"Unknown breakdown source: {source!r}")

        return cls(
            prompt=tuple(prompt),
            response=tuple(response),
            prompt_text=prompt_text,
            response_text=response_text,
            source=source,
            version=version
        )

    def segments(self, model: str) -> Tuple[List[str], List[str]]:
        """Display text for every prompt and response token.

        Real token ids are decoded one by one. Approximate breakdowns, or
        any decode failure, fall back to segmenting the original text into
        as many pieces as there are ids.

        Args:
            model: Model the breakdown was produced for

        Returns:
            Tuple of (prompt segments, response segments)
        """
        if self.source == SOURCE_TOKENIZER:
            try:
                return (
                    [decode_token(token_id, model) for token_id in self.prompt],
                    [decode_token(token_id, model) for token_id in self.response]
                )
            except Exception as e:
                logger.warning("Token decode failed, using approximate segments: {}", e)
        return (
            segment(self.prompt_text, len(self.prompt)),
            segment(self.response_text, len(self.response))
        )


def _int_list(data: Dict[str, Any], key: str) -> List[int]:
    value = data.get(key)
    if not isinstance(value, list):
        raise BreakdownDecodeError(f"Breakdown field '{key}' must be a list")
    for item in value:
        if isinstance(item, bool) or not isinstance(item, int):
            raise BreakdownDecodeError(f"Breakdown field '{key}' must contain integers")
    return value


def _text(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise BreakdownDecodeError(f"Breakdown field '{key}' must be a string")
    return value


def build_breakdown(
    prompt: str,
    response: str,
    usage: TokenUsage,
    model: str,
    use_tokenizer: bool = True
) -> TokenBreakdown:
    """Build a breakdown for a completed call.

    Uses real token ids when the tokenizer is enabled and available.
    Otherwise ids are sequential placeholders sized by the provider's
    counts: prompt ids run from 0 and response ids continue after them.

    Args:
        prompt: Prompt text sent to the provider
        response: Response text returned by the provider
        usage: Provider-reported token counts
        model: Model identifier, used to select the encoding
        use_tokenizer: Whether to consult the tokenizer at all

    Returns:
        TokenBreakdown for the call
    """
    if use_tokenizer and tokenizer_available():
        try:
            return TokenBreakdown(
                prompt=tuple(encode(prompt, model)),
                response=tuple(encode(response, model)),
                prompt_text=prompt,
                response_text=response,
                source=SOURCE_TOKENIZER
            )
        except Exception as e:
            logger.warning("Token encoding failed for {}, using approximation: {}", model, e)

    return TokenBreakdown(
        prompt=tuple(range(usage.prompt_tokens)),
        response=tuple(range(usage.prompt_tokens, usage.total_tokens)),
        prompt_text=prompt,
        response_text=response,
        source=SOURCE_APPROXIMATE
    )
