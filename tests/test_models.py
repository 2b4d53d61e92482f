"""
Unit tests for the call record model.

Tests status invariants, factories and serialization.
"""

import hashlib
from datetime import datetime, timezone

import pytest

from ai_observe.storage.models import CallRecord, CallStatus, hash_prompt


def make_record(**overrides) -> CallRecord:
    """Create an ok record with overridable fields."""
    fields = dict(
        id="rec_1",
        created_at=datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc),
        model="gpt-4o",
        prompt_hash=hash_prompt("Hello"),
        prompt_chars=5,
        tokens_in=10,
        tokens_out=20,
        latency_ms=300,
        status=CallStatus.OK
    )
    fields.update(overrides)
    return CallRecord(**fields)


class TestCallRecordInvariants:
    """Test status-dependent validation."""

    def test_valid_ok_record(self):
        record = make_record()
        assert record.status == CallStatus.OK
        assert record.error is None
        assert record.total_tokens == 30

    def test_ok_record_cannot_carry_error(self):
        """Test ok records reject an error message."""
        with pytest.raises(ValueError, match="ok records cannot carry an error"):
            make_record(error="boom")

    def test_error_record_requires_zero_tokens(self):
        """Test error records reject non-zero token counts."""
        with pytest.raises(ValueError, match="zero tokens"):
            make_record(status=CallStatus.ERROR, error="boom", tokens_in=5, tokens_out=0)

    def test_error_record_requires_message(self):
        """Test error records reject a missing or empty message."""
        with pytest.raises(ValueError, match="require an error message"):
            make_record(status=CallStatus.ERROR, tokens_in=0, tokens_out=0)
        with pytest.raises(ValueError, match="require an error message"):
            make_record(status=CallStatus.ERROR, tokens_in=0, tokens_out=0, error="")

    def test_error_record_cannot_carry_breakdown(self):
        with pytest.raises(ValueError, match="token breakdown"):
            make_record(
                status=CallStatus.ERROR, tokens_in=0, tokens_out=0,
                error="boom", token_breakdown="{}"
            )

    def test_negative_values_rejected(self):
        """Test counters cannot be negative."""
        with pytest.raises(ValueError, match="latency_ms cannot be negative"):
            make_record(latency_ms=-1)
        with pytest.raises(ValueError, match="tokens_in cannot be negative"):
            make_record(tokens_in=-1)

    def test_record_is_immutable(self):
        """Test CallRecord is frozen."""
        record = make_record()
        with pytest.raises(Exception):
            record.model = "other"


class TestCallRecordFactories:
    """Test success and failure constructors."""

    def test_success_populates_derived_fields(self):
        """Test success() hashes the prompt and counts characters."""
        record = CallRecord.success(
            model="gpt-4o",
            prompt="Hello world",
            tokens_in=3,
            tokens_out=7,
            latency_ms=120
        )

        assert record.status == CallStatus.OK
        assert record.prompt_chars == 11
        assert record.prompt_hash == hashlib.sha256(b"Hello world").hexdigest()
        assert len(record.prompt_hash) == 64
        assert len(record.id) == 32
        assert record.created_at.tzinfo is not None
        assert record.prompt_text is None
        assert record.response_text is None

    def test_success_retains_text_when_asked(self):
        record = CallRecord.success(
            model="gpt-4o",
            prompt="Hello",
            tokens_in=1,
            tokens_out=1,
            latency_ms=1,
            response_text="Hi",
            retain_text=True
        )
        assert record.prompt_text == "Hello"
        assert record.response_text == "Hi"

    def test_failure_has_zero_tokens_and_message(self):
        """Test failure() always satisfies the error invariant."""
        record = CallRecord.failure(
            model="gpt-4o",
            prompt="Hello",
            latency_ms=42,
            error="Rate limit exceeded"
        )

        assert record.status == CallStatus.ERROR
        assert record.tokens_in == 0
        assert record.tokens_out == 0
        assert record.error == "Rate limit exceeded"
        assert record.latency_ms == 42

    def test_failure_with_empty_message_still_valid(self):
        record = CallRecord.failure(model="gpt-4o", prompt="Hello", latency_ms=1, error="")
        assert record.error

    def test_unique_ids(self):
        ids = {
            CallRecord.success("gpt-4o", "p", 1, 1, 1).id
            for _ in range(10)
        }
        assert len(ids) == 10


class TestCallRecordSerialization:
    """Test the API listing shape."""

    def test_to_dict_uses_camel_case(self):
        data = make_record().to_dict()

        assert data["id"] == "rec_1"
        assert data["createdAt"] == "2024-01-01T12:00:00+00:00"
        assert data["promptChars"] == 5
        assert data["tokensIn"] == 10
        assert data["tokensOut"] == 20
        assert data["latencyMs"] == 300
        assert data["status"] == "ok"
        assert data["error"] is None
        assert data["tokenBreakdown"] is None

    def test_to_dict_includes_stored_breakdown(self):
        data = make_record(token_breakdown='{"version":1}').to_dict()
        assert data["tokenBreakdown"] == '{"version":1}'
