"""
Metrics aggregation.

Computes summary statistics over call records and assembles the snapshot
served to the dashboard. Nothing here is persisted; every read recomputes.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from ai_observe.errors import BreakdownDecodeError
from ai_observe.storage.models import CallRecord, CallStatus
from ai_observe.storage.repository import CallRepository
from .breakdown import TokenBreakdown


@dataclass(frozen=True)
class AggregateStats:
    """Summary statistics over a set of call records.

    Token sums and average latency only cover successful calls. Rates and
    averages are 0 for an empty history.
    """
    total_requests: int = 0
    successful_requests: int = 0
    error_requests: int = 0
    success_rate: float = 0.0
    total_tokens_in: int = 0
    total_tokens_out: int = 0
    avg_latency_ms: int = 0

    @classmethod
    def from_totals(
        cls,
        total_requests: int,
        successful_requests: int,
        error_requests: int,
        total_tokens_in: int,
        total_tokens_out: int,
        avg_latency_ms: Optional[float]
    ) -> "AggregateStats":
        """Derive rates and rounded averages from raw totals."""
        success_rate = (
            successful_requests / total_requests * 100 if total_requests > 0 else 0.0
        )
        return cls(
            total_requests=total_requests,
            successful_requests=successful_requests,
            error_requests=error_requests,
            success_rate=success_rate,
            total_tokens_in=total_tokens_in,
            total_tokens_out=total_tokens_out,
            avg_latency_ms=_round_half_up(avg_latency_ms or 0)
        )

    @property
    def total_tokens(self) -> int:
        return self.total_tokens_in + self.total_tokens_out

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalRequests": self.total_requests,
            "successfulRequests": self.successful_requests,
            "errorRequests": self.error_requests,
            "successRate": self.success_rate,
            "totalTokensIn": self.total_tokens_in,
            "totalTokensOut": self.total_tokens_out,
            "avgLatencyMs": self.avg_latency_ms,
        }


def _round_half_up(value: float) -> int:
    # Halves round up
    return int(value + 0.5)


def compute_aggregate_stats(records: Iterable[CallRecord]) -> AggregateStats:
    """Compute summary statistics from call records held in memory.

    Args:
        records: Any iterable of call records (may be empty)

    Returns:
        AggregateStats for the records
    """
    total = 0
    successful = 0
    errors = 0
    tokens_in = 0
    tokens_out = 0
    latency_sum = 0

    for record in records:
        total += 1
        if record.status == CallStatus.OK:
            successful += 1
            tokens_in += record.tokens_in
            tokens_out += record.tokens_out
            latency_sum += record.latency_ms
        else:
            errors += 1

    return AggregateStats.from_totals(
        total_requests=total,
        successful_requests=successful,
        error_requests=errors,
        total_tokens_in=tokens_in,
        total_tokens_out=tokens_out,
        avg_latency_ms=latency_sum / successful if successful else None
    )


@dataclass(frozen=True)
class MetricsSnapshot:
    """Everything the dashboard needs for one refresh."""
    recent_requests: List[CallRecord]
    stats: AggregateStats
    latest_breakdown: Optional[TokenBreakdown] = None
    latest_model: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recentRequests": [record.to_dict() for record in self.recent_requests],
            "stats": self.stats.to_dict(),
            "latestTokenBreakdown": (
                self.latest_breakdown.to_dict() if self.latest_breakdown else None
            ),
            "latestModel": self.latest_model,
        }


def collect_metrics(repository: CallRepository, limit: int = 50) -> MetricsSnapshot:
    """Read the store and assemble a metrics snapshot.

    Statistics cover the full history; the listing is bounded by limit.
    A stored breakdown that fails to decode is logged and left out rather
    than failing the whole read.

    Args:
        repository: Call record repository to read from
        limit: Maximum number of recent records to list

    Returns:
        MetricsSnapshot for the current state of the store

    Raises:
        StorageError: If the store cannot be read
    """
    recent = repository.fetch_recent(limit)
    stats = AggregateStats.from_totals(**repository.get_call_totals())

    latest_breakdown = None
    latest_model = None
    latest = repository.fetch_latest_with_breakdown()
    if latest is not None:
        try:
            latest_breakdown = TokenBreakdown.from_json(latest.token_breakdown)
            latest_model = latest.model
        except BreakdownDecodeError as e:
            logger.warning("Failed to decode token breakdown for record {}: {}", latest.id, e)

    return MetricsSnapshot(
        recent_requests=recent,
        stats=stats,
        latest_breakdown=latest_breakdown,
        latest_model=latest_model
    )
