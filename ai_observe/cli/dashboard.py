"""
Terminal dashboard.

Renders aggregate statistics, recent requests and the latest token map
with rich, refreshing on a fixed polling interval.
"""

import colorsys
import time
from typing import List, Optional

from loguru import logger
from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ai_observe.core.aggregator import AggregateStats, MetricsSnapshot, collect_metrics
from ai_observe.core.breakdown import TokenBreakdown
from ai_observe.storage.models import CallRecord, CallStatus
from ai_observe.storage.repository import CallRepository

RESPONSE_PREVIEW_CHARS = 100


def _hsl_to_hex(hue: float, saturation: float, lightness: float) -> str:
    r, g, b = colorsys.hls_to_rgb(hue / 360.0, lightness, saturation)
    return f"#{int(r * 255):02x}{int(g * 255):02x}{int(b * 255):02x}"


def token_color(index: int, is_prompt: bool) -> str:
    """Background colour for a token chip; prompt and response use distinct hue bands."""
    if is_prompt:
        return _hsl_to_hex(90 + (index * 20) % 80, 0.7, 0.85)
    return _hsl_to_hex(120 + (index * 15) % 60, 0.7, 0.85)


def render_stats(stats: AggregateStats) -> Table:
    """Render the four headline numbers."""
    table = Table.grid(padding=(0, 4))
    for _ in range(4):
        table.add_column()
    table.add_row(
        Text("Total Requests", style="dim"),
        Text("Success Rate", style="dim"),
        Text("Avg Latency", style="dim"),
        Text("Total Tokens", style="dim"),
    )
    table.add_row(
        Text(str(stats.total_requests), style="bold blue"),
        Text(f"{stats.success_rate:.1f}%", style="bold green"),
        Text(f"{stats.avg_latency_ms}ms", style="bold magenta"),
        Text(f"{stats.total_tokens:,}", style="bold yellow"),
    )
    return table


def render_requests(records: List[CallRecord]) -> RenderableType:
    """Render recent requests, newest first."""
    if not records:
        return Text("No requests yet", style="dim")

    table = Table(expand=True, show_edge=False)
    table.add_column("Model")
    table.add_column("Status")
    table.add_column("Summary")
    table.add_column("Time", justify="right", style="dim")

    for record in records:
        ok = record.status == CallStatus.OK
        summary = Text(
            f"{record.prompt_chars} chars • {record.total_tokens} tokens • {record.latency_ms}ms"
        )
        if record.error:
            summary.append(f"\n{record.error}", style="red")
        table.add_row(
            Text(record.model),
            Text(record.status.value, style="bold green" if ok else "bold red"),
            summary,
            record.created_at.astimezone().strftime("%H:%M:%S"),
        )
    return table


def _token_chips(segments: List[str], is_prompt: bool) -> Text:
    chips = Text()
    for index, piece in enumerate(segments):
        if index:
            chips.append(" ")
        chips.append(f" {piece} ", style=f"black on {token_color(index, is_prompt)}")
    return chips


def render_token_map(breakdown: TokenBreakdown, model: str) -> Panel:
    """Render prompt and response tokens as coloured chips."""
    prompt_segments, response_segments = breakdown.segments(model)

    response_preview = breakdown.response_text[:RESPONSE_PREVIEW_CHARS]
    if len(breakdown.response_text) > RESPONSE_PREVIEW_CHARS:
        response_preview += "..."

    body = Group(
        Text(f"Prompt Tokens ({len(breakdown.prompt)})", style="bold"),
        _token_chips(prompt_segments, is_prompt=True),
        Text(f'Original: "{breakdown.prompt_text}"', style="dim"),
        Text(""),
        Text(f"Response Tokens ({len(breakdown.response)})", style="bold"),
        _token_chips(response_segments, is_prompt=False),
        Text(f'Original: "{response_preview}"', style="dim"),
    )
    subtitle = f"{breakdown.total_tokens} tokens • {model}"
    if breakdown.source != "tokenizer":
        subtitle += " • approximate"
    return Panel(body, title="Token Breakdown", subtitle=subtitle, expand=True)


def render_snapshot(snapshot: MetricsSnapshot) -> RenderableType:
    """Render a full dashboard frame."""
    parts: List[RenderableType] = [
        Panel(render_stats(snapshot.stats), title="Dashboard"),
        Panel(render_requests(snapshot.recent_requests), title="Recent Requests"),
    ]
    if snapshot.latest_breakdown is not None:
        parts.append(render_token_map(snapshot.latest_breakdown, snapshot.latest_model or ""))
    return Group(*parts)


class Dashboard:
    """Polling dashboard over the metrics store.

    Each tick performs one read and replaces the whole frame.
    """

    def __init__(
        self,
        repository: CallRepository,
        limit: int = 50,
        interval: float = 3.0,
        console: Optional[Console] = None
    ):
        self.repository = repository
        self.limit = limit
        self.interval = interval
        self.console = console or Console()

    def frame(self) -> RenderableType:
        """Read the store once and render it, or an error frame on failure."""
        try:
            snapshot = collect_metrics(self.repository, self.limit)
        except Exception as e:
            logger.error("Failed to fetch metrics: {}", e)
            return Text("Failed to load metrics", style="bold red")
        return render_snapshot(snapshot)

    def run(self, once: bool = False, max_ticks: Optional[int] = None) -> None:
        """Render on mount, then on every interval until interrupted.

        Args:
            once: Render a single frame and return
            max_ticks: Stop after this many refreshes (None runs forever)
        """
        if once:
            self.console.print(self.frame())
            return

        ticks = 0
        with Live(self.frame(), console=self.console, refresh_per_second=4) as live:
            try:
                while max_ticks is None or ticks < max_ticks:
                    time.sleep(self.interval)
                    live.update(self.frame())
                    ticks += 1
            except KeyboardInterrupt:
                pass
