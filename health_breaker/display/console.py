"""Console report of health sweeps (one line per service per tick)."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Dict, List, Mapping, Optional

from rich.console import Console
from rich.text import Text

from health_breaker.breaker.models import CircuitState
from health_breaker.monitor.results import AggregatedResult

logger = logging.getLogger(__name__)

_CIRCUIT_STYLES: Dict[CircuitState, str] = {
    CircuitState.CLOSED: "green",
    CircuitState.HALF_OPEN: "yellow",
    CircuitState.OPEN: "bold red",
}


def format_result_lines(result: AggregatedResult) -> List[str]:
    """Plain-text lines for one service: status line, then error if any."""
    status = "UP" if result.available else "DOWN"
    lines = [f"{result.name}: {status} [Circuit: {result.circuit_state.value}]"]
    if not result.available and result.error:
        lines.append(f"  Error: {result.error}")
    return lines


def _styled_result(result: AggregatedResult) -> Text:
    text = Text()
    text.append(f"{result.name}: ", style="bold")
    if result.available:
        text.append("✅ UP", style="bold bright_green")
    else:
        text.append("❌ DOWN", style="bold red")
    text.append(" [Circuit: ")
    text.append(result.circuit_state.value, style=_CIRCUIT_STYLES[result.circuit_state])
    text.append("]")
    if result.failure_count:
        text.append(f" failures={result.failure_count}", style="dim")
    if not result.available and result.error:
        text.append(f"\n  Error: {result.error}", style="red")
    return text


def render_results(
    results: Mapping[str, AggregatedResult],
    console: Console,
    *,
    title: str = "Health Check Results",
) -> None:
    """Print a headed block with one styled entry per service."""
    ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    console.print()
    console.print(Text(f"=== {title} ({ts}) ===", style="bold cyan"))
    for name in sorted(results):
        console.print(_styled_result(results[name]))


def render_json(results: Mapping[str, AggregatedResult], console: Console) -> None:
    """Print results as a JSON object keyed by service name."""
    payload = {name: results[name].to_dict() for name in sorted(results)}
    console.print_json(json.dumps(payload))


class ConsoleReporter:
    """Monitor sink printing each sweep to the console.

    Also writes a one-line summary per service to the log file so the
    console and the log tell the same story.
    """

    def __init__(self, console: Optional[Console] = None, *, title: str = "Health Check Results"):
        self._console = console or Console()
        self._title = title

    def __call__(self, results: Mapping[str, AggregatedResult]) -> None:
        render_results(results, self._console, title=self._title)
        for name in sorted(results):
            for line in format_result_lines(results[name]):
                logger.info("%s", line)
