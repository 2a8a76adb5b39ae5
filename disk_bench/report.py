"""Report generation for benchmark results."""

from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

import matplotlib.pyplot as plt
import numpy as np
from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from .config import SweepConfig
from .results import Metrics, ResultEntry, ResultSet

GOOD_THRESHOLD_MS = 0.3
WARNING_THRESHOLD_MS = 0.5

RULE = "=" * 79
TABLE_RULE = "─" * 33 + "┼" + "─" * 37 + "┼" + "─" * 37
TABLE_END = "─" * 33 + "┴" + "─" * 37 + "┴" + "─" * 37


class LatencyTier(Enum):
    """Assessment of a p99.9 completion latency."""

    GOOD = "good"
    WARNING = "warning"
    POOR = "poor"

    @property
    def color(self) -> str:
        return _TIER_DETAILS[self][0]

    @property
    def marker(self) -> str:
        return _TIER_DETAILS[self][1]

    @property
    def assessment(self) -> str:
        """Short verdict, e.g. "Excellent"."""
        return _TIER_DETAILS[self][2]

    @property
    def description(self) -> str:
        return _TIER_DETAILS[self][3]

    @property
    def report_text(self) -> str:
        return _TIER_DETAILS[self][4]


_TIER_DETAILS = {
    LatencyTier.GOOD: (
        "green",
        "✓",
        "Excellent",
        "Excellent (NVMe-class)",
        "EXCELLENT - True NVMe-class latency",
    ),
    LatencyTier.WARNING: (
        "yellow",
        "◐",
        "Acceptable",
        "Acceptable",
        "ACCEPTABLE - Reasonable latency",
    ),
    LatencyTier.POOR: (
        "red",
        "✗",
        "Poor",
        "Poor (not NVMe-class responsiveness)",
        "POOR - Not NVMe-class responsiveness (>0.3ms threshold)",
    ),
}

THRESHOLD_LEGEND = [
    (LatencyTier.GOOD, "< 0.3ms ", "Excellent (true NVMe-class performance)"),
    (LatencyTier.WARNING, "< 0.5ms ", "Acceptable"),
    (LatencyTier.POOR, ">= 0.5ms", "Poor (likely throttled, shared, or not true NVMe)"),
]


def classify_latency(ms: float) -> LatencyTier:
    """Tier for a p99.9 latency; 0.3 and 0.5 belong to the slower tier."""
    if ms < GOOD_THRESHOLD_MS:
        return LatencyTier.GOOD
    if ms < WARNING_THRESHOLD_MS:
        return LatencyTier.WARNING
    return LatencyTier.POOR


def format_iops(iops: float) -> str:
    """IOPS truncated to an integer with thousands separators."""
    return f"{int(iops):,}"


def format_ms(ms: float) -> str:
    return f"{ms:.3f}"


# ---------------------------------------------------------------------------
# Console output
# ---------------------------------------------------------------------------


def make_console(use_color: bool) -> Console:
    """Console that emits colour only when use_color is set."""
    return Console(color_system="auto" if use_color else None, highlight=False)


def _latency_cell(ms: float, use_color: bool) -> Text:
    style = classify_latency(ms).color if use_color else ""
    return Text(format_ms(ms), style=style)


def build_results_table(results: ResultSet, use_color: bool = True) -> Table:
    """Rich table with one row per test case, p99.9 cells coloured by tier."""
    table = Table(
        title="BENCHMARK RESULTS",
        box=box.SIMPLE_HEAVY,
        header_style="bold" if use_color else "",
        title_style="bold cyan" if use_color else "",
    )
    table.add_column("Test Name", no_wrap=True)
    table.add_column("Read IOPS", justify="right")
    table.add_column("Avg (ms)", justify="right")
    table.add_column("p99.9", justify="right")
    table.add_column("Write IOPS", justify="right")
    table.add_column("Avg (ms)", justify="right")
    table.add_column("p99.9", justify="right")

    for entry in results:
        m = entry.metrics
        table.add_row(
            entry.name,
            format_iops(m.read_iops),
            format_ms(m.read_avg_ms),
            _latency_cell(m.read_p999_ms, use_color),
            format_iops(m.write_iops),
            format_ms(m.write_avg_ms),
            _latency_cell(m.write_p999_ms, use_color),
        )
    return table


def _assessment_line(label: str, ms: float, use_color: bool) -> Text:
    tier = classify_latency(ms)
    line = Text(f"    {label} p99.9 Latency:  {format_ms(ms)} ms  ")
    line.append(f"{tier.marker} {tier.description}", style=tier.color if use_color else "")
    return line


def print_summary(console: Console, results: ResultSet, use_color: bool = True) -> None:
    """Print the key metrics for the 4k/qd1/jobs1 70/30 test, if it ran."""
    bold = "bold" if use_color else ""
    console.print(RULE, style="bold cyan" if use_color else "")
    console.print(f"{'KEY METRICS (qd1_jobs1)':^79}", style=bold)
    console.print(RULE, style="bold cyan" if use_color else "")
    console.print()

    entry = results.find_highlighted()
    if entry is not None:
        m = entry.metrics
        console.print("  4K Random Read/Write (70/30) at Queue Depth 1:", style=bold)
        console.print()
        console.print(_assessment_line("Read ", m.read_p999_ms, use_color))
        console.print(_assessment_line("Write", m.write_p999_ms, use_color))
        console.print()
        console.print(f"    Read  IOPS: {format_iops(m.read_iops)}")
        console.print(f"    Write IOPS: {format_iops(m.write_iops)}")
        console.print()

    console.print("  Latency Thresholds:", style=bold)
    for tier, threshold, text in THRESHOLD_LEGEND:
        line = Text("    ")
        line.append(threshold, style=tier.color if use_color else "")
        line.append(f" = {text}")
        console.print(line)
    console.print()


def print_console_report(
    results: ResultSet,
    console: Optional[Console] = None,
    use_color: bool = True,
) -> None:
    """
    Print the results table and key metrics summary.

    Args:
        results: Sweep results
        console: Target console (default: a new one honouring use_color)
        use_color: Colour p99.9 values and headings
    """
    console = console or make_console(use_color)
    console.print(build_results_table(results, use_color))
    console.print()
    print_summary(console, results, use_color)


# ---------------------------------------------------------------------------
# Plain text report
# ---------------------------------------------------------------------------


def render_header(config: SweepConfig) -> List[str]:
    """Run configuration block written at the top of the text report."""
    return [
        RULE,
        f"{'VPS Disk Latency Benchmark Results':^79}".rstrip(),
        RULE,
        "",
        f"Host:       {config.hosttag}",
        f"Timestamp:  {config.timestamp} (UTC)",
        f"Test File:  {config.test_file} ({config.file_size_gb} GiB)",
        f"Runtime:    {config.runtime_sec}s per test (+ {config.warmup_sec}s warmup)",
        f"I/O Engine: {config.engine}",
        f"Direct I/O: {config.direct}",
        "",
        RULE,
        "",
    ]


def _table_row(name: str, m: Metrics) -> str:
    return (
        f"{name:<32} | {format_iops(m.read_iops):>12} {format_ms(m.read_avg_ms):>10} "
        f"{format_ms(m.read_p999_ms):>10} | {format_iops(m.write_iops):>12} "
        f"{format_ms(m.write_avg_ms):>10} {format_ms(m.write_p999_ms):>10}"
    )


def render_results_table(results: ResultSet) -> List[str]:
    lines = [
        f"{'Test Name':<32} | {'Read IOPS':>12} {'Avg (ms)':>10} {'p99.9':>10} | "
        f"{'Write IOPS':>12} {'Avg (ms)':>10} {'p99.9':>10}",
        TABLE_RULE,
    ]
    lines.extend(_table_row(entry.name, entry.metrics) for entry in results)
    lines.append(TABLE_END)
    return lines


def render_summary(entry: Optional[ResultEntry]) -> List[str]:
    """Key metrics block for the highlighted entry; empty if there is none."""
    if entry is None:
        return []
    m = entry.metrics
    return [
        "4K Random Read/Write (70/30) at Queue Depth 1:",
        "",
        f"  Read  p99.9 Latency:  {format_ms(m.read_p999_ms)} ms",
        f"  Write p99.9 Latency:  {format_ms(m.write_p999_ms)} ms",
        f"  Read  IOPS:           {format_iops(m.read_iops)}",
        f"  Write IOPS:           {format_iops(m.write_iops)}",
        "",
        "Assessment:",
        f"  Read:  {classify_latency(m.read_p999_ms).report_text}",
        f"  Write: {classify_latency(m.write_p999_ms).report_text}",
    ]


RAW_DATA_HEADING = ["RAW DATA", RULE, ""]


def render_raw_line(entry: ResultEntry) -> str:
    m = entry.metrics
    return (
        f"{entry.name} | read IOPS: {m.read_iops} avg(ms): {format_ms(m.read_avg_ms)} "
        f"p99.9(ms): {format_ms(m.read_p999_ms)} || write IOPS: {m.write_iops} "
        f"avg(ms): {format_ms(m.write_avg_ms)} p99.9(ms): {format_ms(m.write_p999_ms)}"
    )


def render_raw_data(results: ResultSet) -> List[str]:
    return [render_raw_line(entry) for entry in results]


def render_text_report(results: ResultSet, include_raw_data: bool = True) -> List[str]:
    """
    Results sections of the text report (everything after the header).

    A live sweep writes the raw data lines as each test finishes, so it
    renders the remaining sections with ``include_raw_data=False``.
    """
    lines = ["DETAILED RESULTS", RULE, ""]
    lines.extend(render_results_table(results))
    lines.extend(["", ""])

    summary = render_summary(results.find_highlighted())
    if summary:
        lines.extend(["KEY METRICS (qd1_jobs1 - Most Realistic Workload)", RULE, ""])
        lines.extend(summary)
        lines.extend(["", ""])

    lines.extend(["LATENCY THRESHOLDS", RULE])
    lines.extend(f"  {threshold} = {text}" for _, threshold, text in THRESHOLD_LEGEND)
    if include_raw_data:
        lines.extend(["", ""] + RAW_DATA_HEADING)
        lines.extend(render_raw_data(results))
    return lines


def write_text_header(config: SweepConfig, path: Optional[Union[str, Path]] = None) -> Path:
    """Start the text report with the run configuration (truncates the file)."""
    path = Path(path or config.txt_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        f.write("\n".join(render_header(config)) + "\n")
    return path


def append_text_lines(path: Union[str, Path], lines: List[str]) -> None:
    with open(path, "a") as f:
        f.write("\n".join(lines) + "\n")


def append_text_report(
    results: ResultSet,
    path: Union[str, Path],
    include_raw_data: bool = True,
) -> None:
    """Append the table, key metrics and (optionally) raw data to the text report."""
    append_text_lines(path, render_text_report(results, include_raw_data))


# ---------------------------------------------------------------------------
# Chart
# ---------------------------------------------------------------------------


def plot_p999_latency(
    results: ResultSet,
    output_path: Union[str, Path],
    title: str = "p99.9 Completion Latency",
) -> Optional[Path]:
    """
    Bar chart of read and write p99.9 latency per test case.

    Dashed lines mark the 0.3 ms and 0.5 ms assessment thresholds.

    Returns:
        Path of the saved PNG, or None if there were no results to plot
    """
    if not len(results):
        return None

    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    names = [entry.name for entry in results]
    read_values = [entry.metrics.read_p999_ms for entry in results]
    write_values = [entry.metrics.write_p999_ms for entry in results]
    x = np.arange(len(names))
    width = 0.4

    fig, ax = plt.subplots(figsize=(max(8, len(names) * 0.6), 6))
    ax.bar(x - width / 2, read_values, width, label="Read p99.9", color="tab:blue")
    ax.bar(x + width / 2, write_values, width, label="Write p99.9", color="tab:orange")
    ax.axhline(GOOD_THRESHOLD_MS, color="green", linestyle="--", linewidth=1, label="0.3 ms")
    ax.axhline(WARNING_THRESHOLD_MS, color="red", linestyle="--", linewidth=1, label="0.5 ms")

    ax.set_xticks(x)
    ax.set_xticklabels(names, rotation=60, ha="right", fontsize=8)
    ax.set_ylabel("Latency (ms)", fontsize=12)
    ax.set_title(title, fontsize=14)
    ax.grid(True, axis="y", alpha=0.3)
    ax.legend()

    plt.tight_layout()
    plt.savefig(path, dpi=150, bbox_inches="tight")
    plt.close(fig)

    print(f"Saved plot to {path}")
    return path
