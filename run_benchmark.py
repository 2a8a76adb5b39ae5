#!/usr/bin/env python3
"""
Disk Latency Benchmark Tool

Runs a latency-focused fio sweep (block size x read mix x queue depth x jobs)
against a scratch file and reports IOPS, mean and p99.9 completion latency.

Usage:
    # Defaults (4k/8k, 70/50 read mix, qd 1/2/4, jobs 1/2)
    python run_benchmark.py

    # Overrides from a YAML file
    python run_benchmark.py --config bench.yaml

    # Overrides from the environment
    BS_LIST="4k" IODEPTHS="1" RUNTIME_SEC=10 python run_benchmark.py
"""

import argparse
import logging
import sys
from typing import Any, Dict, Optional

from rich.console import Console

from disk_bench.config import (
    SweepConfig,
    check_required_tools,
    load_yaml_config,
    resolve_config,
)
from disk_bench.errors import BenchError
from disk_bench.fio import FioClient, probe_capabilities
from disk_bench.report import (
    append_text_report,
    make_console,
    plot_p999_latency,
    print_console_report,
    write_text_header,
)
from disk_bench.runner import SweepRunner

logger = logging.getLogger(__name__)


def print_banner(console: Console, use_color: bool) -> None:
    style = "bold cyan" if use_color else ""
    console.print("=" * 79, style=style)
    console.print(f"{'VPS Disk Latency Benchmark - Latency-Focused Testing':^79}", style=style)
    console.print("=" * 79, style=style)
    console.print()


def print_config(console: Console, config: SweepConfig, use_color: bool) -> None:
    bold = "bold" if use_color else ""
    console.print("Configuration:", style=bold)
    console.print(f"  Host:       {config.hosttag}")
    console.print(f"  Timestamp:  {config.timestamp}")
    console.print(f"  Test file:  {config.test_file}")
    console.print(f"  File size:  {config.file_size_gb} GiB")
    console.print(f"  Runtime:    {config.runtime_sec}s per test (+ {config.warmup_sec}s warmup)")
    console.print(f"  I/O Engine: {config.engine}")
    console.print(f"  Direct I/O: {config.direct}")
    console.print(f"  Sweep:      bs={' '.join(config.block_sizes)} "
                  f"mix={' '.join(map(str, config.mixes))} "
                  f"qd={' '.join(map(str, config.iodepths))} "
                  f"jobs={' '.join(map(str, config.jobs))}")
    console.print()
    console.print("Output files:", style=bold)
    console.print(f"  Summary:    {config.txt_path}")
    console.print(f"  Raw JSON:   {config.json_path}")
    console.print()


def run(config: SweepConfig, console: Console, use_color: bool, plot: bool = True) -> None:
    """
    Run the sweep and write every report.

    Args:
        config: Resolved sweep configuration
        console: Console for progress and reports
        use_color: Colour console output
        plot: Also save a p99.9 latency chart
    """
    capabilities = probe_capabilities()
    if not capabilities.percentile_options():
        logger.info("fio does not advertise percentile options; relying on its defaults")
    logger.debug("fio capabilities: %s", capabilities)

    print_banner(console, use_color)
    print_config(console, config, use_color)

    write_text_header(config)
    runner = SweepRunner(config, FioClient(config, capabilities), text_report=config.txt_path)
    results = runner.run_sweep()

    print_console_report(results, console, use_color)
    append_text_report(results, config.txt_path, include_raw_data=False)
    if plot:
        try:
            plot_p999_latency(
                results,
                config.plot_path,
                title=f"{config.hosttag} - p99.9 Completion Latency",
            )
        except Exception as e:
            print(f"Warning: Could not save latency plot: {e}")

    console.print("=" * 79, style="bold cyan" if use_color else "")
    console.print(f"{'OUTPUT FILES':^79}", style="bold" if use_color else "")
    console.print("=" * 79, style="bold cyan" if use_color else "")
    console.print()
    console.print(f"  Text Summary:  {config.txt_path}")
    console.print(f"  Raw JSON:      {config.json_path}")
    console.print()
    console.print("Benchmark complete!", style="green" if use_color else "")


def main(argv: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(
        description="Disk Latency Benchmark Tool (fio randrw sweep)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment overrides:
    FILE_DIR FILE_SIZE_GB RUNTIME_SEC WARMUP_SEC IODEPTHS BS_LIST
    MIX_LIST JOBS_LIST ENGINE DIRECT OUTPUT_DIR HOSTTAG

Examples:
    python run_benchmark.py --config bench.yaml
    BS_LIST="4k" MIX_LIST="70" IODEPTHS="1" JOBS_LIST="1" python run_benchmark.py
        """,
    )
    parser.add_argument(
        "--config", "-c",
        help="YAML file of overrides keyed by setting name (e.g., bench.yaml)",
    )
    parser.add_argument(
        "--output", "-o",
        help="Output directory (overrides OUTPUT_DIR)",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable coloured console output",
    )
    parser.add_argument(
        "--no-plot",
        action="store_true",
        help="Do not save the p99.9 latency chart",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    use_color = not args.no_color and Console().is_terminal
    console = make_console(use_color)

    try:
        overrides: Dict[str, Any] = load_yaml_config(args.config) if args.config else {}
        check_required_tools()
        config = resolve_config(overrides=overrides, output_dir=args.output)
    except BenchError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        run(config, console, use_color, plot=not args.no_plot)
    except KeyboardInterrupt:
        print("\nBenchmark interrupted by user.")
        print(f"Partial results: {config.json_path}")
        print(f"                 {config.txt_path}")
        sys.exit(1)


if __name__ == "__main__":
    main()
