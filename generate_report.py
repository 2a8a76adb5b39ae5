#!/usr/bin/env python3
"""
Regenerate benchmark reports from a saved JSON archive.

Usage:
    # Console report
    python generate_report.py --input bench_out/fio-host-20250101T000000Z.json

    # Also write the text report and chart
    python generate_report.py -i bench_out/fio-host-20250101T000000Z.json \
        -o report.txt --plot latency.png
"""

import argparse
import sys
from pathlib import Path
from typing import Any, List, Optional

from rich.console import Console

from disk_bench.archive import load_archive
from disk_bench.metrics import extract_metrics, job_name
from disk_bench.report import (
    make_console,
    plot_p999_latency,
    print_console_report,
    render_text_report,
)
from disk_bench.results import ResultSet


def results_from_documents(documents: List[Optional[Any]]) -> ResultSet:
    """
    Rebuild a ResultSet from archived fio documents.

    Test case names come from each document's job name; ``null`` slots
    (runs where fio produced no output) are named by position.
    """
    results = ResultSet()
    for index, document in enumerate(documents, 1):
        name = job_name(document) if isinstance(document, dict) else ""
        results.append(name or f"test_{index}", extract_metrics(document))
    return results


def main(argv: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(
        description="Regenerate benchmark reports from a JSON archive",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--input", "-i",
        required=True,
        help="JSON archive written by run_benchmark.py",
    )
    parser.add_argument(
        "--output", "-o",
        help="Write the plain-text results report to this file",
    )
    parser.add_argument(
        "--plot",
        help="Save the p99.9 latency chart to this PNG file",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable coloured console output",
    )

    args = parser.parse_args(argv)

    archive_path = Path(args.input)
    if not archive_path.exists():
        print(f"Error: Archive not found: {archive_path}", file=sys.stderr)
        sys.exit(1)

    try:
        documents = load_archive(archive_path)
    except ValueError as e:
        print(f"Error: Could not read archive {archive_path}: {e}", file=sys.stderr)
        sys.exit(1)

    results = results_from_documents(documents)

    use_color = not args.no_color and Console().is_terminal
    print_console_report(results, make_console(use_color), use_color)

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text("\n".join(render_text_report(results)) + "\n")
        print(f"Saved text report to {output_path}")

    if args.plot:
        plot_p999_latency(results, args.plot, title=f"{archive_path.stem} - p99.9 Completion Latency")


if __name__ == "__main__":
    main()
