"""Sweep runner for fio latency benchmarks."""

import itertools
import logging
import os
import subprocess
from pathlib import Path
from typing import Iterator, List, Optional, Union

from .archive import ArchiveWriter
from .config import SweepConfig
from .fio import FioClient
from .metrics import extract_metrics
from .report import RAW_DATA_HEADING, append_text_lines, render_raw_line
from .results import ResultSet, TestCase

logger = logging.getLogger(__name__)


def iter_test_cases(config: SweepConfig) -> Iterator[TestCase]:
    """Yield test cases with block size outermost, then mix, queue depth, jobs."""
    for bs, mix, depth, jobs in itertools.product(
        config.block_sizes, config.mixes, config.iodepths, config.jobs
    ):
        yield TestCase(block_size=bs, mix=mix, iodepth=depth, jobs=jobs)


def _sync() -> None:
    try:
        os.sync()
    except OSError as e:
        logger.warning("sync failed: %s", e)


def prepare_test_file(path: Path, size_gb: int) -> None:
    """
    Preallocate the scratch file with zeros using dd.

    Some filesystems reject ``conv=fsync``; in that case the write is
    retried without it and flushed with a global sync. If dd still fails
    the error is logged and fio lays out the file itself.
    """
    base_cmd = [
        "dd",
        "if=/dev/zero",
        f"of={path}",
        "bs=1M",
        f"count={size_gb * 1024}",
    ]
    proc = subprocess.run(
        base_cmd + ["conv=fsync", "status=none"],
        capture_output=True,
        text=True,
    )
    if proc.returncode == 0:
        return

    print("dd with conv=fsync failed; trying without fsync...")
    proc = subprocess.run(base_cmd + ["status=none"], capture_output=True, text=True)
    if proc.returncode != 0:
        logger.warning("Could not preallocate %s: %s", path, proc.stderr.strip())
    _sync()


def cleanup_test_file(path: Path) -> bool:
    """
    Remove the scratch file and flush filesystem buffers.

    Returns:
        True if the file is gone afterwards; failures are logged only
    """
    removed = True
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove test file %s: %s", path, e)
        removed = False
    _sync()
    return removed


class SweepRunner:
    """Runs every test case of a sweep through fio, one at a time."""

    def __init__(
        self,
        config: SweepConfig,
        client: FioClient,
        archive: Optional[ArchiveWriter] = None,
        preallocate: bool = True,
        text_report: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize the sweep runner.

        Args:
            config: Resolved sweep configuration
            client: fio client used for every test case
            archive: Archive receiving each raw fio document (default: one at
                config.json_path)
            preallocate: Create the scratch file with dd before the sweep
            text_report: Text report receiving a raw data line per finished
                test case (default: none)
        """
        self.config = config
        self.client = client
        self.archive = archive
        self.preallocate = preallocate
        self.text_report = text_report

    def _append_text(self, lines: List[str]) -> None:
        if self.text_report is not None:
            append_text_lines(self.text_report, lines)

    def run_sweep(self) -> ResultSet:
        """
        Run the full block size x mix x queue depth x jobs sweep.

        Each raw document is archived, and its raw data line appended to the
        text report, as soon as fio returns. The scratch file is removed once
        the sweep ends, including on interrupt.

        Returns:
            ResultSet in sweep order
        """
        config = self.config
        test_file = config.test_file
        total = config.total_tests
        results = ResultSet()

        if self.archive is None:
            self.archive = ArchiveWriter(config.json_path)

        try:
            if self.preallocate:
                print("Preparing test file...")
                prepare_test_file(test_file, config.file_size_gb)
                print("Test file ready.\n")

            print(f"Running {total} benchmark tests...\n")
            self._append_text(RAW_DATA_HEADING)
            for current, test_case in enumerate(iter_test_cases(config), 1):
                print(f"\r  [{current}/{total}] Running: {test_case.name}...", end="", flush=True)

                raw = self.client.run(test_case, test_file)
                self.archive.append(raw)
                entry = results.append(test_case.name, extract_metrics(raw))
                self._append_text([render_raw_line(entry)])

            self.archive.close()
            self._append_text(["", ""])
            print("\n")
        finally:
            print("Cleaning up test file...")
            cleanup_test_file(test_file)

        return results
