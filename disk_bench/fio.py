"""fio invocation and option compatibility probing."""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

from .config import SweepConfig
from .results import TestCase

logger = logging.getLogger(__name__)

PERCENTILE_LIST = "50:90:95:99:99.9:99.99"


@dataclass(frozen=True)
class FioCapabilities:
    """Percentile options accepted by the installed fio."""

    supports_clat_percentiles: bool = False
    supports_lat_percentiles: bool = False
    supports_percentile_list: bool = False

    def percentile_options(self) -> List[str]:
        """fio arguments enabling p99.9 reporting, newest flag name first."""
        options = []
        if self.supports_clat_percentiles:
            options.append("--clat_percentiles=1")
        elif self.supports_lat_percentiles:
            options.append("--lat_percentiles=1")
        if self.supports_percentile_list:
            options.append(f"--percentile_list={PERCENTILE_LIST}")
        return options


def probe_capabilities(binary: str = "fio") -> FioCapabilities:
    """
    Check which percentile options fio advertises in its help text.

    Called once before the sweep. If fio cannot be run, every capability
    is reported as unsupported and percentiles will read as zero.
    """
    try:
        proc = subprocess.run(
            [binary, "--help"],
            capture_output=True,
            text=True,
            timeout=30,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning("Could not query %s --help: %s", binary, e)
        return FioCapabilities()

    help_text = proc.stdout
    return FioCapabilities(
        supports_clat_percentiles="clat_percentiles" in help_text,
        supports_lat_percentiles="lat_percentiles" in help_text,
        supports_percentile_list="percentile_list" in help_text,
    )


class FioClient:
    """Runs fio once per test case with the canonical option set."""

    def __init__(
        self,
        config: SweepConfig,
        capabilities: FioCapabilities,
        binary: str = "fio",
    ):
        """
        Initialize the fio client.

        Args:
            config: Resolved sweep configuration
            capabilities: Result of probe_capabilities, fixed for the sweep
            binary: fio executable name or path
        """
        self.config = config
        self.capabilities = capabilities
        self.binary = binary

    def build_command(self, test_case: TestCase, filename: Union[str, Path]) -> List[str]:
        """Full fio argv for one test case."""
        config = self.config
        return [
            self.binary,
            f"--name={test_case.name}",
            f"--filename={filename}",
            f"--size={config.file_size_gb}G",
            "--time_based=1",
            f"--runtime={config.runtime_sec}",
            f"--ramp_time={config.warmup_sec}",
            f"--ioengine={config.engine}",
            f"--direct={config.direct}",
            "--rw=randrw",
            f"--rwmixread={test_case.mix}",
            f"--bs={test_case.block_size}",
            f"--iodepth={test_case.iodepth}",
            f"--numjobs={test_case.jobs}",
            "--group_reporting=1",
            "--random_generator=tausworthe64",
            "--norandommap=1",
            "--randrepeat=0",
            "--invalidate=1",
            *self.capabilities.percentile_options(),
            "--output-format=json",
        ]

    def run(self, test_case: TestCase, filename: Union[str, Path]) -> str:
        """
        Run fio for one test case and return its stdout.

        A non-zero exit status is logged but not raised; the caller gets
        whatever fio printed (possibly nothing).
        """
        cmd = self.build_command(test_case, filename)
        logger.debug("Running: %s", " ".join(cmd))
        proc = subprocess.run(cmd, capture_output=True, text=True)
        if proc.returncode != 0:
            logger.warning(
                "fio exited with status %d for %s: %s",
                proc.returncode,
                test_case.name,
                proc.stderr.strip(),
            )
        return proc.stdout
