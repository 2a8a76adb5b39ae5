"""Data classes for benchmark results."""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional

HIGHLIGHT_SCENARIO = "4k_qd1_jobs1"
HIGHLIGHT_MIX = "70read"


@dataclass(frozen=True)
class TestCase:
    """One point in the block size x mix x queue depth x jobs sweep."""

    __test__ = False  # not a pytest class

    block_size: str
    mix: int
    iodepth: int
    jobs: int

    @property
    def name(self) -> str:
        return f"randrw_{self.mix}read_{self.block_size}_qd{self.iodepth}_jobs{self.jobs}"


@dataclass(frozen=True)
class Metrics:
    """Read/write IOPS and completion latencies (ms) for one test case."""

    read_iops: float = 0.0
    read_avg_ms: float = 0.0
    read_p999_ms: float = 0.0
    write_iops: float = 0.0
    write_avg_ms: float = 0.0
    write_p999_ms: float = 0.0


@dataclass(frozen=True)
class ResultEntry:
    """Metrics for a named test case."""

    name: str
    metrics: Metrics


@dataclass
class ResultSet:
    """Sweep results in the order the test cases ran."""

    entries: List[ResultEntry] = field(default_factory=list)

    def append(self, name: str, metrics: Metrics) -> ResultEntry:
        entry = ResultEntry(name=name, metrics=metrics)
        self.entries.append(entry)
        return entry

    def __iter__(self) -> Iterator[ResultEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def find_highlighted(self) -> Optional[ResultEntry]:
        """First 4k/qd1/jobs1 entry at a 70% read mix, or None."""
        for entry in self.entries:
            if HIGHLIGHT_SCENARIO in entry.name and HIGHLIGHT_MIX in entry.name:
                return entry
        return None
