"""Shared fixtures for disk_bench tests."""

import json
from typing import Any, Dict, Optional

import pytest

from disk_bench.config import SweepConfig, resolve_config


def fio_section(
    iops: Optional[float] = None,
    clat_mean_ns: Optional[float] = None,
    p999_ns: Optional[int] = None,
) -> Dict[str, Any]:
    """One read/write section shaped like fio's JSON output."""
    section: Dict[str, Any] = {"io_bytes": 0, "runtime": 30000}
    if iops is not None:
        section["iops"] = iops
    clat: Dict[str, Any] = {"min": 1000, "max": 9000000}
    if clat_mean_ns is not None:
        clat["mean"] = clat_mean_ns
    if p999_ns is not None:
        clat["percentile"] = {
            "50.000000": 90000,
            "99.000000": 120000,
            "99.900000": p999_ns,
            "99.990000": p999_ns * 2,
        }
    section["clat_ns"] = clat
    return section


def fio_document(
    name: str = "randrw_70read_4k_qd1_jobs1",
    read: Optional[Dict[str, Any]] = None,
    write: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    return {
        "fio version": "fio-3.36",
        "timestamp": 1700000000,
        "global options": {},
        "jobs": [
            {
                "jobname": name,
                "groupid": 0,
                "error": 0,
                "read": read if read is not None else fio_section(12345.678, 250000.0, 157000),
                "write": write if write is not None else fio_section(5290.12, 310000.0, 500000),
            }
        ],
    }


@pytest.fixture
def make_fio_output():
    """Factory returning fio stdout (pretty-printed JSON) for a test."""

    def _make(name: str = "randrw_70read_4k_qd1_jobs1", **kwargs: Any) -> str:
        return json.dumps(fio_document(name, **kwargs), indent=2) + "\n"

    return _make


@pytest.fixture
def sweep_config(tmp_path) -> SweepConfig:
    """Small config writing into a temporary directory."""
    return resolve_config(
        environ={},
        overrides={
            "file_dir": str(tmp_path / "scratch"),
            "output_dir": str(tmp_path / "out"),
            "block_sizes": "4k 8k",
            "mixes": "70 50",
            "iodepths": "1 2",
            "jobs": "1",
            "runtime_sec": 1,
            "warmup_sec": 0,
        },
        hosttag="testhost",
        timestamp="20250101T000000Z",
    )
