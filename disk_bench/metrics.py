"""Metric extraction from fio JSON output."""

import json
import logging
import math
from typing import Any, Dict, Optional, Union

from .results import Metrics

logger = logging.getLogger(__name__)

NS_PER_MS = 1_000_000
TARGET_PERCENTILE = 99.9


def ns_to_ms(ns: Any) -> float:
    """
    Convert nanoseconds to milliseconds, rounded to 3 decimal places.

    Args:
        ns: Nanosecond value (number or numeric string); None, NaN,
            infinities and unparsable values count as zero

    Returns:
        Milliseconds as a float
    """
    try:
        value = float(ns)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return round(value / NS_PER_MS, 3)


def _as_float(value: Any) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def extract_json_text(raw: Union[str, bytes, None]) -> Optional[str]:
    """
    Exact text of the JSON object in one run's fio output.

    fio occasionally prints warnings (e.g. "fio: file hash not empty") on
    stdout around the document, and a warning may itself contain braces.
    Each ``{`` is tried in turn until one starts a complete object; anything
    after its closing brace is ignored.

    Returns:
        The object's source text, or None if ``raw`` holds no JSON object
    """
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")

    decoder = json.JSONDecoder()
    start = raw.find("{")
    while start >= 0:
        try:
            _, end = decoder.raw_decode(raw, start)
        except json.JSONDecodeError as e:
            logger.debug("No JSON object at offset %d of fio output: %s", start, e)
        else:
            return raw[start:end]
        start = raw.find("{", start + 1)
    return None


def parse_raw_result(raw: Any) -> Optional[Dict[str, Any]]:
    """Parse one fio JSON document, or return None if there is none."""
    if isinstance(raw, dict):
        return raw
    if not isinstance(raw, (str, bytes)):
        return None
    text = extract_json_text(raw)
    if text is None:
        return None
    return json.loads(text)


def _first_job(document: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not document:
        return {}
    jobs = document.get("jobs")
    if isinstance(jobs, list) and jobs and isinstance(jobs[0], dict):
        return jobs[0]
    return {}


def job_name(document: Optional[Dict[str, Any]]) -> str:
    """Name of the first job in a fio document ("" if absent)."""
    return str(_first_job(document).get("jobname", ""))


def _percentile(section: Dict[str, Any], target: float = TARGET_PERCENTILE) -> Any:
    # fio keys percentiles as "99.900000"; --lat_percentiles reports under lat_ns
    for latency_key in ("clat_ns", "lat_ns"):
        latency = section.get(latency_key)
        if not isinstance(latency, dict):
            continue
        percentiles = latency.get("percentile")
        if not isinstance(percentiles, dict):
            continue
        for key, value in percentiles.items():
            try:
                if abs(float(key) - target) < 1e-9:
                    return value
            except (TypeError, ValueError):
                continue
    return None


def _direction(job: Dict[str, Any], name: str) -> Dict[str, float]:
    section = job.get(name)
    if not isinstance(section, dict):
        section = {}
    clat = section.get("clat_ns")
    if not isinstance(clat, dict):
        clat = {}
    return {
        "iops": _as_float(section.get("iops")),
        "avg_ms": ns_to_ms(clat.get("mean")),
        "p999_ms": ns_to_ms(_percentile(section)),
    }


def extract_metrics(raw: Any) -> Metrics:
    """
    Extract IOPS, mean and p99.9 completion latency for reads and writes.

    Only the first job record is used; the sweep runs fio with
    ``--group_reporting`` so all threads are folded into it. Missing or
    malformed fields come back as zero rather than raising.

    Args:
        raw: fio stdout for one run, or an already parsed document

    Returns:
        Metrics with latencies in milliseconds
    """
    job = _first_job(parse_raw_result(raw))
    read = _direction(job, "read")
    write = _direction(job, "write")
    return Metrics(
        read_iops=read["iops"],
        read_avg_ms=read["avg_ms"],
        read_p999_ms=read["p999_ms"],
        write_iops=write["iops"],
        write_avg_ms=write["avg_ms"],
        write_p999_ms=write["p999_ms"],
    )
