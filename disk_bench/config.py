"""Configuration loading utilities for benchmark."""

import logging
import os
import shutil
import socket
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple, Union

import yaml

from .errors import ConfigError, MissingToolError

logger = logging.getLogger(__name__)

REQUIRED_TOOLS = ("fio", "dd")


def load_yaml_config(path: str) -> Dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        path: Path to the YAML configuration file

    Returns:
        Dictionary containing the parsed YAML configuration (empty if the
        file has no content)

    Raises:
        ConfigError: If the file does not exist, is malformed, or is not a mapping
    """
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def parse_list(value: Any) -> Tuple[str, ...]:
    """Split a whitespace-delimited string (or a YAML list) into tokens."""
    if isinstance(value, (list, tuple)):
        return tuple(str(v) for v in value)
    return tuple(str(value).split())


def _int_token(token: str) -> Union[int, str]:
    try:
        return int(token)
    except ValueError:
        logger.warning("Non-numeric value %r is passed to fio unchanged", token)
        return token


def parse_int_list(value: Any) -> Tuple[Union[int, str], ...]:
    """
    Split into integer tokens.

    Tokens that are not integers are kept as given and left for fio to
    accept or reject.
    """
    return tuple(_int_token(v) for v in parse_list(value))


def default_hosttag() -> str:
    """Fully qualified host name, falling back to the short name."""
    return socket.getfqdn() or socket.gethostname()


def utc_timestamp(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y%m%dT%H%M%SZ")


@dataclass(frozen=True)
class Parameter:
    """One overridable sweep setting."""

    field: str
    env_var: str
    default: Any
    parser: Callable[[Any], Any]


PARAMETERS = (
    Parameter("file_dir", "FILE_DIR", "/var/tmp", str),
    Parameter("file_size_gb", "FILE_SIZE_GB", 2, int),
    Parameter("runtime_sec", "RUNTIME_SEC", 30, int),
    Parameter("warmup_sec", "WARMUP_SEC", 5, int),
    Parameter("iodepths", "IODEPTHS", "1 2 4", parse_int_list),
    Parameter("block_sizes", "BS_LIST", "4k 8k", parse_list),
    Parameter("mixes", "MIX_LIST", "70 50", parse_int_list),
    Parameter("jobs", "JOBS_LIST", "1 2", parse_int_list),
    Parameter("engine", "ENGINE", "libaio", str),
    Parameter("direct", "DIRECT", 1, int),
    Parameter("output_dir", "OUTPUT_DIR", "./bench_out", str),
)


@dataclass(frozen=True)
class SweepConfig:
    """Sweep parameters, resolved once at startup."""

    file_dir: str
    file_size_gb: int
    runtime_sec: int
    warmup_sec: int
    iodepths: Tuple[int, ...]
    block_sizes: Tuple[str, ...]
    mixes: Tuple[int, ...]
    jobs: Tuple[int, ...]
    engine: str
    direct: int
    output_dir: str
    hosttag: str
    timestamp: str

    @property
    def test_file(self) -> Path:
        """Scratch file shared by every test case."""
        return Path(self.file_dir) / f"fio-bench-{self.timestamp}.dat"

    @property
    def output_stem(self) -> Path:
        return Path(self.output_dir) / f"fio-{self.hosttag}-{self.timestamp}"

    @property
    def json_path(self) -> Path:
        return self.output_stem.with_suffix(".json")

    @property
    def txt_path(self) -> Path:
        return self.output_stem.with_suffix(".txt")

    @property
    def plot_path(self) -> Path:
        return self.output_stem.with_suffix(".png")

    @property
    def total_tests(self) -> int:
        return len(self.block_sizes) * len(self.mixes) * len(self.iodepths) * len(self.jobs)


def resolve_config(
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    hosttag: Optional[str] = None,
    timestamp: Optional[str] = None,
    output_dir: Optional[str] = None,
    create_output_dir: bool = True,
) -> SweepConfig:
    """
    Build a SweepConfig from defaults, file overrides and environment variables.

    Precedence, lowest first: built-in defaults, ``overrides`` (typically a
    YAML file keyed by field name), then environment variables. Values are
    parsed with their declared type but not range checked; nonsensical sizes
    or durations are passed through to fio.

    Args:
        environ: Environment mapping (default: ``os.environ``)
        overrides: Field-name keyed overrides, e.g. from ``load_yaml_config``
        hosttag: Explicit host tag (else ``HOSTTAG`` or the host name)
        timestamp: Explicit run timestamp (else the current UTC time)
        output_dir: Explicit output directory, taking precedence over all
            other sources
        create_output_dir: Create ``output_dir`` if it does not exist

    Returns:
        The resolved SweepConfig

    Raises:
        ConfigError: If a scalar value cannot be parsed
    """
    environ = os.environ if environ is None else environ
    overrides = overrides or {}

    unknown = set(overrides) - {p.field for p in PARAMETERS} - {"hosttag"}
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    values: Dict[str, Any] = {}
    for param in PARAMETERS:
        raw = param.default
        if param.field in overrides:
            raw = overrides[param.field]
        if environ.get(param.env_var):
            raw = environ[param.env_var]
        try:
            values[param.field] = param.parser(raw)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid value for {param.env_var}: {raw!r}") from e

    values["hosttag"] = (
        hosttag
        or environ.get("HOSTTAG")
        or overrides.get("hosttag")
        or default_hosttag()
    )
    values["timestamp"] = timestamp or utc_timestamp()
    if output_dir:
        values["output_dir"] = output_dir

    config = SweepConfig(**values)
    if create_output_dir:
        Path(config.output_dir).mkdir(parents=True, exist_ok=True)
    return config


def check_required_tools(tools: Iterable[str] = REQUIRED_TOOLS) -> None:
    """
    Verify that every external command needed by the sweep is on PATH.

    Raises:
        MissingToolError: For the first command that cannot be found
    """
    for tool in tools:
        if shutil.which(tool) is None:
            raise MissingToolError(tool)
