"""Exceptions raised while setting up a benchmark sweep."""


class BenchError(Exception):
    """Base class for benchmark setup errors."""


class ConfigError(BenchError):
    """A configuration value or file could not be used."""


class MissingToolError(BenchError):
    """A required external command is not installed."""

    def __init__(self, tool: str):
        super().__init__(f"Missing required command: {tool}")
        self.tool = tool
