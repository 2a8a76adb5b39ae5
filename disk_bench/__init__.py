"""fio latency sweep orchestration and reporting."""

__version__ = "0.1.0"
