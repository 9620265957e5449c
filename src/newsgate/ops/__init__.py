"""Ops module - monotonic counters and their durable store."""

from .metrics import MetricsRegistry
from .store import JsonFileOpsStore, OpsStore

__all__ = ["MetricsRegistry", "JsonFileOpsStore", "OpsStore"]
