"""
Durable storage for ops counters.

A snapshot JSON document plus an append-only JSON-lines event log. Read
failures are logged and treated as "nothing stored"; write failures are
raised to the registry, which logs them without failing the request.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Protocol

from pydantic import ValidationError

from ..state import OpsEvent, OpsSnapshot

logger = logging.getLogger(__name__)


class OpsStore(Protocol):
    def read_latest(self) -> Optional[OpsSnapshot]: ...

    def read_events(self) -> list[OpsEvent]: ...

    def append(self, event: OpsEvent) -> None: ...

    def write(self, snapshot: OpsSnapshot) -> None: ...


class JsonFileOpsStore:
    """Snapshot file + JSON-lines event log on the local filesystem."""

    def __init__(self, snapshot_path: Path, log_path: Path) -> None:
        self.snapshot_path = Path(snapshot_path)
        self.log_path = Path(log_path)

    @classmethod
    def from_settings(cls, settings) -> "JsonFileOpsStore":
        return cls(settings.ops_snapshot_path, settings.ops_log_path)

    def read_latest(self) -> Optional[OpsSnapshot]:
        """Load the most recent snapshot, or None if absent or unreadable."""
        if not self.snapshot_path.exists():
            return None
        try:
            with open(self.snapshot_path, "r", encoding="utf-8") as f:
                return OpsSnapshot.model_validate(json.load(f))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Failed to read ops snapshot {self.snapshot_path}: {e}")
            return None

    def read_events(self) -> list[OpsEvent]:
        """Load the event log, skipping corrupt lines."""
        if not self.log_path.exists():
            return []
        events = []
        try:
            with open(self.log_path, "r", encoding="utf-8") as f:
                for line_number, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        events.append(OpsEvent.model_validate_json(line))
                    except ValidationError as e:
                        logger.warning(f"Skipping corrupt ops event at line {line_number}: {e}")
        except OSError as e:
            logger.warning(f"Failed to read ops event log {self.log_path}: {e}")
        return events

    def append(self, event: OpsEvent) -> None:
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(event.model_dump_json(by_alias=True) + "\n")

    def write(self, snapshot: OpsSnapshot) -> None:
        """Write the snapshot atomically (temp file + rename)."""
        self.snapshot_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.snapshot_path.with_suffix(self.snapshot_path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(snapshot.model_dump(by_alias=True), f, indent=2)
        os.replace(tmp_path, self.snapshot_path)
        logger.debug(f"Ops snapshot saved to {self.snapshot_path}")
