"""Internal models for segment ingestion."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class SegmentFile:
    name: str
    index: int


@dataclass
class IngestSession:
    """One ingestion run: a local working directory and its remote namespace."""

    session_id: str
    directory: Path

    def remote_key(self, name: str) -> str:
        return f"{self.session_id}/{name}"

    def local_path(self, name: str) -> Path:
        return self.directory / name
