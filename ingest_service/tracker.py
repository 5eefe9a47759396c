from __future__ import annotations

from pathlib import Path


class UploadTracker:
    """Paths already uploaded during one session. In memory only, never evicted."""

    def __init__(self) -> None:
        self._uploaded: set[str] = set()

    def has(self, path: str | Path) -> bool:
        return str(path) in self._uploaded

    def mark_uploaded(self, path: str | Path) -> None:
        self._uploaded.add(str(path))

    def __len__(self) -> int:
        return len(self._uploaded)
