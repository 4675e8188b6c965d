"""Clases base para fuentes que leen exportaciones dejadas en una carpeta."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class SourcePaths:
    """Folder the exporter writes into."""

    root: Path


class DataSource(ABC):
    """Export folder where the newest matching file is the current one."""

    pattern = "*.json"

    def __init__(self, paths: SourcePaths) -> None:
        self._paths = paths

    def validate(self) -> None:
        """Validate that the export folder exists.

        Raises:
            FileNotFoundError: If the folder is missing.
        """
        if not self._paths.root.exists():
            raise FileNotFoundError(str(self._paths.root))

    def newest_json(self) -> Path:
        """Return the newest file matching ``pattern`` by mtime."""
        files = sorted(
            self._paths.root.glob(self.pattern),
            key=lambda p: p.stat().st_mtime,
            reverse=True,
        )
        if not files:
            raise FileNotFoundError(f"No {self.pattern} in {self._paths.root}")
        return files[0]

    @abstractmethod
    def load_snapshot(self, path: Path) -> Any:
        """Parse one export file."""
