"""
LilNAS Watch Items.

Event items produced by the watch source and the record kinds
used when forwarding them to a log sink.
Requires Python 3.11+.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class ChangeKind(str, Enum):
    """Kinds of filesystem change."""

    CREATE = "create"
    WRITE = "write"
    REMOVE = "remove"
    RENAME = "rename"
    CHMOD = "chmod"


class RecordKind(str, Enum):
    """Tag attached to each record written to a log sink."""

    EVENT = "event"
    ERROR = "error"


@dataclass(frozen=True)
class FileEvent:
    """A single observed filesystem change."""

    path: Path
    kind: ChangeKind
    is_directory: bool = False
    dest_path: Path | None = None
    timestamp: float = field(default_factory=time.time, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a flat dictionary for structured logging."""
        return {
            "path": str(self.path),
            "kind": self.kind.value,
            "is_directory": self.is_directory,
            "dest_path": str(self.dest_path) if self.dest_path is not None else None,
            "timestamp": self.timestamp,
        }

    def __str__(self) -> str:
        if self.dest_path is not None:
            return f"{self.kind.value.upper()} {self.path} -> {self.dest_path}"
        return f"{self.kind.value.upper()} {self.path}"
