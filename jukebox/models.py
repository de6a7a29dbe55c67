"""
Data models for jukebox.

Defines typed dataclasses for all entities used throughout the application.
"""

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple


def _freeze(metadata: Mapping[str, Any]) -> Mapping[str, Any]:
    """Read-only copy of a metadata mapping."""
    return MappingProxyType(dict(metadata))


@dataclass(frozen=True)
class Content:
    """Playable content known to the media library."""

    id: str
    path: str
    title: str
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "metadata", _freeze(self.metadata))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "path": self.path,
            "title": self.title,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class QueueItem:
    """Content submitted to the shared playlist by a user."""

    id: str  # Content id, not unique within the queue
    path: str
    username: str
    title: str
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "metadata", _freeze(self.metadata))

    @classmethod
    def from_content(cls, content: Content, username: str) -> "QueueItem":
        return cls(
            id=content.id,
            path=content.path,
            username=username,
            title=content.title,
            metadata=content.metadata,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "path": self.path,
            "username": self.username,
            "title": self.title,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class PlaylistSnapshot:
    """Read-only view of the playlist handed to external consumers."""

    now_playing: Optional[QueueItem]
    pending: Tuple[QueueItem, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "now_playing": self.now_playing.to_dict() if self.now_playing else None,
            "pending": [item.to_dict() for item in self.pending],
        }


@dataclass
class ConfigEntry:
    """Configuration entry."""

    key: str
    value: str
    updated_at: Optional[datetime] = None
