"""
Domain types shared by the library scanner, the API and the channel loop.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .errors import ValidationError

SUPPORTED_CHANNEL = "tv"
PLAYLIST_NAME = "index.m3u8"
SEGMENT_TEMPLATE = "%09d.ts"


class SubtitleMode(str, Enum):
    NONE = "None"
    SMART = "Smart"


class SubtitleStrategy(str, Enum):
    PASSTHROUGH = "passthrough"
    CONVERT_TO_TEXT = "convert_to_text"
    BURN_IN = "burn_in"


@dataclass(frozen=True)
class Episode:
    id: int
    name: str
    file_path: Path
    show_name: str
    episode_number: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "file_path": str(self.file_path),
            "show_name": self.show_name,
            "episode_number": self.episode_number,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Episode":
        number = data.get("episode_number")
        return cls(
            id=int(data.get("id", 0)),
            name=str(data["name"]),
            file_path=Path(data["file_path"]),
            show_name=str(data["show_name"]),
            episode_number=int(number) if number is not None else None,
        )


@dataclass(frozen=True)
class PlaylistItem:
    """One playlist entry.

    ``episode_range`` is a half-open ``(start, end)`` slice over the show's
    current episode ids. ``repeat_count`` is a flag: ``0`` plays each episode
    once per tracker epoch, any positive value replays forever.
    """

    show_name: str
    episode_range: Optional[Tuple[int, int]] = None
    repeat_count: int = 0

    def __post_init__(self) -> None:
        if self.repeat_count < 0:
            raise ValidationError("repeat_count must not be negative")
        if self.episode_range is not None:
            start, end = self.episode_range
            if start < 0 or end < 0:
                raise ValidationError("episode range bounds must not be negative")
            if end < start:
                raise ValidationError(
                    f"episode range end ({end}) is before start ({start})"
                )

    @property
    def play_once(self) -> bool:
        return self.repeat_count == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "show_name": self.show_name,
            "episode_range": list(self.episode_range) if self.episode_range else None,
            "repeat_count": self.repeat_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlaylistItem":
        raw_range = data.get("episode_range")
        episode_range = None
        if raw_range is not None:
            if len(raw_range) != 2:
                raise ValidationError("episode_range must have exactly two bounds")
            episode_range = (int(raw_range[0]), int(raw_range[1]))
        return cls(
            show_name=str(data["show_name"]),
            episode_range=episode_range,
            repeat_count=int(data.get("repeat_count") or 0),
        )


ShowLibrary = Dict[str, List[Episode]]


@dataclass
class AppConfig:
    videos_folder: Optional[Path] = None
    shows: ShowLibrary = field(default_factory=dict)
    playlist: List[PlaylistItem] = field(default_factory=list)
    subtitle_mode: SubtitleMode = SubtitleMode.NONE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "videos_folder": str(self.videos_folder) if self.videos_folder else None,
            "shows": {
                name: [episode.to_dict() for episode in episodes]
                for name, episodes in self.shows.items()
            },
            "playlist": [item.to_dict() for item in self.playlist],
            "subtitle_mode": self.subtitle_mode.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        folder = data.get("videos_folder")
        shows = {
            str(name): [Episode.from_dict(raw) for raw in episodes or []]
            for name, episodes in (data.get("shows") or {}).items()
        }
        return cls(
            videos_folder=Path(folder) if folder else None,
            shows=shows,
            playlist=[PlaylistItem.from_dict(raw) for raw in data.get("playlist") or []],
            subtitle_mode=SubtitleMode(data.get("subtitle_mode") or SubtitleMode.NONE.value),
        )
