"""
Shared, lock-guarded state read by the channel loop and mutated by the API.

Each field has its own reader/writer lock. Operations that touch several
fields take every affected write lock in ``_LOCK_ORDER`` so that readers
never see a half-applied update.
"""

from __future__ import annotations

import contextlib
import logging
from copy import copy
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from .errors import ValidationError
from .library import flatten_library
from .locks import RWLock
from .models import AppConfig, PlaylistItem, ShowLibrary, SubtitleMode
from .played_tracker import PlayedEpisodeTracker

LOGGER = logging.getLogger(__name__)

_LOCK_ORDER = (
    "videos_folder",
    "shows",
    "tv_files",
    "playlist",
    "played",
    "subtitle_mode",
    "current_playing",
)


@dataclass(frozen=True)
class StateSnapshot:
    """Immutable copy of what one loop pass works from."""

    shows: ShowLibrary
    playlist: Tuple[PlaylistItem, ...]
    tv_files: Tuple[Path, ...]
    subtitle_mode: SubtitleMode


class AppState:
    def __init__(self, tracker: Optional[PlayedEpisodeTracker] = None) -> None:
        self.played = tracker or PlayedEpisodeTracker()
        self._locks: Dict[str, RWLock] = {
            name: RWLock() for name in _LOCK_ORDER if name != "played"
        }
        self._locks["played"] = self.played.lock

        self._videos_folder: Optional[Path] = None
        self._shows: ShowLibrary = {}
        self._tv_files: List[Path] = []
        self._playlist: List[PlaylistItem] = []
        self._subtitle_mode = SubtitleMode.NONE
        self._current_playing: Optional[Path] = None

    @contextlib.contextmanager
    def _reading(self, *fields: str) -> Iterator[None]:
        with contextlib.ExitStack() as stack:
            for name in _LOCK_ORDER:
                if name in fields:
                    stack.enter_context(self._locks[name].read_locked())
            yield

    @contextlib.contextmanager
    def _writing(self, *fields: str) -> Iterator[None]:
        with contextlib.ExitStack() as stack:
            for name in _LOCK_ORDER:
                if name in fields:
                    stack.enter_context(self._locks[name].write_locked())
            yield

    # Single-field accessors

    @property
    def videos_folder(self) -> Optional[Path]:
        with self._reading("videos_folder"):
            return self._videos_folder

    def set_videos_folder(self, folder: Optional[Path]) -> None:
        with self._writing("videos_folder"):
            self._videos_folder = folder

    @property
    def shows(self) -> ShowLibrary:
        with self._reading("shows"):
            return {name: list(episodes) for name, episodes in self._shows.items()}

    @property
    def tv_files(self) -> List[Path]:
        with self._reading("tv_files"):
            return list(self._tv_files)

    def set_tv_files(self, files: List[Path]) -> None:
        with self._writing("tv_files"):
            self._tv_files = list(files)

    @property
    def playlist(self) -> List[PlaylistItem]:
        with self._reading("playlist"):
            return list(self._playlist)

    @property
    def subtitle_mode(self) -> SubtitleMode:
        with self._reading("subtitle_mode"):
            return self._subtitle_mode

    def set_subtitle_mode(self, mode: SubtitleMode) -> None:
        with self._writing("subtitle_mode"):
            self._subtitle_mode = mode
        LOGGER.info("Subtitle mode set to %s", mode.value)

    @property
    def current_playing(self) -> Optional[Path]:
        with self._reading("current_playing"):
            return self._current_playing

    def set_current_playing(self, path: Optional[Path]) -> None:
        with self._writing("current_playing"):
            self._current_playing = path

    # Playlist edits

    def add_playlist_item(self, item: PlaylistItem) -> None:
        with self._reading("shows"), self._writing("playlist"):
            if item.show_name not in self._shows:
                raise ValidationError(f"Show not found: {item.show_name}")
            self._playlist.append(item)

    def remove_playlist_item(self, index: int) -> PlaylistItem:
        with self._writing("playlist"):
            if not 0 <= index < len(self._playlist):
                raise ValidationError("Invalid playlist index")
            return self._playlist.pop(index)

    def move_playlist_item(self, index: int, direction: str) -> None:
        with self._writing("playlist"):
            if not 0 <= index < len(self._playlist):
                raise ValidationError("Invalid playlist index")
            if direction == "up":
                if index == 0:
                    raise ValidationError("Cannot move first item up")
                other = index - 1
            elif direction == "down":
                if index == len(self._playlist) - 1:
                    raise ValidationError("Cannot move last item down")
                other = index + 1
            else:
                raise ValidationError("Invalid direction. Use 'up' or 'down'")
            self._playlist[index], self._playlist[other] = (
                self._playlist[other],
                self._playlist[index],
            )

    # Multi-field updates

    def replace_playlist(self, items: List[PlaylistItem]) -> None:
        """Swap the whole playlist and start a new played-episode epoch."""
        with self._writing("playlist", "played"):
            self._playlist = list(items)
            self.played._reset_unlocked()
        LOGGER.info("Playlist replaced (%d items)", len(items))

    def apply_scan(self, shows: ShowLibrary) -> None:
        """Install a freshly organized library and the file list derived from it."""
        files = flatten_library(shows)
        with self._writing("shows", "tv_files"):
            self._shows = {name: list(episodes) for name, episodes in shows.items()}
            self._tv_files = files
        LOGGER.info("Library updated: %d shows, %d files", len(shows), len(files))

    def apply_config(self, config: AppConfig) -> None:
        files = flatten_library(config.shows)
        with self._writing(
            "videos_folder", "shows", "tv_files", "playlist", "played", "subtitle_mode"
        ):
            self._videos_folder = config.videos_folder
            self._shows = {name: list(eps) for name, eps in config.shows.items()}
            self._tv_files = files
            self._playlist = list(config.playlist)
            self.played._reset_unlocked()
            self._subtitle_mode = config.subtitle_mode
        LOGGER.info(
            "Configuration applied: %d shows, %d playlist items, subtitles=%s",
            len(config.shows),
            len(config.playlist),
            config.subtitle_mode.value,
        )

    def to_config(self) -> AppConfig:
        with self._reading("videos_folder", "shows", "playlist", "subtitle_mode"):
            return AppConfig(
                videos_folder=self._videos_folder,
                shows={name: list(eps) for name, eps in self._shows.items()},
                playlist=list(self._playlist),
                subtitle_mode=self._subtitle_mode,
            )

    def snapshot(self) -> StateSnapshot:
        with self._reading("shows", "tv_files", "playlist", "subtitle_mode"):
            return StateSnapshot(
                shows={name: copy(eps) for name, eps in self._shows.items()},
                playlist=tuple(self._playlist),
                tv_files=tuple(self._tv_files),
                subtitle_mode=self._subtitle_mode,
            )
