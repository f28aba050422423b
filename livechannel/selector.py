"""
Per-pass decision logic: which sources the channel loop encodes, in order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple, Union

from .models import Episode
from .played_tracker import PlayedEpisodeTracker
from .state import StateSnapshot

LOGGER = logging.getLogger(__name__)


class PassMode(str, Enum):
    PLAYLIST = "playlist"
    FALLBACK = "fallback"
    IDLE = "idle"


@dataclass(frozen=True)
class WorkItem:
    source: Path
    label: str
    show_name: Optional[str] = None
    episode_id: Optional[int] = None
    play_once: bool = False


@dataclass(frozen=True)
class MissingShow:
    show_name: str


PassEntry = Union[WorkItem, MissingShow]


def decide_mode(snapshot: StateSnapshot) -> PassMode:
    if snapshot.playlist:
        return PassMode.PLAYLIST
    if snapshot.tv_files:
        return PassMode.FALLBACK
    return PassMode.IDLE


def select_episodes(
    episodes: Sequence[Episode], episode_range: Optional[Tuple[int, int]]
) -> List[Episode]:
    """Half-open slice of ``episodes``, with both bounds clipped to the list."""
    if episode_range is None:
        return list(episodes)
    count = len(episodes)
    start, end = episode_range
    start = min(max(start, 0), count)
    end = min(max(end, 0), count)
    return list(episodes[start:end])


def iter_playlist_pass(
    snapshot: StateSnapshot, tracker: PlayedEpisodeTracker
) -> Iterator[PassEntry]:
    """Yield playlist work in stored order.

    Played state is checked lazily, right before each episode is handed
    out, so marks made earlier in the same pass are honoured.
    """
    for item in snapshot.playlist:
        episodes = snapshot.shows.get(item.show_name)
        if episodes is None:
            yield MissingShow(item.show_name)
            continue
        selected = select_episodes(episodes, item.episode_range)
        LOGGER.info(
            "Playlist item '%s': %d of %d episodes selected",
            item.show_name,
            len(selected),
            len(episodes),
        )
        for episode in selected:
            if item.play_once and tracker.should_skip(item.show_name, episode.id):
                LOGGER.debug("Skipping already played episode: %s", episode.name)
                continue
            yield WorkItem(
                source=episode.file_path,
                label=f"{item.show_name} - {episode.name}",
                show_name=item.show_name,
                episode_id=episode.id,
                play_once=item.play_once,
            )


def iter_fallback_pass(snapshot: StateSnapshot) -> Iterator[PassEntry]:
    for path in snapshot.tv_files:
        yield WorkItem(source=path, label=path.name)


def plan_pass(
    snapshot: StateSnapshot, tracker: PlayedEpisodeTracker
) -> Tuple[PassMode, Iterator[PassEntry]]:
    mode = decide_mode(snapshot)
    if mode is PassMode.PLAYLIST:
        return mode, iter_playlist_pass(snapshot, tracker)
    if mode is PassMode.FALLBACK:
        return mode, iter_fallback_pass(snapshot)
    return mode, iter(())
