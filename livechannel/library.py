"""
Video discovery and show/episode organisation.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .models import Episode, ShowLibrary

LOGGER = logging.getLogger(__name__)

VIDEO_EXTENSIONS = (".mp4", ".mkv", ".avi", ".mov", ".wmv", ".flv", ".webm", ".m4v")

DASH_NUMBER_PATTERN = re.compile(r"- (\d+)")
EPISODE_WORD_PATTERN = re.compile(r"(?:episode|ep)\s+(\d+)", re.IGNORECASE)
TRAILING_NUMBER_PATTERN = re.compile(r"\s+(\d+)$")


def scan_for_videos(folder: Path) -> List[Path]:
    """Recursively collect video files under ``folder``."""
    LOGGER.info("Scanning %s for videos", folder)
    found: List[Path] = []
    for root, dirs, files in os.walk(folder):
        dirs.sort()
        for name in sorted(files):
            if name.lower().endswith(VIDEO_EXTENSIONS):
                found.append(Path(root) / name)
            else:
                LOGGER.debug("Ignoring non-video file %s", name)
    LOGGER.info("Scan complete: %d video files", len(found))
    return found


def extract_episode_number(stem: str) -> Optional[int]:
    for pattern in (DASH_NUMBER_PATTERN, EPISODE_WORD_PATTERN, TRAILING_NUMBER_PATTERN):
        match = pattern.search(stem)
        if match:
            return int(match.group(1))
    return None


def parse_episode_info(file_path: Path) -> Episode:
    stem = file_path.stem or "Unknown"
    show_name = file_path.parent.name or "Unknown"
    return Episode(
        id=0,
        name=stem,
        file_path=file_path,
        show_name=show_name,
        episode_number=extract_episode_number(stem),
    )


def _episode_sort_key(episode: Episode):
    # Numbered episodes first (by number), then unnumbered; name breaks ties.
    if episode.episode_number is None:
        return (1, 0, episode.name)
    return (0, episode.episode_number, episode.name)


def organize_shows(video_files: Iterable[Path]) -> ShowLibrary:
    """Group files into shows and assign dense per-show episode ids."""
    grouped: Dict[str, List[Episode]] = {}
    for path in video_files:
        episode = parse_episode_info(Path(path))
        grouped.setdefault(episode.show_name, []).append(episode)

    shows: ShowLibrary = {}
    for show_name, episodes in grouped.items():
        ordered = sorted(episodes, key=_episode_sort_key)
        shows[show_name] = [
            Episode(
                id=index,
                name=episode.name,
                file_path=episode.file_path,
                show_name=episode.show_name,
                episode_number=episode.episode_number,
            )
            for index, episode in enumerate(ordered)
        ]
    return shows


def flatten_library(shows: ShowLibrary) -> List[Path]:
    """Raw fallback file list: shows by name, episodes in library order."""
    return [
        episode.file_path
        for show_name in sorted(shows)
        for episode in shows[show_name]
    ]
