"""
Decides how subtitle tracks of a source are carried into the HLS output.
"""

from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import Any, Callable, Dict, List, Sequence

from .errors import ProbeError
from .models import SubtitleMode, SubtitleStrategy

LOGGER = logging.getLogger(__name__)

PROBE_TIMEOUT_SEC = 30

TEXT_SUBTITLE_CODECS = {
    "subrip",
    "srt",
    "ass",
    "ssa",
    "mov_text",
    "webvtt",
    "text",
}

BITMAP_SUBTITLE_CODECS = {
    "hdmv_pgs_subtitle",
    "pgssub",
    "dvd_subtitle",
    "dvdsub",
    "dvb_subtitle",
}


def probe_subtitle_streams(source: Path, ffprobe_bin: str = "ffprobe") -> List[Dict[str, Any]]:
    """Return the subtitle stream entries ffprobe reports for ``source``.

    Raises :class:`ProbeError` if ffprobe is missing, fails, or prints
    something that is not the expected JSON document.
    """
    cmd = [
        ffprobe_bin,
        "-v", "quiet",
        "-print_format", "json",
        "-show_streams",
        "-select_streams", "s",
        str(source),
    ]
    try:
        result = subprocess.run(
            cmd,
            check=False,
            capture_output=True,
            text=True,
            timeout=PROBE_TIMEOUT_SEC,
        )
    except FileNotFoundError as exc:
        raise ProbeError(f"{ffprobe_bin} not found in PATH") from exc
    except subprocess.TimeoutExpired as exc:
        raise ProbeError(f"{ffprobe_bin} timed out after {PROBE_TIMEOUT_SEC}s") from exc
    except OSError as exc:
        raise ProbeError(f"Failed to run {ffprobe_bin}: {exc}") from exc

    if result.returncode != 0:
        raise ProbeError(
            f"{ffprobe_bin} exited with status {result.returncode}",
            returncode=result.returncode,
        )

    try:
        data = json.loads(result.stdout or "")
    except ValueError as exc:
        raise ProbeError(f"Unreadable {ffprobe_bin} output: {exc}") from exc
    if not isinstance(data, dict):
        raise ProbeError(f"Unexpected {ffprobe_bin} output type: {type(data).__name__}")

    streams = data.get("streams") or []
    if not isinstance(streams, list):
        raise ProbeError(f"Unexpected 'streams' value in {ffprobe_bin} output")
    return [s for s in streams if isinstance(s, dict) and s.get("codec_type", "subtitle") == "subtitle"]


def classify_subtitle_codecs(codecs: Sequence[str]) -> SubtitleStrategy:
    names = [codec.lower() for codec in codecs]
    for name in names:
        if name in TEXT_SUBTITLE_CODECS:
            LOGGER.info("Detected text-based subtitle format: %s", name)
            return SubtitleStrategy.CONVERT_TO_TEXT
    for name in names:
        if name in BITMAP_SUBTITLE_CODECS:
            LOGGER.info("Detected bitmap-based subtitle format: %s", name)
            return SubtitleStrategy.BURN_IN
    if names:
        LOGGER.info("Found subtitles but format unknown (%s), defaulting to burn-in", ", ".join(names))
        return SubtitleStrategy.BURN_IN
    LOGGER.info("No subtitle streams detected")
    return SubtitleStrategy.PASSTHROUGH


SubtitleProbe = Callable[[Path], List[Dict[str, Any]]]


def resolve_subtitle_strategy(
    source: Path,
    mode: SubtitleMode,
    probe: SubtitleProbe = probe_subtitle_streams,
) -> SubtitleStrategy:
    if mode is SubtitleMode.NONE:
        return SubtitleStrategy.PASSTHROUGH

    try:
        streams = probe(source)
    except ProbeError as exc:
        # Fails open to burn-in; the overlay graph will fail loudly if the
        # source really has no subtitle track.
        LOGGER.warning("Subtitle probe failed for %s (%s), defaulting to burn-in", source.name, exc)
        return SubtitleStrategy.BURN_IN

    codecs = [str(stream.get("codec_name") or "") for stream in streams]
    return classify_subtitle_codecs(codecs)
