"""
Builds the ffmpeg invocation that feeds the rolling HLS window.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List

from .models import PLAYLIST_NAME, SEGMENT_TEMPLATE, SubtitleStrategy

CANVAS = "scale=1920:1080:force_original_aspect_ratio=decrease,pad=1920:1080:(ow-iw)/2:(oh-ih)/2"
BURN_IN_GRAPH = f"[0:v:0]{CANVAS}[v];[0:s:0]scale=1920:1080[s];[v][s]overlay[vout]"

HLS_TIME = 4
HLS_LIST_SIZE = 5
HLS_FLAGS = "append_list+delete_segments+program_date_time+omit_endlist+independent_segments"


@dataclass(frozen=True)
class TranscodeCommand:
    source: Path
    output_dir: Path
    strategy: SubtitleStrategy
    args: List[str]

    @property
    def playlist_path(self) -> Path:
        return self.output_dir / PLAYLIST_NAME


def _stream_mapping(strategy: SubtitleStrategy) -> List[str]:
    if strategy is SubtitleStrategy.BURN_IN:
        return ["-filter_complex", BURN_IN_GRAPH, "-map", "[vout]", "-map", "0:a?"]

    args = ["-map", "0:v:0", "-map", "0:a?"]
    if strategy is SubtitleStrategy.CONVERT_TO_TEXT:
        args.extend(["-map", "0:s:0?"])
    args.extend(["-vf", CANVAS])
    if strategy is SubtitleStrategy.CONVERT_TO_TEXT:
        args.extend(["-c:s", "webvtt"])
    return args


def build_transcode_command(
    source: Path,
    output_dir: Path,
    strategy: SubtitleStrategy,
    ffmpeg_bin: str = "ffmpeg",
) -> TranscodeCommand:
    """Return the full ffmpeg argv for one source. Performs no I/O."""
    args = [ffmpeg_bin, "-re", "-i", str(source)]
    args.extend(_stream_mapping(strategy))
    args.extend([
        "-c:v", "libx264",
        "-preset", "veryfast",
        "-s", "1920x1080",
        "-b:v", "5M",
        "-maxrate", "5M",
        "-bufsize", "10M",
        "-c:a", "aac",
        "-b:a", "128k",
        "-f", "hls",
        "-hls_time", str(HLS_TIME),
        "-hls_list_size", str(HLS_LIST_SIZE),
        "-hls_flags", HLS_FLAGS,
        "-hls_segment_filename", str(output_dir / SEGMENT_TEMPLATE),
        str(output_dir / PLAYLIST_NAME),
    ])
    return TranscodeCommand(source=source, output_dir=output_dir, strategy=strategy, args=args)
