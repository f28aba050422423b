"""Tests for ffmpeg command synthesis."""

from pathlib import Path

import pytest

from livechannel.ffmpeg_command import BURN_IN_GRAPH, CANVAS, build_transcode_command
from livechannel.models import SubtitleStrategy

SOURCE = Path("/media/Demo/Demo - 01.mkv")
OUT_DIR = Path("/tmp/hls/tv")


def _value(args, flag):
    return args[args.index(flag) + 1]


def _maps(args):
    return [args[i + 1] for i, arg in enumerate(args) if arg == "-map"]


@pytest.mark.unit
@pytest.mark.parametrize("strategy", list(SubtitleStrategy))
def test_common_encoding_parameters(strategy: SubtitleStrategy):
    command = build_transcode_command(SOURCE, OUT_DIR, strategy)
    args = command.args

    assert args[:4] == ["ffmpeg", "-re", "-i", str(SOURCE)]
    assert _value(args, "-c:v") == "libx264"
    assert _value(args, "-preset") == "veryfast"
    assert _value(args, "-s") == "1920x1080"
    assert _value(args, "-b:v") == "5M"
    assert _value(args, "-maxrate") == "5M"
    assert _value(args, "-bufsize") == "10M"
    assert _value(args, "-c:a") == "aac"
    assert _value(args, "-b:a") == "128k"
    assert _value(args, "-f") == "hls"
    assert _value(args, "-hls_time") == "4"
    assert _value(args, "-hls_list_size") == "5"
    flags = _value(args, "-hls_flags").split("+")
    assert set(flags) == {
        "append_list",
        "delete_segments",
        "program_date_time",
        "omit_endlist",
        "independent_segments",
    }
    assert _value(args, "-hls_segment_filename") == str(OUT_DIR / "%09d.ts")
    assert args[-1] == str(OUT_DIR / "index.m3u8")
    assert command.playlist_path == OUT_DIR / "index.m3u8"


@pytest.mark.unit
def test_passthrough_maps_video_and_audio_only():
    args = build_transcode_command(SOURCE, OUT_DIR, SubtitleStrategy.PASSTHROUGH).args
    assert _maps(args) == ["0:v:0", "0:a?"]
    assert _value(args, "-vf") == CANVAS
    assert "-c:s" not in args
    assert "-filter_complex" not in args


@pytest.mark.unit
def test_convert_to_text_maps_first_subtitle_as_webvtt():
    args = build_transcode_command(SOURCE, OUT_DIR, SubtitleStrategy.CONVERT_TO_TEXT).args
    assert _maps(args) == ["0:v:0", "0:a?", "0:s:0?"]
    assert _value(args, "-vf") == CANVAS
    assert _value(args, "-c:s") == "webvtt"


@pytest.mark.unit
def test_burn_in_overlays_subtitles():
    args = build_transcode_command(SOURCE, OUT_DIR, SubtitleStrategy.BURN_IN).args
    assert _value(args, "-filter_complex") == BURN_IN_GRAPH
    assert "[0:s:0]scale=1920:1080[s]" in BURN_IN_GRAPH
    assert BURN_IN_GRAPH.endswith("[v][s]overlay[vout]")
    assert _maps(args) == ["[vout]", "0:a?"]
    assert "-vf" not in args
    assert "-c:s" not in args


@pytest.mark.unit
def test_custom_ffmpeg_binary():
    command = build_transcode_command(SOURCE, OUT_DIR, SubtitleStrategy.PASSTHROUGH, "/opt/ffmpeg")
    assert command.args[0] == "/opt/ffmpeg"
