"""Tests for the ffmpeg capability check and the encode executor."""

import subprocess
import threading
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from livechannel.errors import ConsistencyError, ProcessError, ResourceError
from livechannel.ffmpeg_command import build_transcode_command
from livechannel.models import SubtitleStrategy
from livechannel.transcoder import FFmpegCapability, TranscodeExecutor


def _available_capability() -> FFmpegCapability:
    capability = FFmpegCapability()
    capability._available = True
    return capability


@pytest.mark.unit
@patch("subprocess.run")
def test_capability_probed_once(mock_run: MagicMock):
    mock_run.return_value = MagicMock(returncode=0)
    capability = FFmpegCapability("ffmpeg")

    assert capability.available is True
    assert capability.available is True
    mock_run.assert_called_once()
    assert mock_run.call_args[0][0] == ["ffmpeg", "-version"]


@pytest.mark.unit
@patch("subprocess.run", side_effect=FileNotFoundError("ffmpeg"))
def test_capability_negative_result_is_cached(mock_run: MagicMock):
    capability = FFmpegCapability("ffmpeg")

    with pytest.raises(ResourceError, match="cached result"):
        capability.require()
    with pytest.raises(ResourceError):
        capability.require()
    mock_run.assert_called_once()


@pytest.mark.unit
@patch("subprocess.run")
def test_capability_nonzero_version_check(mock_run: MagicMock):
    mock_run.return_value = MagicMock(returncode=1)
    assert FFmpegCapability().available is False


@pytest.mark.unit
@patch("subprocess.Popen")
def test_execute_success(mock_popen: MagicMock, temp_dir: Path):
    command = build_transcode_command(Path("/v/a.mp4"), temp_dir, SubtitleStrategy.PASSTHROUGH)
    process = MagicMock()
    process.pid = 1234

    def finish(timeout=None):
        command.playlist_path.write_text("#EXTM3U\n")
        return 0

    process.wait.side_effect = finish
    mock_popen.return_value = process

    TranscodeExecutor(_available_capability()).execute(command)

    assert mock_popen.call_args[0][0] == command.args
    assert mock_popen.call_args[1]["stdin"] == subprocess.DEVNULL


@pytest.mark.unit
@patch("subprocess.Popen")
def test_execute_nonzero_exit(mock_popen: MagicMock, temp_dir: Path):
    command = build_transcode_command(Path("/v/a.mp4"), temp_dir, SubtitleStrategy.PASSTHROUGH)
    process = MagicMock(pid=1)
    process.wait.return_value = 1
    mock_popen.return_value = process

    with pytest.raises(ProcessError) as excinfo:
        TranscodeExecutor(_available_capability()).execute(command)
    assert excinfo.value.returncode == 1


@pytest.mark.unit
@patch("subprocess.Popen", side_effect=OSError("exec format error"))
def test_execute_spawn_failure(mock_popen: MagicMock, temp_dir: Path):
    command = build_transcode_command(Path("/v/a.mp4"), temp_dir, SubtitleStrategy.PASSTHROUGH)
    with pytest.raises(ProcessError, match="Failed to start FFmpeg"):
        TranscodeExecutor(_available_capability()).execute(command)


@pytest.mark.unit
@patch("subprocess.Popen")
def test_execute_missing_playlist_after_success(mock_popen: MagicMock, temp_dir: Path):
    command = build_transcode_command(Path("/v/a.mp4"), temp_dir, SubtitleStrategy.PASSTHROUGH)
    process = MagicMock(pid=1)
    process.wait.return_value = 0
    mock_popen.return_value = process

    with pytest.raises(ConsistencyError):
        TranscodeExecutor(_available_capability()).execute(command)


@pytest.mark.unit
@patch("subprocess.Popen")
def test_execute_fails_fast_without_ffmpeg(mock_popen: MagicMock, temp_dir: Path):
    capability = FFmpegCapability()
    capability._available = False
    capability._reason = "FFmpeg not found"
    command = build_transcode_command(Path("/v/a.mp4"), temp_dir, SubtitleStrategy.PASSTHROUGH)

    with pytest.raises(ResourceError):
        TranscodeExecutor(capability).execute(command)
    mock_popen.assert_not_called()


@pytest.mark.unit
@patch("subprocess.Popen")
def test_execute_terminates_on_stop(mock_popen: MagicMock, temp_dir: Path):
    command = build_transcode_command(Path("/v/a.mp4"), temp_dir, SubtitleStrategy.PASSTHROUGH)
    stop_event = threading.Event()
    process = MagicMock(pid=1)
    waits = iter([subprocess.TimeoutExpired("ffmpeg", 0.01), 255])

    def wait(timeout=None):
        outcome = next(waits)
        if isinstance(outcome, Exception):
            stop_event.set()
            raise outcome
        return outcome

    process.wait.side_effect = wait
    mock_popen.return_value = process

    executor = TranscodeExecutor(_available_capability(), stop_event=stop_event, poll_interval=0.01)
    with pytest.raises(ProcessError, match="stopped"):
        executor.execute(command)
    process.terminate.assert_called_once()
