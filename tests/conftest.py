"""Pytest configuration and shared fixtures."""

import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from livechannel.context import AppContext
from livechannel.errors import ProcessError
from livechannel.ffmpeg_command import TranscodeCommand
from livechannel.library import organize_shows
from livechannel.models import ShowLibrary
from livechannel.settings import Settings
from livechannel.state import AppState
from livechannel.stream import ChannelRegistry
from livechannel.transcoder import FFmpegCapability


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Create a temporary directory for test files."""
    return tmp_path


@pytest.fixture
def make_library(temp_dir: Path) -> Callable[[Dict[str, int]], ShowLibrary]:
    """Create dummy episode files on disk and organize them into a library."""

    def _make(spec: Dict[str, int]) -> ShowLibrary:
        paths: List[Path] = []
        for show, count in spec.items():
            show_dir = temp_dir / "media" / show
            show_dir.mkdir(parents=True, exist_ok=True)
            for number in range(1, count + 1):
                episode = show_dir / f"{show} - {number:02d}.mp4"
                episode.write_text("fake video content")
                paths.append(episode)
        return organize_shows(paths)

    return _make


class AvailableCapability(FFmpegCapability):
    def __init__(self, available: bool = True) -> None:
        super().__init__("ffmpeg")
        self._available = available
        self._reason = "" if available else "FFmpeg not found or not accessible: test"


class FakeExecutor:
    """Stands in for TranscodeExecutor: records commands, writes the playlist."""

    def __init__(self, fail_on: Optional[set] = None) -> None:
        self.capability = AvailableCapability()
        self.commands: List[TranscodeCommand] = []
        self.fail_on = fail_on or set()
        self.lock = threading.Lock()

    def execute(self, command: TranscodeCommand) -> None:
        with self.lock:
            self.commands.append(command)
        if command.source.name in self.fail_on:
            raise ProcessError("FFmpeg exited with error status 1", returncode=1)
        command.output_dir.mkdir(parents=True, exist_ok=True)
        command.playlist_path.write_text("#EXTM3U\n")

    @property
    def sources(self) -> List[str]:
        return [command.source.name for command in self.commands]


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def settings(temp_dir: Path) -> Settings:
    return Settings(
        config_path=temp_dir / "config" / "livechannel.json",
        hls_root=temp_dir / "hls",
        readiness_timeout=1.0,
    )


@pytest.fixture
def app_context(settings: Settings) -> AppContext:
    """Context whose channel loop just writes the live playlist and idles."""
    settings.hls_root.mkdir(parents=True, exist_ok=True)
    state = AppState()

    def loop_factory(out_dir: Path, stop_event: threading.Event):
        def run() -> None:
            (out_dir / "index.m3u8").write_text("#EXTM3U\n")
            stop_event.wait()

        return run

    return AppContext(
        settings=settings,
        state=state,
        capability=AvailableCapability(),
        registry=ChannelRegistry(settings.hls_root, loop_factory),
    )


@pytest.fixture
def api_client(app_context: AppContext):
    """Create a test client for the FastAPI app."""
    from fastapi.testclient import TestClient

    from livechannel.api.app import create_app

    app = create_app(app_context)
    with TestClient(app) as client:
        yield client
    app_context.registry.stop_all()


@pytest.fixture
def failing_executor() -> Callable[..., FakeExecutor]:
    def _make(*names: str) -> FakeExecutor:
        return FakeExecutor(fail_on=set(names))

    return _make
