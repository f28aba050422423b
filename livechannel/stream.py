"""
The channel loop and the registry that keeps exactly one loop per channel.

Loop pass: snapshot state -> pick mode -> encode each selected source in
order -> repeat. Edits to the library, playlist or subtitle mode made during
a pass are picked up at the next pass.
"""

from __future__ import annotations

import functools
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional

from .errors import ChannelNotFound, LiveChannelError, ResourceError
from .ffmpeg_command import build_transcode_command
from .hls_output import channel_output_dir, prepare_output_dir
from .locks import RWLock
from .models import SUPPORTED_CHANNEL, SubtitleMode, SubtitleStrategy
from .selector import MissingShow, PassMode, WorkItem, plan_pass
from .state import AppState
from .subtitles import probe_subtitle_streams, resolve_subtitle_strategy
from .transcoder import FFmpegCapability, TranscodeExecutor

LOGGER = logging.getLogger(__name__)

IDLE_DELAY = 5.0
FAILURE_DELAY = 1.0
MISSING_SHOW_DELAY = 5.0

StrategyResolver = Callable[[Path, SubtitleMode], SubtitleStrategy]


class ChannelLoop:
    """Drives one channel until its stop event is set."""

    def __init__(
        self,
        state: AppState,
        out_dir: Path,
        executor: TranscodeExecutor,
        stop_event: threading.Event,
        resolve_strategy: Optional[StrategyResolver] = None,
        ffmpeg_bin: str = "ffmpeg",
        idle_delay: float = IDLE_DELAY,
        failure_delay: float = FAILURE_DELAY,
        missing_show_delay: float = MISSING_SHOW_DELAY,
    ) -> None:
        self.state = state
        self.out_dir = out_dir
        self.executor = executor
        self.stop_event = stop_event
        self.resolve_strategy = resolve_strategy or resolve_subtitle_strategy
        self.ffmpeg_bin = ffmpeg_bin
        self.idle_delay = idle_delay
        self.failure_delay = failure_delay
        self.missing_show_delay = missing_show_delay

    @property
    def stopped(self) -> bool:
        return self.stop_event.is_set()

    def _pause(self, seconds: float) -> None:
        self.stop_event.wait(seconds)

    def run(self) -> None:
        LOGGER.info("Starting streaming loop, output in %s", self.out_dir)
        while not self.stopped:
            try:
                attempted = self.run_pass()
            except Exception:
                LOGGER.exception("Unexpected error during streaming pass")
                attempted = 0
            if attempted == 0 and not self.stopped:
                self._pause(self.idle_delay)
        LOGGER.info("Streaming loop stopped")

    def run_pass(self) -> int:
        """Run one pass. Returns how many encodes were attempted."""
        snapshot = self.state.snapshot()
        mode, entries = plan_pass(snapshot, self.state.played)

        if mode is PassMode.IDLE:
            LOGGER.warning(
                "No content available for streaming; add shows to the playlist or scan for videos"
            )
            return 0
        if mode is PassMode.PLAYLIST:
            LOGGER.info("Using playlist mode with %d items", len(snapshot.playlist))
        else:
            LOGGER.info("Using fallback mode with %d files", len(snapshot.tv_files))

        attempted = 0
        for entry in entries:
            if self.stopped:
                break
            if isinstance(entry, MissingShow):
                LOGGER.warning(
                    "No episodes found for show '%s'. Please scan for videos first.",
                    entry.show_name,
                )
                self._pause(self.missing_show_delay)
                continue
            attempted += 1
            self.play(entry, snapshot.subtitle_mode)

        if attempted == 0:
            LOGGER.info("Nothing left to play this pass")
        return attempted

    def play(self, work: WorkItem, subtitle_mode: SubtitleMode) -> bool:
        LOGGER.info("Processing %s", work.label)
        self.state.set_current_playing(work.source)
        try:
            self.process_source(work.source, subtitle_mode)
        except LiveChannelError as exc:
            LOGGER.error("Failed to process %s: %s", work.label, exc)
            self._pause(self.failure_delay)
            return False
        finally:
            self.state.set_current_playing(None)

        # Marked only after the live playlist is confirmed on disk.
        if work.play_once and work.show_name is not None and work.episode_id is not None:
            self.state.played.mark_played(work.show_name, work.episode_id)
        LOGGER.info("Finished %s", work.label)
        return True

    def process_source(self, source: Path, subtitle_mode: SubtitleMode) -> None:
        if not source.is_file():
            raise ResourceError(f"File does not exist: {source}")
        self.executor.capability.require()
        strategy = self.resolve_strategy(source, subtitle_mode)
        command = build_transcode_command(source, self.out_dir, strategy, self.ffmpeg_bin)
        self.executor.execute(command)


@dataclass
class ChannelJob:
    channel_id: str
    out_dir: Path
    thread: threading.Thread
    stop_event: threading.Event

    def is_alive(self) -> bool:
        return self.thread.is_alive()


LoopFactory = Callable[[Path, threading.Event], Callable[[], None]]


class ChannelRegistry:
    """Starts at most one loop thread per channel id and can stop it again."""

    def __init__(
        self,
        hls_root: Path,
        loop_factory: LoopFactory,
        supported_channels: Iterable[str] = (SUPPORTED_CHANNEL,),
        prepare: Callable[[Path], None] = prepare_output_dir,
    ) -> None:
        self.hls_root = hls_root
        self._loop_factory = loop_factory
        self._supported = frozenset(supported_channels)
        self._prepare = prepare
        self._lock = RWLock()
        self._jobs: Dict[str, ChannelJob] = {}
        # Signalled jobs whose thread has not exited yet.
        self._stopping: Dict[str, ChannelJob] = {}

    def check_channel(self, channel_id: str) -> None:
        if channel_id not in self._supported:
            raise ChannelNotFound(channel_id)

    def ensure_started(self, channel_id: str) -> bool:
        """Start the channel loop unless it already runs. True if started here.

        Returns without waiting for any output. Raises
        :class:`ChannelNotFound` or, if the output directory cannot be
        prepared or a previous loop has not exited yet, :class:`ResourceError`
        (no loop is spawned then).
        """
        self.check_channel(channel_id)
        with self._lock.read_locked():
            if channel_id in self._jobs:
                return False

        with self._lock.write_locked():
            if channel_id in self._jobs:
                return False
            lingering = self._stopping.get(channel_id)
            if lingering is not None:
                if lingering.is_alive():
                    raise ResourceError(f"Channel {channel_id} is still stopping")
                del self._stopping[channel_id]
            out_dir = channel_output_dir(self.hls_root, channel_id)
            try:
                self._prepare(out_dir)
            except ResourceError:
                LOGGER.error("Failed to prepare HLS directory for channel %s", channel_id)
                raise
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._loop_factory(out_dir, stop_event),
                name=f"channel-{channel_id}",
                daemon=True,
            )
            self._jobs[channel_id] = ChannelJob(channel_id, out_dir, thread, stop_event)
            thread.start()
        LOGGER.info("Started channel %s", channel_id)
        return True

    def stop(self, channel_id: str, timeout: float = 10.0) -> bool:
        """Signal the loop to stop and wait for it. False if it was not running.

        The wait happens outside the registry lock. A loop that outlives
        ``timeout`` stays registered as stopping and blocks a new start until
        it exits.
        """
        self.check_channel(channel_id)
        with self._lock.write_locked():
            job = self._jobs.pop(channel_id, None)
            if job is None:
                return False
            job.stop_event.set()
            self._stopping[channel_id] = job

        job.thread.join(timeout)
        if job.is_alive():
            LOGGER.warning("Channel %s did not stop within %.1fs", channel_id, timeout)
            return True

        with self._lock.write_locked():
            if self._stopping.get(channel_id) is job:
                del self._stopping[channel_id]
        LOGGER.info("Stopped channel %s", channel_id)
        return True

    def restart(self, channel_id: str) -> bool:
        self.stop(channel_id)
        return self.ensure_started(channel_id)

    def is_running(self, channel_id: str) -> bool:
        with self._lock.read_locked():
            job = self._jobs.get(channel_id)
        return job is not None and job.is_alive()

    def stop_all(self, timeout: float = 10.0) -> None:
        with self._lock.read_locked():
            channel_ids = list(self._jobs)
        for channel_id in channel_ids:
            self.stop(channel_id, timeout)


def make_loop_factory(
    state: AppState,
    capability: FFmpegCapability,
    ffmpeg_bin: str = "ffmpeg",
    ffprobe_bin: str = "ffprobe",
) -> LoopFactory:
    """Factory used by the registry to build the real ffmpeg-backed loop."""
    probe = functools.partial(probe_subtitle_streams, ffprobe_bin=ffprobe_bin)

    def resolve(source: Path, mode: SubtitleMode) -> SubtitleStrategy:
        return resolve_subtitle_strategy(source, mode, probe=probe)

    def factory(out_dir: Path, stop_event: threading.Event) -> Callable[[], None]:
        executor = TranscodeExecutor(capability, stop_event=stop_event)
        loop = ChannelLoop(
            state,
            out_dir,
            executor,
            stop_event,
            resolve_strategy=resolve,
            ffmpeg_bin=ffmpeg_bin,
        )
        return loop.run

    return factory
