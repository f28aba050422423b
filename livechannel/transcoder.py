"""
Runs ffmpeg encodes for the channel loop, one at a time.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from pathlib import Path
from typing import Optional

from .errors import ConsistencyError, ProcessError, ResourceError
from .ffmpeg_command import TranscodeCommand

LOGGER = logging.getLogger(__name__)

VERSION_CHECK_TIMEOUT = 10
POLL_INTERVAL = 0.5
TERMINATE_GRACE = 5


class FFmpegCapability:
    """Whether the ffmpeg binary runs. Probed once, on first use."""

    def __init__(self, ffmpeg_bin: str = "ffmpeg") -> None:
        self.ffmpeg_bin = ffmpeg_bin
        self._lock = threading.Lock()
        self._available: Optional[bool] = None
        self._reason = ""

    def _probe(self) -> None:
        try:
            result = subprocess.run(
                [self.ffmpeg_bin, "-version"],
                check=False,
                capture_output=True,
                text=True,
                timeout=VERSION_CHECK_TIMEOUT,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            self._available = False
            self._reason = f"FFmpeg not found or not accessible: {exc}"
        else:
            self._available = result.returncode == 0
            if not self._available:
                self._reason = f"FFmpeg version check failed with status {result.returncode}"
        if self._available:
            LOGGER.info("FFmpeg available (%s)", self.ffmpeg_bin)
        else:
            LOGGER.error("%s", self._reason)

    @property
    def available(self) -> bool:
        with self._lock:
            if self._available is None:
                self._probe()
            return bool(self._available)

    def require(self) -> None:
        if not self.available:
            raise ResourceError(f"{self._reason} (cached result)")


class TranscodeExecutor:
    """Spawns one encode and blocks until it exits.

    ``stop_event`` lets the owning channel job interrupt a long encode.
    """

    def __init__(
        self,
        capability: FFmpegCapability,
        stop_event: Optional[threading.Event] = None,
        poll_interval: float = POLL_INTERVAL,
    ) -> None:
        self.capability = capability
        self.stop_event = stop_event or threading.Event()
        self.poll_interval = poll_interval

    def execute(self, command: TranscodeCommand) -> None:
        self.capability.require()
        LOGGER.info("Starting FFmpeg for %s (%s)", command.source.name, command.strategy.value)
        LOGGER.debug("FFmpeg command: %s", " ".join(command.args))

        try:
            process = subprocess.Popen(
                command.args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
            )
        except OSError as exc:
            raise ProcessError(f"Failed to start FFmpeg for {command.source}: {exc}") from exc

        LOGGER.info("FFmpeg process started (PID: %d)", process.pid)
        returncode = self._wait(process)

        if self.stop_event.is_set() and returncode != 0:
            raise ProcessError(f"FFmpeg stopped for {command.source.name}", returncode=returncode)
        if returncode != 0:
            raise ProcessError(
                f"FFmpeg exited with error status {returncode} for {command.source.name}",
                returncode=returncode,
            )

        self._verify_output(command.playlist_path)
        LOGGER.info("FFmpeg completed successfully: %s", command.source.name)

    def _wait(self, process: subprocess.Popen) -> int:
        while True:
            try:
                return process.wait(timeout=self.poll_interval)
            except subprocess.TimeoutExpired:
                pass
            if self.stop_event.is_set():
                LOGGER.info("Stop requested, terminating FFmpeg (PID: %d)", process.pid)
                process.terminate()
                try:
                    return process.wait(timeout=TERMINATE_GRACE)
                except subprocess.TimeoutExpired:
                    process.kill()
                    return process.wait()

    @staticmethod
    def _verify_output(playlist_path: Path) -> None:
        try:
            size = playlist_path.stat().st_size
        except FileNotFoundError:
            raise ConsistencyError(
                f"HLS playlist {playlist_path} not found after FFmpeg completion"
            ) from None
        LOGGER.info("HLS playlist present (%d bytes)", size)
