"""
Per-channel HLS output directory lifecycle and the readiness poll used by
request handlers.
"""

from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path

from .errors import ResourceError
from .models import PLAYLIST_NAME

LOGGER = logging.getLogger(__name__)

READINESS_POLL_INTERVAL = 0.2


def channel_output_dir(hls_root: Path, channel_id: str) -> Path:
    return hls_root / channel_id


def channel_playlist_path(hls_root: Path, channel_id: str) -> Path:
    return channel_output_dir(hls_root, channel_id) / PLAYLIST_NAME


def prepare_output_dir(out_dir: Path) -> None:
    """Wipe ``out_dir`` if present and recreate it empty.

    Runs once per job start, before the loop writes anything. Raises
    :class:`ResourceError` if the directory cannot be removed or created.
    """
    if out_dir.exists():
        LOGGER.info("Cleaning up existing HLS directory: %s", out_dir)
        try:
            shutil.rmtree(out_dir)
        except OSError as exc:
            raise ResourceError(f"Failed to remove HLS directory {out_dir}: {exc}") from exc
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ResourceError(f"Failed to create HLS directory {out_dir}: {exc}") from exc
    LOGGER.info("HLS directory ready: %s", out_dir)


def wait_for_file(
    path: Path, timeout: float, interval: float = READINESS_POLL_INTERVAL
) -> bool:
    """Poll until ``path`` exists. Returns False once ``timeout`` seconds pass."""
    deadline = time.monotonic() + timeout
    while True:
        if path.exists():
            return True
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False
        time.sleep(min(interval, remaining))
