"""
Runtime settings resolved from the environment.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

DEFAULT_CONFIG_PATH = Path.cwd() / "config" / "livechannel.json"
CONTAINER_CONFIG_PATH = Path("/app/config/livechannel.json")
DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://localhost:5173"


def _resolve_config_path() -> Path:
    override = os.environ.get("LIVECHANNEL_CONFIG")
    if override:
        return Path(override).expanduser()
    if CONTAINER_CONFIG_PATH.parent.exists():
        return CONTAINER_CONFIG_PATH
    return DEFAULT_CONFIG_PATH


def _resolve_hls_root() -> Path:
    override = os.environ.get("LIVECHANNEL_HLS_ROOT")
    if override:
        return Path(override).expanduser()
    return Path(tempfile.gettempdir()) / "livechannel-hls"


@dataclass(frozen=True)
class Settings:
    config_path: Path
    hls_root: Path
    ffmpeg_bin: str = "ffmpeg"
    ffprobe_bin: str = "ffprobe"
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=list)
    readiness_timeout: float = 8.0

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.environ.get("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
        return cls(
            config_path=_resolve_config_path(),
            hls_root=_resolve_hls_root(),
            ffmpeg_bin=os.environ.get("LIVECHANNEL_FFMPEG", "ffmpeg"),
            ffprobe_bin=os.environ.get("LIVECHANNEL_FFPROBE", "ffprobe"),
            host=os.environ.get("LIVECHANNEL_HOST", "0.0.0.0"),
            port=int(os.environ.get("LIVECHANNEL_PORT", "8080")),
            log_level=os.environ.get("LIVECHANNEL_LOG_LEVEL", "INFO").upper(),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )
