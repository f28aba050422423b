"""
Wiring of the long-lived objects one running server shares.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .api.config_service import load_config, save_config
from .settings import Settings
from .state import AppState
from .stream import ChannelRegistry, make_loop_factory
from .transcoder import FFmpegCapability

LOGGER = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    state: AppState
    capability: FFmpegCapability
    registry: ChannelRegistry

    @classmethod
    def from_settings(
        cls, settings: Settings, state: Optional[AppState] = None
    ) -> "AppContext":
        state = state or AppState()
        capability = FFmpegCapability(settings.ffmpeg_bin)
        registry = ChannelRegistry(
            settings.hls_root,
            make_loop_factory(
                state,
                capability,
                ffmpeg_bin=settings.ffmpeg_bin,
                ffprobe_bin=settings.ffprobe_bin,
            ),
        )
        return cls(settings=settings, state=state, capability=capability, registry=registry)

    def reload_config(self) -> None:
        """Apply the persisted configuration in one atomic state update."""
        self.state.apply_config(load_config(self.settings.config_path))

    def persist(self) -> None:
        save_config(self.state.to_config(), self.settings.config_path)
