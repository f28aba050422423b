"""Tests for environment-driven settings and the server entry point."""

from pathlib import Path
from unittest.mock import patch

import pytest

from livechannel import main as entry
from livechannel.settings import Settings


@pytest.mark.unit
def test_settings_from_env(monkeypatch, temp_dir: Path):
    monkeypatch.setenv("LIVECHANNEL_CONFIG", str(temp_dir / "cfg.json"))
    monkeypatch.setenv("LIVECHANNEL_HLS_ROOT", str(temp_dir / "hls"))
    monkeypatch.setenv("LIVECHANNEL_FFMPEG", "/opt/ffmpeg")
    monkeypatch.setenv("LIVECHANNEL_PORT", "9000")
    monkeypatch.setenv("LIVECHANNEL_LOG_LEVEL", "debug")
    monkeypatch.setenv("CORS_ORIGINS", "http://a, ,http://b")

    settings = Settings.from_env()

    assert settings.config_path == temp_dir / "cfg.json"
    assert settings.hls_root == temp_dir / "hls"
    assert settings.ffmpeg_bin == "/opt/ffmpeg"
    assert settings.ffprobe_bin == "ffprobe"
    assert settings.port == 9000
    assert settings.log_level == "DEBUG"
    assert settings.cors_origins == ["http://a", "http://b"]


@pytest.mark.unit
def test_main_refuses_broken_config(monkeypatch, temp_dir: Path):
    config_path = temp_dir / "cfg.json"
    config_path.write_text("[]")
    monkeypatch.setenv("LIVECHANNEL_CONFIG", str(config_path))
    monkeypatch.setenv("LIVECHANNEL_HLS_ROOT", str(temp_dir / "hls"))

    with patch.object(entry.uvicorn, "run") as run:
        assert entry.main() == 1
    run.assert_not_called()


@pytest.mark.unit
def test_main_starts_server(monkeypatch, temp_dir: Path):
    monkeypatch.setenv("LIVECHANNEL_CONFIG", str(temp_dir / "cfg.json"))
    monkeypatch.setenv("LIVECHANNEL_HLS_ROOT", str(temp_dir / "hls"))
    monkeypatch.setenv("LIVECHANNEL_PORT", "9100")

    with patch.object(entry.uvicorn, "run") as run:
        assert entry.main() == 0

    assert (temp_dir / "hls").is_dir()
    _, kwargs = run.call_args
    assert kwargs["port"] == 9100
    assert kwargs["log_config"] is None
