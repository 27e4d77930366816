"""Tests for export settings and logging configuration."""

from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from raynexport.config import (
    DESCRIPTOR_FILENAME,
    PAYLOAD_FILENAME,
    ExportSettings,
    configure_logging,
)


class TestExportSettings:
    def test_defaults(self) -> None:
        settings = ExportSettings()
        assert settings.descriptor_filename == DESCRIPTOR_FILENAME == "scene.json"
        assert settings.payload_filename == PAYLOAD_FILENAME == "everything.mesh"
        assert settings.sample_time == 0.0
        assert settings.log_level == "INFO"

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RAYN_PAYLOAD_FILENAME", "geo.bin")
        monkeypatch.setenv("RAYN_SAMPLE_TIME", "0.25")
        monkeypatch.setenv("RAYN_LOG_LEVEL", "debug")
        settings = ExportSettings.from_env()
        assert settings.payload_filename == "geo.bin"
        assert settings.sample_time == 0.25
        assert settings.log_level == "DEBUG"

    def test_overrides_beat_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RAYN_DESCRIPTOR_FILENAME", "env.json")
        settings = ExportSettings.from_env(descriptor_filename="arg.json")
        assert settings.descriptor_filename == "arg.json"

    def test_path_in_filename_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ExportSettings(payload_filename="sub/dir.mesh")

    def test_unknown_log_level_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ExportSettings(log_level="CHATTY")

    def test_negative_indent_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ExportSettings(indent=-1)


def test_configure_logging_applies_level(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict] = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kw: calls.append(kw))
    configure_logging(ExportSettings(log_level="warning"))
    assert calls[0]["level"] == "WARNING"
