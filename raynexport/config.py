"""Global configuration: output names, constants, settings."""

from __future__ import annotations

import logging
import os

from pydantic import BaseModel, Field, field_validator

# Output file names inside the export directory
DESCRIPTOR_FILENAME = "scene.json"
PAYLOAD_FILENAME = "everything.mesh"

# Animated transforms are serialized as a single pose sampled at this time
SAMPLE_TIME = 0.0

# Descriptor record type tags
CAMERA_RECORD_TYPE = "camera/pinhole"
MESH_RECORD_TYPE = "shape/mesh"

# Fixed field widths of a payload header record (bytes)
HEADER_TYPE_SIZE = 16
HEADER_NAME_SIZE = 1024
HEADER_PAD_SIZE = 64

# Environment variables read by ExportSettings.from_env(), mapped to fields
_ENV_KEYS: dict[str, str] = {
    "RAYN_DESCRIPTOR_FILENAME": "descriptor_filename",
    "RAYN_PAYLOAD_FILENAME": "payload_filename",
    "RAYN_SAMPLE_TIME": "sample_time",
    "RAYN_INDENT": "indent",
    "RAYN_LOG_LEVEL": "log_level",
}


class ExportSettings(BaseModel):
    """Tunable knobs of one export run."""

    descriptor_filename: str = DESCRIPTOR_FILENAME
    payload_filename: str = PAYLOAD_FILENAME
    sample_time: float = SAMPLE_TIME
    indent: int | None = Field(default=1, ge=0)
    log_level: str = "INFO"

    @field_validator("descriptor_filename", "payload_filename")
    @classmethod
    def _plain_filename(cls, value: str) -> str:
        if not value or "/" in value or "\\" in value:
            raise ValueError(f"expected a bare file name, got {value!r}")
        return value

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level {value!r}")
        return level

    @classmethod
    def from_env(cls, **overrides: object) -> ExportSettings:
        """Build settings: defaults -> environment variables -> *overrides*."""
        data: dict[str, object] = {}
        for env_key, field_name in _ENV_KEYS.items():
            env_val = os.environ.get(env_key)
            if env_val is not None:
                data[field_name] = env_val
        data.update(overrides)
        return cls.model_validate(data)


def configure_logging(settings: ExportSettings | None = None) -> None:
    """Apply *settings.log_level* to the root logger.

    Library code never installs handlers itself; applications call this once.
    """
    level = (settings or ExportSettings()).log_level
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
