"""Descriptor writer — the textual half of an export (``scene.json``).

The descriptor is a JSON array of records.  An optional camera record comes
first; one ``shape/mesh`` record follows per distinct mesh instance, naming
the payload file, the mesh index inside it and the instance pose::

    [
     {"type": "camera/pinhole", "fov": 45.0, "location": {...}},
     {"type": "shape/mesh", "file": "everything.mesh", "index": 0,
      "location": {"position": {...}, "direction": {...}, "up": {...}}}
    ]
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from types import TracebackType
from typing import Any, TextIO

from raynexport.config import (
    CAMERA_RECORD_TYPE,
    DESCRIPTOR_FILENAME,
    MESH_RECORD_TYPE,
)
from raynexport.errors import DirectoryCreationFailed, FileOpenFailed
from raynexport.models.geometry import Pose

logger = logging.getLogger(__name__)


def ensure_directory(directory: str | Path) -> Path:
    """Create *directory* (and parents) if missing.

    Raises
    ------
    DirectoryCreationFailed
        If the path cannot be created or exists as a non-directory.
    """
    path = Path(directory)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise DirectoryCreationFailed(path, str(exc)) from exc
    return path


class DescriptorWriter:
    """Stream descriptor records to ``<directory>/<filename>``.

    The directory is created and the file opened on construction.  Use as a
    context manager, or call :meth:`close`, to terminate the JSON array.

    Parameters
    ----------
    directory:
        Export directory, created recursively when absent.
    filename:
        Descriptor file name inside *directory*.
    indent:
        JSON indent for each record; ``None`` writes one record per line.
    """

    def __init__(
        self,
        directory: str | Path,
        filename: str = DESCRIPTOR_FILENAME,
        indent: int | None = 1,
    ) -> None:
        self.directory = ensure_directory(directory)
        self.path = self.directory / filename
        self._indent = indent
        self._records = 0
        self._mesh_records = 0
        try:
            self._stream: TextIO | None = self.path.open("w", encoding="utf-8")
        except OSError as exc:
            raise FileOpenFailed(self.path, str(exc)) from exc
        self._stream.write("[")
        logger.debug("Opened descriptor %s", self.path)

    @property
    def record_count(self) -> int:
        return self._records

    @property
    def closed(self) -> bool:
        return self._stream is None

    def write_camera(self, pose: Pose, fov: float | None = None) -> None:
        """Emit the camera record.  Must precede every mesh record."""
        if self._mesh_records:
            raise ValueError("camera record must be written before mesh records")
        record: dict[str, Any] = {"type": CAMERA_RECORD_TYPE}
        if fov is not None:
            record["fov"] = fov
        record["location"] = pose.to_dict()
        self._write_record(record)

    def write_mesh_instance(self, mesh_file: str, index: int, pose: Pose) -> None:
        """Emit one mesh instance record."""
        self._write_record({
            "type": MESH_RECORD_TYPE,
            "file": mesh_file,
            "index": index,
            "location": pose.to_dict(),
        })
        self._mesh_records += 1

    def _write_record(self, record: dict[str, Any]) -> None:
        if self._stream is None:
            raise ValueError(f"descriptor {self.path} is already closed")
        separator = ",\n" if self._records else "\n"
        self._stream.write(separator + json.dumps(record, indent=self._indent))
        self._records += 1

    def close(self) -> None:
        """Terminate the JSON array and close the file.  Safe to repeat."""
        if self._stream is None:
            return
        stream, self._stream = self._stream, None
        try:
            stream.write("\n]\n")
        finally:
            stream.close()
        logger.debug("Closed descriptor %s (%d records)", self.path, self._records)

    def __enter__(self) -> DescriptorWriter:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def load_descriptor(path: str | Path) -> list[dict[str, Any]]:
    """Read back the records of a descriptor file."""
    return json.loads(Path(path).read_text(encoding="utf-8"))
