"""Binary payload writer — the geometry half of an export (``everything.mesh``).

File layout
-----------
A table of fixed-size header records followed by the raw data blocks::

    container record     offset = size of the header table
                         count  = total bytes of all data blocks
                         components = number of records after this one
    per mesh, in registry order:
      mesh record        offset/count = byte range of this mesh's data
                         components = number of attribute records that follow
      vertex record      float x3, one per vertex
      normal record      float x3, one per vertex      (only if present)
      texcoord record    float x2, one per vertex      (only if present)
      face record        int x3, one per triangle
    data blocks, contiguous, in the same order as their records

Every record is ``offset:u64 count:u64 components:i32 type[16] name[1024]
pad[64]`` padded to 8-byte alignment, in native byte order.

Writing happens in two phases.  :func:`plan_layout` computes every record
from the mesh shapes alone and checks that the header table is filled
exactly; only then does :class:`PayloadWriter` write bytes.
"""

from __future__ import annotations

import logging
import math
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator

from pydantic import BaseModel, Field, field_validator

from raynexport.config import HEADER_NAME_SIZE, HEADER_PAD_SIZE, HEADER_TYPE_SIZE
from raynexport.errors import (
    FileOpenFailed,
    GeometryBufferMissing,
    GeometryValueOutOfRange,
    HeaderLayoutInconsistency,
)
from raynexport.models.geometry import MeshGeometry

logger = logging.getLogger(__name__)

RECORD_FORMAT = f"=QQi{HEADER_TYPE_SIZE}s{HEADER_NAME_SIZE}s{HEADER_PAD_SIZE}s4x"
RECORD_SIZE = struct.calcsize(RECORD_FORMAT)

MESH_TYPE = "mesh"
FLOAT_TYPE = "float"
INT_TYPE = "int"

# struct codes and byte widths of the element types stored in data blocks
_ELEMENT_CODES: dict[str, str] = {FLOAT_TYPE: "f", INT_TYPE: "i"}
_ELEMENT_SIZES: dict[str, int] = {
    kind: struct.calcsize(f"={code}") for kind, code in _ELEMENT_CODES.items()
}
# largest magnitude each element type can hold
_ELEMENT_LIMITS: dict[str, float] = {
    FLOAT_TYPE: struct.unpack("<f", b"\xff\xff\x7f\x7f")[0],
    INT_TYPE: 2**31 - 1,
}


class HeaderRecord(BaseModel):
    """One fixed-size entry of the payload header table."""

    offset: int = Field(default=0, ge=0)
    count: int = Field(default=0, ge=0)
    components: int = 0
    type: str = ""
    name: str = ""

    @field_validator("type")
    @classmethod
    def _type_fits(cls, value: str) -> str:
        return _check_field(value, HEADER_TYPE_SIZE, "type")

    @field_validator("name")
    @classmethod
    def _name_fits(cls, value: str) -> str:
        return _check_field(value, HEADER_NAME_SIZE, "name")

    def pack(self) -> bytes:
        return struct.pack(
            RECORD_FORMAT,
            self.offset,
            self.count,
            self.components,
            self.type.encode("ascii"),
            self.name.encode("ascii"),
            b"",
        )

    @classmethod
    def unpack(cls, raw: bytes) -> HeaderRecord:
        offset, count, components, type_, name, _pad = struct.unpack(RECORD_FORMAT, raw)
        return cls(
            offset=offset,
            count=count,
            components=components,
            type=type_.rstrip(b"\0").decode("ascii"),
            name=name.rstrip(b"\0").decode("ascii"),
        )

    @property
    def byte_length(self) -> int:
        """Bytes occupied by the data block this record describes."""
        return self.count * self.components * _ELEMENT_SIZES[self.type]


def _check_field(value: str, size: int, label: str) -> str:
    try:
        encoded = value.encode("ascii")
    except UnicodeEncodeError as exc:
        raise ValueError(f"header {label} must be ASCII: {value!r}") from exc
    # one byte is kept for the terminating NUL
    if len(encoded) >= size:
        raise ValueError(f"header {label} {value!r} exceeds {size - 1} bytes")
    return value


@dataclass(frozen=True)
class _Attribute:
    name: str
    type: str
    components: int


VERTEX = _Attribute("vertex", FLOAT_TYPE, 3)
NORMAL = _Attribute("normal", FLOAT_TYPE, 3)
TEXCOORD = _Attribute("texcoord", FLOAT_TYPE, 2)
FACE = _Attribute("face", INT_TYPE, 3)


def attribute_count(mesh: MeshGeometry) -> int:
    """Number of attribute records a mesh occupies (2 to 4)."""
    return 2 + int(mesh.has_normals) + int(mesh.has_texcoords)


def _attributes(mesh: MeshGeometry) -> Iterator[tuple[_Attribute, int]]:
    """Yield each stored attribute of *mesh* with its element count."""
    yield VERTEX, mesh.vertex_count
    if mesh.has_normals:
        yield NORMAL, mesh.vertex_count
    if mesh.has_texcoords:
        yield TEXCOORD, mesh.vertex_count
    yield FACE, mesh.triangle_count


def _buffer(mesh: MeshGeometry, attribute: _Attribute) -> tuple[tuple, ...]:
    if attribute is VERTEX:
        return mesh.positions
    if attribute is NORMAL:
        return mesh.normals
    if attribute is TEXCOORD:
        return mesh.texcoords
    return mesh.faces


def check_required_buffers(mesh: MeshGeometry) -> None:
    """Raise :class:`GeometryBufferMissing` if positions or faces are empty."""
    if not mesh.positions:
        raise GeometryBufferMissing("positions", mesh.name)
    if not mesh.faces:
        raise GeometryBufferMissing("faces", mesh.name)


def check_geometry(mesh: MeshGeometry) -> None:
    """Reject meshes that cannot be encoded into a payload.

    Raises
    ------
    GeometryBufferMissing
        If positions or faces are empty.
    GeometryValueOutOfRange
        If a finite float exceeds the float32 range or an index does not
        fit a 32-bit signed int.
    """
    check_required_buffers(mesh)
    for attribute, _count in _attributes(mesh):
        limit = _ELEMENT_LIMITS[attribute.type]
        for item in _buffer(mesh, attribute):
            for value in item:
                if abs(value) > limit and not math.isinf(value):
                    raise GeometryValueOutOfRange(attribute.name, value, mesh.name)


@dataclass
class MeshLayout:
    """Planned records of one mesh."""

    mesh: MeshGeometry
    summary: HeaderRecord
    attributes: list[HeaderRecord] = field(default_factory=list)

    @property
    def records(self) -> list[HeaderRecord]:
        return [self.summary, *self.attributes]


@dataclass
class PayloadLayout:
    """Every header record of a payload file, with their data offsets."""

    container: HeaderRecord
    meshes: list[MeshLayout] = field(default_factory=list)

    @property
    def records(self) -> list[HeaderRecord]:
        out = [self.container]
        for mesh_layout in self.meshes:
            out.extend(mesh_layout.records)
        return out

    @property
    def table_size(self) -> int:
        return self.container.offset

    @property
    def data_size(self) -> int:
        return self.container.count

    @property
    def file_size(self) -> int:
        return self.table_size + self.data_size


def plan_layout(meshes: Iterable[MeshGeometry]) -> PayloadLayout:
    """Compute the complete header table for *meshes*.

    The table size is reserved up front from :func:`attribute_count`, then
    the records are laid out with a header cursor and a data cursor.  The
    header cursor must end exactly at the reserved size.

    Raises
    ------
    GeometryBufferMissing
        If a mesh has no positions or no faces.
    GeometryValueOutOfRange
        If a buffer value does not fit its payload element type.
    HeaderLayoutInconsistency
        If the records laid out do not fill the reserved table exactly.
    """
    meshes = list(meshes)
    for mesh in meshes:
        check_geometry(mesh)

    components = sum(1 + attribute_count(mesh) for mesh in meshes)
    table_size = (1 + components) * RECORD_SIZE

    header_cursor = RECORD_SIZE
    data_cursor = table_size
    layouts: list[MeshLayout] = []

    for mesh in meshes:
        start = data_cursor
        attributes: list[HeaderRecord] = []
        for attribute, count in _attributes(mesh):
            record = HeaderRecord(
                offset=data_cursor,
                count=count,
                components=attribute.components,
                type=attribute.type,
                name=attribute.name,
            )
            attributes.append(record)
            data_cursor += record.byte_length

        summary = HeaderRecord(
            offset=start,
            count=data_cursor - start,
            components=len(attributes),
            type=MESH_TYPE,
        )
        layouts.append(MeshLayout(mesh=mesh, summary=summary, attributes=attributes))
        header_cursor += RECORD_SIZE * (1 + len(attributes))

    if header_cursor != table_size:
        raise HeaderLayoutInconsistency(table_size, header_cursor)

    container = HeaderRecord(
        offset=table_size,
        count=data_cursor - table_size,
        components=components,
        type=MESH_TYPE,
    )
    return PayloadLayout(container=container, meshes=layouts)


def _encode(values: tuple[tuple, ...], attribute: _Attribute) -> bytes:
    code = _ELEMENT_CODES[attribute.type]
    flat = [v for item in values for v in item]
    return struct.pack(f"={len(flat)}{code}", *flat)


class PayloadWriter:
    """Collect distinct meshes and write them into one payload file.

    Parameters
    ----------
    path:
        Destination file.  It is opened only by :meth:`finalize`.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._meshes: list[MeshGeometry] = []
        self._layout: PayloadLayout | None = None

    @property
    def meshes(self) -> list[MeshGeometry]:
        return list(self._meshes)

    def add(self, mesh: MeshGeometry) -> int:
        """Queue *mesh*; returns its position in the payload."""
        if self._layout is not None:
            raise ValueError(f"payload {self.path} is already finalized")
        check_geometry(mesh)
        self._meshes.append(mesh)
        return len(self._meshes) - 1

    def extend(self, meshes: Iterable[MeshGeometry]) -> PayloadWriter:
        for mesh in meshes:
            self.add(mesh)
        return self

    def finalize(self) -> PayloadLayout:
        """Plan the layout, then write header table and data blocks.

        Returns
        -------
        PayloadLayout
            The records written to the file.
        """
        if self._layout is not None:
            raise ValueError(f"payload {self.path} is already finalized")

        layout = plan_layout(self._meshes)
        try:
            fh = self.path.open("wb")
        except OSError as exc:
            raise FileOpenFailed(self.path, str(exc)) from exc

        with fh:
            self._write_table(fh, layout)
            self._write_data(fh, layout)

        self._layout = layout
        logger.info(
            "Wrote payload %s: %d meshes, %d header records, %d data bytes",
            self.path, len(layout.meshes), len(layout.records), layout.data_size,
        )
        return layout

    @staticmethod
    def _write_table(fh: BinaryIO, layout: PayloadLayout) -> None:
        header_cursor = 0
        for record in layout.records:
            header_cursor += fh.write(record.pack())
        if header_cursor != layout.container.offset:
            raise HeaderLayoutInconsistency(layout.container.offset, header_cursor)

    @staticmethod
    def _write_data(fh: BinaryIO, layout: PayloadLayout) -> None:
        data_cursor = layout.container.offset
        for mesh_layout in layout.meshes:
            for record, (attribute, _count) in zip(
                mesh_layout.attributes, _attributes(mesh_layout.mesh),
            ):
                if data_cursor != record.offset:
                    raise HeaderLayoutInconsistency(record.offset, data_cursor, "data cursor")
                data_cursor += fh.write(_encode(_buffer(mesh_layout.mesh, attribute), attribute))
        if data_cursor != layout.file_size:
            raise HeaderLayoutInconsistency(layout.file_size, data_cursor, "data cursor")


def read_headers(path: str | Path) -> list[HeaderRecord]:
    """Read the complete header table of a payload file."""
    with Path(path).open("rb") as fh:
        container = HeaderRecord.unpack(_read_exact(fh, RECORD_SIZE))
        records = [container]
        for _ in range(container.components):
            records.append(HeaderRecord.unpack(_read_exact(fh, RECORD_SIZE)))
    return records


def read_mesh(path: str | Path, index: int) -> MeshGeometry:
    """Decode mesh number *index* from a payload file."""
    records = read_headers(path)
    mesh_records = _group_meshes(records[1:])
    if not 0 <= index < len(mesh_records):
        raise IndexError(f"payload holds {len(mesh_records)} meshes, no index {index}")

    buffers: dict[str, tuple[tuple, ...]] = {}
    with Path(path).open("rb") as fh:
        for record in mesh_records[index].attributes:
            fh.seek(record.offset)
            raw = _read_exact(fh, record.byte_length)
            code = _ELEMENT_CODES[record.type]
            flat = struct.unpack(f"={record.count * record.components}{code}", raw)
            width = record.components
            buffers[record.name] = tuple(
                tuple(flat[i:i + width]) for i in range(0, len(flat), width)
            )

    return MeshGeometry(
        positions=buffers.get(VERTEX.name, ()),
        faces=buffers.get(FACE.name, ()),
        normals=buffers.get(NORMAL.name, ()),
        texcoords=buffers.get(TEXCOORD.name, ()),
    )


@dataclass
class _MeshRecords:
    summary: HeaderRecord
    attributes: list[HeaderRecord]


def _group_meshes(records: list[HeaderRecord]) -> list[_MeshRecords]:
    groups: list[_MeshRecords] = []
    i = 0
    while i < len(records):
        summary = records[i]
        if summary.type != MESH_TYPE:
            raise ValueError(f"expected a mesh record at slot {i + 1}, got {summary.type!r}")
        attributes = records[i + 1:i + 1 + summary.components]
        groups.append(_MeshRecords(summary=summary, attributes=attributes))
        i += 1 + summary.components
    return groups


def _read_exact(fh: BinaryIO, size: int) -> bytes:
    raw = fh.read(size)
    if len(raw) != size:
        raise ValueError(f"truncated payload: wanted {size} bytes, got {len(raw)}")
    return raw
