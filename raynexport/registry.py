"""MeshRegistry — deduplicates meshes and their instance transforms.

Each distinct mesh gets a stable index in first-seen order.  Each mesh also
remembers the distinct transforms it was placed with, so a repeated
(mesh, transform) pair is recognised and not emitted twice.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import Callable, Hashable, NamedTuple

from raynexport.models.geometry import MeshGeometry, Transform

logger = logging.getLogger(__name__)

IdentityStrategy = Callable[[MeshGeometry], Hashable]


def handle_identity(mesh: MeshGeometry) -> Hashable:
    """Key meshes by object identity (the default).

    Two mesh objects holding byte-identical buffers stay distinct.
    """
    return id(mesh)


def content_identity(mesh: MeshGeometry) -> Hashable:
    """Key meshes by a SHA-256 digest of their buffers."""
    h = hashlib.sha256()
    for label, buf in (
        ("positions", mesh.positions),
        ("normals", mesh.normals),
        ("texcoords", mesh.texcoords),
        ("faces", mesh.faces),
    ):
        h.update(f"{label}:{buf!r};".encode("utf-8"))
    return h.hexdigest()


class Observation(NamedTuple):
    """Outcome of :meth:`MeshRegistry.observe`."""

    index: int
    is_new_geometry: bool
    is_new_instance: bool


@dataclass
class RegistryEntry:
    """Bookkeeping for one distinct mesh."""

    index: int
    mesh: MeshGeometry
    instances: list[Transform] = field(default_factory=list)


class MeshRegistry:
    """Assign stable indices to meshes and track their instances.

    Parameters
    ----------
    identity:
        Function mapping a mesh to the key used to recognise it.  Defaults
        to :func:`handle_identity`.
    """

    def __init__(self, identity: IdentityStrategy = handle_identity) -> None:
        self._identity = identity
        self._entries: dict[Hashable, RegistryEntry] = {}
        self._ordered: list[RegistryEntry] = []
        self._last_key: Hashable | None = None
        self._last_transform: Transform | None = None
        self._last_index = -1

    def observe(self, mesh: MeshGeometry, transform: Transform) -> Observation:
        """Record one (mesh, transform) sighting.

        A call identical to the immediately preceding one is a no-op.  Only
        the last call is remembered for this shortcut; older repeats are
        caught by the per-mesh instance scan instead.
        """
        key = self._identity(mesh)
        if key == self._last_key and transform == self._last_transform:
            return Observation(self._last_index, False, False)

        entry = self._entries.get(key)
        is_new_geometry = entry is None
        if entry is None:
            entry = RegistryEntry(index=len(self._ordered), mesh=mesh)
            self._entries[key] = entry
            self._ordered.append(entry)
            logger.debug("Registered mesh %r as index %d", mesh.name, entry.index)

        self._last_key = key
        self._last_transform = transform
        self._last_index = entry.index

        for seen in entry.instances:
            if seen == transform:
                return Observation(entry.index, is_new_geometry, False)

        entry.instances.append(transform)
        return Observation(entry.index, is_new_geometry, True)

    @property
    def meshes(self) -> list[MeshGeometry]:
        """Distinct meshes in index order."""
        return [entry.mesh for entry in self._ordered]

    @property
    def entries(self) -> list[RegistryEntry]:
        return list(self._ordered)

    @property
    def instance_count(self) -> int:
        return sum(len(entry.instances) for entry in self._ordered)

    def entry_for(self, mesh: MeshGeometry) -> RegistryEntry | None:
        return self._entries.get(self._identity(mesh))

    def __len__(self) -> int:
        return len(self._ordered)
