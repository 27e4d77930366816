"""Scene hierarchy and the tagged events its traversal emits.

A traversal calls one visitor function per resolved object.  Shapes arrive
as :class:`ShapeInstance` and lights as :class:`LightInstance`; consumers
dispatch on the event type and reject anything else.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, Union

from raynexport.config import SAMPLE_TIME
from raynexport.models.geometry import (
    AnyTransform,
    Camera,
    MeshGeometry,
    Transform,
    sample_transform,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShapeInstance:
    """One placement of a mesh, with its fully resolved world transform."""

    world_transform: Transform
    mesh: MeshGeometry


@dataclass(frozen=True)
class LightInstance:
    """One placement of a light source."""

    world_transform: Transform
    light: Any


SceneEvent = Union[ShapeInstance, LightInstance]
SceneVisitor = Callable[[SceneEvent], None]


class Traversable(Protocol):
    """Anything that can walk its contents and report them to a visitor."""

    def visit(self, visitor: SceneVisitor, time: float = SAMPLE_TIME) -> None:
        ...


@dataclass
class SceneNode:
    """A transform group holding meshes, lights and child nodes."""

    transform: AnyTransform = field(default_factory=Transform)
    meshes: list[MeshGeometry] = field(default_factory=list)
    lights: list[Any] = field(default_factory=list)
    children: list[SceneNode] = field(default_factory=list)
    name: str = ""

    def add_mesh(self, mesh: MeshGeometry) -> SceneNode:
        self.meshes.append(mesh)
        return self

    def add_light(self, light: Any) -> SceneNode:
        self.lights.append(light)
        return self

    def add_child(self, child: SceneNode) -> SceneNode:
        self.children.append(child)
        return child


@dataclass
class Scene:
    """Root of a node hierarchy plus an optional camera."""

    root: SceneNode = field(default_factory=SceneNode)
    camera: Camera | None = None

    def visit(self, visitor: SceneVisitor, time: float = SAMPLE_TIME) -> None:
        """Walk the hierarchy depth-first and report every object.

        Node transforms are sampled at *time* and composed parent-first.
        Within a node, meshes are reported before lights and both before
        the node's children, in insertion order.
        """
        count = _visit_node(self.root, Transform(), visitor, time)
        logger.debug("Scene traversal reported %d objects", count)


def _visit_node(
    node: SceneNode,
    parent: Transform,
    visitor: SceneVisitor,
    time: float,
) -> int:
    world = parent @ sample_transform(node.transform, time)
    count = 0
    for mesh in node.meshes:
        visitor(ShapeInstance(world_transform=world, mesh=mesh))
        count += 1
    for light in node.lights:
        visitor(LightInstance(world_transform=world, light=light))
        count += 1
    for child in node.children:
        count += _visit_node(child, world, visitor, time)
    return count
