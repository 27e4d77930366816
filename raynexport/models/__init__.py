"""Scene data model shared by the registry and writers."""

from raynexport.models.geometry import (
    AnimatedTransform,
    Camera,
    MeshGeometry,
    Pose,
    Transform,
    sample_transform,
)

__all__ = [
    "AnimatedTransform",
    "Camera",
    "MeshGeometry",
    "Pose",
    "Transform",
    "sample_transform",
]
