"""raynexport — write 3D scenes as a JSON descriptor plus a binary mesh payload."""

__version__ = "1.0.0"

from raynexport.config import ExportSettings, configure_logging
from raynexport.descriptor import DescriptorWriter, load_descriptor
from raynexport.errors import (
    DirectoryCreationFailed,
    ExportError,
    FileOpenFailed,
    GeometryBufferMissing,
    GeometryValueOutOfRange,
    HeaderLayoutInconsistency,
)
from raynexport.exporter import ExportResult, SceneExporter, export_scene
from raynexport.models.geometry import (
    AnimatedTransform,
    Camera,
    MeshGeometry,
    Pose,
    Transform,
)
from raynexport.payload import HeaderRecord, PayloadWriter, plan_layout, read_headers, read_mesh
from raynexport.registry import MeshRegistry, Observation, content_identity, handle_identity
from raynexport.scene import LightInstance, Scene, SceneNode, ShapeInstance

__all__ = [
    "__version__",
    # Entry points
    "ExportResult",
    "SceneExporter",
    "export_scene",
    # Configuration
    "ExportSettings",
    "configure_logging",
    # Model
    "AnimatedTransform",
    "Camera",
    "MeshGeometry",
    "Pose",
    "Transform",
    # Scene traversal
    "LightInstance",
    "Scene",
    "SceneNode",
    "ShapeInstance",
    # Registry
    "MeshRegistry",
    "Observation",
    "content_identity",
    "handle_identity",
    # Writers
    "DescriptorWriter",
    "HeaderRecord",
    "PayloadWriter",
    "load_descriptor",
    "plan_layout",
    "read_headers",
    "read_mesh",
    # Errors
    "DirectoryCreationFailed",
    "ExportError",
    "FileOpenFailed",
    "GeometryBufferMissing",
    "GeometryValueOutOfRange",
    "HeaderLayoutInconsistency",
]
