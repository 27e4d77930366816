"""SceneExporter — main entry point for writing a scene to disk."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from raynexport.config import ExportSettings
from raynexport.descriptor import DescriptorWriter
from raynexport.models.geometry import Camera, Pose
from raynexport.payload import PayloadWriter, check_geometry
from raynexport.registry import IdentityStrategy, MeshRegistry, handle_identity
from raynexport.scene import LightInstance, SceneEvent, ShapeInstance, Traversable

logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    """Summary of a finished export."""

    descriptor_path: Path
    payload_path: Path
    mesh_count: int
    instance_count: int
    skipped_duplicates: int = 0
    light_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "descriptor_path": str(self.descriptor_path),
            "payload_path": str(self.payload_path),
            "mesh_count": self.mesh_count,
            "instance_count": self.instance_count,
            "skipped_duplicates": self.skipped_duplicates,
            "light_count": self.light_count,
        }


class _ExportVisitor:
    """Feed traversal events into the registry and the descriptor."""

    def __init__(
        self,
        registry: MeshRegistry,
        descriptor: DescriptorWriter,
        payload_name: str,
        sample_time: float,
    ) -> None:
        self.registry = registry
        self.descriptor = descriptor
        self.payload_name = payload_name
        self.sample_time = sample_time
        self.skipped = 0
        self.lights = 0

    def __call__(self, event: SceneEvent) -> None:
        if isinstance(event, ShapeInstance):
            self._on_shape(event)
        elif isinstance(event, LightInstance):
            self._on_light(event)
        else:
            raise TypeError(f"unhandled scene event {type(event).__name__}")

    def _on_shape(self, event: ShapeInstance) -> None:
        seen = self.registry.observe(event.mesh, event.world_transform)
        if seen.is_new_geometry:
            check_geometry(event.mesh)
        if not seen.is_new_instance:
            self.skipped += 1
            return
        pose = Pose.from_transform(event.world_transform, self.sample_time)
        self.descriptor.write_mesh_instance(self.payload_name, seen.index, pose)

    def _on_light(self, event: LightInstance) -> None:
        # lights are not exported
        self.lights += 1
        logger.debug("Ignoring light %r", event.light)


class SceneExporter:
    """Write a scene as a descriptor file plus a binary payload.

    Parameters
    ----------
    directory:
        Export directory; created recursively when absent.
    settings:
        Output names and sampling options.  Defaults to ``ExportSettings()``.
    identity:
        How the mesh registry recognises repeated meshes.
    """

    def __init__(
        self,
        directory: str | Path,
        settings: ExportSettings | None = None,
        *,
        identity: IdentityStrategy = handle_identity,
    ) -> None:
        self.directory = Path(directory)
        self.settings = settings or ExportSettings()
        self._identity = identity

    @property
    def descriptor_path(self) -> Path:
        return self.directory / self.settings.descriptor_filename

    @property
    def payload_path(self) -> Path:
        return self.directory / self.settings.payload_filename

    def export(self, scene: Traversable, camera: Camera | None = None) -> ExportResult:
        """Traverse *scene* once and write both output files.

        Parameters
        ----------
        scene:
            Anything with a ``visit(visitor, time)`` method.
        camera:
            Optional camera; falls back to ``scene.camera`` when present.

        Returns
        -------
        ExportResult
            Paths written and deduplication counts.

        Raises
        ------
        ExportError
            On any failure.  Once the descriptor is open, a failure removes
            both output files so no stale descriptor/payload pair is left.
        """
        if camera is None:
            camera = getattr(scene, "camera", None)

        registry = MeshRegistry(identity=self._identity)
        settings = self.settings

        descriptor = DescriptorWriter(
            self.directory,
            settings.descriptor_filename,
            indent=settings.indent,
        )
        visitor = _ExportVisitor(
            registry,
            descriptor,
            settings.payload_filename,
            settings.sample_time,
        )
        try:
            with descriptor:
                if camera is not None:
                    descriptor.write_camera(camera.pose(settings.sample_time), fov=camera.fov)
                scene.visit(visitor, settings.sample_time)

            if not len(registry):
                logger.warning("Scene has no meshes; writing an empty payload")

            PayloadWriter(self.payload_path).extend(registry.meshes).finalize()
        except Exception:
            self._discard_outputs()
            raise

        result = ExportResult(
            descriptor_path=descriptor.path,
            payload_path=self.payload_path,
            mesh_count=len(registry),
            instance_count=registry.instance_count,
            skipped_duplicates=visitor.skipped,
            light_count=visitor.lights,
        )
        logger.info(
            "Exported %d meshes / %d instances to %s",
            result.mesh_count, result.instance_count, self.directory,
        )
        return result

    def _discard_outputs(self) -> None:
        """Remove the descriptor and payload left by a failed export."""
        for path in (self.descriptor_path, self.payload_path):
            try:
                path.unlink(missing_ok=True)
            except OSError:
                logger.warning("Could not remove %s after failed export", path, exc_info=True)
            else:
                logger.debug("Removed %s after failed export", path)


def export_scene(
    scene: Traversable,
    directory: str | Path,
    camera: Camera | None = None,
    settings: ExportSettings | None = None,
) -> ExportResult:
    """Export *scene* into *directory* with default options."""
    return SceneExporter(directory, settings).export(scene, camera)
