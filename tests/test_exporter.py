"""Tests for the export driver — end-to-end scene export."""

from __future__ import annotations

from pathlib import Path

import pytest

from raynexport import (
    Camera,
    DescriptorWriter,
    DirectoryCreationFailed,
    ExportSettings,
    GeometryBufferMissing,
    GeometryValueOutOfRange,
    MeshGeometry,
    Scene,
    SceneExporter,
    SceneNode,
    Transform,
    content_identity,
    export_scene,
    load_descriptor,
    read_headers,
    read_mesh,
)
from raynexport.scene import SceneVisitor, ShapeInstance


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _triangle(name: str = "tri", normals: bool = False) -> MeshGeometry:
    return MeshGeometry(
        positions=[(0, 0, 0), (1, 0, 0), (0, 1, 0)],
        faces=[(0, 1, 2)],
        normals=[(0, 0, 1)] * 3 if normals else (),
        name=name,
    )


class _ScriptedScene:
    """Replays a fixed list of events, like an upstream traversal would."""

    def __init__(self, events: list[object], camera: Camera | None = None) -> None:
        self.events = events
        self.camera = camera

    def visit(self, visitor: SceneVisitor, time: float = 0.0) -> None:
        for event in self.events:
            visitor(event)


T1 = Transform.translate(1, 0, 0)
T2 = Transform.translate(0, 2, 0)
T3 = Transform.translate(0, 0, 3)


# ---------------------------------------------------------------------------
# Concrete scenario
# ---------------------------------------------------------------------------


class TestScenario:
    @pytest.fixture
    def exported(self, tmp_path: Path):
        g1, g2 = _triangle("g1"), _triangle("g2", normals=True)
        scene = _ScriptedScene([
            ShapeInstance(T1, g1),
            ShapeInstance(T2, g1),
            ShapeInstance(T3, g2),
        ])
        return export_scene(scene, tmp_path / "out")

    def test_result_counts(self, exported) -> None:
        assert exported.mesh_count == 2
        assert exported.instance_count == 3
        assert exported.skipped_duplicates == 0

    def test_descriptor_has_three_mesh_blocks(self, exported) -> None:
        records = load_descriptor(exported.descriptor_path)
        assert [r["type"] for r in records] == ["shape/mesh"] * 3
        assert [r["index"] for r in records] == [0, 0, 1]
        assert {r["file"] for r in records} == {"everything.mesh"}
        assert records[2]["location"]["position"] == {"x": 0.0, "y": 0.0, "z": 3.0}

    def test_payload_has_two_mesh_summaries(self, exported) -> None:
        records = read_headers(exported.payload_path)
        summaries = [r for r in records[1:] if r.type == "mesh"]
        assert len(summaries) == 2
        assert [s.components for s in summaries] == [2, 3]

    def test_payload_meshes_in_registry_order(self, exported) -> None:
        assert read_mesh(exported.payload_path, 1).has_normals
        assert not read_mesh(exported.payload_path, 0).has_normals


# ---------------------------------------------------------------------------
# Driver behaviour
# ---------------------------------------------------------------------------


class TestSceneExporter:
    def test_camera_written_first(self, tmp_path: Path) -> None:
        camera = Camera(camera_to_world=Transform.translate(0, 1, -10), fov=50.0)
        root = SceneNode().add_mesh(_triangle())
        export_scene(Scene(root=root), tmp_path, camera=camera)

        records = load_descriptor(tmp_path / "scene.json")
        assert records[0]["type"] == "camera/pinhole"
        assert records[0]["fov"] == 50.0
        assert records[0]["location"]["position"] == {"x": 0.0, "y": 1.0, "z": -10.0}
        assert records[1]["type"] == "shape/mesh"

    def test_scene_camera_used_by_default(self, tmp_path: Path) -> None:
        scene = Scene(root=SceneNode().add_mesh(_triangle()), camera=Camera())
        export_scene(scene, tmp_path)
        assert load_descriptor(tmp_path / "scene.json")[0]["type"] == "camera/pinhole"

    def test_no_camera_record_without_camera(self, tmp_path: Path) -> None:
        export_scene(Scene(root=SceneNode().add_mesh(_triangle())), tmp_path)
        records = load_descriptor(tmp_path / "scene.json")
        assert [r["type"] for r in records] == ["shape/mesh"]

    def test_duplicates_not_reemitted(self, tmp_path: Path) -> None:
        g = _triangle()
        scene = _ScriptedScene([
            ShapeInstance(T1, g),
            ShapeInstance(T1, g),
            ShapeInstance(T2, g),
            ShapeInstance(T1, g),
        ])
        result = export_scene(scene, tmp_path)

        assert result.skipped_duplicates == 2
        assert len(load_descriptor(result.descriptor_path)) == 2
        assert len(read_headers(result.payload_path)) == 1 + 1 + 2

    def test_shared_mesh_across_nodes(self, tmp_path: Path) -> None:
        mesh = _triangle()
        root = SceneNode()
        root.add_child(SceneNode(transform=T1)).add_mesh(mesh)
        root.add_child(SceneNode(transform=T2)).add_mesh(mesh)
        result = export_scene(Scene(root=root), tmp_path)

        assert result.mesh_count == 1
        assert result.instance_count == 2

    def test_lights_ignored(self, tmp_path: Path) -> None:
        root = SceneNode().add_mesh(_triangle()).add_light({"kind": "point"})
        result = export_scene(Scene(root=root), tmp_path)
        assert result.light_count == 1
        assert len(load_descriptor(result.descriptor_path)) == 1

    def test_unknown_event_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(TypeError):
            export_scene(_ScriptedScene(["not an event"]), tmp_path)
        assert not (tmp_path / "scene.json").exists()
        assert not (tmp_path / "everything.mesh").exists()

    def test_empty_scene(self, tmp_path: Path) -> None:
        result = export_scene(Scene(), tmp_path / "empty")
        assert result.mesh_count == 0
        assert load_descriptor(result.descriptor_path) == []
        assert len(read_headers(result.payload_path)) == 1

    def test_custom_settings(self, tmp_path: Path) -> None:
        settings = ExportSettings(descriptor_filename="desc.json", payload_filename="geo.bin")
        exporter = SceneExporter(tmp_path, settings)
        result = exporter.export(Scene(root=SceneNode().add_mesh(_triangle())))

        assert result.descriptor_path == tmp_path / "desc.json"
        assert result.payload_path == tmp_path / "geo.bin"
        assert load_descriptor(result.descriptor_path)[0]["file"] == "geo.bin"

    def test_content_identity_strategy(self, tmp_path: Path) -> None:
        scene = _ScriptedScene([ShapeInstance(T1, _triangle("a")), ShapeInstance(T2, _triangle("b"))])
        result = SceneExporter(tmp_path, identity=content_identity).export(scene)
        assert result.mesh_count == 1
        assert result.instance_count == 2

    def test_missing_geometry_buffer(self, tmp_path: Path) -> None:
        broken = MeshGeometry(positions=[(0, 0, 0)], faces=())
        with pytest.raises(GeometryBufferMissing):
            export_scene(_ScriptedScene([ShapeInstance(T1, broken)]), tmp_path)

    def test_failed_export_leaves_no_stale_pair(self, tmp_path: Path) -> None:
        good = _ScriptedScene([ShapeInstance(T1, _triangle("a")), ShapeInstance(T2, _triangle("b"))])
        export_scene(good, tmp_path)
        assert len(read_headers(tmp_path / "everything.mesh")) == 1 + 3 + 3

        broken = MeshGeometry(positions=[(0, 0, 0)], faces=(), name="broken")
        with pytest.raises(GeometryBufferMissing):
            export_scene(_ScriptedScene([ShapeInstance(T1, broken)]), tmp_path)

        assert not (tmp_path / "scene.json").exists()
        assert not (tmp_path / "everything.mesh").exists()

    def test_broken_mesh_rejected_before_its_record(self, tmp_path: Path) -> None:
        records: list[tuple[str, int]] = []

        class _Recorder(DescriptorWriter):
            def write_mesh_instance(self, mesh_file, index, pose):
                records.append((mesh_file, index))
                super().write_mesh_instance(mesh_file, index, pose)

        broken = MeshGeometry(positions=[(0, 0, 0)], faces=())
        scene = _ScriptedScene([ShapeInstance(T1, _triangle()), ShapeInstance(T2, broken)])
        with pytest.MonkeyPatch.context() as mp:
            mp.setattr("raynexport.exporter.DescriptorWriter", _Recorder)
            with pytest.raises(GeometryBufferMissing):
                export_scene(scene, tmp_path)
        assert records == [("everything.mesh", 0)]

    def test_out_of_range_coordinate_rejected(self, tmp_path: Path) -> None:
        huge = MeshGeometry(positions=[(1e39, 0, 0), (1, 0, 0), (0, 1, 0)], faces=[(0, 1, 2)])
        with pytest.raises(GeometryValueOutOfRange) as info:
            export_scene(_ScriptedScene([ShapeInstance(T1, huge)]), tmp_path)
        assert info.value.attribute == "vertex"
        assert not (tmp_path / "everything.mesh").exists()

    def test_directory_failure_reported(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("", encoding="utf-8")
        with pytest.raises(DirectoryCreationFailed):
            export_scene(Scene(), blocker / "out")

    def test_result_to_dict(self, tmp_path: Path) -> None:
        result = export_scene(Scene(root=SceneNode().add_mesh(_triangle())), tmp_path)
        d = result.to_dict()
        assert d["mesh_count"] == 1
        assert d["payload_path"] == str(tmp_path / "everything.mesh")
