import io
import logging
import math

import numpy as np
import pytest

from arenakit.chunks import ChunkError, read_records, write_chunk, write_records
from arenakit.scene import (
    GL_TEXTURE_2D,
    GL_TRIANGLES,
    NO_LOCATION,
    Camera,
    Drawable,
    Light,
    LightType,
    Pipeline,
    Scene,
    SceneError,
    TextureInfo,
    Transform,
    angle_axis,
    quat_inverse,
    quat_multiply,
    quat_rotate,
    quat_to_mat3,
)

NO_PARENT = 0xFFFFFFFF


def pad(m):
    return np.vstack([m, [0.0, 0.0, 0.0, 1.0]])


def write_scene(path, names=b"rootchild", hierarchy=None, meshes=None,
                cameras=None, lights=None, extra=b""):
    if hierarchy is None:
        hierarchy = [
            (NO_PARENT, 0, 4, 1.0, 2.0, 3.0, 0.0, 0.0, 0.0, 1.0, 1.0, 1.0, 1.0),
            (0, 4, 9, 0.5, 0.0, 0.0, 0.0, 0.0, 0.0, 1.0, 2.0, 2.0, 2.0),
        ]
    buf = io.BytesIO()
    write_chunk(buf, "str0", names)
    write_records(buf, "xfh0", "3I3f4f3f", hierarchy)
    write_records(buf, "msh0", "3I", meshes or [])
    write_records(buf, "cam0", "I4s3f", cameras or [])
    write_records(buf, "lmp0", "Ic3B3f", lights or [])
    buf.write(extra)
    path.write_bytes(buf.getvalue())
    return path


def test_pipeline_defaults():
    p = Pipeline()
    assert p.type == GL_TRIANGLES
    assert p.OBJECT_TO_CLIP_mat4 == NO_LOCATION
    assert len(p.textures) == 4
    assert all(t.target == GL_TEXTURE_2D and t.texture == 0 for t in p.textures)


def test_quaternion_inverse_gives_identity():
    q = angle_axis(0.7, np.array([0.0, 0.6, 0.8]))
    prod = quat_multiply(q, quat_inverse(q))
    assert np.allclose(prod, [1.0, 0.0, 0.0, 0.0])


def test_quat_rotate_quarter_turn_about_z():
    q = angle_axis(math.pi / 2, [0.0, 0.0, 1.0])
    assert np.allclose(quat_rotate(q, [1.0, 0.0, 0.0]), [0.0, 1.0, 0.0])


def test_quat_to_mat3_is_orthonormal():
    q = angle_axis(1.3, np.array([1.0, 2.0, 2.0]) / 3.0)
    m = quat_to_mat3(q)
    assert np.allclose(m @ m.T, np.eye(3))
    assert np.isclose(np.linalg.det(m), 1.0)


def test_quat_multiply_composes_rotations():
    a = angle_axis(0.4, [0.0, 0.0, 1.0])
    b = angle_axis(0.9, [1.0, 0.0, 0.0])
    v = np.array([0.3, -0.2, 0.5])
    assert np.allclose(quat_rotate(quat_multiply(a, b), v),
                       quat_rotate(a, quat_rotate(b, v)))


def test_local_parent_round_trip():
    t = Transform(position=[1.0, -2.0, 3.0],
                  rotation=angle_axis(0.8, [0.0, 1.0, 0.0]),
                  scale=[2.0, 0.5, 3.0])
    assert np.allclose(t.make_local_to_parent() @ pad(t.make_parent_to_local()),
                       np.eye(4)[:3])


def test_world_round_trip_with_parent_chain():
    root = Transform(position=[1.0, 0.0, 0.0], rotation=angle_axis(0.3, [0.0, 0.0, 1.0]))
    mid = Transform(parent=root, scale=[2.0, 2.0, 2.0], position=[0.0, 1.0, 0.0])
    leaf = Transform(parent=mid, rotation=angle_axis(1.1, [1.0, 0.0, 0.0]))
    l2w = leaf.make_local_to_world()
    w2l = leaf.make_world_to_local()
    assert np.allclose(l2w @ pad(w2l), np.eye(4)[:3])
    assert np.allclose(l2w, root.make_local_to_world() @ pad(mid.make_local_to_parent())
                       @ pad(leaf.make_local_to_parent()))


def test_local_to_parent_translation_column():
    t = Transform(position=[4.0, 5.0, 6.0])
    assert np.allclose(t.make_local_to_parent()[:, 3], [4.0, 5.0, 6.0])


def test_zero_scale_gives_no_nan():
    t = Transform(scale=[0.0, 1.0, 1.0])
    m = t.make_parent_to_local()
    assert not np.isnan(m).any()
    assert np.allclose(m[0], 0.0)


def test_projection_structure():
    cam = Camera(Transform(), fovy=math.pi / 2, aspect=2.0, near=0.5)
    p = cam.make_projection()
    assert np.isclose(p[1, 1], 1.0)
    assert np.isclose(p[0, 0], 1.0 / cam.aspect)
    assert p[3, 2] == -1.0
    assert np.isclose(p[2, 3], -2.0 * cam.near)


def test_parts_require_transform():
    with pytest.raises(ValueError):
        Camera(None)
    with pytest.raises(ValueError):
        Drawable(None)


def test_load_hierarchy(tmp_path):
    path = write_scene(tmp_path / "a.scene")
    scene = Scene.from_file(path)
    root, child = scene.transforms
    assert root.name == "root" and child.name == "child"
    assert root.parent is None and child.parent is root
    assert np.allclose(root.position, [1.0, 2.0, 3.0])
    assert np.allclose(root.rotation, [1.0, 0.0, 0.0, 0.0])
    assert np.allclose(child.scale, [2.0, 2.0, 2.0])


def test_load_rotation_stored_xyzw(tmp_path):
    hierarchy = [(NO_PARENT, 0, 4, 0.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.0, 1.0, 1.0, 1.0)]
    path = write_scene(tmp_path / "r.scene", names=b"root", hierarchy=hierarchy)
    scene = Scene.from_file(path)
    assert np.allclose(scene.transforms[0].rotation, [0.0, 0.0, 0.0, 1.0])


def test_load_meshes_calls_on_drawable(tmp_path):
    path = write_scene(tmp_path / "m.scene", names=b"rootchildcube",
                       meshes=[(1, 9, 13)])
    seen = []

    def on_drawable(scene, transform, name):
        seen.append((transform.name, name))
        scene.drawables.append(Drawable(transform))

    scene = Scene.from_file(path, on_drawable)
    assert seen == [("child", "cube")]
    assert scene.drawables[0].transform is scene.transforms[1]


def test_load_cameras_and_ignores_orthographic(tmp_path):
    path = write_scene(tmp_path / "c.scene", cameras=[
        (0, b"pers", 90.0, 0.25, 100.0),
        (1, b"orth", 5.0, 0.1, 10.0),
    ])
    scene = Scene.from_file(path)
    assert len(scene.cameras) == 1
    cam = scene.cameras[0]
    assert cam.transform is scene.transforms[0]
    assert math.isclose(cam.fovy, 90.0 / 180.0 * 3.1415926, rel_tol=1e-6)
    assert math.isclose(cam.near, 0.25)


def test_load_lights(tmp_path):
    path = write_scene(tmp_path / "l.scene", lights=[
        (0, b"s", 255, 0, 51, 2.0, 10.0, 45.0),
        (1, b"x", 1, 1, 1, 1.0, 1.0, 1.0),
        (1, b"d", 255, 255, 255, 1.0, 1.0, 30.0),
    ])
    scene = Scene.from_file(path)
    assert [l.type for l in scene.lights] == [LightType.SPOT, LightType.DIRECTIONAL]
    assert np.allclose(scene.lights[0].energy, np.array([255, 0, 51]) / 255.0 * 2.0)
    assert math.isclose(scene.lights[0].spot_fov, 45.0 / 180.0 * 3.1415926, rel_tol=1e-6)


def test_out_of_order_hierarchy_raises(tmp_path):
    hierarchy = [(1, 0, 4, 0, 0, 0, 0, 0, 0, 1, 1, 1, 1),
                 (NO_PARENT, 4, 9, 0, 0, 0, 0, 0, 0, 1, 1, 1, 1)]
    path = write_scene(tmp_path / "bad.scene", hierarchy=hierarchy)
    with pytest.raises(SceneError, match="topological-sort"):
        Scene.from_file(path)


def test_bad_name_indices_raise(tmp_path):
    hierarchy = [(NO_PARENT, 0, 40, 0, 0, 0, 0, 0, 0, 1, 1, 1, 1)]
    path = write_scene(tmp_path / "bad.scene", hierarchy=hierarchy)
    with pytest.raises(SceneError, match="invalid name indices"):
        Scene.from_file(path)


@pytest.mark.parametrize("kwargs, what", [
    ({"meshes": [(7, 0, 4)]}, "mesh entry"),
    ({"meshes": [(0, 5, 2)]}, "mesh entry with invalid name"),
    ({"cameras": [(9, b"pers", 60.0, 0.1, 1.0)]}, "camera entry"),
    ({"lights": [(9, b"p", 1, 1, 1, 1.0, 1.0, 1.0)]}, "lamp entry"),
])
def test_invalid_entries_raise(tmp_path, kwargs, what):
    path = write_scene(tmp_path / "bad.scene", **kwargs)
    with pytest.raises(SceneError, match=what):
        Scene.from_file(path)


def test_truncated_file_raises_chunk_error(tmp_path):
    path = tmp_path / "t.scene"
    buf = io.BytesIO()
    write_chunk(buf, "str0", b"abc")
    path.write_bytes(buf.getvalue())
    with pytest.raises(ChunkError):
        Scene.from_file(path)


def test_load_extra_hook_reads_more_chunks(tmp_path):
    extra = io.BytesIO()
    write_records(extra, "ext0", "I", [(1,), (0,)])

    class Level(Scene):
        def load_extra(self, stream, names, transforms):
            self.order = [transforms[i].name for (i,) in read_records(stream, "ext0", "I")]

    path = write_scene(tmp_path / "e.scene", extra=extra.getvalue())
    level = Level.from_file(path)
    assert level.order == ["child", "root"]


def test_trailing_data_warns(tmp_path, caplog):
    path = write_scene(tmp_path / "w.scene", extra=b"junk")
    with caplog.at_level(logging.WARNING, logger="arenakit.scene"):
        scene = Scene.from_file(path)
    assert len(scene.transforms) == 2
    assert any("trailing data" in r.getMessage() for r in caplog.records)


def test_copy_remaps_everything():
    scene = Scene()
    root = Transform(name="root")
    child = Transform(name="child", parent=root)
    scene.transforms += [root, child]
    pipeline = Pipeline(count=12)
    pipeline.textures[0] = TextureInfo(texture=3)
    scene.drawables.append(Drawable(child, pipeline))
    scene.cameras.append(Camera(root, aspect=2.0))
    scene.lights.append(Light(child, type=LightType.HEMISPHERE))

    copy = scene.copy()
    new_root, new_child = copy.transforms
    assert new_root is not root and new_child.parent is new_root
    assert [t.name for t in copy.transforms] == ["root", "child"]
    assert copy.drawables[0].transform is new_child
    assert copy.drawables[0].pipeline.count == 12
    assert copy.cameras[0].transform is new_root and copy.cameras[0].aspect == 2.0
    assert copy.lights[0].transform is new_child
    assert copy.lights[0].type is LightType.HEMISPHERE

    new_root.position[0] = 9.0
    copy.drawables[0].pipeline.textures[0].texture = 7
    assert root.position[0] == 0.0
    assert scene.drawables[0].pipeline.textures[0].texture == 3


def test_set_returns_mapping_and_replaces_contents():
    source = Scene()
    a = Transform(name="a")
    source.transforms.append(a)
    target = Scene()
    target.transforms.append(Transform(name="old"))
    mapping = target.set(source)
    assert mapping[None] is None
    assert mapping[a] is target.transforms[0]
    assert [t.name for t in target.transforms] == ["a"]


def test_set_with_itself_keeps_contents():
    scene = Scene()
    root = Transform(name="root")
    scene.transforms.append(root)
    scene.cameras.append(Camera(root))
    scene.set(scene)
    assert [t.name for t in scene.transforms] == ["root"]
    assert scene.cameras[0].transform is scene.transforms[0]