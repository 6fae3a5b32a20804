"""Tests for scan construction and mesh preparation."""

import numpy as np
import open3d as o3d
import pytest

from scanalign.scan import (Scan, average_edge_length, boundary_vertices, clean_faces,
                            vertex_normals)
from scanalign.transforms import Transformation


def _make_grid_mesh(n=6, spacing=1.0):
    ys, xs = np.mgrid[0:n, 0:n]
    vertices = np.column_stack([xs.ravel() * spacing, ys.ravel() * spacing, np.zeros(n * n)])
    faces = []
    for j in range(n - 1):
        for i in range(n - 1):
            v = j * n + i
            faces.append([v, v + 1, v + n])
            faces.append([v + 1, v + n + 1, v + n])
    return vertices, np.array(faces)


def _make_hexagon_fan():
    angles = np.arange(6) * np.pi / 3
    rim = np.column_stack([np.cos(angles), np.sin(angles), np.zeros(6)])
    vertices = np.vstack([[0.0, 0.0, 0.0], rim])
    faces = np.array([[0, 1 + k, 1 + (k + 1) % 6] for k in range(6)])
    return vertices, faces


def test_clean_faces_drops_slivers_and_orphaned_vertices():
    vertices = np.array([
        [0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0],
        [2.0, 0.0, 0.0], [1.05, 0.1, 0.0],
    ])
    faces = np.array([[0, 1, 2], [1, 3, 4]])

    cleaned_vertices, cleaned_faces = clean_faces(vertices, faces, min_aspect=0.2)

    assert cleaned_vertices.shape == (3, 3)
    np.testing.assert_array_equal(cleaned_faces, [[0, 1, 2]])


def test_boundary_vertices():
    vertices, faces = _make_hexagon_fan()
    boundary = boundary_vertices(len(vertices), faces)
    assert not boundary[0]
    assert boundary[1:].all()

    grid_vertices, grid_faces = _make_grid_mesh(n=4)
    grid_boundary = boundary_vertices(len(grid_vertices), grid_faces).reshape(4, 4)
    assert not grid_boundary[1:3, 1:3].any()
    assert grid_boundary[0].all() and grid_boundary[-1].all()


def test_average_edge_length_and_normals():
    vertices = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
    faces = np.array([[0, 1, 2]])

    assert average_edge_length(vertices, faces) == pytest.approx((2.0 + np.sqrt(2.0)) / 3.0)
    np.testing.assert_allclose(vertex_normals(vertices, faces), np.tile([0, 0, 1.0], (3, 1)))
    assert average_edge_length(vertices, np.empty((0, 3))) == 0.0


def test_scan_from_mesh_is_centred_and_aligned():
    vertices, faces = _make_grid_mesh(n=6, spacing=0.5)
    scan = Scan.from_mesh(vertices + [10.0, 0.0, 3.0], faces)

    assert len(scan) == 36
    np.testing.assert_allclose(scan.points.mean(axis=0), 0.0, atol=1e-12)
    np.testing.assert_allclose(np.abs(scan.normals[:, 2]), 1.0)
    assert scan.boundary.sum() == 20
    assert 0.5 < scan.average_vertex_distance < 0.71


def test_scan_rejects_misaligned_arrays():
    with pytest.raises(ValueError):
        Scan(np.zeros((4, 3)), np.zeros((3, 3)))
    with pytest.raises(ValueError):
        Scan(np.zeros((4, 3)), np.zeros((4, 3)), np.zeros(5, dtype=bool))


def test_transformed_copy_leaves_scan_untouched():
    vertices, faces = _make_grid_mesh(n=3)
    scan = Scan.from_mesh(vertices, faces)
    original = scan.points.copy()
    T = Transformation(Transformation.from_axis_angle(np.pi / 2, [1, 0, 0]).rotation, [0, 0, 5.0])

    world = scan.transformed(T)

    np.testing.assert_array_equal(scan.points, original)
    np.testing.assert_allclose(world.points, T.transform_points(original))
    np.testing.assert_allclose(world.normals, T.transform_vectors(scan.normals))
    np.testing.assert_array_equal(world.boundary, scan.boundary)


def test_scan_from_file(tmp_path):
    vertices, faces = _make_grid_mesh(n=5)
    mesh = o3d.geometry.TriangleMesh(o3d.utility.Vector3dVector(vertices),
                                     o3d.utility.Vector3iVector(faces.astype(np.int32)))
    path = tmp_path / "grid.ply"
    o3d.io.write_triangle_mesh(str(path), mesh, write_ascii=True)

    scan = Scan.from_file(path)

    assert len(scan) == 25
    assert scan.boundary.sum() == 16
    assert scan.average_vertex_distance > 0
    assert scan.name == str(path)
