"""Tests for the command-line entry point."""

import numpy as np
import open3d as o3d

import run_icp


def _write_grid_mesh(path, n=12, z=0.0):
    ys, xs = np.mgrid[0:n, 0:n]
    vertices = np.column_stack([xs.ravel() * 0.1, ys.ravel() * 0.1, np.full(n * n, z)])
    faces = []
    for j in range(n - 1):
        for i in range(n - 1):
            v = j * n + i
            faces.append([v, v + 1, v + n])
            faces.append([v + 1, v + n + 1, v + n])
    mesh = o3d.geometry.TriangleMesh(o3d.utility.Vector3dVector(vertices),
                                     o3d.utility.Vector3iVector(np.array(faces, dtype=np.int32)))
    o3d.io.write_triangle_mesh(str(path), mesh, write_ascii=True)


def test_register_and_load(tmp_path):
    meshes = [tmp_path / f"scan{i}.ply" for i in range(3)]
    for path in meshes:
        _write_grid_mesh(path)
    output = tmp_path / "merged.txt"
    results = tmp_path / "results.pkl"

    code = run_icp.main(["register", *map(str, meshes), "--iterations", "3",
                         "--output", str(output), "--results", str(results)])

    assert code == 0
    assert len(output.read_text().splitlines()) == 3 * 144
    assert run_icp.main(["load", "--file", str(results)]) == 0


def test_register_needs_two_scans(tmp_path):
    path = tmp_path / "only.ply"
    _write_grid_mesh(path)
    assert run_icp.main(["register", str(path), "--output", str(tmp_path / "m.txt"),
                         "--results", str(tmp_path / "r.pkl")]) == 1


def test_no_mode_prints_help(capsys):
    assert run_icp.main([]) == 1
    assert "register" in capsys.readouterr().out


def test_register_with_plots(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    meshes = [tmp_path / f"scan{i}.ply" for i in range(2)]
    for path in meshes:
        _write_grid_mesh(path)

    code = run_icp.main(["register", *map(str, meshes), "--iterations", "2", "--plot"])

    assert code == 0
    assert (tmp_path / "icp_convergence.png").exists()
    assert (tmp_path / "subsample.png").exists()
    assert (tmp_path / "merged_points.txt").exists()
