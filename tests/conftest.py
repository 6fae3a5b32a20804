import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from scanalign.scan import Scan
from scanalign.transforms import Transformation, rotation_from_axis_angle


def make_grid_scan(n=20, spacing=1.0, z=0.0, boundary=False, name=None):
    """Planar n x n grid in the z-plane, consecutive indices stepping along x."""
    ys, xs = np.mgrid[0:n, 0:n]
    points = np.column_stack([xs.ravel() * spacing, ys.ravel() * spacing,
                              np.full(n * n, z)])
    normals = np.tile([0.0, 0.0, 1.0], (n * n, 1))
    flags = np.full(n * n, boundary, dtype=bool)
    return Scan(points, normals, flags, average_vertex_distance=spacing, name=name)


def fibonacci_sphere(n=1500, radius=5.0):
    i = np.arange(n) + 0.5
    phi = np.arccos(1.0 - 2.0 * i / n)
    theta = np.pi * (1.0 + 5 ** 0.5) * i
    unit = np.column_stack([np.cos(theta) * np.sin(phi),
                            np.sin(theta) * np.sin(phi),
                            np.cos(phi)])
    return unit * radius, unit


def random_rigid_transform(rng, max_angle=np.pi, max_translation=1.0):
    """Random proper rigid motion."""
    axis = rng.normal(size=3)
    angle = rng.uniform(-max_angle, max_angle)
    translation = rng.uniform(-max_translation, max_translation, size=3)
    return Transformation(rotation_from_axis_angle(angle, axis), translation)


@pytest.fixture
def grid_scan():
    return make_grid_scan()
