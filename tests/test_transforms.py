"""Tests for rigid transformation algebra."""

import numpy as np
import pytest

from conftest import random_rigid_transform
from scanalign.transforms import Transformation, apply_view_motion, rotation_from_axis_angle


@pytest.fixture
def rng():
    return np.random.default_rng(42)


def test_inverse_composes_to_identity(rng):
    for _ in range(10):
        T = random_rigid_transform(rng, max_translation=5.0)
        assert (T.inverse() * T).allclose(Transformation.identity(), atol=1e-12)
        assert (T * T.inverse()).allclose(Transformation.identity(), atol=1e-12)


def test_composition_applies_right_operand_first(rng):
    A = random_rigid_transform(rng)
    B = random_rigid_transform(rng)
    p = rng.normal(size=(5, 3))

    np.testing.assert_allclose((A * B).transform_points(p),
                               A.transform_points(B.transform_points(p)), atol=1e-12)


def test_vectors_ignore_translation():
    T = Transformation(rotation_from_axis_angle(np.pi / 2, [0, 0, 1]), [1.0, 2.0, 3.0])
    np.testing.assert_allclose(T.transform_vectors([1.0, 0.0, 0.0]), [0.0, 1.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(T.transform_points([1.0, 0.0, 0.0]), [1.0, 3.0, 3.0], atol=1e-12)


def test_matrix_round_trip(rng):
    T = random_rigid_transform(rng)
    M = T.matrix
    assert M.shape == (4, 4)
    np.testing.assert_allclose(M[3], [0, 0, 0, 1])
    assert Transformation.from_matrix(M).allclose(T)

    with pytest.raises(ValueError):
        Transformation.from_matrix(np.eye(3))


def test_random_transforms_are_rigid(rng):
    for _ in range(10):
        T = random_rigid_transform(rng)
        assert T.is_rigid()
        assert np.isclose(np.linalg.det(T.rotation), 1.0)
    assert not Transformation(np.diag([1.0, 1.0, -1.0])).is_rigid()


def test_rotation_angle():
    T = Transformation.from_axis_angle(np.radians(10.0), [1, 1, 0])
    assert np.isclose(np.degrees(T.rotation_angle()), 10.0)
    assert Transformation.identity().rotation_angle() == 0.0


def test_view_motion_is_mapped_through_the_view():
    view = Transformation.from_axis_angle(np.pi / 2, [0, 0, 1])
    motion = Transformation.from_translation(1.0, 0.0, 0.0)
    current = Transformation.from_translation(0.0, 0.0, 2.0)

    updated = apply_view_motion(view, motion, current)

    # +x in view space is -y in world space for a 90 degree view rotation
    np.testing.assert_allclose(updated.transform_points([0.0, 0.0, 0.0]), [0.0, -1.0, 2.0],
                               atol=1e-12)
    # Identity view reduces to plain pre-multiplication, like solved updates
    plain = apply_view_motion(Transformation.identity(), motion, current)
    assert plain.allclose(motion * current)
