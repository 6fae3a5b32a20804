"""Rigid transformation algebra used by every stage of the registration."""

import numpy as np


def skew(v):
    """Skew-symmetric cross-product matrix of a 3-vector."""
    x, y, z = v
    return np.array([
        [0.0, -z, y],
        [z, 0.0, -x],
        [-y, x, 0.0]
    ])


def rotation_from_axis_angle(angle, axis):
    """Rodrigues rotation matrix for ``angle`` radians about ``axis``."""
    axis = np.asarray(axis, dtype=float)
    norm = np.linalg.norm(axis)
    if norm == 0.0 or angle == 0.0:
        return np.eye(3)
    K = skew(axis / norm)
    return np.eye(3) + np.sin(angle) * K + (1.0 - np.cos(angle)) * (K @ K)


def rotation_from_vector(omega):
    """Rotation matrix for a rotation vector (axis * angle)."""
    omega = np.asarray(omega, dtype=float)
    return rotation_from_axis_angle(np.linalg.norm(omega), omega)


class Transformation:
    """
    Rigid motion: a proper rotation followed by a translation.

    ``(A * B).transform_points(p)`` equals
    ``A.transform_points(B.transform_points(p))``, i.e. ``B`` is applied
    first. Incremental updates, solved or interactive, are always
    pre-multiplied onto the accumulated transform.
    """

    def __init__(self, rotation=None, translation=None):
        self.rotation = np.eye(3) if rotation is None else np.array(rotation, dtype=float).reshape(3, 3)
        self.translation = np.zeros(3) if translation is None else np.array(translation, dtype=float).reshape(3)

    @classmethod
    def identity(cls):
        return cls()

    @classmethod
    def from_translation(cls, x, y, z):
        return cls(translation=[x, y, z])

    @classmethod
    def from_axis_angle(cls, angle, axis):
        """Rotation of ``angle`` radians about ``axis`` through the origin."""
        return cls(rotation=rotation_from_axis_angle(angle, axis))

    @classmethod
    def from_matrix(cls, matrix):
        """Build from a 4x4 homogeneous matrix."""
        matrix = np.asarray(matrix, dtype=float)
        if matrix.shape != (4, 4):
            raise ValueError(f"Expected a 4x4 matrix, got shape {matrix.shape}")
        return cls(matrix[:3, :3], matrix[:3, 3])

    @property
    def matrix(self):
        """4x4 homogeneous matrix."""
        transformation = np.eye(4)
        transformation[:3, :3] = self.rotation
        transformation[:3, 3] = self.translation
        return transformation

    def __mul__(self, other):
        if not isinstance(other, Transformation):
            return NotImplemented
        return Transformation(
            self.rotation @ other.rotation,
            self.rotation @ other.translation + self.translation
        )

    def inverse(self):
        # Exact for rigid motions: (R^T, -R^T t)
        rt = self.rotation.T
        return Transformation(rt, -rt @ self.translation)

    def transform_points(self, points):
        """Apply the full affine motion to an (N, 3) array or a single point."""
        points = np.asarray(points, dtype=float)
        return points @ self.rotation.T + self.translation

    def transform_vectors(self, vectors):
        """Apply only the rotation, for normals and directions."""
        vectors = np.asarray(vectors, dtype=float)
        return vectors @ self.rotation.T

    def rotation_angle(self):
        """Rotation magnitude in radians."""
        cos_theta = (np.trace(self.rotation) - 1.0) * 0.5
        return float(np.arccos(np.clip(cos_theta, -1.0, 1.0)))

    def is_rigid(self, tol=1e-6):
        r = self.rotation
        return (np.allclose(r.T @ r, np.eye(3), atol=tol)
                and abs(np.linalg.det(r) - 1.0) < tol)

    def allclose(self, other, atol=1e-8):
        return (np.allclose(self.rotation, other.rotation, atol=atol)
                and np.allclose(self.translation, other.translation, atol=atol))

    def copy(self):
        return Transformation(self.rotation.copy(), self.translation.copy())

    def __repr__(self):
        return (f"Transformation(angle={np.degrees(self.rotation_angle()):.4f} deg, "
                f"translation={np.array2string(self.translation, precision=4)})")


def apply_view_motion(view, motion, current):
    """
    Compose a motion expressed in view (camera) coordinates onto ``current``.

    Returns ``view^-1 * motion * view * current``: the motion is mapped into
    world space and pre-multiplied, the same side solved updates go on.
    """
    return view.inverse() * motion * view * current
