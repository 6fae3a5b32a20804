"""Closed-form and linearised rigid registration solvers."""

import numpy as np

from .errors import UnderdeterminedSystem
from .transforms import Transformation, rotation_from_vector
from .utils import setup_logger

logger = setup_logger(__name__)

# Smallest singular value of the point-to-surface system, relative to the
# largest, below which the system counts as rank deficient.
CONDITION_TOLERANCE = 1e-9


def _check_pairs(*arrays):
    arrays = [np.asarray(a, dtype=float).reshape(-1, 3) for a in arrays]
    n = arrays[0].shape[0]
    for a in arrays[1:]:
        if a.shape[0] != n:
            raise ValueError(
                f"Correspondence arrays differ in length ({n} vs {a.shape[0]})"
            )
    return arrays


def register_point_to_point(src, target):
    """
    Rigid motion minimising sum ||R s_i + t - t_i||^2.

    Args:
        src: Source points (N x 3)
        target: Corresponding target points (N x 3)

    Returns:
        Transformation mapping ``src`` onto ``target``; identity when N == 0
    """
    src, target = _check_pairs(src, target)
    if src.shape[0] == 0:
        return Transformation.identity()

    source_centroid = src.mean(axis=0)
    target_centroid = target.mean(axis=0)

    source_centered = src - source_centroid
    target_centered = target - target_centroid

    # Cross-covariance matrix
    H = source_centered.T @ target_centered
    U, S, Vt = np.linalg.svd(H)

    R = Vt.T @ U.T

    # Handle reflection case
    if np.linalg.det(R) < 0:
        Vt[-1, :] *= -1
        R = Vt.T @ U.T

    t = target_centroid - R @ source_centroid

    return Transformation(R, t)


def register_point_to_surface(src, target, target_normals):
    """
    Rigid motion minimising sum ((R s_i + t - t_i) . n_i)^2.

    The rotation is linearised as R ~ I + [omega]_x, giving one equation
    ``[s_i x n_i, n_i] . [omega, t] = n_i . (t_i - s_i)`` per pair, solved
    through the 6x6 normal equations. The solved rotation vector is mapped
    back to a proper rotation so the result stays rigid.

    Args:
        src: Source points (N x 3)
        target: Corresponding target points (N x 3)
        target_normals: Unit normals at the target points (N x 3)

    Returns:
        Transformation; identity when N == 0

    Raises:
        UnderdeterminedSystem: fewer than 6 pairs, or the pairs do not
            constrain all six degrees of freedom (e.g. a single plane).
    """
    src, target, target_normals = _check_pairs(src, target, target_normals)
    n_pairs = src.shape[0]
    if n_pairs == 0:
        return Transformation.identity()
    if n_pairs < 6:
        raise UnderdeterminedSystem(
            f"point-to-surface registration needs at least 6 correspondences, got {n_pairs}",
            num_pairs=n_pairs,
        )

    A = np.hstack([np.cross(src, target_normals), target_normals])
    b = np.einsum('ij,ij->i', target_normals, target - src)

    AtA = A.T @ A
    Atb = A.T @ b

    singular_values = np.linalg.svd(AtA, compute_uv=False)
    rank = int(np.sum(singular_values > singular_values[0] * CONDITION_TOLERANCE))
    if singular_values[0] == 0.0 or rank < 6:
        raise UnderdeterminedSystem(
            f"point-to-surface system is rank {rank} (need 6); "
            f"correspondences are degenerate",
            num_pairs=n_pairs,
            rank=rank,
        )

    params = np.linalg.solve(AtA, Atb)
    omega = params[0:3]
    t = params[3:6]

    logger.debug("Point-to-surface solve: |omega|=%.6e rad, |t|=%.6e",
                 np.linalg.norm(omega), np.linalg.norm(t))

    return Transformation(rotation_from_vector(omega), t)


def register(src, target, target_normals=None, tangential=False):
    """Dispatch to the point-to-surface (``tangential``) or point-to-point solver."""
    if tangential:
        if target_normals is None:
            raise ValueError("point-to-surface registration requires target normals")
        return register_point_to_surface(src, target, target_normals)
    return register_point_to_point(src, target)
