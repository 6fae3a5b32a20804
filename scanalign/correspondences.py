"""Correspondence search against previously processed scans, and pruning."""

from typing import NamedTuple

import numpy as np

from .config import AppConfig
from .errors import EmptyIndex
from .kdtree import build_index
from .sampling import Subsampler
from .utils import setup_logger, time_function

logger = setup_logger(__name__)


class CorrespondencePair(NamedTuple):
    source_point: np.ndarray
    source_normal: np.ndarray
    target_point: np.ndarray
    target_normal: np.ndarray
    squared_distance: float


class CorrespondenceSet:
    """Column-wise storage of correspondence pairs, in accumulation order."""

    def __init__(self, source_points=None, source_normals=None,
                 target_points=None, target_normals=None, squared_distances=None):
        def _vec(a):
            return np.empty((0, 3)) if a is None else np.asarray(a, dtype=float).reshape(-1, 3)

        self.source_points = _vec(source_points)
        self.source_normals = _vec(source_normals)
        self.target_points = _vec(target_points)
        self.target_normals = _vec(target_normals)

        n = self.source_points.shape[0]
        lengths = {a.shape[0] for a in (self.source_normals, self.target_points,
                                        self.target_normals)}
        if lengths != {n}:
            raise ValueError("Correspondence arrays must all have the same length")

        if squared_distances is None:
            diff = self.source_points - self.target_points
            squared_distances = np.einsum('ij,ij->i', diff, diff)
        self.squared_distances = np.asarray(squared_distances, dtype=float).reshape(-1)
        if self.squared_distances.shape[0] != n:
            raise ValueError("Correspondence arrays must all have the same length")

    @classmethod
    def from_pairs(cls, pairs):
        pairs = list(pairs)
        if not pairs:
            return cls()
        columns = list(zip(*pairs))
        return cls(*(np.asarray(c, dtype=float) for c in columns))

    @classmethod
    def concatenate(cls, sets):
        sets = [s for s in sets if len(s)]
        if not sets:
            return cls()
        return cls(
            np.concatenate([s.source_points for s in sets]),
            np.concatenate([s.source_normals for s in sets]),
            np.concatenate([s.target_points for s in sets]),
            np.concatenate([s.target_normals for s in sets]),
            np.concatenate([s.squared_distances for s in sets]),
        )

    def subset(self, mask):
        return CorrespondenceSet(
            self.source_points[mask],
            self.source_normals[mask],
            self.target_points[mask],
            self.target_normals[mask],
            self.squared_distances[mask],
        )

    def mean_squared_distance(self):
        """Mean squared source-target distance; NaN for an empty set."""
        if len(self) == 0:
            return float('nan')
        return float(self.squared_distances.mean())

    def __len__(self):
        return self.source_points.shape[0]

    def __iter__(self):
        for i in range(len(self)):
            yield CorrespondencePair(
                self.source_points[i],
                self.source_normals[i],
                self.target_points[i],
                self.target_normals[i],
                float(self.squared_distances[i]),
            )

    def __repr__(self):
        return f"CorrespondenceSet(n={len(self)})"


def _normalize(vectors):
    norms = np.linalg.norm(vectors, axis=1, keepdims=True)
    return np.divide(vectors, norms, out=np.zeros_like(vectors), where=norms > 0)


def normal_angle_degrees(source_normals, target_normals):
    """
    Angle in degrees between normal pairs, from the chord between unit normals.

    Uses ``2 * asin(|n_s - n_t| / 2)``; the chord is clipped to 2 so nearly
    opposite normals give 180 rather than NaN.
    """
    a = _normalize(np.asarray(source_normals, dtype=float).reshape(-1, 3))
    b = _normalize(np.asarray(target_normals, dtype=float).reshape(-1, 3))
    chord = np.linalg.norm(a - b, axis=1)
    return np.degrees(2.0 * np.arcsin(np.clip(chord / 2.0, 0.0, 1.0)))


def prune_correspondences(candidates, distance_threshold=3.0, max_normal_angle=60.0,
                          distance_policy="fixed", median_multiplier=3.0):
    """
    Drop unreliable pairs, preserving the order of the survivors.

    A pair is rejected when its normals differ by more than
    ``max_normal_angle`` degrees, or when it is too far apart:

    - ``"fixed"``: squared distance above ``distance_threshold``
    - ``"median"``: distance above ``median_multiplier`` times the median
      distance of all candidates

    Returns:
        CorrespondenceSet with the surviving pairs
    """
    if len(candidates) == 0:
        return CorrespondenceSet()

    d2 = candidates.squared_distances
    if distance_policy == "fixed":
        too_far = d2 > distance_threshold
    elif distance_policy == "median":
        distances = np.sqrt(d2)
        too_far = distances > median_multiplier * np.median(distances)
    else:
        raise ValueError(f"Unknown distance policy: {distance_policy}")

    angles = normal_angle_degrees(candidates.source_normals, candidates.target_normals)
    keep = ~too_far & ~(angles > max_normal_angle)

    logger.debug("Pruning: %d too far, %d incompatible normals, %d kept of %d",
                 int(np.count_nonzero(too_far)),
                 int(np.count_nonzero(angles > max_normal_angle)),
                 int(np.count_nonzero(keep)), len(candidates))
    return candidates.subset(keep)


class CorrespondenceBuilder:
    """
    Builds pruned correspondences from the current scan to every other scan.

    Each call transforms its inputs into world space and builds a fresh
    closest-point index per target, so a target moved since the last call
    is always queried at its current position.
    """

    def __init__(self, config=None, subsampler=None):
        self.config = AppConfig() if config is None else config
        self.subsampler = subsampler or Subsampler.from_config(self.config.subsample)

    @time_function
    def build(self, current_scan, current_transform, other_scans, limit=None):
        """
        Collect and prune correspondences.

        Args:
            current_scan: Scan being registered (local coordinates)
            current_transform: Its accumulated Transformation
            other_scans: Sequence of (Scan, Transformation) already processed,
                not including the current scan
            limit: Upper bound for the subsampling sweep (see Subsampler)

        Returns:
            CorrespondenceSet (empty when there are no other scans)
        """
        candidates = self.candidates(current_scan, current_transform, other_scans, limit)
        logger.info("Candidate correspondences: %d", len(candidates))

        pruning = self.config.pruning
        return prune_correspondences(
            candidates,
            distance_threshold=pruning.distance_threshold,
            max_normal_angle=pruning.max_normal_angle,
            distance_policy=pruning.distance_policy,
            median_multiplier=pruning.median_multiplier,
        )

    def candidates(self, current_scan, current_transform, other_scans, limit=None):
        """Unpruned, non-boundary closest-point pairs across all other scans."""
        other_scans = list(other_scans)
        if not other_scans:
            return CorrespondenceSet()

        source = current_scan.transformed(current_transform)
        indices = self.subsampler(source.points, source.average_vertex_distance, limit)
        src_points = source.points[indices]
        src_normals = source.normals[indices]

        index_config = self.config.index
        per_target = []
        for target_scan, target_transform in other_scans:
            target = target_scan.transformed(target_transform)
            try:
                index = build_index(target.points, index_config.leaf_size,
                                    index_config.brute_force_below)
                best = index.closest_point_indices(src_points, n_jobs=index_config.n_jobs)
            except EmptyIndex as e:
                logger.warning("Skipping target scan %r: %s", target_scan.name, e)
                continue

            # Boundary matches may stand in for surface lying off the mesh
            interior = ~target.boundary[best]
            matched = best[interior]
            diff = src_points[interior] - target.points[matched]
            per_target.append(CorrespondenceSet(
                src_points[interior],
                src_normals[interior],
                target.points[matched],
                target.normals[matched],
                np.einsum('ij,ij->i', diff, diff),
            ))

        return CorrespondenceSet.concatenate(per_target)
