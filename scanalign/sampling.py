"""Sliding-window subsampling of scan points."""

import numpy as np

from .utils import setup_logger

logger = setup_logger(__name__)


def subsample(points, radius, stride=4, window=40, limit=None):
    """
    Greedy single-pass subsampling.

    Index 0 is always kept. Candidates ``stride, 2*stride, ...`` below
    ``limit - stride`` are visited in order, and a candidate is kept only if
    it lies at least ``radius`` away from each of the last ``window`` kept
    points. Consecutive scan vertices tend to be spatially close, so the
    trailing window catches most conflicts; points kept long ago are never
    compared again.

    Args:
        points: (N x 3) array of points
        radius: Minimum spacing between kept points inside the window
        stride: Step between visited candidates
        window: Number of most recently kept points to test against
        limit: Visit candidates only below this bound (default: N)

    Returns:
        Increasing array of kept indices
    """
    points = np.asarray(points, dtype=float)
    n_points = points.shape[0] if points.ndim == 2 else 0
    if n_points == 0:
        return np.empty(0, dtype=np.int64)
    if stride < 1 or window < 1:
        raise ValueError(f"stride and window must be positive (got {stride}, {window})")

    limit = n_points if limit is None else min(int(limit), n_points)

    kept = [0]
    for i in range(stride, limit - stride, stride):
        recent = points[kept[-window:]]
        if np.all(np.linalg.norm(recent - points[i], axis=1) >= radius):
            kept.append(i)

    return np.asarray(kept, dtype=np.int64)


class Subsampler:
    """
    Configured subsampler that remembers its latest result.

    ``last_indices`` is kept for display only; nothing in the registration
    reads it back.
    """

    def __init__(self, radius_multiplier=5.0, stride=4, window=40):
        self.radius_multiplier = radius_multiplier
        self.stride = stride
        self.window = window
        self.last_indices = np.empty(0, dtype=np.int64)

    @classmethod
    def from_config(cls, config):
        return cls(config.radius_multiplier, config.stride, config.window)

    def radius_for(self, average_vertex_distance):
        return self.radius_multiplier * average_vertex_distance

    def __call__(self, points, average_vertex_distance, limit=None):
        radius = self.radius_for(average_vertex_distance)
        indices = subsample(points, radius, self.stride, self.window, limit)
        self.last_indices = indices
        logger.info("Subsample: kept %d of %d points (radius=%.4f)",
                    len(indices), len(points), radius)
        return indices

    def clear(self):
        self.last_indices = np.empty(0, dtype=np.int64)
