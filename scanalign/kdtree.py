"""KD-Tree implementation for closest-point queries against a target scan."""

import numpy as np
from joblib import Parallel, delayed

from .errors import EmptyIndex
from .utils import nearest_neighbor_search, squared_distances, time_function


class Node:
    def __init__(self):
        self.point = None
        self.index = None
        self.left = None
        self.right = None
        self.axis = None
        self.indices = None
    def set_point(self, point, index):
        self.point = point
        self.index = int(index)
    def set_left(self, left):
        self.left = left
    def set_right(self, right):
        self.right = right
    def set_axis(self, axis):
        self.axis = axis
    def set_indices(self, indices):
        self.indices = indices


def _as_points(points):
    points = np.asarray(points, dtype=float)
    if points.size == 0:
        return np.empty((0, 3))
    if points.ndim != 2 or points.shape[1] != 3:
        raise ValueError(f"Expected an (N, 3) point array, got shape {points.shape}")
    return points


class KDTree:
    """
    Median-split KD-tree over a snapshot of target points.

    Leaves hold buckets of up to ``leaf_size`` point indices. The tree keeps
    its own copy of the points, so later changes to the caller's array (or to
    the scan's transformation) never leak into an existing index.
    """

    def __init__(self, leaf_size=32, dimension=3):
        self.root = None
        self.points = None
        self.leaf_size = max(1, int(leaf_size))
        self.dimension = dimension

    def __len__(self):
        return 0 if self.points is None else self.points.shape[0]

    @time_function
    def build(self, points):
        """Build the tree over ``points`` (N x 3) and return self."""
        self.points = _as_points(points).copy()
        self.root = None
        if self.points.shape[0] > 0:
            indices = np.arange(self.points.shape[0], dtype=np.int64)
            self.root = self._build(indices, depth=0)
        return self

    def _build(self, indices, depth):
        n_points = indices.shape[0]

        if n_points == 0:
            return None

        # Leaf: store the indices to avoid creating one node per point
        if n_points <= self.leaf_size:
            leaf = Node()
            leaf.set_axis(depth % self.dimension)
            leaf.set_indices(indices)
            return leaf

        axis = depth % self.dimension

        # In-place partition of this segment of indices around the median
        median_index = n_points // 2
        order = np.argpartition(self.points[indices, axis], median_index)
        indices[:] = indices[order]

        median_point_index = indices[median_index]

        node = Node()
        node.set_axis(axis)
        node.set_point(self.points[median_point_index], median_point_index)

        # Subtrees are views into the shared indices array
        node.set_left(self._build(indices[:median_index], depth + 1))
        node.set_right(self._build(indices[median_index + 1:], depth + 1))
        return node

    def closest_point_index(self, query):
        """Index of the point closest to ``query``; ties go to the lowest index."""
        if self.root is None:
            raise EmptyIndex("closest-point query on an empty KD-tree")
        index, _ = nearest_neighbor_search(np.asarray(query, dtype=float), self.root, self.points)
        return index

    def closest_point_indices(self, queries, n_jobs=1):
        """Closest point index for every row of ``queries``."""
        return _query_many(self, queries, n_jobs)


class BruteForceIndex:
    """Linear-scan closest-point index; exact and fine for small targets."""

    def __init__(self):
        self.points = None

    def __len__(self):
        return 0 if self.points is None else self.points.shape[0]

    def build(self, points):
        self.points = _as_points(points).copy()
        return self

    def closest_point_index(self, query):
        if self.points is None or self.points.shape[0] == 0:
            raise EmptyIndex("closest-point query on an empty index")
        # argmin returns the first (lowest) index among ties
        return int(np.argmin(squared_distances(self.points, np.asarray(query, dtype=float))))

    def closest_point_indices(self, queries, n_jobs=1):
        return _query_many(self, queries, n_jobs)


def _query_many(index, queries, n_jobs):
    queries = _as_points(queries)
    if len(index) == 0:
        raise EmptyIndex("closest-point query on an empty index")
    if queries.shape[0] == 0:
        return np.empty(0, dtype=np.int64)

    if n_jobs == 1:
        result = [index.closest_point_index(q) for q in queries]
    else:
        result = Parallel(n_jobs=n_jobs, backend='loky')(
            delayed(index.closest_point_index)(q) for q in queries
        )
    return np.asarray(result, dtype=np.int64)


def build_index(points, leaf_size=32, brute_force_below=64):
    """
    Build a closest-point index over ``points``.

    Small point sets get a ``BruteForceIndex``; everything else a ``KDTree``.
    Raises ``EmptyIndex`` when there are no points to index.
    """
    points = _as_points(points)
    if points.shape[0] == 0:
        raise EmptyIndex("cannot build a closest-point index over zero points")
    if points.shape[0] < brute_force_below:
        return BruteForceIndex().build(points)
    return KDTree(leaf_size=leaf_size).build(points)
