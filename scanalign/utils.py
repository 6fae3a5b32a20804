"""General utility functions."""

import logging
import sys
import time
from functools import wraps
from pathlib import Path
from typing import Optional

import numpy as np


def setup_logger(name: str,
                 level: int = logging.INFO,
                 log_file: Optional[str] = None) -> logging.Logger:
    """
    Set up a logger with consistent formatting.

    Args:
        name: Logger name (usually __name__)
        level: Logging level (default: logging.INFO)
        log_file: Optional log file path. If provided, logs are also written there

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding multiple handlers
    if logger.handlers:
        return logger

    logger.setLevel(level)

    console_formatter = logging.Formatter(
        '%(asctime)s | %(levelname)s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s | %(levelname)s | %(name)s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(file_handler)

    return logger


logger = setup_logger(__name__)


def time_function(func):
    """
    Decorator to log function execution time at DEBUG level.
    For recursive functions, only times the top-level call.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        if not hasattr(wrapper, '_in_call'):
            wrapper._in_call = False

        if not wrapper._in_call:
            wrapper._in_call = True
            start_time = time.time()
            try:
                result = func(*args, **kwargs)
                elapsed = time.time() - start_time
                logger.debug("%s took %.6f seconds", func.__qualname__, elapsed)
                return result
            finally:
                wrapper._in_call = False
        else:
            return func(*args, **kwargs)

    return wrapper


def squared_distances(points, query):
    """Squared distance from each row of ``points`` to ``query``, summed x + y + z."""
    diff = points - query
    sq = diff * diff
    return sq[:, 0] + sq[:, 1] + sq[:, 2]


def nearest_neighbor_search(query_point, root, points_array):
    """
    Iterative nearest neighbor search in KD-tree.

    Ties on distance resolve to the lowest point index, so the result matches
    a brute-force arg-min over ``points_array``.

    Args:
        query_point: Point to find the nearest neighbor for
        root: Root node of the KD-tree
        points_array: Numpy array of points the tree was built over

    Returns:
        Tuple of (nearest_index, squared_distance)
    """
    stack = [(root, 0.0)]
    best_index, best_dist2 = -1, np.inf

    while stack:
        node, bound = stack.pop()
        # Subtree cannot hold a point at least as close as the current best
        if node is None or bound > best_dist2:
            continue

        # Leaf node: check all points in the leaf
        if node.indices is not None:
            dists2 = squared_distances(points_array[node.indices], query_point)
            dist2 = dists2.min()
            if dist2 <= best_dist2:
                idx = int(node.indices[dists2 == dist2].min())
                if dist2 < best_dist2 or idx < best_index:
                    best_index, best_dist2 = idx, dist2
            continue

        # Internal node: check node point
        dist2 = float(squared_distances(points_array[node.index][None], query_point)[0])
        if dist2 < best_dist2 or (dist2 == best_dist2 and node.index < best_index):
            best_index, best_dist2 = node.index, dist2

        # Traverse tree; the far side may still hold an equally close point
        axis = node.axis
        split = node.point[axis]
        if query_point[axis] < split:
            near_node, far_node = node.left, node.right
        else:
            near_node, far_node = node.right, node.left

        gap = query_point[axis] - split
        stack.append((far_node, gap * gap))
        stack.append((near_node, 0.0))

    return best_index, best_dist2


def set_log_level(level, prefix="scanalign"):
    """Set the level of every logger (and handler) created under ``prefix``."""
    for name, candidate in logging.Logger.manager.loggerDict.items():
        if name.startswith(prefix) and isinstance(candidate, logging.Logger):
            candidate.setLevel(level)
            for handler in candidate.handlers:
                handler.setLevel(level)
