"""Saving and loading merged points and registration results."""

import os
import pickle

import numpy as np

from .transforms import Transformation
from .utils import setup_logger

logger = setup_logger(__name__)


def save_points(filepath, scans, transformations):
    """
    Write the given scans in world space, one point per line.

    Each line reads ``v x y z vn nx ny nz``.
    """
    with open(filepath, 'w') as f:
        for scan, transformation in zip(scans, transformations):
            points = transformation.transform_points(scan.points)
            normals = transformation.transform_vectors(scan.normals)
            for p, n in zip(points, normals):
                f.write(f"v {p[0]:.9g} {p[1]:.9g} {p[2]:.9g} "
                        f"vn {n[0]:.9g} {n[1]:.9g} {n[2]:.9g}\n")
    logger.info("merged points saved to: %s", filepath)


def load_points(filepath):
    """Read a file written by ``save_points``; returns (points, normals)."""
    points, normals = [], []
    with open(filepath) as f:
        for line_number, line in enumerate(f, 1):
            fields = line.split()
            if not fields:
                continue
            if len(fields) != 8 or fields[0] != 'v' or fields[4] != 'vn':
                raise ValueError(f"{filepath}:{line_number}: malformed point line")
            points.append([float(x) for x in fields[1:4]])
            normals.append([float(x) for x in fields[5:8]])
    return np.array(points).reshape(-1, 3), np.array(normals).reshape(-1, 3)


def save_result(filepath, transformations, residuals=None, scan_names=None):
    """Save per-scan transformations and residual histories with pickle."""
    result = {
        'transformations': [t.matrix for t in transformations],
        'residuals': residuals,
        'scan_names': scan_names,
    }
    with open(filepath, 'wb') as f:
        pickle.dump(result, f)
    logger.info("Results saved to %s", filepath)


def load_result(filepath):
    """Load results saved by ``save_result``; None if the file is missing."""
    if not os.path.exists(filepath):
        logger.warning("File %s not found", filepath)
        return None

    with open(filepath, 'rb') as f:
        result = pickle.load(f)
    result['transformations'] = [Transformation.from_matrix(m) for m in result['transformations']]
    logger.info("Results loaded from %s", filepath)
    return result
