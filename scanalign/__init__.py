"""
scanalign - Multi-scan surface registration using Iterative Closest Point (ICP)

Aligns partially overlapping scans into a common frame:
- KD-Tree closest-point index rebuilt from current poses on every pass
- Sliding-window subsampling of the scan being registered
- Correspondences against all processed scans, pruned by distance and normals
- Point-to-point (SVD) and point-to-surface (linearised) solvers
"""

from .config import AppConfig, load_config
from .correspondences import (CorrespondenceBuilder, CorrespondencePair, CorrespondenceSet,
                              prune_correspondences)
from .errors import EmptyIndex, ScanAlignError, UnderdeterminedSystem
from .icp import RegistrationResult, RegistrationSession
from .kdtree import BruteForceIndex, KDTree, build_index
from .sampling import Subsampler, subsample
from .scan import Scan
from .solvers import register_point_to_point, register_point_to_surface
from .transforms import Transformation

__version__ = "1.0.0"
__all__ = ["AppConfig", "load_config",
           "CorrespondenceBuilder", "CorrespondencePair", "CorrespondenceSet",
           "prune_correspondences",
           "EmptyIndex", "ScanAlignError", "UnderdeterminedSystem",
           "RegistrationResult", "RegistrationSession",
           "BruteForceIndex", "KDTree", "build_index",
           "Subsampler", "subsample", "Scan",
           "register_point_to_point", "register_point_to_surface",
           "Transformation"]
