"""Incremental multi-scan ICP registration session."""

import time
from dataclasses import dataclass, field

import numpy as np

from .config import AppConfig
from .correspondences import CorrespondenceBuilder
from .errors import UnderdeterminedSystem
from .scan import Scan
from .solvers import register_point_to_point, register_point_to_surface
from .transforms import Transformation, apply_view_motion
from .utils import setup_logger

logger = setup_logger(__name__)


@dataclass
class RegistrationResult:
    transformation: Transformation
    num_correspondences: int
    residual_before: float
    success: bool = True
    message: str = ""


@dataclass
class AlignmentHistory:
    residuals: list = field(default_factory=list)
    results: list = field(default_factory=list)
    converged: bool = False


class RegistrationSession:
    """
    Registers scans one at a time against the union of processed scans.

    The session owns the per-scan accumulated transformations and the
    processing cursor. Every registration call hands the core an explicit
    snapshot: the current scan, its transformation, and the other processed
    scans with theirs.
    """

    def __init__(self, scans, config=None):
        """
        Initialize a registration session.

        Args:
            scans: Sequence of Scan objects or paths to mesh files
            config: Optional AppConfig (defaults used when None)
        """
        self.config = AppConfig() if config is None else config
        mesh = self.config.mesh
        self.scans = [
            s if isinstance(s, Scan) else Scan.from_file(
                s, center=mesh.center, min_aspect=mesh.min_aspect_ratio)
            for s in scans
        ]
        self.transformations = [Transformation.identity() for _ in self.scans]
        self.builder = CorrespondenceBuilder(self.config)

        # The first two scans start out processed, the second one current
        self.num_processed = min(2, len(self.scans))
        self.current_index = max(0, self.num_processed - 1)

    @property
    def current_scan(self):
        return self.scans[self.current_index]

    @property
    def sampled_indices(self):
        """Indices of the most recent subsample of the current scan."""
        return self.builder.subsampler.last_indices

    def next_scan(self):
        """Move on to the next scan and mark one more scan as processed."""
        if not self.scans:
            return self.current_index
        self.builder.subsampler.clear()
        self.num_processed = min(self.num_processed + 1, len(self.scans))
        self.current_index = (self.current_index + 1) % len(self.scans)
        logger.info("Process scan %d of %d", self.current_index, len(self.scans))
        return self.current_index

    def other_scans(self):
        """(Scan, Transformation) pairs of processed scans other than the current one."""
        return [
            (self.scans[i], self.transformations[i])
            for i in range(self.num_processed)
            if i != self.current_index
        ]

    def _subsample_limit(self):
        if self.config.subsample.extent_policy == "smallest_scan":
            return min(len(s) for s in self.scans)
        return None

    def correspondences(self):
        """Pruned correspondences for the current scan at its current pose."""
        if not self.scans:
            raise ValueError("No scans loaded")
        return self.builder.build(
            self.current_scan,
            self.transformations[self.current_index],
            self.other_scans(),
            limit=self._subsample_limit(),
        )

    def residual(self):
        """Mean squared correspondence distance (NaN with no correspondences)."""
        return self.correspondences().mean_squared_distance()

    def register(self, tangential=False):
        """
        Run one registration step for the current scan.

        Args:
            tangential: Use point-to-surface instead of point-to-point

        Returns:
            RegistrationResult; on failure the transformations are unchanged
        """
        method = "point-to-surface" if tangential else "point-to-point"
        logger.info("Register %s (scan %d)...", method, self.current_index)

        pairs = self.correspondences()
        residual = pairs.mean_squared_distance()
        logger.info("Num correspondences: %d", len(pairs))

        try:
            if tangential:
                opt = register_point_to_surface(
                    pairs.source_points, pairs.target_points, pairs.target_normals)
            else:
                opt = register_point_to_point(pairs.source_points, pairs.target_points)
        except UnderdeterminedSystem as e:
            logger.warning("Registration of scan %d skipped: %s", self.current_index, e)
            return RegistrationResult(Transformation.identity(), len(pairs), residual,
                                      success=False, message=str(e))

        self.transformations[self.current_index] = opt * self.transformations[self.current_index]
        logger.debug("Applied update %r", opt)
        return RegistrationResult(opt, len(pairs), residual)

    def align(self, max_iterations=50, tolerance=1e-6, tangential=False):
        """
        Repeat ``register`` until the residual stops improving.

        Returns:
            AlignmentHistory with the residual before each step and the final one
        """
        history = AlignmentHistory()
        start = time.time()

        for i in range(max_iterations):
            result = self.register(tangential=tangential)
            history.results.append(result)
            history.residuals.append(result.residual_before)

            if not result.success or result.num_correspondences == 0:
                break
            if i > 0 and abs(history.residuals[-2] - history.residuals[-1]) < tolerance:
                history.converged = True
                logger.info("Converged at iteration %d", i)
                break

        history.residuals.append(self.residual())
        logger.info("Alignment of scan %d: %d steps in %.3fs, residual %.6f -> %.6f",
                    self.current_index, len(history.results), time.time() - start,
                    history.residuals[0], history.residuals[-1])
        return history

    def apply_view_motion(self, view, motion):
        """Apply a manual motion given in view coordinates to the current scan."""
        self.transformations[self.current_index] = apply_view_motion(
            view, motion, self.transformations[self.current_index])

    def current_world_scan(self):
        """The current scan at its current pose, as it is subsampled and matched."""
        return self.current_scan.transformed(self.transformations[self.current_index])

    def world_scans(self):
        """Processed scans moved into world space."""
        return [self.scans[i].transformed(self.transformations[i])
                for i in range(self.num_processed)]

    def register_all(self, max_iterations=50, tolerance=1e-6, tangential=False):
        """
        Align every scan in turn against all scans processed before it.

        Returns:
            List of AlignmentHistory, one per registered scan
        """
        histories = []
        if len(self.scans) < 2:
            return histories
        while True:
            histories.append(self.align(max_iterations, tolerance, tangential))
            if self.num_processed == len(self.scans):
                break
            self.next_scan()
        return histories
