"""Exceptions raised by the registration core."""


class ScanAlignError(Exception):
    """Base class for recoverable registration failures."""


class EmptyIndex(ScanAlignError):
    """A closest-point query was issued against an index with no points."""


class UnderdeterminedSystem(ScanAlignError):
    """The point-to-surface system has too few or degenerate correspondences."""

    def __init__(self, message, num_pairs=None, rank=None):
        super().__init__(message)
        self.num_pairs = num_pairs
        self.rank = rank
