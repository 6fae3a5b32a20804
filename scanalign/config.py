"""
Configuration management for scanalign.

Provides typed pydantic models and a YAML loader with defaults matching the
reference registration behaviour.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError


class SubsampleConfig(BaseModel):
    radius_multiplier: float = Field(
        default=5.0, gt=0,
        description="Subsample radius as a multiple of the average vertex distance",
    )
    stride: int = Field(default=4, ge=1, description="Step between visited candidates")
    window: int = Field(default=40, ge=1, description="Trailing window of kept points to test")
    extent_policy: Literal["smallest_scan", "own_scan"] = Field(
        default="smallest_scan",
        description="'smallest_scan' bounds the sweep by the smallest loaded scan; "
                    "'own_scan' sweeps the whole scan being subsampled",
    )


class PruningConfig(BaseModel):
    distance_threshold: float = Field(
        default=3.0, gt=0,
        description="Fixed bound on squared source-target distance (policy 'fixed')",
    )
    distance_policy: Literal["fixed", "median"] = Field(default="fixed")
    median_multiplier: float = Field(
        default=3.0, gt=0,
        description="Reject pairs farther than this multiple of the median distance (policy 'median')",
    )
    max_normal_angle: float = Field(default=60.0, ge=0, le=180, description="Degrees")


class IndexConfig(BaseModel):
    leaf_size: int = Field(default=32, ge=1)
    brute_force_below: int = Field(default=64, ge=0)
    n_jobs: int = Field(default=1, description="joblib workers for closest-point queries")


class MeshConfig(BaseModel):
    min_aspect_ratio: float = Field(
        default=0.2, ge=0, le=1,
        description="Faces with min/max edge ratio below this are removed on load",
    )
    center: bool = Field(default=True, description="Move each scan to its centre of gravity on load")


class AppConfig(BaseModel):
    subsample: SubsampleConfig = Field(default_factory=SubsampleConfig)
    pruning: PruningConfig = Field(default_factory=PruningConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)
    mesh: MeshConfig = Field(default_factory=MeshConfig)


def load_config(path: Optional[str | Path] = None) -> AppConfig:
    """
    Load configuration from a YAML file; defaults when ``path`` is None.

    Raises:
        FileNotFoundError: ``path`` does not exist.
        ValueError: the file does not describe a valid configuration.
    """
    if path is None:
        return AppConfig()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration in {path}:\n{e}") from e
