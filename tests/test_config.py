"""Tests for configuration loading."""

from pathlib import Path

import pytest

from scanalign.config import AppConfig, load_config


def test_defaults_match_reference_behaviour():
    cfg = load_config()
    assert cfg.subsample.radius_multiplier == 5.0
    assert cfg.subsample.stride == 4
    assert cfg.subsample.window == 40
    assert cfg.subsample.extent_policy == "smallest_scan"
    assert cfg.pruning.distance_threshold == 3.0
    assert cfg.pruning.distance_policy == "fixed"
    assert cfg.pruning.max_normal_angle == 60.0
    assert cfg.mesh.min_aspect_ratio == 0.2


def test_shipped_default_yaml_matches_defaults():
    path = Path(__file__).parent.parent / "config" / "default.yaml"
    assert load_config(path) == AppConfig()


def test_partial_yaml_overrides(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text(
        "pruning:\n"
        "  distance_policy: median\n"
        "  max_normal_angle: 45\n"
        "index:\n"
        "  n_jobs: 2\n"
    )
    cfg = load_config(path)
    assert cfg.pruning.distance_policy == "median"
    assert cfg.pruning.max_normal_angle == 45.0
    assert cfg.index.n_jobs == 2
    assert cfg.subsample.stride == 4


def test_invalid_values_raise_value_error(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("subsample:\n  stride: 0\n")
    with pytest.raises(ValueError):
        load_config(path)

    path.write_text("pruning:\n  distance_policy: average\n")
    with pytest.raises(ValueError):
        load_config(path)


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yaml")


def test_empty_yaml_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_config(path) == AppConfig()
