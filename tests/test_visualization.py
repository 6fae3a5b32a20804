"""Tests for the saved matplotlib plots."""

import numpy as np

from scanalign.visualization import plot_convergence, plot_samples


def test_plot_convergence_writes_file(tmp_path):
    path = tmp_path / "convergence.png"
    plot_convergence([[1.0, 0.5, 0.25], [0.8, 0.1]], save_path=str(path))
    assert path.stat().st_size > 0

    single = tmp_path / "single.png"
    plot_convergence([1.0, 0.5], save_path=str(single))
    assert single.exists()


def test_plot_samples_writes_file(tmp_path):
    rng = np.random.default_rng(0)
    points = rng.normal(size=(200, 3))
    path = tmp_path / "samples.png"
    plot_samples(points, np.arange(0, 200, 10), save_path=str(path))
    assert path.stat().st_size > 0
