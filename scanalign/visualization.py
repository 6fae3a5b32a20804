"""Visualization utilities for registration results."""

import matplotlib.pyplot as plt
import numpy as np
import open3d as o3d

from .utils import setup_logger

logger = setup_logger(__name__)


def plot_convergence(residuals, labels=None, save_path='icp_convergence.png', show=False):
    """
    Plot residual curves, one per registered scan.

    Args:
        residuals: List of residual sequences (or a single sequence)
        labels: Optional label per curve
        save_path: Path to save the plot
        show: Open an interactive window after saving
    """
    if len(residuals) and np.ndim(residuals[0]) == 0:
        residuals = [residuals]
    if labels is None:
        labels = [f"Scan {i + 1}" for i in range(len(residuals))]

    fig, ax = plt.subplots(figsize=(12, 7))
    for curve, label in zip(residuals, labels):
        ax.plot(curve, marker='o', linewidth=2, markersize=4, label=label)

    ax.set_xlabel('Iteration', fontsize=12)
    ax.set_ylabel('Mean Squared Correspondence Distance', fontsize=12)
    ax.set_title('ICP Convergence', fontsize=14, fontweight='bold')
    ax.grid(True, alpha=0.3)
    ax.legend(loc='best')

    plt.tight_layout()
    plt.savefig(save_path, dpi=150)
    logger.info("Convergence plot saved to '%s'", save_path)
    if show:
        plt.show()
    plt.close(fig)


def plot_samples(points, indices, save_path='subsample.png', show=False):
    """Scatter a scan with its subsampled points highlighted."""
    points = np.asarray(points)
    indices = np.asarray(indices, dtype=np.int64)

    fig = plt.figure(figsize=(10, 8))
    ax = fig.add_subplot(111, projection='3d')
    ax.scatter(points[:, 0], points[:, 1], points[:, 2], s=1, c='0.6', alpha=0.3)
    if indices.size:
        sampled = points[indices]
        ax.scatter(sampled[:, 0], sampled[:, 1], sampled[:, 2], s=12, c='blue',
                   label=f'{indices.size} samples')
        ax.legend(loc='best')
    ax.set_title('Subsampled Points', fontsize=14, fontweight='bold')

    plt.tight_layout()
    plt.savefig(save_path, dpi=150)
    logger.info("Subsample plot saved to '%s'", save_path)
    if show:
        plt.show()
    plt.close(fig)


def show_scans(world_scans, current=None):
    """Open an Open3D window with the scans, the current one in green."""
    geometries = []
    for i, scan in enumerate(world_scans):
        color = [0.1, 0.5, 0.1] if i == current else [0.5, 0.5, 0.5]
        geometries.append(scan.to_o3d(color=color))

    o3d.visualization.draw_geometries(
        geometries,
        window_name="Registered Scans",
        width=1024,
        height=768
    )
