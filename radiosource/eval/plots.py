"""
Visualization utilities for radio source estimation.

All functions return matplotlib Figure objects for flexible display/saving.
"""

from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.patches import Ellipse
from scipy import stats


def plot_rssi_source_estimate_2d(
    observer_positions: np.ndarray,
    inliers: Optional[np.ndarray] = None,
    true_position: Optional[np.ndarray] = None,
    estimated_position: Optional[np.ndarray] = None,
    position_covariance: Optional[np.ndarray] = None,
    confidence: float = 0.99,
    title: str = "Radio Source Estimate",
) -> plt.Figure:
    """
    Plot observers, inlier classification and the estimated emitter.

    Args:
        observer_positions: Reading positions, shape (N, 2)
        inliers: Inlier mask, shape (N,) (optional)
        true_position: Ground-truth emitter position (optional)
        estimated_position: Estimated emitter position (optional)
        position_covariance: 2x2 covariance drawn as a confidence ellipse
                             around the estimate (optional)
        confidence: Confidence level of the ellipse
        title: Plot title

    Returns:
        fig: Matplotlib figure
    """
    observer_positions = np.asarray(observer_positions, dtype=float)
    fig, ax = plt.subplots(figsize=(10, 8))

    if inliers is None:
        ax.plot(observer_positions[:, 0], observer_positions[:, 1], ".",
                color="gray", markersize=6, label="Readings")
    else:
        inliers = np.asarray(inliers, dtype=bool)
        ax.plot(observer_positions[inliers, 0], observer_positions[inliers, 1], ".",
                color="green", markersize=6, label="Inliers")
        ax.plot(observer_positions[~inliers, 0], observer_positions[~inliers, 1], "x",
                color="red", markersize=6, label="Outliers")

    if true_position is not None:
        ax.plot(true_position[0], true_position[1], "*", color="black",
                markersize=16, label="True emitter")

    if estimated_position is not None:
        ax.plot(estimated_position[0], estimated_position[1], "o", color="blue",
                markersize=10, label="Estimated emitter")

        if position_covariance is not None:
            # Ellipse semi-axes from the chi-square quantile with 2 DOF
            eigenvalues, eigenvectors = np.linalg.eigh(position_covariance)
            scale = np.sqrt(stats.chi2.ppf(confidence, df=2))
            width, height = 2.0 * scale * np.sqrt(np.clip(eigenvalues, 0.0, None))
            angle = np.degrees(np.arctan2(eigenvectors[1, 0], eigenvectors[0, 0]))
            ax.add_patch(
                Ellipse(
                    xy=(estimated_position[0], estimated_position[1]),
                    width=width,
                    height=height,
                    angle=angle,
                    fill=False,
                    edgecolor="blue",
                    linestyle="--",
                    label=f"{confidence:.0%} confidence",
                )
            )

    ax.set_xlabel("X (m)", fontsize=12)
    ax.set_ylabel("Y (m)", fontsize=12)
    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.legend(fontsize=10)
    ax.grid(True, alpha=0.3)
    ax.axis("equal")

    plt.tight_layout()
    return fig


def plot_error_cdf(
    errors_dict: Dict[str, np.ndarray],
    title: str = "Error CDF",
    xlabel: str = "Position Error (m)",
) -> plt.Figure:
    """
    Plot Cumulative Distribution Function (CDF) of errors per method.

    Args:
        errors_dict: Dictionary of error arrays {name: errors}
        title: Plot title
        xlabel: Label of the error axis

    Returns:
        fig: Matplotlib figure
    """
    fig, ax = plt.subplots(figsize=(10, 6))

    colors = ["blue", "red", "green", "orange", "purple"]
    linestyles = ["-", "--", "-.", ":", "-"]

    for i, (name, errors) in enumerate(errors_dict.items()):
        errors = np.asarray(errors, dtype=float)
        if errors.ndim > 1:
            error_magnitudes = np.linalg.norm(errors, axis=1)
        else:
            error_magnitudes = np.abs(errors)

        sorted_errors = np.sort(error_magnitudes)
        cdf = np.arange(1, len(sorted_errors) + 1) / len(sorted_errors)

        ax.plot(
            sorted_errors,
            cdf,
            label=name,
            color=colors[i % len(colors)],
            linestyle=linestyles[i % len(linestyles)],
            linewidth=2,
        )

    ax.set_xlabel(xlabel, fontsize=12)
    ax.set_ylabel("CDF", fontsize=12)
    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.legend(fontsize=10)
    ax.grid(True, alpha=0.3)
    ax.set_xlim(left=0)
    ax.set_ylim([0, 1.05])

    plt.tight_layout()
    return fig


def save_figure(
    fig: plt.Figure,
    out_dir: Union[str, Path],
    name: str,
    formats: Tuple[str, ...] = ("svg", "pdf", "png"),
) -> List[Path]:
    """
    Save figure in multiple formats.

    Args:
        fig: Matplotlib figure to save
        out_dir: Output directory
        name: Base filename (without extension)
        formats: Tuple of format extensions

    Returns:
        paths: List of saved file paths
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    paths = []
    for fmt in formats:
        filepath = out_dir / f"{name}.{fmt}"
        fig.savefig(filepath, dpi=150, bbox_inches="tight")
        paths.append(filepath)

    return paths
