"""
Evaluation and Visualization Module.

Modules:
    accuracy: Accuracy metrics from covariance matrices
    metrics: Error statistics, NEES and inlier detection rates
    plots: Visualization of estimates and error CDFs
"""

from .accuracy import Accuracy, AccuracyMetric
from .metrics import (
    compute_error_stats,
    compute_inlier_detection_rates,
    compute_nees,
    compute_position_errors,
    compute_rmse,
)
from .plots import plot_error_cdf, plot_rssi_source_estimate_2d, save_figure

__all__ = [
    # Accuracy
    "Accuracy",
    "AccuracyMetric",
    # Metrics
    "compute_position_errors",
    "compute_rmse",
    "compute_error_stats",
    "compute_nees",
    "compute_inlier_detection_rates",
    # Plots
    "plot_rssi_source_estimate_2d",
    "plot_error_cdf",
    "save_figure",
]
