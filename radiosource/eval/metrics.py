"""
Evaluation metrics for radio source estimation.

Error statistics of estimated emitter positions and powers, covariance
consistency (NEES), and the quality of a robust inlier classification
against known outliers.
"""

from typing import Dict, Union

import numpy as np


def compute_position_errors(truth: np.ndarray, estimated: np.ndarray) -> np.ndarray:
    """
    Compute position errors between true and estimated emitter positions.

    Args:
        truth: True positions, shape (N, d) or (d,)
        estimated: Estimated positions, same shape as truth

    Returns:
        errors: Position error vectors estimated - truth

    Raises:
        ValueError: If inputs have incompatible shapes
    """
    truth = np.asarray(truth, dtype=float)
    estimated = np.asarray(estimated, dtype=float)

    if truth.shape != estimated.shape:
        raise ValueError(
            f"Shape mismatch: truth {truth.shape} vs estimated {estimated.shape}"
        )

    return estimated - truth


def compute_rmse(errors: np.ndarray) -> float:
    """Root mean square of error magnitudes."""
    errors = np.asarray(errors, dtype=float)
    magnitudes = np.linalg.norm(errors, axis=1) if errors.ndim > 1 else np.abs(errors)
    return float(np.sqrt(np.mean(magnitudes**2)))


def compute_error_stats(errors: np.ndarray) -> Dict[str, float]:
    """
    Compute error statistics.

    Args:
        errors: Error vectors, shape (N, d), or scalar errors, shape (N,)

    Returns:
        stats: Dictionary with keys 'mean', 'median', 'std', 'rmse',
               'p50', 'p75', 'p90', 'p95', 'max'
    """
    errors = np.asarray(errors, dtype=float)
    if errors.size == 0:
        raise ValueError("errors must not be empty")

    # Compute error magnitudes if multi-dimensional
    if errors.ndim > 1:
        error_magnitudes = np.linalg.norm(errors, axis=1)
    else:
        error_magnitudes = np.abs(errors)

    return {
        "mean": float(np.mean(error_magnitudes)),
        "median": float(np.median(error_magnitudes)),
        "std": float(np.std(error_magnitudes)),
        "rmse": float(np.sqrt(np.mean(error_magnitudes**2))),
        "p50": float(np.percentile(error_magnitudes, 50)),
        "p75": float(np.percentile(error_magnitudes, 75)),
        "p90": float(np.percentile(error_magnitudes, 90)),
        "p95": float(np.percentile(error_magnitudes, 95)),
        "max": float(np.max(error_magnitudes)),
    }


def compute_nees(
    truth: np.ndarray, estimated: np.ndarray, covariance: np.ndarray
) -> Union[float, np.ndarray]:
    """
    Normalized Estimation Error Squared: e' P⁻¹ e.

    For a consistent estimator the NEES follows a chi-square distribution
    with d degrees of freedom (mean d).

    Args:
        truth: True position(s), shape (d,) or (N, d)
        estimated: Estimated position(s), same shape
        covariance: Covariance(s), shape (d, d) or (N, d, d)

    Returns:
        NEES value (scalar for a single estimate, array otherwise)
    """
    errors = compute_position_errors(truth, estimated)
    covariance = np.asarray(covariance, dtype=float)

    if errors.ndim == 1:
        return float(errors @ np.linalg.solve(covariance, errors))

    if covariance.ndim == 2:
        covariance = np.broadcast_to(covariance, (len(errors),) + covariance.shape)
    return np.array(
        [e @ np.linalg.solve(P, e) for e, P in zip(errors, covariance)]
    )


def compute_inlier_detection_rates(
    inliers: np.ndarray, outliers: np.ndarray
) -> Dict[str, float]:
    """
    Compare a robust inlier mask with the ground-truth outlier mask.

    Args:
        inliers: Inlier mask reported by the estimator, shape (N,)
        outliers: True outlier mask (injected outliers), shape (N,)

    Returns:
        Dictionary with:
            - 'true_positive_rate': fraction of true inliers kept
            - 'false_positive_rate': fraction of true outliers kept
            - 'precision': fraction of kept readings that are true inliers
            - 'num_inliers': number of readings kept
    """
    inliers = np.asarray(inliers, dtype=bool)
    outliers = np.asarray(outliers, dtype=bool)
    if inliers.shape != outliers.shape:
        raise ValueError(
            f"Shape mismatch: inliers {inliers.shape} vs outliers {outliers.shape}"
        )

    true_inliers = ~outliers
    kept_true = np.count_nonzero(inliers & true_inliers)
    kept_false = np.count_nonzero(inliers & outliers)
    num_kept = np.count_nonzero(inliers)

    return {
        "true_positive_rate": (
            kept_true / np.count_nonzero(true_inliers) if true_inliers.any() else float("nan")
        ),
        "false_positive_rate": (
            kept_false / np.count_nonzero(outliers) if outliers.any() else 0.0
        ),
        "precision": kept_true / num_kept if num_kept else float("nan"),
        "num_inliers": int(num_kept),
    }
