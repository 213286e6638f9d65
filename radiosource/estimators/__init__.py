"""
Estimation algorithms for radio source localization.

Available estimators:
    - Nonlinear Least Squares (Levenberg-Marquardt)
    - Non-robust RSSI radio source estimator (2D/3D)
"""

from radiosource.estimators.base import (
    EstimationOutcome,
    EstimatorListener,
    EstimatorState,
    LockableEstimator,
)
from radiosource.estimators.nonlinear_least_squares import (
    NonlinearLSResult,
    compute_covariance,
    levenberg_marquardt,
)
from radiosource.estimators.rssi_source import (
    CandidateSolution,
    EstimationResult,
    InliersData,
    RssiRadioSourceEstimator,
    RssiRadioSourceEstimator2D,
    RssiRadioSourceEstimator3D,
    UnknownsConfiguration,
    solve_rssi_source,
)

__all__ = [
    # Lifecycle
    "EstimatorState",
    "EstimationOutcome",
    "EstimatorListener",
    "LockableEstimator",
    # Nonlinear LS
    "levenberg_marquardt",
    "compute_covariance",
    "NonlinearLSResult",
    # RSSI radio source
    "UnknownsConfiguration",
    "CandidateSolution",
    "InliersData",
    "EstimationResult",
    "solve_rssi_source",
    "RssiRadioSourceEstimator",
    "RssiRadioSourceEstimator2D",
    "RssiRadioSourceEstimator3D",
]
