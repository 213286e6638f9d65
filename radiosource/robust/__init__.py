"""
Robust radio source estimation.

Methods:
    RANSAC  - inlier count, uniform sampling
    LMedS   - median of squared residuals, uniform sampling
    MSAC    - truncated squared residuals, uniform sampling
    PROSAC  - inlier count, quality-ordered progressive sampling
    PROMedS - median of squared residuals, quality-ordered progressive sampling
"""

from radiosource.robust.engine import (
    RobustEngine,
    RobustEstimatorListener,
    adaptive_iteration_cap,
)
from radiosource.robust.estimator import (
    RobustRssiRadioSourceEstimator,
    RobustRssiRadioSourceEstimator2D,
    RobustRssiRadioSourceEstimator3D,
)
from radiosource.robust.methods import RobustMethod

__all__ = [
    "RobustMethod",
    "RobustEngine",
    "RobustEstimatorListener",
    "adaptive_iteration_cap",
    "RobustRssiRadioSourceEstimator",
    "RobustRssiRadioSourceEstimator2D",
    "RobustRssiRadioSourceEstimator3D",
]
