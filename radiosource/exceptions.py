"""
Error taxonomy for radio source estimation.

Every exception raised by the estimators derives from
RadioSourceEstimationError, and additionally from the builtin exception a
caller would naturally catch (ValueError for bad parameters, RuntimeError for
lifecycle problems, numpy's LinAlgError for degenerate linear systems).
"""

import numpy as np


class RadioSourceEstimationError(Exception):
    """Base class for all radio source estimation errors."""


class ConfigurationError(RadioSourceEstimationError, ValueError):
    """Invalid parameter passed to a setter or constructor."""


class NotReadyError(RadioSourceEstimationError, RuntimeError):
    """Estimation prerequisites are not met when estimate() is called."""


class LockedError(RadioSourceEstimationError, RuntimeError):
    """A mutator was invoked while an estimation is in progress."""


class AlgebraError(RadioSourceEstimationError, np.linalg.LinAlgError):
    """Singular or degenerate linear system (e.g. collinear observers)."""


class RobustEstimationFailure(RadioSourceEstimationError, RuntimeError):
    """Iteration budget exhausted without any valid candidate solution."""
