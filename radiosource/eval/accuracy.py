"""Accuracy metrics derived from estimation covariances.

Converts a covariance matrix (position block, or a scalar power / path-loss
variance) into interpretable accuracy figures:

    semi-axes a_i = sqrt(λ_i),  λ_i eigenvalues of the covariance
    k-σ accuracy   = k · mean(a_i)             (k = standard deviation factor)
    confidence of k-σ along one axis = 2Φ(k) - 1
    confidence-scaled accuracy at c = sqrt(χ²_d(c)) · mean(a_i)

where d is the dimension of the covariance and χ²_d(c) the chi-square
quantile, the same quantile used for chi-square gating.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy import stats

from radiosource.exceptions import AlgebraError

DEFAULT_STANDARD_DEVIATION_FACTOR = 2.0

# Relative tolerance used to accept slightly negative eigenvalues as zero
_PSD_TOLERANCE = 1e-10


@dataclass(frozen=True)
class AccuracyMetric:
    """Accuracy at a given confidence level.

    Attributes:
        value: Accuracy radius in the units of the covariance's square root.
        confidence: Confidence level actually used, in (0, 1).
        dims: Degrees of freedom of the chi-square quantile.
    """

    value: float
    confidence: float
    dims: int


class Accuracy:
    """
    Accuracy of an estimate described by its covariance.

    Args:
        covariance: Symmetric positive semi-definite matrix (d × d).
        standard_deviation_factor: Number of standard deviations k of the
            unscaled accuracies. Defaults to 2.0.

    Raises:
        AlgebraError: If the covariance is not square, not symmetric, not
            finite or not positive semi-definite.
        ValueError: If the standard deviation factor is not positive.

    Example:
        >>> acc = Accuracy(np.diag([4.0, 1.0]))
        >>> acc.largest_accuracy, acc.smallest_accuracy
        (4.0, 2.0)
        >>> metric = acc.confidence_scaled_accuracy(0.99)
        >>> print(f"{metric.value:.2f} m at {metric.confidence:.0%}")
        4.55 m at 99%
    """

    def __init__(
        self,
        covariance: np.ndarray,
        standard_deviation_factor: float = DEFAULT_STANDARD_DEVIATION_FACTOR,
    ):
        covariance = np.atleast_2d(np.asarray(covariance, dtype=float))
        if covariance.ndim != 2 or covariance.shape[0] != covariance.shape[1]:
            raise AlgebraError(f"Covariance must be square, got shape {covariance.shape}")
        if not np.all(np.isfinite(covariance)):
            raise AlgebraError("Covariance contains non-finite values")

        scale = max(float(np.max(np.abs(covariance))), np.finfo(float).tiny)
        if not np.allclose(covariance, covariance.T, rtol=0.0, atol=_PSD_TOLERANCE * scale):
            raise AlgebraError("Covariance must be symmetric")

        eigenvalues = np.linalg.eigvalsh(covariance)
        if eigenvalues[0] < -_PSD_TOLERANCE * scale:
            raise AlgebraError(
                f"Covariance is not positive semi-definite (eigenvalues {eigenvalues})"
            )

        self._covariance = covariance
        self._semi_axes = np.sqrt(np.clip(eigenvalues, 0.0, None))
        self.standard_deviation_factor = standard_deviation_factor

    @classmethod
    def from_variance(
        cls,
        variance: float,
        standard_deviation_factor: float = DEFAULT_STANDARD_DEVIATION_FACTOR,
    ) -> "Accuracy":
        """Accuracy of a scalar estimate (e.g. power or path-loss exponent)."""
        return cls(np.array([[variance]], dtype=float), standard_deviation_factor)

    @property
    def covariance(self) -> np.ndarray:
        return self._covariance.copy()

    @property
    def dims(self) -> int:
        return self._covariance.shape[0]

    @property
    def semi_axes(self) -> np.ndarray:
        """Standard deviations along the principal axes, ascending."""
        return self._semi_axes.copy()

    @property
    def standard_deviation_factor(self) -> float:
        return self._factor

    @standard_deviation_factor.setter
    def standard_deviation_factor(self, factor: float) -> None:
        if not factor > 0:
            raise ValueError(f"standard_deviation_factor must be positive, got {factor}")
        self._factor = float(factor)

    @property
    def confidence(self) -> float:
        """Probability 2Φ(k) - 1 of lying within k standard deviations."""
        return float(2.0 * stats.norm.cdf(self._factor) - 1.0)

    @confidence.setter
    def confidence(self, confidence: float) -> None:
        if not 0.0 < confidence < 1.0:
            raise ValueError(f"confidence must be in (0, 1), got {confidence}")
        self._factor = float(stats.norm.ppf((1.0 + confidence) / 2.0))

    @property
    def smallest_accuracy(self) -> float:
        """k times the smallest semi-axis."""
        return float(self._factor * self._semi_axes[0])

    @property
    def largest_accuracy(self) -> float:
        """k times the largest semi-axis."""
        return float(self._factor * self._semi_axes[-1])

    @property
    def average_accuracy(self) -> float:
        """k times the mean semi-axis."""
        return float(self._factor * np.mean(self._semi_axes))

    def confidence_scaled_accuracy(
        self, confidence: float, dims: Optional[int] = None
    ) -> AccuracyMetric:
        """
        Accuracy at a confidence level, from the chi-square quantile.

        Args:
            confidence: Confidence level in (0, 1), e.g. 0.99.
            dims: Degrees of freedom. Defaults to the covariance dimension.

        Returns:
            AccuracyMetric with value sqrt(χ²_dims(confidence)) · mean semi-axis.
        """
        if not 0.0 < confidence < 1.0:
            raise ValueError(f"confidence must be in (0, 1), got {confidence}")
        dims = self.dims if dims is None else int(dims)
        if dims <= 0:
            raise ValueError(f"dims must be positive, got {dims}")

        scale = float(np.sqrt(stats.chi2.ppf(confidence, df=dims)))
        return AccuracyMetric(
            value=scale * float(np.mean(self._semi_axes)),
            confidence=float(confidence),
            dims=dims,
        )
