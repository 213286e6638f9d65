"""
Robust radio source estimator (RANSAC, LMedS, MSAC, PROSAC, PROMedS).

Locates a radio source from RSSI readings that may contain gross outliers
(multipath, shadowing, NLOS). Each robust iteration fits the enabled unknowns
to a small subset of readings; the best candidate under the method's
criterion selects the inliers, which are then refined with a weighted
least-squares fit over all of them.

Example:
    >>> estimator = RobustRssiRadioSourceEstimator2D(
    ...     readings, quality_scores=scores, method="promeds", seed=0
    ... )
    >>> result = estimator.estimate()
    >>> print(estimator.estimated_position, estimator.inliers_data.num_inliers)
"""

from dataclasses import replace
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from radiosource.estimators.base import EstimationOutcome
from radiosource.estimators.rssi_source import (
    DEFAULT_PATH_LOSS_EXPONENT,
    CandidateSolution,
    EstimationResult,
    InliersData,
    RssiSourceEstimatorBase,
    readings_to_arrays,
    solve_rssi_source,
)
from radiosource.exceptions import ConfigurationError, NotReadyError
from radiosource.robust.engine import RobustEngine
from radiosource.robust.methods import RobustMethod
from radiosource.rf.types import RssiReading


class RobustRssiRadioSourceEstimator(RssiSourceEstimatorBase):
    """
    Robust estimator of a radio source position, power and path loss.

    Args:
        dims: Dimension of the readings (2 or 3).
        readings: RSSI readings of a single radio source.
        quality_scores: Per-reading quality in (0, 1], required by PROSAC and
            PROMedS. If None, the readings' own quality scores are used.
        initial_position: Initial (or fixed) emitter position.
        initial_power_dbm: Initial (or fixed) transmitted power in dBm.
        initial_path_loss_exponent: Initial (or fixed) path-loss exponent.
        listener: Object receiving RobustEstimatorListener callbacks.
        method: Robust method (RobustMethod or its name).
        seed: Seed of the random generator created on every estimate().
    """

    DEFAULT_METHOD = RobustMethod.PROMEDS
    DEFAULT_CONFIDENCE = 0.99
    DEFAULT_MAX_ITERATIONS = 5000
    DEFAULT_PROGRESS_DELTA = 0.05

    def __init__(
        self,
        dims: int,
        readings: Optional[Sequence[RssiReading]] = None,
        quality_scores: Optional[Sequence[float]] = None,
        initial_position: Optional[np.ndarray] = None,
        initial_power_dbm: Optional[float] = None,
        initial_path_loss_exponent: float = DEFAULT_PATH_LOSS_EXPONENT,
        listener=None,
        method: Union[str, RobustMethod] = DEFAULT_METHOD,
        seed: Optional[int] = None,
    ):
        self._quality_scores: Optional[np.ndarray] = None
        super().__init__(
            dims,
            readings=readings,
            initial_position=initial_position,
            initial_power_dbm=initial_power_dbm,
            initial_path_loss_exponent=initial_path_loss_exponent,
            listener=listener,
        )
        self._method = RobustMethod.parse(method)
        self._confidence = self.DEFAULT_CONFIDENCE
        self._max_iterations = self.DEFAULT_MAX_ITERATIONS
        self._stop_threshold: Optional[float] = None
        self._preliminary_subset_size: Optional[int] = None
        self._result_refined = True
        self._covariance_kept = True
        self._progress_delta = self.DEFAULT_PROGRESS_DELTA
        self._seed = seed

        if quality_scores is not None:
            self.quality_scores = quality_scores

    # Configuration

    @property
    def method(self) -> RobustMethod:
        return self._method

    @method.setter
    def method(self, method: Union[str, RobustMethod]) -> None:
        self._check_unlocked()
        self._method = RobustMethod.parse(method)

    @property
    def readings(self) -> Optional[Tuple[RssiReading, ...]]:
        return self._readings

    @readings.setter
    def readings(self, readings: Optional[Sequence[RssiReading]]) -> None:
        self._check_unlocked()
        if readings is not None:
            readings = tuple(readings)
            if self._quality_scores is not None and len(readings) != len(self._quality_scores):
                raise ConfigurationError(
                    f"readings has {len(readings)} elements, expected "
                    f"{len(self._quality_scores)} (one per quality score)"
                )
        RssiSourceEstimatorBase.readings.fset(self, readings)

    @property
    def quality_scores(self) -> Optional[np.ndarray]:
        return None if self._quality_scores is None else self._quality_scores.copy()

    @quality_scores.setter
    def quality_scores(self, scores: Optional[Sequence[float]]) -> None:
        self._check_unlocked()
        if scores is None:
            self._quality_scores = None
            return
        scores = np.array(scores, dtype=float)
        if scores.ndim != 1:
            raise ConfigurationError(f"quality_scores must be 1D, got shape {scores.shape}")
        if self._readings is not None and len(scores) != len(self._readings):
            raise ConfigurationError(
                f"quality_scores has {len(scores)} elements, "
                f"expected {len(self._readings)} (one per reading)"
            )
        if not np.all((scores > 0.0) & (scores <= 1.0)):
            raise ConfigurationError("quality_scores must be in (0, 1]")
        self._quality_scores = scores

    @property
    def confidence(self) -> float:
        return self._confidence

    @confidence.setter
    def confidence(self, confidence: float) -> None:
        self._check_unlocked()
        if not 0.0 < confidence < 1.0:
            raise ConfigurationError(f"confidence must be in (0, 1), got {confidence}")
        self._confidence = float(confidence)

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    @max_iterations.setter
    def max_iterations(self, max_iterations: int) -> None:
        self._check_unlocked()
        if int(max_iterations) != max_iterations or max_iterations <= 0:
            raise ConfigurationError(
                f"max_iterations must be a positive integer, got {max_iterations}"
            )
        self._max_iterations = int(max_iterations)

    @property
    def stop_threshold(self) -> float:
        """Inlier threshold in dB (RANSAC/MSAC/PROSAC) or stop threshold on
        the median squared residual in dB² (LMedS/PROMedS).

        Defaults to the method's own default until explicitly set.
        """
        if self._stop_threshold is None:
            return self._method.default_threshold
        return self._stop_threshold

    @stop_threshold.setter
    def stop_threshold(self, threshold: Optional[float]) -> None:
        self._check_unlocked()
        if threshold is not None and not (np.isfinite(threshold) and threshold > 0):
            raise ConfigurationError(f"stop_threshold must be positive, got {threshold}")
        self._stop_threshold = None if threshold is None else float(threshold)

    @property
    def preliminary_subset_size(self) -> int:
        """Readings per preliminary fit; defaults to min_readings."""
        if self._preliminary_subset_size is None:
            return self.min_readings
        return self._preliminary_subset_size

    @preliminary_subset_size.setter
    def preliminary_subset_size(self, size: Optional[int]) -> None:
        self._check_unlocked()
        if size is not None:
            if int(size) != size:
                raise ConfigurationError(
                    f"preliminary_subset_size must be an integer, got {size}"
                )
            if size < self.min_readings:
                raise ConfigurationError(
                    f"preliminary_subset_size must be at least {self.min_readings}, "
                    f"got {size}"
                )
        self._preliminary_subset_size = None if size is None else int(size)

    @property
    def result_refined(self) -> bool:
        return self._result_refined

    @result_refined.setter
    def result_refined(self, refined: bool) -> None:
        self._check_unlocked()
        self._result_refined = bool(refined)

    @property
    def covariance_kept(self) -> bool:
        return self._covariance_kept

    @covariance_kept.setter
    def covariance_kept(self, kept: bool) -> None:
        self._check_unlocked()
        self._covariance_kept = bool(kept)

    @property
    def progress_delta(self) -> float:
        return self._progress_delta

    @progress_delta.setter
    def progress_delta(self, delta: float) -> None:
        self._check_unlocked()
        if not 0.0 <= delta <= 1.0:
            raise ConfigurationError(f"progress_delta must be in [0, 1], got {delta}")
        self._progress_delta = float(delta)

    @property
    def seed(self) -> Optional[int]:
        return self._seed

    @seed.setter
    def seed(self, seed: Optional[int]) -> None:
        self._check_unlocked()
        self._seed = seed

    # Readiness

    def _effective_quality_scores(self) -> Optional[np.ndarray]:
        if self._quality_scores is not None:
            return self._quality_scores
        if self._readings:
            return readings_to_arrays(self._readings).quality_scores
        return None

    def _readiness_problem(self) -> Optional[str]:
        problem = super()._readiness_problem()
        if problem is not None:
            return problem

        subset_size = self.preliminary_subset_size
        if subset_size < self.min_readings:
            return (
                f"preliminary_subset_size ({subset_size}) is smaller than "
                f"min_readings ({self.min_readings})"
            )
        if subset_size > len(self._readings):
            return (
                f"preliminary_subset_size ({subset_size}) exceeds the number of "
                f"readings ({len(self._readings)})"
            )

        if self._method.requires_quality_scores:
            scores = self._effective_quality_scores()
            if scores is None:
                return f"{self._method.value} requires quality scores"
            if len(scores) != len(self._readings):
                return "quality_scores must have one element per reading"
        return None

    @property
    def inliers_data(self) -> Optional[InliersData]:
        return None if self._result is None else self._result.inliers_data

    # Estimation

    def _solve_preliminary(
        self, readings: Sequence[RssiReading], indices: np.ndarray
    ) -> Optional[CandidateSolution]:
        """Fit the enabled unknowns to a subset; None if the subset is degenerate."""
        subset = [readings[i] for i in indices]
        try:
            with np.errstate(all="ignore"):
                result = solve_rssi_source(
                    subset, self._config, compute_covariance=False, warn=False
                )
        except (np.linalg.LinAlgError, NotReadyError):
            return None
        return result.to_candidate()

    def _run_robust(self) -> EstimationResult:
        readings = self._readings
        arrays = readings_to_arrays(readings)

        engine = RobustEngine(
            method=self._method,
            num_readings=len(readings),
            subset_size=self.preliminary_subset_size,
            min_inliers=self.min_readings,
            fit=lambda indices: self._solve_preliminary(readings, indices),
            residuals=lambda candidate: candidate.residuals(
                arrays.positions, arrays.rssi, arrays.frequencies
            ),
            threshold=self.stop_threshold,
            confidence=self._confidence,
            max_iterations=self._max_iterations,
            rng=np.random.default_rng(self._seed),
            quality_scores=(
                self._effective_quality_scores()
                if self._method.requires_quality_scores else None
            ),
            on_iteration=lambda iteration: self._notify(
                "on_estimate_next_iteration", iteration
            ),
            on_progress=lambda progress: self._notify(
                "on_estimate_progress_change", progress
            ),
            progress_delta=self._progress_delta,
        )
        outcome = engine.run()
        inliers_data = outcome.inliers_data
        candidate = outcome.candidate

        if not self._result_refined:
            return EstimationResult(
                position=candidate.position,
                power_dbm=candidate.power_dbm,
                path_loss_exponent=candidate.path_loss_exponent,
                inliers_data=inliers_data,
                iterations=outcome.iterations,
            )

        inlier_readings = [r for r, inlier in zip(readings, inliers_data.inliers) if inlier]
        refined = solve_rssi_source(
            inlier_readings,
            self._config,
            compute_covariance=self._covariance_kept,
            initial_guess=candidate,
        )
        return replace(refined, inliers_data=inliers_data, iterations=outcome.iterations)

    def estimate(self) -> EstimationResult:
        """
        Run the robust estimation.

        Returns:
            EstimationResult with inliers data.

        Raises:
            NotReadyError: If the estimator is not ready (no callback fires).
            LockedError: If an estimation is already in progress.
            RobustEstimationFailure: If no valid candidate was found.
            AlgebraError: If the refined covariance cannot be computed.
        """
        with self._locked():
            self._result = None
            problem = self._readiness_problem()
            if problem is not None:
                raise NotReadyError(problem)

            self._last_outcome = EstimationOutcome.FAILED
            self._notify("on_estimate_start")
            try:
                result = self._run_robust()
                self._store_result(result)
                self._last_outcome = EstimationOutcome.SUCCEEDED
            finally:
                self._notify("on_estimate_end")
        return result


class RobustRssiRadioSourceEstimator2D(RobustRssiRadioSourceEstimator):
    """Robust estimator for 2D readings."""

    def __init__(self, readings: Optional[Sequence[RssiReading]] = None, **kwargs):
        super().__init__(2, readings, **kwargs)


class RobustRssiRadioSourceEstimator3D(RobustRssiRadioSourceEstimator):
    """Robust estimator for 3D readings."""

    def __init__(self, readings: Optional[Sequence[RssiReading]] = None, **kwargs):
        super().__init__(3, readings, **kwargs)
