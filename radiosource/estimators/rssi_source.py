"""
Non-robust least-squares estimation of a radio source from RSSI readings.

Fits any subset of {emitter position, transmitted power (dBm), path-loss
exponent} to a set of located RSSI readings with Levenberg-Marquardt:

    x̂ = argmin Σ w_i (rssi_i - h_i(x))²,   w_i = 1/σ_i² (σ_i = 1 if unknown)

where h_i is the log-distance model of radiosource.rf.measurement_models.
Unknowns that are disabled are held at their configured initial values.

The unknown vector is laid out as [position (d)?, power_dBm?, n?].
"""

import warnings
from dataclasses import dataclass, replace
from typing import NamedTuple, Optional, Sequence, Tuple

import numpy as np

from radiosource.estimators.base import EstimationOutcome, LockableEstimator
from radiosource.estimators.nonlinear_least_squares import levenberg_marquardt
from radiosource.exceptions import AlgebraError, ConfigurationError, NotReadyError
from radiosource.rf.measurement_models import (
    EPSILON_SQR_DISTANCE,
    dbm_to_power,
    frequency_constant_db,
    predict_rssi_dbm,
    rssi_jacobian,
)
from radiosource.rf.types import EstimatedRadioSource, RadioSource, RssiReading

DEFAULT_PATH_LOSS_EXPONENT = 2.0
DEFAULT_MAX_ITERATIONS = 100
DEFAULT_TOLERANCE = 1e-10


@dataclass(frozen=True)
class UnknownsConfiguration:
    """Which parameters are estimated, and their initial values.

    Attributes:
        position_enabled: Estimate the emitter position.
        power_enabled: Estimate the transmitted power.
        path_loss_enabled: Estimate the path-loss exponent.
        initial_position: Initial (or fixed, if not estimated) position.
        initial_power_dbm: Initial (or fixed) transmitted power in dBm.
        initial_path_loss_exponent: Initial (or fixed) path-loss exponent.

    Example:
        >>> config = UnknownsConfiguration(path_loss_enabled=True)
        >>> config.min_readings(2)
        5
    """

    position_enabled: bool = True
    power_enabled: bool = True
    path_loss_enabled: bool = False
    initial_position: Optional[np.ndarray] = None
    initial_power_dbm: Optional[float] = None
    initial_path_loss_exponent: float = DEFAULT_PATH_LOSS_EXPONENT

    def __post_init__(self) -> None:
        """Validate initial values."""
        if self.initial_position is not None:
            position = np.array(self.initial_position, dtype=float)
            if position.ndim != 1 or position.shape[0] not in (2, 3):
                raise ConfigurationError(
                    f"initial_position must be a 2D or 3D vector, got shape {position.shape}"
                )
            if not np.all(np.isfinite(position)):
                raise ConfigurationError("initial_position contains non-finite values")
            position.setflags(write=False)
            object.__setattr__(self, "initial_position", position)

        if self.initial_power_dbm is not None and not np.isfinite(self.initial_power_dbm):
            raise ConfigurationError(
                f"initial_power_dbm must be finite, got {self.initial_power_dbm}"
            )
        if not (np.isfinite(self.initial_path_loss_exponent)
                and self.initial_path_loss_exponent > 0):
            raise ConfigurationError(
                "initial_path_loss_exponent must be positive, "
                f"got {self.initial_path_loss_exponent}"
            )

    @property
    def any_enabled(self) -> bool:
        return self.position_enabled or self.power_enabled or self.path_loss_enabled

    def num_unknowns(self, dims: int) -> int:
        """Length of the unknown vector for the given dimension."""
        return (
            (dims if self.position_enabled else 0)
            + int(self.power_enabled)
            + int(self.path_loss_enabled)
        )

    def min_readings(self, dims: int) -> int:
        """Minimum number of readings needed to estimate the enabled unknowns."""
        return self.num_unknowns(dims) + 1


@dataclass(frozen=True)
class CandidateSolution:
    """Emitter parameters proposed by one fit (unknowns not estimated are fixed)."""

    position: np.ndarray
    power_dbm: float
    path_loss_exponent: float

    def residuals(
        self, positions: np.ndarray, rssi: np.ndarray, frequencies: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Absolute residuals |rssi - predicted| of this candidate.

        Returns:
            residuals: Shape (m,), NaN for observers at zero distance.
            valid: Boolean mask of readings with a finite residual.
        """
        predicted, valid = predict_rssi_dbm(
            self.position, self.power_dbm, self.path_loss_exponent, positions, frequencies
        )
        return np.abs(rssi - predicted), valid


@dataclass(frozen=True)
class InliersData:
    """Inlier classification of the readings against the selected candidate.

    Attributes:
        inliers: Boolean mask aligned with the readings.
        residuals: Absolute residuals (dB), NaN for zero-distance readings.
        criterion_value: Best score of the robust criterion (inlier count for
                         RANSAC/PROSAC, truncated cost for MSAC, median squared
                         residual for LMedS/PROMedS).
    """

    inliers: np.ndarray
    residuals: np.ndarray
    criterion_value: float

    @property
    def num_inliers(self) -> int:
        return int(np.count_nonzero(self.inliers))

    @property
    def inlier_ratio(self) -> float:
        return self.num_inliers / len(self.inliers) if len(self.inliers) else 0.0


@dataclass(frozen=True)
class EstimationResult:
    """Complete outcome of a radio source estimation.

    Variances are None for unknowns that were not estimated, or when the
    covariance was not computed.

    Attributes:
        position: Estimated (or fixed) emitter position, shape (d,).
        power_dbm: Estimated (or fixed) transmitted power in dBm.
        path_loss_exponent: Estimated (or fixed) path-loss exponent.
        position_covariance: Position covariance (d x d), or None.
        power_variance: Variance of power_dbm (dB²), or None.
        path_loss_variance: Variance of path_loss_exponent, or None.
        covariance: Full covariance of the unknown vector, or None.
        inliers_data: Inlier classification (robust estimation only).
        iterations: Solver (or robust loop) iterations performed.
        converged: Whether the final solver converged.
    """

    position: np.ndarray
    power_dbm: float
    path_loss_exponent: float
    position_covariance: Optional[np.ndarray] = None
    power_variance: Optional[float] = None
    path_loss_variance: Optional[float] = None
    covariance: Optional[np.ndarray] = None
    inliers_data: Optional[InliersData] = None
    iterations: int = 0
    converged: bool = True

    @property
    def power(self) -> float:
        """Transmitted power in mW."""
        return dbm_to_power(self.power_dbm)

    @property
    def power_std(self) -> Optional[float]:
        return None if self.power_variance is None else float(np.sqrt(self.power_variance))

    @property
    def path_loss_std(self) -> Optional[float]:
        if self.path_loss_variance is None:
            return None
        return float(np.sqrt(self.path_loss_variance))

    def to_candidate(self) -> CandidateSolution:
        return CandidateSolution(self.position, self.power_dbm, self.path_loss_exponent)


class ReadingArrays(NamedTuple):
    """Readings unpacked into arrays."""

    positions: np.ndarray  # (m, d)
    rssi: np.ndarray  # (m,)
    frequencies: np.ndarray  # (m,)
    weights: np.ndarray  # (m,), 1/σ²
    quality_scores: Optional[np.ndarray]  # (m,), None unless every reading has one


def readings_to_arrays(readings: Sequence[RssiReading]) -> ReadingArrays:
    """Stack readings into the arrays used by the solvers."""
    positions = np.array([r.position for r in readings], dtype=float)
    rssi = np.array([r.rssi_dbm for r in readings], dtype=float)
    frequencies = np.array([r.source.frequency for r in readings], dtype=float)
    stds = np.array(
        [1.0 if r.rssi_std is None else r.rssi_std for r in readings], dtype=float
    )

    quality_scores = None
    if readings and all(r.quality_score is not None for r in readings):
        quality_scores = np.array([r.quality_score for r in readings], dtype=float)

    return ReadingArrays(positions, rssi, frequencies, 1.0 / stds**2, quality_scores)


def readiness_problem(
    readings: Optional[Sequence[RssiReading]],
    config: UnknownsConfiguration,
    dims: Optional[int] = None,
) -> Optional[str]:
    """
    Describe why an estimation cannot run, or return None if it can.

    Args:
        readings: Readings to fit.
        config: Unknowns configuration.
        dims: Expected dimension, taken from the first reading if None.
    """
    if not config.any_enabled:
        return "No unknown is enabled for estimation"
    if not config.position_enabled and config.initial_position is None:
        return "initial_position is required when position is not estimated"
    if not config.power_enabled and config.initial_power_dbm is None:
        return "initial_power_dbm is required when power is not estimated"
    if not readings:
        return "No readings available"

    if dims is None:
        dims = readings[0].dims
    if any(r.dims != dims for r in readings):
        return f"All readings must be {dims}D"
    if config.initial_position is not None and len(config.initial_position) != dims:
        return f"initial_position must be {dims}D, got {len(config.initial_position)}D"

    source = readings[0].source
    if any(r.source != source for r in readings):
        return "All readings must belong to the same radio source"

    required = config.min_readings(dims)
    if len(readings) < required:
        return f"At least {required} readings are required, got {len(readings)}"
    return None


class _UnknownsLayout:
    """Packs/unpacks emitter parameters into the enabled-unknowns vector."""

    def __init__(self, config: UnknownsConfiguration, dims: int):
        self.config = config
        self.dims = dims

        index = 0
        self.position_slice = None
        self.power_index = None
        self.path_loss_index = None
        if config.position_enabled:
            self.position_slice = slice(0, dims)
            index = dims
        if config.power_enabled:
            self.power_index = index
            index += 1
        if config.path_loss_enabled:
            self.path_loss_index = index
            index += 1
        self.size = index

    def pack(self, candidate: CandidateSolution) -> np.ndarray:
        x = np.zeros(self.size)
        if self.position_slice is not None:
            x[self.position_slice] = candidate.position
        if self.power_index is not None:
            x[self.power_index] = candidate.power_dbm
        if self.path_loss_index is not None:
            x[self.path_loss_index] = candidate.path_loss_exponent
        return x

    def unpack(self, x: np.ndarray, fixed: CandidateSolution) -> CandidateSolution:
        """Candidate from x, taking disabled unknowns from `fixed`."""
        position = fixed.position if self.position_slice is None else x[self.position_slice]
        power = fixed.power_dbm if self.power_index is None else x[self.power_index]
        n = fixed.path_loss_exponent if self.path_loss_index is None else x[self.path_loss_index]
        return CandidateSolution(np.array(position, dtype=float), float(power), float(n))


def initial_candidate(
    arrays: ReadingArrays,
    config: UnknownsConfiguration,
    seed: Optional[CandidateSolution] = None,
) -> CandidateSolution:
    """
    Build the starting point of the solver.

    Enabled unknowns start from `seed` when given, then from the configured
    initial values, then from heuristics: the centroid of the observers for
    the position, and the model inverted at the strongest reading for the
    power. Disabled unknowns always take their configured values.
    """
    n = config.initial_path_loss_exponent
    if config.path_loss_enabled and seed is not None:
        n = seed.path_loss_exponent

    if config.position_enabled and seed is not None:
        position = np.asarray(seed.position, dtype=float)
    elif config.initial_position is not None:
        position = np.asarray(config.initial_position, dtype=float)
    else:
        position = np.mean(arrays.positions, axis=0)

    if config.power_enabled and seed is not None:
        power_dbm = seed.power_dbm
    elif config.initial_power_dbm is not None:
        power_dbm = float(config.initial_power_dbm)
    else:
        # Free-space adjusted strongest reading
        strongest = int(np.argmax(arrays.rssi))
        sqr_distance = float(np.sum((arrays.positions[strongest] - position) ** 2))
        if sqr_distance <= EPSILON_SQR_DISTANCE:
            sqr_distance = 1.0
        power_dbm = float(
            arrays.rssi[strongest]
            - n * frequency_constant_db(arrays.frequencies[strongest])
            + 5.0 * n * np.log10(sqr_distance)
        )

    return CandidateSolution(np.array(position, dtype=float), float(power_dbm), float(n))


def solve_rssi_source(
    readings: Sequence[RssiReading],
    config: Optional[UnknownsConfiguration] = None,
    compute_covariance: bool = True,
    initial_guess: Optional[CandidateSolution] = None,
    max_iter: int = DEFAULT_MAX_ITERATIONS,
    tol: float = DEFAULT_TOLERANCE,
    warn: bool = True,
) -> EstimationResult:
    """
    Fit the enabled unknowns of a radio source to RSSI readings.

    Args:
        readings: Readings of a single radio source, all 2D or all 3D.
        config: Unknowns configuration. Defaults to position + power.
        compute_covariance: If True, compute the covariance of the unknowns.
        initial_guess: Optional starting point for the enabled unknowns.
        max_iter: Maximum Levenberg-Marquardt iterations.
        tol: Convergence tolerance on the step norm.
        warn: Emit RuntimeWarnings for non-convergence and clamped distances.

    Returns:
        EstimationResult without inliers data.

    Raises:
        NotReadyError: If there are too few readings, no unknown is enabled,
            a fixed unknown has no initial value, or readings are mixed.
        AlgebraError: If the covariance is requested and J'WJ is singular,
            or the solver diverges.

    Example:
        >>> source = RadioSource.wifi_access_point("00:11:22:33:44:55")
        >>> readings = [RssiReading(source, rssi, pos) for rssi, pos in data]
        >>> result = solve_rssi_source(readings)
        >>> print(f"Position: {result.position}, Power: {result.power_dbm:.1f} dBm")
    """
    if config is None:
        config = UnknownsConfiguration()
    readings = list(readings)

    problem = readiness_problem(readings, config)
    if problem is not None:
        raise NotReadyError(problem)

    arrays = readings_to_arrays(readings)
    dims = arrays.positions.shape[1]
    layout = _UnknownsLayout(config, dims)
    start = initial_candidate(arrays, config, initial_guess)
    k_db = frequency_constant_db(arrays.frequencies)

    def h(x: np.ndarray) -> np.ndarray:
        candidate = layout.unpack(x, start)
        sqr_distances = np.maximum(
            np.sum((arrays.positions - candidate.position) ** 2, axis=1),
            EPSILON_SQR_DISTANCE,
        )
        n = candidate.path_loss_exponent
        return n * k_db + candidate.power_dbm - 5.0 * n * np.log10(sqr_distances)

    def jacobian(x: np.ndarray) -> np.ndarray:
        candidate = layout.unpack(x, start)
        return rssi_jacobian(
            candidate.position,
            candidate.path_loss_exponent,
            arrays.positions,
            arrays.frequencies,
            position_enabled=config.position_enabled,
            power_enabled=config.power_enabled,
            path_loss_enabled=config.path_loss_enabled,
        )

    lm = levenberg_marquardt(
        h,
        jacobian,
        arrays.rssi,
        layout.pack(start),
        weights=arrays.weights,
        max_iter=max_iter,
        tol=tol,
        return_covariance=compute_covariance,
    )
    if not np.all(np.isfinite(lm.x)):
        raise AlgebraError("Levenberg-Marquardt diverged to a non-finite estimate")

    solution = layout.unpack(lm.x, start)

    if warn:
        if not lm.converged:
            warnings.warn(
                f"Levenberg-Marquardt did not converge after {lm.iterations} iterations "
                f"(cost={lm.cost:.3e})",
                RuntimeWarning,
            )
        sqr_distances = np.sum((arrays.positions - solution.position) ** 2, axis=1)
        if np.any(sqr_distances <= EPSILON_SQR_DISTANCE):
            warnings.warn(
                "Estimated position coincides with an observer; "
                "its distance was clamped",
                RuntimeWarning,
            )

    position_cov = power_var = path_loss_var = None
    if lm.covariance is not None:
        P = lm.covariance
        if layout.position_slice is not None:
            position_cov = P[layout.position_slice, layout.position_slice].copy()
        if layout.power_index is not None:
            power_var = float(P[layout.power_index, layout.power_index])
        if layout.path_loss_index is not None:
            path_loss_var = float(P[layout.path_loss_index, layout.path_loss_index])

    return EstimationResult(
        position=solution.position,
        power_dbm=solution.power_dbm,
        path_loss_exponent=solution.path_loss_exponent,
        position_covariance=position_cov,
        power_variance=power_var,
        path_loss_variance=path_loss_var,
        covariance=lm.covariance,
        iterations=lm.iterations,
        converged=lm.converged,
    )


class RssiSourceEstimatorBase(LockableEstimator):
    """
    Readings, unknowns configuration and result getters shared by the
    non-robust and robust radio source estimators.
    """

    def __init__(
        self,
        dims: int,
        readings: Optional[Sequence[RssiReading]] = None,
        initial_position: Optional[np.ndarray] = None,
        initial_power_dbm: Optional[float] = None,
        initial_path_loss_exponent: float = DEFAULT_PATH_LOSS_EXPONENT,
        listener=None,
    ):
        super().__init__(listener)
        if dims not in (2, 3):
            raise ConfigurationError(f"dims must be 2 or 3, got {dims}")
        self._dims = dims
        self._readings: Optional[Tuple[RssiReading, ...]] = None
        self._config = UnknownsConfiguration()
        self._result: Optional[EstimationResult] = None
        self._result_source: Optional[RadioSource] = None

        if readings is not None:
            self.readings = readings
        self.initial_position = initial_position
        self.initial_power_dbm = initial_power_dbm
        self.initial_path_loss_exponent = initial_path_loss_exponent

    @property
    def dims(self) -> int:
        return self._dims

    @property
    def readings(self) -> Optional[Tuple[RssiReading, ...]]:
        return self._readings

    @readings.setter
    def readings(self, readings: Optional[Sequence[RssiReading]]) -> None:
        self._check_unlocked()
        if readings is None:
            self._readings = None
            return
        readings = tuple(readings)
        for i, reading in enumerate(readings):
            if not isinstance(reading, RssiReading):
                raise ConfigurationError(
                    f"readings[{i}] must be an RssiReading, got {type(reading).__name__}"
                )
            if reading.dims != self._dims:
                raise ConfigurationError(
                    f"readings[{i}] is {reading.dims}D, expected {self._dims}D"
                )
        self._readings = readings

    @property
    def unknowns(self) -> UnknownsConfiguration:
        return self._config

    def _update_config(self, **changes) -> None:
        self._check_unlocked()
        self._config = replace(self._config, **changes)

    @property
    def initial_position(self) -> Optional[np.ndarray]:
        return self._config.initial_position

    @initial_position.setter
    def initial_position(self, position: Optional[np.ndarray]) -> None:
        self._check_unlocked()
        if position is not None and np.asarray(position).shape != (self._dims,):
            raise ConfigurationError(
                f"initial_position must have shape ({self._dims},), "
                f"got {np.asarray(position).shape}"
            )
        self._update_config(initial_position=position)

    @property
    def initial_power_dbm(self) -> Optional[float]:
        return self._config.initial_power_dbm

    @initial_power_dbm.setter
    def initial_power_dbm(self, power_dbm: Optional[float]) -> None:
        self._update_config(initial_power_dbm=power_dbm)

    @property
    def initial_path_loss_exponent(self) -> float:
        return self._config.initial_path_loss_exponent

    @initial_path_loss_exponent.setter
    def initial_path_loss_exponent(self, exponent: float) -> None:
        self._update_config(initial_path_loss_exponent=exponent)

    @property
    def position_estimation_enabled(self) -> bool:
        return self._config.position_enabled

    @position_estimation_enabled.setter
    def position_estimation_enabled(self, enabled: bool) -> None:
        self._update_config(position_enabled=bool(enabled))

    @property
    def power_estimation_enabled(self) -> bool:
        return self._config.power_enabled

    @power_estimation_enabled.setter
    def power_estimation_enabled(self, enabled: bool) -> None:
        self._update_config(power_enabled=bool(enabled))

    @property
    def path_loss_estimation_enabled(self) -> bool:
        return self._config.path_loss_enabled

    @path_loss_estimation_enabled.setter
    def path_loss_estimation_enabled(self, enabled: bool) -> None:
        self._update_config(path_loss_enabled=bool(enabled))

    @property
    def min_readings(self) -> int:
        return self._config.min_readings(self._dims)

    def _readiness_problem(self) -> Optional[str]:
        return readiness_problem(self._readings, self._config, self._dims)

    @property
    def is_ready(self) -> bool:
        return self._readiness_problem() is None

    # Result getters

    @property
    def result(self) -> Optional[EstimationResult]:
        return self._result

    @property
    def estimated_position(self) -> Optional[np.ndarray]:
        return None if self._result is None else self._result.position.copy()

    @property
    def estimated_position_covariance(self) -> Optional[np.ndarray]:
        if self._result is None or self._result.position_covariance is None:
            return None
        return self._result.position_covariance.copy()

    @property
    def estimated_power_dbm(self) -> Optional[float]:
        return None if self._result is None else self._result.power_dbm

    @property
    def estimated_power(self) -> Optional[float]:
        """Estimated transmitted power in mW."""
        return None if self._result is None else self._result.power

    @property
    def estimated_power_variance(self) -> Optional[float]:
        return None if self._result is None else self._result.power_variance

    @property
    def estimated_path_loss_exponent(self) -> Optional[float]:
        return None if self._result is None else self._result.path_loss_exponent

    @property
    def estimated_path_loss_variance(self) -> Optional[float]:
        return None if self._result is None else self._result.path_loss_variance

    @property
    def covariance(self) -> Optional[np.ndarray]:
        if self._result is None or self._result.covariance is None:
            return None
        return self._result.covariance.copy()

    @property
    def estimated_radio_source(self) -> Optional[EstimatedRadioSource]:
        """Estimated emitter with the identity of the readings' source."""
        if self._result is None:
            return None
        result = self._result
        return EstimatedRadioSource(
            source=self._result_source,
            position=result.position.copy(),
            transmitted_power_dbm=result.power_dbm,
            path_loss_exponent=result.path_loss_exponent,
            position_covariance=(
                None if result.position_covariance is None
                else result.position_covariance.copy()
            ),
            transmitted_power_std=result.power_std,
            path_loss_exponent_std=result.path_loss_std,
        )

    def _store_result(self, result: EstimationResult) -> None:
        self._result = result
        self._result_source = self._readings[0].source


class RssiRadioSourceEstimator(RssiSourceEstimatorBase):
    """
    Non-robust radio source estimator.

    Fits the enabled unknowns to all readings at once. Suitable when readings
    contain no gross outliers; otherwise use RobustRssiRadioSourceEstimator.

    Example:
        >>> estimator = RssiRadioSourceEstimator2D(readings)
        >>> result = estimator.estimate()
        >>> print(estimator.estimated_position)
    """

    def __init__(
        self,
        dims: int,
        readings: Optional[Sequence[RssiReading]] = None,
        initial_position: Optional[np.ndarray] = None,
        initial_power_dbm: Optional[float] = None,
        initial_path_loss_exponent: float = DEFAULT_PATH_LOSS_EXPONENT,
        listener=None,
        covariance_kept: bool = True,
    ):
        super().__init__(
            dims,
            readings=readings,
            initial_position=initial_position,
            initial_power_dbm=initial_power_dbm,
            initial_path_loss_exponent=initial_path_loss_exponent,
            listener=listener,
        )
        self._covariance_kept = bool(covariance_kept)

    @property
    def covariance_kept(self) -> bool:
        return self._covariance_kept

    @covariance_kept.setter
    def covariance_kept(self, kept: bool) -> None:
        self._check_unlocked()
        self._covariance_kept = bool(kept)

    def estimate(self) -> EstimationResult:
        """
        Fit the enabled unknowns to all readings.

        Raises:
            NotReadyError: If the estimator is not ready (no callback fires).
            LockedError: If an estimation is already in progress.
            AlgebraError: If the covariance cannot be computed.
        """
        with self._locked():
            self._result = None
            problem = self._readiness_problem()
            if problem is not None:
                raise NotReadyError(problem)

            self._last_outcome = EstimationOutcome.FAILED
            self._notify("on_estimate_start")
            try:
                result = solve_rssi_source(
                    self._readings,
                    self._config,
                    compute_covariance=self._covariance_kept,
                )
                self._store_result(result)
                self._last_outcome = EstimationOutcome.SUCCEEDED
            finally:
                self._notify("on_estimate_end")
        return result


class RssiRadioSourceEstimator2D(RssiRadioSourceEstimator):
    """Non-robust estimator for 2D readings."""

    def __init__(self, readings: Optional[Sequence[RssiReading]] = None, **kwargs):
        super().__init__(2, readings, **kwargs)


class RssiRadioSourceEstimator3D(RssiRadioSourceEstimator):
    """Non-robust estimator for 3D readings."""

    def __init__(self, readings: Optional[Sequence[RssiReading]] = None, **kwargs):
        super().__init__(3, readings, **kwargs)
