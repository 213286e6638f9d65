"""
Unit tests for the non-robust RSSI radio source estimator.

Tests the minimum readings table, exact recovery for every combination of
estimated unknowns, readiness checks, covariance and the 2D/3D facade.
"""

import itertools
import warnings

import numpy as np
import pytest
from numpy.testing import assert_allclose

from radiosource.estimators import (
    EstimationOutcome,
    EstimatorListener,
    EstimatorState,
    RssiRadioSourceEstimator,
    RssiRadioSourceEstimator2D,
    RssiRadioSourceEstimator3D,
    UnknownsConfiguration,
    solve_rssi_source,
)
from radiosource.exceptions import (
    AlgebraError,
    ConfigurationError,
    LockedError,
    NotReadyError,
)
from radiosource.rf import RadioSource, RssiReading, predict_rssi_dbm

SOURCE = RadioSource.wifi_access_point("00:11:22:33:44:55", 2.4e9)
TRUE_POWER_DBM = -50.0
TRUE_PATH_LOSS = 2.3

COMBINATIONS = [
    combo for combo in itertools.product([True, False], repeat=3) if any(combo)
]


def make_readings(true_position, num_readings=30, path_loss=TRUE_PATH_LOSS, seed=0,
                  noise_std=0.0, rssi_std=None):
    """Readings scattered around the emitter, optionally noisy."""
    rng = np.random.default_rng(seed)
    true_position = np.asarray(true_position, dtype=float)
    dims = len(true_position)
    observers = true_position + rng.uniform(-20.0, 20.0, size=(num_readings, dims))
    rssi, _ = predict_rssi_dbm(true_position, TRUE_POWER_DBM, path_loss, observers, SOURCE.frequency)
    if noise_std > 0:
        rssi = rssi + rng.normal(0.0, noise_std, size=num_readings)
    return [RssiReading(SOURCE, float(r), p, rssi_std=rssi_std) for r, p in zip(rssi, observers)]


class RecordingListener(EstimatorListener):
    """Listener recording callbacks."""

    def __init__(self):
        self.events = []

    def on_estimate_start(self, estimator):
        self.events.append("start")

    def on_estimate_end(self, estimator):
        self.events.append("end")


class TestMinReadings:
    """Test the minimum readings table."""

    @pytest.mark.parametrize(
        "position, power, path_loss, expected_2d, expected_3d",
        [
            (True, False, False, 3, 4),
            (False, True, False, 2, 2),
            (False, False, True, 2, 2),
            (True, True, False, 4, 5),
            (True, False, True, 4, 5),
            (False, True, True, 3, 3),
            (True, True, True, 5, 6),
        ],
    )
    def test_table(self, position, power, path_loss, expected_2d, expected_3d):
        config = UnknownsConfiguration(position, power, path_loss)
        assert config.min_readings(2) == expected_2d
        assert config.min_readings(3) == expected_3d

    def test_facade_follows_flags(self):
        estimator = RssiRadioSourceEstimator2D()
        assert estimator.min_readings == 4
        estimator.path_loss_estimation_enabled = True
        assert estimator.min_readings == 5
        estimator.position_estimation_enabled = False
        assert estimator.min_readings == 3


class TestExactRecovery:
    """Test noise-free recovery of every unknowns combination."""

    @pytest.mark.parametrize("true_position", [[3.0, -2.0], [3.0, -2.0, 1.5]])
    @pytest.mark.parametrize("position, power, path_loss", COMBINATIONS)
    def test_recovers_truth(self, true_position, position, power, path_loss):
        true_position = np.array(true_position)
        readings = make_readings(true_position)

        config = UnknownsConfiguration(
            position_enabled=position,
            power_enabled=power,
            path_loss_enabled=path_loss,
            initial_position=None if position else true_position,
            initial_power_dbm=None if power else TRUE_POWER_DBM,
            initial_path_loss_exponent=2.0 if path_loss else TRUE_PATH_LOSS,
        )

        result = solve_rssi_source(readings, config)

        assert_allclose(result.position, true_position, atol=1e-6)
        assert abs(result.power_dbm - TRUE_POWER_DBM) < 1e-6
        assert abs(result.path_loss_exponent - TRUE_PATH_LOSS) < 1e-6
        assert result.converged

        # Variances only for estimated unknowns
        assert (result.position_covariance is not None) == position
        assert (result.power_variance is not None) == power
        assert (result.path_loss_variance is not None) == path_loss

    def test_minimum_number_of_readings(self):
        """Test recovery with exactly min_readings readings."""
        true_position = np.array([4.0, 3.0])
        observers = np.array([[0.0, 0.0], [10.0, 0.0], [0.0, 10.0], [10.0, 10.0]])
        rssi, _ = predict_rssi_dbm(true_position, TRUE_POWER_DBM, 2.0, observers, SOURCE.frequency)
        readings = [RssiReading(SOURCE, float(r), p) for r, p in zip(rssi, observers)]

        result = solve_rssi_source(readings)

        assert_allclose(result.position, true_position, atol=1e-6)
        assert abs(result.power_dbm - TRUE_POWER_DBM) < 1e-6

    def test_initial_guess_is_used(self):
        """Test a provided starting point is accepted."""
        true_position = np.array([3.0, -2.0])
        readings = make_readings(true_position, path_loss=2.0)
        start = solve_rssi_source(readings).to_candidate()

        result = solve_rssi_source(readings, initial_guess=start)

        assert_allclose(result.position, true_position, atol=1e-6)
        assert result.iterations <= 2


class TestBaselineStatistics:
    """Test weighting and covariance."""

    def test_uniform_std_does_not_change_estimate(self):
        true_position = np.array([3.0, -2.0])
        plain = make_readings(true_position, path_loss=2.0, noise_std=1.0, seed=5)
        with_std = [
            RssiReading(r.source, r.rssi_dbm, r.position, rssi_std=2.0) for r in plain
        ]

        a = solve_rssi_source(plain)
        b = solve_rssi_source(with_std)

        assert_allclose(a.position, b.position, atol=1e-6)
        assert_allclose(a.position_covariance, b.position_covariance, rtol=1e-5)

    def test_covariance_is_consistent_with_noise(self):
        true_position = np.array([3.0, -2.0])
        readings = make_readings(true_position, num_readings=200, path_loss=2.0,
                                 noise_std=1.0, seed=9)

        result = solve_rssi_source(readings)

        assert result.position_covariance.shape == (2, 2)
        assert_allclose(result.position_covariance, result.position_covariance.T, atol=1e-12)
        assert np.all(np.linalg.eigvalsh(result.position_covariance) > 0)
        # Power std close to what 1 dB noise over 200 readings implies
        assert 0.01 < result.power_std < 1.0
        assert np.linalg.norm(result.position - true_position) < 1.0

    def test_singular_geometry_raises(self):
        """Power and path loss cannot be separated at a single distance."""
        center = np.array([0.0, 0.0])
        angles = np.linspace(0.0, 2 * np.pi, 8, endpoint=False)
        observers = center + 5.0 * np.column_stack([np.cos(angles), np.sin(angles)])
        rssi, _ = predict_rssi_dbm(center, TRUE_POWER_DBM, 2.0, observers, SOURCE.frequency)
        readings = [RssiReading(SOURCE, float(r), p) for r, p in zip(rssi, observers)]

        config = UnknownsConfiguration(
            position_enabled=False, path_loss_enabled=True, initial_position=center
        )

        with pytest.raises(AlgebraError):
            solve_rssi_source(readings, config)

    def test_non_convergence_warns(self):
        readings = make_readings([3.0, -2.0], path_loss=2.0)
        with pytest.warns(RuntimeWarning, match="did not converge"):
            solve_rssi_source(readings, max_iter=1)


class TestReadiness:
    """Test NotReadyError conditions."""

    def test_too_few_readings(self):
        readings = make_readings([3.0, -2.0], num_readings=3)
        with pytest.raises(NotReadyError):
            solve_rssi_source(readings)

    def test_nothing_enabled(self):
        config = UnknownsConfiguration(False, False, False)
        with pytest.raises(NotReadyError):
            solve_rssi_source(make_readings([3.0, -2.0]), config)

    def test_fixed_unknowns_need_initial_values(self):
        readings = make_readings([3.0, -2.0])
        with pytest.raises(NotReadyError):
            solve_rssi_source(readings, UnknownsConfiguration(position_enabled=False))
        with pytest.raises(NotReadyError):
            solve_rssi_source(readings, UnknownsConfiguration(power_enabled=False))

    def test_mixed_sources(self):
        readings = make_readings([3.0, -2.0])
        other = RadioSource.beacon("beacon-1")
        readings[0] = RssiReading(other, readings[0].rssi_dbm, readings[0].position)
        with pytest.raises(NotReadyError):
            solve_rssi_source(readings)

    def test_mixed_dimensions(self):
        readings = make_readings([3.0, -2.0])
        readings.append(RssiReading(SOURCE, -60.0, [1.0, 1.0, 1.0]))
        with pytest.raises(NotReadyError):
            solve_rssi_source(readings)

    def test_invalid_configuration(self):
        with pytest.raises(ConfigurationError):
            UnknownsConfiguration(initial_position=[1.0])
        with pytest.raises(ConfigurationError):
            UnknownsConfiguration(initial_power_dbm=float("nan"))
        with pytest.raises(ConfigurationError):
            UnknownsConfiguration(initial_path_loss_exponent=0.0)


class TestRssiRadioSourceEstimator:
    """Test the non-robust facade."""

    def test_estimate_2d(self):
        true_position = np.array([3.0, -2.0])
        listener = RecordingListener()
        estimator = RssiRadioSourceEstimator2D(
            make_readings(true_position, path_loss=2.0), listener=listener
        )

        assert estimator.is_ready
        assert estimator.state is EstimatorState.READY
        result = estimator.estimate()

        assert_allclose(estimator.estimated_position, true_position, atol=1e-6)
        assert abs(estimator.estimated_power_dbm - TRUE_POWER_DBM) < 1e-6
        assert np.isclose(estimator.estimated_power, 10 ** (TRUE_POWER_DBM / 10))
        assert estimator.estimated_path_loss_exponent == 2.0
        assert estimator.estimated_path_loss_variance is None
        assert estimator.covariance.shape == (3, 3)
        assert result is estimator.result
        assert listener.events == ["start", "end"]
        assert estimator.last_outcome is EstimationOutcome.SUCCEEDED
        assert not estimator.is_locked

        radio_source = estimator.estimated_radio_source
        assert radio_source.source == SOURCE
        assert radio_source.source_id == SOURCE.source_id
        assert radio_source.path_loss_exponent_std is None
        assert radio_source.transmitted_power_std is not None

    def test_estimate_3d_with_path_loss(self):
        true_position = np.array([3.0, -2.0, 1.5])
        estimator = RssiRadioSourceEstimator3D(make_readings(true_position))
        estimator.path_loss_estimation_enabled = True

        estimator.estimate()

        assert_allclose(estimator.estimated_position, true_position, atol=1e-6)
        assert abs(estimator.estimated_path_loss_exponent - TRUE_PATH_LOSS) < 1e-6
        assert estimator.estimated_path_loss_variance is not None

    def test_covariance_not_kept(self):
        estimator = RssiRadioSourceEstimator2D(
            make_readings([3.0, -2.0], path_loss=2.0), covariance_kept=False
        )
        estimator.estimate()
        assert estimator.covariance is None
        assert estimator.estimated_position_covariance is None

    def test_not_ready_fires_no_callbacks(self):
        listener = RecordingListener()
        estimator = RssiRadioSourceEstimator2D(listener=listener)

        assert not estimator.is_ready
        assert estimator.state is EstimatorState.IDLE
        with pytest.raises(NotReadyError):
            estimator.estimate()

        assert listener.events == []
        assert estimator.result is None
        assert estimator.last_outcome is None

    def test_mutators_locked_inside_callbacks(self):
        readings = make_readings([3.0, -2.0], path_loss=2.0)

        class MutatingListener(EstimatorListener):
            def __init__(self):
                self.locked_errors = 0
                self.was_locked = False

            def on_estimate_start(self, estimator):
                self.was_locked = estimator.is_locked
                assert estimator.state is EstimatorState.RUNNING
                for name, value in [
                    ("readings", []),
                    ("initial_power_dbm", 0.0),
                    ("position_estimation_enabled", False),
                    ("covariance_kept", False),
                    ("listener", None),
                ]:
                    try:
                        setattr(estimator, name, value)
                    except LockedError:
                        self.locked_errors += 1
                try:
                    estimator.estimate()
                except LockedError:
                    self.locked_errors += 1

        listener = MutatingListener()
        estimator = RssiRadioSourceEstimator2D(readings, listener=listener)
        estimator.estimate()

        assert listener.was_locked
        assert listener.locked_errors == 6
        assert len(estimator.readings) == len(readings)
        assert estimator.initial_power_dbm is None
        assert estimator.position_estimation_enabled
        assert estimator.covariance_kept
        assert estimator.listener is listener

    def test_failure_clears_result(self):
        center = np.array([0.0, 0.0])
        angles = np.linspace(0.0, 2 * np.pi, 8, endpoint=False)
        observers = 5.0 * np.column_stack([np.cos(angles), np.sin(angles)])
        rssi, _ = predict_rssi_dbm(center, TRUE_POWER_DBM, 2.0, observers, SOURCE.frequency)
        readings = [RssiReading(SOURCE, float(r), p) for r, p in zip(rssi, observers)]
        listener = RecordingListener()

        estimator = RssiRadioSourceEstimator2D(make_readings([3.0, -2.0], path_loss=2.0),
                                               listener=listener)
        estimator.estimate()
        assert estimator.result is not None

        estimator.readings = readings
        estimator.position_estimation_enabled = False
        estimator.path_loss_estimation_enabled = True
        estimator.initial_position = center
        with pytest.raises(AlgebraError):
            estimator.estimate()

        assert estimator.result is None
        assert estimator.estimated_radio_source is None
        assert estimator.last_outcome is EstimationOutcome.FAILED
        assert listener.events == ["start", "end", "start", "end"]
        assert not estimator.is_locked

    def test_configuration_errors(self):
        with pytest.raises(ConfigurationError):
            RssiRadioSourceEstimator(4)

        estimator = RssiRadioSourceEstimator2D()
        with pytest.raises(ConfigurationError):
            estimator.readings = [RssiReading(SOURCE, -50.0, [0.0, 0.0, 0.0])]
        with pytest.raises(ConfigurationError):
            estimator.readings = ["not a reading"]
        with pytest.raises(ConfigurationError):
            estimator.initial_position = [1.0, 2.0, 3.0]
        with pytest.raises(ConfigurationError):
            estimator.initial_path_loss_exponent = -1.0

        # Failed setters leave state unchanged
        assert estimator.readings is None
        assert estimator.initial_position is None
        assert estimator.initial_path_loss_exponent == 2.0

    def test_clamped_distance_warning_is_not_raised_for_normal_data(self):
        estimator = RssiRadioSourceEstimator2D(make_readings([3.0, -2.0], path_loss=2.0))
        with warnings.catch_warnings():
            warnings.simplefilter("error", RuntimeWarning)
            estimator.estimate()
