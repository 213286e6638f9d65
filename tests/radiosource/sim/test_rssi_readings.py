"""Unit tests for synthetic RSSI readings."""

import numpy as np
import pytest

from radiosource.rf import RadioSource, predict_rssi_dbm
from radiosource.sim import simulate_rssi_readings

SOURCE = RadioSource.beacon("beacon-3", frequency=2.45e9)


class TestSimulateRssiReadings:
    """Test geometry, outlier injection and quality scores."""

    def test_noise_free_readings_match_model(self):
        sim = simulate_rssi_readings(
            SOURCE, np.array([1.0, 2.0]), -40.0, 50, path_loss_exponent=2.2,
            rng=np.random.default_rng(0),
        )

        expected, valid = predict_rssi_dbm(
            sim.true_position, -40.0, 2.2, sim.observer_positions, SOURCE.frequency
        )
        rssi = np.array([r.rssi_dbm for r in sim.readings])

        assert valid.all()
        assert np.allclose(rssi, expected)
        assert not sim.outliers.any()
        assert np.all(sim.quality_scores == 1.0)
        assert all(r.source == SOURCE for r in sim.readings)
        assert all(r.rssi_std is None for r in sim.readings)

    def test_outlier_count_and_quality(self):
        sim = simulate_rssi_readings(
            SOURCE, np.array([10.0, 10.0]), -60.0, 100, outlier_ratio=0.2,
            rng=np.random.default_rng(42),
        )

        assert int(sim.outliers.sum()) == 20
        assert np.all(sim.errors[~sim.outliers] == 0.0)
        assert np.allclose(sim.quality_scores, 1.0 / (1.0 + np.abs(sim.errors)))
        assert [r.quality_score for r in sim.readings] == sim.quality_scores.tolist()

    def test_noise_sets_reading_std(self):
        sim = simulate_rssi_readings(
            SOURCE, np.zeros(3), -50.0, 200, noise_std=0.5, rng=np.random.default_rng(1),
        )
        assert all(r.rssi_std == 0.5 for r in sim.readings)
        assert sim.observer_positions.shape == (200, 3)
        assert 0.4 < np.std(sim.errors) < 0.6

    def test_geometry(self):
        sim = simulate_rssi_readings(
            SOURCE, np.array([5.0, -5.0]), -50.0, 500, spread=10.0, min_distance=2.0,
            rng=np.random.default_rng(3),
        )
        offsets = sim.observer_positions - sim.true_position
        assert np.all(np.abs(offsets) <= 10.0)
        assert np.all(np.linalg.norm(offsets, axis=1) >= 2.0)

    def test_reproducible(self):
        a = simulate_rssi_readings(SOURCE, np.zeros(2), -50.0, 30, outlier_ratio=0.3,
                                   rng=np.random.default_rng(7))
        b = simulate_rssi_readings(SOURCE, np.zeros(2), -50.0, 30, outlier_ratio=0.3,
                                   rng=np.random.default_rng(7))
        assert np.array_equal(a.observer_positions, b.observer_positions)
        assert np.array_equal(a.errors, b.errors)

    def test_true_power(self):
        sim = simulate_rssi_readings(SOURCE, np.zeros(2), -30.0, 5, rng=np.random.default_rng(0))
        assert np.isclose(sim.true_power, 1e-3)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"position": np.zeros(4)},
            {"num_readings": 0},
            {"outlier_ratio": 1.0},
            {"noise_std": -1.0},
            {"spread": 0.1},
        ],
    )
    def test_invalid_parameters(self, kwargs):
        params = dict(
            source=SOURCE, position=np.zeros(2), transmitted_power_dbm=-50.0, num_readings=10
        )
        params.update(kwargs)
        with pytest.raises(ValueError):
            simulate_rssi_readings(**params)
