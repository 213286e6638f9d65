"""
Synthetic RSSI readings around a known radio source.

Observers are scattered uniformly in a square (or cube) centred on the
emitter. Every reading gets the exact model RSSI plus optional Gaussian
measurement noise; a fraction of readings is corrupted by an extra large
Gaussian error to emulate multipath / NLOS outliers.

Each reading carries a quality score 1 / (1 + |injected error|), so that
clean readings rank first for PROSAC / PROMedS.
"""

from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from radiosource.rf.measurement_models import dbm_to_power, predict_rssi_dbm
from radiosource.rf.types import RadioSource, RssiReading


@dataclass
class SimulatedReadings:
    """Synthetic readings together with their ground truth.

    Attributes:
        readings: Simulated readings.
        observer_positions: Reading positions, shape (N, d).
        quality_scores: 1 / (1 + |error|), shape (N,).
        outliers: True where an outlier error was injected, shape (N,).
        errors: Total injected RSSI error (dB), shape (N,).
        true_position: Emitter position.
        true_power_dbm: Emitter transmitted power (dBm).
        true_path_loss_exponent: Emitter path-loss exponent.
    """

    readings: List[RssiReading]
    observer_positions: np.ndarray
    quality_scores: np.ndarray
    outliers: np.ndarray
    errors: np.ndarray
    true_position: np.ndarray
    true_power_dbm: float
    true_path_loss_exponent: float

    @property
    def true_power(self) -> float:
        """Transmitted power in mW."""
        return dbm_to_power(self.true_power_dbm)


def simulate_rssi_readings(
    source: RadioSource,
    position: np.ndarray,
    transmitted_power_dbm: float,
    num_readings: int,
    path_loss_exponent: float = 2.0,
    spread: float = 50.0,
    noise_std: float = 0.0,
    outlier_ratio: float = 0.0,
    outlier_std: float = 10.0,
    min_distance: float = 0.5,
    rng: Optional[np.random.Generator] = None,
) -> SimulatedReadings:
    """
    Simulate RSSI readings of a single radio source.

    Args:
        source: Radio source (provides identity and frequency).
        position: Emitter position, shape (2,) or (3,).
        transmitted_power_dbm: Emitter transmitted power in dBm.
        num_readings: Number of readings N.
        path_loss_exponent: Path-loss exponent of the environment.
        spread: Half-width of the observer square around the emitter (m).
        noise_std: Std of the Gaussian noise added to every reading (dB).
                   When positive it is also stored as the readings' rssi_std.
        outlier_ratio: Fraction of readings corrupted by outliers, in [0, 1).
        outlier_std: Std of the outlier error (dB).
        min_distance: Minimum observer-emitter distance (m).
        rng: Random number generator for reproducibility.
             If None, uses np.random.default_rng().

    Returns:
        SimulatedReadings with readings and ground truth.

    Raises:
        ValueError: If parameters are out of range.

    Example:
        >>> rng = np.random.default_rng(42)
        >>> source = RadioSource.wifi_access_point("00:11:22:33:44:55")
        >>> sim = simulate_rssi_readings(
        ...     source, np.array([10.0, 10.0]), -60.0, 100,
        ...     outlier_ratio=0.2, rng=rng,
        ... )
        >>> int(sim.outliers.sum())
        20
    """
    position = np.asarray(position, dtype=float)
    if position.ndim != 1 or position.shape[0] not in (2, 3):
        raise ValueError(f"position must be a 2D or 3D vector, got shape {position.shape}")
    if num_readings <= 0:
        raise ValueError(f"num_readings must be positive, got {num_readings}")
    if spread <= min_distance:
        raise ValueError(f"spread ({spread}) must exceed min_distance ({min_distance})")
    if noise_std < 0 or outlier_std < 0:
        raise ValueError("noise_std and outlier_std must be non-negative")
    if not 0.0 <= outlier_ratio < 1.0:
        raise ValueError(f"outlier_ratio must be in [0, 1), got {outlier_ratio}")

    if rng is None:
        rng = np.random.default_rng()

    dims = position.shape[0]

    # Uniform scatter, redrawing observers too close to the emitter
    observers = rng.uniform(position - spread, position + spread, size=(num_readings, dims))
    too_close = np.linalg.norm(observers - position, axis=1) < min_distance
    while np.any(too_close):
        observers[too_close] = rng.uniform(
            position - spread, position + spread, size=(int(too_close.sum()), dims)
        )
        too_close = np.linalg.norm(observers - position, axis=1) < min_distance

    expected, _ = predict_rssi_dbm(
        position, transmitted_power_dbm, path_loss_exponent, observers, source.frequency
    )

    errors = np.zeros(num_readings)
    if noise_std > 0:
        errors += rng.normal(0.0, noise_std, size=num_readings)

    num_outliers = int(round(outlier_ratio * num_readings))
    outliers = np.zeros(num_readings, dtype=bool)
    outliers[rng.choice(num_readings, size=num_outliers, replace=False)] = True
    errors[outliers] += rng.normal(0.0, outlier_std, size=num_outliers)

    quality_scores = 1.0 / (1.0 + np.abs(errors))
    rssi = expected + errors

    readings = [
        RssiReading(
            source=source,
            rssi_dbm=float(rssi[i]),
            position=observers[i],
            rssi_std=noise_std if noise_std > 0 else None,
            quality_score=float(quality_scores[i]),
        )
        for i in range(num_readings)
    ]

    return SimulatedReadings(
        readings=readings,
        observer_positions=observers,
        quality_scores=quality_scores,
        outliers=outliers,
        errors=errors,
        true_position=position.copy(),
        true_power_dbm=float(transmitted_power_dbm),
        true_path_loss_exponent=float(path_loss_exponent),
    )

