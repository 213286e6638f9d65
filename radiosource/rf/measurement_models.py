"""
RSSI measurement model for radio source estimation.

This module implements the log-distance (Friis-derived) propagation model that
links an emitter to the received signal strength measured at an observer:

    Pr = Pte * k / d^n,    k = (c / (4*pi*f))^n

where:
    Pr: received power (linear, mW)
    Pte: equivalent transmitted power Pt*Gt*Gr (linear, mW)
    c: speed of light (m/s)
    f: carrier frequency (Hz)
    d: emitter-observer distance (m)
    n: path-loss exponent (2.0 in free space)

For numerical accuracy the model is always evaluated in its logarithmic form:

    Pr (dBm) = 10*n*log10(c / (4*pi*f)) + Pte (dBm) - 5*n*log10(d^2)
"""

from typing import Tuple

import numpy as np

# Physical constants
SPEED_OF_LIGHT = 299792458.0  # m/s

# Distances below this are treated as coincident with the emitter
EPSILON_SQR_DISTANCE = 1e-20  # m^2


def dbm_to_power(dbm: float) -> float:
    """
    Convert power from dBm to linear units (mW).

    Args:
        dbm: Power in dBm.

    Returns:
        Power in milliwatts: 10^(dBm/10).

    Example:
        >>> dbm_to_power(0.0)
        1.0
        >>> dbm_to_power(-30.0)
        0.001
    """
    result = 10.0 ** (np.asarray(dbm, dtype=float) / 10.0)
    return float(result) if result.ndim == 0 else result


def power_to_dbm(power_mw: float) -> float:
    """
    Convert power from linear units (mW) to dBm.

    Args:
        power_mw: Power in milliwatts, must be positive.

    Returns:
        Power in dBm: 10*log10(P).

    Raises:
        ValueError: If power is not positive.
    """
    power_mw = np.asarray(power_mw, dtype=float)
    if np.any(power_mw <= 0):
        raise ValueError(f"Power must be positive, got {power_mw}")

    result = 10.0 * np.log10(power_mw)
    return float(result) if result.ndim == 0 else result


def frequency_constant_db(frequency: float) -> float:
    """
    Compute 10*log10(c / (4*pi*f)), the per-unit-exponent frequency term.

    Multiplying by the path-loss exponent n gives 10*log10(k).

    Args:
        frequency: Carrier frequency in Hz, scalar or array.

    Returns:
        Frequency term in dB, same shape as frequency.
    """
    frequency = np.asarray(frequency, dtype=float)
    if np.any(frequency <= 0):
        raise ValueError(f"Frequency must be positive, got {frequency}")

    result = 10.0 * np.log10(SPEED_OF_LIGHT / (4.0 * np.pi * frequency))
    return float(result) if result.ndim == 0 else result


def received_power(
    transmitted_power_mw: float,
    distance: float,
    frequency: float,
    path_loss_exponent: float = 2.0,
) -> float:
    """
    Compute received power in linear units: Pr = Pte * k / d^n.

    Args:
        transmitted_power_mw: Equivalent transmitted power in mW.
        distance: Emitter-observer distance in meters.
        frequency: Carrier frequency in Hz.
        path_loss_exponent: Path-loss exponent n. Defaults to 2.0.

    Returns:
        Received power in mW.
    """
    if distance <= 0:
        raise ValueError("Distance must be positive")

    k = (SPEED_OF_LIGHT / (4.0 * np.pi * frequency)) ** path_loss_exponent
    return transmitted_power_mw * k / distance**path_loss_exponent


def received_power_dbm(
    emitter_position: np.ndarray,
    transmitted_power_mw: float,
    path_loss_exponent: float,
    observer_position: np.ndarray,
    frequency: float,
) -> float:
    """
    Predict the RSSI measured at an observer.

    Implements 10*log10(Pte * k / d^n) using the logarithmic form of the
    model, so that very small received powers keep full precision.

    Args:
        emitter_position: Emitter position [x, y] or [x, y, z] in meters.
        transmitted_power_mw: Equivalent transmitted power in mW.
        path_loss_exponent: Path-loss exponent n.
        observer_position: Observer position, same dimension as emitter.
        frequency: Carrier frequency in Hz.

    Returns:
        Predicted RSSI in dBm.

    Raises:
        ValueError: If observer and emitter coincide (d = 0).

    Example:
        >>> rssi = received_power_dbm(
        ...     np.array([0.0, 0.0]), 1.0, 2.0, np.array([10.0, 0.0]), 2.4e9
        ... )
        >>> print(f"{rssi:.2f} dBm")
        -60.05 dBm
    """
    emitter_position = np.asarray(emitter_position, dtype=float)
    observer_position = np.asarray(observer_position, dtype=float)

    sqr_distance = float(np.sum((emitter_position - observer_position) ** 2))
    if sqr_distance <= EPSILON_SQR_DISTANCE:
        raise ValueError("Observer and emitter positions must be different")

    return (
        path_loss_exponent * frequency_constant_db(frequency)
        + power_to_dbm(transmitted_power_mw)
        - 5.0 * path_loss_exponent * np.log10(sqr_distance)
    )


def predict_rssi_dbm(
    emitter_position: np.ndarray,
    transmitted_power_dbm: float,
    path_loss_exponent: float,
    observer_positions: np.ndarray,
    frequencies: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Vectorized RSSI prediction for many observers.

    Observers coincident with the emitter have no finite prediction. Instead
    of returning +inf they are flagged in the returned validity mask and their
    prediction is set to NaN, so callers can exclude them explicitly.

    Args:
        emitter_position: Emitter position, shape (d,).
        transmitted_power_dbm: Equivalent transmitted power in dBm.
        path_loss_exponent: Path-loss exponent n.
        observer_positions: Observer positions, shape (m, d).
        frequencies: Carrier frequency per observer in Hz, shape (m,) or scalar.

    Returns:
        predicted: Predicted RSSI in dBm, shape (m,).
        valid: Boolean mask, False where the observer distance is zero.
    """
    observer_positions = np.atleast_2d(np.asarray(observer_positions, dtype=float))
    emitter_position = np.asarray(emitter_position, dtype=float)
    frequencies = np.broadcast_to(
        np.asarray(frequencies, dtype=float), (observer_positions.shape[0],)
    )

    sqr_distances = np.sum((observer_positions - emitter_position) ** 2, axis=1)
    valid = sqr_distances > EPSILON_SQR_DISTANCE

    k_db = frequency_constant_db(frequencies)

    predicted = np.full(observer_positions.shape[0], np.nan)
    predicted[valid] = (
        path_loss_exponent * k_db[valid]
        + transmitted_power_dbm
        - 5.0 * path_loss_exponent * np.log10(sqr_distances[valid])
    )

    return predicted, valid


def rssi_jacobian(
    emitter_position: np.ndarray,
    path_loss_exponent: float,
    observer_positions: np.ndarray,
    frequencies: np.ndarray,
    position_enabled: bool = True,
    power_enabled: bool = True,
    path_loss_enabled: bool = False,
) -> np.ndarray:
    """
    Jacobian of the predicted RSSI with respect to the enabled unknowns.

    Column layout follows the unknown vector [position (d)?, Pte_dBm?, n?]:

        dPr/dx_j = -10*n*(x_j - o_j) / (ln(10) * d^2)
        dPr/dPte = 1
        dPr/dn   = 10*log10(c / (4*pi*f)) - 5*log10(d^2)

    Squared distances are clamped to EPSILON_SQR_DISTANCE so the Jacobian
    stays finite for observers sitting on the emitter.

    Args:
        emitter_position: Emitter position, shape (d,).
        path_loss_exponent: Path-loss exponent n.
        observer_positions: Observer positions, shape (m, d).
        frequencies: Carrier frequency per observer (Hz), shape (m,) or scalar.
        position_enabled: Include the position columns.
        power_enabled: Include the transmitted power column.
        path_loss_enabled: Include the path-loss exponent column.

    Returns:
        Jacobian matrix, shape (m, n_unknowns).
    """
    observer_positions = np.atleast_2d(np.asarray(observer_positions, dtype=float))
    emitter_position = np.asarray(emitter_position, dtype=float)
    m = observer_positions.shape[0]
    frequencies = np.broadcast_to(np.asarray(frequencies, dtype=float), (m,))

    diff = emitter_position - observer_positions
    sqr_distances = np.maximum(np.sum(diff**2, axis=1), EPSILON_SQR_DISTANCE)

    columns = []
    if position_enabled:
        columns.append(
            -10.0 * path_loss_exponent * diff / (np.log(10.0) * sqr_distances[:, None])
        )
    if power_enabled:
        columns.append(np.ones((m, 1)))
    if path_loss_enabled:
        k_db = frequency_constant_db(frequencies)
        columns.append((k_db - 5.0 * np.log10(sqr_distances))[:, None])

    if not columns:
        return np.zeros((m, 0))
    return np.hstack(columns)
