"""Value objects for radio sources and located RSSI readings.

A radio source (Wi-Fi access point or Bluetooth beacon) is described by data,
not by a class hierarchy: an identifier, a carrier frequency, a kind tag and
free-form metadata (SSID, UUID, major/minor, ...). Readings couple a source
with a measured RSSI and the position where it was measured.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, Optional

import numpy as np

from radiosource.rf.measurement_models import dbm_to_power

# Type aliases for clarity and documentation
Position = np.ndarray  # Shape (d,), d=2 (x, y) or d=3 (x, y, z)

WIFI_24GHZ_FREQUENCY = 2.4e9  # Hz
BLUETOOTH_FREQUENCY = 2.4e9  # Hz

SOURCE_KINDS = ("wifi", "beacon")


@dataclass(frozen=True)
class RadioSource:
    """Identity of a radio emitter.

    Attributes:
        source_id: Opaque equality key (BSSID for access points, beacon
                   identifier for beacons).
        frequency: Carrier frequency in Hz.
        kind: Either 'wifi' or 'beacon'.
        metadata: Extra identity data (e.g. {'ssid': ...} or
                  {'uuid': ..., 'major': ..., 'minor': ...}). Not used for
                  equality.

    Example:
        >>> ap = RadioSource.wifi_access_point("00:11:22:33:44:55", 2.4e9, ssid="lab")
        >>> ap.metadata["ssid"]
        'lab'
    """

    source_id: Hashable
    frequency: float
    kind: str = "wifi"
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self) -> None:
        """Validate the source description."""
        if self.source_id is None:
            raise ValueError("source_id must not be None")
        if not isinstance(self.frequency, (float, int)) or self.frequency <= 0:
            raise ValueError(f"frequency must be a positive number, got {self.frequency}")
        if self.kind not in SOURCE_KINDS:
            raise ValueError(f"kind must be one of {SOURCE_KINDS}, got '{self.kind}'")

    @classmethod
    def wifi_access_point(
        cls,
        bssid: str,
        frequency: float = WIFI_24GHZ_FREQUENCY,
        ssid: Optional[str] = None,
    ) -> "RadioSource":
        """Create a Wi-Fi access point source."""
        return cls(source_id=bssid, frequency=frequency, kind="wifi",
                   metadata={"ssid": ssid})

    @classmethod
    def beacon(
        cls,
        identifier: Hashable,
        frequency: float = BLUETOOTH_FREQUENCY,
        **metadata: Any,
    ) -> "RadioSource":
        """Create a beacon source (extra keyword arguments become metadata)."""
        return cls(source_id=identifier, frequency=frequency, kind="beacon",
                   metadata=dict(metadata))


@dataclass(frozen=True)
class RssiReading:
    """RSSI of a radio source measured at a known position.

    Attributes:
        source: Radio source the reading belongs to.
        rssi_dbm: Measured received signal strength in dBm.
        position: Observer position, shape (2,) or (3,), meters.
        rssi_std: Optional standard deviation of the RSSI (dB), > 0.
                  Readings without it get unit weight.
        quality_score: Optional confidence in (0, 1], used by quality-driven
                       robust methods (PROSAC, PROMedS).
    """

    source: RadioSource
    rssi_dbm: float
    position: Position
    rssi_std: Optional[float] = None
    quality_score: Optional[float] = None

    def __post_init__(self) -> None:
        """Validate the reading and freeze its position array."""
        if not isinstance(self.source, RadioSource):
            raise TypeError(f"source must be a RadioSource, got {type(self.source)}")
        if not np.isfinite(self.rssi_dbm):
            raise ValueError(f"rssi_dbm must be finite, got {self.rssi_dbm}")

        position = np.array(self.position, dtype=float)
        if position.ndim != 1 or position.shape[0] not in (2, 3):
            raise ValueError(
                f"position must be a 2D or 3D vector, got shape {position.shape}"
            )
        if not np.all(np.isfinite(position)):
            raise ValueError("position contains non-finite values")
        position.setflags(write=False)
        object.__setattr__(self, "position", position)

        if self.rssi_std is not None and not self.rssi_std > 0:
            raise ValueError(f"rssi_std must be positive, got {self.rssi_std}")
        if self.quality_score is not None and not 0.0 < self.quality_score <= 1.0:
            raise ValueError(
                f"quality_score must be in (0, 1], got {self.quality_score}"
            )

    @property
    def dims(self) -> int:
        """Number of position coordinates (2 or 3)."""
        return self.position.shape[0]


@dataclass(frozen=True)
class EstimatedRadioSource:
    """Radio source located by an estimator, with its uncertainty.

    Attributes:
        source: Identity of the estimated source.
        position: Estimated position, shape (d,).
        transmitted_power_dbm: Estimated equivalent transmitted power (dBm).
        path_loss_exponent: Estimated (or assumed) path-loss exponent.
        position_covariance: Position covariance (d x d), or None.
        transmitted_power_std: Standard deviation of the power (dB), or None.
        path_loss_exponent_std: Standard deviation of the exponent, or None.
    """

    source: RadioSource
    position: Position
    transmitted_power_dbm: float
    path_loss_exponent: float
    position_covariance: Optional[np.ndarray] = None
    transmitted_power_std: Optional[float] = None
    path_loss_exponent_std: Optional[float] = None

    @property
    def source_id(self) -> Hashable:
        """Identifier of the underlying source."""
        return self.source.source_id

    @property
    def frequency(self) -> float:
        """Carrier frequency of the underlying source (Hz)."""
        return self.source.frequency

    @property
    def transmitted_power(self) -> float:
        """Estimated transmitted power in mW."""
        return dbm_to_power(self.transmitted_power_dbm)
