"""
RF propagation module.

Submodules:
    measurement_models: Log-distance RSSI model, Jacobian, dBm conversions
    types: RadioSource, RssiReading and EstimatedRadioSource value objects
"""

from radiosource.rf.measurement_models import (
    SPEED_OF_LIGHT,
    dbm_to_power,
    frequency_constant_db,
    power_to_dbm,
    predict_rssi_dbm,
    received_power,
    received_power_dbm,
    rssi_jacobian,
)
from radiosource.rf.types import EstimatedRadioSource, RadioSource, RssiReading

__all__ = [
    # Measurement model
    "SPEED_OF_LIGHT",
    "dbm_to_power",
    "power_to_dbm",
    "frequency_constant_db",
    "received_power",
    "received_power_dbm",
    "predict_rssi_dbm",
    "rssi_jacobian",
    # Value objects
    "RadioSource",
    "RssiReading",
    "EstimatedRadioSource",
]
