"""
Simulation utilities for generating synthetic RSSI readings.

Modules:
    rssi_readings: Readings scattered around a known emitter, with outliers
"""

from radiosource.sim.rssi_readings import SimulatedReadings, simulate_rssi_readings

__all__ = [
    "SimulatedReadings",
    "simulate_rssi_readings",
]
