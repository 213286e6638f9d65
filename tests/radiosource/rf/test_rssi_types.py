"""Unit tests for radio source and reading value objects."""

import unittest

import numpy as np

from radiosource.rf.types import EstimatedRadioSource, RadioSource, RssiReading


class TestRadioSource(unittest.TestCase):
    """Test RadioSource identity records."""

    def test_wifi_access_point(self) -> None:
        ap = RadioSource.wifi_access_point("00:11:22:33:44:55", 5.0e9, ssid="lab")
        self.assertEqual(ap.kind, "wifi")
        self.assertEqual(ap.frequency, 5.0e9)
        self.assertEqual(ap.metadata["ssid"], "lab")

    def test_beacon_metadata(self) -> None:
        beacon = RadioSource.beacon("b-1", uuid="abc", major=1, minor=2)
        self.assertEqual(beacon.kind, "beacon")
        self.assertEqual(beacon.frequency, 2.4e9)
        self.assertEqual(beacon.metadata, {"uuid": "abc", "major": 1, "minor": 2})

    def test_equality_ignores_metadata(self) -> None:
        a = RadioSource.wifi_access_point("ap", ssid="one")
        b = RadioSource.wifi_access_point("ap", ssid="two")
        c = RadioSource.wifi_access_point("other")
        self.assertEqual(a, b)
        self.assertNotEqual(a, c)
        self.assertEqual(hash(a), hash(b))

    def test_invalid_frequency(self) -> None:
        with self.assertRaises(ValueError):
            RadioSource("ap", 0.0)
        with self.assertRaises(ValueError):
            RadioSource("ap", -2.4e9)

    def test_invalid_kind(self) -> None:
        with self.assertRaises(ValueError):
            RadioSource("ap", 2.4e9, kind="lte")


class TestRssiReading(unittest.TestCase):
    """Test RssiReading validation."""

    def setUp(self) -> None:
        self.source = RadioSource.wifi_access_point("ap")

    def test_position_is_copied_and_read_only(self) -> None:
        position = np.array([1.0, 2.0])
        reading = RssiReading(self.source, -50.0, position)

        position[0] = 99.0
        self.assertEqual(reading.position[0], 1.0)
        with self.assertRaises(ValueError):
            reading.position[0] = 5.0

    def test_dims(self) -> None:
        self.assertEqual(RssiReading(self.source, -50.0, [0.0, 0.0]).dims, 2)
        self.assertEqual(RssiReading(self.source, -50.0, [0.0, 0.0, 1.0]).dims, 3)

    def test_invalid_position(self) -> None:
        with self.assertRaises(ValueError):
            RssiReading(self.source, -50.0, [1.0])
        with self.assertRaises(ValueError):
            RssiReading(self.source, -50.0, [1.0, np.nan])

    def test_invalid_std_and_quality(self) -> None:
        with self.assertRaises(ValueError):
            RssiReading(self.source, -50.0, [0.0, 0.0], rssi_std=0.0)
        with self.assertRaises(ValueError):
            RssiReading(self.source, -50.0, [0.0, 0.0], rssi_std=-1.0)
        with self.assertRaises(ValueError):
            RssiReading(self.source, -50.0, [0.0, 0.0], quality_score=0.0)
        with self.assertRaises(ValueError):
            RssiReading(self.source, -50.0, [0.0, 0.0], quality_score=1.5)

    def test_invalid_source(self) -> None:
        with self.assertRaises(TypeError):
            RssiReading("ap", -50.0, [0.0, 0.0])


class TestEstimatedRadioSource(unittest.TestCase):
    """Test EstimatedRadioSource derived properties."""

    def test_identity_and_power(self) -> None:
        source = RadioSource.beacon("b-7", frequency=2.45e9)
        estimate = EstimatedRadioSource(
            source=source,
            position=np.array([1.0, 2.0]),
            transmitted_power_dbm=-20.0,
            path_loss_exponent=2.0,
        )
        self.assertEqual(estimate.source_id, "b-7")
        self.assertEqual(estimate.frequency, 2.45e9)
        self.assertAlmostEqual(estimate.transmitted_power, 0.01)
        self.assertIsNone(estimate.position_covariance)


if __name__ == "__main__":
    unittest.main()
