"""Unit tests for covariance-based accuracy metrics."""

import unittest

import numpy as np
from numpy.testing import assert_allclose

from radiosource.eval.accuracy import Accuracy, AccuracyMetric
from radiosource.exceptions import AlgebraError


class TestAccuracy(unittest.TestCase):
    """Test accuracies from semi-axes and confidence levels."""

    def test_semi_axes(self) -> None:
        acc = Accuracy(np.diag([4.0, 1.0]))
        assert_allclose(acc.semi_axes, [1.0, 2.0])
        self.assertEqual(acc.dims, 2)
        self.assertAlmostEqual(acc.smallest_accuracy, 2.0)
        self.assertAlmostEqual(acc.largest_accuracy, 4.0)
        self.assertAlmostEqual(acc.average_accuracy, 3.0)

    def test_rotated_covariance(self) -> None:
        """Test semi-axes do not depend on the ellipse orientation."""
        c, s = np.cos(0.6), np.sin(0.6)
        R = np.array([[c, -s], [s, c]])
        acc = Accuracy(R @ np.diag([9.0, 1.0]) @ R.T)
        assert_allclose(acc.semi_axes, [1.0, 3.0], atol=1e-12)

    def test_default_confidence(self) -> None:
        acc = Accuracy(np.eye(2))
        self.assertEqual(acc.standard_deviation_factor, 2.0)
        self.assertAlmostEqual(acc.confidence, 0.9545, places=4)

    def test_confidence_setter(self) -> None:
        acc = Accuracy(np.eye(2))
        acc.confidence = 0.95
        self.assertAlmostEqual(acc.standard_deviation_factor, 1.959964, places=5)
        self.assertAlmostEqual(acc.confidence, 0.95)

        with self.assertRaises(ValueError):
            acc.confidence = 1.0
        with self.assertRaises(ValueError):
            acc.standard_deviation_factor = 0.0

    def test_confidence_scaled_accuracy(self) -> None:
        metric = Accuracy(np.eye(2)).confidence_scaled_accuracy(0.99)
        self.assertIsInstance(metric, AccuracyMetric)
        self.assertAlmostEqual(metric.value, 3.03485, places=4)
        self.assertEqual(metric.confidence, 0.99)
        self.assertEqual(metric.dims, 2)

        scaled = Accuracy(np.diag([4.0, 1.0])).confidence_scaled_accuracy(0.99)
        self.assertAlmostEqual(scaled.value, 4.552, places=3)

    def test_confidence_scaled_accuracy_dims_override(self) -> None:
        metric = Accuracy(np.eye(3)).confidence_scaled_accuracy(0.95, dims=1)
        self.assertAlmostEqual(metric.value, 1.959964, places=5)
        with self.assertRaises(ValueError):
            Accuracy(np.eye(3)).confidence_scaled_accuracy(0.95, dims=0)

    def test_from_variance(self) -> None:
        acc = Accuracy.from_variance(4.0)
        self.assertEqual(acc.dims, 1)
        self.assertAlmostEqual(acc.average_accuracy, 4.0)

    def test_semi_definite_accepted(self) -> None:
        acc = Accuracy(np.diag([1.0, 0.0]))
        self.assertEqual(acc.smallest_accuracy, 0.0)

    def test_invalid_covariances(self) -> None:
        with self.assertRaises(AlgebraError):
            Accuracy(np.diag([1.0, -1.0]))
        with self.assertRaises(AlgebraError):
            Accuracy(np.array([[1.0, 0.5], [0.0, 1.0]]))
        with self.assertRaises(AlgebraError):
            Accuracy(np.array([[1.0, np.nan], [np.nan, 1.0]]))
        with self.assertRaises(AlgebraError):
            Accuracy(np.ones((2, 3)))


if __name__ == "__main__":
    unittest.main()
