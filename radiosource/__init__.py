"""Robust radio source estimation from RSSI readings.

This package locates a Wi-Fi access point or beacon from geolocated RSSI
readings, estimating any subset of its position, transmitted power and
path-loss exponent:
- rf: Log-distance propagation model and reading/source value objects
- estimators: Levenberg-Marquardt solver and non-robust estimator
- robust: RANSAC, LMedS, MSAC, PROSAC and PROMedS estimators
- eval: Accuracy from covariance, error metrics and plots
- sim: Synthetic readings with injected outliers
"""

__version__ = "0.1.0"
