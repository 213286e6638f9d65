"""
RSSI Radio Source Localization Examples.

Examples:
    - Comparison of the robust methods (RANSAC, LMedS, MSAC, PROSAC, PROMedS)
      against the non-robust least-squares estimator
"""

__version__ = "0.1.0"
