"""
Comparison of Robust Radio Source Estimators.

This script locates a Wi-Fi access point from RSSI readings corrupted by
gross outliers, and compares the non-robust least-squares estimator with the
five robust methods.

Can run with:
    - Inline data (default): python example_robust_methods.py
    - Pre-generated dataset: python example_robust_methods.py --data rssi_source_baseline
    - Monte Carlo trials:    python example_robust_methods.py --trials 50

Author: Navigation Engineering Team
"""

import argparse
import json
import sys
import time
import warnings
from pathlib import Path
from typing import Dict, List, Tuple

import matplotlib.pyplot as plt
import numpy as np

sys.path.insert(0, str(Path(__file__).parent.parent))

from radiosource.estimators import RssiRadioSourceEstimator
from radiosource.eval import (
    Accuracy,
    compute_error_stats,
    compute_inlier_detection_rates,
    plot_error_cdf,
    plot_rssi_source_estimate_2d,
    save_figure,
)
from radiosource.exceptions import RadioSourceEstimationError
from radiosource.rf import RadioSource, RssiReading
from radiosource.robust import RobustMethod, RobustRssiRadioSourceEstimator
from radiosource.sim import SimulatedReadings, simulate_rssi_readings

TRUE_POSITION = np.array([10.0, 10.0])
TRUE_POWER_DBM = -60.0


def load_rssi_dataset(data_dir: str) -> SimulatedReadings:
    """Load a dataset written by scripts/generate_rssi_source_dataset.py.

    Args:
        data_dir: Path to dataset directory (e.g., 'data/sim/rssi_source_baseline')

    Returns:
        SimulatedReadings rebuilt from the files
    """
    path = Path(data_dir)
    with open(path / "config.json") as f:
        config = json.load(f)

    dims = config["dims"]
    table = np.atleast_2d(np.loadtxt(path / "readings.txt"))
    positions = table[:, :dims]
    rssi = table[:, dims]
    quality = table[:, dims + 1]
    outliers = table[:, dims + 2].astype(bool)

    source = RadioSource.wifi_access_point(config["source_id"], config["frequency"])
    readings = [
        RssiReading(source, float(r), p, quality_score=float(q))
        for p, r, q in zip(positions, rssi, quality)
    ]

    return SimulatedReadings(
        readings=readings,
        observer_positions=positions,
        quality_scores=quality,
        outliers=outliers,
        errors=np.full(len(readings), np.nan),
        true_position=np.array(config["true_position"], dtype=float),
        true_power_dbm=config["true_power_dbm"],
        true_path_loss_exponent=config["true_path_loss_exponent"],
    )


def make_estimators(sim: SimulatedReadings, seed: int) -> Dict[str, object]:
    """Create the non-robust estimator and one robust estimator per method."""
    dims = sim.observer_positions.shape[1]
    estimators = {"Least squares": RssiRadioSourceEstimator(dims, sim.readings)}
    for method in RobustMethod:
        estimators[method.name] = RobustRssiRadioSourceEstimator(
            dims,
            sim.readings,
            quality_scores=sim.quality_scores,
            method=method,
            seed=seed,
        )
    return estimators


def run_single(sim: SimulatedReadings, seed: int = 0, verbose: bool = True) -> Dict:
    """Run every estimator once on the same readings."""
    results = {}

    if verbose:
        print("\n" + "=" * 70)
        print(f"{'Method':<15} {'Pos err (m)':>12} {'Pow err (dB)':>13} "
              f"{'Inliers':>8} {'TPR':>6} {'FPR':>6} {'Time (ms)':>10}")
        print("-" * 70)

    for name, estimator in make_estimators(sim, seed).items():
        start = time.time()
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", RuntimeWarning)
                estimator.estimate()
        except RadioSourceEstimationError as e:
            if verbose:
                print(f"{name:<15} failed: {e}")
            continue
        elapsed = (time.time() - start) * 1000.0

        position_error = float(np.linalg.norm(estimator.estimated_position - sim.true_position))
        power_error = abs(estimator.estimated_power_dbm - sim.true_power_dbm)
        inliers_data = getattr(estimator, "inliers_data", None)

        entry = {
            "position": estimator.estimated_position,
            "position_error": position_error,
            "power_error": power_error,
            "covariance": estimator.estimated_position_covariance,
            "inliers": None if inliers_data is None else inliers_data.inliers,
        }
        results[name] = entry

        if verbose:
            if inliers_data is None:
                inlier_text = f"{'-':>8} {'-':>6} {'-':>6}"
            else:
                rates = compute_inlier_detection_rates(inliers_data.inliers, sim.outliers)
                inlier_text = (f"{inliers_data.num_inliers:>8d} "
                               f"{rates['true_positive_rate']:>6.2f} "
                               f"{rates['false_positive_rate']:>6.2f}")
            print(f"{name:<15} {position_error:>12.4f} {power_error:>13.4f} "
                  f"{inlier_text} {elapsed:>10.1f}")

    if verbose:
        print("=" * 70)
        promeds = results.get("PROMEDS")
        if promeds is not None and promeds["covariance"] is not None:
            accuracy = Accuracy(promeds["covariance"])
            metric = accuracy.confidence_scaled_accuracy(0.99)
            print(f"PROMedS position accuracy: {accuracy.average_accuracy:.4f} m "
                  f"(2-sigma), {metric.value:.4f} m ({metric.confidence:.0%})")

    return results


def run_trials(
    num_trials: int, outlier_ratio: float, seed: int = 42
) -> Tuple[Dict[str, List[float]], Dict[str, List[float]]]:
    """Monte Carlo comparison on freshly simulated readings."""
    rng = np.random.default_rng(seed)
    source = RadioSource.wifi_access_point("00:11:22:33:44:55")

    position_errors: Dict[str, List[float]] = {}
    power_errors: Dict[str, List[float]] = {}

    for trial in range(num_trials):
        sim = simulate_rssi_readings(
            source, TRUE_POSITION, TRUE_POWER_DBM, 100,
            outlier_ratio=outlier_ratio, rng=rng,
        )
        results = run_single(sim, seed=trial, verbose=False)
        for name, entry in results.items():
            position_errors.setdefault(name, []).append(entry["position_error"])
            power_errors.setdefault(name, []).append(entry["power_error"])

    print("\n" + "=" * 70)
    print(f"Monte Carlo: {num_trials} trials, {outlier_ratio:.0%} outliers")
    print("=" * 70)
    print(f"{'Method':<15} {'Median (m)':>11} {'P95 (m)':>10} {'RMSE (m)':>10}")
    print("-" * 70)
    for name, errors in position_errors.items():
        stats = compute_error_stats(np.array(errors))
        print(f"{name:<15} {stats['median']:>11.4f} {stats['p95']:>10.4f} {stats['rmse']:>10.4f}")

    return position_errors, power_errors


def main():
    """Run robust radio source estimation comparison."""
    parser = argparse.ArgumentParser(
        description="Robust RSSI Radio Source Estimation Comparison",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with inline generated data (default)
  python example_robust_methods.py

  # Run with pre-generated dataset
  python example_robust_methods.py --data rssi_source_baseline

  # Monte Carlo comparison
  python example_robust_methods.py --trials 50 --outlier-ratio 0.3
        """,
    )
    parser.add_argument(
        "--data", type=str, default=None,
        help="Dataset name or path (e.g., 'rssi_source_baseline' or full path)",
    )
    parser.add_argument(
        "--trials", type=int, default=0, help="Number of Monte Carlo trials (default: 0)"
    )
    parser.add_argument(
        "--outlier-ratio", type=float, default=0.2, help="Outlier fraction (default: 0.2)"
    )
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument(
        "--output", type=str, default="rssi_source_localization/figs",
        help="Output directory for figures (default: rssi_source_localization/figs)",
    )
    args = parser.parse_args()

    overall_start = time.time()

    if args.data:
        data_path = Path(args.data)
        if not data_path.exists():
            data_path = Path("data/sim") / args.data
        if not data_path.exists():
            print(f"Error: Dataset not found at '{args.data}' or 'data/sim/{args.data}'")
            return
        sim = load_rssi_dataset(str(data_path))
    else:
        print("\n" + "=" * 70)
        print("Robust RSSI Radio Source Estimation")
        print("=" * 70)
        print("\nTip: Run with --data rssi_source_baseline to use a pre-generated dataset")
        print("     Run with --trials 50 for a Monte Carlo comparison\n")

        rng = np.random.default_rng(args.seed)
        source = RadioSource.wifi_access_point("00:11:22:33:44:55", ssid="lab")
        sim = simulate_rssi_readings(
            source, TRUE_POSITION, TRUE_POWER_DBM, 100,
            outlier_ratio=args.outlier_ratio, rng=rng,
        )

    results = run_single(sim, seed=args.seed)

    if sim.observer_positions.shape[1] == 2 and "PROMEDS" in results:
        promeds = results["PROMEDS"]
        fig = plot_rssi_source_estimate_2d(
            sim.observer_positions,
            inliers=promeds["inliers"],
            true_position=sim.true_position,
            estimated_position=promeds["position"],
            position_covariance=promeds["covariance"],
            title="PROMedS Radio Source Estimate",
        )
        paths = save_figure(fig, args.output, "rssi_source_promeds", formats=("png",))
        print(f"\n✓ Figure saved: {paths[0]}")

    if args.trials > 0:
        position_errors, _ = run_trials(args.trials, args.outlier_ratio, args.seed)
        fig = plot_error_cdf(
            {name: np.array(errors) for name, errors in position_errors.items()},
            title="Radio Source Position Error CDF",
        )
        paths = save_figure(fig, args.output, "rssi_source_error_cdf", formats=("png",))
        print(f"\n✓ Figure saved: {paths[0]}")

    plt.close("all")

    overall_time = time.time() - overall_start
    print("\n" + "=" * 70)
    print("Comparison completed successfully!")
    print(f"Total execution time: {overall_time:.2f} seconds")
    print("=" * 70)


if __name__ == "__main__":
    main()
