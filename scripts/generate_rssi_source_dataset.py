"""
Generate RSSI Radio Source Dataset.

This script generates synthetic RSSI readings of a single Wi-Fi access point
scattered around its true position, with a configurable fraction of gross
outliers (multipath / NLOS). The dataset is used to compare the robust
estimators (RANSAC, LMedS, MSAC, PROSAC, PROMedS) against the non-robust
least-squares estimator.

Files written to the output directory:
    readings.txt   x, y[, z], rssi (dBm), quality score, outlier flag
    config.json    generation parameters and ground truth

Author: Navigation Engineering Team
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, Optional

import numpy as np

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from radiosource.rf import RadioSource
from radiosource.sim import SimulatedReadings, simulate_rssi_readings

PRESETS: Dict[str, Dict] = {
    "baseline": {
        "dims": 2,
        "num_readings": 100,
        "outlier_ratio": 0.2,
        "outlier_std": 10.0,
        "noise_std": 0.0,
    },
    "noisy": {
        "dims": 2,
        "num_readings": 200,
        "outlier_ratio": 0.2,
        "outlier_std": 10.0,
        "noise_std": 0.5,
    },
    "heavy_outliers": {
        "dims": 2,
        "num_readings": 200,
        "outlier_ratio": 0.4,
        "outlier_std": 15.0,
        "noise_std": 0.0,
    },
    "3d": {
        "dims": 3,
        "num_readings": 150,
        "outlier_ratio": 0.2,
        "outlier_std": 10.0,
        "noise_std": 0.0,
    },
}


def save_dataset(output_dir: Path, sim: SimulatedReadings, config: Dict) -> None:
    """Save dataset to disk."""
    output_dir.mkdir(parents=True, exist_ok=True)

    dims = sim.observer_positions.shape[1]
    axes = ["x (m)", "y (m)", "z (m)"][:dims]
    table = np.column_stack(
        [
            sim.observer_positions,
            [r.rssi_dbm for r in sim.readings],
            sim.quality_scores,
            sim.outliers.astype(float),
        ]
    )
    np.savetxt(
        output_dir / "readings.txt",
        table,
        fmt="%.6f",
        header=", ".join(axes + ["rssi (dBm)", "quality", "outlier"]),
    )

    with open(output_dir / "config.json", "w") as f:
        json.dump(config, f, indent=2)

    print(f"\n  Saved dataset to: {output_dir}")
    print(f"    Readings: {len(sim.readings)} ({int(sim.outliers.sum())} outliers)")


def generate_dataset(
    output_dir: str,
    preset: Optional[str] = None,
    dims: int = 2,
    num_readings: int = 100,
    emitter_x: float = 10.0,
    emitter_y: float = 10.0,
    emitter_z: float = 2.0,
    power_dbm: float = -60.0,
    path_loss_exponent: float = 2.0,
    frequency: float = 2.4e9,
    spread: float = 50.0,
    noise_std: float = 0.0,
    outlier_ratio: float = 0.2,
    outlier_std: float = 10.0,
    seed: int = 42,
) -> SimulatedReadings:
    """Generate and save one dataset."""
    if preset is not None:
        params = PRESETS[preset]
        dims = params["dims"]
        num_readings = params["num_readings"]
        outlier_ratio = params["outlier_ratio"]
        outlier_std = params["outlier_std"]
        noise_std = params["noise_std"]

    print("\n" + "=" * 70)
    print(f"Generating RSSI radio source dataset{f' (preset: {preset})' if preset else ''}")
    print("=" * 70)

    position = [emitter_x, emitter_y, emitter_z][:dims]
    source = RadioSource.wifi_access_point("00:11:22:33:44:55", frequency, ssid="sim-ap")

    rng = np.random.default_rng(seed)
    sim = simulate_rssi_readings(
        source,
        np.array(position),
        power_dbm,
        num_readings,
        path_loss_exponent=path_loss_exponent,
        spread=spread,
        noise_std=noise_std,
        outlier_ratio=outlier_ratio,
        outlier_std=outlier_std,
        rng=rng,
    )

    print(f"  Emitter: {position} m, {power_dbm:.1f} dBm, n={path_loss_exponent:.2f}")
    print(f"  Frequency: {frequency / 1e9:.3f} GHz")
    print(f"  Outliers: {outlier_ratio:.0%} (std {outlier_std:.1f} dB)")

    config = {
        "preset": preset,
        "dims": dims,
        "num_readings": num_readings,
        "source_id": source.source_id,
        "frequency": frequency,
        "true_position": position,
        "true_power_dbm": power_dbm,
        "true_path_loss_exponent": path_loss_exponent,
        "spread": spread,
        "noise_std": noise_std,
        "outlier_ratio": outlier_ratio,
        "outlier_std": outlier_std,
        "seed": seed,
    }
    save_dataset(Path(output_dir), sim, config)

    print("\n" + "=" * 70)
    print("Dataset generation complete!")
    print("=" * 70)
    return sim


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Generate RSSI Radio Source Dataset",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Presets:
  baseline        100 noise-free 2D readings, 20% outliers (10 dB)
  noisy           200 2D readings, 0.5 dB noise, 20% outliers
  heavy_outliers  200 2D readings, 40% outliers (15 dB)
  3d              150 3D readings, 20% outliers

Examples:
  # Generate baseline dataset
  python scripts/generate_rssi_source_dataset.py --preset baseline

  # Generate with custom outlier ratio
  python scripts/generate_rssi_source_dataset.py \\
      --output data/sim/rssi_custom \\
      --outlier-ratio 0.3
        """,
    )

    parser.add_argument(
        "--preset",
        type=str,
        choices=sorted(PRESETS),
        help="Use preset configuration (overrides other parameters)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="data/sim/rssi_source_baseline",
        help="Output directory (default: data/sim/rssi_source_baseline)",
    )

    emitter_group = parser.add_argument_group("Emitter Parameters")
    emitter_group.add_argument("--dims", type=int, choices=[2, 3], default=2)
    emitter_group.add_argument("--emitter-x", type=float, default=10.0)
    emitter_group.add_argument("--emitter-y", type=float, default=10.0)
    emitter_group.add_argument("--emitter-z", type=float, default=2.0)
    emitter_group.add_argument(
        "--power-dbm", type=float, default=-60.0,
        help="Transmitted power in dBm (default: -60.0)",
    )
    emitter_group.add_argument(
        "--path-loss-exponent", type=float, default=2.0,
        help="Path-loss exponent (default: 2.0)",
    )
    emitter_group.add_argument(
        "--frequency", type=float, default=2.4e9, help="Frequency in Hz (default: 2.4e9)"
    )

    readings_group = parser.add_argument_group("Reading Parameters")
    readings_group.add_argument(
        "--num-readings", type=int, default=100, help="Number of readings (default: 100)"
    )
    readings_group.add_argument(
        "--spread", type=float, default=50.0,
        help="Half-width of the observer area in meters (default: 50.0)",
    )
    readings_group.add_argument(
        "--noise-std", type=float, default=0.0, help="RSSI noise std in dB (default: 0.0)"
    )

    outlier_group = parser.add_argument_group("Outlier Parameters")
    outlier_group.add_argument(
        "--outlier-ratio", type=float, default=0.2, help="Outlier fraction (default: 0.2)"
    )
    outlier_group.add_argument(
        "--outlier-std", type=float, default=10.0, help="Outlier std in dB (default: 10.0)"
    )

    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")

    args = parser.parse_args()

    generate_dataset(
        output_dir=args.output,
        preset=args.preset,
        dims=args.dims,
        num_readings=args.num_readings,
        emitter_x=args.emitter_x,
        emitter_y=args.emitter_y,
        emitter_z=args.emitter_z,
        power_dbm=args.power_dbm,
        path_loss_exponent=args.path_loss_exponent,
        frequency=args.frequency,
        spread=args.spread,
        noise_std=args.noise_std,
        outlier_ratio=args.outlier_ratio,
        outlier_std=args.outlier_std,
        seed=args.seed,
    )


if __name__ == "__main__":
    main()
