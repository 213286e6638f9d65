"""Smoke tests for radio source plots."""

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402

from radiosource.eval.plots import (  # noqa: E402
    plot_error_cdf,
    plot_rssi_source_estimate_2d,
    save_figure,
)


def test_estimate_plot_with_ellipse():
    rng = np.random.default_rng(0)
    observers = rng.uniform(-10.0, 10.0, size=(20, 2))
    inliers = rng.uniform(size=20) > 0.2

    fig = plot_rssi_source_estimate_2d(
        observers,
        inliers=inliers,
        true_position=np.array([0.0, 0.0]),
        estimated_position=np.array([0.2, -0.1]),
        position_covariance=np.array([[0.5, 0.1], [0.1, 0.2]]),
    )

    ax = fig.axes[0]
    assert len(ax.patches) == 1
    plt.close(fig)


def test_estimate_plot_without_inliers():
    fig = plot_rssi_source_estimate_2d(np.zeros((3, 2)) + np.arange(3)[:, None])
    assert len(fig.axes[0].lines) == 1
    plt.close(fig)


def test_error_cdf_and_save(tmp_path):
    fig = plot_error_cdf(
        {"ransac": np.array([0.1, 0.3, 0.2]), "promeds": np.array([[0.1, 0.0], [0.0, 0.2]])}
    )
    assert len(fig.axes[0].lines) == 2

    paths = save_figure(fig, tmp_path / "figs", "cdf", formats=("png", "svg"))
    plt.close(fig)

    assert [p.name for p in paths] == ["cdf.png", "cdf.svg"]
    assert all(p.exists() for p in paths)
