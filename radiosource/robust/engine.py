"""
Robust estimation loop shared by RANSAC, LMedS, MSAC, PROSAC and PROMedS.

The engine is generic over two callables: one fitting a candidate to a
subset of readings, one computing the residuals of a candidate against all
readings. Sampling and scoring are delegated to the method strategy.

Adaptive iteration cap (Fischler & Bolles):

    N = log(1 - c) / log(1 - w^p)

where c is the confidence, w the inlier ratio of the best candidate so far
and p the subset size. N is recomputed whenever the best candidate improves
and is capped by the configured maximum number of iterations.
"""

import warnings
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, Tuple, TypeVar

import numpy as np

from radiosource.estimators.base import EstimatorListener
from radiosource.estimators.rssi_source import InliersData
from radiosource.exceptions import RobustEstimationFailure
from radiosource.robust.methods import STRATEGIES, CandidateScore, RobustMethod

C = TypeVar("C")

__all__ = [
    "InliersData",
    "RobustEngine",
    "RobustEngineOutcome",
    "RobustEstimatorListener",
    "adaptive_iteration_cap",
]


class RobustEstimatorListener(EstimatorListener):
    """Listener of robust estimators, adding per-iteration notifications."""

    def on_estimate_next_iteration(self, estimator: Any, iteration: int) -> None:
        """Called after each robust iteration (1-based)."""

    def on_estimate_progress_change(self, estimator: Any, progress: float) -> None:
        """Called when progress in [0, 1] advanced by at least progress_delta."""


def adaptive_iteration_cap(
    inlier_ratio: float, confidence: float, subset_size: int, max_iterations: int
) -> int:
    """
    Number of iterations needed to draw an all-inlier subset with confidence c.

    Args:
        inlier_ratio: Current inlier ratio w in [0, 1].
        confidence: Desired confidence c in (0, 1).
        subset_size: Subset size p.
        max_iterations: Upper bound on the result.

    Returns:
        min(max_iterations, ceil(log(1 - c) / log(1 - w^p))), or 1 if w = 1.
    """
    if inlier_ratio >= 1.0:
        return 1
    w_p = inlier_ratio**subset_size
    if w_p <= 0.0:
        return max_iterations

    n = np.log(1.0 - confidence) / np.log1p(-w_p)
    if not np.isfinite(n):
        return max_iterations
    return int(min(max_iterations, max(1, np.ceil(n))))


@dataclass
class RobustEngineOutcome(Generic[C]):
    """Best candidate found by the robust loop.

    Attributes:
        candidate: Best candidate solution.
        score: Its score (criterion value and inlier mask).
        residuals: Its absolute residuals against all readings.
        iterations: Number of iterations performed.
        failed_fits: Number of iterations whose subset could not be fitted.
    """

    candidate: C
    score: CandidateScore
    residuals: np.ndarray
    iterations: int
    failed_fits: int

    @property
    def inliers_data(self) -> InliersData:
        return InliersData(
            inliers=self.score.inliers,
            residuals=self.residuals,
            criterion_value=self.score.criterion_value,
        )


class RobustEngine(Generic[C]):
    """
    Sampling/scoring/selection loop of a robust method.

    Args:
        method: Robust method.
        num_readings: Number of readings N.
        subset_size: Preliminary subset size p.
        min_inliers: Minimum number of inliers of a valid candidate.
        fit: Maps subset indices to a candidate, or None if the fit failed.
        residuals: Maps a candidate to (absolute residuals, valid mask).
        threshold: Inlier threshold (RANSAC/MSAC/PROSAC) or stop threshold
                   (LMedS/PROMedS).
        confidence: Confidence of the adaptive iteration cap.
        max_iterations: Iteration budget.
        rng: Random generator used for sampling.
        quality_scores: Reading quality, required by PROSAC/PROMedS.
        on_iteration: Called with the 1-based iteration number.
        on_progress: Called with the progress in [0, 1].
        progress_delta: Minimum progress change between on_progress calls.
    """

    def __init__(
        self,
        method: RobustMethod,
        num_readings: int,
        subset_size: int,
        min_inliers: int,
        fit: Callable[[np.ndarray], Optional[C]],
        residuals: Callable[[C], Tuple[np.ndarray, np.ndarray]],
        threshold: float,
        confidence: float,
        max_iterations: int,
        rng: np.random.Generator,
        quality_scores: Optional[np.ndarray] = None,
        on_iteration: Optional[Callable[[int], None]] = None,
        on_progress: Optional[Callable[[float], None]] = None,
        progress_delta: float = 0.05,
    ):
        self.method = method
        self.strategy = STRATEGIES[method]
        self.num_readings = num_readings
        self.subset_size = subset_size
        self.min_inliers = min_inliers
        self.fit = fit
        self.residuals = residuals
        self.threshold = threshold
        self.confidence = confidence
        self.max_iterations = max_iterations
        self.rng = rng
        self.quality_scores = quality_scores
        self.on_iteration = on_iteration
        self.on_progress = on_progress
        self.progress_delta = progress_delta

    def _is_valid(self, score: CandidateScore) -> bool:
        return (
            np.isfinite(score.key[0])
            and int(np.count_nonzero(score.inliers)) >= self.min_inliers
        )

    def run(self) -> RobustEngineOutcome[C]:
        """
        Run the loop until the iteration cap or the stop criterion is reached.

        Returns:
            RobustEngineOutcome with the best valid candidate.

        Raises:
            RobustEstimationFailure: If no valid candidate was found.
        """
        sampler = self.strategy.make_sampler(
            self.num_readings,
            self.subset_size,
            self.rng,
            quality_scores=self.quality_scores,
            max_iterations=self.max_iterations,
        )

        best: Optional[RobustEngineOutcome[C]] = None
        cap = self.max_iterations
        iteration = 0
        failed_fits = 0
        progress = 0.0
        reported_progress = 0.0

        while iteration < cap:
            indices = sampler.sample()
            iteration += 1

            candidate = self.fit(indices)
            if candidate is None:
                failed_fits += 1
            else:
                residuals, valid = self.residuals(candidate)
                evaluation = (
                    sampler.evaluation_mask()
                    if self.strategy.uses_evaluation_prefix else None
                )
                score = self.strategy.scorer(
                    residuals, valid, self.threshold, evaluation, self.subset_size
                )

                # Strict improvement only: ties keep the earliest candidate
                if self._is_valid(score) and (best is None or score.key < best.score.key):
                    best = RobustEngineOutcome(
                        candidate, score, residuals, iteration, failed_fits
                    )
                    inlier_ratio = min(
                        np.count_nonzero(score.inliers) / self.num_readings,
                        self.strategy.max_cap_inlier_ratio,
                    )
                    cap = adaptive_iteration_cap(
                        inlier_ratio, self.confidence, self.subset_size, self.max_iterations
                    )

            if self.on_iteration is not None:
                self.on_iteration(iteration)

            progress = max(progress, min(1.0, iteration / cap))
            if self.on_progress is not None and (
                progress - reported_progress >= self.progress_delta
            ):
                reported_progress = progress
                self.on_progress(progress)

            if (
                self.strategy.stops_on_threshold
                and best is not None
                and best.score.criterion_value <= self.threshold
            ):
                break

        if failed_fits * 2 > iteration:
            warnings.warn(
                f"{failed_fits} of {iteration} preliminary fits failed; "
                "check reading geometry and subset size",
                RuntimeWarning,
            )

        if best is None:
            raise RobustEstimationFailure(
                f"{self.method.value} found no valid candidate in {iteration} iterations "
                f"({failed_fits} failed fits)"
            )

        best.iterations = iteration
        best.failed_fits = failed_fits
        return best
