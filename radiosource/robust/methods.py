"""
Sampling and scoring strategies of the five robust methods.

Each method is a pair of hooks selected through RobustMethod:

    sampler: which readings form the next preliminary subset
    scorer:  how a candidate is scored against all readings

| Method  | Sampler              | Score (lower key is better)        |
|---------|----------------------|------------------------------------|
| RANSAC  | uniform              | (-#inliers, inlier SSQ)            |
| MSAC    | uniform              | (Σ min(r², τ²), inlier SSQ)        |
| LMedS   | uniform              | (median r², inlier SSQ)            |
| PROSAC  | progressive (PROSAC) | (-#inliers, inlier SSQ)            |
| PROMedS | progressive (PROSAC) | (median r² over prefix, inlier SSQ)|

References:
    Fischler & Bolles (1981), Random Sample Consensus.
    Rousseeuw (1984), Least Median of Squares Regression.
    Torr & Zisserman (2000), MLESAC (MSAC cost).
    Chum & Matas (2005), Matching with PROSAC - Progressive Sample Consensus.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, NamedTuple, Optional, Tuple, Union

import numpy as np

from radiosource.exceptions import ConfigurationError

DEFAULT_INLIER_THRESHOLD = 0.1  # dB, RANSAC / MSAC / PROSAC
DEFAULT_MEDIAN_STOP_THRESHOLD = 1e-4  # dB², LMedS / PROMedS

# Consistency constant of the median absolute residual for Gaussian noise
MEDIAN_TO_STD = 1.4826
LMEDS_INLIER_FACTOR = 2.5
# Fraction of readings guaranteed at or below the median
MEDIAN_CAP_INLIER_RATIO = 0.5


class RobustMethod(str, Enum):
    """Robust estimation method."""

    RANSAC = "ransac"
    LMEDS = "lmeds"
    MSAC = "msac"
    PROSAC = "prosac"
    PROMEDS = "promeds"

    @classmethod
    def parse(cls, value: Union[str, "RobustMethod"]) -> "RobustMethod":
        """Resolve a method from its enum value or (case-insensitive) name."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            valid = [m.value for m in cls]
            raise ConfigurationError(
                f"Unknown robust method '{value}'. Must be one of {valid}"
            ) from None

    @property
    def requires_quality_scores(self) -> bool:
        return self in (RobustMethod.PROSAC, RobustMethod.PROMEDS)

    @property
    def default_threshold(self) -> float:
        return STRATEGIES[self].default_threshold


class CandidateScore(NamedTuple):
    """Score of one candidate.

    Attributes:
        key: Comparison key; lexicographically lower is better.
        criterion_value: Value of the method's criterion.
        inliers: Boolean inlier mask over all readings.
    """

    key: Tuple[float, float]
    criterion_value: float
    inliers: np.ndarray


class UniformSampler:
    """Draws subsets uniformly at random without replacement."""

    def __init__(self, num_readings: int, subset_size: int, rng: np.random.Generator):
        if subset_size > num_readings:
            raise ValueError(
                f"subset_size ({subset_size}) exceeds number of readings ({num_readings})"
            )
        self.num_readings = num_readings
        self.subset_size = subset_size
        self.rng = rng

    def sample(self) -> np.ndarray:
        return self.rng.choice(self.num_readings, size=self.subset_size, replace=False)

    def evaluation_mask(self) -> Optional[np.ndarray]:
        return None


class ProsacSampler:
    """
    Progressive sampler of Chum & Matas.

    Readings are sorted by descending quality (stable, so ties keep their
    input order). Subsets are drawn from a prefix of the n best readings,
    where n grows with the iteration count t following the schedule

        T_m   = T_N · Π_{i=0}^{m-1} (m - i) / (N - i)
        T_n+1 = T_n · (n + 1) / (n + 1 - m)
        T'_n+1 = T'_n + ceil(T_n+1 - T_n),   T'_m = 1

    with T_N the iteration budget. While T'_n ≥ t the subset is the n-th
    reading plus m - 1 readings from the first n - 1; afterwards it is drawn
    from the first n. The non-randomness stopping criterion of the paper is
    not used; the adaptive iteration cap bounds the search instead.

    Args:
        quality_scores: Quality of each reading, higher is better.
        subset_size: Subset size m.
        max_iterations: Iteration budget T_N.
        rng: Random generator.
    """

    def __init__(
        self,
        quality_scores: np.ndarray,
        subset_size: int,
        max_iterations: int,
        rng: np.random.Generator,
    ):
        quality_scores = np.asarray(quality_scores, dtype=float)
        num_readings = len(quality_scores)
        if subset_size > num_readings:
            raise ValueError(
                f"subset_size ({subset_size}) exceeds number of readings ({num_readings})"
            )

        self.order = np.argsort(-quality_scores, kind="stable")
        self.num_readings = num_readings
        self.subset_size = subset_size
        self.rng = rng

        m = subset_size
        t_n = float(max_iterations)
        for i in range(m):
            t_n *= (m - i) / (num_readings - i)

        self.n = m
        self.t = 0
        self.t_n = t_n
        self.t_n_prime = 1

    @property
    def prefix_size(self) -> int:
        """Current size n of the sampled prefix."""
        return self.n

    def _grow(self) -> None:
        m = self.subset_size
        t_next = self.t_n * (self.n + 1) / (self.n + 1 - m)
        self.t_n_prime += int(np.ceil(t_next - self.t_n))
        self.t_n = t_next
        self.n += 1

    def sample(self) -> np.ndarray:
        self.t += 1
        while self.t >= self.t_n_prime and self.n < self.num_readings:
            self._grow()

        m = self.subset_size
        if self.t_n_prime < self.t or self.n == m:
            positions = self.rng.choice(self.n, size=m, replace=False)
        else:
            head = self.rng.choice(self.n - 1, size=m - 1, replace=False)
            positions = np.append(head, self.n - 1)
        return self.order[positions]

    def evaluation_mask(self) -> np.ndarray:
        """Readings of the quality-ordered evaluation set.

        The set is the current prefix, but never less than half of the
        readings so that a median over it stays meaningful.
        """
        size = max(self.n, int(np.ceil(self.num_readings / 2)))
        mask = np.zeros(self.num_readings, dtype=bool)
        mask[self.order[:size]] = True
        return mask


def _finite_residuals(residuals: np.ndarray, valid: np.ndarray) -> np.ndarray:
    """Residuals with excluded (zero-distance) readings set to +inf."""
    return np.where(valid, residuals, np.inf)


def _inlier_ssq(residuals: np.ndarray, inliers: np.ndarray) -> float:
    return float(np.sum(residuals[inliers] ** 2))


def score_consensus(
    residuals: np.ndarray,
    valid: np.ndarray,
    threshold: float,
    evaluation: Optional[np.ndarray] = None,
    subset_size: int = 0,
) -> CandidateScore:
    """RANSAC / PROSAC: number of readings with |r| ≤ threshold."""
    r = _finite_residuals(residuals, valid)
    inliers = r <= threshold
    count = int(np.count_nonzero(inliers))
    return CandidateScore((-float(count), _inlier_ssq(r, inliers)), float(count), inliers)


def score_truncated(
    residuals: np.ndarray,
    valid: np.ndarray,
    threshold: float,
    evaluation: Optional[np.ndarray] = None,
    subset_size: int = 0,
) -> CandidateScore:
    """MSAC: Σ min(r², τ²); excluded readings pay the outlier penalty τ²."""
    r = _finite_residuals(residuals, valid)
    tau2 = threshold**2
    cost = float(np.sum(np.minimum(r**2, tau2)))
    inliers = r <= threshold
    return CandidateScore((cost, _inlier_ssq(r, inliers)), cost, inliers)


def score_median(
    residuals: np.ndarray,
    valid: np.ndarray,
    threshold: float,
    evaluation: Optional[np.ndarray] = None,
    subset_size: int = 0,
) -> CandidateScore:
    """
    LMedS / PROMedS: median of squared residuals.

    The median is taken over the valid readings of the evaluation set (all
    readings when evaluation is None). Inliers are readings within
    2.5 robust standard deviations, σ = 1.4826 (1 + 5/(N - p)) √median,
    with the bound floored at √threshold.
    """
    r = _finite_residuals(residuals, valid)
    mask = valid if evaluation is None else valid & evaluation
    num_evaluated = int(np.count_nonzero(mask))
    if num_evaluated == 0:
        return CandidateScore((np.inf, np.inf), np.inf, np.zeros(len(r), dtype=bool))

    median = float(np.median(r[mask] ** 2))
    dof = max(num_evaluated - subset_size, 1)
    sigma = MEDIAN_TO_STD * (1.0 + 5.0 / dof) * np.sqrt(median)
    bound = max(LMEDS_INLIER_FACTOR * sigma, np.sqrt(threshold))

    inliers = r <= bound
    return CandidateScore((median, _inlier_ssq(r, inliers)), median, inliers)


Scorer = Callable[..., CandidateScore]


@dataclass(frozen=True)
class MethodStrategy:
    """Hooks and defaults of one robust method.

    Attributes:
        progressive: Use the PROSAC sampler (requires quality scores).
        scorer: Candidate scoring function.
        default_threshold: Default inlier threshold (dB) or stop threshold (dB²).
        stops_on_threshold: Stop as soon as the best criterion ≤ threshold.
        uses_evaluation_prefix: Score over the quality-ordered prefix only.
        max_cap_inlier_ratio: Upper bound on the inlier ratio that drives the
            adaptive iteration cap.
    """

    progressive: bool
    scorer: Scorer
    default_threshold: float
    stops_on_threshold: bool = False
    uses_evaluation_prefix: bool = False
    max_cap_inlier_ratio: float = 1.0

    def make_sampler(
        self,
        num_readings: int,
        subset_size: int,
        rng: np.random.Generator,
        quality_scores: Optional[np.ndarray] = None,
        max_iterations: int = 1,
    ):
        if self.progressive:
            if quality_scores is None:
                raise ValueError("Progressive sampling requires quality scores")
            return ProsacSampler(quality_scores, subset_size, max_iterations, rng)
        return UniformSampler(num_readings, subset_size, rng)


STRATEGIES: Dict[RobustMethod, MethodStrategy] = {
    RobustMethod.RANSAC: MethodStrategy(
        progressive=False,
        scorer=score_consensus,
        default_threshold=DEFAULT_INLIER_THRESHOLD,
    ),
    RobustMethod.MSAC: MethodStrategy(
        progressive=False,
        scorer=score_truncated,
        default_threshold=DEFAULT_INLIER_THRESHOLD,
    ),
    RobustMethod.LMEDS: MethodStrategy(
        progressive=False,
        scorer=score_median,
        default_threshold=DEFAULT_MEDIAN_STOP_THRESHOLD,
        stops_on_threshold=True,
        max_cap_inlier_ratio=MEDIAN_CAP_INLIER_RATIO,
    ),
    RobustMethod.PROSAC: MethodStrategy(
        progressive=True,
        scorer=score_consensus,
        default_threshold=DEFAULT_INLIER_THRESHOLD,
    ),
    RobustMethod.PROMEDS: MethodStrategy(
        progressive=True,
        scorer=score_median,
        default_threshold=DEFAULT_MEDIAN_STOP_THRESHOLD,
        stops_on_threshold=True,
        uses_evaluation_prefix=True,
        max_cap_inlier_ratio=MEDIAN_CAP_INLIER_RATIO,
    ),
}
