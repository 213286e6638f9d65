"""
Nonlinear least squares solver using Levenberg-Marquardt.

This module implements the bounded iterative optimizer used to fit radio
source parameters to RSSI readings.

Mathematical Formulation:
    Given observations y and measurement model h(x), we seek:
        x̂ = argmin ½‖r(x)‖²_W
    where r(x) = y - h(x) is the residual vector and W = diag(w).

    Levenberg-Marquardt update:
        (J'WJ + μI) Δx = J'W r
    where μ is an adaptive damping parameter updated from the gain ratio
    between actual and predicted cost decrease.

    Covariance at the solution:
        P = σ̂² (J'WJ)⁻¹,   σ̂² = r'Wr / (m - n)   (σ̂² = 1 when m ≤ n)
"""

from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from radiosource.exceptions import AlgebraError

# Matrices whose condition number exceeds this are treated as singular
MAX_CONDITION_NUMBER = 1e12


@dataclass
class NonlinearLSResult:
    """Result container for nonlinear least squares optimization.

    Attributes:
        x: Estimated parameter vector.
        covariance: Covariance matrix (n × n), or None.
        iterations: Number of iterations performed.
        residuals: Final residuals r = y - h(x̂).
        cost: Final cost value ½‖r‖²_W.
        converged: Whether the solver converged within tolerance.
    """

    x: np.ndarray
    covariance: Optional[np.ndarray]
    iterations: int
    residuals: np.ndarray
    cost: float
    converged: bool


def compute_covariance(
    J: np.ndarray,
    residuals: np.ndarray,
    weights: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Compute the parameter covariance P = σ̂² (J'WJ)⁻¹.

    Args:
        J: Jacobian at the solution (m × n).
        residuals: Residuals at the solution (m,).
        weights: Optional measurement weights (m,). Uniform if None.

    Returns:
        Covariance matrix (n × n).

    Raises:
        AlgebraError: If J'WJ is singular or ill-conditioned, e.g. because the
            observer geometry does not constrain every parameter.
    """
    m, n = J.shape
    w = np.ones(m) if weights is None else np.asarray(weights, dtype=float)

    JtWJ = (J.T * w) @ J
    if not np.all(np.isfinite(JtWJ)):
        raise AlgebraError("Normal matrix J'WJ contains non-finite values")

    singular_values = np.linalg.svd(JtWJ, compute_uv=False)
    if singular_values[0] <= 0.0 or (
        singular_values[-1] <= singular_values[0] / MAX_CONDITION_NUMBER
    ):
        raise AlgebraError(
            f"Normal matrix J'WJ is singular (singular values {singular_values}). "
            "Check observer geometry."
        )

    # Estimate residual variance
    if m > n:
        sigma2 = float(residuals @ (w * residuals)) / (m - n)
    else:
        sigma2 = 1.0

    try:
        return sigma2 * np.linalg.inv(JtWJ)
    except np.linalg.LinAlgError as e:
        raise AlgebraError(f"Normal matrix J'WJ is singular: {e}") from e


def levenberg_marquardt(
    h: Callable[[np.ndarray], np.ndarray],
    jacobian: Callable[[np.ndarray], np.ndarray],
    y: np.ndarray,
    x0: np.ndarray,
    weights: Optional[np.ndarray] = None,
    max_iter: int = 50,
    tol: float = 1e-10,
    mu0: float = 1e-3,
    return_covariance: bool = True,
) -> NonlinearLSResult:
    """
    Levenberg-Marquardt solver for nonlinear least squares.

    Solves: x̂ = argmin ½‖y - h(x)‖²_W

    LM combines Gauss-Newton (fast near solution) with gradient descent
    (robust far from solution) by adaptively adjusting μ:
        - Small μ: Gauss-Newton behavior (quadratic convergence)
        - Large μ: Gradient descent behavior (global convergence)

    Args:
        h: Measurement model function h: R^n → R^m.
        jacobian: Function returning Jacobian matrix J = ∂h/∂x (m × n).
        y: Observation vector (m,).
        x0: Initial parameter estimate (n,).
        weights: Optional measurement weights (m,) for weighted LS.
        max_iter: Maximum number of iterations (the solver is bounded).
        tol: Convergence tolerance on ‖Δx‖. The solver also converges when the
            damped model predicts no further decrease of the cost. It stops
            unconverged when the damping exceeds 1e10 without an accepted step.
        mu0: Initial damping parameter (default 1e-3).
        return_covariance: If True, compute covariance at final estimate.

    Returns:
        NonlinearLSResult containing estimate, covariance, and diagnostics.

    Raises:
        ValueError: If input shapes are inconsistent.
        AlgebraError: If covariance is requested and J'WJ is singular.

    Example:
        >>> import numpy as np
        >>> anchors = np.array([[0, 0], [10, 0], [0, 10], [10, 10]])
        >>> def h(x):
        ...     return np.linalg.norm(anchors - x, axis=1)
        >>> def jac(x):
        ...     diff = x - anchors
        ...     ranges = np.linalg.norm(diff, axis=1, keepdims=True)
        ...     return diff / np.maximum(ranges, 1e-10)
        >>> y = h(np.array([3.0, 4.0]))
        >>> result = levenberg_marquardt(h, jac, y, x0=np.array([5.0, 5.0]))
        >>> print(f"Estimate: {result.x}, Converged: {result.converged}")
    """
    # Input validation
    y = np.asarray(y, dtype=float)
    x0 = np.asarray(x0, dtype=float)

    if y.ndim != 1:
        raise ValueError(f"y must be 1D array, got shape {y.shape}")
    if x0.ndim != 1:
        raise ValueError(f"x0 must be 1D array, got shape {x0.shape}")
    if max_iter <= 0:
        raise ValueError(f"max_iter must be positive, got {max_iter}")

    m = len(y)
    n = len(x0)
    x = x0.copy()

    if weights is None:
        w = np.ones(m)
    else:
        w = np.asarray(weights, dtype=float)
        if w.ndim != 1 or len(w) != m:
            raise ValueError(f"weights must be 1D array of length {m}")
        if np.any(w < 0):
            raise ValueError("weights must be non-negative")

    mu = mu0
    nu = 2.0

    converged = False
    stalled = False
    iteration = 0

    for iteration in range(max_iter):
        hx = h(x)
        if len(hx) != m:
            raise ValueError(f"h(x) returned {len(hx)} elements, expected {m}")

        J = jacobian(x)
        if J.shape != (m, n):
            raise ValueError(f"Jacobian shape {J.shape}, expected ({m}, {n})")

        r = y - hx

        # Weighted normal equations
        JtW = J.T * w
        JtWJ = JtW @ J
        JtWr = JtW @ r

        cost = 0.5 * r @ (w * r)

        while True:
            JtWJ_damped = JtWJ + mu * np.eye(n)

            try:
                delta_x = np.linalg.solve(JtWJ_damped, JtWr)
            except np.linalg.LinAlgError:
                delta_x = np.linalg.lstsq(JtWJ_damped, JtWr, rcond=None)[0]

            x_new = x + delta_x
            r_new = y - h(x_new)
            cost_new = 0.5 * r_new @ (w * r_new)

            # Gain ratio: actual vs predicted decrease ½ Δx'(μΔx + J'Wr)
            predicted_decrease = 0.5 * delta_x @ (mu * delta_x + JtWr)
            actual_decrease = cost - cost_new

            if predicted_decrease > 1e-15 and np.isfinite(cost_new):
                gain_ratio = actual_decrease / predicted_decrease
            else:
                gain_ratio = 0.0

            if gain_ratio > 0:
                # Accept step, decrease damping (more GN-like)
                x = x_new
                mu = mu * max(1.0 / 3.0, 1.0 - (2.0 * gain_ratio - 1.0) ** 3)
                nu = 2.0
                break

            if predicted_decrease <= 1e-15 * max(cost, 1.0):
                # No decrease left to predict: x is stationary
                delta_x = np.zeros(n)
                break

            # Reject step, increase damping (more GD-like)
            mu = mu * nu
            nu = 2.0 * nu

            if mu > 1e10:
                stalled = True
                break

        if stalled:
            break

        if np.linalg.norm(delta_x) < tol:
            converged = True
            break

    # Final evaluation
    r = y - h(x)
    cost = 0.5 * r @ (w * r)

    P = None
    if return_covariance:
        P = compute_covariance(jacobian(x), r, w)

    return NonlinearLSResult(
        x=x,
        covariance=P,
        iterations=iteration + 1,
        residuals=r,
        cost=float(cost),
        converged=converged,
    )
