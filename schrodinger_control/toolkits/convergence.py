"""
Convergence studies of the forward integrators: errors against step size,
Richardson extrapolation and wall clock timing.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from ..controls import ControlsLike
from ..evolution.forward import check_order, eval_forward, prepare_evolution
from ..evolution.solver import SolverSettings
from ..exceptions import ConfigurationError
from ..problem import SchrodingerProb

logger = logging.getLogger(__name__)

NSTEPS_CHANGE_FACTOR = 2
# Below this error, two consecutive increases mean rounding has taken over
SATURATION_ERROR = 1e-4


@dataclass
class ConvergenceResult:
    step_sizes: np.ndarray
    errors: np.ndarray
    timing: np.ndarray
    timing_stddev: np.ndarray
    histories: List[List[np.ndarray]] = field(default_factory=list)
    orders: Sequence[int] = (2, 4)


def richardson_extrap_sol(A_h: np.ndarray, A_2h: np.ndarray, order: int) -> np.ndarray:
    """Richardson extrapolation from solutions with step sizes h and 2h."""
    n = order
    return ((2**n) * A_h - A_2h) / (2**n - 1)


def richardson_extrap_rel_err(A_h: np.ndarray, A_2h: np.ndarray, order: int) -> float:
    """Relative error of A_h against the Richardson extrapolated solution."""
    A_extrap = richardson_extrap_sol(A_h, A_2h, order)
    return float(np.linalg.norm(A_extrap - A_h) / np.linalg.norm(A_extrap))


def subsample_history(history: np.ndarray, base_nsteps: int) -> np.ndarray:
    """Restrict a history to the columns of the base time grid."""
    ncols = history.shape[1]
    if (ncols - 1) % base_nsteps != 0:
        raise ConfigurationError(
            f"History with {ncols - 1} steps cannot be restricted to {base_nsteps} steps"
        )
    stride = (ncols - 1) // base_nsteps
    return history[:, ::stride]


def get_reference_history(problem: SchrodingerProb, controls: ControlsLike, pcof,
                          nsteps_multiplier: int = 2**10, order: int = 4,
                          solver_settings: Optional[SolverSettings] = None) -> np.ndarray:
    """
    Fine-grid solution restricted to the base grid of `problem`.

    Args:
        problem: Problem whose nsteps defines the base grid.
        controls, pcof: Controls and control vector.
        nsteps_multiplier: The reference uses problem.nsteps * nsteps_multiplier steps.
        order: Order of the reference run.
    """
    check_order(order)
    history = eval_forward(problem, controls, pcof, order=order,
                           nsteps=problem.nsteps * nsteps_multiplier,
                           solver_settings=solver_settings)
    return subsample_history(history, problem.nsteps)


def get_history_convergence(problem: SchrodingerProb, controls: ControlsLike, pcof,
                            N_iterations: int, orders: Sequence[int] = (2, 4),
                            true_history: Optional[np.ndarray] = None,
                            error_limit: float = -np.inf, n_runs: int = 1,
                            solver_settings: Optional[SolverSettings] = None) -> ConvergenceResult:
    """
    Error of the state history as the step size is halved repeatedly.

    Run k = 1..N_iterations uses base * 2**k steps, with base = problem.nsteps.
    Without `true_history` the error is the Richardson estimate between runs k
    and k-1 (k = 0 is an extra, untimed run); otherwise it is the relative
    Frobenius distance to `true_history` restricted to the base grid.

    Args:
        problem: Problem defining the base grid.
        controls, pcof: Controls and control vector.
        N_iterations: Number of refinements.
        orders: Integrator orders to study.
        true_history: Optional reference history on a grid refining the base grid.
        error_limit: Stop refining an order once its error falls below this.
        n_runs: Number of timed repetitions per run.

    Returns:
        ConvergenceResult whose array entries are NaN where refinement stopped early.
    """
    if N_iterations < 1:
        raise ConfigurationError(f"N_iterations must be at least 1, got {N_iterations}")
    if n_runs < 1:
        raise ConfigurationError(f"n_runs must be at least 1, got {n_runs}")
    for order in orders:
        check_order(order)
    problem, controls, pcof = prepare_evolution(problem, controls, pcof)

    base_nsteps = problem.nsteps
    factors = NSTEPS_CHANGE_FACTOR ** np.arange(1, N_iterations + 1)
    step_sizes = problem.tf / (base_nsteps * factors)

    if true_history is not None:
        true_history = subsample_history(np.asarray(true_history, dtype=np.float64), base_nsteps)
        if true_history.shape[0] != 2 * problem.N_tot_levels:
            raise ConfigurationError(
                f"true_history has {true_history.shape[0]} rows, expected {2 * problem.N_tot_levels}"
            )
        true_norm = np.linalg.norm(true_history)

    shape = (N_iterations, len(orders))
    errors = np.full(shape, np.nan)
    timing = np.full(shape, np.nan)
    timing_stddev = np.full(shape, np.nan)
    histories = []

    for j, order in enumerate(orders):
        logger.info("Convergence study for order %d", order)
        order_histories = []
        if true_history is None:
            order_histories.append(eval_forward(problem, controls, pcof, order=order,
                                                solver_settings=solver_settings))

        for k in range(1, N_iterations + 1):
            nsteps = base_nsteps * NSTEPS_CHANGE_FACTOR**k
            elapsed = np.empty(n_runs)
            for i in range(n_runs):
                start = time.perf_counter()
                history = eval_forward(problem, controls, pcof, order=order, nsteps=nsteps,
                                       solver_settings=solver_settings)
                elapsed[i] = time.perf_counter() - start
            history = history[:, ::NSTEPS_CHANGE_FACTOR**k]
            order_histories.append(history)

            if true_history is None:
                error = richardson_extrap_rel_err(history, order_histories[-2], order)
            else:
                error = float(np.linalg.norm(history - true_history) / true_norm)

            idx = k - 1
            errors[idx, j] = error
            timing[idx, j] = elapsed.mean()
            if n_runs > 1:
                timing_stddev[idx, j] = elapsed.std(ddof=1)
            logger.info("order %d, nsteps %d, dt %.3e: error %.3e, time %.3e s",
                        order, nsteps, step_sizes[idx], error, timing[idx, j])

            if error < error_limit:
                break
            if (idx >= 2 and error < SATURATION_ERROR
                    and error > errors[idx - 1, j] and errors[idx - 1, j] > errors[idx - 2, j]):
                logger.info("Error saturated for order %d, stopping refinement", order)
                break

        histories.append(order_histories)

    return ConvergenceResult(step_sizes, errors, timing, timing_stddev, histories, tuple(orders))


def find_target_x(xs, ys, target_y: float) -> float:
    """
    x at which the piecewise linear curve through (xs, ys) reaches target_y.

    Interpolates between the last point above target_y and the first point at
    or below it. If target_y lies outside the data, the nearest two points are
    used to extrapolate. NaN entries are dropped.

    Args:
        xs, ys: Coordinates, ys decreasing.
        target_y: The y value to reach.
    """
    xs = np.asarray(xs, dtype=np.float64)
    ys = np.asarray(ys, dtype=np.float64)
    finite = np.isfinite(xs) & np.isfinite(ys)
    xs, ys = xs[finite], ys[finite]
    if xs.shape[0] < 2:
        raise ValueError("Need at least two finite points to interpolate")

    below = np.nonzero(ys <= target_y)[0]
    if below.size == 0:
        i = xs.shape[0] - 1
    else:
        i = max(int(below[0]), 1)

    x1, x2 = xs[i - 1], xs[i]
    y1, y2 = ys[i - 1], ys[i]
    if y1 == y2:
        raise ValueError("Cannot interpolate on a flat segment")
    return float(x1 + (target_y - y1) * (x2 - x1) / (y2 - y1))


def estimate_runtime(errors, timing, target_error: float = 1e-7) -> float:
    """Runtime needed to reach target_error, by log-log interpolation."""
    log_time = find_target_x(np.log10(timing), np.log10(errors), np.log10(target_error))
    return float(10**log_time)


def get_runtime_ratios(errors_all, timing_all, errors_ref, timing_ref,
                       target_error: float = 1e-7) -> np.ndarray:
    """
    Estimated runtime of each column of errors_all/timing_all relative to the
    reference method, all at the same target error.
    """
    errors_all = np.asarray(errors_all, dtype=np.float64)
    timing_all = np.asarray(timing_all, dtype=np.float64)
    if errors_all.ndim == 1:
        errors_all = errors_all[:, np.newaxis]
        timing_all = timing_all[:, np.newaxis]
    errors_ref = np.asarray(errors_ref, dtype=np.float64).reshape(-1)
    timing_ref = np.asarray(timing_ref, dtype=np.float64).reshape(-1)

    ref_time = estimate_runtime(errors_ref, timing_ref, target_error)
    return np.array([
        estimate_runtime(errors_all[:, n], timing_all[:, n], target_error) / ref_time
        for n in range(errors_all.shape[1])
    ])
