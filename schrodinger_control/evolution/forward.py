"""
Forward evolution with the implicit Hermite schemes of order 2 and 4.

Each step solves L(t_{n+1}) w_{n+1} = M(t_n) w_n, where M and L are the
explicit and implicit halves in generator.ImplicitStepOperator. Order 2 is the
trapezoidal (Crank-Nicolson) rule; order 4 adds second derivative terms.
"""

import logging
from typing import Optional

import numpy as np

from ..controls import ControlsLike, ControlSequence, as_control_sequence
from ..exceptions import ConfigurationError
from ..problem import SchrodingerProb
from .generator import (
    LHS_WEIGHTS,
    VALID_ORDERS,
    Amplitudes,
    ImplicitStepOperator,
    apply_hamiltonian,
    apply_time_derivative,
    evaluate_amplitudes,
    time_points,
)
from .solver import DEFAULT_SOLVER_SETTINGS, SolverSettings, solve_step

logger = logging.getLogger(__name__)


def check_order(order: int) -> int:
    if order not in VALID_ORDERS:
        raise ConfigurationError(f"Invalid order {order}, must be one of {VALID_ORDERS}")
    return order


def prepare_evolution(problem: SchrodingerProb, controls: ControlsLike, pcof,
                      nsteps: Optional[int] = None):
    """Validate the inputs shared by every evolution and apply the nsteps override."""
    controls = as_control_sequence(controls)
    if len(controls) != problem.N_operators:
        raise ConfigurationError(
            f"Got {len(controls)} controls for {problem.N_operators} control operator pairs"
        )
    pcof = controls.check_pcof(pcof)
    if nsteps is not None:
        problem = problem.with_nsteps(nsteps)
    return problem, controls, pcof


def state_derivatives(problem: SchrodingerProb, uv: np.ndarray, amplitudes: Amplitudes,
                      order: int, forcing: Optional[np.ndarray] = None):
    """
    (wt, wtt) at one time point, wtt only for order 4.

    forcing[:, 0] is added to wt before it enters wtt, forcing[:, 1] to wtt.
    """
    utvt = apply_hamiltonian(problem, uv, amplitudes.p, amplitudes.q)
    if forcing is not None:
        utvt = utvt + forcing[:, 0]
    if order == 2:
        return utvt, None
    uttvtt = apply_time_derivative(problem, uv, amplitudes) \
        + apply_hamiltonian(problem, utvt, amplitudes.p, amplitudes.q)
    if forcing is not None:
        uttvtt = uttvtt + forcing[:, 1]
    return utvt, uttvtt


def _explicit_rhs(uv, utvt, uttvtt, dt, order):
    rhs = uv + 0.5 * dt * utvt
    if order == 4:
        rhs += (dt**2 / 12.0) * uttvtt
    return rhs


def _evolve(problem: SchrodingerProb, controls: ControlSequence, pcof: np.ndarray, order: int,
            uv0: np.ndarray, settings: SolverSettings, forcing: Optional[np.ndarray] = None,
            return_time_derivatives: bool = False) -> np.ndarray:
    nsteps = problem.nsteps
    dt = problem.dt
    times = time_points(problem)
    slices = controls.split(pcof)
    with_derivs = order == 4
    N_derivs = order // 2

    history = np.empty((uv0.shape[0], nsteps + 1, 1 + N_derivs))
    history[:, 0, 0] = uv0

    uv = uv0
    amps = evaluate_amplitudes(controls, slices, times[0], with_derivs)
    for n in range(nsteps):
        f_n = None if forcing is None else forcing[:, n, :]
        utvt, uttvtt = state_derivatives(problem, uv, amps, order, f_n)
        history[:, n, 1] = utvt
        if order == 4:
            history[:, n, 2] = uttvtt
        rhs = _explicit_rhs(uv, utvt, uttvtt, dt, order)

        amps = evaluate_amplitudes(controls, slices, times[n + 1], with_derivs)
        if forcing is not None:
            # Implicit half of the forcing at t_{n+1}, moved to the right hand side
            f1 = forcing[:, n + 1, 0]
            rhs += 0.5 * dt * LHS_WEIGHTS[0] * f1
            if order == 4:
                f2 = forcing[:, n + 1, 1]
                rhs += 0.25 * dt**2 * LHS_WEIGHTS[1] * (
                    f2 + apply_hamiltonian(problem, f1, amps.p, amps.q)
                )

        lhs = ImplicitStepOperator(problem, amps, dt, order)
        uv = solve_step(lhs, rhs, uv, settings, step=n + 1, t=times[n + 1])
        history[:, n + 1, 0] = uv

    if return_time_derivatives:
        f_N = None if forcing is None else forcing[:, nsteps, :]
        utvt, uttvtt = state_derivatives(problem, uv, amps, order, f_N)
        history[:, nsteps, 1] = utvt
        if order == 4:
            history[:, nsteps, 2] = uttvtt
        return history
    return history[:, :, 0].copy()


def eval_forward(problem: SchrodingerProb, controls: ControlsLike, pcof, order: int = 2,
                 return_time_derivatives: bool = False, nsteps: Optional[int] = None,
                 solver_settings: Optional[SolverSettings] = None) -> np.ndarray:
    """
    Evolve (u0; v0) from t=0 to t=tf.

    Returns the state history of shape (2N, nsteps+1). With
    return_time_derivatives, the shape is (2N, nsteps+1, 1 + order//2): index
    0 of the last axis is the state, 1 is (ut; vt) and, for order 4, 2 is
    (utt; vtt).
    """
    check_order(order)
    problem, controls, pcof = prepare_evolution(problem, controls, pcof, nsteps)
    settings = solver_settings or DEFAULT_SOLVER_SETTINGS
    logger.debug("Forward evolution: order %d, %d steps, dt=%g", order, problem.nsteps, problem.dt)
    return _evolve(problem, controls, pcof, order, problem.initial_state, settings,
                   return_time_derivatives=return_time_derivatives)


def eval_forward_forced(problem: SchrodingerProb, controls: ControlsLike, pcof, forcing,
                        order: int = 2, nsteps: Optional[int] = None, initial_state=None,
                        solver_settings: Optional[SolverSettings] = None) -> np.ndarray:
    """
    Evolve dw/dt = A(t) w + f(t).

    forcing has shape (2N, nsteps+1, k): [:, n, 0] is f at t_n and, for order
    4 (k >= 2), [:, n, 1] is df/dt at t_n. Returns the state history.
    """
    check_order(order)
    problem, controls, pcof = prepare_evolution(problem, controls, pcof, nsteps)
    settings = solver_settings or DEFAULT_SOLVER_SETTINGS

    N2 = 2 * problem.N_tot_levels
    forcing = np.asarray(forcing, dtype=np.float64)
    if forcing.ndim == 2:
        forcing = forcing[:, :, np.newaxis]
    required = order // 2
    if (forcing.ndim != 3 or forcing.shape[:2] != (N2, problem.nsteps + 1)
            or forcing.shape[2] < required):
        raise ConfigurationError(
            f"Forcing must have shape ({N2}, {problem.nsteps + 1}, >={required}) "
            f"for order {order}, got {forcing.shape}"
        )

    if initial_state is None:
        uv0 = problem.initial_state
    else:
        uv0 = np.array(initial_state, dtype=np.float64)
        if uv0.shape != (N2,):
            raise ConfigurationError(f"initial_state must have shape ({N2},), got {uv0.shape}")

    logger.debug("Forced evolution: order %d, %d steps", order, problem.nsteps)
    return _evolve(problem, controls, pcof, order, uv0, settings, forcing=forcing)
