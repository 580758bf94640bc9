"""
Exact gradients of discretized state transfer costs by the discrete adjoint.

A step of either scheme reads L_{n+1} w_{n+1} = M_n w_n. The adjoint states
solve

    L_N^T lam_N = dJ/dw_N,    L_n^T lam_n = M_n^T lam_{n+1},  n = N-1, ..., 1

and the gradient is sum_n lam_{n+1}^T (dM_n/dtheta w_n - dL_{n+1}/dtheta w_{n+1}).
It matches the gradient of the discrete cost to solver tolerance, for any
step size.
"""

import logging
from typing import Optional

import numpy as np

from ..controls import ControlsLike, ControlSequence
from ..evolution.forward import check_order, eval_forward, prepare_evolution
from ..evolution.generator import (
    Amplitudes,
    ImplicitStepOperator,
    apply_hamiltonian,
    channel_slices,
    coupling_contractions,
    evaluate_amplitudes,
    time_points,
)
from ..evolution.solver import DEFAULT_SOLVER_SETTINGS, SolverSettings, solve_step
from ..problem import SchrodingerProb
from .cost import as_stacked_state, check_cost_type, terminal_cost, terminal_cost_gradient

logger = logging.getLogger(__name__)


def evaluate_cost(problem: SchrodingerProb, controls: ControlsLike, pcof, target,
                  order: int = 2, cost_type: str = "infidelity", nsteps: Optional[int] = None,
                  solver_settings: Optional[SolverSettings] = None) -> float:
    """Terminal cost of the discrete evolution driven by pcof."""
    check_order(order)
    check_cost_type(cost_type)
    target = as_stacked_state(target, problem.N_tot_levels)
    history = eval_forward(problem, controls, pcof, order=order, nsteps=nsteps,
                           solver_settings=solver_settings)
    return terminal_cost(history[:, -1], target, problem.N_ess_levels, cost_type)


def parameter_contraction(problem: SchrodingerProb, controls: ControlSequence, pcof_slices,
                          lam: np.ndarray, uv: np.ndarray, t: float, amplitudes: Amplitudes,
                          step_operator: ImplicitStepOperator) -> np.ndarray:
    """lam^T (d op / d pcof) uv for the step operator op evaluated at time t."""
    c1, c2 = step_operator.coefficients
    order = step_operator.order
    grad = np.zeros(controls.N_coeff)

    c_p, c_q = coupling_contractions(problem, lam, uv)
    if order == 4:
        # d(A A) = dA A + A dA
        Auv = apply_hamiltonian(problem, uv, amplitudes.p, amplitudes.q)
        ATlam = apply_hamiltonian(problem, lam, amplitudes.p, amplitudes.q, transpose=True)
        c_p_right, c_q_right = coupling_contractions(problem, lam, Auv)
        c_p_left, c_q_left = coupling_contractions(problem, ATlam, uv)

    for i, (control, pc, sl) in enumerate(zip(controls, pcof_slices, channel_slices(controls))):
        gp = control.eval_grad_p(t, pc)
        gq = control.eval_grad_q(t, pc)
        grad[sl] += c1 * (gp * c_p[i] + gq * c_q[i])
        if order == 4:
            gpt = control.eval_grad_pt(t, pc)
            gqt = control.eval_grad_qt(t, pc)
            grad[sl] += c2 * (gpt * c_p[i] + gqt * c_q[i]
                              + gp * (c_p_right[i] + c_p_left[i])
                              + gq * (c_q_right[i] + c_q_left[i]))
    return grad


def discrete_adjoint(problem: SchrodingerProb, controls: ControlsLike, pcof, target,
                     order: int = 2, cost_type: str = "infidelity", nsteps: Optional[int] = None,
                     solver_settings: Optional[SolverSettings] = None) -> np.ndarray:
    """Gradient of evaluate_cost with respect to pcof."""
    check_order(order)
    check_cost_type(cost_type)
    problem, controls, pcof = prepare_evolution(problem, controls, pcof, nsteps)
    target = as_stacked_state(target, problem.N_tot_levels)
    settings = solver_settings or DEFAULT_SOLVER_SETTINGS

    history = eval_forward(problem, controls, pcof, order=order, solver_settings=settings)

    N = problem.nsteps
    dt = problem.dt
    times = time_points(problem)
    slices = controls.split(pcof)
    with_derivs = order == 4
    logger.debug("Discrete adjoint: order %d, %d steps, %d parameters", order, N, controls.N_coeff)

    terminal = terminal_cost_gradient(history[:, -1], target, problem.N_ess_levels, cost_type)
    amps_next = evaluate_amplitudes(controls, slices, times[N], with_derivs)
    lhs_T = ImplicitStepOperator(problem, amps_next, dt, order, transpose=True)
    lam = solve_step(lhs_T, terminal, terminal, settings, step=N, t=times[N])

    grad = np.zeros(controls.N_coeff)
    for n in range(N - 1, -1, -1):
        amps = evaluate_amplitudes(controls, slices, times[n], with_derivs)
        rhs_op = ImplicitStepOperator(problem, amps, dt, order, explicit=True)
        lhs_op = ImplicitStepOperator(problem, amps_next, dt, order)

        grad += parameter_contraction(problem, controls, slices, lam, history[:, n],
                                      times[n], amps, rhs_op)
        grad -= parameter_contraction(problem, controls, slices, lam, history[:, n + 1],
                                      times[n + 1], amps_next, lhs_op)

        # lam_0 is never needed
        if n > 0:
            rhs_T = ImplicitStepOperator(problem, amps, dt, order, explicit=True, transpose=True)
            lhs_T = ImplicitStepOperator(problem, amps, dt, order, transpose=True)
            lam = solve_step(lhs_T, rhs_T(lam), lam, settings, step=n, t=times[n])
        amps_next = amps

    return grad
