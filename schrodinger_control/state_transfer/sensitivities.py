"""
Reference gradients: forward sensitivities and finite differences.

Both cost far more than the discrete adjoint (one or two evolutions per
parameter) and are meant for checking it.
"""

import logging
from typing import Optional

import numpy as np

from ..controls import ControlsLike, GradControl, TimeDerivativeControl
from ..evolution.forward import check_order, eval_forward, eval_forward_forced, prepare_evolution
from ..evolution.generator import apply_hamiltonian, time_points
from ..evolution.solver import SolverSettings
from ..problem import SchrodingerProb
from .cost import as_stacked_state, check_cost_type, terminal_cost_gradient
from .discrete_adjoint import evaluate_cost

logger = logging.getLogger(__name__)


def eval_grad_forced(problem: SchrodingerProb, controls: ControlsLike, pcof, target,
                     order: int = 2, cost_type: str = "infidelity", nsteps: Optional[int] = None,
                     solver_settings: Optional[SolverSettings] = None) -> np.ndarray:
    """
    Gradient from the sensitivities dw/dpcof[k].

    Each sensitivity obeys the state equation forced by (dA/dpcof[k]) w and
    starts from zero. The forcing is built from GradControl, so only the
    channel owning pcof[k] contributes.
    """
    check_order(order)
    check_cost_type(cost_type)
    problem, controls, pcof = prepare_evolution(problem, controls, pcof, nsteps)
    target = as_stacked_state(target, problem.N_tot_levels)

    history = eval_forward(problem, controls, pcof, order=order, return_time_derivatives=True,
                           solver_settings=solver_settings)
    states = history[:, :, 0]
    utvt = history[:, :, 1]
    terminal = terminal_cost_gradient(states[:, -1], target, problem.N_ess_levels, cost_type)

    times = time_points(problem)
    N_channels = len(controls)
    N2 = 2 * problem.N_tot_levels
    zero_state = np.zeros(N2)
    grad = np.zeros(controls.N_coeff)

    for i, control in enumerate(controls):
        local_pcof = controls.get_slice(pcof, i)
        for k in range(control.N_coeff):
            grad_control = GradControl(control, k)
            grad_control_t = TimeDerivativeControl(grad_control)

            forcing = np.zeros((N2, problem.nsteps + 1, order // 2))
            p = np.zeros(N_channels)
            q = np.zeros(N_channels)
            pt = np.zeros(N_channels)
            qt = np.zeros(N_channels)
            for n, t in enumerate(times):
                p[i] = grad_control.eval_p(t, local_pcof)
                q[i] = grad_control.eval_q(t, local_pcof)
                forcing[:, n, 0] = apply_hamiltonian(problem, states[:, n], p, q, include_drift=False)
                if order == 4:
                    pt[i] = grad_control_t.eval_p(t, local_pcof)
                    qt[i] = grad_control_t.eval_q(t, local_pcof)
                    forcing[:, n, 1] = (
                        apply_hamiltonian(problem, states[:, n], pt, qt, include_drift=False)
                        + apply_hamiltonian(problem, utvt[:, n], p, q, include_drift=False)
                    )

            sensitivity = eval_forward_forced(problem, controls, pcof, forcing, order=order,
                                              initial_state=zero_state,
                                              solver_settings=solver_settings)
            grad[controls.offsets[i] + k] = terminal @ sensitivity[:, -1]

    return grad


def eval_grad_finite_difference(problem: SchrodingerProb, controls: ControlsLike, pcof, target,
                                order: int = 2, cost_type: str = "infidelity",
                                epsilon: float = 1e-5, centered: bool = True,
                                nsteps: Optional[int] = None,
                                solver_settings: Optional[SolverSettings] = None) -> np.ndarray:
    problem, controls, pcof = prepare_evolution(problem, controls, pcof, nsteps)

    def cost(x):
        return evaluate_cost(problem, controls, x, target, order=order, cost_type=cost_type,
                             solver_settings=solver_settings)

    base = None if centered else cost(pcof)
    grad = np.zeros(controls.N_coeff)
    for k in range(controls.N_coeff):
        pcof_plus = pcof.copy()
        pcof_plus[k] += epsilon
        if centered:
            pcof_minus = pcof.copy()
            pcof_minus[k] -= epsilon
            grad[k] = (cost(pcof_plus) - cost(pcof_minus)) / (2 * epsilon)
        else:
            grad[k] = (cost(pcof_plus) - base) / epsilon
    logger.debug("Finite difference gradient over %d parameters", controls.N_coeff)
    return grad
