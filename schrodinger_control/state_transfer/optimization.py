"""
Hooking the cost and its adjoint gradient into scipy's L-BFGS-B.
"""

import logging
from typing import Callable, Optional, Tuple

import numpy as np
from scipy.optimize import Bounds, OptimizeResult, minimize

from ..controls import ControlsLike, as_control_sequence
from ..evolution.forward import check_order
from ..evolution.solver import SolverSettings
from ..exceptions import ConfigurationError
from ..problem import SchrodingerProb
from .cost import check_cost_type
from .discrete_adjoint import discrete_adjoint, evaluate_cost

logger = logging.getLogger(__name__)


def make_objective(problem: SchrodingerProb, controls: ControlsLike, target, order: int = 4,
                   cost_type: str = "infidelity",
                   solver_settings: Optional[SolverSettings] = None) -> Tuple[Callable, Callable]:
    """(f, grad_f) of the control vector, as expected by scipy.optimize."""
    check_order(order)
    check_cost_type(cost_type)
    controls = as_control_sequence(controls)

    def f(pcof):
        return evaluate_cost(problem, controls, pcof, target, order=order, cost_type=cost_type,
                             solver_settings=solver_settings)

    def grad_f(pcof):
        return discrete_adjoint(problem, controls, pcof, target, order=order,
                                cost_type=cost_type, solver_settings=solver_settings)

    return f, grad_f


def optimize_control(problem: SchrodingerProb, controls: ControlsLike, pcof_init, target,
                     order: int = 4, cost_type: str = "infidelity", pcof_L=None, pcof_U=None,
                     max_iter: int = 50, lbfgs_max: int = 200, tol: float = 1e-5,
                     solver_settings: Optional[SolverSettings] = None) -> OptimizeResult:
    """
    Minimize the terminal cost over the control vector.

    Bounds default to [-1, 1] in every component; scalars are broadcast.
    """
    controls = as_control_sequence(controls)
    pcof_init = controls.check_pcof(pcof_init)
    N_coeff = controls.N_coeff

    lower = np.broadcast_to(np.asarray(-1.0 if pcof_L is None else pcof_L, dtype=np.float64), (N_coeff,))
    upper = np.broadcast_to(np.asarray(1.0 if pcof_U is None else pcof_U, dtype=np.float64), (N_coeff,))
    if np.any(lower > upper):
        raise ConfigurationError("Lower bounds exceed upper bounds")

    f, grad_f = make_objective(problem, controls, target, order=order, cost_type=cost_type,
                               solver_settings=solver_settings)

    logger.info("Starting L-BFGS-B with %d parameters, initial cost %.6e", N_coeff, f(pcof_init))
    result = minimize(f, np.clip(pcof_init, lower, upper), jac=grad_f, method="L-BFGS-B",
                      bounds=Bounds(lower, upper), tol=tol,
                      options={"maxiter": max_iter, "maxcor": lbfgs_max})
    logger.info("L-BFGS-B finished after %d iterations: cost %.6e (%s)",
                result.nit, result.fun, result.message)
    return result
