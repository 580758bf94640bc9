"""
State transfer costs, their gradients and optimization.
"""

from .cost import COST_TYPES, infidelity, terminal_cost, terminal_cost_gradient, tracking
from .discrete_adjoint import discrete_adjoint, evaluate_cost
from .sensitivities import eval_grad_finite_difference, eval_grad_forced
from .optimization import make_objective, optimize_control

__all__ = [
    "COST_TYPES",
    "infidelity",
    "tracking",
    "terminal_cost",
    "terminal_cost_gradient",
    "evaluate_cost",
    "discrete_adjoint",
    "eval_grad_forced",
    "eval_grad_finite_difference",
    "make_objective",
    "optimize_control",
]
