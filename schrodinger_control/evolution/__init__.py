"""
Time stepping of the real-valued Schrodinger equation.
"""

from .generator import (
    Amplitudes,
    ImplicitStepOperator,
    apply_hamiltonian,
    apply_time_derivative,
    coupling_contractions,
    evaluate_amplitudes,
)
from .solver import DEFAULT_SOLVER_SETTINGS, SolverSettings, solve_step
from .forward import eval_forward, eval_forward_forced

__all__ = [
    "Amplitudes",
    "ImplicitStepOperator",
    "apply_hamiltonian",
    "apply_time_derivative",
    "coupling_contractions",
    "evaluate_amplitudes",
    "DEFAULT_SOLVER_SETTINGS",
    "SolverSettings",
    "solve_step",
    "eval_forward",
    "eval_forward_forced",
]
