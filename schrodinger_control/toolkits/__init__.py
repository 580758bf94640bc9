"""
Toolkit utilities for the schrodinger_control package.
"""

from .convergence import (
    ConvergenceResult,
    estimate_runtime,
    find_target_x,
    get_history_convergence,
    get_reference_history,
    get_runtime_ratios,
    richardson_extrap_rel_err,
    richardson_extrap_sol,
    subsample_history,
)

__all__ = [
    "ConvergenceResult",
    "estimate_runtime",
    "find_target_x",
    "get_history_convergence",
    "get_reference_history",
    "get_runtime_ratios",
    "richardson_extrap_rel_err",
    "richardson_extrap_sol",
    "subsample_history",
]
