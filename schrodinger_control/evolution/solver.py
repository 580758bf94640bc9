"""
Matrix-free Krylov solve of the implicit half of a time step.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
from scipy.sparse.linalg import LinearOperator, gmres

from ..exceptions import SolverConvergenceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SolverSettings:
    """
    Settings for scipy's gmres.

    restart=None restarts after a full Krylov space (the state dimension), so
    a single cycle is an exact solve up to rounding.
    """

    atol: float = 1e-15
    rtol: float = 1e-15
    restart: Optional[int] = None
    maxiter: int = 20


DEFAULT_SOLVER_SETTINGS = SolverSettings()


def solve_step(operator: Callable[[np.ndarray], np.ndarray], rhs: np.ndarray, x0: np.ndarray,
               settings: SolverSettings = DEFAULT_SOLVER_SETTINGS,
               step: int = 0, t: float = 0.0) -> np.ndarray:
    """Solve operator(x) = rhs starting from x0; raise if gmres gives up."""
    n = rhs.shape[0]
    linear_map = LinearOperator((n, n), matvec=operator, dtype=np.float64)
    restart = settings.restart if settings.restart is not None else n

    x, info = gmres(linear_map, rhs, x0=x0, rtol=settings.rtol, atol=settings.atol,
                    restart=restart, maxiter=settings.maxiter)
    if info != 0:
        residual = float(np.linalg.norm(rhs - operator(x)))
        logger.error("gmres failed at step %d (t=%g), residual %.3e", step, t, residual)
        raise SolverConvergenceError(step, t, residual, info)
    return x
