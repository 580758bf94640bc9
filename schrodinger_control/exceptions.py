"""
Exception types raised by schrodinger_control.
"""


class SchrodingerControlError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(SchrodingerControlError, ValueError):
    """Invalid input detected before any time stepping is done."""


class SolverConvergenceError(SchrodingerControlError, RuntimeError):
    """
    The Krylov solve of a single time step did not reach its tolerance.

    Carries the step index, the time being solved for, the final residual norm
    and the info flag returned by scipy's gmres.
    """

    def __init__(self, step: int, time: float, residual: float, info: int):
        self.step = step
        self.time = time
        self.residual = residual
        self.info = info
        super().__init__(
            f"gmres did not converge at step {step} (t={time:.6g}): "
            f"residual={residual:.3e}, info={info}"
        )
