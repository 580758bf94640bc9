"""
Implicit Hermite time stepping and discrete adjoint gradients for driven qudits.
"""

import jax

# Control derivatives are compared against float64 time stepping
jax.config.update("jax_enable_x64", True)

__version__ = "0.1.0"

# Import submodules to enable clean imports
from . import controls
from . import evolution
from . import state_transfer
from . import toolkits
from .exceptions import ConfigurationError, SchrodingerControlError, SolverConvergenceError
from .problem import SchrodingerProb, initial_basis, lowering_operator, rotating_frame_qubit
from .evolution import SolverSettings, eval_forward, eval_forward_forced
