"""
Controls: time-dependent drive amplitudes p(t), q(t) and their derivatives.
"""

from .base import (
    AbstractControl,
    ControlSequence,
    ControlsLike,
    GradControl,
    TimeDerivativeControl,
    as_control_sequence,
    get_control_vector_slice,
)
from .function_control import FunctionControl
from .bspline import BSplineControl, bspline_control
from .grape import GRAPEControl, find_region_index

__all__ = [
    "AbstractControl",
    "ControlSequence",
    "ControlsLike",
    "GradControl",
    "TimeDerivativeControl",
    "as_control_sequence",
    "get_control_vector_slice",
    "FunctionControl",
    "BSplineControl",
    "bspline_control",
    "GRAPEControl",
    "find_region_index",
]
