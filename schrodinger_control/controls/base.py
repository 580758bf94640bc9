"""
Abstract control interface, adapter controls and control sequences.

Every concrete control must define

    eval_p(t, pcof) -> float
    eval_q(t, pcof) -> float

and carry the attribute `N_coeff`, the number of entries of the flat control
vector it consumes. `pcof` handed to a control is always its own slice.

The time derivatives (`eval_pt`, `eval_qt`) and the gradients with respect to
the control vector (`eval_grad_p`, `eval_grad_q`, `eval_grad_pt`,
`eval_grad_qt`) default to automatic differentiation with jax, which requires
`eval_p`/`eval_q` to be written with jax.numpy. Controls written with plain
numpy must override them.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Iterable, List, Optional, Union

import jax
import jax.numpy as jnp
import numpy as np

from ..exceptions import ConfigurationError


def _as_jax(pcof) -> jnp.ndarray:
    return jnp.asarray(pcof, dtype=jnp.float64)


class AbstractControl(ABC):
    """Supertype for all controls."""

    N_coeff: int

    @abstractmethod
    def eval_p(self, t: float, pcof: np.ndarray) -> float:
        pass

    @abstractmethod
    def eval_q(self, t: float, pcof: np.ndarray) -> float:
        pass

    # ------------------------------------------------------------------
    # Defaults through jax. Plain (un-jitted) jax.grad keeps the
    # non-differentiated argument concrete, so eval_p may branch on t when
    # only the control-vector gradient is requested.
    # ------------------------------------------------------------------
    def eval_pt(self, t: float, pcof: np.ndarray) -> float:
        return float(jax.grad(self.eval_p, argnums=0)(float(t), _as_jax(pcof)))

    def eval_qt(self, t: float, pcof: np.ndarray) -> float:
        return float(jax.grad(self.eval_q, argnums=0)(float(t), _as_jax(pcof)))

    def eval_grad_p(self, t: float, pcof: np.ndarray) -> np.ndarray:
        return np.asarray(jax.grad(self.eval_p, argnums=1)(float(t), _as_jax(pcof)), dtype=np.float64)

    def eval_grad_q(self, t: float, pcof: np.ndarray) -> np.ndarray:
        return np.asarray(jax.grad(self.eval_q, argnums=1)(float(t), _as_jax(pcof)), dtype=np.float64)

    def eval_grad_pt(self, t: float, pcof: np.ndarray) -> np.ndarray:
        dpdt = jax.grad(self.eval_p, argnums=0)
        return np.asarray(jax.grad(dpdt, argnums=1)(float(t), _as_jax(pcof)), dtype=np.float64)

    def eval_grad_qt(self, t: float, pcof: np.ndarray) -> np.ndarray:
        dqdt = jax.grad(self.eval_q, argnums=0)
        return np.asarray(jax.grad(dqdt, argnums=1)(float(t), _as_jax(pcof)), dtype=np.float64)

    def traceable_time_derivative(self) -> Optional["AbstractControl"]:
        """
        A control whose p, q are the pt, qt of this one and whose own derivatives
        can be traced by jax, or None if this control cannot provide one.
        """
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__} with {self.N_coeff} control coefficients"


# ----------------------------------------------------------------------
# Adapters
# ----------------------------------------------------------------------
class GradControl(AbstractControl):
    """
    The grad_index-th component of the control-vector gradient of a control,
    presented as a control in its own right. Used to build the forcing of
    sensitivity (forced) evolutions.
    """

    def __init__(self, original_control: AbstractControl, grad_index: int):
        if not 0 <= grad_index < original_control.N_coeff:
            raise IndexError(
                f"grad_index {grad_index} out of range for a control with "
                f"{original_control.N_coeff} coefficients"
            )
        self.original_control = original_control
        self.N_coeff = original_control.N_coeff
        self.grad_index = grad_index

    def eval_p(self, t, pcof):
        return self.original_control.eval_grad_p(t, pcof)[self.grad_index]

    def eval_q(self, t, pcof):
        return self.original_control.eval_grad_q(t, pcof)[self.grad_index]

    def eval_pt(self, t, pcof):
        return self.original_control.eval_grad_pt(t, pcof)[self.grad_index]

    def eval_qt(self, t, pcof):
        return self.original_control.eval_grad_qt(t, pcof)[self.grad_index]


class TimeDerivativeControl(AbstractControl):
    """
    The time derivative (pt, qt) of a control, presented as a control.

    Second time derivatives come from the original control's
    traceable_time_derivative when it has one, otherwise from the jax defaults
    applied to the original eval_pt, eval_qt.
    """

    def __init__(self, original_control: AbstractControl):
        self.original_control = original_control
        self.N_coeff = original_control.N_coeff
        self._derivative = original_control.traceable_time_derivative()

    def traceable_time_derivative(self):
        if self._derivative is None:
            return None
        return self._derivative.traceable_time_derivative()

    def eval_p(self, t, pcof):
        return self.original_control.eval_pt(t, pcof)

    def eval_q(self, t, pcof):
        return self.original_control.eval_qt(t, pcof)

    def eval_grad_p(self, t, pcof):
        return self.original_control.eval_grad_pt(t, pcof)

    def eval_grad_q(self, t, pcof):
        return self.original_control.eval_grad_qt(t, pcof)

    def eval_pt(self, t, pcof):
        if self._derivative is None:
            return super().eval_pt(t, pcof)
        return self._derivative.eval_pt(t, pcof)

    def eval_qt(self, t, pcof):
        if self._derivative is None:
            return super().eval_qt(t, pcof)
        return self._derivative.eval_qt(t, pcof)

    def eval_grad_pt(self, t, pcof):
        if self._derivative is None:
            return super().eval_grad_pt(t, pcof)
        return self._derivative.eval_grad_pt(t, pcof)

    def eval_grad_qt(self, t, pcof):
        if self._derivative is None:
            return super().eval_grad_qt(t, pcof)
        return self._derivative.eval_grad_qt(t, pcof)


# ----------------------------------------------------------------------
# Sequences of controls, one per control channel
# ----------------------------------------------------------------------
class ControlSequence(Sequence):
    """
    Ordered, immutable sequence of one or more channel controls.

    Owns the partition of the flat control vector into contiguous per-channel
    slices, in channel order.
    """

    def __init__(self, controls: Iterable[AbstractControl]):
        controls = tuple(controls)
        if len(controls) == 0:
            raise ConfigurationError("A control sequence needs at least one control")
        for control in controls:
            if not isinstance(control, AbstractControl):
                raise TypeError(f"Expected an AbstractControl, got {type(control).__name__}")
        self._controls = controls

        offsets = [0]
        for control in controls:
            offsets.append(offsets[-1] + int(control.N_coeff))
        self.offsets = tuple(offsets)

    @property
    def N_coeff(self) -> int:
        return self.offsets[-1]

    def __len__(self) -> int:
        return len(self._controls)

    def __getitem__(self, index: int) -> AbstractControl:
        return self._controls[self._check_index(index)]

    def _check_index(self, index: int) -> int:
        if not isinstance(index, (int, np.integer)):
            raise TypeError(f"Control index must be an integer, got {type(index).__name__}")
        if not 0 <= index < len(self._controls):
            raise IndexError(f"Control index {index} out of range for {len(self._controls)} control(s)")
        return int(index)

    def get_slice(self, pcof: np.ndarray, index: int) -> np.ndarray:
        """View of the part of pcof consumed by control `index`."""
        index = self._check_index(index)
        return pcof[self.offsets[index]:self.offsets[index + 1]]

    def split(self, pcof: np.ndarray) -> List[np.ndarray]:
        return [self.get_slice(pcof, i) for i in range(len(self))]

    def check_pcof(self, pcof) -> np.ndarray:
        """Validate the length of pcof and return it as a float array."""
        pcof = np.asarray(pcof, dtype=np.float64)
        if pcof.ndim != 1 or pcof.shape[0] != self.N_coeff:
            raise ConfigurationError(
                f"pcof has shape {pcof.shape}, but the controls declare "
                f"{self.N_coeff} coefficients in total"
            )
        return pcof

    def __repr__(self) -> str:
        inner = ", ".join(repr(c) for c in self._controls)
        return f"ControlSequence([{inner}])"


ControlsLike = Union[AbstractControl, Iterable[AbstractControl]]


def as_control_sequence(controls: ControlsLike) -> ControlSequence:
    """Wrap a single control as a one-element sequence; pass sequences through."""
    if isinstance(controls, ControlSequence):
        return controls
    if isinstance(controls, AbstractControl):
        return ControlSequence([controls])
    return ControlSequence(controls)


def get_control_vector_slice(pcof: np.ndarray, controls: ControlsLike, control_index: int) -> np.ndarray:
    """Slice (view) of pcof corresponding to control `control_index`."""
    return as_control_sequence(controls).get_slice(pcof, control_index)
