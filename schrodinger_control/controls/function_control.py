"""
Controls given by jax-traceable closures p(t, pcof), q(t, pcof).
"""

from typing import Callable

import jax
import numpy as np

from .base import AbstractControl, _as_jax


class FunctionControl(AbstractControl):
    """
    Control given directly by two jax-traceable functions p(t, pcof), q(t, pcof).

    The time derivatives and control-vector gradients are built once, here,
    with jax.grad and compiled with jax.jit; evaluating them never re-traces.
    """

    def __init__(self, p_func: Callable, q_func: Callable, N_coeff: int):
        self.N_coeff = int(N_coeff)

        dpdt = jax.grad(p_func, argnums=0)
        dqdt = jax.grad(q_func, argnums=0)
        self._dpdt = dpdt
        self._dqdt = dqdt

        self._p = jax.jit(p_func)
        self._q = jax.jit(q_func)
        self._pt = jax.jit(dpdt)
        self._qt = jax.jit(dqdt)
        self._grad_p = jax.jit(jax.grad(p_func, argnums=1))
        self._grad_q = jax.jit(jax.grad(q_func, argnums=1))
        self._grad_pt = jax.jit(jax.grad(dpdt, argnums=1))
        self._grad_qt = jax.jit(jax.grad(dqdt, argnums=1))

    def traceable_time_derivative(self) -> "FunctionControl":
        # pt, qt are still traceable closures, so they make a control of their own
        return FunctionControl(self._dpdt, self._dqdt, self.N_coeff)

    def eval_p(self, t, pcof):
        return float(self._p(float(t), _as_jax(pcof)))

    def eval_q(self, t, pcof):
        return float(self._q(float(t), _as_jax(pcof)))

    def eval_pt(self, t, pcof):
        return float(self._pt(float(t), _as_jax(pcof)))

    def eval_qt(self, t, pcof):
        return float(self._qt(float(t), _as_jax(pcof)))

    def eval_grad_p(self, t, pcof):
        return np.asarray(self._grad_p(float(t), _as_jax(pcof)), dtype=np.float64)

    def eval_grad_q(self, t, pcof):
        return np.asarray(self._grad_q(float(t), _as_jax(pcof)), dtype=np.float64)

    def eval_grad_pt(self, t, pcof):
        return np.asarray(self._grad_pt(float(t), _as_jax(pcof)), dtype=np.float64)

    def eval_grad_qt(self, t, pcof):
        return np.asarray(self._grad_qt(float(t), _as_jax(pcof)), dtype=np.float64)
