"""
Quadratic B-spline envelopes on carrier waves ("bcarrier" controls).

For carrier frequencies omega_f, the control vector holds, per frequency, D1
coefficients of the real envelope followed by D1 coefficients of the imaginary
envelope. With envelopes b1_f(t), b2_f(t),

    p(t) = sum_f b1_f(t) cos(omega_f t) - b2_f(t) sin(omega_f t)
    q(t) = sum_f b1_f(t) sin(omega_f t) + b2_f(t) cos(omega_f t)

i.e. p + i q = sum_f (b1_f + i b2_f) exp(i omega_f t).
"""

from typing import Sequence

import jax.numpy as jnp
import numpy as np

from ..exceptions import ConfigurationError
from .function_control import FunctionControl


def quadratic_bspline(tau: jnp.ndarray) -> jnp.ndarray:
    """Quadratic B-spline supported on [-1/2, 1/2), peak 3/4 at tau = 0."""
    left = 9.0 / 8.0 + 4.5 * tau + 4.5 * tau**2
    center = 0.75 - 9.0 * tau**2
    right = 9.0 / 8.0 - 4.5 * tau + 4.5 * tau**2
    return jnp.where(
        (tau >= -0.5) & (tau < -1.0 / 6.0), left,
        jnp.where(
            (tau >= -1.0 / 6.0) & (tau < 1.0 / 6.0), center,
            jnp.where((tau >= 1.0 / 6.0) & (tau < 0.5), right, 0.0)
        )
    )


class BSplineControl(FunctionControl):
    def __init__(self, tf: float, D1: int, omega: Sequence[float]):
        if D1 < 3:
            raise ConfigurationError(f"Need at least 3 B-spline coefficients, got D1={D1}")
        if not tf > 0:
            raise ConfigurationError(f"tf must be positive, got {tf}")

        self.tf = float(tf)
        self.D1 = int(D1)
        self.omega = np.atleast_1d(np.asarray(omega, dtype=np.float64))
        self.Nfreq = self.omega.shape[0]

        # Knot spacing such that the first and last splines straddle t=0 and t=tf
        dtknot = self.tf / (self.D1 - 2)
        self.width = 3.0 * dtknot
        self.tcenter = dtknot * (np.arange(1, self.D1 + 1) - 1.5)

        tcenter = jnp.asarray(self.tcenter)
        width = self.width
        omega_j = jnp.asarray(self.omega)
        Nfreq, D1 = self.Nfreq, self.D1

        def envelopes(t, pcof):
            splines = quadratic_bspline((t - tcenter) / width)
            coeffs = jnp.reshape(pcof, (Nfreq, 2, D1))
            return coeffs[:, 0, :] @ splines, coeffs[:, 1, :] @ splines

        def p_func(t, pcof):
            b1, b2 = envelopes(t, pcof)
            return jnp.sum(b1 * jnp.cos(omega_j * t) - b2 * jnp.sin(omega_j * t))

        def q_func(t, pcof):
            b1, b2 = envelopes(t, pcof)
            return jnp.sum(b1 * jnp.sin(omega_j * t) + b2 * jnp.cos(omega_j * t))

        super().__init__(p_func, q_func, 2 * self.D1 * self.Nfreq)


def bspline_control(tf: float, D1: int, omega: Sequence[float]) -> BSplineControl:
    """B-spline carrier control for one coupled control pair."""
    return BSplineControl(tf, D1, omega)
