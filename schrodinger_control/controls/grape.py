"""
GRAPE-style piecewise constant control.

Unlike GRAPE, the number of amplitudes is independent of the number of time
steps, and time stepping/gradients use the implicit schemes of this package.
"""

import numpy as np

from ..exceptions import ConfigurationError
from .base import AbstractControl


def find_region_index(t: float, tf: float, N_regions: int) -> int:
    """Index of the constant region containing t, clamped to [0, N_regions-1]."""
    i = int(np.floor(t / (tf / N_regions)))
    return min(max(i, 0), N_regions - 1)


class GRAPEControl(AbstractControl):
    """
    pcof holds N_amplitudes values of p followed by N_amplitudes values of q.

    The time derivative is taken to be zero everywhere, ignoring the jumps at
    region boundaries. Results are close to exact only when many time steps
    fall inside each region.
    """

    def __init__(self, N_amplitudes: int, tf: float):
        if N_amplitudes < 1:
            raise ConfigurationError(f"N_amplitudes must be positive, got {N_amplitudes}")
        self.N_amplitudes = int(N_amplitudes)
        self.tf = float(tf)
        self.N_coeff = 2 * self.N_amplitudes

    def eval_p(self, t, pcof):
        i = find_region_index(t, self.tf, self.N_amplitudes)
        return pcof[i]

    def eval_q(self, t, pcof):
        i = self.N_amplitudes + find_region_index(t, self.tf, self.N_amplitudes)
        return pcof[i]

    # Hand-written derivatives, cheaper than the jax defaults
    def eval_pt(self, t, pcof):
        return 0.0

    def eval_qt(self, t, pcof):
        return 0.0

    def eval_grad_p(self, t, pcof):
        grad = np.zeros(self.N_coeff)
        grad[find_region_index(t, self.tf, self.N_amplitudes)] = 1.0
        return grad

    def eval_grad_q(self, t, pcof):
        grad = np.zeros(self.N_coeff)
        grad[self.N_amplitudes + find_region_index(t, self.tf, self.N_amplitudes)] = 1.0
        return grad

    def eval_grad_pt(self, t, pcof):
        return np.zeros(self.N_coeff)

    def eval_grad_qt(self, t, pcof):
        return np.zeros(self.N_coeff)
