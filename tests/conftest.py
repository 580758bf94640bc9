import jax.numpy as jnp
import numpy as np
import pytest

from schrodinger_control import rotating_frame_qubit
from schrodinger_control.controls import FunctionControl, GRAPEControl, bspline_control


@pytest.fixture
def rng():
    return np.random.default_rng(20240611)


@pytest.fixture
def qudit_problem():
    # Two essential levels and one guard level
    return rotating_frame_qubit(2, 1, tf=1.0, nsteps=10,
                                detuning_frequency=0.3, self_kerr_coefficient=0.2)


@pytest.fixture
def bspline():
    return bspline_control(1.0, 4, [0.0, 0.3])


@pytest.fixture
def grape():
    return GRAPEControl(4, 1.0)


@pytest.fixture
def smooth_control():
    """Two-parameter control with simple closed form derivatives."""
    def p_func(t, pcof):
        return pcof[0] * jnp.sin(jnp.pi * t)

    def q_func(t, pcof):
        return pcof[1] * jnp.cos(jnp.pi * t) ** 2

    return FunctionControl(p_func, q_func, 2)
