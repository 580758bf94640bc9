import numpy as np
import pytest

from schrodinger_control import ConfigurationError, rotating_frame_qubit
from schrodinger_control.controls import GRAPEControl
from schrodinger_control.state_transfer import (
    discrete_adjoint,
    evaluate_cost,
    make_objective,
    optimize_control,
)

TARGET = np.array([0.0, 1.0, 0.0, 0.0, 0.0, 0.0])


@pytest.fixture
def transfer_problem():
    return rotating_frame_qubit(2, 1, tf=2.0, nsteps=20, detuning_frequency=0.1,
                                self_kerr_coefficient=0.2)


def test_objective_wraps_cost_and_adjoint(transfer_problem, rng):
    grape = GRAPEControl(4, transfer_problem.tf)
    pcof = rng.uniform(-0.3, 0.3, grape.N_coeff)
    f, grad_f = make_objective(transfer_problem, grape, TARGET, order=2)

    assert f(pcof) == pytest.approx(evaluate_cost(transfer_problem, grape, pcof, TARGET, order=2))
    assert np.allclose(grad_f(pcof), discrete_adjoint(transfer_problem, grape, pcof, TARGET, order=2))


def test_optimization_reduces_infidelity(transfer_problem, rng):
    grape = GRAPEControl(4, transfer_problem.tf)
    pcof_init = rng.uniform(-0.1, 0.1, grape.N_coeff)
    initial = evaluate_cost(transfer_problem, grape, pcof_init, TARGET, order=2)

    result = optimize_control(transfer_problem, grape, pcof_init, TARGET, order=2, max_iter=10)

    assert result.fun < initial
    assert np.all(np.abs(result.x) <= 1.0)


def test_optimization_respects_bounds(transfer_problem):
    grape = GRAPEControl(2, transfer_problem.tf)
    pcof_init = np.full(grape.N_coeff, 0.05)
    result = optimize_control(transfer_problem, grape, pcof_init, TARGET, order=2,
                              pcof_L=-0.1, pcof_U=0.1, max_iter=5)

    assert np.all(result.x >= -0.1 - 1e-12)
    assert np.all(result.x <= 0.1 + 1e-12)


def test_inverted_bounds_raise(transfer_problem):
    grape = GRAPEControl(2, transfer_problem.tf)
    with pytest.raises(ConfigurationError):
        optimize_control(transfer_problem, grape, np.zeros(grape.N_coeff), TARGET,
                         pcof_L=1.0, pcof_U=-1.0)
