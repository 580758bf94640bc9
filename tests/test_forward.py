import importlib

import numpy as np
import pytest
from scipy.linalg import expm

from schrodinger_control import (
    ConfigurationError,
    SchrodingerProb,
    SolverConvergenceError,
    rotating_frame_qubit,
)
from schrodinger_control.controls import GRAPEControl, as_control_sequence
from schrodinger_control.evolution import (
    DEFAULT_SOLVER_SETTINGS,
    ImplicitStepOperator,
    SolverSettings,
    apply_hamiltonian,
    eval_forward,
    evaluate_amplitudes,
)


def generator_matrix(problem, p, q):
    """Dense A = [[S, K], [-K, S]] for constant amplitudes."""
    K = problem.system_sym + sum(pc * op for pc, op in zip(p, problem.sym_operators))
    S = problem.system_asym + sum(qc * op for qc, op in zip(q, problem.asym_operators))
    return np.block([[S, K], [-K, S]])


@pytest.fixture
def superposition_problem():
    u0 = np.ones(3) / np.sqrt(3)
    return rotating_frame_qubit(3, 0, tf=1.0, nsteps=200, detuning_frequency=0.5,
                                self_kerr_coefficient=0.3, u0=u0, v0=np.zeros(3))


def test_apply_hamiltonian_matches_dense(qudit_problem, rng):
    p, q = [0.3], [-0.7]
    A = generator_matrix(qudit_problem, p, q)
    w = rng.standard_normal(6)

    assert np.allclose(apply_hamiltonian(qudit_problem, w, p, q), A @ w)
    assert np.allclose(apply_hamiltonian(qudit_problem, w, p, q, transpose=True), A.T @ w)
    assert np.allclose(A, -A.T)


def test_step_operator_matches_dense(qudit_problem, rng, bspline):
    controls = as_control_sequence(bspline)
    pcof = rng.uniform(-1, 1, bspline.N_coeff)
    t = 0.35
    dt = 0.1
    amps = evaluate_amplitudes(controls, controls.split(pcof), t, derivatives=True)
    A = generator_matrix(qudit_problem, amps.p, amps.q)
    A_t = generator_matrix(qudit_problem, amps.pt, amps.qt) - generator_matrix(qudit_problem, [0], [0])
    I = np.eye(6)
    L = I - dt / 2 * A + dt**2 / 12 * (A_t + A @ A)
    M = I + dt / 2 * A + dt**2 / 12 * (A_t + A @ A)
    w = rng.standard_normal(6)

    assert np.allclose(ImplicitStepOperator(qudit_problem, amps, dt, 4)(w), L @ w)
    assert np.allclose(ImplicitStepOperator(qudit_problem, amps, dt, 4, explicit=True)(w), M @ w)
    assert np.allclose(ImplicitStepOperator(qudit_problem, amps, dt, 4, transpose=True)(w), L.T @ w)
    assert np.allclose(ImplicitStepOperator(qudit_problem, amps, dt, 2, explicit=True,
                                            transpose=True)(w), (I + dt / 2 * A).T @ w)


def test_history_shape(qudit_problem, grape):
    pcof = np.full(grape.N_coeff, 0.1)
    history = eval_forward(qudit_problem, grape, pcof, order=2)

    assert history.shape == (6, qudit_problem.nsteps + 1)
    assert np.allclose(history[:, 0], qudit_problem.initial_state)


@pytest.mark.parametrize("order", [2, 4])
def test_time_derivative_history(superposition_problem, order):
    grape = GRAPEControl(1, superposition_problem.tf)
    pcof = np.zeros(2)
    history = eval_forward(superposition_problem, grape, pcof, order=order,
                           return_time_derivatives=True)
    A = generator_matrix(superposition_problem, [0], [0])

    assert history.shape == (6, superposition_problem.nsteps + 1, 1 + order // 2)
    assert np.allclose(history[:, :, 1], A @ history[:, :, 0])
    if order == 4:
        assert np.allclose(history[:, :, 2], A @ A @ history[:, :, 0])


@pytest.mark.parametrize("order, atol", [(2, 1e-3), (4, 1e-7)])
def test_zero_control_matches_matrix_exponential(superposition_problem, order, atol):
    grape = GRAPEControl(1, superposition_problem.tf)
    history = eval_forward(superposition_problem, grape, np.zeros(2), order=order)
    A = generator_matrix(superposition_problem, [0], [0])
    exact = expm(A * superposition_problem.tf) @ superposition_problem.initial_state

    assert np.allclose(history[:, -1], exact, atol=atol)


@pytest.mark.parametrize("order", [2, 4])
def test_zero_control_matches_discrete_map(superposition_problem, order):
    grape = GRAPEControl(1, superposition_problem.tf)
    history = eval_forward(superposition_problem, grape, np.zeros(2), order=order)

    dt = superposition_problem.dt
    A = generator_matrix(superposition_problem, [0], [0])
    I = np.eye(6)
    if order == 2:
        L, M = I - dt / 2 * A, I + dt / 2 * A
    else:
        L = I - dt / 2 * A + dt**2 / 12 * A @ A
        M = I + dt / 2 * A + dt**2 / 12 * A @ A
    step = np.linalg.solve(L, M)
    expected = np.linalg.matrix_power(step, superposition_problem.nsteps) @ superposition_problem.initial_state

    assert np.allclose(history[:, -1], expected, atol=1e-11)


@pytest.mark.parametrize("order", [2, 4])
def test_norm_is_conserved(order):
    prob = rotating_frame_qubit(2, 1, tf=1.0, nsteps=1000, detuning_frequency=0.3,
                                self_kerr_coefficient=0.2)
    grape = GRAPEControl(4, prob.tf)
    pcof = np.array([0.5, -0.3, 0.2, 0.4, -0.1, 0.3, -0.5, 0.2])
    history = eval_forward(prob, grape, pcof, order=order)

    norms = np.linalg.norm(history, axis=0)
    assert np.max(np.abs(norms - 1)) < 1e-4


def test_nsteps_override_does_not_touch_problem(qudit_problem, grape):
    history = eval_forward(qudit_problem, grape, np.zeros(grape.N_coeff), nsteps=40)
    assert history.shape[1] == 41
    assert qudit_problem.nsteps == 10


def test_solver_settings_are_accepted(qudit_problem, grape):
    pcof = np.full(grape.N_coeff, 0.2)
    default = eval_forward(qudit_problem, grape, pcof, order=4)
    custom = eval_forward(qudit_problem, grape, pcof, order=4,
                          solver_settings=SolverSettings(restart=6, maxiter=50))
    assert DEFAULT_SOLVER_SETTINGS.atol == 1e-15
    assert np.allclose(default, custom, atol=1e-13)


def test_invalid_order_raises(qudit_problem, grape):
    with pytest.raises(ConfigurationError):
        eval_forward(qudit_problem, grape, np.zeros(grape.N_coeff), order=3)


def test_wrong_pcof_length_raises(qudit_problem, grape):
    with pytest.raises(ConfigurationError):
        eval_forward(qudit_problem, grape, np.zeros(grape.N_coeff + 1))


def test_control_count_must_match_operators(qudit_problem, grape):
    with pytest.raises(ConfigurationError):
        eval_forward(qudit_problem, [grape, grape], np.zeros(2 * grape.N_coeff))


def test_two_channels_drive_independently(rng):
    a = np.diag(np.sqrt([1.0, 2.0]), k=1)
    zero = np.zeros((3, 3))
    prob = SchrodingerProb(np.diag([0.0, 1.0, 2.0]), zero,
                           (a + a.T, zero), (a - a.T, a - a.T),
                           [1, 0, 0], [0, 0, 0], 1.0, 20, 2, 1)
    controls = [GRAPEControl(2, 1.0), GRAPEControl(3, 1.0)]
    pcof = rng.uniform(-0.5, 0.5, 10)

    with_second = eval_forward(prob, controls, pcof)
    pcof_first_only = pcof.copy()
    pcof_first_only[4:] = 0
    without_second = eval_forward(prob, controls, pcof_first_only)
    single = SchrodingerProb(prob.system_sym, zero, (a + a.T,), (a - a.T,),
                             [1, 0, 0], [0, 0, 0], 1.0, 20, 2, 1)
    reference = eval_forward(single, controls[0], pcof[:4])

    assert np.allclose(without_second, reference, atol=1e-13)
    assert not np.allclose(with_second, reference)


def test_solver_failure_is_fatal(qudit_problem, bspline, rng):
    pcof = rng.uniform(-1, 1, bspline.N_coeff)
    crippled = SolverSettings(restart=1, maxiter=1)

    with pytest.raises(SolverConvergenceError) as excinfo:
        eval_forward(qudit_problem, bspline, pcof, solver_settings=crippled)

    err = excinfo.value
    assert err.step == 1
    assert err.time == pytest.approx(qudit_problem.dt)
    assert err.residual > crippled.atol
    assert err.info != 0
    assert isinstance(err, RuntimeError)


def test_adjoint_backward_solve_failure_is_fatal(qudit_problem, bspline, rng, monkeypatch):
    adjoint_module = importlib.import_module("schrodinger_control.state_transfer.discrete_adjoint")

    def forward_with_default_solver(*args, **kwargs):
        kwargs["solver_settings"] = None
        return eval_forward(*args, **kwargs)

    # Only the backward sweep sees the failing settings
    monkeypatch.setattr(adjoint_module, "eval_forward", forward_with_default_solver)
    pcof = rng.uniform(-1, 1, bspline.N_coeff)
    target = np.array([0.0, 1.0, 0.0, 0.0, 0.0, 0.0])

    with pytest.raises(SolverConvergenceError) as excinfo:
        adjoint_module.discrete_adjoint(qudit_problem, bspline, pcof, target,
                                        solver_settings=SolverSettings(restart=1, maxiter=1))

    assert excinfo.value.step == qudit_problem.nsteps
    assert excinfo.value.time == pytest.approx(qudit_problem.tf)
    assert excinfo.value.residual > 0
