import numpy as np
import pytest

from schrodinger_control.evolution import eval_forward

qutip = pytest.importorskip("qutip", minversion="5.0")


def test_forward_agrees_with_sesolve(qudit_problem, smooth_control):
    prob = qudit_problem.with_nsteps(400)
    pcof = np.array([0.9, -0.6])

    # H = K + iS reproduces ut = S u + K v, vt = S v - K u
    H0 = qutip.Qobj(prob.system_sym + 1j * prob.system_asym)
    Hp = qutip.Qobj(prob.sym_operators[0].astype(complex))
    Hq = qutip.Qobj(1j * prob.asym_operators[0])

    def p_coeff(t, args):
        return smooth_control.eval_p(t, pcof)

    def q_coeff(t, args):
        return smooth_control.eval_q(t, pcof)

    psi0 = qutip.Qobj((prob.u0 + 1j * prob.v0).reshape(-1, 1))
    result = qutip.sesolve([H0, [Hp, p_coeff], [Hq, q_coeff]], psi0, [0.0, prob.tf],
                           options={"atol": 1e-12, "rtol": 1e-10})
    psi_final = result.states[-1].full().ravel()

    history = eval_forward(prob, smooth_control, pcof, order=4)
    N = prob.N_tot_levels
    ours = history[:N, -1] + 1j * history[N:, -1]

    assert np.allclose(ours, psi_final, atol=1e-6)
