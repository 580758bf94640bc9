"""
Real embedding of the Schrodinger generator and the per-step linear operators.

With K(t) = system_sym + sum_c p_c(t) sym_c and S(t) = system_asym
+ sum_c q_c(t) asym_c, the state w = (u; v) obeys

    ut = S u + K v
    vt = S v - K u

i.e. dw/dt = A(t) w with A = [[S, K], [-K, S]] antisymmetric. The time
derivative A_t has the same form without drift and with (pt, qt) in place of
(p, q).
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..controls import ControlSequence
from ..problem import SchrodingerProb

# Weights on (dt/2 * wt, dt^2/4 * wtt) for the explicit half (RHS) and the
# implicit half (LHS) of the fourth order Hermite rule. The second order rule
# uses the first weight only.
RHS_WEIGHTS = (1.0, 1.0 / 3.0)
LHS_WEIGHTS = (1.0, -1.0 / 3.0)

VALID_ORDERS = (2, 4)


@dataclass(frozen=True)
class Amplitudes:
    """Control amplitudes of every channel at one point in time."""

    p: np.ndarray
    q: np.ndarray
    pt: Optional[np.ndarray] = None
    qt: Optional[np.ndarray] = None


def evaluate_amplitudes(controls: ControlSequence, pcof_slices: Sequence[np.ndarray],
                        t: float, derivatives: bool = False) -> Amplitudes:
    p = np.array([c.eval_p(t, pc) for c, pc in zip(controls, pcof_slices)], dtype=np.float64)
    q = np.array([c.eval_q(t, pc) for c, pc in zip(controls, pcof_slices)], dtype=np.float64)
    if not derivatives:
        return Amplitudes(p, q)
    pt = np.array([c.eval_pt(t, pc) for c, pc in zip(controls, pcof_slices)], dtype=np.float64)
    qt = np.array([c.eval_qt(t, pc) for c, pc in zip(controls, pcof_slices)], dtype=np.float64)
    return Amplitudes(p, q, pt, qt)


def apply_hamiltonian(problem: SchrodingerProb, uv: np.ndarray,
                      p: Sequence[float], q: Sequence[float],
                      include_drift: bool = True, transpose: bool = False) -> np.ndarray:
    """
    Apply A (or A^T) to the stacked state uv.

    A^T = [[S^T, -K^T], [K^T, S^T]] is formed from the transposed operators
    rather than by assuming exact (anti)symmetry.
    """
    N = problem.N_tot_levels
    u = uv[:N]
    v = uv[N:]
    ut = np.zeros(N)
    vt = np.zeros(N)

    terms = []
    if include_drift:
        terms.append((1.0, problem.system_sym, 1.0, problem.system_asym))
    terms.extend(zip(p, problem.sym_operators, q, problem.asym_operators))

    for p_val, K, q_val, S in terms:
        if transpose:
            K = K.T
            S = S.T
        if p_val != 0.0:
            Ku = K @ u
            Kv = K @ v
            if transpose:
                ut -= p_val * Kv
                vt += p_val * Ku
            else:
                ut += p_val * Kv
                vt -= p_val * Ku
        if q_val != 0.0:
            ut += q_val * (S @ u)
            vt += q_val * (S @ v)

    return np.concatenate([ut, vt])


def apply_time_derivative(problem: SchrodingerProb, uv: np.ndarray, amplitudes: Amplitudes,
                          transpose: bool = False) -> np.ndarray:
    """Apply A_t (or its transpose); drift does not depend on time."""
    return apply_hamiltonian(problem, uv, amplitudes.pt, amplitudes.qt,
                             include_drift=False, transpose=transpose)


def coupling_contractions(problem: SchrodingerProb, lam: np.ndarray,
                          uv: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Per channel c, lam^T B w for the two coupling blocks

        B_p = [[0, K_c], [-K_c, 0]]   (multiplies p_c)
        B_q = [[S_c, 0], [0, S_c]]    (multiplies q_c)
    """
    N = problem.N_tot_levels
    u, v = uv[:N], uv[N:]
    lam_u, lam_v = lam[:N], lam[N:]
    c_p = np.array([lam_u @ (K @ v) - lam_v @ (K @ u) for K in problem.sym_operators])
    c_q = np.array([lam_u @ (S @ u) + lam_v @ (S @ v) for S in problem.asym_operators])
    return c_p, c_q


@dataclass(frozen=True)
class ImplicitStepOperator:
    """
    One half of a Hermite step, evaluated with the amplitudes of one time point.

    explicit=False gives the implicit operator
        L x = x - dt/2 A x                                 (order 2)
        L x = x - dt/2 A x + dt^2/12 (A_t x + A A x)       (order 4)
    explicit=True gives M x with the signs of the odd term flipped, so that a
    step is L(t+dt) w' = M(t) w. transpose=True applies L^T or M^T.
    """

    problem: SchrodingerProb
    amplitudes: Amplitudes
    dt: float
    order: int
    explicit: bool = False
    transpose: bool = False

    @property
    def coefficients(self) -> Tuple[float, float]:
        """Factors (c1, c2) in x + c1 A x + c2 (A_t x + A A x)."""
        if self.explicit:
            return 0.5 * self.dt * RHS_WEIGHTS[0], 0.25 * self.dt**2 * RHS_WEIGHTS[1]
        return -0.5 * self.dt * LHS_WEIGHTS[0], -0.25 * self.dt**2 * LHS_WEIGHTS[1]

    def __call__(self, x: np.ndarray) -> np.ndarray:
        x = np.ravel(x)
        c1, c2 = self.coefficients
        amps = self.amplitudes
        Ax = apply_hamiltonian(self.problem, x, amps.p, amps.q, transpose=self.transpose)
        out = x + c1 * Ax
        if self.order == 4:
            Atx = apply_time_derivative(self.problem, x, amps, transpose=self.transpose)
            AAx = apply_hamiltonian(self.problem, Ax, amps.p, amps.q, transpose=self.transpose)
            out += c2 * (Atx + AAx)
        return out


def time_points(problem: SchrodingerProb) -> np.ndarray:
    """t_n = n*dt for n = 0..nsteps, shared by forward and adjoint sweeps."""
    return np.arange(problem.nsteps + 1) * problem.dt


def channel_slices(controls: ControlSequence) -> List[slice]:
    return [slice(controls.offsets[i], controls.offsets[i + 1]) for i in range(len(controls))]
