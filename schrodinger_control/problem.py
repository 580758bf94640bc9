"""
Problem record for a driven qudit, stored in the real (u, v) embedding.
"""

from dataclasses import dataclass, replace
from typing import Optional, Sequence, Tuple

import numpy as np

from .exceptions import ConfigurationError


def _frozen_copy(array, name: str, ndim: int) -> np.ndarray:
    out = np.array(array, dtype=np.float64)
    if out.ndim != ndim:
        raise ConfigurationError(f"{name} must be {ndim}-dimensional, got shape {out.shape}")
    out.setflags(write=False)
    return out


@dataclass(frozen=True)
class SchrodingerProb:
    """
    Immutable description of the system and its discretization.

    The complex Hamiltonian is H = system_sym + i*system_asym
    + sum_c p_c(t)*sym_operators[c] + i*q_c(t)*asym_operators[c].
    system_sym/sym_operators are real symmetric, system_asym/asym_operators
    real antisymmetric. The initial state is psi0 = u0 + i*v0.

    Use `with_nsteps` (or the `nsteps=` argument of the integrators) to change
    the resolution; the record itself is never mutated.
    """

    system_sym: np.ndarray
    system_asym: np.ndarray
    sym_operators: Tuple[np.ndarray, ...]
    asym_operators: Tuple[np.ndarray, ...]
    u0: np.ndarray
    v0: np.ndarray
    tf: float
    nsteps: int
    N_ess_levels: int
    N_guard_levels: int = 0

    def __post_init__(self):
        N = self.N_ess_levels + self.N_guard_levels
        if self.N_ess_levels < 1 or self.N_guard_levels < 0:
            raise ConfigurationError(
                f"Invalid level counts: N_ess_levels={self.N_ess_levels}, "
                f"N_guard_levels={self.N_guard_levels}"
            )

        system_sym = _frozen_copy(self.system_sym, "system_sym", 2)
        system_asym = _frozen_copy(self.system_asym, "system_asym", 2)
        sym_operators = tuple(_frozen_copy(op, "sym_operators", 2) for op in self.sym_operators)
        asym_operators = tuple(_frozen_copy(op, "asym_operators", 2) for op in self.asym_operators)
        u0 = _frozen_copy(self.u0, "u0", 1)
        v0 = _frozen_copy(self.v0, "v0", 1)

        for name, mat in [("system_sym", system_sym), ("system_asym", system_asym)]:
            if mat.shape != (N, N):
                raise ConfigurationError(f"{name} must have shape {(N, N)}, got {mat.shape}")
        if len(sym_operators) != len(asym_operators):
            raise ConfigurationError(
                f"Got {len(sym_operators)} symmetric and {len(asym_operators)} "
                "antisymmetric control operators; they must come in pairs"
            )
        for mat in sym_operators + asym_operators:
            if mat.shape != (N, N):
                raise ConfigurationError(f"Control operators must have shape {(N, N)}, got {mat.shape}")
        if u0.shape != (N,) or v0.shape != (N,):
            raise ConfigurationError(f"u0 and v0 must have length {N}")

        norm = np.sqrt(np.dot(u0, u0) + np.dot(v0, v0))
        if not np.isclose(norm, 1.0, rtol=0.0, atol=1e-10):
            raise ConfigurationError(f"Initial state must have unit norm, got {norm}")
        if not self.tf > 0:
            raise ConfigurationError(f"tf must be positive, got {self.tf}")
        if int(self.nsteps) != self.nsteps or self.nsteps < 1:
            raise ConfigurationError(f"nsteps must be a positive integer, got {self.nsteps}")

        object.__setattr__(self, "system_sym", system_sym)
        object.__setattr__(self, "system_asym", system_asym)
        object.__setattr__(self, "sym_operators", sym_operators)
        object.__setattr__(self, "asym_operators", asym_operators)
        object.__setattr__(self, "u0", u0)
        object.__setattr__(self, "v0", v0)
        object.__setattr__(self, "tf", float(self.tf))
        object.__setattr__(self, "nsteps", int(self.nsteps))

    @property
    def N_tot_levels(self) -> int:
        return self.N_ess_levels + self.N_guard_levels

    @property
    def N_operators(self) -> int:
        """Number of control channels (pairs of coupling operators)."""
        return len(self.sym_operators)

    @property
    def dt(self) -> float:
        return self.tf / self.nsteps

    @property
    def initial_state(self) -> np.ndarray:
        """Stacked (u0; v0), a fresh writable array."""
        return np.concatenate([self.u0, self.v0])

    def with_nsteps(self, nsteps: int) -> "SchrodingerProb":
        """Independent copy of the problem at a different resolution."""
        return replace(self, nsteps=nsteps)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(N_ess_levels={self.N_ess_levels}, "
            f"N_guard_levels={self.N_guard_levels}, N_operators={self.N_operators}, "
            f"tf={self.tf}, nsteps={self.nsteps})"
        )


# ----------------------------------------------------------------------
# Helpers for building a single qudit in the rotating frame
# ----------------------------------------------------------------------
def lowering_operator(n: int) -> np.ndarray:
    """Annihilation operator a on n levels: a|k> = sqrt(k)|k-1>."""
    return np.diag(np.sqrt(np.arange(1, n, dtype=np.float64)), k=1)


def initial_basis(N_ess_levels: int, N_guard_levels: int, index: int = 0) -> Tuple[np.ndarray, np.ndarray]:
    """(u0, v0) for the basis state |index>, with zero guard-level population."""
    if not 0 <= index < N_ess_levels:
        raise ConfigurationError(f"index must address an essential level, got {index}")
    N = N_ess_levels + N_guard_levels
    u0 = np.zeros(N)
    u0[index] = 1.0
    return u0, np.zeros(N)


def rotating_frame_qubit(N_ess_levels: int, N_guard_levels: int, *,
                         tf: float = 1.0, nsteps: int = 10,
                         detuning_frequency: float = 1.0,
                         self_kerr_coefficient: float = 1.0,
                         u0: Optional[Sequence[float]] = None,
                         v0: Optional[Sequence[float]] = None) -> SchrodingerProb:
    """
    A single qudit in the dispersive limit, in the rotating frame.

    Frequencies are in GHz and multiplied by 2*pi. The drive couples through
    p(t)*(a + a^dag) + i*q(t)*(a - a^dag).
    """
    N_tot_levels = N_ess_levels + N_guard_levels
    a = lowering_operator(N_tot_levels)
    adag = a.T

    system_sym = 2 * np.pi * detuning_frequency * (adag @ a)
    system_sym -= 0.5 * 2 * np.pi * self_kerr_coefficient * (adag @ adag @ a @ a)
    system_asym = np.zeros((N_tot_levels, N_tot_levels))

    sym_operator = a + adag
    asym_operator = a - adag

    if u0 is None and v0 is None:
        u0, v0 = initial_basis(N_ess_levels, N_guard_levels)
    elif u0 is None or v0 is None:
        raise ConfigurationError("u0 and v0 must be given together")

    return SchrodingerProb(
        system_sym, system_asym,
        (sym_operator,), (asym_operator,),
        u0, v0,
        tf, nsteps,
        N_ess_levels, N_guard_levels,
    )
