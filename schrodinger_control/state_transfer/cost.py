"""
Terminal costs on the stacked state w = (u; v) and their gradients in w.
"""

import numpy as np

from ..exceptions import ConfigurationError

COST_TYPES = ("infidelity", "tracking")


def as_stacked_state(target, N_tot_levels: int) -> np.ndarray:
    """Accept a stacked real target (u; v) or a complex vector psi = u + iv."""
    target = np.asarray(target)
    if np.iscomplexobj(target):
        target = np.concatenate([target.real, target.imag])
    target = target.astype(np.float64)
    if target.shape != (2 * N_tot_levels,):
        raise ConfigurationError(
            f"Target must have shape ({2 * N_tot_levels},), got {target.shape}"
        )
    return target


def check_cost_type(cost_type: str) -> str:
    if cost_type not in COST_TYPES:
        raise ConfigurationError(f"Unknown cost type {cost_type!r}, expected one of {COST_TYPES}")
    return cost_type


def _essential_mask(N_tot_levels: int, N_ess_levels: int) -> np.ndarray:
    return np.arange(N_tot_levels) < N_ess_levels


def _overlap(uv, target, N_ess_levels):
    N = uv.shape[0] // 2
    ess = _essential_mask(N, N_ess_levels)
    psi = (uv[:N] + 1j * uv[N:])[ess]
    psi_t = (target[:N] + 1j * target[N:])[ess]
    return np.vdot(psi_t, psi)


def infidelity(uv: np.ndarray, target: np.ndarray, N_ess_levels: int) -> float:
    """1 - |<psi_target, psi>|^2 over the essential levels; guard levels are ignored."""
    overlap = _overlap(uv, target, N_ess_levels)
    return float(1 - np.real(np.conj(overlap) * overlap))


def infidelity_gradient(uv: np.ndarray, target: np.ndarray, N_ess_levels: int) -> np.ndarray:
    N = uv.shape[0] // 2
    ess = _essential_mask(N, N_ess_levels)
    a = np.where(ess, target[:N], 0.0)
    b = np.where(ess, target[N:], 0.0)
    # Real and imaginary parts of the overlap are R.w and T.w
    R = np.concatenate([a, b])
    T = np.concatenate([-b, a])
    return -2.0 * (R @ uv) * R - 2.0 * (T @ uv) * T


def tracking(uv: np.ndarray, target: np.ndarray) -> float:
    return float(0.5 * np.sum((uv - target) ** 2))


def tracking_gradient(uv: np.ndarray, target: np.ndarray) -> np.ndarray:
    return uv - target


def terminal_cost(uv, target, N_ess_levels: int, cost_type: str = "infidelity") -> float:
    check_cost_type(cost_type)
    if cost_type == "infidelity":
        return infidelity(uv, target, N_ess_levels)
    return tracking(uv, target)


def terminal_cost_gradient(uv, target, N_ess_levels: int, cost_type: str = "infidelity") -> np.ndarray:
    check_cost_type(cost_type)
    if cost_type == "infidelity":
        return infidelity_gradient(uv, target, N_ess_levels)
    return tracking_gradient(uv, target)
