"""
Closed-form kinematic limits, variable transforms and phase-space Jacobians.

All limits assume a massless probe hitting a target at rest along +z.
Units: GeV.
"""

from __future__ import annotations
import math
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from .constants import NUCLEON_MASS, CHARGED_PION_MASS, SMALL_NUMBER
from .exceptions import ConfigurationError
from .interaction import Interaction, KineVar


class KinePhaseSpace(str, Enum):
    Q2 = "Q2"
    LOG_Q2 = "logQ2"
    W_Q2 = "WQ2"
    X_Y = "XY"


@dataclass(frozen=True)
class Range1D:
    min: float
    max: float

    @property
    def is_valid(self) -> bool:
        return math.isfinite(self.min) and math.isfinite(self.max) and self.max > self.min

    @property
    def width(self) -> float:
        return max(0.0, self.max - self.min)

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max

    def shrink(self, eps: float = SMALL_NUMBER) -> "Range1D":
        return Range1D(self.min + eps, self.max - eps)


INVALID_RANGE = Range1D(-1.0, -1.0)


# -----------------------------
# Masses & invariants
# -----------------------------
def kinematic_mass(interaction: Interaction) -> float:
    """Mass of the struck object used in x, y, W, Q2 relations."""
    M = interaction.target.hit_nucleon_mass
    return M if M > 0.0 else NUCLEON_MASS


def invariant_s(E: float, M: float) -> float:
    return M * M + 2.0 * M * E


# -----------------------------
# Limits
# -----------------------------
def q2_range_two_body(E: float, M: float, ml: float, m_final: float) -> Range1D:
    """Q2 limits for nu + M -> l + m_final (m_final may be an invariant mass W)."""
    s = invariant_s(E, M)
    sqrt_s = math.sqrt(s)
    if sqrt_s <= ml + m_final:
        return INVALID_RANGE
    p1 = (s - M * M) / (2.0 * sqrt_s)
    E3 = (s + ml * ml - m_final * m_final) / (2.0 * sqrt_s)
    p3 = math.sqrt(max(0.0, E3 * E3 - ml * ml))
    q2_min = 2.0 * (p1 * E3 - p1 * p3) - ml * ml
    q2_max = 2.0 * (p1 * E3 + p1 * p3) - ml * ml
    return Range1D(max(q2_min, 0.0), q2_max)


def w_range(E: float, M: float, ml: float, w_min: float) -> Range1D:
    w_max = math.sqrt(invariant_s(E, M)) - ml
    if w_max <= w_min:
        return INVALID_RANGE
    return Range1D(w_min, w_max)


def x_range(E: float, M: float, ml: float) -> Range1D:
    if E <= ml:
        return INVALID_RANGE
    x_min = ml * ml / (2.0 * M * (E - ml))
    return Range1D(x_min + SMALL_NUMBER, 1.0 - SMALL_NUMBER)


def y_range_x(E: float, M: float, ml: float, x: float) -> Range1D:
    """y limits at fixed x from lepton-mass kinematic constraints."""
    if x <= 0.0:
        return INVALID_RANGE
    ml2 = ml * ml
    a = 0.5 * ml2 / (M * E * x)
    b = ml2 / (E * E)
    c = 1.0 + 0.5 * x * M / E
    d = (1.0 - a) ** 2 - b
    A = 0.5 * (1.0 - a - 0.5 * b) / c
    B = 0.5 * math.sqrt(max(0.0, d)) / c
    y_min = max(0.0, A - B) + SMALL_NUMBER
    y_max = min(1.0, A + B) - SMALL_NUMBER
    if y_max <= y_min:
        return INVALID_RANGE
    return Range1D(y_min, y_max)


def inelastic_w_min(interaction: Interaction) -> float:
    return kinematic_mass(interaction) + CHARGED_PION_MASS


# -----------------------------
# Variable transforms
# -----------------------------
def q2_from_xy(x: float, y: float, E: float, M: float) -> float:
    return 2.0 * x * y * M * E


def w2_from_xy(x: float, y: float, E: float, M: float) -> float:
    return M * M + 2.0 * M * E * y * (1.0 - x)


def xy_from_wq2(W: float, Q2: float, E: float, M: float) -> Tuple[float, float]:
    W2 = W * W
    denom = W2 - M * M + Q2
    if denom <= 0.0:
        return 0.0, 0.0
    x = Q2 / denom
    y = denom / (2.0 * M * E)
    return x, y


def energy_transfer(interaction: Interaction, selected: bool = False) -> float:
    kine = interaction.kine
    return kine.get(KineVar.Y, selected) * interaction.probe_energy


def fill_from_xy(interaction: Interaction, x: float, y: float):
    """Write x, y and the derived Q2, W as running kinematics."""
    E = interaction.probe_energy
    M = kinematic_mass(interaction)
    kine = interaction.kine
    kine.set(KineVar.X, x)
    kine.set(KineVar.Y, y)
    kine.set(KineVar.Q2, q2_from_xy(x, y, E, M))
    kine.set(KineVar.W, math.sqrt(max(0.0, w2_from_xy(x, y, E, M))))


def fill_from_wq2(interaction: Interaction, W: float, Q2: float):
    E = interaction.probe_energy
    M = kinematic_mass(interaction)
    x, y = xy_from_wq2(W, Q2, E, M)
    kine = interaction.kine
    kine.set(KineVar.W, W)
    kine.set(KineVar.Q2, Q2)
    kine.set(KineVar.X, x)
    kine.set(KineVar.Y, y)


# -----------------------------
# Jacobians
# -----------------------------
_SUPPORTED_PAIRS = {
    (KinePhaseSpace.Q2, KinePhaseSpace.LOG_Q2),
    (KinePhaseSpace.LOG_Q2, KinePhaseSpace.Q2),
    (KinePhaseSpace.W_Q2, KinePhaseSpace.X_Y),
    (KinePhaseSpace.X_Y, KinePhaseSpace.W_Q2),
}


def has_jacobian(from_ps: KinePhaseSpace, to_ps: KinePhaseSpace) -> bool:
    return from_ps == to_ps or (KinePhaseSpace(from_ps), KinePhaseSpace(to_ps)) in _SUPPORTED_PAIRS


def jacobian(interaction: Interaction, from_ps: KinePhaseSpace, to_ps: KinePhaseSpace) -> float:
    """
    Factor J such that d(sigma)/d(to) = J * d(sigma)/d(from), evaluated at the
    running kinematics of `interaction`.
    """
    from_ps, to_ps = KinePhaseSpace(from_ps), KinePhaseSpace(to_ps)
    if from_ps == to_ps:
        return 1.0
    if not has_jacobian(from_ps, to_ps):
        raise ConfigurationError(f"No Jacobian from {from_ps.value} to {to_ps.value}")

    kine = interaction.kine
    if {from_ps, to_ps} == {KinePhaseSpace.Q2, KinePhaseSpace.LOG_Q2}:
        Q2 = kine.Q2
        return Q2 if to_ps == KinePhaseSpace.LOG_Q2 else (1.0 / Q2 if Q2 > 0.0 else 0.0)

    # |d(W, Q2) / d(x, y)| = 2 M^2 E^2 y / W
    E = interaction.probe_energy
    M = kinematic_mass(interaction)
    y, W = kine.y, kine.W
    if W <= 0.0 or y <= 0.0:
        return 0.0
    J = 2.0 * M * M * E * E * y / W
    return J if to_ps == KinePhaseSpace.X_Y else 1.0 / J
