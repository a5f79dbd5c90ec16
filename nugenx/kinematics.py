"""
Kinematics helpers for NuGenX.

Units: GeV (natural units c = 1). Positions inside the nucleus use the same
FourVector type with (t, x, y, z) in fm.
"""

from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Optional
import numpy as np

# -----------------------------
# FourVector
# -----------------------------
@dataclass
class FourVector:
    E: float
    px: float
    py: float
    pz: float

    @property
    def p(self) -> np.ndarray:
        return np.array([self.px, self.py, self.pz], dtype=float)

    @property
    def magnitude(self) -> float:
        return float(np.linalg.norm(self.p))

    @property
    def m2(self) -> float:
        return self.E * self.E - self.magnitude * self.magnitude

    @property
    def mass(self) -> float:
        return math.sqrt(max(self.m2, 0.0))

    @property
    def pt(self) -> float:
        return math.hypot(self.px, self.py)

    def beta(self) -> np.ndarray:
        if self.E == 0.0:
            return np.zeros(3, dtype=float)
        return self.p / self.E

    def boost(self, beta: np.ndarray) -> "FourVector":
        p4 = np.array([self.E, self.px, self.py, self.pz], dtype=float)
        b = np.asarray(beta, dtype=float)
        boosted = lorentz_boost_array(p4, b)
        return FourVector(float(boosted[0]), float(boosted[1]), float(boosted[2]), float(boosted[3]))

    def copy(self) -> "FourVector":
        return FourVector(self.E, self.px, self.py, self.pz)

    def to_tuple(self) -> tuple:
        return (self.E, self.px, self.py, self.pz)

    @classmethod
    def from_mass_and_momentum(cls, mass: float, p: np.ndarray) -> "FourVector":
        p = np.asarray(p, dtype=float)
        E = math.sqrt(mass * mass + float(np.dot(p, p)))
        return cls(E, float(p[0]), float(p[1]), float(p[2]))

    def __add__(self, other: "FourVector") -> "FourVector":
        return FourVector(self.E + other.E, self.px + other.px, self.py + other.py, self.pz + other.pz)

    def __sub__(self, other: "FourVector") -> "FourVector":
        return FourVector(self.E - other.E, self.px - other.px, self.py - other.py, self.pz - other.pz)

    def __repr__(self) -> str:
        return f"FourVector(E={self.E:.6f}, px={self.px:.6f}, py={self.py:.6f}, pz={self.pz:.6f})"


# -----------------------------
# Lorentz boost
# -----------------------------
def lorentz_boost_array(p4: np.ndarray, beta: np.ndarray) -> np.ndarray:
    beta = np.asarray(beta, dtype=float)
    p4 = np.asarray(p4, dtype=float)
    beta2 = float(np.dot(beta, beta))
    if beta2 >= 1.0:
        raise ValueError("beta^2 < 1 required.")
    if beta2 <= 1e-18:
        return p4.copy()
    gamma = 1.0 / math.sqrt(1.0 - beta2)
    bp = float(np.dot(beta, p4[1:]))
    Eprime = gamma * (p4[0] + bp)
    factor = ((gamma - 1.0) * bp / beta2) + gamma * p4[0]
    pprime = p4[1:] + factor * beta
    return np.array([Eprime, pprime[0], pprime[1], pprime[2]], dtype=float)


# -----------------------------
# Directions
# -----------------------------
def isotropic_direction(rng: Optional[np.random.Generator] = None) -> np.ndarray:
    rng = rng or np.random.default_rng()
    u = rng.uniform(-1.0, 1.0)
    phi = rng.uniform(0.0, 2.0 * math.pi)
    sint = math.sqrt(max(0.0, 1.0 - u * u))
    return np.array([sint * math.cos(phi), sint * math.sin(phi), u], dtype=float)


def rotate_uz(direction: np.ndarray, v: np.ndarray) -> np.ndarray:
    """
    Rotate v from a frame whose z-axis is `direction` into the lab frame.

    `direction` must be a unit vector.
    """
    u1, u2, u3 = (float(c) for c in direction)
    up = u1 * u1 + u2 * u2
    if up <= 1e-24:
        # direction is along +z or -z
        if u3 >= 0.0:
            return np.array(v, dtype=float)
        return np.array([-v[0], v[1], -v[2]], dtype=float)
    up = math.sqrt(up)
    x, y, z = (float(c) for c in v)
    return np.array([
        (u1 * u3 * x - u2 * y) / up + u1 * z,
        (u2 * u3 * x + u1 * y) / up + u2 * z,
        -up * x + u3 * z,
    ], dtype=float)


def direction_from_angles(cos_theta: float, phi: float, axis: np.ndarray) -> np.ndarray:
    """Unit vector at polar angle theta and azimuth phi around `axis`."""
    sin_theta = math.sqrt(max(0.0, 1.0 - cos_theta * cos_theta))
    local = np.array([sin_theta * math.cos(phi), sin_theta * math.sin(phi), cos_theta], dtype=float)
    return rotate_uz(axis, local)


def two_body_momentum(M: float, m1: float, m2: float) -> float:
    """Break-up momentum of M -> m1 + m2 in the rest frame of M (0 below threshold)."""
    if M <= 0.0:
        return 0.0
    term1 = M * M - (m1 + m2) ** 2
    term2 = M * M - (m1 - m2) ** 2
    return math.sqrt(max(term1 * term2, 0.0)) / (2.0 * M)
