"""
Nuclear geometry: radius and density profiles used by the cascade.

Lengths in fm, densities in nucleons / fm^3.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from .constants import NUCLEAR_R0, WOODS_SAXON_DIFFUSENESS
from .exceptions import ConfigurationError
from .integrator import Simpson1D
from .kinematics import isotropic_direction


def nuclear_radius(A: int, r0: float = NUCLEAR_R0) -> float:
    """R = r0 * A^(1/3)"""
    return r0 * A ** (1.0 / 3.0)


class NuclearDensityProfile(ABC):
    def __init__(self, A: int, radius: float):
        if A < 1 or radius <= 0.0:
            raise ValueError(f"Invalid nucleus: A={A}, R={radius}")
        self.A = A
        self.radius = radius

    @abstractmethod
    def density(self, r: float) -> float:
        """Nucleon density at distance r from the centre."""

    @property
    @abstractmethod
    def tracking_radius(self) -> float:
        """Hadrons beyond this distance have left the nucleus."""

    def is_inside(self, position: np.ndarray) -> bool:
        return float(np.linalg.norm(position)) < self.tracking_radius

    def sample_position(self, rng: Optional[np.random.Generator] = None) -> np.ndarray:
        """Point inside the nucleus distributed according to the density."""
        rng = rng or np.random.default_rng()
        rho_max = self.density(0.0)
        R = self.tracking_radius
        while True:
            r = R * rng.random() ** (1.0 / 3.0)
            if rng.uniform(0.0, rho_max) <= self.density(r):
                return r * isotropic_direction(rng)


class UniformDensity(NuclearDensityProfile):
    """Hard sphere of radius R."""

    def __init__(self, A: int, radius: float):
        super().__init__(A, radius)
        self.rho0 = 3.0 * A / (4.0 * math.pi * radius ** 3)

    def density(self, r: float) -> float:
        return self.rho0 if r <= self.radius else 0.0

    @property
    def tracking_radius(self) -> float:
        return self.radius


class WoodsSaxonDensity(NuclearDensityProfile):
    """rho(r) = rho0 / (1 + exp((r - R) / a)), normalised to A nucleons."""

    def __init__(self, A: int, radius: float, diffuseness: float = WOODS_SAXON_DIFFUSENESS):
        super().__init__(A, radius)
        if diffuseness <= 0.0:
            raise ValueError("Woods-Saxon diffuseness must be positive")
        self.diffuseness = diffuseness
        volume = Simpson1D(401).integrate_function(
            lambda r: 4.0 * math.pi * r * r * self._shape(r), 0.0, radius + 12.0 * diffuseness
        )
        self.rho0 = A / volume

    def _shape(self, r: float) -> float:
        arg = (r - self.radius) / self.diffuseness
        if arg > 700.0:
            return 0.0
        return 1.0 / (1.0 + math.exp(arg))

    def density(self, r: float) -> float:
        return self.rho0 * self._shape(r)

    @property
    def tracking_radius(self) -> float:
        return self.radius + 4.0 * self.diffuseness


def half_density_radius(A: int) -> float:
    return 1.12 * A ** (1.0 / 3.0) - 0.86 * A ** (-1.0 / 3.0)


def make_density_profile(kind: str, A: int, r0: float = NUCLEAR_R0,
                         diffuseness: float = WOODS_SAXON_DIFFUSENESS) -> NuclearDensityProfile:
    """
    "uniform": hard sphere of radius r0 * A^(1/3).
    "woods-saxon": standard half-density radius with the given diffuseness
    (r0 is not used).
    """
    if kind == "uniform":
        return UniformDensity(A, nuclear_radius(A, r0))
    if kind == "woods-saxon":
        return WoodsSaxonDensity(A, half_density_radius(A), diffuseness)
    raise ConfigurationError(f"Unknown nuclear density profile '{kind}'")
