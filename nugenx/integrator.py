"""
Numerical integration of sampled functions over uniform grids.

Integrators are plain objects with no state beyond their resolution, so one
instance can be shared by several cross-section models.
"""

from __future__ import annotations
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

import numpy as np
from scipy.integrate import simpson

from .exceptions import ConfigurationError


@dataclass(frozen=True)
class UniformGrid:
    n_points: int
    lo: float
    hi: float

    @property
    def is_degenerate(self) -> bool:
        return not (math.isfinite(self.lo) and math.isfinite(self.hi)) or self.hi <= self.lo

    @property
    def step(self) -> float:
        if self.n_points < 2:
            return 0.0
        return (self.hi - self.lo) / (self.n_points - 1)

    def points(self) -> np.ndarray:
        return np.linspace(self.lo, self.hi, self.n_points)


@dataclass
class FunctionMap:
    """Function values sampled on a grid."""
    grid: UniformGrid
    values: np.ndarray

    @classmethod
    def sample(cls, func: Callable[[float], float], grid: UniformGrid) -> "FunctionMap":
        values = np.array([func(float(x)) for x in grid.points()], dtype=float)
        # non-finite samples contribute nothing
        values[~np.isfinite(values)] = 0.0
        return cls(grid, values)


class Integrator(ABC):
    name: str = "abstract"

    def __init__(self, n_points: int = 201):
        if n_points < 2:
            raise ConfigurationError(f"{type(self).__name__}: need at least 2 grid points, got {n_points}")
        self.n_points = int(n_points)

    @abstractmethod
    def integrate(self, fmap: FunctionMap) -> float:
        """Integral of the sampled function over its grid."""

    def make_grid(self, lo: float, hi: float) -> UniformGrid:
        return UniformGrid(self.n_points, float(lo), float(hi))

    def integrate_function(self, func: Callable[[float], float], lo: float, hi: float) -> float:
        grid = self.make_grid(lo, hi)
        if grid.is_degenerate:
            return 0.0
        return self.integrate(FunctionMap.sample(func, grid))


class Trapezoid1D(Integrator):
    name = "trapezoid"

    def integrate(self, fmap: FunctionMap) -> float:
        if fmap.grid.is_degenerate:
            return 0.0
        return float(np.trapezoid(fmap.values, dx=fmap.grid.step))


class Simpson1D(Integrator):
    """Composite Simpson rule; the point count is forced odd."""

    name = "simpson"

    def __init__(self, n_points: int = 201):
        if n_points % 2 == 0:
            n_points += 1
        super().__init__(max(n_points, 3))

    def integrate(self, fmap: FunctionMap) -> float:
        if fmap.grid.is_degenerate:
            return 0.0
        return float(simpson(fmap.values, dx=fmap.grid.step))


_INTEGRATORS = {
    Simpson1D.name: Simpson1D,
    Trapezoid1D.name: Trapezoid1D,
}


def get_integrator(name: str, n_points: int = 201) -> Integrator:
    try:
        cls = _INTEGRATORS[name]
    except KeyError:
        raise ConfigurationError(f"Unknown integrator '{name}' (known: {sorted(_INTEGRATORS)})") from None
    return cls(n_points)
