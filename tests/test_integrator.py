import math

import numpy as np
import pytest
from scipy.integrate import simpson

from nugenx.exceptions import ConfigurationError
from nugenx.integrator import FunctionMap, Simpson1D, Trapezoid1D, UniformGrid, get_integrator


def _assert_close(a, b, tol=1e-9, msg=""):
    assert abs(a - b) < tol, msg or f"Values differ: {a} vs {b} (tol={tol})"


def test_simpson_exact_for_cubic():
    integ = Simpson1D(11)
    _assert_close(integ.integrate_function(lambda x: x ** 3 - 2 * x + 1, 0.0, 2.0), 4.0 - 4.0 + 2.0, 1e-12)


def test_simpson_forces_odd_points():
    assert Simpson1D(10).n_points == 11
    assert Simpson1D(2).n_points == 3


def test_trapezoid_linear_exact():
    _assert_close(Trapezoid1D(5).integrate_function(lambda x: 3 * x + 1, 0.0, 1.0), 2.5, 1e-12)


def test_simpson_converges_on_smooth_function():
    value = get_integrator("simpson", 201).integrate_function(math.sin, 0.0, math.pi)
    _assert_close(value, 2.0, 1e-8)


def test_degenerate_range_is_zero():
    integ = Simpson1D(21)
    assert integ.integrate_function(lambda x: 1.0, 1.0, 1.0) == 0.0
    assert integ.integrate_function(lambda x: 1.0, 2.0, 1.0) == 0.0
    assert integ.integrate_function(lambda x: 1.0, 0.0, math.inf) == 0.0


def test_non_finite_samples_are_dropped():
    grid = UniformGrid(3, 0.0, 2.0)
    fmap = FunctionMap.sample(lambda x: math.inf if x == 1.0 else 1.0, grid)
    assert np.all(np.isfinite(fmap.values))
    assert fmap.values[1] == 0.0


def test_unknown_integrator_and_bad_resolution():
    with pytest.raises(ConfigurationError):
        get_integrator("gauss-kronrod")
    with pytest.raises(ConfigurationError):
        Trapezoid1D(1)


def test_rules_agree_with_library_quadrature():
    grid = UniformGrid(41, 0.5, 3.0)
    fmap = FunctionMap.sample(lambda x: math.exp(-x) * x ** 2, grid)
    x = grid.points()
    _assert_close(Simpson1D(41).integrate(fmap), float(simpson(fmap.values, x=x)), 1e-12)
    _assert_close(Trapezoid1D(41).integrate(fmap), float(np.trapezoid(fmap.values, x=x)), 1e-12)


def test_simpson_three_points_exact_for_parabola():
    _assert_close(Simpson1D(3).integrate_function(lambda x: x * x, 0.0, 3.0), 9.0, 1e-12)
