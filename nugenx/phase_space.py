"""
Lorentz-invariant phase space generator using Raubold–Lynch algorithm.

Supports arbitrary N-body decays with proper phase-space weighting.

Units: GeV, c = 1
"""

from __future__ import annotations
import math
import numpy as np
from typing import List, Tuple, Optional
from .kinematics import FourVector, isotropic_direction


def generate_n_body_decay(
    parent_p4: FourVector,
    masses: List[float],
    rng: Optional[np.random.Generator] = None,
) -> Tuple[List[FourVector], float]:
    """
    Generate an N-body decay using Raubold–Lynch algorithm with phase-space weight.

    Parameters
    ----------
    parent_p4 : FourVector
        Parent four-momentum (can be in any frame)
    masses : list of float
        Final-state particle masses (GeV)
    rng : numpy Generator, optional
        Random number generator

    Returns
    -------
    (final_particles, event_weight)
        final_particles: list of FourVector (frame of parent_p4)
        event_weight: phase-space weight

    The daughters sum exactly to `parent_p4` up to floating point rounding:
    the last daughter takes the remaining four-momentum.
    """
    rng = rng or np.random.default_rng()
    N = len(masses)

    # Validate inputs
    if N < 2:
        raise ValueError("Need at least two final-state particles.")
    if any(m < 0 for m in masses):
        raise ValueError("All masses must be non-negative.")

    M = parent_p4.mass
    if M <= 0:
        raise ValueError("Parent mass must be positive.")
    if sum(masses) > M:
        raise ValueError(f"Kinematically forbidden: Σm={sum(masses):.4f} > M={M:.4f}")

    # Rest frame of the parent, rebuilt from its invariant mass
    beta_parent = parent_p4.beta()

    # Generate virtual masses
    virtual_masses = [M]
    remaining_mass = sum(masses)

    for i in range(N - 2):
        m_remain = remaining_mass - masses[i]
        m_max = virtual_masses[-1] - masses[i]
        m_min = m_remain

        if m_min > m_max:
            raise ValueError(f"Phase space violation at step {i}")

        r = rng.random()
        s_min = m_min**2
        s_max = m_max**2
        s = s_min + r * (s_max - s_min)
        m_virtual = math.sqrt(s)
        virtual_masses.append(m_virtual)
        remaining_mass -= masses[i]

    virtual_masses.append(masses[-1])

    # Sequential two-body decays
    final_particles = []
    current_p4 = FourVector(M, 0.0, 0.0, 0.0)
    weight = 1.0

    for i in range(N - 1):
        m_parent = virtual_masses[i]
        m1 = masses[i]
        m2 = virtual_masses[i + 1]

        term1 = m_parent**2 - (m1 + m2)**2
        term2 = m_parent**2 - (m1 - m2)**2
        p_mag = math.sqrt(max(term1 * term2, 0.0)) / (2.0 * m_parent)

        weight *= p_mag / m_parent

        direction = isotropic_direction(rng)
        p_vec = p_mag * direction

        E1 = math.sqrt(m1**2 + p_mag**2)
        E2 = math.sqrt(m2**2 + p_mag**2)

        p1 = FourVector(E1, p_vec[0], p_vec[1], p_vec[2])
        p2 = FourVector(E2, -p_vec[0], -p_vec[1], -p_vec[2])

        beta = current_p4.beta()
        final_particles.append(p1.boost(beta))
        current_p4 = p2.boost(beta)

    final_particles.append(current_p4)

    # Boost to the frame of parent_p4; last daughter closes the balance
    final_lab = [p.boost(beta_parent) for p in final_particles[:-1]]
    closing = parent_p4
    for p in final_lab:
        closing = closing - p
    final_lab.append(closing)

    return final_lab, weight
