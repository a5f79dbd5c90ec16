"""
Decay tables and the phase-space decay model.

Modes are stored as (branching_fraction, daughters) per PDG code; charge
conjugate parents reuse the table of the particle with conjugated
daughters.
"""

import logging
from typing import Dict, List, Optional, Tuple

import numpy as np

from .config import AlgorithmConfig
from .kinematics import FourVector
from .particles import PDGLibrary
from .phase_space import generate_n_body_decay

logger = logging.getLogger(__name__)

DECAY_TABLE: Dict[int, List[Tuple[float, Tuple[int, ...]]]] = {
    111: [(0.98823, (22, 22)), (0.01174, (22, 11, -11))],
    310: [(0.6920, (211, -211)), (0.3069, (111, 111))],
    2224: [(1.0, (2212, 211))],
    2214: [(2.0 / 3.0, (2212, 111)), (1.0 / 3.0, (2112, 211))],
    2114: [(2.0 / 3.0, (2112, 111)), (1.0 / 3.0, (2212, -211))],
    1114: [(1.0, (2112, -211))],
    421: [(0.40, (-321, 211)), (0.60, (-321, 211, 111))],
    411: [(1.0, (-321, 211, 211))],
    431: [(1.0, (321, -321, 211))],
    4122: [(1.0, (2212, -321, 211))],
    4212: [(1.0, (4122, 111))],
    4222: [(1.0, (4122, 211))],
}

# particles that are their own antiparticle
_SELF_CONJUGATE = {22, 111, 310, 130}


def conjugate(pdg: int) -> int:
    return pdg if pdg in _SELF_CONJUGATE else -pdg


def get_decay_modes(pdg: int) -> List[Tuple[float, Tuple[int, ...]]]:
    """(branching_fraction, daughters) for `pdg`; empty if no modes are known."""
    if pdg in DECAY_TABLE:
        return DECAY_TABLE[pdg]
    if -pdg in DECAY_TABLE:
        return [(br, tuple(conjugate(d) for d in daughters)) for br, daughters in DECAY_TABLE[-pdg]]
    return []


def choose_decay_mode(pdg: int, rng: Optional[np.random.Generator] = None,
                      max_mass: Optional[float] = None) -> Optional[Tuple[int, ...]]:
    """
    Choose a decay mode using branching fractions as probabilities.

    Modes whose daughters are heavier than `max_mass` are excluded.
    Returns None if no usable mode exists.
    """
    rng = rng or np.random.default_rng()
    modes = get_decay_modes(pdg)
    if max_mass is not None:
        modes = [(br, d) for br, d in modes
                 if sum(PDGLibrary.lookup(x).mass for x in d) < max_mass]
    if not modes:
        return None

    weights = np.array([max(br, 0.0) for br, _ in modes], dtype=float)
    total = weights.sum()
    if total <= 0.0:
        return None
    index = rng.choice(len(modes), p=weights / total)
    return modes[index][1]


class PhaseSpaceDecayer:
    """Isotropic N-body phase-space decays following DECAY_TABLE."""

    name = "phase-space-decayer"

    def __init__(self, config: Optional[AlgorithmConfig] = None):
        self.config = config if config is not None else AlgorithmConfig(self.name)

    def can_decay(self, pdg: int) -> bool:
        return bool(get_decay_modes(pdg))

    def decay(self, pdg: int, p4: FourVector,
              rng: Optional[np.random.Generator] = None) -> Optional[List[Tuple[int, FourVector]]]:
        """Decay products in the frame of `p4`, or None if no allowed mode exists."""
        rng = rng or np.random.default_rng()
        mode = choose_decay_mode(pdg, rng, max_mass=p4.mass)
        if mode is None:
            logger.debug(f"No kinematically allowed decay for {pdg} at m={p4.mass:.4f}")
            return None
        masses = [PDGLibrary.lookup(d).mass for d in mode]
        momenta, _ = generate_n_body_decay(p4, masses, rng)
        return list(zip(mode, momenta))
