"""
Hadronization models.

A model turns the hadronic system of an inelastic interaction (four-momentum
and charge) into a list of hadrons. An empty or impossible configuration is
reported as None; the calling stage turns that into an event-level failure.
"""

import math
import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

import numpy as np

from .config import AlgorithmConfig
from .interaction import Interaction
from .kinematics import FourVector
from . import particles as pdglib
from .phase_space import generate_n_body_decay

logger = logging.getLogger(__name__)


class HadronizationModel(ABC):
    name: str = "abstract"

    def __init__(self, config: Optional[AlgorithmConfig] = None):
        self.config = config if config is not None else AlgorithmConfig(self.name)
        self.load_config()

    def load_config(self):
        pass

    @abstractmethod
    def hadronize(self, interaction: Interaction, p4_hadronic: FourVector,
                  rng: np.random.Generator, charge: Optional[int] = None,
                  baryon_number: int = 1) -> Optional[List[Tuple[int, FourVector]]]:
        """
        Hadrons (pdg, four-momentum in the frame of p4_hadronic), or None.

        `charge` defaults to the charge of the hadronic system of `interaction`.
        """


class PhaseSpaceHadronizer(HadronizationModel):
    """
    One nucleon (none for baryon number 0) plus pions, with multiplicity <n> = a + b ln(W^2) and
    momenta drawn from flat N-body phase space.
    """

    name = "phase-space-hadronizer"

    def load_config(self):
        self.a = self.config.get_parameter("multiplicity-a", 0.40)
        self.b = self.config.get_parameter("multiplicity-b", 1.42)
        self.max_attempts = self.config.get_parameter("max-attempts", 20)
        self.charged_pair_fraction = self.config.get_parameter("charged-pair-fraction", 2.0 / 3.0)

    def average_multiplicity(self, W: float) -> float:
        return max(2.0, self.a + self.b * math.log(W * W))

    def hadronic_charge(self, interaction: Interaction) -> int:
        hit = interaction.target.hit_nucleon_pdg
        return int(pdglib.charge(hit)) + interaction.hadronic_charge_change()

    def _pick_species(self, n: int, charge: int, rng, baryon_number: int = 1) -> Optional[List[int]]:
        if baryon_number == 0:
            nucleons = [None]
        else:
            nucleons = [pdglib.PDG_PROTON, pdglib.PDG_NEUTRON]
            rng.shuffle(nucleons)
        for nucleon in nucleons:
            pion_charge = charge - (int(pdglib.charge(nucleon)) if nucleon is not None else 0)
            n_pions = n - 1 if nucleon is not None else n
            if abs(pion_charge) > n_pions:
                continue
            pions = [pdglib.PDG_PIP if pion_charge > 0 else pdglib.PDG_PIM] * abs(pion_charge)
            free = n_pions - abs(pion_charge)
            while free > 0:
                if free >= 2 and rng.random() < self.charged_pair_fraction:
                    pions += [pdglib.PDG_PIP, pdglib.PDG_PIM]
                    free -= 2
                else:
                    pions.append(pdglib.PDG_PI0)
                    free -= 1
            return pions if nucleon is None else [nucleon] + pions
        return None

    def hadronize(self, interaction, p4_hadronic, rng, charge=None, baryon_number=1):
        if baryon_number not in (0, 1):
            raise ValueError(f"Unsupported baryon number {baryon_number}")
        W = p4_hadronic.mass
        if charge is None:
            charge = self.hadronic_charge(interaction)
        mean_n = self.average_multiplicity(W)

        for attempt in range(self.max_attempts):
            n = max(2, 1 + int(rng.poisson(mean_n - 1.0)))
            species = self._pick_species(n, charge, rng, baryon_number)
            if species is None:
                continue
            masses = [pdglib.mass(p) for p in species]
            if sum(masses) >= W:
                continue
            momenta, _ = generate_n_body_decay(p4_hadronic, masses, rng)
            logger.debug(f"Hadronized W={W:.3f} into {species} (attempt {attempt + 1})")
            return list(zip(species, momenta))

        logger.debug(f"Hadronization failed for W={W:.3f}, charge={charge}")
        return None
