"""
Hadron-nucleon cross sections used by the intranuclear cascade.

Isospin-averaged total cross sections (mb) and fate fractions as a function
of the hadron kinetic energy (GeV). Values between table points are linearly
interpolated; outside the table they are clamped to the end points.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Optional

import numpy as np

from .config import AlgorithmConfig
from . import particles as pdglib


class HadronFate(str, Enum):
    ABSORPTION = "absorption"
    CHARGE_EXCHANGE = "charge-exchange"
    ELASTIC = "elastic"
    INELASTIC = "inelastic"


FATE_ORDER = (HadronFate.ABSORPTION, HadronFate.CHARGE_EXCHANGE, HadronFate.ELASTIC, HadronFate.INELASTIC)

# Kinetic energy [GeV], sigma_tot [mb], f_abs, f_cex, f_el, f_inel
PION_NUCLEON_TABLE = np.array([
    [0.00, 20.0, 0.50, 0.15, 0.35, 0.00],
    [0.05, 40.0, 0.45, 0.15, 0.40, 0.00],
    [0.10, 90.0, 0.35, 0.20, 0.45, 0.00],
    [0.20, 140.0, 0.25, 0.20, 0.55, 0.00],
    [0.30, 100.0, 0.15, 0.15, 0.60, 0.10],
    [0.50, 50.0, 0.05, 0.10, 0.50, 0.35],
    [1.00, 45.0, 0.02, 0.05, 0.40, 0.53],
    [2.00, 35.0, 0.01, 0.03, 0.35, 0.61],
    [10.0, 30.0, 0.00, 0.01, 0.30, 0.69],
])

NUCLEON_NUCLEON_TABLE = np.array([
    [0.00, 300.0, 0.00, 0.10, 0.90, 0.00],
    [0.05, 150.0, 0.00, 0.10, 0.90, 0.00],
    [0.10, 60.0, 0.00, 0.10, 0.90, 0.00],
    [0.20, 35.0, 0.00, 0.08, 0.92, 0.00],
    [0.40, 30.0, 0.00, 0.05, 0.90, 0.05],
    [0.80, 40.0, 0.00, 0.03, 0.60, 0.37],
    [1.50, 45.0, 0.00, 0.02, 0.45, 0.53],
    [10.0, 40.0, 0.00, 0.01, 0.30, 0.69],
])


class HadronXSecModel(ABC):
    name: str = "abstract"

    def __init__(self, config: Optional[AlgorithmConfig] = None):
        self.config = config if config is not None else AlgorithmConfig(self.name)
        self.load_config()

    def load_config(self):
        pass

    def can_rescatter(self, pdg: int) -> bool:
        return pdglib.is_pion(pdg) or pdglib.is_nucleon(pdg)

    @abstractmethod
    def partial_cross_sections(self, pdg: int, kinetic_energy: float) -> Dict[HadronFate, float]:
        """Cross section (mb) per fate for hadron `pdg` on a bound nucleon."""

    def total(self, pdg: int, kinetic_energy: float) -> float:
        return sum(self.partial_cross_sections(pdg, kinetic_energy).values())


class HadronNucleonXSecTables(HadronXSecModel):
    name = "hadron-nucleon-tables"

    def load_config(self):
        self.scale = self.config.get_parameter("scale", 1.0)

    def _table_for(self, pdg: int) -> np.ndarray:
        if pdglib.is_pion(pdg):
            return PION_NUCLEON_TABLE
        if pdglib.is_nucleon(pdg):
            return NUCLEON_NUCLEON_TABLE
        raise ValueError(f"No hadron-nucleon cross sections for PDG {pdg}")

    def partial_cross_sections(self, pdg, kinetic_energy):
        table = self._table_for(pdg)
        ke = max(0.0, float(kinetic_energy))
        sigma = float(np.interp(ke, table[:, 0], table[:, 1])) * self.scale
        fractions = np.array([np.interp(ke, table[:, 0], table[:, i]) for i in range(2, 6)])
        total = fractions.sum()
        if total <= 0.0:
            return {fate: 0.0 for fate in FATE_ORDER}
        fractions /= total
        return {fate: sigma * float(f) for fate, f in zip(FATE_ORDER, fractions)}
