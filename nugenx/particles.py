from dataclasses import dataclass
from typing import Dict, Optional

from .constants import (
    ELECTRON_MASS, MUON_MASS, TAU_MASS, PROTON_MASS, NEUTRON_MASS,
    CHARGED_PION_MASS, NEUTRAL_PION_MASS, DELTA_MASS,
)

# PDG codes used throughout the generator
PDG_NUE, PDG_NUMU, PDG_NUTAU = 12, 14, 16
PDG_ELECTRON, PDG_MUON, PDG_TAU = 11, 13, 15
PDG_GAMMA = 22
PDG_PI0, PDG_PIP, PDG_PIM = 111, 211, -211
PDG_PROTON, PDG_NEUTRON = 2212, 2112
PDG_DELTA_PP, PDG_DELTA_P, PDG_DELTA_0, PDG_DELTA_M = 2224, 2214, 2114, 1114
PDG_D0, PDG_DP, PDG_DSP, PDG_LAMBDA_CP = 421, 411, 431, 4122
PDG_SIGMA_CP, PDG_SIGMA_CPP = 4212, 4222
PDG_ROOTINO = 0
PDG_HADRONIC_SYSTEM = 2000000001
PDG_CLUSTER_NN, PDG_CLUSTER_NP, PDG_CLUSTER_PP = 2000000200, 2000000201, 2000000202


@dataclass(frozen=True)
class ParticleSpecies:
    pdg: int
    name: str
    mass: float          # GeV
    charge: float        # units of e
    lifetime: float = float("inf")   # seconds

    @property
    def is_stable(self) -> bool:
        return self.lifetime == float("inf")


def _entry(pdg, name, mass, charge, lifetime=float("inf")):
    return pdg, ParticleSpecies(pdg, name, mass, charge, lifetime)


_TABLE: Dict[int, ParticleSpecies] = dict([
    _entry(PDG_ROOTINO, "rootino", 0.0, 0.0),
    _entry(PDG_GAMMA, "gamma", 0.0, 0.0),
    _entry(PDG_ELECTRON, "e-", ELECTRON_MASS, -1.0),
    _entry(-PDG_ELECTRON, "e+", ELECTRON_MASS, 1.0),
    _entry(PDG_MUON, "mu-", MUON_MASS, -1.0, 2.197e-6),
    _entry(-PDG_MUON, "mu+", MUON_MASS, 1.0, 2.197e-6),
    _entry(PDG_TAU, "tau-", TAU_MASS, -1.0, 2.903e-13),
    _entry(-PDG_TAU, "tau+", TAU_MASS, 1.0, 2.903e-13),
    _entry(PDG_NUE, "nu_e", 0.0, 0.0),
    _entry(-PDG_NUE, "nu_e_bar", 0.0, 0.0),
    _entry(PDG_NUMU, "nu_mu", 0.0, 0.0),
    _entry(-PDG_NUMU, "nu_mu_bar", 0.0, 0.0),
    _entry(PDG_NUTAU, "nu_tau", 0.0, 0.0),
    _entry(-PDG_NUTAU, "nu_tau_bar", 0.0, 0.0),
    _entry(PDG_PI0, "pi0", NEUTRAL_PION_MASS, 0.0, 8.52e-17),
    _entry(PDG_PIP, "pi+", CHARGED_PION_MASS, 1.0, 2.603e-8),
    _entry(PDG_PIM, "pi-", CHARGED_PION_MASS, -1.0, 2.603e-8),
    _entry(321, "K+", 0.493677, 1.0, 1.238e-8),
    _entry(-321, "K-", 0.493677, -1.0, 1.238e-8),
    _entry(311, "K0", 0.497611, 0.0),
    _entry(-311, "K0_bar", 0.497611, 0.0),
    _entry(310, "K0_S", 0.497611, 0.0, 8.954e-11),
    _entry(130, "K0_L", 0.497611, 0.0, 5.116e-8),
    _entry(PDG_PROTON, "p", PROTON_MASS, 1.0),
    _entry(-PDG_PROTON, "p_bar", PROTON_MASS, -1.0),
    _entry(PDG_NEUTRON, "n", NEUTRON_MASS, 0.0),
    _entry(-PDG_NEUTRON, "n_bar", NEUTRON_MASS, 0.0),
    _entry(3122, "Lambda", 1.115683, 0.0, 2.632e-10),
    _entry(PDG_DELTA_PP, "Delta++", DELTA_MASS, 2.0, 5.6e-24),
    _entry(PDG_DELTA_P, "Delta+", DELTA_MASS, 1.0, 5.6e-24),
    _entry(PDG_DELTA_0, "Delta0", DELTA_MASS, 0.0, 5.6e-24),
    _entry(PDG_DELTA_M, "Delta-", DELTA_MASS, -1.0, 5.6e-24),
    _entry(PDG_D0, "D0", 1.86484, 0.0, 4.10e-13),
    _entry(-PDG_D0, "D0_bar", 1.86484, 0.0, 4.10e-13),
    _entry(PDG_DP, "D+", 1.86966, 1.0, 1.040e-12),
    _entry(-PDG_DP, "D-", 1.86966, -1.0, 1.040e-12),
    _entry(PDG_DSP, "D_s+", 1.96835, 1.0, 5.04e-13),
    _entry(-PDG_DSP, "D_s-", 1.96835, -1.0, 5.04e-13),
    _entry(PDG_LAMBDA_CP, "Lambda_c+", 2.28646, 1.0, 2.00e-13),
    _entry(-PDG_LAMBDA_CP, "Lambda_c-", 2.28646, -1.0, 2.00e-13),
    _entry(PDG_SIGMA_CP, "Sigma_c+", 2.4529, 1.0, 2.9e-22),
    _entry(-PDG_SIGMA_CP, "Sigma_c-", 2.4529, -1.0, 2.9e-22),
    _entry(PDG_SIGMA_CPP, "Sigma_c++", 2.45397, 2.0, 3.5e-22),
    _entry(-PDG_SIGMA_CPP, "Sigma_c--", 2.45397, -2.0, 3.5e-22),
    _entry(PDG_HADRONIC_SYSTEM, "HadrSyst", 0.0, 0.0),
    _entry(PDG_CLUSTER_NN, "nn-cluster", 2.0 * NEUTRON_MASS, 0.0),
    _entry(PDG_CLUSTER_NP, "np-cluster", PROTON_MASS + NEUTRON_MASS, 1.0),
    _entry(PDG_CLUSTER_PP, "pp-cluster", 2.0 * PROTON_MASS, 2.0),
])


class PDGLibrary:
    """
    In-memory particle data lookup by PDG code.

    Nuclear codes (10LZZZAAAI) are built on demand and cached.
    """

    _cache: Dict[int, ParticleSpecies] = {}

    @classmethod
    def find(cls, pdg: int) -> Optional[ParticleSpecies]:
        if pdg in _TABLE:
            return _TABLE[pdg]
        if pdg in cls._cache:
            return cls._cache[pdg]
        if is_ion(pdg):
            Z, A = ion_z(pdg), ion_a(pdg)
            species = ParticleSpecies(pdg, f"Ion(Z={Z},A={A})", nucleus_mass(Z, A), float(Z))
            cls._cache[pdg] = species
            return species
        return None

    @classmethod
    def lookup(cls, pdg: int) -> ParticleSpecies:
        species = cls.find(pdg)
        if species is None:
            raise ValueError(f"❌ PDG code {pdg} not found in particle table")
        return species

    @classmethod
    def by_name(cls, name: str) -> ParticleSpecies:
        key = name.lower()
        for species in _TABLE.values():
            if species.name.lower() == key:
                return species
        raise ValueError(f"❌ Particle '{name}' not found in particle table")


def mass(pdg: int) -> float:
    return PDGLibrary.lookup(pdg).mass


def charge(pdg: int) -> float:
    return PDGLibrary.lookup(pdg).charge


# -------------------- PDG code helpers --------------------

def ion_pdg(Z: int, A: int) -> int:
    return 1000000000 + Z * 10000 + A * 10


def is_ion(pdg: int) -> bool:
    return pdg > 1000000000 and pdg < 2000000000


def ion_z(pdg: int) -> int:
    return (pdg // 10000) % 1000


def ion_a(pdg: int) -> int:
    return (pdg // 10) % 1000


def nucleus_mass(Z: int, A: int) -> float:
    """Nuclear mass without binding energy."""
    return Z * PROTON_MASS + (A - Z) * NEUTRON_MASS


def is_neutrino(pdg: int) -> bool:
    return pdg in (PDG_NUE, PDG_NUMU, PDG_NUTAU)


def is_anti_neutrino(pdg: int) -> bool:
    return pdg in (-PDG_NUE, -PDG_NUMU, -PDG_NUTAU)


def is_nucleon(pdg: int) -> bool:
    return pdg in (PDG_PROTON, PDG_NEUTRON)


def is_pion(pdg: int) -> bool:
    return pdg in (PDG_PI0, PDG_PIP, PDG_PIM)


def is_cluster(pdg: int) -> bool:
    return pdg in (PDG_CLUSTER_NN, PDG_CLUSTER_NP, PDG_CLUSTER_PP)


def cluster_nucleons(pdg: int) -> tuple:
    return {
        PDG_CLUSTER_NN: (PDG_NEUTRON, PDG_NEUTRON),
        PDG_CLUSTER_NP: (PDG_NEUTRON, PDG_PROTON),
        PDG_CLUSTER_PP: (PDG_PROTON, PDG_PROTON),
    }[pdg]


def switch_nucleon(pdg: int) -> int:
    return PDG_NEUTRON if pdg == PDG_PROTON else PDG_PROTON


def nucleon_from_charge(q: int) -> int:
    return PDG_PROTON if q == 1 else PDG_NEUTRON


def pion_from_charge(q: int) -> int:
    return {1: PDG_PIP, 0: PDG_PI0, -1: PDG_PIM}[q]
