"""
Interaction summary: initial state, process information, kinematics and
exclusive final-state tags.

``InitialState`` and ``ProcessInfo`` are frozen; only ``Kinematics`` and
``ExclusiveTag`` change while an event is being sampled.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from .kinematics import FourVector
from . import particles as pdglib
from .particles import (
    PDG_PROTON, PDG_NEUTRON, PDG_CLUSTER_NP, PDG_CLUSTER_PP, PDG_CLUSTER_NN,
    PDG_DELTA_PP, PDG_DELTA_P, PDG_DELTA_0, PDG_DELTA_M,
)
from .constants import CHARGED_PION_MASS, NEUTRAL_PION_MASS


class ScatteringType(str, Enum):
    QEL = "QEL"
    DIS = "DIS"
    RES = "RES"
    COH = "COH"
    MEC = "MEC"


class InteractionType(str, Enum):
    WEAK_CC = "CC"
    WEAK_NC = "NC"
    EM = "EM"


class KineVar(str, Enum):
    X = "x"
    Y = "y"
    Q2 = "Q2"
    W = "W"
    T = "t"


# -----------------------------
# Target & initial state
# -----------------------------
@dataclass(frozen=True)
class Target:
    Z: int
    A: int
    hit_nucleon_pdg: Optional[int] = None

    def __post_init__(self):
        if self.A < 1 or self.Z < 0 or self.Z > self.A:
            raise ValueError(f"Invalid target Z={self.Z}, A={self.A}")

    @property
    def N(self) -> int:
        return self.A - self.Z

    @property
    def pdg(self) -> int:
        if self.A == 1:
            return PDG_PROTON if self.Z == 1 else PDG_NEUTRON
        return pdglib.ion_pdg(self.Z, self.A)

    @property
    def is_nucleus(self) -> bool:
        return self.A > 1

    @property
    def is_free_nucleon(self) -> bool:
        return self.A == 1

    @property
    def mass(self) -> float:
        return pdglib.nucleus_mass(self.Z, self.A)

    @property
    def hit_nucleon_mass(self) -> float:
        if self.hit_nucleon_pdg is None:
            return 0.0
        return pdglib.mass(self.hit_nucleon_pdg)

    def with_hit_nucleon(self, pdg: int) -> "Target":
        return Target(self.Z, self.A, pdg)

    @classmethod
    def free_nucleon(cls, pdg: int) -> "Target":
        return cls(1 if pdg == PDG_PROTON else 0, 1, pdg)


@dataclass(frozen=True)
class InitialState:
    probe_pdg: int
    probe_energy: float
    target: Target

    @property
    def probe_p4(self) -> FourVector:
        # probe travels along +z
        return FourVector(self.probe_energy, 0.0, 0.0, self.probe_energy)

    @property
    def hit_nucleon_p4(self) -> FourVector:
        # struck nucleon (or nucleon cluster) at rest
        return FourVector(self.target.hit_nucleon_mass, 0.0, 0.0, 0.0)

    @property
    def target_p4(self) -> FourVector:
        return FourVector(self.target.mass, 0.0, 0.0, 0.0)

    def with_energy(self, energy: float) -> "InitialState":
        return InitialState(self.probe_pdg, energy, self.target)


@dataclass(frozen=True)
class ProcessInfo:
    scattering: ScatteringType
    interaction_type: InteractionType

    @property
    def is_cc(self) -> bool:
        return self.interaction_type == InteractionType.WEAK_CC

    @property
    def is_nc(self) -> bool:
        return self.interaction_type == InteractionType.WEAK_NC

    @property
    def is_weak(self) -> bool:
        return self.interaction_type in (InteractionType.WEAK_CC, InteractionType.WEAK_NC)

    def __str__(self) -> str:
        return f"{self.scattering.value}-{self.interaction_type.value}"


# -----------------------------
# Kinematics
# -----------------------------
class Kinematics:
    """
    Bag of kinematic variables.

    Running values are written while candidates are tried; ``select()`` copies
    them into the selected set once a candidate is accepted.
    """

    def __init__(self):
        self._running: Dict[KineVar, float] = {}
        self._selected: Dict[KineVar, float] = {}

    def set(self, var: KineVar, value: float):
        self._running[KineVar(var)] = float(value)

    def get(self, var: KineVar, selected: bool = False) -> float:
        store = self._selected if selected else self._running
        try:
            return store[KineVar(var)]
        except KeyError:
            raise KeyError(f"Kinematic variable {KineVar(var).value} is not set") from None

    def has(self, var: KineVar, selected: bool = False) -> bool:
        store = self._selected if selected else self._running
        return KineVar(var) in store

    def select(self):
        self._selected = dict(self._running)

    def clear_running(self):
        self._running.clear()

    def reset(self):
        self._running.clear()
        self._selected.clear()

    @property
    def selected(self) -> Dict[str, float]:
        return {k.value: v for k, v in self._selected.items()}

    # convenience accessors for running values
    @property
    def x(self) -> float:
        return self.get(KineVar.X)

    @property
    def y(self) -> float:
        return self.get(KineVar.Y)

    @property
    def Q2(self) -> float:
        return self.get(KineVar.Q2)

    @property
    def W(self) -> float:
        return self.get(KineVar.W)

    def __repr__(self) -> str:
        vals = ", ".join(f"{k.value}={v:.5g}" for k, v in self._running.items())
        return f"Kinematics({vals})"


@dataclass
class ExclusiveTag:
    charm_pdg: Optional[int] = None
    inclusive_charm: bool = False
    resonance_pdg: Optional[int] = None

    @property
    def is_charm(self) -> bool:
        return self.inclusive_charm or self.charm_pdg is not None

    def key(self) -> str:
        parts = []
        if self.inclusive_charm:
            parts.append("charm:incl")
        elif self.charm_pdg is not None:
            parts.append(f"charm:{self.charm_pdg}")
        if self.resonance_pdg is not None:
            parts.append(f"res:{self.resonance_pdg}")
        return ";".join(parts)


# -----------------------------
# Interaction
# -----------------------------
@dataclass
class Interaction:
    init_state: InitialState
    proc_info: ProcessInfo
    kine: Kinematics = field(default_factory=Kinematics)
    excl_tag: ExclusiveTag = field(default_factory=ExclusiveTag)

    # -------------------- Derived quantities --------------------

    @property
    def probe_pdg(self) -> int:
        return self.init_state.probe_pdg

    @property
    def probe_energy(self) -> float:
        return self.init_state.probe_energy

    @property
    def target(self) -> Target:
        return self.init_state.target

    @property
    def channel(self) -> str:
        scattering = self.proc_info.scattering
        if scattering == ScatteringType.DIS and self.excl_tag.is_charm:
            return "DIS_CHARM"
        if scattering == ScatteringType.QEL and self.excl_tag.charm_pdg is not None:
            return "QEL_CHARM"
        return scattering.value

    def fs_primary_lepton_pdg(self) -> int:
        probe = self.probe_pdg
        if self.proc_info.is_nc:
            return probe
        if self.proc_info.is_cc:
            # nu_l -> l-, nu_l_bar -> l+
            return probe - 1 if probe > 0 else probe + 1
        raise ValueError(f"No primary lepton rule for {self.proc_info}")

    def fs_primary_lepton_mass(self) -> float:
        return pdglib.mass(self.fs_primary_lepton_pdg())

    def hadronic_charge_change(self) -> int:
        """Charge transferred to the hadronic system."""
        if not self.proc_info.is_cc:
            return 0
        return 1 if self.probe_pdg > 0 else -1

    def recoil_nucleon_pdg(self) -> int:
        hit = self.target.hit_nucleon_pdg
        if hit is None or not pdglib.is_nucleon(hit):
            raise ValueError("Recoil nucleon requires a hit nucleon")
        q = int(pdglib.charge(hit)) + self.hadronic_charge_change()
        if q not in (0, 1):
            raise ValueError(f"Charge {q} has no recoil nucleon")
        return pdglib.nucleon_from_charge(q)

    def recoil_baryon_pdg(self) -> int:
        """Recoil of a two-body QEL final state: the tagged charm baryon or the nucleon."""
        if self.excl_tag.charm_pdg is not None:
            return self.excl_tag.charm_pdg
        return self.recoil_nucleon_pdg()

    def recoil_cluster_pdg(self) -> int:
        hit = self.target.hit_nucleon_pdg
        q = int(pdglib.charge(hit)) + self.hadronic_charge_change()
        return {0: PDG_CLUSTER_NN, 1: PDG_CLUSTER_NP, 2: PDG_CLUSTER_PP}[q]

    def energy_threshold(self) -> float:
        """Minimum probe energy (lab, nucleon at rest) for this process."""
        M = self.target.hit_nucleon_mass
        ml = self.fs_primary_lepton_mass()
        scattering = self.proc_info.scattering
        if scattering == ScatteringType.QEL:
            m_final = pdglib.mass(self.recoil_baryon_pdg())
        elif scattering == ScatteringType.MEC:
            m_final = pdglib.mass(self.recoil_cluster_pdg())
        elif scattering == ScatteringType.COH:
            m_pi = NEUTRAL_PION_MASS if self.proc_info.is_nc else CHARGED_PION_MASS
            return ml + m_pi
        else:
            m_final = M + CHARGED_PION_MASS
            if self.excl_tag.is_charm:
                m_final = M + pdglib.mass(pdglib.PDG_D0)
        smin = (ml + m_final) ** 2
        return max(0.0, (smin - M * M) / (2.0 * M))

    def is_above_threshold(self) -> bool:
        return self.probe_energy > self.energy_threshold()

    def fingerprint(self) -> str:
        """Key identifying the channel for the max cross-section cache."""
        tgt = self.target
        parts = [
            f"nu:{self.probe_pdg}",
            f"tgt:{tgt.pdg}",
            f"N:{tgt.hit_nucleon_pdg}",
            f"proc:{self.proc_info}",
        ]
        tag = self.excl_tag.key()
        if tag:
            parts.append(tag)
        return ";".join(parts)

    def as_string(self) -> str:
        return f"{self.fingerprint()};E={self.probe_energy:.4f}"

    def fresh_copy(self) -> "Interaction":
        """Same initial state and process, cleared kinematics."""
        tag = ExclusiveTag(self.excl_tag.charm_pdg, self.excl_tag.inclusive_charm,
                           self.excl_tag.resonance_pdg)
        return Interaction(self.init_state, self.proc_info, Kinematics(), tag)

    # -------------------- Named constructors --------------------

    @classmethod
    def _make(cls, scattering, itype, target, hit_nucleon, probe, energy, **tag):
        tgt = target.with_hit_nucleon(hit_nucleon)
        init = InitialState(probe, float(energy), tgt)
        return cls(init, ProcessInfo(scattering, itype), Kinematics(), ExclusiveTag(**tag))

    @classmethod
    def qel_cc(cls, target: Target, hit_nucleon: int, probe: int, energy: float) -> "Interaction":
        return cls._make(ScatteringType.QEL, InteractionType.WEAK_CC, target, hit_nucleon, probe, energy)

    @classmethod
    def qel_nc(cls, target: Target, hit_nucleon: int, probe: int, energy: float) -> "Interaction":
        return cls._make(ScatteringType.QEL, InteractionType.WEAK_NC, target, hit_nucleon, probe, energy)

    @classmethod
    def qel_charm_cc(cls, target: Target, hit_nucleon: int, probe: int, energy: float,
                     charm_pdg: int) -> "Interaction":
        return cls._make(ScatteringType.QEL, InteractionType.WEAK_CC, target, hit_nucleon, probe, energy,
                         charm_pdg=charm_pdg)

    @classmethod
    def dis_cc(cls, target: Target, hit_nucleon: int, probe: int, energy: float) -> "Interaction":
        return cls._make(ScatteringType.DIS, InteractionType.WEAK_CC, target, hit_nucleon, probe, energy)

    @classmethod
    def dis_nc(cls, target: Target, hit_nucleon: int, probe: int, energy: float) -> "Interaction":
        return cls._make(ScatteringType.DIS, InteractionType.WEAK_NC, target, hit_nucleon, probe, energy)

    @classmethod
    def charm_dis_cc(cls, target: Target, hit_nucleon: int, probe: int, energy: float) -> "Interaction":
        return cls._make(ScatteringType.DIS, InteractionType.WEAK_CC, target, hit_nucleon, probe, energy,
                         inclusive_charm=True)

    @classmethod
    def res_cc(cls, target: Target, hit_nucleon: int, probe: int, energy: float) -> "Interaction":
        interaction = cls._make(ScatteringType.RES, InteractionType.WEAK_CC, target, hit_nucleon, probe, energy)
        interaction.excl_tag.resonance_pdg = delta_for_charge(interaction)
        return interaction

    @classmethod
    def res_nc(cls, target: Target, hit_nucleon: int, probe: int, energy: float) -> "Interaction":
        interaction = cls._make(ScatteringType.RES, InteractionType.WEAK_NC, target, hit_nucleon, probe, energy)
        interaction.excl_tag.resonance_pdg = delta_for_charge(interaction)
        return interaction

    @classmethod
    def coh_cc(cls, target: Target, probe: int, energy: float) -> "Interaction":
        return cls._make(ScatteringType.COH, InteractionType.WEAK_CC, target, None, probe, energy)

    @classmethod
    def coh_nc(cls, target: Target, probe: int, energy: float) -> "Interaction":
        return cls._make(ScatteringType.COH, InteractionType.WEAK_NC, target, None, probe, energy)

    @classmethod
    def mec_cc(cls, target: Target, probe: int, energy: float, cluster: int = PDG_CLUSTER_NP) -> "Interaction":
        return cls._make(ScatteringType.MEC, InteractionType.WEAK_CC, target, cluster, probe, energy)

    def __repr__(self) -> str:
        return f"Interaction({self.as_string()}, {self.kine!r})"


def delta_for_charge(interaction: Interaction) -> int:
    hit = interaction.target.hit_nucleon_pdg
    q = int(pdglib.charge(hit)) + interaction.hadronic_charge_change()
    return {2: PDG_DELTA_PP, 1: PDG_DELTA_P, 0: PDG_DELTA_0, -1: PDG_DELTA_M}[q]
