"""
The event record: an append-only list of particle entries plus the
interaction summary and event-level flags.

Entries are never removed. Parent indices always point to earlier entries
and status changes follow ``_ALLOWED_TRANSITIONS``.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Iterator, List, Optional, Set

from .kinematics import FourVector
from .interaction import Interaction
from .particles import PDGLibrary

logger = logging.getLogger(__name__)


class Status(IntEnum):
    INITIAL = 0
    STABLE_FINAL = 1
    INTERMEDIATE = 2
    DECAYED = 3
    NUCLEON_TARGET = 11
    PRE_FRAGM_HADRONIC = 12
    PRE_DECAY_RESONANT = 13
    HADRON_IN_NUCLEUS = 14
    NUCLEAR_REMNANT = 15


_ALLOWED_TRANSITIONS = {
    Status.HADRON_IN_NUCLEUS: {Status.STABLE_FINAL, Status.INTERMEDIATE},
    Status.STABLE_FINAL: {Status.DECAYED},
    Status.PRE_DECAY_RESONANT: {Status.DECAYED},
    Status.PRE_FRAGM_HADRONIC: {Status.DECAYED},
}


class EventFlag(str, Enum):
    NO_AVAILABLE_PHASE_SPACE = "no-available-phase-space"
    CASCADE_FAILED = "cascade-failed"
    HADRONIZATION_FAILED = "hadronization-failed"
    DECAY_FAILED = "decay-failed"


@dataclass
class Particle:
    pdg: int
    status: Status
    momentum: FourVector
    position: FourVector = field(default_factory=lambda: FourVector(0.0, 0.0, 0.0, 0.0))
    parent: int = -1
    daughters: List[int] = field(default_factory=list)
    distance_in_nucleus: float = 0.0
    formation_zone_pending: bool = False

    @property
    def mass(self) -> float:
        species = PDGLibrary.find(self.pdg)
        return species.mass if species is not None else self.momentum.mass

    @property
    def kinetic_energy(self) -> float:
        return self.momentum.E - self.mass

    @property
    def name(self) -> str:
        species = PDGLibrary.find(self.pdg)
        return species.name if species is not None else str(self.pdg)

    def __repr__(self) -> str:
        return (f"Particle({self.name}, status={self.status.name}, parent={self.parent}, "
                f"p4={self.momentum})")


class EventRecord:
    def __init__(self, interaction: Interaction):
        self.interaction = interaction
        self._entries: List[Particle] = []
        self.flags: Set[EventFlag] = set()
        self.diff_xsec = 0.0
        self.weight = 1.0

    # -------------------- Entries --------------------

    def append_particle(self, pdg: int, status: Status, parent: int = -1,
                        momentum: Optional[FourVector] = None,
                        position: Optional[FourVector] = None,
                        formation_zone_pending: bool = False) -> int:
        """Append an entry and return its index."""
        index = len(self._entries)
        if parent >= index:
            raise ValueError(f"Parent index {parent} does not precede new entry {index}")
        particle = Particle(
            pdg=pdg,
            status=Status(status),
            momentum=momentum.copy() if momentum is not None else FourVector(0.0, 0.0, 0.0, 0.0),
            position=position.copy() if position is not None else FourVector(0.0, 0.0, 0.0, 0.0),
            parent=parent,
            formation_zone_pending=formation_zone_pending,
        )
        self._entries.append(particle)
        if parent >= 0:
            self._entries[parent].daughters.append(index)
        logger.debug(f"Appended [{index}] {particle.name} status={particle.status.name} parent={parent}")
        return index

    def set_status(self, index: int, status: Status):
        particle = self._entries[index]
        status = Status(status)
        if status == particle.status:
            return
        allowed = _ALLOWED_TRANSITIONS.get(particle.status, set())
        if status not in allowed:
            raise ValueError(
                f"Illegal status change for [{index}] {particle.name}: "
                f"{particle.status.name} -> {status.name}"
            )
        particle.status = status

    def find_particle(self, status: Status, pdg: Optional[int] = None, start: int = 0) -> Optional[int]:
        """Index of the first entry with the given status (and PDG code), or None."""
        for i in range(start, len(self._entries)):
            p = self._entries[i]
            if p.status == status and (pdg is None or p.pdg == pdg):
                return i
        return None

    def indices_with_status(self, status: Status) -> List[int]:
        return [i for i, p in enumerate(self._entries) if p.status == status]

    # -------------------- Named entries --------------------

    def probe_index(self) -> Optional[int]:
        return 0 if self._entries and self._entries[0].status == Status.INITIAL else None

    def hit_nucleon_index(self) -> Optional[int]:
        hit = self.interaction.target.hit_nucleon_pdg
        if hit is None:
            return None
        idx = self.find_particle(Status.NUCLEON_TARGET, hit)
        if idx is None:
            idx = self.find_particle(Status.INITIAL, hit, start=1)
        return idx

    def target_index(self) -> Optional[int]:
        if len(self._entries) > 1 and self._entries[1].status == Status.INITIAL:
            return 1
        return None

    def remnant_index(self) -> Optional[int]:
        return self.find_particle(Status.NUCLEAR_REMNANT)

    def final_state_primary_lepton_index(self) -> Optional[int]:
        pdg = self.interaction.fs_primary_lepton_pdg()
        for i, p in enumerate(self._entries):
            if p.pdg == pdg and p.parent == 0:
                return i
        return None

    # -------------------- Flags --------------------

    def set_flag(self, flag: EventFlag):
        self.flags.add(EventFlag(flag))

    def has_flag(self, flag: EventFlag) -> bool:
        return EventFlag(flag) in self.flags

    # -------------------- Views --------------------

    def final_state(self) -> List[Particle]:
        """Stable final-state entries plus the nuclear remnant."""
        return [p for p in self._entries if p.status in (Status.STABLE_FINAL, Status.NUCLEAR_REMNANT)]

    def initial_state(self) -> List[Particle]:
        return [p for p in self._entries if p.status == Status.INITIAL]

    def __getitem__(self, index: int) -> Particle:
        return self._entries[index]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Particle]:
        return iter(self._entries)

    def summary(self) -> str:
        lines = [f"EventRecord: {self.interaction.as_string()}"]
        for i, p in enumerate(self._entries):
            fv = p.momentum
            lines.append(
                f"  [{i:3d}] {p.name:<14s} {p.status.name:<20s} parent={p.parent:3d} "
                f"E={fv.E:9.5f} px={fv.px:9.5f} py={fv.py:9.5f} pz={fv.pz:9.5f}"
            )
        if self.flags:
            lines.append(f"  flags: {sorted(f.value for f in self.flags)}")
        return "\n".join(lines)
