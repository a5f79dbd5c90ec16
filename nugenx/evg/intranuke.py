"""
Intranuclear cascade.

Hadrons produced inside the nucleus (status HADRON_IN_NUCLEUS) are tracked
one at a time from a queue:

    InNucleus -> step -> Escaped
                      -> Interact(absorption | charge exchange | elastic | inelastic)
                         -> products re-enter the queue

Per hadron:

1. hadrons that cannot rescatter, or whose kinetic energy is below the
   cutoff, are released as final state
2. fresh hadrons first travel their formation zone without interacting
3. a step length is drawn from exp(-s / lambda), lambda = 1 / (rho sigma)
4. outside the tracking radius the hadron escapes
5. inside, a fate is drawn from the partial cross sections and its
   products replace the hadron

Struck nucleons are taken at rest from the nuclear remnant entry, whose
four-momentum and PDG code are updated, so the record keeps conserving
four-momentum. In transparent mode every hadron escapes at step 3.

Lengths in fm, energies in GeV, cross sections in mb.
"""

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from .base import EventRecordVisitor
from .. import particles as pdglib
from ..config import (
    DEFAULT_FORMATION_CT0, DEFAULT_FORMATION_K, DEFAULT_R0, DEFAULT_DENSITY_PROFILE, DEFAULT_DIFFUSENESS,
    DEFAULT_KINETIC_CUTOFF, DEFAULT_MAX_FATE_ATTEMPTS, DEFAULT_MAX_CASCADE_STEPS,
)
from ..constants import MB_TO_FM2, TINY_NUMBER
from ..event_record import EventFlag, EventRecord, Status
from ..exceptions import CascadeExhausted, ConfigurationError
from ..hadron_xsec import FATE_ORDER, HadronFate
from ..kinematics import FourVector
from ..nuclear import NuclearDensityProfile, make_density_profile
from ..phase_space import generate_n_body_decay

logger = logging.getLogger(__name__)

DENSITY_PROFILES = ("uniform", "woods-saxon")


@dataclass
class CascadeStats:
    events: int = 0
    steps: int = 0         # collision sites inside the nucleus
    escapes: int = 0
    fates: Dict[HadronFate, int] = field(default_factory=lambda: {fate: 0 for fate in FATE_ORDER})

    def record_fate(self, fate: HadronFate):
        self.fates[fate] += 1

    def reset(self):
        self.events = self.steps = self.escapes = 0
        self.fates = {fate: 0 for fate in FATE_ORDER}

    def as_dict(self) -> Dict[str, int]:
        out = {"events": self.events, "steps": self.steps, "escapes": self.escapes}
        out.update({fate.value: n for fate, n in self.fates.items()})
        return out


class _NoOutcome(Exception):
    """The drawn fate has no allowed outcome; draw again."""


class IntranuclearCascade(EventRecordVisitor):
    name = "intranuclear-cascade"

    def load_config(self):
        cfg = self.config
        self.transparent = cfg.get_parameter("transparent", False)
        self.ct0 = cfg.get_parameter("ct0", DEFAULT_FORMATION_CT0)
        self.formation_k = cfg.get_parameter("formation-zone-k", DEFAULT_FORMATION_K)
        self.r0 = cfg.get_parameter("r0", DEFAULT_R0)
        self.profile_kind = cfg.get_parameter("density-profile", DEFAULT_DENSITY_PROFILE)
        self.diffuseness = cfg.get_parameter("diffuseness", DEFAULT_DIFFUSENESS)
        self.kinetic_cutoff = cfg.get_parameter("kinetic-energy-cutoff", DEFAULT_KINETIC_CUTOFF)
        self.max_fate_attempts = cfg.get_parameter("max-fate-attempts", DEFAULT_MAX_FATE_ATTEMPTS)
        self.max_cascade_steps = cfg.get_parameter("max-cascade-steps", DEFAULT_MAX_CASCADE_STEPS)
        self.hadron_xsec = cfg.get_sub_algorithm("hadron-xsec-model")

        if self.profile_kind not in DENSITY_PROFILES:
            raise ConfigurationError(
                f"{cfg.name}: density-profile must be one of {DENSITY_PROFILES}, got '{self.profile_kind}'"
            )
        if self.ct0 < 0.0 or self.formation_k < 0.0:
            raise ConfigurationError(f"{cfg.name}: formation zone parameters must be non-negative")
        if self.max_fate_attempts < 1 or self.max_cascade_steps < 1:
            raise ConfigurationError(f"{cfg.name}: attempt limits must be >= 1")

        self.stats = CascadeStats()
        self._profiles: Dict[int, NuclearDensityProfile] = {}
        self._event_steps = 0

    def profile_for(self, A: int) -> NuclearDensityProfile:
        profile = self._profiles.get(A)
        if profile is None:
            profile = self._profiles[A] = make_density_profile(self.profile_kind, A, self.r0, self.diffuseness)
        return profile

    # -------------------- Event loop --------------------

    def process_event_record(self, record, rng=None):
        rng = rng or np.random.default_rng()
        target = record.interaction.target
        if not target.is_nucleus:
            return

        tracked = record.indices_with_status(Status.HADRON_IN_NUCLEUS)
        if not tracked:
            return

        profile = self.profile_for(target.A)
        vertex = profile.sample_position(rng)
        for index in tracked:
            record[index].position = FourVector(0.0, float(vertex[0]), float(vertex[1]), float(vertex[2]))

        self.stats.events += 1
        self._event_steps = 0
        queue = deque(tracked)
        while queue:
            index = queue.popleft()
            queue.extend(self.transport_hadron(record, index, profile, rng))

        logger.debug(f"Cascade finished after {self._event_steps} steps for {record.interaction.as_string()}")

    def transport_hadron(self, record: EventRecord, index: int, profile: NuclearDensityProfile,
                         rng: np.random.Generator) -> List[int]:
        """Track one hadron until it escapes or interacts. Returns indices of new hadrons to track."""
        particle = record[index]
        if not self.hadron_xsec.can_rescatter(particle.pdg) or particle.kinetic_energy < self.kinetic_cutoff:
            record.set_status(index, Status.STABLE_FINAL)
            return []

        p3 = particle.momentum.p
        p_mag = float(np.linalg.norm(p3))
        if p_mag <= 0.0:
            record.set_status(index, Status.STABLE_FINAL)
            return []
        direction = p3 / p_mag
        position = np.array([particle.position.px, particle.position.py, particle.position.pz])

        if particle.formation_zone_pending:
            fz = self.formation_zone(particle)
            position = position + fz * direction
            particle.distance_in_nucleus += fz
            particle.formation_zone_pending = False

        while True:
            if not profile.is_inside(position):
                return self._escape(record, index, position)
            if self.transparent:
                exit_distance = _distance_to_sphere(position, direction, profile.tracking_radius)
                particle.distance_in_nucleus += exit_distance
                return self._escape(record, index, position + exit_distance * direction)

            self._count_step(record)
            mfp = self.mean_free_path(particle.pdg, particle.kinetic_energy, profile, position)
            if not math.isfinite(mfp):
                exit_distance = _distance_to_sphere(position, direction, profile.tracking_radius)
                particle.distance_in_nucleus += exit_distance
                return self._escape(record, index, position + exit_distance * direction)

            step = -mfp * math.log(max(TINY_NUMBER, 1.0 - rng.random()))
            position = position + step * direction
            particle.distance_in_nucleus += step
            if not profile.is_inside(position):
                return self._escape(record, index, position)

            self.stats.steps += 1
            fate = self.hadron_fate(record, index, rng)
            if fate is None:
                continue
            particle.position = FourVector(0.0, *(float(c) for c in position))
            return self.sim_hadronic_interaction(record, index, fate, rng)

    def _escape(self, record, index, position) -> List[int]:
        record[index].position = FourVector(0.0, *(float(c) for c in position))
        record.set_status(index, Status.STABLE_FINAL)
        self.stats.escapes += 1
        return []

    def _count_step(self, record):
        self._event_steps += 1
        if self._event_steps > self.max_cascade_steps:
            record.set_flag(EventFlag.CASCADE_FAILED)
            raise CascadeExhausted(
                f"Cascade exceeded {self.max_cascade_steps} steps for {record.interaction.as_string()}",
                attempts=self.max_cascade_steps,
            )

    # -------------------- Physics hooks --------------------

    def formation_zone(self, particle) -> float:
        """ct0 * p/m * m^2 / (m^2 + K pT^2), pT relative to the probe direction."""
        m = particle.mass
        if m <= 0.0 or self.ct0 == 0.0:
            return 0.0
        p = particle.momentum.magnitude
        pt = particle.momentum.pt
        return self.ct0 * (p / m) * m * m / (m * m + self.formation_k * pt * pt)

    def mean_free_path(self, pdg: int, kinetic_energy: float, profile: NuclearDensityProfile,
                       position: np.ndarray) -> float:
        rho = profile.density(float(np.linalg.norm(position)))
        sigma = self.hadron_xsec.total(pdg, kinetic_energy)
        if rho <= 0.0 or sigma <= 0.0:
            return math.inf
        return 1.0 / (rho * sigma * MB_TO_FM2)

    def hadron_fate(self, record: EventRecord, index: int, rng: np.random.Generator) -> Optional[HadronFate]:
        """Fate drawn from the partial cross sections, or None for no interaction."""
        particle = record[index]
        partial = self.hadron_xsec.partial_cross_sections(particle.pdg, particle.kinetic_energy)
        total = sum(partial.values())
        if total <= 0.0:
            return None
        r = rng.uniform(0.0, total)
        cumulative = 0.0
        for fate in FATE_ORDER:
            cumulative += partial[fate]
            if r < cumulative:
                return fate
        return FATE_ORDER[-1]

    def sim_hadronic_interaction(self, record: EventRecord, index: int, fate: HadronFate,
                                 rng: np.random.Generator) -> List[int]:
        """
        Apply `fate` to hadron `index`. A fate with no allowed outcome is
        redrawn, up to max-fate-attempts.
        """
        for attempt in range(1, self.max_fate_attempts + 1):
            try:
                struck, products, momenta = self._outcome_kinematics(record, index, fate, rng)
            except _NoOutcome as e:
                logger.debug(f"No outcome for {fate.value} on [{index}] (attempt {attempt}): {e}")
                fate = self.hadron_fate(record, index, rng) or fate
                continue
            return self._apply_outcome(record, index, fate, struck, products, momenta)

        record.set_flag(EventFlag.CASCADE_FAILED)
        raise CascadeExhausted(
            f"No allowed hadron-nucleus outcome for [{index}] {record[index].name} "
            f"after {self.max_fate_attempts} attempts",
            attempts=self.max_fate_attempts,
        )

    # -------------------- Outcomes --------------------

    def _available_nucleons(self, record) -> Tuple[int, int]:
        remnant = record.remnant_index()
        if remnant is None:
            target = record.interaction.target
            return target.Z, target.N
        pdg = record[remnant].pdg
        if pdglib.is_ion(pdg):
            Z, A = pdglib.ion_z(pdg), pdglib.ion_a(pdg)
            return Z, A - Z
        if pdg == pdglib.PDG_PROTON:
            return 1, 0
        if pdg == pdglib.PDG_NEUTRON:
            return 0, 1
        return 0, 0

    def _draw_nucleon(self, n_p: int, n_n: int, rng, required: Optional[int] = None) -> int:
        if required is not None:
            available = n_p if required == pdglib.PDG_PROTON else n_n
            if available < 1:
                raise _NoOutcome(f"no {required} left in the nucleus")
            return required
        if n_p + n_n < 1:
            raise _NoOutcome("nucleus has no nucleons left")
        return pdglib.PDG_PROTON if rng.random() < n_p / (n_p + n_n) else pdglib.PDG_NEUTRON

    def _outcome(self, record, index, fate, rng):
        """(struck nucleon PDG codes, product PDG codes)"""
        hadron = record[index].pdg
        n_p, n_n = self._available_nucleons(record)
        q_h = int(pdglib.charge(hadron))

        if fate == HadronFate.ELASTIC:
            nucleon = self._draw_nucleon(n_p, n_n, rng)
            return [nucleon], [hadron, nucleon]

        if fate == HadronFate.CHARGE_EXCHANGE:
            if pdglib.is_pion(hadron):
                if hadron == pdglib.PDG_PIP:
                    nucleon = self._draw_nucleon(n_p, n_n, rng, pdglib.PDG_NEUTRON)
                elif hadron == pdglib.PDG_PIM:
                    nucleon = self._draw_nucleon(n_p, n_n, rng, pdglib.PDG_PROTON)
                else:
                    nucleon = self._draw_nucleon(n_p, n_n, rng)
                q_n = int(pdglib.charge(nucleon))
                if hadron == pdglib.PDG_PI0:
                    new_pion = pdglib.PDG_PIP if q_n == 1 else pdglib.PDG_PIM
                else:
                    new_pion = pdglib.PDG_PI0
                new_nucleon = pdglib.nucleon_from_charge(q_h + q_n - int(pdglib.charge(new_pion)))
                return [nucleon], [new_pion, new_nucleon]
            nucleon = self._draw_nucleon(n_p, n_n, rng, pdglib.switch_nucleon(hadron))
            return [nucleon], [nucleon, hadron]

        if fate == HadronFate.ABSORPTION:
            if not pdglib.is_pion(hadron):
                raise _NoOutcome(f"absorption of {hadron} is not modelled")
            first = self._draw_nucleon(n_p, n_n, rng)
            n_p2 = n_p - (first == pdglib.PDG_PROTON)
            n_n2 = n_n - (first == pdglib.PDG_NEUTRON)
            second = self._draw_nucleon(n_p2, n_n2, rng)
            total_charge = q_h + int(pdglib.charge(first)) + int(pdglib.charge(second))
            if not 0 <= total_charge <= 2:
                raise _NoOutcome(f"pair charge {total_charge} cannot form two nucleons")
            products = {0: [pdglib.PDG_NEUTRON, pdglib.PDG_NEUTRON],
                        1: [pdglib.PDG_PROTON, pdglib.PDG_NEUTRON],
                        2: [pdglib.PDG_PROTON, pdglib.PDG_PROTON]}[total_charge]
            return [first, second], products

        # inelastic: single pi0 production
        nucleon = self._draw_nucleon(n_p, n_n, rng)
        return [nucleon], [hadron, nucleon, pdglib.PDG_PI0]

    def _outcome_kinematics(self, record, index, fate, rng):
        struck, products = self._outcome(record, index, fate, rng)
        total = record[index].momentum
        for n in struck:
            total = total + FourVector(pdglib.mass(n), 0.0, 0.0, 0.0)
        masses = [pdglib.mass(p) for p in products]
        if total.mass <= sum(masses):
            raise _NoOutcome(f"W={total.mass:.4f} below product masses {sum(masses):.4f}")
        momenta, _ = generate_n_body_decay(total, masses, rng)
        return struck, products, momenta

    def _apply_outcome(self, record, index, fate, struck, products, momenta) -> List[int]:
        particle = record[index]
        self._remove_from_remnant(record, struck)
        record.set_status(index, Status.INTERMEDIATE)
        new = [record.append_particle(pdg, Status.HADRON_IN_NUCLEUS, index, p4, particle.position)
               for pdg, p4 in zip(products, momenta)]
        self.stats.record_fate(fate)
        logger.debug(f"[{index}] {particle.name} {fate.value} -> {new}")
        return new

    def _remove_from_remnant(self, record, struck):
        remnant = record.remnant_index()
        if remnant is None:
            return
        entry = record[remnant]
        n_p, n_n = self._available_nucleons(record)
        for pdg in struck:
            entry.momentum = entry.momentum - FourVector(pdglib.mass(pdg), 0.0, 0.0, 0.0)
            if pdg == pdglib.PDG_PROTON:
                n_p -= 1
            else:
                n_n -= 1
        Z, A = n_p, n_p + n_n
        if A <= 0:
            entry.pdg = pdglib.PDG_ROOTINO
        elif A == 1:
            entry.pdg = pdglib.PDG_PROTON if Z == 1 else pdglib.PDG_NEUTRON
        else:
            entry.pdg = pdglib.ion_pdg(Z, A)


def _distance_to_sphere(position: np.ndarray, direction: np.ndarray, radius: float) -> float:
    """Distance along `direction` from `position` to the sphere surface (0 if already outside)."""
    b = float(np.dot(position, direction))
    c = float(np.dot(position, position)) - radius * radius
    if c >= 0.0:
        return 0.0
    return -b + math.sqrt(b * b - c)
