"""
Hadronic system generators.

Each stage adds the hadrons produced at the primary vertex. On nuclear
targets they are written as HADRON_IN_NUCLEUS (for the cascade to
transport) and the spectator nucleus is added as NUCLEAR_REMNANT; on free
nucleons they are final-state particles straight away.

Four-momentum bookkeeping:

    q        = probe - primary lepton
    hadrons  = hit nucleon (or cluster) + q
    remnant  = target - hit nucleon (or cluster)
"""

import logging
import math
from abc import abstractmethod
from typing import Optional

import numpy as np

from .base import EventRecordVisitor
from .. import particles as pdglib
from ..constants import NUCLEAR_R0, HBARC, CHARGED_PION_MASS, NEUTRAL_PION_MASS
from ..event_record import EventFlag, EventRecord, Status
from ..exceptions import HadronizationFailure, KinematicsExhausted
from ..interaction import KineVar
from ..kinematics import FourVector, rotate_uz, two_body_momentum
from ..phase_space import generate_n_body_decay

logger = logging.getLogger(__name__)


# -----------------------------
# Shared helpers
# -----------------------------
def momentum_transfer(record: EventRecord) -> FourVector:
    lepton = record.final_state_primary_lepton_index()
    if lepton is None:
        raise ValueError("Primary lepton must be generated before the hadronic system")
    return record[record.probe_index()].momentum - record[lepton].momentum


def primary_hadron_status(record: EventRecord) -> Status:
    return Status.HADRON_IN_NUCLEUS if record.interaction.target.is_nucleus else Status.STABLE_FINAL


def hit_index(record: EventRecord) -> int:
    index = record.hit_nucleon_index()
    if index is None:
        raise ValueError(f"No hit nucleon in record for {record.interaction.as_string()}")
    return index


def add_nuclear_remnant(record: EventRecord) -> Optional[int]:
    """Spectator nucleus left after removing the hit nucleon or cluster."""
    target = record.interaction.target
    if not target.is_nucleus or record.remnant_index() is not None:
        return None
    hit = target.hit_nucleon_pdg
    constituents = pdglib.cluster_nucleons(hit) if pdglib.is_cluster(hit) else (hit,)
    Z = target.Z - sum(1 for n in constituents if n == pdglib.PDG_PROTON)
    A = target.A - len(constituents)
    if A <= 0:
        return None
    if A == 1:
        pdg = pdglib.PDG_PROTON if Z == 1 else pdglib.PDG_NEUTRON
    else:
        pdg = pdglib.ion_pdg(Z, A)

    p4 = record[record.target_index()].momentum - record[hit_index(record)].momentum
    return record.append_particle(pdg, Status.NUCLEAR_REMNANT, record.target_index(), p4)


class HadronicSystemGenerator(EventRecordVisitor):
    """Common driver: hadrons first, then the remnant."""

    def process_event_record(self, record, rng=None):
        rng = rng or np.random.default_rng()
        self.add_hadrons(record, rng)
        add_nuclear_remnant(record)

    @abstractmethod
    def add_hadrons(self, record: EventRecord, rng: np.random.Generator):
        """Append the primary-vertex hadrons to `record`."""


# -----------------------------
# QEL
# -----------------------------
class QELHadronicSystemGenerator(HadronicSystemGenerator):
    name = "qel-hadronic-system"

    def add_hadrons(self, record, rng):
        interaction = record.interaction
        hit = hit_index(record)
        p4 = record[hit].momentum + momentum_transfer(record)
        record.append_particle(interaction.recoil_baryon_pdg(), primary_hadron_status(record), hit, p4,
                               formation_zone_pending=True)


# -----------------------------
# DIS
# -----------------------------
class DISHadronicSystemGenerator(HadronicSystemGenerator):
    name = "dis-hadronic-system"

    def load_config(self):
        self.hadronizer = self.config.get_sub_algorithm("hadronization-model")

    def add_hadrons(self, record, rng):
        interaction = record.interaction
        hit = hit_index(record)
        p4 = record[hit].momentum + momentum_transfer(record)
        blob = record.append_particle(pdglib.PDG_HADRONIC_SYSTEM, Status.PRE_FRAGM_HADRONIC, hit, p4)

        hadrons = self.hadronizer.hadronize(interaction, p4, rng)
        if not hadrons:
            record.set_flag(EventFlag.HADRONIZATION_FAILED)
            raise HadronizationFailure(f"Could not hadronize W={p4.mass:.4f} for {interaction.as_string()}")

        status = primary_hadron_status(record)
        for pdg, momentum in hadrons:
            record.append_particle(pdg, status, blob, momentum, formation_zone_pending=True)
        record.set_status(blob, Status.DECAYED)
        logger.debug(f"DIS hadronic system W={p4.mass:.4f} -> {[pdg for pdg, _ in hadrons]}")


# -----------------------------
# Charm DIS
# -----------------------------
# (E_max, fraction D0, fraction D+, fraction Ds+); Lambda_c+ takes the rest
CHARM_FRACTIONS = (
    (20.0, 0.32, 0.05, 0.18),
    (40.0, 0.50, 0.10, 0.22),
    (math.inf, 0.64, 0.22, 0.09),
)


def peterson(z: float, epsilon: float) -> float:
    if z <= 0.0 or z >= 1.0:
        return 0.0
    denom = z * (1.0 - 1.0 / z - epsilon / (1.0 - z)) ** 2
    return 1.0 / denom if denom > 0.0 else 0.0


class CharmHadronicSystemGenerator(HadronicSystemGenerator):
    """
    Inclusive charm production: one charm hadron chosen by energy-dependent
    fractions, its energy fraction z from the Peterson function and its pT^2
    from exp(-pT^2 / scale). The remaining hadronic four-momentum is
    hadronized separately.
    """

    name = "charm-hadronic-system"

    def load_config(self):
        self.max_attempts = self.config.get_parameter("max-attempts", 1000)
        self.epsilon = self.config.get_parameter("fragmentation-epsilon", 0.05)
        self.pt2_scale = self.config.get_parameter("pt2-scale", 0.6)
        self.hadronizer = self.config.get_sub_algorithm("hadronization-model")
        grid = np.linspace(1e-3, 1.0 - 1e-3, 2000)
        self.peterson_max = 1.1 * max(peterson(z, self.epsilon) for z in grid)

    def charm_fractions(self, energy: float):
        for e_max, f_d0, f_dp, f_ds in CHARM_FRACTIONS:
            if energy <= e_max:
                return [(pdglib.PDG_D0, f_d0), (pdglib.PDG_DP, f_dp), (pdglib.PDG_DSP, f_ds),
                        (pdglib.PDG_LAMBDA_CP, 1.0 - f_d0 - f_dp - f_ds)]

    def choose_charm_hadron(self, energy: float, rng) -> int:
        table = self.charm_fractions(energy)
        r = rng.random()
        cumulative = 0.0
        for pdg, fraction in table:
            cumulative += fraction
            if r < cumulative:
                return pdg
        return table[-1][0]

    def sample_z(self, rng) -> float:
        while True:
            z = rng.random()
            if rng.uniform(0.0, self.peterson_max) < peterson(z, self.epsilon):
                return z

    def add_hadrons(self, record, rng):
        interaction = record.interaction
        hit = hit_index(record)
        q = momentum_transfer(record)
        p4_had = record[hit].momentum + q
        nu = q.E
        q_dir = q.p / q.magnitude

        hadronic_charge = int(pdglib.charge(interaction.target.hit_nucleon_pdg)) + interaction.hadronic_charge_change()
        charm_pdg = self.choose_charm_hadron(interaction.probe_energy, rng)
        charm_mass = pdglib.mass(charm_pdg)
        baryon_left = 0 if charm_pdg == pdglib.PDG_LAMBDA_CP else 1
        remnant_charge = hadronic_charge - int(pdglib.charge(charm_pdg))
        w_min_remnant = (pdglib.mass(pdglib.PDG_PROTON) + CHARGED_PION_MASS if baryon_left
                         else 2.0 * CHARGED_PION_MASS)

        for attempt in range(1, self.max_attempts + 1):
            z = self.sample_z(rng)
            E_charm = z * nu
            pt2 = -self.pt2_scale * math.log(max(1e-12, 1.0 - rng.random()))
            pl2 = E_charm * E_charm - charm_mass * charm_mass - pt2
            if pl2 <= 0.0:
                continue
            phi = rng.uniform(0.0, 2.0 * math.pi)
            pt = math.sqrt(pt2)
            local = np.array([pt * math.cos(phi), pt * math.sin(phi), math.sqrt(pl2)])
            p = rotate_uz(q_dir, local)
            charm_p4 = FourVector(E_charm, float(p[0]), float(p[1]), float(p[2]))
            remnant_p4 = p4_had - charm_p4
            if remnant_p4.E <= 0.0 or remnant_p4.m2 <= w_min_remnant ** 2:
                continue

            remnant = self.hadronizer.hadronize(interaction, remnant_p4, rng,
                                                charge=remnant_charge, baryon_number=baryon_left)
            if not remnant:
                continue

            interaction.excl_tag.charm_pdg = charm_pdg
            status = primary_hadron_status(record)
            blob = record.append_particle(pdglib.PDG_HADRONIC_SYSTEM, Status.PRE_FRAGM_HADRONIC, hit, p4_had)
            record.append_particle(charm_pdg, status, blob, charm_p4, formation_zone_pending=True)
            for pdg, momentum in remnant:
                record.append_particle(pdg, status, blob, momentum, formation_zone_pending=True)
            record.set_status(blob, Status.DECAYED)
            logger.debug(f"Charm hadron {charm_pdg} z={z:.3f} pT2={pt2:.3f} after {attempt} attempts")
            return

        record.set_flag(EventFlag.HADRONIZATION_FAILED)
        raise HadronizationFailure(
            f"No charm fragmentation found in {self.max_attempts} attempts (W={p4_had.mass:.4f})",
            attempts=self.max_attempts,
        )


# -----------------------------
# RES
# -----------------------------
class RESHadronicSystemGenerator(HadronicSystemGenerator):
    """Adds the resonance; ResonanceDecayer turns it into hadrons."""

    name = "res-hadronic-system"

    def add_hadrons(self, record, rng):
        interaction = record.interaction
        resonance = interaction.excl_tag.resonance_pdg
        if resonance is None:
            raise ValueError(f"No resonance tagged for {interaction.as_string()}")
        hit = hit_index(record)
        p4 = record[hit].momentum + momentum_transfer(record)
        record.append_particle(resonance, Status.PRE_DECAY_RESONANT, hit, p4)


# -----------------------------
# COH
# -----------------------------
class COHHadronicSystemGenerator(HadronicSystemGenerator):
    """
    Pion plus recoiling ground-state nucleus. The pion angle in the
    (q + P_A) rest frame follows exp(-b |t|) with |t| ~ 2 p*^2 (1 - cos),
    the recoil takes what is left.
    """

    name = "coh-hadronic-system"

    def load_config(self):
        self.r0 = self.config.get_parameter("r0", NUCLEAR_R0)

    def slope(self, A: int) -> float:
        radius = self.r0 * A ** (1.0 / 3.0) / HBARC
        return radius * radius / 3.0

    def pion_pdg(self, interaction) -> int:
        return pdglib.pion_from_charge(interaction.hadronic_charge_change())

    def process_event_record(self, record, rng=None):
        # the nucleus recoils whole, there is no remnant to add
        self.add_hadrons(record, rng or np.random.default_rng())

    def add_hadrons(self, record, rng):
        interaction = record.interaction
        target = record.target_index()
        q = momentum_transfer(record)
        total = record[target].momentum + q
        W = total.mass

        pion = self.pion_pdg(interaction)
        m_pi = NEUTRAL_PION_MASS if pion == pdglib.PDG_PI0 else CHARGED_PION_MASS
        M_A = interaction.target.mass
        if W <= m_pi + M_A:
            record.set_flag(EventFlag.NO_AVAILABLE_PHASE_SPACE)
            raise KinematicsExhausted(f"Coherent final state does not fit into W={W:.6f}")

        p_star = two_body_momentum(W, m_pi, M_A)
        b = self.slope(interaction.target.A)
        scale = 2.0 * b * p_star * p_star
        u = rng.random()
        if scale > 1e-9:
            one_minus_cos = -math.log(1.0 - u * (1.0 - math.exp(-2.0 * scale))) / scale
        else:
            one_minus_cos = 2.0 * u
        cos_theta = min(1.0, max(-1.0, 1.0 - one_minus_cos))
        sin_theta = math.sqrt(max(0.0, 1.0 - cos_theta * cos_theta))
        phi = rng.uniform(0.0, 2.0 * math.pi)

        beta = total.beta()
        q_star = q.boost(-beta)
        axis = q_star.p / q_star.magnitude
        direction = rotate_uz(axis, np.array([sin_theta * math.cos(phi), sin_theta * math.sin(phi), cos_theta]))
        pion_p4 = FourVector.from_mass_and_momentum(m_pi, p_star * direction).boost(beta)
        recoil_p4 = total - pion_p4

        record.append_particle(pion, Status.STABLE_FINAL, target, pion_p4)
        record.append_particle(interaction.target.pdg, Status.STABLE_FINAL, target, recoil_p4)
        interaction.kine.set(KineVar.T, (q - pion_p4).m2)
        interaction.kine.select()


# -----------------------------
# MEC
# -----------------------------
class MECHadronicSystemGenerator(HadronicSystemGenerator):
    """Struck cluster + q -> recoil cluster -> two nucleons (flat phase space)."""

    name = "mec-hadronic-system"

    def add_hadrons(self, record, rng):
        interaction = record.interaction
        hit = hit_index(record)
        p4 = record[hit].momentum + momentum_transfer(record)

        cluster_pdg = interaction.recoil_cluster_pdg()
        nucleons = pdglib.cluster_nucleons(cluster_pdg)
        masses = [pdglib.mass(n) for n in nucleons]
        if p4.mass <= sum(masses):
            record.set_flag(EventFlag.NO_AVAILABLE_PHASE_SPACE)
            raise KinematicsExhausted(f"Recoil cluster W={p4.mass:.6f} below two-nucleon threshold")

        cluster = record.append_particle(cluster_pdg, Status.INTERMEDIATE, hit, p4)
        momenta, _ = generate_n_body_decay(p4, masses, rng)
        status = primary_hadron_status(record)
        for pdg, momentum in zip(nucleons, momenta):
            record.append_particle(pdg, status, cluster, momentum, formation_zone_pending=True)
