"""
Intranuclear cascade tests.

Covers step statistics against the mean free path, transparent mode,
outcome bookkeeping (charge, remnant) and termination on full events.
"""

import math

import numpy as np
import pytest

from nugenx.config import AlgorithmConfig, build_default_registry
from nugenx.conservation import check_record_conservation
from nugenx.constants import MB_TO_FM2
from nugenx.event_record import EventFlag, EventRecord, Status
from nugenx.evg.hadronic_system import add_nuclear_remnant, momentum_transfer
from nugenx.evg.initial_state import InitialStateAppender
from nugenx.evg.intranuke import IntranuclearCascade, _NoOutcome
from nugenx.exceptions import CascadeExhausted, ConfigurationError, FailureKind
from nugenx.hadron_xsec import FATE_ORDER, HadronFate, HadronXSecModel
from nugenx.interaction import Interaction, Target
from nugenx.kinematics import FourVector
from nugenx.nuclear import UniformDensity, nuclear_radius
from nugenx.particles import (
    PDG_MUON, PDG_NEUTRON, PDG_NUMU, PDG_PI0, PDG_PIP, PDG_PROTON, charge, ion_a, ion_z, is_ion, mass,
)
from nugenx.pipeline import build_pipeline


class ConstantXSec(HadronXSecModel):
    """Energy-independent cross section with a single fate."""

    name = "constant"

    def load_config(self):
        self.sigma = self.config.get_parameter("sigma", 30.0)
        self.fate = HadronFate(self.config.get_parameter("fate", HadronFate.ELASTIC.value))

    def partial_cross_sections(self, pdg, kinetic_energy):
        return {fate: (self.sigma if fate == self.fate else 0.0) for fate in FATE_ORDER}


class NoInteractionCascade(IntranuclearCascade):
    """Counts collision sites but never interacts."""

    def hadron_fate(self, record, index, rng):
        return None


class ClosedOutcomeCascade(IntranuclearCascade):
    """Every drawn fate turns out to have no allowed final state."""

    def load_config(self):
        super().load_config()
        self.outcome_calls = 0

    def _outcome_kinematics(self, record, index, fate, rng):
        self.outcome_calls += 1
        raise _NoOutcome("closed")


def _cascade(cls=IntranuclearCascade, fate="elastic", sigma=30.0, **params):
    params = dict({"density-profile": "uniform", "ct0": 0.0}, **params)
    xsec = ConstantXSec(AlgorithmConfig("constant", {"sigma": sigma, "fate": fate}))
    return cls(AlgorithmConfig("IntranuclearCascade", params, {"hadron-xsec-model": xsec}))


def _carbon_record_with(pdg, p3):
    interaction = Interaction.qel_cc(Target(6, 12), PDG_NEUTRON, PDG_NUMU, 1.0)
    record = EventRecord(interaction)
    InitialStateAppender().process_event_record(record)
    index = record.append_particle(pdg, Status.HADRON_IN_NUCLEUS, 2, FourVector.from_mass_and_momentum(mass(pdg), p3))
    add_nuclear_remnant(record)
    return record, index


# ------------------------------ Step statistics ---------------------------
def test_mean_collision_sites_match_mean_free_path():
    """From the centre of a hard sphere, sites per hadron average R / lambda."""
    cascade = _cascade(NoInteractionCascade, **{"max-cascade-steps": 10 ** 9})
    profile = cascade.profile_for(12)
    assert isinstance(profile, UniformDensity)

    rng = np.random.default_rng(2024)
    n = 5000
    for _ in range(n):
        record, index = _carbon_record_with(PDG_PROTON, [0.0, 0.0, 0.5])
        cascade.transport_hadron(record, index, profile, rng)
        assert record[index].status == Status.STABLE_FINAL

    R = nuclear_radius(12, 1.4)
    lam = 1.0 / (profile.rho0 * 30.0 * MB_TO_FM2)
    assert cascade.stats.steps / n == pytest.approx(R / lam, rel=0.06)
    assert cascade.stats.escapes == n


def test_mean_free_path():
    cascade = _cascade(sigma=20.0)
    profile = cascade.profile_for(12)
    lam = cascade.mean_free_path(PDG_PROTON, 0.2, profile, np.zeros(3))
    assert lam == pytest.approx(1.0 / (profile.rho0 * 2.0))
    outside = np.array([0.0, 0.0, profile.radius + 1.0])
    assert math.isinf(cascade.mean_free_path(PDG_PROTON, 0.2, profile, outside))


# ------------------------------ Transparent mode --------------------------
def test_transparent_cascade_leaves_momenta_unchanged():
    registry = build_default_registry({"IntranuclearCascade": {"transparent": True}})
    pipeline = build_pipeline("QEL", registry)
    radius = pipeline.find_stage(IntranuclearCascade).profile_for(12).tracking_radius
    rng = np.random.default_rng(8)

    for _ in range(30):
        record = EventRecord(Interaction.qel_cc(Target(6, 12), PDG_NEUTRON, PDG_NUMU, 1.0))
        result = pipeline.run(record, rng)
        assert result.ok

        expected = record[2].momentum + momentum_transfer(record)
        hadrons = [p for p in record if p.parent == 2]
        assert len(hadrons) == 1
        proton = hadrons[0]
        assert proton.status == Status.STABLE_FINAL
        for a, b in zip(proton.momentum.to_tuple(), expected.to_tuple()):
            assert a == pytest.approx(b, abs=1e-12)
        assert not record.indices_with_status(Status.INTERMEDIATE)
        # released on or beyond the tracking radius
        assert proton.position.magnitude >= radius - 1e-9


# ------------------------------ Outcomes ----------------------------------
def test_pion_absorption_takes_two_nucleons():
    cascade = _cascade(fate="absorption")
    rng = np.random.default_rng(1)
    for _ in range(20):
        record, index = _carbon_record_with(PDG_PIP, [0.0, 0.0, 0.4])
        remnant = record.remnant_index()
        A_before = ion_a(record[remnant].pdg)
        Q_before = ion_z(record[remnant].pdg) + charge(PDG_PIP)

        new = cascade.sim_hadronic_interaction(record, index, HadronFate.ABSORPTION, rng)

        assert record[index].status == Status.INTERMEDIATE
        assert len(new) == 2
        assert all(record[i].pdg in (PDG_PROTON, PDG_NEUTRON) for i in new)
        assert ion_a(record[remnant].pdg) == A_before - 2
        assert ion_z(record[remnant].pdg) + sum(charge(record[i].pdg) for i in new) == Q_before


def test_pi0_charge_exchange_conserves_charge():
    cascade = _cascade(fate="charge-exchange")
    rng = np.random.default_rng(4)
    for _ in range(20):
        record, index = _carbon_record_with(PDG_PI0, [0.0, 0.2, 0.3])
        remnant = record.remnant_index()
        Z_before = ion_z(record[remnant].pdg)
        new = cascade.sim_hadronic_interaction(record, index, HadronFate.CHARGE_EXCHANGE, rng)
        pdgs = sorted(record[i].pdg for i in new)
        assert pdgs in ([PDG_PIP, PDG_NEUTRON], [-211, PDG_PROTON])
        assert ion_z(record[remnant].pdg) + sum(charge(p) for p in pdgs) == Z_before


def test_outcome_conserves_four_momentum():
    cascade = _cascade(fate="inelastic")
    rng = np.random.default_rng(9)
    record, index = _carbon_record_with(PDG_PROTON, [0.0, 0.0, 1.5])
    before = record[index].momentum + record[record.remnant_index()].momentum
    new = cascade.sim_hadronic_interaction(record, index, HadronFate.INELASTIC, rng)
    after = record[record.remnant_index()].momentum
    for i in new:
        after = after + record[i].momentum
    for a, b in zip(before.to_tuple(), after.to_tuple()):
        assert a == pytest.approx(b, abs=1e-9)


def test_formation_zone_length():
    cascade = _cascade(ct0=0.342)
    record, index = _carbon_record_with(PDG_PROTON, [0.0, 0.0, 1.0])
    assert cascade.formation_zone(record[index]) == pytest.approx(0.342 * 1.0 / mass(PDG_PROTON))


# ------------------------------ Termination -------------------------------
@pytest.mark.parametrize("target, energy", [(Target(6, 12), 1.0), (Target(26, 56), 3.0)])
def test_full_cascade_terminates_and_conserves(target, energy):
    pipeline = build_pipeline("QEL")
    cascade = pipeline.find_stage(IntranuclearCascade)
    rng = np.random.default_rng(12)
    done = 0
    for _ in range(40):
        record = EventRecord(Interaction.qel_cc(target, PDG_NEUTRON, PDG_NUMU, energy))
        result = pipeline.run(record, rng)
        if not result.ok:
            continue
        done += 1
        assert not record.indices_with_status(Status.HADRON_IN_NUCLEUS)
        check = check_record_conservation(record)
        assert check["conserved"], check
        assert check["charge_conserved"]
        remnant = record[record.remnant_index()]
        assert remnant.pdg in (PDG_PROTON, PDG_NEUTRON, 0) or is_ion(remnant.pdg)
        assert any(p.pdg == PDG_MUON for p in record.final_state())
    assert done > 30
    assert cascade.stats.events >= done


def test_free_nucleon_is_skipped():
    cascade = _cascade()
    record = EventRecord(Interaction.qel_cc(Target.free_nucleon(PDG_NEUTRON), PDG_NEUTRON, PDG_NUMU, 1.0))
    InitialStateAppender().process_event_record(record)
    cascade.process_event_record(record)
    assert cascade.stats.events == 0


# ------------------------------ Limits ------------------------------------
def test_fate_redraws_stop_at_max_fate_attempts():
    cascade = _cascade(ClosedOutcomeCascade, **{"max-fate-attempts": 5})
    record, index = _carbon_record_with(PDG_PROTON, [0.0, 0.0, 0.5])

    with pytest.raises(CascadeExhausted) as info:
        cascade.sim_hadronic_interaction(record, index, HadronFate.ELASTIC, np.random.default_rng(6))
    assert info.value.attempts == 5
    assert info.value.kind == FailureKind.CASCADE_EXHAUSTED
    assert cascade.outcome_calls == 5
    assert record.has_flag(EventFlag.CASCADE_FAILED)


def test_cascade_stops_at_max_cascade_steps():
    # lambda of about 0.01 fm keeps the hadron inside well past one step
    cascade = _cascade(NoInteractionCascade, sigma=1.0e4, **{"max-cascade-steps": 1})
    record, index = _carbon_record_with(PDG_PROTON, [0.0, 0.0, 0.5])
    profile = cascade.profile_for(12)

    with pytest.raises(CascadeExhausted) as info:
        cascade.transport_hadron(record, index, profile, np.random.default_rng(7))
    assert info.value.attempts == 1
    assert record.has_flag(EventFlag.CASCADE_FAILED)
    assert record[index].status == Status.HADRON_IN_NUCLEUS


# ------------------------------ Configuration -----------------------------
@pytest.mark.parametrize("params", [
    {"density-profile": "gaussian"},
    {"ct0": -1.0},
    {"max-fate-attempts": 0},
])
def test_invalid_configuration(params):
    with pytest.raises(ConfigurationError):
        _cascade(**params)
