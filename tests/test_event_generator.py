"""
Interaction lists, cross-section weighted channel selection and batch runs.
"""

from collections import Counter

import numpy as np
import pytest

from nugenx.event_generator import EventGenerator, InteractionSelector, run_batch
from nugenx.evg.interaction_list import InteractionListGenerator
from nugenx.exceptions import ConfigurationError
from nugenx.interaction import Target
from nugenx.particles import (
    PDG_CLUSTER_NP, PDG_ELECTRON, PDG_LAMBDA_CP, PDG_NEUTRON, PDG_NUMU, PDG_PROTON, PDG_SIGMA_CP, PDG_SIGMA_CPP,
)


CARBON = Target(6, 12)


# --------------------------- Interaction lists ----------------------------
def test_qel_list_picks_charge_compatible_nucleon():
    cc_only = InteractionListGenerator("QEL", include_nc=False)
    nu = cc_only.create(PDG_NUMU, 1.0, CARBON)
    nubar = cc_only.create(-PDG_NUMU, 1.0, CARBON)
    assert [i.target.hit_nucleon_pdg for i in nu] == [PDG_NEUTRON]
    assert [i.target.hit_nucleon_pdg for i in nubar] == [PDG_PROTON]


def test_dis_list_covers_both_nucleons_and_currents():
    interactions = InteractionListGenerator("DIS").create(PDG_NUMU, 5.0, CARBON)
    assert len(interactions) == 4
    assert {i.target.hit_nucleon_pdg for i in interactions} == {PDG_PROTON, PDG_NEUTRON}


def test_qel_charm_list_enumerates_charm_baryons():
    interactions = InteractionListGenerator("QEL_CHARM").create(PDG_NUMU, 10.0, CARBON)
    pairs = {(i.target.hit_nucleon_pdg, i.excl_tag.charm_pdg) for i in interactions}
    assert pairs == {(PDG_NEUTRON, PDG_LAMBDA_CP), (PDG_NEUTRON, PDG_SIGMA_CP), (PDG_PROTON, PDG_SIGMA_CPP)}
    assert all(i.channel == "QEL_CHARM" for i in interactions)
    assert InteractionListGenerator("QEL_CHARM").create(-PDG_NUMU, 10.0, CARBON) == []


def test_coh_and_mec_need_a_nucleus():
    free = Target.free_nucleon(PDG_PROTON)
    assert InteractionListGenerator("COH").create(PDG_NUMU, 2.0, free) == []
    assert InteractionListGenerator("MEC").create(PDG_NUMU, 2.0, free) == []
    mec = InteractionListGenerator("MEC").create(PDG_NUMU, 2.0, CARBON)
    assert [i.target.hit_nucleon_pdg for i in mec] == [PDG_CLUSTER_NP]


def test_interaction_list_rejects_bad_input():
    with pytest.raises(ValueError):
        InteractionListGenerator("ELASTIC")
    with pytest.raises(ValueError):
        InteractionListGenerator("QEL").create(PDG_ELECTRON, 1.0, CARBON)


# ------------------------------- Selector ---------------------------------
@pytest.fixture(scope="module")
def selector():
    return EventGenerator(channels=["QEL", "RES"]).build_selector(include_nc=False)


def test_candidates_are_valid_for_their_model(selector):
    candidates = selector.candidates(PDG_NUMU, 1.0, CARBON)
    assert candidates
    for interaction in candidates:
        assert selector.models[interaction.channel].valid_process(interaction)
        assert interaction.proc_info.is_cc


def test_selection_follows_integrated_cross_sections(selector):
    rng = np.random.default_rng(99)
    candidates = selector.candidates(PDG_NUMU, 1.0, CARBON)
    weights = np.array([selector.integral(c) for c in candidates])
    expected = weights / weights.sum()

    n = 4000
    counts = Counter(selector.select(PDG_NUMU, 1.0, CARBON, rng).fingerprint() for _ in range(n))
    for interaction, p in zip(candidates, expected):
        observed = counts[interaction.fingerprint()] / n
        assert observed == pytest.approx(p, abs=4 * np.sqrt(p * (1 - p) / n) + 1e-3)


def test_integrals_are_memoised():
    generator = EventGenerator(channels=["QEL"])
    calls = []
    model = generator.pipelines["QEL"].kinematics_generator.xsec_model
    original = model.integral

    def counting(interaction):
        calls.append(interaction.fingerprint())
        return original(interaction)

    model.integral = counting
    selector = InteractionSelector({"QEL": model}, include_nc=False)
    for _ in range(5):
        selector.select(PDG_NUMU, 1.0, CARBON)
    assert len(calls) == 1


def test_closed_channels_raise():
    selector = EventGenerator(channels=["QEL"]).build_selector()
    with pytest.raises(ValueError):
        selector.select(PDG_NUMU, 0.01, Target.free_nucleon(PDG_NEUTRON))


def test_selector_needs_models():
    with pytest.raises(ConfigurationError):
        InteractionSelector({})


# ------------------------------ Batch runs --------------------------------
def _final_states(summary):
    return [[(p.pdg, round(p.momentum.E, 12)) for p in r.final_state()] for r in summary["records"]]


def test_batch_is_reproducible_for_a_seed():
    a = run_batch(6, PDG_NUMU, 1.0, CARBON, channels=["QEL"], seed=5)
    b = run_batch(6, PDG_NUMU, 1.0, CARBON, channels=["QEL"], seed=5)
    assert a["success"] == b["success"]
    assert _final_states(a) == _final_states(b)


def test_batch_with_workers_reports_every_event():
    seen = []
    summary = run_batch(10, PDG_NUMU, 1.5, CARBON, channels=["QEL", "RES"], seed=1, workers=3,
                        on_event=seen.append)
    assert summary["total"] == 10
    assert len(seen) == 10
    assert summary["success"] == len(summary["records"])
    assert summary["attempts"] >= 10
    assert 0.0 <= summary["success_rate"] <= 1.0


def test_batch_configuration_errors_surface_before_generation():
    with pytest.raises(ConfigurationError):
        run_batch(3, PDG_NUMU, 1.0, CARBON, channels=["QEL"],
                  overrides={"QELKinematicsGenerator": {"sub-algorithms": {"xsec-model": "bogus"}}})


def test_batch_argument_validation():
    with pytest.raises(ValueError):
        run_batch(3, PDG_NUMU, 1.0, CARBON, workers=0)
