"""Event record bookkeeping: append rules, status transitions, named entries."""

import pytest

from nugenx.event_record import EventFlag, EventRecord, Status
from nugenx.evg.initial_state import InitialStateAppender
from nugenx.interaction import Interaction, Target
from nugenx.kinematics import FourVector
from nugenx.particles import PDG_MUON, PDG_NEUTRON, PDG_NUMU, PDG_PIP, PDG_PROTON


def _carbon_qel_record():
    interaction = Interaction.qel_cc(Target(6, 12), PDG_NEUTRON, PDG_NUMU, 1.0)
    record = EventRecord(interaction)
    InitialStateAppender().process_event_record(record)
    return record


# ----------------------------- Append rules -------------------------------
def test_parent_must_precede_entry():
    record = _carbon_qel_record()
    with pytest.raises(ValueError):
        record.append_particle(PDG_PROTON, Status.STABLE_FINAL, parent=len(record))


def test_daughters_are_linked():
    record = _carbon_qel_record()
    idx = record.append_particle(PDG_PROTON, Status.HADRON_IN_NUCLEUS, 2, FourVector(1.0, 0.1, 0.0, 0.3))
    assert record[idx].parent == 2
    assert idx in record[2].daughters


def test_appended_momentum_is_copied():
    record = _carbon_qel_record()
    p4 = FourVector(1.0, 0.0, 0.0, 0.5)
    idx = record.append_particle(PDG_PROTON, Status.STABLE_FINAL, 2, p4)
    p4.E = 99.0
    assert record[idx].momentum.E == 1.0


# --------------------------- Status transitions ---------------------------
@pytest.mark.parametrize("start, end", [
    (Status.HADRON_IN_NUCLEUS, Status.STABLE_FINAL),
    (Status.HADRON_IN_NUCLEUS, Status.INTERMEDIATE),
    (Status.STABLE_FINAL, Status.DECAYED),
    (Status.PRE_DECAY_RESONANT, Status.DECAYED),
    (Status.PRE_FRAGM_HADRONIC, Status.DECAYED),
])
def test_allowed_transitions(start, end):
    record = _carbon_qel_record()
    idx = record.append_particle(PDG_PIP, start, 2)
    record.set_status(idx, end)
    assert record[idx].status == end


@pytest.mark.parametrize("start, end", [
    (Status.STABLE_FINAL, Status.HADRON_IN_NUCLEUS),
    (Status.DECAYED, Status.STABLE_FINAL),
    (Status.INITIAL, Status.STABLE_FINAL),
    (Status.INTERMEDIATE, Status.STABLE_FINAL),
])
def test_illegal_transitions(start, end):
    record = _carbon_qel_record()
    idx = record.append_particle(PDG_PIP, start, 2)
    with pytest.raises(ValueError):
        record.set_status(idx, end)


# ------------------------------ Named entries -----------------------------
def test_nuclear_initial_state_layout():
    record = _carbon_qel_record()
    assert len(record) == 3
    assert record.probe_index() == 0
    assert record.target_index() == 1
    assert record.hit_nucleon_index() == 2
    assert record[2].status == Status.NUCLEON_TARGET
    assert record[2].parent == 1


def test_free_nucleon_hit_is_target():
    interaction = Interaction.qel_cc(Target.free_nucleon(PDG_NEUTRON), PDG_NEUTRON, PDG_NUMU, 1.0)
    record = EventRecord(interaction)
    InitialStateAppender().process_event_record(record)
    assert len(record) == 2
    assert record.hit_nucleon_index() == 1


def test_initial_state_needs_empty_record():
    record = _carbon_qel_record()
    with pytest.raises(ValueError):
        InitialStateAppender().process_event_record(record)


def test_final_state_includes_remnant():
    record = _carbon_qel_record()
    record.append_particle(PDG_MUON, Status.STABLE_FINAL, 0)
    record.append_particle(1000060110, Status.NUCLEAR_REMNANT, 1)
    record.append_particle(PDG_PROTON, Status.HADRON_IN_NUCLEUS, 2)
    statuses = sorted(p.status for p in record.final_state())
    assert statuses == [Status.STABLE_FINAL, Status.NUCLEAR_REMNANT]
    assert record.final_state_primary_lepton_index() == 3
    assert record.remnant_index() == 4


def test_flags():
    record = _carbon_qel_record()
    assert not record.has_flag(EventFlag.CASCADE_FAILED)
    record.set_flag(EventFlag.CASCADE_FAILED)
    assert record.has_flag("cascade-failed")
    assert "cascade-failed" in record.summary()
