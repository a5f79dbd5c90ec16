import numpy as np
import pytest

from nugenx.event_generator import EventGenerator, run_batch
from nugenx.event_record import Status
from nugenx.events import EventDB
from nugenx.interaction import Interaction, Target
from nugenx.kinematics import FourVector
from nugenx.particles import PDG_NEUTRON, PDG_NUMU


@pytest.fixture
def db(tmp_path):
    return EventDB(tmp_path / "events.db")


@pytest.fixture
def qel_records():
    generator = EventGenerator(channels=["QEL"])
    rng = np.random.default_rng(21)
    interaction = Interaction.qel_cc(Target.free_nucleon(PDG_NEUTRON), PDG_NEUTRON, PDG_NUMU, 1.0)
    records = []
    for _ in range(5):
        outcome = generator.generate(interaction, rng)
        assert outcome.ok
        records.append(outcome.record)
    return records


def test_store_and_parse_round_trip(db, qel_records):
    record = qel_records[0]
    event_id = db.store_record(record)
    event = db.parse_event(event_id)

    assert event["channel"] == "QEL"
    assert event["probe_pdg"] == PDG_NUMU
    assert event["probe_energy"] == pytest.approx(1.0)
    assert event["energy_conserved"] and event["momentum_conserved"] and event["charge_conserved"]
    assert event["Q2"] == pytest.approx(record.interaction.kine.selected["Q2"])
    assert len(event["particles"]) == len(record)
    for stored, original in zip(event["particles"], record):
        assert stored["pdg"] == original.pdg
        assert stored["status"] == original.status
        assert isinstance(stored["momentum"], FourVector)
        assert stored["momentum"].E == pytest.approx(original.momentum.E)


def test_parse_missing_event(db):
    assert db.parse_event(12345) is None


def test_list_and_filter(db, qel_records):
    ids = db.store_records(qel_records)
    assert len(ids) == 5

    latest = db.list_events(limit=3)
    assert [e["event_id"] for e in latest] == sorted(ids, reverse=True)[:3]
    assert db.list_events(limit=10, channel="DIS") == []
    assert len(db.list_events(limit=10, channel="QEL", conserved_only=True)) == 5
    assert len(db.q2_values("QEL")) == 5


def test_broken_record_is_stored_as_not_conserved(db, qel_records):
    record = qel_records[0]
    record.append_particle(PDG_NEUTRON, Status.STABLE_FINAL, 1, FourVector(1.0, 0.0, 0.0, 0.3))
    event = db.parse_event(db.store_record(record))
    assert not event["energy_conserved"]
    # a neutron leaves the charge balance intact
    assert event["charge_conserved"]
    assert db.list_events(conserved_only=True) == []


def test_stats_and_clear(db, qel_records):
    db.store_records(qel_records)
    stats = db.stats()
    assert stats["total_events"] == 5
    assert stats["four_momentum_conserved"] == 5
    assert stats["by_channel"] == {"QEL": 5}
    assert stats["average_Q2"] > 0.0
    assert stats["conservation_rate"] == 1.0

    db.clear_events()
    assert db.stats()["total_events"] == 0
    assert db.stats()["conservation_rate"] == 0.0


def test_batch_results_can_be_stored(db):
    summary = run_batch(8, PDG_NUMU, 2.0, Target(6, 12), channels=["QEL", "RES"], seed=3, workers=2)
    assert summary["total"] == 8
    assert summary["success"] + summary["failed"] == 8
    ids = db.store_records(summary["records"])
    assert db.stats()["total_events"] == len(ids) == summary["success"]
