"""Conservation checks on four-vector lists, decays and generated records.

Covers:
  - Energy, momentum and full four-momentum conservation helpers
  - N-body phase-space decays (rest, boosted, threshold, forbidden)
  - Numerical tolerance behaviour
  - Energy, momentum and charge balance of whole event records
"""

import math

import numpy as np
import pytest

from nugenx.conservation import (
    check_conservation,
    check_energy_conservation,
    check_energy_momentum,
    check_momentum_conservation,
    check_record_conservation,
    missing_four_momentum,
    total_charge,
)
from nugenx.event_record import EventRecord, Status
from nugenx.interaction import Interaction, Target
from nugenx.kinematics import FourVector, two_body_momentum
from nugenx.particles import PDG_MUON, PDG_NEUTRON, PDG_NUMU, PDG_PI0, PDG_PIM, PDG_PIP, PDG_PROTON
from nugenx.phase_space import generate_n_body_decay
from nugenx.pipeline import build_pipeline


# ----------------------------- Utility ------------------------------------
def _assert_close(a, b, tol=1e-9, msg=""):
    assert abs(a - b) < tol, msg or f"Values differ: {a} vs {b} (tol={tol})"


# -------------------------- Energy Conservation ---------------------------
def test_energy_conservation_simple():
    p_in = [FourVector(10, 0, 0, 0)]
    p_out = [FourVector(4, 1, 0, 0), FourVector(6, -1, 0, 0)]
    assert check_energy_conservation(p_in, p_out)


def test_energy_conservation_fail():
    p_in = [FourVector(10, 0, 0, 0)]
    p_out = [FourVector(5.1, 0, 0, 0), FourVector(5.0, 0, 0, 0)]
    assert not check_energy_conservation(p_in, p_out, tol=1e-4)


# ------------------------- Momentum Conservation --------------------------
def test_momentum_conservation_fail():
    p_in = [FourVector(5, 1, 0, 0)]
    p_out = [FourVector(5, 0.9, 0, 0)]
    assert not check_momentum_conservation(p_in, p_out, tol=1e-4)


def test_check_energy_momentum_dict_structure():
    diag = check_energy_momentum([FourVector(10, 0, 0, 0)], [FourVector(4, 1, 0, 0), FourVector(6, -1, 0, 0)])
    assert diag['conserved'] is True
    for key in ['deltaE', 'deltaPx', 'deltaPy', 'deltaPz', 'E_initial', 'E_final']:
        assert key in diag
    _assert_close(diag['deltaE'], 0.0)


# --------------------------- Phase-space decays ---------------------------
@pytest.mark.parametrize(
    "parent,masses",
    [
        (FourVector(1.0, 0.0, 0.0, 0.0), [0.13957, 0.13957]),
        (FourVector(2.0, 0.0, 0.0, 1.0), [0.10566, 0.0]),
        (FourVector(1.5, 0.3, -0.2, 0.8), [0.938272, 0.13957, 0.134977]),
    ],
)
def test_phase_space_decay_conservation(parent, masses):
    daughters, weight = generate_n_body_decay(parent, masses, np.random.default_rng(5))
    result = check_energy_momentum([parent], daughters)
    assert result["conserved"], f"Conservation violated: {result}"
    assert weight >= 0.0
    for d, m in zip(daughters, masses):
        _assert_close(d.mass, m, 1e-6)


def test_two_body_breakup_momentum_matches_formula():
    parent = FourVector(1.0, 0, 0, 0)
    m1, m2 = 0.2, 0.3
    d1, d2 = generate_n_body_decay(parent, [m1, m2], np.random.default_rng(1))[0]
    p_expected = math.sqrt((1.0 - (m1 + m2) ** 2) * (1.0 - (m1 - m2) ** 2)) / 2.0
    _assert_close(d1.magnitude, p_expected)
    _assert_close(d2.magnitude, p_expected)
    _assert_close(two_body_momentum(1.0, m1, m2), p_expected)


def test_boost_to_rest_frame_keeps_mass():
    p4 = FourVector.from_mass_and_momentum(0.938, [0.3, -0.2, 1.1])
    rest = p4.boost(-p4.beta())
    _assert_close(rest.E, 0.938, 1e-9)
    _assert_close(rest.magnitude, 0.0, 1e-9)
    back = rest.boost(p4.beta())
    _assert_close(back.pz, 1.1, 1e-9)
    with pytest.raises(ValueError):
        p4.boost([0.0, 0.0, 1.0])


def test_two_body_decay_at_threshold():
    assert two_body_momentum(10.0, 4.0, 6.0) == 0.0


def test_forbidden_decay_raises():
    with pytest.raises(ValueError):
        generate_n_body_decay(FourVector(5.0, 0, 0, 0), [3.0, 3.0])


# ------------------------- Precision / Tolerance --------------------------
def test_precision_within_tolerance_passes():
    p_in = [FourVector(10.0000001, 0, 0, 0)]
    p_out = [FourVector(4.0, 1, 0, 0), FourVector(6.0, -1, 0, 0)]
    assert check_energy_conservation(p_in, p_out, tol=1e-6)


def test_large_values_scale():
    p_in = [FourVector(1e6, 1e5, -2e5, 3e5)]
    p_out = [FourVector(4e5, 5e4, -1e5, 1e5), FourVector(6e5, 5e4, -1e5, 2e5)]
    assert check_conservation(p_in, p_out, tol=1e-6)


# ------------------------------ Charge ------------------------------------
def test_total_charge():
    assert total_charge([PDG_PIP, PDG_PIM, PDG_PI0]) == 0.0
    assert total_charge([PDG_PROTON, PDG_MUON, PDG_NUMU]) == 0.0
    assert total_charge([PDG_PROTON, PDG_PROTON]) == 2.0


# ------------------------------ Records -----------------------------------
def test_generated_record_balances_on_carbon():
    pipeline = build_pipeline("QEL")
    rng = np.random.default_rng(17)
    for _ in range(10):
        record = EventRecord(Interaction.qel_cc(Target(6, 12), PDG_NEUTRON, PDG_NUMU, 1.0))
        if pipeline.run(record, rng).ok:
            break
    else:
        pytest.fail("no successful event in 10 attempts")

    check = check_record_conservation(record)
    assert check["conserved"], check
    assert check["charge_conserved"]
    assert check["deltaQ"] == 0.0
    missing = missing_four_momentum(record)
    for component in missing.to_tuple():
        _assert_close(component, 0.0, 1e-6)


def test_record_imbalance_detected():
    pipeline = build_pipeline("QEL")
    record = EventRecord(Interaction.qel_cc(Target.free_nucleon(PDG_NEUTRON), PDG_NEUTRON, PDG_NUMU, 1.0))
    assert pipeline.run(record, np.random.default_rng(2)).ok
    record.append_particle(PDG_PIP, Status.STABLE_FINAL, 1, FourVector(0.5, 0.0, 0.0, 0.4))

    check = check_record_conservation(record)
    assert not check["conserved"]
    assert not check["charge_conserved"]
    _assert_close(missing_four_momentum(record).E, -0.5, 1e-6)
