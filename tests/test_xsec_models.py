"""
Cross-section models and the phase-space machinery they rely on.

Tests:
    1. Registry lookup and unknown names
    2. Process validity per model
    3. Differential values are non-negative and zero outside the allowed range
    4. Integrated cross sections have sensible magnitudes
    5. Jacobians between phase spaces
"""
import math

import pytest

from nugenx.config import AlgorithmConfig, build_default_registry, create_algorithm
from nugenx.exceptions import ConfigurationError
from nugenx.interaction import Interaction, KineVar, Target
from nugenx.kine_utils import (
    KinePhaseSpace, fill_from_wq2, fill_from_xy, has_jacobian, jacobian, q2_range_two_body,
)
from nugenx.constants import COS_CABIBBO, FERMI_CONSTANT, GEV2_TO_1E38_CM2, NUCLEON_MASS
from nugenx.particles import (
    PDG_LAMBDA_CP, PDG_NEUTRON, PDG_NUMU, PDG_PROTON, PDG_SIGMA_CP, PDG_SIGMA_CPP, mass,
)
from nugenx.xsec import get_xsec_model, list_registered_models
from nugenx.xsec.flat import FlatCrossSection
from nugenx.xsec.qel import QELCrossSection
from nugenx.xsec.qel_charm import QELCharmCrossSection


CARBON = Target(6, 12)


def _model(name):
    return create_algorithm(name, build_default_registry())


# ------------------------------ Registry ----------------------------------
def test_registered_models():
    names = set(list_registered_models())
    assert {"flat", "qel-llewellyn-smith", "dis-parton-model", "dis-charm",
            "res-delta", "coh-pion", "mec-empirical", "qel-charm-kovalenko"} <= names


def test_unknown_model_raises():
    with pytest.raises(ConfigurationError):
        get_xsec_model("no-such-model")
    with pytest.raises(ConfigurationError):
        create_algorithm("no-such-model")


def test_mec_needs_ccqe_sub_algorithm():
    with pytest.raises(ConfigurationError):
        get_xsec_model("mec-empirical", AlgorithmConfig("mec-empirical"))


# ----------------------------- Valid processes ----------------------------
def test_qel_valid_process():
    model = QELCrossSection()
    assert model.valid_process(Interaction.qel_cc(CARBON, PDG_NEUTRON, PDG_NUMU, 1.0))
    assert model.valid_process(Interaction.qel_cc(CARBON, PDG_PROTON, -PDG_NUMU, 1.0))
    assert not model.valid_process(Interaction.qel_cc(CARBON, PDG_PROTON, PDG_NUMU, 1.0))
    assert not model.valid_process(Interaction.qel_nc(CARBON, PDG_NEUTRON, PDG_NUMU, 1.0))
    assert not model.valid_process(Interaction.dis_cc(CARBON, PDG_NEUTRON, PDG_NUMU, 1.0))


def test_dis_and_charm_split():
    dis = _model("dis-parton-model")
    charm = _model("dis-charm")
    plain = Interaction.dis_cc(CARBON, PDG_NEUTRON, PDG_NUMU, 10.0)
    tagged = Interaction.charm_dis_cc(CARBON, PDG_NEUTRON, PDG_NUMU, 10.0)
    assert dis.valid_process(plain) and not dis.valid_process(tagged)
    assert charm.valid_process(tagged) and not charm.valid_process(plain)


def test_coh_needs_nucleus_and_mec_needs_cluster():
    coh = _model("coh-pion")
    mec = _model("mec-empirical")
    assert coh.valid_process(Interaction.coh_cc(CARBON, PDG_NUMU, 2.0))
    assert mec.valid_process(Interaction.mec_cc(CARBON, PDG_NUMU, 2.0))
    assert not mec.valid_process(Interaction.qel_cc(CARBON, PDG_NEUTRON, PDG_NUMU, 2.0))



def test_qel_charm_valid_process():
    charm = QELCharmCrossSection()
    qel = QELCrossSection()
    lambda_c = Interaction.qel_charm_cc(CARBON, PDG_NEUTRON, PDG_NUMU, 10.0, PDG_LAMBDA_CP)
    assert charm.valid_process(lambda_c) and not qel.valid_process(lambda_c)
    assert charm.valid_process(Interaction.qel_charm_cc(CARBON, PDG_NEUTRON, PDG_NUMU, 10.0, PDG_SIGMA_CP))
    assert charm.valid_process(Interaction.qel_charm_cc(CARBON, PDG_PROTON, PDG_NUMU, 10.0, PDG_SIGMA_CPP))
    # charge does not balance
    assert not charm.valid_process(Interaction.qel_charm_cc(CARBON, PDG_PROTON, PDG_NUMU, 10.0, PDG_LAMBDA_CP))
    assert not charm.valid_process(Interaction.qel_charm_cc(CARBON, PDG_PROTON, -PDG_NUMU, 10.0, PDG_SIGMA_CPP))
    assert not charm.valid_process(Interaction.qel_cc(CARBON, PDG_NEUTRON, PDG_NUMU, 10.0))
    assert lambda_c.channel == "QEL_CHARM"


# ------------------------- Differential cross sections ---------------------
def test_qel_xsec_zero_outside_range():
    model = QELCrossSection()
    interaction = Interaction.qel_cc(Target.free_nucleon(PDG_NEUTRON), PDG_NEUTRON, PDG_NUMU, 1.0)
    q2 = model.q2_range(interaction)
    assert q2.is_valid

    interaction.kine.set(KineVar.Q2, 0.5 * (q2.min + q2.max))
    assert model.xsec(interaction) > 0.0

    interaction.kine.set(KineVar.Q2, q2.max + 0.1)
    assert model.xsec(interaction) == 0.0


def test_qel_below_threshold_is_zero():
    model = QELCrossSection()
    interaction = Interaction.qel_cc(Target.free_nucleon(PDG_NEUTRON), PDG_NEUTRON, PDG_NUMU, 0.05)
    assert not interaction.is_above_threshold()
    assert model.integral(interaction) == 0.0


def test_res_xsec_non_negative_on_grid():
    model = _model("res-delta")
    interaction = Interaction.res_cc(Target.free_nucleon(PDG_PROTON), PDG_PROTON, PDG_NUMU, 2.0)
    wr = model.w_range(interaction)
    for i in range(10):
        W = wr.min + (i + 0.5) * wr.width / 10
        q2 = model.q2_range(interaction, W)
        fill_from_wq2(interaction, W, 0.5 * (q2.min + q2.max))
        assert model.xsec(interaction) >= 0.0



def test_qel_charm_low_q2_normalisation():
    """At Q2 = 0 the duality model reproduces G_F^2 sin^2(theta_c) (F1^2 + FA^2) (1 - vR/E) / 2pi."""
    model = QELCharmCrossSection()
    E = 10.0
    interaction = Interaction.qel_charm_cc(Target.free_nucleon(PDG_NEUTRON), PDG_NEUTRON, PDG_NUMU, E,
                                           PDG_LAMBDA_CP)
    interaction.kine.set(KineVar.Q2, 0.0)

    MR, M = mass(PDG_LAMBDA_CP), NUCLEON_MASS
    vR = (MR * MR - M * M) / (2.0 * M)
    expected = (FERMI_CONSTANT ** 2 / (2.0 * math.pi) * (1.0 - COS_CABIBBO ** 2) * 2.07
                * (1.0 - vR / E) * GEV2_TO_1E38_CM2)
    assert model.native_xsec(interaction) == pytest.approx(expected, rel=1e-9)
    assert model.xi_bar(1e-10, vR) == pytest.approx(model.xi_bar(0.0, vR), rel=1e-6)


def test_qel_charm_threshold_and_range():
    model = QELCharmCrossSection()
    low = Interaction.qel_charm_cc(Target.free_nucleon(PDG_NEUTRON), PDG_NEUTRON, PDG_NUMU, 2.0, PDG_LAMBDA_CP)
    assert not low.is_above_threshold()
    assert model.integral(low) == 0.0

    interaction = Interaction.qel_charm_cc(Target.free_nucleon(PDG_NEUTRON), PDG_NEUTRON, PDG_NUMU, 10.0,
                                           PDG_LAMBDA_CP)
    q2 = model.q2_range(interaction)
    interaction.kine.set(KineVar.Q2, 0.5 * (q2.min + q2.max))
    assert model.xsec(interaction) > 0.0
    interaction.kine.set(KineVar.Q2, q2.max + 0.1)
    assert model.xsec(interaction) == 0.0


# ------------------------- Integrated cross sections -----------------------
def test_qel_integral_magnitude():
    """nu_mu n -> mu- p is of order 1e-38 cm^2 around 1 GeV."""
    model = QELCrossSection()
    sigma = model.integral(Interaction.qel_cc(Target.free_nucleon(PDG_NEUTRON), PDG_NEUTRON, PDG_NUMU, 1.0))
    assert 0.3 < sigma < 2.0


def test_qel_charm_integral_magnitude():
    """Exclusive charm is a per-mille fraction of the CCQE rate at 10 GeV."""
    model = QELCharmCrossSection()
    free_n = Target.free_nucleon(PDG_NEUTRON)
    lambda_c = model.integral(Interaction.qel_charm_cc(free_n, PDG_NEUTRON, PDG_NUMU, 10.0, PDG_LAMBDA_CP))
    sigma_c = model.integral(Interaction.qel_charm_cc(free_n, PDG_NEUTRON, PDG_NUMU, 10.0, PDG_SIGMA_CP))
    assert 1e-4 < lambda_c < 0.5
    assert 0.0 < sigma_c < lambda_c


def test_integral_zero_for_invalid_process():
    model = QELCrossSection()
    assert model.integral(Interaction.qel_cc(CARBON, PDG_PROTON, PDG_NUMU, 1.0)) == 0.0


def test_mec_integral_tied_to_ccqe():
    mec = _model("mec-empirical")
    qel = QELCrossSection()
    sigma_mec = mec.integral(Interaction.mec_cc(CARBON, PDG_NUMU, 1.0))
    sigma_qe = qel.integral(Interaction.qel_cc(CARBON, PDG_NEUTRON, PDG_NUMU, 1.0))
    assert math.isclose(sigma_mec, 0.1 * sigma_qe * 11 / 2.0, rel_tol=1e-9)


def test_flat_integral_from_config():
    flat = FlatCrossSection(AlgorithmConfig("flat", {"integral": 3.5}))
    assert flat.integral(Interaction.qel_cc(CARBON, PDG_NEUTRON, PDG_NUMU, 1.0)) == 3.5


# ------------------------------ Jacobians ---------------------------------
def test_jacobian_identity_and_support():
    interaction = Interaction.dis_cc(CARBON, PDG_NEUTRON, PDG_NUMU, 5.0)
    fill_from_xy(interaction, 0.3, 0.5)
    assert jacobian(interaction, KinePhaseSpace.X_Y, KinePhaseSpace.X_Y) == 1.0
    assert has_jacobian(KinePhaseSpace.W_Q2, KinePhaseSpace.X_Y)
    assert not has_jacobian(KinePhaseSpace.Q2, KinePhaseSpace.X_Y)
    with pytest.raises(ConfigurationError):
        jacobian(interaction, KinePhaseSpace.Q2, KinePhaseSpace.X_Y)


def test_jacobian_wq2_xy_inverse():
    interaction = Interaction.dis_cc(CARBON, PDG_NEUTRON, PDG_NUMU, 5.0)
    fill_from_xy(interaction, 0.3, 0.5)
    forward = jacobian(interaction, KinePhaseSpace.W_Q2, KinePhaseSpace.X_Y)
    backward = jacobian(interaction, KinePhaseSpace.X_Y, KinePhaseSpace.W_Q2)
    assert forward > 0.0
    assert math.isclose(forward * backward, 1.0, rel_tol=1e-12)


def test_jacobian_matches_finite_difference():
    """|d(W, Q2)/d(x, y)| from a numerical derivative."""
    E, M = 5.0, mass(PDG_NEUTRON)
    x, y, h = 0.3, 0.5, 1e-6

    def wq2(xv, yv):
        return math.sqrt(M * M + 2 * M * E * yv * (1 - xv)), 2 * xv * yv * M * E

    dW_dx = (wq2(x + h, y)[0] - wq2(x - h, y)[0]) / (2 * h)
    dW_dy = (wq2(x, y + h)[0] - wq2(x, y - h)[0]) / (2 * h)
    dQ_dx = (wq2(x + h, y)[1] - wq2(x - h, y)[1]) / (2 * h)
    dQ_dy = (wq2(x, y + h)[1] - wq2(x, y - h)[1]) / (2 * h)
    numeric = abs(dW_dx * dQ_dy - dW_dy * dQ_dx)

    interaction = Interaction.dis_cc(CARBON, PDG_NEUTRON, PDG_NUMU, E)
    fill_from_xy(interaction, x, y)
    assert math.isclose(jacobian(interaction, KinePhaseSpace.W_Q2, KinePhaseSpace.X_Y), numeric, rel_tol=1e-5)


def test_two_body_q2_range():
    r = q2_range_two_body(1.0, mass(PDG_NEUTRON), 0.1056584, mass(PDG_PROTON))
    assert r.is_valid
    assert r.min >= 0.0 and r.max < 2.0
    assert not q2_range_two_body(0.05, mass(PDG_NEUTRON), 0.1056584, mass(PDG_PROTON)).is_valid
