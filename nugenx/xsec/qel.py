"""
Charged-current quasi-elastic scattering (Llewellyn Smith).

d(sigma)/dQ2 = M^2 G_F^2 cos^2(theta_c) / (8 pi E^2)
               * [A -/+ B (s-u)/M^2 + C ((s-u)/M^2)^2]

with dipole vector and axial form factors; the upper sign is for
neutrinos. Native phase space: Q2.
"""

import math

from .base import CrossSectionModel
from .. import particles as pdglib
from ..constants import (
    FERMI_CONSTANT, COS_CABIBBO, GEV2_TO_1E38_CM2, NUCLEON_MASS, CHARGED_PION_MASS,
    VECTOR_MASS, AXIAL_MASS, AXIAL_COUPLING, PROTON_MAGNETIC_MOMENT, NEUTRON_MAGNETIC_MOMENT,
)
from ..interaction import KineVar, ScatteringType
from ..kine_utils import KinePhaseSpace, q2_range_two_body


class QELCrossSection(CrossSectionModel):
    name = "qel-llewellyn-smith"
    description = "CCQE with dipole vector/axial form factors"
    native_phase_space = KinePhaseSpace.Q2

    def load_config(self):
        self.ma = self.config.get_parameter("axial-mass", AXIAL_MASS)
        self.mv = self.config.get_parameter("vector-mass", VECTOR_MASS)
        self.ga = self.config.get_parameter("axial-coupling", AXIAL_COUPLING)
        self.cos_cabibbo = self.config.get_parameter("cos-cabibbo", COS_CABIBBO)

    # -------------------- Form factors --------------------

    def form_factors(self, Q2: float):
        M = NUCLEON_MASS
        tau = Q2 / (4.0 * M * M)
        GD = 1.0 / (1.0 + Q2 / (self.mv * self.mv)) ** 2
        GE = GD
        GM = (PROTON_MAGNETIC_MOMENT - NEUTRON_MAGNETIC_MOMENT) * GD
        F1 = (GE + tau * GM) / (1.0 + tau)
        xiF2 = (GM - GE) / (1.0 + tau)
        FA = -self.ga / (1.0 + Q2 / (self.ma * self.ma)) ** 2
        FP = 2.0 * M * M * FA / (CHARGED_PION_MASS ** 2 + Q2)
        return F1, xiF2, FA, FP

    # -------------------- Model interface --------------------

    def valid_process(self, interaction) -> bool:
        proc = interaction.proc_info
        if proc.scattering != ScatteringType.QEL or not proc.is_cc:
            return False
        if interaction.excl_tag.is_charm:
            return False
        hit = interaction.target.hit_nucleon_pdg
        if pdglib.is_neutrino(interaction.probe_pdg):
            return hit == pdglib.PDG_NEUTRON
        if pdglib.is_anti_neutrino(interaction.probe_pdg):
            return hit == pdglib.PDG_PROTON
        return False

    def q2_range(self, interaction):
        E = interaction.probe_energy
        M = interaction.target.hit_nucleon_mass
        ml = interaction.fs_primary_lepton_mass()
        m_final = pdglib.mass(interaction.recoil_nucleon_pdg())
        return q2_range_two_body(E, M, ml, m_final)

    def valid_kinematics(self, interaction) -> bool:
        if not interaction.is_above_threshold():
            return False
        if not interaction.kine.has(KineVar.Q2):
            return False
        return self.q2_range(interaction).contains(interaction.kine.Q2)

    def native_xsec(self, interaction) -> float:
        E = interaction.probe_energy
        Q2 = interaction.kine.Q2
        ml = interaction.fs_primary_lepton_mass()
        M = NUCLEON_MASS
        M2 = M * M
        ml2 = ml * ml
        tau = Q2 / (4.0 * M2)

        F1, xiF2, FA, FP = self.form_factors(Q2)

        A = (ml2 + Q2) / M2 * (
            (1.0 + tau) * FA * FA
            - (1.0 - tau) * F1 * F1
            + tau * (1.0 - tau) * xiF2 * xiF2
            + 4.0 * tau * F1 * xiF2
            - 0.25 * ml2 / M2 * ((F1 + xiF2) ** 2 + (FA + 2.0 * FP) ** 2 - (Q2 / M2 + 4.0) * FP * FP)
        )
        B = Q2 / M2 * FA * (F1 + xiF2)
        C = 0.25 * (FA * FA + F1 * F1 + tau * xiF2 * xiF2)

        su = (4.0 * M * E - Q2 - ml2) / M2
        sign = -1.0 if pdglib.is_neutrino(interaction.probe_pdg) else 1.0
        bracket = A + sign * B * su + C * su * su

        prefactor = M2 * (FERMI_CONSTANT * self.cos_cabibbo) ** 2 / (8.0 * math.pi * E * E)
        return prefactor * bracket * GEV2_TO_1E38_CM2

    def integral(self, interaction) -> float:
        if not self.valid_process(interaction) or not interaction.is_above_threshold():
            return 0.0
        probe = interaction.fresh_copy()
        q2 = self.q2_range(probe)
        if not q2.is_valid:
            return 0.0

        def dxsec(Q2):
            probe.kine.set(KineVar.Q2, Q2)
            return self.xsec(probe)

        return self.integrator.integrate_function(dxsec, q2.min, q2.max)
