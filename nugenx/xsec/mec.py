"""
Empirical meson-exchange-current (2p2h) model.

The differential shape is a Gaussian in the hadronic invariant mass W
times (1 + Q2/Mq^2)^-1.5. The integrated cross section is tied to CCQE:

    sigma_MEC = f * sigma_CCQE(nucleon) * (A - 1) / 2

where the CCQE model is a required sub-algorithm, and the nucleon is a
neutron for neutrinos, a proton for anti-neutrinos. The differential
output is a shape only and is not normalised to the integral.
"""

import math

from .base import CrossSectionModel
from .. import particles as pdglib
from ..interaction import Interaction, KineVar, ScatteringType, Target
from ..kine_utils import KinePhaseSpace, kinematic_mass, w_range, q2_range_two_body


class MECCrossSection(CrossSectionModel):
    name = "mec-empirical"
    description = "Empirical 2p2h: Gaussian in W, (1+Q2/Mq2)^-1.5 in Q2, scaled to CCQE"
    native_phase_space = KinePhaseSpace.W_Q2

    def load_config(self):
        self.w_mass = self.config.get_parameter("w-mass", 2.1)
        self.w_width = self.config.get_parameter("w-width", 0.3)
        self.q2_mass2 = self.config.get_parameter("q2-mass2", 0.5)
        self.fraction = self.config.get_parameter("fraction-of-ccqe", 0.1)
        self.ccqe_model = self.config.get_sub_algorithm("ccqe-xsec-model")

    def valid_process(self, interaction) -> bool:
        proc = interaction.proc_info
        if proc.scattering != ScatteringType.MEC or not proc.is_cc:
            return False
        if not interaction.target.is_nucleus:
            return False
        return pdglib.is_cluster(interaction.target.hit_nucleon_pdg or 0)

    def w_range(self, interaction):
        E = interaction.probe_energy
        M = kinematic_mass(interaction)
        ml = interaction.fs_primary_lepton_mass()
        w_min = pdglib.mass(interaction.recoil_cluster_pdg())
        return w_range(E, M, ml, w_min)

    def q2_range(self, interaction, W: float):
        E = interaction.probe_energy
        M = kinematic_mass(interaction)
        ml = interaction.fs_primary_lepton_mass()
        return q2_range_two_body(E, M, ml, W)

    def valid_kinematics(self, interaction) -> bool:
        if not interaction.is_above_threshold():
            return False
        kine = interaction.kine
        if not (kine.has(KineVar.W) and kine.has(KineVar.Q2)):
            return False
        W, Q2 = kine.W, kine.Q2
        return self.w_range(interaction).contains(W) and self.q2_range(interaction, W).contains(Q2)

    def native_xsec(self, interaction) -> float:
        kine = interaction.kine
        W, Q2 = kine.W, kine.Q2
        gauss = math.exp(-0.5 * ((W - self.w_mass) / self.w_width) ** 2)
        return gauss * (1.0 + Q2 / self.q2_mass2) ** -1.5

    def integral(self, interaction) -> float:
        if not self.valid_process(interaction) or not interaction.is_above_threshold():
            return 0.0
        tgt = interaction.target
        nucleon = pdglib.PDG_NEUTRON if pdglib.is_neutrino(interaction.probe_pdg) else pdglib.PDG_PROTON
        ccqe = Interaction.qel_cc(Target(tgt.Z, tgt.A), nucleon, interaction.probe_pdg,
                                  interaction.probe_energy)
        return self.fraction * self.ccqe_model.integral(ccqe) * (tgt.A - 1) / 2.0
