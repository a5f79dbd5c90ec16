"""
Single Delta(1232) production.

d2(sigma)/dWdQ2 = norm * I * BW(W) * (1 + Q2/M_A^2)^-2 * (1 - Q2/Q2_max)

BW is a relativistic Breit-Wigner and I an isospin factor for the
produced resonance. Native phase space: (W, Q2).
"""

import math

from .base import CrossSectionModel
from .. import particles as pdglib
from ..constants import DELTA_MASS, DELTA_WIDTH, AXIAL_MASS
from ..interaction import KineVar, ScatteringType
from ..kine_utils import (
    KinePhaseSpace, kinematic_mass, w_range, q2_range_two_body, inelastic_w_min, fill_from_wq2,
)
from ..integrator import get_integrator

# (is_cc, resonance pdg) -> Clebsch-Gordan weight
ISOSPIN_FACTORS = {
    (True, pdglib.PDG_DELTA_PP): 1.0,
    (True, pdglib.PDG_DELTA_P): 1.0 / 3.0,
    (True, pdglib.PDG_DELTA_0): 1.0 / 3.0,
    (True, pdglib.PDG_DELTA_M): 1.0,
    (False, pdglib.PDG_DELTA_P): 2.0 / 3.0,
    (False, pdglib.PDG_DELTA_0): 2.0 / 3.0,
}


def breit_wigner(W: float, mass: float, width: float) -> float:
    m2 = mass * mass
    return (W * mass * width / math.pi) / ((W * W - m2) ** 2 + m2 * width * width)


class RESCrossSection(CrossSectionModel):
    name = "res-delta"
    description = "Delta(1232) production, Breit-Wigner in W times dipole in Q2"
    native_phase_space = KinePhaseSpace.W_Q2

    def default_integration_points(self) -> int:
        return 61

    def load_config(self):
        self.norm = self.config.get_parameter("normalization", 1.5)
        self.mass = self.config.get_parameter("resonance-mass", DELTA_MASS)
        self.width = self.config.get_parameter("resonance-width", DELTA_WIDTH)
        self.ma = self.config.get_parameter("axial-mass", 1.12)
        self.nc_factor = self.config.get_parameter("nc-factor", 0.25)
        self.w_cut = self.config.get_parameter("w-max", 1.7)

    def valid_process(self, interaction) -> bool:
        proc = interaction.proc_info
        if proc.scattering != ScatteringType.RES or not proc.is_weak:
            return False
        key = (proc.is_cc, interaction.excl_tag.resonance_pdg)
        return key in ISOSPIN_FACTORS and pdglib.is_nucleon(interaction.target.hit_nucleon_pdg or 0)

    def w_range(self, interaction):
        E = interaction.probe_energy
        M = kinematic_mass(interaction)
        ml = interaction.fs_primary_lepton_mass()
        wr = w_range(E, M, ml, inelastic_w_min(interaction))
        if not wr.is_valid:
            return wr
        return type(wr)(wr.min, min(wr.max, self.w_cut))

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
        if not self.w_range(interaction).contains(W):
            return False
        return self.q2_range(interaction, W).contains(Q2)

    def native_xsec(self, interaction) -> float:
        kine = interaction.kine
        W, Q2 = kine.W, kine.Q2
        q2r = self.q2_range(interaction, W)
        suppression = max(0.0, 1.0 - Q2 / q2r.max) if q2r.max > 0.0 else 0.0
        isospin = ISOSPIN_FACTORS[(interaction.proc_info.is_cc, interaction.excl_tag.resonance_pdg)]
        value = (self.norm * isospin * breit_wigner(W, self.mass, self.width)
                 / (1.0 + Q2 / (self.ma * self.ma)) ** 2 * suppression)
        if interaction.proc_info.is_nc:
            value *= self.nc_factor
        return value

    def integral(self, interaction) -> float:
        if not self.valid_process(interaction) or not interaction.is_above_threshold():
            return 0.0
        probe = interaction.fresh_copy()
        wr = self.w_range(probe)
        if not wr.is_valid:
            return 0.0
        inner = get_integrator(self.integrator.name, self.integrator.n_points)

        def dxsec_dw(W):
            q2r = self.q2_range(probe, W)
            if not q2r.is_valid:
                return 0.0

            def dxsec(Q2):
                fill_from_wq2(probe, W, Q2)
                return self.xsec(probe)

            return inner.integrate_function(dxsec, q2r.min, q2r.max)

        return self.integrator.integrate_function(dxsec_dw, wr.min, wr.max)
