"""
Deep inelastic scattering in the quark-parton model.

d2(sigma)/dxdy = G_F^2 M E / (pi (1 + Q2/M_W^2)^2)
                 * [ y^2 x F1 + (1 - y - M x y / 2E) F2 +/- y (1 - y/2) xF3 ]

The parton densities are a compact valence + sea parametrisation meant
for event generation studies, not a PDF fit. 2xF1 = F2 (Callan-Gross).
Native phase space: (x, y).
"""

import math

from .base import CrossSectionModel
from .. import particles as pdglib
from ..constants import FERMI_CONSTANT, GEV2_TO_1E38_CM2, COS_CABIBBO
from ..interaction import KineVar, ScatteringType
from ..kine_utils import (
    KinePhaseSpace, kinematic_mass, x_range, y_range_x, inelastic_w_min, fill_from_xy,
)
from ..integrator import get_integrator

W_BOSON_MASS = 80.379
Q2_MIN = 1e-4

# valence normalisations: int u_v = 2, int d_v = 1
_NU = 2.1875
_ND = 1.2305


def valence_up(x):
    return _NU * x ** 0.5 * (1.0 - x) ** 3


def valence_down(x):
    return _ND * x ** 0.5 * (1.0 - x) ** 4


def sea(x, scale=0.06):
    return scale * (1.0 - x) ** 7


class DISCrossSection(CrossSectionModel):
    name = "dis-parton-model"
    description = "Quark-parton model DIS with valence/sea densities"
    native_phase_space = KinePhaseSpace.X_Y

    def default_integration_points(self) -> int:
        return 61

    def load_config(self):
        self.sea_scale = self.config.get_parameter("sea-scale", 0.06)
        self.nc_ratio = self.config.get_parameter("nc-ratio", 0.3)

    # -------------------- Parton content --------------------

    def parton_densities(self, interaction, x: float):
        """x*q and x*qbar seen by the exchanged boson."""
        u_v, d_v, s = valence_up(x), valence_down(x), sea(x, self.sea_scale)
        if interaction.target.hit_nucleon_pdg == pdglib.PDG_NEUTRON:
            u_v, d_v = d_v, u_v
        if pdglib.is_neutrino(interaction.probe_pdg):
            # d, s -> u, c ; ubar -> dbar
            return d_v + s + s, s
        # u -> d ; dbar, sbar -> ubar, cbar
        return u_v + s, s + s

    def structure_functions(self, interaction, x: float):
        q, qbar = self.parton_densities(interaction, x)
        F2 = 2.0 * (q + qbar)
        xF3 = 2.0 * (q - qbar)
        return F2, xF3

    # -------------------- Model interface --------------------

    def valid_process(self, interaction) -> bool:
        proc = interaction.proc_info
        if proc.scattering != ScatteringType.DIS or not proc.is_weak:
            return False
        if interaction.excl_tag.is_charm:
            return False
        return pdglib.is_nucleon(interaction.target.hit_nucleon_pdg or 0)

    def valid_kinematics(self, interaction) -> bool:
        if not interaction.is_above_threshold():
            return False
        kine = interaction.kine
        if not (kine.has(KineVar.X) and kine.has(KineVar.Y)):
            return False
        x, y = kine.x, kine.y
        if not (0.0 < x < 1.0 and 0.0 < y < 1.0):
            return False
        if kine.W < inelastic_w_min(interaction) or kine.Q2 < Q2_MIN:
            return False
        return True

    def native_xsec(self, interaction) -> float:
        E = interaction.probe_energy
        M = kinematic_mass(interaction)
        kine = interaction.kine
        x, y, Q2 = kine.x, kine.y, kine.Q2

        F2, xF3 = self.structure_functions(interaction, x)
        xF1 = 0.5 * F2
        sign = 1.0 if pdglib.is_neutrino(interaction.probe_pdg) else -1.0
        bracket = (y * y * xF1
                   + (1.0 - y - 0.5 * M * x * y / E) * F2
                   + sign * y * (1.0 - 0.5 * y) * xF3)
        propagator = 1.0 / (1.0 + Q2 / W_BOSON_MASS ** 2) ** 2
        value = FERMI_CONSTANT ** 2 * M * E / math.pi * propagator * bracket * GEV2_TO_1E38_CM2
        if interaction.proc_info.is_nc:
            value *= self.nc_ratio
        return value

    def integral(self, interaction) -> float:
        if not self.valid_process(interaction) or not interaction.is_above_threshold():
            return 0.0
        probe = interaction.fresh_copy()
        E = probe.probe_energy
        M = kinematic_mass(probe)
        ml = probe.fs_primary_lepton_mass()
        xr = x_range(E, M, ml)
        if not xr.is_valid:
            return 0.0
        inner = get_integrator(self.integrator.name, self.integrator.n_points)

        def dxsec_dx(x):
            yr = y_range_x(E, M, ml, x)
            if not yr.is_valid:
                return 0.0

            def dxsec(y):
                fill_from_xy(probe, x, y)
                return self.xsec(probe)

            return inner.integrate_function(dxsec, yr.min, yr.max)

        return self.integrator.integrate_function(dxsec_dx, xr.min, xr.max)


class CharmDISCrossSection(DISCrossSection):
    """
    Inclusive charm production in CC DIS: d -> c (Cabibbo suppressed) and
    s -> c transitions only.
    """

    name = "dis-charm"
    description = "CC DIS charm production off d and s quarks"

    def load_config(self):
        super().load_config()
        self.charm_mass = self.config.get_parameter("charm-mass", 1.43)

    def parton_densities(self, interaction, x: float):
        u_v, d_v, s = valence_up(x), valence_down(x), sea(x, self.sea_scale)
        if interaction.target.hit_nucleon_pdg == pdglib.PDG_NEUTRON:
            u_v, d_v = d_v, u_v
        sin2_c = 1.0 - COS_CABIBBO ** 2
        return sin2_c * (d_v + s) + COS_CABIBBO ** 2 * s, 0.0

    def valid_process(self, interaction) -> bool:
        proc = interaction.proc_info
        if proc.scattering != ScatteringType.DIS or not proc.is_cc:
            return False
        if not interaction.excl_tag.is_charm or not pdglib.is_neutrino(interaction.probe_pdg):
            return False
        return pdglib.is_nucleon(interaction.target.hit_nucleon_pdg or 0)

    def valid_kinematics(self, interaction) -> bool:
        if not super().valid_kinematics(interaction):
            return False
        w_min = kinematic_mass(interaction) + pdglib.mass(pdglib.PDG_D0)
        return interaction.kine.W > w_min
