"""
Coherent pion production off a whole nucleus.

A PCAC-inspired shape: A^2 scaling, a (1 - y) lepton factor, an axial
propagator in Q2 and an exponential nuclear form factor evaluated at
|t|_min = ((Q2 + m_pi^2) / 2 nu)^2. Native phase space: (x, y).
"""

import math

from .base import CrossSectionModel
from ..constants import (
    FERMI_CONSTANT, GEV2_TO_1E38_CM2, HBARC, NUCLEAR_R0, CHARGED_PION_MASS, NEUTRAL_PION_MASS,
)
from ..interaction import KineVar, ScatteringType
from ..kine_utils import KinePhaseSpace, kinematic_mass, x_range, y_range_x, fill_from_xy
from ..integrator import get_integrator

PION_DECAY_CONSTANT = 0.0924   # GeV


class COHCrossSection(CrossSectionModel):
    name = "coh-pion"
    description = "Coherent pi production, A^2 scaling with nuclear form factor"
    native_phase_space = KinePhaseSpace.X_Y

    def default_integration_points(self) -> int:
        return 61

    def load_config(self):
        self.ma = self.config.get_parameter("axial-mass", 1.0)
        self.r0 = self.config.get_parameter("r0", NUCLEAR_R0)
        self.norm = self.config.get_parameter("normalization", 1.0)

    def pion_mass(self, interaction) -> float:
        return NEUTRAL_PION_MASS if interaction.proc_info.is_nc else CHARGED_PION_MASS

    def slope(self, A: int) -> float:
        """Form-factor slope b (GeV^-2), exp(-b |t|)."""
        radius = self.r0 * A ** (1.0 / 3.0) / HBARC
        return radius * radius / 3.0

    def valid_process(self, interaction) -> bool:
        proc = interaction.proc_info
        return (proc.scattering == ScatteringType.COH and proc.is_weak
                and interaction.target.is_nucleus)

    def valid_kinematics(self, interaction) -> bool:
        if not interaction.is_above_threshold():
            return False
        kine = interaction.kine
        if not (kine.has(KineVar.X) and kine.has(KineVar.Y)):
            return False
        x, y = kine.x, kine.y
        if not (0.0 < x < 1.0 and 0.0 < y < 1.0):
            return False
        nu = y * interaction.probe_energy
        ml = interaction.fs_primary_lepton_mass()
        return nu > self.pion_mass(interaction) and interaction.probe_energy - nu > ml

    def native_xsec(self, interaction) -> float:
        E = interaction.probe_energy
        M = kinematic_mass(interaction)
        A = interaction.target.A
        kine = interaction.kine
        x, y, Q2 = kine.x, kine.y, kine.Q2
        nu = y * E
        m_pi = self.pion_mass(interaction)

        t_min = ((Q2 + m_pi * m_pi) / (2.0 * nu)) ** 2
        form_factor = math.exp(-self.slope(A) * t_min)
        propagator = (self.ma * self.ma / (self.ma * self.ma + Q2)) ** 2
        pion_phase_space = math.sqrt(max(0.0, 1.0 - (m_pi / nu) ** 2))

        value = (FERMI_CONSTANT ** 2 * M * E / (2.0 * math.pi ** 2)
                 * PION_DECAY_CONSTANT ** 2 * A * A
                 * (1.0 - y) * propagator * form_factor * pion_phase_space
                 * self.norm * GEV2_TO_1E38_CM2)
        if interaction.proc_info.is_cc:
            # Adler relation: CC = 2 x NC
            value *= 2.0
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
