"""
Kinematics selection by rejection sampling.

Every generator follows the same loop:

    Init -> SampleCandidate -> Evaluate -> Accept | Reject -> ... -> Fail

Candidates are drawn uniformly in a bounding box of the sampling variables;
points outside the closed-form allowed region count as rejections. A point
is accepted with probability xsec / envelope, where the envelope is the
safety factor times the cached maximum cross section for the channel.
After ``max-attempts`` rejections the record is flagged and
``KinematicsExhausted`` is raised.
"""

import logging
import math
from abc import abstractmethod
from typing import Dict, List, Optional

import numpy as np

from .base import EventRecordVisitor
from .. import particles as pdglib
from ..config import (
    DEFAULT_MAX_KINE_ATTEMPTS, DEFAULT_SAFETY_FACTOR, DEFAULT_SCAN_POINTS, DEFAULT_REFINE_ITERATIONS,
)
from ..constants import CHARGED_PION_MASS, NEUTRAL_PION_MASS
from ..event_record import EventFlag
from ..exceptions import ConfigurationError, KinematicsExhausted
from ..interaction import Interaction, Kinematics, KineVar
from ..kine_utils import (
    KinePhaseSpace, Range1D, has_jacobian, kinematic_mass, q2_range_two_body, w_range,
    x_range, y_range_x, inelastic_w_min, fill_from_xy, fill_from_wq2,
)
from ..max_xsec_cache import MaxXSecCache
from ..unweighting import RejectionSampler

logger = logging.getLogger(__name__)


class KinematicsGenerator(EventRecordVisitor):
    phase_space: KinePhaseSpace = KinePhaseSpace.Q2

    def __init__(self, config=None, cache: Optional[MaxXSecCache] = None):
        self.cache = cache if cache is not None else MaxXSecCache()
        self.sampler = RejectionSampler()
        super().__init__(config)

    def load_config(self):
        self.xsec_model = self.config.get_sub_algorithm("xsec-model")
        self.max_attempts = self.config.get_parameter("max-attempts", DEFAULT_MAX_KINE_ATTEMPTS)
        self.safety_factor = self.config.get_parameter("safety-factor", DEFAULT_SAFETY_FACTOR)
        self.scan_points = self.config.get_parameter("scan-points", DEFAULT_SCAN_POINTS)
        self.refine_iterations = self.config.get_parameter("refine-iterations", DEFAULT_REFINE_ITERATIONS)

        if self.max_attempts < 1:
            raise ConfigurationError(f"{self.config.name}: max-attempts must be >= 1")
        if self.safety_factor < 1.0:
            raise ConfigurationError(f"{self.config.name}: safety-factor must be >= 1")
        if self.scan_points < 2:
            raise ConfigurationError(f"{self.config.name}: scan-points must be >= 2")
        native = self.xsec_model.native_phase_space
        if not has_jacobian(native, self.phase_space):
            raise ConfigurationError(
                f"{self.config.name}: model '{self.xsec_model.name}' is defined in "
                f"{native.value}, no Jacobian to {self.phase_space.value}"
            )

    # -------------------- Sampling space --------------------

    @abstractmethod
    def allowed_box(self, interaction: Interaction) -> Optional[List[Range1D]]:
        """Bounding box of the sampling variables, or None if no phase space exists."""

    @abstractmethod
    def in_allowed_range(self, interaction: Interaction, values: List[float]) -> bool:
        """Exact closed-form check of a candidate."""

    @abstractmethod
    def apply_candidate(self, interaction: Interaction, values: List[float]):
        """Write the candidate (and derived variables) as running kinematics."""

    def sample_candidate(self, box: List[Range1D], rng: np.random.Generator) -> List[float]:
        return [rng.uniform(r.min, r.max) for r in box]

    # -------------------- Evaluation --------------------

    def evaluate(self, interaction: Interaction, values: List[float]) -> float:
        if not self.in_allowed_range(interaction, values):
            return 0.0
        self.apply_candidate(interaction, values)
        return self.xsec_model.xsec(interaction, self.phase_space)

    def compute_max_xsec(self, interaction: Interaction) -> float:
        """Coarse grid scan of the box, then local refinement around the best point."""
        box = self.allowed_box(interaction)
        if box is None:
            return 0.0

        axes = [np.linspace(r.min, r.max, self.scan_points) for r in box]
        best_value, best_point = 0.0, None
        for point in _grid_points(axes):
            value = self.evaluate(interaction, point)
            if value > best_value:
                best_value, best_point = value, point

        if best_point is None:
            interaction.kine.clear_running()
            return 0.0

        half_widths = [r.width / (self.scan_points - 1) for r in box]
        for _ in range(self.refine_iterations):
            local_axes = [
                np.linspace(max(r.min, c - h), min(r.max, c + h), 5)
                for r, c, h in zip(box, best_point, half_widths)
            ]
            for point in _grid_points(local_axes):
                value = self.evaluate(interaction, point)
                if value > best_value:
                    best_value, best_point = value, point
            half_widths = [0.5 * h for h in half_widths]

        interaction.kine.clear_running()
        logger.debug(f"{type(self).__name__}: max xsec {best_value:.6e} at {best_point}")
        return best_value

    def _probe_at(self, interaction: Interaction):
        def probe(energy: float) -> float:
            copy = interaction.fresh_copy()
            copy = Interaction(copy.init_state.with_energy(energy), copy.proc_info, Kinematics(), copy.excl_tag)
            return self.compute_max_xsec(copy)
        return probe

    # -------------------- Main loop --------------------

    def process_event_record(self, record, rng=None):
        rng = rng or np.random.default_rng()
        interaction = record.interaction

        box = self.allowed_box(interaction)
        if box is None:
            record.set_flag(EventFlag.NO_AVAILABLE_PHASE_SPACE)
            raise KinematicsExhausted(f"No allowed phase space for {interaction.as_string()}")

        fingerprint = interaction.fingerprint()
        energy = interaction.probe_energy
        envelope = self.cache.get_or_compute_max(
            fingerprint, energy, self._probe_at(interaction), self.safety_factor
        )

        cached_max = self.cache.peek(fingerprint).max_xsec

        for attempt in range(1, self.max_attempts + 1):
            values = self.sample_candidate(box, rng)
            xsec = self.evaluate(interaction, values)

            if xsec > cached_max:
                if xsec > envelope:
                    logger.warning(
                        f"xsec {xsec:.6e} above envelope {envelope:.6e} for {fingerprint} "
                        f"at {interaction.kine!r}; raising cached maximum"
                    )
                self.cache.update(fingerprint, xsec)
                # later candidates of this event use the raised envelope
                entry = self.cache.peek(fingerprint)
                cached_max, envelope = entry.max_xsec, entry.envelope

            if self.sampler.accept(xsec, envelope, rng):
                interaction.kine.select()
                record.diff_xsec = xsec
                logger.debug(f"Selected {interaction.kine!r} after {attempt} attempts (xsec={xsec:.6e})")
                return

        interaction.kine.clear_running()
        record.set_flag(EventFlag.NO_AVAILABLE_PHASE_SPACE)
        raise KinematicsExhausted(
            f"No kinematics accepted for {fingerprint} at E={energy:.4f} "
            f"after {self.max_attempts} attempts",
            attempts=self.max_attempts,
        )


def _grid_points(axes):
    if len(axes) == 1:
        for a in axes[0]:
            yield [float(a)]
        return
    for a in axes[0]:
        for rest in _grid_points(axes[1:]):
            yield [float(a)] + rest


# -----------------------------
# QEL: Q2
# -----------------------------
class QELKinematicsGenerator(KinematicsGenerator):
    name = "qel-kinematics"
    phase_space = KinePhaseSpace.Q2

    def _final_mass(self, interaction):
        return pdglib.mass(interaction.recoil_baryon_pdg())

    def allowed_box(self, interaction):
        E = interaction.probe_energy
        M = kinematic_mass(interaction)
        ml = interaction.fs_primary_lepton_mass()
        q2 = q2_range_two_body(E, M, ml, self._final_mass(interaction))
        return [q2] if q2.is_valid else None

    def in_allowed_range(self, interaction, values):
        box = self.allowed_box(interaction)
        return box is not None and box[0].contains(values[0])

    def apply_candidate(self, interaction, values):
        Q2 = values[0]
        E = interaction.probe_energy
        M = kinematic_mass(interaction)
        m_final = self._final_mass(interaction)
        nu = (m_final * m_final - M * M + Q2) / (2.0 * M)
        kine = interaction.kine
        kine.set(KineVar.Q2, Q2)
        kine.set(KineVar.W, m_final)
        kine.set(KineVar.Y, nu / E)
        kine.set(KineVar.X, Q2 / (2.0 * M * nu) if nu > 0.0 else 0.0)


# -----------------------------
# DIS / COH: (x, y)
# -----------------------------
class _XYKinematicsGenerator(KinematicsGenerator):
    phase_space = KinePhaseSpace.X_Y

    def allowed_box(self, interaction):
        E = interaction.probe_energy
        M = kinematic_mass(interaction)
        ml = interaction.fs_primary_lepton_mass()
        xr = x_range(E, M, ml)
        if not xr.is_valid:
            return None
        return [xr, Range1D(1e-6, 1.0 - 1e-6)]

    def in_allowed_range(self, interaction, values):
        x, y = values
        E = interaction.probe_energy
        M = kinematic_mass(interaction)
        ml = interaction.fs_primary_lepton_mass()
        yr = y_range_x(E, M, ml, x)
        return yr.is_valid and yr.contains(y)

    def apply_candidate(self, interaction, values):
        fill_from_xy(interaction, values[0], values[1])


class DISKinematicsGenerator(_XYKinematicsGenerator):
    name = "dis-kinematics"

    def in_allowed_range(self, interaction, values):
        if not super().in_allowed_range(interaction, values):
            return False
        x, y = values
        E = interaction.probe_energy
        M = kinematic_mass(interaction)
        W2 = M * M + 2.0 * M * E * y * (1.0 - x)
        return W2 > inelastic_w_min(interaction) ** 2


class COHKinematicsGenerator(_XYKinematicsGenerator):
    name = "coh-kinematics"

    def in_allowed_range(self, interaction, values):
        if not super().in_allowed_range(interaction, values):
            return False
        x, y = values
        E = interaction.probe_energy
        m_pi = NEUTRAL_PION_MASS if interaction.proc_info.is_nc else CHARGED_PION_MASS
        M_A = interaction.target.mass
        nu = y * E
        Q2 = 2.0 * x * y * kinematic_mass(interaction) * E
        # pion + recoiling nucleus must fit into q + P_A
        return nu > m_pi + (Q2 + m_pi * m_pi) / (2.0 * M_A)


# -----------------------------
# RES / MEC: (W, Q2)
# -----------------------------
class _WQ2KinematicsGenerator(KinematicsGenerator):
    phase_space = KinePhaseSpace.W_Q2

    def load_config(self):
        super().load_config()
        self.w_max = self.config.get_parameter("w-max", 0.0)

    @abstractmethod
    def w_min(self, interaction) -> float:
        """Lowest hadronic invariant mass."""

    def _limits(self, interaction):
        E = interaction.probe_energy
        M = kinematic_mass(interaction)
        ml = interaction.fs_primary_lepton_mass()
        return E, M, ml

    def allowed_box(self, interaction):
        E, M, ml = self._limits(interaction)
        w_lo = self.w_min(interaction)
        wr = w_range(E, M, ml, w_lo)
        if not wr.is_valid:
            return None
        if self.w_max > 0.0:
            if self.w_max <= wr.min:
                return None
            wr = Range1D(wr.min, min(wr.max, self.w_max))
        # Q2 limits are widest at the lowest W
        q2 = q2_range_two_body(E, M, ml, wr.min)
        if not q2.is_valid:
            return None
        return [wr, q2]

    def in_allowed_range(self, interaction, values):
        W, Q2 = values
        E, M, ml = self._limits(interaction)
        q2 = q2_range_two_body(E, M, ml, W)
        return q2.is_valid and q2.contains(Q2)

    def apply_candidate(self, interaction, values):
        fill_from_wq2(interaction, values[0], values[1])


class RESKinematicsGenerator(_WQ2KinematicsGenerator):
    name = "res-kinematics"

    def w_min(self, interaction):
        return inelastic_w_min(interaction)


class MECKinematicsGenerator(_WQ2KinematicsGenerator):
    name = "mec-kinematics"

    def w_min(self, interaction):
        return pdglib.mass(interaction.recoil_cluster_pdg())


def acceptance_estimate(generator: KinematicsGenerator, interaction: Interaction,
                        n_points: int = 20000, rng: Optional[np.random.Generator] = None) -> Dict[str, float]:
    """
    Monte Carlo estimate of the expected acceptance rate
    integral(xsec) / (envelope * box volume) for a generator and channel.
    """
    rng = rng or np.random.default_rng()
    probe = interaction.fresh_copy()
    box = generator.allowed_box(probe)
    if box is None:
        return {"volume": 0.0, "integral": 0.0, "envelope": 0.0, "expected_rate": 0.0}
    volume = math.prod(r.width for r in box)
    values = [generator.evaluate(probe, generator.sample_candidate(box, rng)) for _ in range(n_points)]
    integral = volume * float(np.mean(values))
    envelope = generator.cache.get_or_compute_max(
        probe.fingerprint(), probe.probe_energy, generator._probe_at(probe), generator.safety_factor
    )
    rate = integral / (envelope * volume) if envelope > 0.0 else 0.0
    return {"volume": volume, "integral": integral, "envelope": envelope, "expected_rate": rate}
