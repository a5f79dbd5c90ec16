import logging
import math

import numpy as np

from .base import EventRecordVisitor
from ..event_record import EventFlag, Status
from ..exceptions import KinematicsExhausted
from ..interaction import KineVar
from ..kinematics import FourVector, direction_from_angles

logger = logging.getLogger(__name__)


class PrimaryLeptonGenerator(EventRecordVisitor):
    """
    Adds the final-state primary lepton from the selected (y, Q2):

        El = E - y E
        cos(theta) = (2 E El - ml^2 - Q2) / (2 E pl)

    with a uniform azimuth around the probe direction.
    """

    name = "primary-lepton-generator"

    def load_config(self):
        self.cos_tolerance = self.config.get_parameter("cos-theta-tolerance", 1e-6)

    def lepton_p4(self, interaction, probe_p4: FourVector, rng) -> FourVector:
        kine = interaction.kine
        E = probe_p4.E
        ml = interaction.fs_primary_lepton_mass()
        nu = kine.get(KineVar.Y, selected=True) * E
        Q2 = kine.get(KineVar.Q2, selected=True)

        El = E - nu
        if El <= ml:
            raise KinematicsExhausted(f"Lepton energy {El:.6f} below its mass {ml:.6f}")
        pl = math.sqrt(max(0.0, El * El - ml * ml))
        cos_theta = (2.0 * E * El - ml * ml - Q2) / (2.0 * E * pl)

        if abs(cos_theta) > 1.0 + self.cos_tolerance:
            raise KinematicsExhausted(
                f"Unphysical lepton angle cos(theta)={cos_theta:.8f} at {kine!r}"
            )
        cos_theta = min(1.0, max(-1.0, cos_theta))

        phi = rng.uniform(0.0, 2.0 * math.pi)
        axis = probe_p4.p / probe_p4.magnitude
        direction = direction_from_angles(cos_theta, phi, axis)
        p = pl * direction
        return FourVector(El, float(p[0]), float(p[1]), float(p[2]))

    def process_event_record(self, record, rng=None):
        rng = rng or np.random.default_rng()
        interaction = record.interaction
        probe = record[record.probe_index()]

        try:
            p4 = self.lepton_p4(interaction, probe.momentum, rng)
        except KinematicsExhausted:
            record.set_flag(EventFlag.NO_AVAILABLE_PHASE_SPACE)
            raise
        pdg = interaction.fs_primary_lepton_pdg()
        index = record.append_particle(pdg, Status.STABLE_FINAL, 0, p4)
        logger.debug(f"Primary lepton [{index}] {record[index].name}: {p4}")
