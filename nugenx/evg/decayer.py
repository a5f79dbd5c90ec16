import logging

import numpy as np

from .base import EventRecordVisitor
from .hadronic_system import primary_hadron_status
from ..config import DEFAULT_MAX_LIFETIME
from ..event_record import EventFlag, Status
from ..exceptions import DecayFailure
from ..particles import PDGLibrary

logger = logging.getLogger(__name__)


class _DecayStage(EventRecordVisitor):
    def load_config(self):
        self.decay_model = self.config.get_sub_algorithm("decay-model")

    def decay_entry(self, record, index, status, rng):
        particle = record[index]
        products = self.decay_model.decay(particle.pdg, particle.momentum, rng)
        if not products:
            record.set_flag(EventFlag.DECAY_FAILED)
            raise DecayFailure(
                f"No allowed decay for [{index}] {particle.name} (m={particle.momentum.mass:.4f})"
            )
        for pdg, p4 in products:
            record.append_particle(pdg, status, index, p4, particle.position,
                                   formation_zone_pending=(status == Status.HADRON_IN_NUCLEUS))
        record.set_status(index, Status.DECAYED)
        logger.debug(f"Decayed [{index}] {particle.name} -> {[pdg for pdg, _ in products]}")


class ResonanceDecayer(_DecayStage):
    """Decays baryon resonances produced at the primary vertex."""

    name = "resonance-decayer"

    def process_event_record(self, record, rng=None):
        rng = rng or np.random.default_rng()
        status = primary_hadron_status(record)
        for index in record.indices_with_status(Status.PRE_DECAY_RESONANT):
            self.decay_entry(record, index, status, rng)


class UnstableParticleDecayer(_DecayStage):
    """
    Decays final-state particles whose lifetime is below
    ``max-lifetime-for-unstables`` (seconds). Decay products are examined in
    turn, so chains (D -> K pi pi0 -> ... gamma gamma) are followed.
    """

    name = "unstable-particle-decayer"

    def load_config(self):
        super().load_config()
        self.max_lifetime = self.config.get_parameter("max-lifetime-for-unstables", DEFAULT_MAX_LIFETIME)

    def should_decay(self, pdg: int) -> bool:
        species = PDGLibrary.find(pdg)
        if species is None or species.is_stable:
            return False
        return species.lifetime < self.max_lifetime and self.decay_model.can_decay(pdg)

    def process_event_record(self, record, rng=None):
        rng = rng or np.random.default_rng()
        index = 0
        while index < len(record):
            particle = record[index]
            if particle.status == Status.STABLE_FINAL and self.should_decay(particle.pdg):
                self.decay_entry(record, index, Status.STABLE_FINAL, rng)
            index += 1
