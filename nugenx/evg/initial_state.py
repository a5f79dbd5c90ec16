import logging

from .base import EventRecordVisitor
from ..event_record import Status

logger = logging.getLogger(__name__)


class InitialStateAppender(EventRecordVisitor):
    """
    Writes the initial state into an empty record:

        [0] probe
        [1] target (nucleus or free nucleon)
        [2] struck nucleon or nucleon cluster, nuclear targets only
    """

    name = "initial-state-appender"

    def process_event_record(self, record, rng=None):
        if len(record) != 0:
            raise ValueError("Initial state must be written into an empty event record")

        init = record.interaction.init_state
        target = init.target

        record.append_particle(init.probe_pdg, Status.INITIAL, -1, init.probe_p4)

        if target.is_free_nucleon:
            record.append_particle(target.pdg, Status.INITIAL, -1, init.target_p4)
            return

        record.append_particle(target.pdg, Status.INITIAL, -1, init.target_p4)
        if target.hit_nucleon_pdg is not None:
            record.append_particle(target.hit_nucleon_pdg, Status.NUCLEON_TARGET, 1, init.hit_nucleon_p4)
        logger.debug(f"Initial state: {record.interaction.as_string()}")
