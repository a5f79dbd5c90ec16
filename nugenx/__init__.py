"""NuGenX: neutrino-nucleus event generation with an intranuclear cascade."""

from .event_generator import EventGenerator, GenerationOutcome, GenerationStatus, InteractionSelector, run_batch
from .event_record import EventRecord, Status, EventFlag
from .interaction import Interaction, Target

__version__ = "0.1.0"

__all__ = [
    "EventGenerator", "GenerationOutcome", "GenerationStatus", "InteractionSelector", "run_batch",
    "EventRecord", "Status", "EventFlag", "Interaction", "Target",
]
