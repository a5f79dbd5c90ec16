from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from ..config import AlgorithmConfig
from ..event_record import EventRecord


class EventRecordVisitor(ABC):
    """
    Base class for pipeline stages.

    A stage is configured once at construction and then applied to many
    event records. It must not keep references to a record after
    ``process_event_record`` returns.
    """

    name: str = "abstract"

    def __init__(self, config: Optional[AlgorithmConfig] = None):
        self.config = config if config is not None else AlgorithmConfig(type(self).__name__)
        self.load_config()

    def load_config(self):
        """Read parameters and resolve sub-algorithms from self.config."""

    @abstractmethod
    def process_event_record(self, record: EventRecord, rng: Optional[np.random.Generator] = None):
        """
        Add to or modify `record`.

        Raises:
            EventGenerationError: the event attempt must be abandoned
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
