"""
Per-channel event pipelines.

A pipeline is an ordered list of stages (``EventRecordVisitor``). Stages
talk to each other only through the event record. A stage that cannot
complete raises an ``EventGenerationError``; the pipeline turns it into a
``StageResult`` so the driver can decide whether to retry the event.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Type

import numpy as np

from .config import ConfigRegistry, build_default_registry
from .event_record import EventRecord
from .exceptions import ConfigurationError, EventGenerationError, FailureKind
from .evg.base import EventRecordVisitor
from .evg.decayer import ResonanceDecayer, UnstableParticleDecayer
from .evg.hadronic_system import (
    QELHadronicSystemGenerator, DISHadronicSystemGenerator, CharmHadronicSystemGenerator,
    RESHadronicSystemGenerator, COHHadronicSystemGenerator, MECHadronicSystemGenerator,
)
from .evg.initial_state import InitialStateAppender
from .evg.intranuke import IntranuclearCascade
from .evg.kinematics_generators import (
    KinematicsGenerator, QELKinematicsGenerator, DISKinematicsGenerator, RESKinematicsGenerator,
    COHKinematicsGenerator, MECKinematicsGenerator,
)
from .evg.primary_lepton import PrimaryLeptonGenerator
from .max_xsec_cache import MaxXSecCache

logger = logging.getLogger(__name__)

StageSpec = Tuple[Type[EventRecordVisitor], str]


def _stage(cls: Type[EventRecordVisitor], config_name: Optional[str] = None) -> StageSpec:
    return cls, config_name or cls.__name__


# Stage classes and the configuration entry each one is built from
STAGE_REGISTRY: Dict[str, List[StageSpec]] = {
    "QEL": [
        _stage(InitialStateAppender),
        _stage(QELKinematicsGenerator),
        _stage(PrimaryLeptonGenerator),
        _stage(QELHadronicSystemGenerator),
        _stage(IntranuclearCascade),
        _stage(UnstableParticleDecayer),
    ],
    "QEL_CHARM": [
        _stage(InitialStateAppender),
        _stage(QELKinematicsGenerator, "QELCharmKinematicsGenerator"),
        _stage(PrimaryLeptonGenerator),
        _stage(QELHadronicSystemGenerator),
        _stage(IntranuclearCascade),
        _stage(UnstableParticleDecayer),
    ],
    "DIS": [
        _stage(InitialStateAppender),
        _stage(DISKinematicsGenerator),
        _stage(PrimaryLeptonGenerator),
        _stage(DISHadronicSystemGenerator),
        _stage(IntranuclearCascade),
        _stage(UnstableParticleDecayer),
    ],
    "DIS_CHARM": [
        _stage(InitialStateAppender),
        _stage(DISKinematicsGenerator, "CharmDISKinematicsGenerator"),
        _stage(PrimaryLeptonGenerator),
        _stage(CharmHadronicSystemGenerator),
        _stage(IntranuclearCascade),
        _stage(UnstableParticleDecayer),
    ],
    "RES": [
        _stage(InitialStateAppender),
        _stage(RESKinematicsGenerator),
        _stage(PrimaryLeptonGenerator),
        _stage(RESHadronicSystemGenerator),
        _stage(ResonanceDecayer),
        _stage(IntranuclearCascade),
        _stage(UnstableParticleDecayer),
    ],
    "COH": [
        _stage(InitialStateAppender),
        _stage(COHKinematicsGenerator),
        _stage(PrimaryLeptonGenerator),
        _stage(COHHadronicSystemGenerator),
        _stage(UnstableParticleDecayer),
    ],
    "MEC": [
        _stage(InitialStateAppender),
        _stage(MECKinematicsGenerator),
        _stage(PrimaryLeptonGenerator),
        _stage(MECHadronicSystemGenerator),
        _stage(IntranuclearCascade),
        _stage(UnstableParticleDecayer),
    ],
}


def register_pipeline(channel: str, stages: List[StageSpec]):
    """Add or replace the stage list of a channel."""
    if not stages:
        raise ValueError(f"Pipeline for {channel} needs at least one stage")
    STAGE_REGISTRY[channel] = list(stages)


@dataclass
class StageResult:
    ok: bool
    stage: Optional[str] = None
    reason: str = ""
    kind: Optional[FailureKind] = None
    attempts: int = 0

    @classmethod
    def success(cls) -> "StageResult":
        return cls(True)

    @classmethod
    def failure(cls, stage: EventRecordVisitor, error: EventGenerationError) -> "StageResult":
        return cls(False, type(stage).__name__, error.reason, error.kind, error.attempts)


class EventPipeline:
    def __init__(self, channel: str, stages: List[EventRecordVisitor]):
        self.channel = channel
        self.stages = list(stages)

    def run(self, record: EventRecord, rng: Optional[np.random.Generator] = None) -> StageResult:
        rng = rng or np.random.default_rng()
        for stage in self.stages:
            try:
                stage.process_event_record(record, rng)
            except EventGenerationError as e:
                if not e.fast_forward:
                    # flagged on the record, remaining stages still run
                    logger.warning(f"⚠️ {type(stage).__name__}: {e.reason} (continuing)")
                    continue
                logger.debug(f"{type(stage).__name__} abandoned the event: {e.reason}")
                return StageResult.failure(stage, e)
        return StageResult.success()

    def find_stage(self, cls: Type[EventRecordVisitor]) -> Optional[EventRecordVisitor]:
        for stage in self.stages:
            if isinstance(stage, cls):
                return stage
        return None

    @property
    def kinematics_generator(self) -> Optional[KinematicsGenerator]:
        return self.find_stage(KinematicsGenerator)

    def __repr__(self) -> str:
        return f"EventPipeline({self.channel}: {' -> '.join(type(s).__name__ for s in self.stages)})"


def build_pipeline(channel: str, registry: Optional[ConfigRegistry] = None,
                   cache: Optional[MaxXSecCache] = None) -> EventPipeline:
    """
    Build every stage of `channel`. Missing or invalid configuration raises
    ConfigurationError here, before any event is generated.
    """
    if channel not in STAGE_REGISTRY:
        raise ConfigurationError(f"No pipeline registered for channel '{channel}'")
    registry = registry if registry is not None else build_default_registry()
    cache = cache if cache is not None else MaxXSecCache()

    stages = []
    for cls, config_name in STAGE_REGISTRY[channel]:
        config = registry.get(config_name)
        if issubclass(cls, KinematicsGenerator):
            stages.append(cls(config, cache))
        else:
            stages.append(cls(config))
    pipeline = EventPipeline(channel, stages)
    logger.debug(f"Built {pipeline!r}")
    return pipeline
