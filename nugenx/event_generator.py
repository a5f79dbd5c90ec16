"""
Event generation driver.

For each event the driver runs an explicit state machine over pipeline
results:

    ATTEMPT -> SUCCESS
            -> RECOVERABLE -> ATTEMPT (n + 1)
                           -> ABORT    (after max-event-attempts)

Every attempt starts from a fresh event record. Configuration problems are
raised as ``ConfigurationError`` while the pipelines are built, never
during generation.
"""

import logging
import threading
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import numpy as np

from .config import (
    ConfigRegistry, build_default_registry, DEFAULT_MAX_EVENT_ATTEMPTS, DEFAULT_ENERGY_TOLERANCE,
)
from .event_record import EventRecord
from .exceptions import ConfigurationError, FailureKind
from .evg.interaction_list import InteractionListGenerator
from .interaction import Interaction, Target
from .max_xsec_cache import MaxXSecCache
from .pipeline import STAGE_REGISTRY, EventPipeline, build_pipeline

logger = logging.getLogger(__name__)


class GenerationStatus(str, Enum):
    SUCCESS = "success"
    ABORTED = "aborted"


class _DriverState(Enum):
    ATTEMPT = "attempt"
    SUCCESS = "success"
    RECOVERABLE = "recoverable"
    ABORT = "abort"


@dataclass
class GenerationOutcome:
    status: GenerationStatus
    record: Optional[EventRecord]
    attempts: int
    failures: Dict[FailureKind, int] = field(default_factory=dict)
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status == GenerationStatus.SUCCESS


class EventGenerator:
    """
    Owns one pipeline per channel, built up front.

    Args:
        registry: algorithm configuration (defaults to the built-in one)
        cache: maximum cross-section cache, may be shared between generators
        channels: channels to build (defaults to every registered channel)
    """

    def __init__(self, registry: Optional[ConfigRegistry] = None,
                 cache: Optional[MaxXSecCache] = None,
                 channels: Optional[Iterable[str]] = None):
        self.registry = registry if registry is not None else build_default_registry()
        cfg = self.registry.get("EventGenerator")
        self.max_event_attempts = cfg.get_parameter("max-event-attempts", DEFAULT_MAX_EVENT_ATTEMPTS)
        if self.max_event_attempts < 1:
            raise ConfigurationError("EventGenerator: max-event-attempts must be >= 1")
        tolerance = cfg.get_parameter("energy-tolerance", DEFAULT_ENERGY_TOLERANCE)
        self.cache = cache if cache is not None else MaxXSecCache(tolerance)

        channels = list(channels) if channels is not None else list(STAGE_REGISTRY)
        self.pipelines: Dict[str, EventPipeline] = {
            channel: build_pipeline(channel, self.registry, self.cache) for channel in channels
        }
        self.counters: Counter = Counter()

    def pipeline_for(self, interaction: Interaction) -> EventPipeline:
        channel = interaction.channel
        if channel not in self.pipelines:
            raise ConfigurationError(f"No pipeline built for channel '{channel}'")
        pipeline = self.pipelines[channel]
        generator = pipeline.kinematics_generator
        if generator is not None and not generator.xsec_model.valid_process(interaction):
            raise ConfigurationError(
                f"{generator.config.name}: model '{generator.xsec_model.name}' "
                f"does not handle {interaction.as_string()}"
            )
        return pipeline

    def generate(self, interaction: Interaction,
                 rng: Optional[np.random.Generator] = None) -> GenerationOutcome:
        rng = rng or np.random.default_rng()
        pipeline = self.pipeline_for(interaction)

        failures: Counter = Counter()
        attempt = 0
        record: Optional[EventRecord] = None
        result = None
        state = _DriverState.ATTEMPT

        while True:
            if state == _DriverState.ATTEMPT:
                attempt += 1
                record = EventRecord(interaction.fresh_copy())
                result = pipeline.run(record, rng)
                state = _DriverState.SUCCESS if result.ok else _DriverState.RECOVERABLE

            elif state == _DriverState.RECOVERABLE:
                failures[result.kind] += 1
                logger.debug(f"Attempt {attempt} failed in {result.stage} ({result.kind.value}): {result.reason}")
                state = _DriverState.ATTEMPT if attempt < self.max_event_attempts else _DriverState.ABORT

            elif state == _DriverState.SUCCESS:
                self.counters["success"] += 1
                self.counters["attempts"] += attempt
                logger.info(
                    f"✅ {interaction.channel} event after {attempt} attempt(s): "
                    f"{len(record.final_state())} final-state entries"
                )
                return GenerationOutcome(GenerationStatus.SUCCESS, record, attempt, dict(failures))

            else:
                self.counters["aborted"] += 1
                self.counters["attempts"] += attempt
                reason = f"{result.stage}: {result.reason}"
                logger.error(f"❌ Aborting {interaction.as_string()} after {attempt} attempts ({reason})")
                return GenerationOutcome(GenerationStatus.ABORTED, None, attempt, dict(failures), reason)

    def build_selector(self, include_nc: bool = True) -> "InteractionSelector":
        models = {}
        for channel, pipeline in self.pipelines.items():
            generator = pipeline.kinematics_generator
            if generator is not None:
                models[channel] = generator.xsec_model
        return InteractionSelector(models, include_nc=include_nc)


class InteractionSelector:
    """
    Picks one interaction among all candidates for an initial state, with
    probability proportional to the integrated cross section. Integrals are
    memoised per (fingerprint, energy).
    """

    def __init__(self, models: Dict[str, Any], include_nc: bool = True):
        if not models:
            raise ConfigurationError("InteractionSelector needs at least one channel model")
        self.models = dict(models)
        self.list_generators = {
            channel: InteractionListGenerator(channel, include_cc=True, include_nc=include_nc)
            for channel in self.models
        }
        self._integrals: Dict[Tuple[str, float], float] = {}
        self._lock = threading.Lock()

    def candidates(self, probe_pdg: int, energy: float, target: Target) -> List[Interaction]:
        out = []
        for channel, lister in self.list_generators.items():
            model = self.models[channel]
            out.extend(i for i in lister.create(probe_pdg, energy, target) if model.valid_process(i))
        return out

    def integral(self, interaction: Interaction) -> float:
        key = (interaction.fingerprint(), round(interaction.probe_energy, 9))
        with self._lock:
            if key in self._integrals:
                return self._integrals[key]
        value = max(0.0, float(self.models[interaction.channel].integral(interaction)))
        with self._lock:
            self._integrals[key] = value
        return value

    def select(self, probe_pdg: int, energy: float, target: Target,
               rng: Optional[np.random.Generator] = None) -> Interaction:
        rng = rng or np.random.default_rng()
        candidates = self.candidates(probe_pdg, energy, target)
        weights = np.array([self.integral(c) for c in candidates], dtype=float)
        total = weights.sum() if len(weights) else 0.0
        if total <= 0.0:
            raise ValueError(f"No open channel for probe {probe_pdg} at E={energy} on Z={target.Z}, A={target.A}")
        index = rng.choice(len(candidates), p=weights / total)
        return candidates[index]


def run_batch(n_events: int, probe_pdg: int, energy: float, target: Target,
              channels: Optional[List[str]] = None, seed: Optional[int] = None,
              workers: int = 1, overrides: Optional[Dict[str, Dict[str, Any]]] = None,
              cache: Optional[MaxXSecCache] = None, include_nc: bool = True,
              on_event: Optional[Callable[[GenerationOutcome], None]] = None) -> Dict[str, Any]:
    """
    Generate `n_events` events, split over `workers` threads.

    Each worker has its own generator (and stage instances) and its own
    random stream spawned from `seed`; all workers share one cache.
    `on_event` is called from the worker threads for every outcome.
    """
    if n_events < 0 or workers < 1:
        raise ValueError("n_events must be >= 0 and workers >= 1")
    cache = cache if cache is not None else MaxXSecCache()
    streams = np.random.SeedSequence(seed).spawn(workers)
    shares = [n_events // workers + (1 if k < n_events % workers else 0) for k in range(workers)]

    # built once up front so configuration errors surface before any thread starts
    generators = [EventGenerator(build_default_registry(overrides), cache, channels) for _ in range(workers)]

    def work(k: int) -> List[GenerationOutcome]:
        rng = np.random.default_rng(streams[k])
        generator = generators[k]
        selector = generator.build_selector(include_nc=include_nc)
        outcomes = []
        for _ in range(shares[k]):
            interaction = selector.select(probe_pdg, energy, target, rng)
            outcome = generator.generate(interaction, rng)
            if on_event is not None:
                on_event(outcome)
            outcomes.append(outcome)
        return outcomes

    if workers == 1:
        per_worker = [work(0)]
    else:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            per_worker = list(pool.map(work, range(workers)))

    outcomes = [o for chunk in per_worker for o in chunk]
    failures: Counter = Counter()
    for o in outcomes:
        failures.update(o.failures)
    success = sum(1 for o in outcomes if o.ok)

    logger.info(f"\n✅ Batch complete: {success}/{n_events} succeeded, {n_events - success} failed")
    return {
        "success": success,
        "failed": n_events - success,
        "total": n_events,
        "success_rate": success / n_events if n_events else 0.0,
        "attempts": sum(o.attempts for o in outcomes),
        "failures": {kind.value: n for kind, n in failures.items()},
        "records": [o.record for o in outcomes if o.ok],
    }
