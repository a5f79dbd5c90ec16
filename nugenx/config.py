"""
Configuration for NuGenX.

Module-level defaults live here. Every algorithm (pipeline stage or
physics model) is built from an ``AlgorithmConfig`` taken from a
``ConfigRegistry``. Sub-algorithms may be given as instances or as
catalogue names; names are resolved when first requested, and a missing
or unknown entry raises ``ConfigurationError`` at construction time.

Overrides can be loaded from JSON:

    {
        "QELKinematicsGenerator": {"max-attempts": 500},
        "IntranuclearCascade": {"transparent": true},
        "DISKinematicsGenerator": {"sub-algorithms": {"xsec-model": "flat"}}
    }
"""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# =============================================================================
# Defaults
# =============================================================================

DB_PATH = Path(__file__).resolve().parents[1] / "nugenx.db"

DEFAULT_MAX_KINE_ATTEMPTS = 1000
DEFAULT_SAFETY_FACTOR = 1.25
DEFAULT_SCAN_POINTS = 40
DEFAULT_REFINE_ITERATIONS = 20
DEFAULT_MAX_EVENT_ATTEMPTS = 100
DEFAULT_ENERGY_TOLERANCE = 0.05

DEFAULT_INTEGRATOR = "simpson"
DEFAULT_INTEGRATION_POINTS = 201

# Intranuclear cascade
DEFAULT_FORMATION_CT0 = 0.342         # fm
DEFAULT_FORMATION_K = 0.0
DEFAULT_R0 = 1.4                      # fm
DEFAULT_DENSITY_PROFILE = "woods-saxon"
DEFAULT_DIFFUSENESS = 0.55            # fm
DEFAULT_KINETIC_CUTOFF = 0.01         # GeV
DEFAULT_MAX_FATE_ATTEMPTS = 100
DEFAULT_MAX_CASCADE_STEPS = 10000

# Decays
DEFAULT_MAX_LIFETIME = 1e-10          # s

_KINE = {
    "max-attempts": DEFAULT_MAX_KINE_ATTEMPTS,
    "safety-factor": DEFAULT_SAFETY_FACTOR,
    "scan-points": DEFAULT_SCAN_POINTS,
    "refine-iterations": DEFAULT_REFINE_ITERATIONS,
}

DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    "EventGenerator": {
        "max-event-attempts": DEFAULT_MAX_EVENT_ATTEMPTS,
        "energy-tolerance": DEFAULT_ENERGY_TOLERANCE,
    },
    "InitialStateAppender": {},
    "QELKinematicsGenerator": dict(_KINE, **{"sub-algorithms": {"xsec-model": "qel-llewellyn-smith"}}),
    "QELCharmKinematicsGenerator": dict(_KINE, **{"sub-algorithms": {"xsec-model": "qel-charm-kovalenko"}}),
    "DISKinematicsGenerator": dict(_KINE, **{"sub-algorithms": {"xsec-model": "dis-parton-model"}}),
    "CharmDISKinematicsGenerator": dict(_KINE, **{"sub-algorithms": {"xsec-model": "dis-charm"}}),
    "RESKinematicsGenerator": dict(_KINE, **{"w-max": 1.7, "sub-algorithms": {"xsec-model": "res-delta"}}),
    "COHKinematicsGenerator": dict(_KINE, **{"sub-algorithms": {"xsec-model": "coh-pion"}}),
    "MECKinematicsGenerator": dict(_KINE, **{"sub-algorithms": {"xsec-model": "mec-empirical"}}),
    "PrimaryLeptonGenerator": {},
    "QELHadronicSystemGenerator": {},
    "DISHadronicSystemGenerator": {"sub-algorithms": {"hadronization-model": "phase-space-hadronizer"}},
    "CharmHadronicSystemGenerator": {
        "max-attempts": 1000,
        "fragmentation-epsilon": 0.05,
        "pt2-scale": 0.6,
        "sub-algorithms": {"hadronization-model": "phase-space-hadronizer"},
    },
    "RESHadronicSystemGenerator": {},
    "COHHadronicSystemGenerator": {"r0": DEFAULT_R0},
    "MECHadronicSystemGenerator": {},
    "ResonanceDecayer": {"sub-algorithms": {"decay-model": "phase-space-decayer"}},
    "UnstableParticleDecayer": {
        "max-lifetime-for-unstables": DEFAULT_MAX_LIFETIME,
        "sub-algorithms": {"decay-model": "phase-space-decayer"},
    },
    "IntranuclearCascade": {
        "transparent": False,
        "ct0": DEFAULT_FORMATION_CT0,
        "formation-zone-k": DEFAULT_FORMATION_K,
        "r0": DEFAULT_R0,
        "density-profile": DEFAULT_DENSITY_PROFILE,
        "diffuseness": DEFAULT_DIFFUSENESS,
        "kinetic-energy-cutoff": DEFAULT_KINETIC_CUTOFF,
        "max-fate-attempts": DEFAULT_MAX_FATE_ATTEMPTS,
        "max-cascade-steps": DEFAULT_MAX_CASCADE_STEPS,
        "sub-algorithms": {"hadron-xsec-model": "hadron-nucleon-tables"},
    },
    "mec-empirical": {"sub-algorithms": {"ccqe-xsec-model": "qel-llewellyn-smith"}},
}

_MISSING = object()


# =============================================================================
# Algorithm configuration
# =============================================================================

class AlgorithmConfig:
    """Parameters and sub-algorithms of one named algorithm."""

    def __init__(self, name: str, parameters: Optional[Dict[str, Any]] = None,
                 sub_algorithms: Optional[Dict[str, Any]] = None,
                 registry: Optional["ConfigRegistry"] = None):
        self.name = name
        self._parameters = dict(parameters or {})
        self._sub_algorithms = dict(sub_algorithms or {})
        self._registry = registry
        self._resolved: Dict[str, Any] = {}

    def get_parameter(self, key: str, default: Any = _MISSING) -> Any:
        if key in self._parameters:
            value = self._parameters[key]
            if default is not _MISSING and default is not None and not isinstance(value, type(default)):
                # ints are accepted where floats are expected
                if isinstance(default, float) and isinstance(value, int) and not isinstance(value, bool):
                    return float(value)
                raise ConfigurationError(
                    f"{self.name}: parameter '{key}' has type {type(value).__name__}, "
                    f"expected {type(default).__name__}"
                )
            return value
        if default is _MISSING:
            raise ConfigurationError(f"{self.name}: required parameter '{key}' is missing")
        return default

    def set_parameter(self, key: str, value: Any):
        self._parameters[key] = value

    def get_sub_algorithm(self, role: str) -> Any:
        if role in self._resolved:
            return self._resolved[role]
        value = self._sub_algorithms.get(role)
        if value is None:
            raise ConfigurationError(f"{self.name}: required sub-algorithm '{role}' is not configured")
        if isinstance(value, str):
            value = create_algorithm(value, self._registry)
        self._resolved[role] = value
        return value

    def set_sub_algorithm(self, role: str, value: Any):
        self._sub_algorithms[role] = value
        self._resolved.pop(role, None)

    def has_sub_algorithm(self, role: str) -> bool:
        return self._sub_algorithms.get(role) is not None

    def as_dict(self) -> Dict[str, Any]:
        subs = {k: (v if isinstance(v, str) else type(v).__name__) for k, v in self._sub_algorithms.items()}
        return {"parameters": dict(self._parameters), "sub-algorithms": subs}

    def __repr__(self) -> str:
        return f"AlgorithmConfig({self.name!r}, {self.as_dict()})"


class ConfigRegistry:
    """Holds one AlgorithmConfig per algorithm name."""

    def __init__(self, configs: Optional[Dict[str, Dict[str, Any]]] = None):
        self._configs: Dict[str, AlgorithmConfig] = {}
        for name, entry in (configs or {}).items():
            self._add(name, entry)

    def _add(self, name: str, entry: Dict[str, Any]):
        entry = dict(entry)
        subs = entry.pop("sub-algorithms", {})
        self._configs[name] = AlgorithmConfig(name, entry, subs, registry=self)

    def get(self, name: str) -> AlgorithmConfig:
        if name not in self._configs:
            self._configs[name] = AlgorithmConfig(name, registry=self)
        return self._configs[name]

    def __contains__(self, name: str) -> bool:
        return name in self._configs

    def set_parameter(self, name: str, key: str, value: Any):
        self.get(name).set_parameter(key, value)

    def set_sub_algorithm(self, name: str, role: str, value: Any):
        self.get(name).set_sub_algorithm(role, value)

    def update(self, overrides: Dict[str, Dict[str, Any]]):
        for name, entry in overrides.items():
            if not isinstance(entry, dict):
                raise ConfigurationError(f"Override for '{name}' must be a mapping")
            cfg = self.get(name)
            for key, value in entry.items():
                if key == "sub-algorithms":
                    for role, sub in value.items():
                        cfg.set_sub_algorithm(role, sub)
                else:
                    cfg.set_parameter(key, value)

    def update_from_json(self, path):
        path = Path(path)
        if not path.is_file():
            raise ConfigurationError(f"Configuration file '{path}' does not exist")
        with open(path, "r", encoding="utf-8") as f:
            try:
                overrides = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e
        self.update(overrides)
        logger.info(f"Loaded configuration overrides from {path}")

    def names(self):
        return sorted(self._configs)


def build_default_registry(overrides: Optional[Dict[str, Dict[str, Any]]] = None) -> ConfigRegistry:
    registry = ConfigRegistry(copy.deepcopy(DEFAULT_CONFIG))
    if overrides:
        registry.update(overrides)
    return registry


# =============================================================================
# Algorithm catalogue
# =============================================================================

def _builtin_factories() -> Dict[str, Callable]:
    from .hadronization import PhaseSpaceHadronizer
    from .decays import PhaseSpaceDecayer
    from .hadron_xsec import HadronNucleonXSecTables
    return {
        "phase-space-hadronizer": PhaseSpaceHadronizer,
        "phase-space-decayer": PhaseSpaceDecayer,
        "hadron-nucleon-tables": HadronNucleonXSecTables,
    }


def create_algorithm(name: str, registry: Optional[ConfigRegistry] = None) -> Any:
    """Instantiate a catalogued algorithm, configured from `registry` if given."""
    from .xsec.registry import find_xsec_model_class

    factory = find_xsec_model_class(name) or _builtin_factories().get(name)
    if factory is None:
        raise ConfigurationError(f"Unknown algorithm '{name}'")
    config = registry.get(name) if registry is not None else AlgorithmConfig(name)
    return factory(config)
