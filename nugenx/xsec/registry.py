"""
Cross-section model registry: maps catalogue names to model classes.

Example:
    >>> model = get_xsec_model("qel-llewellyn-smith")
    >>> model.integral(Interaction.qel_cc(Target(0, 1), 2112, 14, 1.0))
"""
from typing import Optional

from ..config import AlgorithmConfig
from ..exceptions import ConfigurationError
from .flat import FlatCrossSection
from .qel import QELCrossSection
from .qel_charm import QELCharmCrossSection
from .dis import DISCrossSection, CharmDISCrossSection
from .res import RESCrossSection
from .coh import COHCrossSection
from .mec import MECCrossSection


# Global registry: name -> CrossSectionModel subclass
_REGISTRY: dict = {}


def register(name: str, model_cls):
    """
    Register a cross-section model class under `name`.

    Example:
        >>> register("qel-llewellyn-smith", QELCrossSection)
    """
    _REGISTRY[name] = model_cls


def find_xsec_model_class(name: str):
    return _REGISTRY.get(name)


def get_xsec_model(name: str, config: Optional[AlgorithmConfig] = None):
    """
    Build a configured model instance.

    Raises:
        ConfigurationError: unknown name
    """
    model_cls = _REGISTRY.get(name)
    if model_cls is None:
        raise ConfigurationError(f"Unknown cross-section model '{name}' (known: {sorted(_REGISTRY)})")
    return model_cls(config)


def list_registered_models():
    """List all registered cross-section models."""
    return {k: v.description for k, v in _REGISTRY.items()}


# ========== AUTO-REGISTER KNOWN MODELS ==========
for _cls in (FlatCrossSection, QELCrossSection, QELCharmCrossSection, DISCrossSection,
             CharmDISCrossSection, RESCrossSection, COHCrossSection, MECCrossSection):
    register(_cls.name, _cls)
