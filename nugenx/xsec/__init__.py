from .base import CrossSectionModel
from .registry import register, get_xsec_model, list_registered_models

__all__ = ["CrossSectionModel", "register", "get_xsec_model", "list_registered_models"]
