from .base import CrossSectionModel
from ..kine_utils import KinePhaseSpace


class FlatCrossSection(CrossSectionModel):
    """Constant differential cross section (no dynamics)."""

    name = "flat"
    description = "Returns a constant value at every allowed kinematic point"

    def load_config(self):
        self.value = self.config.get_parameter("value", 1.0)
        self.total = self.config.get_parameter("integral", 1.0)
        self.native_phase_space = KinePhaseSpace(self.config.get_parameter("phase-space", KinePhaseSpace.Q2.value))

    def native_xsec(self, interaction) -> float:
        return self.value

    def integral(self, interaction) -> float:
        return self.total if interaction.is_above_threshold() else 0.0

    def valid_process(self, interaction) -> bool:
        return True
