import math
from abc import ABC, abstractmethod
from typing import Optional

from ..config import AlgorithmConfig, DEFAULT_INTEGRATOR, DEFAULT_INTEGRATION_POINTS
from ..integrator import Integrator, get_integrator
from ..interaction import Interaction
from ..kine_utils import KinePhaseSpace, jacobian


class CrossSectionModel(ABC):
    """
    Base class for all cross-section models.

    Computes differential cross sections (1e-38 cm^2 per unit of the
    requested phase-space variables) at the running kinematics of an
    interaction. All implementations must be pure functions of their input
    and configuration (no RNG, no event record access).
    """

    name: str = "abstract"
    description: str = ""
    native_phase_space: KinePhaseSpace = KinePhaseSpace.Q2

    def __init__(self, config: Optional[AlgorithmConfig] = None):
        self.config = config if config is not None else AlgorithmConfig(self.name)
        self.integrator: Integrator = get_integrator(
            self.config.get_parameter("integrator", DEFAULT_INTEGRATOR),
            self.config.get_parameter("integration-points", self.default_integration_points()),
        )
        self.load_config()

    def default_integration_points(self) -> int:
        return DEFAULT_INTEGRATION_POINTS

    def load_config(self):
        """Read model parameters from self.config."""

    def xsec(self, interaction: Interaction, phase_space: Optional[KinePhaseSpace] = None) -> float:
        """
        Differential cross section in `phase_space` (default: native).

        Returns 0 for unsupported processes, forbidden kinematics and
        non-finite or negative model output.
        """
        if not self.valid_process(interaction) or not self.valid_kinematics(interaction):
            return 0.0
        value = self.native_xsec(interaction)
        if not math.isfinite(value) or value <= 0.0:
            return 0.0
        ps = self.native_phase_space if phase_space is None else phase_space
        return value * jacobian(interaction, self.native_phase_space, ps)

    @abstractmethod
    def native_xsec(self, interaction: Interaction) -> float:
        """Differential cross section in the native phase space."""

    @abstractmethod
    def integral(self, interaction: Interaction) -> float:
        """Cross section integrated over the full kinematic range."""

    @abstractmethod
    def valid_process(self, interaction: Interaction) -> bool:
        """True if the model handles this process and initial state."""

    def valid_kinematics(self, interaction: Interaction) -> bool:
        return interaction.is_above_threshold()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
