import numpy as np


class RejectionSampler:
    """Accept/reject against an envelope, with acceptance bookkeeping."""

    def __init__(self):
        self.accepted = 0
        self.rejected = 0

    def accept(self, value: float, envelope: float, rng: np.random.Generator) -> bool:
        if value <= 0.0 or envelope <= 0.0:
            self.rejected += 1
            return False
        r = rng.uniform(0.0, envelope)
        if r < value:
            self.accepted += 1
            return True
        else:
            self.rejected += 1
            return False

    def reset(self):
        self.accepted = 0
        self.rejected = 0

    @property
    def trials(self) -> int:
        return self.accepted + self.rejected

    @property
    def efficiency(self) -> float:
        total = self.accepted + self.rejected
        return self.accepted / total if total > 0 else 0.0
