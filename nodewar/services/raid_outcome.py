from typing import Callable

import numpy as np

from nodewar.models.schema_models import EdgeSchema

# (edge being raided, raiding player id) -> True when the raid succeeds
RaidOutcome = Callable[[EdgeSchema, str], bool]


class UniformRaidOutcome:
    """Raid succeeds with a fixed probability, independent of who raids what."""

    def __init__(self, probability: float = 0.5, seed: int | None = None):
        if not 0.0 <= probability <= 1.0:
            raise ValueError("probability must be between 0 and 1")
        self.probability = probability
        self.rng = np.random.default_rng(seed)

    def __call__(self, edge: EdgeSchema, player_id: str) -> bool:
        return bool(self.rng.random() < self.probability)


def fixed_outcome(success: bool) -> RaidOutcome:
    """Deterministic outcome, for replays and tests."""

    def outcome(edge: EdgeSchema, player_id: str) -> bool:
        return success

    return outcome
