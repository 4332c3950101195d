"""Weighted-random endpoint selection."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

from rampforge._internal.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from rampforge.dsl.endpoints import EndpointSpec


class EndpointSelector:
    """Picks one endpoint per request with probability ``weight / total``.

    Each virtual user owns its own selector so that a seeded run draws the
    same endpoint sequence per user regardless of how users interleave.

    Attributes:
        seed: Seed the PRNG was created with, or None for OS entropy.
    """

    def __init__(self, seed: int | None = None, *, rng: random.Random | None = None) -> None:
        """Initialize the selector.

        Args:
            seed: Optional PRNG seed. Ignored when *rng* is given.
            rng: Existing PRNG to draw from, e.g. one shared with the
                think-time draws of the same virtual user.
        """
        self.seed = seed
        self._rng = rng if rng is not None else random.Random(seed)  # noqa: S311

    def select(self, endpoints: Sequence[EndpointSpec]) -> EndpointSpec:
        """Select an endpoint using a linear walk over cumulative weights.

        Draws ``r`` uniformly from ``[0, total_weight)`` and subtracts each
        endpoint's weight in table order until ``r <= 0``.

        Args:
            endpoints: The run's endpoint table.

        Returns:
            The selected EndpointSpec.

        Raises:
            ConfigurationError: If *endpoints* is empty.
        """
        if not endpoints:
            msg = "Cannot select from an empty endpoint table"
            raise ConfigurationError(msg)

        total_weight = sum(endpoint.weight for endpoint in endpoints)
        remainder = self._rng.random() * total_weight
        for endpoint in endpoints:
            remainder -= endpoint.weight
            if remainder <= 0:
                return endpoint
        # Float residue can leave a tiny positive remainder.
        return endpoints[-1]
