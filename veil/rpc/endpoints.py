"""Endpoint pools: the RPC URLs serving one logical network."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Set, Tuple

from ..core.networks import Network
from ..core.recovery import InvalidConfiguration


@dataclass(frozen=True)
class EndpointPool:
    """Non-empty, immutable set of endpoint URLs for one network.

    Order carries no meaning; endpoints are picked at random.
    """

    urls: Tuple[str, ...]
    network: Optional[Network] = None

    def __post_init__(self) -> None:
        if not self.urls:
            label = f" for {self.network.value}" if self.network else ""
            raise InvalidConfiguration(f"At least one RPC URL is required{label}")

    @classmethod
    def of(cls, urls: Iterable[str], network: Optional[Network] = None) -> "EndpointPool":
        return cls(urls=tuple(u for u in urls if u), network=network)

    def __len__(self) -> int:
        return len(self.urls)

    def __iter__(self) -> Iterator[str]:
        return iter(self.urls)

    def __getitem__(self, index: int) -> str:
        return self.urls[index]

    def pick(self, exclude: Set[int], rng: Optional[random.Random] = None) -> int:
        """Pick a random index not in ``exclude``.

        When every index has been tried, any index is returned.
        """
        rng = rng or random
        allowed = [i for i in range(len(self.urls)) if i not in exclude]
        if not allowed:
            return rng.randrange(len(self.urls))
        return rng.choice(allowed)
