import random
from typing import Optional

from configsync.configuration import SyncConfiguration


class Backoff:
    """
    Capped exponential delay: ``minimum * multiplier ** failures``, never
    more than ``maximum``. With the defaults this gives 1, 2, 4, 8, 16, 30, 30...
    """

    def __init__(
        self,
        minimum: float = 1.0,
        maximum: float = 30.0,
        multiplier: float = 2.0,
        jitter: float = 0.0,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.minimum = minimum
        self.maximum = maximum
        self.multiplier = multiplier
        self.jitter = jitter
        self.failures = 0
        self._rng = rng or random.Random()

    @classmethod
    def from_config(cls, config: SyncConfiguration) -> "Backoff":
        return cls(
            minimum=config.backoff_min,
            maximum=config.backoff_max,
            multiplier=config.backoff_multiplier,
            jitter=config.backoff_jitter,
        )

    @property
    def current(self) -> float:
        if self.failures == 0:
            return 0.0
        return min(
            self.minimum * (self.multiplier ** (self.failures - 1)),
            self.maximum,
        )

    def next(self) -> float:
        self.failures += 1
        delay = self.current
        if self.jitter:
            delay *= 1 + self._rng.uniform(-self.jitter, self.jitter)
        return min(delay, self.maximum)

    def reset(self) -> None:
        self.failures = 0
