"""Base generator class with an injectable RNG and seeded fake identities."""

import random
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from faker import Faker


def utc_now() -> datetime:
    return datetime.now(UTC)


class BaseGenerator:
    def __init__(
        self,
        config: dict[str, Any] | None = None,
        seed: int | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.config = config or {}
        self.seed = seed
        self.rng = rng or random.Random(seed)
        self.clock = clock
        self.fake = Faker()
        if seed is not None:
            self.fake.seed_instance(seed)

    def _short_id(self, length: int = 8) -> str:
        """Generate a short hex id from the generator's RNG."""
        return uuid.UUID(int=self.rng.getrandbits(128), version=4).hex[:length]

    def _setting(self, key: str, default: Any) -> Any:
        return self.config.get(key, default)
