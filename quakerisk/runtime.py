"""Clock and randomness sources injected into the stateful services.

Production wiring passes utc_now and random.SystemRandom(); tests pass a
fixed clock and a seeded random.Random.
"""

import random
import string
from datetime import datetime, timezone
from typing import Callable


Clock = Callable[[], datetime]

TOKEN_ALPHABET = string.ascii_lowercase + string.digits


def utc_now() -> datetime:
    """Current time as a tz-aware UTC datetime."""
    return datetime.now(timezone.utc)


def random_token(rng: random.Random, length: int) -> str:
    """Draw a lowercase alphanumeric token from the given source."""
    return "".join(rng.choice(TOKEN_ALPHABET) for _ in range(length))
