"""
Short ID generation.

A short ID is three lowercase letters followed by four digits, e.g. ``abc1234``.
That gives 26**3 * 10**4 = 175,760,000 combinations, so collisions are rare
until the space is close to full. Uniqueness is checked by the store, not here.
"""
import random
import re
import string
import threading
from typing import Optional

LETTERS = string.ascii_lowercase
DIGITS = string.digits
LETTER_COUNT = 3
DIGIT_COUNT = 4

SHORT_ID_PATTERN = re.compile(r"^[a-z]{3}[0-9]{4}$")


def is_short_id(value: str) -> bool:
    return isinstance(value, str) and SHORT_ID_PATTERN.fullmatch(value) is not None


class ShortIDGenerator:
    """Thread-safe short ID source around a single ``random.Random``.

    Not cryptographically secure; short IDs only need to avoid collisions.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        # random.Random() with no seed pulls from OS entropy
        self._rng = rng if rng is not None else random.Random()
        self._lock = threading.Lock()

    def generate(self) -> str:
        with self._lock:
            letters = [self._rng.choice(LETTERS) for _ in range(LETTER_COUNT)]
            digits = [self._rng.choice(DIGITS) for _ in range(DIGIT_COUNT)]
        return "".join(letters + digits)


# Seeded once per process, shared by every store that does not inject its own
default_generator = ShortIDGenerator()
