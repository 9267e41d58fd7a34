from __future__ import annotations

import secrets
import string

from checkout.time_utils import epoch_millis

BASE36_ALPHABET = string.digits + string.ascii_uppercase


def to_base36(value: int) -> str:
    """Uppercase base-36 rendering of a non-negative integer."""
    if value < 0:
        raise ValueError("to_base36 requires a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(BASE36_ALPHABET[rem])
    return "".join(reversed(digits))


def random_token(length: int) -> str:
    """Cryptographically random uppercase base-36 string of the given length."""
    return "".join(secrets.choice(BASE36_ALPHABET) for _ in range(length))


def time_prefixed_id(prefix: str, random_length: int) -> str:
    """PREFIX-<base36 epoch ms>-<random base36>."""
    return f"{prefix}-{to_base36(epoch_millis())}-{random_token(random_length)}"
