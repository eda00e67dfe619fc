"""Random identifier generation and SQL quoting helpers."""

from __future__ import annotations

import random
import string

# Lowercase only: PostgreSQL folds unquoted identifiers, so "A" and "a" would
# otherwise name different objects depending on quoting.
ALPHABET = string.ascii_lowercase + string.digits

_SYSTEM_RANDOM = random.SystemRandom()


def random_string(length: int, rng: random.Random | None = None) -> str:
    """Return ``length`` characters drawn uniformly from ``[a-z0-9]``."""

    if length < 0:
        raise ValueError("length must be non-negative")
    source = rng or _SYSTEM_RANDOM
    return "".join(source.choice(ALPHABET) for _ in range(length))


def is_safe_name(value: str) -> bool:
    return bool(value) and all(char in ALPHABET for char in value)


def quote_ident(name: str) -> str:
    """Quote an identifier for interpolation into DDL."""

    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    """Quote a string literal for interpolation into DDL."""

    return "'" + value.replace("'", "''") + "'"


__all__ = ["ALPHABET", "is_safe_name", "quote_ident", "quote_literal", "random_string"]
