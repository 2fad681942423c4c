from __future__ import annotations

import secrets

from .models import ID_LENGTH


# URL-safe and free of look-alike characters (0/O, 1/l/I).
ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


class IdentifierGenerator:
    """
    Produce short random paste ids.

    Ids are drawn from ``secrets`` and are not guaranteed unique; the store's
    primary key rejects duplicates and the service retries.
    """

    def __init__(self, length: int = ID_LENGTH, alphabet: str = ALPHABET) -> None:
        if length < 1:
            raise ValueError("length must be >= 1")
        if len(set(alphabet)) < 2:
            raise ValueError("alphabet must contain at least two distinct characters")
        self.length = length
        self.alphabet = alphabet

    def generate(self) -> str:
        return "".join(secrets.choice(self.alphabet) for _ in range(self.length))

    def __call__(self) -> str:
        return self.generate()
