"""Base models shared across loan entities."""

from dataclasses import dataclass


@dataclass(frozen=True)
class User:
    """Borrower reference.

    Users are owned by the calling application; the core only reads ``id``.
    """

    id: int
    name: str = ""
    email: str = ""
