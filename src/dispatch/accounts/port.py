"""Accounts port — the identity service that owns user records.

Partners are distinct from the users backing them; the dispatch engine only
needs to check that a user exists and, for on-the-fly partners, to provision
a placeholder account.
"""

from abc import ABC, abstractmethod


class AccountsPort(ABC):
    """Abstract interface for identity service adapters."""

    @abstractmethod
    def find_by_id(self, user_id: str, timeout: float | None = None) -> dict | None:
        """Return ``{user_id, name, email, phone, role}`` or None."""
        ...

    @abstractmethod
    def create_placeholder_account(self, profile: dict, password: str, timeout: float | None = None) -> str:
        """Provision a user with a generated credential. Returns the new user id.

        ``profile`` carries ``name``, ``email`` and ``phone``.
        """
        ...
