"""Accounts adapter registry — access to the external identity service."""

import os

_accounts_instance = None


def get_accounts():
    """Return the configured accounts adapter (singleton).

    Uses FakeAccounts by default. Configure via the ACCOUNTS_ADAPTER
    environment variable.
    """
    global _accounts_instance
    if _accounts_instance is None:
        adapter = os.environ.get("ACCOUNTS_ADAPTER", "fake")
        if adapter == "fake":
            from dispatch.accounts.fake_accounts import FakeAccounts

            _accounts_instance = FakeAccounts()
        else:
            raise ValueError(f"Unknown accounts adapter: {adapter}")
    return _accounts_instance


def reset_accounts():
    """Reset the accounts singleton (useful for testing)."""
    global _accounts_instance
    _accounts_instance = None
