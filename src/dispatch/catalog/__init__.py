"""Catalog adapter registry — pluggable access to medicine stock and prices."""

import os

_catalog_instance = None


def get_catalog():
    """Return the configured catalog adapter (singleton).

    Uses FakeCatalog by default. Configure via the CATALOG_ADAPTER
    environment variable.
    """
    global _catalog_instance
    if _catalog_instance is None:
        adapter = os.environ.get("CATALOG_ADAPTER", "fake")
        if adapter == "fake":
            from dispatch.catalog.fake_catalog import FakeCatalog

            _catalog_instance = FakeCatalog()
        else:
            raise ValueError(f"Unknown catalog adapter: {adapter}")
    return _catalog_instance


def reset_catalog():
    """Reset the catalog singleton (useful for testing)."""
    global _catalog_instance
    _catalog_instance = None
