"""Realtime transport registry — the hub shared by the fan-out and /ws."""

import os

_realtime_instance = None


def get_realtime():
    """Return the configured realtime transport (singleton).

    Uses the in-process RealtimeHub by default. Configure via the
    REALTIME_ADAPTER environment variable.
    """
    global _realtime_instance
    if _realtime_instance is None:
        adapter = os.environ.get("REALTIME_ADAPTER", "memory")
        if adapter == "memory":
            from dispatch.realtime.hub import RealtimeHub

            _realtime_instance = RealtimeHub()
        else:
            raise ValueError(f"Unknown realtime adapter: {adapter}")
    return _realtime_instance


def configure_realtime(transport):
    """Install ``transport`` as the process-wide realtime transport."""
    global _realtime_instance
    _realtime_instance = transport
    return transport


def reset_realtime():
    """Reset the realtime singleton (useful for testing)."""
    global _realtime_instance
    _realtime_instance = None
