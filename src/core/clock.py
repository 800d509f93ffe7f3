"""UTC timestamps shared by fetchers, services and handlers."""

from datetime import datetime, timezone


def now_iso() -> str:
    """Current UTC time as ISO-8601 with a ``+00:00`` offset, to the second."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()
