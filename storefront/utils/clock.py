from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time in UTC, timezone-aware. Every stored timestamp uses this."""
    return datetime.now(timezone.utc)
