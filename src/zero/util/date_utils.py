from datetime import datetime, timezone


def get_time(value: int | float | datetime | None) -> str:
    """Return a human-readable UTC date for a millisecond timestamp or datetime.

    Args:
        value: Milliseconds since the epoch, a datetime, or None.

    Returns:
        ``YYYY-MM-DD HH:MM:SS UTC``, or ``N/A`` for an absent or zero timestamp.
    """
    if value is None or value == 0:
        return "N/A"

    if isinstance(value, datetime):
        moment = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    else:
        moment = datetime.fromtimestamp(value / 1000, tz=timezone.utc)

    return moment.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def format_remaining(seconds: float) -> str:
    """Format a countdown as ``M Minutes and S Seconds``."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60} Minutes and {seconds % 60} Seconds"
