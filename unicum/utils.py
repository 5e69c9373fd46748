"""Time helpers shared by the token cache and the poller."""

import time
from typing import Optional


def get_unix() -> int:
    """Current Unix time in whole seconds."""
    return int(time.time())


def format_relative(timestamp: int, now: Optional[int] = None) -> str:
    """
    Render a Unix timestamp relative to now, e.g. "in 12 minutes" or "3 hours ago".

    Used in log lines about token expiry.
    """
    if now is None:
        now = get_unix()

    delta = timestamp - now
    seconds = abs(delta)

    if seconds < 60:
        amount, unit = seconds, "second"
    elif seconds < 3600:
        amount, unit = seconds // 60, "minute"
    elif seconds < 86400:
        amount, unit = seconds // 3600, "hour"
    else:
        amount, unit = seconds // 86400, "day"

    label = f"{amount} {unit}{'' if amount == 1 else 's'}"
    return f"in {label}" if delta >= 0 else f"{label} ago"
