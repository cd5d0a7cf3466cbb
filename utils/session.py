# utils/session.py
from datetime import datetime, timezone
from typing import Optional


def current_session(now: Optional[datetime] = None) -> str:
    """
    Name of the FX trading session active at `now` (UTC), first match wins.
    Sydney wraps midnight, so it shadows the early Tokyo hours.
    """
    hour = (now or datetime.now(timezone.utc)).astimezone(timezone.utc).hour
    if hour >= 22 or hour < 7:
        return "SYDNEY"
    if hour < 9:
        return "TOKYO"
    if hour < 17:
        return "LONDON"
    return "NEW_YORK"
