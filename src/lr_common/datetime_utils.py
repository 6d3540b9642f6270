"""UTC time utilities. Engine timestamps are integer unix seconds."""

import time
from datetime import datetime, timezone


def unix_now() -> int:
    """Current unix time in whole seconds."""
    return int(time.time())


def ts_to_iso(ts: int) -> str:
    """Unix seconds -> ISO8601 UTC string."""
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()
