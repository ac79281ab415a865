__all__ = ["Time"]


import time
from datetime import datetime, timezone


class Time:
    @staticmethod
    def now() -> float:
        timestamp = time.time()
        return timestamp

    @staticmethod
    def monotonic() -> float:
        return time.monotonic()

    @staticmethod
    def isoformat(timestamp: float | None = None) -> str:
        if timestamp is None:
            timestamp = Time.now()
        return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()
