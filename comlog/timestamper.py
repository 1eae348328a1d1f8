"""Fixed-offset wall-clock timestamps that are safe in filenames and CSV fields."""

from datetime import datetime, timedelta, timezone

TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"
DEFAULT_OFFSET_HOURS = 3


class Timestamper:
    def __init__(self, clock=None, offset_hours: int = DEFAULT_OFFSET_HOURS):
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._tz = timezone(timedelta(hours=offset_hours))

    def now(self) -> str:
        """Return the clock's current instant as YYYY-MM-DD_HH-MM-SS at the fixed offset."""
        return self.format(self._clock())

    def format(self, instant: datetime) -> str:
        # Naive instants are taken to be UTC
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        return instant.astimezone(self._tz).strftime(TIMESTAMP_FORMAT)

    def instant(self) -> datetime:
        return self._clock()
