"""Wall clock used to stamp posts on create and update."""

from datetime import UTC, datetime


class SystemClock:
    """TimePort backed by the system clock. Always timezone-aware UTC."""

    def now_utc(self) -> datetime:
        return datetime.now(UTC)
