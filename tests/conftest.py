from collections.abc import Iterator
from datetime import UTC, datetime, timedelta

import pytest

from tinyblog.components.posts import PostStore


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2024, 3, 5, 14, 7, 9, tzinfo=UTC)

    def now_utc(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def test_data_dir(tmp_path):
    return str(tmp_path)


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "data" / "blog.db")


@pytest.fixture
def store(db_path) -> Iterator[PostStore]:
    """An initialized post store on a temporary file, closed after the test."""
    s = PostStore(db_path, lock_timeout=0.2)
    s.init()
    yield s
    s.close()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()
