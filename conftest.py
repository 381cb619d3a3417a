from datetime import datetime, timedelta, timezone

import pytest

from studycards.services import FlashcardService
from studycards.store import CsvCollection

T0 = datetime(2024, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def collection(tmp_path, clock):
    return CsvCollection(str(tmp_path / "flashcards.csv"), clock=clock)


@pytest.fixture
def service(collection, clock):
    return FlashcardService(collection, clock=clock)
