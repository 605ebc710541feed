from datetime import datetime

import pytest

from growwise.ledger import Ledger
from growwise.service import GrowWise


class FakeClock:
    def __init__(self, moment: datetime) -> None:
        self.moment = moment

    def __call__(self) -> datetime:
        return self.moment


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 10, 19, 9, 30))


@pytest.fixture()
def ledger(clock: FakeClock) -> Ledger:
    return Ledger(clock=clock)


@pytest.fixture()
def bank(clock: FakeClock) -> GrowWise:
    return GrowWise(clock=clock)
