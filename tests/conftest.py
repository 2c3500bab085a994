import pytest

from cablewrap.core.accumulator import RotationAccumulator
from cablewrap.models.mount import PositionSample
from cablewrap.models.rotation import RotationState, Settings


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_sample(**fields) -> PositionSample:
    """Connected sample at an unset site, so raw_azimuth_degrees is the azimuth used."""
    fields.setdefault("connected", True)
    return PositionSample(**fields)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def alerts():
    return []


@pytest.fixture
def accumulator(alerts):
    return RotationAccumulator(RotationState(), Settings(), notify=alerts.append)


@pytest.fixture
def state_paths(tmp_path):
    return tmp_path / "state.json", tmp_path / "settings.json"
