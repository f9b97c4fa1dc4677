import pytest

from events import Event
from settings import Settings


@pytest.fixture
def settings():
    return Settings(time_limit=1.0, max_events=5000)


@pytest.fixture
def event():
    """Builds raw events the way the probe runtime emits them."""
    def build(kind, line=1, **fields):
        return Event(kind=kind, line=line, **fields)
    return build
