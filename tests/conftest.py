"""
Shared test fixtures.
"""

import pytest

from soundcam.core.events import EventBus
from soundcam.core.scheduler import ManualScheduler

from .helpers import FakeClock, FakeFrameSource


@pytest.fixture
def source():
    return FakeFrameSource(100, 100)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def clock():
    return FakeClock()
