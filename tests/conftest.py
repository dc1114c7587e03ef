"""Common fixtures."""

import pytest

from tests.helpers import FakeClock, RecordingNotifier, ScriptedProber


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def prober():
    return ScriptedProber()


@pytest.fixture
def notifier():
    return RecordingNotifier()
