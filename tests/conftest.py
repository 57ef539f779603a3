import pytest

from desk_scripts.resilience import RetryPolicy, is_transient
from tests.fakes import FakeClock, FakeZendesk


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def policy(clock):
    return RetryPolicy(is_transient, sleep=clock)


@pytest.fixture
def fake_zendesk():
    return FakeZendesk()
