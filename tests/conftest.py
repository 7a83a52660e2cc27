"""Shared fixtures: a controllable clock and a wired test app."""

import pytest

from shortener.app import create_app
from shortener.config import Config


class FakeClock:
    """Manually advanced time source, in seconds."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> Config:
    return Config(
        rate_limit_requests=5,
        rate_limit_window=10.0,
        base_url="http://short.test",
        allowed_origins=("http://localhost:3000",),
    )


@pytest.fixture
def app(config, clock):
    return create_app(config, clock=clock, start_sweeper=False)


@pytest.fixture
def client(app):
    return app.test_client()
