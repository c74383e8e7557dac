"""Shared pytest fixtures: reset database, force mock reasoning, offline GitHub."""

import httpx
import pytest
from sqlmodel import SQLModel

from swarm_mind import models  # noqa: F401
from swarm_mind.agents.github import GitHubClient
from swarm_mind.config import settings
from swarm_mind.db import engine


class FixedRandom:
    """Deterministic stand-in for ``random.Random`` in threshold tests."""

    def __init__(self, value: float) -> None:
        self.value = value

    def random(self) -> float:
        return self.value

    def choice(self, seq):
        return seq[0]


def _offline(request: httpx.Request) -> httpx.Response:
    return httpx.Response(503, json={"message": "offline"})


@pytest.fixture(autouse=True)
def reset_database():
    original_mode = settings.ai_mode
    settings.ai_mode = "mock"
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield
    settings.ai_mode = original_mode


@pytest.fixture
def offline_github() -> GitHubClient:
    return GitHubClient(base_url="https://api.github.test", token="", transport=httpx.MockTransport(_offline))


@pytest.fixture
def fixed_random():
    return FixedRandom
