"""
Pytest fixtures for twentyq tests.
"""

import asyncio

import pytest

from ..auth import issue_oracle_token
from ..engine_core import TurnStateMachine
from ..rendering import GameRenderer
from ..session import BroadcastHub, GameSession, SessionRegistry
from ..settings import Settings


async def next_update(subscriber, timeout: float = 1.0) -> str:
    """Read one update from a subscriber's stream, failing fast if none arrives."""
    return await asyncio.wait_for(anext(subscriber.stream()), timeout)


@pytest.fixture
def renderer() -> GameRenderer:
    return GameRenderer()


@pytest.fixture
def machine() -> TurnStateMachine:
    return TurnStateMachine()


@pytest.fixture
def hub() -> BroadcastHub:
    return BroadcastHub("hubtest", initial="initial")


@pytest.fixture
def game(renderer: GameRenderer) -> GameSession:
    """A session built directly, outside any registry."""
    return GameSession(
        session_id="game00000001",
        capability=issue_oracle_token("game00000001"),
        renderer=renderer,
    )


@pytest.fixture
def registry(renderer: GameRenderer) -> SessionRegistry:
    return SessionRegistry(session_ttl=3600, renderer=renderer)


@pytest.fixture
def settings() -> Settings:
    return Settings(session_ttl_seconds=3600, token_ttl_seconds=3600)
