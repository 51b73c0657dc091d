"""Shared pytest fixtures for starmine tests.

All fixtures use a ManualClock pinned to 2024-01-01T12:00:00Z (UTC day
boundaries) and sequential ids, so every test is deterministic.
"""

from __future__ import annotations

from datetime import timezone

import pytest

from starmine.actions import add_user, buy_miner_with_star
from starmine.config import SystemParams
from starmine.environment import Environment, ManualClock, SequentialIds
from starmine.state import SystemState, initial_state

# 2024-01-01T12:00:00Z
START = 1704110400.0


@pytest.fixture
def params() -> SystemParams:
    """Parameters of the reference scenario (the defaults)."""
    return SystemParams(
        take_rate=0.3,
        miner_price=500,
        exchange_rate=10,
        initial_elo=1000,
        mining_period=3,
        ev=0.1,
        mining_factor=1,
    )


@pytest.fixture
def env() -> Environment:
    return Environment(ManualClock(START, tz=timezone.utc), SequentialIds("t"))


@pytest.fixture
def empty_state() -> SystemState:
    return initial_state(START)


@pytest.fixture
def alice_state(empty_state: SystemState, env: Environment) -> SystemState:
    """Alice registered, no miners. Alice's id is 't-1'."""
    return add_user(empty_state, "Alice", env)


@pytest.fixture
def alice_with_miner(params: SystemParams, alice_state: SystemState,
                     env: Environment) -> SystemState:
    """Alice owning one star-bought miner ('t-2')."""
    return buy_miner_with_star(params, alice_state, "t-1", env)
