"""
Time-advance step: mining power decay and reward release.

Decay model:
- Accumulated mining power decays continuously: P' = P × rate^hours
- Each miner releases a slice of its remaining obligation:
      released = remaining × min(1, hours / (mining_period × 24))
  The slice is clamped so remaining never goes below zero after a
  long gap between ticks.
- Below one elapsed hour the step does nothing.
"""

import logging
from dataclasses import replace
from typing import Optional

from .config import SystemParams
from .environment import Environment, SECONDS_PER_HOUR, resolve
from .state import SystemState

logger = logging.getLogger(__name__)


def release_fraction(params: SystemParams, hours: float) -> float:
    """Share of the remaining obligation released after `hours`"""
    return min(hours / params.period_hours, 1.0)


def update_system_state(params: SystemParams, state: SystemState,
                        env: Optional[Environment] = None) -> SystemState:
    """
    Advance state to the clock's current time.

    Args:
        params: Economic parameters
        state: Current state (not modified)
        env: Clock / id source; the system clock when omitted

    Returns:
        New state, or `state` itself when less than an hour has passed
    """
    now = resolve(env).clock.now()
    hours_passed = (now - state.last_update_time) / SECONDS_PER_HOUR

    if hours_passed < 1:
        return state

    decay_factor = params.mining_power_decay_rate ** hours_passed
    fraction = release_fraction(params, hours_passed)

    users = {}
    total_released = 0.0
    for user_id, user in state.users.items():
        miners = []
        user_released = 0.0
        for miner in user.miners:
            released = miner.remaining_reward * fraction
            user_released += released
            miners.append(replace(
                miner,
                accumulated_reward=miner.accumulated_reward + released,
                remaining_reward=miner.remaining_reward - released,
            ))
        users[user_id] = replace(user, miners=tuple(miners),
                                 total_reward=user.total_reward + user_released)
        total_released += user_released

    logger.debug("decay step: %.2f hours, power x%.6f, released %.4f",
                 hours_passed, decay_factor, total_released)

    return replace(
        state,
        mining_power_accumulated=state.mining_power_accumulated * decay_factor,
        users=users,
        last_update_time=now,
    )
