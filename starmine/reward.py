"""
Reward model for miners.

Instantaneous reward rate for a participation weight (elo):

    r(elo) = EV × starry_pool × elo / (P × mining_factor + N × initial_elo)

where P is the accumulated mining power and N the number of miners.
"""

from .config import SystemParams
from .state import SystemState


def calculate_mining_reward(params: SystemParams, state: SystemState,
                            elo: float) -> float:
    """
    Expected reward per hour for a miner of the given weight.

    Returns 0.0 when there are no miners or the denominator is not
    positive, so callers never see a non-finite rate.
    """
    if state.miner_total == 0:
        return 0.0

    denominator = (state.mining_power_accumulated * params.mining_factor +
                   state.miner_total * params.initial_elo)
    if denominator <= 0:
        return 0.0

    return params.ev * state.starry_pool * elo / denominator


def period_reward(params: SystemParams, state: SystemState, elo: float) -> float:
    """Full-period obligation: hourly rate × mining period in hours"""
    return calculate_mining_reward(params, state, elo) * params.period_hours
