"""
Starmine mining economy simulation engine

Pure state transitions over an immutable SystemState:
1. Reward model (EV-weighted share of pool B per unit of elo)
2. Decay step (hourly mining power decay, linear reward release)
3. Miner purchase with star or starry
4. Miner renewal and removal
5. Daily voting rewards
6. Per-user statistics and system metrics
7. Scenario runner and factorial parameter sweep
"""

__version__ = "0.1.0"

from .config import (
    DEFAULT_PARAMS,
    ScenarioConfig,
    SimulationConfig,
    StarmineConfig,
    SweepConfig,
    SystemParams,
    get_scenarios,
)
from .environment import (
    Clock,
    Environment,
    IdSource,
    ManualClock,
    RandomIds,
    SequentialIds,
    SystemClock,
    default_environment,
)
from .state import Miner, PurchaseType, SystemState, User, Vote, initial_state
from .reward import calculate_mining_reward, period_reward
from .decay import update_system_state
from .actions import (
    add_user,
    apply_action,
    buy_miner_with_star,
    buy_miner_with_starry,
    can_renew,
    remove_miner,
    renew_miner,
    vote,
)
from .stats import (
    MetricsCalculator,
    MinerStats,
    UserStats,
    VotingStats,
    calculate_user_stats,
    generate_summary_report,
)
