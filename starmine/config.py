"""
Configuration and parameter definitions for the mining economy simulation
"""

import math
from dataclasses import asdict, dataclass, field, fields, replace as dc_replace
from typing import Dict, List, Mapping, Optional

# ============================================================================
# ECONOMIC PARAMETERS
# ============================================================================

# Original upper-case names accepted by SystemParams.from_dict
_LEGACY_NAMES = {
    'TAKE_RATE': 'take_rate',
    'AFFILIATE': 'affiliate',
    'MINER_PRICE': 'miner_price',
    'MINING_PERIOD': 'mining_period',
    'RENEWAL_PRICE': 'renewal_price',
    'EXCHANGE_RATE': 'exchange_rate',
    'INITIAL_ELO': 'initial_elo',
    'MINING_FACTOR': 'mining_factor',
    'EV': 'ev',
    'VOTING_REWARD': 'voting_reward',
    'MINING_POWER_DECAY_RATE': 'mining_power_decay_rate',
    'VOTING_SUCCESS_THRESHOLD': 'voting_success_threshold',
}


@dataclass(frozen=True)
class SystemParams:
    """Immutable economic parameters, supplied by the caller on every call"""

    # Fraction of every purchase / renewal price kept as platform profit
    take_rate: float = 0.3

    # Affiliate fraction (configuration surface only)
    affiliate: float = 0.21

    # Miner price, star units
    miner_price: float = 500.0

    # Mining period in days; the reward obligation is released over it
    mining_period: float = 3.0

    # Renewal price, star units
    renewal_price: float = 10.0

    # starry per star
    exchange_rate: float = 10.0

    # Participation weight ("elo") of a newly created miner
    initial_elo: float = 1000.0

    # Scaling of accumulated mining power in the reward denominator
    mining_factor: float = 1.0

    # Expected-value coefficient of the reward model
    ev: float = 0.1

    # Flat voting reward, star units (paid out in starry)
    voting_reward: float = 1.0

    # Per-hour decay factor of accumulated mining power
    mining_power_decay_rate: float = 0.95

    # Minimum success ratio for a successful vote to be rewarded
    voting_success_threshold: float = 0.7

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{f.name} must be a real number, got {value!r}")
            if not math.isfinite(value):
                raise ValueError(f"{f.name} must be finite, got {value!r}")
            if value < 0:
                raise ValueError(f"{f.name} must be non-negative, got {value!r}")
        if self.exchange_rate <= 0:
            raise ValueError("exchange_rate must be > 0")
        if self.mining_period <= 0:
            raise ValueError("mining_period must be > 0")

    @property
    def period_hours(self) -> float:
        return self.mining_period * 24

    @property
    def period_seconds(self) -> float:
        return self.mining_period * 24 * 60 * 60

    @classmethod
    def from_dict(cls, data: Mapping) -> 'SystemParams':
        """
        Build params from a mapping.

        Accepts both snake_case field names and the original upper-case
        names (TAKE_RATE, MINER_PRICE, ...). Unknown keys are ignored.
        """
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = _LEGACY_NAMES.get(key, key)
            if name in known:
                kwargs[name] = value
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    def replace(self, **changes) -> 'SystemParams':
        """Return a validated copy with the given fields changed"""
        return dc_replace(self, **changes)


DEFAULT_PARAMS = SystemParams()


# ============================================================================
# SIMULATION DRIVER PARAMETERS
# ============================================================================

@dataclass
class SimulationConfig:
    """Parameters for the simulation driver (population and behaviour)"""

    # Simulation duration
    days: int = 30

    # Decay step cadence (hours between ticks, at most one day)
    tick_hours: int = 1

    # Number of simulated users
    user_count: int = 50

    # Poisson λ of purchases per user per day
    star_purchase_rate: float = 0.05
    starry_purchase_rate: float = 0.02

    # Daily probability that a user renews each eligible miner
    renewal_probability: float = 0.3

    # Daily probability that a miner is removed
    removal_probability: float = 0.005

    # Daily probability that a user votes, and that the vote succeeds
    vote_probability: float = 0.6
    vote_success_probability: float = 0.8

    # History sampling interval for retained state snapshots
    snapshot_every_hours: int = 24

    # Reproducibility
    random_seed: int = 42

    # POSIX seconds; 2024-01-01T00:00:00Z
    start_time: float = 1704067200.0

    def __post_init__(self):
        if self.days <= 0:
            raise ValueError("days must be positive")
        if not 0 < self.tick_hours <= 24:
            raise ValueError(f"tick_hours must be within 1..24, got {self.tick_hours!r}")
        if self.snapshot_every_hours <= 0:
            raise ValueError("snapshot_every_hours must be positive")
        for name in ('renewal_probability', 'removal_probability',
                     'vote_probability', 'vote_success_probability'):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value!r}")

    @property
    def total_ticks(self) -> int:
        return (self.days * 24) // self.tick_hours


# ============================================================================
# PARAMETER SWEEP
# ============================================================================

@dataclass
class SweepConfig:
    """Two-level factor ranges for the factorial parameter sweep"""

    factors: Dict[str, List[float]] = None

    # Scenario run for every design point
    scenario_id: str = "S001"

    # Shorter runs keep the sweep quick
    days: int = 14
    user_count: int = 20

    def __post_init__(self):
        if self.factors is None:
            self.factors = {
                'take_rate':               [0.2,  0.4],
                'ev':                      [0.05, 0.2],
                'mining_power_decay_rate': [0.90, 0.99],
                'exchange_rate':           [5.0,  20.0],
            }
        for name, levels in self.factors.items():
            if len(levels) != 2:
                raise ValueError(f"factor {name} needs exactly two levels")


# ============================================================================
# SCENARIOS
# ============================================================================

@dataclass
class ScenarioConfig:
    """Definition of a single simulation scenario"""

    scenario_id: str
    name: str
    description: str
    params_overrides: Dict[str, float] = field(default_factory=dict)
    simulation_overrides: Dict[str, float] = field(default_factory=dict)

    def build_params(self, base: Optional[SystemParams] = None) -> SystemParams:
        base = base or DEFAULT_PARAMS
        if not self.params_overrides:
            return base
        return base.replace(**self.params_overrides)

    def build_simulation(self, base: Optional[SimulationConfig] = None) -> SimulationConfig:
        base = base or SimulationConfig()
        if not self.simulation_overrides:
            return base
        return dc_replace(base, **self.simulation_overrides)


def get_scenarios() -> List[ScenarioConfig]:
    """Return all built-in scenarios S001-S006"""
    return [
        ScenarioConfig(
            scenario_id="S001",
            name="Baseline",
            description="Default parameters, mixed behaviour",
        ),
        ScenarioConfig(
            scenario_id="S002",
            name="Star-only buyers",
            description="Every purchase backed by new star",
            simulation_overrides={'star_purchase_rate': 0.08,
                                  'starry_purchase_rate': 0.0},
        ),
        ScenarioConfig(
            scenario_id="S003",
            name="Starry-heavy buyers",
            description="Purchases paid in starry drain pool A",
            simulation_overrides={'star_purchase_rate': 0.01,
                                  'starry_purchase_rate': 0.08},
        ),
        ScenarioConfig(
            scenario_id="S004",
            name="Voters only",
            description="No purchases; voting payouts draw pool B",
            simulation_overrides={'star_purchase_rate': 0.0,
                                  'starry_purchase_rate': 0.0,
                                  'vote_probability': 1.0},
        ),
        ScenarioConfig(
            scenario_id="S005",
            name="Churn",
            description="Frequent miner removal without refund",
            simulation_overrides={'removal_probability': 0.1},
        ),
        ScenarioConfig(
            scenario_id="S006",
            name="Slow decay",
            description="Mining power decays slowly",
            params_overrides={'mining_power_decay_rate': 0.999},
        ),
    ]


# ============================================================================
# GLOBAL CONFIGURATION
# ============================================================================

class StarmineConfig:
    """Master configuration for the simulation"""

    def __init__(self, params: Optional[SystemParams] = None):
        self.params = params or DEFAULT_PARAMS
        self.simulation = SimulationConfig()
        self.sweep = SweepConfig()
        self.scenarios = get_scenarios()

    def get_scenario(self, scenario_id: str) -> ScenarioConfig:
        for scenario in self.scenarios:
            if scenario.scenario_id == scenario_id:
                return scenario
        raise KeyError(f"Unknown scenario: {scenario_id}")

    def get_parameter_ranges(self) -> Dict[str, List[float]]:
        """Return all factor ranges for sweep exploration"""
        return dict(self.sweep.factors)
