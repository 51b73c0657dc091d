"""
Statistics for the mining simulation.

Per user:
1. Miner age, reward estimate, ROI, time until renewal
2. Average ROI and estimated daily reward
3. Voting success rate and rewards paid

System wide:
4. Invariant checks (miner count, finite counters)
5. Pool summary and platform profit
6. Gini coefficient of realized reward
7. Time series of aggregate counters
"""

import math
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import SystemParams
from .environment import Environment, SECONDS_PER_DAY, resolve
from .state import PurchaseType, SystemState


@dataclass(frozen=True)
class MinerStats:
    id: str
    type: PurchaseType
    age: float  # days
    reward: float
    roi: float
    renewal_count: int
    time_until_renewal: float  # days


@dataclass(frozen=True)
class VotingStats:
    total_votes: int = 0
    successful_votes: int = 0
    success_rate: float = 0.0
    total_voting_rewards: float = 0.0


@dataclass(frozen=True)
class UserStats:
    total_miners: int = 0
    total_investment: float = 0.0
    total_reward: float = 0.0
    average_roi: float = 0.0
    estimated_daily_reward: float = 0.0
    voting_stats: VotingStats = field(default_factory=VotingStats)
    miner_stats: Tuple[MinerStats, ...] = ()

    def to_dict(self) -> Dict:
        data = asdict(self)
        for miner in data['miner_stats']:
            miner['type'] = PurchaseType(miner['type']).value
        return data


def calculate_user_stats(params: SystemParams, state: SystemState, user_id: str,
                         env: Optional[Environment] = None) -> UserStats:
    """
    Read-only summary of one user.

    A missing user yields an all-zero UserStats. Average ROI is 0.0 when
    nothing has been invested yet, and a miner's ROI is 0.0 when its
    purchase price is zero.
    """
    user = state.get_user(user_id)
    if user is None:
        return UserStats()

    now = resolve(env).clock.now()
    miner_stats = []
    for miner in user.miners:
        age = (now - miner.purchase_time) / SECONDS_PER_DAY
        if miner.last_renewal_time is not None:
            time_until_renewal = (params.mining_period -
                                  (now - miner.last_renewal_time) / SECONDS_PER_DAY)
        else:
            time_until_renewal = params.mining_period - age

        outstanding = miner.accumulated_reward + miner.remaining_reward
        miner_stats.append(MinerStats(
            id=miner.id,
            type=miner.purchase_type,
            age=age,
            reward=miner.accumulated_reward + miner.remaining_reward / params.period_hours,
            roi=outstanding / miner.purchase_price if miner.purchase_price > 0 else 0.0,
            renewal_count=miner.renewal_count,
            time_until_renewal=max(0.0, time_until_renewal),
        ))

    history = user.voting_history
    successful = sum(1 for v in history if v.success)
    voting_stats = VotingStats(
        total_votes=len(history),
        successful_votes=successful,
        success_rate=successful / len(history) if history else 0.0,
        total_voting_rewards=sum(v.reward for v in history),
    )

    total_reward = (sum(m.accumulated_reward + m.remaining_reward for m in user.miners) +
                    voting_stats.total_voting_rewards)
    average_roi = (total_reward / user.total_investment
                   if user.total_investment > 0 else 0.0)

    return UserStats(
        total_miners=len(user.miners),
        total_investment=user.total_investment,
        total_reward=total_reward,
        average_roi=average_roi,
        estimated_daily_reward=sum(s.reward for s in miner_stats),
        voting_stats=voting_stats,
        miner_stats=tuple(miner_stats),
    )


_STATE_COUNTERS = ('miner_total', 'star_pool', 'starry_pool', 'starry_total',
                   'mining_power_accumulated', 'platform_profit', 'last_update_time')


class MetricsCalculator:
    """Computes system-wide metrics from a state or a state history."""

    def __init__(self, tolerance: float = 1e-6):
        self.tolerance = tolerance

    def calculate_all(self, params: SystemParams,
                      history: Sequence[SystemState]) -> Dict:
        """
        Calculate all metrics from a simulation history.

        Args:
            params: Economic parameters used for the run
            history: Retained state snapshots, oldest first

        Returns:
            Metrics dictionary
        """
        if not history:
            return {'snapshots': 0}

        final = history[-1]
        metrics = {'snapshots': len(history)}

        # 1. Invariants over the whole history
        violations = []
        for snapshot in history:
            violations.extend(self.check_invariants(snapshot))
        metrics['invariant_violations'] = violations
        metrics['invariants_pass'] = not violations

        # 2. Pools
        metrics.update(self.pool_summary(final, history))

        # 3. Reward distribution
        metrics.update(self.reward_distribution(params, final))

        return metrics

    def check_invariants(self, state: SystemState) -> List[str]:
        """Return a description of every violated invariant (empty when sound)"""
        violations = []

        counted = state.counted_miners()
        if counted != state.miner_total:
            violations.append(
                f"miner_total={state.miner_total} but users own {counted} miners "
                f"at t={state.last_update_time}"
            )

        for name in _STATE_COUNTERS:
            value = getattr(state, name)
            if not math.isfinite(value):
                violations.append(f"{name} is not finite ({value})")

        for user, miner in state.all_miners():
            for name in ('accumulated_reward', 'remaining_reward', 'mining_period_reward'):
                value = getattr(miner, name)
                if not math.isfinite(value):
                    violations.append(f"miner {miner.id} {name} is not finite ({value})")
            if miner.remaining_reward < -self.tolerance:
                violations.append(
                    f"miner {miner.id} of {user.id} has negative remaining reward "
                    f"({miner.remaining_reward:.6f})"
                )

        return violations

    def pool_summary(self, state: SystemState,
                     history: Sequence[SystemState] = ()) -> Dict:
        """
        Pool balances and profit.

        Pool A only goes negative through starry purchases and pool B only
        through voting payouts, so the minimum over the history is reported.
        Mining power goes negative when a miner is removed after its weight
        has decayed; that is reported here, not as a broken invariant.
        """
        snapshots = list(history) or [state]
        star = np.array([s.star_pool for s in snapshots])
        starry = np.array([s.starry_pool for s in snapshots])
        power = np.array([s.mining_power_accumulated for s in snapshots])

        return {
            'miner_total': state.miner_total,
            'user_count': len(state.users),
            'star_pool': float(state.star_pool),
            'starry_pool': float(state.starry_pool),
            'starry_total': float(state.starry_total),
            'mining_power_accumulated': float(state.mining_power_accumulated),
            'platform_profit': float(state.platform_profit),
            'star_pool_min': float(star.min()),
            'starry_pool_min': float(starry.min()),
            'star_pool_pass': bool(star.min() >= -self.tolerance),
            'starry_pool_pass': bool(starry.min() >= -self.tolerance),
            'mining_power_min': float(power.min()),
            'mining_power_pass': bool(power.min() >= -self.tolerance),
        }

    def reward_distribution(self, params: SystemParams, state: SystemState) -> Dict:
        """
        Gini coefficient of per-user realized reward, plus ROI statistics.

        Gini = Σ|x_i - x_j| / (2n × mean(x))
        """
        rewards = np.array([user.total_reward for user in state.users.values()])
        investments = np.array([user.total_investment for user in state.users.values()])

        result = {
            'total_realized_reward': float(rewards.sum()) if rewards.size else 0.0,
            'total_investment': float(investments.sum()) if investments.size else 0.0,
        }

        positive = np.sort(rewards[rewards > 0])
        if positive.size == 0:
            result['gini'] = 0.0
        else:
            n = positive.size
            index = np.arange(1, n + 1)
            result['gini'] = float(
                (2 * np.sum(index * positive) / (n * np.sum(positive))) - (n + 1) / n
            )

        invested = investments > 0
        if invested.any():
            roi = rewards[invested] / investments[invested]
            result['realized_roi_mean'] = float(np.mean(roi))
            result['realized_roi_median'] = float(np.median(roi))
        else:
            result['realized_roi_mean'] = 0.0
            result['realized_roi_median'] = 0.0

        return result

    def history_frame(self, history: Sequence[SystemState]) -> pd.DataFrame:
        """Aggregate counters over time, one row per snapshot"""
        rows = []
        for snapshot in history:
            row = {name: getattr(snapshot, name) for name in _STATE_COUNTERS}
            row['user_count'] = len(snapshot.users)
            rows.append(row)
        return pd.DataFrame(rows, columns=list(_STATE_COUNTERS) + ['user_count'])


def generate_summary_report(metrics: Dict, scenario_id: str = "") -> str:
    """Generate a human-readable summary report."""
    lines = []
    lines.append(f"{'='*60}")
    lines.append(f"Mining Simulation Report: {scenario_id}")
    lines.append(f"{'='*60}")
    lines.append("")

    violations = metrics.get('invariant_violations', [])
    lines.append(f"[{'PASS' if metrics.get('invariants_pass', False) else 'FAIL'}] "
                 f"Invariants ({len(violations)} violations)")

    star_min = metrics.get('star_pool_min', 0.0)
    starry_min = metrics.get('starry_pool_min', 0.0)
    lines.append(f"[{'PASS' if metrics.get('star_pool_pass', False) else 'FAIL'}] "
                 f"Pool A min: {star_min:.2f} (target: >= 0)")
    lines.append(f"[{'PASS' if metrics.get('starry_pool_pass', False) else 'FAIL'}] "
                 f"Pool B min: {starry_min:.2f} (target: >= 0)")
    lines.append(f"[{'PASS' if metrics.get('mining_power_pass', False) else 'FAIL'}] "
                 f"Mining power min: {metrics.get('mining_power_min', 0.0):.2f} "
                 f"(target: >= 0)")

    lines.append(f"[INFO] Miners: {metrics.get('miner_total', 0)}, "
                 f"users: {metrics.get('user_count', 0)}")
    lines.append(f"[INFO] Platform profit: {metrics.get('platform_profit', 0.0):.2f}")
    lines.append(f"[INFO] Realized ROI mean: {metrics.get('realized_roi_mean', 0.0):.4f}, "
                 f"Gini: {metrics.get('gini', 0.0):.4f}")

    lines.append("")
    lines.append(f"{'='*60}")

    return "\n".join(lines)
