"""
Simulation runner driving the engine hour by hour.

The runner plays the external driver: it holds the current SystemState,
feeds user actions and the periodic decay step into the engine, retains a
sampled history of snapshots and writes results to CSV / JSON.
"""

import csv
import json
import logging
from dataclasses import dataclass, field
from datetime import timezone
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from .actions import (add_user, buy_miner_with_star, buy_miner_with_starry,
                      can_renew, remove_miner, renew_miner, vote)
from .config import ScenarioConfig, SimulationConfig, StarmineConfig, SystemParams
from .decay import update_system_state
from .environment import Environment, ManualClock, SequentialIds
from .state import SystemState, initial_state
from .stats import MetricsCalculator, calculate_user_stats, generate_summary_report

logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    """Complete result of one scenario run."""
    scenario_id: str
    params: SystemParams
    final_state: SystemState
    history: List[SystemState]
    daily_rows: List[Dict]
    metrics: Dict = field(default_factory=dict)


class SimulationRunner:
    """Orchestrates scenario runs against the pure engine."""

    def __init__(self, output_dir: Optional[str] = None,
                 config: Optional[StarmineConfig] = None):
        if output_dir is None:
            output_dir = str(Path(__file__).parent.parent / "results")
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(exist_ok=True, parents=True)
        self.config = config or StarmineConfig()

    def run_scenario(self, scenario: ScenarioConfig,
                     params: Optional[SystemParams] = None,
                     simulation: Optional[SimulationConfig] = None,
                     save: bool = True,
                     verbose: bool = True) -> SimulationResult:
        """
        Run a single scenario.

        Args:
            scenario: Scenario definition (overrides applied on top of the bases)
            params: Base economic parameters (config default when omitted)
            simulation: Base driver settings (config default when omitted)
            save: Write CSV / JSON output
            verbose: Print progress and the summary report

        Returns:
            SimulationResult with the retained history and metrics
        """
        params = scenario.build_params(params or self.config.params)
        sim = scenario.build_simulation(simulation or self.config.simulation)

        if verbose:
            print(f"\n{'='*60}")
            print(f"Running {scenario.scenario_id}: {scenario.name}")
            print(f"users={sim.user_count}, days={sim.days}, tick={sim.tick_hours}h")
            print(f"Params: take={params.take_rate}, EV={params.ev}, "
                  f"decay={params.mining_power_decay_rate}, X={params.exchange_rate}")
            print(f"{'='*60}")

        rng = np.random.default_rng(sim.random_seed)
        clock = ManualClock(sim.start_time, tz=timezone.utc)
        env = Environment(clock, SequentialIds(scenario.scenario_id.lower()))

        # --- Population ---
        state = initial_state(clock.now())
        for i in range(sim.user_count):
            state = add_user(state, f"user_{i:03d}", env)
        user_ids = list(state.users)

        history = [state]
        daily_rows = []
        tick_share = sim.tick_hours / 24.0

        # --- Main loop ---
        # tick_hours need not divide 24; days are tracked by index
        action_day = -1
        recorded_day = -1
        for tick in range(sim.total_ticks):
            start_hour = tick * sim.tick_hours
            hour = start_hour + sim.tick_hours
            day = start_hour // 24
            clock.advance(hours=sim.tick_hours)

            # 1. Once-a-day actions on the first tick of each day
            if day != action_day:
                state = self._execute_daily_actions(params, state, env, rng, sim, user_ids)
                action_day = day

            # 2. Purchases
            state = self._execute_purchases(params, state, env, rng, sim, user_ids,
                                            tick_share)

            # 3. Decay / release
            state = update_system_state(params, state, env)

            if hour // sim.snapshot_every_hours > start_hour // sim.snapshot_every_hours:
                history.append(state)

            # 4. Per-user rows once the day is over (or the run ends mid-day)
            day_over = hour // 24 > day or tick == sim.total_ticks - 1
            if day_over and day != recorded_day:
                daily_rows.extend(self._record_day(params, state, env, day))
                recorded_day = day
                if verbose and (day + 1) % 10 == 0:
                    print(f"  Day {day + 1}/{sim.days}")

        if history[-1] is not state:
            history.append(state)

        # --- Metrics ---
        calculator = MetricsCalculator()
        metrics = calculator.calculate_all(params, history)
        metrics['scenario_id'] = scenario.scenario_id
        metrics['scenario_name'] = scenario.name
        metrics['params'] = params.to_dict()
        metrics['simulation'] = {
            'days': sim.days, 'user_count': sim.user_count,
            'tick_hours': sim.tick_hours, 'random_seed': sim.random_seed,
        }

        result = SimulationResult(
            scenario_id=scenario.scenario_id,
            params=params,
            final_state=state,
            history=history,
            daily_rows=daily_rows,
            metrics=metrics,
        )

        if save:
            self._save_results(result, calculator)

        if not metrics['invariants_pass']:
            logger.warning("%s: %d invariant violations", scenario.scenario_id,
                           len(metrics['invariant_violations']))

        if verbose:
            print(generate_summary_report(metrics, scenario.scenario_id))

        return result

    def _execute_daily_actions(self, params: SystemParams, state: SystemState,
                               env: Environment, rng: np.random.Generator,
                               sim: SimulationConfig,
                               user_ids: List[str]) -> SystemState:
        """Votes, renewals and removals; at most one of each per miner per day."""
        now = env.clock.now()
        for user_id in user_ids:
            if rng.random() < sim.vote_probability:
                success = bool(rng.random() < sim.vote_success_probability)
                state = vote(params, state, user_id, success, env)

            for miner in state.users[user_id].miners:
                if rng.random() < sim.removal_probability:
                    state = remove_miner(params, state, user_id, miner.id)
                elif can_renew(params, miner, now) and rng.random() < sim.renewal_probability:
                    state = renew_miner(params, state, user_id, miner.id, env)
        return state

    def _execute_purchases(self, params: SystemParams, state: SystemState,
                           env: Environment, rng: np.random.Generator,
                           sim: SimulationConfig, user_ids: List[str],
                           tick_share: float) -> SystemState:
        """Poisson-distributed purchases in both currencies."""
        for user_id in user_ids:
            for _ in range(rng.poisson(sim.star_purchase_rate * tick_share)):
                state = buy_miner_with_star(params, state, user_id, env)
            for _ in range(rng.poisson(sim.starry_purchase_rate * tick_share)):
                state = buy_miner_with_starry(params, state, user_id, env)
        return state

    def _record_day(self, params: SystemParams, state: SystemState,
                    env: Environment, day: int) -> List[Dict]:
        rows = []
        for user_id, user in state.users.items():
            stats = calculate_user_stats(params, state, user_id, env)
            rows.append({
                'day': day,
                'user_id': user_id,
                'miners': stats.total_miners,
                'star_balance': user.star_balance,
                'starry_balance': user.starry_balance,
                'total_investment': stats.total_investment,
                'total_reward': stats.total_reward,
                'realized_reward': user.total_reward,
                'average_roi': stats.average_roi,
                'estimated_daily_reward': stats.estimated_daily_reward,
                'votes': stats.voting_stats.total_votes,
                'vote_success_rate': stats.voting_stats.success_rate,
            })
        return rows

    def _save_results(self, result: SimulationResult, calculator: MetricsCalculator):
        """Save per-user rows and history to CSV, metrics to JSON."""
        scores_dir = self.output_dir / "scores"
        scores_dir.mkdir(exist_ok=True, parents=True)

        csv_path = scores_dir / f"{result.scenario_id}_users.csv"
        if result.daily_rows:
            keys = result.daily_rows[0].keys()
            with open(csv_path, 'w', newline='') as f:
                writer = csv.DictWriter(f, fieldnames=keys)
                writer.writeheader()
                writer.writerows(result.daily_rows)

        history_path = scores_dir / f"{result.scenario_id}_history.csv"
        calculator.history_frame(result.history).to_csv(history_path, index=False)

        summary_dir = self.output_dir / "summary"
        summary_dir.mkdir(exist_ok=True, parents=True)

        json_path = summary_dir / f"{result.scenario_id}_metrics.json"
        with open(json_path, 'w') as f:
            json.dump(result.metrics, f, indent=2, default=str)

    def run_all_scenarios(self, params: Optional[SystemParams] = None,
                          verbose: bool = True) -> List[Dict]:
        """
        Run every built-in scenario.

        Returns:
            List of metrics dictionaries, one per scenario.
        """
        results = []
        for scenario in self.config.scenarios:
            result = self.run_scenario(scenario, params=params, verbose=verbose)
            results.append(result.metrics)

        summary_dir = self.output_dir / "summary"
        summary_dir.mkdir(exist_ok=True, parents=True)
        combined_path = summary_dir / "all_scenarios.json"
        with open(combined_path, 'w') as f:
            json.dump(results, f, indent=2, default=str)

        if verbose:
            print(f"\n{'='*60}")
            print("ALL SCENARIOS COMPLETE")
            print(f"{'='*60}")
            for m in results:
                print(f"  {m['scenario_id']}: profit={m['platform_profit']:.2f}, "
                      f"poolA_min={m['star_pool_min']:.2f}, "
                      f"poolB_min={m['starry_pool_min']:.2f}, "
                      f"ROI={m['realized_roi_mean']:.4f} | {m['scenario_name']}")

        return results


if __name__ == '__main__':
    from .logconfig import configure_logging

    configure_logging()
    SimulationRunner().run_all_scenarios()
