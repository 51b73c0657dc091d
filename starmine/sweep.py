"""
Two-level factorial parameter sweep.

Uses a 2^k full factorial design (pyDOE2.ff2n) over the SweepConfig
factors. With the default four factors that is 16 runs:

  take_rate               : [0.2,  0.4]   platform share
  ev                      : [0.05, 0.2]   reward model coefficient
  mining_power_decay_rate : [0.90, 0.99]  hourly power decay
  exchange_rate           : [5,    20]    starry per star
"""

import json
import time
from dataclasses import replace
from typing import Dict, List, Optional

import pyDOE2

from .config import DEFAULT_PARAMS, StarmineConfig, SweepConfig, SystemParams
from .runner import SimulationRunner


def decode_level(factors: Dict[str, List[float]], factor: str, level: float) -> float:
    """Map coded level (-1 or +1) to the actual value."""
    lo, hi = factors[factor]
    return lo + (level + 1) / 2 * (hi - lo)


def objective(metrics: Dict) -> float:
    """
    Composite penalty to MINIMISE.

    Lower is better:
      - no invariant violations
      - pools never below zero (penalty scaled by the deficit)
      - mining power never below zero (same scaling)
      - realized ROI close to 1.0
    """
    total = 0.0
    total += 100.0 * len(metrics.get('invariant_violations', []))
    total += abs(min(metrics.get('star_pool_min', 0.0), 0.0)) / 1000.0
    total += abs(min(metrics.get('starry_pool_min', 0.0), 0.0)) / 1000.0
    total += abs(min(metrics.get('mining_power_min', 0.0), 0.0)) / 1000.0
    total += 5.0 * abs(metrics.get('realized_roi_mean', 0.0) - 1.0)
    return total


def design_matrix(sweep: SweepConfig):
    """Coded ±1 design, one row per run"""
    return pyDOE2.ff2n(len(sweep.factors))


def run_sweep(output_dir: Optional[str] = None,
              sweep: Optional[SweepConfig] = None,
              base_params: SystemParams = DEFAULT_PARAMS,
              verbose: bool = True) -> List[Dict]:
    """
    Run the factorial design and return results ranked by objective.
    """
    config = StarmineConfig(base_params)
    sweep = sweep or config.sweep
    runner = SimulationRunner(output_dir=output_dir, config=config)
    scenario = config.get_scenario(sweep.scenario_id)
    simulation = replace(config.simulation, days=sweep.days, user_count=sweep.user_count)

    factor_names = list(sweep.factors)
    design = design_matrix(sweep)

    if verbose:
        print("=" * 65)
        print(f"Factorial sweep: {len(design)} runs over {', '.join(factor_names)}")
        print("=" * 65)

    results = []
    for run_idx, row in enumerate(design):
        values = {name: decode_level(sweep.factors, name, row[i])
                  for i, name in enumerate(factor_names)}
        params = base_params.replace(**values)

        result = runner.run_scenario(scenario, params=params, simulation=simulation,
                                     save=False, verbose=False)
        score = objective(result.metrics)
        results.append({
            'run': run_idx,
            'params': values,
            'score': score,
            'metrics': result.metrics,
        })

        if verbose:
            printed = "  ".join(f"{name}={value:.3f}" for name, value in values.items())
            print(f"{run_idx:>4}  {printed}  score={score:.4f}")

    # Sort by score (lower = better)
    results.sort(key=lambda r: r['score'])

    doe_dir = runner.output_dir / "doe"
    doe_dir.mkdir(exist_ok=True, parents=True)
    out_path = doe_dir / "sweep_results.json"
    with open(out_path, 'w') as f:
        json.dump(results, f, indent=2, default=str)

    if verbose:
        print(f"\nBest params: {results[0]['params']}")
        print(f"Saved to {out_path}")

    return results


if __name__ == '__main__':
    t0 = time.time()
    run_sweep()
    print(f"[Total: {time.time()-t0:.0f}s]")
