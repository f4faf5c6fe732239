import argparse
import os
import sys

import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from bomb_tester.simulation import Outcome, RandomCoin, TrialController, run_batch

# P(lower) * P(live) for a boom, then the live upper-path photon splits 50/50.
THEORETICAL = {
    Outcome.DETECTED_AT_A: 0.625,
    Outcome.DETECTED_AT_B: 0.125,
    Outcome.EXPLODED: 0.25,
}


def simulate_outcomes(num_trials, seed):
    """
    Runs bomb-present trials and returns per-outcome empirical rates and
    binomial standard errors.
    """
    controller = TrialController(coins=RandomCoin(seed))
    history = run_batch(controller, num_trials, bomb_present=True)
    labels = np.array([record.outcome.value for record in history.records])

    empirical = {}
    stderr = {}
    for outcome, p in THEORETICAL.items():
        hits = labels == outcome.value
        empirical[outcome] = float(np.mean(hits))
        stderr[outcome] = float(np.sqrt(p * (1.0 - p) / num_trials))
    return empirical, stderr


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--trials", type=int, default=20000)
    parser.add_argument("--seed", type=int, default=0)
    args = parser.parse_args()

    empirical, stderr = simulate_outcomes(args.trials, args.seed)

    print(f"--- Elitzur-Vaidman Outcome Frequencies ---")
    print(f"Parameters:")
    print(f"  trials={args.trials}, seed={args.seed}")
    print(f"")
    print(f"Results:")
    for outcome, p in THEORETICAL.items():
        z = (empirical[outcome] - p) / stderr[outcome]
        print(f"  [{outcome.value:<5}] empirical={empirical[outcome]:.4f}  theory={p:.4f}  z={z:+.2f}")
    print(f"")
    print(f"Conclusion:")
    print(f"  One trial in {1 / THEORETICAL[Outcome.DETECTED_AT_B]:.0f} certifies a live bomb")
    certified = THEORETICAL[Outcome.DETECTED_AT_B]
    print(f"  at detector B without exploding, and")
    share = certified / (certified + THEORETICAL[Outcome.EXPLODED])
    print(f"  {share:.3f} of conclusive live-bomb outcomes are interaction-free.")
