# ruff: noqa: E402
"""Batch CLI running Elitzur-Vaidman bomb tester trials."""

from __future__ import annotations

# Ensure local src/ is on sys.path when running from the repo without installation
import os as _os
import sys as _sys

_REPO_ROOT = _os.path.abspath(_os.path.join(_os.path.dirname(__file__), ".."))
_SRC_PATH = _os.path.join(_REPO_ROOT, "src")
if _SRC_PATH not in _sys.path and _os.path.isdir(_SRC_PATH):
    _sys.path.insert(0, _SRC_PATH)

import argparse
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from bomb_tester.config import (
    SimulationConfig,
    build_simulation_config,
    read_config_file,
    simulation_section,
)
from bomb_tester.errors import BombTesterError
from bomb_tester.simulation import (
    RandomCoin,
    RecordingRenderer,
    TrialController,
    TrialHistory,
    run_batch,
)
from bomb_tester.utils import configure_logging, env_int, seed_everything


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run interaction-free measurement trials and tabulate the outcomes."
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional YAML file with 'simulation' and 'run' sections.",
    )
    parser.add_argument("--trials", type=int, default=None, help="Number of trials to run.")
    bomb = parser.add_mutually_exclusive_group()
    bomb.add_argument("--bomb", dest="bomb_present", action="store_true", default=None)
    bomb.add_argument("--no-bomb", dest="bomb_present", action="store_false")
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="RNG seed (defaults to $BOMB_TESTER_SEED when set).",
    )
    parser.add_argument(
        "--window",
        type=float,
        default=None,
        help="Override the rendezvous window in logical units.",
    )
    parser.add_argument(
        "--events-out",
        type=Path,
        default=None,
        help="Optional JSONL file receiving every trial event.",
    )
    parser.add_argument(
        "--summary-out",
        type=Path,
        default=None,
        help="Optional JSON file receiving the results table and tallies.",
    )
    parser.add_argument(
        "--continue-on-failure",
        action="store_true",
        help="Record fatal rendezvous failures and keep going instead of aborting.",
    )
    parser.add_argument(
        "--table",
        action="store_true",
        help="Print the per-trial results table.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Logging level (defaults to $BOMB_TESTER_LOG_LEVEL or WARNING).",
    )
    return parser.parse_args(argv)


def load_config(path: Optional[Path]) -> Dict[str, Any]:
    if path is None:
        return {}
    return read_config_file(path)


def format_table(history: TrialHistory) -> List[str]:
    lines = [f"{'Trial #':>8} | Result"]
    lines.extend(f"{number:>8} | {label}" for number, label in history.rows())
    return lines


def format_summary(history: TrialHistory) -> List[str]:
    counts = history.counts()
    frequencies = history.frequencies()
    lines = [f"Trials: {len(history)} (failed: {history.failures})"]
    for outcome, count in counts.items():
        lines.append(
            f"  {outcome.value:<6} {count:>7}  {frequencies[outcome]:.4f}  ({outcome.verdict})"
        )
    return lines


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logger = configure_logging(
        args.log_level or os.environ.get("BOMB_TESTER_LOG_LEVEL") or "WARNING",
        name="bomb tester",
    )
    try:
        raw_cfg = load_config(args.config)
        run_cfg: Dict[str, Any] = dict(raw_cfg.get("run") or {})
        sim_cfg: SimulationConfig = build_simulation_config(
            simulation_section(raw_cfg), rendezvous_window=args.window
        )
    except BombTesterError as exc:
        logger.error("config_invalid | %s", exc)
        return 2

    seed = args.seed if args.seed is not None else run_cfg.get("seed")
    if seed is None:
        seed = env_int("BOMB_TESTER_SEED")
    seed_everything(seed)
    if seed is not None:
        logger.info("seed_configured | seed=%d", int(seed))

    trials = args.trials if args.trials is not None else int(run_cfg.get("trials", 100))
    bomb_present = (
        args.bomb_present
        if args.bomb_present is not None
        else bool(run_cfg.get("bomb_present", True))
    )

    controller = TrialController(sim_cfg, coins=RandomCoin(seed))
    recorder: Optional[RecordingRenderer] = None
    if args.events_out is not None:
        recorder = RecordingRenderer()
        controller.subscribe(recorder)

    try:
        history = run_batch(
            controller,
            trials,
            bomb_present=bomb_present,
            continue_on_failure=args.continue_on_failure,
        )
    except BombTesterError as exc:
        logger.error("batch_aborted | error=%s", exc)
        return 1

    if args.table:
        print("\n".join(format_table(history)))
    print("\n".join(format_summary(history)))

    if recorder is not None:
        args.events_out.parent.mkdir(parents=True, exist_ok=True)
        with args.events_out.open("w", encoding="utf-8") as handle:
            for event in recorder.events:
                handle.write(json.dumps(event.as_dict()) + "\n")
        logger.info("events_written | path=%s | count=%d", args.events_out, len(recorder.events))

    if args.summary_out is not None:
        payload = {
            "seed": seed,
            "bomb_present": bomb_present,
            "config": sim_cfg.as_dict(),
            "summary": history.summary(),
            "rows": [record.as_dict() for record in history.records],
        }
        args.summary_out.parent.mkdir(parents=True, exist_ok=True)
        args.summary_out.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        logger.info("summary_written | path=%s", args.summary_out)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
