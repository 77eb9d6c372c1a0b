#!/usr/bin/env python3
"""Play seeded greedy-vs-greedy series and report how often each seat wins.

Usage:
    python scripts/check_balance.py --series 200
"""

from __future__ import annotations

import argparse
import statistics
from collections import Counter
from dataclasses import dataclass

from voltwars.core.models import TeamStatus
from voltwars.engine.autoplay import play_series
from voltwars.engine.battle import BattleStateMachine, MatchConfig
from voltwars.engine.phases import Phase


@dataclass(frozen=True)
class SeriesResult:
    seed: int
    champion: int | None
    rounds: int
    ties: int
    final_voltages: tuple[float, float]


def run_series(seed: int) -> SeriesResult:
    machine = BattleStateMachine(MatchConfig(seed=seed, phase_seconds=0))
    ties = 0

    def _count_ties(current: BattleStateMachine) -> None:
        nonlocal ties
        if current.phase is Phase.ROUND_SUMMARY and all(team.status is TeamStatus.WINNER for team in current.teams):
            ties += 1

    play_series(machine, on_round_end=_count_ties)
    first, second = machine.teams
    return SeriesResult(
        seed=seed,
        champion=machine.champion(),
        rounds=machine.round_number,
        ties=ties,
        final_voltages=(first.total_voltage, second.total_voltage),
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Estimate first-seat advantage with the greedy agent.")
    parser.add_argument("--series", type=int, default=100, help="Number of seeded series to play")
    parser.add_argument("--verbose", action="store_true", help="Print per-seed results")
    args = parser.parse_args()

    results = [run_series(seed) for seed in range(args.series)]
    champions = Counter(result.champion for result in results)
    rounds = [result.rounds for result in results]
    print(f"Team A series wins: {champions[0]} / {len(results)}")
    print(f"Team B series wins: {champions[1]} / {len(results)}")
    print(f"Rounds per series: {statistics.fmean(rounds):.2f} (max {max(rounds)})")
    print(f"Tied rounds: {sum(result.ties for result in results)}")
    if args.verbose:
        for result in results:
            a, b = result.final_voltages
            print(f"  seed {result.seed}: champion={result.champion} rounds={result.rounds} last={a:.2f}/{b:.2f}")


if __name__ == "__main__":
    main()
