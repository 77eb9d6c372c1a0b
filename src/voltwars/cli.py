from __future__ import annotations

import argparse
import logging
import sys

from .engine.autoplay import play_series
from .engine.battle import BattleStateMachine, MatchConfig
from .engine.phases import Phase
from .ui.presenters import RichPresenter


def _add_demo_args(p: argparse.ArgumentParser) -> None:
    # If omitted, runs with a random seed for variety. Pass an int to reproduce.
    p.add_argument("--seed", type=int, default=None, help="RNG seed (random if omitted)")
    p.add_argument("--team-a", default="Team A", help="Name of the first team")
    p.add_argument("--team-b", default="Team B", help="Name of the second team")
    p.add_argument("--no-color", action="store_true", help="Disable colored output (default is colored)")


def run_demo(
    *,
    seed: int | None = None,
    team_names: tuple[str, str] = ("Team A", "Team B"),
    no_color: bool = False,
    presenter: RichPresenter | None = None,
) -> BattleStateMachine:
    """Play a full automated series and print every round summary."""

    presenter = presenter or RichPresenter(no_color=no_color)
    # Timers stay off; the greedy agent drives every phase itself.
    machine = BattleStateMachine(MatchConfig(team_names=team_names, seed=seed, phase_seconds=0))
    presenter.start_series(machine)

    def _on_round_end(current: BattleStateMachine) -> None:
        if current.phase in (Phase.ROUND_SUMMARY, Phase.GAME_OVER):
            presenter.show_round(current)

    try:
        play_series(machine, on_round_end=_on_round_end)
    finally:
        machine.close()
    presenter.show_champion(machine)
    return machine


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="voltwars", description="Battery duel: build, wire, and sabotage circuits")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command")
    demo = commands.add_parser("demo", help="Play an automated best-of-3 series in the terminal")
    _add_demo_args(demo)
    parser.set_defaults(seed=None, team_a="Team A", team_b="Team B", no_color=False)
    commands.add_parser("serve", help="Run the HTTP API (BIND / PORT environment variables)")

    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    if args.command == "serve":
        from .web.app import main as serve

        serve()
        return
    # Demo is the default when no subcommand is given.
    run_demo(seed=args.seed, team_names=(args.team_a, args.team_b), no_color=args.no_color)


if __name__ == "__main__":
    main()
