from __future__ import annotations

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..core.circuit import calculation_log
from ..core.models import HistorySnapshot, Team, TeamStatus
from ..engine.battle import BattleStateMachine
from ..engine.phases import Phase

_STATUS_STYLE = {
    TeamStatus.WINNER: "bold green",
    TeamStatus.LOSER: "red",
    TeamStatus.ACTIVE: "white",
}


class RichPresenter:
    def __init__(self, *, no_color: bool = False, console: Console | None = None):
        # Default: color ON (forced), unless explicitly disabled via --no-color.
        if console is not None:
            self.console = console
        elif no_color:
            self.console = Console(force_terminal=False, color_system=None)
        else:
            self.console = Console(force_terminal=True, color_system="auto")

    def start_series(self, machine: BattleStateMachine) -> None:
        first, second = machine.teams
        guide = (
            f"[bold]{first.name}[/] vs [bold]{second.name}[/]\n"
            "- Each team draws six electrodes and builds two cells.\n"
            "- Wire the cells between the meter terminals.\n"
            "- Three chance cards each, then the higher signed voltage wins.\n\n"
            "First to two round wins takes the series."
        )
        self.console.print(Panel(guide, title="Voltage Wars", border_style="green"))
        self.console.print()

    def show_round(self, machine: BattleStateMachine) -> None:
        """Print the round scoreboard followed by each team's history."""

        self.console.rule(f"Round {machine.round_number} result")
        board = Table(show_header=True, header_style="bold blue", box=box.SIMPLE_HEAVY)
        board.add_column("Team", style="bold")
        board.add_column("Start", justify="right")
        board.add_column("Final", justify="right")
        board.add_column("Wiring")
        board.add_column("Attack received")
        board.add_column("Buff applied")
        board.add_column("Wins", justify="right")
        for team in machine.teams:
            summary = team.battle_summary
            style = _STATUS_STYLE.get(team.status, "white")
            board.add_row(
                f"[{style}]{team.name}[/]",
                _volts(summary.initial_voltage),
                _volts(summary.final_voltage),
                team.connection_type.value,
                summary.attack_received.title.en if summary.attack_received else "-",
                summary.buff_applied.title.en if summary.buff_applied else "-",
                str(team.wins),
            )
        self.console.print(board)
        for team in machine.teams:
            self.show_history(team)

    def show_history(self, team: Team) -> None:
        table = Table(title=f"{team.name} timeline", show_header=True, header_style="bold magenta")
        table.add_column("#", justify="right", style="cyan", no_wrap=True)
        table.add_column("Step", style="bold")
        table.add_column("Calculation", overflow="fold")
        table.add_column("Total", justify="right")
        for index, snapshot in enumerate(team.history, 1):
            table.add_row(str(index), _step_label(snapshot), _math(snapshot), _volts(snapshot.total_voltage))
        self.console.print(table)

    def show_champion(self, machine: BattleStateMachine) -> None:
        if machine.phase is not Phase.GAME_OVER:
            return
        champion = machine.champion()
        if champion is None:
            self.console.print("[yellow]Series ended without a champion.[/]")
            return
        team = machine.teams[champion]
        self.console.print(
            Panel(
                f"{team.name} wins the series {team.wins}-{machine.teams[1 - champion].wins}",
                title="Champion",
                border_style="bold cyan",
                expand=False,
            )
        )


def _volts(value: float | None) -> str:
    return "-" if value is None else f"{value:.2f} V"


def _step_label(snapshot: HistorySnapshot) -> str:
    if snapshot.description:
        return f"{snapshot.step_name}\n[dim]{snapshot.description}[/]"
    return snapshot.step_name


def _math(snapshot: HistorySnapshot) -> str:
    log = calculation_log(snapshot.cell1, snapshot.cell2, snapshot.total_voltage)
    return f"C1: {log.cell1_math}\nC2: {log.cell2_math}\n{log.total_math} ({log.connection.value})"
