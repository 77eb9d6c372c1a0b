from __future__ import annotations

import sys
from collections.abc import Callable, Iterator
from dataclasses import dataclass, replace
from pathlib import Path

import pytest

# Ensure "src" is on sys.path for imports in tests
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from voltwars.core import feature_flags  # noqa: E402
from voltwars.core.chemistry import CellConfig, Metal  # noqa: E402
from voltwars.core.deck import CARD_CATALOG  # noqa: E402
from voltwars.engine import battle as battle_module  # noqa: E402
from voltwars.engine.battle import BattleStateMachine, MatchConfig  # noqa: E402
from voltwars.engine.phases import Phase  # noqa: E402

SERIES = [("v_neg", "c1_L"), ("c1_R", "c2_L"), ("c2_R", "v_pos")]
# Same cells, wired so the current runs through both batteries backwards.
BACKWARDS = [("v_neg", "c1_R"), ("c1_L", "c2_R"), ("c2_L", "v_pos")]

# Team A: Zn|Cu (1.10 V) + Fe|Ag (1.24 V) in series = 2.34 V.
BOARD_A = (
    (Metal.ZN, Metal.CU, Metal.FE, Metal.AG, Metal.MG, Metal.PB),
    CellConfig(1, Metal.ZN, Metal.CU),
    CellConfig(2, Metal.FE, Metal.AG),
    SERIES,
)
# Team B: Pb|Cu (0.47 V) + Zn|Ag (1.56 V) in series = 2.03 V.
BOARD_B = (
    (Metal.PB, Metal.CU, Metal.ZN, Metal.AG, Metal.FE, Metal.MG),
    CellConfig(1, Metal.PB, Metal.CU),
    CellConfig(2, Metal.ZN, Metal.AG),
    SERIES,
)

Board = tuple[tuple[Metal, ...], CellConfig, CellConfig, list[tuple[str, str]]]

CARDS_BY_ID = {card.card_id: card for card in CARD_CATALOG}


@dataclass(frozen=True)
class Boards:
    a: Board = BOARD_A
    b: Board = BOARD_B
    series: tuple[tuple[str, str], ...] = tuple(SERIES)
    backwards: tuple[tuple[str, str], ...] = tuple(BACKWARDS)


@pytest.fixture
def boards() -> Boards:
    return Boards()


@pytest.fixture(autouse=True)
def _clean_feature_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(feature_flags.ENV_VAR, raising=False)


@pytest.fixture
def make_machine() -> Iterator[Callable[..., BattleStateMachine]]:
    machines: list[BattleStateMachine] = []

    def _make(*, seed: int = 7, phase_seconds: float = 0, names: tuple[str, str] = ("Team A", "Team B")):
        machine = BattleStateMachine(MatchConfig(team_names=names, seed=seed, phase_seconds=phase_seconds))
        machines.append(machine)
        return machine

    yield _make
    for machine in machines:
        machine.close()


@pytest.fixture
def prepare_round() -> Callable[..., BattleStateMachine]:
    """Play draw, assembly and wiring for both teams; stops at the joint card draw."""

    def _prepare(machine: BattleStateMachine, board_a: Board = BOARD_A, board_b: Board = BOARD_B):
        if machine.phase is Phase.SETUP:
            machine.start()
        for team, (hand, _, _, _) in enumerate((board_a, board_b)):
            machine.draw(team, hand)
        for team, (hand, cell1, cell2, _) in enumerate((board_a, board_b)):
            machine.submit_assembly(team, hand[4:], cell1, cell2)
        for team, (_, _, _, wires) in enumerate((board_a, board_b)):
            machine.update_wiring(team, wires)
            machine.confirm_wiring(team)
        assert machine.phase is Phase.JOINT_DRAW_ANIMATION
        return machine

    return _prepare


@pytest.fixture
def fixed_chance_cards(monkeypatch: pytest.MonkeyPatch) -> Callable[[tuple[str, ...]], None]:
    """Replace the random chance-card deal with a fixed list of catalogue ids."""

    def _install(card_ids: tuple[str, ...] = ("card_Mg", "card_Reverse", "card_Ag")) -> None:
        def _deal(rng, count=3, *, tag=""):  # noqa: ANN001, ANN202
            return tuple(
                replace(CARDS_BY_ID[card_id], card_id=f"{card_id}_{tag}_{index}")
                for index, card_id in enumerate(card_ids[:count])
            )

        monkeypatch.setattr(battle_module, "draw_chance_cards", _deal)

    return _install
