"""Greedy computer player used by the CLI demo and scripted sessions.

Each call moves the match through one phase.  Card choices are scored by
re-solving the circuit for every legal placement, which is cheap on the fixed
six-node board.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable
from typing import Final

from ..core.chemistry import CellConfig, Metal, cell_voltage
from ..core.circuit import NodeId, Wire, solve
from ..core.models import ChanceCard, EffectPayload, EffectType, TargetScope, Team
from .battle import BattleStateMachine
from .phases import (
    ACTION_PHASES,
    ASSEMBLE_PHASES,
    DRAW_PHASES,
    PHASE_OWNER,
    TARGET_RULES,
    WIRING_PHASES,
    Phase,
    TargetRule,
    opponent_of,
)

__all__ = ["Agent", "SERIES_WIRING", "best_assembly", "greedy_agent", "play_series"]

logger = logging.getLogger(__name__)

Agent = Callable[[BattleStateMachine], None]

SERIES_WIRING: Final[tuple[tuple[NodeId, NodeId], ...]] = (
    (NodeId.V_NEG, NodeId.C1_L),
    (NodeId.C1_R, NodeId.C2_L),
    (NodeId.C2_R, NodeId.V_POS),
)


def best_assembly(hand: tuple[Metal, ...]) -> tuple[tuple[Metal, ...], CellConfig, CellConfig]:
    """Fill both cells from ``hand`` to maximise the series voltage."""

    if len(hand) < 4:
        return hand, CellConfig.empty(1), CellConfig.empty(2)
    best: tuple[float, tuple[int, ...]] | None = None
    for picks in itertools.permutations(range(len(hand)), 4):
        l1, r1, l2, r2 = (hand[i] for i in picks)
        total = cell_voltage(l1, r1) + cell_voltage(l2, r2)
        if best is None or total > best[0]:
            best = (total, picks)
    assert best is not None
    picks = best[1]
    leftover = tuple(metal for index, metal in enumerate(hand) if index not in picks)
    l1, r1, l2, r2 = (hand[i] for i in picks)
    return leftover, CellConfig(1, l1, r1), CellConfig(2, l2, r2)


def _with_cell(team: Team, cell: CellConfig) -> tuple[CellConfig, CellConfig]:
    return (cell, team.cell2) if cell.cell_id == 1 else (team.cell1, cell)


def _placements(team: Team, card: ChanceCard) -> list[tuple[EffectPayload, float]]:
    wires: tuple[Wire, ...] = team.wires
    options: list[tuple[EffectPayload, float]] = []
    for cell in (team.cell1, team.cell2):
        if card.effect is EffectType.REVERSE_POLARITY:
            c1, c2 = _with_cell(team, cell.toggled())
            options.append((EffectPayload(cell_id=cell.cell_id), solve(c1, c2, wires)))
            continue
        for slot in ("L", "R"):
            c1, c2 = _with_cell(team, cell.with_metal(slot, card.metal))
            options.append((EffectPayload(cell_id=cell.cell_id, slot=slot), solve(c1, c2, wires)))
    return options


def _choose_move(machine: BattleStateMachine, actor: int) -> tuple[ChanceCard, TargetScope, EffectPayload] | None:
    rule = TARGET_RULES[machine.phase]
    me, them = machine.teams[actor], machine.teams[opponent_of(actor)]
    my_now, their_now = solve(me.cell1, me.cell2, me.wires), solve(them.cell1, them.cell2, them.wires)
    best: tuple[float, ChanceCard, TargetScope, EffectPayload] | None = None
    for card in me.chance_hand:
        if rule in (TargetRule.SELF, TargetRule.CHOICE):
            for payload, voltage in _placements(me, card):
                gain = voltage - my_now
                if best is None or gain > best[0]:
                    best = (gain, card, TargetScope.SELF, payload)
        if rule in (TargetRule.OPPONENT, TargetRule.CHOICE):
            for payload, voltage in _placements(them, card):
                gain = their_now - voltage
                if best is None or gain > best[0]:
                    best = (gain, card, TargetScope.OPPONENT, payload)
    if best is None:
        return None
    # The flexible third card is only worth playing when it helps.
    if rule is TargetRule.CHOICE and best[0] <= 0:
        return None
    return best[1], best[2], best[3]


def greedy_agent(machine: BattleStateMachine) -> None:
    phase = machine.phase
    actor = PHASE_OWNER.get(phase)
    if phase is Phase.SETUP:
        machine.start()
    elif phase in DRAW_PHASES:
        machine.draw(actor)
    elif phase in ASSEMBLE_PHASES:
        leftover, cell1, cell2 = best_assembly(machine.teams[actor].hand)
        machine.submit_assembly(actor, leftover, cell1, cell2)
    elif phase in WIRING_PHASES:
        machine.update_wiring(actor, SERIES_WIRING)
        machine.confirm_wiring(actor)
    elif phase is Phase.JOINT_DRAW_ANIMATION:
        machine.draw_chance_cards()
    elif phase in ACTION_PHASES:
        move = _choose_move(machine, actor)
        if move is None:
            machine.skip()
        else:
            card, scope, payload = move
            machine.play_card(actor, card.card_id, scope, payload)
    elif phase is Phase.ROUND_SUMMARY:
        machine.next_round()


def play_series(
    machine: BattleStateMachine,
    agent: Agent = greedy_agent,
    *,
    on_round_end: Callable[[BattleStateMachine], object] | None = None,
    max_steps: int = 2000,
) -> int:
    """Drive ``machine`` to GAME_OVER; returns the number of agent turns taken.

    ``on_round_end`` sees the machine in ROUND_SUMMARY / GAME_OVER before the
    next round starts.
    """

    steps = 0
    while machine.phase is not Phase.GAME_OVER:
        if steps >= max_steps:
            raise RuntimeError(f"series did not finish within {max_steps} steps")
        if machine.phase is Phase.ROUND_SUMMARY and on_round_end is not None:
            on_round_end(machine)
        agent(machine)
        steps += 1
    if on_round_end is not None:
        on_round_end(machine)
    logger.debug("series finished", extra={"steps": steps, "champion": machine.champion()})
    return steps
