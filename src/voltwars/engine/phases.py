"""Phase enum and the lookup tables that drive the battle state machine.

Every rule that used to hinge on phase names lives in one of these tables, so
the machine never parses a phase to work out who acts or who gets targeted.
"""

from __future__ import annotations

from enum import Enum
from typing import Final

from ..core.models import TargetScope

__all__ = [
    "ACTION_PHASES",
    "ASSEMBLE_PHASES",
    "DRAW_PHASES",
    "NEXT_PHASE",
    "PHASE_OWNER",
    "Phase",
    "TARGET_RULES",
    "TIMED_PHASES",
    "TargetRule",
    "WIRING_PHASES",
    "opponent_of",
]


class Phase(str, Enum):
    SETUP = "SETUP"
    A_DRAW = "A_DRAW"
    B_DRAW = "B_DRAW"
    A_ASSEMBLE = "A_ASSEMBLE"
    B_ASSEMBLE = "B_ASSEMBLE"
    A_WIRING = "A_WIRING"
    B_WIRING = "B_WIRING"
    JOINT_DRAW_ANIMATION = "JOINT_DRAW_ANIMATION"
    B_ACTION_1 = "B_ACTION_1"
    A_ACTION_1 = "A_ACTION_1"
    B_ACTION_2 = "B_ACTION_2"
    A_ACTION_2 = "A_ACTION_2"
    B_ACTION_3 = "B_ACTION_3"
    A_ACTION_3 = "A_ACTION_3"
    ROUND_SUMMARY = "ROUND_SUMMARY"
    GAME_OVER = "GAME_OVER"

    def __str__(self) -> str:
        return self.value


class TargetRule(str, Enum):
    OPPONENT = "opponent"
    SELF = "self"
    CHOICE = "choice"

    def resolve(self, actor: int, scope: TargetScope | None) -> int:
        if self is TargetRule.OPPONENT:
            return opponent_of(actor)
        if self is TargetRule.SELF:
            return actor
        return opponent_of(actor) if scope is TargetScope.OPPONENT else actor


def opponent_of(index: int) -> int:
    return 1 - index


# A_ACTION_3 has no single successor: check_winner picks ROUND_SUMMARY or
# GAME_OVER.  GAME_OVER is terminal.
NEXT_PHASE: Final[dict[Phase, Phase]] = {
    Phase.SETUP: Phase.A_DRAW,
    Phase.A_DRAW: Phase.B_DRAW,
    Phase.B_DRAW: Phase.A_ASSEMBLE,
    Phase.A_ASSEMBLE: Phase.B_ASSEMBLE,
    Phase.B_ASSEMBLE: Phase.A_WIRING,
    Phase.A_WIRING: Phase.B_WIRING,
    Phase.B_WIRING: Phase.JOINT_DRAW_ANIMATION,
    Phase.JOINT_DRAW_ANIMATION: Phase.B_ACTION_1,
    Phase.B_ACTION_1: Phase.A_ACTION_1,
    Phase.A_ACTION_1: Phase.B_ACTION_2,
    Phase.B_ACTION_2: Phase.A_ACTION_2,
    Phase.A_ACTION_2: Phase.B_ACTION_3,
    Phase.B_ACTION_3: Phase.A_ACTION_3,
    Phase.ROUND_SUMMARY: Phase.A_DRAW,
}

PHASE_OWNER: Final[dict[Phase, int]] = {
    Phase.A_DRAW: 0,
    Phase.B_DRAW: 1,
    Phase.A_ASSEMBLE: 0,
    Phase.B_ASSEMBLE: 1,
    Phase.A_WIRING: 0,
    Phase.B_WIRING: 1,
    Phase.B_ACTION_1: 1,
    Phase.A_ACTION_1: 0,
    Phase.B_ACTION_2: 1,
    Phase.A_ACTION_2: 0,
    Phase.B_ACTION_3: 1,
    Phase.A_ACTION_3: 0,
}

TARGET_RULES: Final[dict[Phase, TargetRule]] = {
    Phase.B_ACTION_1: TargetRule.OPPONENT,
    Phase.A_ACTION_1: TargetRule.OPPONENT,
    Phase.B_ACTION_2: TargetRule.SELF,
    Phase.A_ACTION_2: TargetRule.SELF,
    Phase.B_ACTION_3: TargetRule.CHOICE,
    Phase.A_ACTION_3: TargetRule.CHOICE,
}

DRAW_PHASES: Final = frozenset({Phase.A_DRAW, Phase.B_DRAW})
ASSEMBLE_PHASES: Final = frozenset({Phase.A_ASSEMBLE, Phase.B_ASSEMBLE})
WIRING_PHASES: Final = frozenset({Phase.A_WIRING, Phase.B_WIRING})
ACTION_PHASES: Final = frozenset(TARGET_RULES)
# The joint card draw is timed too, so nothing can stall between wiring and battle.
TIMED_PHASES: Final = (
    DRAW_PHASES | ASSEMBLE_PHASES | WIRING_PHASES | frozenset({Phase.JOINT_DRAW_ANIMATION}) | ACTION_PHASES
)
