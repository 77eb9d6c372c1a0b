"""Battle state machine: one authoritative match, command in / event out.

Intents arrive from the UI layer (or the phase timer), run to completion under
the machine lock, and publish a :class:`MatchEvent` to subscribers.  Team
records are rebuilt and swapped in as a whole, so no observer can see a card
removed from a hand before the voltage it changed has been recomputed.
"""

from __future__ import annotations

import logging
import random
import secrets
import threading
from collections import deque
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, replace
from typing import Final

from ..core import feature_flags
from ..core.chemistry import CellConfig, Metal
from ..core.circuit import NodeId, Wire, add_wire, classify_connection, normalize_wiring, remove_wire, solve_team
from ..core.deck import draw_chance_cards, draw_random_hand
from ..core.models import (
    ChanceCard,
    EffectPayload,
    EffectType,
    HistorySnapshot,
    LocalizedText,
    LogEntry,
    TargetScope,
    Team,
    TeamStatus,
)
from ..features.commentary.instructions import phase_instruction
from .phases import (
    ACTION_PHASES,
    ASSEMBLE_PHASES,
    DRAW_PHASES,
    NEXT_PHASE,
    PHASE_OWNER,
    TARGET_RULES,
    TIMED_PHASES,
    WIRING_PHASES,
    Phase,
    TargetRule,
)
from .timer import DEFAULT_PHASE_SECONDS, PhaseTimer

__all__ = [
    "HIDDEN_VOLTAGE",
    "BattleStateMachine",
    "DraftAssembly",
    "InvalidIntent",
    "MatchConfig",
    "MatchEvent",
    "MatchView",
    "TeamView",
    "WINS_TO_TAKE_SERIES",
]

logger = logging.getLogger(__name__)

HIDDEN_VOLTAGE: Final = "???"
WINS_TO_TAKE_SERIES: Final = 2
_LOG_LIMIT: Final = 200
_REVEAL_PHASES: Final = frozenset({Phase.ROUND_SUMMARY, Phase.GAME_OVER})


class InvalidIntent(ValueError):
    """The intent does not fit the current phase or acting team."""


@dataclass(frozen=True)
class MatchConfig:
    team_names: tuple[str, str] = ("Team A", "Team B")
    seed: int | None = None
    phase_seconds: float = DEFAULT_PHASE_SECONDS


@dataclass(frozen=True)
class MatchEvent:
    kind: str
    phase: Phase
    team_index: int | None = None
    detail: str | None = None


@dataclass(frozen=True)
class DraftAssembly:
    hand: tuple[Metal, ...]
    cell1: CellConfig
    cell2: CellConfig


@dataclass(frozen=True)
class TeamView:
    team: Team
    voltage: float | str
    revealed: bool

    @property
    def history(self) -> tuple[HistorySnapshot, ...]:
        return self.team.history if self.revealed else ()


@dataclass(frozen=True)
class MatchView:
    phase: Phase
    round_number: int
    active_team: int | None
    active_team_name: str | None
    instruction: LocalizedText
    seconds_left: float | None
    revealed: bool
    teams: tuple[TeamView, TeamView]
    champion: int | None
    log: tuple[LogEntry, ...]


Listener = Callable[[MatchEvent], object]


class BattleStateMachine:
    def __init__(
        self,
        config: MatchConfig | None = None,
        *,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config or MatchConfig()
        seed = self.config.seed if self.config.seed is not None else secrets.randbits(32)
        self.rng = rng or random.Random(seed)
        first, second = self.config.team_names
        self._lock = threading.RLock()
        self._phase = Phase.SETUP
        self._teams: tuple[Team, Team] = (Team(team_id="t1", name=first), Team(team_id="t2", name=second))
        self._round = 0
        self._draft_hand: tuple[Metal, ...] | None = None
        self._draft_assembly: DraftAssembly | None = None
        self._log: deque[LogEntry] = deque(maxlen=_LOG_LIMIT)
        self._listeners: list[Listener] = []
        self._timer = PhaseTimer(self._expire, seconds=self.config.phase_seconds)

    # ----------------------------------------------------------------- reading
    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def teams(self) -> tuple[Team, Team]:
        return self._teams

    @property
    def round_number(self) -> int:
        return self._round

    @property
    def draft_hand(self) -> tuple[Metal, ...] | None:
        return self._draft_hand

    @property
    def draft_assembly(self) -> DraftAssembly | None:
        return self._draft_assembly

    def champion(self) -> int | None:
        if self._phase is not Phase.GAME_OVER:
            return None
        for index, team in enumerate(self._teams):
            if team.wins >= WINS_TO_TAKE_SERIES:
                return index
        return None

    def view(self) -> MatchView:
        with self._lock:
            phase = self._phase
            revealed = phase in _REVEAL_PHASES or feature_flags.is_enabled(feature_flags.REVEAL_VOLTAGE)
            active = PHASE_OWNER.get(phase)
            if active is not None:
                active_name: str | None = self._teams[active].name
            elif phase is Phase.JOINT_DRAW_ANIMATION:
                active_name = "JOINT SESSION"
            else:
                active_name = None
            teams = tuple(
                TeamView(team=team, voltage=team.total_voltage if revealed else HIDDEN_VOLTAGE, revealed=revealed)
                for team in self._teams
            )
            return MatchView(
                phase=phase,
                round_number=self._round,
                active_team=active,
                active_team_name=active_name,
                instruction=phase_instruction(phase, active_name),
                seconds_left=self._timer.remaining(),
                revealed=revealed,
                teams=(teams[0], teams[1]),
                champion=self.champion(),
                log=tuple(self._log),
            )

    # ---------------------------------------------------------------- events
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _publish(self, event: MatchEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("match listener failed", extra={"event_kind": event.kind})

    def close(self) -> None:
        self._timer.cancel()

    # ---------------------------------------------------------------- intents
    def start(self) -> MatchEvent:
        with self._lock:
            self._require_phase({Phase.SETUP})
            self._round = 1
            self._note(f"Match started: {self._teams[0].name} vs {self._teams[1].name}.", "system")
            self._enter(Phase.A_DRAW)
            event = MatchEvent("started", self._phase)
        self._publish(event)
        return event

    def reveal_hand(self, team_index: int) -> tuple[Metal, ...]:
        """Stage a random draft hand; a timeout commits it."""

        with self._lock:
            self._require_turn(DRAW_PHASES, team_index)
            if self._draft_hand is None:
                self._draft_hand = draw_random_hand(self.rng)
            hand = self._draft_hand
            event = MatchEvent("hand_revealed", self._phase, team_index)
        self._publish(event)
        return hand

    def draw(self, team_index: int, hand: Sequence[Metal | str] | None = None) -> MatchEvent:
        with self._lock:
            self._require_turn(DRAW_PHASES, team_index)
            chosen = None if hand is None else self._coerce_hand(hand)
            self._commit_draw(team_index, chosen)
            event = MatchEvent("drawn", self._phase, team_index)
        self._publish(event)
        return event

    def stage_assembly(
        self,
        team_index: int,
        hand: Sequence[Metal | str],
        cell1: CellConfig,
        cell2: CellConfig,
    ) -> None:
        with self._lock:
            self._require_turn(ASSEMBLE_PHASES, team_index)
            self._draft_assembly = DraftAssembly(
                hand=self._coerce_hand(hand),
                cell1=replace(cell1, cell_id=1),
                cell2=replace(cell2, cell_id=2),
            )

    def submit_assembly(
        self,
        team_index: int,
        hand: Sequence[Metal | str],
        cell1: CellConfig,
        cell2: CellConfig,
    ) -> MatchEvent:
        with self._lock:
            self._require_turn(ASSEMBLE_PHASES, team_index)
            self._commit_assembly(team_index, self._coerce_hand(hand), cell1, cell2)
            event = MatchEvent("assembled", self._phase, team_index)
        self._publish(event)
        return event

    def update_wiring(
        self,
        team_index: int,
        wires: Iterable[tuple[NodeId | str, NodeId | str] | Wire],
    ) -> tuple[Wire, ...]:
        """Replace the team's wiring; pairs that break the wiring rules are dropped."""

        with self._lock:
            self._require_turn(WIRING_PHASES, team_index)
            accepted = normalize_wiring(wires)
            self._set_wires(team_index, accepted)
            event = MatchEvent("wiring_updated", self._phase, team_index, detail=f"{len(accepted)} wires")
        self._publish(event)
        return accepted

    def add_wire(self, team_index: int, start: NodeId | str, end: NodeId | str) -> bool:
        with self._lock:
            self._require_turn(WIRING_PHASES, team_index)
            current = self._teams[team_index].wires
            updated = add_wire(current, start, end)
            if updated == current:
                return False
            self._set_wires(team_index, updated)
            event = MatchEvent("wiring_updated", self._phase, team_index, detail=f"{start}-{end}")
        self._publish(event)
        return True

    def remove_wire(self, team_index: int, start: NodeId | str, end: NodeId | str) -> None:
        with self._lock:
            self._require_turn(WIRING_PHASES, team_index)
            self._set_wires(team_index, remove_wire(self._teams[team_index].wires, start, end))
            event = MatchEvent("wiring_updated", self._phase, team_index)
        self._publish(event)

    def confirm_wiring(self, team_index: int) -> MatchEvent:
        with self._lock:
            self._require_turn(WIRING_PHASES, team_index)
            self._commit_wiring(team_index)
            event = MatchEvent("wiring_confirmed", self._phase, team_index)
        self._publish(event)
        return event

    def draw_chance_cards(self) -> MatchEvent:
        with self._lock:
            self._require_phase({Phase.JOINT_DRAW_ANIMATION})
            self._deal_chance_cards()
            event = MatchEvent("chance_dealt", self._phase)
        self._publish(event)
        return event

    def play_card(
        self,
        actor: int,
        card_id: str,
        scope: TargetScope | str | None = None,
        payload: EffectPayload | None = None,
    ) -> MatchEvent:
        with self._lock:
            self._require_turn(ACTION_PHASES, actor)
            rule = TARGET_RULES[self._phase]
            actor_team = self._teams[actor]
            card = actor_team.card(card_id)
            if card is None:
                raise InvalidIntent(f"card '{card_id}' is not in {actor_team.name}'s hand")
            try:
                wanted = TargetScope(scope) if scope is not None else None
            except ValueError as exc:
                raise InvalidIntent(f"unknown target scope {scope!r}") from exc
            target_index = rule.resolve(actor, wanted)
            self._apply_card(actor, target_index, rule, card, payload)
            event = MatchEvent("card_played", self._phase, actor, detail=card.card_id)
        self._publish(event)
        return event

    def skip(self) -> MatchEvent:
        with self._lock:
            self._require_phase(ACTION_PHASES)
            actor = PHASE_OWNER[self._phase]
            self._commit_skip()
            event = MatchEvent("skipped", self._phase, actor)
        self._publish(event)
        return event

    def timeout(self, phase: Phase | None = None) -> bool:
        """Force the current phase forward; ``phase`` guards against stale timers."""

        with self._lock:
            current = self._phase
            if phase is not None and phase is not current:
                logger.debug("stale timeout ignored", extra={"phase": phase.value, "current": current.value})
                return False
            if current not in TIMED_PHASES:
                return False
            owner = PHASE_OWNER.get(current)
            self._note("Time limit reached! System forcing action.", "system")
            if current in DRAW_PHASES:
                self._commit_draw(owner, None)
            elif current in ASSEMBLE_PHASES:
                draft = self._draft_assembly
                if draft is not None:
                    self._commit_assembly(owner, draft.hand, draft.cell1, draft.cell2)
                else:
                    team = self._teams[owner]
                    self._commit_assembly(owner, team.hand, team.cell1, team.cell2)
            elif current in WIRING_PHASES:
                self._commit_wiring(owner)
            elif current is Phase.JOINT_DRAW_ANIMATION:
                self._deal_chance_cards()
            else:
                self._commit_skip()
            event = MatchEvent("timeout", self._phase, owner, detail=current.value)
        self._publish(event)
        return True

    def next_round(self) -> MatchEvent:
        with self._lock:
            self._require_phase({Phase.ROUND_SUMMARY})
            self._teams = (self._teams[0].fresh_round(), self._teams[1].fresh_round())
            self._round += 1
            self._note(f"Round {self._round} begins.", "system")
            self._enter(Phase.A_DRAW)
            event = MatchEvent("round_started", self._phase, detail=str(self._round))
        self._publish(event)
        return event

    # ------------------------------------------------------------- internals
    def _expire(self, phase: Phase) -> None:
        self.timeout(phase)

    def _require_phase(self, allowed: Iterable[Phase]) -> None:
        if self._phase not in allowed:
            raise InvalidIntent(f"not allowed during {self._phase.value}")

    def _require_turn(self, allowed: Iterable[Phase], team_index: int) -> None:
        self._require_phase(allowed)
        if PHASE_OWNER.get(self._phase) != team_index:
            raise InvalidIntent(f"team {team_index} cannot act during {self._phase.value}")

    @staticmethod
    def _coerce_hand(hand: Sequence[Metal | str]) -> tuple[Metal, ...]:
        try:
            return tuple(Metal(item) for item in hand)
        except ValueError as exc:
            raise InvalidIntent(str(exc)) from exc

    def _note(self, message: str, kind: str = "info") -> None:
        self._log.append(LogEntry(message=message, kind=kind))

    def _enter(self, phase: Phase) -> None:
        previous = self._phase
        self._phase = phase
        self._draft_hand = None
        self._draft_assembly = None
        self._timer.arm(phase)
        logger.debug("phase transition", extra={"from_phase": previous.value, "to_phase": phase.value})

    def _advance(self) -> None:
        self._enter(NEXT_PHASE[self._phase])

    def _put(self, index: int, team: Team) -> None:
        teams = list(self._teams)
        teams[index] = team
        self._teams = (teams[0], teams[1])

    @staticmethod
    def _recompute(team: Team) -> Team:
        voltage = solve_team(team)
        label = classify_connection(team.cell1.voltage, team.cell2.voltage, voltage)
        return replace(team, total_voltage=voltage, connection_type=label)

    @staticmethod
    def _with_snapshot(
        team: Team,
        step_name: str,
        description: str | None = None,
        card: ChanceCard | None = None,
    ) -> Team:
        snapshot = HistorySnapshot(
            step_name=step_name,
            cell1=team.cell1,
            cell2=team.cell2,
            wires=team.wires,
            total_voltage=team.total_voltage,
            description=description,
            card=card,
        )
        return replace(team, history=(*team.history, snapshot))

    def _commit_draw(self, index: int, hand: tuple[Metal, ...] | None) -> None:
        chosen = hand if hand is not None else self._draft_hand
        if chosen is None:
            chosen = draw_random_hand(self.rng)
        self._put(index, replace(self._teams[index], hand=chosen))
        self._advance()

    def _commit_assembly(self, index: int, hand: tuple[Metal, ...], cell1: CellConfig, cell2: CellConfig) -> None:
        team = replace(
            self._teams[index],
            hand=hand,
            cell1=replace(cell1, cell_id=1),
            cell2=replace(cell2, cell_id=2),
        )
        self._put(index, self._recompute(team))
        self._note(f"{team.name} assembly locked.")
        self._advance()

    def _set_wires(self, index: int, wires: tuple[Wire, ...]) -> None:
        self._put(index, self._recompute(replace(self._teams[index], wires=wires)))

    def _commit_wiring(self, index: int) -> None:
        team = self._recompute(self._teams[index])
        team = replace(team, battle_summary=replace(team.battle_summary, initial_voltage=team.total_voltage))
        self._put(index, self._with_snapshot(team, "Wiring Complete", "Initial Circuit Setup"))
        self._note(f"{team.name} wiring confirmed.")
        self._advance()

    def _deal_chance_cards(self) -> None:
        tag = f"r{self._round}"
        self._teams = (
            replace(self._teams[0], chance_hand=draw_chance_cards(self.rng, tag=f"{tag}{self._teams[0].team_id}")),
            replace(self._teams[1], chance_hand=draw_chance_cards(self.rng, tag=f"{tag}{self._teams[1].team_id}")),
        )
        self._advance()

    def _apply_card(
        self,
        actor: int,
        target_index: int,
        rule: TargetRule,
        card: ChanceCard,
        payload: EffectPayload | None,
    ) -> None:
        actor_team = self._teams[actor]
        target = self._teams[target_index]
        description = f"{actor_team.name} used {card.title.en} on {target.name}."

        if card.effect is EffectType.SWAP_ELECTRODE:
            if payload is None or payload.slot not in ("L", "R"):
                raise InvalidIntent("swap cards need a cell id and an L/R slot")
            metal = card.metal
            if metal is None:
                raise InvalidIntent("swap card has no replacement electrode")
            if payload.new_metal is not None and payload.new_metal is not metal:
                raise InvalidIntent(f"{card.title.en} installs {metal.value}, not {payload.new_metal.value}")
            cell = self._target_cell(target, payload.cell_id)
            target = self._replace_cell(target, cell.with_metal(payload.slot, metal))
            description += f" Swapped Cell {cell.cell_id} {payload.slot} to {metal}."
        elif card.effect is EffectType.REVERSE_POLARITY:
            cell_id = payload.cell_id if payload is not None else card.target_cell_id
            if cell_id is None:
                raise InvalidIntent("reverse cards need a target cell id")
            cell = self._target_cell(target, cell_id)
            target = self._replace_cell(target, cell.toggled())
            description += f" Reversed polarity of Cell {cell.cell_id}."
        else:  # pragma: no cover - closed enum
            raise InvalidIntent(f"unsupported effect {card.effect!r}")

        target = self._recompute(target)
        summary = target.battle_summary
        if rule is TargetRule.OPPONENT:
            summary = replace(summary, attack_received=card)
        elif rule is TargetRule.SELF:
            summary = replace(summary, buff_applied=card)
        step = f"Attacked by {actor_team.name}" if target_index != actor else "Self Modification"
        target = self._with_snapshot(replace(target, battle_summary=summary), step, description, card)

        teams = list(self._teams)
        teams[target_index] = target
        holder = teams[actor]
        teams[actor] = replace(holder, chance_hand=tuple(c for c in holder.chance_hand if c.card_id != card.card_id))
        self._teams = (teams[0], teams[1])
        self._note(description, "attack")
        logger.debug(
            "card played",
            extra={"actor": actor, "target": target_index, "card": card.card_id, "voltage": target.total_voltage},
        )
        self._after_action()

    @staticmethod
    def _target_cell(team: Team, cell_id: int) -> CellConfig:
        try:
            return team.cell(cell_id)
        except ValueError as exc:
            raise InvalidIntent(str(exc)) from exc

    @staticmethod
    def _replace_cell(team: Team, cell: CellConfig) -> Team:
        if cell.cell_id == 1:
            return replace(team, cell1=cell)
        return replace(team, cell2=cell)

    def _commit_skip(self) -> None:
        actor = PHASE_OWNER[self._phase]
        self._put(actor, self._with_snapshot(self._teams[actor], "Skipped Turn", "No changes made"))
        self._note(f"{self._teams[actor].name} skipped.")
        self._after_action()

    def _after_action(self) -> None:
        if self._phase is Phase.A_ACTION_3:
            self._check_winner()
        else:
            self._advance()

    def _check_winner(self) -> None:
        first, second = self._teams
        v0, v1 = solve_team(first), solve_team(second)
        # Signed comparison; a large negative voltage is not a good result.
        if v0 > v1:
            s0, s1, w0, w1 = TeamStatus.WINNER, TeamStatus.LOSER, first.wins + 1, second.wins
        elif v1 > v0:
            s0, s1, w0, w1 = TeamStatus.LOSER, TeamStatus.WINNER, first.wins, second.wins + 1
        else:
            # Tie: both marked winner, nobody scores.  Repeated ties have no
            # tie-break; the series simply continues.
            s0, s1, w0, w1 = TeamStatus.WINNER, TeamStatus.WINNER, first.wins, second.wins
        self._teams = (
            replace(
                first,
                status=s0,
                wins=w0,
                total_voltage=v0,
                battle_summary=replace(first.battle_summary, final_voltage=v0),
            ),
            replace(
                second,
                status=s1,
                wins=w1,
                total_voltage=v1,
                battle_summary=replace(second.battle_summary, final_voltage=v1),
            ),
        )
        over = w0 >= WINS_TO_TAKE_SERIES or w1 >= WINS_TO_TAKE_SERIES
        logger.info(
            "round resolved",
            extra={"round": self._round, "voltages": (v0, v1), "wins": (w0, w1), "series_over": over},
        )
        self._note(f"Round {self._round}: {first.name} {v0:.2f}V vs {second.name} {v1:.2f}V.", "system")
        self._enter(Phase.GAME_OVER if over else Phase.ROUND_SUMMARY)
