from __future__ import annotations

import logging
import secrets
import string
import threading
from collections import deque
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from ...core.chemistry import CellConfig, Metal
from ...core.circuit import NodeId, Wire, calculation_log
from ...core.models import ChanceCard, EffectPayload, HistorySnapshot, TargetScope
from ...engine.autoplay import Agent, greedy_agent, play_series
from ...engine.battle import BattleStateMachine, MatchConfig, MatchEvent, MatchView, TeamView
from ...engine.phases import Phase
from ...engine.timer import DEFAULT_PHASE_SECONDS
from ..commentary import CommentaryGenerator
from .concurrency import run_blocking
from .schemas import (
    CardPayload,
    CellPayload,
    CommentaryPayload,
    LogPayload,
    MatchPayload,
    SnapshotPayload,
    SummaryPayload,
    TeamPayload,
    TeamSummaryPayload,
    WirePayload,
)

__all__ = [
    "SessionConfig",
    "SessionManager",
    "SessionState",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DEFAULT_NAMES = ("Team A", "Team B")
_MAX_NAME_LENGTH = 40
_EVENT_LIMIT = 200


@dataclass(frozen=True)
class SessionConfig:
    """Configuration for one match."""

    team_names: tuple[str, str] = _DEFAULT_NAMES
    seed: int | None = None
    phase_seconds: float = DEFAULT_PHASE_SECONDS


@dataclass
class SessionState:
    config: SessionConfig
    machine: BattleStateMachine
    events: deque[MatchEvent] = field(default_factory=lambda: deque(maxlen=_EVENT_LIMIT))

    @property
    def last_action(self) -> str:
        if not self.events:
            return self.machine.phase.value
        event = self.events[-1]
        return f"{event.kind} ({event.phase.value})"


def _clean_names(names: Sequence[str | None]) -> tuple[str, str]:
    cleaned: list[str] = []
    for index, default in enumerate(_DEFAULT_NAMES):
        raw = names[index] if index < len(names) else None
        value = (raw or "").strip()[:_MAX_NAME_LENGTH]
        cleaned.append(value or default)
    if cleaned[0] == cleaned[1]:
        cleaned[1] = f"{cleaned[1]} (2)"
    return cleaned[0], cleaned[1]


class SessionManager:
    """Owns match lifecycles independent of the HTTP layer."""

    def __init__(self, commentary: CommentaryGenerator | None = None) -> None:
        self._sessions: dict[str, SessionState] = {}
        self._lock = threading.Lock()
        self._commentary = commentary or CommentaryGenerator()

    def create_session(self, config: SessionConfig) -> str:
        seed = config.seed if config.seed is not None else secrets.SystemRandom().getrandbits(32)
        normalized = SessionConfig(
            team_names=_clean_names(config.team_names),
            seed=seed,
            phase_seconds=max(0.0, float(config.phase_seconds)),
        )
        machine = BattleStateMachine(
            MatchConfig(
                team_names=normalized.team_names,
                seed=normalized.seed,
                phase_seconds=normalized.phase_seconds,
            )
        )
        state = SessionState(config=normalized, machine=machine)
        machine.subscribe(state.events.append)
        session_id = _sid()
        with self._lock:
            self._sessions[session_id] = state
        logger.debug("match created", extra={"session_id": session_id, "seed": seed})
        return session_id

    async def create_session_async(self, config: SessionConfig) -> str:
        return await run_blocking(self.create_session, config)

    def close_session(self, session_id: str) -> None:
        with self._lock:
            state = self._sessions.pop(session_id, None)
        if state is not None:
            state.machine.close()

    def machine(self, session_id: str) -> BattleStateMachine:
        return self._require_session(session_id).machine

    def events(self, session_id: str) -> list[MatchEvent]:
        return list(self._require_session(session_id).events)

    # ------------------------------------------------------------------ intents
    def get_state(self, session_id: str) -> MatchPayload:
        return _match_payload(session_id, self._require_session(session_id).machine)

    def start(self, session_id: str) -> MatchPayload:
        return self._apply(session_id, lambda machine: machine.start())

    def reveal(self, session_id: str, team: int) -> MatchPayload:
        return self._apply(session_id, lambda machine: machine.reveal_hand(team))

    def draw(self, session_id: str, team: int, hand: Sequence[str] | None = None) -> MatchPayload:
        return self._apply(session_id, lambda machine: machine.draw(team, hand))

    def stage_assembly(
        self, session_id: str, team: int, hand: Sequence[str], cell1: CellConfig, cell2: CellConfig
    ) -> MatchPayload:
        return self._apply(session_id, lambda machine: machine.stage_assembly(team, hand, cell1, cell2))

    def submit_assembly(
        self, session_id: str, team: int, hand: Sequence[str], cell1: CellConfig, cell2: CellConfig
    ) -> MatchPayload:
        return self._apply(session_id, lambda machine: machine.submit_assembly(team, hand, cell1, cell2))

    def update_wiring(self, session_id: str, team: int, wires: Iterable[tuple[str, str]]) -> MatchPayload:
        return self._apply(session_id, lambda machine: machine.update_wiring(team, list(wires)))

    def confirm_wiring(self, session_id: str, team: int) -> MatchPayload:
        return self._apply(session_id, lambda machine: machine.confirm_wiring(team))

    def draw_chance(self, session_id: str) -> MatchPayload:
        return self._apply(session_id, lambda machine: machine.draw_chance_cards())

    def play_card(
        self,
        session_id: str,
        team: int,
        card_id: str,
        scope: TargetScope | str | None,
        payload: EffectPayload | None,
    ) -> MatchPayload:
        return self._apply(session_id, lambda machine: machine.play_card(team, card_id, scope, payload))

    def skip(self, session_id: str) -> MatchPayload:
        return self._apply(session_id, lambda machine: machine.skip())

    def timeout(self, session_id: str, phase: Phase | None = None) -> MatchPayload:
        return self._apply(session_id, lambda machine: machine.timeout(phase))

    def next_round(self, session_id: str) -> MatchPayload:
        return self._apply(session_id, lambda machine: machine.next_round())

    async def dispatch_async(self, method: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
        return await run_blocking(method, *args, **kwargs)

    # ------------------------------------------------------------------ reports
    def summary(self, session_id: str) -> SummaryPayload:
        machine = self._require_session(session_id).machine
        view = machine.view()
        if not view.revealed:
            raise ValueError("summary is available once the round has been decided")
        return _summary_payload(session_id, view)

    def commentary(self, session_id: str) -> CommentaryPayload:
        state = self._require_session(session_id)
        view = state.machine.view()
        text = self._commentary.generate(
            [team_view.team for team_view in view.teams],
            state.last_action,
            phase=view.phase,
            team_name=view.active_team_name,
        )
        return CommentaryPayload(zh=text.zh, en=text.en, ja=text.ja)

    def drive_session(
        self,
        session_id: str,
        agent: Agent = greedy_agent,
        *,
        cleanup: bool = False,
    ) -> SummaryPayload:
        """Play the match to GAME_OVER with ``agent`` acting for both teams."""

        machine = self._require_session(session_id).machine
        steps = play_series(machine, agent)
        summary = _summary_payload(session_id, machine.view())
        if cleanup:
            self.close_session(session_id)
        logger.debug("drive_session completed", extra={"session_id": session_id, "steps": steps})
        return summary

    def _apply(self, session_id: str, intent: Callable[[BattleStateMachine], object]) -> MatchPayload:
        machine = self._require_session(session_id).machine
        intent(machine)
        return _match_payload(session_id, machine)

    def _require_session(self, session_id: str) -> SessionState:
        with self._lock:
            state = self._sessions.get(session_id)
        if state is None:
            raise KeyError(f"session '{session_id}' not found")
        return state


def _sid(length: int = 10) -> str:
    alphabet = string.ascii_lowercase + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def _metal(value: Metal | None) -> str | None:
    return value.value if value is not None else None


def _cell_payload(cell: CellConfig, *, revealed: bool) -> CellPayload:
    return CellPayload(
        cell_id=cell.cell_id,
        metal_left=_metal(cell.metal_left),
        metal_right=_metal(cell.metal_right),
        flipped=cell.flipped,
        voltage=cell.voltage if revealed and cell.is_complete else None,
    )


def _wire_payloads(wires: Iterable[Wire]) -> list[WirePayload]:
    return [WirePayload(start=NodeId(wire.start).value, end=NodeId(wire.end).value) for wire in wires]


def _card_payload(card: ChanceCard) -> CardPayload:
    return CardPayload(
        card_id=card.card_id,
        effect=card.effect.value,
        title=card.title.as_dict(),
        description=card.description.as_dict(),
        metal=_metal(card.metal),
    )


def _snapshot_payload(snapshot: HistorySnapshot) -> SnapshotPayload:
    math = calculation_log(snapshot.cell1, snapshot.cell2, snapshot.total_voltage)
    return SnapshotPayload(
        step_name=snapshot.step_name,
        cell1=_cell_payload(snapshot.cell1, revealed=True),
        cell2=_cell_payload(snapshot.cell2, revealed=True),
        wires=_wire_payloads(snapshot.wires),
        total_voltage=snapshot.total_voltage,
        description=snapshot.description,
        card=_card_payload(snapshot.card) if snapshot.card is not None else None,
        cell1_math=math.cell1_math,
        cell2_math=math.cell2_math,
        total_math=math.total_math,
        connection=math.connection.value,
    )


def _team_payload(view: TeamView) -> TeamPayload:
    team = view.team
    return TeamPayload(
        team_id=team.team_id,
        name=team.name,
        wins=team.wins,
        status=team.status.value,
        hand=[metal.value for metal in team.hand],
        cell1=_cell_payload(team.cell1, revealed=view.revealed),
        cell2=_cell_payload(team.cell2, revealed=view.revealed),
        wires=_wire_payloads(team.wires),
        chance_hand=[_card_payload(card) for card in team.chance_hand],
        voltage=view.voltage,
        connection_type=team.connection_type.value if view.revealed else None,
        history=[_snapshot_payload(snapshot) for snapshot in view.history] if view.revealed else None,
    )


def _match_payload(session_id: str, machine: BattleStateMachine) -> MatchPayload:
    view = machine.view()
    draft = machine.draft_hand
    return MatchPayload(
        session=session_id,
        phase=view.phase.value,
        round=view.round_number,
        active_team=view.active_team,
        active_team_name=view.active_team_name,
        instruction=view.instruction.as_dict(),
        seconds_left=view.seconds_left,
        revealed=view.revealed,
        champion=view.champion,
        teams=[_team_payload(team_view) for team_view in view.teams],
        draft_hand=[metal.value for metal in draft] if draft is not None else None,
        log=[
            LogPayload(message=entry.message, kind=entry.kind, timestamp=entry.timestamp.isoformat())
            for entry in view.log
        ],
    )


def _summary_payload(session_id: str, view: MatchView) -> SummaryPayload:
    teams: list[TeamSummaryPayload] = []
    for team_view in view.teams:
        team = team_view.team
        summary = team.battle_summary
        teams.append(
            TeamSummaryPayload(
                name=team.name,
                wins=team.wins,
                status=team.status.value,
                initial_voltage=summary.initial_voltage,
                final_voltage=summary.final_voltage,
                attack_received=summary.attack_received.title.en if summary.attack_received else None,
                buff_applied=summary.buff_applied.title.en if summary.buff_applied else None,
                history=[_snapshot_payload(snapshot) for snapshot in team.history],
            )
        )
    return SummaryPayload(
        session=session_id,
        phase=view.phase.value,
        round=view.round_number,
        champion=view.champion,
        teams=teams,
    )
