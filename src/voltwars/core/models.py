from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from .chemistry import CellConfig, Metal, Slot
from .circuit import ConnectionType, Wire


class EffectType(str, Enum):
    SWAP_ELECTRODE = "SWAP_ELECTRODE"
    REVERSE_POLARITY = "REVERSE_POLARITY"


class TargetScope(str, Enum):
    SELF = "SELF"
    OPPONENT = "OPPONENT"


class TeamStatus(str, Enum):
    ACTIVE = "active"
    WINNER = "winner"
    LOSER = "loser"


@dataclass(frozen=True)
class LocalizedText:
    zh: str
    en: str
    ja: str

    def as_dict(self) -> dict[str, str]:
        return {"zh": self.zh, "en": self.en, "ja": self.ja}


@dataclass(frozen=True)
class ChanceCard:
    card_id: str
    effect: EffectType
    title: LocalizedText
    description: LocalizedText
    # Swap cards carry the replacement electrode.
    metal: Metal | None = None
    target_cell_id: int | None = None


@dataclass(frozen=True)
class EffectPayload:
    """Where a card lands on the target team's board."""

    cell_id: int
    slot: Slot | None = None
    new_metal: Metal | None = None


@dataclass(frozen=True)
class HistorySnapshot:
    step_name: str
    cell1: CellConfig
    cell2: CellConfig
    wires: tuple[Wire, ...]
    total_voltage: float
    description: str | None = None
    card: ChanceCard | None = None


@dataclass(frozen=True)
class BattleSummary:
    initial_voltage: float | None = None
    final_voltage: float | None = None
    attack_received: ChanceCard | None = None
    buff_applied: ChanceCard | None = None


@dataclass(frozen=True)
class LogEntry:
    message: str
    kind: str = "info"
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class Team:
    """Per-team board.  The state machine swaps whole records, never fields in place."""

    team_id: str
    name: str
    hand: tuple[Metal, ...] = ()
    cell1: CellConfig = field(default_factory=lambda: CellConfig.empty(1))
    cell2: CellConfig = field(default_factory=lambda: CellConfig.empty(2))
    wires: tuple[Wire, ...] = ()
    chance_hand: tuple[ChanceCard, ...] = ()
    total_voltage: float = 0.0
    wins: int = 0
    status: TeamStatus = TeamStatus.ACTIVE
    connection_type: ConnectionType = ConnectionType.BROKEN
    battle_summary: BattleSummary = field(default_factory=BattleSummary)
    history: tuple[HistorySnapshot, ...] = ()

    def cell(self, cell_id: int) -> CellConfig:
        if cell_id == 1:
            return self.cell1
        if cell_id == 2:
            return self.cell2
        raise ValueError(f"unknown cell id {cell_id!r}")

    def card(self, card_id: str) -> ChanceCard | None:
        return next((card for card in self.chance_hand if card.card_id == card_id), None)

    def fresh_round(self) -> Team:
        return Team(team_id=self.team_id, name=self.name, wins=self.wins)
