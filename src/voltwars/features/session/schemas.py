from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

__all__ = [
    "CardPayload",
    "CellPayload",
    "CommentaryPayload",
    "LogPayload",
    "MatchPayload",
    "SnapshotPayload",
    "SummaryPayload",
    "TeamPayload",
    "TeamSummaryPayload",
    "WirePayload",
]


class _APIModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class CellPayload(_APIModel):
    cell_id: int
    metal_left: str | None = None
    metal_right: str | None = None
    flipped: bool = False
    # Only filled in once voltages are revealed.
    voltage: float | None = None


class WirePayload(_APIModel):
    start: str
    end: str


class CardPayload(_APIModel):
    card_id: str
    effect: str
    title: dict[str, str]
    description: dict[str, str]
    metal: str | None = None


class SnapshotPayload(_APIModel):
    step_name: str
    cell1: CellPayload
    cell2: CellPayload
    wires: list[WirePayload]
    total_voltage: float
    description: str | None = None
    card: CardPayload | None = None
    cell1_math: str
    cell2_math: str
    total_math: str
    connection: str


class TeamPayload(_APIModel):
    team_id: str
    name: str
    wins: int
    status: str
    hand: list[str]
    cell1: CellPayload
    cell2: CellPayload
    wires: list[WirePayload]
    chance_hand: list[CardPayload]
    voltage: float | str
    connection_type: str | None = None
    history: list[SnapshotPayload] | None = None


class LogPayload(_APIModel):
    message: str
    kind: str
    timestamp: str


class MatchPayload(_APIModel):
    session: str
    phase: str
    round: int
    active_team: int | None = None
    active_team_name: str | None = None
    instruction: dict[str, str]
    seconds_left: float | None = None
    revealed: bool
    champion: int | None = None
    teams: list[TeamPayload]
    draft_hand: list[str] | None = None
    log: list[LogPayload]


class TeamSummaryPayload(_APIModel):
    name: str
    wins: int
    status: str
    initial_voltage: float | None = None
    final_voltage: float | None = None
    attack_received: str | None = None
    buff_applied: str | None = None
    history: list[SnapshotPayload]


class SummaryPayload(_APIModel):
    session: str
    phase: str
    round: int
    champion: int | None = None
    teams: list[TeamSummaryPayload]


class CommentaryPayload(_APIModel):
    zh: str
    en: str
    ja: str
