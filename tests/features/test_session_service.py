from __future__ import annotations

import asyncio

import pytest

from voltwars.core.chemistry import CellConfig, Metal
from voltwars.core.models import EffectPayload
from voltwars.features.commentary import phase_instruction
from voltwars.features.session import MatchPayload, SessionConfig, SessionManager, SummaryPayload
from voltwars.features.session import service as service_module
from voltwars.features.session.service import _clean_names, _snapshot_payload
from voltwars.engine.phases import Phase

SERIES = [("v_neg", "c1_L"), ("c1_R", "c2_L"), ("c2_R", "v_pos")]


def _manager_with_match(seed: int = 1234) -> tuple[SessionManager, str]:
    manager = SessionManager()
    sid = manager.create_session(SessionConfig(team_names=("Sparks", "Volts"), seed=seed, phase_seconds=0))
    return manager, sid


def _play_to_battle(manager: SessionManager, sid: str) -> MatchPayload:
    manager.start(sid)
    manager.draw(sid, 0, ["Zn", "Cu", "Fe", "Ag", "Mg", "Pb"])
    manager.draw(sid, 1, ["Pb", "Cu", "Zn", "Ag", "Fe", "Mg"])
    manager.submit_assembly(sid, 0, ["Mg", "Pb"], CellConfig(1, Metal.ZN, Metal.CU), CellConfig(2, Metal.FE, Metal.AG))
    manager.submit_assembly(sid, 1, ["Fe", "Mg"], CellConfig(1, Metal.PB, Metal.CU), CellConfig(2, Metal.ZN, Metal.AG))
    for team in (0, 1):
        manager.update_wiring(sid, team, SERIES)
        manager.confirm_wiring(sid, team)
    return manager.draw_chance(sid)


def test_session_manager_basic_flow() -> None:
    manager, sid = _manager_with_match()
    state = manager.get_state(sid)
    assert isinstance(state, MatchPayload)
    data = state.to_dict()
    assert data["phase"] == "SETUP"
    assert data["round"] == 0
    assert [team["name"] for team in data["teams"]] == ["Sparks", "Volts"]
    assert all(team["voltage"] == "???" for team in data["teams"])
    assert "history" not in data["teams"][0]

    payload = _play_to_battle(manager, sid)
    assert payload.phase == "B_ACTION_1"
    assert payload.active_team == 1
    assert payload.active_team_name == "Volts"
    assert all(len(team.chance_hand) == 3 for team in payload.teams)
    assert payload.teams[0].cell1.voltage is None

    with pytest.raises(ValueError):
        manager.summary(sid)

    for _ in range(6):
        payload = manager.skip(sid)
    assert payload.phase == "ROUND_SUMMARY"
    assert payload.revealed is True
    assert payload.teams[0].voltage == pytest.approx(2.34)
    assert payload.teams[0].cell1.voltage == pytest.approx(1.10)
    assert payload.teams[0].history is not None and len(payload.teams[0].history) == 4

    summary = manager.summary(sid)
    assert isinstance(summary, SummaryPayload)
    first = summary.teams[0]
    assert (first.name, first.wins, first.status) == ("Sparks", 1, "winner")
    assert first.initial_voltage == pytest.approx(2.34)
    assert first.history[0].connection == "series"
    assert first.history[0].total_math == "1.10 + 1.24 = 2.34V"

    payload = manager.next_round(sid)
    assert payload.phase == "A_DRAW"
    assert payload.round == 2


def test_card_play_through_the_service() -> None:
    manager, sid = _manager_with_match()
    payload = _play_to_battle(manager, sid)
    card = payload.teams[1].chance_hand[0]
    effect = EffectPayload(cell_id=1, slot="R") if card.effect == "SWAP_ELECTRODE" else EffectPayload(cell_id=1)
    payload = manager.play_card(sid, 1, card.card_id, None, effect)
    assert payload.phase == "A_ACTION_1"
    assert len(payload.teams[1].chance_hand) == 2
    kinds = [event.kind for event in manager.events(sid)]
    assert kinds[-1] == "card_played"


def test_event_history_is_bounded(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(service_module, "_EVENT_LIMIT", 4)
    manager, sid = _manager_with_match()
    _play_to_battle(manager, sid)
    events = manager.events(sid)
    assert len(events) == 4
    assert events[-1].kind == "chance_dealt"
    assert events[0].kind != "started"
    manager.close_session(sid)


def test_reveal_and_timeout_intents() -> None:
    manager, sid = _manager_with_match()
    manager.start(sid)
    payload = manager.reveal(sid, 0)
    assert payload.draft_hand is not None and len(payload.draft_hand) == 6
    revealed = list(payload.draft_hand)
    payload = manager.timeout(sid, Phase.B_DRAW)
    assert payload.phase == "A_DRAW"
    payload = manager.timeout(sid)
    assert payload.phase == "B_DRAW"
    assert payload.teams[0].hand == revealed


def test_invalid_intent_and_unknown_session() -> None:
    manager, sid = _manager_with_match()
    with pytest.raises(ValueError):
        manager.draw(sid, 0)
    with pytest.raises(KeyError):
        manager.get_state("missing")
    manager.close_session(sid)
    with pytest.raises(KeyError):
        manager.start(sid)


def test_commentary_uses_the_static_table_by_default() -> None:
    manager, sid = _manager_with_match()
    manager.start(sid)
    text = manager.commentary(sid)
    expected = phase_instruction(Phase.A_DRAW, "Sparks")
    assert (text.zh, text.en, text.ja) == (expected.zh, expected.en, expected.ja)


def test_drive_session_plays_to_game_over() -> None:
    manager, sid = _manager_with_match(seed=42)
    summary = manager.drive_session(sid, cleanup=True)
    assert summary.phase == "GAME_OVER"
    assert summary.champion in (0, 1)
    assert summary.teams[summary.champion].wins == 2
    with pytest.raises(KeyError):
        manager.get_state(sid)


def test_session_config_is_normalized() -> None:
    manager = SessionManager()
    sid = manager.create_session(SessionConfig(team_names=("  ", "Team A"), phase_seconds=-5))
    state = manager._sessions[sid]
    assert state.config.team_names == ("Team A", "Team A (2)")
    assert state.config.phase_seconds == 0.0
    assert state.config.seed is not None
    assert _clean_names(["x" * 100]) == ("x" * 40, "Team B")


def test_snapshot_payload_includes_calculation_log() -> None:
    manager, sid = _manager_with_match()
    _play_to_battle(manager, sid)
    snapshot = manager.machine(sid).teams[1].history[0]
    payload = _snapshot_payload(snapshot).to_dict()
    assert payload["step_name"] == "Wiring Complete"
    assert payload["cell1_math"] == "Cu(0.34) - Pb(-0.13) = 0.47V"
    assert payload["connection"] == "series"
    assert [wire["start"] for wire in payload["wires"]] == ["v_neg", "c1_R", "c2_R"]


def test_async_wrappers_run_in_the_pool() -> None:
    manager = SessionManager()

    async def _flow() -> MatchPayload:
        sid = await manager.create_session_async(SessionConfig(seed=3, phase_seconds=0))
        return await manager.dispatch_async(manager.start, sid)

    payload = asyncio.run(_flow())
    assert payload.phase == "A_DRAW"
