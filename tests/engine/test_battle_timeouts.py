from __future__ import annotations

import threading

from voltwars.core.chemistry import CellConfig, Metal
from voltwars.engine.battle import MatchEvent
from voltwars.engine.phases import Phase


def test_setup_and_summary_phases_ignore_timeouts(make_machine) -> None:
    machine = make_machine()
    assert machine.timeout() is False
    assert machine.phase is Phase.SETUP


def test_every_timed_phase_has_a_fallback(make_machine) -> None:
    machine = make_machine(seed=99)
    machine.start()

    # Draw: no reveal yet, so a random hand is dealt.
    assert machine.timeout() is True
    assert len(machine.teams[0].hand) == 6
    assert machine.phase is Phase.B_DRAW
    assert any(entry.message == "Time limit reached! System forcing action." for entry in machine.view().log)

    # Draw after reveal: the revealed hand is the one committed.
    revealed = machine.reveal_hand(1)
    assert machine.reveal_hand(1) == revealed
    assert machine.draft_hand == revealed
    assert machine.timeout() is True
    assert machine.teams[1].hand == revealed
    assert machine.draft_hand is None

    # Assembly: the staged draft is committed.
    cell1 = CellConfig(1, Metal.ZN, Metal.CU)
    cell2 = CellConfig(2, Metal.FE, Metal.AG)
    machine.stage_assembly(0, ["Mg", "Pb"], cell1, cell2)
    assert machine.draft_assembly is not None
    machine.timeout()
    assert machine.teams[0].cell1 == cell1
    assert machine.teams[0].hand == (Metal.MG, Metal.PB)

    # Assembly without a draft keeps the (empty) board.
    machine.timeout()
    assert machine.teams[1].cell1 == CellConfig.empty(1)
    assert machine.phase is Phase.A_WIRING

    # Wiring: whatever is connected gets confirmed.
    machine.add_wire(0, "v_neg", "c1_L")
    machine.timeout()
    team_a = machine.teams[0]
    assert len(team_a.wires) == 1
    assert team_a.history[-1].step_name == "Wiring Complete"
    assert team_a.total_voltage == 0.0
    machine.timeout()
    assert machine.phase is Phase.JOINT_DRAW_ANIMATION

    # Joint draw: cards are dealt.
    machine.timeout()
    assert [len(team.chance_hand) for team in machine.teams] == [3, 3]
    assert machine.phase is Phase.B_ACTION_1

    # Action: counts as a skip.
    machine.timeout()
    assert machine.teams[1].history[-1].step_name == "Skipped Turn"
    assert machine.phase is Phase.A_ACTION_1


def test_stale_timeout_is_ignored(make_machine) -> None:
    machine = make_machine()
    machine.start()
    machine.draw(0)
    assert machine.timeout(Phase.A_DRAW) is False
    assert machine.phase is Phase.B_DRAW
    assert machine.timeout(Phase.B_DRAW) is True
    assert machine.phase is Phase.A_ASSEMBLE


def test_phase_timer_forces_the_draw(make_machine) -> None:
    machine = make_machine(phase_seconds=0.05)
    fired: list[MatchEvent] = []
    done = threading.Event()

    def _listener(event: MatchEvent) -> None:
        if event.kind == "timeout" and not done.is_set():
            fired.append(event)
            done.set()

    machine.subscribe(_listener)
    machine.start()
    assert done.wait(2.0)
    machine.close()
    event = fired[0]
    assert event.detail == Phase.A_DRAW.value
    assert event.team_index == 0
    assert event.phase is Phase.B_DRAW
    assert len(machine.teams[0].hand) == 6


def test_view_reports_the_countdown(make_machine) -> None:
    machine = make_machine(phase_seconds=60)
    assert machine.view().seconds_left is None
    machine.start()
    seconds_left = machine.view().seconds_left
    assert seconds_left is not None
    assert 0 < seconds_left <= 60
