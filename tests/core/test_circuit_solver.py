from __future__ import annotations

import pytest

from voltwars.core.chemistry import CellConfig, Metal
from voltwars.core.circuit import (
    ConnectionType,
    EdgeKind,
    NodeId,
    build_graph,
    calculation_log,
    classify_connection,
    normalize_wiring,
    solve,
)

ZN_CU = CellConfig(1, Metal.ZN, Metal.CU)  # 1.10 V
FE_AG = CellConfig(2, Metal.FE, Metal.AG)  # 1.24 V


def _wires(*pairs: tuple[str, str]):
    return normalize_wiring(pairs)


def test_series_wiring_adds_cell_voltages() -> None:
    wires = _wires(("v_neg", "c1_L"), ("c1_R", "c2_L"), ("c2_R", "v_pos"))
    assert solve(ZN_CU, FE_AG, wires) == pytest.approx(2.34)


def test_parallel_wiring_averages_the_two_paths() -> None:
    wires = _wires(("v_neg", "c1_L"), ("v_neg", "c2_L"), ("c1_R", "v_pos"), ("c2_R", "v_pos"))
    assert sorted(build_graph(ZN_CU, FE_AG, wires).path_sums()) == pytest.approx([1.10, 1.24])
    assert solve(ZN_CU, FE_AG, wires) == pytest.approx(1.17)


def test_backwards_series_is_negative() -> None:
    wires = _wires(("v_neg", "c1_R"), ("c1_L", "c2_R"), ("c2_L", "v_pos"))
    assert solve(ZN_CU, FE_AG, wires) == pytest.approx(-2.34)


def test_opposed_cells_subtract() -> None:
    wires = _wires(("v_neg", "c1_L"), ("c1_R", "c2_R"), ("c2_L", "v_pos"))
    assert solve(ZN_CU, FE_AG, wires) == pytest.approx(-0.14)


def test_no_path_means_zero_volts() -> None:
    assert solve(ZN_CU, FE_AG, ()) == 0.0
    partial = _wires(("v_neg", "c1_L"), ("c1_R", "c2_L"))
    assert solve(ZN_CU, FE_AG, partial) == 0.0


def test_open_cell_breaks_the_path_instead_of_adding_zero() -> None:
    wires = _wires(("v_neg", "c1_L"), ("c1_R", "c2_L"), ("c2_R", "v_pos"))
    open_cell = CellConfig(2, Metal.FE, None)
    graph = build_graph(ZN_CU, open_cell, wires)
    assert all(edge.kind is EdgeKind.WIRE for edge in graph.adjacency[NodeId.C2_L])
    assert solve(ZN_CU, open_cell, wires) == 0.0


def test_wire_parallel_to_a_battery_is_a_separate_path() -> None:
    wires = _wires(("v_neg", "c1_L"), ("c1_L", "c1_R"), ("c1_R", "v_pos"))
    sums = build_graph(ZN_CU, FE_AG, wires).path_sums()
    assert sorted(sums) == pytest.approx([0.0, 1.10])
    assert solve(ZN_CU, FE_AG, wires) == pytest.approx(0.55)


def test_short_circuit_is_averaged_with_the_series_path() -> None:
    wires = _wires(("v_neg", "v_pos"), ("v_neg", "c1_L"), ("c1_R", "c2_L"), ("c2_R", "v_pos"))
    assert solve(ZN_CU, FE_AG, wires) == pytest.approx(1.17)


def test_flipped_cell_reverses_its_edge() -> None:
    wires = _wires(("v_neg", "c1_L"), ("c1_R", "c2_L"), ("c2_R", "v_pos"))
    assert solve(ZN_CU.toggled(), FE_AG, wires) == pytest.approx(0.14)


def test_flip_only_changes_paths_through_that_cell() -> None:
    wires = _wires(("v_neg", "c1_L"), ("v_neg", "c2_L"), ("c1_R", "v_pos"), ("c2_R", "v_pos"))
    before = sorted(build_graph(ZN_CU, FE_AG, wires).path_sums())
    after = sorted(build_graph(ZN_CU.toggled(), FE_AG, wires).path_sums())
    assert before == pytest.approx([1.10, 1.24])
    assert after == pytest.approx([-1.10, 1.24])
    assert solve(ZN_CU.toggled(), FE_AG, wires) == pytest.approx(0.07)


def test_graph_edges_are_antisymmetric() -> None:
    graph = build_graph(ZN_CU, FE_AG, ())
    forward = [edge for edge in graph.adjacency[NodeId.C1_L] if edge.target is NodeId.C1_R]
    backward = [edge for edge in graph.adjacency[NodeId.C1_R] if edge.target is NodeId.C1_L]
    assert [edge.weight for edge in forward] == pytest.approx([1.10])
    assert [edge.weight for edge in backward] == pytest.approx([-1.10])
    assert set(graph.adjacency) == set(NodeId)


@pytest.mark.parametrize(
    ("total", "expected"),
    [
        (0.0, ConnectionType.BROKEN),
        (0.005, ConnectionType.BROKEN),
        (2.34, ConnectionType.SERIES),
        (2.30, ConnectionType.SERIES),
        (1.17, ConnectionType.PARALLEL),
        (-0.14, ConnectionType.REVERSE_SERIES),
        (0.14, ConnectionType.REVERSE_SERIES),
        (0.80, ConnectionType.CUSTOM),
    ],
)
def test_classify_connection(total: float, expected: ConnectionType) -> None:
    assert classify_connection(1.10, 1.24, total) is expected


def test_calculation_log_for_series_board() -> None:
    log = calculation_log(ZN_CU, FE_AG, 2.34)
    assert log.connection is ConnectionType.SERIES
    assert log.cell1_math == "Cu(0.34) - Zn(-0.76) = 1.10V"
    assert log.cell2_math == "Ag(0.8) - Fe(-0.44) = 1.24V"
    assert log.total_math == "1.10 + 1.24 = 2.34V"


def test_calculation_log_marks_reversed_and_empty_cells() -> None:
    log = calculation_log(ZN_CU.toggled(), CellConfig.empty(2), 0.0)
    assert log.cell1_math.endswith("[REVERSED]")
    assert log.cell1_math.startswith("Zn(-0.76) - Cu(0.34)")
    assert log.cell2_math == "Empty"
    assert log.total_math == "No valid path (0V)"
    assert log.connection is ConnectionType.BROKEN
