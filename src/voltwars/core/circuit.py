"""Circuit graph built from a team's wires and cells, plus the voltage solver.

The topology never changes: two meter terminals and the four cell terminals.
Players only add zero-weight wires between these nodes.  Complete cells add a
signed battery edge between their left and right terminals.

The solver enumerates every simple path from ``v_neg`` to ``v_pos`` and reports
the mean of the signed path sums.  That is the game's approximation for mixed
series/parallel networks, not a conductance model.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Final, Protocol

from .chemistry import CellConfig, potential, round2

__all__ = [
    "CalculationLog",
    "CircuitGraph",
    "ConnectionType",
    "Edge",
    "EdgeKind",
    "MAX_WIRES_PER_NODE",
    "NodeId",
    "Wire",
    "add_wire",
    "build_graph",
    "calculation_log",
    "can_connect",
    "classify_connection",
    "normalize_wiring",
    "remove_wire",
    "solve",
    "solve_team",
]

logger = logging.getLogger(__name__)

MAX_WIRES_PER_NODE: Final = 2
_BROKEN_EPSILON: Final = 0.01
_LABEL_TOLERANCE: Final = 0.05


class NodeId(str, Enum):
    V_POS = "v_pos"
    V_NEG = "v_neg"
    C1_L = "c1_L"
    C1_R = "c1_R"
    C2_L = "c2_L"
    C2_R = "c2_R"

    def __str__(self) -> str:
        return self.value


_CELL_TERMINALS: Final[dict[int, tuple[NodeId, NodeId]]] = {
    1: (NodeId.C1_L, NodeId.C1_R),
    2: (NodeId.C2_L, NodeId.C2_R),
}


class EdgeKind(str, Enum):
    WIRE = "wire"
    BATTERY = "battery"


class ConnectionType(str, Enum):
    SERIES = "series"
    PARALLEL = "parallel"
    REVERSE_SERIES = "reverse_series"
    BROKEN = "broken"
    CUSTOM = "custom"


@dataclass(frozen=True)
class Wire:
    start: NodeId
    end: NodeId

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", NodeId(self.start))
        object.__setattr__(self, "end", NodeId(self.end))
        if self.start == self.end:
            raise ValueError("a wire needs two distinct nodes")

    @property
    def key(self) -> frozenset[NodeId]:
        return frozenset((self.start, self.end))

    def touches(self, node: NodeId) -> bool:
        return node in (self.start, self.end)


@dataclass(frozen=True)
class Edge:
    target: NodeId
    weight: float
    kind: EdgeKind


class _CircuitSource(Protocol):
    cell1: CellConfig
    cell2: CellConfig
    wires: Sequence[Wire]


# ---------------------------------------------------------------------- wiring


def _degree(wires: Iterable[Wire], node: NodeId) -> int:
    return sum(1 for wire in wires if wire.touches(node))


def can_connect(wires: Sequence[Wire], start: NodeId | str, end: NodeId | str) -> bool:
    a, b = NodeId(start), NodeId(end)
    if a == b:
        return False
    if _degree(wires, a) >= MAX_WIRES_PER_NODE or _degree(wires, b) >= MAX_WIRES_PER_NODE:
        return False
    wanted = frozenset((a, b))
    return all(wire.key != wanted for wire in wires)


def add_wire(wires: Sequence[Wire], start: NodeId | str, end: NodeId | str) -> tuple[Wire, ...]:
    """Return ``wires`` plus the new wire, or ``wires`` unchanged if rejected."""

    current = tuple(wires)
    if not can_connect(current, start, end):
        logger.debug("wire rejected", extra={"start": str(start), "end": str(end)})
        return current
    return (*current, Wire(NodeId(start), NodeId(end)))


def remove_wire(wires: Sequence[Wire], start: NodeId | str, end: NodeId | str) -> tuple[Wire, ...]:
    wanted = frozenset((NodeId(start), NodeId(end)))
    return tuple(wire for wire in wires if wire.key != wanted)


def normalize_wiring(pairs: Iterable[tuple[NodeId | str, NodeId | str] | Wire]) -> tuple[Wire, ...]:
    """Apply ``add_wire`` over ``pairs`` in order, dropping rejected ones."""

    wires: tuple[Wire, ...] = ()
    for pair in pairs:
        if isinstance(pair, Wire):
            start, end = pair.start, pair.end
        else:
            start, end = pair
        wires = add_wire(wires, start, end)
    return wires


# ----------------------------------------------------------------------- graph


@dataclass
class CircuitGraph:
    adjacency: dict[NodeId, list[Edge]] = field(default_factory=lambda: {node: [] for node in NodeId})

    def connect(self, start: NodeId, end: NodeId, weight: float, kind: EdgeKind) -> None:
        self.adjacency[start].append(Edge(end, weight, kind))
        self.adjacency[end].append(Edge(start, -weight, kind))

    def path_sums(self, source: NodeId = NodeId.V_NEG, sink: NodeId = NodeId.V_POS) -> list[float]:
        """Signed weight of every simple ``source``→``sink`` path.

        Explicit-stack backtracking: a node is marked when pushed and unmarked
        when its edge iterator runs out, so sibling branches see a clean set.
        Parallel edges between the same pair are distinct paths.
        """

        sums: list[float] = []
        visited = {source}
        stack = [(source, iter(self.adjacency.get(source, ())), 0.0)]
        while stack:
            node, edges, running = stack[-1]
            edge = next(edges, None)
            if edge is None:
                stack.pop()
                visited.discard(node)
                continue
            if edge.target in visited:
                continue
            total = running + edge.weight
            if edge.target == sink:
                sums.append(total)
                continue
            visited.add(edge.target)
            stack.append((edge.target, iter(self.adjacency.get(edge.target, ())), total))
        return sums


def build_graph(cell1: CellConfig, cell2: CellConfig, wires: Iterable[Wire]) -> CircuitGraph:
    graph = CircuitGraph()
    for wire in wires:
        graph.connect(wire.start, wire.end, 0.0, EdgeKind.WIRE)
    for cell, (left, right) in ((cell1, _CELL_TERMINALS[1]), (cell2, _CELL_TERMINALS[2])):
        if not cell.is_complete:
            continue
        graph.connect(left, right, cell.voltage, EdgeKind.BATTERY)
    return graph


def solve(cell1: CellConfig, cell2: CellConfig, wires: Iterable[Wire]) -> float:
    sums = build_graph(cell1, cell2, wires).path_sums()
    if not sums:
        return 0.0
    return round2(sum(sums) / len(sums))


def solve_team(team: _CircuitSource) -> float:
    return solve(team.cell1, team.cell2, team.wires)


# ---------------------------------------------------------------------- labels


def classify_connection(v1: float, v2: float, total: float) -> ConnectionType:
    if abs(total) < _BROKEN_EPSILON:
        return ConnectionType.BROKEN
    if abs(total - (v1 + v2)) < _LABEL_TOLERANCE:
        return ConnectionType.SERIES
    if abs(total - (v1 + v2) / 2) < _LABEL_TOLERANCE:
        return ConnectionType.PARALLEL
    if abs(total - (v1 - v2)) < _LABEL_TOLERANCE or abs(total - (v2 - v1)) < _LABEL_TOLERANCE:
        return ConnectionType.REVERSE_SERIES
    return ConnectionType.CUSTOM


@dataclass(frozen=True)
class CalculationLog:
    cell1_math: str
    cell2_math: str
    total_math: str
    connection: ConnectionType


def _cell_math(cell: CellConfig) -> str:
    left, right = cell.effective_left, cell.effective_right
    if left is None or right is None:
        return "Empty"
    suffix = " [REVERSED]" if cell.flipped else ""
    return f"{right}({potential(right)}) - {left}({potential(left)}) = {cell.voltage:.2f}V{suffix}"


def calculation_log(cell1: CellConfig, cell2: CellConfig, total: float) -> CalculationLog:
    """Human-readable breakdown shown next to each history snapshot."""

    v1, v2 = cell1.voltage, cell2.voltage
    connection = classify_connection(v1, v2, total)
    if connection is ConnectionType.BROKEN:
        total_math = "No valid path (0V)"
    elif connection is ConnectionType.SERIES:
        total_math = f"{v1:.2f} + {v2:.2f} = {total:.2f}V"
    elif connection is ConnectionType.PARALLEL:
        total_math = f"({v1:.2f} + {v2:.2f}) / 2 = {total:.2f}V"
    elif connection is ConnectionType.REVERSE_SERIES:
        total_math = f"{v1:.2f} - {v2:.2f} = {total:.2f}V"
    else:
        total_math = f"Circuit Result: {total:.2f}V"
    return CalculationLog(
        cell1_math=_cell_math(cell1),
        cell2_math=_cell_math(cell2),
        total_math=total_math,
        connection=connection,
    )
