"""Standard electrode potentials and single-cell evaluation.

Each cell is a pair of electrode slots.  The voltage a cell contributes is the
potential of its right electrode minus the potential of its left one; the flip
flag swaps the two slots before the subtraction, so flipping a cell negates its
contribution along any path that crosses it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Final, Literal

__all__ = [
    "METAL_POTENTIALS",
    "CellConfig",
    "Metal",
    "Slot",
    "cell_voltage",
    "potential",
    "round2",
]

Slot = Literal["L", "R"]


class Metal(str, Enum):
    MG = "Mg"
    AG = "Ag"
    CU = "Cu"
    PB = "Pb"
    FE = "Fe"
    ZN = "Zn"

    def __str__(self) -> str:
        return self.value


METAL_POTENTIALS: Final[dict[Metal, float]] = {
    Metal.MG: -2.37,
    Metal.AG: 0.80,
    Metal.CU: 0.34,
    Metal.PB: -0.13,
    Metal.FE: -0.44,
    Metal.ZN: -0.76,
}


def round2(value: float) -> float:
    """Round half-up to two decimals (``round`` would use banker's rounding)."""

    return math.floor(value * 100.0 + 0.5) / 100.0


def potential(metal: Metal | str) -> float:
    return METAL_POTENTIALS[Metal(metal)]


def cell_voltage(left: Metal | None, right: Metal | None) -> float:
    """Return ``E(right) - E(left)`` for a pair of electrodes.

    Open cells report ``0.0`` here for labelling purposes only; the circuit
    graph leaves them out entirely instead of treating them as a 0 V source.
    """

    if left is None or right is None:
        return 0.0
    return round2(potential(right) - potential(left))


@dataclass(frozen=True)
class CellConfig:
    cell_id: int
    metal_left: Metal | None = None
    metal_right: Metal | None = None
    flipped: bool = False

    @property
    def is_complete(self) -> bool:
        return self.metal_left is not None and self.metal_right is not None

    @property
    def effective_left(self) -> Metal | None:
        return self.metal_right if self.flipped else self.metal_left

    @property
    def effective_right(self) -> Metal | None:
        return self.metal_left if self.flipped else self.metal_right

    @property
    def voltage(self) -> float:
        return cell_voltage(self.effective_left, self.effective_right)

    def with_metal(self, slot: Slot, metal: Metal | None) -> CellConfig:
        if slot == "L":
            return replace(self, metal_left=metal)
        if slot == "R":
            return replace(self, metal_right=metal)
        raise ValueError(f"unknown slot {slot!r}")

    def toggled(self) -> CellConfig:
        return replace(self, flipped=not self.flipped)

    @classmethod
    def empty(cls, cell_id: int) -> CellConfig:
        return cls(cell_id=cell_id)
