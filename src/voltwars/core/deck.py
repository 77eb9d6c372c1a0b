"""Electrode hands and the chance-card catalogue."""

from __future__ import annotations

import random
from collections import Counter
from typing import Final

from .chemistry import Metal
from .models import ChanceCard, EffectType, LocalizedText

__all__ = [
    "CARD_CATALOG",
    "CHANCE_CARDS_PER_TEAM",
    "HAND_SIZE",
    "draw_chance_cards",
    "draw_random_hand",
]

HAND_SIZE: Final = 6
CHANCE_CARDS_PER_TEAM: Final = 3
# A hand is redrawn while any single metal shows up this many times.
_MAX_COPIES: Final = 4

_METAL_NAMES: Final[dict[Metal, tuple[str, str, str]]] = {
    Metal.MG: ("鎂", "Magnesium", "マグネシウム"),
    Metal.AG: ("銀", "Silver", "銀"),
    Metal.CU: ("銅", "Copper", "銅"),
    Metal.FE: ("鐵", "Iron", "鉄"),
    Metal.ZN: ("鋅", "Zinc", "亜鉛"),
    Metal.PB: ("鉛", "Lead", "鉛"),
}


def _swap_card(metal: Metal) -> ChanceCard:
    zh, en, ja = _METAL_NAMES[metal]
    return ChanceCard(
        card_id=f"card_{metal.value}",
        effect=EffectType.SWAP_ELECTRODE,
        title=LocalizedText(zh=f"{zh} ({metal.value})", en=f"Element: {en}", ja=f"{ja} ({metal.value})"),
        description=LocalizedText(
            zh=f"將任意電極變為{zh}",
            en=f"Change electrode to {metal.value}",
            ja=f"電極を{metal.value}に変更",
        ),
        metal=metal,
    )


CARD_CATALOG: Final[tuple[ChanceCard, ...]] = (
    *(_swap_card(metal) for metal in (Metal.MG, Metal.AG, Metal.CU, Metal.FE, Metal.ZN, Metal.PB)),
    ChanceCard(
        card_id="card_Reverse",
        effect=EffectType.REVERSE_POLARITY,
        title=LocalizedText(zh="極性反轉", en="Reverse Polarity", ja="極性反転"),
        description=LocalizedText(
            zh="反轉單個電池的正負極 (交換電極)",
            en="Reverse Anode/Cathode of a cell",
            ja="電池の極性を反転させる",
        ),
    ),
)


def draw_random_hand(rng: random.Random, count: int = HAND_SIZE) -> tuple[Metal, ...]:
    metals = list(Metal)
    while True:
        hand = tuple(rng.choice(metals) for _ in range(count))
        if all(copies < _MAX_COPIES for copies in Counter(hand).values()):
            return hand


def draw_chance_cards(rng: random.Random, count: int = CHANCE_CARDS_PER_TEAM, *, tag: str = "") -> tuple[ChanceCard, ...]:
    """Draw ``count`` cards with replacement; ids stay unique within a hand."""

    cards: list[ChanceCard] = []
    for index in range(count):
        template = rng.choice(CARD_CATALOG)
        suffix = f"{tag}_{index}" if tag else str(index)
        cards.append(
            ChanceCard(
                card_id=f"{template.card_id}_{suffix}",
                effect=template.effect,
                title=template.title,
                description=template.description,
                metal=template.metal,
                target_cell_id=template.target_cell_id,
            )
        )
    return tuple(cards)
