"""Hand range parsing.

A range is a weight in ``[0, 1]`` for each of the 1326 hole-card pairs.

Examples of accepted items (comma separated, optional ``:weight``)::

    "AA"          -> all six aces
    "AKs"         -> four suited combos
    "AKo", "AK"   -> offsuit combos, or all sixteen
    "TT+"         -> TT, JJ, QQ, KK, AA
    "ATs+"        -> ATs, AJs, AQs, AKs
    "22-55"       -> 22, 33, 44, 55
    "A2s-A5s"     -> A2s, A3s, A4s, A5s
    "AsKh"        -> a single combo
    "QQ:0.5"      -> QQ at half weight
    "random"      -> every combo
"""

import re
from dataclasses import dataclass, field

import numpy as np

from postflop.errors import ConfigurationError
from .cards import (
    HOLE_PAIRS, NUM_PAIRS, RANKS, STR_RANK, card_from_str, pair_index,
)

FULL_RANGE_KEYWORDS = {"random", "random hands", "any", "full"}

_HAND_RE = re.compile(r"^([2-9TJQKA])([2-9TJQKA])([so]?)$")


@dataclass
class Range:
    """Weights for every hole pair, indexed like ``HOLE_PAIRS``."""
    weights: np.ndarray = field(default_factory=lambda: np.zeros(NUM_PAIRS, dtype=np.float32))

    @classmethod
    def full(cls) -> "Range":
        return cls(np.ones(NUM_PAIRS, dtype=np.float32))

    def is_empty(self) -> bool:
        return not np.any(self.weights > 0)

    def num_combos(self) -> int:
        return int(np.count_nonzero(self.weights))

    def hands(self, dead_cards: set[int]) -> list[tuple[int, int]]:
        """Hole pairs with positive weight that avoid the given cards."""
        return [
            pair for i, pair in enumerate(HOLE_PAIRS)
            if self.weights[i] > 0
            and pair[0] not in dead_cards and pair[1] not in dead_cards
        ]


def parse_range(range_str: str) -> Range:
    """
    Parse a hand range string into a Range.

    Raises:
        ConfigurationError: if any item is malformed or the range is empty
    """
    if not isinstance(range_str, str) or not range_str.strip():
        raise ConfigurationError(f"Empty range: {range_str!r}")

    text = range_str.strip()
    if text.lower() in FULL_RANGE_KEYWORDS:
        return Range.full()

    result = Range()
    for item in text.split(","):
        item = item.strip()
        if not item:
            raise ConfigurationError(f"Empty item in range {range_str!r}")

        weight = 1.0
        if ":" in item:
            item, weight_str = item.split(":", 1)
            try:
                weight = float(weight_str)
            except ValueError:
                raise ConfigurationError(f"Invalid weight in range item {item!r}") from None
            if not 0.0 <= weight <= 1.0:
                raise ConfigurationError(f"Weight out of [0, 1] in range item {item!r}")

        for idx in _expand_item(item.strip()):
            result.weights[idx] = weight

    if result.is_empty():
        raise ConfigurationError(f"Range has no combos: {range_str!r}")
    return result


def _expand_item(item: str) -> list[int]:
    """Expand one range item into hole-pair indices."""
    # Specific combo: 'AsKh'
    if len(item) == 4 and item[1].lower() in "cdhs" and item[3].lower() in "cdhs":
        c1 = card_from_str(item[:2])
        c2 = card_from_str(item[2:])
        if c1 == c2:
            raise ConfigurationError(f"Duplicate card in combo {item!r}")
        return [pair_index(c1, c2)]

    # Dash range: '22-55', 'A2s-A5s'
    if "-" in item:
        low, high = (part.strip() for part in item.split("-", 1))
        r1, k1, s1 = _parse_hand(low)
        r2, k2, s2 = _parse_hand(high)
        if s1 != s2:
            raise ConfigurationError(f"Mismatched suitedness in {item!r}")
        if r1 == k1 and r2 == k2:
            lo, hi = sorted((r1, r2))
            return [i for r in range(lo, hi + 1) for i in _combos(r, r, "")]
        if r1 != r2:
            raise ConfigurationError(f"Dash range must share the high card: {item!r}")
        lo, hi = sorted((k1, k2))
        if hi >= r1:
            raise ConfigurationError(f"Invalid kicker range in {item!r}")
        return [i for k in range(lo, hi + 1) for i in _combos(r1, k, s1)]

    # Plus range: 'TT+', 'ATs+'
    if item.endswith("+"):
        rank, kicker, suited = _parse_hand(item[:-1])
        if rank == kicker:
            return [i for r in range(rank, len(RANKS)) for i in _combos(r, r, "")]
        return [i for k in range(kicker, rank) for i in _combos(rank, k, suited)]

    rank, kicker, suited = _parse_hand(item)
    return _combos(rank, kicker, suited)


def _parse_hand(text: str) -> tuple[int, int, str]:
    match = _HAND_RE.match(text[:2].upper() + text[2:].lower())
    if not match:
        raise ConfigurationError(f"Invalid hand in range: {text!r}")
    r1, r2, suited = STR_RANK[match.group(1)], STR_RANK[match.group(2)], match.group(3)
    if r1 == r2 and suited:
        raise ConfigurationError(f"Pairs cannot be suited or offsuit: {text!r}")
    if r1 < r2:
        r1, r2 = r2, r1
    return r1, r2, suited


def _combos(rank: int, kicker: int, suited: str) -> list[int]:
    """Indices of every combo of a hand class; suited is 's', 'o' or ''."""
    combos = []
    for s1 in range(4):
        for s2 in range(4):
            c1 = 4 * rank + s1
            c2 = 4 * kicker + s2
            if rank == kicker and s1 >= s2:
                continue
            if suited == "s" and s1 != s2:
                continue
            if suited == "o" and s1 == s2:
                continue
            combos.append(pair_index(c1, c2))
    return combos
