"""Card and hole-card representation utilities.

Cards are plain integers in ``0..51`` laid out as ``4 * rank + suit`` where
rank ``0`` is a deuce and ``12`` an ace, and suits are ordered c, d, h, s.
Integer cards let the solver index numpy arrays directly.
"""

from functools import lru_cache
from itertools import combinations

import numpy as np
from treys import Card as TreysCard

from postflop.errors import ConfigurationError

# Sentinel for a turn or river card that has not been dealt
NOT_DEALT = 0xFF

NUM_CARDS = 52
NUM_PAIRS = NUM_CARDS * (NUM_CARDS - 1) // 2

RANKS = "23456789TJQKA"
SUITS = "cdhs"

STR_RANK = {r: i for i, r in enumerate(RANKS)}
STR_SUIT = {s: i for i, s in enumerate(SUITS)}


def card_rank(card: int) -> int:
    return card // 4


def card_suit(card: int) -> int:
    return card % 4


def card_from_str(s: str) -> int:
    """Parse a card from a string like 'As', 'Th', '2c'."""
    if not isinstance(s, str) or len(s.strip()) != 2:
        raise ConfigurationError(f"Invalid card string: {s!r}")
    s = s.strip()
    rank_char = s[0].upper()
    suit_char = s[1].lower()

    if rank_char not in STR_RANK:
        raise ConfigurationError(f"Invalid rank in card {s!r}")
    if suit_char not in STR_SUIT:
        raise ConfigurationError(f"Invalid suit in card {s!r}")

    return 4 * STR_RANK[rank_char] + STR_SUIT[suit_char]


def card_to_str(card: int) -> str:
    if card == NOT_DEALT:
        return ""
    if not 0 <= card < NUM_CARDS:
        raise ValueError(f"Invalid card id: {card}")
    return f"{RANKS[card_rank(card)]}{SUITS[card_suit(card)]}"


def cards_from_str(s: str) -> list[int]:
    """Parse a run of concatenated cards ('Td9d6h' or 'Td 9d 6h')."""
    compact = "".join(s.split()) if isinstance(s, str) else ""
    if not compact or len(compact) % 2:
        raise ConfigurationError(f"Invalid card list: {s!r}")
    return [card_from_str(compact[i:i + 2]) for i in range(0, len(compact), 2)]


def flop_from_str(s: str) -> tuple[int, int, int]:
    """Parse exactly three distinct flop cards, returned sorted."""
    cards = cards_from_str(s)
    if len(cards) != 3:
        raise ConfigurationError(f"Flop must have exactly 3 cards: {s!r}")
    if len(set(cards)) != 3:
        raise ConfigurationError(f"Flop contains duplicate cards: {s!r}")
    return tuple(sorted(cards))


def to_treys(card: int) -> int:
    """Convert to treys library card format."""
    return _TREYS[card]


_TREYS = [TreysCard.new(card_to_str(c)) for c in range(NUM_CARDS)]


# Hole-card pair indexing over (c1 < c2)

HOLE_PAIRS: list[tuple[int, int]] = list(combinations(range(NUM_CARDS), 2))


@lru_cache(maxsize=None)
def _pair_index_table() -> np.ndarray:
    table = np.full((NUM_CARDS, NUM_CARDS), -1, dtype=np.int32)
    for i, (c1, c2) in enumerate(HOLE_PAIRS):
        table[c1, c2] = i
        table[c2, c1] = i
    return table


def pair_index(c1: int, c2: int) -> int:
    """Index of the hole pair {c1, c2} in ``HOLE_PAIRS``."""
    if c1 == c2:
        raise ValueError(f"Hole cards must differ: {c1}")
    return int(_pair_index_table()[c1, c2])


def hole_to_str(hole: tuple[int, int]) -> str:
    """Render a hole pair high card first, e.g. 'AsKd'."""
    c1, c2 = sorted(hole, reverse=True)
    return card_to_str(c1) + card_to_str(c2)


def holes_to_strings(holes: list[tuple[int, int]]) -> list[str]:
    return [hole_to_str(h) for h in holes]
