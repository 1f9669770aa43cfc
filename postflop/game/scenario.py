"""Scenario normalization: raw job fields to card config and starting street."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from postflop.errors import ConfigurationError
from .cards import NOT_DEALT, card_from_str, card_to_str, flop_from_str
from .ranges import Range, parse_range

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "oop_range",
    "ip_range",
    "flop",
    "starting_pot",
    "effective_stack",
    "bet_size",
    "raise_size",
)


class BoardState(Enum):
    """Street the game starts on."""
    Flop = 0
    Turn = 1
    River = 2

    @classmethod
    def infer(cls, turn: int, river: int) -> "BoardState":
        if river != NOT_DEALT:
            return cls.River
        if turn != NOT_DEALT:
            return cls.Turn
        return cls.Flop


@dataclass(frozen=True)
class CardConfig:
    """Ranges for both players plus the dealt board."""
    range: tuple[Range, Range]   # (OOP, IP)
    flop: tuple[int, int, int]
    turn: int = NOT_DEALT
    river: int = NOT_DEALT

    @property
    def board(self) -> list[int]:
        return [c for c in (*self.flop, self.turn, self.river) if c != NOT_DEALT]

    def board_str(self) -> str:
        return "".join(card_to_str(c) for c in self.board)


def normalize_scenario(config: Mapping[str, Any]) -> tuple[CardConfig, BoardState]:
    """
    Turn a job's key/value fields into a CardConfig and the inferred street.

    Args:
        config: Parsed input document

    Returns:
        Tuple of (card config, starting street)

    Raises:
        ConfigurationError: missing mandatory field, malformed card or range,
            or a river dealt without a turn
    """
    for name in REQUIRED_FIELDS:
        if name not in config or config[name] is None:
            raise ConfigurationError("missing required field", field=name)

    ranges = (
        _parse_field(config, "oop_range", parse_range),
        _parse_field(config, "ip_range", parse_range),
    )
    flop = _parse_field(config, "flop", flop_from_str)
    turn = _optional_card(config, "turn")
    river = _optional_card(config, "river")

    if river != NOT_DEALT and turn == NOT_DEALT:
        raise ConfigurationError("river is dealt but turn is not", field="river")

    board = [c for c in (*flop, turn, river) if c != NOT_DEALT]
    if len(set(board)) != len(board):
        raise ConfigurationError("board contains duplicate cards", field="turn" if river == NOT_DEALT else "river")

    for name in ("starting_pot", "effective_stack"):
        value = config[name]
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationError(f"expected an integer, got {value!r}", field=name)

    card_config = CardConfig(range=ranges, flop=flop, turn=turn, river=river)
    initial_state = BoardState.infer(turn, river)
    logger.debug("Normalized scenario: board=%s street=%s", card_config.board_str(), initial_state.name)
    return card_config, initial_state


def _parse_field(config: Mapping[str, Any], name: str, parser):
    value = config[name]
    if not isinstance(value, str):
        raise ConfigurationError(f"expected a string, got {value!r}", field=name)
    try:
        return parser(value)
    except ConfigurationError as e:
        raise ConfigurationError(str(e.args[0]), field=name) from e


def _optional_card(config: Mapping[str, Any], name: str) -> int:
    """Absent, null or empty means not dealt; anything else must parse."""
    value = config.get(name)
    if value is None or value == "":
        return NOT_DEALT
    if not isinstance(value, str):
        raise ConfigurationError(f"expected a card string, got {value!r}", field=name)
    try:
        return card_from_str(value)
    except ConfigurationError as e:
        raise ConfigurationError(str(e.args[0]), field=name) from e
