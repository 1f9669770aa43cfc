"""Bet sizing abstraction for tractable solving.

Abstracting bet sizes reduces the game tree to a handful of actions per
decision. Sizes are written in a small grammar, comma separated::

    "50%"        fraction of the pot after calling
    "2.5x"       multiple of the previous bet (raises only)
    "100c"       constant amount in chips, "100c3r" caps it at 3 raises
    "2e"         geometric size over 2 streets ("e" = streets remaining),
                 "3e150%" caps each step at 150% pot
    "a"          all-in
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Mapping, Optional

from postflop.errors import AbstractionError, ConfigurationError
from .scenario import BoardState

logger = logging.getLogger(__name__)

DEFAULT_ADD_ALLIN_THRESHOLD = 1.5
DEFAULT_FORCE_ALLIN_THRESHOLD = 0.15
DEFAULT_MERGING_THRESHOLD = 0.1
DEFAULT_RIVER_DONK_SIZE = "50%"


class SizeKind(Enum):
    POT_RELATIVE = auto()
    PREV_BET_RELATIVE = auto()
    ADDITIVE = auto()
    GEOMETRIC = auto()
    ALL_IN = auto()


@dataclass(frozen=True)
class BetSize:
    """One parsed sizing token."""
    kind: SizeKind
    value: float = 0.0       # pot ratio, bet multiple, chips or number of streets
    cap: float = 0.0         # raise cap (additive) or max pot ratio (geometric)

    def __str__(self) -> str:
        if self.kind == SizeKind.POT_RELATIVE:
            return f"{self.value * 100:g}%"
        if self.kind == SizeKind.PREV_BET_RELATIVE:
            return f"{self.value:g}x"
        if self.kind == SizeKind.ADDITIVE:
            return f"{self.value:g}c" + (f"{self.cap:g}r" if self.cap else "")
        if self.kind == SizeKind.GEOMETRIC:
            streets = f"{self.value:g}" if self.value else ""
            cap = f"{self.cap * 100:g}%" if self.cap != float("inf") else ""
            return f"{streets}e{cap}"
        return "a"


_POT_RE = re.compile(r"^(\d+(?:\.\d+)?)%$")
_PREV_RE = re.compile(r"^(\d+(?:\.\d+)?)x$")
_ADD_RE = re.compile(r"^(\d+)c(?:(\d+)r)?$")
_GEO_RE = re.compile(r"^(\d*)e(?:(\d+(?:\.\d+)?)%)?$")


def parse_bet_size(token: str, allow_prev_bet: bool = False) -> BetSize:
    """
    Parse a single sizing token.

    Raises:
        ConfigurationError: if the token is not part of the grammar
    """
    t = token.strip().lower()
    if t == "a":
        return BetSize(SizeKind.ALL_IN)

    if m := _POT_RE.match(t):
        return BetSize(SizeKind.POT_RELATIVE, float(m.group(1)) / 100)

    if m := _PREV_RE.match(t):
        if not allow_prev_bet:
            raise ConfigurationError(f"previous-bet multiple {token!r} is only valid for raises")
        multiple = float(m.group(1))
        if multiple <= 1.0:
            raise ConfigurationError(f"raise multiple must exceed 1: {token!r}")
        return BetSize(SizeKind.PREV_BET_RELATIVE, multiple)

    if m := _ADD_RE.match(t):
        chips = int(m.group(1))
        if chips <= 0:
            raise ConfigurationError(f"constant size must be positive: {token!r}")
        return BetSize(SizeKind.ADDITIVE, float(chips), float(m.group(2) or 0))

    if m := _GEO_RE.match(t):
        streets = int(m.group(1)) if m.group(1) else 0
        if streets > 3:
            raise ConfigurationError(f"geometric size spans at most 3 streets: {token!r}")
        max_ratio = float(m.group(2)) / 100 if m.group(2) else float("inf")
        return BetSize(SizeKind.GEOMETRIC, float(streets), max_ratio)

    raise ConfigurationError(f"invalid bet size {token!r}")


def parse_sizes(text: str, allow_prev_bet: bool = False) -> tuple[BetSize, ...]:
    """
    Parse a comma separated sizing string.

    An empty string means no sizes, and a single trailing comma is allowed
    ("50%,"). Any other empty item is malformed.
    """
    if not isinstance(text, str):
        raise ConfigurationError(f"expected a sizing string, got {text!r}")
    if not text.strip():
        return ()
    tokens = [s.strip() for s in text.split(",")]
    if not tokens[-1]:
        tokens.pop()
    if not all(tokens):
        raise ConfigurationError(f"empty item in sizing string {text!r}")
    sizes = tuple(parse_bet_size(t, allow_prev_bet) for t in tokens)
    return tuple(sorted(set(sizes), key=_size_sort_key))


def _size_sort_key(size: BetSize) -> tuple:
    return (size.kind.value, size.value, size.cap)


@dataclass(frozen=True)
class BetSizeOptions:
    """Bet and raise sizes for one player on one street."""
    bet: tuple[BetSize, ...] = ()
    raise_: tuple[BetSize, ...] = ()

    @classmethod
    def parse(cls, bet_str: str, raise_str: str) -> "BetSizeOptions":
        return cls(
            bet=parse_sizes(bet_str),
            raise_=parse_sizes(raise_str, allow_prev_bet=True),
        )


@dataclass(frozen=True)
class DonkSizeOptions:
    """Sizes for a bet led into the previous street's aggressor."""
    donk: tuple[BetSize, ...] = ()

    @classmethod
    def parse(cls, donk_str: str) -> "DonkSizeOptions":
        return cls(donk=parse_sizes(donk_str))


@dataclass(frozen=True)
class TreeConfig:
    """
    Complete betting abstraction for one subgame.

    Per-street sizes are stored as ``(OOP, IP)`` pairs. Instances are frozen
    so the abstraction cannot change once solving starts.
    """
    initial_state: BoardState = BoardState.Flop
    starting_pot: int = 0
    effective_stack: int = 0
    flop_bet_sizes: tuple[BetSizeOptions, BetSizeOptions] = (BetSizeOptions(), BetSizeOptions())
    turn_bet_sizes: tuple[BetSizeOptions, BetSizeOptions] = (BetSizeOptions(), BetSizeOptions())
    river_bet_sizes: tuple[BetSizeOptions, BetSizeOptions] = (BetSizeOptions(), BetSizeOptions())
    turn_donk_sizes: Optional[DonkSizeOptions] = None
    river_donk_sizes: Optional[DonkSizeOptions] = None
    add_allin_threshold: float = DEFAULT_ADD_ALLIN_THRESHOLD
    force_allin_threshold: float = DEFAULT_FORCE_ALLIN_THRESHOLD
    merging_threshold: float = DEFAULT_MERGING_THRESHOLD

    def validate(self) -> None:
        """Raise AbstractionError if the configuration is inconsistent."""
        if self.starting_pot <= 0:
            raise AbstractionError("must be positive", field="starting_pot")
        if self.effective_stack <= 0:
            raise AbstractionError("must be positive", field="effective_stack")
        for name in ("add_allin_threshold", "force_allin_threshold", "merging_threshold"):
            value = getattr(self, name)
            if value < 0:
                raise AbstractionError(f"must be non-negative, got {value}", field=name)

    def bet_sizes(self, street: BoardState) -> tuple[BetSizeOptions, BetSizeOptions]:
        if street == BoardState.Flop:
            return self.flop_bet_sizes
        if street == BoardState.Turn:
            return self.turn_bet_sizes
        return self.river_bet_sizes

    def donk_sizes(self, street: BoardState) -> Optional[DonkSizeOptions]:
        if street == BoardState.Turn:
            return self.turn_donk_sizes
        if street == BoardState.River:
            return self.river_donk_sizes
        return None


def build_tree_config(
    config: Mapping[str, Any],
    initial_state: BoardState,
    **overrides,
) -> TreeConfig:
    """
    Build the betting abstraction from a job's fields.

    ``bet_size``/``raise_size`` apply to every street and both players unless
    overridden by ``{street}_bet_size`` or ``{oop,ip}_{street}_bet_size``
    fields (and the same for raises). Keyword overrides take precedence over
    the document's threshold fields.

    Raises:
        ConfigurationError: malformed sizing string (names the field)
        AbstractionError: inconsistent pot, stack or thresholds
    """
    streets = {}
    for street in ("flop", "turn", "river"):
        per_player = []
        for position in ("oop", "ip"):
            bet_field = _sizing_field(config, position, street, "bet")
            raise_field = _sizing_field(config, position, street, "raise")
            bet = _parse_field(config, bet_field, parse_sizes)
            raise_ = _parse_field(config, raise_field, lambda s: parse_sizes(s, allow_prev_bet=True))
            per_player.append(BetSizeOptions(bet=bet, raise_=raise_))
        streets[street] = tuple(per_player)

    def donk(name: str, default: Optional[str]) -> Optional[DonkSizeOptions]:
        text = config.get(name, default)
        if text is None:
            return None
        return DonkSizeOptions(donk=_parse_field({name: text}, name, parse_sizes))

    thresholds = {}
    for name, default in (
        ("add_allin_threshold", DEFAULT_ADD_ALLIN_THRESHOLD),
        ("force_allin_threshold", DEFAULT_FORCE_ALLIN_THRESHOLD),
        ("merging_threshold", DEFAULT_MERGING_THRESHOLD),
    ):
        value = overrides.pop(name, config.get(name, default))
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigurationError(f"expected a number, got {value!r}", field=name)
        thresholds[name] = float(value)

    tree_config = TreeConfig(
        initial_state=initial_state,
        starting_pot=int(config["starting_pot"]),
        effective_stack=int(config["effective_stack"]),
        flop_bet_sizes=streets["flop"],
        turn_bet_sizes=streets["turn"],
        river_bet_sizes=streets["river"],
        turn_donk_sizes=overrides.pop("turn_donk_sizes", donk("turn_donk_size", None)),
        river_donk_sizes=overrides.pop("river_donk_sizes", donk("river_donk_size", DEFAULT_RIVER_DONK_SIZE)),
        **thresholds,
    )
    if overrides:
        raise TypeError(f"Unknown tree config overrides: {sorted(overrides)}")

    tree_config.validate()
    logger.debug(
        "Built tree config: pot=%d stack=%d street=%s",
        tree_config.starting_pot, tree_config.effective_stack, initial_state.name,
    )
    return tree_config


def _sizing_field(config: Mapping[str, Any], position: str, street: str, kind: str) -> str:
    """Most specific field present: per player and street, per street, or shared."""
    for name in (f"{position}_{street}_{kind}_size", f"{street}_{kind}_size"):
        if name in config:
            return name
    return f"{kind}_size"


def _parse_field(config: Mapping[str, Any], name: str, parser):
    if name not in config or config[name] is None:
        raise ConfigurationError("missing required field", field=name)
    try:
        return parser(config[name])
    except ConfigurationError as e:
        raise ConfigurationError(str(e.args[0]), field=name, stage="abstraction") from e
