"""Tests for the bet sizing abstraction."""

import pytest

from postflop.errors import AbstractionError, ConfigurationError
from postflop.game.abstraction import (
    BetSize, BetSizeOptions, DonkSizeOptions, SizeKind, TreeConfig,
    build_tree_config, parse_bet_size, parse_sizes,
)
from postflop.game.scenario import BoardState


class TestParseBetSize:
    def test_pot_relative(self):
        assert parse_bet_size("50%") == BetSize(SizeKind.POT_RELATIVE, 0.5)

    def test_prev_bet_relative_only_for_raises(self):
        assert parse_bet_size("2.5x", allow_prev_bet=True) == BetSize(SizeKind.PREV_BET_RELATIVE, 2.5)
        with pytest.raises(ConfigurationError):
            parse_bet_size("2.5x")

    def test_additive_with_cap(self):
        size = parse_bet_size("100c3r")
        assert size.kind == SizeKind.ADDITIVE
        assert size.value == 100
        assert size.cap == 3

    def test_geometric(self):
        assert parse_bet_size("e") == BetSize(SizeKind.GEOMETRIC, 0.0, float("inf"))
        assert parse_bet_size("2e150%") == BetSize(SizeKind.GEOMETRIC, 2.0, 1.5)

    def test_all_in(self):
        assert parse_bet_size("A").kind == SizeKind.ALL_IN

    @pytest.mark.parametrize("token", ["", "50", "abc", "1x", "4e", "-10%"])
    def test_invalid(self, token):
        with pytest.raises(ConfigurationError):
            parse_bet_size(token, allow_prev_bet=True)

    def test_str_round_trip(self):
        for token in ("50%", "100c3r", "2e150%", "e", "a"):
            assert str(parse_bet_size(token)) == token


class TestParseSizes:
    def test_sorted_and_deduplicated(self):
        sizes = parse_sizes("100%, 33%, 100%")
        assert [str(s) for s in sizes] == ["33%", "100%"]

    def test_empty_string_means_no_sizes(self):
        assert parse_sizes("") == ()

    def test_trailing_comma_allowed(self):
        assert parse_sizes("50%,") == parse_sizes("50%")

    @pytest.mark.parametrize("text", [",", " , , ", "50%,,75%", ",50%", "50%,,"])
    def test_empty_item_rejected(self, text):
        with pytest.raises(ConfigurationError):
            parse_sizes(text)

    def test_empty_item_names_field(self, flop_scenario):
        with pytest.raises(ConfigurationError) as exc:
            build_tree_config({**flop_scenario, "bet_size": ","}, BoardState.Flop)
        assert exc.value.field == "bet_size"

    def test_options(self):
        options = BetSizeOptions.parse("50%", "2.5x")
        assert options.bet == (BetSize(SizeKind.POT_RELATIVE, 0.5),)
        assert options.raise_ == (BetSize(SizeKind.PREV_BET_RELATIVE, 2.5),)
        assert DonkSizeOptions.parse("50%").donk == options.bet


class TestBuildTreeConfig:
    def test_defaults(self, flop_scenario):
        config = build_tree_config(flop_scenario, BoardState.Flop)
        assert config.initial_state == BoardState.Flop
        assert config.starting_pot == 20
        assert config.effective_stack == 100
        assert config.add_allin_threshold == 1.5
        assert config.force_allin_threshold == 0.15
        assert config.merging_threshold == 0.1
        assert config.turn_donk_sizes is None
        assert config.river_donk_sizes == DonkSizeOptions.parse("50%")

    def test_shared_sizes(self, flop_scenario):
        config = build_tree_config(flop_scenario, BoardState.Flop)
        expected = BetSizeOptions.parse("50%", "50%")
        for street in BoardState:
            assert config.bet_sizes(street) == (expected, expected)

    def test_per_street_and_player_overrides(self, flop_scenario):
        scenario = {**flop_scenario, "river_bet_size": "75%", "ip_turn_raise_size": "3x"}
        config = build_tree_config(scenario, BoardState.Flop)
        assert config.river_bet_sizes[0].bet == parse_sizes("75%")
        assert config.river_bet_sizes[1].bet == parse_sizes("75%")
        assert config.turn_bet_sizes[0].raise_ == parse_sizes("50%")
        assert config.turn_bet_sizes[1].raise_ == parse_sizes("3x", allow_prev_bet=True)
        assert config.flop_bet_sizes[1].bet == parse_sizes("50%")

    def test_donk_fields_are_independent(self, flop_scenario):
        config = build_tree_config({**flop_scenario, "turn_donk_size": "33%"}, BoardState.Flop)
        assert config.donk_sizes(BoardState.Turn) == DonkSizeOptions.parse("33%")
        assert config.donk_sizes(BoardState.River) == DonkSizeOptions.parse("50%")
        assert config.donk_sizes(BoardState.Flop) is None

    def test_threshold_overrides(self, flop_scenario):
        config = build_tree_config(flop_scenario, BoardState.Flop, merging_threshold=0.0)
        assert config.merging_threshold == 0.0

    def test_unknown_override(self, flop_scenario):
        with pytest.raises(TypeError):
            build_tree_config(flop_scenario, BoardState.Flop, rake_rate=0.05)

    def test_malformed_sizing_names_field(self, flop_scenario):
        with pytest.raises(ConfigurationError) as exc:
            build_tree_config({**flop_scenario, "raise_size": "lots"}, BoardState.Flop)
        assert exc.value.field == "raise_size"
        assert exc.value.stage == "abstraction"

    def test_malformed_donk_size(self, flop_scenario):
        with pytest.raises(ConfigurationError) as exc:
            build_tree_config({**flop_scenario, "river_donk_size": "2x"}, BoardState.Flop)
        assert exc.value.field == "river_donk_size"

    def test_negative_stack(self, flop_scenario):
        with pytest.raises(AbstractionError) as exc:
            build_tree_config({**flop_scenario, "effective_stack": -5}, BoardState.Flop)
        assert exc.value.field == "effective_stack"

    def test_negative_threshold(self, flop_scenario):
        with pytest.raises(AbstractionError):
            build_tree_config({**flop_scenario, "force_allin_threshold": -0.1}, BoardState.Flop)

    def test_frozen(self, flop_scenario):
        config = build_tree_config(flop_scenario, BoardState.Flop)
        with pytest.raises(AttributeError):
            config.starting_pot = 40

    def test_validate(self):
        with pytest.raises(AbstractionError):
            TreeConfig(starting_pot=0, effective_stack=100).validate()
