"""Tests for the card-symbol setup solver."""

import copy

import pytest

from clue_campaign.common import Category, SETUP_CATEGORY_ORDER, SYMBOLS
from clue_campaign.campaign_types import Solution
from clue_campaign.registry import DomainRegistry, load_data_from_json
from clue_campaign.solvers import SymbolSetupSolver
from clue_campaign.solvers.symbol_setup_solver import FALLBACK_INTRO


def _cards(registry, solution):
    return [registry.card(solution.id_for(category)) for category in Category]


class TestForwardSetup:
    """Seed -> four instructions and a solution."""

    def test_four_instructions_in_dvd_order(self, setup_solver):
        setup = setup_solver.generate_setup(seed=42)
        assert [i.category for i in setup.instructions] == list(SETUP_CATEGORY_ORDER)
        assert [i.step for i in setup.instructions] == [1, 2, 3, 4]

    def test_instructions_match_solution(self, setup_solver):
        setup = setup_solver.generate_setup(seed=42)
        for instruction in setup.instructions:
            assert instruction.card.card_id == setup.solution.id_for(instruction.category)
            assert instruction.card.card_type == instruction.category

    def test_cards_show_the_symbol(self, setup_solver):
        for seed in range(1, 31):
            setup = setup_solver.generate_setup(seed=seed)
            if setup.used_fallback:
                continue
            for instruction in setup.instructions:
                assert instruction.card.symbol_at(instruction.position) == instruction.symbol
                assert instruction.symbol in instruction.instruction
                assert instruction.position_name in instruction.instruction

    def test_deterministic(self, setup_solver):
        assert setup_solver.generate_setup(seed=7).to_dict() == setup_solver.generate_setup(seed=7).to_dict()

    def test_narrative_intro(self, setup_solver):
        setup = setup_solver.generate_setup(seed=3)
        if not setup.used_fallback:
            assert setup.instructions[0].symbol in setup.narrative_intro


class TestInverseLookup:
    """Solution -> (symbol, position)."""

    def test_generated_setup_is_found(self, setup_solver, registry):
        for seed in range(1, 21):
            setup = setup_solver.generate_setup(seed=seed)
            if setup.used_fallback:
                continue
            s = setup.solution
            match = setup_solver.find_symbol_for_solution(s.suspect_id, s.item_id, s.location_id, s.time_id)
            assert match is not None
            assert match.position <= setup.instructions[0].position
            assert all(card.symbol_at(match.position) == match.symbol for card in _cards(registry, s))

    def test_unknown_ids(self, setup_solver):
        assert setup_solver.find_symbol_for_solution("S99", "I01", "L01", "T01") is None

    def test_lowest_position_wins(self, setup_solver, registry):
        setup = setup_solver.generate_setup(seed=11)
        s = setup.solution
        match = setup_solver.find_symbol_for_solution(s.suspect_id, s.item_id, s.location_id, s.time_id)
        if match is None:
            pytest.skip("fallback setup")
        cards = _cards(registry, s)
        for position in range(1, match.position):
            assert len({card.symbol_at(position) for card in cards}) > 1

    def test_explain_solution(self, setup_solver):
        setup = setup_solver.generate_setup(seed=5)
        lines = setup_solver.explain_solution(setup.solution)
        if setup.used_fallback:
            return
        assert lines is not None
        assert len(lines) == 4

    def test_candidates(self, setup_solver, registry):
        found = setup_solver.candidates("clock", 1)
        for category, card_ids in found.items():
            assert all(registry.card(c).symbol_at(1) == "clock" for c in card_ids)

    def test_candidates_reject_bad_position(self, setup_solver):
        with pytest.raises(ValueError):
            setup_solver.candidates("clock", 9)


class TestCompleteness:
    """Every solution the forward protocol deals is in the reachable set."""

    @pytest.fixture(scope="class")
    def reachable(self, registry):
        return set(SymbolSetupSolver(registry).reachable_solutions())

    def test_reachable_set_is_nonempty(self, reachable):
        assert reachable

    def test_sampled_setups_are_reachable(self, setup_solver, reachable):
        for seed in range(1, 51):
            setup = setup_solver.generate_setup(seed=seed)
            if not setup.used_fallback:
                assert setup.solution in reachable

    def test_reachable_solutions_have_a_symbol(self, setup_solver, reachable):
        for solution in sorted(reachable, key=lambda s: (s.suspect_id, s.item_id, s.location_id, s.time_id))[:25]:
            assert setup_solver.find_symbol_for_solution(
                solution.suspect_id, solution.item_id, solution.location_id, solution.time_id) is not None

    def test_inverse_agrees_with_reachable_set(self, setup_solver, registry, reachable):
        every = [Solution(s, i, l, t) for s in registry.ids(Category.SUSPECT)[:3] for i in registry.ids(Category.ITEM)[:3]
                 for l in registry.ids(Category.LOCATION)[:3] for t in registry.ids(Category.TIME)[:3]]
        for solution in every:
            found = setup_solver.find_symbol_for_solution(
                solution.suspect_id, solution.item_id, solution.location_id, solution.time_id)
            assert (found is not None) == (solution in reachable)

    def test_symbols_are_known(self, registry):
        assert all(symbol in SYMBOLS for card in registry.cards for symbol in card.symbols)


@pytest.fixture(scope="module")
def disjoint_solver():
    """Every deck carries one symbol of its own, so no symbol spans all four decks."""
    card_data = copy.deepcopy(load_data_from_json("card_symbols.json"))
    deck_symbol = dict(zip(Category, SYMBOLS))
    for card in card_data["cards"]:
        card["symbols"] = [deck_symbol[Category(card["card_type"])]] * len(card["symbols"])
    registry = DomainRegistry.from_data(load_data_from_json("elements.json"), card_data)
    return SymbolSetupSolver(registry)


class TestFallbackSetup:
    """Without a shared symbol the forward protocol still deals a Case File."""

    def test_forward_falls_back(self, disjoint_solver):
        for seed in (1, 42, 2024):
            setup = disjoint_solver.generate_setup(seed=seed)
            assert setup.used_fallback
            assert setup.narrative_intro == FALLBACK_INTRO
            assert [i.category for i in setup.instructions] == list(SETUP_CATEGORY_ORDER)
            for instruction in setup.instructions:
                assert instruction.instruction == f"Place the \"{instruction.card.card_name}\" card in the Case File Envelope."
                assert instruction.card.card_id == setup.solution.id_for(instruction.category)

    def test_fallback_is_deterministic(self, disjoint_solver):
        assert disjoint_solver.generate_setup(seed=9).to_dict() == disjoint_solver.generate_setup(seed=9).to_dict()

    def test_inverse_finds_no_match(self, disjoint_solver):
        s = disjoint_solver.generate_setup(seed=42).solution
        assert disjoint_solver.find_symbol_for_solution(s.suspect_id, s.item_id, s.location_id, s.time_id) is None
        assert disjoint_solver.explain_solution(s) is None

    def test_nothing_is_reachable(self, disjoint_solver):
        assert disjoint_solver.reachable_solutions() == []
