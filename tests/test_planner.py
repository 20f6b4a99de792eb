"""Tests for the campaign planner."""

import json

import pytest

from clue_campaign.common import Act, Category, ConfigurationError, Difficulty, DeliveryType, Speaker
from clue_campaign.campaign_types import CampaignPlan, GenerationRequest

SEEDS = range(1, 41)


def _plans(planner, difficulty, seeds=SEEDS):
    for seed in seeds:
        yield planner.plan(GenerationRequest(difficulty=difficulty, seed=seed))


class TestReferenceCampaign:
    """Beginner difficulty with seed 42."""

    def test_clue_count_and_acts(self, beginner_plan):
        assert len(beginner_plan.clues) == 12
        assert sum(1 for c in beginner_plan.clues if c.act == Act.SETUP) == 4
        assert beginner_plan.clues[0].act == Act.SETUP
        assert beginner_plan.clues[-1].act == Act.RESOLUTION

    def test_red_herring_is_resolved(self, beginner_plan):
        assert len(beginner_plan.red_herrings) == 1
        herring = beginner_plan.red_herrings[0]
        assert herring.resolved_at is not None
        assert herring.resolved_at > herring.introduced_at

    def test_no_clue_targets_solution(self, beginner_plan):
        for clue in beginner_plan.clues:
            assert beginner_plan.solution.id_for(clue.elimination.category) not in clue.elimination.target_ids

    def test_plan_id_is_derived_from_seed(self, beginner_plan):
        assert beginner_plan.id.startswith(f"CMP-{42:x}-")
        assert beginner_plan.seed == 42


class TestSolutionIntegrity:
    """The solution survives every clue, for every difficulty."""

    @pytest.mark.parametrize("difficulty", list(Difficulty))
    def test_solution_never_eliminated(self, planner, difficulty):
        for plan in _plans(planner, difficulty):
            for clue in plan.clues:
                elimination = clue.elimination
                assert elimination.target_ids
                assert plan.solution.id_for(elimination.category) not in elimination.target_ids
            for herring in plan.red_herrings:
                assert herring.target_element_id != plan.solution.id_for(herring.target_category)

    @pytest.mark.parametrize("difficulty", list(Difficulty))
    def test_group_sizes_respect_limits(self, planner, settings, difficulty):
        profile = settings.difficulty(difficulty)
        for plan in _plans(planner, difficulty, range(1, 11)):
            for clue in plan.clues:
                size = len(clue.elimination.target_ids)
                assert size <= profile.max_group_size[clue.elimination.category]

    def test_mechanism_matches_category(self, planner):
        for plan in _plans(planner, Difficulty.EXPERT):
            for clue in plan.clues:
                assert clue.elimination.type.category == clue.elimination.category


class TestSequencing:
    """Positions, acts and references."""

    @pytest.mark.parametrize("difficulty", list(Difficulty))
    def test_positions_are_contiguous(self, planner, settings, difficulty):
        profile = settings.difficulty(difficulty)
        for plan in _plans(planner, difficulty):
            assert [c.position for c in plan.clues] == list(range(1, profile.clue_count + 1))

    @pytest.mark.parametrize("difficulty", list(Difficulty))
    def test_act_distribution(self, planner, settings, difficulty):
        profile = settings.difficulty(difficulty)
        for plan in _plans(planner, difficulty, range(1, 11)):
            for act, expected in profile.act_distribution.items():
                assert sum(1 for c in plan.clues if c.act == act) == expected

    def test_back_references_point_backwards(self, planner):
        for plan in _plans(planner, Difficulty.INTERMEDIATE):
            for clue in plan.clues:
                assert all(1 <= ref < clue.position for ref in clue.back_references)

    def test_delivery_matches_speaker(self, planner):
        for plan in _plans(planner, Difficulty.BEGINNER, range(1, 11)):
            for clue in plan.clues:
                if clue.delivery == DeliveryType.BUTLER:
                    assert clue.speaker == Speaker.ASHE
                elif clue.delivery == DeliveryType.INSPECTOR_NOTE:
                    assert clue.speaker == Speaker.INSPECTOR

    def test_narrative_arc_covers_all_clues(self, beginner_plan):
        arc = beginner_plan.narrative_arc
        assert [a.act for a in arc] == [Act.SETUP, Act.CONFRONTATION, Act.RESOLUTION]
        assert arc[0].start_position == 1
        assert arc[-1].end_position == len(beginner_plan.clues)


class TestRedHerringsAndEvents:
    """Red herrings resolve when required; events land on real clues."""

    def test_must_resolve(self, planner):
        for plan in _plans(planner, Difficulty.BEGINNER):
            for herring in plan.red_herrings:
                assert herring.resolved_at is not None
                assert herring.resolved_at > herring.introduced_at

    def test_optional_resolution(self, planner):
        for plan in _plans(planner, Difficulty.EXPERT, range(1, 11)):
            assert all(h.resolved_at is None for h in plan.red_herrings)

    def test_events_follow_existing_clues(self, planner):
        for plan in _plans(planner, Difficulty.INTERMEDIATE):
            positions = {c.position for c in plan.clues}
            for event in plan.dramatic_events:
                assert event.after_clue in positions
                assert len(event.involved_suspect_ids) <= 2

    def test_threads_reference_existing_clues(self, planner):
        for plan in _plans(planner, Difficulty.BEGINNER, range(1, 11)):
            positions = {c.position for c in plan.clues}
            for thread in plan.threads:
                assert thread.clue_positions
                assert set(thread.clue_positions) <= positions


class TestDeterminism:
    """Identical requests give byte-identical plans."""

    def test_same_seed_same_json(self, planner):
        request = GenerationRequest(difficulty=Difficulty.EXPERT, seed=2024)
        first = json.dumps(planner.plan(request).to_dict(), sort_keys=True)
        second = json.dumps(planner.plan(request).to_dict(), sort_keys=True)
        assert first == second

    def test_different_seeds_differ(self, planner):
        a = planner.plan(GenerationRequest(seed=1))
        b = planner.plan(GenerationRequest(seed=2))
        assert a.to_dict() != b.to_dict()

    def test_plan_round_trips_through_dict(self, beginner_plan):
        assert CampaignPlan.from_dict(beginner_plan.to_dict()) == beginner_plan


class TestRequests:
    """Request parsing, themes and exclusions."""

    def test_camel_case_request(self):
        request = GenerationRequest.from_dict({"difficulty": "expert", "excludeSuspects": ["S01"], "seed": "9"})
        assert request.difficulty == Difficulty.EXPERT
        assert request.exclude_suspects == ("S01",)
        assert request.seed == 9

    def test_unknown_difficulty(self):
        with pytest.raises(ConfigurationError):
            GenerationRequest.from_dict({"difficulty": "nightmare"})

    def test_requested_theme_is_used(self, planner):
        assert planner.plan(GenerationRequest(seed=5, theme_id="M03")).theme_id == "M03"

    def test_unknown_theme_falls_back(self, planner, registry):
        plan = planner.plan(GenerationRequest(seed=5, theme_id="M99"))
        assert registry.theme(plan.theme_id) is not None

    def test_excluded_elements_never_appear(self, planner):
        request = GenerationRequest(seed=77, exclude_suspects=("S01", "S02"), exclude_items=("I05",))
        plan = planner.plan(request)
        assert plan.solution.suspect_id not in ("S01", "S02")
        assert plan.solution.item_id != "I05"
        for clue in plan.clues:
            assert not {"S01", "S02", "I05"} & set(clue.elimination.target_ids)
        for event in plan.dramatic_events:
            assert not {"S01", "S02"} & set(event.involved_suspect_ids)

    def test_unknown_exclusion_rejected(self, planner):
        with pytest.raises(ConfigurationError):
            planner.plan(GenerationRequest(seed=1, exclude_times=("T42",)))

    def test_excluding_a_whole_category_rejected(self, planner, registry):
        request = GenerationRequest(seed=1, exclude_times=tuple(registry.ids(Category.TIME)))
        with pytest.raises(ConfigurationError):
            planner.plan(request)

    def test_too_few_elements_rejected(self, planner, registry):
        request = GenerationRequest(
            difficulty=Difficulty.BEGINNER, seed=1,
            exclude_suspects=tuple(registry.ids(Category.SUSPECT)[1:]),
            exclude_items=tuple(registry.ids(Category.ITEM)[1:]),
            exclude_locations=tuple(registry.ids(Category.LOCATION)[1:]),
            exclude_times=tuple(registry.ids(Category.TIME)[:-4]),
        )
        with pytest.raises(ConfigurationError):
            planner.plan(request)
