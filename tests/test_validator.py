"""Tests for plan and scenario validation."""

from dataclasses import replace

import pytest

from clue_campaign.common import Category, ConfigurationError, Difficulty, EliminationType, EventPurpose
from clue_campaign.campaign_types import (DramaticEvent, EliminationContext, GenerationRequest, InspectorNote,
                                          NarrativeThread)
from clue_campaign.validator import CampaignValidator


def _replace_clue(plan, at, **changes):
    clues = tuple(replace(c, **changes) if c.position == at else c for c in plan.clues)
    return replace(plan, clues=clues)


def _replace_elimination(plan, position, **changes):
    clue = plan.clue_at(position)
    return _replace_clue(plan, position, elimination=replace(clue.elimination, **changes))


class TestGeneratedCampaignsAreValid:
    """Planner and renderer output passes validation."""

    @pytest.mark.parametrize("difficulty", list(Difficulty))
    def test_plans_have_no_errors(self, planner, validator, difficulty):
        for seed in range(1, 21):
            result = validator.validate_plan(planner.plan(GenerationRequest(difficulty=difficulty, seed=seed)))
            assert result.valid, [e.to_dict() for e in result.errors]
            assert "CONTEXT_CONTRADICTS_SOLUTION" not in result.codes()
            assert "RED_HERRING_NOT_RESOLVED" not in result.codes()

    def test_scenarios_have_no_errors(self, planner, renderer, validator):
        for seed in range(1, 21):
            scenario = renderer.render(planner.plan(GenerationRequest(difficulty=Difficulty.BEGINNER, seed=seed)))
            result = validator.validate_scenario(scenario)
            assert result.valid, [e.to_dict() for e in result.errors]
            assert "LOCKED_ROOM_IS_CRIME_SCENE" not in result.codes()
            assert "INVALID_NOTE_REFERENCE" not in result.codes()

    def test_every_mechanism_has_a_context_check(self, validator):
        assert set(validator._context_checks) == set(EliminationType)


class TestPlanErrors:
    """Hard errors on corrupted plans."""

    def test_solution_eliminated(self, validator, beginner_plan):
        clue = beginner_plan.clues[0]
        solution_id = beginner_plan.solution.id_for(clue.elimination.category)
        plan = _replace_elimination(beginner_plan, 1, target_ids=clue.elimination.target_ids + (solution_id,))
        result = validator.validate_plan(plan)
        assert not result.valid
        assert "SOLUTION_ELIMINATED" in result.codes()

    def test_invalid_solution(self, validator, beginner_plan):
        plan = replace(beginner_plan, solution=replace(beginner_plan.solution, item_id="I99"))
        result = validator.validate_plan(plan)
        assert "INVALID_SOLUTION_ITEM" in result.codes()

    def test_unknown_element(self, validator, beginner_plan):
        plan = _replace_elimination(beginner_plan, 1, target_ids=("X01",))
        assert "INVALID_ELEMENT_REFERENCE" in validator.validate_plan(plan).codes()

    def test_type_mismatch(self, validator, beginner_plan):
        clue = beginner_plan.clues[0]
        wrong = next(t for t in EliminationType if t.category != clue.elimination.category)
        plan = _replace_elimination(beginner_plan, 1, type=wrong)
        assert "ELIMINATION_TYPE_MISMATCH" in validator.validate_plan(plan).codes()

    def test_empty_elimination(self, validator, beginner_plan):
        plan = _replace_elimination(beginner_plan, 2, target_ids=())
        assert "EMPTY_ELIMINATION" in validator.validate_plan(plan).codes()

    def test_duplicate_positions(self, validator, beginner_plan):
        plan = _replace_clue(beginner_plan, 2, position=1)
        result = validator.validate_plan(plan)
        assert not result.valid
        assert "CLUE_SEQUENCE_ERROR" in result.codes()

    def test_gap_in_positions(self, validator, beginner_plan):
        plan = replace(beginner_plan, clues=beginner_plan.clues[:5] + beginner_plan.clues[6:])
        result = validator.validate_plan(plan)
        assert "CLUE_SEQUENCE_ERROR" in result.codes()
        assert "CLUE_COUNT_MISMATCH" in result.codes()

    def test_red_herring_on_solution(self, validator, beginner_plan):
        herring = beginner_plan.red_herrings[0]
        solution_id = beginner_plan.solution.id_for(herring.target_category)
        plan = replace(beginner_plan, red_herrings=(replace(herring, target_element_id=solution_id),))
        assert "RED_HERRING_TARGETS_SOLUTION" in validator.validate_plan(plan).codes()


class TestPlanWarnings:
    """Soft problems stay warnings."""

    def test_incomplete_coverage_lists_missing_ids(self, validator, beginner_plan):
        removed = beginner_plan.clues[-1]
        remaining = tuple(c for c in beginner_plan.clues if c is not removed)
        result = validator.validate_plan(replace(beginner_plan, clues=remaining))
        category = removed.elimination.category
        coverage = result.coverage[category]
        still_covered = {t for c in remaining if c.elimination.category == category for t in c.elimination.target_ids}
        expected_missing = [i for i in validator.registry.ids(category)
                            if i != beginner_plan.solution.id_for(category) and i not in still_covered]
        assert coverage.missing == expected_missing
        assert coverage.covered == coverage.total - len(expected_missing)
        assert "INCOMPLETE_COVERAGE" in [w.code for w in result.warnings]

    def test_excluded_elements_are_reported_uncovered(self, planner, validator):
        excluded = ("S01", "S02")
        plan = planner.plan(GenerationRequest(difficulty=Difficulty.BEGINNER, seed=42, exclude_suspects=excluded))
        result = validator.validate_plan(plan)
        assert result.valid
        eliminated = {t for c in plan.clues if c.elimination.category == Category.SUSPECT
                      for t in c.elimination.target_ids}
        expected_missing = [i for i in validator.registry.ids(Category.SUSPECT)
                            if i != plan.solution.suspect_id and i not in eliminated]
        coverage = result.coverage[Category.SUSPECT]
        assert set(excluded) <= set(coverage.missing)
        assert coverage.missing == expected_missing
        warnings = [w for w in result.warnings if w.code == "INCOMPLETE_COVERAGE"]
        assert any(all(i in w.message for i in excluded) for w in warnings)
        assert "INCOMPLETE_COVERAGE" not in [e.code for e in result.errors]

    def test_unresolved_red_herring(self, validator, beginner_plan):
        herring = replace(beginner_plan.red_herrings[0], resolved_at=None)
        result = validator.validate_plan(replace(beginner_plan, red_herrings=(herring,)))
        assert result.valid
        assert "RED_HERRING_NOT_RESOLVED" in result.codes()

    def test_resolution_before_introduction(self, validator, beginner_plan):
        herring = beginner_plan.red_herrings[0]
        bad = replace(herring, resolved_at=herring.introduced_at)
        result = validator.validate_plan(replace(beginner_plan, red_herrings=(bad,)))
        assert "RED_HERRING_INVALID_RESOLUTION" in result.codes()

    def test_intro_on_missing_clue(self, validator, beginner_plan):
        bad = replace(beginner_plan.red_herrings[0], introduced_at=99)
        assert "RED_HERRING_INVALID_INTRO" in validator.validate_plan(replace(beginner_plan, red_herrings=(bad,))).codes()

    def test_thread_problems(self, validator, beginner_plan):
        plan = replace(beginner_plan, threads=(
            NarrativeThread(id="empty", name="Empty", clue_positions=(), is_red_herring=False),
            NarrativeThread(id="stray", name="Stray", clue_positions=(1, 99), is_red_herring=False),
        ))
        codes = validator.validate_plan(plan).codes()
        assert "EMPTY_NARRATIVE_THREAD" in codes
        assert "INVALID_THREAD_CLUE" in codes

    def test_event_problems(self, validator, beginner_plan):
        bad = DramaticEvent(event_type="earthquake", after_clue=99,
                            involved_suspect_ids=(beginner_plan.solution.suspect_id,), purpose=EventPurpose.TENSION)
        codes = validator.validate_plan(replace(beginner_plan, dramatic_events=(bad,))).codes()
        assert "UNKNOWN_DRAMATIC_EVENT" in codes
        assert "DRAMATIC_EVENT_INVALID_TRIGGER" in codes
        assert "DRAMATIC_EVENT_INVOLVES_GUILTY" in codes

    def test_forward_reference(self, validator, beginner_plan):
        plan = _replace_clue(beginner_plan, 3, back_references=(5,))
        result = validator.validate_plan(plan)
        assert result.valid
        assert "INVALID_CLUE_REFERENCE" in result.codes()

    def test_act_distribution_mismatch(self, validator, beginner_plan):
        plan = replace(beginner_plan, difficulty=Difficulty.EXPERT)
        codes = validator.validate_plan(plan).codes()
        assert "CLUE_COUNT_MISMATCH" in codes
        assert "ACT_DISTRIBUTION_MISMATCH" in codes


class TestContextChecks:
    """Per-mechanism context must not contradict the solution."""

    def _suspect_clue_plan(self, beginner_plan, etype, context):
        position = next(c.position for c in beginner_plan.clues if c.elimination.category == Category.SUSPECT)
        return _replace_elimination(beginner_plan, position, type=etype, context=context)

    def test_alibi_in_crime_scene(self, validator, beginner_plan):
        context = EliminationContext(alibi_location=beginner_plan.solution.location_id,
                                     alibi_time=beginner_plan.solution.time_id)
        plan = self._suspect_clue_plan(beginner_plan, EliminationType.GROUP_ALIBI, context)
        assert "CONTEXT_CONTRADICTS_SOLUTION" in validator.validate_plan(plan).codes()

    def test_unknown_context_location(self, validator, beginner_plan):
        plan = self._suspect_clue_plan(beginner_plan, EliminationType.MOTIVE_CLEARED,
                                       EliminationContext(alibi_location="L99"))
        result = validator.validate_plan(plan)
        assert not result.valid
        assert "INVALID_ELEMENT_REFERENCE" in result.codes()

    def test_securing_the_stolen_items_category(self, validator, registry, beginner_plan):
        position = next(c.position for c in beginner_plan.clues if c.elimination.category == Category.ITEM)
        stolen = registry.get(Category.ITEM, beginner_plan.solution.item_id)
        plan = _replace_elimination(beginner_plan, position, type=EliminationType.CATEGORY_SECURED,
                                    context=EliminationContext(item_category=stolen.category))
        assert "CONTEXT_CONTRADICTS_SOLUTION" in validator.validate_plan(plan).codes()

    def test_missing_check_rejected(self, registry, settings, monkeypatch):
        monkeypatch.setattr("clue_campaign.validator.EARLIER_TIME_TYPES", frozenset())
        with pytest.raises(ConfigurationError):
            CampaignValidator(registry, settings)


class TestScenarioChecks:
    """Rendered scenario specifics."""

    def test_empty_text(self, validator, beginner_scenario):
        clues = (replace(beginner_scenario.clues[0], text="   "),) + beginner_scenario.clues[1:]
        result = validator.validate_scenario(replace(beginner_scenario, clues=clues))
        assert not result.valid
        assert "EMPTY_CLUE_TEXT" in result.codes()

    def test_clue_eliminates_solution(self, validator, beginner_scenario):
        clue = beginner_scenario.clues[0]
        solution_id = beginner_scenario.solution.id_for(clue.category)
        clues = (replace(clue, eliminated_ids=(solution_id,)),) + beginner_scenario.clues[1:]
        result = validator.validate_scenario(replace(beginner_scenario, clues=clues))
        assert "CLUE_ELIMINATES_SOLUTION" in result.codes()

    def test_locked_crime_scene(self, validator, beginner_scenario):
        locked = beginner_scenario.locked_rooms + (beginner_scenario.solution.location_id,)
        result = validator.validate_scenario(replace(beginner_scenario, locked_rooms=locked))
        assert result.valid
        assert "LOCKED_ROOM_IS_CRIME_SCENE" in result.codes()

    def test_note_reference(self, validator, beginner_scenario):
        notes = (InspectorNote(id="N9", text="Compare clues.", related_clues=(1, 42)),)
        result = validator.validate_scenario(replace(beginner_scenario, inspector_notes=notes))
        assert "INVALID_NOTE_REFERENCE" in result.codes()

    def test_result_serialisation(self, validator, beginner_scenario):
        data = validator.validate_scenario(beginner_scenario).to_dict()
        assert set(data["coverage"]) == {"suspects", "items", "locations", "times"}
        assert data["valid"] is True
