"""Tests for the generation pipeline facade."""

import pytest

from clue_campaign.common import ConfigurationError, Difficulty
from clue_campaign.campaign_types import GenerationRequest
from clue_campaign.pipeline import CampaignGenerator, CampaignValidationError
from clue_campaign.validator import CampaignValidator, ValidationIssue, ValidationResult


@pytest.fixture
def generator(registry, settings):
    return CampaignGenerator(registry, settings)


class TestGenerate:
    """Plan -> validate -> render -> validate."""

    def test_generate_returns_validated_pair(self, generator):
        result = generator.generate(GenerationRequest(difficulty=Difficulty.BEGINNER, seed=42))
        assert result.plan_validation.valid
        assert result.scenario_validation.valid
        assert result.scenario.campaign_id == result.plan.id
        assert len(result.scenario.clues) == 12

    def test_created_at_is_passed_through(self, generator):
        result = generator.generate(GenerationRequest(seed=3), created_at="2024-05-01T12:00:00Z")
        assert result.scenario.metadata.created_at == "2024-05-01T12:00:00Z"

    def test_plan_only(self, generator):
        plan = generator.plan(GenerationRequest(seed=8, difficulty=Difficulty.EXPERT))
        assert len(plan.clues) == 10

    def test_to_dict_has_all_parts(self, generator):
        data = generator.generate(GenerationRequest(seed=4)).to_dict()
        assert set(data) == {"plan", "scenario", "plan_validation", "scenario_validation"}

    def test_configuration_errors_propagate(self, generator):
        with pytest.raises(ConfigurationError):
            generator.generate(GenerationRequest(seed=1, exclude_suspects=("S77",)))


class TestValidationFailure:
    """Hard errors stop the pipeline before anything is handed out."""

    def test_invalid_plan_raises(self, generator, monkeypatch):
        failed = ValidationResult(valid=False, errors=[ValidationIssue("SOLUTION_ELIMINATED", "broken")],
                                  warnings=[], coverage={})
        monkeypatch.setattr(CampaignValidator, "validate_plan", lambda self, plan: failed)
        with pytest.raises(CampaignValidationError) as excinfo:
            generator.generate(GenerationRequest(seed=1))
        assert excinfo.value.result is failed
        assert "SOLUTION_ELIMINATED" in str(excinfo.value)

    def test_invalid_scenario_raises(self, generator, monkeypatch):
        failed = ValidationResult(valid=False, errors=[ValidationIssue("EMPTY_CLUE_TEXT", "blank")],
                                  warnings=[], coverage={})
        monkeypatch.setattr(CampaignValidator, "validate_scenario", lambda self, scenario: failed)
        with pytest.raises(CampaignValidationError):
            generator.generate(GenerationRequest(seed=1))

    def test_validation_error_is_runtime_error(self):
        assert issubclass(CampaignValidationError, RuntimeError)
