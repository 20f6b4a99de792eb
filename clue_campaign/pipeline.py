from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging

from .campaign_types import CampaignPlan, GeneratedScenario, GenerationRequest
from .planner import CampaignPlanner
from .registry import DomainRegistry, get_registry
from .renderer import ClueRenderer
from .settings import CampaignSettings, get_campaign_settings
from .validator import CampaignValidator, ValidationResult

logger = logging.getLogger(__name__)


class CampaignValidationError(RuntimeError):
    """A generated plan or scenario has hard errors and must not be handed out."""

    def __init__(self, message: str, result: ValidationResult):
        super().__init__(message)
        self.result = result


@dataclass(frozen=True)
class GenerationResult:
    plan: CampaignPlan
    scenario: GeneratedScenario
    plan_validation: ValidationResult
    scenario_validation: ValidationResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            "plan": self.plan.to_dict(),
            "scenario": self.scenario.to_dict(),
            "plan_validation": self.plan_validation.to_dict(),
            "scenario_validation": self.scenario_validation.to_dict(),
        }


class CampaignGenerator:
    """Plan -> validate -> render -> validate, wired with one shared registry and settings."""

    def __init__(self, registry: Optional[DomainRegistry] = None, settings: Optional[CampaignSettings] = None):
        self.registry = registry or get_registry()
        self.settings = settings or get_campaign_settings()
        self.planner = CampaignPlanner(self.registry, self.settings)
        self.renderer = ClueRenderer(self.registry)
        self.validator = CampaignValidator(self.registry, self.settings)

    def plan(self, request: Optional[GenerationRequest] = None) -> CampaignPlan:
        plan = self.planner.plan(request)
        self._require_valid(f"Campaign plan {plan.id}", self.validator.validate_plan(plan))
        return plan

    def generate(self, request: Optional[GenerationRequest] = None,
                 created_at: Optional[str] = None) -> GenerationResult:
        plan = self.planner.plan(request)
        plan_validation = self._require_valid(f"Campaign plan {plan.id}", self.validator.validate_plan(plan))
        scenario = self.renderer.render(plan, created_at=created_at)
        scenario_validation = self._require_valid(f"Scenario {scenario.id}", self.validator.validate_scenario(scenario))
        return GenerationResult(plan=plan, scenario=scenario, plan_validation=plan_validation,
                                scenario_validation=scenario_validation)

    @staticmethod
    def _require_valid(label: str, result: ValidationResult) -> ValidationResult:
        if not result.valid:
            codes = ", ".join(issue.code for issue in result.errors)
            logger.error(f"{label} failed validation: {codes}")
            raise CampaignValidationError(f"{label} failed validation: {codes}", result)
        for warning in result.warnings:
            logger.warning(f"{label}: {warning.code}: {warning.message}")
        return result
