from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Any, Iterable, Sequence
import logging

from .common import (Category, ConfigurationError, Difficulty, EliminationType, ALIBI_TYPES,
                     EARLIER_TIME_TYPES, ACT_ORDER)
from .campaign_types import CampaignPlan, EliminationContext, GeneratedScenario, Solution
from .registry import DomainRegistry, get_registry
from .settings import CampaignSettings, get_campaign_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationIssue:
    code: str
    message: str
    field: Optional[str] = None
    suggestion: Optional[str] = None

    def to_dict(self) -> Dict[str, str]:
        data = {"code": self.code, "message": self.message}
        if self.field is not None:
            data["field"] = self.field
        if self.suggestion is not None:
            data["suggestion"] = self.suggestion
        return data


@dataclass(frozen=True)
class CategoryCoverage:
    total: int
    covered: int
    missing: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"total": self.total, "covered": self.covered, "missing": list(self.missing)}


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: List[ValidationIssue]
    warnings: List[ValidationIssue]
    coverage: Dict[Category, CategoryCoverage]

    def codes(self) -> List[str]:
        return [issue.code for issue in self.errors + self.warnings]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "coverage": {category.plural: cov.to_dict() for category, cov in self.coverage.items()},
        }


class _Report:
    """Collects issues for one validation run."""

    def __init__(self):
        self.errors: List[ValidationIssue] = []
        self.warnings: List[ValidationIssue] = []

    def error(self, code: str, message: str, field: Optional[str] = None):
        self.errors.append(ValidationIssue(code=code, message=message, field=field))

    def warn(self, code: str, message: str, suggestion: Optional[str] = None):
        self.warnings.append(ValidationIssue(code=code, message=message, suggestion=suggestion))

    def result(self, coverage: Dict[Category, CategoryCoverage]) -> ValidationResult:
        return ValidationResult(valid=not self.errors, errors=self.errors, warnings=self.warnings, coverage=coverage)


ContextCheck = Callable[[EliminationContext, Solution, int, "_Report"], None]


class CampaignValidator:
    """
    Checks campaign plans and rendered scenarios against the registry.

    Hard errors mean the puzzle cannot be solved as dealt (the solution is
    cleared, ids do not exist, positions are broken). Everything else is a
    warning: the campaign still plays, but less well than it could.
    """

    def __init__(self, registry: Optional[DomainRegistry] = None, settings: Optional[CampaignSettings] = None):
        self.registry = registry or get_registry()
        self.settings = settings or get_campaign_settings()
        self._context_checks: Dict[EliminationType, ContextCheck] = {}
        for etype in ALIBI_TYPES:
            self._context_checks[etype] = self._check_alibi_context
        for etype in EARLIER_TIME_TYPES:
            self._context_checks[etype] = self._check_earlier_time_context
        self._context_checks[EliminationType.CATEGORY_SECURED] = self._check_category_secured_context
        self._context_checks[EliminationType.LOCATION_OCCUPIED] = self._check_occupancy_context
        self._context_checks[EliminationType.LOCATION_VISIBILITY] = self._check_occupancy_context
        for etype in (EliminationType.PHYSICAL_IMPOSSIBILITY, EliminationType.MOTIVE_CLEARED,
                      EliminationType.ITEM_SIGHTING, EliminationType.ITEM_ACCOUNTED,
                      EliminationType.ITEM_CONDITION, EliminationType.LOCATION_INACCESSIBLE,
                      EliminationType.LOCATION_UNDISTURBED, EliminationType.TIMELINE_IMPOSSIBILITY):
            self._context_checks[etype] = self._check_context_references
        missing = [t.value for t in EliminationType if t not in self._context_checks]
        if missing:
            logger.error(f"Elimination types without context checks: {missing}")
            raise ConfigurationError(f"Cannot validate elimination types: {missing}")

    # --- Plans ---

    def validate_plan(self, plan: CampaignPlan) -> ValidationResult:
        report = _Report()
        solution_ok = self._check_solution(plan.solution, report)
        positions = [clue.position for clue in plan.clues]
        self._check_sequence(positions, report)
        valid_positions = set(positions)

        eliminated: Dict[Category, set] = {category: set() for category in Category}
        for clue in plan.clues:
            elimination = clue.elimination
            where = f"clues[{clue.position}]"
            if elimination.type.category != elimination.category:
                report.error("ELIMINATION_TYPE_MISMATCH",
                             f"Clue {clue.position}: {elimination.type.value} clears "
                             f"{elimination.type.category.plural}, not {elimination.category.plural}", where)
            self._check_targets(clue.position, elimination.category, elimination.target_ids, plan.solution,
                                "SOLUTION_ELIMINATED", report, where)
            eliminated[elimination.category].update(elimination.target_ids)
            self._check_back_references(clue.position, clue.back_references, report)
            if solution_ok:
                self._context_checks[elimination.type](elimination.context, plan.solution, clue.position, report)

        coverage = self._coverage(plan.solution, eliminated, report)
        self._check_distribution(plan.difficulty, [(c.position, c.act) for c in plan.clues], report)
        self._check_red_herrings(plan, valid_positions, report)
        self._check_threads(plan, valid_positions, report)
        self._check_events(plan.solution, [(e.event_type, e.after_clue, e.involved_suspect_ids)
                                           for e in plan.dramatic_events], valid_positions, report)
        return self._finish(f"plan {plan.id}", report, coverage)

    # --- Scenarios ---

    def validate_scenario(self, scenario: GeneratedScenario) -> ValidationResult:
        report = _Report()
        self._check_solution(scenario.solution, report)
        positions = [clue.position for clue in scenario.clues]
        self._check_sequence(positions, report)
        valid_positions = set(positions)

        eliminated: Dict[Category, set] = {category: set() for category in Category}
        for clue in scenario.clues:
            where = f"clues[{clue.position}]"
            if not clue.text or not clue.text.strip():
                report.error("EMPTY_CLUE_TEXT", f"Clue {clue.position} has no text", where)
            self._check_targets(clue.position, clue.category, clue.eliminated_ids, scenario.solution,
                                "CLUE_ELIMINATES_SOLUTION", report, where)
            eliminated[clue.category].update(clue.eliminated_ids)
            self._check_back_references(clue.position, clue.references, report)

        coverage = self._coverage(scenario.solution, eliminated, report)
        if scenario.metadata.total_clues != len(scenario.clues):
            report.warn("CLUE_COUNT_MISMATCH",
                        f"Metadata announces {scenario.metadata.total_clues} clues but the scenario has "
                        f"{len(scenario.clues)}")
        self._check_distribution(scenario.metadata.difficulty, [(c.position, c.act) for c in scenario.clues], report)
        self._check_events(scenario.solution, [(e.event_type, e.after_clue, e.affected_suspect_ids)
                                               for e in scenario.dramatic_events], valid_positions, report)

        for note in scenario.inspector_notes:
            bad = [p for p in note.related_clues if p not in valid_positions]
            if bad:
                report.warn("INVALID_NOTE_REFERENCE", f"Inspector note {note.id} refers to missing clues {bad}")

        for room_id in scenario.locked_rooms:
            if not self.registry.has(Category.LOCATION, room_id):
                report.error("INVALID_ELEMENT_REFERENCE", f"Locked room '{room_id}' is not a location",
                             "locked_rooms")
            elif room_id == scenario.solution.location_id:
                report.warn("LOCKED_ROOM_IS_CRIME_SCENE",
                            f"{self.registry.display_name(Category.LOCATION, room_id)} is locked but is where "
                            f"the theft happened", suggestion="Remove the crime scene from the locked rooms")
        return self._finish(f"scenario {scenario.id}", report, coverage)

    # --- Shared checks ---

    def _check_solution(self, solution: Solution, report: _Report) -> bool:
        ok = True
        for category in Category:
            element_id = solution.id_for(category)
            if not self.registry.has(category, element_id):
                report.error(f"INVALID_SOLUTION_{category.value.upper()}",
                             f"Solution {category.value} '{element_id}' does not exist", f"solution.{category.value}")
                ok = False
        return ok

    def _check_sequence(self, positions: Sequence[int], report: _Report):
        duplicates = sorted({p for p in positions if positions.count(p) > 1})
        if duplicates:
            report.error("CLUE_SEQUENCE_ERROR", f"Duplicate clue positions: {duplicates}", "clues")
        elif sorted(positions) != list(range(1, len(positions) + 1)):
            report.error("CLUE_SEQUENCE_ERROR",
                         f"Clue positions must run 1..{len(positions)} without gaps, got {sorted(positions)}",
                         "clues")

    def _check_targets(self, position: int, category: Category, target_ids: Sequence[str], solution: Solution,
                       solution_code: str, report: _Report, where: str):
        if not target_ids:
            report.error("EMPTY_ELIMINATION", f"Clue {position} eliminates nothing", where)
            return
        for element_id in target_ids:
            if not self.registry.has(category, element_id):
                report.error("INVALID_ELEMENT_REFERENCE",
                             f"Clue {position} eliminates unknown {category.value} '{element_id}'", where)
            elif element_id == solution.id_for(category):
                report.error(solution_code,
                             f"Clue {position} eliminates the solution "
                             f"{self.registry.display_name(category, element_id)}", where)

    def _check_back_references(self, position: int, references: Iterable[int], report: _Report):
        bad = [r for r in references if not (1 <= r < position)]
        if bad:
            report.warn("INVALID_CLUE_REFERENCE", f"Clue {position} refers back to {bad}, which are not earlier clues")

    def _coverage(self, solution: Solution, eliminated: Dict[Category, set],
                  report: _Report) -> Dict[Category, CategoryCoverage]:
        coverage = {}
        for category in Category:
            candidates = [i for i in self.registry.ids(category) if i != solution.id_for(category)]
            missing = [i for i in candidates if i not in eliminated[category]]
            coverage[category] = CategoryCoverage(total=len(candidates), covered=len(candidates) - len(missing),
                                                  missing=missing)
            if missing:
                report.warn("INCOMPLETE_COVERAGE",
                            f"{len(missing)} {category.plural} are never eliminated: {', '.join(missing)}",
                            suggestion=f"Add clues that clear {', '.join(missing)}")
        return coverage

    def _check_distribution(self, difficulty: Difficulty, clue_acts: List[tuple], report: _Report):
        expected = self.settings.difficulty(difficulty)
        if len(clue_acts) != expected.clue_count:
            report.warn("CLUE_COUNT_MISMATCH",
                        f"{difficulty.value} expects {expected.clue_count} clues, found {len(clue_acts)}")
        for act in ACT_ORDER:
            count = sum(1 for _, clue_act in clue_acts if clue_act == act)
            if count != expected.act_distribution[act]:
                report.warn("ACT_DISTRIBUTION_MISMATCH",
                            f"{act.value} has {count} clues, {difficulty.value} expects "
                            f"{expected.act_distribution[act]}")

    def _check_red_herrings(self, plan: CampaignPlan, valid_positions: set, report: _Report):
        must_resolve = self.settings.difficulty(plan.difficulty).red_herrings_must_resolve
        for index, herring in enumerate(plan.red_herrings):
            where = f"red_herrings[{index}]"
            category = herring.target_category
            if not self.registry.has(category, herring.target_element_id):
                report.error("INVALID_ELEMENT_REFERENCE",
                             f"Red herring points at unknown {category.value} '{herring.target_element_id}'", where)
            elif herring.target_element_id == plan.solution.id_for(category):
                report.error("RED_HERRING_TARGETS_SOLUTION",
                             f"Red herring points suspicion at the real {category.value}", where)
            if herring.introduced_at not in valid_positions:
                report.warn("RED_HERRING_INVALID_INTRO",
                            f"Red herring on {herring.target_element_id} is introduced at missing clue "
                            f"{herring.introduced_at}")
            if herring.resolved_at is None:
                if must_resolve:
                    report.warn("RED_HERRING_NOT_RESOLVED",
                                f"Red herring on {herring.target_element_id} is never explained",
                                suggestion="Resolve it at a later clue")
            elif herring.resolved_at not in valid_positions or herring.resolved_at <= herring.introduced_at:
                report.warn("RED_HERRING_INVALID_RESOLUTION",
                            f"Red herring on {herring.target_element_id} resolves at clue {herring.resolved_at}, "
                            f"which is not a clue after {herring.introduced_at}")

    def _check_threads(self, plan: CampaignPlan, valid_positions: set, report: _Report):
        for thread in plan.threads:
            if not thread.clue_positions:
                report.warn("EMPTY_NARRATIVE_THREAD", f"Thread '{thread.name}' has no clues")
                continue
            bad = [p for p in thread.clue_positions if p not in valid_positions]
            if bad:
                report.warn("INVALID_THREAD_CLUE", f"Thread '{thread.name}' refers to missing clues {bad}")

    def _check_events(self, solution: Solution, events: List[tuple], valid_positions: set, report: _Report):
        for event_type, after_clue, suspect_ids in events:
            if self.settings.dramatic_event_type(event_type) is None:
                report.warn("UNKNOWN_DRAMATIC_EVENT", f"Unknown dramatic event type '{event_type}'")
            if after_clue not in valid_positions:
                report.warn("DRAMATIC_EVENT_INVALID_TRIGGER",
                            f"Event '{event_type}' follows clue {after_clue}, which does not exist")
            if solution.suspect_id in suspect_ids:
                report.warn("DRAMATIC_EVENT_INVOLVES_GUILTY",
                            f"Event '{event_type}' puts the guilty suspect in the spotlight",
                            suggestion="Fine as misdirection, otherwise involve innocent suspects only")

    def _finish(self, label: str, report: _Report, coverage: Dict[Category, CategoryCoverage]) -> ValidationResult:
        result = report.result(coverage)
        if result.valid:
            logger.info(f"Validated {label}: no errors, {len(result.warnings)} warnings")
        else:
            logger.warning(f"Validated {label}: {len(result.errors)} errors ({', '.join(e.code for e in result.errors)})")
        return result

    # --- Per-mechanism context checks ---

    def _check_context_references(self, context: EliminationContext, solution: Solution, position: int,
                                  report: _Report) -> bool:
        ok = True
        if context.alibi_location and not self.registry.has(Category.LOCATION, context.alibi_location):
            report.error("INVALID_ELEMENT_REFERENCE",
                         f"Clue {position} context names unknown location '{context.alibi_location}'",
                         f"clues[{position}].context")
            ok = False
        if context.alibi_time and not self.registry.has(Category.TIME, context.alibi_time):
            report.error("INVALID_ELEMENT_REFERENCE",
                         f"Clue {position} context names unknown time '{context.alibi_time}'",
                         f"clues[{position}].context")
            ok = False
        return ok

    def _is_before_theft(self, time_id: str, solution: Solution) -> bool:
        return self.registry.get(Category.TIME, time_id).order < self.registry.get(Category.TIME, solution.time_id).order

    def _check_alibi_context(self, context, solution, position, report):
        if self._check_context_references(context, solution, position, report) \
                and context.alibi_location == solution.location_id:
            report.warn("CONTEXT_CONTRADICTS_SOLUTION",
                        f"Clue {position} places its alibi in the room where the theft happened")

    def _check_earlier_time_context(self, context, solution, position, report):
        if not self._check_context_references(context, solution, position, report) or not context.alibi_time:
            return
        if not self._is_before_theft(context.alibi_time, solution):
            report.warn("CONTEXT_CONTRADICTS_SOLUTION",
                        f"Clue {position} leans on {context.alibi_time}, which is not before the theft")

    def _check_category_secured_context(self, context, solution, position, report):
        self._check_earlier_time_context(context, solution, position, report)
        solution_item = self.registry.get(Category.ITEM, solution.item_id)
        if context.item_category and context.item_category == solution_item.category:
            report.warn("CONTEXT_CONTRADICTS_SOLUTION",
                        f"Clue {position} secures every {context.item_category} item, including the stolen one")

    def _check_occupancy_context(self, context, solution, position, report):
        if self._check_context_references(context, solution, position, report) \
                and context.alibi_time and context.alibi_time != solution.time_id:
            report.warn("CONTEXT_CONTRADICTS_SOLUTION",
                        f"Clue {position} watches the room during {context.alibi_time}, not at the time of the theft")
