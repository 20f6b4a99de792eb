from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence
import logging

from .campaign_types import GeneratedScenario, Solution, ThemeInfo
from .validator import CampaignValidator, ValidationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnhancementRequest:
    """What an external prose enhancer gets to see: the texts plus enough context to keep them consistent."""
    clue_texts: List[str]
    solution: Solution
    theme: ThemeInfo

    def to_dict(self) -> Dict[str, Any]:
        return {"clue_texts": list(self.clue_texts), "solution": self.solution.to_dict(),
                "theme": self.theme.to_dict()}


# Any callable (for example a language-model client wrapper) returning one string per clue, in order
ProseEnhancer = Callable[[EnhancementRequest], Sequence[str]]


@dataclass(frozen=True)
class EnhancementOutcome:
    scenario: GeneratedScenario
    applied: bool
    raw_output: Optional[Any] = None
    error: Optional[str] = None
    validation: Optional[ValidationResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenario": self.scenario.to_dict(),
            "applied": self.applied,
            "error": self.error,
            "validation": self.validation.to_dict() if self.validation else None,
        }


def _check_texts(output: Any, expected: int) -> Optional[str]:
    """Returns a rejection reason, or None if the output can replace the clue texts."""
    if isinstance(output, (str, bytes)) or not isinstance(output, Sequence):
        return f"Enhancer returned {type(output).__name__}, expected a list of strings"
    if len(output) != expected:
        return f"Enhancer returned {len(output)} texts for {expected} clues"
    for index, text in enumerate(output):
        if not isinstance(text, str) or not text.strip():
            return f"Enhanced text #{index + 1} is empty or not a string"
    return None


def enhance_scenario(scenario: GeneratedScenario, enhancer: ProseEnhancer,
                     validator: Optional[CampaignValidator] = None,
                     timeout: Optional[float] = None) -> EnhancementOutcome:
    """
    Runs the clue texts through an external enhancer and swaps them in if they hold up.

    The enhancer may fail in any way; every failure is logged and returned as
    an outcome carrying the untouched scenario. Ids, positions and eliminations
    never change, only the texts.

    A timed-out enhancer cannot be cancelled: its worker thread keeps running
    in the background, and interpreter shutdown waits for it to return. Give
    enhancers their own request timeout if they may hang indefinitely.
    """
    request = EnhancementRequest(clue_texts=scenario.clue_texts(), solution=scenario.solution, theme=scenario.theme)

    executor = ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(enhancer, request)
        raw_output = future.result(timeout=timeout)
    except FutureTimeoutError:
        logger.warning(f"Prose enhancement for {scenario.id} timed out after {timeout}s")
        return EnhancementOutcome(scenario=scenario, applied=False, error=f"Timed out after {timeout}s")
    except Exception as e:
        logger.error(f"Prose enhancer failed for {scenario.id}: {e}", exc_info=True)
        return EnhancementOutcome(scenario=scenario, applied=False, error=f"{type(e).__name__}: {e}")
    finally:
        executor.shutdown(wait=False)

    reason = _check_texts(raw_output, len(scenario.clues))
    if reason:
        logger.warning(f"Rejected enhanced texts for {scenario.id}: {reason}")
        return EnhancementOutcome(scenario=scenario, applied=False, raw_output=raw_output, error=reason)

    enhanced = scenario.with_clue_texts(list(raw_output))
    if validator is not None:
        validation = validator.validate_scenario(enhanced)
        if not validation.valid:
            codes = ", ".join(issue.code for issue in validation.errors)
            logger.warning(f"Rejected enhanced texts for {scenario.id}: validation failed ({codes})")
            return EnhancementOutcome(scenario=scenario, applied=False, raw_output=raw_output,
                                      error=f"Enhanced scenario failed validation: {codes}", validation=validation)
    else:
        validation = None

    logger.info(f"Applied enhanced prose to {len(enhanced.clues)} clues of {scenario.id}")
    return EnhancementOutcome(scenario=enhanced, applied=True, raw_output=raw_output, validation=validation)
