# Mystery campaign planning, rendering and validation
# Key classes are exposed here for easier top-level imports
from .common import Category, ConfigurationError, Difficulty, EliminationType
from .campaign_types import CampaignPlan, GeneratedScenario, GenerationRequest, Solution
from .seeded_random import SeededRandom
from .registry import DomainRegistry, get_registry
from .settings import CampaignSettings, get_campaign_settings
from .planner import CampaignPlanner
from .renderer import ClueRenderer
from .validator import CampaignValidator, ValidationResult
from .enhancement import enhance_scenario, EnhancementOutcome, EnhancementRequest
from .pipeline import CampaignGenerator, CampaignValidationError, GenerationResult
from .solvers import SymbolSetupSolver

__version__ = "2.0.0"
