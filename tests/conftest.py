"""
Pytest fixtures for clue_campaign tests.

Registry and settings come from the bundled game_data; everything else is
built per test so no state leaks between them.
"""

import pytest

from clue_campaign.common import Difficulty
from clue_campaign.campaign_types import GenerationRequest
from clue_campaign.registry import get_registry
from clue_campaign.settings import get_campaign_settings
from clue_campaign.planner import CampaignPlanner
from clue_campaign.renderer import ClueRenderer
from clue_campaign.validator import CampaignValidator
from clue_campaign.solvers import SymbolSetupSolver


@pytest.fixture(scope="session")
def registry():
    """Bundled element, theme and card data."""
    return get_registry()


@pytest.fixture(scope="session")
def settings():
    """Bundled difficulty and mechanism settings."""
    return get_campaign_settings()


@pytest.fixture
def planner(registry, settings):
    return CampaignPlanner(registry, settings)


@pytest.fixture
def renderer(registry):
    return ClueRenderer(registry)


@pytest.fixture
def validator(registry, settings):
    return CampaignValidator(registry, settings)


@pytest.fixture
def setup_solver(registry):
    return SymbolSetupSolver(registry)


@pytest.fixture
def beginner_plan(planner):
    """The reference campaign: beginner difficulty, seed 42."""
    return planner.plan(GenerationRequest(difficulty=Difficulty.BEGINNER, seed=42))


@pytest.fixture
def beginner_scenario(renderer, beginner_plan):
    return renderer.render(beginner_plan)
