from enum import Enum
import os
from typing import Dict, Tuple


class ConfigurationError(ValueError):
    """Raised when a request or a data file cannot produce a valid campaign."""


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    EXPERT = "expert"


class Category(str, Enum):
    SUSPECT = "suspect"
    ITEM = "item"
    LOCATION = "location"
    TIME = "time"

    @property
    def plural(self) -> str:
        return f"{self.value}s"


class Act(str, Enum):
    SETUP = "act1_setup"
    CONFRONTATION = "act2_confrontation"
    RESOLUTION = "act3_resolution"


class Tone(str, Enum):
    ESTABLISHING = "establishing"
    DEVELOPING = "developing"
    ESCALATING = "escalating"
    REVEALING = "revealing"


class Speaker(str, Enum):
    ASHE = "Ashe"
    INSPECTOR = "Inspector Brown"


class DeliveryType(str, Enum):
    BUTLER = "butler"
    INSPECTOR_NOTE = "inspector_note"
    OBSERVATION = "observation"


class GroupSize(str, Enum):
    SINGLE = "single"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class RedHerringType(str, Enum):
    FALSE_SUSPICION = "false_suspicion"
    MISLEADING_EVIDENCE = "misleading_evidence"
    SUSPICIOUS_BEHAVIOR = "suspicious_behavior"


class EventPurpose(str, Enum):
    TENSION = "tension"
    MISDIRECTION = "misdirection"
    REVELATION = "revelation"
    ATMOSPHERE = "atmosphere"


class EliminationType(str, Enum):
    # Suspects
    GROUP_ALIBI = "group_alibi"
    INDIVIDUAL_ALIBI = "individual_alibi"
    WITNESS_TESTIMONY = "witness_testimony"
    PHYSICAL_IMPOSSIBILITY = "physical_impossibility"
    MOTIVE_CLEARED = "motive_cleared"
    # Items
    CATEGORY_SECURED = "category_secured"
    ITEM_SIGHTING = "item_sighting"
    ITEM_ACCOUNTED = "item_accounted"
    ITEM_CONDITION = "item_condition"
    # Locations
    LOCATION_INACCESSIBLE = "location_inaccessible"
    LOCATION_UNDISTURBED = "location_undisturbed"
    LOCATION_OCCUPIED = "location_occupied"
    LOCATION_VISIBILITY = "location_visibility"
    # Times
    ALL_TOGETHER = "all_together"
    ITEM_PRESENT = "item_present"
    STAFF_ACTIVITY = "staff_activity"
    TIMELINE_IMPOSSIBILITY = "timeline_impossibility"

    @property
    def category(self) -> Category:
        return ELIMINATION_CATEGORIES[self]


ELIMINATION_CATEGORIES: Dict[EliminationType, Category] = {
    EliminationType.GROUP_ALIBI: Category.SUSPECT,
    EliminationType.INDIVIDUAL_ALIBI: Category.SUSPECT,
    EliminationType.WITNESS_TESTIMONY: Category.SUSPECT,
    EliminationType.PHYSICAL_IMPOSSIBILITY: Category.SUSPECT,
    EliminationType.MOTIVE_CLEARED: Category.SUSPECT,
    EliminationType.CATEGORY_SECURED: Category.ITEM,
    EliminationType.ITEM_SIGHTING: Category.ITEM,
    EliminationType.ITEM_ACCOUNTED: Category.ITEM,
    EliminationType.ITEM_CONDITION: Category.ITEM,
    EliminationType.LOCATION_INACCESSIBLE: Category.LOCATION,
    EliminationType.LOCATION_UNDISTURBED: Category.LOCATION,
    EliminationType.LOCATION_OCCUPIED: Category.LOCATION,
    EliminationType.LOCATION_VISIBILITY: Category.LOCATION,
    EliminationType.ALL_TOGETHER: Category.TIME,
    EliminationType.ITEM_PRESENT: Category.TIME,
    EliminationType.STAFF_ACTIVITY: Category.TIME,
    EliminationType.TIMELINE_IMPOSSIBILITY: Category.TIME,
}

# Mechanisms that clear suspects by placing them somewhere else at the time of the theft
ALIBI_TYPES = frozenset({
    EliminationType.GROUP_ALIBI,
    EliminationType.INDIVIDUAL_ALIBI,
    EliminationType.WITNESS_TESTIMONY,
})

# Time mechanisms whose context points at a period before the theft
EARLIER_TIME_TYPES = frozenset({
    EliminationType.ITEM_PRESENT,
    EliminationType.ALL_TOGETHER,
    EliminationType.STAFF_ACTIVITY,
})

ACT_ORDER: Tuple[Act, ...] = (Act.SETUP, Act.CONFRONTATION, Act.RESOLUTION)

# --- Constants ---
SYMBOLS: Tuple[str, ...] = ("spyglass", "fingerprint", "whistle", "notepad", "clock")
SYMBOL_POSITIONS: Tuple[int, ...] = (1, 2, 3, 4, 5, 6)

# Setup instructions are read out in this order
SETUP_CATEGORY_ORDER: Tuple[Category, ...] = (Category.ITEM, Category.SUSPECT, Category.LOCATION, Category.TIME)

DATA_DIR_ENV_VAR = "CLUE_CAMPAIGN_DATA_DIR"
DEFAULT_DATA_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "game_data")

SCENARIO_VERSION = "2.0.0"
