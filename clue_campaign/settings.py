from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, List, Tuple, Optional, Any
import logging
import math

from .common import (Act, Category, ConfigurationError, Difficulty, EliminationType, GroupSize,
                     Speaker, Tone, ACT_ORDER)
from .registry import load_data_from_json

logger = logging.getLogger(__name__)

PREFERRED_SPEAKER_EITHER = "either"
SPEAKER_PREFERENCES = frozenset([Speaker.ASHE.value, Speaker.INSPECTOR.value, PREFERRED_SPEAKER_EITHER])


@dataclass(frozen=True)
class DifficultySettings:
    difficulty: Difficulty
    clue_count: int
    act_distribution: Dict[Act, int]
    red_herring_count: int
    red_herrings_must_resolve: bool
    dramatic_event_count: int
    max_group_size: Dict[Category, int]
    min_group_size: Dict[Category, int]

    def act_bounds(self, act: Act) -> Tuple[int, int]:
        """Inclusive (first, last) clue positions of an act."""
        start = 1
        for current in ACT_ORDER:
            end = start + self.act_distribution[current] - 1
            if current == act:
                return start, end
            start = end + 1
        raise KeyError(act)


@dataclass(frozen=True)
class ActSettings:
    act: Act
    name: str
    focus: str
    dominant_tone: Tone
    preferred_elimination_types: Tuple[EliminationType, ...]
    preferred_group_size: GroupSize


@dataclass(frozen=True)
class EliminationTypeInfo:
    type: EliminationType
    category: Category
    description: str
    typical_group_size: GroupSize
    preferred_speaker: str


@dataclass(frozen=True)
class DramaticEventType:
    id: str
    name: str
    description: str
    requires_suspects: int
    suitable_acts: Tuple[Act, ...]


@dataclass(frozen=True)
class NarrativeThreadTemplate:
    id: str
    name: str
    description: str
    min_clues: int
    max_clues: int
    is_red_herring: bool


class CampaignSettings:
    """Difficulty profiles, act shaping and mechanism metadata."""

    def __init__(self, difficulties: Dict[Difficulty, DifficultySettings], acts: Dict[Act, ActSettings],
                 elimination_types: Dict[EliminationType, EliminationTypeInfo],
                 dramatic_event_types: List[DramaticEventType],
                 thread_templates: List[NarrativeThreadTemplate]):
        self.difficulties = difficulties
        self.acts = acts
        self.elimination_types = elimination_types
        self.dramatic_event_types: Tuple[DramaticEventType, ...] = tuple(dramatic_event_types)
        self.thread_templates: Tuple[NarrativeThreadTemplate, ...] = tuple(thread_templates)
        self._check_integrity()

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "CampaignSettings":
        try:
            difficulties = {}
            for key, raw in data["difficulties"].items():
                difficulty = Difficulty(key)
                difficulties[difficulty] = DifficultySettings(
                    difficulty=difficulty,
                    clue_count=int(raw["clue_count"]),
                    act_distribution={Act(a): int(n) for a, n in raw["act_distribution"].items()},
                    red_herring_count=int(raw["red_herrings"]["count"]),
                    red_herrings_must_resolve=bool(raw["red_herrings"]["must_resolve"]),
                    dramatic_event_count=int(raw["dramatic_event_count"]),
                    max_group_size={Category(c): int(n) for c, n in raw["max_group_size"].items()},
                    min_group_size={Category(c): int(n) for c, n in raw["min_group_size"].items()},
                )
            acts = {
                Act(key): ActSettings(
                    act=Act(key),
                    name=raw["name"],
                    focus=raw["focus"],
                    dominant_tone=Tone(raw["dominant_tone"]),
                    preferred_elimination_types=tuple(EliminationType(t) for t in raw["preferred_elimination_types"]),
                    preferred_group_size=GroupSize(raw["preferred_group_size"]),
                )
                for key, raw in data["acts"].items()
            }
            elimination_types = {
                EliminationType(key): EliminationTypeInfo(
                    type=EliminationType(key),
                    category=Category(raw["category"]),
                    description=raw["description"],
                    typical_group_size=GroupSize(raw["typical_group_size"]),
                    preferred_speaker=raw["preferred_speaker"],
                )
                for key, raw in data["elimination_types"].items()
            }
            event_types = [
                DramaticEventType(
                    id=raw["id"], name=raw["name"], description=raw["description"],
                    requires_suspects=int(raw["requires_suspects"]),
                    suitable_acts=tuple(Act(a) for a in raw["suitable_acts"]),
                )
                for raw in data["dramatic_event_types"]
            ]
            templates = [NarrativeThreadTemplate(**raw) for raw in data["narrative_thread_templates"]]
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed campaign settings: {e}", exc_info=True)
            raise ConfigurationError(f"Malformed campaign settings: {e}") from e
        return cls(difficulties, acts, elimination_types, event_types, templates)

    def _check_integrity(self):
        missing_difficulties = [d.value for d in Difficulty if d not in self.difficulties]
        if missing_difficulties:
            raise ConfigurationError(f"No settings for difficulties: {missing_difficulties}")
        for difficulty, settings in self.difficulties.items():
            if set(settings.act_distribution) != set(ACT_ORDER):
                raise ConfigurationError(f"{difficulty.value}: act distribution must name every act")
            if sum(settings.act_distribution.values()) != settings.clue_count:
                raise ConfigurationError(
                    f"{difficulty.value}: act distribution {sum(settings.act_distribution.values())} "
                    f"does not sum to clue count {settings.clue_count}")
            for category in Category:
                low = settings.min_group_size.get(category)
                high = settings.max_group_size.get(category)
                if low is None or high is None or not (1 <= low <= high):
                    raise ConfigurationError(f"{difficulty.value}: invalid group size bounds for {category.plural}")
        missing_acts = [a.value for a in ACT_ORDER if a not in self.acts]
        if missing_acts:
            raise ConfigurationError(f"No settings for acts: {missing_acts}")
        missing_types = [t.value for t in EliminationType if t not in self.elimination_types]
        if missing_types:
            raise ConfigurationError(f"No metadata for elimination types: {missing_types}")
        for etype, info in self.elimination_types.items():
            if info.category != etype.category:
                raise ConfigurationError(
                    f"Elimination type {etype.value} is declared for {info.category.value} "
                    f"but clears {etype.category.plural}")
            if info.preferred_speaker not in SPEAKER_PREFERENCES:
                raise ConfigurationError(
                    f"Elimination type {etype.value} has unknown preferred speaker {info.preferred_speaker!r}")
        for template in self.thread_templates:
            if not (1 <= template.min_clues <= template.max_clues):
                raise ConfigurationError(f"Thread template {template.id} has invalid clue bounds")

    def difficulty(self, difficulty: Difficulty) -> DifficultySettings:
        return self.difficulties[difficulty]

    def act(self, act: Act) -> ActSettings:
        return self.acts[act]

    def elimination_info(self, etype: EliminationType) -> EliminationTypeInfo:
        return self.elimination_types[etype]

    def elimination_types_for(self, category: Category) -> List[EliminationType]:
        return [etype for etype in EliminationType if etype.category == category]

    def dramatic_event_type(self, event_id: str) -> Optional[DramaticEventType]:
        for event_type in self.dramatic_event_types:
            if event_type.id == event_id:
                return event_type
        return None


def get_tone_for_position(position: int, act_distribution: Dict[Act, int]) -> Tuple[Act, Tone]:
    """Act and tone of a 1-based clue position; act 2 escalates after its midpoint."""
    act1_end = act_distribution[Act.SETUP]
    act2_end = act1_end + act_distribution[Act.CONFRONTATION]
    if position <= act1_end:
        return Act.SETUP, Tone.ESTABLISHING
    if position <= act2_end:
        act2_position = position - act1_end
        midpoint = math.ceil(act_distribution[Act.CONFRONTATION] / 2)
        return Act.CONFRONTATION, Tone.DEVELOPING if act2_position <= midpoint else Tone.ESCALATING
    return Act.RESOLUTION, Tone.REVEALING


def load_campaign_settings(data_dir: Optional[str] = None) -> CampaignSettings:
    try:
        data = load_data_from_json("campaign_settings.json", data_dir)
    except (FileNotFoundError, ValueError) as e:
        logger.critical(f"Fatal error loading campaign settings: {e}", exc_info=True)
        raise RuntimeError("Failed to load essential game data. Cannot continue.") from e
    settings = CampaignSettings.from_data(data)
    logger.info(f"Loaded campaign settings for {len(settings.difficulties)} difficulties")
    return settings


@lru_cache(maxsize=None)
def get_campaign_settings() -> CampaignSettings:
    return load_campaign_settings()
