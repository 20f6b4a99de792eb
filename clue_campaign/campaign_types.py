"""
Immutable value types passed between the planner, renderer and validator.

Plans and scenarios are plain frozen dataclasses so that they can be compared,
serialised with ``to_dict()`` and rebuilt from JSON with ``from_dict()`` (the
validator accepts scenarios produced outside this package).
"""
from dataclasses import dataclass, field, replace
from typing import Dict, List, Tuple, Optional, Any, Sequence

from .common import (Act, Category, ConfigurationError, DeliveryType, Difficulty, EliminationType,
                     EventPurpose, RedHerringType, Speaker, Tone)


def _first(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Reads the first present key; accepts snake_case and camelCase spellings."""
    for key in keys:
        if key in data:
            return data[key]
    return default


@dataclass(frozen=True)
class Solution:
    suspect_id: str
    item_id: str
    location_id: str
    time_id: str

    def id_for(self, category: Category) -> str:
        return {
            Category.SUSPECT: self.suspect_id,
            Category.ITEM: self.item_id,
            Category.LOCATION: self.location_id,
            Category.TIME: self.time_id,
        }[category]

    def to_dict(self) -> Dict[str, str]:
        return {
            "suspect_id": self.suspect_id,
            "item_id": self.item_id,
            "location_id": self.location_id,
            "time_id": self.time_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Solution":
        return cls(
            suspect_id=_first(data, "suspect_id", "suspectId"),
            item_id=_first(data, "item_id", "itemId"),
            location_id=_first(data, "location_id", "locationId"),
            time_id=_first(data, "time_id", "timeId"),
        )


@dataclass(frozen=True)
class GenerationRequest:
    difficulty: Difficulty = Difficulty.INTERMEDIATE
    theme_id: Optional[str] = None
    seed: Optional[int] = None
    exclude_suspects: Tuple[str, ...] = ()
    exclude_items: Tuple[str, ...] = ()
    exclude_locations: Tuple[str, ...] = ()
    exclude_times: Tuple[str, ...] = ()

    def exclusions(self, category: Category) -> Tuple[str, ...]:
        return {
            Category.SUSPECT: self.exclude_suspects,
            Category.ITEM: self.exclude_items,
            Category.LOCATION: self.exclude_locations,
            Category.TIME: self.exclude_times,
        }[category]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GenerationRequest":
        raw_difficulty = data.get("difficulty") or Difficulty.INTERMEDIATE.value
        try:
            difficulty = Difficulty(raw_difficulty)
        except ValueError as e:
            raise ConfigurationError(f"Unknown difficulty: {raw_difficulty!r}") from e
        seed = data.get("seed")
        return cls(
            difficulty=difficulty,
            theme_id=_first(data, "theme_id", "themeId"),
            seed=int(seed) if seed is not None else None,
            exclude_suspects=tuple(_first(data, "exclude_suspects", "excludeSuspects", default=())),
            exclude_items=tuple(_first(data, "exclude_items", "excludeItems", default=())),
            exclude_locations=tuple(_first(data, "exclude_locations", "excludeLocations", default=())),
            exclude_times=tuple(_first(data, "exclude_times", "excludeTimes", default=())),
        )


# --- Plan ---

@dataclass(frozen=True)
class EliminationContext:
    alibi_location: Optional[str] = None
    alibi_time: Optional[str] = None
    item_category: Optional[str] = None

    def to_dict(self) -> Dict[str, str]:
        return {k: v for k, v in (("alibi_location", self.alibi_location),
                                  ("alibi_time", self.alibi_time),
                                  ("item_category", self.item_category)) if v is not None}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "EliminationContext":
        data = data or {}
        return cls(
            alibi_location=_first(data, "alibi_location", "alibiLocation"),
            alibi_time=_first(data, "alibi_time", "alibiTime"),
            item_category=_first(data, "item_category", "itemCategory"),
        )


@dataclass(frozen=True)
class EliminationGroup:
    index: int
    element_ids: Tuple[str, ...]
    elimination_type: EliminationType
    target_act: Act
    priority: int
    context: EliminationContext = field(default_factory=EliminationContext)

    @property
    def size(self) -> int:
        return len(self.element_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "element_ids": list(self.element_ids),
            "elimination_type": self.elimination_type.value,
            "target_act": self.target_act.value,
            "priority": self.priority,
            "context": self.context.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EliminationGroup":
        return cls(
            index=int(data["index"]),
            element_ids=tuple(data["element_ids"]),
            elimination_type=EliminationType(data["elimination_type"]),
            target_act=Act(data["target_act"]),
            priority=int(data["priority"]),
            context=EliminationContext.from_dict(data.get("context")),
        )


@dataclass(frozen=True)
class CategoryEliminationPlan:
    category: Category
    total_elements: int
    groups: Tuple[EliminationGroup, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "total_elements": self.total_elements,
            "clue_count": len(self.groups),
            "groups": [group.to_dict() for group in self.groups],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CategoryEliminationPlan":
        return cls(
            category=Category(data["category"]),
            total_elements=int(data["total_elements"]),
            groups=tuple(EliminationGroup.from_dict(g) for g in data.get("groups", [])),
        )


@dataclass(frozen=True)
class Elimination:
    category: Category
    type: EliminationType
    target_ids: Tuple[str, ...]
    group_index: int = 0
    context: EliminationContext = field(default_factory=EliminationContext)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "type": self.type.value,
            "target_ids": list(self.target_ids),
            "group_index": self.group_index,
            "context": self.context.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Elimination":
        return cls(
            category=Category(data["category"]),
            type=EliminationType(data["type"]),
            target_ids=tuple(_first(data, "target_ids", "elementIds", default=())),
            group_index=int(_first(data, "group_index", "groupIndex", default=0)),
            context=EliminationContext.from_dict(data.get("context")),
        )


@dataclass(frozen=True)
class PlannedClue:
    position: int
    act: Act
    tone: Tone
    speaker: Speaker
    delivery: DeliveryType
    elimination: Elimination
    back_references: Tuple[int, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": self.position,
            "act": self.act.value,
            "tone": self.tone.value,
            "speaker": self.speaker.value,
            "delivery": self.delivery.value,
            "elimination": self.elimination.to_dict(),
            "back_references": list(self.back_references),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlannedClue":
        return cls(
            position=int(data["position"]),
            act=Act(data["act"]),
            tone=Tone(data["tone"]),
            speaker=Speaker(data["speaker"]),
            delivery=DeliveryType(data["delivery"]),
            elimination=Elimination.from_dict(data["elimination"]),
            back_references=tuple(int(p) for p in data.get("back_references", ())),
        )


@dataclass(frozen=True)
class RedHerring:
    type: RedHerringType
    target_category: Category
    target_element_id: str
    introduced_at: int
    resolved_at: Optional[int]
    hint: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "target_category": self.target_category.value,
            "target_element_id": self.target_element_id,
            "introduced_at": self.introduced_at,
            "resolved_at": self.resolved_at,
            "hint": self.hint,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RedHerring":
        resolved_at = data.get("resolved_at")
        return cls(
            type=RedHerringType(data["type"]),
            target_category=Category(data["target_category"]),
            target_element_id=data["target_element_id"],
            introduced_at=int(data["introduced_at"]),
            resolved_at=int(resolved_at) if resolved_at is not None else None,
            hint=data.get("hint", ""),
        )


@dataclass(frozen=True)
class DramaticEvent:
    event_type: str
    after_clue: int
    involved_suspect_ids: Tuple[str, ...]
    purpose: EventPurpose

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "after_clue": self.after_clue,
            "involved_suspect_ids": list(self.involved_suspect_ids),
            "purpose": self.purpose.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DramaticEvent":
        return cls(
            event_type=data["event_type"],
            after_clue=int(data["after_clue"]),
            involved_suspect_ids=tuple(data.get("involved_suspect_ids", ())),
            purpose=EventPurpose(data["purpose"]),
        )


@dataclass(frozen=True)
class NarrativeThread:
    id: str
    name: str
    clue_positions: Tuple[int, ...]
    is_red_herring: bool
    involved_element_ids: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "clue_positions": list(self.clue_positions),
            "is_red_herring": self.is_red_herring,
            "involved_element_ids": list(self.involved_element_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NarrativeThread":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            clue_positions=tuple(int(p) for p in data.get("clue_positions", ())),
            is_red_herring=bool(data.get("is_red_herring", False)),
            involved_element_ids=tuple(data.get("involved_element_ids", ())),
        )


@dataclass(frozen=True)
class ActInfo:
    act: Act
    clue_count: int
    start_position: int
    end_position: int
    focus: str
    tone: Tone

    def to_dict(self) -> Dict[str, Any]:
        return {
            "act": self.act.value,
            "clue_count": self.clue_count,
            "start_position": self.start_position,
            "end_position": self.end_position,
            "focus": self.focus,
            "tone": self.tone.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActInfo":
        return cls(
            act=Act(data["act"]),
            clue_count=int(data["clue_count"]),
            start_position=int(data["start_position"]),
            end_position=int(data["end_position"]),
            focus=data.get("focus", ""),
            tone=Tone(data["tone"]),
        )


@dataclass(frozen=True)
class CampaignPlan:
    id: str
    seed: int
    difficulty: Difficulty
    theme_id: str
    solution: Solution
    elimination_plans: Tuple[CategoryEliminationPlan, ...]
    narrative_arc: Tuple[ActInfo, ...]
    clues: Tuple[PlannedClue, ...]
    red_herrings: Tuple[RedHerring, ...] = ()
    dramatic_events: Tuple[DramaticEvent, ...] = ()
    threads: Tuple[NarrativeThread, ...] = ()

    def clue_at(self, position: int) -> Optional[PlannedClue]:
        for clue in self.clues:
            if clue.position == position:
                return clue
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "seed": self.seed,
            "difficulty": self.difficulty.value,
            "theme_id": self.theme_id,
            "solution": self.solution.to_dict(),
            "elimination_plans": [p.to_dict() for p in self.elimination_plans],
            "narrative_arc": [a.to_dict() for a in self.narrative_arc],
            "clues": [c.to_dict() for c in self.clues],
            "red_herrings": [r.to_dict() for r in self.red_herrings],
            "dramatic_events": [e.to_dict() for e in self.dramatic_events],
            "threads": [t.to_dict() for t in self.threads],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CampaignPlan":
        try:
            return cls(
                id=data["id"],
                seed=int(data["seed"]),
                difficulty=Difficulty(data["difficulty"]),
                theme_id=data["theme_id"],
                solution=Solution.from_dict(data["solution"]),
                elimination_plans=tuple(CategoryEliminationPlan.from_dict(p) for p in data.get("elimination_plans", [])),
                narrative_arc=tuple(ActInfo.from_dict(a) for a in data.get("narrative_arc", [])),
                clues=tuple(PlannedClue.from_dict(c) for c in data["clues"]),
                red_herrings=tuple(RedHerring.from_dict(r) for r in data.get("red_herrings", [])),
                dramatic_events=tuple(DramaticEvent.from_dict(e) for e in data.get("dramatic_events", [])),
                threads=tuple(NarrativeThread.from_dict(t) for t in data.get("threads", [])),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Malformed campaign plan: {e}") from e


# --- Rendered scenario ---

@dataclass(frozen=True)
class GeneratedClue:
    id: str
    position: int
    delivery: DeliveryType
    speaker: Speaker
    text: str
    act: Act
    category: Category
    eliminated_ids: Tuple[str, ...]
    reason: str
    references: Tuple[int, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "position": self.position,
            "delivery": self.delivery.value,
            "speaker": self.speaker.value,
            "text": self.text,
            "act": self.act.value,
            "eliminates": {
                "category": self.category.value,
                "ids": list(self.eliminated_ids),
                "reason": self.reason,
            },
            "references": list(self.references),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeneratedClue":
        eliminates = data.get("eliminates", {})
        return cls(
            id=data["id"],
            position=int(data["position"]),
            delivery=DeliveryType(_first(data, "delivery", "type")),
            speaker=Speaker(data["speaker"]),
            text=data.get("text", ""),
            act=Act(data["act"]),
            category=Category(eliminates["category"]),
            eliminated_ids=tuple(eliminates.get("ids", ())),
            reason=eliminates.get("reason", ""),
            references=tuple(int(p) for p in data.get("references", ())),
        )


@dataclass(frozen=True)
class RenderedDramaticEvent:
    after_clue: int
    event_type: str
    description: str
    affected_suspect_ids: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "after_clue": self.after_clue,
            "event_type": self.event_type,
            "description": self.description,
            "affected_suspect_ids": list(self.affected_suspect_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RenderedDramaticEvent":
        return cls(
            after_clue=int(data["after_clue"]),
            event_type=data.get("event_type", ""),
            description=data.get("description", ""),
            affected_suspect_ids=tuple(data.get("affected_suspect_ids", ())),
        )


@dataclass(frozen=True)
class InspectorNote:
    id: str
    text: str
    related_clues: Tuple[int, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "text": self.text, "related_clues": list(self.related_clues)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InspectorNote":
        return cls(id=data["id"], text=data.get("text", ""),
                   related_clues=tuple(int(p) for p in data.get("related_clues", ())))


@dataclass(frozen=True)
class ScenarioNarrative:
    opening: str
    setting: str
    atmosphere: str
    closing: str

    def to_dict(self) -> Dict[str, str]:
        return {"opening": self.opening, "setting": self.setting,
                "atmosphere": self.atmosphere, "closing": self.closing}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScenarioNarrative":
        return cls(**{key: data.get(key, "") for key in ("opening", "setting", "atmosphere", "closing")})


@dataclass(frozen=True)
class ThemeInfo:
    id: str
    name: str
    description: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name, "description": self.description}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ThemeInfo":
        return cls(id=data["id"], name=data.get("name", ""), description=data.get("description", ""))


@dataclass(frozen=True)
class ScenarioMetadata:
    difficulty: Difficulty
    total_clues: int
    seed: int
    version: str
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "difficulty": self.difficulty.value,
            "total_clues": self.total_clues,
            "seed": self.seed,
            "version": self.version,
        }
        if self.created_at is not None:
            data["created_at"] = self.created_at
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScenarioMetadata":
        return cls(
            difficulty=Difficulty(data["difficulty"]),
            total_clues=int(data["total_clues"]),
            seed=int(data["seed"]),
            version=data.get("version", ""),
            created_at=data.get("created_at"),
        )


@dataclass(frozen=True)
class GeneratedScenario:
    id: str
    campaign_id: str
    theme: ThemeInfo
    solution: Solution
    clues: Tuple[GeneratedClue, ...]
    dramatic_events: Tuple[RenderedDramaticEvent, ...]
    locked_rooms: Tuple[str, ...]
    inspector_notes: Tuple[InspectorNote, ...]
    narrative: ScenarioNarrative
    metadata: ScenarioMetadata

    def clue_texts(self) -> List[str]:
        return [clue.text for clue in self.clues]

    def with_clue_texts(self, texts: Sequence[str]) -> "GeneratedScenario":
        """Copy with replacement clue texts; ids, positions and eliminations are kept."""
        if len(texts) != len(self.clues):
            raise ValueError(f"Expected {len(self.clues)} clue texts, got {len(texts)}")
        clues = tuple(replace(clue, text=text) for clue, text in zip(self.clues, texts))
        return replace(self, clues=clues)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "theme": self.theme.to_dict(),
            "solution": self.solution.to_dict(),
            "clues": [c.to_dict() for c in self.clues],
            "dramatic_events": [e.to_dict() for e in self.dramatic_events],
            "locked_rooms": list(self.locked_rooms),
            "inspector_notes": [n.to_dict() for n in self.inspector_notes],
            "narrative": self.narrative.to_dict(),
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeneratedScenario":
        try:
            return cls(
                id=data["id"],
                campaign_id=data.get("campaign_id", ""),
                theme=ThemeInfo.from_dict(data["theme"]),
                solution=Solution.from_dict(data["solution"]),
                clues=tuple(GeneratedClue.from_dict(c) for c in data["clues"]),
                dramatic_events=tuple(RenderedDramaticEvent.from_dict(e) for e in data.get("dramatic_events", [])),
                locked_rooms=tuple(data.get("locked_rooms", ())),
                inspector_notes=tuple(InspectorNote.from_dict(n) for n in data.get("inspector_notes", [])),
                narrative=ScenarioNarrative.from_dict(data.get("narrative", {})),
                metadata=ScenarioMetadata.from_dict(data["metadata"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Malformed scenario: {e}") from e
