from typing import Dict, List, Tuple, Optional
import logging

from .common import Category, ConfigurationError, DeliveryType, EliminationType, Speaker, Tone, SCENARIO_VERSION
from .campaign_types import (CampaignPlan, GeneratedClue, GeneratedScenario, InspectorNote, PlannedClue,
                             RenderedDramaticEvent, ScenarioMetadata, ScenarioNarrative, Solution, ThemeInfo)
from .clue_templates import (CLUE_TEMPLATES, ELIMINATION_REASONS, EVENT_DESCRIPTIONS, RED_HERRING_INTRODUCTIONS,
                             RED_HERRING_RESOLUTION, REFERENCE_TRANSITIONS, VOICE_PREFIXES, TemplateContext,
                             generic_event_description, herring_name, join_names, missing_handlers)
from .registry import DomainRegistry, MysteryTheme, get_registry
from .seeded_random import SeededRandom

logger = logging.getLogger(__name__)

INSPECTOR_NOTE_COUNT = 2
NOTE_NAME_LIMIT = 3
LATER_TIME_FALLBACK = "later that evening"


class ClueRenderer:
    """
    Turns a CampaignPlan into player-facing prose.

    Rendering is a pure function of the plan: it draws from its own
    SeededRandom(plan.seed) and only stamps a creation time when the caller
    passes one in.
    """

    def __init__(self, registry: Optional[DomainRegistry] = None):
        missing = missing_handlers()
        if missing:
            logger.error(f"Elimination types without clue templates: {[t.value for t in missing]}")
            raise ConfigurationError(f"Cannot render elimination types: {[t.value for t in missing]}")
        self.registry = registry or get_registry()
        self._proper_names = sorted(self.registry.all_display_names(), key=len, reverse=True)

    def render(self, plan: CampaignPlan, created_at: Optional[str] = None) -> GeneratedScenario:
        rng = SeededRandom(plan.seed)
        theme = self.registry.theme(plan.theme_id)
        if theme is None:
            logger.warning(f"Plan {plan.id} names unknown theme '{plan.theme_id}'; using {self.registry.themes[0].id}")
            theme = self.registry.themes[0]

        clues = self._render_clues(rng, plan)
        dramatic_events = self._render_dramatic_events(rng, plan, theme)
        inspector_notes = self._render_inspector_notes(rng, plan)
        scenario = GeneratedScenario(
            id=f"SCN-{plan.seed:x}-{rng.next_int(1000, 9999)}",
            campaign_id=plan.id,
            theme=ThemeInfo(id=theme.id, name=theme.name, description=theme.description),
            solution=plan.solution,
            clues=clues,
            dramatic_events=dramatic_events,
            locked_rooms=self._locked_rooms(theme, plan.solution),
            inspector_notes=inspector_notes,
            narrative=self._render_narrative(plan.solution, theme),
            metadata=ScenarioMetadata(difficulty=plan.difficulty, total_clues=len(clues), seed=plan.seed,
                                      version=SCENARIO_VERSION, created_at=created_at),
        )
        logger.info(f"Rendered scenario {scenario.id} from plan {plan.id} ({len(clues)} clues)")
        return scenario

    # --- Clues ---

    def _render_clues(self, rng: SeededRandom, plan: CampaignPlan) -> Tuple[GeneratedClue, ...]:
        asides = self._red_herring_asides(plan)
        rendered = []
        for clue in plan.clues:
            elimination = clue.elimination
            text = self.render_clue_text(rng, clue, plan.solution)
            if clue.position in asides:
                text = " ".join([text] + asides[clue.position])
            rendered.append(GeneratedClue(
                id=f"C{clue.position:03d}",
                position=clue.position,
                delivery=clue.delivery,
                speaker=clue.speaker,
                text=text,
                act=clue.act,
                category=elimination.category,
                eliminated_ids=elimination.target_ids,
                reason=ELIMINATION_REASONS[elimination.type](len(elimination.target_ids) > 1),
                references=clue.back_references,
            ))
        return tuple(rendered)

    def render_clue_text(self, rng: SeededRandom, clue: PlannedClue, solution: Solution) -> str:
        context = self._template_context(rng, clue, solution)
        core = CLUE_TEMPLATES[clue.elimination.type](context)
        voiced = self._apply_voice(rng, core, clue.speaker, clue.tone)
        if clue.back_references:
            return f"{REFERENCE_TRANSITIONS[clue.position % len(REFERENCE_TRANSITIONS)]} {voiced}"
        return voiced

    def _template_context(self, rng: SeededRandom, clue: PlannedClue, solution: Solution) -> TemplateContext:
        elimination = clue.elimination
        context = elimination.context
        solution_time = self.registry.get(Category.TIME, solution.time_id)

        if context.alibi_location and self.registry.has(Category.LOCATION, context.alibi_location):
            alibi_location = self.registry.display_name(Category.LOCATION, context.alibi_location)
        else:
            alibi_location = rng.pick(self._non_solution(Category.LOCATION, solution)).display_name

        if context.alibi_time and self.registry.has(Category.TIME, context.alibi_time):
            alibi_time = self.registry.display_name(Category.TIME, context.alibi_time)
        elif elimination.type == EliminationType.CATEGORY_SECURED:
            # No earlier period exists; a made-up time could fall after the theft
            alibi_time = None
        else:
            alibi_time = rng.pick(self._non_solution(Category.TIME, solution)).display_name

        later = [t for t in self.registry.times if solution_time is not None and t.order > solution_time.order]
        later_time = later[0].display_name if later else LATER_TIME_FALLBACK

        item_category = None
        if elimination.category == Category.ITEM and context.item_category:
            categories = {getattr(self.registry.get(Category.ITEM, i), "category", None) for i in elimination.target_ids}
            if categories == {context.item_category}:
                item_category = context.item_category

        before_theft = True
        if elimination.category == Category.TIME and solution_time is not None:
            orders = [getattr(self.registry.get(Category.TIME, i), "order", 0) for i in elimination.target_ids]
            before_theft = all(order < solution_time.order for order in orders)

        return TemplateContext(
            rng=rng,
            names=tuple(self.registry.display_names(elimination.category, elimination.target_ids)),
            alibi_location=alibi_location,
            alibi_time=alibi_time,
            later_time=later_time,
            item_category=item_category,
            before_theft=before_theft,
        )

    def _non_solution(self, category: Category, solution: Solution):
        return [e for e in self.registry.elements(category) if e.id != solution.id_for(category)]

    def _apply_voice(self, rng: SeededRandom, text: str, speaker: Speaker, tone: Tone) -> str:
        prefix = rng.pick(VOICE_PREFIXES[speaker][tone])
        return f"{prefix} {self._continue_sentence(text)}"

    def _continue_sentence(self, text: str) -> str:
        """Lower-cases the opening word unless it is a name or 'I'."""
        if text.startswith("I ") or any(text.startswith(name) for name in self._proper_names):
            return text
        return text[:1].lower() + text[1:]

    def _red_herring_asides(self, plan: CampaignPlan) -> Dict[int, List[str]]:
        asides: Dict[int, List[str]] = {}
        for herring in plan.red_herrings:
            name = herring_name(herring.target_category,
                                self.registry.display_name(herring.target_category, herring.target_element_id))
            asides.setdefault(herring.introduced_at, []).append(
                RED_HERRING_INTRODUCTIONS[herring.type].format(name=name))
            if herring.resolved_at is not None:
                asides.setdefault(herring.resolved_at, []).append(RED_HERRING_RESOLUTION.format(name=name))
        return asides

    # --- Events, notes & narrative ---

    def _render_dramatic_events(self, rng: SeededRandom, plan: CampaignPlan,
                                theme: MysteryTheme) -> Tuple[RenderedDramaticEvent, ...]:
        rendered = []
        for event in plan.dramatic_events:
            names = self.registry.display_names(Category.SUSPECT, event.involved_suspect_ids)
            describe = EVENT_DESCRIPTIONS.get(event.event_type)
            if describe is None:
                logger.debug(f"No description for event type '{event.event_type}', using the generic one")
                description = generic_event_description(theme.atmospheric_elements)
            else:
                description = describe(rng, names)
            rendered.append(RenderedDramaticEvent(after_clue=event.after_clue, event_type=event.event_type,
                                                  description=description,
                                                  affected_suspect_ids=event.involved_suspect_ids))
        return tuple(rendered)

    def _render_inspector_notes(self, rng: SeededRandom, plan: CampaignPlan) -> Tuple[InspectorNote, ...]:
        butler_clues = [c for c in plan.clues if c.delivery == DeliveryType.BUTLER]
        pool = butler_clues if len(butler_clues) >= 2 else list(plan.clues)
        if len(pool) < 2:
            logger.warning(f"Plan {plan.id} has too few clues for inspector notes")
            return ()

        notes = []
        for i in range(INSPECTOR_NOTE_COUNT):
            first, second = rng.pick_multiple(pool, 2)
            names_a = self.registry.display_names(first.elimination.category, first.elimination.target_ids)
            names_b = self.registry.display_names(second.elimination.category, second.elimination.target_ids)
            list_a = ", ".join(names_a[:NOTE_NAME_LIMIT]) or "several leads"
            list_b = ", ".join(names_b[:NOTE_NAME_LIMIT]) or "additional possibilities"
            text = (f"Inspector's Note: Cross-check the testimony in clue #{first.position} with clue "
                    f"#{second.position}. Together they clear {list_a} and {list_b}, which tightens the field "
                    f"more than it first appears.")
            notes.append(InspectorNote(id=f"N{i + 1}", text=text, related_clues=(first.position, second.position)))
        return tuple(notes)

    def _locked_rooms(self, theme: MysteryTheme, solution: Solution) -> Tuple[str, ...]:
        locked = []
        for room_name in theme.typical_locked_rooms:
            location = self.registry.location_by_name(room_name)
            if location is None or not location.can_be_locked:
                logger.debug(f"Theme {theme.id} locks '{room_name}', which is not a lockable playable room")
                continue
            if location.id == solution.location_id:
                continue
            locked.append(location.id)
        return tuple(locked)

    def _render_narrative(self, solution: Solution, theme: MysteryTheme) -> ScenarioNarrative:
        suspect = self.registry.display_name(Category.SUSPECT, solution.suspect_id)
        item = self.registry.display_name(Category.ITEM, solution.item_id)
        location = self.registry.display_name(Category.LOCATION, solution.location_id)
        time_name = self.registry.display_name(Category.TIME, solution.time_id)
        elements = list(theme.atmospheric_elements)
        return ScenarioNarrative(
            opening=(f"Welcome to Tudor Mansion. It is {theme.period}, and Mr. Boddy has invited his guests for "
                     f"\"{theme.name}.\" {theme.description}. But something sinister lurks beneath the surface of "
                     f"this gathering... A valuable item has gone missing, and among these guests, a thief is "
                     f"hiding in plain sight."),
            setting=(f"The atmosphere tonight is marked by {join_names(elements) or 'quiet unease'}. The mansion's "
                     f"rooms are filled with Mr. Boddy's valuable collection, and the guests eye each other with "
                     f"barely concealed suspicion."),
            atmosphere=" ".join(f"The {e} creates an air of mystery." for e in elements),
            closing=(f"And so the truth is revealed! {suspect} stole the {item} from the {location} during "
                     f"{time_name}. The evidence was there all along, hidden in plain sight. A motive, an "
                     f"opportunity, and the cunning to nearly escape detection. But justice prevails at Tudor "
                     f"Mansion, and Scotland Yard has closed another case!"),
        )
