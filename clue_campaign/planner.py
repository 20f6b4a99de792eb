from typing import Dict, List, Tuple, Optional, Any, Callable, Set
import logging
import math

from .common import (Act, Category, ConfigurationError, DeliveryType, Difficulty, EliminationType,
                     EventPurpose, GroupSize, RedHerringType, Speaker, ACT_ORDER, ALIBI_TYPES,
                     EARLIER_TIME_TYPES)
from .campaign_types import (ActInfo, CampaignPlan, CategoryEliminationPlan, DramaticEvent, Elimination,
                             EliminationContext, EliminationGroup, GenerationRequest, NarrativeThread,
                             PlannedClue, RedHerring, Solution)
from .registry import DomainRegistry, get_registry
from .seeded_random import SeededRandom, default_seed
from .settings import (CampaignSettings, DifficultySettings, PREFERRED_SPEAKER_EITHER, get_campaign_settings,
                       get_tone_for_position)

logger = logging.getLogger(__name__)

PREFERRED_TYPE_WEIGHT = 3
PREFERRED_DELIVERY_CHANCE = 0.7
BACK_REFERENCE_CHANCE = 0.3
MAX_BACK_REFERENCES = 2
MIN_CLUES_FOR_EVENTS = 3
RED_HERRING_CATEGORIES = (Category.SUSPECT, Category.ITEM, Category.LOCATION)
FALSE_LEAD_TYPES = (RedHerringType.FALSE_SUSPICION, RedHerringType.MISLEADING_EVIDENCE)


def _size_classes_for(size: int) -> Tuple[GroupSize, ...]:
    """Typical-size classes that suit a group of the given size."""
    if size == 1:
        return (GroupSize.SINGLE, GroupSize.SMALL)
    if size == 2:
        return (GroupSize.SMALL, GroupSize.MEDIUM)
    if size == 3:
        return (GroupSize.MEDIUM, GroupSize.LARGE)
    return (GroupSize.LARGE,)


def _resolve_difficulty(value: Any) -> Difficulty:
    try:
        return Difficulty(value)
    except ValueError as e:
        raise ConfigurationError(f"Unknown difficulty: {value!r}") from e


class CampaignPlanner:
    """
    Builds a CampaignPlan: the hidden solution, the grouping of every other
    element into elimination clues, and the three-act ordering with red
    herrings, dramatic events and narrative threads layered on top.

    All randomness comes from one SeededRandom created per call, so the same
    request (seed included) always yields an identical plan.
    """

    def __init__(self, registry: Optional[DomainRegistry] = None, settings: Optional[CampaignSettings] = None):
        self.registry = registry or get_registry()
        self.settings = settings or get_campaign_settings()

        # Map thread template ids to the clue collectors that fill them
        self._thread_collectors: Dict[str, Callable[[Tuple[PlannedClue, ...], Tuple[RedHerring, ...]], Dict[int, List[str]]]] = {
            "true_timeline": self._collect_timeline_thread,
            "alibi_network": self._collect_alibi_thread,
            "item_trail": self._collect_item_thread,
            "location_story": self._collect_location_thread,
            "false_lead": self._collect_false_lead_thread,
            "suspicious_behavior": self._collect_suspicious_behavior_thread,
        }
        unknown = [t.id for t in self.settings.thread_templates if t.id not in self._thread_collectors]
        if unknown:
            logger.error(f"Narrative thread templates without a collector: {unknown}")
            raise ConfigurationError(f"Unsupported narrative thread templates: {unknown}")

    # --- Entry point ---

    def plan(self, request: Optional[GenerationRequest] = None) -> CampaignPlan:
        request = request or GenerationRequest()
        difficulty = _resolve_difficulty(request.difficulty)
        difficulty_settings = self.settings.difficulty(difficulty)
        seed = request.seed if request.seed is not None else default_seed()
        rng = SeededRandom(seed)
        logger.info(f"Planning {difficulty.value} campaign (seed={seed}, theme={request.theme_id})")

        exclusions = self._resolve_exclusions(request)
        theme_id = self._select_theme(rng, request.theme_id)
        solution = self._select_solution(rng, exclusions)
        pools = self._elimination_pools(solution, exclusions)
        self._check_minimum_coverage(pools, difficulty_settings)

        elimination_plans = self._plan_eliminations(rng, pools, solution, difficulty_settings)
        narrative_arc = self._create_narrative_arc(difficulty_settings)
        clues = self._sequence_clues(rng, elimination_plans, difficulty_settings)
        red_herrings = self._plan_red_herrings(rng, clues, pools, difficulty_settings)
        dramatic_events = self._plan_dramatic_events(rng, clues, exclusions, difficulty_settings)
        threads = self._plan_narrative_threads(rng, clues, red_herrings)

        plan = CampaignPlan(
            id=f"CMP-{seed:x}-{rng.next_int(1000, 9999)}",
            seed=seed,
            difficulty=difficulty,
            theme_id=theme_id,
            solution=solution,
            elimination_plans=elimination_plans,
            narrative_arc=narrative_arc,
            clues=clues,
            red_herrings=red_herrings,
            dramatic_events=dramatic_events,
            threads=threads,
        )
        logger.info(f"Planned {plan.id}: {len(clues)} clues, {len(red_herrings)} red herrings, "
                    f"{len(dramatic_events)} dramatic events, {len(threads)} threads")
        return plan

    # --- Solution & pools ---

    def _resolve_exclusions(self, request: GenerationRequest) -> Dict[Category, Set[str]]:
        exclusions: Dict[Category, Set[str]] = {}
        for category in Category:
            requested = set(request.exclusions(category))
            unknown = sorted(i for i in requested if not self.registry.has(category, i))
            if unknown:
                logger.error(f"Request excludes unknown {category.plural}: {unknown}")
                raise ConfigurationError(f"Unknown {category.value} ids in exclusion list: {unknown}")
            exclusions[category] = requested
        return exclusions

    def _select_theme(self, rng: SeededRandom, theme_id: Optional[str]) -> str:
        if theme_id:
            if self.registry.theme(theme_id) is not None:
                return theme_id
            logger.warning(f"Unknown theme id '{theme_id}', selecting a theme at random instead.")
        return rng.pick(self.registry.themes).id

    def _select_solution(self, rng: SeededRandom, exclusions: Dict[Category, Set[str]]) -> Solution:
        chosen: Dict[Category, str] = {}
        for category in Category:
            candidates = [i for i in self.registry.ids(category) if i not in exclusions[category]]
            if not candidates:
                logger.error(f"Exclusions leave no {category.plural} to choose a solution from")
                raise ConfigurationError(f"All {category.plural} are excluded; cannot choose a solution")
            chosen[category] = rng.pick(candidates)
        solution = Solution(
            suspect_id=chosen[Category.SUSPECT],
            item_id=chosen[Category.ITEM],
            location_id=chosen[Category.LOCATION],
            time_id=chosen[Category.TIME],
        )
        logger.debug(f"Solution drawn: {solution}")
        return solution

    def _elimination_pools(self, solution: Solution, exclusions: Dict[Category, Set[str]]) -> Dict[Category, List[str]]:
        return {
            category: [i for i in self.registry.ids(category)
                       if i != solution.id_for(category) and i not in exclusions[category]]
            for category in Category
        }

    def _check_minimum_coverage(self, pools: Dict[Category, List[str]], settings: DifficultySettings):
        available = sum(len(pool) for pool in pools.values())
        if available < settings.clue_count:
            logger.error(f"Only {available} eliminable elements for {settings.clue_count} clues")
            raise ConfigurationError(
                f"Insufficient elements for minimum coverage: {available} eliminable elements "
                f"but {settings.difficulty.value} needs {settings.clue_count} clues")

    def _non_solution_ids(self, category: Category, solution: Solution) -> List[str]:
        return [i for i in self.registry.ids(category) if i != solution.id_for(category)]

    # --- Elimination groups ---

    def _plan_eliminations(self, rng: SeededRandom, pools: Dict[Category, List[str]], solution: Solution,
                           settings: DifficultySettings) -> Tuple[CategoryEliminationPlan, ...]:
        groups_by_category = {
            category: self._partition_category(rng, category, pools[category], solution, settings)
            for category in Category
        }
        self._split_until_enough_groups(rng, groups_by_category, solution, settings)
        return tuple(
            CategoryEliminationPlan(category=category, total_elements=len(pools[category]),
                                    groups=tuple(groups_by_category[category]))
            for category in Category
        )

    def _partition_category(self, rng: SeededRandom, category: Category, pool: List[str], solution: Solution,
                            settings: DifficultySettings) -> List[EliminationGroup]:
        max_size = settings.max_group_size[category]
        min_size = settings.min_group_size[category]
        remaining = rng.shuffle(pool)
        groups: List[EliminationGroup] = []
        while remaining:
            if len(remaining) <= max_size:
                size = len(remaining)
            else:
                size = rng.next_int(min_size, max_size)
            members, remaining = remaining[:size], remaining[size:]
            groups.append(self._make_group(rng, category, len(groups), members, solution, max_size))
        logger.debug(f"{category.plural}: {len(pool)} elements in {len(groups)} groups "
                     f"{[g.size for g in groups]}")
        return groups

    def _split_until_enough_groups(self, rng: SeededRandom, groups_by_category: Dict[Category, List[EliminationGroup]],
                                   solution: Solution, settings: DifficultySettings):
        """Splits the largest groups in half until there is one group per clue."""
        total = sum(len(groups) for groups in groups_by_category.values())
        while total < settings.clue_count:
            candidates = [(category, group) for category in Category
                          for group in groups_by_category[category] if group.size > 1]
            if not candidates:
                break
            category, largest = max(candidates, key=lambda pair: pair[1].size)
            groups = groups_by_category[category]
            max_size = settings.max_group_size[category]
            cut = largest.size // 2
            head = self._make_group(rng, category, largest.index, list(largest.element_ids[:cut]), solution, max_size)
            tail = self._make_group(rng, category, len(groups), list(largest.element_ids[cut:]), solution, max_size)
            groups[groups.index(largest)] = head
            groups.append(tail)
            total += 1
            logger.debug(f"Split {category.value} group {largest.index} ({largest.size}) to reach {total} groups")

    def _make_group(self, rng: SeededRandom, category: Category, index: int, members: List[str],
                    solution: Solution, max_size: int) -> EliminationGroup:
        size = len(members)
        if size >= 3 or size >= max_size:
            target_act = Act.SETUP
        elif size == 2:
            target_act = Act.CONFRONTATION
        else:
            target_act = Act.RESOLUTION
        elimination_type = self._select_elimination_type(rng, category, size, target_act)
        return EliminationGroup(
            index=index,
            element_ids=tuple(members),
            elimination_type=elimination_type,
            target_act=target_act,
            priority=index * 10 - size * 5,
            context=self._build_context(rng, elimination_type, members, solution),
        )

    def _select_elimination_type(self, rng: SeededRandom, category: Category, size: int,
                                 target_act: Act) -> EliminationType:
        candidates = self.settings.elimination_types_for(category)
        size_classes = _size_classes_for(size)
        suitable = [t for t in candidates if self.settings.elimination_info(t).typical_group_size in size_classes]
        pool = suitable or candidates
        preferred = self.settings.act(target_act).preferred_elimination_types
        weights = [PREFERRED_TYPE_WEIGHT if t in preferred else 1 for t in pool]
        return rng.pick_weighted(pool, weights)

    def _build_context(self, rng: SeededRandom, elimination_type: EliminationType, members: List[str],
                       solution: Solution) -> EliminationContext:
        if elimination_type in ALIBI_TYPES:
            return EliminationContext(
                alibi_location=rng.pick(self._non_solution_ids(Category.LOCATION, solution)),
                alibi_time=solution.time_id,
            )
        if elimination_type == EliminationType.CATEGORY_SECURED:
            solution_category = self.registry.get(Category.ITEM, solution.item_id).category
            categories = [c for c in self.registry.item_categories() if c != solution_category]
            if not categories:
                return EliminationContext(alibi_time=self._pick_earlier_time(rng, solution))
            in_group = [c for c in categories
                        if any(self.registry.get(Category.ITEM, m).category == c for m in members)]
            return EliminationContext(
                item_category=rng.pick(in_group or categories),
                alibi_time=self._pick_earlier_time(rng, solution),
            )
        if elimination_type == EliminationType.ITEM_SIGHTING:
            return EliminationContext(alibi_location=rng.pick(self._non_solution_ids(Category.LOCATION, solution)))
        if elimination_type in (EliminationType.LOCATION_OCCUPIED, EliminationType.LOCATION_VISIBILITY):
            return EliminationContext(alibi_time=solution.time_id)
        if elimination_type == EliminationType.ALL_TOGETHER:
            return EliminationContext(
                alibi_location=rng.pick(self._non_solution_ids(Category.LOCATION, solution)),
                alibi_time=self._pick_earlier_time(rng, solution),
            )
        if elimination_type in EARLIER_TIME_TYPES:
            return EliminationContext(alibi_time=self._pick_earlier_time(rng, solution))
        return EliminationContext()

    def _pick_earlier_time(self, rng: SeededRandom, solution: Solution) -> Optional[str]:
        solution_order = self.registry.get(Category.TIME, solution.time_id).order
        earlier = [t.id for t in self.registry.times if t.order < solution_order]
        return rng.pick(earlier) if earlier else None

    # --- Narrative arc & sequencing ---

    def _create_narrative_arc(self, settings: DifficultySettings) -> Tuple[ActInfo, ...]:
        arc = []
        for act in ACT_ORDER:
            start, end = settings.act_bounds(act)
            act_settings = self.settings.act(act)
            arc.append(ActInfo(act=act, clue_count=settings.act_distribution[act], start_position=start,
                               end_position=end, focus=act_settings.focus, tone=act_settings.dominant_tone))
        return tuple(arc)

    def _size_preference(self, act: Act, size: int) -> int:
        """Sort key: lower means the act prefers groups of this size."""
        preferred = self.settings.act(act).preferred_group_size
        if preferred == GroupSize.LARGE:
            return -size
        if preferred == GroupSize.MEDIUM:
            return abs(size - 2)
        return size

    def _sequence_clues(self, rng: SeededRandom, elimination_plans: Tuple[CategoryEliminationPlan, ...],
                        settings: DifficultySettings) -> Tuple[PlannedClue, ...]:
        entries = [(plan.category, group) for plan in elimination_plans for group in plan.groups]
        selected: Dict[Act, List[Tuple[Category, EliminationGroup]]] = {}
        leftovers: List[Tuple[Category, EliminationGroup]] = []
        for act in ACT_ORDER:
            quota = settings.act_distribution[act]
            targeted = rng.shuffle([entry for entry in entries if entry[1].target_act == act])
            selected[act] = targeted[:quota]
            leftovers.extend(targeted[quota:])

        for act in ACT_ORDER:
            shortfall = settings.act_distribution[act] - len(selected[act])
            if shortfall > 0:
                leftovers.sort(key=lambda entry, a=act: self._size_preference(a, entry[1].size))
                selected[act].extend(leftovers[:shortfall])
                leftovers = leftovers[shortfall:]
        if leftovers:
            logger.info(f"{len(leftovers)} elimination group(s) left unused; coverage will be incomplete")

        ordered: List[Tuple[Category, EliminationGroup]] = []
        for act in ACT_ORDER:
            # Broad eliminations open each act, single-element ones close it
            ordered.extend(sorted(selected[act], key=lambda entry: (-entry[1].size, entry[1].priority)))

        clues = []
        for position, (category, group) in enumerate(ordered, start=1):
            act, tone = get_tone_for_position(position, settings.act_distribution)
            delivery, speaker = self._select_delivery(rng, group.elimination_type)
            clues.append(PlannedClue(
                position=position,
                act=act,
                tone=tone,
                speaker=speaker,
                delivery=delivery,
                elimination=Elimination(category=category, type=group.elimination_type,
                                        target_ids=group.element_ids, group_index=group.index,
                                        context=group.context),
                back_references=self._build_back_references(rng, position),
            ))
        return tuple(clues)

    def _select_delivery(self, rng: SeededRandom, elimination_type: EliminationType) -> Tuple[DeliveryType, Speaker]:
        preferred = self.settings.elimination_info(elimination_type).preferred_speaker
        if preferred == Speaker.ASHE.value and rng.next_bool(PREFERRED_DELIVERY_CHANCE):
            delivery = DeliveryType.BUTLER
        elif preferred == Speaker.INSPECTOR.value and rng.next_bool(PREFERRED_DELIVERY_CHANCE):
            delivery = DeliveryType.INSPECTOR_NOTE
        else:
            delivery = rng.pick(list(DeliveryType))

        if delivery == DeliveryType.BUTLER:
            return delivery, Speaker.ASHE
        if delivery == DeliveryType.INSPECTOR_NOTE:
            return delivery, Speaker.INSPECTOR
        if preferred == PREFERRED_SPEAKER_EITHER:
            return delivery, rng.pick(list(Speaker))
        return delivery, Speaker(preferred)

    def _build_back_references(self, rng: SeededRandom, position: int) -> Tuple[int, ...]:
        if position <= 1 or not rng.next_bool(BACK_REFERENCE_CHANCE):
            return ()
        earlier = list(range(1, position))
        count = rng.next_int(1, min(MAX_BACK_REFERENCES, len(earlier)))
        # Recent clues are the likelier ones to be referenced
        references = {rng.pick_weighted(earlier, earlier) for _ in range(count)}
        return tuple(sorted(references))

    # --- Red herrings & dramatic events ---

    def _plan_red_herrings(self, rng: SeededRandom, clues: Tuple[PlannedClue, ...], pools: Dict[Category, List[str]],
                           settings: DifficultySettings) -> Tuple[RedHerring, ...]:
        if settings.red_herring_count <= 0 or len(clues) < 2:
            return ()
        last_position = len(clues)
        candidates = [c for c in clues if c.act == Act.CONFRONTATION and c.position < last_position]
        candidates += [c for c in clues if c.act == Act.SETUP and c.position < last_position]

        herrings = []
        for intro in candidates[:settings.red_herring_count]:
            category = rng.pick(RED_HERRING_CATEGORIES)
            pool = pools[category]
            if not pool:
                logger.debug(f"No {category.plural} available for a red herring at clue {intro.position}")
                continue
            cleared_later: List[str] = []
            for clue in clues:
                if clue.position > intro.position and clue.elimination.category == category:
                    cleared_later.extend(t for t in clue.elimination.target_ids if t not in cleared_later)
            target = rng.pick(cleared_later or pool)
            herring_type = rng.pick(list(RedHerringType))
            resolved_at = None
            if settings.red_herrings_must_resolve:
                resolved_at = self._resolution_position(rng, clues, intro.position, target)
            herrings.append(RedHerring(
                type=herring_type,
                target_category=category,
                target_element_id=target,
                introduced_at=intro.position,
                resolved_at=resolved_at,
                hint=f"Something seems suspicious about {self.registry.display_name(category, target)}...",
            ))
        return tuple(herrings)

    def _resolution_position(self, rng: SeededRandom, clues: Tuple[PlannedClue, ...], introduced_at: int,
                             target: str) -> int:
        clearing = [c.position for c in clues if c.position > introduced_at and target in c.elimination.target_ids]
        if clearing:
            return clearing[0]
        later = [c for c in clues if c.position > introduced_at]
        in_final_act = [c.position for c in later if c.act == Act.RESOLUTION]
        return rng.pick(in_final_act or [c.position for c in later])

    def _plan_dramatic_events(self, rng: SeededRandom, clues: Tuple[PlannedClue, ...],
                              exclusions: Dict[Category, Set[str]],
                              settings: DifficultySettings) -> Tuple[DramaticEvent, ...]:
        count = settings.dramatic_event_count
        total = len(clues)
        if count <= 0 or total < MIN_CLUES_FOR_EVENTS:
            return ()
        events = []
        for i in range(count):
            position = math.floor(total / (count + 1) * (i + 1))
            position = max(2, min(position, total - 1))
            trigger = clues[position - 1]
            suitable = [e for e in self.settings.dramatic_event_types if trigger.act in e.suitable_acts]
            if not suitable:
                logger.debug(f"No dramatic event suits {trigger.act.value} at clue {position}")
                continue
            event_type = rng.pick(suitable)
            eliminated = {t for c in clues[:position] if c.elimination.category == Category.SUSPECT
                          for t in c.elimination.target_ids}
            available = [s for s in self.registry.ids(Category.SUSPECT)
                         if s not in eliminated and s not in exclusions[Category.SUSPECT]]
            involved = rng.pick_multiple(available, min(event_type.requires_suspects, len(available)))
            events.append(DramaticEvent(
                event_type=event_type.id,
                after_clue=position,
                involved_suspect_ids=tuple(involved),
                purpose=self._event_purpose(rng, trigger.act),
            ))
        return tuple(events)

    def _event_purpose(self, rng: SeededRandom, act: Act) -> EventPurpose:
        if act == Act.SETUP:
            return EventPurpose.ATMOSPHERE
        if act == Act.CONFRONTATION:
            return rng.pick([EventPurpose.TENSION, EventPurpose.MISDIRECTION])
        return EventPurpose.REVELATION

    # --- Narrative threads ---

    def _plan_narrative_threads(self, rng: SeededRandom, clues: Tuple[PlannedClue, ...],
                                red_herrings: Tuple[RedHerring, ...]) -> Tuple[NarrativeThread, ...]:
        threads = []
        for template in self.settings.thread_templates:
            members = self._thread_collectors[template.id](clues, red_herrings)
            positions = sorted(members)
            if len(positions) < template.min_clues:
                logger.debug(f"Thread '{template.id}' skipped: {len(positions)} clue(s), needs {template.min_clues}")
                continue
            if len(positions) > template.max_clues:
                positions = sorted(rng.pick_multiple(positions, template.max_clues))
            involved: List[str] = []
            for position in positions:
                involved.extend(e for e in members[position] if e not in involved)
            threads.append(NarrativeThread(
                id=template.id,
                name=template.name,
                clue_positions=tuple(positions),
                is_red_herring=template.is_red_herring,
                involved_element_ids=tuple(involved),
            ))
        return tuple(threads)

    @staticmethod
    def _clues_by_position(clues, predicate) -> Dict[int, List[str]]:
        return {c.position: list(c.elimination.target_ids) for c in clues if predicate(c)}

    @staticmethod
    def _herrings_by_position(red_herrings, herring_types) -> Dict[int, List[str]]:
        members: Dict[int, List[str]] = {}
        for herring in red_herrings:
            if herring.type not in herring_types:
                continue
            for position in (herring.introduced_at, herring.resolved_at):
                if position is not None:
                    members.setdefault(position, [])
                    if herring.target_element_id not in members[position]:
                        members[position].append(herring.target_element_id)
        return members

    def _collect_timeline_thread(self, clues, red_herrings) -> Dict[int, List[str]]:
        return self._clues_by_position(clues, lambda c: c.elimination.category == Category.TIME)

    def _collect_alibi_thread(self, clues, red_herrings) -> Dict[int, List[str]]:
        return self._clues_by_position(clues, lambda c: c.elimination.type in ALIBI_TYPES)

    def _collect_item_thread(self, clues, red_herrings) -> Dict[int, List[str]]:
        return self._clues_by_position(clues, lambda c: c.elimination.category == Category.ITEM)

    def _collect_location_thread(self, clues, red_herrings) -> Dict[int, List[str]]:
        return self._clues_by_position(clues, lambda c: c.elimination.category == Category.LOCATION)

    def _collect_false_lead_thread(self, clues, red_herrings) -> Dict[int, List[str]]:
        return self._herrings_by_position(red_herrings, FALSE_LEAD_TYPES)

    def _collect_suspicious_behavior_thread(self, clues, red_herrings) -> Dict[int, List[str]]:
        return self._herrings_by_position(red_herrings, (RedHerringType.SUSPICIOUS_BEHAVIOR,))
