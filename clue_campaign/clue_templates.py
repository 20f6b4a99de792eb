"""
Sentence templates for the seventeen elimination mechanisms, their short
reason texts, speaker voices and dramatic event prose.

Every mechanism must have both a clue template and a reason; the renderer
refuses to start when ``missing_handlers()`` reports a gap.
"""
from dataclasses import dataclass
from typing import Dict, List, Tuple, Optional, Callable, Sequence

from .common import Category, EliminationType, RedHerringType, Speaker, Tone
from .seeded_random import SeededRandom


@dataclass(frozen=True)
class TemplateContext:
    rng: SeededRandom
    names: Tuple[str, ...]
    alibi_location: str
    alibi_time: Optional[str]
    later_time: str
    item_category: Optional[str] = None
    before_theft: bool = True

    @property
    def plural(self) -> bool:
        return len(self.names) > 1

    @property
    def joined(self) -> str:
        return join_names(self.names)

    @property
    def the_joined(self) -> str:
        return join_names([f"the {name}" for name in self.names])

    def verb(self, singular: str, plural: str) -> str:
        return plural if self.plural else singular


def join_names(names: Sequence[str]) -> str:
    names = list(names)
    if not names:
        return ""
    if len(names) == 1:
        return names[0]
    if len(names) == 2:
        return f"{names[0]} and {names[1]}"
    return f"{', '.join(names[:-1])}, and {names[-1]}"


def capitalize_first(text: str) -> str:
    return text[:1].upper() + text[1:]


# --- Suspect mechanisms ---

def _group_alibi(ctx: TemplateContext) -> str:
    if len(ctx.names) == 1:
        return (f"{ctx.names[0]} was with several other guests in the {ctx.alibi_location} during "
                f"{ctx.alibi_time}. They couldn't have slipped away unnoticed.")
    if len(ctx.names) == 2:
        return (f"{ctx.names[0]} and {ctx.names[1]} were together in the {ctx.alibi_location} during "
                f"{ctx.alibi_time}, alibied by each other and the servants.")
    return (f"{ctx.joined} were gathered in the {ctx.alibi_location} throughout {ctx.alibi_time}. "
            f"None could have acted alone.")


def _individual_alibi(ctx: TemplateContext) -> str:
    return (f"{ctx.joined} never left the {ctx.alibi_location} between {ctx.alibi_time} and the "
            f"following hour. Multiple witnesses can confirm this.")


def _witness_testimony(ctx: TemplateContext) -> str:
    if not ctx.plural:
        return (f"Several guests reported seeing {ctx.names[0]} in the {ctx.alibi_location} at the "
                f"critical moment. The testimony is consistent.")
    return (f"Witnesses confirm that {ctx.joined} were seen in the {ctx.alibi_location} during the theft. "
            f"Their whereabouts are accounted for.")


_CONDITIONS = (
    "had injured their hand earlier",
    "was nursing a twisted ankle",
    "was feeling unwell",
    "had been drinking heavily",
)


def _physical_impossibility(ctx: TemplateContext) -> str:
    condition = ctx.rng.pick(_CONDITIONS)
    if not ctx.plural:
        return f"{ctx.names[0]} {condition} that day. They physically couldn't have managed the theft."
    return (f"{ctx.joined} were in no state to act: each {condition} that day. "
            f"None of them physically could have managed the theft.")


def _motive_cleared(ctx: TemplateContext) -> str:
    return (f"{ctx.joined} had no reason to steal from Mr. Boddy. In fact, he had already promised "
            f"{ctx.verb('them', 'each of them')} a piece from the collection as a gift.")


# --- Item mechanisms ---

def _category_secured(ctx: TemplateContext) -> str:
    where = f"the {ctx.item_category} display" if ctx.item_category else "the display cabinets"
    if ctx.alibi_time:
        return (f"By the time the staff retired after {ctx.alibi_time}, {ctx.the_joined} had been locked "
                f"in {where} and accounted for.")
    return f"{capitalize_first(ctx.the_joined)} had been locked in {where} and accounted for before the theft."


def _item_sighting(ctx: TemplateContext) -> str:
    return (f"{capitalize_first(ctx.the_joined)} {ctx.verb('was', 'were')} spotted in the {ctx.alibi_location} "
            f"during {ctx.later_time}, well after the theft must have occurred.")


def _item_accounted(ctx: TemplateContext) -> str:
    return (f"{capitalize_first(ctx.the_joined)} {ctx.verb('has', 'have')} been located and verified as untouched. "
            f"{ctx.verb('It remains', 'They remain')} exactly where {ctx.verb('it was', 'they were')} placed.")


def _item_condition(ctx: TemplateContext) -> str:
    return (f"The display {ctx.verb('case', 'cases')} containing {ctx.the_joined} "
            f"{ctx.verb('shows', 'show')} no signs of tampering. The dust pattern is undisturbed.")


# --- Location mechanisms ---

_CLOSURES = (
    ("was being renovated", "were being renovated"),
    ("had been sealed off for cleaning", "had been sealed off for cleaning"),
    ("was locked due to water damage", "were locked due to water damage"),
    ("was closed while the furniture was moved", "were closed while the furniture was moved"),
)


def _location_inaccessible(ctx: TemplateContext) -> str:
    singular, plural = ctx.rng.pick(_CLOSURES)
    return (f"{capitalize_first(ctx.the_joined)} {ctx.verb(singular, plural)} and no one could enter "
            f"{ctx.verb('it', 'them')} all weekend.")


def _location_undisturbed(ctx: TemplateContext) -> str:
    return (f"Upon inspection, {ctx.the_joined} {ctx.verb('appears', 'appear')} completely undisturbed. "
            f"Not a speck of dust was moved, no signs of any theft.")


def _location_occupied(ctx: TemplateContext) -> str:
    return (f"{capitalize_first(ctx.the_joined)} {ctx.verb('was', 'were')} continuously occupied throughout "
            f"{ctx.alibi_time}. Someone was always present.")


def _location_visibility(ctx: TemplateContext) -> str:
    return (f"Staff were in and out of {ctx.the_joined} all evening. Any suspicious activity would have "
            f"been noticed immediately.")


# --- Time mechanisms ---

def _all_together(ctx: TemplateContext) -> str:
    return (f"During {ctx.joined}, all guests were gathered in the {ctx.alibi_location}. No one left for "
            f"even a moment; it would have been noticed.")


def _item_present(ctx: TemplateContext) -> str:
    if ctx.before_theft:
        return (f"I personally verified that every piece of the collection was still in its place during "
                f"{ctx.joined}. The theft must have occurred later.")
    return (f"During {ctx.joined}, the collection was under lock and key and checked by the staff. "
            f"Nothing could have been taken then.")


def _staff_activity(ctx: TemplateContext) -> str:
    return (f"During {ctx.joined}, the entire staff was about their duties throughout the mansion. Any "
            f"suspicious activity would have been spotted.")


def _timeline_impossibility(ctx: TemplateContext) -> str:
    return (f"The timeline rules out {ctx.joined} entirely. Based on when the item was last seen and when "
            f"it was discovered missing, {ctx.verb('this period is', 'these periods are')} impossible.")


CLUE_TEMPLATES: Dict[EliminationType, Callable[[TemplateContext], str]] = {
    EliminationType.GROUP_ALIBI: _group_alibi,
    EliminationType.INDIVIDUAL_ALIBI: _individual_alibi,
    EliminationType.WITNESS_TESTIMONY: _witness_testimony,
    EliminationType.PHYSICAL_IMPOSSIBILITY: _physical_impossibility,
    EliminationType.MOTIVE_CLEARED: _motive_cleared,
    EliminationType.CATEGORY_SECURED: _category_secured,
    EliminationType.ITEM_SIGHTING: _item_sighting,
    EliminationType.ITEM_ACCOUNTED: _item_accounted,
    EliminationType.ITEM_CONDITION: _item_condition,
    EliminationType.LOCATION_INACCESSIBLE: _location_inaccessible,
    EliminationType.LOCATION_UNDISTURBED: _location_undisturbed,
    EliminationType.LOCATION_OCCUPIED: _location_occupied,
    EliminationType.LOCATION_VISIBILITY: _location_visibility,
    EliminationType.ALL_TOGETHER: _all_together,
    EliminationType.ITEM_PRESENT: _item_present,
    EliminationType.STAFF_ACTIVITY: _staff_activity,
    EliminationType.TIMELINE_IMPOSSIBILITY: _timeline_impossibility,
}


# Reason shown next to the eliminated cards; takes whether several elements are cleared
ELIMINATION_REASONS: Dict[EliminationType, Callable[[bool], str]] = {
    EliminationType.GROUP_ALIBI: lambda plural: f"{'These suspects were' if plural else 'This suspect was'} together and alibi each other",
    EliminationType.INDIVIDUAL_ALIBI: lambda plural: "Has a verified alibi for the time of the theft",
    EliminationType.WITNESS_TESTIMONY: lambda plural: "Witnessed elsewhere at the critical time",
    EliminationType.PHYSICAL_IMPOSSIBILITY: lambda plural: "Physically unable to commit the theft",
    EliminationType.MOTIVE_CLEARED: lambda plural: "Had no motive to steal",
    EliminationType.CATEGORY_SECURED: lambda plural: f"{'These items were' if plural else 'This item was'} secured before the theft",
    EliminationType.ITEM_SIGHTING: lambda plural: "Seen after the theft occurred",
    EliminationType.ITEM_ACCOUNTED: lambda plural: "Located and verified as untouched",
    EliminationType.ITEM_CONDITION: lambda plural: "Display case was undisturbed",
    EliminationType.LOCATION_INACCESSIBLE: lambda plural: f"{'These locations were' if plural else 'This location was'} inaccessible",
    EliminationType.LOCATION_UNDISTURBED: lambda plural: "Shows no signs of tampering",
    EliminationType.LOCATION_OCCUPIED: lambda plural: "Was continuously occupied",
    EliminationType.LOCATION_VISIBILITY: lambda plural: "Too much staff activity to go unnoticed",
    EliminationType.ALL_TOGETHER: lambda plural: "All suspects were together during this time",
    EliminationType.ITEM_PRESENT: lambda plural: "The collection was verified intact during this time",
    EliminationType.STAFF_ACTIVITY: lambda plural: "Too much staff activity for theft",
    EliminationType.TIMELINE_IMPOSSIBILITY: lambda plural: "Timeline rules out this period",
}


def missing_handlers() -> List[EliminationType]:
    """Mechanisms lacking a clue template or a reason text."""
    return [t for t in EliminationType if t not in CLUE_TEMPLATES or t not in ELIMINATION_REASONS]


# --- Speaker voices ---

VOICE_PREFIXES: Dict[Speaker, Dict[Tone, Tuple[str, ...]]] = {
    Speaker.ASHE: {
        Tone.ESTABLISHING: ("If I may, sir...", "I should mention, sir...", "It may be of interest that"),
        Tone.DEVELOPING: ("I happened to observe that", "I couldn't help but notice that",
                          "During my duties, I observed that"),
        Tone.ESCALATING: ("Most peculiar, sir, but", "I feel I must mention that", "This is rather important, sir:"),
        Tone.REVEALING: ("I can confirm that", "I am certain that", "Without question, sir,"),
    },
    Speaker.INSPECTOR: {
        Tone.ESTABLISHING: ("My preliminary investigation shows that", "Initial findings indicate that",
                            "The evidence suggests that"),
        Tone.DEVELOPING: ("Upon further investigation,", "Examining the facts,", "The evidence reveals that"),
        Tone.ESCALATING: ("This is significant:", "Pay close attention to this:", "A crucial piece of evidence:"),
        Tone.REVEALING: ("The facts are clear:", "I can definitively state that", "This is conclusive evidence that"),
    },
}

REFERENCE_TRANSITIONS: Tuple[str, ...] = (
    "Building on what we've learned,",
    "As the investigation continues,",
    "Following up on earlier findings,",
    "In connection with previous evidence,",
    "Adding to our understanding,",
)


# --- Red herring asides ---

RED_HERRING_INTRODUCTIONS: Dict[RedHerringType, str] = {
    RedHerringType.FALSE_SUSPICION: "Still, one cannot shake the feeling that {name} is somehow involved.",
    RedHerringType.MISLEADING_EVIDENCE: "Oddly, a smudge on the doorframe seemed to point toward {name} as well.",
    RedHerringType.SUSPICIOUS_BEHAVIOR: "Something seems suspicious about {name}; it drew more than one curious glance.",
}

RED_HERRING_RESOLUTION = "As for the earlier suspicion around {name}, it turns out to have an innocent explanation."


def herring_name(category: Category, display_name: str) -> str:
    return display_name if category == Category.SUSPECT else f"the {display_name}"


# --- Dramatic events ---

_CRASH_ROOMS = ("the library", "the conservatory", "a distant corridor", "the gallery")


def _power_outage(rng: SeededRandom, names: List[str]) -> str:
    return ("The lights flicker and go out momentarily, plunging the room into darkness. When they return, "
            "everyone looks around nervously.")


def _argument(rng: SeededRandom, names: List[str]) -> str:
    if len(names) >= 2:
        return (f"{names[0]} and {names[1]} exchange heated words. Their argument draws uncomfortable stares "
                f"from the other guests.")
    return "Raised voices echo from another room: clearly a heated disagreement between guests."


def _scream(rng: SeededRandom, names: List[str]) -> str:
    if names:
        return f"A scream echoes through the mansion! It came from near where {names[0]} was last seen."
    return "A scream echoes through the mansion corridors! Everyone freezes, uncertain of its source."


def _discovery(rng: SeededRandom, names: List[str]) -> str:
    if names:
        return f"{names[0]} rushes in, pale-faced, claiming to have discovered something disturbing in another room."
    return "A commotion breaks out as something unexpected is discovered elsewhere in the mansion."


def _arrival(rng: SeededRandom, names: List[str]) -> str:
    if names:
        return f"The door opens unexpectedly. {names[0]} enters, looking rather suspicious about their late arrival."
    return "An unexpected arrival disrupts the evening as the butler announces a surprise guest."


def _crash(rng: SeededRandom, names: List[str]) -> str:
    return (f"A loud crash echoes from {rng.pick(_CRASH_ROOMS)}! Upon investigation, it appears to be a fallen "
            f"vase. Or was it deliberately knocked over?")


def _secret_passage(rng: SeededRandom, names: List[str]) -> str:
    return ("While examining the walls, a hidden panel clicks open, revealing a secret passage! How long has "
            "this been here, and who else knows about it?")


def _confrontation(rng: SeededRandom, names: List[str]) -> str:
    if names:
        return (f"Inspector Brown turns to {names[0]} with a piercing gaze. \"I have some questions for you "
                f"about your whereabouts this evening.\"")
    return "Inspector Brown surveys the room with narrowed eyes. \"Someone here knows more than they're telling me.\""


EVENT_DESCRIPTIONS: Dict[str, Callable[[SeededRandom, List[str]], str]] = {
    "power_outage": _power_outage,
    "argument": _argument,
    "scream": _scream,
    "discovery": _discovery,
    "arrival": _arrival,
    "crash": _crash,
    "secret_passage": _secret_passage,
    "confrontation": _confrontation,
}


def generic_event_description(atmospheric_elements: Sequence[str]) -> str:
    if not atmospheric_elements:
        return "Something unexpected occurs, raising the tension in the room."
    mood = capitalize_first(join_names(list(atmospheric_elements)))
    return f"Something unexpected occurs, raising the tension in the room. {mood} add to the uneasy atmosphere."
