from dataclasses import dataclass
from typing import Dict, List, Tuple, Optional, Any
import logging

from constraint import Problem, FunctionConstraint

from ..common import Category, SETUP_CATEGORY_ORDER, SYMBOLS, SYMBOL_POSITIONS
from ..campaign_types import Solution
from ..registry import CardSymbols, DomainRegistry, get_registry
from ..seeded_random import SeededRandom

logger = logging.getLogger(__name__)

_STEP_WORDING = {
    Category.ITEM: "Separate the ITEM cards. Using the red magnifying glass, find",
    Category.SUSPECT: "Now take the SUSPECT cards. Find",
    Category.LOCATION: "Take the LOCATION cards. Find",
    Category.TIME: "Finally, take the TIME cards. Find",
}
FALLBACK_INTRO = "Inspector Brown has prepared the Case File for this mystery."


@dataclass(frozen=True)
class SymbolMatch:
    symbol: str
    position: int
    position_name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"symbol": self.symbol, "position": self.position, "position_name": self.position_name}


@dataclass(frozen=True)
class SetupInstruction:
    step: int
    category: Category
    instruction: str
    symbol: str
    position: int
    position_name: str
    card: CardSymbols

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "category": self.category.value,
            "instruction": self.instruction,
            "symbol": self.symbol,
            "position": self.position,
            "position_name": self.position_name,
            "matching_card": self.card.to_dict(),
        }


@dataclass(frozen=True)
class DvdSetup:
    instructions: Tuple[SetupInstruction, ...]
    solution: Solution
    narrative_intro: str
    used_fallback: bool = False

    def card_names(self) -> Dict[Category, str]:
        return {instruction.category: instruction.card.card_name for instruction in self.instructions}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instructions": [i.to_dict() for i in self.instructions],
            "solution": self.solution.to_dict(),
            "solution_names": {c.value: name for c, name in self.card_names().items()},
            "narrative_intro": self.narrative_intro,
            "used_fallback": self.used_fallback,
        }


class SymbolSetupSolver:
    """
    Selects the hidden solution cards the way the DVD edition does: every card
    carries six symbols, and one (symbol, position) pair read off each deck
    picks the card that goes into the Case File Envelope.

    The forward direction draws a pair with a SeededRandom. The inverse
    direction and the completeness enumeration are posed as small CSPs
    (python-constraint) over the position and symbol variables.
    """

    def __init__(self, registry: Optional[DomainRegistry] = None):
        self.registry = registry or get_registry()

    # --- Forward: seed -> setup ---

    def generate_setup(self, seed: Optional[int] = None) -> DvdSetup:
        rng = SeededRandom(seed)
        symbols = rng.shuffle(SYMBOLS)
        positions = rng.shuffle(SYMBOL_POSITIONS)

        # The DVD reads every deck at the same position, so try the first drawn position alone first
        position = positions[0]
        combinations = self._combinations_at(rng, position, symbols)
        if not combinations:
            logger.debug(f"No symbol covers every deck at position {position}; trying all positions")
            for position in positions:
                combinations = self._combinations_at(rng, position, symbols)
                if combinations:
                    break

        if not combinations:
            logger.warning(f"No symbol/position pair selects a card from every deck (seed {rng.seed}); "
                           f"falling back to a random Case File")
            return self._fallback_setup(rng)

        symbol, cards = rng.pick(combinations)
        position_name = self.registry.position_names[position]
        instructions = tuple(
            SetupInstruction(
                step=step,
                category=category,
                instruction=(f"{_STEP_WORDING[category]} the card with a {symbol} in the {position_name} "
                             f"position. Place it in the Case File Envelope."),
                symbol=symbol,
                position=position,
                position_name=position_name,
                card=cards[category],
            )
            for step, category in enumerate(SETUP_CATEGORY_ORDER, start=1)
        )
        setup = DvdSetup(instructions=instructions, solution=self._solution_from(cards),
                         narrative_intro=self._narrative_intro(symbol, position_name))
        logger.info(f"Generated setup with {symbol} at {position_name} (seed {rng.seed})")
        return setup

    def _combinations_at(self, rng: SeededRandom, position: int,
                         symbols: List[str]) -> List[Tuple[str, Dict[Category, CardSymbols]]]:
        combinations = []
        for symbol in symbols:
            matches = {category: self.registry.cards_with_symbol_at_position(symbol, position, category)
                       for category in Category}
            if all(matches.values()):
                combinations.append((symbol, {category: rng.pick(matches[category])
                                              for category in SETUP_CATEGORY_ORDER}))
        return combinations

    def _fallback_setup(self, rng: SeededRandom) -> DvdSetup:
        cards = {category: rng.pick(self.registry.cards_for(category)) for category in SETUP_CATEGORY_ORDER}
        symbol = rng.pick(SYMBOLS)
        position = rng.next_int(1, len(SYMBOL_POSITIONS))
        position_name = self.registry.position_names[position]
        instructions = tuple(
            SetupInstruction(step=step, category=category,
                             instruction=f"Place the \"{cards[category].card_name}\" card in the Case File Envelope.",
                             symbol=symbol, position=position, position_name=position_name, card=cards[category])
            for step, category in enumerate(SETUP_CATEGORY_ORDER, start=1)
        )
        return DvdSetup(instructions=instructions, solution=self._solution_from(cards),
                        narrative_intro=FALLBACK_INTRO, used_fallback=True)

    @staticmethod
    def _solution_from(cards: Dict[Category, CardSymbols]) -> Solution:
        return Solution(suspect_id=cards[Category.SUSPECT].card_id, item_id=cards[Category.ITEM].card_id,
                        location_id=cards[Category.LOCATION].card_id, time_id=cards[Category.TIME].card_id)

    def _narrative_intro(self, symbol: str, position_name: str) -> str:
        description = self.registry.symbol_descriptions.get(symbol, "a hidden sign")
        return (f"Inspector Brown instructs you to look for {description}. Find the {symbol} symbol in the "
                f"{position_name} position on each card type. These cards hold the secret to tonight's mystery.")

    # --- Inverse: solution -> (symbol, position) ---

    def find_symbol_for_solution(self, suspect_id: str, item_id: str, location_id: str,
                                 time_id: str) -> Optional[SymbolMatch]:
        """
        Finds the (symbol, position) pair that would deal this exact solution.

        Returns the match with the lowest position, or None when the four cards
        never share a symbol at the same position (or an id has no card).
        """
        cards = [self.registry.card(card_id) for card_id in (suspect_id, item_id, location_id, time_id)]
        if any(card is None for card in cards):
            logger.debug(f"No card for one of {suspect_id}, {item_id}, {location_id}, {time_id}")
            return None

        problem = Problem()
        problem.addVariable("position", list(SYMBOL_POSITIONS))
        problem.addVariable("symbol", list(SYMBOLS))
        for card in cards:
            problem.addConstraint(FunctionConstraint(lambda p, s, c=card: c.symbol_at(p) == s), ["position", "symbol"])

        solutions = problem.getSolutions()
        if not solutions:
            return None
        best = min(solutions, key=lambda sol: sol["position"])
        return SymbolMatch(symbol=best["symbol"], position=best["position"],
                           position_name=self.registry.position_names[best["position"]])

    def explain_solution(self, solution: Solution) -> Optional[List[str]]:
        """Setup instructions that would deal the given solution, or None if no symbol selects it."""
        match = self.find_symbol_for_solution(solution.suspect_id, solution.item_id,
                                              solution.location_id, solution.time_id)
        if match is None:
            return None
        return [f"{_STEP_WORDING[category]} the card with a {match.symbol} in the {match.position_name} position. "
                f"It should be {self.registry.card(solution.id_for(category)).card_name}."
                for category in SETUP_CATEGORY_ORDER]

    def candidates(self, symbol: str, position: int) -> Dict[Category, List[str]]:
        """Card ids per deck showing the symbol at the position."""
        if symbol not in SYMBOLS or position not in SYMBOL_POSITIONS:
            raise ValueError(f"Unknown symbol/position: {symbol}/{position}")
        return {category: [c.card_id for c in self.registry.cards_with_symbol_at_position(symbol, position, category)]
                for category in Category}

    def reachable_solutions(self) -> List[Solution]:
        """Every solution the forward protocol can deal, found by a CSP over all cards."""
        problem = Problem()
        problem.addVariable("position", list(SYMBOL_POSITIONS))
        problem.addVariable("symbol", list(SYMBOLS))
        for category in Category:
            cards = {card.card_id: card for card in self.registry.cards_for(category)}
            problem.addVariable(category.value, list(cards))
            problem.addConstraint(
                FunctionConstraint(lambda p, s, card_id, lookup=cards: lookup[card_id].symbol_at(p) == s),
                ["position", "symbol", category.value])

        reachable = set()
        for sol in problem.getSolutionIter():
            reachable.add((sol[Category.SUSPECT.value], sol[Category.ITEM.value],
                           sol[Category.LOCATION.value], sol[Category.TIME.value]))
        logger.info(f"{len(reachable)} solutions are reachable through the card symbols")
        return [Solution(suspect_id=s, item_id=i, location_id=l, time_id=t) for s, i, l, t in sorted(reachable)]
