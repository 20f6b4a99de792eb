from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, List, Tuple, Optional, Any, Union
import json
import logging
import os

from .common import Category, ConfigurationError, DATA_DIR_ENV_VAR, DEFAULT_DATA_DIR, SYMBOLS, SYMBOL_POSITIONS

logger = logging.getLogger(__name__)


def resolve_data_dir(data_dir: Optional[str] = None) -> str:
    """Explicit argument first, then the environment override, then the bundled game_data."""
    resolved = data_dir or os.environ.get(DATA_DIR_ENV_VAR) or DEFAULT_DATA_DIR
    if not os.path.isdir(resolved):
        logger.error(f"Could not find game_data directory at resolved path: {resolved}")
        raise FileNotFoundError(f"Could not locate the game_data directory at: {resolved}")
    return resolved


def load_data_from_json(filename: str, data_dir: Optional[str] = None) -> Union[Dict, List]:
    """Helper to load data from a JSON file in the data directory."""
    filepath = os.path.join(resolve_data_dir(data_dir), filename)
    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            return json.load(f)
    except FileNotFoundError:
        logger.error(f"Data file not found: {filepath}")
        raise FileNotFoundError(f"Required data file missing: {filepath}")
    except json.JSONDecodeError as e:
        logger.error(f"Error decoding JSON from {filepath}: {e}")
        raise ValueError(f"Invalid JSON format in {filepath}")


# --- Element records ---

@dataclass(frozen=True)
class Suspect:
    id: str
    name: str
    display_name: str
    color: str
    role: str
    description: str
    traits: Tuple[str, ...]


@dataclass(frozen=True)
class Item:
    id: str
    name: str
    name_uk: str
    category: str
    description: str
    likely_locations: Tuple[str, ...]

    @property
    def display_name(self) -> str:
        return self.name


@dataclass(frozen=True)
class Location:
    id: str
    name: str
    type: str
    position: str
    secret_passage_to: Optional[str]
    can_be_locked: bool
    adjacent_rooms: Tuple[str, ...]
    description: str

    @property
    def display_name(self) -> str:
        return self.name


@dataclass(frozen=True)
class TimePeriod:
    id: str
    name: str
    order: int
    hour_range: str
    light_condition: str
    typical_activities: Tuple[str, ...]

    @property
    def display_name(self) -> str:
        return self.name


@dataclass(frozen=True)
class MysteryTheme:
    id: str
    name: str
    period: str
    description: str
    typical_locked_rooms: Tuple[str, ...]
    atmospheric_elements: Tuple[str, ...]


@dataclass(frozen=True)
class CardSymbols:
    card_id: str
    card_name: str
    card_type: Category
    symbols: Tuple[str, ...]

    def symbol_at(self, position: int) -> str:
        return self.symbols[position - 1]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "card_id": self.card_id,
            "card_name": self.card_name,
            "card_type": self.card_type.value,
            "symbols": list(self.symbols),
        }


def _tupled(record: Dict[str, Any]) -> Dict[str, Any]:
    return {k: tuple(v) if isinstance(v, list) else v for k, v in record.items()}


class DomainRegistry:
    """
    Read-only catalogue of the fixed game elements, mystery themes and the
    card-symbol matrix. Built once per process and shared by every component.
    """

    def __init__(self, suspects: List[Suspect], items: List[Item], locations: List[Location],
                 times: List[TimePeriod], themes: List[MysteryTheme], cards: List[CardSymbols],
                 symbol_descriptions: Dict[str, str], position_names: Dict[int, str]):
        self.suspects: Tuple[Suspect, ...] = tuple(suspects)
        self.items: Tuple[Item, ...] = tuple(items)
        self.locations: Tuple[Location, ...] = tuple(locations)
        self.times: Tuple[TimePeriod, ...] = tuple(times)
        self.themes: Tuple[MysteryTheme, ...] = tuple(themes)
        self.cards: Tuple[CardSymbols, ...] = tuple(cards)
        self.symbol_descriptions = dict(symbol_descriptions)
        self.position_names = dict(position_names)

        self._by_category = {
            Category.SUSPECT: self.suspects,
            Category.ITEM: self.items,
            Category.LOCATION: self.locations,
            Category.TIME: self.times,
        }
        self._index: Dict[Category, Dict[str, Any]] = {
            category: {element.id: element for element in elements}
            for category, elements in self._by_category.items()
        }
        self._themes_by_id = {theme.id: theme for theme in self.themes}
        self._locations_by_name = {location.name: location for location in self.locations}
        self._cards_by_id = {card.card_id: card for card in self.cards}
        self._check_integrity()

    @classmethod
    def from_data(cls, elements: Dict[str, Any], card_data: Dict[str, Any]) -> "DomainRegistry":
        try:
            suspects = [Suspect(**_tupled(s)) for s in elements["suspects"]]
            items = [Item(**_tupled(i)) for i in elements["items"]]
            locations = [Location(**_tupled(l)) for l in elements["locations"]]
            times = [TimePeriod(**_tupled(t)) for t in elements["times"]]
            themes = [MysteryTheme(**_tupled(m)) for m in elements["themes"]]
            cards = [
                CardSymbols(card_id=c["card_id"], card_name=c["card_name"],
                            card_type=Category(c["card_type"]), symbols=tuple(c["symbols"]))
                for c in card_data["cards"]
            ]
            position_names = {int(k): v for k, v in card_data["positions"].items()}
            symbol_descriptions = dict(card_data["symbols"])
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed registry data: {e}", exc_info=True)
            raise ConfigurationError(f"Malformed registry data: {e}") from e
        return cls(suspects, items, locations, times, themes, cards, symbol_descriptions, position_names)

    def _check_integrity(self):
        for category, elements in self._by_category.items():
            if not elements:
                raise ConfigurationError(f"Registry has no {category.plural}")
            if len(self._index[category]) != len(elements):
                raise ConfigurationError(f"Duplicate ids among {category.plural}")
        if not self.themes:
            raise ConfigurationError("Registry has no mystery themes")
        if set(self.position_names) != set(SYMBOL_POSITIONS):
            raise ConfigurationError(f"Card positions must be exactly {list(SYMBOL_POSITIONS)}")
        for card in self.cards:
            if len(card.symbols) != len(SYMBOL_POSITIONS):
                raise ConfigurationError(f"Card {card.card_id} must carry {len(SYMBOL_POSITIONS)} symbols")
            unknown = [s for s in card.symbols if s not in SYMBOLS]
            if unknown:
                raise ConfigurationError(f"Card {card.card_id} has unknown symbols: {unknown}")
            if card.card_id not in self._index[card.card_type]:
                raise ConfigurationError(f"Card {card.card_id} does not match any {card.card_type.value}")

    # --- Lookups ---

    def elements(self, category: Category) -> Tuple[Any, ...]:
        return self._by_category[category]

    def ids(self, category: Category) -> List[str]:
        return [element.id for element in self._by_category[category]]

    def has(self, category: Category, element_id: str) -> bool:
        return element_id in self._index[category]

    def get(self, category: Category, element_id: str) -> Optional[Any]:
        return self._index[category].get(element_id)

    def display_name(self, category: Category, element_id: str) -> str:
        """Player-facing name; unknown ids are returned unchanged."""
        element = self.get(category, element_id)
        return element.display_name if element is not None else element_id

    def display_names(self, category: Category, element_ids) -> List[str]:
        return [self.display_name(category, element_id) for element_id in element_ids]

    def all_display_names(self) -> List[str]:
        return [element.display_name for elements in self._by_category.values() for element in elements]

    def theme(self, theme_id: str) -> Optional[MysteryTheme]:
        return self._themes_by_id.get(theme_id)

    def location_by_name(self, name: str) -> Optional[Location]:
        return self._locations_by_name.get(name)

    def item_categories(self) -> List[str]:
        seen: List[str] = []
        for item in self.items:
            if item.category not in seen:
                seen.append(item.category)
        return seen

    def card(self, card_id: str) -> Optional[CardSymbols]:
        return self._cards_by_id.get(card_id)

    def cards_for(self, category: Category) -> List[CardSymbols]:
        return [card for card in self.cards if card.card_type == category]

    def cards_with_symbol_at_position(self, symbol: str, position: int,
                                      category: Optional[Category] = None) -> List[CardSymbols]:
        cards = self.cards if category is None else self.cards_for(category)
        return [card for card in cards if card.symbol_at(position) == symbol]


def load_registry(data_dir: Optional[str] = None) -> DomainRegistry:
    """Loads the element and card-symbol data files into a registry."""
    try:
        elements = load_data_from_json("elements.json", data_dir)
        card_data = load_data_from_json("card_symbols.json", data_dir)
    except (FileNotFoundError, ValueError) as e:
        logger.critical(f"Fatal error loading critical game data: {e}", exc_info=True)
        raise RuntimeError("Failed to load essential game data. Cannot continue.") from e
    registry = DomainRegistry.from_data(elements, card_data)
    logger.info(f"Loaded registry: {len(registry.suspects)} suspects, {len(registry.items)} items, "
                f"{len(registry.locations)} locations, {len(registry.times)} times, {len(registry.themes)} themes")
    return registry


@lru_cache(maxsize=None)
def get_registry() -> DomainRegistry:
    """Process-wide registry, loaded on first use."""
    return load_registry()
