import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from .common import Category, ConfigurationError, Difficulty, SYMBOLS, SYMBOL_POSITIONS
from .campaign_types import CampaignPlan, GeneratedScenario, GenerationRequest, Solution
from .pipeline import CampaignGenerator, CampaignValidationError
from .registry import DomainRegistry, get_registry, load_registry
from .settings import CampaignSettings, get_campaign_settings, load_campaign_settings
from .solvers import SymbolSetupSolver
from .validator import CampaignValidator

logger = logging.getLogger(__name__)

LOOKUP_TOPICS = ("suspects", "items", "locations", "times", "themes", "cards", "difficulties")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="clue_campaign", description="Mystery campaign planner and validator")
    parser.add_argument("--data-dir", default=None, help="Directory holding the game_data JSON files")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging (repeatable)")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_request_args(cmd: argparse.ArgumentParser):
        cmd.add_argument("--difficulty", choices=[d.value for d in Difficulty], default=Difficulty.INTERMEDIATE.value)
        cmd.add_argument("--seed", type=int, default=None, help="Seed for a reproducible campaign")
        cmd.add_argument("--theme", default=None, help="Mystery theme id (M01..M12)")
        for category in Category:
            cmd.add_argument(f"--exclude-{category.value}", action="append", default=[],
                             dest=f"exclude_{category.plural}", metavar="ID",
                             help=f"Leave this {category.value} out of the game (repeatable)")

    plan = sub.add_parser("plan", help="Plan a campaign and print it as JSON")
    add_request_args(plan)

    scenario = sub.add_parser("scenario", help="Plan and render a full scenario")
    add_request_args(scenario)
    scenario.add_argument("--created-at", default=None, help="Timestamp stamped into the scenario metadata")
    scenario.add_argument("--with-plan", action="store_true", help="Include the plan and both validation reports")

    validate = sub.add_parser("validate", help="Validate a plan or scenario JSON file")
    validate.add_argument("file", help="Path to the JSON file ('-' for stdin)")
    validate.add_argument("--kind", choices=["plan", "scenario", "auto"], default="auto")

    setup = sub.add_parser("setup", help="Card-symbol setup for the DVD edition")
    setup.add_argument("--seed", type=int, default=None)
    setup.add_argument("--solution", nargs=4, metavar=("SUSPECT", "ITEM", "LOCATION", "TIME"), default=None,
                       help="Find the symbol and position that deal this solution instead")
    setup.add_argument("--reachable", action="store_true", help="List every solution the symbols can deal")

    lookup = sub.add_parser("lookup", help="Show registry data")
    lookup.add_argument("topic", choices=LOOKUP_TOPICS)
    lookup.add_argument("--symbol", choices=SYMBOLS, default=None, help="Cards only: filter by symbol")
    lookup.add_argument("--position", type=int, choices=SYMBOL_POSITIONS, default=None,
                        help="Cards only: position of --symbol")
    return parser


def _request_from_args(args: argparse.Namespace) -> GenerationRequest:
    return GenerationRequest.from_dict({
        "difficulty": args.difficulty,
        "theme_id": args.theme,
        "seed": args.seed,
        "exclude_suspects": args.exclude_suspects,
        "exclude_items": args.exclude_items,
        "exclude_locations": args.exclude_locations,
        "exclude_times": args.exclude_times,
    })


def _read_json(path: str) -> Dict[str, Any]:
    source = "stdin" if path == "-" else path
    try:
        if path == "-":
            data = json.load(sys.stdin)
        else:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON format in {source}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Expected a JSON object in {source}, got {type(data).__name__}")
    return data


def _looks_like_plan(data: Dict[str, Any]) -> bool:
    clues = data.get("clues") or [{}]
    first = clues[0] if isinstance(clues, list) and isinstance(clues[0], dict) else {}
    return "elimination" in first or "elimination_plans" in data


def _emit(payload: Any):
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _lookup(registry: DomainRegistry, settings: CampaignSettings, args: argparse.Namespace) -> Any:
    if args.topic == "themes":
        return [{"id": t.id, "name": t.name, "period": t.period, "description": t.description,
                 "typical_locked_rooms": list(t.typical_locked_rooms)} for t in registry.themes]
    if args.topic == "cards":
        if (args.symbol is None) != (args.position is None):
            raise ConfigurationError("--symbol and --position must be given together")
        if args.symbol:
            return [c.to_dict() for c in registry.cards_with_symbol_at_position(args.symbol, args.position)]
        return [c.to_dict() for c in registry.cards]
    if args.topic == "difficulties":
        return {d.value: {"clue_count": s.clue_count,
                          "act_distribution": {a.value: n for a, n in s.act_distribution.items()},
                          "red_herrings": s.red_herring_count,
                          "dramatic_events": s.dramatic_event_count}
                for d, s in settings.difficulties.items()}
    category = next(c for c in Category if c.plural == args.topic)
    return [{"id": e.id, "name": e.display_name} for e in registry.elements(category)]


def run(args: argparse.Namespace) -> int:
    if args.data_dir:
        registry, settings = load_registry(args.data_dir), load_campaign_settings(args.data_dir)
    else:
        registry, settings = get_registry(), get_campaign_settings()

    if args.command == "plan":
        _emit(CampaignGenerator(registry, settings).plan(_request_from_args(args)).to_dict())
        return 0

    if args.command == "scenario":
        result = CampaignGenerator(registry, settings).generate(_request_from_args(args), created_at=args.created_at)
        _emit(result.to_dict() if args.with_plan else result.scenario.to_dict())
        return 0

    if args.command == "validate":
        data = _read_json(args.file)
        kind = args.kind if args.kind != "auto" else ("plan" if _looks_like_plan(data) else "scenario")
        validator = CampaignValidator(registry, settings)
        try:
            document = CampaignPlan.from_dict(data) if kind == "plan" else GeneratedScenario.from_dict(data)
        except AttributeError as e:
            raise ConfigurationError(f"Malformed {kind} in {args.file}: {e}") from e
        if kind == "plan":
            result = validator.validate_plan(document)
        else:
            result = validator.validate_scenario(document)
        _emit(result.to_dict())
        return 0 if result.valid else 1

    if args.command == "setup":
        solver = SymbolSetupSolver(registry)
        if args.reachable:
            _emit([s.to_dict() for s in solver.reachable_solutions()])
            return 0
        if args.solution:
            match = solver.find_symbol_for_solution(*args.solution)
            _emit({"match": match.to_dict() if match else None,
                   "instructions": solver.explain_solution(Solution(*args.solution))})
            return 0
        _emit(solver.generate_setup(args.seed).to_dict())
        return 0

    if args.command == "lookup":
        _emit(_lookup(registry, settings, args))
        return 0

    raise SystemExit(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    level = logging.WARNING if args.verbose == 0 else logging.INFO if args.verbose == 1 else logging.DEBUG
    logging.basicConfig(level=level, format='%(asctime)s - %(levelname)s - %(message)s', stream=sys.stderr)
    try:
        return run(args)
    except CampaignValidationError as e:
        _emit(e.result.to_dict())
        logger.error(str(e))
        return 1
    except (ConfigurationError, RuntimeError, FileNotFoundError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
