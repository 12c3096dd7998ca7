"""
Command line entry point for scoutrank.

    python main.py validate-event 2025wimi
    python main.py validate-match 2025wimi_qm12 --strategy tba
    python main.py leaderboard 2025 --event 2025wimi
    python main.py opr 2025wimi
    python main.py recalculate-opr 2025wimi
    python main.py event-stats 2025wimi --threshold 60
    python main.py correct 2025wimi_qm12 254 --set teleop_performance.coral_scored_L4=5 --by reviewer
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Any

from scoutrank.bootstrap import Container, application
from scoutrank.config.settings import get_settings
from scoutrank.contracts.common import ValidationStrategyType
from scoutrank.core.errors import ScoutRankError
from scoutrank.core.observability import configure_logging, set_correlation_id

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """Structured logging to stdout and ``logs/scoutrank.log``."""
    settings = get_settings()

    try:
        os.makedirs("logs", exist_ok=True)
        file_target = os.path.join("logs", "scoutrank.log")
    except OSError:
        # Fall back to CWD if logs/ is not writable
        file_target = "scoutrank.log"

    configure_logging(level=settings.app_log_level, file_target=file_target)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="scoutrank", description="FRC scouter validation and ELO ratings")
    sub = parser.add_subparsers(dest="command", required=True)

    strategies = [t.value for t in ValidationStrategyType]

    event = sub.add_parser("validate-event", help="Validate every match of an event")
    event.add_argument("event_key")
    event.add_argument("--strategy", action="append", choices=strategies, dest="strategies")

    match = sub.add_parser("validate-match", help="Validate a single match")
    match.add_argument("match_key")
    match.add_argument("--strategy", action="append", choices=strategies, dest="strategies")

    board = sub.add_parser("leaderboard", help="Show the scouter leaderboard")
    board.add_argument("season_year", type=int)
    board.add_argument("--event", dest="event_key")
    board.add_argument("--limit", type=int, default=50)

    opr = sub.add_parser("opr", help="Show OPR/DPR/CCWM for an event")
    opr.add_argument("event_key")
    opr.add_argument("--recommendations", action="store_true", help="Include alliance recommendations")

    recalc = sub.add_parser("recalculate-opr", help="Drop cached OPR metrics and compute them again")
    recalc.add_argument("event_key")

    scouter = sub.add_parser("scouter", help="Rating, recent trend and validation statistics of one scouter")
    scouter.add_argument("scouter_id")
    scouter.add_argument("season_year", type=int)

    ratings = sub.add_parser("ratings", help="Current ratings of several scouters")
    ratings.add_argument("season_year", type=int)
    ratings.add_argument("scouter_ids", nargs="+")

    top = sub.add_parser("top-performers", help="Highest rated scouters with enough validations")
    top.add_argument("season_year", type=int)
    top.add_argument("--limit", type=int, default=10)
    top.add_argument("--min-validations", type=int, default=10)

    stats = sub.add_parser("event-stats", help="Validation statistics and low agreement fields of an event")
    stats.add_argument("event_key")
    stats.add_argument(
        "--threshold", type=float, default=70.0, help="Agreement percentage below which a field is listed"
    )

    consensus = sub.add_parser("consensus", help="Stored consensus values")
    scope = consensus.add_mutually_exclusive_group(required=True)
    scope.add_argument("--match", dest="match_key")
    scope.add_argument("--event", dest="event_key")
    consensus.add_argument("--team", type=int, dest="team_number")

    validations = sub.add_parser("validations", help="Stored validation results")
    source = validations.add_mutually_exclusive_group(required=True)
    source.add_argument("--execution", dest="execution_id")
    source.add_argument("--event", dest="event_key")
    source.add_argument("--match", dest="match_key")
    source.add_argument("--scouter", dest="scouter_id")

    rollback = sub.add_parser("rollback", help="Delete the results and consensus values of one run")
    rollback.add_argument("execution_id")

    correct = sub.add_parser("correct", help="Record reviewed values for one team in one match")
    correct.add_argument("match_key")
    correct.add_argument("team_number", type=int)
    correct.add_argument(
        "--set",
        action="append",
        required=True,
        type=parse_assignment,
        dest="values",
        metavar="PERIOD.FIELD=VALUE",
    )
    correct.add_argument("--by", dest="corrected_by")
    correct.add_argument("--notes")

    return parser


def parse_assignment(text: str) -> tuple[str, Any]:
    """``teleop_performance.coral_scored_L4=5`` -> (path, 5); non-JSON values stay strings."""
    path, sep, raw = text.partition("=")
    if not sep or not path:
        raise argparse.ArgumentTypeError(f"expected PERIOD.FIELD=VALUE, got {text!r}")
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        value = raw
    return path, value


async def run_command(container: Container, args: argparse.Namespace) -> Any:
    """Dispatch one parsed command; returns a JSON-serializable result."""
    validation = container.validation_service
    opr = container.opr_service

    if args.command == "validate-event":
        summary = await validation.validate_event(args.event_key, args.strategies)
        return summary.model_dump(mode="json")

    if args.command == "validate-match":
        summary = await validation.validate_match(args.match_key, args.strategies)
        return summary.model_dump(mode="json")

    if args.command == "leaderboard":
        if args.event_key:
            board = await validation.get_event_leaderboard(args.event_key, args.season_year, args.limit)
        else:
            board = await validation.get_season_leaderboard(args.season_year, args.limit)
        return board.model_dump(mode="json")

    if args.command == "opr":
        metrics = await opr.calculate_opr_metrics(args.event_key)
        result = metrics.model_dump(mode="json")
        if args.recommendations:
            recommendations = await opr.get_alliance_recommendations(args.event_key)
            result["recommendations"] = recommendations.model_dump(mode="json")
        return result

    if args.command == "recalculate-opr":
        metrics = await opr.recalculate_opr_metrics(args.event_key)
        return metrics.model_dump(mode="json")

    if args.command == "scouter":
        rating = await validation.get_scouter_rating(args.scouter_id, args.season_year)
        trend = await validation.get_scouter_rating_trend(args.scouter_id, args.season_year)
        statistics = await validation.get_scouter_statistics(args.scouter_id, args.season_year)
        return {
            "rating": rating.model_dump(mode="json"),
            "trend": trend,
            "statistics": statistics.model_dump(mode="json"),
        }

    if args.command == "ratings":
        found = await validation.get_scouter_ratings(args.scouter_ids, args.season_year)
        return [r.model_dump(mode="json") for r in found]

    if args.command == "top-performers":
        performers = await validation.get_top_performers(args.season_year, args.limit, args.min_validations)
        return [r.model_dump(mode="json") for r in performers]

    if args.command == "event-stats":
        statistics = await validation.get_event_statistics(args.event_key)
        low_agreement = await validation.get_low_agreement_fields(args.event_key, args.threshold)
        return {
            "statistics": statistics.model_dump(mode="json"),
            "low_agreement_fields": [v.model_dump(mode="json") for v in low_agreement],
        }

    if args.command == "consensus":
        if args.match_key:
            values = await validation.get_match_consensus(args.match_key, args.team_number)
        else:
            values = await validation.get_event_consensus(args.event_key)
        return [v.model_dump(mode="json") for v in values]

    if args.command == "validations":
        if args.execution_id:
            results = await validation.get_execution_validations(args.execution_id)
        elif args.event_key:
            results = await validation.get_event_validations(args.event_key)
        elif args.match_key:
            results = await validation.get_match_validations(args.match_key)
        else:
            results = await validation.get_scouter_validations(args.scouter_id)
        return [r.model_dump(mode="json") for r in results]

    if args.command == "rollback":
        return await validation.rollback_execution(args.execution_id)

    if args.command == "correct":
        correction = await container.correction_service.record_correction(
            args.match_key, args.team_number, dict(args.values), args.corrected_by, args.notes
        )
        return correction.model_dump(mode="json")

    raise ValueError(f"Unknown command: {args.command}")


async def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()
    set_correlation_id(f"cli:{args.command}")

    try:
        async with application() as container:
            result = await run_command(container, args)
    except ScoutRankError as e:
        logger.error(f"{args.command} failed: {e.message}")
        print(json.dumps(e.to_dict(), indent=2))
        return 1

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nStopped by user.")
        sys.exit(130)
