"""Command-line entry point for batch translation and teaching corrections"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from nl2cli.config import AppConfig
from nl2cli.models.command import Command
from nl2cli.models.query import Query
from nl2cli.pipeline import build_pipeline
from nl2cli.services.learning_store import LearningStore
from nl2cli.services.telemetry import get_telemetry_service
from nl2cli.services.translator import TranslationFailedError


def setup_logging(verbose: bool = False) -> None:
    """Configure logging on stderr so stdout carries only commands"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nl2cli", description="Translate natural language into CLI commands"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subcommands = parser.add_subparsers(dest="command", required=True)

    translate = subcommands.add_parser("translate", help="Translate one or more requests")
    translate.add_argument("queries", nargs="*", help="Requests to translate")
    translate.add_argument(
        "-f", "--file", help="Read one request per line from a file ('-' for stdin)"
    )
    translate.add_argument("-p", "--provider", help="Target provider or CLI executable")
    translate.add_argument("-c", "--concurrency", type=int, help="Parallel translations")
    translate.add_argument("--json", action="store_true", help="Print full results as JSON lines")

    learn = subcommands.add_parser("learn", help="Record the correct command for a request")
    learn.add_argument("query", help="The original request")
    learn.add_argument("corrected_command", help="The command that worked")
    learn.add_argument("--failed-command", help="The command that did not work")
    learn.add_argument("--error", help="Error output of the failed command")
    learn.add_argument("-p", "--provider", help="Target provider or CLI executable")

    subcommands.add_parser("stats", help="Show learned correction statistics")
    return parser


def _read_queries(args: argparse.Namespace) -> list[str]:
    queries = list(args.queries)
    if args.file:
        stream = sys.stdin if args.file == "-" else open(args.file, encoding="utf-8")
        with stream:
            queries.extend(line.strip() for line in stream if line.strip())
    return queries


def _print_result(query: str, outcome: Command | TranslationFailedError, as_json: bool) -> None:
    if as_json:
        if isinstance(outcome, Command):
            payload = {"query": query, "command": outcome.model_dump(mode="json")}
        else:
            payload = {"query": query, "error": outcome.reason, "attempts": outcome.attempts}
        print(json.dumps(payload))
    elif isinstance(outcome, Command):
        print(outcome.text)
    else:
        print(f"# failed: {query}: {outcome.reason}")


async def _translate(app_config: AppConfig, args: argparse.Namespace) -> int:
    queries = _read_queries(args)
    if not queries:
        logging.getLogger(__name__).error("No requests given")
        return 2

    pipeline = build_pipeline(app_config)
    telemetry = get_telemetry_service()
    try:
        outcomes = await pipeline.translator.translate_many(
            [Query(text=query, provider=args.provider) for query in queries],
            concurrency=args.concurrency or app_config.translate_concurrency,
        )
    finally:
        await pipeline.close()

    failed = 0
    for query, outcome in zip(queries, outcomes, strict=True):
        is_command = isinstance(outcome, Command)
        failed += 0 if is_command else 1
        telemetry.log_translation(
            source="cli",
            query=query,
            provider=args.provider,
            command=outcome if is_command else None,
            error=None if is_command else outcome,
        )
        _print_result(query, outcome, args.json)

    return 1 if failed else 0


def _learn(app_config: AppConfig, args: argparse.Namespace) -> int:
    store = LearningStore(app_config.learning_config())
    record = store.record(
        args.query,
        args.corrected_command,
        failed_command=args.failed_command,
        error_message=args.error,
        provider=args.provider,
    )
    print(record.model_dump_json())
    return 0


def _stats(app_config: AppConfig) -> int:
    store = LearningStore(app_config.learning_config())
    print(json.dumps(store.stats(), indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the nl2cli command

    Returns:
        int: Exit code (0 for success, 1 if any translation failed, 2 for usage errors)
    """
    args = _parser().parse_args(argv)
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    # Load .env file first (won't override existing env vars)
    if Path(".env").exists():
        load_dotenv()
    app_config = AppConfig()

    try:
        if args.command == "translate":
            return asyncio.run(_translate(app_config, args))
        if args.command == "learn":
            return _learn(app_config, args)
        return _stats(app_config)
    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Invalid input: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
