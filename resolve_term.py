"""Command-line front end of the term resolver.

Resolves one or more terms and prints each result (or structured failure) as JSON on stdout.
Concurrent lookups of the same term are coalesced into a single provider cascade.

Exit status: 0 when every term resolved, 1 when at least one lookup failed, 2 on usage or
configuration errors.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Final, NoReturn

from config.loader import Config, ConfigLoader, ConfigLoaderError
from core import VERSION
from core.lookup import InvalidLookupRequestError, LookupManager, ResolutionError
from models.lookup_models import LookupRequest
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from models.lookup_models import TranslationResult

CFG_FILE: Final[str] = "term_resolver.ini"
EXIT_OK: Final[int] = 0
EXIT_LOOKUP_FAILED: Final[int] = 1
EXIT_USAGE: Final[int] = 2

logger: logging.Logger = LoggerUtils.get_logger(__name__)


def check_python_version() -> None:
    """Raises:
    RuntimeError: If Python version is below 3.13.
    """
    if sys.version_info < (3, 13):
        msg = "Python 3.13 or later is required"
        raise RuntimeError(msg)


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        print(f"\n{message}\n", file=sys.stderr)
        self.print_help(sys.stderr)
        raise SystemExit(EXIT_USAGE)


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    parser = _ArgumentParser(
        prog="term-resolver",
        description="Resolve terms to translations with readings and definitions",
        epilog="Example: term-resolver --target ja --ui en game sushi",
    )
    parser.add_argument("terms", nargs="+", metavar="TERM", help="Term, phrase or sentence to resolve")
    parser.add_argument("--target", "-t", dest="target", required=True, metavar="LANG", help="Target language code")
    parser.add_argument("--ui", "-u", dest="ui", default="en", metavar="LANG", help="UI language code (default: en)")
    parser.add_argument("--config", "-c", dest="config", default=CFG_FILE, metavar="FILE", help="INI file to load")
    parser.add_argument("--deadline", dest="deadline", type=float, metavar="SEC", help="Override the lookup deadline")
    parser.add_argument(
        "--active-users", dest="active_users", type=int, metavar="N", help="Scale provider limits for N users"
    )
    parser.add_argument("--requester", dest="requester", metavar="ID", help="Opaque caller identity for the logs")
    parser.add_argument("--stats", dest="stats", action="store_true", help="Print cache statistics to stderr")
    parser.add_argument("--debug", dest="debug", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> Config:
    """Raises:
    ConfigLoaderError: If the configuration file cannot be loaded.
    """
    script_name: str = Path(sys.argv[0]).stem
    return ConfigLoader(
        config_filename=args.config,
        script_name=script_name,
        debug=args.debug,
        active_users=args.active_users,
        deadline=args.deadline,
    ).config


def setup_logging(config: Config) -> None:
    log_utils = LoggerUtils(config.GENERAL.LOG_FILE)
    log_utils.set_level("DEBUG" if config.GENERAL.DEBUG else config.GENERAL.LOG_LEVEL)


async def resolve_terms(manager: LookupManager, args: argparse.Namespace) -> int:
    """Resolve every term concurrently and print the outcomes in argument order.

    Returns:
        int: Process exit status.
    """
    requests: list[LookupRequest] = [LookupRequest(term, args.target, args.ui) for term in args.terms]
    outcomes: list[TranslationResult | BaseException] = await asyncio.gather(
        *(manager.lookup(request, requester=args.requester) for request in requests), return_exceptions=True
    )

    status: int = EXIT_OK
    for request, outcome in zip(requests, outcomes, strict=True):
        if isinstance(outcome, ResolutionError):
            print(outcome.failure.to_json(ensure_ascii=False, indent=2))
            status = EXIT_LOOKUP_FAILED
        elif isinstance(outcome, InvalidLookupRequestError):
            print(f"Invalid request for {request.term!r}: {outcome}", file=sys.stderr)
            status = max(status, EXIT_LOOKUP_FAILED)
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            print(outcome.to_json(ensure_ascii=False, indent=2))
    return status


async def run(args: argparse.Namespace) -> int:
    try:
        config: Config = load_config(args)
    except ConfigLoaderError as err:
        print("\nError: Failed to load configuration file.", file=sys.stderr)
        print(f"Details: {err}", file=sys.stderr)
        return EXIT_USAGE

    config.GENERAL.VERSION = VERSION
    setup_logging(config)
    logger.info("%s %s started", config.GENERAL.SCRIPT_NAME, config.GENERAL.VERSION)

    manager = LookupManager(config)
    await manager.component_load()
    try:
        status: int = await resolve_terms(manager, args)
        if args.stats:
            print(await manager.get_cache_statistics(), file=sys.stderr)
            for governor_status in manager.governor_status():
                print(governor_status, file=sys.stderr)
    finally:
        await manager.component_teardown()
    return status


def main(argv: list[str] | None = None) -> int:
    check_python_version()
    args: argparse.Namespace = parse_arguments(argv)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\nCancelled by user.", file=sys.stderr)
        return EXIT_LOOKUP_FAILED


if __name__ == "__main__":
    sys.exit(main())
