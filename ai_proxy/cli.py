#!/usr/bin/env python3
"""CLI entrypoint: traffic logger and summarizer."""

import argparse
import asyncio
import sys
from typing import List, Optional

from .commands import run_ambient, run_analyze, run_log
from .config import DataDirectoryError, Settings, get_settings
from .logging_config import configure_logging, logger
from .services.squid import ProxyNotFoundError, ProxyStartupError, install_instructions
from .services.summarization import SummarizationFailed
from .utils.since import InvalidSince

EXIT_FAILURE = 1
EXIT_USAGE = 2


def _add_llm_arguments(parser: argparse.ArgumentParser, settings: Settings) -> None:
    parser.add_argument("-m", "--model", default=settings.model, help=f"Model name (default: {settings.model})")
    parser.add_argument("--api-base", default=settings.api_base, help="OpenAI-compatible API base URL (env: API_BASE)")
    parser.add_argument("--api-key", default=settings.api_key, help="API key (env: API_KEY)")


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ai-proxy", description="Traffic logger & summarizer")
    parser.add_argument("--version", action="version", version=f"%(prog)s {settings.app_version}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("log", help="Start the proxy and log traffic only (no periodic summarization)")

    analyze = subparsers.add_parser("analyze", help="One-shot summarization of logged traffic since <duration>")
    analyze.add_argument("-s", "--since", required=True, help="Relative (7d, 3h, 30m) or RFC3339 start time")
    analyze.add_argument(
        "-x",
        "--max-items",
        type=int,
        default=settings.max_analysis_items,
        help=f"Safety cap on URLs sent to the model (default: {settings.max_analysis_items})",
    )
    _add_llm_arguments(analyze, settings)

    ambient = subparsers.add_parser("ambient", help="Start proxy + periodic summarization")
    ambient.add_argument(
        "-i",
        "--interval",
        type=int,
        default=settings.ambient_interval_seconds,
        help=f"Seconds between summaries (default: {settings.ambient_interval_seconds})",
    )
    _add_llm_arguments(ambient, settings)
    return parser


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    updates = {}
    for field, attr in (
        ("model", "model"),
        ("api_base", "api_base"),
        ("api_key", "api_key"),
        ("max_analysis_items", "max_items"),
        ("ambient_interval_seconds", "interval"),
    ):
        value = getattr(args, attr, None)
        if value is not None:
            updates[field] = value
    return settings.model_copy(update=updates)


def _print_analysis(result) -> None:
    if result.summary is None:
        print(f"No traffic since {result.cutoff.isoformat()}")
        return
    if result.previous_updated is not None:
        print(f"Previous analysis: found existing summary from {result.previous_updated.isoformat()}")
    else:
        print("Previous analysis: None - this is a fresh analysis")
    print(f"Summary:\n{result.summary}")


def main(argv: Optional[List[str]] = None) -> int:
    settings = get_settings()
    args = build_parser(settings).parse_args(argv)
    configure_logging(verbose=args.verbose)
    settings = _apply_overrides(settings, args)

    try:
        if args.command == "log":
            asyncio.run(run_log(settings))
        elif args.command == "analyze":
            result = asyncio.run(run_analyze(settings, args.since, max_items=args.max_items))
            _print_analysis(result)
        elif args.command == "ambient":
            asyncio.run(run_ambient(settings))
    except InvalidSince as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_USAGE
    except ProxyNotFoundError as exc:
        print(install_instructions(), file=sys.stderr)
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    except (ProxyStartupError, DataDirectoryError, SummarizationFailed, ValueError) as exc:
        logger.error("%s failed", args.command, extra={"error": str(exc)})
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.info("interrupted")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI invocation guard
    sys.exit(main())
