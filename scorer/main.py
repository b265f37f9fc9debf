#!/usr/bin/env python3
"""
WeChat Article Scorer - Entry Point

This module serves as the command-line entry point. Each subcommand runs one
pipeline stage over the selected articles; ``run`` executes all of them in
order. It handles initialization of the components a command needs and
their shutdown when the command finishes or fails.
"""
import argparse
import asyncio
import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict

import structlog
from prometheus_client import start_http_server

from scorer import runner
from scorer.config import LogLevel, Settings, load_settings
from scorer.context import AppContext
from scorer.i18n import _

logger = structlog.get_logger()


@asynccontextmanager
async def app_lifecycle(settings: Settings):
    """Open the application context, and the metrics exporter if enabled, for one command."""
    app_context = AppContext(settings)

    try:
        await app_context.initialize()

        if settings.metrics.prometheus_enabled:
            start_http_server(settings.metrics.prometheus_port)
            logger.info("Prometheus metrics server started",
                        port=settings.metrics.prometheus_port)

        yield app_context

    finally:
        await app_context.shutdown()


def setup_logging(settings: Settings) -> None:
    """Configure structlog and the stdlib root logger from the metrics settings."""
    log_level = settings.metrics.log_level.value

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(ensure_ascii=False) if settings.metrics.structured_logging
            else structlog.dev.ConsoleRenderer()
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Libraries logging through the stdlib share the level
    numeric_level = getattr(logging, log_level, logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)
    logging.getLogger().setLevel(numeric_level)

    logger.info("Logging initialized", level=log_level)


COMMANDS: Dict[str, Callable[[AppContext, argparse.Namespace], Awaitable[Any]]] = {
    "import": lambda ctx, args: runner.run_import(ctx, args.path, args.overwrite or None),
    "fetch": lambda ctx, args: runner.run_fetch(ctx),
    "clean": lambda ctx, args: runner.run_clean(ctx),
    "check": lambda ctx, args: runner.run_check(ctx),
    "static": lambda ctx, args: runner.run_static(ctx),
    "analyze": lambda ctx, args: runner.run_analyze(ctx, args.plain_text or None),
    "export": lambda ctx, args: runner.run_export(ctx, args.output, args.language),
    "run": lambda ctx, args: runner.run_pipeline(ctx),
}


async def run_command(settings: Settings, args: argparse.Namespace) -> None:
    """Run a single subcommand inside the application lifecycle."""
    logger.info("Running command", command=args.command)

    async with app_lifecycle(settings) as app_context:
        try:
            result = await COMMANDS[args.command](app_context, args)
            logger.info("Command completed", command=args.command, result=result)

        except Exception as e:
            logger.exception("Error during command", command=args.command, error=str(e))
            raise


def parse_args(argv=None) -> argparse.Namespace:
    """Build the CLI: global selection options plus one subcommand per stage."""
    parser = argparse.ArgumentParser(
        prog="scorer",
        description=_("WeChat Article Scorer - Fetch, clean and score official-account articles")
    )

    parser.add_argument(
        "--log-level",
        choices=[level.value for level in LogLevel],
        default=None,
        help=_("Set the log level")
    )
    parser.add_argument(
        "--category",
        default=None,
        help=_("Only process articles in this category")
    )
    parser.add_argument(
        "--max-id",
        type=int,
        default=None,
        help=_("Only process articles with an id below this value")
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help=_("Number of pages fetched in parallel")
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser("import", help=_("Import the dashboard CSV export"))
    import_parser.add_argument("--path", type=Path, default=None, help=_("CSV file to import"))
    import_parser.add_argument(
        "--overwrite",
        action="store_true",
        help=_("Refresh existing articles and clear their fetched html")
    )

    subparsers.add_parser("fetch", help=_("Fetch article pages with the headless browser"))
    subparsers.add_parser("clean", help=_("Sanitize fetched html and extract the article regions"))
    subparsers.add_parser("check", help=_("Check that cleaned articles have a usable title and body"))
    subparsers.add_parser("static", help=_("Compute media and character counts"))

    analyze_parser = subparsers.add_parser("analyze", help=_("Score cleaned articles with the LLM"))
    analyze_parser.add_argument(
        "--plain-text",
        action="store_true",
        help=_("Send the extracted text instead of the cleaned html")
    )

    export_parser = subparsers.add_parser("export", help=_("Write the CSV report"))
    export_parser.add_argument("--output", type=Path, default=None, help=_("Report file"))
    export_parser.add_argument("--language", choices=["zh", "en"], default=None,
                               help=_("Report language"))

    subparsers.add_parser("run", help=_("Run every stage in order"))

    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Run one CLI command and return the process exit code."""
    # A BROWSER variable would be read as the browser settings section
    os.environ.pop("BROWSER", None)
    try:
        args = parse_args(argv)

        settings = load_settings()

        # CLI flags win over the environment
        if args.log_level:
            settings.metrics.log_level = LogLevel(args.log_level)
        if args.category is not None:
            settings.pipeline.category = args.category
        if args.max_id is not None:
            settings.pipeline.max_id = args.max_id
        if args.batch_size is not None:
            settings.pipeline.batch_size = args.batch_size

        setup_logging(settings)

        logger.info(
            "WeChat Article Scorer starting up",
            version=settings.version,
            environment=settings.environment.value,
            python_version=sys.version
        )

        asyncio.run(run_command(settings, args))
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130

    except Exception as e:
        logger.exception("Unhandled exception", error=str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
