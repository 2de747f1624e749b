#!/usr/bin/env python3
"""
Blogger Archive Exporter - Entry Point

This module serves as the command line entry point. It can run the web
service, or run either pipeline (or both) once against a blog and write the
resulting document to disk.
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import structlog

from blogexport.config import LogLevel, Settings, load_profile, load_settings
from blogexport.errors import ExportError
from blogexport.feeds.aggregator import FeedAggregator
from blogexport.feeds.transcoder import ERROR_DOCUMENT, FeedTranscoder
from blogexport.pipeline import export_blog

# Set up structured logger
logger = structlog.get_logger()


def setup_logging(settings: Settings) -> None:
    """Set up structured logging based on configuration."""
    log_level = settings.metrics.log_level.value

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if settings.metrics.structured_logging
            else structlog.dev.ConsoleRenderer()
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Log to stderr so documents written to stdout stay clean
    logging.basicConfig(stream=sys.stderr, format="%(message)s")
    numeric_level = getattr(logging, log_level, logging.INFO)
    logging.getLogger().setLevel(numeric_level)

    logger.info("Logging initialized", level=log_level)


def write_output(document: str, output: Optional[str]) -> None:
    """Write a document to a file, or to stdout if no file is given."""
    if output:
        Path(output).write_text(document, encoding="utf-8")
        logger.info("Document written", path=output, size=len(document))
    else:
        sys.stdout.write(document)


def run_serve(settings: Settings, args: argparse.Namespace) -> int:
    """Run the web service until interrupted."""
    import uvicorn

    from blogexport.web.app import create_app

    host = args.host or settings.web.host
    port = args.port or settings.web.port
    logger.info("Starting web service", host=host, port=port)

    uvicorn.run(
        create_app(settings),
        host=host,
        port=port,
        log_level=settings.metrics.log_level.value.lower(),
        access_log=True,
    )
    return 0


def run_aggregate(settings: Settings, args: argparse.Namespace) -> int:
    """Rebuild a blog's feed and write it out."""
    aggregator = FeedAggregator(settings.aggregator)
    document = asyncio.run(aggregator.aggregate_to_xml(args.url))
    write_output(document, args.output)
    return 0


def run_transcode(settings: Settings, args: argparse.Namespace) -> int:
    """Convert a feed file into a Blogger import document."""
    if args.input == "-":
        data = sys.stdin.buffer.read()
    else:
        data = Path(args.input).read_bytes()

    transcoder = FeedTranscoder(load_profile(settings.transcoder), settings.aggregator.classification)
    document = transcoder.transcode(data)
    write_output(document, args.output)
    return 1 if document == ERROR_DOCUMENT else 0


def run_export(settings: Settings, args: argparse.Namespace) -> int:
    """Aggregate and transcode a blog, saving the import document."""
    filename, document = asyncio.run(export_blog(args.url, settings))

    directory = Path(args.output_dir)
    directory.mkdir(parents=True, exist_ok=True)
    write_output(document, str(directory / filename))
    return 1 if document == ERROR_DOCUMENT else 0


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Blogger Archive Exporter - Rebuild and re-import Blogger feeds"
    )

    parser.add_argument(
        "--log-level",
        choices=[level.value for level in LogLevel],
        default=None,
        help="Set the log level"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the web service")
    serve.add_argument("--host", default=None, help="Interface to bind")
    serve.add_argument("--port", type=int, default=None, help="Port to listen on")
    serve.set_defaults(handler=run_serve)

    aggregate = subparsers.add_parser("aggregate", help="Fetch a blog's complete feed")
    aggregate.add_argument("url", help="Blog address, e.g. https://example.blogspot.com")
    aggregate.add_argument("-o", "--output", default=None, help="Output file (default: stdout)")
    aggregate.set_defaults(handler=run_aggregate)

    transcode = subparsers.add_parser("transcode", help="Convert a feed file into an import document")
    transcode.add_argument("input", help="RSS or Atom file, '-' for stdin")
    transcode.add_argument("-o", "--output", default=None, help="Output file (default: stdout)")
    transcode.set_defaults(handler=run_transcode)

    export = subparsers.add_parser("export", help="Aggregate and convert a blog in one go")
    export.add_argument("url", help="Blog address, must be https://<name>.blogspot.com")
    export.add_argument("-o", "--output-dir", default=".", help="Directory for the import document")
    export.set_defaults(handler=run_export)

    return parser.parse_args(argv)


def main(argv: Optional[list] = None) -> int:
    """Main entry point for the application."""
    try:
        # Parse command line arguments
        args = parse_args(argv)

        # Load settings
        settings = load_settings()

        # Override settings with command line arguments
        if args.log_level:
            settings.metrics.log_level = LogLevel(args.log_level)

        # Set up logging
        setup_logging(settings)

        logger.info(
            "Blogger Archive Exporter starting up",
            version=settings.version,
            environment=settings.environment.value,
            command=args.command,
        )

        return args.handler(settings, args)

    except ExportError as e:
        logger.error("Export failed", error=e.message, status_code=e.status_code)
        return 1

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130

    except Exception as e:
        logger.exception("Unhandled exception", error=str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
