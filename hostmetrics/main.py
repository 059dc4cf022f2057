#!/usr/bin/env python3
"""
hostmetrics - Main Entry Point

Polls one host through the metrics aggregator and prints basic metrics, plus
one detail section or all of them, as rich tables or JSON.
"""

import argparse
import asyncio
import json
import sys

from rich.console import Console

from hostmetrics import VERSION
from hostmetrics.aggregator import MetricsAggregator
from hostmetrics.config import DETAIL_SECTIONS, EXIT_CODE, MonitorSettings, load_settings
from hostmetrics.display import print_snapshot
from hostmetrics.errors import ConfigurationError, HostMetricsException, SessionDisconnectedError
from hostmetrics.gateway import SSHCommandGateway
from hostmetrics.hm_logging import setup_logging, apply_logging_options

logger = setup_logging("hostmetrics")

ALL_SECTIONS = 'all'


def parse_arguments(argv=None):
    """Parse command-line arguments.

    Returns:
        argparse.Namespace: Parsed arguments.
    """
    parser = argparse.ArgumentParser(description="Collect CPU, memory, disk and network metrics from a host")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("host", help="Host to monitor. 'localhost' runs commands locally.")

    collection = parser.add_argument_group("Collection")
    collection.add_argument(
        "--section", "-s",
        choices=list(DETAIL_SECTIONS) + [ALL_SECTIONS],
        help="Detail section to show in addition to the basic metrics"
    )
    collection.add_argument(
        "--interval", "-i",
        type=float,
        help="Seconds between polls (default from settings)"
    )
    collection.add_argument(
        "--count", "-n",
        type=int,
        default=0,
        help="Number of polls; 0 polls until interrupted"
    )
    collection.add_argument(
        "--config-file", "--config", "-c",
        dest="config_file",
        type=str,
        help="Path to YAML settings file"
    )
    collection.add_argument(
        "--user", "-l",
        type=str,
        help="SSH username (overrides ssh_username from settings)"
    )

    output_control = parser.add_argument_group("Output Control")
    output_control.add_argument(
        "--json",
        action="store_true",
        help="Print one JSON document per poll instead of tables"
    )
    output_control.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode"
    )
    output_control.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose mode"
    )
    output_control.add_argument(
        "--stream-log-level",
        type=str,
        help="Log level for stderr output; overrides --verbose and --debug"
    )
    return parser.parse_args(argv)


async def poll(aggregator: MetricsAggregator, session_id: str, args, interval: float) -> None:
    console = Console()
    active_section = None if args.section in (None, ALL_SECTIONS) else args.section
    iteration = 0
    while args.count <= 0 or iteration < args.count:
        if iteration:
            await asyncio.sleep(interval)
        iteration += 1

        basic = await aggregator.collect_basic_metrics(session_id)
        detail = None
        if args.section:
            detail = await aggregator.collect_detail_metrics(session_id, active_section)

        if args.json:
            document = {'host': args.host, 'basic': basic.to_dict()}
            if detail is not None:
                document['detail'] = detail.to_dict()
            print(json.dumps(document), flush=True)
        else:
            print_snapshot(console, basic, detail, active_section, host=args.host)


async def run_monitor(args, settings: MonitorSettings) -> EXIT_CODE:
    """Bind the host to a session, poll it and release the session on exit."""
    session_id = args.host
    gateway = SSHCommandGateway(
        logger,
        ssh_username=args.user or settings.ssh_username,
        timeout_seconds=settings.command_timeout_seconds,
    )
    gateway.bind(session_id, args.host)
    aggregator = MetricsAggregator(gateway, logger, settings)
    interval = args.interval if args.interval is not None else settings.poll_interval_seconds
    logger.status(f"Monitoring {args.host} every {interval}s")

    try:
        await poll(aggregator, session_id, args, interval)
    except SessionDisconnectedError as e:
        logger.error(str(e))
        logger.info(f"Suggestion: {e.suggestion}")
        return EXIT_CODE.DISCONNECTED
    finally:
        aggregator.destroy(session_id)
        await gateway.close(session_id)
    return EXIT_CODE.SUCCESS


def _main_impl(argv=None) -> EXIT_CODE:
    args = parse_arguments(argv)
    apply_logging_options(logger, args)

    settings = load_settings(args.config_file)
    if args.interval is not None and args.interval <= 0:
        raise ConfigurationError(
            "Poll interval must be positive",
            parameter="interval",
            expected="> 0",
            actual=args.interval,
        )
    logger.verbose(f"Monitoring {args.host} with settings: {settings.to_dict()}")
    return asyncio.run(run_monitor(args, settings))


def main(argv=None):
    """
    Main entry point with error handling.

    Returns:
        Process exit code.
    """
    try:
        return int(_main_impl(argv))

    except ConfigurationError as e:
        logger.error(str(e))
        if e.suggestion:
            logger.info(f"Suggestion: {e.suggestion}")
        return int(EXIT_CODE.CONFIG_ERROR)

    except HostMetricsException as e:
        logger.error(str(e))
        if e.suggestion:
            logger.info(f"Suggestion: {e.suggestion}")
        return int(EXIT_CODE.FAILURE)

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return int(EXIT_CODE.INTERRUPTED)


if __name__ == "__main__":
    sys.exit(main())
