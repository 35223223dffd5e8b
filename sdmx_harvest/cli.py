#!/usr/bin/env python3
"""
Harvest SDMX metadata into a JSON Lines file.

Usage:
    sdmx-harvest                                   # Harvest everything into harvest.jsonl
    sdmx-harvest --pattern 'NAMA_.*' --limit 100   # First 100 records of matching dataflows
    sdmx-harvest --dimensions GEO,UNIT --output out/eurostat.jsonl

Exit codes:
    0 - harvest completed
    1 - harvest aborted (registry listing unavailable or invariant violated)
    2 - invalid configuration
"""
import argparse
import json
import logging
import sys
from typing import List, Optional

from .config import get_settings, load_settings
from .exceptions import ConfigurationError, HarvestError
from .providers.sdmx_registry import SdmxRegistrySource
from .services.harvest import HarvestRun, JsonLinesSink
from .utils.logging_config import configure_logging

logger = logging.getLogger(__name__)


def non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"expected a non-negative integer, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sdmx-harvest",
        description="Harvest one metadata record per dimension combination of an SDMX registry",
    )
    parser.add_argument("--output", "-o", default="harvest.jsonl", help="JSON Lines output file")
    parser.add_argument("--limit", type=non_negative_int, default=None, help="Stop after N records")
    parser.add_argument("--pattern", default=None, help="Dataflow selection regex (DATAFLOW_PATTERN)")
    parser.add_argument(
        "--dimensions",
        default=None,
        help="Comma-separated allow-list of dimensions (ALLOWED_DIMENSIONS)",
    )
    parser.add_argument("--sdem-url", default=None, help="Dataflow listing URL (SDEM_URL)")
    parser.add_argument("--log-level", default=None, help="Logging level (LOG_LEVEL)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    overrides = {}
    if args.pattern is not None:
        overrides["dataflow_pattern"] = args.pattern
    if args.dimensions is not None:
        overrides["allowed_dimensions"] = args.dimensions
    if args.sdem_url is not None:
        overrides["sdem_url"] = args.sdem_url
    if args.log_level is not None:
        overrides["log_level"] = args.log_level

    try:
        settings = load_settings(**overrides) if overrides else get_settings()
    except ConfigurationError as e:
        configure_logging(logging.INFO)
        logger.error(f"{e.message}: {e.details}")
        return 2

    configure_logging(settings.log_level)

    # The output file is opened by the first record, so an aborted run
    # leaves a previous harvest in place
    sink = JsonLinesSink(args.output)
    try:
        with SdmxRegistrySource(settings) as source:
            summary = HarvestRun(source, settings, sink).run(limit=args.limit)
        if sink.count == 0:
            sink.open()
    except HarvestError as e:
        logger.error(f"Harvest aborted: {e.message}")
        print(json.dumps(e.to_dict(), indent=2))
        return 1
    finally:
        sink.close()

    print(json.dumps(summary.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
