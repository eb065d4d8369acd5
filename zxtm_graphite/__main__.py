"""Entry point — python -m zxtm_graphite."""

from __future__ import annotations

import argparse
import asyncio
import sys

from zxtm_graphite.config.settings import (
    Settings,
    apply_overrides,
    load_config,
    validate_settings,
)
from zxtm_graphite.errors import ConfigurationError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zxtm-graphite",
        usage="%(prog)s -G <graphite-server> [options] <zxtm> [<zxtm>...]",
        description="Poll ZXTM pool and virtual server counters over SNMP "
                    "and forward them to Graphite.",
    )
    parser.add_argument(
        "hosts", nargs="*", metavar="zxtm",
        help="ZXTM appliances to poll (overrides targets in the config file)",
    )
    parser.add_argument(
        "-c", "--config",
        help="Path to configuration YAML file",
        default=None,
    )
    parser.add_argument(
        "-v", "--verbose", action=argparse.BooleanOptionalAction, default=False,
        help="Run verbosely",
    )
    parser.add_argument(
        "-d", "--debug", action=argparse.BooleanOptionalAction, default=False,
        help="Enable debug",
    )
    parser.add_argument("-G", "--graphite-server", metavar="SERVER")
    parser.add_argument("-P", "--graphite-port", metavar="PORT", type=int)
    parser.add_argument(
        "-t", "--graphite-interval", metavar="SECONDS", type=int,
        help="Buffer metrics and flush every SECONDS (0 sends immediately)",
    )
    parser.add_argument(
        "-i", "--interval", metavar="INTERVAL", type=int,
        help="Poll interval in seconds",
    )
    parser.add_argument("-C", "--community", help="SNMP community")
    parser.add_argument("--mib-dir", help="Directory holding ZXTM-MIB-SMIv2")
    parser.add_argument("--prefix", help="Root metric prefix (default: zxtm)")
    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    """Load the config file, apply command-line overrides, and validate."""
    if args.debug:
        log_level = "DEBUG"
    elif args.verbose:
        log_level = "INFO"
    else:
        log_level = None

    settings = apply_overrides(
        load_config(args.config),
        hosts=args.hosts,
        graphite_host=args.graphite_server,
        graphite_port=args.graphite_port,
        graphite_interval=args.graphite_interval,
        interval=args.interval,
        community=args.community,
        mib_dir=args.mib_dir,
        prefix=args.prefix,
        log_level=log_level,
    )
    validate_settings(settings)
    return settings


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = settings_from_args(args)
    except ConfigurationError as exc:
        parser.error(str(exc))

    from zxtm_graphite.app import Application

    app = Application(settings)
    try:
        code = asyncio.run(app.run())
    except KeyboardInterrupt:
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    main()
