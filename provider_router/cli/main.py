"""
Top-level CLI dispatcher: provider-router <command> [args...].
Loads the provider configuration and prints status or selection results as JSON.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, List, Optional

from .._version import __version__
from ..config import get_config
from ..core.errors import ProviderRouterError

EXIT_ERROR = 2


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def _build_router(args: argparse.Namespace):
    from ..providers.defaults import create_router

    return create_router(get_config(args.config))


def _cmd_status(args: argparse.Namespace) -> int:
    router = _build_router(args)
    _print_json(router.status().to_dict())
    return 0


def _cmd_select(args: argparse.Namespace) -> int:
    router = _build_router(args)
    _print_json(router.select_endpoint(args.network, args.tier).to_dict())
    return 0


def _cmd_parallel(args: argparse.Namespace) -> int:
    router = _build_router(args)
    endpoints = router.select_parallel_endpoints(args.network, args.count, args.tier)
    _print_json([e.to_dict() for e in endpoints])
    return 0


def _cmd_market_data(args: argparse.Namespace) -> int:
    router = _build_router(args)
    _print_json(router.select_market_data_endpoint(args.preferred).to_dict())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="provider-router",
        description="Multi-provider rate-limited endpoint router",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", default=None, help="Path to config YAML (default: $PROVIDER_ROUTER_CONFIG or ./config.yaml)")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    subparsers = parser.add_subparsers(dest="command", help="command")

    p = subparsers.add_parser("status", help="Print usage, capacity and blacklist snapshot")
    p.set_defaults(func=_cmd_status)

    p = subparsers.add_parser("select", help="Select the best endpoint for a network")
    p.add_argument("--network", required=True)
    p.add_argument("--tier", default="premium", choices=["premium", "fallback"])
    p.set_defaults(func=_cmd_select)

    p = subparsers.add_parser("parallel", help="Select endpoints from distinct providers")
    p.add_argument("--network", required=True)
    p.add_argument("--count", type=int, default=2)
    p.add_argument("--tier", default=None, choices=["premium", "fallback"])
    p.set_defaults(func=_cmd_parallel)

    p = subparsers.add_parser("market-data", help="Select a market data API")
    p.add_argument("--preferred", default=None, help="Preferred market data provider id")
    p.set_defaults(func=_cmd_market_data)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except ProviderRouterError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
