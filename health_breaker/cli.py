"""CLI argument parsing and main entry point.

Provides three modes of operation:

* ``health-breaker check``: one-shot check of every (or one) service.
* ``health-breaker monitor``: initial check, then a console report per tick.
* ``health-breaker serve``: readiness HTTP API with the monitor running.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional

import uvicorn
from rich.console import Console

from health_breaker.config import MonitorConfig, resolve_config
from health_breaker.constants import APP_NAME, APP_VERSION
from health_breaker.display.console import ConsoleReporter, render_json, render_results
from health_breaker.display.logging_config import setup_logging
from health_breaker.errors import ConfigurationError, ServiceNotFoundError
from health_breaker.monitor import HealthMonitor

module_logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_UNAVAILABLE = 1
EXIT_USAGE = 2


def _load_config_or_exit(config_path: Optional[str]) -> MonitorConfig:
    try:
        return resolve_config(config_path)
    except ConfigurationError as exc:
        module_logger.error("Configuration error: %s", exc)
        print(f"\n❌ Configuration error: {exc}\n", file=sys.stderr)
        sys.exit(EXIT_USAGE)


def _build_monitor(cfg: MonitorConfig) -> HealthMonitor:
    try:
        return HealthMonitor(cfg.descriptors(), cfg.breaker)
    except ConfigurationError as exc:
        print(f"\n❌ Configuration error: {exc}\n", file=sys.stderr)
        sys.exit(EXIT_USAGE)


# ── ``health-breaker check`` ─────────────────────────────────────────────


async def _run_check(args: argparse.Namespace, console: Console) -> int:
    cfg = _load_config_or_exit(args.config)
    async with _build_monitor(cfg) as monitor:
        if args.service:
            try:
                result = await monitor.check_service(args.service)
            except ServiceNotFoundError as exc:
                print(f"❌ {exc}. Known services: {', '.join(monitor.service_names)}",
                      file=sys.stderr)
                return EXIT_USAGE
            results = {result.name: result}
        else:
            results = await monitor.check_all_services()

    if args.json:
        render_json(results, console)
    else:
        render_results(results, console, title="Initial Health Check Results")
    return EXIT_OK if all(r.available for r in results.values()) else EXIT_UNAVAILABLE


def _cmd_check(args: argparse.Namespace) -> None:
    setup_logging(args.log_level, quiet=args.json)
    console = Console()
    sys.exit(asyncio.run(_run_check(args, console)))


# ── ``health-breaker monitor`` ───────────────────────────────────────────


async def _run_monitor(args: argparse.Namespace, console: Console) -> None:
    cfg = _load_config_or_exit(args.config)
    reporter = ConsoleReporter(console)
    async with _build_monitor(cfg) as monitor:
        initial = await monitor.check_all_services()
        render_results(initial, console, title="Initial Health Check Results")

        monitor.add_sink(reporter)
        monitor.start_monitoring()
        console.print(
            f"Starting health monitoring (every {cfg.breaker.monitoring_period:.0f}s). "
            "Press Ctrl+C to stop."
        )
        # Runs until cancelled (Ctrl+C cancels the main task)
        await asyncio.Event().wait()


def _cmd_monitor(args: argparse.Namespace) -> None:
    setup_logging(args.log_level)
    module_logger.info("---- %s v%s monitor starting ----", APP_NAME, APP_VERSION)
    console = Console()
    try:
        asyncio.run(_run_monitor(args, console))
    except KeyboardInterrupt:
        module_logger.info("Monitor stopped by user.")
        console.print("\nMonitoring stopped.")


# ── ``health-breaker serve`` ─────────────────────────────────────────────


async def _run_server(args: argparse.Namespace) -> None:
    log_fpath, cfg_log_lvl = setup_logging(args.log_level)
    module_logger.info(
        "---- %s v%s starting (file log level: %s) ----",
        APP_NAME,
        APP_VERSION,
        cfg_log_lvl,
    )

    cfg = _load_config_or_exit(args.config)
    host = args.host or cfg.server.host
    port = args.port or cfg.server.port

    from health_breaker.server import create_app

    app = create_app(_build_monitor(cfg))
    uvicorn_cfg = uvicorn.Config(
        app=app,
        host=host,
        port=port,
        log_config=None,
        log_level=cfg_log_lvl.lower() if cfg_log_lvl == "DEBUG" else "warning",
    )
    server = uvicorn.Server(uvicorn_cfg)

    module_logger.info("Preparing to start Uvicorn server: http://%s:%s", host, port)
    print(f"{APP_NAME} readiness API on http://{host}:{port}/health (log: {log_fpath})")
    try:
        await server.serve()
    finally:
        module_logger.info("%s has shut down or is shutting down.", APP_NAME)


def _cmd_serve(args: argparse.Namespace) -> None:
    try:
        asyncio.run(_run_server(args))
    except KeyboardInterrupt:
        module_logger.info("Server stopped by user.")


# ── CLI parser construction ──────────────────────────────────────────────


def _add_common_args(sp: argparse.ArgumentParser) -> None:
    sp.add_argument(
        "--config",
        type=str,
        default=None,
        metavar="PATH",
        help=(
            "Path to configuration file (YAML). "
            "Default: $HEALTH_BREAKER_CONFIG, then config.yaml/config.yml, "
            "then built-in services"
        ),
    )
    sp.add_argument(
        "--log-level",
        type=str,
        default="info",
        choices=["debug", "info", "warning", "error", "critical"],
        help="Set file logging level (default: info)",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser with check/monitor/serve subcommands."""
    parser = argparse.ArgumentParser(
        prog="health-breaker",
        description=f"{APP_NAME} v{APP_VERSION}",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")

    subparsers = parser.add_subparsers(dest="command")

    # ── check ───────────────────────────────────────────────────
    sp_check = subparsers.add_parser(
        "check",
        help="Check every service once and print the results",
    )
    _add_common_args(sp_check)
    sp_check.add_argument(
        "--service",
        type=str,
        default=None,
        metavar="NAME",
        help="Check only this service",
    )
    sp_check.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Print results as JSON",
    )
    sp_check.set_defaults(func=_cmd_check)

    # ── monitor ─────────────────────────────────────────────────
    sp_monitor = subparsers.add_parser(
        "monitor",
        help="Check once, then keep monitoring and print a report per tick",
    )
    _add_common_args(sp_monitor)
    sp_monitor.set_defaults(func=_cmd_monitor)

    # ── serve ───────────────────────────────────────────────────
    sp_serve = subparsers.add_parser(
        "serve",
        help="Run the readiness HTTP API with monitoring in the background",
    )
    _add_common_args(sp_serve)
    sp_serve.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host address (default: from config, 127.0.0.1)",
    )
    sp_serve.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port (default: from config, 9100)",
    )
    sp_serve.set_defaults(func=_cmd_serve)

    return parser


def main() -> None:
    """Program entry point: parse arguments and dispatch to subcommand."""
    parser = _build_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(EXIT_USAGE)
    else:
        args.func(args)


if __name__ == "__main__":
    main()
