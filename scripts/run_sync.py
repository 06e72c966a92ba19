#!/usr/bin/env python3
"""Run the fleet telemetry sync.

Credentials and tuning come from the environment:
- FLEETSYNC_USERNAME, FLEETSYNC_PASSWORD, FLEETSYNC_DATABASE (required)
- FLEETSYNC_BASE_URL, FLEETSYNC_CYCLE_INTERVAL, FLEETSYNC_MAX_CALLS_PER_CYCLE, ...

Default behavior:
1) login and discover devices once,
2) load persisted cursors,
3) run a cycle every ``--interval`` seconds until SIGINT/SIGTERM,
4) flush cursors on the way out.

With ``--once`` a single cycle runs and the script exits; the exit status is
non-zero if that cycle was aborted.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from pathlib import Path
from typing import Any

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from fleetsync import FleetClient, FleetSyncConfig, FleetSyncError, SyncService  # noqa: E402

_logger = logging.getLogger("fleetsync.run_sync")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Incremental fleet telemetry sync")
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    parser.add_argument("--interval", type=float, default=None, help="Seconds between cycles")
    parser.add_argument("--output-dir", default=None, help="Directory for per-device CSV files")
    parser.add_argument("--cursor-path", default=None, help="JSON file holding feed cursors")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    return parser.parse_args(argv)


def _build_config(args: argparse.Namespace) -> FleetSyncConfig:
    overrides: dict[str, Any] = {}
    if args.interval is not None:
        overrides["cycle_interval"] = args.interval
    if args.output_dir is not None:
        overrides["output_dir"] = args.output_dir
    if args.cursor_path is not None:
        overrides["cursor_path"] = args.cursor_path
    return FleetSyncConfig.from_env(**overrides).validate()


def _install_stop_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on every platform (e.g. Windows event loops).
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)


async def _run(args: argparse.Namespace) -> int:
    config = _build_config(args)
    async with FleetClient(config) as client:
        service = await SyncService.create(client, config)
        if args.once:
            summary = await service.run_cycle()
            return 1 if summary.aborted else 0

        stop = asyncio.Event()
        _install_stop_handlers(stop)
        _logger.info("Syncing every %.0fs; press Ctrl+C to stop", config.cycle_interval)
        await service.run_forever(stop)
        _logger.info("Stopped")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except FleetSyncError as exc:
        _logger.error("%s", exc)
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
