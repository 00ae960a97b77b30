#!/usr/bin/env python3
"""Live parking occupancy watcher.

Runs the sync engine against the configured backend and rewrites a GeoJSON
file each time the collection changes. Point a map layer at the file.

Reads ``SUPABASE_URL`` / ``SUPABASE_KEY`` and optional ``PARKSYNC_*``
variables from the environment.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from collections import Counter
from pathlib import Path
from typing import Any

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from parksync import GeoJsonFileSink, ParkingSyncEngine, ParkSyncConfig, SnapshotState  # noqa: E402
from parksync.exceptions import ParkSyncConfigError  # noqa: E402

_LOG = logging.getLogger("watch_parking")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Mirror live parking occupancy into a GeoJSON file.",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=Path("parking.geojson"),
        help="GeoJSON file to rewrite on every change.",
    )
    parser.add_argument(
        "--table",
        default=None,
        help="Override the parking table name.",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    parser.add_argument(
        "--reject-stale",
        action="store_true",
        help="Drop change events older than the one already applied.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args()


class _CountingSink(GeoJsonFileSink):
    def present(self, collection: dict[str, Any]) -> None:
        super().present(collection)
        tally = Counter(feature["properties"]["status"] for feature in collection["features"])
        _LOG.info(
            "spaces=%d free=%d occupied=%d unknown=%d",
            len(collection["features"]),
            tally.get("free", 0),
            tally.get("occupied", 0),
            tally.get("unknown", 0),
        )


async def _run(config: ParkSyncConfig, output: Path, duration: int) -> int:
    sink = _CountingSink(output, indent=None)
    async with ParkingSyncEngine(config, sink) as engine:
        if engine.snapshot_state is SnapshotState.FAILED:
            _LOG.error("Snapshot failed: %s", engine.snapshot_error)
        if not engine.subscription_active:
            _LOG.warning("Change feed is not active; output will not update")

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, lambda: asyncio.ensure_future(engine.close()))
            except NotImplementedError:  # pragma: no cover - Windows
                pass

        if duration > 0:
            try:
                await asyncio.wait_for(engine.wait_closed(), timeout=duration)
            except TimeoutError:
                pass
        else:
            await engine.wait_closed()
    return 0 if sink.writes else 1


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    overrides: dict[str, Any] = {}
    if args.table:
        overrides["table"] = args.table
    if args.reject_stale:
        overrides["reject_stale"] = True
    try:
        config = ParkSyncConfig.from_env(**overrides)
    except ParkSyncConfigError as exc:
        print(f"[watch] Configuration error: {exc}", file=sys.stderr)
        return 2

    return asyncio.run(_run(config, args.output, args.duration))


if __name__ == "__main__":
    raise SystemExit(_main())
