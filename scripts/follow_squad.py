#!/usr/bin/env python3
"""Follow a squad's live locations from the terminal.

Configuration comes from ``SQUADZ_*`` environment variables (see
``SquadzConfig.from_env``); command line flags override them.

With ``--lat``/``--lon`` the script also reports a fixed position for
the local member every ``--fix-interval`` seconds, which is handy to
simulate a phone against a local backend.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pysquadz import (  # noqa: E402
    GeoPoint,
    IteratorPositionSource,
    ManualPositionSource,
    MapCenter,
    PositionFix,
    SquadSync,
    SquadView,
    SquadzClient,
    SquadzConfig,
    SquadzConfigError,
    SquadzError,
    WatchOptions,
)


def _section(title: str) -> str:
    return f"\n{'─' * 60}\n  {title}\n{'─' * 60}"


def _format_view(view: SquadView) -> str:
    snapshot = view.snapshot
    lines = [_section(f"{snapshot.squad_name or snapshot.squad_id}  members={len(snapshot.locations)}")]
    for marker in sorted(view.markers, key=lambda m: (m.role != "self", m.display_name)):
        entry = snapshot.get(marker.member_id)
        suffix = ""
        if marker.is_self:
            suffix += " (you)"
        if marker.is_stale:
            suffix += " (stale)"
        speed = entry.speed_kmh if entry is not None else None
        speed_text = f"  {speed:.1f} km/h" if speed is not None else ""
        updated = entry.updated_at.astimezone().strftime("%H:%M:%S") if entry is not None else "?"
        lines.append(
            f"  {marker.color}  {marker.display_name or marker.member_id:<20}"
            f" {marker.location.latitude:>10.5f} {marker.location.longitude:>11.5f}"
            f"  {updated}{speed_text}{suffix}"
        )
    lines.append(f"  center: {view.center.latitude:.5f}, {view.center.longitude:.5f}")
    return "\n".join(lines)


def _view_to_dict(view: SquadView) -> dict[str, Any]:
    return view.model_dump(mode="json")


def _fixed_stream(point: GeoPoint, interval: float):
    async def stream(_options: WatchOptions) -> AsyncIterator[PositionFix]:
        while True:
            yield PositionFix(location=point, captured_at=datetime.now(UTC))
            await asyncio.sleep(interval)

    return stream


async def main() -> None:
    parser = argparse.ArgumentParser(description="Follow a squad's live member locations")
    parser.add_argument("--squad-id", help="Squad to follow (default: SQUADZ_SQUAD_ID)")
    parser.add_argument("--member-id", help="Local member id (default: SQUADZ_MEMBER_ID)")
    parser.add_argument("--base-url", help="Backend base URL (default: SQUADZ_BASE_URL)")
    parser.add_argument("--lat", type=float, help="Report this latitude for the local member")
    parser.add_argument("--lon", type=float, help="Report this longitude for the local member")
    parser.add_argument("--fix-interval", type=float, default=2.0, help="Seconds between reported fixes")
    parser.add_argument("--duration", type=float, default=0.0, help="Stop after N seconds (0 = run until Ctrl-C)")
    parser.add_argument("--json", dest="json_mode", action="store_true", help="Print views as JSON lines")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    overrides: dict[str, Any] = {}
    if args.squad_id:
        overrides["squad_id"] = args.squad_id
    if args.member_id:
        overrides["member_id"] = args.member_id
    if args.base_url:
        overrides["base_url"] = args.base_url

    try:
        config = SquadzConfig.from_env(**overrides)
    except SquadzConfigError as exc:
        parser.error(str(exc))

    if (args.lat is None) != (args.lon is None):
        parser.error("--lat and --lon must be given together")

    source: IteratorPositionSource | ManualPositionSource
    if args.lat is not None:
        point = GeoPoint(latitude=args.lat, longitude=args.lon)
        source = IteratorPositionSource(config.member_id, _fixed_stream(point, args.fix_interval), config.watch)
    else:
        source = ManualPositionSource(config.member_id, config.watch)

    def on_view(view: SquadView) -> None:
        if args.json_mode:
            print(json.dumps(_view_to_dict(view), ensure_ascii=False))
        else:
            print(_format_view(view))

    def on_center(center: MapCenter | None) -> None:
        if center is None and not args.json_mode:
            print("  (center unchanged)")

    def on_error(error: SquadzError) -> None:
        print(f"  !! {type(error).__name__}: {error}", file=sys.stderr)

    async with SquadzClient(config) as client:
        sync = SquadSync(config, source, client, on_view=on_view, on_center=on_center, on_error=on_error)
        async with sync:
            if args.duration > 0:
                await asyncio.sleep(args.duration)
            else:
                await asyncio.Event().wait()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
