"""Command-line interface for pylocchanger.

Run:
    python -m pylocchanger history
    python -m pylocchanger set "Office" 52.37 4.89 --address "Amsterdam"
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from pydantic import ValidationError

from pylocchanger.config import LocChangerConfig
from pylocchanger.exceptions import LocChangerConfigError
from pylocchanger.models.location import LocationRecord
from pylocchanger.models.presets import find_preset
from pylocchanger.state.store import LocationStore, open_store


def _print_records(records: Sequence[LocationRecord], *, as_json: bool) -> None:
    if as_json:
        payload = [record.model_dump(mode="json", by_alias=True) for record in records]
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return
    if not records:
        print("(none)")
        return
    for record in records:
        line = f"{record.name}\t{record.latitude:.6f}\t{record.longitude:.6f}"
        if record.address:
            line += f"\t{record.address}"
        print(line)


def _resolve(store: LocationStore, name: str) -> LocationRecord | None:
    for record in store.get_historical_locations():
        if record.name == name:
            return record
    for record in store.get_favorite_locations():
        if record.name == name:
            return record
    return find_preset(name)


def _cmd_presets(store: LocationStore, args: argparse.Namespace) -> int:
    _print_records(store.get_preset_locations(), as_json=args.json)
    return 0


def _cmd_history(store: LocationStore, args: argparse.Namespace) -> int:
    _print_records(store.get_historical_locations(), as_json=args.json)
    return 0


def _cmd_favorites(store: LocationStore, args: argparse.Namespace) -> int:
    _print_records(store.get_favorite_locations(), as_json=args.json)
    return 0


def _cmd_set(store: LocationStore, args: argparse.Namespace) -> int:
    try:
        record = LocationRecord(
            latitude=args.latitude,
            longitude=args.longitude,
            name=args.name,
            address=args.address,
        )
    except ValidationError as exc:
        print(f"Invalid location: {exc.errors()[0]['msg']}", file=sys.stderr)
        return 1
    store.set_virtual_location(record)
    _print_records([record], as_json=args.json)
    return 0


def _cmd_set_preset(store: LocationStore, args: argparse.Namespace) -> int:
    preset = find_preset(args.name)
    if preset is None:
        print(f"Unknown preset: {args.name}", file=sys.stderr)
        return 1
    # Fresh record so the history entry carries the time it was chosen.
    record = LocationRecord(
        latitude=preset.latitude,
        longitude=preset.longitude,
        name=preset.name,
        address=preset.address,
    )
    store.set_virtual_location(record)
    _print_records([record], as_json=args.json)
    return 0


def _cmd_favorite(store: LocationStore, args: argparse.Namespace) -> int:
    record = _resolve(store, args.name)
    if record is None:
        print(f"Unknown location: {args.name}", file=sys.stderr)
        return 1
    store.add_to_favorites(record)
    return 0


def _cmd_unfavorite(store: LocationStore, args: argparse.Namespace) -> int:
    record = _resolve(store, args.name)
    if record is None:
        print(f"Unknown location: {args.name}", file=sys.stderr)
        return 1
    store.remove_from_favorites(record)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pylocchanger", description="Manage virtual location history and favorites")
    parser.add_argument("--storage-dir", type=Path, default=None, help="Directory for persisted history/favorites")
    parser.add_argument("--json", action="store_true", help="Print records as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("presets", help="List built-in landmark presets").set_defaults(func=_cmd_presets)
    sub.add_parser("history", help="List location history, newest first").set_defaults(func=_cmd_history)
    sub.add_parser("favorites", help="List favorite locations").set_defaults(func=_cmd_favorites)

    p_set = sub.add_parser("set", help="Set a virtual location and record it in history")
    p_set.add_argument("name")
    p_set.add_argument("latitude", type=float)
    p_set.add_argument("longitude", type=float)
    p_set.add_argument("--address", default="")
    p_set.set_defaults(func=_cmd_set)

    p_preset = sub.add_parser("set-preset", help="Set a built-in preset as the virtual location")
    p_preset.add_argument("name")
    p_preset.set_defaults(func=_cmd_set_preset)

    p_fav = sub.add_parser("favorite", help="Add a location from history or presets to favorites")
    p_fav.add_argument("name")
    p_fav.set_defaults(func=_cmd_favorite)

    p_unfav = sub.add_parser("unfavorite", help="Remove a location from favorites")
    p_unfav.add_argument("name")
    p_unfav.set_defaults(func=_cmd_unfavorite)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    overrides: dict[str, object] = {"background_writes": False}
    if args.storage_dir is not None:
        overrides["storage_dir"] = args.storage_dir
    try:
        config = LocChangerConfig.from_env(**overrides)
    except LocChangerConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    with open_store(config) as store:
        return int(args.func(store, args))


if __name__ == "__main__":
    raise SystemExit(main())
