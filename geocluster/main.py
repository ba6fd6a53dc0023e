"""Command-line entrypoints for the map location pipeline."""
from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import orjson
from dotenv import load_dotenv
from pydantic import ValidationError

from geocluster.cluster.bounds import DEFAULT_CENTER, marker_bounds
from geocluster.cluster.engine import Marker
from geocluster.geocode.address import build_address_query
from geocluster.geocode.batch import geocode_batch
from geocluster.geocode.session import create_geocoding_client
from geocluster.models import Location, MapRecord
from geocluster.observability.log import configure_logging
from geocluster.observability.metrics import MetricsRegistry
from geocluster.orchestrator.resolver import Liveness, MapSnapshot, ResolutionOrchestrator
from geocluster.settings import load_settings

DEFAULT_SETTINGS_PATH = Path("config/settings.toml")
DEFAULT_LOGGING_PATH = Path("config/logging.yaml")


def build_arg_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(prog="geocluster", description="Resolve and cluster locations for the map view")
    parser.add_argument("--settings", default=str(DEFAULT_SETTINGS_PATH), help="Path to settings TOML")
    sub = parser.add_subparsers(dest="command", required=True)

    query = sub.add_parser("query", help="Print the canonical address query for a location")
    query.add_argument("location", help="Location as a JSON object")

    resolve = sub.add_parser("resolve", help="Resolve a JSON array of records into map markers")
    resolve.add_argument("records", help="Path to a JSON file holding the records")
    resolve.add_argument("--output", help="Write the final markers to this file instead of stdout")
    resolve.add_argument("--quiet", action="store_true", help="Do not print progress lines")

    batch = sub.add_parser("batch", help="Geocode a JSON array of locations with rate limiting")
    batch.add_argument("locations", help="Path to a JSON file holding the locations")

    return parser


def _read_json(path: Path) -> Any:
    return orjson.loads(path.read_bytes())


def _load_records(path: Path) -> List[MapRecord]:
    payload = _read_json(path)
    if isinstance(payload, dict):
        payload = payload.get("data", [])
    return [MapRecord.model_validate(item) for item in payload]


def _progress_printer(snapshot: MapSnapshot) -> None:
    progress = snapshot.progress
    print(
        f"{snapshot.state.value}: resolved {progress.resolved_count}/{progress.total_to_resolve}, "
        f"{len(snapshot.markers)} markers",
        file=sys.stderr,
    )


def render_markers(markers: List[Marker]) -> bytes:
    bounds = marker_bounds(markers)
    payload: Dict[str, object] = {
        "markers": [marker.to_dict() for marker in markers],
        "bounds": None if bounds is None else [[bounds.south, bounds.west], [bounds.north, bounds.east]],
        "center": list(DEFAULT_CENTER if bounds is None else bounds.center),
    }
    return orjson.dumps(payload, option=orjson.OPT_INDENT_2)


async def run_resolve(args: argparse.Namespace, settings: Dict[str, Dict[str, Any]]) -> List[Marker]:
    """Execute the resolve command end-to-end."""
    records = _load_records(Path(args.records))
    metrics = MetricsRegistry()
    run_id = getattr(args, "run_id", None) or datetime.utcnow().strftime("%Y%m%dT%H%M%S")
    liveness = Liveness()
    publish = None if getattr(args, "quiet", False) else _progress_printer

    with metrics.timed("run_duration_ms"):
        async with create_geocoding_client(settings, metrics=metrics) as client:
            orchestrator = ResolutionOrchestrator(client, publish=publish, metrics=metrics)
            try:
                snapshot = await orchestrator.run(records, liveness)
            finally:
                liveness.cancel()

    markers = snapshot.markers if snapshot is not None else []
    rendered = render_markers(markers)
    if getattr(args, "output", None):
        Path(args.output).write_bytes(rendered)
    else:
        print(rendered.decode())
    metrics_dir = Path(settings["app"]["metrics_dir"])
    metrics.export(path=metrics_dir / f"run_{run_id}.json", run_id=run_id)
    return markers


async def run_batch(args: argparse.Namespace, settings: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    """Execute the batch command and print the query to coordinate map."""
    locations = [Location.model_validate(item) for item in _read_json(Path(args.locations))]
    async with create_geocoding_client(settings) as client:
        results = await geocode_batch(
            client,
            locations,
            delay_seconds=float(settings["geocoder"]["batch_delay_seconds"]),
        )
    summary = {query: {"lat": result.lat, "lng": result.lng} for query, result in results.items()}
    print(orjson.dumps(summary, option=orjson.OPT_INDENT_2).decode())
    return summary


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI."""
    load_dotenv()
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    settings = load_settings(Path(args.settings))
    configure_logging(DEFAULT_LOGGING_PATH)

    if args.command == "query":
        try:
            payload = orjson.loads(args.location)
            if not isinstance(payload, dict):
                raise SystemExit("Invalid location: expected a JSON object")
            location = Location.model_validate({"id": 0, **payload})
        except (orjson.JSONDecodeError, ValidationError) as exc:
            raise SystemExit(f"Invalid location: {exc}")
        query = build_address_query(location)
        if query is None:
            raise SystemExit("Location has no usable address")
        print(query)
        return

    if args.command == "resolve":
        asyncio.run(run_resolve(args, settings))
        return

    if args.command == "batch":
        asyncio.run(run_batch(args, settings))


if __name__ == "__main__":
    main()
