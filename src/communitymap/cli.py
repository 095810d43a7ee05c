"""CLI entrypoint for the community map."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

from .config import AppConfig, load_config
from .context import MapContext
from .dataset import load_dataset
from .geometry import GeometryProvider
from .lod import format_plan_lines
from .panel import build_panel, format_panel_lines
from .selection import SelectCity, SelectCountry, SelectPlace
from .util import setup_logging, write_json
from .validate import DatasetValidator, format_report_lines

LOGGER = logging.getLogger("communitymap.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="communitymap",
        description="Interactive map of country, city and place communities.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", default="config.yaml", help="Path to YAML config.")
        p.add_argument("--verbose", action="store_true", help="Enable debug logs.")

    def add_selection(p: argparse.ArgumentParser) -> None:
        p.add_argument("--zoom", type=int, default=None, help="Zoom level (defaults to config).")
        p.add_argument("--country", default=None, help="Country id to select.")
        p.add_argument("--city", default=None, help="City id to select (requires --country).")
        p.add_argument("--place", default=None, help="Place id to select (requires --city).")

    validate_p = subparsers.add_parser("validate", help="Validate config and dataset.")
    add_common(validate_p)

    plan_p = subparsers.add_parser(
        "plan",
        help="Print the marker plan and info panel for a zoom level and selection.",
    )
    add_common(plan_p)
    add_selection(plan_p)

    fetch_p = subparsers.add_parser(
        "fetch-geometry",
        help="Fetch boundary geometry, fix antimeridian crossings and write GeoJSON.",
    )
    add_common(fetch_p)
    fetch_p.add_argument("--output", default=None, help="Output GeoJSON path.")

    snapshot_p = subparsers.add_parser("snapshot", help="Render the map to a PNG file.")
    add_common(snapshot_p)
    add_selection(snapshot_p)
    snapshot_p.add_argument("--output", required=True, help="Output PNG path.")

    show_p = subparsers.add_parser("show", help="Open the interactive map window.")
    add_common(show_p)
    add_selection(show_p)

    return parser


def _load_and_setup(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(args.config)
    setup_logging(cfg.paths.logs_dir / "communitymap.log", verbose=args.verbose)
    return cfg


def _build_context(cfg: AppConfig, args: argparse.Namespace) -> MapContext | None:
    """Context with the zoom and selection requested on the command line."""
    dataset = load_dataset(cfg.paths.dataset)
    ctx = MapContext.from_config(cfg, dataset)
    if args.zoom is not None:
        ctx.set_zoom(args.zoom)
        if ctx.zoom != args.zoom:
            LOGGER.warning("Zoom %d clamped to %d", args.zoom, ctx.zoom)

    if args.city is not None and args.country is None:
        LOGGER.error("--city requires --country")
        return None
    if args.place is not None and args.city is None:
        LOGGER.error("--place requires --city")
        return None
    if args.country is None:
        return ctx

    country = dataset.get(args.country)
    if country is None:
        LOGGER.error("Unknown country id '%s'", args.country)
        return None
    ctx.dispatch(SelectCountry(country.id))
    if args.city is None:
        return ctx

    city = country.city_by_id(args.city)
    if city is None:
        LOGGER.error("Unknown city id '%s' in country '%s'", args.city, country.id)
        return None
    ctx.dispatch(SelectCity(country, city))
    if args.place is None:
        return ctx

    place = city.place_by_id(args.place)
    if place is None:
        LOGGER.error("Unknown place id '%s' in city '%s'", args.place, city.id)
        return None
    ctx.dispatch(SelectPlace(country, city, place))
    return ctx


def _run_validate(cfg: AppConfig) -> int:
    report = DatasetValidator(cfg).run()
    for line in format_report_lines(report):
        LOGGER.info(line)
    return 0 if report.ok else 1


def _run_plan(cfg: AppConfig, args: argparse.Namespace) -> int:
    ctx = _build_context(cfg, args)
    if ctx is None:
        return 1
    for line in format_plan_lines(ctx.marker_plan, zoom=ctx.zoom):
        LOGGER.info(line)
    for line in format_panel_lines(build_panel(ctx.selection, ctx.style)):
        LOGGER.info("[panel] %s", line)
    return 0


def _run_fetch_geometry(cfg: AppConfig, *, output: str | None) -> int:
    output_path = Path(output) if output else cfg.paths.geometry_cache
    if output_path is None:
        LOGGER.error("No --output given and paths.geometry_cache is not configured.")
        return 1
    provider = GeometryProvider(cfg.geometry)
    try:
        collection = provider.fetch()
    finally:
        provider.close()
    if collection is None:
        LOGGER.error("Boundary geometry could not be fetched from %s", cfg.geometry.url)
        return 1
    write_json(output_path, collection)
    LOGGER.info("Wrote %d corrected features to %s", len(collection["features"]), output_path)
    return 0


def _run_snapshot(cfg: AppConfig, args: argparse.Namespace) -> int:
    from .surface import MapSurface

    ctx = _build_context(cfg, args)
    if ctx is None:
        return 1
    surface = MapSurface(ctx, cfg, interactive=False)
    try:
        path = surface.save(Path(args.output))
    finally:
        surface.teardown()
    LOGGER.info("Map snapshot written to %s", path)
    return 0


def _run_show(cfg: AppConfig, args: argparse.Namespace) -> int:
    from .surface import MapSurface

    ctx = _build_context(cfg, args)
    if ctx is None:
        return 1
    surface = MapSurface(ctx, cfg)
    surface.show()
    return 0


def _dispatch(args: argparse.Namespace) -> int:
    cfg = _load_and_setup(args)
    command = str(args.command)
    if command == "validate":
        return _run_validate(cfg)
    if command == "plan":
        return _run_plan(cfg, args)
    if command == "fetch-geometry":
        return _run_fetch_geometry(cfg, output=args.output)
    if command == "snapshot":
        return _run_snapshot(cfg, args)
    if command == "show":
        return _run_show(cfg, args)
    raise ValueError(f"Unknown command: {command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return _dispatch(args)


if __name__ == "__main__":
    raise SystemExit(main())
