"""Validation layer for config, dataset and cached boundary geometry."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from .config import AppConfig
from .dataset import CommunityDataset, load_dataset
from .geometry import match_features

_PLACE_DISTANCE_WARN_DEG = 5.0


@dataclass(slots=True)
class ValidationReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    infos: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def add_info(self, msg: str) -> None:
        self.infos.append(msg)


class DatasetValidator:
    """Check the community dataset and, when cached, its boundary join."""

    def __init__(self, cfg: AppConfig) -> None:
        self.cfg = cfg

    def run(self) -> ValidationReport:
        report = ValidationReport()
        dataset = self._validate_dataset(report)
        if dataset is None:
            return report
        self._validate_hierarchy(report, dataset)
        self._validate_label_coverage(report, dataset)
        self._validate_geometry_cache(report, dataset)
        return report

    def _validate_dataset(self, report: ValidationReport) -> CommunityDataset | None:
        path = self.cfg.paths.dataset
        if not path.exists():
            report.add_error(f"Missing dataset file: {path}")
            return None
        try:
            dataset = load_dataset(path)
        except (OSError, ValueError) as exc:
            report.add_error(f"Failed parsing dataset '{path}': {exc}")
            return None
        if not len(dataset):
            report.add_error(f"Dataset is empty: {path}")
            return None
        city_count = sum(1 for _ in dataset.iter_cities())
        place_count = sum(1 for _ in dataset.iter_places())
        report.add_info(
            f"Loaded {len(dataset)} countries, {city_count} cities and {place_count} places from {path}"
        )
        return dataset

    def _validate_hierarchy(self, report: ValidationReport, dataset: CommunityDataset) -> None:
        without_cities = [country.id for country in dataset if not country.cities]
        if without_cities:
            report.add_info(
                f"{len(without_cities)} countries have no cities: {_format_code_list(without_cities)}"
            )
        for country, city, place in dataset.iter_places():
            distance = math.hypot(place.lon - city.lon, place.lat - city.lat)
            if distance > _PLACE_DISTANCE_WARN_DEG:
                report.add_warning(
                    f"Place '{place.name}' is {distance:.1f} deg away from its city "
                    f"'{city.name}' ({country.id})"
                )

    def _validate_label_coverage(self, report: ValidationReport, dataset: CommunityDataset) -> None:
        empty: list[str] = []
        for country, city in dataset.iter_cities():
            if city.members == 0:
                empty.append(f"{country.id}/{city.id}")
        for country, city, place in dataset.iter_places():
            if place.members == 0:
                empty.append(f"{country.id}/{city.id}/{place.id}")
        if empty:
            report.add_warning(
                "Entities with 0 members use the minimum marker radius: " + _format_code_list(empty)
            )

    def _validate_geometry_cache(self, report: ValidationReport, dataset: CommunityDataset) -> None:
        cache_path = self.cfg.paths.geometry_cache
        if cache_path is None or not cache_path.exists():
            report.add_info("Skipping boundary join checks because no geometry cache exists.")
            return
        try:
            collection = json.loads(cache_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            report.add_warning(f"Failed reading geometry cache '{cache_path}': {exc}")
            return

        match = match_features(collection, dataset)
        report.add_info(
            f"Boundary join: {len(match.matched)} matched, {len(match.unmatched)} background-only features"
        )
        matched_ids = {country.id for country, _ in match.matched}
        missing = [country.id for country in dataset if country.id not in matched_ids]
        if missing:
            report.add_warning(
                "Countries without boundary geometry cannot be highlighted: "
                + _format_code_list(missing)
            )

        outside: list[str] = []
        for country, feature in match.matched:
            boundary = _shape_or_none(feature.get("geometry"))
            if boundary is None:
                report.add_warning(f"Unreadable boundary geometry for country {country.id}")
                continue
            for city in country.cities:
                if not _covers_lon_lat(boundary, city.lon, city.lat):
                    outside.append(f"{country.id}/{city.id}")
        if outside:
            report.add_warning(
                "Cities outside their country boundary: " + _format_code_list(outside)
            )


def _shape_or_none(geometry: Mapping[str, Any] | None) -> Any | None:
    if not geometry:
        return None
    shape, _ = _require_shapely_geometry()
    try:
        return shape(geometry).buffer(0)
    except (ValueError, TypeError, AttributeError):
        return None


def _covers_lon_lat(boundary: Any, lon: float, lat: float) -> bool:
    _, Point = _require_shapely_geometry()
    # Corrected rings may extend past ±180, so test the shifted copies too.
    return any(boundary.intersects(Point(lon + shift, lat)) for shift in (0.0, 360.0, -360.0))


def _require_shapely_geometry() -> tuple[Any, Any]:
    try:
        from shapely.geometry import Point, shape
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required for boundary checks") from exc
    return (shape, Point)


def format_report_lines(report: ValidationReport) -> Iterable[str]:
    if report.infos:
        for info in report.infos:
            yield f"[INFO] {info}"
    if report.warnings:
        for warning in report.warnings:
            yield f"[WARN] {warning}"
    if report.errors:
        for error in report.errors:
            yield f"[ERROR] {error}"
    if report.ok:
        yield "[OK] Validation completed with no errors."


def _format_code_list(values: list[str], limit: int = 12) -> str:
    if len(values) <= limit:
        return ", ".join(values)
    shown = ", ".join(values[:limit])
    return f"{shown}, ... (+{len(values) - limit} more)"
