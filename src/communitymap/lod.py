"""Level-of-detail planning for city and place markers.

The planner is a pure function of zoom, selection and dataset. Every call
returns a complete plan; consumers drop all previous markers before drawing
the new one, so nothing survives from an earlier zoom or selection.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Sequence

from .config import LodConfig, MarkerStyleConfig, StyleConfig
from .dataset import CommunityDataset
from .models import (
    LABEL_HOVER,
    LABEL_PERMANENT,
    MARKER_CITY,
    MARKER_PLACE,
    City,
    Country,
    MarkerPlan,
    MarkerPlanEntry,
    Place,
    Selection,
)


@dataclass(frozen=True, slots=True)
class MarkerStyle:
    """Transient drawing state of one marker (radius, opacity, stroke)."""

    radius: float
    fill_color: str
    fill_opacity: float
    stroke_color: str
    weight: float


def marker_radius(members: int, style: MarkerStyleConfig) -> float:
    """``max(min_radius, (log10(members) - log_offset) * log_scale)``."""
    if members < 1:
        return style.min_radius
    return max(style.min_radius, (math.log10(members) - style.log_offset) * style.log_scale)


def city_radius(members: int, style: MarkerStyleConfig | None = None) -> float:
    return marker_radius(members, style or MarkerStyleConfig.default_city())


def place_radius(members: int, style: MarkerStyleConfig | None = None) -> float:
    return marker_radius(members, style or MarkerStyleConfig.default_place())


def label_min_members(zoom: int, bands: Sequence[tuple[int, int]]) -> int | None:
    """Members needed for a permanent label at ``zoom``; ``None`` means never."""
    for min_zoom, min_members in bands:
        if zoom >= min_zoom:
            return min_members
    return None


def label_mode_for(members: int, threshold: int | None) -> str:
    if threshold is not None and members >= threshold:
        return LABEL_PERMANENT
    return LABEL_HOVER


def baseline_style(entry: MarkerPlanEntry) -> MarkerStyle:
    """Selection-aware resting style; hover-exit reverts to this."""
    return MarkerStyle(
        radius=entry.radius,
        fill_color=entry.fill_color,
        fill_opacity=entry.fill_opacity,
        stroke_color=entry.stroke_color,
        weight=entry.weight,
    )


def hover_style(entry: MarkerPlanEntry, style: MarkerStyleConfig) -> MarkerStyle:
    return replace(
        baseline_style(entry),
        radius=entry.base_radius + style.hover_radius_bonus,
        fill_opacity=1.0,
        weight=2.0,
    )


class MarkerPlanner:
    """Decide which markers exist at a zoom level and how they are labelled."""

    def __init__(self, lod: LodConfig | None = None, style: StyleConfig | None = None) -> None:
        self.lod = lod or LodConfig.default()
        self.style = style or StyleConfig.default()

    def plan(self, zoom: int, selection: Selection, dataset: CommunityDataset) -> MarkerPlan:
        cities: list[MarkerPlanEntry] = []
        places: list[MarkerPlanEntry] = []

        if zoom >= self.lod.city_min_zoom:
            threshold = label_min_members(zoom, self.lod.city_label_bands)
            for country, city in dataset.iter_cities():
                cities.append(
                    self._entry(
                        kind=MARKER_CITY,
                        country=country,
                        city=city,
                        place=None,
                        threshold=threshold,
                        active=selection.is_city_active(country, city),
                    )
                )

        if zoom >= self.lod.place_min_zoom:
            threshold = label_min_members(zoom, self.lod.place_label_bands)
            for country, city, place in dataset.iter_places():
                places.append(
                    self._entry(
                        kind=MARKER_PLACE,
                        country=country,
                        city=city,
                        place=place,
                        threshold=threshold,
                        active=selection.is_place_active(country, city, place),
                    )
                )

        return MarkerPlan(cities=tuple(cities), places=tuple(places))

    def style_for(self, kind: str) -> MarkerStyleConfig:
        return self.style.place if kind == MARKER_PLACE else self.style.city

    def hover_style(self, entry: MarkerPlanEntry) -> MarkerStyle:
        return hover_style(entry, self.style_for(entry.kind))

    def _entry(
        self,
        *,
        kind: str,
        country: Country,
        city: City,
        place: Place | None,
        threshold: int | None,
        active: bool,
    ) -> MarkerPlanEntry:
        marker_cfg = self.style_for(kind)
        entity = place if place is not None else city
        radius = marker_radius(entity.members, marker_cfg)
        mode = label_mode_for(entity.members, threshold)
        label = entity.name if mode == LABEL_PERMANENT else self.style.community_label(entity.community)
        return MarkerPlanEntry(
            kind=kind,
            country=country,
            city=city,
            place=place,
            base_radius=radius,
            radius=radius + marker_cfg.active_radius_bonus if active else radius,
            fill_color=marker_cfg.active_fill_color if active else marker_cfg.fill_color,
            fill_opacity=marker_cfg.fill_opacity,
            stroke_color=marker_cfg.active_stroke_color if active else marker_cfg.stroke_color,
            weight=2.0 if active else 1.0,
            label_mode=mode,
            label_text=label,
            active=active,
        )


def format_plan_lines(plan: MarkerPlan, *, zoom: int) -> Sequence[str]:
    lines = [f"Zoom {zoom}: {len(plan.cities)} city markers, {len(plan.places)} place markers"]
    for entry in plan.entries:
        flags = " active" if entry.active else ""
        lines.append(
            f"  [{entry.kind}] {entry.entity.name} ({entry.lon:.4f}, {entry.lat:.4f}) "
            f"r={entry.radius:.1f} label={entry.label_mode}:{entry.label_text}{flags}"
        )
    return lines
