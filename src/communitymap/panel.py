"""Information panel view model for the current selection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .config import StyleConfig
from .models import City, Place, Selection


def format_count(n: int) -> str:
    if n >= 1_000_000:
        return f"{n / 1_000_000:.1f}M"
    if n >= 1_000:
        # Round half up like the web UI does, not banker's rounding.
        return f"{int(n / 1_000 + 0.5)}K"
    return str(n)


@dataclass(frozen=True, slots=True)
class PanelItem:
    id: str
    name: str
    community_label: str
    members_label: str


@dataclass(frozen=True, slots=True)
class PanelView:
    is_open: bool
    title: str
    community_label: str
    community_url: str
    members_label: str
    back_label: str
    items_heading: str
    items: tuple[PanelItem, ...]


_CLOSED = PanelView(
    is_open=False,
    title="",
    community_label="",
    community_url="",
    members_label="",
    back_label="World",
    items_heading="",
    items=(),
)


def _items(entities: Sequence[City] | Sequence[Place], style: StyleConfig) -> tuple[PanelItem, ...]:
    ordered = sorted(entities, key=lambda entity: entity.members, reverse=True)
    return tuple(
        PanelItem(
            id=entity.id,
            name=entity.name,
            community_label=style.community_label(entity.community),
            members_label=format_count(entity.members),
        )
        for entity in ordered
    )


def build_panel(selection: Selection, style: StyleConfig | None = None) -> PanelView:
    """Describe what the panel shows; a closed panel when nothing is selected.

    The child list holds the country's cities while only a country is
    selected, and the city's places while a city (but no place) is selected,
    largest communities first.
    """
    style = style or StyleConfig.default()
    active = selection.active
    country = selection.country
    if active is None or country is None:
        return _CLOSED

    if selection.place is not None and selection.city is not None:
        back_label = selection.city.name
    elif selection.city is not None:
        back_label = country.name
    else:
        back_label = "World"

    heading = ""
    items: tuple[PanelItem, ...] = ()
    if selection.city is None and country.cities:
        heading = f"Cities ({len(country.cities)})"
        items = _items(country.cities, style)
    elif selection.city is not None and selection.place is None and selection.city.places:
        heading = f"Neighborhoods ({len(selection.city.places)})"
        items = _items(selection.city.places, style)

    return PanelView(
        is_open=True,
        title=active.name,
        community_label=style.community_label(active.community),
        community_url=style.community_url(active.community),
        members_label=format_count(active.members) if active.members else "—",
        back_label=back_label,
        items_heading=heading,
        items=items,
    )


def format_panel_lines(view: PanelView) -> Sequence[str]:
    if not view.is_open:
        return ["Click a highlighted country to explore"]
    lines = [
        f"< {view.back_label}",
        view.community_label,
        view.title,
        f"Members: {view.members_label}",
        f"Visit {view.community_label}: {view.community_url}",
    ]
    if view.items:
        lines.append(view.items_heading)
        for item in view.items:
            lines.append(f"  - {item.name}  {item.community_label}  {item.members_label}")
    return lines
