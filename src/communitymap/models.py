"""Domain models shared across map modules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


class SelectionError(ValueError):
    """Raised when a selection would orphan a child from its parents."""


def _require_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _require_id(value: Any, field_name: str) -> str:
    # YAML turns unquoted numeric ids into ints; ids stay strings here.
    if isinstance(value, bool):
        raise ValueError(f"Expected identifier for '{field_name}'")
    if isinstance(value, int):
        return str(value)
    return _require_str(value, field_name)


def _require_members(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"Expected non-negative integer for '{field_name}'")
    return value


def _require_community(value: Any, field_name: str) -> str:
    community = _require_str(value, field_name)
    if community.casefold().startswith("r/"):
        community = community[2:]
    if not community:
        raise ValueError(f"Expected non-empty community for '{field_name}'")
    return community


def _require_coordinates(value: Any, field_name: str) -> tuple[float, float]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValueError(f"Expected [lon, lat] pair for '{field_name}'")
    lon_raw, lat_raw = value
    if isinstance(lon_raw, bool) or not isinstance(lon_raw, (int, float)):
        raise ValueError(f"Expected numeric longitude for '{field_name}'")
    if isinstance(lat_raw, bool) or not isinstance(lat_raw, (int, float)):
        raise ValueError(f"Expected numeric latitude for '{field_name}'")
    lon = float(lon_raw)
    lat = float(lat_raw)
    if lon < -180.0 or lon > 180.0:
        raise ValueError(f"{field_name} longitude must be between -180 and 180")
    if lat < -90.0 or lat > 90.0:
        raise ValueError(f"{field_name} latitude must be between -90 and 90")
    return (lon, lat)


def _unique_children(items: tuple[Any, ...], scope: str) -> None:
    seen: set[str] = set()
    for item in items:
        if item.id in seen:
            raise ValueError(f"Duplicate id '{item.id}' in {scope}")
        seen.add(item.id)


@dataclass(frozen=True, slots=True)
class Place:
    """Named place inside a city, e.g. a university or a neighbourhood."""

    id: str
    name: str
    community: str
    members: int
    lon: float
    lat: float

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, scope: str = "place") -> Place:
        name = _require_str(data.get("name"), f"{scope}.name")
        lon, lat = _require_coordinates(data.get("coordinates"), f"{scope}.coordinates")
        return cls(
            id=_require_id(data.get("id", name), f"{scope}.id"),
            name=name,
            community=_require_community(data.get("community"), f"{scope}.community"),
            members=_require_members(data.get("members"), f"{scope}.members"),
            lon=lon,
            lat=lat,
        )


@dataclass(frozen=True, slots=True)
class City:
    id: str
    name: str
    community: str
    members: int
    lon: float
    lat: float
    places: tuple[Place, ...] = ()

    @property
    def has_places(self) -> bool:
        return bool(self.places)

    def place_by_id(self, place_id: str) -> Place | None:
        for place in self.places:
            if place.id == place_id:
                return place
        return None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, scope: str = "city") -> City:
        name = _require_str(data.get("name"), f"{scope}.name")
        lon, lat = _require_coordinates(data.get("coordinates"), f"{scope}.coordinates")
        places_raw = data.get("places", [])
        if places_raw is None:
            places_raw = []
        if not isinstance(places_raw, list):
            raise ValueError(f"Expected list for '{scope}.places'")
        places: list[Place] = []
        for idx, item in enumerate(places_raw):
            if not isinstance(item, Mapping):
                raise ValueError(f"Expected mapping for '{scope}.places[{idx}]'")
            places.append(Place.from_mapping(item, scope=f"{scope}.places[{idx}]"))
        city = cls(
            id=_require_id(data.get("id", name), f"{scope}.id"),
            name=name,
            community=_require_community(data.get("community"), f"{scope}.community"),
            members=_require_members(data.get("members"), f"{scope}.members"),
            lon=lon,
            lat=lat,
            places=tuple(places),
        )
        _unique_children(city.places, f"{scope}.places")
        return city


@dataclass(frozen=True, slots=True)
class Country:
    """Country record; boundary geometry is supplied separately by id."""

    id: str
    name: str
    community: str
    members: int
    lon: float
    lat: float
    cities: tuple[City, ...] = ()

    def city_by_id(self, city_id: str) -> City | None:
        for city in self.cities:
            if city.id == city_id:
                return city
        return None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, scope: str = "country") -> Country:
        cities_raw = data.get("cities", [])
        if cities_raw is None:
            cities_raw = []
        if not isinstance(cities_raw, list):
            raise ValueError(f"Expected list for '{scope}.cities'")
        cities: list[City] = []
        for idx, item in enumerate(cities_raw):
            if not isinstance(item, Mapping):
                raise ValueError(f"Expected mapping for '{scope}.cities[{idx}]'")
            cities.append(City.from_mapping(item, scope=f"{scope}.cities[{idx}]"))
        lon, lat = _require_coordinates(data.get("coordinates"), f"{scope}.coordinates")
        country = cls(
            id=_require_id(data.get("id"), f"{scope}.id"),
            name=_require_str(data.get("name"), f"{scope}.name"),
            community=_require_community(data.get("community"), f"{scope}.community"),
            members=_require_members(data.get("members"), f"{scope}.members"),
            lon=lon,
            lat=lat,
            cities=tuple(cities),
        )
        _unique_children(country.cities, f"{scope}.cities")
        return country


@dataclass(frozen=True, slots=True)
class Selection:
    """What the user has drilled into: nothing, a country, a city or a place.

    Children always travel with their parents. Use the ``of_*`` constructors,
    which reject a city that is not one of the country's cities and a place
    that is not one of the city's places.
    """

    country: Country | None = None
    city: City | None = None
    place: Place | None = None

    @classmethod
    def none(cls) -> Selection:
        return cls()

    @classmethod
    def of_country(cls, country: Country) -> Selection:
        return cls(country=country)

    @classmethod
    def of_city(cls, country: Country, city: City) -> Selection:
        if city not in country.cities:
            raise SelectionError(f"City '{city.id}' does not belong to country '{country.id}'")
        return cls(country=country, city=city)

    @classmethod
    def of_place(cls, country: Country, city: City, place: Place) -> Selection:
        if city not in country.cities:
            raise SelectionError(f"City '{city.id}' does not belong to country '{country.id}'")
        if place not in city.places:
            raise SelectionError(f"Place '{place.id}' does not belong to city '{city.id}'")
        return cls(country=country, city=city, place=place)

    @property
    def kind(self) -> str:
        if self.place is not None:
            return "place"
        if self.city is not None:
            return "city"
        if self.country is not None:
            return "country"
        return "none"

    @property
    def is_empty(self) -> bool:
        return self.country is None

    @property
    def active(self) -> Country | City | Place | None:
        return self.place or self.city or self.country

    def parent(self) -> Selection:
        """Selection one level up the hierarchy."""
        if self.place is not None:
            return Selection(country=self.country, city=self.city)
        if self.city is not None:
            return Selection(country=self.country)
        return Selection.none()

    def is_city_active(self, country: Country, city: City) -> bool:
        return (
            self.city is not None
            and self.country is not None
            and self.country.id == country.id
            and self.city.id == city.id
        )

    def is_place_active(self, country: Country, city: City, place: Place) -> bool:
        return (
            self.place is not None
            and self.is_city_active(country, city)
            and self.place.id == place.id
        )


@dataclass(frozen=True, slots=True)
class PathStyle:
    """Country boundary style: fill opacity and stroke weight."""

    fill_opacity: float
    weight: float

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], field_name: str) -> PathStyle:
        opacity = data.get("fill_opacity")
        weight = data.get("weight")
        if isinstance(opacity, bool) or not isinstance(opacity, (int, float)):
            raise ValueError(f"Expected float for '{field_name}.fill_opacity'")
        if isinstance(weight, bool) or not isinstance(weight, (int, float)):
            raise ValueError(f"Expected float for '{field_name}.weight'")
        if not 0.0 <= float(opacity) <= 1.0:
            raise ValueError(f"{field_name}.fill_opacity must be between 0 and 1")
        if float(weight) < 0:
            raise ValueError(f"{field_name}.weight must be >= 0")
        return cls(fill_opacity=float(opacity), weight=float(weight))


LABEL_PERMANENT = "permanent"
LABEL_HOVER = "hover"

MARKER_CITY = "city"
MARKER_PLACE = "place"


@dataclass(frozen=True, slots=True)
class MarkerPlanEntry:
    """One point marker of a render pass, derived from zoom and selection."""

    kind: str
    country: Country
    city: City
    place: Place | None
    base_radius: float
    radius: float
    fill_color: str
    fill_opacity: float
    stroke_color: str
    weight: float
    label_mode: str
    label_text: str
    active: bool

    @property
    def entity(self) -> City | Place:
        return self.place if self.place is not None else self.city

    @property
    def lon(self) -> float:
        return self.entity.lon

    @property
    def lat(self) -> float:
        return self.entity.lat

    @property
    def has_permanent_label(self) -> bool:
        return self.label_mode == LABEL_PERMANENT


@dataclass(frozen=True, slots=True)
class MarkerPlan:
    cities: tuple[MarkerPlanEntry, ...] = ()
    places: tuple[MarkerPlanEntry, ...] = ()

    @property
    def entries(self) -> tuple[MarkerPlanEntry, ...]:
        return (*self.cities, *self.places)

    def __len__(self) -> int:
        return len(self.cities) + len(self.places)
