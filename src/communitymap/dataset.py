"""Community dataset loading and indexing."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterator, Sequence

import yaml

from .models import City, Country, Place


def normalize_country_id(raw: Any) -> str | None:
    """Return a dataset-style id for a feature id (int or numeric string)."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, float):
        if not raw.is_integer():
            return None
        raw = int(raw)
    value = str(raw).strip()
    return value or None


def strip_leading_zeros(country_id: str) -> str:
    return country_id.lstrip("0") or "0"


class CommunityDataset:
    """Read-only countries -> cities -> places tree with id lookups."""

    def __init__(self, countries: Sequence[Country]) -> None:
        self._countries = tuple(countries)
        self._by_id: dict[str, Country] = {}
        for country in self._countries:
            if country.id in self._by_id:
                raise ValueError(f"Duplicate country id '{country.id}'")
            self._by_id[country.id] = country
        for country in self._countries:
            stripped = strip_leading_zeros(country.id)
            if stripped == country.id:
                continue
            other = self._by_id.get(stripped)
            if other is not None and other is not country:
                raise ValueError(
                    f"Country id '{country.id}' collides with '{other.id}' once leading zeros are stripped"
                )
            self._by_id[stripped] = country

    @property
    def countries(self) -> tuple[Country, ...]:
        return self._countries

    def __len__(self) -> int:
        return len(self._countries)

    def __iter__(self) -> Iterator[Country]:
        return iter(self._countries)

    def get(self, country_id: Any) -> Country | None:
        key = normalize_country_id(country_id)
        if key is None:
            return None
        country = self._by_id.get(key)
        if country is None and key.isdigit():
            country = self._by_id.get(strip_leading_zeros(key))
        return country

    def iter_cities(self) -> Iterator[tuple[Country, City]]:
        for country in self._countries:
            for city in country.cities:
                yield country, city

    def iter_places(self) -> Iterator[tuple[Country, City, Place]]:
        for country, city in self.iter_cities():
            for place in city.places:
                yield country, city, place

    @classmethod
    def from_records(cls, raw: Any, *, source: str = "dataset") -> CommunityDataset:
        if not isinstance(raw, list):
            raise ValueError(f"Expected list in {source}")
        countries: list[Country] = []
        for idx, item in enumerate(raw):
            if not isinstance(item, dict):
                raise ValueError(f"Expected mapping at index {idx} in {source}")
            countries.append(Country.from_mapping(item, scope=f"countries[{idx}]"))
        return cls(countries)


def load_dataset(path: Path) -> CommunityDataset:
    """Load and validate the countries/cities/places dataset."""
    if not path.exists():
        raise FileNotFoundError(f"Dataset file not found: {path}")
    with path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if isinstance(raw, dict) and "countries" in raw:
        raw = raw["countries"]
    return CommunityDataset.from_records(raw, source=str(path))
