"""Shared fixtures: a small community dataset and recording drawables."""

from __future__ import annotations

import pytest
import yaml

from communitymap.config import load_config
from communitymap.context import MapContext
from communitymap.dataset import CommunityDataset
from communitymap.models import PathStyle
from communitymap.styles import LayerRegistry, StyleSynchronizer


RECORDS = [
    {
        "id": "840",
        "name": "United States",
        "community": "usa",
        "members": 780000,
        "coordinates": [-98.5, 39.8],
        "cities": [
            {
                "id": "nyc",
                "name": "New York City",
                "community": "nyc",
                "members": 1_400_000,
                "coordinates": [-74.006, 40.7128],
                "places": [
                    {
                        "id": "brooklyn",
                        "name": "Brooklyn",
                        "community": "Brooklyn",
                        "members": 160_000,
                        "coordinates": [-73.9442, 40.6782],
                    },
                    {
                        "id": "astoria",
                        "name": "Astoria",
                        "community": "astoria",
                        "members": 2_500,
                        "coordinates": [-73.9235, 40.7644],
                    },
                ],
            },
            {
                "id": "anchorage",
                "name": "Anchorage",
                "community": "anchorage",
                "members": 24_000,
                "coordinates": [-149.9003, 61.2181],
            },
        ],
    },
    {
        "id": "076",
        "name": "Brazil",
        "community": "r/brasil",
        "members": 2_900_000,
        "coordinates": [-51.9, -14.2],
        "cities": [
            {
                "id": "rio",
                "name": "Rio de Janeiro",
                "community": "riodejaneiro",
                "members": 88_000,
                "coordinates": [-43.1729, -22.9068],
            },
        ],
    },
    {
        "id": "242",
        "name": "Fiji",
        "community": "fiji",
        "members": 0,
        "coordinates": [178.065, -17.7134],
    },
]


class FakeDrawable:
    """Records style changes into a log shared by every fake."""

    def __init__(self, name: str, log: list) -> None:
        self.name = name
        self.log = log
        self.style: PathStyle | None = None
        self.front_count = 0

    def set_style(self, style: PathStyle) -> None:
        self.style = style
        self.log.append((self.name, style))

    def bring_to_front(self) -> None:
        self.front_count += 1
        self.log.append((self.name, "front"))


@pytest.fixture
def records():
    return [dict(record) for record in RECORDS]


@pytest.fixture
def dataset():
    return CommunityDataset.from_records(RECORDS)


@pytest.fixture
def style_log():
    return []


@pytest.fixture
def drawables(style_log):
    return {
        "840": FakeDrawable("840", style_log),
        "076": FakeDrawable("076", style_log),
        "242": FakeDrawable("242", style_log),
    }


@pytest.fixture
def registry(drawables):
    reg = LayerRegistry()
    reg.register_all(drawables.items())
    return reg


@pytest.fixture
def styles(registry):
    return StyleSynchronizer(registry)


@pytest.fixture
def ctx(dataset, drawables):
    context = MapContext(dataset)
    context.register_layers(drawables.items())
    return context


SQUARE_FEATURES = {
    "type": "FeatureCollection",
    "features": [
        {
            "type": "Feature",
            "id": "840",
            "properties": {"name": "United States of America"},
            "geometry": {
                "type": "Polygon",
                "coordinates": [[[-170, 15], [-60, 15], [-60, 72], [-170, 72], [-170, 15]]],
            },
        },
        {
            "type": "Feature",
            "id": "76",
            "properties": {"name": "Brazil"},
            "geometry": {
                "type": "Polygon",
                "coordinates": [[[-74, -34], [-34, -34], [-34, 5], [-74, 5], [-74, -34]]],
            },
        },
        {
            "type": "Feature",
            "properties": {"id": "036", "name": "Australia"},
            "geometry": {
                "type": "Polygon",
                "coordinates": [[[113, -44], [154, -44], [154, -10], [113, -10], [113, -44]]],
            },
        },
    ],
}


@pytest.fixture
def features():
    return SQUARE_FEATURES


@pytest.fixture
def config_path(tmp_path):
    """A complete project on disk: config, dataset and a cached geometry file."""
    (tmp_path / "data").mkdir()
    (tmp_path / "data" / "communities.yaml").write_text(
        yaml.safe_dump({"countries": RECORDS}, sort_keys=False), encoding="utf-8"
    )
    raw = {
        "project": {"title": "Test Map"},
        "paths": {
            "dataset": "data/communities.yaml",
            "logs_dir": "logs",
            "geometry_cache": "data/cache/countries.geojson",
        },
        "geometry": {"url": "https://example.invalid/countries.json", "layer": "countries"},
        "basemap": {"provider": "none"},
        "viewport": {
            "center_lon": 10.0,
            "center_lat": 20.0,
            "default_zoom": 3,
            "min_zoom": 2,
            "max_zoom": 19,
            "width_px": 400,
            "height_px": 300,
            "dpi": 50,
        },
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(raw, sort_keys=False), encoding="utf-8")
    return path


@pytest.fixture
def app_config(config_path):
    return load_config(config_path)
