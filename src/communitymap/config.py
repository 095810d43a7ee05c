"""Typed configuration loader for `config.yaml`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, cast

import yaml

from .models import PathStyle

_DEFAULT_COMMUNITY_URL = "https://reddit.com/r/{community}"


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"Expected mapping for '{field_name}'")
    return cast(Mapping[str, Any], value)


def _str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Expected integer for '{field_name}'")
    return value


def _float(value: Any, field_name: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise ValueError(f"Expected float for '{field_name}'")


def _path_from_cfg(value: Any, field_name: str, root_dir: Path) -> Path:
    raw = _str(value, field_name)
    p = Path(raw)
    return p if p.is_absolute() else root_dir / p


def _optional_section(raw: Mapping[str, Any], key: str) -> Mapping[str, Any] | None:
    value = raw.get(key)
    if value is None:
        return None
    return _mapping(value, key)


@dataclass(frozen=True, slots=True)
class ProjectConfig:
    title: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ProjectConfig:
        return cls(title=_str(raw.get("title"), "project.title"))


@dataclass(frozen=True, slots=True)
class PathsConfig:
    dataset: Path
    logs_dir: Path
    geometry_cache: Path | None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> PathsConfig:
        cache_raw = raw.get("geometry_cache")
        return cls(
            dataset=_path_from_cfg(raw.get("dataset"), "paths.dataset", root_dir),
            logs_dir=_path_from_cfg(raw.get("logs_dir"), "paths.logs_dir", root_dir),
            geometry_cache=(
                None
                if cache_raw is None
                else _path_from_cfg(cache_raw, "paths.geometry_cache", root_dir)
            ),
        )


@dataclass(frozen=True, slots=True)
class GeometryConfig:
    url: str
    layer: str | None
    request_timeout_s: int
    user_agent: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> GeometryConfig:
        layer_raw = raw.get("layer")
        timeout = _int(raw.get("request_timeout_s", 30), "geometry.request_timeout_s")
        if timeout <= 0:
            raise ValueError("geometry.request_timeout_s must be > 0")
        return cls(
            url=_str(raw.get("url"), "geometry.url"),
            layer=None if layer_raw is None else _str(layer_raw, "geometry.layer"),
            request_timeout_s=timeout,
            user_agent=_str(raw.get("user_agent", "community-map"), "geometry.user_agent"),
        )


@dataclass(frozen=True, slots=True)
class BasemapConfig:
    provider: str | None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> BasemapConfig:
        provider = _str(raw.get("provider"), "basemap.provider")
        if provider.casefold() == "none":
            return cls(provider=None)
        return cls(provider=provider)

    @classmethod
    def default(cls) -> BasemapConfig:
        return cls(provider="CartoDB.DarkMatter")


@dataclass(frozen=True, slots=True)
class ViewportConfig:
    center_lon: float
    center_lat: float
    default_zoom: int
    min_zoom: int
    max_zoom: int
    width_px: int
    height_px: int
    dpi: int

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ViewportConfig:
        cfg = cls(
            center_lon=_float(raw.get("center_lon"), "viewport.center_lon"),
            center_lat=_float(raw.get("center_lat"), "viewport.center_lat"),
            default_zoom=_int(raw.get("default_zoom"), "viewport.default_zoom"),
            min_zoom=_int(raw.get("min_zoom"), "viewport.min_zoom"),
            max_zoom=_int(raw.get("max_zoom"), "viewport.max_zoom"),
            width_px=_int(raw.get("width_px", 1400), "viewport.width_px"),
            height_px=_int(raw.get("height_px", 900), "viewport.height_px"),
            dpi=_int(raw.get("dpi", 100), "viewport.dpi"),
        )
        cfg.check()
        return cfg

    def check(self) -> None:
        if self.min_zoom < 0 or self.min_zoom > self.max_zoom:
            raise ValueError("viewport.min_zoom must be >= 0 and <= viewport.max_zoom")
        if not self.min_zoom <= self.default_zoom <= self.max_zoom:
            raise ValueError("viewport.default_zoom must lie within [min_zoom, max_zoom]")
        if self.width_px <= 0 or self.height_px <= 0 or self.dpi <= 0:
            raise ValueError("viewport.width_px, height_px and dpi must be > 0")

    @classmethod
    def default(cls) -> ViewportConfig:
        return cls(
            center_lon=10.0,
            center_lat=20.0,
            default_zoom=3,
            min_zoom=2,
            max_zoom=19,
            width_px=1400,
            height_px=900,
            dpi=100,
        )


def _label_bands(value: Any, field_name: str) -> tuple[tuple[int, int], ...]:
    if not isinstance(value, list):
        raise ValueError(f"Expected list for '{field_name}'")
    bands: list[tuple[int, int]] = []
    for idx, item in enumerate(value):
        if not isinstance(item, list) or len(item) != 2:
            raise ValueError(f"Invalid {field_name}[{idx}]; expected [min_zoom, min_members]")
        zoom = _int(item[0], f"{field_name}[{idx}][0]")
        members = _int(item[1], f"{field_name}[{idx}][1]")
        if members < 0:
            raise ValueError(f"{field_name}[{idx}][1] must be >= 0")
        bands.append((zoom, members))
    bands.sort(key=lambda band: band[0], reverse=True)
    for (high_zoom, high_members), (low_zoom, low_members) in zip(bands, bands[1:]):
        if high_zoom == low_zoom:
            raise ValueError(f"Duplicate zoom {high_zoom} in '{field_name}'")
        if high_members > low_members:
            raise ValueError(
                f"'{field_name}' must not require more members at zoom {high_zoom} than at zoom {low_zoom}"
            )
    return tuple(bands)


@dataclass(frozen=True, slots=True)
class LodConfig:
    """Zoom thresholds for marker visibility and permanent labels.

    Label bands are ``(min_zoom, min_members)`` sorted by descending zoom.
    Below the lowest band no permanent label is shown.
    """

    city_min_zoom: int
    place_min_zoom: int
    city_label_bands: tuple[tuple[int, int], ...]
    place_label_bands: tuple[tuple[int, int], ...]

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> LodConfig:
        city_min_zoom = _int(raw.get("city_min_zoom"), "lod.city_min_zoom")
        place_min_zoom = _int(raw.get("place_min_zoom"), "lod.place_min_zoom")
        if place_min_zoom < city_min_zoom:
            raise ValueError("lod.place_min_zoom cannot be lower than lod.city_min_zoom")
        return cls(
            city_min_zoom=city_min_zoom,
            place_min_zoom=place_min_zoom,
            city_label_bands=_label_bands(raw.get("city_label_bands"), "lod.city_label_bands"),
            place_label_bands=_label_bands(raw.get("place_label_bands"), "lod.place_label_bands"),
        )

    @classmethod
    def default(cls) -> LodConfig:
        return cls(
            city_min_zoom=4,
            place_min_zoom=10,
            city_label_bands=((10, 0), (8, 30_000), (6, 100_000)),
            place_label_bands=((14, 0), (12, 3_000)),
        )


@dataclass(frozen=True, slots=True)
class CountryStyleConfig:
    fill_color: str
    stroke_color: str
    stroke_opacity: float
    default: PathStyle
    hover: PathStyle
    highlight: PathStyle

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> CountryStyleConfig:
        stroke_opacity = _float(raw.get("stroke_opacity", 0.3), "style.country.stroke_opacity")
        if not 0.0 <= stroke_opacity <= 1.0:
            raise ValueError("style.country.stroke_opacity must be between 0 and 1")
        return cls(
            fill_color=_str(raw.get("fill_color"), "style.country.fill_color"),
            stroke_color=_str(raw.get("stroke_color"), "style.country.stroke_color"),
            stroke_opacity=stroke_opacity,
            default=PathStyle.from_mapping(
                _mapping(raw.get("default"), "style.country.default"), "style.country.default"
            ),
            hover=PathStyle.from_mapping(
                _mapping(raw.get("hover"), "style.country.hover"), "style.country.hover"
            ),
            highlight=PathStyle.from_mapping(
                _mapping(raw.get("highlight"), "style.country.highlight"), "style.country.highlight"
            ),
        )

    @classmethod
    def default_style(cls) -> CountryStyleConfig:
        return cls(
            fill_color="#FF4500",
            stroke_color="#FF4500",
            stroke_opacity=0.3,
            default=PathStyle(fill_opacity=0.08, weight=1.0),
            hover=PathStyle(fill_opacity=0.3, weight=1.5),
            highlight=PathStyle(fill_opacity=0.2, weight=2.0),
        )


@dataclass(frozen=True, slots=True)
class MarkerStyleConfig:
    """Marker colours and the ``max(min_radius, (log10(m) - offset) * scale)`` radius."""

    fill_color: str
    stroke_color: str
    active_fill_color: str
    active_stroke_color: str
    fill_opacity: float
    min_radius: float
    log_offset: float
    log_scale: float
    active_radius_bonus: float
    hover_radius_bonus: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], field_name: str) -> MarkerStyleConfig:
        fill_opacity = _float(raw.get("fill_opacity"), f"{field_name}.fill_opacity")
        if not 0.0 <= fill_opacity <= 1.0:
            raise ValueError(f"{field_name}.fill_opacity must be between 0 and 1")
        min_radius = _float(raw.get("min_radius"), f"{field_name}.min_radius")
        if min_radius <= 0:
            raise ValueError(f"{field_name}.min_radius must be > 0")
        return cls(
            fill_color=_str(raw.get("fill_color"), f"{field_name}.fill_color"),
            stroke_color=_str(raw.get("stroke_color"), f"{field_name}.stroke_color"),
            active_fill_color=_str(raw.get("active_fill_color"), f"{field_name}.active_fill_color"),
            active_stroke_color=_str(
                raw.get("active_stroke_color"), f"{field_name}.active_stroke_color"
            ),
            fill_opacity=fill_opacity,
            min_radius=min_radius,
            log_offset=_float(raw.get("log_offset", 0.0), f"{field_name}.log_offset"),
            log_scale=_float(raw.get("log_scale"), f"{field_name}.log_scale"),
            active_radius_bonus=_float(
                raw.get("active_radius_bonus", 3.0), f"{field_name}.active_radius_bonus"
            ),
            hover_radius_bonus=_float(
                raw.get("hover_radius_bonus", 4.0), f"{field_name}.hover_radius_bonus"
            ),
        )

    @classmethod
    def default_city(cls) -> MarkerStyleConfig:
        return cls(
            fill_color="#FF6B35",
            stroke_color="#FF8C00",
            active_fill_color="#FFD700",
            active_stroke_color="#FFFFFF",
            fill_opacity=0.85,
            min_radius=4.0,
            log_offset=0.0,
            log_scale=2.0,
            active_radius_bonus=3.0,
            hover_radius_bonus=4.0,
        )

    @classmethod
    def default_place(cls) -> MarkerStyleConfig:
        return cls(
            fill_color="#C084FC",
            stroke_color="#A855F7",
            active_fill_color="#E9D5FF",
            active_stroke_color="#FFFFFF",
            fill_opacity=0.8,
            min_radius=10.0,
            log_offset=2.0,
            log_scale=4.0,
            active_radius_bonus=3.0,
            hover_radius_bonus=4.0,
        )


@dataclass(frozen=True, slots=True)
class StyleConfig:
    country: CountryStyleConfig
    city: MarkerStyleConfig
    place: MarkerStyleConfig
    community_prefix: str
    community_url_template: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> StyleConfig:
        prefix = raw.get("community_prefix", "r/")
        if not isinstance(prefix, str):
            raise ValueError("Expected string for 'style.community_prefix'")
        url_template = _str(
            raw.get("community_url_template", _DEFAULT_COMMUNITY_URL),
            "style.community_url_template",
        )
        if "{community}" not in url_template:
            raise ValueError("style.community_url_template must contain '{community}'")
        return cls(
            country=CountryStyleConfig.from_mapping(_mapping(raw.get("country"), "style.country")),
            city=MarkerStyleConfig.from_mapping(_mapping(raw.get("city"), "style.city"), "style.city"),
            place=MarkerStyleConfig.from_mapping(
                _mapping(raw.get("place"), "style.place"), "style.place"
            ),
            community_prefix=prefix,
            community_url_template=url_template,
        )

    @classmethod
    def default(cls) -> StyleConfig:
        return cls(
            country=CountryStyleConfig.default_style(),
            city=MarkerStyleConfig.default_city(),
            place=MarkerStyleConfig.default_place(),
            community_prefix="r/",
            community_url_template=_DEFAULT_COMMUNITY_URL,
        )

    def community_label(self, community: str) -> str:
        return f"{self.community_prefix}{community}"

    def community_url(self, community: str) -> str:
        return self.community_url_template.replace("{community}", community)


@dataclass(frozen=True, slots=True)
class AppConfig:
    source_path: Path
    project: ProjectConfig
    paths: PathsConfig
    geometry: GeometryConfig
    basemap: BasemapConfig
    viewport: ViewportConfig
    lod: LodConfig
    style: StyleConfig

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], source_path: Path) -> AppConfig:
        root_dir = source_path.parent.resolve()
        basemap_raw = _optional_section(raw, "basemap")
        lod_raw = _optional_section(raw, "lod")
        style_raw = _optional_section(raw, "style")
        return cls(
            source_path=source_path.resolve(),
            project=ProjectConfig.from_mapping(_mapping(raw.get("project"), "project")),
            paths=PathsConfig.from_mapping(_mapping(raw.get("paths"), "paths"), root_dir),
            geometry=GeometryConfig.from_mapping(_mapping(raw.get("geometry"), "geometry")),
            basemap=(
                BasemapConfig.default() if basemap_raw is None else BasemapConfig.from_mapping(basemap_raw)
            ),
            viewport=ViewportConfig.from_mapping(_mapping(raw.get("viewport"), "viewport")),
            lod=LodConfig.default() if lod_raw is None else LodConfig.from_mapping(lod_raw),
            style=StyleConfig.default() if style_raw is None else StyleConfig.from_mapping(style_raw),
        )


def load_config(path: str | Path) -> AppConfig:
    """Load and validate the YAML config file into typed settings."""
    cfg_path = Path(path).resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if not isinstance(raw, Mapping):
        raise ValueError("Top-level config must be a YAML mapping")
    return AppConfig.from_mapping(cast(Mapping[str, Any], raw), cfg_path)
