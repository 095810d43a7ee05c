"""Integer zoom viewport and spherical Web Mercator helpers."""

from __future__ import annotations

import math

from .config import ViewportConfig

EARTH_RADIUS_M = 6378137.0
WORLD_WIDTH_M = 2.0 * math.pi * EARTH_RADIUS_M
TILE_SIZE_PX = 256
MAX_MERCATOR_LAT = 85.05112878


def lonlat_to_mercator(lon: float, lat: float) -> tuple[float, float]:
    """Project lon/lat to EPSG:3857 metres.

    Longitudes outside [-180, 180] are projected linearly rather than wrapped,
    so rings made continuous across the antimeridian stay continuous.
    """
    clamped = max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, float(lat)))
    x = EARTH_RADIUS_M * math.radians(float(lon))
    y = EARTH_RADIUS_M * math.log(math.tan(math.pi / 4.0 + math.radians(clamped) / 2.0))
    return (x, y)


def mercator_to_lonlat(x: float, y: float) -> tuple[float, float]:
    lon = math.degrees(float(x) / EARTH_RADIUS_M)
    lat = math.degrees(2.0 * math.atan(math.exp(float(y) / EARTH_RADIUS_M)) - math.pi / 2.0)
    return (lon, lat)


def span_for_zoom(zoom: float, width_px: int) -> float:
    """Horizontal extent in metres shown by ``width_px`` pixels at ``zoom``."""
    return WORLD_WIDTH_M * width_px / (TILE_SIZE_PX * 2.0**zoom)


def zoom_for_span(span_m: float, width_px: int) -> float:
    if span_m <= 0:
        raise ValueError("span_m must be > 0")
    return math.log2(WORLD_WIDTH_M * width_px / (TILE_SIZE_PX * span_m))


class Viewport:
    """Current centre and integer zoom, clamped to the configured range."""

    def __init__(self, cfg: ViewportConfig | None = None) -> None:
        self.cfg = cfg or ViewportConfig.default()
        self.center_lon = self.cfg.center_lon
        self.center_lat = self.cfg.center_lat
        self._zoom = self.clamp(self.cfg.default_zoom)

    @property
    def zoom(self) -> int:
        return self._zoom

    def clamp(self, zoom: float) -> int:
        return max(self.cfg.min_zoom, min(self.cfg.max_zoom, int(round(zoom))))

    def set_zoom(self, zoom: float) -> bool:
        """Set the zoom; returns True when the integer zoom changed."""
        clamped = self.clamp(zoom)
        if clamped == self._zoom:
            return False
        self._zoom = clamped
        return True

    def zoom_in(self) -> bool:
        return self.set_zoom(self._zoom + 1)

    def zoom_out(self) -> bool:
        return self.set_zoom(self._zoom - 1)

    def pan_to(self, lon: float, lat: float) -> None:
        self.center_lon = float(lon)
        self.center_lat = max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, float(lat)))

    def extent(self) -> tuple[float, float, float, float]:
        """``(xmin, xmax, ymin, ymax)`` in Web Mercator metres."""
        cx, cy = lonlat_to_mercator(self.center_lon, self.center_lat)
        half_w = span_for_zoom(self._zoom, self.cfg.width_px) / 2.0
        half_h = half_w * self.cfg.height_px / self.cfg.width_px
        return (cx - half_w, cx + half_w, cy - half_h, cy + half_h)
