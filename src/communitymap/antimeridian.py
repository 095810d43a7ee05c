"""Longitude continuity correction for boundaries crossing the antimeridian.

A ring that steps from 179.9 to -179.9 is drawn by a planar renderer as an
edge spanning the whole map. Shifting every point after such a step by ±360
keeps the ring continuous (longitudes may leave [-180, 180]) so the short
edge is drawn instead.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

Position = Sequence[float]

_JUMP_DEG = 180.0
_TURN_DEG = 360.0


def make_continuous(ring: Sequence[Position]) -> list[list[float]]:
    """Return ``ring`` with consecutive longitude steps of at most 180 degrees.

    The first point is never shifted; latitudes and any extra ordinates are
    kept as they are.
    """
    if len(ring) < 2:
        return [list(point) for point in ring]
    out: list[list[float]] = [list(ring[0])]
    offset = 0.0
    for prev, point in zip(ring, ring[1:]):
        diff = float(point[0]) - float(prev[0])
        if diff > _JUMP_DEG:
            offset -= _TURN_DEG
        elif diff < -_JUMP_DEG:
            offset += _TURN_DEG
        out.append([float(point[0]) + offset, *point[1:]])
    return out


def fix_geometry(geometry: Mapping[str, Any] | None) -> Mapping[str, Any] | None:
    """Correct Polygon and MultiPolygon rings; other geometries pass through."""
    if geometry is None:
        return None
    geom_type = geometry.get("type")
    coordinates = geometry.get("coordinates")
    if coordinates is None:
        return geometry

    if geom_type == "Polygon":
        return {**geometry, "coordinates": [make_continuous(ring) for ring in coordinates]}

    if geom_type == "MultiPolygon":
        return {
            **geometry,
            "coordinates": [[make_continuous(ring) for ring in polygon] for polygon in coordinates],
        }

    return geometry


def fix_feature_collection(collection: Mapping[str, Any]) -> dict[str, Any]:
    """Apply :func:`fix_geometry` to every feature of a GeoJSON collection."""
    features = collection.get("features") or []
    return {
        **collection,
        "type": "FeatureCollection",
        "features": [
            {**feature, "geometry": fix_geometry(feature.get("geometry"))} for feature in features
        ],
    }
