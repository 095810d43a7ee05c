"""Country boundary geometry retrieval and dataset matching."""

from __future__ import annotations

import io
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import requests

from .antimeridian import fix_feature_collection
from .config import GeometryConfig
from .dataset import CommunityDataset, normalize_country_id
from .models import Country
from .util import write_json

_LOGGER = logging.getLogger("communitymap.geometry")


def feature_id(feature: Mapping[str, Any]) -> str | None:
    """Country id of a feature: top-level ``id`` first, then ``properties.id``."""
    raw = feature.get("id")
    if raw is None:
        properties = feature.get("properties") or {}
        raw = properties.get("id")
    return normalize_country_id(raw)


@dataclass(slots=True)
class FeatureMatch:
    matched: list[tuple[Country, Mapping[str, Any]]] = field(default_factory=list)
    unmatched: list[Mapping[str, Any]] = field(default_factory=list)


def match_features(collection: Mapping[str, Any], dataset: CommunityDataset) -> FeatureMatch:
    """Pair features with dataset countries; the rest are background only."""
    result = FeatureMatch()
    for feature in collection.get("features") or []:
        country = dataset.get(feature_id(feature))
        if country is None:
            result.unmatched.append(feature)
            continue
        result.matched.append((country, feature))
    return result


class GeometryProvider:
    """Fetch country boundaries once and return a corrected feature collection.

    A failed fetch is not retried: :meth:`fetch` logs and returns ``None`` and
    the map runs with background tiles only.
    """

    def __init__(self, cfg: GeometryConfig, *, cache_path: Path | None = None) -> None:
        self.cfg = cfg
        self.cache_path = cache_path
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": cfg.user_agent})

    def fetch(self) -> dict[str, Any] | None:
        cached = self._read_cache()
        if cached is not None:
            return cached
        try:
            payload = self._download()
            collection = fix_feature_collection(self._to_feature_collection(payload))
        except (requests.RequestException, ValueError, RuntimeError) as exc:
            _LOGGER.warning("Boundary geometry unavailable (%s); continuing without countries.", exc)
            return None
        _LOGGER.info(
            "Loaded %d boundary features from %s", len(collection["features"]), self.cfg.url
        )
        self._write_cache(collection)
        return collection

    def close(self) -> None:
        self._session.close()

    def _download(self) -> bytes:
        response = self._session.get(self.cfg.url, timeout=self.cfg.request_timeout_s)
        response.raise_for_status()
        return response.content

    def _to_feature_collection(self, payload: bytes) -> dict[str, Any]:
        gpd = _require_geopandas()
        kwargs: dict[str, Any] = {}
        if self.cfg.layer is not None:
            kwargs["layer"] = self.cfg.layer
        try:
            frame = gpd.read_file(io.BytesIO(payload), **kwargs)
        except Exception as exc:
            raise ValueError(f"Unreadable boundary document: {exc}") from exc
        # Round-trip through JSON to get plain lists instead of numpy/shapely types.
        collection = json.loads(frame.to_json(drop_id=True))
        for feature in collection.get("features", []):
            properties = feature.get("properties") or {}
            if "id" not in feature and properties.get("id") is not None:
                feature["id"] = properties["id"]
        return collection

    def _read_cache(self) -> dict[str, Any] | None:
        if self.cache_path is None or not self.cache_path.exists():
            return None
        try:
            raw = json.loads(self.cache_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            _LOGGER.warning("Ignoring unreadable geometry cache %s: %s", self.cache_path, exc)
            return None
        if not isinstance(raw, dict) or raw.get("type") != "FeatureCollection":
            _LOGGER.warning("Ignoring geometry cache %s: not a FeatureCollection", self.cache_path)
            return None
        _LOGGER.debug("Using cached boundary geometry from %s", self.cache_path)
        return raw

    def _write_cache(self, collection: Mapping[str, Any]) -> None:
        if self.cache_path is None:
            return
        try:
            write_json(self.cache_path, collection)
        except OSError as exc:
            _LOGGER.warning("Failed writing geometry cache %s: %s", self.cache_path, exc)


def _require_geopandas() -> Any:
    try:
        import geopandas as gpd
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("geopandas is required for boundary geometry loading") from exc
    return gpd
