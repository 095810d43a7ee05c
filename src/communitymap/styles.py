"""Country drawable registry and highlight bookkeeping."""

from __future__ import annotations

import logging
from typing import Iterable, Protocol

from .config import CountryStyleConfig
from .dataset import normalize_country_id, strip_leading_zeros
from .models import PathStyle

_LOGGER = logging.getLogger("communitymap.styles")


class LayerRegistryError(RuntimeError):
    """Raised when drawables are registered twice for one geometry load."""


class Drawable(Protocol):
    """Rendered country boundary whose style can be changed in place."""

    def set_style(self, style: PathStyle) -> None: ...

    def bring_to_front(self) -> None: ...


class LayerRegistry:
    """Country id -> drawable, filled in one bulk pass after geometry loads."""

    def __init__(self) -> None:
        self._layers: dict[str, Drawable] = {}
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    def register_all(self, pairs: Iterable[tuple[str, Drawable]]) -> int:
        """Register every ``(country_id, drawable)`` pair or none of them.

        Both the id and its leading-zero-stripped variant resolve to the same
        drawable. Returns the number of distinct drawables registered.
        """
        if self._loaded:
            raise LayerRegistryError("Country layers are already registered")
        staged: dict[str, Drawable] = {}
        count = 0
        for country_id, drawable in pairs:
            key = normalize_country_id(country_id)
            if key is None:
                raise LayerRegistryError(f"Invalid country id {country_id!r}")
            if key in staged:
                raise LayerRegistryError(f"Duplicate drawable for country '{key}'")
            staged[key] = drawable
            staged.setdefault(strip_leading_zeros(key), drawable)
            count += 1
        self._layers = staged
        self._loaded = True
        _LOGGER.debug("Registered %d country drawables", count)
        return count

    def get(self, country_id: str) -> Drawable | None:
        key = normalize_country_id(country_id)
        if key is None:
            return None
        drawable = self._layers.get(key)
        if drawable is None and key.isdigit():
            drawable = self._layers.get(strip_leading_zeros(key))
        return drawable

    def __contains__(self, country_id: object) -> bool:
        return isinstance(country_id, str) and self.get(country_id) is not None

    def drawables(self) -> list[Drawable]:
        unique: list[Drawable] = []
        for drawable in self._layers.values():
            if not any(drawable is seen for seen in unique):
                unique.append(drawable)
        return unique

    def clear(self) -> None:
        self._layers = {}
        self._loaded = False


class StyleSynchronizer:
    """Keep exactly one country drawable highlighted.

    The previous drawable is always restored before the next one is
    highlighted, so no observer ever sees two highlighted countries. Hover
    changes skip the highlighted drawable.
    """

    def __init__(self, registry: LayerRegistry, style: CountryStyleConfig | None = None) -> None:
        self.registry = registry
        self.style = style or CountryStyleConfig.default_style()
        self._highlighted: Drawable | None = None

    @property
    def highlighted(self) -> Drawable | None:
        return self._highlighted

    def is_highlighted(self, drawable: Drawable) -> bool:
        return self._highlighted is not None and drawable is self._highlighted

    def highlight(self, country_id: str) -> Drawable | None:
        drawable = self.registry.get(country_id)
        previous = self._highlighted
        if previous is not None and previous is not drawable:
            previous.set_style(self.style.default)
        self._highlighted = drawable
        if drawable is not None:
            drawable.set_style(self.style.highlight)
        else:
            _LOGGER.debug("No drawable registered for country '%s'", country_id)
        return drawable

    def clear(self) -> None:
        if self._highlighted is not None:
            self._highlighted.set_style(self.style.default)
            self._highlighted = None

    def hover_enter(self, drawable: Drawable) -> None:
        if not self.is_highlighted(drawable):
            drawable.set_style(self.style.hover)
        drawable.bring_to_front()

    def hover_exit(self, drawable: Drawable) -> None:
        if not self.is_highlighted(drawable):
            drawable.set_style(self.style.default)

    def default_style_for(self, drawable: Drawable) -> PathStyle:
        return self.style.highlight if self.is_highlighted(drawable) else self.style.default
