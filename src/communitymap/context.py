"""Map context: owns interaction state and runs the event dispatcher."""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from .config import AppConfig, LodConfig, StyleConfig, ViewportConfig
from .dataset import CommunityDataset
from .lod import MarkerPlanner
from .models import City, MarkerPlan, Place, Selection
from .selection import Back, Close, Command, SelectCity, SelectionStateMachine, SelectPlace
from .styles import Drawable, LayerRegistry, StyleSynchronizer
from .viewport import Viewport

_LOGGER = logging.getLogger("communitymap.context")

CANCEL_KEYS = frozenset({"escape", "esc"})

Listener = Callable[[Selection, MarkerPlan], None]


class MapContext:
    """Single owner of the layer registry, highlight, zoom and marker plan.

    Every committed selection transition or zoom change rebuilds the marker
    plan from scratch and then notifies listeners, in that order.
    """

    def __init__(
        self,
        dataset: CommunityDataset,
        *,
        lod: LodConfig | None = None,
        style: StyleConfig | None = None,
        viewport: ViewportConfig | None = None,
    ) -> None:
        self.dataset = dataset
        self.style = style or StyleConfig.default()
        self.registry = LayerRegistry()
        self.styles = StyleSynchronizer(self.registry, self.style.country)
        self.machine = SelectionStateMachine(dataset, self.styles)
        self.viewport = Viewport(viewport)
        self.planner = MarkerPlanner(lod, self.style)
        self._listeners: list[Listener] = []
        self._plan = self.planner.plan(self.viewport.zoom, self.machine.selection, dataset)

    @classmethod
    def from_config(cls, cfg: AppConfig, dataset: CommunityDataset) -> MapContext:
        return cls(dataset, lod=cfg.lod, style=cfg.style, viewport=cfg.viewport)

    @property
    def selection(self) -> Selection:
        return self.machine.selection

    @property
    def zoom(self) -> int:
        return self.viewport.zoom

    @property
    def marker_plan(self) -> MarkerPlan:
        return self._plan

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, command: Command) -> bool:
        changed = self.machine.dispatch(command)
        if changed:
            self._replan()
        return changed

    def register_layers(self, pairs: Iterable[tuple[str, Drawable]]) -> int:
        return self.registry.register_all(pairs)

    # viewport

    def set_zoom(self, zoom: float) -> bool:
        changed = self.viewport.set_zoom(zoom)
        if changed:
            self._replan()
        return changed

    def zoom_in(self) -> bool:
        return self.set_zoom(self.viewport.zoom + 1)

    def zoom_out(self) -> bool:
        return self.set_zoom(self.viewport.zoom - 1)

    # keyboard

    def handle_key(self, key: str | None) -> bool:
        if key is None or key.casefold() not in CANCEL_KEYS:
            return False
        return self.dispatch(Back())

    # panel callbacks

    def on_city_click(self, city: City) -> bool:
        country = self.selection.country
        if country is None:
            return False
        return self.dispatch(SelectCity(country, city))

    def on_place_click(self, place: Place) -> bool:
        selection = self.selection
        if selection.country is None or selection.city is None:
            return False
        return self.dispatch(SelectPlace(selection.country, selection.city, place))

    def on_back(self) -> bool:
        return self.dispatch(Back())

    def on_close(self) -> bool:
        return self.dispatch(Close())

    def teardown(self) -> None:
        self._listeners.clear()
        self.styles.clear()
        self.registry.clear()

    def _replan(self) -> None:
        self._plan = self.planner.plan(self.viewport.zoom, self.machine.selection, self.dataset)
        _LOGGER.debug(
            "Planned %d city and %d place markers at zoom %d",
            len(self._plan.cities),
            len(self._plan.places),
            self.viewport.zoom,
        )
        for listener in list(self._listeners):
            listener(self.machine.selection, self._plan)
