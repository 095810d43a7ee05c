"""Hierarchical selection state machine.

Pointer, keyboard and panel handlers do not mutate selection themselves; they
build one of the command objects below and hand it to
:meth:`SelectionStateMachine.dispatch`, which is the only place that changes
the selection and orders country unhighlight before highlight.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from .dataset import CommunityDataset
from .models import City, Country, Place, Selection, SelectionError
from .styles import StyleSynchronizer

_LOGGER = logging.getLogger("communitymap.selection")


@dataclass(frozen=True, slots=True)
class SelectCountry:
    country_id: str


@dataclass(frozen=True, slots=True)
class SelectCity:
    country: Country
    city: City


@dataclass(frozen=True, slots=True)
class SelectPlace:
    country: Country
    city: City
    place: Place


@dataclass(frozen=True, slots=True)
class Back:
    pass


@dataclass(frozen=True, slots=True)
class Close:
    pass


Command = Union[SelectCountry, SelectCity, SelectPlace, Back, Close]


class SelectionStateMachine:
    """None -> Country -> City -> Place, with back and close."""

    def __init__(self, dataset: CommunityDataset, styles: StyleSynchronizer) -> None:
        self.dataset = dataset
        self.styles = styles
        self._selection = Selection.none()

    @property
    def selection(self) -> Selection:
        return self._selection

    @property
    def state(self) -> str:
        return self._selection.kind

    def dispatch(self, command: Command) -> bool:
        """Apply ``command``; return True when the selection value changed."""
        previous = self._selection
        if isinstance(command, SelectCountry):
            self._select_country(command.country_id)
        elif isinstance(command, SelectCity):
            self._commit(lambda: Selection.of_city(command.country, command.city))
        elif isinstance(command, SelectPlace):
            self._commit(lambda: Selection.of_place(command.country, command.city, command.place))
        elif isinstance(command, Back):
            self._back()
        elif isinstance(command, Close):
            self.styles.clear()
            self._selection = Selection.none()
        else:
            raise TypeError(f"Unsupported selection command: {command!r}")
        changed = self._selection != previous
        if changed:
            _LOGGER.debug("Selection %s -> %s", previous.kind, self._selection.kind)
        return changed

    def select_country(self, country_id: str) -> bool:
        return self.dispatch(SelectCountry(country_id))

    def select_city(self, country: Country, city: City) -> bool:
        return self.dispatch(SelectCity(country, city))

    def select_place(self, country: Country, city: City, place: Place) -> bool:
        return self.dispatch(SelectPlace(country, city, place))

    def back(self) -> bool:
        return self.dispatch(Back())

    def close(self) -> bool:
        return self.dispatch(Close())

    def _select_country(self, country_id: str) -> None:
        country = self.dataset.get(country_id)
        if country is None:
            _LOGGER.debug("Ignoring selection of unknown country '%s'", country_id)
            return
        self.styles.highlight(country.id)
        self._selection = Selection.of_country(country)

    def _commit(self, build) -> None:
        # City and place selection leave the country highlight untouched.
        try:
            self._selection = build()
        except SelectionError as exc:
            _LOGGER.warning("Ignoring selection: %s", exc)

    def _back(self) -> None:
        if self._selection.kind in ("country", "none"):
            self.styles.clear()
        self._selection = self._selection.parent()
