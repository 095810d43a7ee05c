"""Interactive matplotlib map surface driven by a :class:`MapContext`."""

from __future__ import annotations

import itertools
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Iterator, Mapping, Sequence

from .config import AppConfig, CountryStyleConfig
from .context import MapContext
from .geometry import GeometryProvider, match_features
from .lod import MarkerStyle, baseline_style
from .models import (
    LABEL_PERMANENT,
    MARKER_PLACE,
    Country,
    MarkerPlan,
    MarkerPlanEntry,
    PathStyle,
    Selection,
)
from .panel import build_panel, format_panel_lines
from .selection import SelectCity, SelectCountry, SelectPlace
from .styles import LayerRegistryError
from .viewport import lonlat_to_mercator, mercator_to_lonlat

_LOGGER = logging.getLogger("communitymap.surface")

_Z_BASEMAP = 0
_Z_COUNTRY = 2.0
_Z_CITY = 5
_Z_PLACE = 6
_Z_PANEL = 10
_GEOMETRY_POLL_MS = 100
_PAN_BUTTON = 3


class PatchDrawable:
    """Country boundary drawn as a matplotlib ``PathPatch``."""

    def __init__(self, patch: Any, colors: CountryStyleConfig, front_order: Iterator[int]) -> None:
        self.patch = patch
        self.colors = colors
        self.front_order = front_order
        self.style: PathStyle | None = None

    def set_style(self, style: PathStyle) -> None:
        to_rgba = _require_to_rgba()
        self.patch.set_facecolor(to_rgba(self.colors.fill_color, style.fill_opacity))
        self.patch.set_edgecolor(to_rgba(self.colors.stroke_color, self.colors.stroke_opacity))
        self.patch.set_linewidth(style.weight)
        self.style = style

    def bring_to_front(self) -> None:
        # Stay below the marker layers however often countries are hovered.
        step = next(self.front_order)
        self.patch.set_zorder(_Z_COUNTRY + min(step * 1e-4, 2.5))

    def contains(self, event: Any) -> bool:
        hit, _ = self.patch.contains(event)
        return bool(hit)


@dataclass(slots=True)
class _MarkerArtist:
    entry: MarkerPlanEntry
    point: Any
    label: Any
    hovered: bool = False


def iter_linear_rings(geometry: Any) -> list[list[tuple[float, float]]]:
    """Exterior and interior rings of a shapely Polygon/MultiPolygon."""
    geom_type = getattr(geometry, "geom_type", "")
    if geom_type == "Polygon":
        rings = [[(float(x), float(y)) for x, y, *_ in geometry.exterior.coords]]
        for interior in geometry.interiors:
            rings.append([(float(x), float(y)) for x, y, *_ in interior.coords])
        return rings
    if geom_type in ("MultiPolygon", "GeometryCollection"):
        rings = []
        for part in geometry.geoms:
            rings.extend(iter_linear_rings(part))
        return rings
    return []


def geometry_to_path(geometry: Mapping[str, Any]) -> Any | None:
    """Build a projected matplotlib ``Path`` (holes included) from GeoJSON."""
    shape = _require_shapely_shape()
    mpath = _require_matplotlib_path()
    try:
        geom = shape(geometry)
    except (ValueError, TypeError, AttributeError) as exc:
        _LOGGER.debug("Skipping unreadable geometry: %s", exc)
        return None
    vertices: list[tuple[float, float]] = []
    codes: list[int] = []
    for ring in iter_linear_rings(geom):
        if len(ring) < 3:
            continue
        vertices.extend(lonlat_to_mercator(lon, lat) for lon, lat in ring)
        codes.append(mpath.Path.MOVETO)
        codes.extend([mpath.Path.LINETO] * (len(ring) - 2))
        codes.append(mpath.Path.CLOSEPOLY)
    if not vertices:
        return None
    return mpath.Path(vertices, codes)


def _group_paths_by_country(
    matched: Sequence[tuple[Country, Mapping[str, Any]]],
) -> list[tuple[Country, list[Any]]]:
    """Projected paths per country, in first-seen order; split boundaries merge."""
    grouped: dict[str, tuple[Country, list[Any]]] = {}
    for country, feature in matched:
        path = geometry_to_path(feature.get("geometry") or {})
        if path is None:
            continue
        if country.id in grouped:
            _LOGGER.debug("Merging extra boundary feature into country %s", country.id)
            grouped[country.id][1].append(path)
        else:
            grouped[country.id] = (country, [path])
    return list(grouped.values())


def points_to_size(radius_px: float, dpi: float) -> float:
    """Marker diameter in points for a radius given in screen pixels."""
    return 2.0 * radius_px * 72.0 / dpi


class MapSurface:
    """Figure, basemap, country patches, markers and the info panel.

    All state changes go through ``ctx``; the surface only translates
    matplotlib events into commands and redraws when the context notifies.
    """

    def __init__(
        self,
        ctx: MapContext,
        cfg: AppConfig,
        *,
        provider: GeometryProvider | None = None,
        interactive: bool = True,
    ) -> None:
        self.ctx = ctx
        self.cfg = cfg
        self.provider = provider or GeometryProvider(cfg.geometry, cache_path=cfg.paths.geometry_cache)
        self.interactive = interactive
        self.fig: Any | None = None
        self.ax: Any | None = None
        self._countries: list[tuple[str, PatchDrawable]] = []
        self._markers: list[_MarkerArtist] = []
        self._basemap_images: list[Any] = []
        self._panel_text: Any | None = None
        self._buttons: list[Any] = []
        self._cids: list[int] = []
        self._hovered_country: PatchDrawable | None = None
        self._front_order: Iterator[int] = itertools.count(1)
        self._tooltip: Any | None = None
        self._pan_anchor: tuple[float, float] | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._future: Future | None = None
        self._timer: Any | None = None
        self._unsubscribe: Callable[[], None] | None = None

    # lifecycle

    def open(self) -> None:
        plt = _require_pyplot(self.interactive)
        viewport = self.cfg.viewport
        fig, ax = plt.subplots(
            figsize=(viewport.width_px / viewport.dpi, viewport.height_px / viewport.dpi),
            dpi=viewport.dpi,
        )
        fig.subplots_adjust(left=0.0, right=1.0, bottom=0.0, top=1.0)
        fig.patch.set_facecolor("#0d1117")
        ax.set_facecolor("#0d1117")
        ax.set_axis_off()
        manager = getattr(fig.canvas, "manager", None)
        if manager is not None:
            manager.set_window_title(self.cfg.project.title)
        self.fig = fig
        self.ax = ax

        self._apply_view()
        self._tooltip = ax.annotate(
            "",
            xy=(0.0, 0.0),
            xytext=(10, 10),
            textcoords="offset pixels",
            fontsize=8,
            color="white",
            zorder=_Z_PANEL,
            visible=False,
            bbox={"boxstyle": "round", "fc": "#161b22", "ec": "#FF4500", "alpha": 0.9},
        )
        self._panel_text = fig.text(
            0.985,
            0.97,
            "",
            ha="right",
            va="top",
            family="monospace",
            fontsize=9,
            color="white",
            zorder=_Z_PANEL,
            bbox={"boxstyle": "round", "fc": "#0d1117", "ec": "#30363d", "alpha": 0.94},
        )
        fig.text(
            0.015,
            0.97,
            self.cfg.project.title,
            ha="left",
            va="top",
            fontsize=14,
            fontweight="bold",
            color="#FF4500",
            zorder=_Z_PANEL,
        )
        self._unsubscribe = self.ctx.subscribe(self._on_state_changed)
        self._on_state_changed(self.ctx.selection, self.ctx.marker_plan)

        if self.interactive:
            self._install_controls()
            self._connect_events()
            self._start_geometry_load()
        else:
            collection = self.provider.fetch()
            if collection is not None:
                self._install_geometry(collection)

    def show(self) -> None:
        if self.fig is None:
            self.open()
        plt = _require_pyplot(self.interactive)
        plt.show()

    def save(self, output_path: Path) -> Path:
        if self.fig is None:
            self.open()
        output_path.parent.mkdir(parents=True, exist_ok=True)
        self.fig.savefig(output_path, dpi=self.cfg.viewport.dpi, facecolor=self.fig.get_facecolor())
        return output_path

    def teardown(self, *, close_figure: bool = True) -> None:
        if self._timer is not None:
            self._timer.stop()
            self._timer = None
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        self._future = None
        if self.fig is not None:
            for cid in self._cids:
                self.fig.canvas.mpl_disconnect(cid)
        self._cids = []
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.ctx.teardown()
        self.provider.close()
        if close_figure and self.fig is not None:
            _require_pyplot(self.interactive).close(self.fig)
        self._hovered_country = None
        self._tooltip = None
        self.fig = None
        self.ax = None

    # geometry

    def _start_geometry_load(self) -> None:
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="geometry")
        self._future = self._executor.submit(self.provider.fetch)
        self._timer = self.fig.canvas.new_timer(interval=_GEOMETRY_POLL_MS)
        self._timer.add_callback(self._poll_geometry)
        self._timer.start()

    def _poll_geometry(self) -> None:
        future = self._future
        if future is None or not future.done():
            return
        self._timer.stop()
        self._future = None
        try:
            collection = future.result()
        except Exception as exc:
            _LOGGER.warning("Boundary geometry load failed: %s", exc)
            return
        if collection is not None:
            self._install_geometry(collection)

    def _install_geometry(self, collection: Mapping[str, Any]) -> None:
        patches_mod = _require_matplotlib_patches()
        colors = self.ctx.style.country
        match = match_features(collection, self.ctx.dataset)
        if match.unmatched:
            _LOGGER.debug("%d boundary features have no community; left undrawn", len(match.unmatched))

        mpath = _require_matplotlib_path()
        staged: list[tuple[str, PatchDrawable]] = []
        for country, paths in _group_paths_by_country(match.matched):
            path = paths[0] if len(paths) == 1 else mpath.Path.make_compound_path(*paths)
            patch = patches_mod.PathPatch(path, zorder=_Z_COUNTRY)
            drawable = PatchDrawable(patch, colors, self._front_order)
            drawable.set_style(colors.default)
            staged.append((country.id, drawable))

        # Register first so a failure leaves no country half-interactive.
        try:
            self.ctx.register_layers(staged)
        except LayerRegistryError as exc:
            _LOGGER.warning("Country boundaries left non-interactive: %s", exc)
            return
        for _, drawable in staged:
            self.ax.add_patch(drawable.patch)
        self._countries = staged
        country = self.ctx.selection.country
        if country is not None:
            self.ctx.styles.highlight(country.id)
        _LOGGER.info("Drew %d country boundaries", len(staged))
        self._redraw()

    # view

    def _apply_view(self) -> None:
        xmin, xmax, ymin, ymax = self.ctx.viewport.extent()
        self.ax.set_xlim(xmin, xmax)
        self.ax.set_ylim(ymin, ymax)
        self._refresh_basemap()

    def _refresh_basemap(self) -> None:
        for image in self._basemap_images:
            image.remove()
        self._basemap_images = []
        source = _resolve_basemap_source(self.cfg.basemap.provider)
        if source is None:
            return
        before = list(self.ax.images)
        try:
            ctx = _require_contextily()
            ctx.add_basemap(self.ax, source=source, crs="EPSG:3857", zorder=_Z_BASEMAP)
        except Exception as exc:
            _LOGGER.warning("Basemap tiles unavailable: %s", exc)
            return
        self._basemap_images = [image for image in self.ax.images if image not in before]

    def _zoom_about(self, delta: int, anchor: tuple[float, float] | None = None) -> None:
        viewport = self.ctx.viewport
        old_zoom = viewport.zoom
        if anchor is not None:
            cx, cy = lonlat_to_mercator(viewport.center_lon, viewport.center_lat)
            target = viewport.clamp(old_zoom + delta)
            factor = 2.0 ** (old_zoom - target)
            ax_, ay_ = anchor
            viewport.pan_to(*mercator_to_lonlat(ax_ + (cx - ax_) * factor, ay_ + (cy - ay_) * factor))
        changed = self.ctx.set_zoom(old_zoom + delta)
        if changed or anchor is not None:
            self._apply_view()
            self._redraw()

    # context notifications

    def _on_state_changed(self, selection: Selection, plan: MarkerPlan) -> None:
        self._clear_markers()
        self._draw_markers(plan)
        self._draw_panel(selection)
        self._redraw()

    def _clear_markers(self) -> None:
        for marker in self._markers:
            marker.point.remove()
            marker.label.remove()
        self._markers = []

    def _draw_markers(self, plan: MarkerPlan) -> None:
        for entry in plan.entries:
            self._markers.append(self._draw_marker(entry))

    def _draw_marker(self, entry: MarkerPlanEntry) -> _MarkerArtist:
        x, y = lonlat_to_mercator(entry.lon, entry.lat)
        zorder = _Z_PLACE if entry.kind == MARKER_PLACE else _Z_CITY
        (point,) = self.ax.plot([x], [y], marker="o", linestyle="none", zorder=zorder)
        self._style_marker(point, baseline_style(entry))
        label_gap = 3 if entry.kind == MARKER_PLACE else 4
        permanent = entry.label_mode == LABEL_PERMANENT
        label = self.ax.annotate(
            entry.label_text,
            xy=(x, y),
            xytext=(0, entry.base_radius + label_gap),
            textcoords="offset pixels",
            ha="center",
            va="bottom",
            fontsize=8,
            color="white",
            zorder=zorder + 0.5,
            visible=permanent,
            bbox=None if permanent else {"boxstyle": "round", "fc": "#161b22", "ec": "none", "alpha": 0.9},
        )
        return _MarkerArtist(entry=entry, point=point, label=label)

    def _style_marker(self, point: Any, style: MarkerStyle) -> None:
        to_rgba = _require_to_rgba()
        point.set_markersize(points_to_size(style.radius, self.cfg.viewport.dpi))
        point.set_markerfacecolor(to_rgba(style.fill_color, style.fill_opacity))
        point.set_markeredgecolor(style.stroke_color)
        point.set_markeredgewidth(style.weight)
        point.set_pickradius(points_to_size(style.radius, self.cfg.viewport.dpi) / 2.0)

    def _draw_panel(self, selection: Selection) -> None:
        if self._panel_text is None:
            return
        view = build_panel(selection, self.ctx.style)
        self._panel_text.set_text("\n".join(format_panel_lines(view)))

    # controls and events

    def _install_controls(self) -> None:
        widgets = _require_matplotlib_widgets()
        specs: Sequence[tuple[tuple[float, float, float, float], str, Callable[[], Any]]] = (
            ((0.955, 0.09, 0.03, 0.045), "+", lambda: self._zoom_about(+1)),
            ((0.955, 0.035, 0.03, 0.045), "−", lambda: self._zoom_about(-1)),
            ((0.86, 0.035, 0.085, 0.045), "Reset view", self.ctx.on_close),
        )
        for rect, text, action in specs:
            button_ax = self.fig.add_axes(rect, zorder=_Z_PANEL)
            button = widgets.Button(button_ax, text, color="#161b22", hovercolor="#30363d")
            button.label.set_color("white")
            button.on_clicked(lambda _event, action=action: action())
            self._buttons.append(button)

    def _connect_events(self) -> None:
        canvas = self.fig.canvas
        self._cids = [
            canvas.mpl_connect("button_press_event", self._on_press),
            canvas.mpl_connect("button_release_event", self._on_release),
            canvas.mpl_connect("motion_notify_event", self._on_motion),
            canvas.mpl_connect("scroll_event", self._on_scroll),
            canvas.mpl_connect("key_press_event", self._on_key),
            canvas.mpl_connect("axes_leave_event", self._on_leave),
            canvas.mpl_connect("figure_leave_event", self._on_leave),
            canvas.mpl_connect("close_event", self._on_close),
        ]

    def _on_press(self, event: Any) -> None:
        if event.inaxes is not self.ax or event.xdata is None:
            return
        if event.button == _PAN_BUTTON:
            self._pan_anchor = (event.xdata, event.ydata)
            return
        if event.button != 1:
            return
        marker = self._marker_at(event)
        if marker is not None:
            entry = marker.entry
            if entry.place is not None:
                self.ctx.dispatch(SelectPlace(entry.country, entry.city, entry.place))
            else:
                self.ctx.dispatch(SelectCity(entry.country, entry.city))
            return
        country_id = self._country_at(event)
        if country_id is not None:
            self.ctx.dispatch(SelectCountry(country_id))
            self._redraw()

    def _on_release(self, event: Any) -> None:
        if event.button == _PAN_BUTTON:
            self._pan_anchor = None

    def _on_motion(self, event: Any) -> None:
        if event.inaxes is not self.ax or event.xdata is None:
            if self._reset_hover():
                self._redraw()
            return
        if self._pan_anchor is not None:
            self._pan(event)
            return
        country_id = self._country_at(event)
        changed = self._update_marker_hover(event)
        changed = self._update_country_hover(country_id) or changed
        changed = self._update_tooltip(event, country_id) or changed
        if changed:
            self._redraw()

    def _on_scroll(self, event: Any) -> None:
        if event.inaxes is not self.ax or event.xdata is None:
            return
        if event.button == "up":
            self._zoom_about(+1, anchor=(event.xdata, event.ydata))
        elif event.button == "down":
            self._zoom_about(-1, anchor=(event.xdata, event.ydata))

    def _on_key(self, event: Any) -> None:
        key = event.key
        if key in ("+", "="):
            self._zoom_about(+1)
        elif key == "-":
            self._zoom_about(-1)
        elif self.ctx.handle_key(key):
            self._redraw()

    def _on_leave(self, _event: Any) -> None:
        if self._reset_hover():
            self._redraw()

    def _on_close(self, _event: Any) -> None:
        self.teardown(close_figure=False)

    def _pan(self, event: Any) -> None:
        start_x, start_y = self._pan_anchor
        viewport = self.ctx.viewport
        cx, cy = lonlat_to_mercator(viewport.center_lon, viewport.center_lat)
        viewport.pan_to(*mercator_to_lonlat(cx - (event.xdata - start_x), cy - (event.ydata - start_y)))
        self._apply_view()
        self._redraw()

    def _marker_at(self, event: Any) -> _MarkerArtist | None:
        # Places sit above cities; test the top-most artists first.
        for marker in reversed(self._markers):
            hit, _ = marker.point.contains(event)
            if hit:
                return marker
        return None

    def _country_at(self, event: Any) -> str | None:
        ordered = sorted(self._countries, key=lambda item: item[1].patch.get_zorder(), reverse=True)
        for country_id, drawable in ordered:
            if drawable.contains(event):
                return country_id
        return None

    def _update_marker_hover(self, event: Any) -> bool:
        hovered = self._marker_at(event)
        changed = False
        for marker in self._markers:
            changed = self._set_marker_hovered(marker, marker is hovered) or changed
        return changed

    def _set_marker_hovered(self, marker: _MarkerArtist, is_hovered: bool) -> bool:
        if marker.hovered == is_hovered:
            return False
        marker.hovered = is_hovered
        if marker.entry.label_mode != LABEL_PERMANENT:
            marker.label.set_visible(is_hovered)
        if marker.entry.kind == MARKER_PLACE:
            style = self.ctx.planner.hover_style(marker.entry) if is_hovered else baseline_style(marker.entry)
            self._style_marker(marker.point, style)
        return True

    def _update_country_hover(self, country_id: str | None) -> bool:
        drawable = self.ctx.registry.get(country_id) if country_id is not None else None
        current = self._hovered_country
        if drawable is current:
            return False
        if current is not None:
            self.ctx.styles.hover_exit(current)
        if drawable is not None:
            self.ctx.styles.hover_enter(drawable)
        self._hovered_country = drawable
        return True

    def _update_tooltip(self, event: Any, country_id: str | None) -> bool:
        tooltip = self._tooltip
        if tooltip is None:
            return False
        country = self.ctx.dataset.get(country_id) if country_id is not None else None
        if country is None:
            return self._hide_tooltip()
        tooltip.set_text(self.ctx.style.community_label(country.community))
        tooltip.xy = (event.xdata, event.ydata)
        tooltip.set_visible(True)
        return True

    def _hide_tooltip(self) -> bool:
        if self._tooltip is None or not self._tooltip.get_visible():
            return False
        self._tooltip.set_visible(False)
        return True

    def _reset_hover(self) -> bool:
        """Drop every hover effect once the pointer is off the map."""
        changed = False
        for marker in self._markers:
            changed = self._set_marker_hovered(marker, False) or changed
        changed = self._update_country_hover(None) or changed
        return self._hide_tooltip() or changed

    def _redraw(self) -> None:
        if self.fig is not None:
            self.fig.canvas.draw_idle()


def _resolve_basemap_source(provider: str | None) -> Any | None:
    if provider is None:
        return None
    providers = _require_xyzservices_providers()
    try:
        return providers.query_name(provider)
    except ValueError:
        _LOGGER.warning("Unknown basemap provider '%s'; drawing without tiles", provider)
        return None


def _require_pyplot(interactive: bool) -> Any:
    try:
        import matplotlib

        if not interactive:
            matplotlib.use("Agg", force=False)
        import matplotlib.pyplot as plt
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for the map surface") from exc
    return plt


@lru_cache(maxsize=1)
def _require_to_rgba() -> Any:
    try:
        from matplotlib.colors import to_rgba
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for the map surface") from exc
    return to_rgba


def _require_matplotlib_path() -> Any:
    try:
        import matplotlib.path as mpath
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for country outlines") from exc
    return mpath


def _require_matplotlib_patches() -> Any:
    try:
        import matplotlib.patches as patches
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for country outlines") from exc
    return patches


def _require_matplotlib_widgets() -> Any:
    try:
        import matplotlib.widgets as widgets
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for map controls") from exc
    return widgets


def _require_shapely_shape() -> Any:
    try:
        from shapely.geometry import shape
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required for country outlines") from exc
    return shape


@lru_cache(maxsize=1)
def _require_contextily() -> Any:
    try:
        import contextily as ctx
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("contextily is required for basemap tiles") from exc
    return ctx


@lru_cache(maxsize=1)
def _require_xyzservices_providers() -> Any:
    try:
        from xyzservices import providers
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("xyzservices is required for basemap source definitions") from exc
    return providers
