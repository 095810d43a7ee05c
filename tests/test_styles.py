"""Tests for the layer registry and highlight synchronisation."""

import pytest

from communitymap.config import CountryStyleConfig
from communitymap.styles import LayerRegistry, LayerRegistryError, StyleSynchronizer

STYLE = CountryStyleConfig.default_style()


class TestLayerRegistry:
    """Bulk registration of country drawables."""

    @pytest.mark.unit
    def test_stripped_ids_resolve(self, registry, drawables):
        assert registry.get("076") is drawables["076"]
        assert registry.get("76") is drawables["076"]
        assert registry.get(76) is drawables["076"]
        assert "840" in registry
        assert "999" not in registry

    @pytest.mark.unit
    def test_drawables_are_unique(self, registry):
        assert len(registry.drawables()) == 3

    @pytest.mark.unit
    def test_second_load_rejected(self, registry, drawables):
        with pytest.raises(LayerRegistryError):
            registry.register_all(drawables.items())

    @pytest.mark.unit
    def test_duplicate_id_registers_nothing(self, drawables):
        reg = LayerRegistry()
        pairs = [("840", drawables["840"]), ("076", drawables["076"]), ("840", drawables["242"])]
        with pytest.raises(LayerRegistryError):
            reg.register_all(pairs)
        assert not reg.loaded
        assert reg.get("840") is None

    @pytest.mark.unit
    def test_invalid_id_registers_nothing(self, drawables):
        reg = LayerRegistry()
        with pytest.raises(LayerRegistryError):
            reg.register_all([("840", drawables["840"]), (None, drawables["242"])])
        assert reg.get("840") is None

    @pytest.mark.unit
    def test_clear_allows_reload(self, registry, drawables):
        registry.clear()
        assert registry.get("840") is None
        assert registry.register_all(drawables.items()) == 3


class TestStyleSynchronizer:
    """Exactly one highlighted country."""

    @pytest.mark.unit
    def test_highlight_applies_style(self, styles, drawables):
        assert styles.highlight("840") is drawables["840"]
        assert drawables["840"].style == STYLE.highlight
        assert styles.highlighted is drawables["840"]

    @pytest.mark.unit
    def test_previous_restored_before_next_highlighted(self, styles, drawables, style_log):
        styles.highlight("840")
        style_log.clear()
        styles.highlight("076")
        assert style_log == [("840", STYLE.default), ("076", STYLE.highlight)]
        assert styles.is_highlighted(drawables["076"])
        assert not styles.is_highlighted(drawables["840"])

    @pytest.mark.unit
    def test_never_two_highlighted(self, styles, style_log):
        for country_id in ["840", "076", "242", "840", "76"]:
            styles.highlight(country_id)
        current: dict = {}
        for name, style in style_log:
            if style == "front":
                continue
            current[name] = style
            assert sum(1 for s in current.values() if s == STYLE.highlight) <= 1

    @pytest.mark.unit
    def test_rehighlight_same_country(self, styles, drawables, style_log):
        styles.highlight("076")
        styles.highlight("76")
        assert style_log == [("076", STYLE.highlight), ("076", STYLE.highlight)]

    @pytest.mark.unit
    def test_highlight_unknown_clears_previous(self, styles, drawables):
        styles.highlight("840")
        assert styles.highlight("999") is None
        assert styles.highlighted is None
        assert drawables["840"].style == STYLE.default

    @pytest.mark.unit
    def test_clear(self, styles, drawables):
        styles.highlight("242")
        styles.clear()
        assert styles.highlighted is None
        assert drawables["242"].style == STYLE.default

    @pytest.mark.unit
    def test_hover_skips_highlighted(self, styles, drawables):
        styles.highlight("840")
        styles.hover_enter(drawables["840"])
        assert drawables["840"].style == STYLE.highlight
        assert drawables["840"].front_count == 1
        styles.hover_exit(drawables["840"])
        assert drawables["840"].style == STYLE.highlight

    @pytest.mark.unit
    def test_hover_other_country(self, styles, drawables):
        styles.highlight("840")
        styles.hover_enter(drawables["076"])
        assert drawables["076"].style == STYLE.hover
        assert drawables["076"].front_count == 1
        styles.hover_exit(drawables["076"])
        assert drawables["076"].style == STYLE.default

    @pytest.mark.unit
    def test_default_style_for(self, styles, drawables):
        styles.highlight("242")
        assert styles.default_style_for(drawables["242"]) == STYLE.highlight
        assert styles.default_style_for(drawables["840"]) == STYLE.default

    @pytest.mark.unit
    def test_highlight_before_layers_load(self, drawables):
        sync = StyleSynchronizer(LayerRegistry())
        assert sync.highlight("840") is None
        assert drawables["840"].style is None
