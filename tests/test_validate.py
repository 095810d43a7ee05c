"""Tests for dataset and boundary validation."""

import json

import pytest
import yaml

from communitymap.validate import DatasetValidator, format_report_lines


class TestDatasetValidator:

    @pytest.mark.unit
    def test_valid_project_without_cache(self, app_config):
        report = DatasetValidator(app_config).run()
        assert report.ok
        assert any("Loaded 3 countries, 3 cities and 2 places" in info for info in report.infos)
        assert any("no geometry cache" in info for info in report.infos)
        assert any("242" in info and "no cities" in info for info in report.infos)

    @pytest.mark.unit
    def test_zero_member_markers_warned(self, app_config):
        raw = yaml.safe_load(app_config.paths.dataset.read_text(encoding="utf-8"))
        raw["countries"][0]["cities"][1]["members"] = 0
        app_config.paths.dataset.write_text(yaml.safe_dump(raw), encoding="utf-8")
        report = DatasetValidator(app_config).run()
        assert "Entities with 0 members use the minimum marker radius: 840/anchorage" in report.warnings

    @pytest.mark.unit
    def test_missing_dataset(self, app_config):
        app_config.paths.dataset.unlink()
        report = DatasetValidator(app_config).run()
        assert not report.ok
        assert report.errors[0].startswith("Missing dataset file")

    @pytest.mark.unit
    def test_unparseable_dataset(self, app_config):
        app_config.paths.dataset.write_text("countries:\n  - id: 1\n", encoding="utf-8")
        report = DatasetValidator(app_config).run()
        assert not report.ok
        assert "Failed parsing dataset" in report.errors[0]

    @pytest.mark.unit
    def test_empty_dataset(self, app_config):
        app_config.paths.dataset.write_text("countries: []\n", encoding="utf-8")
        report = DatasetValidator(app_config).run()
        assert report.errors == [f"Dataset is empty: {app_config.paths.dataset}"]

    @pytest.mark.unit
    def test_boundary_join(self, app_config, features):
        cache = app_config.paths.geometry_cache
        cache.parent.mkdir(parents=True)
        cache.write_text(json.dumps(features), encoding="utf-8")
        report = DatasetValidator(app_config).run()
        assert report.ok
        assert any("2 matched, 1 background-only" in info for info in report.infos)
        assert any("cannot be highlighted: 242" in warning for warning in report.warnings)
        outside = [w for w in report.warnings if w.startswith("Cities outside")]
        assert outside == []

    @pytest.mark.unit
    def test_city_outside_boundary(self, app_config, features):
        moved = json.loads(json.dumps(features))
        # Shrink Brazil so Rio falls outside it.
        moved["features"][1]["geometry"]["coordinates"] = [[[-74, -10], [-60, -10], [-60, 5], [-74, 5], [-74, -10]]]
        cache = app_config.paths.geometry_cache
        cache.parent.mkdir(parents=True)
        cache.write_text(json.dumps(moved), encoding="utf-8")
        report = DatasetValidator(app_config).run()
        assert any(w == "Cities outside their country boundary: 076/rio" for w in report.warnings)

    @pytest.mark.unit
    def test_boundary_past_antimeridian(self, app_config):
        fiji = {
            "type": "FeatureCollection",
            "features": [
                {
                    "type": "Feature",
                    "id": "242",
                    "properties": {},
                    "geometry": {
                        "type": "Polygon",
                        "coordinates": [[[177, -19], [181, -19], [181, -16], [177, -16], [177, -19]]],
                    },
                }
            ],
        }
        cache = app_config.paths.geometry_cache
        cache.parent.mkdir(parents=True)
        cache.write_text(json.dumps(fiji), encoding="utf-8")
        report = DatasetValidator(app_config).run()
        assert not any(w.startswith("Cities outside") for w in report.warnings)

    @pytest.mark.unit
    def test_unreadable_cache(self, app_config):
        cache = app_config.paths.geometry_cache
        cache.parent.mkdir(parents=True)
        cache.write_text("{", encoding="utf-8")
        report = DatasetValidator(app_config).run()
        assert report.ok
        assert any("Failed reading geometry cache" in w for w in report.warnings)


class TestFormatReportLines:

    @pytest.mark.unit
    def test_ok_line(self, app_config):
        lines = list(format_report_lines(DatasetValidator(app_config).run()))
        assert lines[-1] == "[OK] Validation completed with no errors."
        assert all(line.startswith("[") for line in lines)
