"""Tests for dataset loading and id lookups."""

import pytest
import yaml

from communitymap.dataset import CommunityDataset, load_dataset, normalize_country_id, strip_leading_zeros


class TestIds:

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [(840, "840"), ("076", "076"), (76.0, "76"), (" 242 ", "242"), (None, None), ("", None), (True, None), (1.5, None)],
    )
    def test_normalize_country_id(self, raw, expected):
        assert normalize_country_id(raw) == expected

    @pytest.mark.unit
    def test_strip_leading_zeros(self):
        assert strip_leading_zeros("076") == "76"
        assert strip_leading_zeros("000") == "0"
        assert strip_leading_zeros("840") == "840"


class TestCommunityDataset:

    @pytest.mark.unit
    def test_lookup_variants(self, dataset):
        brazil = dataset.get("076")
        assert brazil is not None
        assert dataset.get("76") is brazil
        assert dataset.get(76) is brazil
        assert dataset.get(840).name == "United States"
        assert dataset.get("999") is None
        assert dataset.get(None) is None

    @pytest.mark.unit
    def test_iteration(self, dataset):
        assert len(dataset) == 3
        assert [c.id for c in dataset] == ["840", "076", "242"]
        assert len(list(dataset.iter_cities())) == 3
        assert [p.name for _, _, p in dataset.iter_places()] == ["Brooklyn", "Astoria"]

    @pytest.mark.unit
    def test_community_prefix_is_stripped(self, dataset):
        assert dataset.get("076").community == "brasil"

    @pytest.mark.unit
    def test_duplicate_country_rejected(self, records):
        with pytest.raises(ValueError, match="Duplicate country id"):
            CommunityDataset.from_records(records + [records[0]])

    @pytest.mark.unit
    def test_stripped_collision_rejected(self, records):
        clash = dict(records[1], id="76")
        with pytest.raises(ValueError, match="collides"):
            CommunityDataset.from_records([records[1], clash])

    @pytest.mark.unit
    def test_duplicate_city_rejected(self, records):
        usa = dict(records[0])
        usa["cities"] = [usa["cities"][0], usa["cities"][0]]
        with pytest.raises(ValueError, match="Duplicate id 'nyc'"):
            CommunityDataset.from_records([usa])

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("field", "value", "message"),
        [
            ("members", -1, "non-negative integer"),
            ("coordinates", [200, 0], "longitude"),
            ("coordinates", [0, 95], "latitude"),
            ("coordinates", [1], r"\[lon, lat\]"),
            ("community", "", "non-empty"),
        ],
    )
    def test_invalid_country_fields(self, records, field, value, message):
        broken = dict(records[2], **{field: value})
        with pytest.raises(ValueError, match=message):
            CommunityDataset.from_records([broken])

    @pytest.mark.unit
    def test_error_names_the_field(self, records):
        usa = dict(records[0])
        city = dict(usa["cities"][1], members="lots")
        usa["cities"] = [usa["cities"][0], city]
        with pytest.raises(ValueError, match=r"countries\[0\]\.cities\[1\]\.members"):
            CommunityDataset.from_records([usa])

    @pytest.mark.unit
    def test_place_id_defaults_to_name(self, records):
        usa = dict(records[0])
        nyc = dict(usa["cities"][0])
        nyc["places"] = [{k: v for k, v in nyc["places"][0].items() if k != "id"}]
        usa["cities"] = [nyc]
        dataset = CommunityDataset.from_records([usa])
        assert dataset.get("840").cities[0].places[0].id == "Brooklyn"


class TestLoadDataset:

    @pytest.mark.unit
    def test_load_mapping_form(self, tmp_path, records):
        path = tmp_path / "communities.yaml"
        path.write_text(yaml.safe_dump({"countries": records}), encoding="utf-8")
        assert len(load_dataset(path)) == 3

    @pytest.mark.unit
    def test_load_list_form_with_numeric_ids(self, tmp_path, records):
        records = [dict(records[0], id=840)]
        path = tmp_path / "communities.yaml"
        path.write_text(yaml.safe_dump(records), encoding="utf-8")
        assert load_dataset(path).get("840") is not None

    @pytest.mark.unit
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_dataset(tmp_path / "missing.yaml")

    @pytest.mark.unit
    def test_non_list_rejected(self, tmp_path):
        path = tmp_path / "communities.yaml"
        path.write_text("just: text\n", encoding="utf-8")
        with pytest.raises(ValueError, match="Expected list"):
            load_dataset(path)
