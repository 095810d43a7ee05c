"""Tests for longitude continuity correction."""

import pytest

from communitymap.antimeridian import fix_feature_collection, fix_geometry, make_continuous


def _max_step(ring):
    return max(abs(b[0] - a[0]) for a, b in zip(ring, ring[1:]))


class TestMakeContinuous:
    """Ring correction."""

    @pytest.mark.unit
    def test_crossing_ring_is_shifted(self):
        ring = [[170, 10], [-170, 10], [170, -10]]
        assert make_continuous(ring) == [[170, 10], [190, 10], [170, -10]]

    @pytest.mark.unit
    def test_eastward_crossing_shifts_negative(self):
        ring = [[-175, 0], [175, 0], [175, 5], [-175, 5], [-175, 0]]
        fixed = make_continuous(ring)
        assert [p[0] for p in fixed] == [-175, -185, -185, -175, -175]

    @pytest.mark.unit
    def test_consecutive_steps_within_half_turn(self):
        ring = [[179, 0], [-179, 1], [-178, 2], [178, 3], [-179, 4], [179, 0]]
        fixed = make_continuous(ring)
        assert _max_step(fixed) <= 180

    @pytest.mark.unit
    def test_ring_without_jump_is_unchanged(self):
        ring = [[10, 0], [20, 0], [20, 10], [10, 10], [10, 0]]
        assert make_continuous(ring) == ring

    @pytest.mark.unit
    def test_latitudes_and_length_preserved(self):
        ring = [[170, 10], [-170, 11], [-160, 12], [175, 13]]
        fixed = make_continuous(ring)
        assert len(fixed) == len(ring)
        assert [p[1] for p in fixed] == [10, 11, 12, 13]

    @pytest.mark.unit
    def test_extra_ordinates_kept(self):
        fixed = make_continuous([[170, 10, 5.0], [-170, 10, 6.0]])
        assert fixed == [[170, 10, 5.0], [190, 10, 6.0]]

    @pytest.mark.unit
    def test_first_point_never_shifted(self):
        fixed = make_continuous([[-179.5, 0], [179.5, 0]])
        assert fixed[0] == [-179.5, 0]
        assert fixed[1] == [-180.5, 0]

    @pytest.mark.unit
    @pytest.mark.parametrize("ring", [[], [[12.0, 3.0]]])
    def test_short_rings_are_copied(self, ring):
        fixed = make_continuous(ring)
        assert fixed == ring
        assert fixed is not ring


class TestFixGeometry:
    """Geometry and collection dispatch."""

    @pytest.mark.unit
    def test_polygon_rings_corrected(self):
        geom = {"type": "Polygon", "coordinates": [[[170, 10], [-170, 10], [170, -10]]]}
        fixed = fix_geometry(geom)
        assert fixed["coordinates"] == [[[170, 10], [190, 10], [170, -10]]]
        assert geom["coordinates"][0][1] == [-170, 10]

    @pytest.mark.unit
    def test_multipolygon_rings_corrected(self):
        geom = {
            "type": "MultiPolygon",
            "coordinates": [
                [[[170, 10], [-170, 10], [170, -10]]],
                [[[0, 0], [1, 0], [1, 1]]],
            ],
        }
        fixed = fix_geometry(geom)
        assert fixed["coordinates"][0][0][1] == [190, 10]
        assert fixed["coordinates"][1][0] == [[0, 0], [1, 0], [1, 1]]

    @pytest.mark.unit
    def test_other_geometries_pass_through(self):
        point = {"type": "Point", "coordinates": [179, 0]}
        assert fix_geometry(point) is point
        assert fix_geometry(None) is None
        empty = {"type": "Polygon"}
        assert fix_geometry(empty) is empty

    @pytest.mark.unit
    def test_collection_is_not_mutated(self):
        feature = {
            "type": "Feature",
            "id": "242",
            "properties": {"name": "Fiji"},
            "geometry": {"type": "Polygon", "coordinates": [[[179, -16], [-179, -16], [179, -17]]]},
        }
        collection = {"type": "FeatureCollection", "features": [feature]}
        fixed = fix_feature_collection(collection)
        assert fixed["features"][0]["geometry"]["coordinates"][0][1] == [181, -16]
        assert fixed["features"][0]["id"] == "242"
        assert feature["geometry"]["coordinates"][0][1] == [-179, -16]
