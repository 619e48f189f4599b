import geopandas as gpd
import pytest
from shapely.geometry import Polygon, box

from polyoverlay.crop import crop_features
from polyoverlay.errors import InvalidExtentError, MissingGeometryError


@pytest.fixture
def mixed() -> gpd.GeoDataFrame:
    return gpd.GeoDataFrame(
        {"label": ["inside", "outside", "straddles", "holed"]},
        geometry=[
            box(1, 1, 3, 3),
            box(20, 20, 30, 30),
            box(8, 8, 14, 12),
            Polygon(
                [(4, 4), (4, 9), (9, 9), (9, 4)],
                holes=[[(5, 5), (5, 6), (6, 6), (6, 5)]],
            ),
        ],
    )


class TestCropFeatures:
    def test_drops_features_outside_and_keeps_order(self, mixed, unit_extent):
        cropped = crop_features(mixed, unit_extent)
        assert list(cropped["label"]) == ["inside", "straddles", "holed"]
        assert list(cropped.index) == [0, 1, 2]

    def test_partially_overlapping_geometry_is_clipped_to_extent(self, mixed, unit_extent):
        cropped = crop_features(mixed, unit_extent)
        straddling = cropped.geometry.iloc[1]
        minx, miny, maxx, maxy = straddling.bounds
        assert (minx, miny) == (8.0, 8.0)
        assert maxx <= 10.0 and maxy <= 10.0
        assert straddling.area == pytest.approx(4.0)

    def test_holes_survive_cropping(self, mixed, unit_extent):
        holed = crop_features(mixed, unit_extent).geometry.iloc[2]
        assert holed.area == pytest.approx(24.0)

    def test_cropping_is_idempotent(self, mixed, unit_extent):
        once = crop_features(mixed, unit_extent)
        twice = crop_features(once, unit_extent)
        assert list(once["label"]) == list(twice["label"])
        for left, right in zip(once.geometry, twice.geometry):
            assert left.equals(right)

    def test_does_not_mutate_input(self, mixed, unit_extent):
        before = [geom.wkt for geom in mixed.geometry]
        crop_features(mixed, unit_extent)
        assert [geom.wkt for geom in mixed.geometry] == before

    def test_everything_outside_gives_empty_frame(self, unit_extent):
        cropped = crop_features([box(50, 50, 60, 60)], unit_extent)
        assert len(cropped) == 0

    def test_degenerate_extent_fails_before_geometry_checks(self):
        with pytest.raises(InvalidExtentError):
            crop_features(None, (0, 0, 0, 1))

    def test_missing_geometry_fails(self, unit_extent):
        with pytest.raises(MissingGeometryError):
            crop_features(None, unit_extent)
