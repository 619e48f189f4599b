import warnings

import geopandas as gpd
import matplotlib
import numpy as np
import pandas as pd
import pytest
from matplotlib.colors import to_rgba
from shapely.geometry import box

from polyoverlay.errors import MissingColumnWarning, PaletteCardinalityMismatchError
from polyoverlay.palette import (
    TRANSPARENT,
    ColorFunction,
    ColorSequence,
    SingleColor,
    Transparent,
    continuous_indices,
    parse_palette,
    resolve_fill_colors,
)

RED = to_rgba("red")
BLUE = to_rgba("blue")
GREEN = to_rgba("green")


def _frame(n: int, **columns) -> gpd.GeoDataFrame:
    return gpd.GeoDataFrame(
        dict(columns),
        geometry=[box(i, 0, i + 1, 1) for i in range(n)],
    )


class TestParsePalette:
    @pytest.mark.parametrize("value", [None, float("nan"), "none", "Transparent", "NA", [None]])
    def test_transparent_values(self, value):
        assert isinstance(parse_palette(value), Transparent)

    def test_single_color_string_and_rgb_tuple(self):
        assert parse_palette("red") == SingleColor(color=RED)
        assert parse_palette((0.0, 0.0, 1.0)) == SingleColor(color=BLUE)

    def test_list_becomes_unnamed_sequence(self):
        spec = parse_palette(["red", "#0000ff"])
        assert isinstance(spec, ColorSequence)
        assert spec.colors == (RED, BLUE)
        assert spec.names is None

    def test_mapping_keeps_names_and_missing_entries(self):
        spec = parse_palette({"A": "red", "B": None})
        assert spec.names == ("A", "B")
        assert spec.colors == (RED, None)

    def test_series_index_provides_names(self):
        spec = parse_palette(pd.Series(["red", "blue"], index=["087", "053"]))
        assert spec.names == ("087", "053")

    def test_colormap_name_and_object_become_functions(self):
        by_name = parse_palette("viridis")
        by_object = parse_palette(matplotlib.colormaps["viridis"])
        assert isinstance(by_name, ColorFunction)
        assert isinstance(by_object, ColorFunction)
        assert by_name.sample(3).colors == by_object.sample(3).colors

    def test_callable_becomes_function(self):
        spec = parse_palette(lambda n: ["red"] * n)
        assert isinstance(spec, ColorFunction)

    def test_unknown_name_raises(self):
        with pytest.raises(ValueError):
            parse_palette("not-a-color-or-colormap")

    def test_empty_palettes_raise(self):
        with pytest.raises(ValueError):
            parse_palette([])
        with pytest.raises(ValueError):
            parse_palette({})


class TestRecycling:
    def test_transparent_short_circuits(self):
        assert resolve_fill_colors(_frame(3), None) is TRANSPARENT

    def test_single_color_fills_everything(self):
        assert resolve_fill_colors(_frame(3), "red") == (RED, RED, RED)

    def test_sequence_recycles_when_it_divides_count(self):
        fills = resolve_fill_colors(_frame(4), ["red", "blue"])
        assert fills == (RED, BLUE, RED, BLUE)

    def test_indivisible_sequence_fails(self):
        with pytest.raises(PaletteCardinalityMismatchError):
            resolve_fill_colors(_frame(3), ["red", "blue"])

    def test_function_is_called_with_feature_count(self):
        seen = []

        def palette(count):
            seen.append(count)
            return ["red", "blue", "green"][:count]

        fills = resolve_fill_colors(_frame(3), palette)
        assert seen == [3]
        assert fills == (RED, BLUE, GREEN)

    def test_function_returning_wrong_length_fails(self):
        with pytest.raises(PaletteCardinalityMismatchError):
            resolve_fill_colors(_frame(3), lambda n: ["red"])

    def test_colormap_gives_one_color_per_feature(self):
        fills = resolve_fill_colors(_frame(5), "viridis")
        assert len(fills) == 5
        assert fills[0] == matplotlib.colormaps["viridis"](0.0)
        assert len(set(fills)) == 5

    def test_empty_feature_set(self):
        assert resolve_fill_colors(_frame(0), ["red", "blue"]) == ()
        assert resolve_fill_colors(_frame(0), "viridis") == ()


class TestContinuousMapping:
    def test_bins_by_truncation_with_max_on_last_bin(self):
        assert continuous_indices([0, 2.5, 5, 7.5, 10], 5) == [0, 1, 2, 3, 4]

    def test_boundary_values(self):
        indices = continuous_indices([0, 10, 1.99, 2.0], 5)
        assert indices == [0, 4, 0, 1]

    def test_missing_values_have_no_index(self):
        assert continuous_indices([0, None, float("nan"), 10], 5) == [0, None, None, 4]

    def test_constant_column_maps_to_first_bin(self):
        assert continuous_indices([3, 3, 3], 4) == [0, 0, 0]

    def test_all_missing(self):
        assert continuous_indices([None, None], 4) == [None, None]

    def test_infinite_values_have_no_index(self):
        assert continuous_indices([0, np.inf, 10], 5) == [0, None, 4]
        assert continuous_indices([-np.inf, np.inf], 3) == [None, None]

    def test_infinite_column_values_stay_unpainted(self):
        frame = _frame(2, value=[-np.inf, 1.0])
        fills = resolve_fill_colors(frame, ["red", "blue"], "value")
        assert fills == (None, RED)

    def test_numeric_column_selects_palette_entries(self):
        palette = ["red", "orange", "yellow", "green", "blue"]
        frame = _frame(3, value=[10.0, 0.0, np.nan])
        fills = resolve_fill_colors(frame, palette, "value")
        assert fills == (BLUE, RED, None)

    def test_numeric_mapping_ignores_cardinality(self):
        fills = resolve_fill_colors(_frame(3, value=[1, 2, 3]), ["red", "blue"], "value")
        assert fills == (RED, BLUE, BLUE)

    def test_nullable_integer_column(self):
        frame = _frame(3, value=pd.array([0, None, 4], dtype="Int64"))
        fills = resolve_fill_colors(frame, ["red", "blue"], "value")
        assert fills == (RED, None, BLUE)

    def test_function_palette_sized_to_feature_count(self):
        frame = _frame(4, value=[0, 1, 2, 3])
        fills = resolve_fill_colors(frame, "viridis", "value")
        cmap = matplotlib.colormaps["viridis"]
        assert fills[0] == cmap(0.0)
        assert fills[-1] == cmap(1.0)


class TestCategoricalMapping:
    def test_matches_names(self):
        frame = _frame(3, code=["A", "C", "B"])
        fills = resolve_fill_colors(frame, {"A": "red", "B": "blue"}, "code")
        assert fills == (RED, None, BLUE)

    def test_pandas_categorical_column(self):
        frame = _frame(2, code=pd.Categorical(["B", "A"]))
        fills = resolve_fill_colors(frame, {"A": "red", "B": "blue"}, "code")
        assert fills == (BLUE, RED)

    def test_missing_category_is_unpainted(self):
        frame = _frame(2, code=["A", None])
        assert resolve_fill_colors(frame, {"A": "red"}, "code") == (RED, None)

    def test_unnamed_palette_matches_nothing(self):
        frame = _frame(2, code=["A", "B"])
        assert resolve_fill_colors(frame, ["red", "blue"], "code") == (None, None)

    def test_first_duplicate_name_wins(self):
        palette = pd.Series(["red", "blue"], index=["A", "A"])
        assert resolve_fill_colors(_frame(1, code=["A"]), palette, "code") == (RED,)

    def test_counties_fixture_codes(self, counties):
        fills = resolve_fill_colors(counties, {"A": "red", "B": "blue"}, "code")
        assert fills == (RED, BLUE, None, RED)


class TestMissingColumn:
    def test_warns_and_falls_back_to_recycling(self):
        with pytest.warns(MissingColumnWarning):
            fills = resolve_fill_colors(_frame(2, code=["A", "B"]), ["red", "blue"], "COUNTYFP")
        assert fills == (RED, BLUE)

    def test_fallback_still_checks_cardinality(self):
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", MissingColumnWarning)
            with pytest.raises(PaletteCardinalityMismatchError):
                resolve_fill_colors(_frame(3), ["red", "blue"], "COUNTYFP")

    def test_geometry_column_is_not_an_attribute(self):
        with pytest.warns(MissingColumnWarning):
            fills = resolve_fill_colors(_frame(2), "red", "geometry")
        assert fills == (RED, RED)
