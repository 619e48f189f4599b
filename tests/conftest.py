"""Shared fixtures for overlay tests."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import geopandas as gpd
import numpy as np
import pytest
from shapely.geometry import Polygon, box


def square(x0: float, y0: float, x1: float, y1: float) -> Polygon:
    return Polygon([(x0, y0), (x0, y1), (x1, y1), (x1, y0)])


class RecordingCanvas:
    def __init__(self, width: int, height: int, calls: list[tuple]) -> None:
        self.width = width
        self.height = height
        self.calls = calls

    def fill_polygon(self, rings, color) -> None:
        self.calls.append(("fill", len(rings), color))

    def stroke_ring(self, ring, color, width_px) -> None:
        self.calls.append(("stroke", len(ring), color, width_px))

    def read_pixels(self) -> np.ndarray:
        self.calls.append(("read",))
        return np.zeros((self.height, self.width, 4))


class RecordingRasterizer:
    """Fake rasterizer that records draw calls instead of painting."""

    def __init__(self, fail_on_stroke: bool = False) -> None:
        self.calls: list[tuple] = []
        self.opened = 0
        self.released = 0
        self.fail_on_stroke = fail_on_stroke

    @contextmanager
    def open_canvas(self, *, width: int, height: int, extent) -> Iterator[RecordingCanvas]:
        self.opened += 1
        canvas = RecordingCanvas(width, height, self.calls)
        if self.fail_on_stroke:
            def _fail(*_args, **_kwargs):
                raise RuntimeError("stroke failed")

            canvas.stroke_ring = _fail  # type: ignore[method-assign]
        try:
            yield canvas
        finally:
            self.released += 1


@pytest.fixture
def unit_extent() -> tuple[float, float, float, float]:
    return (0.0, 10.0, 0.0, 10.0)


@pytest.fixture
def center_square() -> Polygon:
    return square(2.0, 2.0, 8.0, 8.0)


@pytest.fixture
def counties() -> gpd.GeoDataFrame:
    """Four side-by-side tiles with numeric and categorical attributes."""
    return gpd.GeoDataFrame(
        {
            "name": ["a", "b", "c", "d"],
            "code": ["A", "B", "C", "A"],
            "population": [0.0, 2.5, 7.5, 10.0],
        },
        geometry=[
            box(0.0, 0.0, 2.5, 10.0),
            box(2.5, 0.0, 5.0, 10.0),
            box(5.0, 0.0, 7.5, 10.0),
            box(7.5, 0.0, 10.0, 10.0),
        ],
    )


@pytest.fixture
def recording_rasterizer() -> RecordingRasterizer:
    return RecordingRasterizer()


@pytest.fixture
def failing_rasterizer() -> RecordingRasterizer:
    return RecordingRasterizer(fail_on_stroke=True)
