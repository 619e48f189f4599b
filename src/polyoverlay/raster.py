"""Rasterization of cropped, styled features into a transparent RGBA buffer."""

from __future__ import annotations

import logging
import operator
from contextlib import contextmanager
from typing import Any, ContextManager, Iterator, Protocol, Sequence

import geopandas as gpd
import numpy as np
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure
from matplotlib.path import Path as MplPath
from matplotlib.patches import PathPatch
from shapely.geometry.polygon import orient

from .errors import InvalidDimensionsError
from .models import Extent
from .palette import RGBA, ResolvedColors, Transparent
from .style import BorderStyle

_LOGGER = logging.getLogger("polyoverlay.raster")

Ring = Sequence[tuple[float, float]]

_FILL_ZORDER = 1
_BORDER_ZORDER = 2
_ASPECT_TOLERANCE = 0.01


class RasterCanvas(Protocol):
    """Drawing surface scoped to one render call."""

    def fill_polygon(self, rings: Sequence[Ring], color: RGBA) -> None:
        """Fill the exterior ring (first) minus any holes (rest)."""

    def stroke_ring(self, ring: Ring, color: RGBA, width_px: float) -> None:
        ...

    def read_pixels(self) -> np.ndarray:
        """Return a `(height, width, 4)` float array in [0, 1], row 0 at ymax."""


class VectorRasterizer(Protocol):
    def open_canvas(self, *, width: int, height: int, extent: Extent) -> ContextManager[RasterCanvas]:
        ...


class _MatplotlibCanvas:
    def __init__(self, fig: Figure, ax: Any, extent: Extent, *, antialiased: bool) -> None:
        self._fig = fig
        self._ax = ax
        self._extent = extent
        self._antialiased = antialiased
        # Figure runs at 1 dpi, so one pixel spans 72 points.
        self._points_per_px = 72.0 / float(fig.dpi)

    def fill_polygon(self, rings: Sequence[Ring], color: RGBA) -> None:
        paths = [MplPath(np.asarray(ring, dtype=float), closed=True) for ring in rings if len(ring) >= 3]
        if not paths:
            return
        patch = PathPatch(
            MplPath.make_compound_path(*paths),
            facecolor=color,
            edgecolor="none",
            linewidth=0.0,
            antialiased=self._antialiased,
            zorder=_FILL_ZORDER,
        )
        self._ax.add_patch(patch)

    def stroke_ring(self, ring: Ring, color: RGBA, width_px: float) -> None:
        if len(ring) < 2:
            return
        x_values = [float(point[0]) for point in ring]
        y_values = [float(point[1]) for point in ring]
        self._ax.plot(
            x_values,
            y_values,
            color=color,
            linewidth=width_px * self._points_per_px,
            antialiased=self._antialiased,
            zorder=_BORDER_ZORDER,
            solid_joinstyle="round",
            solid_capstyle="round",
        )

    def read_pixels(self) -> np.ndarray:
        _apply_extent(self._ax, self._extent)
        self._fig.canvas.draw()
        rgba = np.asarray(self._fig.canvas.buffer_rgba())
        pixels = rgba.astype(np.float64) / 255.0
        pixels[pixels[..., 3] == 0.0] = 0.0
        return pixels


class MatplotlibRasterizer:
    """Agg-backed rasterizer; one private Figure per canvas, no pyplot state."""

    def __init__(self, *, antialiased: bool = False) -> None:
        self.antialiased = antialiased

    @contextmanager
    def open_canvas(self, *, width: int, height: int, extent: Extent) -> Iterator[RasterCanvas]:
        fig = Figure(figsize=(width, height), dpi=1)
        FigureCanvasAgg(fig)
        fig.patch.set_alpha(0.0)
        try:
            ax = fig.add_axes((0.0, 0.0, 1.0, 1.0))
            ax.set_axis_off()
            ax.patch.set_visible(False)
            ax.set_aspect("auto")
            _apply_extent(ax, extent)
            yield _MatplotlibCanvas(fig, ax, extent, antialiased=self.antialiased)
        finally:
            fig.clear()


def _apply_extent(ax: Any, extent: Extent) -> None:
    ax.set_xlim(extent.xmin, extent.xmax)
    ax.set_ylim(extent.ymin, extent.ymax)


def require_dimension(value: Any, field_name: str) -> int:
    try:
        out = operator.index(value)
    except TypeError:
        if isinstance(value, float) and value.is_integer():
            out = int(value)
        else:
            raise InvalidDimensionsError(
                f"Expected integer pixel count for '{field_name}', got {value!r}"
            ) from None
    if out < 1:
        raise InvalidDimensionsError(f"'{field_name}' must be >= 1, got {out}")
    return out


def iter_polygons(geometry: Any) -> list[tuple[Ring, tuple[Ring, ...]]]:
    """Exterior and interior rings per polygon, exterior counter-clockwise."""
    geom_type = getattr(geometry, "geom_type", "")
    if geom_type == "Polygon":
        if geometry.is_empty:
            return []
        oriented = orient(geometry, sign=1.0)
        exterior = [(float(x), float(y)) for x, y in oriented.exterior.coords]
        interiors = tuple(
            [(float(x), float(y)) for x, y in interior.coords] for interior in oriented.interiors
        )
        return [(exterior, interiors)]

    if geom_type in ("MultiPolygon", "GeometryCollection"):
        polygons: list[tuple[Ring, tuple[Ring, ...]]] = []
        for part in geometry.geoms:
            polygons.extend(iter_polygons(part))
        return polygons

    return []


def iter_linear_rings(geometry: Any) -> list[Ring]:
    rings: list[Ring] = []
    for exterior, interiors in iter_polygons(geometry):
        rings.append(exterior)
        rings.extend(interiors)
    return rings


def _geometries_of(features: Any) -> list[Any]:
    if isinstance(features, (gpd.GeoDataFrame, gpd.GeoSeries)):
        return list(features.geometry)
    return list(features)


def _log_aspect_mismatch(width: int, height: int, extent: Extent) -> None:
    canvas_ratio = width / height
    if abs(canvas_ratio - extent.aspect_ratio) / extent.aspect_ratio > _ASPECT_TOLERANCE:
        _LOGGER.warning(
            "Canvas aspect %.4f (%dx%d px) differs from extent aspect %.4f; overlay will be stretched.",
            canvas_ratio,
            width,
            height,
            extent.aspect_ratio,
        )


def render_overlay(
    features: Any,
    fills: ResolvedColors | Transparent,
    border: BorderStyle,
    width: int,
    height: int,
    extent: Any,
    rasterizer: VectorRasterizer | None = None,
) -> np.ndarray:
    """Paint fills in feature order, then borders, into a transparent buffer.

    Later features overpaint earlier ones. Features whose fill is None are
    left unpainted. The returned array is read-only.
    """
    box = Extent.coerce(extent)
    width_px = require_dimension(width, "width")
    height_px = require_dimension(height, "height")
    geometries = _geometries_of(features)
    draw_fill = not isinstance(fills, Transparent)
    if draw_fill and len(fills) != len(geometries):
        raise ValueError(
            f"Resolved {len(fills)} fill colors for {len(geometries)} features"
        )
    _log_aspect_mismatch(width_px, height_px, box)

    backend = rasterizer if rasterizer is not None else MatplotlibRasterizer()
    with backend.open_canvas(width=width_px, height=height_px, extent=box) as canvas:
        if draw_fill:
            for geometry, color in zip(geometries, fills):
                if color is None:
                    continue
                for exterior, interiors in iter_polygons(geometry):
                    canvas.fill_polygon([exterior, *interiors], color)
        if border.draw_border:
            for geometry in geometries:
                for ring in iter_linear_rings(geometry):
                    canvas.stroke_ring(ring, border.color, border.width)
        pixels = canvas.read_pixels()

    out = np.array(pixels, dtype=np.float64, copy=True)
    if out.shape != (height_px, width_px, 4):
        raise InvalidDimensionsError(
            f"Rasterizer returned shape {out.shape}, expected {(height_px, width_px, 4)}"
        )
    out.setflags(write=False)
    return out
