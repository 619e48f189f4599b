"""Polygon overlay pipeline: crop, resolve colors and style, rasterize."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

import numpy as np

from .crop import crop_features
from .errors import InvalidDimensionsError
from .models import Extent
from .palette import Transparent, is_missing, resolve_fill_colors
from .raster import MatplotlibRasterizer, VectorRasterizer, render_overlay, require_dimension
from .style import resolve_border

_LOGGER = logging.getLogger("polyoverlay.overlay")


@dataclass(frozen=True, slots=True)
class OverlayRequest:
    geometry: Any
    extent: Any
    width: int | None = None
    height: int | None = None
    heightmap: Any = None
    data_column_fill: str | None = None
    linecolor: Any = "black"
    palette: Any = "white"
    linewidth: Any = 1


@dataclass(frozen=True, slots=True)
class OverlayResult:
    image: np.ndarray
    extent: Extent
    input_features: int
    rendered_features: int
    unpainted_features: int
    filled: bool
    bordered: bool

    def summary(self) -> dict[str, Any]:
        height, width = self.image.shape[:2]
        return {
            "width_px": int(width),
            "height_px": int(height),
            "extent": {
                "xmin": self.extent.xmin,
                "xmax": self.extent.xmax,
                "ymin": self.extent.ymin,
                "ymax": self.extent.ymax,
            },
            "input_features": self.input_features,
            "rendered_features": self.rendered_features,
            "unpainted_features": self.unpainted_features,
            "filled": self.filled,
            "bordered": self.bordered,
        }


class PolygonOverlayRenderer:
    """Renders polygon overlays through an injected vector rasterizer."""

    def __init__(self, rasterizer: VectorRasterizer | None = None) -> None:
        self.rasterizer = rasterizer if rasterizer is not None else MatplotlibRasterizer()

    def render(self, req: OverlayRequest) -> OverlayResult:
        started = time.perf_counter()
        extent = Extent.coerce(req.extent)
        width, height = resolve_dimensions(
            width=req.width,
            height=req.height,
            heightmap=req.heightmap,
        )
        cropped = crop_features(req.geometry, extent)
        input_count = len(req.geometry) if hasattr(req.geometry, "__len__") else len(cropped)

        fills = resolve_fill_colors(cropped, req.palette, req.data_column_fill)
        border = resolve_border(req.linewidth, req.linecolor)
        image = render_overlay(
            cropped,
            fills,
            border,
            width,
            height,
            extent,
            rasterizer=self.rasterizer,
        )

        filled = not isinstance(fills, Transparent)
        unpainted = sum(1 for color in fills if color is None) if filled else len(cropped)
        _LOGGER.info(
            "Rendered %dx%d overlay: %d/%d feature(s) in extent, %d unpainted, border=%s (%.2fs)",
            width,
            height,
            len(cropped),
            input_count,
            unpainted,
            "on" if border.draw_border else "off",
            time.perf_counter() - started,
        )
        return OverlayResult(
            image=image,
            extent=extent,
            input_features=input_count,
            rendered_features=len(cropped),
            unpainted_features=unpainted,
            filled=filled,
            bordered=border.draw_border,
        )


def resolve_dimensions(
    *,
    width: Any = None,
    height: Any = None,
    heightmap: Any = None,
) -> tuple[int, int]:
    """Explicit width/height win; missing ones come from the heightmap's columns/rows."""
    if is_missing(width) or is_missing(height):
        if heightmap is None:
            raise InvalidDimensionsError(
                "Either `heightmap` or both `width` and `height` must be provided"
            )
        shape = np.shape(heightmap)
        if len(shape) < 2:
            raise InvalidDimensionsError(
                f"`heightmap` must be at least two-dimensional, got shape {shape}"
            )
        if is_missing(width):
            width = shape[1]
        if is_missing(height):
            height = shape[0]
    return require_dimension(width, "width"), require_dimension(height, "height")


def generate_polygon_overlay(
    geometry: Any,
    extent: Any,
    heightmap: Any = None,
    width: int | None = None,
    height: int | None = None,
    data_column_fill: str | None = None,
    linecolor: Any = "black",
    palette: Any = "white",
    linewidth: Any = 1,
    rasterizer: VectorRasterizer | None = None,
) -> np.ndarray:
    """Render a transparent RGBA overlay of `geometry` aligned to `extent`.

    `palette` may be a single color, a list of colors, a name -> color
    mapping, a matplotlib colormap (object or name), a callable returning
    `count` colors, or None for no fill. With `data_column_fill` a numeric
    column maps continuously onto the palette and a text column matches the
    palette names. A `linewidth` of 0 or None draws no borders.

    Returns a read-only `(height, width, 4)` float array in [0, 1].
    """
    renderer = PolygonOverlayRenderer(rasterizer)
    result = renderer.render(
        OverlayRequest(
            geometry=geometry,
            extent=extent,
            width=width,
            height=height,
            heightmap=heightmap,
            data_column_fill=data_column_fill,
            linecolor=linecolor,
            palette=palette,
            linewidth=linewidth,
        )
    )
    return result.image
