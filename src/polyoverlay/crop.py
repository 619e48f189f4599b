"""Extent cropping of overlay features."""

from __future__ import annotations

import logging
from typing import Any

import geopandas as gpd

from .models import Extent, coerce_features

_LOGGER = logging.getLogger("polyoverlay.crop")

_POLYGONAL_TYPES = ("Polygon", "MultiPolygon")


def crop_features(features: Any, extent: Any) -> gpd.GeoDataFrame:
    """Clip features to `extent`, dropping rows that fall entirely outside.

    Attribute columns and row order of the surviving features are kept and the
    index is reset. Clipping an already clipped frame is a no-op.
    """
    box = Extent.coerce(extent)
    frame = coerce_features(features)
    if frame.empty:
        return frame

    clipped = frame.geometry.clip_by_rect(box.xmin, box.ymin, box.xmax, box.ymax)
    keep = clipped.geom_type.isin(_POLYGONAL_TYPES) & ~clipped.is_empty
    out = frame.copy()
    out[out.geometry.name] = clipped
    out = out[keep].reset_index(drop=True)

    dropped = len(frame) - len(out)
    if dropped:
        _LOGGER.debug(
            "Cropped %d of %d feature(s) lying outside extent x=[%g, %g], y=[%g, %g]",
            dropped,
            len(frame),
            box.xmin,
            box.xmax,
            box.ymin,
            box.ymax,
        )
    return out
