"""Domain models shared across pipeline modules."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

import geopandas as gpd
import numpy as np
from shapely.geometry.base import BaseGeometry

from .errors import InvalidExtentError, MissingGeometryError

_LOGGER = logging.getLogger("polyoverlay.models")

_POLYGONAL_TYPES = {"Polygon", "MultiPolygon"}
_EXTENT_KEYS = ("xmin", "xmax", "ymin", "ymax")


def _finite_float(value: Any, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        try:
            value = float(value)
        except (TypeError, ValueError) as exc:
            raise InvalidExtentError(f"Expected number for extent '{field_name}'") from exc
    out = float(value)
    if not math.isfinite(out):
        raise InvalidExtentError(f"Extent '{field_name}' must be finite, got {value!r}")
    return out


@dataclass(frozen=True, slots=True)
class Extent:
    """Axis-aligned box mapped edge-to-edge onto the output canvas."""

    xmin: float
    xmax: float
    ymin: float
    ymax: float

    def __post_init__(self) -> None:
        if self.xmin >= self.xmax:
            raise InvalidExtentError(
                f"Degenerate extent: xmin ({self.xmin}) must be less than xmax ({self.xmax})"
            )
        if self.ymin >= self.ymax:
            raise InvalidExtentError(
                f"Degenerate extent: ymin ({self.ymin}) must be less than ymax ({self.ymax})"
            )

    @property
    def width(self) -> float:
        return self.xmax - self.xmin

    @property
    def height(self) -> float:
        return self.ymax - self.ymin

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """Shapely ordering: (minx, miny, maxx, maxy)."""
        return (self.xmin, self.ymin, self.xmax, self.ymax)

    @classmethod
    def from_bounds(cls, bounds: Sequence[Any]) -> Extent:
        """Build from shapely/GeoPandas `(minx, miny, maxx, maxy)` bounds."""
        if len(bounds) != 4:
            raise InvalidExtentError("Bounds must contain exactly four values")
        minx, miny, maxx, maxy = bounds
        return cls(
            xmin=_finite_float(minx, "xmin"),
            xmax=_finite_float(maxx, "xmax"),
            ymin=_finite_float(miny, "ymin"),
            ymax=_finite_float(maxy, "ymax"),
        )

    @classmethod
    def coerce(cls, value: Any) -> Extent:
        """Accept an Extent, `(xmin, xmax, ymin, ymax)`, a mapping or an attribute holder."""
        if value is None:
            raise InvalidExtentError("`extent` must not be None")
        if isinstance(value, Extent):
            return value
        if isinstance(value, Mapping):
            missing = [key for key in _EXTENT_KEYS if key not in value]
            if missing:
                raise InvalidExtentError(f"Extent mapping missing keys: {', '.join(missing)}")
            raw = [value[key] for key in _EXTENT_KEYS]
        elif all(hasattr(value, key) for key in _EXTENT_KEYS):
            raw = [getattr(value, key) for key in _EXTENT_KEYS]
        elif isinstance(value, (Sequence, np.ndarray)) and not isinstance(value, str):
            if len(value) != 4:
                raise InvalidExtentError("Extent sequence must be (xmin, xmax, ymin, ymax)")
            raw = list(value)
        else:
            raise InvalidExtentError(f"Unsupported extent type: {type(value).__name__}")
        xmin, xmax, ymin, ymax = (
            _finite_float(item, key) for item, key in zip(raw, _EXTENT_KEYS)
        )
        return cls(xmin=xmin, xmax=xmax, ymin=ymin, ymax=ymax)


@dataclass(frozen=True, slots=True)
class Feature:
    """One polygon (possibly multi-ring) plus its attribute row."""

    geometry: BaseGeometry
    attributes: Mapping[str, Any] = field(default_factory=dict)


def coerce_features(geometry: Any) -> gpd.GeoDataFrame:
    """Normalize supported feature containers into a GeoDataFrame.

    Row order is preserved and the index is reset so that positional and
    label access agree downstream. Non-polygonal rows are dropped.
    """
    if geometry is None:
        raise MissingGeometryError("`geometry` must not be None")

    if isinstance(geometry, gpd.GeoDataFrame):
        frame = geometry.copy()
    elif isinstance(geometry, gpd.GeoSeries):
        frame = gpd.GeoDataFrame(geometry=geometry.copy(), crs=geometry.crs)
    elif isinstance(geometry, BaseGeometry):
        frame = gpd.GeoDataFrame(geometry=[geometry])
    elif isinstance(geometry, Sequence) and not isinstance(geometry, (str, bytes)):
        frame = _frame_from_sequence(geometry)
    else:
        raise MissingGeometryError(
            f"Unsupported feature collection type: {type(geometry).__name__}"
        )

    if frame.empty:
        return frame.reset_index(drop=True)

    geom_types = frame.geometry.geom_type
    keep = geom_types.isin(_POLYGONAL_TYPES)
    dropped = int((~keep).sum())
    if dropped:
        _LOGGER.warning(
            "Dropping %d non-polygonal feature(s) from overlay input (types: %s)",
            dropped,
            ", ".join(sorted({str(t) for t in geom_types[~keep]})),
        )
        frame = frame[keep]
    return frame.reset_index(drop=True)


def _frame_from_sequence(items: Sequence[Any]) -> gpd.GeoDataFrame:
    geometries: list[BaseGeometry] = []
    rows: list[dict[str, Any]] = []
    for idx, item in enumerate(items):
        if isinstance(item, Feature):
            geometries.append(item.geometry)
            rows.append(dict(item.attributes))
        elif isinstance(item, BaseGeometry):
            geometries.append(item)
            rows.append({})
        else:
            raise MissingGeometryError(
                f"Unsupported feature at index {idx}: {type(item).__name__}"
            )
    columns: list[str] = []
    for row in rows:
        for key in row:
            if key not in columns:
                columns.append(key)
    data = {col: [row.get(col) for row in rows] for col in columns}
    return gpd.GeoDataFrame(data, geometry=geometries)
