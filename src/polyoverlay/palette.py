"""Palette specifications and per-feature fill color resolution."""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence, Union

import geopandas as gpd
import matplotlib
import numpy as np
import pandas as pd
from matplotlib.colors import Colormap, is_color_like, to_rgba

from .errors import MissingColumnWarning, PaletteCardinalityMismatchError

RGBA = tuple[float, float, float, float]

_TRANSPARENT_NAMES = {"none", "transparent", "na"}

_LOGGER = logging.getLogger("polyoverlay.palette")


def is_missing(value: Any) -> bool:
    if value is None:
        return True
    if pd.api.types.is_scalar(value):
        return bool(pd.isna(value))
    return False


def to_color(value: Any) -> RGBA | None:
    """Convert a matplotlib color value to RGBA; missing values mean no color."""
    if is_missing(value):
        return None
    r, g, b, a = to_rgba(value)
    return (float(r), float(g), float(b), float(a))


@dataclass(frozen=True, slots=True)
class SingleColor:
    color: RGBA


@dataclass(frozen=True, slots=True)
class ColorSequence:
    """Ordered colors with optional names used for categorical matching."""

    colors: tuple[RGBA | None, ...]
    names: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        if not self.colors:
            raise ValueError("Color sequence must contain at least one color")
        if self.names is not None and len(self.names) != len(self.colors):
            raise ValueError(
                f"Color sequence has {len(self.colors)} colors but {len(self.names)} names"
            )

    def __len__(self) -> int:
        return len(self.colors)


@dataclass(frozen=True, slots=True)
class ColorFunction:
    """Callable producing `count` colors, e.g. a sampled matplotlib colormap."""

    func: Callable[[int], Any]
    label: str = ""

    def sample(self, count: int) -> ColorSequence:
        raw = self.func(count)
        colors = tuple(to_color(item) for item in raw)
        if len(colors) != count:
            raise PaletteCardinalityMismatchError(
                f"Palette function {self.label or self.func!r} returned {len(colors)} colors "
                f"for {count} polygons"
            )
        if not colors:
            # zero features: placeholder keeps recycling defined
            return ColorSequence(colors=(None,))
        return ColorSequence(colors=colors)


@dataclass(frozen=True, slots=True)
class Transparent:
    """No fill: only borders may be drawn."""


TRANSPARENT = Transparent()

PaletteSpec = Union[SingleColor, ColorSequence, ColorFunction, Transparent]
ResolvedColors = tuple[Union[RGBA, None], ...]


def colormap_function(cmap: Colormap) -> ColorFunction:
    """Sample `count` evenly spaced colors from a matplotlib colormap."""

    def _sample(count: int) -> list[RGBA]:
        if count <= 0:
            return []
        return [cmap(float(x)) for x in np.linspace(0.0, 1.0, count)]

    return ColorFunction(func=_sample, label=cmap.name)


def parse_palette(value: Any) -> PaletteSpec:
    """Turn a caller-supplied palette value into a tagged palette spec."""
    if isinstance(value, (SingleColor, ColorSequence, ColorFunction, Transparent)):
        return value
    if is_missing(value):
        return TRANSPARENT
    if isinstance(value, str):
        return _parse_palette_name(value)
    if isinstance(value, Colormap):
        return colormap_function(value)
    if isinstance(value, pd.Series):
        return _parse_series(value)
    if isinstance(value, Mapping):
        if not value:
            raise ValueError("Named palette must not be empty")
        return ColorSequence(
            colors=tuple(to_color(color) for color in value.values()),
            names=tuple(str(name) for name in value.keys()),
        )
    if callable(value):
        return ColorFunction(func=value, label=getattr(value, "__name__", ""))
    if _is_rgb_tuple(value):
        return SingleColor(color=to_rgba(value))
    if isinstance(value, (Sequence, np.ndarray)):
        colors = tuple(to_color(item) for item in value)
        if len(colors) == 1 and colors[0] is None:
            return TRANSPARENT
        return ColorSequence(colors=colors)
    raise ValueError(f"Unsupported palette type: {type(value).__name__}")


def _parse_palette_name(value: str) -> PaletteSpec:
    name = value.strip()
    if name.casefold() in _TRANSPARENT_NAMES:
        return TRANSPARENT
    if is_color_like(name):
        return SingleColor(color=to_rgba(name))
    if name in matplotlib.colormaps:
        return colormap_function(matplotlib.colormaps[name])
    raise ValueError(f"'{value}' is neither a color nor a registered matplotlib colormap")


def _parse_series(series: pd.Series) -> PaletteSpec:
    if series.empty:
        raise ValueError("Palette series must not be empty")
    colors = tuple(to_color(color) for color in series.tolist())
    if isinstance(series.index, pd.RangeIndex):
        return ColorSequence(colors=colors)
    return ColorSequence(colors=colors, names=tuple(str(name) for name in series.index))


def _is_rgb_tuple(value: Any) -> bool:
    if not isinstance(value, tuple) or len(value) not in (3, 4):
        return False
    if not all(isinstance(item, (int, float)) and not isinstance(item, bool) for item in value):
        return False
    return is_color_like(value)


def resolve_fill_colors(
    features: pd.DataFrame,
    palette: Any,
    data_column: str | None = None,
) -> ResolvedColors | Transparent:
    """Resolve one fill color per feature, or TRANSPARENT for no fill.

    Without `data_column` the palette recycles over the features and must
    divide their count evenly. With a numeric column values are binned
    linearly into the palette; with a text column they are matched against
    palette names. Unmatched and missing values resolve to None (unpainted).
    """
    spec = parse_palette(palette)
    if isinstance(spec, Transparent):
        return TRANSPARENT

    count = len(features)
    sequence = _as_sequence(spec, count)
    if data_column is None:
        return _recycle(sequence, count)

    geometry_name = features.geometry.name if isinstance(features, gpd.GeoDataFrame) else None
    if data_column not in features.columns or data_column == geometry_name:
        message = f"Was not able to find data_column_fill `{data_column}` in feature attributes."
        _LOGGER.warning(message)
        warnings.warn(message, MissingColumnWarning, stacklevel=2)
        return _recycle(sequence, count)

    values = features[data_column]
    if pd.api.types.is_numeric_dtype(values) and not pd.api.types.is_bool_dtype(values):
        resolved = _continuous(values, sequence)
    else:
        resolved = _categorical(values, sequence)

    unpainted = sum(1 for color in resolved if color is None)
    if unpainted:
        _LOGGER.debug(
            "%d of %d feature(s) have no fill color for column `%s`",
            unpainted,
            count,
            data_column,
        )
    return resolved


def _as_sequence(spec: PaletteSpec, count: int) -> ColorSequence:
    if isinstance(spec, ColorFunction):
        return spec.sample(count)
    if isinstance(spec, SingleColor):
        return ColorSequence(colors=(spec.color,))
    if isinstance(spec, ColorSequence):
        return spec
    raise TypeError(f"Cannot expand palette of type {type(spec).__name__}")


def _recycle(sequence: ColorSequence, count: int) -> ResolvedColors:
    size = len(sequence)
    if count % size != 0:
        raise PaletteCardinalityMismatchError(
            f"Number of explicitly defined colors ({size}) does not match "
            f"(or recycle within) number of polygons ({count})"
        )
    return tuple(sequence.colors[idx % size] for idx in range(count))


def continuous_indices(values: Sequence[Any], size: int) -> list[int | None]:
    """Bin values into `[0, size)` by `trunc((v - min) / (max - min) * size)`.

    The maximum lands on the last bin. Missing and infinite values give None.
    When all remaining values are equal they share bin 0.
    """
    arr = pd.to_numeric(pd.Series(values, dtype="object"), errors="coerce").to_numpy(
        dtype=float, na_value=np.nan
    )
    valid = np.isfinite(arr)
    if not valid.any():
        return [None] * len(arr)
    lo = float(arr[valid].min())
    hi = float(arr[valid].max())
    out: list[int | None] = []
    for value, ok in zip(arr, valid):
        if not ok:
            out.append(None)
        elif hi == lo:
            out.append(0)
        else:
            idx = int((value - lo) / (hi - lo) * size)
            out.append(min(idx, size - 1))
    return out


def _continuous(values: pd.Series, sequence: ColorSequence) -> ResolvedColors:
    indices = continuous_indices(values.tolist(), len(sequence))
    return tuple(None if idx is None else sequence.colors[idx] for idx in indices)


def _categorical(values: pd.Series, sequence: ColorSequence) -> ResolvedColors:
    if sequence.names is None:
        _LOGGER.warning(
            "Palette has no names to match against a categorical column; no fills will be drawn."
        )
        return (None,) * len(values)
    lookup: dict[str, RGBA | None] = {}
    for name, color in zip(sequence.names, sequence.colors):
        lookup.setdefault(name, color)
    return tuple(
        None if is_missing(value) else lookup.get(str(value)) for value in values.tolist()
    )
