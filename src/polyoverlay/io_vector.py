"""Vector feature loading for the command-line front end."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Sequence

import geopandas as gpd

_LOGGER = logging.getLogger("polyoverlay.io_vector")


def first_existing_column(columns: Iterable[str], candidates: Sequence[str]) -> str | None:
    """Case-insensitive lookup of the first candidate present in `columns`."""
    existing = {str(col).lower(): str(col) for col in columns}
    for candidate in candidates:
        match = existing.get(candidate.lower())
        if match:
            return match
    return None


class VectorSource:
    """Thin wrapper around GeoPandas file access for one vector dataset."""

    def __init__(self, path: Path, *, layer: str | None = None) -> None:
        self.path = path
        self.layer = layer

    def load(self) -> gpd.GeoDataFrame:
        if not self.path.exists():
            raise FileNotFoundError(f"Vector input not found: {self.path}")
        if self.layer is None:
            frame = gpd.read_file(self.path)
        else:
            frame = gpd.read_file(self.path, layer=self.layer)
        _LOGGER.info(
            "Loaded %d feature(s) from %s%s",
            len(frame),
            self.path,
            f" (layer {self.layer})" if self.layer else "",
        )
        return frame

    def column_names(self, frame: gpd.GeoDataFrame) -> list[str]:
        geometry_name = frame.geometry.name
        return [str(col) for col in frame.columns if col != geometry_name]
