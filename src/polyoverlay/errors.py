"""Exception and warning types raised by the overlay pipeline."""

from __future__ import annotations


class InvalidExtentError(ValueError):
    """Extent is missing or degenerate (min >= max on an axis)."""


class MissingGeometryError(ValueError):
    """Feature collection is missing or of an unrecognized type."""


class PaletteCardinalityMismatchError(ValueError):
    """Palette length does not recycle evenly over the feature count."""


class InvalidDimensionsError(ValueError):
    """Output raster dimensions are missing, non-positive or mismatched."""


class MissingColumnWarning(UserWarning):
    """Requested attribute column is absent; palette falls back to recycling."""
