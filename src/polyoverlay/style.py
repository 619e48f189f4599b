"""Border style resolution."""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from typing import Any

from .palette import RGBA, is_missing, to_color

_NO_BORDER_COLOR: RGBA = (0.0, 0.0, 0.0, 0.0)


@dataclass(frozen=True, slots=True)
class BorderStyle:
    draw_border: bool
    width: float
    color: RGBA

    @classmethod
    def none(cls) -> BorderStyle:
        return cls(draw_border=False, width=0.0, color=_NO_BORDER_COLOR)


def resolve_border(linewidth: Any, linecolor: Any = "black") -> BorderStyle:
    """Decide whether and how polygon rings are stroked.

    A width of 0, None, NaN or "none" disables the border entirely.
    """
    if isinstance(linewidth, str):
        if linewidth.strip().casefold() in {"none", "na", ""}:
            return BorderStyle.none()
        raise ValueError(f"Expected number or 'none' for linewidth, got '{linewidth}'")
    if is_missing(linewidth):
        return BorderStyle.none()
    if isinstance(linewidth, bool) or not isinstance(linewidth, numbers.Real):
        raise ValueError(f"Expected number for linewidth, got {type(linewidth).__name__}")
    width = float(linewidth)
    if not math.isfinite(width) or width < 0:
        raise ValueError(f"linewidth must be a non-negative number, got {linewidth!r}")
    if width == 0:
        return BorderStyle.none()
    color = to_color(linecolor)
    if color is None:
        return BorderStyle.none()
    return BorderStyle(draw_border=True, width=width, color=color)
