"""Typed configuration loader for overlay YAML files."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, cast

import yaml

from .models import Extent


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"Expected mapping for '{field_name}'")
    return cast(Mapping[str, Any], value)


def _str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _optional_str(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    return _str(value, field_name)


def _int(value: Any, field_name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"Expected integer for '{field_name}'")
    return value


def _float(value: Any, field_name: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise ValueError(f"Expected float for '{field_name}'")


def _path_from_cfg(value: Any, field_name: str, root_dir: Path) -> Path:
    raw = _str(value, field_name)
    p = Path(raw)
    return p if p.is_absolute() else root_dir / p


def _optional_path(value: Any, field_name: str, root_dir: Path) -> Path | None:
    if value is None:
        return None
    return _path_from_cfg(value, field_name, root_dir)


@dataclass(frozen=True, slots=True)
class PathsConfig:
    input: Path
    output_png: Path
    summary_json: Path | None
    logs_dir: Path

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> PathsConfig:
        return cls(
            input=_path_from_cfg(raw.get("input"), "paths.input", root_dir),
            output_png=_path_from_cfg(raw.get("output_png"), "paths.output_png", root_dir),
            summary_json=_optional_path(raw.get("summary_json"), "paths.summary_json", root_dir),
            logs_dir=_path_from_cfg(raw.get("logs_dir", "logs"), "paths.logs_dir", root_dir),
        )


@dataclass(frozen=True, slots=True)
class InputConfig:
    layer: str | None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> InputConfig:
        return cls(layer=_optional_str(raw.get("layer"), "input.layer"))

    @classmethod
    def default(cls) -> InputConfig:
        return cls(layer=None)


@dataclass(frozen=True, slots=True)
class ExtentConfig:
    """Fixed extent, or `auto` to use the input's total bounds."""

    extent: Extent | None

    @property
    def auto(self) -> bool:
        return self.extent is None

    @classmethod
    def from_raw(cls, raw: Any) -> ExtentConfig:
        if isinstance(raw, str):
            if raw.strip().casefold() != "auto":
                raise ValueError("extent must be a mapping or 'auto'")
            return cls(extent=None)
        block = _mapping(raw, "extent")
        return cls(
            extent=Extent(
                xmin=_float(block.get("xmin"), "extent.xmin"),
                xmax=_float(block.get("xmax"), "extent.xmax"),
                ymin=_float(block.get("ymin"), "extent.ymin"),
                ymax=_float(block.get("ymax"), "extent.ymax"),
            )
        )


@dataclass(frozen=True, slots=True)
class ImageConfig:
    width_px: int
    height_px: int

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ImageConfig:
        width_px = _int(raw.get("width_px"), "image.width_px")
        height_px = _int(raw.get("height_px"), "image.height_px")
        if width_px < 1 or height_px < 1:
            raise ValueError("image.width_px and image.height_px must be >= 1")
        return cls(width_px=width_px, height_px=height_px)


@dataclass(frozen=True, slots=True)
class StyleConfig:
    linecolor: str
    linewidth: float | None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> StyleConfig:
        linewidth_raw = raw.get("linewidth", 1)
        linewidth = None if linewidth_raw is None else _float(linewidth_raw, "style.linewidth")
        if linewidth is not None and linewidth < 0:
            raise ValueError("style.linewidth must be >= 0")
        return cls(
            linecolor=_str(raw.get("linecolor", "black"), "style.linecolor"),
            linewidth=linewidth,
        )

    @classmethod
    def default(cls) -> StyleConfig:
        return cls(linecolor="black", linewidth=1.0)


@dataclass(frozen=True, slots=True)
class FillConfig:
    """Palette as written in YAML: color, list, name -> color mapping, colormap name or null."""

    palette: Any
    data_column: str | None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> FillConfig:
        palette = raw.get("palette", "white")
        if isinstance(palette, list):
            palette = tuple(palette)
        elif isinstance(palette, Mapping):
            palette = {str(key): value for key, value in palette.items()}
        elif palette is not None and not isinstance(palette, str):
            raise ValueError("fill.palette must be a string, list, mapping or null")
        return cls(
            palette=palette,
            data_column=_optional_str(raw.get("data_column"), "fill.data_column"),
        )

    @classmethod
    def default(cls) -> FillConfig:
        return cls(palette="white", data_column=None)


@dataclass(frozen=True, slots=True)
class CompositeConfig:
    base_image: Path
    output_png: Path
    alphalayer: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> CompositeConfig:
        alphalayer = _float(raw.get("alphalayer", 1.0), "composite.alphalayer")
        if not 0.0 <= alphalayer <= 1.0:
            raise ValueError("composite.alphalayer must be within [0, 1]")
        return cls(
            base_image=_path_from_cfg(raw.get("base_image"), "composite.base_image", root_dir),
            output_png=_path_from_cfg(raw.get("output_png"), "composite.output_png", root_dir),
            alphalayer=alphalayer,
        )


@dataclass(frozen=True, slots=True)
class AppConfig:
    source_path: Path
    paths: PathsConfig
    input: InputConfig
    extent: ExtentConfig
    image: ImageConfig
    style: StyleConfig
    fill: FillConfig
    composite: CompositeConfig | None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], source_path: Path) -> AppConfig:
        root_dir = source_path.parent.resolve()
        input_raw = raw.get("input")
        style_raw = raw.get("style")
        fill_raw = raw.get("fill")
        composite_raw = raw.get("composite")
        return cls(
            source_path=source_path.resolve(),
            paths=PathsConfig.from_mapping(_mapping(raw.get("paths"), "paths"), root_dir),
            input=(
                InputConfig.default()
                if input_raw is None
                else InputConfig.from_mapping(_mapping(input_raw, "input"))
            ),
            extent=ExtentConfig.from_raw(raw.get("extent")),
            image=ImageConfig.from_mapping(_mapping(raw.get("image"), "image")),
            style=(
                StyleConfig.default()
                if style_raw is None
                else StyleConfig.from_mapping(_mapping(style_raw, "style"))
            ),
            fill=(
                FillConfig.default()
                if fill_raw is None
                else FillConfig.from_mapping(_mapping(fill_raw, "fill"))
            ),
            composite=(
                None
                if composite_raw is None
                else CompositeConfig.from_mapping(_mapping(composite_raw, "composite"), root_dir)
            ),
        )


def load_config(path: str | Path) -> AppConfig:
    """Load and validate the YAML config file into typed settings."""
    cfg_path = Path(path).resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if not isinstance(raw, Mapping):
        raise ValueError("Top-level config must be a YAML mapping")
    return AppConfig.from_mapping(cast(Mapping[str, Any], raw), cfg_path)
