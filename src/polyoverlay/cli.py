"""CLI entrypoint for the polygon overlay renderer."""

from __future__ import annotations

import argparse
import logging
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from .composite import add_overlay, load_overlay_png, save_overlay_png
from .config import AppConfig, load_config
from .crop import crop_features
from .errors import MissingColumnWarning
from .io_vector import VectorSource, first_existing_column
from .models import Extent
from .overlay import OverlayRequest, PolygonOverlayRenderer
from .palette import Transparent, parse_palette, resolve_fill_colors
from .style import resolve_border
from .util import setup_logging, sha256_file, write_json

LOGGER = logging.getLogger("polyoverlay.cli")


@dataclass(slots=True)
class CommandReport:
    output_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    infos: list[str] = field(default_factory=list)
    summary: dict[str, object] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def add_info(self, msg: str) -> None:
        self.infos.append(msg)


def format_report_lines(report: CommandReport) -> Sequence[str]:
    lines = [f"INFO: {msg}" for msg in report.infos]
    lines.extend(f"WARNING: {msg}" for msg in report.warnings)
    lines.extend(f"ERROR: {msg}" for msg in report.errors)
    status = "OK" if report.ok else "FAILED"
    lines.append(
        f"Result: {status} ({len(report.errors)} errors, {len(report.warnings)} warnings)"
    )
    return lines


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="polyoverlay",
        description="Render polygon overlays for compositing onto height-map visualizations.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", default="overlay.yaml", help="Path to YAML config.")
        p.add_argument("--verbose", action="store_true", help="Enable debug logs.")

    render_p = subparsers.add_parser("render", help="Render the overlay PNG.")
    add_common(render_p)
    render_p.add_argument(
        "--output",
        default=None,
        help="Override paths.output_png from the config.",
    )

    validate_p = subparsers.add_parser(
        "validate",
        help="Check config, input data, data column and palette without rendering.",
    )
    add_common(validate_p)

    return parser


def _load_and_setup(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(args.config)
    setup_logging(cfg.paths.logs_dir / "overlay.log", verbose=args.verbose)
    return cfg


def _resolve_extent(cfg: AppConfig, frame: Any) -> Extent:
    if cfg.extent.extent is not None:
        return cfg.extent.extent
    return Extent.from_bounds(tuple(float(v) for v in frame.total_bounds))


def run_render(cfg: AppConfig, *, output_path: Path | None = None) -> CommandReport:
    """Load features, render the overlay, and write PNG plus optional summary JSON."""
    output = output_path or cfg.paths.output_png
    report = CommandReport(output_path=output)
    source = VectorSource(cfg.paths.input, layer=cfg.input.layer)
    try:
        frame = source.load()
        extent = _resolve_extent(cfg, frame)
    except (OSError, ValueError) as exc:
        report.add_error(f"Failed loading input features: {exc}")
        return report
    report.add_info(f"Loaded {len(frame)} features from {cfg.paths.input}")

    renderer = PolygonOverlayRenderer()
    request = OverlayRequest(
        geometry=frame,
        extent=extent,
        width=cfg.image.width_px,
        height=cfg.image.height_px,
        data_column_fill=cfg.fill.data_column,
        linecolor=cfg.style.linecolor,
        palette=cfg.fill.palette,
        linewidth=cfg.style.linewidth,
    )
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", MissingColumnWarning)
        try:
            result = renderer.render(request)
        except ValueError as exc:
            report.add_error(f"Overlay rendering failed: {exc}")
            return report
    for item in caught:
        if issubclass(item.category, MissingColumnWarning):
            report.add_warning(str(item.message))

    try:
        save_overlay_png(result.image, output)
    except OSError as exc:
        report.add_error(f"Writing overlay to {output} failed: {exc}")
        return report
    report.add_info(f"Overlay written to {output}")
    report.summary = result.summary()

    if cfg.composite is not None:
        try:
            base = load_overlay_png(cfg.composite.base_image)
            blended = add_overlay(base, result.image, alphalayer=cfg.composite.alphalayer)
        except (OSError, ValueError) as exc:
            report.add_error(f"Compositing onto {cfg.composite.base_image} failed: {exc}")
            return report
        try:
            save_overlay_png(blended, cfg.composite.output_png)
        except OSError as exc:
            report.add_error(f"Writing composite to {cfg.composite.output_png} failed: {exc}")
            return report
        report.add_info(f"Composite written to {cfg.composite.output_png}")

    if cfg.paths.summary_json is not None:
        payload = dict(report.summary)
        payload["config_hash_sha256"] = sha256_file(cfg.source_path)
        payload["input"] = cfg.paths.input
        payload["output_png"] = output
        write_json(cfg.paths.summary_json, payload)
        report.add_info(f"Summary written to {cfg.paths.summary_json}")
    return report


def run_validate(cfg: AppConfig) -> CommandReport:
    """Dry-run the crop and color stages to surface configuration problems."""
    report = CommandReport()
    if cfg.composite is not None and not cfg.composite.base_image.exists():
        report.add_error(f"Missing composite base image: {cfg.composite.base_image}")

    try:
        palette = parse_palette(cfg.fill.palette)
        resolve_border(cfg.style.linewidth, cfg.style.linecolor)
    except ValueError as exc:
        report.add_error(f"Invalid style: {exc}")
        return report
    report.add_info(f"Palette resolves to {type(palette).__name__}")

    source = VectorSource(cfg.paths.input, layer=cfg.input.layer)
    try:
        frame = source.load()
        extent = _resolve_extent(cfg, frame)
        cropped = crop_features(frame, extent)
    except (OSError, ValueError) as exc:
        report.add_error(f"Failed preparing input features: {exc}")
        return report
    report.add_info(f"{len(cropped)} of {len(frame)} features intersect the extent")

    column = cfg.fill.data_column
    if column is not None and column not in source.column_names(frame):
        suggestion = first_existing_column(source.column_names(frame), [column])
        hint = f" (did you mean `{suggestion}`?)" if suggestion else ""
        report.add_warning(f"Data column `{column}` not found in {cfg.paths.input}{hint}")

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", MissingColumnWarning)
        try:
            fills = resolve_fill_colors(cropped, palette, column)
        except ValueError as exc:
            report.add_error(f"Palette cannot be applied: {exc}")
            return report
    if isinstance(fills, Transparent):
        report.add_info("Fill disabled; only borders will be drawn")
    else:
        unpainted = sum(1 for color in fills if color is None)
        if unpainted:
            report.add_warning(f"{unpainted} feature(s) resolve to no fill color")
    report.summary = {"input_features": len(frame), "features_in_extent": len(cropped)}
    return report


def _dispatch(args: argparse.Namespace) -> int:
    cfg = _load_and_setup(args)
    command = str(args.command)
    if command == "render":
        output = Path(args.output).resolve() if args.output else None
        report = run_render(cfg, output_path=output)
    elif command == "validate":
        report = run_validate(cfg)
    else:
        raise ValueError(f"Unknown command: {command}")
    for line in format_report_lines(report):
        LOGGER.info(line)
    if not report.ok:
        LOGGER.error("Command `%s` failed with %d error(s).", command, len(report.errors))
        return 1
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return _dispatch(args)


if __name__ == "__main__":
    raise SystemExit(main())
