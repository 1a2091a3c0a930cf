"""Command-line interface for cytodiff."""

from __future__ import annotations

import argparse
import dataclasses
import warnings
from pathlib import Path
from typing import Iterable

import matplotlib

from cytodiff.config import diff_config_from_dict, load_json_config
from cytodiff.core.compute import compute_diff
from cytodiff.core.types import DiffConfig
from cytodiff.pipeline.io import load_fit_result, setup_logger, write_diff_outputs, write_json
from cytodiff.plotting.diff import render_diff
from cytodiff.plotting.heatmap import save_figure
from cytodiff.plotting.styles import apply_plot_style, plot_style_dict

LOGGER_NAME = "cytodiff"


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--left", required=True, help="Fit result directory (left side)")
    parser.add_argument("--right", required=True, help="Fit result directory (right side)")
    parser.add_argument("--config", default=None, help="JSON config with filter options")
    parser.add_argument("--threshold", type=float, default=None, help="Mean difference threshold")
    parser.add_argument("--minimum-dof", type=int, default=None, help="Minimum degree of functionality")
    parser.add_argument("--maximum-dof", type=int, default=None, help="Maximum degree of functionality")
    parser.add_argument(
        "--must-express",
        nargs="+",
        default=None,
        help='Marker expressions, e.g. "TNFa & IFNg"; any match keeps a category',
    )
    parser.add_argument("--subset", default=None, help="Metadata predicate selecting individuals")
    parser.add_argument(
        "--row-annotation", nargs="+", default=None, help="Metadata columns annotating rows"
    )
    parser.add_argument("--show-rownames", action="store_true", default=None)
    parser.add_argument("--show-colnames", action="store_true", default=None)


def _resolve_config(args: argparse.Namespace) -> DiffConfig:
    data = load_json_config(args.config) if args.config else {}
    config = diff_config_from_dict(data)
    overrides = {
        "threshold": args.threshold,
        "minimum_dof": args.minimum_dof,
        "maximum_dof": args.maximum_dof,
        "must_express": None if args.must_express is None else tuple(args.must_express),
        "subset": args.subset,
        "row_annotation": None if args.row_annotation is None else tuple(args.row_annotation),
        "show_rownames": args.show_rownames,
        "show_colnames": args.show_colnames,
    }
    return dataclasses.replace(config, **{k: v for k, v in overrides.items() if v is not None})


def _run(args: argparse.Namespace, outdir: Path):
    logger = setup_logger(outdir / "logs" / "cytodiff.log", LOGGER_NAME)
    config = _resolve_config(args)
    logger.info("Loading fits: left=%s right=%s", args.left, args.right)
    left = load_fit_result(args.left)
    right = load_fit_result(args.right)
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        result = compute_diff(left, right, config, logger=logger)
    for w in caught:
        logger.warning("%s", w.message)
    return config, result, logger


def plot_main(argv: Iterable[str] | None = None) -> int:
    """Render the differential heatmap to an image file plus a JSON manifest.

    Args:
        argv: Command-line arguments (if None, uses sys.argv).

    Returns:
        Exit code (0 for success).
    """
    parser = argparse.ArgumentParser(description="Plot a differential mean-gamma heatmap")
    _add_common_args(parser)
    parser.add_argument("--out", required=True, help="Output image path (.png, .pdf, ...)")
    parser.add_argument("--title", default=None, help="Figure title")
    args = parser.parse_args(list(argv) if argv is not None else None)

    matplotlib.use("Agg")
    apply_plot_style()
    out_path = Path(args.out)
    config, result, logger = _run(args, out_path.parent)
    fig = render_diff(
        result,
        show_rownames=config.show_rownames,
        show_colnames=config.show_colnames,
        title=args.title,
    )
    save_figure(fig, out_path)
    manifest_path = out_path.with_suffix(".json")
    write_json(manifest_path, {**result.metadata, "plot_style": plot_style_dict()})
    logger.info(
        "Wrote %s (%d individuals x %d categories)",
        out_path.as_posix(),
        result.colors.shape[0],
        result.colors.shape[1],
    )
    return 0


def table_main(argv: Iterable[str] | None = None) -> int:
    """Write the colour matrix and companion tables as CSV/JSON.

    Args:
        argv: Command-line arguments (if None, uses sys.argv).

    Returns:
        Exit code (0 for success).
    """
    parser = argparse.ArgumentParser(description="Export differential colour tables")
    _add_common_args(parser)
    parser.add_argument("--outdir", required=True, help="Output directory")
    args = parser.parse_args(list(argv) if argv is not None else None)

    outdir = Path(args.outdir)
    _, result, logger = _run(args, outdir)
    paths = write_diff_outputs(outdir, result)
    for key, path in sorted(paths.items()):
        logger.info("Wrote %s: %s", key, path.as_posix())
    return 0


def main(argv: Iterable[str] | None = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Command-line arguments (if None, uses sys.argv).

    Returns:
        Exit code.
    """
    parser = argparse.ArgumentParser(description="cytodiff CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("plot", help="Render the differential heatmap", add_help=False)
    sub.add_parser("table", help="Export colour and difference tables", add_help=False)

    args, remainder = parser.parse_known_args(list(argv) if argv is not None else None)
    if args.command == "plot":
        return plot_main(remainder)
    if args.command == "table":
        return table_main(remainder)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
