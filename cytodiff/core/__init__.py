"""Core compute subpackage."""

from cytodiff.core.align import align_results, normalize_results, reconcile_categories
from cytodiff.core.colors import ColorMatrix, encode_colors
from cytodiff.core.compute import compute_diff
from cytodiff.core.expressions import Expr, parse_expression
from cytodiff.core.filters import filter_categories
from cytodiff.core.types import (
    DEFAULT_RAMP,
    AlignedPair,
    ColorRamp,
    DiffConfig,
    DiffResult,
    FitResult,
)

__all__ = [
    "FitResult",
    "DiffConfig",
    "DiffResult",
    "AlignedPair",
    "ColorRamp",
    "ColorMatrix",
    "DEFAULT_RAMP",
    "Expr",
    "align_results",
    "compute_diff",
    "encode_colors",
    "filter_categories",
    "normalize_results",
    "parse_expression",
    "reconcile_categories",
]
