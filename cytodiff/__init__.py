"""cytodiff public API."""

from cytodiff._version import __version__
from cytodiff.core.compute import compute_diff
from cytodiff.core.expressions import parse_expression
from cytodiff.core.types import DEFAULT_RAMP, ColorRamp, DiffConfig, DiffResult, FitResult
from cytodiff.plotting.diff import plot_diff, render_diff


def load_fit_result(*args, **kwargs):
    """Lazy wrapper to keep file I/O helpers out of the import path."""
    from cytodiff.pipeline.io import load_fit_result as _load_fit_result

    return _load_fit_result(*args, **kwargs)


__all__ = [
    "__version__",
    "FitResult",
    "DiffConfig",
    "DiffResult",
    "ColorRamp",
    "DEFAULT_RAMP",
    "compute_diff",
    "load_fit_result",
    "parse_expression",
    "plot_diff",
    "render_diff",
]
