"""File-based entrypoints: fit result I/O, logging and output writers."""

from cytodiff.pipeline.io import (
    load_fit_result,
    setup_logger,
    write_diff_outputs,
    write_fit_result,
)

__all__ = ["load_fit_result", "setup_logger", "write_diff_outputs", "write_fit_result"]
