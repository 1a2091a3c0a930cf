"""Per-cell colour encoding of a pair of aligned mean-gamma matrices.

Each cell gets a hue from the log-ratio of the two source values pushed
through a diverging ramp, and an opacity from their joint magnitude, so both
the direction of a difference and how much response backs it are visible.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Sequence

import numpy as np
import pandas as pd
from matplotlib.colors import hsv_to_rgb, rgb_to_hsv, to_hex, to_rgb

from cytodiff.core.types import DEFAULT_RAMP, ColorRamp
from cytodiff.core.utils import finite_2d


@dataclass(frozen=True)
class ColorMatrix:
    """Literal per-cell colours on a labelled grid.

    - `hsv`: shape (rows, columns, 3), components in [0, 1].
    - `alpha`: shape (rows, columns), in [0, 1].
    - `signal`: the normalised log-ratio that picked each hue.
    """

    hsv: np.ndarray
    alpha: np.ndarray
    signal: np.ndarray
    rows: tuple[str, ...]
    columns: tuple[str, ...]

    @property
    def shape(self) -> tuple[int, int]:
        return (len(self.rows), len(self.columns))

    def rgba(self) -> np.ndarray:
        rgb = hsv_to_rgb(self.hsv) if self.hsv.size else np.zeros(self.hsv.shape)
        return np.concatenate([rgb, self.alpha[..., None]], axis=-1)

    def to_hex(self) -> pd.DataFrame:
        """`#rrggbbaa` strings, one per cell."""
        rgba = self.rgba()
        cells = [[to_hex(rgba[i, j], keep_alpha=True) for j in range(rgba.shape[1])] for i in range(rgba.shape[0])]
        return pd.DataFrame(cells, index=list(self.rows), columns=list(self.columns))

    def select_columns(self, labels: Sequence[str]) -> ColorMatrix:
        pos = [self.columns.index(lab) for lab in labels]
        return replace(
            self,
            hsv=self.hsv[:, pos, :],
            alpha=self.alpha[:, pos],
            signal=self.signal[:, pos],
            columns=tuple(labels),
        )

    def take_rows(self, order: Sequence[int]) -> ColorMatrix:
        idx = np.asarray(order, dtype=int)
        return replace(
            self,
            hsv=self.hsv[idx, :, :],
            alpha=self.alpha[idx, :],
            signal=self.signal[idx, :],
            rows=tuple(self.rows[i] for i in idx),
        )


def log_ratio(left: np.ndarray, right: np.ndarray) -> np.ndarray:
    return np.log1p(left) - np.log1p(right)


def normalize_signal(signal: np.ndarray) -> np.ndarray:
    """Shift by the maximum, divide by the range, clamp negatives to zero.

    The shift is by `max`, not `-min`, so the scale is intentionally
    asymmetric. A constant signal maps to the ramp midpoint.
    """
    sig = np.asarray(signal, dtype=float)
    if sig.size == 0:
        raise ValueError("Cannot normalise an empty signal.")
    lo = float(np.min(sig))
    hi = float(np.max(sig))
    span = hi - lo
    if span == 0.0:
        return np.full(sig.shape, 0.5)
    out = (sig + hi) / span
    out[out < 0] = 0.0
    return out


def ramp_rgb(values: np.ndarray, ramp: ColorRamp = DEFAULT_RAMP) -> np.ndarray:
    """Linear RGB interpolation along the ramp; values past 1 saturate."""
    vals = np.asarray(values, dtype=float)
    stops = np.asarray([to_rgb(c) for c in ramp.colors], dtype=float)
    flat = vals.ravel()
    channels = [np.interp(flat, ramp.positions, stops[:, k]) for k in range(3)]
    return np.stack(channels, axis=-1).reshape(vals.shape + (3,))


def joint_alpha(left: np.ndarray, right: np.ndarray) -> np.ndarray:
    return np.clip(np.sqrt(left**2 + right**2) / np.sqrt(2.0), 0.0, 1.0)


def encode_colors(
    left: pd.DataFrame,
    right: pd.DataFrame,
    ramp: ColorRamp = DEFAULT_RAMP,
) -> ColorMatrix:
    """Encode every cell of two aligned matrices as an HSV + alpha colour.

    Operates over the whole aligned grid so the colour scale is global;
    restrict the result to filtered columns afterwards.
    """
    if list(left.index) != list(right.index) or list(left.columns) != list(right.columns):
        raise ValueError("left and right must share identical row and column labels.")
    x = finite_2d("left", left.to_numpy(dtype=float))
    y = finite_2d("right", right.to_numpy(dtype=float))
    if x.size == 0:
        raise ValueError("Cannot encode colours for an empty matrix.")

    signal = normalize_signal(log_ratio(x, y))
    hsv = rgb_to_hsv(ramp_rgb(signal, ramp))
    return ColorMatrix(
        hsv=hsv,
        alpha=joint_alpha(x, y),
        signal=signal,
        rows=tuple(str(r) for r in left.index),
        columns=tuple(str(c) for c in left.columns),
    )
