"""Pipeline I/O and logging helpers."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import pandas as pd

from cytodiff.core.types import DiffResult, FitResult

MANIFEST_NAME = "fit.json"
DEFAULT_FILES = {
    "mean_gamma": "mean_gamma.csv",
    "categories": "categories.csv",
    "metadata": "metadata.csv",
}
# Optional label column in categories.csv; labels are always recomputed.
CATEGORY_LABEL_COLUMN = "category"


def ensure_dir(path: str | Path) -> None:
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)


def write_json(path: str | Path, payload: dict[str, Any]) -> None:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)


def setup_logger(log_path: Path, logger_name: str) -> logging.Logger:
    ensure_dir(log_path.parent)
    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")
    fh = logging.FileHandler(log_path, mode="w", encoding="utf-8")
    fh.setFormatter(formatter)
    logger.addHandler(fh)
    sh = logging.StreamHandler()
    sh.setFormatter(formatter)
    logger.addHandler(sh)
    return logger


def load_fit_result(path: str | Path) -> FitResult:
    """Read a fit result directory.

    The directory holds `fit.json` (``{"individual_id": ...}``, optionally
    overriding file names) plus `mean_gamma.csv` (first column = individual
    ids, last column = null category), `categories.csv` (0/1 marker columns)
    and `metadata.csv`.
    """
    root = Path(path)
    manifest_path = root / MANIFEST_NAME
    if not manifest_path.exists():
        raise FileNotFoundError(f"Fit manifest not found: {manifest_path}")
    with manifest_path.open("r", encoding="utf-8") as fh:
        manifest = json.load(fh)
    if not isinstance(manifest, dict) or "individual_id" not in manifest:
        raise ValueError(f"{manifest_path} must be a JSON object with an 'individual_id' key.")
    individual_id = str(manifest["individual_id"])

    files = {key: root / str(manifest.get(key, name)) for key, name in DEFAULT_FILES.items()}
    for key, file_path in files.items():
        if not file_path.exists():
            raise FileNotFoundError(f"Fit {key} table not found: {file_path}")

    # Read as text first so identifiers like "007" survive.
    raw = pd.read_csv(files["mean_gamma"], dtype=str)
    mean_gamma = raw.set_index(raw.columns[0]).astype(float)
    categories = pd.read_csv(files["categories"])
    if CATEGORY_LABEL_COLUMN in categories.columns:
        categories = categories.drop(columns=[CATEGORY_LABEL_COLUMN])
    metadata = pd.read_csv(files["metadata"], dtype={individual_id: str})
    return FitResult(
        mean_gamma=mean_gamma,
        categories=categories,
        metadata=metadata,
        individual_id=individual_id,
    )


def write_fit_result(fit: FitResult, path: str | Path) -> Path:
    """Write `fit` in the directory layout read by `load_fit_result`."""
    root = Path(path)
    ensure_dir(root)
    fit.mean_gamma.to_csv(root / DEFAULT_FILES["mean_gamma"], index_label="individual")
    fit.categories.to_csv(root / DEFAULT_FILES["categories"], index=False)
    fit.metadata.to_csv(root / DEFAULT_FILES["metadata"], index=False)
    write_json(root / MANIFEST_NAME, {"individual_id": fit.individual_id})
    return root


def write_diff_outputs(outdir: str | Path, result: DiffResult) -> dict[str, Path]:
    """Write colour, difference, category and annotation tables plus run metadata."""
    out = Path(outdir)
    ensure_dir(out)
    paths = {
        "colors": out / "colors.csv",
        "difference": out / "difference.csv",
        "categories": out / "categories.csv",
        "metadata": out / "metadata.json",
    }
    result.colors.to_hex().to_csv(paths["colors"], index_label="individual")
    result.difference.to_csv(paths["difference"], index_label="individual")
    result.categories.to_csv(paths["categories"], index_label="category")
    if result.row_annotation is not None:
        paths["row_annotation"] = out / "row_annotation.csv"
        result.row_annotation.to_csv(paths["row_annotation"], index_label="individual")
    write_json(paths["metadata"], result.metadata)
    return paths
