from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
import pytest

from cytodiff.cli import main
from cytodiff.pipeline.io import write_fit_result


@pytest.fixture
def fit_dirs(scenario_fits, tmp_path: Path) -> tuple[Path, Path]:
    left, right = scenario_fits
    return write_fit_result(left, tmp_path / "left"), write_fit_result(right, tmp_path / "right")


def test_table_subcommand_writes_outputs(fit_dirs, tmp_path: Path):
    left, right = fit_dirs
    outdir = tmp_path / "tables"
    code = main(
        [
            "table",
            "--left",
            str(left),
            "--right",
            str(right),
            "--outdir",
            str(outdir),
            "--row-annotation",
            "group",
        ]
    )
    assert code == 0
    colors = pd.read_csv(outdir / "colors.csv", index_col=0, dtype=str)
    assert list(colors.columns) == ["10", "11"]
    assert (outdir / "row_annotation.csv").exists()
    assert (outdir / "logs" / "cytodiff.log").exists()


def test_cli_flags_override_config(fit_dirs, tmp_path: Path):
    left, right = fit_dirs
    cfg = tmp_path / "cfg.json"
    cfg.write_text(json.dumps({"threshold": 0.01, "minimum_dof": 1}), encoding="utf-8")
    outdir = tmp_path / "tables"
    code = main(
        [
            "table",
            "--left",
            str(left),
            "--right",
            str(right),
            "--config",
            str(cfg),
            "--minimum-dof",
            "2",
            "--outdir",
            str(outdir),
        ]
    )
    assert code == 0
    meta = json.loads((outdir / "metadata.json").read_text(encoding="utf-8"))
    assert meta["minimum_dof"] == 2
    assert meta["n_categories_plotted"] == 1


def test_plot_subcommand_writes_image(fit_dirs, tmp_path: Path):
    left, right = fit_dirs
    out = tmp_path / "figs" / "diff.png"
    code = main(
        [
            "plot",
            "--left",
            str(left),
            "--right",
            str(right),
            "--subset",
            'group == "treated"',
            "--show-rownames",
            "--title",
            "treated",
            "--out",
            str(out),
        ]
    )
    assert code == 0
    assert out.exists()
    assert out.stat().st_size > 0
    manifest = json.loads(out.with_suffix(".json").read_text(encoding="utf-8"))
    assert manifest["n_individuals"] == 2
    assert manifest["plot_style"]["categorical_cmap"] == "tab20"


def test_missing_subcommand_exits():
    with pytest.raises(SystemExit):
        main([])
