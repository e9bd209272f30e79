from typing import Any, Dict, List
import os
import json
import numpy as np
import pandas as pd

from .io import ID_COL


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (np.floating, np.float32, np.float64)):
        return float(obj)
    if isinstance(obj, (np.integer, np.int32, np.int64)):
        return int(obj)
    if isinstance(obj, (np.bool_,)):
        return bool(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, pd.Timestamp):
        return obj.isoformat()
    raise TypeError(f"Object of type {obj.__class__.__name__} is not JSON serializable")


def _sanitize_nan(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: _sanitize_nan(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_sanitize_nan(v) for v in obj]
    if isinstance(obj, (float, np.floating)) and (np.isnan(obj) or not np.isfinite(obj)):
        return None
    return obj


def write_json(obj: Any, path: str) -> str:
    """Write ``obj`` as indented JSON; NaN and infinities become null."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w") as f:
        json.dump(_sanitize_nan(obj), f, indent=2, default=_json_default, allow_nan=False)
    return path


def write_text(text: str, path: str) -> str:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w") as f:
        f.write(text)
    return path


def _fmt(x: Any, digits: int = 2) -> str:
    try:
        v = float(x)
    except (TypeError, ValueError):
        return str(x)
    if not np.isfinite(v):
        return "NA"
    return f"{v:.{digits}f}"


def _markdown_table(df: pd.DataFrame, digits: int = 2) -> List[str]:
    cols = [str(c) for c in df.columns]
    lines = ["| " + " | ".join(cols) + " |", "|" + "---|" * len(cols)]
    for row in df.itertuples(index=False):
        cells = [_fmt(v, digits) if isinstance(v, (float, np.floating)) else str(v) for v in row]
        lines.append("| " + " | ".join(cells) + " |")
    return lines


def pharmaco_report(
    subjects: pd.DataFrame,
    pk_data: pd.DataFrame,
    individual: pd.DataFrame,
    population: Dict[str, Any],
    auc_method: str = "trapezoidal",
    n_terminal: int = 4,
) -> str:
    """
    Markdown pharmacometrics report.

    Args:
        subjects: Subject covariates (one row per subject)
        pk_data: Long concentration-time data
        individual: Output of ``nca_by_subject``
        population: Output of ``population_pk_summary``

    Returns:
        Report text
    """
    n_obs = int(len(pk_data))
    lines = [
        "# Pharmacometrics Analysis Report",
        "",
        "## Study Summary",
        "",
        f"- Subjects: {int(subjects[ID_COL].nunique()) if ID_COL in subjects.columns else len(subjects)}",
        f"- Concentration records: {n_obs}",
        f"- Subjects with NCA parameters: {population['n_subjects']}",
    ]
    if "ARM" in subjects.columns:
        for arm, n in subjects["ARM"].value_counts().sort_index().items():
            lines.append(f"- {arm}: {int(n)} subjects")

    lines.extend(["", "## Population PK Parameters", ""])
    labels = [("clearance", "Clearance (L/h)"), ("volume", "Volume (L)"), ("half_life", "Half-life (h)")]
    lines.append("| Parameter | Geometric mean | Geometric CV | Median | Range |")
    lines.append("|---|---|---|---|---|")
    for key, label in labels:
        s = population[key]
        lo, hi = s["range"]
        lines.append(
            f"| {label} | {_fmt(s['geometric_mean'])} | {_fmt(s['geometric_cv'], 3)} "
            f"| {_fmt(s['median'])} | {_fmt(lo)} - {_fmt(hi)} |"
        )

    if "ARM" in individual.columns:
        by_arm = individual.groupby("ARM")[["Cmax", "Tmax", "AUC"]].mean().reset_index()
        lines.extend(["", "## Exposure by Arm (mean)", ""])
        lines.extend(_markdown_table(by_arm))

    lines.extend([
        "",
        "## Methods",
        "",
        "- Cmax and Tmax taken from the observed profile",
        "- AUC by the linear trapezoidal rule" if auc_method == "trapezoidal" else "- AUC by right-endpoint rectangle sum",
        f"- Terminal elimination rate from log-linear regression on the last {n_terminal} samples",
        "",
    ])
    return "\n".join(lines)
