"""
Non-compartmental analysis (NCA) of concentration-time data.

Individual exposure parameters (Cmax, Tmax, AUC, terminal half-life,
clearance, volume) and population summaries over subjects.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Sequence, Tuple
import warnings
import numpy as np
import pandas as pd
from scipy import stats
from scipy.integrate import trapezoid

from .io import ID_COL


AUC_METHODS = ("trapezoidal", "linear")


@dataclass
class PKParameters:
    """Individual PK parameters. Values that cannot be derived are NaN."""

    cmax: float
    tmax: float
    auc: float
    ke: float
    half_life: float
    clearance: float
    vd: float
    cav: float
    c0: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def _as_arrays(times: Sequence[float], conc: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
    t = np.asarray(times, dtype=float)
    c = np.asarray(conc, dtype=float)
    if t.shape != c.shape:
        raise ValueError(f"times and concentrations differ in length ({t.size} vs {c.size})")
    return t, c


def cmax_tmax(times: Sequence[float], conc: Sequence[float]) -> Tuple[float, float]:
    """Maximum concentration and the time of its first occurrence."""
    t, c = _as_arrays(times, conc)
    if c.size == 0:
        raise ValueError("Cannot compute Cmax of an empty profile")
    idx = int(np.nanargmax(c))
    return float(c[idx]), float(t[idx])


def auc(times: Sequence[float], conc: Sequence[float], method: str = "trapezoidal") -> float:
    """
    Area under the concentration-time curve over the sampled interval.

    ``trapezoidal`` is the linear trapezoidal rule; ``linear`` sums
    right-endpoint rectangles, c[i] * (t[i] - t[i-1]). Samples must be in
    time order.
    """
    t, c = _as_arrays(times, conc)
    if method not in AUC_METHODS:
        raise ValueError(f"Unknown AUC method: {method}. Use one of {', '.join(AUC_METHODS)}")
    if t.size < 2:
        return 0.0
    if method == "trapezoidal":
        return float(trapezoid(c, t))
    return float(np.sum(c[1:] * np.diff(t)))


def terminal_elimination(times: Sequence[float], conc: Sequence[float], n_points: int = 4) -> Tuple[float, float]:
    """
    Terminal elimination rate and half-life.

    Fits log(C) against time over the last ``n_points`` positive samples.
    Returns (nan, nan) when fewer than two points are available or the
    fitted slope does not describe a decline.
    """
    t, c = _as_arrays(times, conc)
    keep = c > 0
    t, c = t[keep], c[keep]
    n = min(n_points, t.size)
    if n < 2:
        return float("nan"), float("nan")
    t_term = t[-n:]
    if np.ptp(t_term) == 0:
        return float("nan"), float("nan")
    fit = stats.linregress(t_term, np.log(c[-n:]))
    ke = -float(fit.slope)
    if not np.isfinite(ke) or ke <= 0:
        return float("nan"), float("nan")
    return ke, float(np.log(2) / ke)


def calculate_pk_parameters(
    times: Sequence[float],
    conc: Sequence[float],
    dose: float,
    method: str = "trapezoidal",
    n_terminal: int = 4,
) -> PKParameters:
    """
    Calculate individual PK parameters from one concentration-time profile.

    Only samples with positive concentration at non-negative times are used,
    sorted by time.

    Args:
        times: Sampling times
        conc: Observed concentrations
        dose: Administered dose
        method: AUC method, see ``auc``
        n_terminal: Number of trailing samples for the terminal phase

    Returns:
        PKParameters record
    """
    t, c = _as_arrays(times, conc)
    valid = (c > 0) & (t >= 0)
    t, c = t[valid], c[valid]
    if t.size < 2:
        raise ValueError("Need at least 2 valid concentration-time points")

    order = np.argsort(t, kind="stable")
    t, c = t[order], c[order]

    c_max, t_max = cmax_tmax(t, c)
    area = auc(t, c, method=method)
    ke, half_life = terminal_elimination(t, c, n_points=n_terminal)

    clearance = dose / area if area > 0 else float("nan")
    vd = clearance / ke if np.isfinite(ke) and np.isfinite(clearance) else float("nan")
    cav = area / float(t.max()) if t.max() > 0 else float("nan")
    c0 = dose / vd if np.isfinite(vd) and vd > 0 else float("nan")

    return PKParameters(
        cmax=c_max,
        tmax=t_max,
        auc=area,
        ke=ke,
        half_life=half_life,
        clearance=float(clearance),
        vd=float(vd),
        cav=float(cav),
        c0=float(c0),
    )


def nca_by_subject(
    pk_data: pd.DataFrame,
    subject_col: str = ID_COL,
    time_col: str = "TIME",
    conc_col: str = "CONC",
    dose_col: str = "DOSE",
    method: str = "trapezoidal",
    n_terminal: int = 4,
    carry_cols: Optional[List[str]] = None,
) -> pd.DataFrame:
    """
    Individual NCA parameters for every subject in a long PK table.

    Subjects whose profile cannot be analysed (e.g. placebo, fewer than two
    positive samples) are skipped with a warning.

    Returns:
        One row per subject: subject id, DOSE, Cmax, Tmax, AUC, Half_life,
        CL, Vd and any ``carry_cols`` (first value per subject)
    """
    required = [subject_col, time_col, conc_col, dose_col]
    missing = [c for c in required if c not in pk_data.columns]
    if missing:
        raise ValueError(f"PK data is missing required columns: {', '.join(missing)}")
    if carry_cols is None:
        carry_cols = [c for c in ("ARM",) if c in pk_data.columns]

    rows: List[Dict[str, Any]] = []
    for subject, g in pk_data.groupby(subject_col, sort=True):
        # first dose if the subject has several
        doses = pd.to_numeric(g[dose_col], errors="coerce").dropna()
        dose = float(doses.iloc[0]) if not doses.empty else float("nan")
        try:
            params = calculate_pk_parameters(
                pd.to_numeric(g[time_col], errors="coerce").to_numpy(),
                pd.to_numeric(g[conc_col], errors="coerce").to_numpy(),
                dose,
                method=method,
                n_terminal=n_terminal,
            )
        except ValueError as e:
            warnings.warn(f"Could not calculate parameters for subject {subject}: {e}")
            continue
        rec: Dict[str, Any] = {subject_col: subject}
        for c in carry_cols:
            rec[c] = g[c].iloc[0]
        rec.update({
            "DOSE": dose,
            "Cmax": params.cmax,
            "Tmax": params.tmax,
            "AUC": params.auc,
            "Half_life": params.half_life,
            "CL": params.clearance,
            "Vd": params.vd,
        })
        rows.append(rec)

    if not rows:
        raise ValueError("No individual parameters could be calculated")
    return pd.DataFrame(rows)


def _log_stats(values: pd.Series) -> Dict[str, Any]:
    v = pd.to_numeric(values, errors="coerce")
    v = v[np.isfinite(v) & (v > 0)]
    if v.empty:
        nan = float("nan")
        return {"geometric_mean": nan, "geometric_cv": nan, "median": nan, "range": [nan, nan]}
    logs = np.log(v)
    return {
        "geometric_mean": float(np.exp(logs.mean())),
        "geometric_cv": float(logs.std(ddof=1)) if len(logs) > 1 else float("nan"),
        "median": float(v.median()),
        "range": [float(v.min()), float(v.max())],
    }


def population_pk_summary(individual: pd.DataFrame) -> Dict[str, Any]:
    """
    Population statistics over individual NCA parameters.

    Clearance, volume and half-life are treated as log-normal: geometric
    mean, geometric CV (SD of log values), median and range.
    """
    if individual.empty:
        raise ValueError("No individual parameters to summarise")
    return {
        "n_subjects": int(len(individual)),
        "clearance": _log_stats(individual["CL"]),
        "volume": _log_stats(individual["Vd"]),
        "half_life": _log_stats(individual["Half_life"]),
    }


def summarize_by_group(individual: pd.DataFrame, group_col: str = "ARM") -> pd.DataFrame:
    """Mean and SD of Cmax, Tmax and AUC per group (e.g. dose arm)."""
    if group_col not in individual.columns:
        raise ValueError(f"Column '{group_col}' not found in individual parameters")
    agg = individual.groupby(group_col).agg(
        n=("Cmax", "size"),
        Cmax_mean=("Cmax", "mean"),
        Cmax_sd=("Cmax", "std"),
        Tmax_median=("Tmax", "median"),
        AUC_mean=("AUC", "mean"),
        AUC_sd=("AUC", "std"),
    ).reset_index()
    return agg
