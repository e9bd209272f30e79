"""
Pharmacodynamic models, dose-exposure simulation and visual predictive checks.
"""

from typing import Optional, Sequence
import numpy as np
import pandas as pd

from .pk import analytic_tmax


EXPOSURE_METRICS = ("AUC", "Cmax")


def emax_effect(conc, emax: float, ec50: float, baseline: float = 0.0, hill: float = 1.0):
    """Sigmoid Emax model: E = E0 + Emax * C^h / (EC50^h + C^h)."""
    c = np.asarray(conc, dtype=float)
    effect = baseline + (emax * c ** hill) / (ec50 ** hill + c ** hill)
    return float(effect) if effect.ndim == 0 else effect


def indirect_response(
    times: Sequence[float],
    conc: Sequence[float],
    kin: float,
    kout: float,
    emax: float,
    ec50: float,
    inhibition: bool = True,
) -> np.ndarray:
    """
    Indirect response model integrated with explicit Euler steps.

    The response starts at the baseline kin/kout. Drug concentration
    inhibits (or stimulates) the zero-order production rate kin.
    """
    t = np.asarray(times, dtype=float)
    c = np.asarray(conc, dtype=float)
    if t.shape != c.shape:
        raise ValueError("times and concentrations differ in length")
    if kout <= 0:
        raise ValueError(f"kout must be positive, got {kout}")

    effect = np.empty_like(t)
    if t.size == 0:
        return effect
    effect[0] = kin / kout
    for i in range(1, t.size):
        dt = t[i] - t[i - 1]
        drug = (emax * c[i]) / (ec50 + c[i])
        mod_factor = 1.0 - drug if inhibition else 1.0 + drug
        effect[i] = effect[i - 1] + dt * (kin * mod_factor - kout * effect[i - 1])
    return effect


def simulate_dose_exposure(
    clearance: float,
    volume: float,
    target_value: float,
    doses: Sequence[float] = tuple(range(25, 501, 25)),
    target_exposure: str = "AUC",
    n_simulations: int = 1000,
    seed: Optional[int] = 42,
) -> pd.DataFrame:
    """
    Monte Carlo dose-exposure simulation for dose selection.

    Between-subject variability is log-normal: CL (SD 0.3), Vd (SD 0.2) and,
    for Cmax, Ka around 0.8/h (SD 0.3).

    Args:
        clearance: Typical clearance
        volume: Typical volume of distribution
        target_value: Exposure a subject needs to reach
        doses: Doses to evaluate
        target_exposure: "AUC" or "Cmax"
        n_simulations: Simulated subjects per dose
        seed: Random seed

    Returns:
        One row per dose with exposure summary and probability of target
        attainment
    """
    if target_exposure not in EXPOSURE_METRICS:
        raise ValueError(f"Unknown exposure metric: {target_exposure}. Use 'AUC' or 'Cmax'")
    if clearance <= 0 or volume <= 0:
        raise ValueError("Typical clearance and volume must be positive")
    if n_simulations < 1:
        raise ValueError("n_simulations must be at least 1")

    rng = np.random.default_rng(seed)
    rows = []
    for dose in doses:
        cl_sim = rng.lognormal(np.log(clearance), 0.3, size=n_simulations)
        vd_sim = rng.lognormal(np.log(volume), 0.2, size=n_simulations)

        if target_exposure == "AUC":
            exposure = dose / cl_sim
        else:
            ke_sim = cl_sim / vd_sim
            ka_sim = rng.lognormal(np.log(0.8), 0.3, size=n_simulations)
            tmax = analytic_tmax(ka_sim, ke_sim)
            with np.errstate(divide="ignore", invalid="ignore"):
                exposure = np.where(
                    np.isclose(ka_sim, ke_sim, rtol=1e-9, atol=0.0),
                    dose / vd_sim * np.exp(-1.0),
                    (dose * ka_sim) / (vd_sim * (ka_sim - ke_sim)) * (np.exp(-ke_sim * tmax) - np.exp(-ka_sim * tmax)),
                )

        mean = float(np.nanmean(exposure))
        rows.append({
            "dose": float(dose),
            "n_simulations": int(n_simulations),
            "mean_exposure": mean,
            "median_exposure": float(np.nanmedian(exposure)),
            "cv_exposure": float(np.nanstd(exposure, ddof=1) / mean) if n_simulations > 1 and mean > 0 else float("nan"),
            "prob_achieving_target": float(np.mean(exposure >= target_value)),
            "p25_exposure": float(np.nanpercentile(exposure, 25)),
            "p75_exposure": float(np.nanpercentile(exposure, 75)),
        })
    return pd.DataFrame(rows)


def recommended_dose(results: pd.DataFrame, min_probability: float = 0.9) -> Optional[float]:
    """Lowest simulated dose whose target attainment reaches ``min_probability``."""
    hits = results[results["prob_achieving_target"] >= min_probability]
    if hits.empty:
        return None
    return float(hits["dose"].min())


def _percentile_table(df: pd.DataFrame, time_col: str, conc_col: str, prefix: str) -> pd.DataFrame:
    g = df.groupby(time_col)[conc_col]
    out = pd.DataFrame({
        f"{prefix}_median": g.median(),
        f"{prefix}_p5": g.quantile(0.05),
        f"{prefix}_p95": g.quantile(0.95),
        f"n_{prefix}": g.size(),
    })
    return out.reset_index()


def vpc_summary(
    observed: pd.DataFrame,
    simulated: pd.DataFrame,
    time_col: str = "TIME",
    conc_col: str = "CONC",
) -> pd.DataFrame:
    """
    Visual predictive check statistics.

    Median, 5th and 95th percentiles of observed and simulated
    concentrations at each observed time point.
    """
    for name, df in (("observed", observed), ("simulated", simulated)):
        missing = [c for c in (time_col, conc_col) if c not in df.columns]
        if missing:
            raise ValueError(f"{name} data is missing columns: {', '.join(missing)}")
    obs = _percentile_table(observed, time_col, conc_col, "obs")
    sim = _percentile_table(simulated, time_col, conc_col, "sim")
    return obs.merge(sim, on=time_col, how="left").sort_values(time_col).reset_index(drop=True)
