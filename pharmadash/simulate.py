from typing import Dict, Mapping, Optional, Sequence
import numpy as np
import pandas as pd

from .io import ID_COL
from .pk import DEFAULT_TIME_POINTS, one_compartment_concentration


DEFAULT_DOSE_MAP = {"Placebo": 0.0, "Low Dose": 50.0, "Medium Dose": 100.0, "High Dose": 200.0}

# Typical values of the covariate model
TYPICAL_CL = 2.5
TYPICAL_VD = 50.0
TYPICAL_KA = 0.8
KA_SD = 0.2
MIN_KA = 0.05


def simulate_subjects(
    n_subjects: int = 50,
    dose_map: Optional[Mapping[str, float]] = None,
    rng: Optional[np.random.Generator] = None,
) -> pd.DataFrame:
    """Subject covariates and individual PK parameters for a parallel-arm study.

    CL scales allometrically with weight and with creatinine clearance,
    Vd linearly with weight: CL = 2.5*(WT/70)^0.75*(CRCL/90)^0.5,
    Vd = 50*WT/70, Ke = CL/Vd.
    """
    if n_subjects < 1:
        raise ValueError("n_subjects must be at least 1")
    dose_map = dict(dose_map or DEFAULT_DOSE_MAP)
    rng = rng if rng is not None else np.random.default_rng()

    arms = list(dose_map.keys())
    subjects = pd.DataFrame({
        ID_COL: [f"SUBJ{i:03d}" for i in range(1, n_subjects + 1)],
        "WEIGHT": rng.normal(70, 10, n_subjects).clip(min=35.0),
        "AGE": rng.normal(45, 12, n_subjects).clip(min=18.0),
        "SEX": rng.choice(["M", "F"], n_subjects),
        "CRCL": rng.normal(90, 20, n_subjects).clip(min=15.0),
        "ARM": rng.choice(arms, n_subjects),
    })
    subjects["DOSE"] = subjects["ARM"].map(dose_map).astype(float)

    subjects["CL"] = TYPICAL_CL * (subjects["WEIGHT"] / 70) ** 0.75 * (subjects["CRCL"] / 90) ** 0.5
    subjects["Vd"] = TYPICAL_VD * (subjects["WEIGHT"] / 70)
    subjects["Ka"] = rng.normal(TYPICAL_KA, KA_SD, n_subjects).clip(min=MIN_KA)
    subjects["Ke"] = subjects["CL"] / subjects["Vd"]
    return subjects


def simulate_concentrations(
    subjects: pd.DataFrame,
    time_points: Sequence[float] = DEFAULT_TIME_POINTS,
    residual_cv: float = 0.1,
    rng: Optional[np.random.Generator] = None,
) -> pd.DataFrame:
    """Observed concentrations: model prediction with proportional residual error."""
    rng = rng if rng is not None else np.random.default_rng()
    times = np.asarray(list(time_points), dtype=float)

    frames = []
    for subj in subjects.itertuples(index=False):
        pred = one_compartment_concentration(times, subj.DOSE, subj.Ka, subj.Ke, subj.Vd)
        obs = pred * (1.0 + rng.normal(0.0, residual_cv, times.size))
        frames.append(pd.DataFrame({
            ID_COL: getattr(subj, ID_COL),
            "TIME": times,
            "CONC": np.maximum(obs, 0.0),
            "IPRED": pred,
            "DOSE": subj.DOSE,
            "ARM": subj.ARM,
            "WEIGHT": subj.WEIGHT,
        }))
    return pd.concat(frames, ignore_index=True)


def simulate_pk_study(
    n_subjects: int = 50,
    time_points: Sequence[float] = DEFAULT_TIME_POINTS,
    dose_map: Optional[Mapping[str, float]] = None,
    residual_cv: float = 0.1,
    seed: Optional[int] = 123,
) -> Dict[str, pd.DataFrame]:
    """Simulate a PK study; returns {"subjects": ..., "pk_data": ...}."""
    rng = np.random.default_rng(seed)
    subjects = simulate_subjects(n_subjects, dose_map=dose_map, rng=rng)
    pk_data = simulate_concentrations(subjects, time_points=time_points, residual_cv=residual_cv, rng=rng)
    return {"subjects": subjects, "pk_data": pk_data}


def simulate_replicates(
    n_replicates: int,
    n_subjects: int = 50,
    time_points: Sequence[float] = DEFAULT_TIME_POINTS,
    dose_map: Optional[Mapping[str, float]] = None,
    residual_cv: float = 0.1,
    seed: Optional[int] = 123,
) -> pd.DataFrame:
    """Stack replicate simulated studies (column ``sim``) for predictive checks."""
    if n_replicates < 1:
        raise ValueError("n_replicates must be at least 1")
    rng = np.random.default_rng(seed)
    sims = []
    for sim in range(n_replicates):
        subjects = simulate_subjects(n_subjects, dose_map=dose_map, rng=rng)
        pk = simulate_concentrations(subjects, time_points=time_points, residual_cv=residual_cv, rng=rng)
        pk["sim"] = sim
        sims.append(pk)
    return pd.concat(sims, ignore_index=True)


def mean_profiles(pk_data: pd.DataFrame, group_col: str = "ARM") -> pd.DataFrame:
    """Mean, SD and count of concentrations per group and time point."""
    out = pk_data.groupby([group_col, "TIME"])["CONC"].agg(
        mean_conc="mean", sd_conc="std", n="size"
    ).reset_index()
    out["sd_conc"] = out["sd_conc"].fillna(0.0)
    return out
