"""
Clinical data viewer: synthetic demographics, vital signs and adverse events.

Tables use SDTM-like column names (STUDYID, SUBJID, SITEID, ...).
"""

from typing import Dict, Optional
import numpy as np
import pandas as pd

from .io import ID_COL, STUDY_COL


ARMS = ["Placebo", "Drug A", "Drug B"]
RACES = ["WHITE", "BLACK", "ASIAN", "HISPANIC"]
VISITS = ["Baseline", "Week 4", "Week 8"]
AE_TERMS = ["Headache", "Nausea", "Fatigue", "Dizziness"]
SEVERITIES = ["MILD", "MODERATE", "SEVERE"]

# name -> (mean, sd, unit)
VITAL_PARAMS = {
    "Systolic BP": (120.0, 15.0, "mmHg"),
    "Diastolic BP": (80.0, 10.0, "mmHg"),
    "Heart Rate": (70.0, 10.0, "bpm"),
}

DATASET_NAMES = {
    "Demographics": "dm",
    "Vital Signs": "vs",
    "Adverse Events": "ae",
}


def generate_clinical_data(
    n_subjects: int = 100,
    n_sites: int = 10,
    n_vitals: int = 500,
    n_ae: int = 150,
    study_id: str = "STUDY001",
    seed: Optional[int] = None,
) -> Dict[str, pd.DataFrame]:
    """Generate DM, VS and AE tables for one study.

    Vital-sign and AE rows reference subjects sampled from DM.
    """
    if n_subjects < 1 or n_sites < 1:
        raise ValueError("n_subjects and n_sites must be at least 1")
    rng = np.random.default_rng(seed)

    sites = [f"SITE{i:02d}" for i in range(1, n_sites + 1)]
    dm = pd.DataFrame({
        STUDY_COL: study_id,
        "SITEID": rng.choice(sites, n_subjects),
        ID_COL: [f"SUBJ{i:03d}" for i in range(1, n_subjects + 1)],
        "AGE": rng.integers(18, 76, n_subjects),
        "SEX": rng.choice(["M", "F"], n_subjects),
        "RACE": rng.choice(RACES, n_subjects),
        "ARM": rng.choice(ARMS, n_subjects),
    })

    params = rng.choice(list(VITAL_PARAMS), n_vitals)
    means = np.array([VITAL_PARAMS[p][0] for p in params])
    sds = np.array([VITAL_PARAMS[p][1] for p in params])
    vs = pd.DataFrame({
        STUDY_COL: study_id,
        ID_COL: rng.choice(dm[ID_COL].to_numpy(), n_vitals),
        "VISIT": rng.choice(VISITS, n_vitals),
        "PARAM": params,
        "VALUE": rng.normal(means, sds),
        "UNIT": [VITAL_PARAMS[p][2] for p in params],
    })

    ae = pd.DataFrame({
        STUDY_COL: study_id,
        ID_COL: rng.choice(dm[ID_COL].to_numpy(), n_ae),
        "AETERM": rng.choice(AE_TERMS, n_ae),
        "SEVERITY": rng.choice(SEVERITIES, n_ae, p=[0.6, 0.3, 0.1]),
        "RELATED": rng.choice(["YES", "NO"], n_ae, p=[0.4, 0.6]),
    })

    return {"dm": dm, "vs": vs, "ae": ae}


def study_overview(data: Dict[str, pd.DataFrame]) -> Dict[str, float]:
    dm, ae = data["dm"], data["ae"]
    return {
        "total_subjects": int(len(dm)),
        "total_sites": int(dm["SITEID"].nunique()),
        "total_aes": int(len(ae)),
        "mean_age": round(float(dm["AGE"].mean()), 1) if len(dm) else float("nan"),
    }


def demographics_summary(dm: pd.DataFrame, by: str = "ARM") -> pd.DataFrame:
    """Subject counts, age and sex/race breakdown per group."""
    g = dm.groupby(by)
    out = g.agg(
        n=(ID_COL, "size"),
        age_mean=("AGE", "mean"),
        age_sd=("AGE", "std"),
        age_min=("AGE", "min"),
        age_max=("AGE", "max"),
    )
    out["pct_female"] = g["SEX"].apply(lambda s: float((s == "F").mean() * 100))
    race = pd.crosstab(dm[by], dm["RACE"])
    race.columns = [f"n_{c}" for c in race.columns]
    return out.join(race).reset_index()


def subjects_by_site(dm: pd.DataFrame) -> pd.DataFrame:
    """Subject counts per site and treatment arm."""
    tab = pd.crosstab(dm["SITEID"], dm["ARM"])
    tab["Total"] = tab.sum(axis=1)
    return tab.reset_index()


def _visit_order(visits: pd.Series) -> list:
    known = [v for v in VISITS if v in set(visits)]
    extra = sorted(set(visits) - set(known))
    return known + extra


def vitals_by_visit(vs: pd.DataFrame, param: str) -> pd.DataFrame:
    """Mean, SD, SE and n of one vital-sign parameter per visit."""
    sub = vs[vs["PARAM"] == param]
    if sub.empty:
        return pd.DataFrame(columns=["VISIT", "mean", "sd", "se", "n"])
    out = sub.groupby("VISIT")["VALUE"].agg(mean="mean", sd="std", n="size")
    out["se"] = out["sd"] / np.sqrt(out["n"])
    out = out.reindex(_visit_order(sub["VISIT"])).reset_index()
    return out[["VISIT", "mean", "sd", "se", "n"]]


def change_from_baseline(vs: pd.DataFrame, param: str, baseline_visit: str = "Baseline") -> pd.DataFrame:
    """
    Per-subject change from baseline for one parameter.

    Repeated measurements at the same visit are averaged first. Subjects
    without a baseline value are dropped.
    """
    sub = vs[vs["PARAM"] == param]
    per_visit = sub.groupby([ID_COL, "VISIT"])["VALUE"].mean().reset_index()
    base = per_visit[per_visit["VISIT"] == baseline_visit][[ID_COL, "VALUE"]].rename(columns={"VALUE": "BASE"})
    post = per_visit[per_visit["VISIT"] != baseline_visit].rename(columns={"VALUE": "AVAL"})
    out = post.merge(base, on=ID_COL, how="inner")
    out["CHG"] = out["AVAL"] - out["BASE"]
    out["PCHG"] = np.where(out["BASE"] != 0, out["CHG"] / out["BASE"] * 100, np.nan)
    order = {v: i for i, v in enumerate(_visit_order(out["VISIT"]))}
    out = out.sort_values([ID_COL, "VISIT"], key=lambda s: s.map(order) if s.name == "VISIT" else s)
    return out.reset_index(drop=True)


def select_dataset(data: Dict[str, pd.DataFrame], name: str) -> pd.DataFrame:
    """Return a table by its display name ("Demographics", "Vital Signs", "Adverse Events")."""
    if name not in DATASET_NAMES:
        raise KeyError(f"Unknown dataset '{name}'. Choose from: {', '.join(DATASET_NAMES)}")
    return data[DATASET_NAMES[name]]
