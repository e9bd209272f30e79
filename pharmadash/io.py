import os
from typing import Dict, List, Tuple
import pandas as pd


ID_COL = "SUBJID"
STUDY_COL = "STUDYID"


def read_table(path: str) -> pd.DataFrame:
    if not os.path.exists(path):
        raise FileNotFoundError(f"Missing table: {path}")
    na_vals = [".", ""]
    kwargs = dict(low_memory=False, na_values=na_vals)
    try:
        return pd.read_csv(path, encoding="utf-8", **kwargs)
    except UnicodeDecodeError:
        return pd.read_csv(path, encoding="latin1", **kwargs)


def ensure_ids_are_string(df: pd.DataFrame, id_cols: Tuple[str, ...] = (ID_COL, STUDY_COL)) -> pd.DataFrame:
    for col in id_cols:
        if col in df.columns:
            df[col] = df[col].astype("string")
    return df


def audit_tables(tables: Dict[str, pd.DataFrame]) -> Dict[str, Dict[str, int]]:
    summary: Dict[str, Dict[str, int]] = {}
    for name, df in tables.items():
        summary[name] = {
            "rows": int(len(df)),
            "cols": int(df.shape[1]),
            "n_id": int(df[ID_COL].nunique()) if ID_COL in df.columns else 0,
            "n_study": int(df[STUDY_COL].nunique()) if STUDY_COL in df.columns else 0,
        }
    return summary


def write_tables(tables: Dict[str, pd.DataFrame], out_dir: str, prefix: str = "") -> List[str]:
    """Write each table to ``<out_dir>/<prefix><name>.csv`` and return the paths."""
    os.makedirs(out_dir, exist_ok=True)
    paths: List[str] = []
    for name, df in tables.items():
        p = os.path.join(out_dir, f"{prefix}{name}.csv")
        df.to_csv(p, index=False)
        paths.append(p)
    return paths
