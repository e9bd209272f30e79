"""Filter and aggregation helpers shared by the dashboards.

Every dashboard filter uses the same convention: ``"All"`` (or ``None``)
disables the filter, a scalar selects equal rows and a list selects members.
"""

from typing import Any, Dict, List, Optional, Sequence
import pandas as pd


ALL = "All"


def apply_filters(df: pd.DataFrame, criteria: Optional[Dict[str, Any]] = None) -> pd.DataFrame:
    """
    Filter rows by column values.

    Args:
        df: Table to filter
        criteria: Mapping of column -> value. ``None``/``"All"`` is ignored,
            a list or tuple keeps rows whose value is a member.

    Returns:
        Filtered copy with a fresh index
    """
    out = df
    for column, value in (criteria or {}).items():
        if column not in df.columns:
            raise ValueError(f"Column '{column}' not found in table")
        if value is None or (isinstance(value, str) and value == ALL):
            continue
        if isinstance(value, (list, tuple, set)):
            out = out[out[column].isin(list(value))]
        else:
            out = out[out[column] == value]
    return out.reset_index(drop=True)


def count_by(df: pd.DataFrame, column: str, order: Optional[Sequence[Any]] = None) -> pd.DataFrame:
    if column not in df.columns:
        raise ValueError(f"Column '{column}' not found in table")
    counts = df[column].value_counts(dropna=True)
    if order is not None:
        counts = counts.reindex(list(order), fill_value=0)
    else:
        counts = counts.sort_index()
    out = counts.rename_axis(column).reset_index(name="n")
    out["n"] = out["n"].astype(int)
    return out


def to_long(
    df: pd.DataFrame,
    id_col: str,
    value_cols: List[str],
    var_name: str = "variable",
    value_name: str = "value",
) -> pd.DataFrame:
    missing = [c for c in [id_col, *value_cols] if c not in df.columns]
    if missing:
        raise ValueError(f"Columns not found in table: {', '.join(missing)}")
    return df.melt(id_vars=[id_col], value_vars=value_cols, var_name=var_name, value_name=value_name)
