"""
Regulatory submission tracker.

Studies, submission packages, tasks and documents for a small portfolio,
plus the status metrics, deadline and task-board views built on them.
"""

import datetime as dt
from typing import Any, Dict, Optional
import numpy as np
import pandas as pd

from .tables import apply_filters


DATA_START = pd.Timestamp("2023-01-01")

TASK_STATUSES = ["Not Started", "In Progress", "Completed"]
ASSIGNEES = ["John Smith", "Jane Doe", "Mike Johnson", "Sarah Wilson", "Tom Brown"]
TASK_TYPES = ["Development", "Analysis", "Writing", "Review", "Submission"]
DOC_TYPES = ["Protocol", "Report", "Analysis", "Letter", "Form", "Dataset"]
DOC_STATUSES = ["Draft", "Review", "Approved", "Final"]

# Number of tasks planned for each of the 15 submissions
TASKS_PER_SUBMISSION = [3, 3, 3, 4, 4, 4, 4, 4, 4, 3, 3, 4, 3, 2, 2]

TASK_NAMES = {
    "IND": ["Protocol Development", "Data Analysis", "Report Writing", "Safety Review",
            "AE Coding", "Narrative Writing", "Annual Report", "Data Update"],
    "NDA": ["Module 1 Cover Letter", "Module 2 Summaries", "Module 3 CMC", "Module 4 Nonclinical",
            "Module 5 Clinical", "Statistical Analysis", "Data Integration", "Quality Review", "Final Assembly"],
    "BLA": ["CMC Documentation", "Manufacturing Data", "Quality Control", "Clinical Study Reports",
            "Efficacy Analysis", "Safety Analysis", "Nonclinical Studies", "Toxicology Reports"],
    "ANDA": ["Bioequivalence Analysis", "Statistical Review", "Comparability Assessment",
             "Chemistry Review", "Manufacturing Process", "Labeling Review"],
    "PAS": ["Protocol Amendment", "Site Selection", "Patient Recruitment", "Interim Analysis",
            "DSMB Review", "Final Analysis", "Report Generation"],
}


def _studies() -> pd.DataFrame:
    return pd.DataFrame({
        "STUDY_ID": ["STUDY001", "STUDY002", "STUDY003", "STUDY004", "STUDY005"],
        "STUDY_NAME": ["Phase I PK Study", "Phase II Efficacy Trial", "Phase III Pivotal Study",
                       "Bioequivalence Study", "Post-Marketing Surveillance"],
        "STUDY_PHASE": ["I", "II", "III", "BE", "IV"],
        "INDICATION": ["Hypertension", "Diabetes", "Oncology", "Generic", "Cardiovascular"],
        "SPONSOR": ["PharmaCorp", "BioTech Inc", "MediCo", "GenericCo", "PharmaCorp"],
        "CRO": ["CRO-A", "CRO-B", "CRO-A", "CRO-C", "CRO-B"],
        "START_DATE": pd.to_datetime(["2023-01-15", "2023-03-01", "2023-06-01", "2023-08-01", "2023-10-01"]),
        "PLANNED_COMPLETION": pd.to_datetime(["2023-12-31", "2024-06-30", "2025-12-31", "2024-02-28", "2026-12-31"]),
        "STATUS": ["Completed", "In Progress", "In Progress", "Completed", "Planning"],
    })


def _submissions(studies: pd.DataFrame) -> pd.DataFrame:
    return pd.DataFrame({
        "SUBMISSION_ID": [f"SUB{i:03d}" for i in range(1, 16)],
        "STUDY_ID": np.repeat(studies["STUDY_ID"].to_numpy(), 3),
        "SUBMISSION_TYPE": np.repeat(["IND", "NDA", "BLA", "ANDA", "PAS"], 3),
        "SUBMISSION_NAME": [
            "Initial IND Application", "IND Safety Report", "IND Annual Report",
            "NDA Module 1", "NDA Module 2", "NDA Module 3-5",
            "BLA CMC", "BLA Clinical", "BLA Nonclinical",
            "ANDA Bioequivalence", "ANDA CMC", "ANDA Labeling",
            "PAS Protocol", "PAS Interim", "PAS Final",
        ],
        "TARGET_AGENCY": "FDA",
        "TARGET_DATE": pd.to_datetime([
            "2023-11-15", "2024-01-15", "2024-11-15",
            "2024-08-01", "2024-09-01", "2024-10-01",
            "2025-08-01", "2025-09-01", "2025-10-01",
            "2024-01-15", "2024-01-30", "2024-02-15",
            "2023-12-01", "2024-06-01", "2024-12-01",
        ]),
        "ACTUAL_DATE": pd.to_datetime([
            "2023-11-20", None, None,
            None, None, None,
            None, None, None,
            "2024-01-20", "2024-02-05", None,
            "2023-12-05", None, None,
        ]),
        "STATUS": [
            "Submitted", "Pending", "Pending",
            "In Progress", "In Progress", "In Progress",
            "In Progress", "In Progress", "In Progress",
            "Submitted", "Submitted", "Pending",
            "Submitted", "In Progress", "Pending",
        ],
        "PRIORITY": ["High", "Medium", "Low", "High", "High", "High",
                     "High", "High", "High", "Medium", "Medium", "Low",
                     "High", "Medium", "Low"],
    })


def _tasks(submissions: pd.DataFrame, rng: np.random.Generator) -> pd.DataFrame:
    sub_ids, names = [], []
    for sub, n_tasks in zip(submissions.itertuples(index=False), TASKS_PER_SUBMISSION):
        pool = TASK_NAMES[sub.SUBMISSION_TYPE]
        sub_ids.extend([sub.SUBMISSION_ID] * n_tasks)
        names.extend(rng.choice(pool, n_tasks, replace=False).tolist())
    n = len(sub_ids)

    statuses = np.array(["Completed"] * 15 + ["In Progress"] * 20 + ["Not Started"] * (n - 35))
    rng.shuffle(statuses)

    start = DATA_START + pd.to_timedelta(rng.integers(0, 366, n), unit="D")
    due = start + pd.to_timedelta(rng.integers(30, 181, n), unit="D")
    completion = pd.Series(pd.NaT, index=range(n), dtype="datetime64[ns]")
    done = statuses == "Completed"
    completion[done] = (start[done] + pd.to_timedelta(rng.integers(7, 200, int(done.sum())), unit="D")).to_numpy()

    pct = np.zeros(n, dtype=int)
    pct[done] = 100
    in_prog = statuses == "In Progress"
    pct[in_prog] = rng.integers(30, 91, int(in_prog.sum()))

    return pd.DataFrame({
        "TASK_ID": [f"TASK{i:04d}" for i in range(1, n + 1)],
        "SUBMISSION_ID": sub_ids,
        "TASK_NAME": names,
        "TASK_TYPE": np.repeat(TASK_TYPES, int(np.ceil(n / len(TASK_TYPES))))[:n],
        "ASSIGNED_TO": rng.choice(ASSIGNEES, n),
        "START_DATE": start,
        "DUE_DATE": due,
        "COMPLETION_DATE": completion.to_numpy(),
        "STATUS": statuses,
        "PERCENT_COMPLETE": pct,
    })


def _documents(tasks: pd.DataFrame, rng: np.random.Generator, n_docs: int = 100) -> pd.DataFrame:
    created = DATA_START + pd.to_timedelta(rng.integers(0, 366, n_docs), unit="D")
    modified = created + pd.to_timedelta(rng.integers(0, 120, n_docs), unit="D")
    return pd.DataFrame({
        "DOC_ID": [f"DOC{i:05d}" for i in range(1, n_docs + 1)],
        "TASK_ID": rng.choice(tasks["TASK_ID"].to_numpy(), n_docs),
        "DOC_NAME": [f"Document_{i}" for i in range(1, n_docs + 1)],
        "DOC_TYPE": rng.choice(DOC_TYPES, n_docs),
        "VERSION": rng.integers(1, 6, n_docs),
        "STATUS": rng.choice(DOC_STATUSES, n_docs, p=[0.3, 0.3, 0.2, 0.2]),
        "CREATION_DATE": created,
        "LAST_MODIFIED": modified,
        "FILE_SIZE": rng.integers(100, 10001, n_docs),
    })


def generate_regulatory_data(seed: Optional[int] = None) -> Dict[str, pd.DataFrame]:
    """Generate studies, submissions, tasks and documents."""
    rng = np.random.default_rng(seed)
    studies = _studies()
    submissions = _submissions(studies)
    tasks = _tasks(submissions, rng)
    documents = _documents(tasks, rng)
    return {"studies": studies, "submissions": submissions, "tasks": tasks, "documents": documents}


def calculate_submission_metrics(data: Dict[str, pd.DataFrame], as_of: Optional[dt.date] = None) -> Dict[str, Any]:
    """
    Portfolio metrics for the tracker overview.

    Args:
        data: Output of ``generate_regulatory_data``
        as_of: Date overdue status is measured against (default today)

    Returns:
        Dictionary of submission and task counts
    """
    submissions = data["submissions"]
    tasks = data["tasks"]
    today = pd.Timestamp(as_of or dt.date.today())

    on_time = submissions["ACTUAL_DATE"].notna() & (submissions["ACTUAL_DATE"] <= submissions["TARGET_DATE"])
    overdue = (tasks["DUE_DATE"] < today) & (tasks["STATUS"] != "Completed")

    return {
        "total_submissions": int(len(submissions)),
        "submitted_submissions": int((submissions["STATUS"] == "Submitted").sum()),
        "pending_submissions": int((submissions["STATUS"] == "Pending").sum()),
        "in_progress_submissions": int((submissions["STATUS"] == "In Progress").sum()),
        "on_time_submissions": int(on_time.sum()),
        "total_tasks": int(len(tasks)),
        "completed_tasks": int((tasks["STATUS"] == "Completed").sum()),
        "overall_progress": float(tasks["PERCENT_COMPLETE"].mean()) if len(tasks) else float("nan"),
        "overdue_tasks": int(overdue.sum()),
    }


def upcoming_deadlines(submissions: pd.DataFrame, as_of: Optional[dt.date] = None, limit: int = 10) -> pd.DataFrame:
    """Unsubmitted packages due on or after ``as_of``, soonest first."""
    today = pd.Timestamp(as_of or dt.date.today())
    upcoming = submissions[(submissions["STATUS"] != "Submitted") & (submissions["TARGET_DATE"] >= today)].copy()
    upcoming["Days_Until_Due"] = (upcoming["TARGET_DATE"] - today).dt.days
    upcoming = upcoming.sort_values("TARGET_DATE")
    cols = ["SUBMISSION_ID", "SUBMISSION_NAME", "TARGET_DATE", "Days_Until_Due", "STATUS", "PRIORITY"]
    return upcoming[cols].head(limit).reset_index(drop=True)


def task_board(tasks: pd.DataFrame, status: str = "All") -> Dict[str, pd.DataFrame]:
    """Tasks split into board columns; ``status`` restricts the board to one column."""
    filtered = apply_filters(tasks, {"STATUS": status})
    return {s: filtered[filtered["STATUS"] == s].reset_index(drop=True) for s in TASK_STATUSES}


def completion_by_assignee(tasks: pd.DataFrame) -> pd.DataFrame:
    out = tasks.groupby("ASSIGNED_TO").agg(
        completion_rate=("PERCENT_COMPLETE", "mean"),
        n_tasks=("TASK_ID", "size"),
        n_completed=("STATUS", lambda s: int((s == "Completed").sum())),
    )
    return out.sort_values("completion_rate", ascending=False).reset_index()


def submission_timeline(submissions: pd.DataFrame) -> pd.DataFrame:
    """Target and actual dates in long form, one row per known date."""
    long = submissions.melt(
        id_vars=["SUBMISSION_ID", "SUBMISSION_NAME", "STATUS"],
        value_vars=["TARGET_DATE", "ACTUAL_DATE"],
        var_name="Date_Type",
        value_name="Date",
    )
    return long.dropna(subset=["Date"]).reset_index(drop=True)


def gantt_table(tasks: pd.DataFrame) -> pd.DataFrame:
    out = tasks[["TASK_ID", "TASK_NAME", "START_DATE", "DUE_DATE", "STATUS"]].copy()
    out["DURATION_DAYS"] = (out["DUE_DATE"] - out["START_DATE"]).dt.days
    return out.sort_values("START_DATE").reset_index(drop=True)


def quality_checks() -> pd.DataFrame:
    return pd.DataFrame({
        "Validation_Check": ["Document Completeness", "Data Consistency", "Format Compliance",
                             "Sign-off Required", "QA Review"],
        "Status": ["Passed", "Failed", "Passed", "Pending", "Passed"],
        "Last_Run": pd.to_datetime(["2024-01-30", "2024-01-29", "2024-01-30", "2024-01-28", "2024-01-30"]),
        "Issues_Found": [0, 3, 0, 1, 0],
    })
