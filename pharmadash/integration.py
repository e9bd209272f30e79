"""
Data integration hub: SAS-to-R migration tracking, ADaM dataset inventory
and HPC cluster metrics (nodes, batch jobs, storage tiers).

The SAS-to-R code translator itself lives in ``pharmadash.sas2r``.
"""

from typing import Any, Dict, Optional
import numpy as np
import pandas as pd

from .tables import to_long


SAS_PROGRAMS = ["dm_analysis", "vs_tables", "ae_summary", "efficacy_plots", "lab_shifts"]
ADAM_DATASETS = ["ADSL", "ADAE", "ADLB", "ADVS", "ADTTE"]


def generate_sas_migration(seed: Optional[int] = 123) -> pd.DataFrame:
    """Migration status of legacy SAS programs to R scripts."""
    rng = np.random.default_rng(seed)
    n = len(SAS_PROGRAMS)
    return pd.DataFrame({
        "SAS_Program": [f"{p}.sas" for p in SAS_PROGRAMS],
        "R_Script": [f"{p}.R" for p in SAS_PROGRAMS],
        "Status": rng.choice(["Completed", "In Progress", "Pending"], n),
        "Validation": rng.choice(["Pass", "Pass", "Pending"], n),
        "Lines_SAS": rng.choice(np.arange(100, 501), n, replace=False),
        "Lines_R": rng.choice(np.arange(80, 401), n, replace=False),
    })


def generate_adam_inventory(seed: Optional[int] = 456) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    n = len(ADAM_DATASETS)
    return pd.DataFrame({
        "Dataset": ADAM_DATASETS,
        "Package": "admiral",
        "Records": rng.choice(np.arange(100, 1001), n, replace=False),
        "Variables": rng.choice(np.arange(20, 51), n, replace=False),
        "Status": "Validated",
    })


def generate_hpc_nodes(n_nodes: int = 8, seed: Optional[int] = 789) -> pd.DataFrame:
    """Point-in-time utilisation of the compute nodes."""
    if n_nodes < 1:
        raise ValueError("n_nodes must be at least 1")
    rng = np.random.default_rng(seed)
    return pd.DataFrame({
        "Node": [f"node{i}" for i in range(1, n_nodes + 1)],
        "CPU_Usage": rng.integers(30, 91, n_nodes),
        "Memory_Usage": rng.integers(40, 86, n_nodes),
        "GPU_Usage": rng.integers(0, 101, n_nodes),
        "Jobs_Running": rng.integers(1, 11, n_nodes),
        "Status": rng.choice(["Active", "Active", "Active", "Idle"], n_nodes),
    })


JOB_STATUSES = ["Running", "Queued", "Completed", "Failed", "Held"]
PARTITIONS = ["short", "medium", "long", "gpu"]
HPC_USERS = ["jsmith", "jdoe", "mjohnson", "swilson", "tbrown", "admin"]
WALLTIME_LIMITS = [3600, 7200, 14400, 28800, 86400]

# type, total TB, used TB, IOPS, throughput MB/s, status
STORAGE_SYSTEMS = [
    ("Lustre", 500, 350, 100000, 10000, "Healthy"),
    ("NFS", 100, 80, 50000, 5000, "Healthy"),
    ("Local SSD", 10, 8, 200000, 2000, "Healthy"),
    ("Tape Archive", 1000, 200, 1000, 100, "Maintenance"),
    ("Cloud", 2000, 500, 50000, 8000, "Healthy"),
]


def generate_hpc_jobs(
    nodes: pd.DataFrame,
    n_jobs: int = 50,
    seed: Optional[int] = 790,
    as_of: Optional[Any] = None,
) -> pd.DataFrame:
    """
    Batch jobs submitted to the cluster over the week before ``as_of``.

    Queued and held jobs have no start time and no walltime used, and only
    completed jobs have a completion time. Walltime used never exceeds the
    job's limit or the time since it started.
    """
    if n_jobs < 1:
        raise ValueError("n_jobs must be at least 1")
    if nodes.empty:
        raise ValueError("nodes table is empty")
    rng = np.random.default_rng(seed)
    now = pd.Timestamp(as_of if as_of is not None else pd.Timestamp.now()).floor("s")

    status = rng.choice(JOB_STATUSES, n_jobs, p=[0.3, 0.2, 0.3, 0.1, 0.1])
    submit = now - pd.to_timedelta(rng.integers(3600, 7 * 86400, n_jobs), unit="s")
    start = submit + pd.to_timedelta(rng.integers(0, 3600, n_jobs), unit="s")
    limit = rng.choice(WALLTIME_LIMITS, n_jobs)
    elapsed = (now - start).total_seconds().to_numpy()
    used = np.minimum(rng.integers(0, limit + 1), elapsed).astype(int)

    started = ~np.isin(status, ["Queued", "Held"])
    used = np.where(started, used, 0)
    start_time = pd.Series(start).where(started)
    completion = (start_time + pd.to_timedelta(used, unit="s")).where(status == "Completed")

    return pd.DataFrame({
        "Job_ID": [f"job{j:06d}" for j in rng.choice(np.arange(100000, 1000000), n_jobs, replace=False)],
        "User": rng.choice(HPC_USERS, n_jobs),
        "Node": rng.choice(nodes["Node"].to_numpy(), n_jobs),
        "Job_Name": [f"analysis_{i}" for i in rng.integers(1, 101, n_jobs)],
        "Status": status,
        "Priority": rng.choice(["High", "Medium", "Low"], n_jobs, p=[0.2, 0.6, 0.2]),
        "Partition": rng.choice(PARTITIONS, n_jobs, p=[0.3, 0.3, 0.3, 0.1]),
        "Submit_Time": pd.Series(submit),
        "Start_Time": start_time,
        "Completion_Time": completion,
        "Walltime_Limit": limit,
        "Walltime_Used": used,
        "CPU_Cores_Used": rng.integers(1, 33, n_jobs),
        "Memory_Used_GB": rng.integers(1, 65, n_jobs),
    })


def generate_storage() -> pd.DataFrame:
    """Capacity and throughput of the cluster storage tiers."""
    storage = pd.DataFrame(
        STORAGE_SYSTEMS,
        columns=["Storage_Type", "Total_TB", "Used_TB", "IOPS", "Throughput_MBps", "Status"],
    )
    storage.insert(0, "Storage_ID", [f"storage{i:02d}" for i in range(1, len(storage) + 1)])
    storage.insert(4, "Available_TB", storage["Total_TB"] - storage["Used_TB"])
    storage.insert(5, "Usage_Pct", (storage["Used_TB"] / storage["Total_TB"] * 100).round(1))
    return storage


def job_summary(jobs: pd.DataFrame) -> Dict[str, Any]:
    by_status = jobs["Status"].value_counts()
    by_partition = jobs["Partition"].value_counts()
    return {
        "total_jobs": int(len(jobs)),
        "by_status": {s: int(by_status.get(s, 0)) for s in JOB_STATUSES},
        "by_partition": {p: int(by_partition.get(p, 0)) for p in PARTITIONS},
        "walltime_used_hours": round(float(jobs["Walltime_Used"].sum()) / 3600.0, 1),
    }


def storage_summary(storage: pd.DataFrame, usage_threshold: float = 80.0) -> Dict[str, Any]:
    """Overall capacity use; tiers at or over the threshold or not healthy need attention."""
    total = float(storage["Total_TB"].sum())
    used = float(storage["Used_TB"].sum())
    attention = storage[(storage["Usage_Pct"] >= usage_threshold) | (storage["Status"] != "Healthy")]
    return {
        "total_tb": total,
        "used_tb": used,
        "usage_pct": round(used / total * 100, 1) if total else 0.0,
        "needs_attention": attention["Storage_ID"].tolist(),
    }


def hub_overview(sas: pd.DataFrame, hpc: pd.DataFrame) -> Dict[str, Any]:
    total = int(len(sas))
    completed = int((sas["Status"] == "Completed").sum())
    return {
        "total_projects": total,
        "migration_pct_complete": int(round(completed / total * 100)) if total else 0,
        "avg_cpu_usage": int(round(float(hpc["CPU_Usage"].mean()))) if len(hpc) else 0,
    }


def hpc_summary(hpc: pd.DataFrame) -> Dict[str, Any]:
    return {
        "active_nodes": int((hpc["Status"] == "Active").sum()),
        "avg_cpu_usage": int(round(float(hpc["CPU_Usage"].mean()))) if len(hpc) else 0,
        "running_jobs": int(hpc["Jobs_Running"].sum()),
    }


def migration_lines_long(sas: pd.DataFrame) -> pd.DataFrame:
    """SAS vs R line counts in long form for a grouped bar chart."""
    return to_long(sas, "SAS_Program", ["Lines_SAS", "Lines_R"], var_name="Language", value_name="Lines")


def hpc_utilization_long(hpc: pd.DataFrame) -> pd.DataFrame:
    return to_long(hpc, "Node", ["CPU_Usage", "Memory_Usage", "GPU_Usage"], var_name="Resource", value_name="Usage")
