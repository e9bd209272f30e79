from typing import List, Optional
import os
import numpy as np
import pandas as pd
import seaborn as sns
import matplotlib.pyplot as plt
import matplotlib.dates as mdates


def _save(path: str) -> str:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    plt.tight_layout()
    plt.savefig(path)
    plt.close()
    return path


def plot_pk_profiles(profiles: pd.DataFrame, out_dir: str, group_col: str = "ARM", log_scale: bool = True) -> str:
    """Mean concentration-time curves per group with a +/- SD band."""
    plt.figure(figsize=(10, 6))
    for group, g in profiles.groupby(group_col):
        g = g.sort_values("TIME")
        mean = g["mean_conc"].to_numpy()
        sd = g["sd_conc"].to_numpy()
        if log_scale and not (mean > 0).any():
            continue
        plt.plot(g["TIME"], mean, marker="o", label=str(group))
        plt.fill_between(g["TIME"], np.maximum(mean - sd, 1e-3 if log_scale else 0.0), mean + sd, alpha=0.2)
    if log_scale:
        plt.yscale("log")
    plt.title("Mean Concentration-Time Profiles")
    plt.xlabel("Time (h)")
    plt.ylabel("Concentration (mg/L)")
    plt.legend()
    return _save(os.path.join(out_dir, "plot_pk_profiles.png"))


def plot_parameter_vs_covariate(
    individual: pd.DataFrame,
    parameter: str,
    covariate: str,
    out_dir: str,
    hue: Optional[str] = "ARM",
) -> str:
    plt.figure(figsize=(8, 6))
    sns.scatterplot(data=individual, x=covariate, y=parameter, hue=hue if hue in individual.columns else None)
    plt.title(f"{parameter} vs {covariate}")
    return _save(os.path.join(out_dir, f"plot_{parameter.lower()}_vs_{covariate.lower()}.png"))


def plot_dose_exposure(results: pd.DataFrame, target_value: float, out_dir: str, target_exposure: str = "AUC") -> List[str]:
    """Exposure range and probability of target attainment across doses."""
    paths: List[str] = []

    plt.figure(figsize=(10, 6))
    plt.plot(results["dose"], results["median_exposure"], marker="o", label="Median")
    plt.fill_between(results["dose"], results["p25_exposure"], results["p75_exposure"], alpha=0.3, label="IQR")
    plt.axhline(target_value, linestyle="--", color="red", label="Target")
    plt.title(f"Simulated {target_exposure} by Dose")
    plt.xlabel("Dose (mg)")
    plt.ylabel(target_exposure)
    plt.legend()
    paths.append(_save(os.path.join(out_dir, "plot_dose_exposure.png")))

    plt.figure(figsize=(10, 6))
    plt.plot(results["dose"], results["prob_achieving_target"], marker="o", color="darkgreen")
    plt.axhline(0.9, linestyle="--", color="gray")
    plt.ylim(0, 1.05)
    plt.title("Probability of Target Attainment")
    plt.xlabel("Dose (mg)")
    plt.ylabel("Probability")
    paths.append(_save(os.path.join(out_dir, "plot_target_attainment.png")))
    return paths


def plot_vpc(vpc: pd.DataFrame, out_dir: str, time_col: str = "TIME") -> str:
    """Observed percentiles over the simulated 90% interval."""
    plt.figure(figsize=(10, 6))
    plt.fill_between(vpc[time_col], vpc["sim_p5"], vpc["sim_p95"], color="steelblue", alpha=0.2, label="Simulated 5-95%")
    plt.plot(vpc[time_col], vpc["sim_median"], color="steelblue", label="Simulated median")
    plt.plot(vpc[time_col], vpc["obs_median"], "o-", color="black", label="Observed median")
    plt.plot(vpc[time_col], vpc["obs_p5"], "--", color="gray", label="Observed 5%/95%")
    plt.plot(vpc[time_col], vpc["obs_p95"], "--", color="gray")
    plt.title("Visual Predictive Check")
    plt.xlabel("Time (h)")
    plt.ylabel("Concentration (mg/L)")
    plt.legend()
    return _save(os.path.join(out_dir, "plot_vpc.png"))


def plot_count_bar(counts: pd.DataFrame, column: str, out_path: str, title: Optional[str] = None) -> str:
    """Bar chart of a ``count_by`` table."""
    plt.figure(figsize=(8, 6))
    sns.barplot(data=counts, x=column, y="n", color="steelblue")
    plt.title(title or f"Count by {column}")
    plt.xlabel(column)
    plt.ylabel("Count")
    plt.xticks(rotation=30, ha="right")
    return _save(out_path)


def plot_age_distribution(dm: pd.DataFrame, out_dir: str, bins: int = 20) -> str:
    plt.figure(figsize=(8, 6))
    sns.histplot(data=dm, x="AGE", bins=bins, color="steelblue")
    plt.axvline(dm["AGE"].median(), color="red", linestyle="--", label=f"Median: {dm['AGE'].median():.1f}")
    plt.title("Age Distribution")
    plt.xlabel("Age (years)")
    plt.ylabel("Count")
    plt.legend()
    return _save(os.path.join(out_dir, "plot_age_distribution.png"))


def plot_demographics(dm: pd.DataFrame, out_dir: str) -> str:
    """Age by treatment arm, coloured by sex."""
    plt.figure(figsize=(8, 6))
    sns.stripplot(data=dm, x="ARM", y="AGE", hue="SEX", dodge=True, alpha=0.7)
    plt.title("Age by Treatment Arm")
    plt.xlabel("Arm")
    plt.ylabel("Age (years)")
    return _save(os.path.join(out_dir, "plot_demographics.png"))


def plot_site_distribution(site_table: pd.DataFrame, out_dir: str) -> str:
    """Stacked subject counts per site from ``subjects_by_site``."""
    arms = [c for c in site_table.columns if c not in ("SITEID", "Total")]
    site_table.set_index("SITEID")[arms].plot(kind="bar", stacked=True, figsize=(10, 6))
    plt.title("Subjects by Site")
    plt.xlabel("Site")
    plt.ylabel("Subjects")
    plt.xticks(rotation=45)
    return _save(os.path.join(out_dir, "plot_site_distribution.png"))


def plot_vitals_over_time(summary: pd.DataFrame, param: str, out_dir: str) -> str:
    plt.figure(figsize=(8, 6))
    plt.errorbar(summary["VISIT"], summary["mean"], yerr=summary["se"], marker="o", capsize=4)
    plt.title(f"{param} by Visit (mean +/- SE)")
    plt.xlabel("Visit")
    plt.ylabel(param)
    fname = "plot_vitals_" + param.lower().replace(" ", "_") + ".png"
    return _save(os.path.join(out_dir, fname))


def plot_change_from_baseline(cfb: pd.DataFrame, param: str, out_dir: str) -> str:
    plt.figure(figsize=(8, 6))
    sns.boxplot(data=cfb, x="VISIT", y="CHG", color="lightsteelblue")
    plt.axhline(0, linestyle="--", color="gray")
    plt.title(f"{param}: Change from Baseline")
    plt.xlabel("Visit")
    plt.ylabel("Change")
    fname = "plot_cfb_" + param.lower().replace(" ", "_") + ".png"
    return _save(os.path.join(out_dir, fname))


def plot_submission_timeline(timeline: pd.DataFrame, out_dir: str) -> str:
    """Target and actual submission dates per package."""
    plt.figure(figsize=(12, 7))
    sns.scatterplot(data=timeline, x="Date", y="SUBMISSION_NAME", hue="Date_Type", style="STATUS", s=80)
    plt.title("Submission Timeline")
    plt.xlabel("Date")
    plt.ylabel("")
    return _save(os.path.join(out_dir, "plot_submission_timeline.png"))


def plot_gantt(gantt: pd.DataFrame, out_dir: str) -> str:
    colors = {"Completed": "seagreen", "In Progress": "orange", "Not Started": "lightgray"}
    plt.figure(figsize=(12, max(6, 0.2 * len(gantt))))
    starts = mdates.date2num(pd.to_datetime(gantt["START_DATE"]))
    plt.barh(
        gantt["TASK_ID"],
        gantt["DURATION_DAYS"],
        left=starts,
        color=[colors.get(s, "steelblue") for s in gantt["STATUS"]],
    )
    plt.gca().xaxis_date()
    plt.gca().invert_yaxis()
    plt.title("Task Timeline")
    plt.xlabel("Date")
    return _save(os.path.join(out_dir, "plot_task_gantt.png"))


def plot_completion_by_assignee(completion: pd.DataFrame, out_dir: str) -> str:
    plt.figure(figsize=(8, 6))
    sns.barplot(data=completion, x="ASSIGNED_TO", y="completion_rate", color="steelblue")
    plt.title("Average Task Completion by Assignee")
    plt.xlabel("Assignee")
    plt.ylabel("Completion (%)")
    plt.ylim(0, 100)
    plt.xticks(rotation=30, ha="right")
    return _save(os.path.join(out_dir, "plot_completion_by_assignee.png"))


def plot_grouped_bars(long_df: pd.DataFrame, x: str, y: str, hue: str, out_path: str, title: str = "") -> str:
    """Grouped bar chart from long-form data (see ``tables.to_long``)."""
    plt.figure(figsize=(10, 6))
    sns.barplot(data=long_df, x=x, y=y, hue=hue)
    plt.title(title)
    plt.xticks(rotation=30, ha="right")
    return _save(out_path)


def plot_storage_usage(storage: pd.DataFrame, out_dir: str, threshold: float = 80.0) -> str:
    plt.figure(figsize=(10, 6))
    sns.barplot(data=storage, x="Storage_ID", y="Usage_Pct", hue="Storage_Type", dodge=False)
    plt.axhline(threshold, color="red", linestyle="--", label=f"{threshold:.0f}% threshold")
    plt.ylim(0, 100)
    plt.title("Storage Usage by System")
    plt.xlabel("Storage")
    plt.ylabel("Usage (%)")
    plt.legend()
    return _save(os.path.join(out_dir, "plot_storage_usage.png"))
