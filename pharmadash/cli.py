import os
import argparse
from typing import Any, Dict, List, Optional
import numpy as np
import pandas as pd

from .config import load_config, resolve_reference_date
from .io import ID_COL, read_table, write_tables, audit_tables, ensure_ids_are_string
from .tables import count_by
from .nca import nca_by_subject, population_pk_summary, summarize_by_group
from .pkpd import simulate_dose_exposure, recommended_dose, vpc_summary
from .simulate import simulate_pk_study, simulate_replicates, mean_profiles
from . import clinical, regulatory, compliance, integration, cdisc, plotting, sas2r
from .reporting import write_json, write_text, pharmaco_report


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def _banner(title: str) -> None:
    print("=" * 80)
    print(title)
    print("=" * 80)


def _section(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    return cfg.get(name) or {}


def run_clinical(cfg: Dict[str, Any], out_dir: str) -> List[str]:
    """Clinical viewer tables, summaries, SDTM/ADaM datasets and charts."""
    _banner("Clinical Data Viewer")
    c = _section(cfg, "clinical")
    ref_date = resolve_reference_date(cfg)
    ensure_dir(out_dir)
    paths: List[str] = []

    print("Generating clinical data...")
    data = clinical.generate_clinical_data(
        n_subjects=int(c.get("n_subjects", 100)),
        n_sites=int(c.get("n_sites", 10)),
        n_vitals=int(c.get("n_vitals", 500)),
        n_ae=int(c.get("n_ae", 150)),
        study_id=str(c.get("study_id", "STUDY001")),
        seed=c.get("seed"),
    )
    for name, info in audit_tables(data).items():
        print(f"  {name}: {info['rows']} rows, {info['n_id']} subjects")
    paths += write_tables(data, out_dir)

    overview = clinical.study_overview(data)
    paths.append(write_json(overview, os.path.join(out_dir, "study_overview.json")))
    print(f"Subjects: {overview['total_subjects']} | Sites: {overview['total_sites']} | "
          f"AEs: {overview['total_aes']} | Mean age: {overview['mean_age']}")

    summaries = {
        "demographics_summary": clinical.demographics_summary(data["dm"]),
        "subjects_by_site": clinical.subjects_by_site(data["dm"]),
        "ae_by_severity": count_by(data["ae"], "SEVERITY", order=clinical.SEVERITIES),
    }
    for param in clinical.VITAL_PARAMS:
        key = param.lower().replace(" ", "_")
        summaries[f"vitals_{key}"] = clinical.vitals_by_visit(data["vs"], param)
        summaries[f"cfb_{key}"] = clinical.change_from_baseline(data["vs"], param)
    paths += write_tables(summaries, out_dir)

    print("\nMapping to SDTM and deriving ADaM datasets...")
    sdtm = cdisc.to_sdtm(data, reference_date=ref_date)
    paths += write_tables(sdtm, os.path.join(out_dir, "sdtm"))
    validation = {}
    for domain, df in sdtm.items():
        result = cdisc.validate_sdtm(df, domain, validation_date=ref_date)
        validation[domain] = result.to_dict()
        status = "PASSED" if result.passed else "FAILED"
        print(f"  {domain}: {status} ({len(result.issues)} issues, {len(result.warnings)} warnings)")
    paths.append(write_json(validation, os.path.join(out_dir, "sdtm", "validation.json")))

    adam = {target: cdisc.sdtm_to_adam(sdtm, target) for target in ("ADSL", "ADVS", "ADAE")}
    adam["ADSL"] = cdisc.apply_controlled_terminology(adam["ADSL"], {"SEX": "SEX", "RACE": "RACE"})
    adam["ADAE"] = cdisc.apply_controlled_terminology(adam["ADAE"], {"AESEV": "AESEV", "AEREL": "AEREL"})
    adam_dir = os.path.join(out_dir, "adam")
    paths += write_tables(adam, adam_dir)

    study_meta = {
        "study_oid": str(c.get("study_id", "STUDY001")),
        "study_name": str(c.get("study_id", "STUDY001")),
        "study_description": "Synthetic clinical study",
        "protocol_name": f"{c.get('study_id', 'STUDY001')}-PROTOCOL",
    }
    for name, df in adam.items():
        paths.append(write_text(cdisc.generate_define_xml(df, name, study_meta),
                                os.path.join(adam_dir, f"define_{name.lower()}.xml")))
    paths.append(write_text(cdisc.create_sdrg_template(study_meta, cdisc.dataset_inventory(adam)),
                            os.path.join(adam_dir, "sdrg.md")))

    print("\nPlotting...")
    plot_dir = os.path.join(out_dir, "plots")
    paths.append(plotting.plot_age_distribution(data["dm"], plot_dir))
    paths.append(plotting.plot_demographics(data["dm"], plot_dir))
    paths.append(plotting.plot_site_distribution(summaries["subjects_by_site"], plot_dir))
    paths.append(plotting.plot_count_bar(summaries["ae_by_severity"], "SEVERITY",
                                         os.path.join(plot_dir, "plot_ae_severity.png"), "Adverse Events by Severity"))
    paths.append(plotting.plot_count_bar(count_by(data["ae"], "AETERM"), "AETERM",
                                         os.path.join(plot_dir, "plot_ae_terms.png"), "Adverse Events by Term"))
    for param in clinical.VITAL_PARAMS:
        key = param.lower().replace(" ", "_")
        paths.append(plotting.plot_vitals_over_time(summaries[f"vitals_{key}"], param, plot_dir))
        if not summaries[f"cfb_{key}"].empty:
            paths.append(plotting.plot_change_from_baseline(summaries[f"cfb_{key}"], param, plot_dir))

    print(f"\n✅ Clinical outputs saved to: {out_dir}")
    return paths


def _load_pk_input(path: str) -> Dict[str, pd.DataFrame]:
    pk_data = read_table(path)
    missing = [col for col in (ID_COL, "TIME", "CONC", "DOSE") if col not in pk_data.columns]
    if missing:
        raise ValueError(f"PK input {path} is missing required columns: {', '.join(missing)}")
    pk_data = ensure_ids_are_string(pk_data)
    subjects = pk_data.drop_duplicates(ID_COL).drop(columns=["TIME", "CONC"]).reset_index(drop=True)
    return {"subjects": subjects, "pk_data": pk_data}


def run_pk(cfg: Dict[str, Any], out_dir: str, input_csv: Optional[str] = None) -> List[str]:
    """Pharmacometrics dashboard: NCA, population summary, dose selection and VPC."""
    _banner("Pharmacometrics Dashboard")
    p = _section(cfg, "pk")
    ensure_dir(out_dir)
    paths: List[str] = []
    method = str(p.get("auc_method", "trapezoidal"))
    n_terminal = int(p.get("n_terminal", 4))
    time_points = p.get("time_points") or [0, 0.5, 1, 2, 4, 6, 8, 12, 24, 48, 72]

    if input_csv:
        print(f"Loading concentration data from {input_csv}...")
        study = _load_pk_input(input_csv)
    else:
        print("Simulating PK study...")
        study = simulate_pk_study(
            n_subjects=int(p.get("n_subjects", 50)),
            time_points=time_points,
            dose_map=p.get("dose_map"),
            residual_cv=float(p.get("residual_cv", 0.1)),
            seed=p.get("seed"),
        )
    subjects, pk_data = study["subjects"], study["pk_data"]
    print(f"Subjects: {subjects[ID_COL].nunique()} | Samples: {len(pk_data)}")
    paths += write_tables({"subjects": subjects, "pk_data": pk_data}, out_dir)

    print("\nRunning non-compartmental analysis...")
    individual = nca_by_subject(pk_data, method=method, n_terminal=n_terminal)
    population = population_pk_summary(individual)
    print(f"Analysed {population['n_subjects']} subjects")
    print(f"  CL geometric mean: {population['clearance']['geometric_mean']:.2f} L/h")
    print(f"  Vd geometric mean: {population['volume']['geometric_mean']:.2f} L")
    print(f"  t1/2 median: {population['half_life']['median']:.2f} h")
    tables = {"individual_parameters": individual}
    if "ARM" in individual.columns:
        tables["exposure_by_arm"] = summarize_by_group(individual)
    profiles = mean_profiles(pk_data) if "ARM" in pk_data.columns else None
    if profiles is not None:
        tables["mean_profiles"] = profiles
    paths += write_tables(tables, out_dir)
    paths.append(write_json(population, os.path.join(out_dir, "population_summary.json")))

    plot_dir = os.path.join(out_dir, "plots")
    if profiles is not None:
        paths.append(plotting.plot_pk_profiles(profiles, plot_dir))
    covariates = [col for col in ("WEIGHT", "CRCL") if col in subjects.columns]
    if covariates:
        merged = individual.merge(subjects[[ID_COL] + covariates], on=ID_COL, how="left")
        for cov in covariates:
            paths.append(plotting.plot_parameter_vs_covariate(merged, "CL", cov, plot_dir))

    opt = p.get("dose_optimization") or {}
    cl = population["clearance"]["geometric_mean"]
    vd = population["volume"]["geometric_mean"]
    if np.isfinite(cl) and np.isfinite(vd):
        print("\nSimulating dose-exposure...")
        target_exposure = str(opt.get("target_exposure", "AUC"))
        target_value = float(opt.get("target_value", 40.0))
        results = simulate_dose_exposure(
            cl, vd, target_value,
            doses=opt.get("doses") or tuple(range(25, 501, 25)),
            target_exposure=target_exposure,
            n_simulations=int(opt.get("n_simulations", 1000)),
            seed=p.get("seed"),
        )
        best = recommended_dose(results)
        print(f"Recommended dose (>=90% target attainment): {best if best is not None else 'none in range'}")
        paths += write_tables({"dose_exposure": results}, out_dir)
        paths.append(write_json({"target_exposure": target_exposure, "target_value": target_value,
                                 "recommended_dose": best}, os.path.join(out_dir, "dose_recommendation.json")))
        paths += plotting.plot_dose_exposure(results, target_value, plot_dir, target_exposure=target_exposure)
    else:
        print("\nSkipping dose-exposure simulation: population CL/Vd not estimable")

    n_replicates = int(p.get("vpc_replicates", 20))
    if not input_csv and n_replicates == 0:
        print("\nSkipping visual predictive check: vpc_replicates is 0")
    elif not input_csv:
        print("\nRunning visual predictive check...")
        sims = simulate_replicates(
            n_replicates,
            n_subjects=int(p.get("n_subjects", 50)),
            time_points=time_points,
            dose_map=p.get("dose_map"),
            residual_cv=float(p.get("residual_cv", 0.1)),
            seed=None if p.get("seed") is None else int(p["seed"]) + 1,
        )
        vpc = vpc_summary(pk_data, sims)
        paths += write_tables({"vpc": vpc}, out_dir)
        paths.append(plotting.plot_vpc(vpc, plot_dir))

    report = pharmaco_report(subjects, pk_data, individual, population, auc_method=method, n_terminal=n_terminal)
    paths.append(write_text(report, os.path.join(out_dir, "pharmacometrics_report.md")))
    print(f"\n✅ PK outputs saved to: {out_dir}")
    return paths


def run_regulatory(cfg: Dict[str, Any], out_dir: str) -> List[str]:
    _banner("Regulatory Submission Tracker")
    ref_date = resolve_reference_date(cfg)
    ensure_dir(out_dir)
    paths: List[str] = []

    data = regulatory.generate_regulatory_data(seed=_section(cfg, "regulatory").get("seed"))
    paths += write_tables(data, out_dir)

    metrics = regulatory.calculate_submission_metrics(data, as_of=ref_date)
    metrics["as_of"] = ref_date.isoformat()
    paths.append(write_json(metrics, os.path.join(out_dir, "submission_metrics.json")))
    print(f"Submissions: {metrics['total_submissions']} ({metrics['submitted_submissions']} submitted)")
    print(f"Tasks: {metrics['completed_tasks']}/{metrics['total_tasks']} completed, "
          f"{metrics['overdue_tasks']} overdue as of {ref_date.isoformat()}")

    board = regulatory.task_board(data["tasks"])
    for status, tasks in board.items():
        print(f"  {status}: {len(tasks)} tasks")
    completion = regulatory.completion_by_assignee(data["tasks"])
    timeline = regulatory.submission_timeline(data["submissions"])
    gantt = regulatory.gantt_table(data["tasks"])
    paths += write_tables({
        "upcoming_deadlines": regulatory.upcoming_deadlines(data["submissions"], as_of=ref_date),
        "completion_by_assignee": completion,
        "submission_timeline": timeline,
        "task_gantt": gantt,
        "quality_checks": regulatory.quality_checks(),
    }, out_dir)

    plot_dir = os.path.join(out_dir, "plots")
    paths.append(plotting.plot_submission_timeline(timeline, plot_dir))
    paths.append(plotting.plot_completion_by_assignee(completion, plot_dir))
    paths.append(plotting.plot_gantt(gantt, plot_dir))
    paths.append(plotting.plot_count_bar(count_by(data["tasks"], "STATUS", order=regulatory.TASK_STATUSES), "STATUS",
                                         os.path.join(plot_dir, "plot_task_status.png"), "Tasks by Status"))
    print(f"\n✅ Regulatory outputs saved to: {out_dir}")
    return paths


def run_compliance(cfg: Dict[str, Any], out_dir: str) -> List[str]:
    _banner("GxP Compliance Tracker")
    ref_date = resolve_reference_date(cfg)
    ensure_dir(out_dir)
    paths: List[str] = []

    data = compliance.generate_gxp_data(seed=_section(cfg, "compliance").get("seed"), reference_date=ref_date)
    paths += write_tables(data, out_dir)
    metrics = compliance.calculate_compliance_metrics(data, as_of=ref_date)
    paths.append(write_json(metrics, os.path.join(out_dir, "compliance_metrics.json")))
    print(f"Findings: {metrics['total_findings']} ({metrics['open_findings']} open, "
          f"{metrics['critical_findings']} critical, {metrics['overdue_findings']} overdue)")
    print(f"Training completion: {metrics['training_completion']:.1f}%")

    paths += write_tables({"findings_by_area": compliance.findings_by_area(data)}, out_dir)
    paths.append(write_text(compliance.compliance_report(metrics, generated_on=ref_date),
                            os.path.join(out_dir, "compliance_report.md")))

    plot_dir = os.path.join(out_dir, "plots")
    paths.append(plotting.plot_count_bar(count_by(data["findings"], "SEVERITY", order=compliance.SEVERITIES), "SEVERITY",
                                         os.path.join(plot_dir, "plot_findings_severity.png"), "Findings by Severity"))
    paths.append(plotting.plot_count_bar(count_by(data["training"], "STATUS"), "STATUS",
                                         os.path.join(plot_dir, "plot_training_status.png"), "Training Status"))
    print(f"\n✅ Compliance outputs saved to: {out_dir}")
    return paths


def run_hub(cfg: Dict[str, Any], out_dir: str) -> List[str]:
    _banner("Data Integration Hub")
    h = _section(cfg, "hub")
    ref_date = resolve_reference_date(cfg)
    threshold = float(h.get("storage_usage_threshold", 80.0))
    ensure_dir(out_dir)
    paths: List[str] = []

    sas = integration.generate_sas_migration(seed=h.get("sas_seed", 123))
    adam = integration.generate_adam_inventory(seed=h.get("adam_seed", 456))
    hpc = integration.generate_hpc_nodes(n_nodes=int(h.get("n_nodes", 8)), seed=h.get("hpc_seed", 789))
    jobs = integration.generate_hpc_jobs(hpc, n_jobs=int(h.get("n_jobs", 50)), seed=h.get("jobs_seed", 790),
                                         as_of=ref_date.isoformat())
    storage = integration.generate_storage()
    jobs_by_status = count_by(jobs, "Status", order=integration.JOB_STATUSES)
    jobs_by_partition = count_by(jobs, "Partition", order=integration.PARTITIONS)
    paths += write_tables({
        "sas_migration": sas,
        "adam_inventory": adam,
        "hpc_nodes": hpc,
        "hpc_jobs": jobs,
        "jobs_by_status": jobs_by_status,
        "jobs_by_partition": jobs_by_partition,
        "storage": storage,
    }, out_dir)

    overview = integration.hub_overview(sas, hpc)
    summary = integration.hpc_summary(hpc)
    job_stats = integration.job_summary(jobs)
    storage_stats = integration.storage_summary(storage, usage_threshold=threshold)
    paths.append(write_json({"overview": overview, "hpc": summary, "jobs": job_stats, "storage": storage_stats},
                            os.path.join(out_dir, "hub_summary.json")))
    print(f"Projects: {overview['total_projects']} | Migration: {overview['migration_pct_complete']}% complete")
    print(f"Active nodes: {summary['active_nodes']} | Avg CPU: {summary['avg_cpu_usage']}% | "
          f"Running jobs: {summary['running_jobs']}")
    print(f"Batch jobs: {job_stats['total_jobs']} ({job_stats['by_status']['Queued']} queued) | "
          f"Storage used: {storage_stats['usage_pct']}%")
    if storage_stats["needs_attention"]:
        print(f"  Storage needing attention: {', '.join(storage_stats['needs_attention'])}")

    print("\nTranslating example SAS program to R...")
    paths.append(write_text(sas2r.SAS_EXAMPLE, os.path.join(out_dir, "sas_example.sas")))
    paths.append(write_text(sas2r.convert_sas_to_r(sas2r.SAS_EXAMPLE), os.path.join(out_dir, "sas_example.R")))

    plot_dir = os.path.join(out_dir, "plots")
    paths.append(plotting.plot_grouped_bars(integration.migration_lines_long(sas), "SAS_Program", "Lines", "Language",
                                            os.path.join(plot_dir, "plot_migration_lines.png"), "Lines of Code: SAS vs R"))
    paths.append(plotting.plot_grouped_bars(integration.hpc_utilization_long(hpc), "Node", "Usage", "Resource",
                                            os.path.join(plot_dir, "plot_hpc_utilization.png"), "HPC Resource Utilization (%)"))
    paths.append(plotting.plot_count_bar(jobs_by_status, "Status", os.path.join(plot_dir, "plot_jobs_by_status.png"),
                                         "Jobs by Status"))
    paths.append(plotting.plot_count_bar(jobs_by_partition, "Partition",
                                         os.path.join(plot_dir, "plot_jobs_by_partition.png"), "Jobs by Partition"))
    paths.append(plotting.plot_storage_usage(storage, plot_dir, threshold=threshold))
    print(f"\n✅ Hub outputs saved to: {out_dir}")
    return paths


def run_all(cfg: Dict[str, Any], out_root: str) -> List[str]:
    paths: List[str] = []
    paths += run_clinical(cfg, os.path.join(out_root, "clinical"))
    paths += run_pk(cfg, os.path.join(out_root, "pk"))
    paths += run_regulatory(cfg, os.path.join(out_root, "regulatory"))
    paths += run_compliance(cfg, os.path.join(out_root, "compliance"))
    paths += run_hub(cfg, os.path.join(out_root, "hub"))
    return paths


def _apply_overrides(cfg: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    if args.out:
        cfg["outputs_root"] = args.out
    if args.seed is not None:
        for name in ("clinical", "pk", "regulatory", "compliance"):
            cfg.setdefault(name, {})["seed"] = args.seed
        hub = cfg.setdefault("hub", {})
        for key in ("sas_seed", "adam_seed", "hpc_seed", "jobs_seed"):
            hub[key] = args.seed
    return cfg


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Pharmaceutical analytics dashboards")
    sub = parser.add_subparsers(dest="cmd", required=True)

    for name, help_text in [
        ("clinical", "Clinical data viewer: demographics, vitals, AEs, SDTM/ADaM"),
        ("pk", "Pharmacometrics: NCA, population PK, dose selection, VPC"),
        ("regulatory", "Regulatory submission tracker"),
        ("compliance", "GxP compliance tracker"),
        ("hub", "Data integration hub: SAS migration, ADaM inventory, HPC"),
        ("all", "Run every dashboard pipeline"),
    ]:
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--config", type=str, default=None, help="YAML file overriding the packaged defaults")
        p.add_argument("--out", type=str, default=None, help="Output root directory")
        p.add_argument("--seed", type=int, default=None, help="Random seed for all generators")
        if name == "pk":
            p.add_argument("--input", type=str, default=None,
                           help="CSV with SUBJID, TIME, CONC, DOSE columns (skips simulation)")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    cfg = _apply_overrides(load_config(args.config), args)
    out_root = cfg.get("outputs_root", "outputs/pharmadash")

    if args.cmd == "all":
        paths = run_all(cfg, out_root)
    elif args.cmd == "pk":
        paths = run_pk(cfg, os.path.join(out_root, "pk"), input_csv=args.input)
    else:
        runner = {
            "clinical": run_clinical,
            "regulatory": run_regulatory,
            "compliance": run_compliance,
            "hub": run_hub,
        }[args.cmd]
        paths = runner(cfg, os.path.join(out_root, args.cmd))
    print(f"\n{len(paths)} artifacts written under {out_root}")


if __name__ == "__main__":
    main()
