"""
GxP compliance tracker.

Compliance areas, findings, audits, training records and SOPs, with the
summary metrics and Markdown report used by the compliance dashboard.
"""

import datetime as dt
from typing import Any, Dict, Optional
import numpy as np
import pandas as pd


AREAS = [
    ("Data Integrity", "Data"),
    ("Document Control", "Documentation"),
    ("Change Management", "Process"),
    ("Training Records", "Personnel"),
    ("Validation", "System"),
    ("Audit Trail", "Audit"),
    ("Electronic Signatures", "Security"),
    ("Security", "Security"),
    ("Backup & Recovery", "Infrastructure"),
    ("Quality Management", "Quality"),
]

SEVERITIES = ["Critical", "Major", "Minor", "Informational"]
FINDING_STATUSES = ["Open", "In Progress", "Closed", "Verified"]


def _days(rng: np.random.Generator, base: pd.Timestamp, lo: int, hi: int, n: int) -> pd.DatetimeIndex:
    return base + pd.to_timedelta(rng.integers(lo, hi + 1, n), unit="D")


def generate_gxp_data(seed: Optional[int] = None, reference_date: Optional[dt.date] = None) -> Dict[str, pd.DataFrame]:
    """Generate compliance tables with dates placed around ``reference_date``."""
    rng = np.random.default_rng(seed)
    today = pd.Timestamp(reference_date or dt.date.today())

    n_areas = len(AREAS)
    areas = pd.DataFrame({
        "AREA_ID": [f"AREA{i:02d}" for i in range(1, n_areas + 1)],
        "AREA_NAME": [a[0] for a in AREAS],
        "CATEGORY": [a[1] for a in AREAS],
        "PRIORITY": rng.choice(["High", "Medium", "Low"], n_areas, p=[0.3, 0.5, 0.2]),
        "COMPLIANCE_SCORE": rng.integers(60, 101, n_areas),
        "LAST_ASSESSMENT": _days(rng, today, -90, -1, n_areas),
        "ASSESSOR": rng.choice(["QA Manager", "Compliance Officer", "Auditor"], n_areas),
    })

    n_find = 50
    findings = pd.DataFrame({
        "FINDING_ID": [f"FIND{i:05d}" for i in range(1, n_find + 1)],
        "AREA_ID": rng.choice(areas["AREA_ID"].to_numpy(), n_find),
        "FINDING_TYPE": rng.choice(["Observation", "Deviation", "Non-conformance", "CAPA"], n_find),
        "SEVERITY": rng.choice(SEVERITIES, n_find, p=[0.1, 0.2, 0.4, 0.3]),
        "STATUS": rng.choice(FINDING_STATUSES, n_find, p=[0.2, 0.3, 0.4, 0.1]),
        "DESCRIPTION": [f"Compliance finding {i}" for i in range(1, n_find + 1)],
        "ROOT_CAUSE": rng.choice(["Procedure Gap", "Training Issue", "System Limitation",
                                  "Human Error", "Process Deviation"], n_find),
        "DISCOVERY_DATE": _days(rng, today, -365, -1, n_find),
        "DUE_DATE": _days(rng, today, -30, 180, n_find),
        "RESPONSIBLE": rng.choice(["QA Manager", "Department Head", "System Owner", "Process Owner"], n_find),
    })

    n_audit = 20
    audits = pd.DataFrame({
        "AUDIT_ID": [f"AUDIT{i:04d}" for i in range(1, n_audit + 1)],
        "AUDIT_TYPE": rng.choice(["Internal", "External", "Regulatory", "Supplier"], n_audit),
        "AUDIT_NAME": [f"Audit {i}" for i in range(1, n_audit + 1)],
        "STATUS": rng.choice(["Scheduled", "In Progress", "Completed", "Follow-up Required"], n_audit),
        "SCHEDULED_DATE": _days(rng, today, -30, 180, n_audit),
        "AUDITOR": rng.choice(["Internal Auditor", "External Auditor", "Regulatory Inspector"], n_audit),
        "SCORE": rng.integers(60, 101, n_audit),
        "FINDINGS_COUNT": rng.integers(0, 11, n_audit),
    })

    n_train = 100
    training = pd.DataFrame({
        "TRAINING_ID": [f"TRN{i:04d}" for i in range(1, n_train + 1)],
        "EMPLOYEE_ID": [f"EMP{x:04d}" for x in rng.integers(1000, 2001, n_train)],
        "COURSE_NAME": rng.choice(["GxP Fundamentals", "Data Integrity", "SOP Training",
                                   "Quality Systems", "Regulatory Compliance"], n_train),
        "COMPLETION_DATE": _days(rng, today, -730, -1, n_train),
        "STATUS": rng.choice(["Completed", "In Progress", "Overdue"], n_train, p=[0.8, 0.15, 0.05]),
        "SCORE": rng.integers(70, 101, n_train),
        "EXPIRY_DATE": _days(rng, today, 30, 1095, n_train),
        "INSTRUCTOR": rng.choice(["QA Trainer", "External Trainer", "Department Trainer"], n_train),
    })

    n_sop = 30
    topics = rng.choice(["Data Management", "Quality Control", "Documentation", "Validation", "Security"], n_sop)
    sops = pd.DataFrame({
        "SOP_ID": [f"SOP{i:03d}" for i in range(1, n_sop + 1)],
        "SOP_TITLE": [f"SOP {i} - {t}" for i, t in zip(range(1, n_sop + 1), topics)],
        "VERSION": rng.integers(1, 6, n_sop),
        "STATUS": rng.choice(["Active", "Draft", "Under Review", "Obsolete"], n_sop, p=[0.6, 0.2, 0.15, 0.05]),
        "EFFECTIVE_DATE": _days(rng, today, -1095, -1, n_sop),
        # Some reviews are already past due
        "REVIEW_DATE": _days(rng, today, -60, 365, n_sop),
        "OWNER": rng.choice(["QA Manager", "Department Head", "Process Owner"], n_sop),
        "APPROVED_BY": rng.choice(["QA Director", "Compliance Officer", "Senior Management"], n_sop),
    })

    return {
        "compliance_areas": areas,
        "findings": findings,
        "audits": audits,
        "training": training,
        "sops": sops,
    }


def calculate_compliance_metrics(data: Dict[str, pd.DataFrame], as_of: Optional[dt.date] = None) -> Dict[str, Any]:
    findings = data["findings"]
    audits = data["audits"]
    training = data["training"]
    sops = data["sops"]
    today = pd.Timestamp(as_of or dt.date.today())

    not_closed = findings["STATUS"] != "Closed"
    return {
        "total_findings": int(len(findings)),
        "open_findings": int((findings["STATUS"] == "Open").sum()),
        "critical_findings": int(((findings["SEVERITY"] == "Critical") & not_closed).sum()),
        "overdue_findings": int(((findings["DUE_DATE"] < today) & not_closed).sum()),
        "avg_audit_score": float(audits["SCORE"].mean()) if len(audits) else float("nan"),
        "pending_audits": int(audits["STATUS"].isin(["Scheduled", "In Progress"]).sum()),
        "training_completion": float((training["STATUS"] == "Completed").mean() * 100) if len(training) else float("nan"),
        "overdue_training": int((training["STATUS"] == "Overdue").sum()),
        "active_sops": int((sops["STATUS"] == "Active").sum()),
        "overdue_reviews": int(((sops["REVIEW_DATE"] < today) & (sops["STATUS"] == "Active")).sum()),
    }


def findings_by_area(data: Dict[str, pd.DataFrame]) -> pd.DataFrame:
    """Open (not closed) findings per compliance area and severity."""
    findings = data["findings"]
    open_f = findings[findings["STATUS"] != "Closed"]
    tab = pd.crosstab(open_f["AREA_ID"], open_f["SEVERITY"]).reindex(columns=SEVERITIES, fill_value=0)
    areas = data["compliance_areas"][["AREA_ID", "AREA_NAME"]]
    out = areas.merge(tab.reset_index(), on="AREA_ID", how="left").fillna(0)
    for sev in SEVERITIES:
        out[sev] = out[sev].astype(int)
    return out


def compliance_report(metrics: Dict[str, Any], generated_on: Optional[dt.date] = None) -> str:
    """Render the compliance metrics as a Markdown report."""
    generated_on = generated_on or dt.date.today()
    m = metrics
    lines = [
        "# GxP Compliance Report",
        "",
        f"Generated on: {generated_on.isoformat()}",
        "",
        "## Executive Summary",
        "",
        f"- Total Findings: {m['total_findings']}",
        f"- Open Findings: {m['open_findings']}",
        f"- Critical Findings: {m['critical_findings']}",
        f"- Average Audit Score: {m['avg_audit_score']:.1f}",
        f"- Training Completion: {m['training_completion']:.1f}%",
        "",
        "## Key Metrics",
        "",
        "### Findings Status",
        f"- Open: {m['open_findings']}",
        f"- Overdue: {m['overdue_findings']}",
        f"- Critical: {m['critical_findings']}",
        "",
        "### Audit Performance",
        f"- Average Score: {m['avg_audit_score']:.1f}",
        f"- Pending Audits: {m['pending_audits']}",
        "",
        "### Training Status",
        f"- Completion Rate: {m['training_completion']:.1f}%",
        f"- Overdue Training: {m['overdue_training']}",
        "",
        "### SOP Status",
        f"- Active SOPs: {m['active_sops']}",
        f"- Overdue Reviews: {m['overdue_reviews']}",
        "",
        "## Recommendations",
        "",
        "1. Address critical findings immediately",
        "2. Update overdue training records",
        "3. Schedule overdue SOP reviews",
        "4. Prepare for pending audits",
        "",
    ]
    return "\n".join(lines)
