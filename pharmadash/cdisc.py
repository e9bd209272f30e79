"""
CDISC SDTM / ADaM utilities.

Structural validation of SDTM domains, derivation of the ADSL, ADVS and
ADAE analysis datasets, controlled-terminology decoding and submission
metadata (Define-XML skeleton, study data reviewer's guide template).
"""

import datetime as dt
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Mapping, Optional, Union
import numpy as np
import pandas as pd

from .io import ID_COL, STUDY_COL


REQUIRED_VARS = {
    "DM": ["STUDYID", "DOMAIN", "USUBJID", "SUBJID", "SITEID", "BRTHDTC", "AGE", "AGEU", "SEX"],
    "AE": ["STUDYID", "DOMAIN", "USUBJID", "AESEQ", "AETERM", "AEBODSYS", "AESEV", "AEREL"],
    "VS": ["STUDYID", "DOMAIN", "USUBJID", "VSSEQ", "VSTESTCD", "VSTEST", "VSORRES", "VSORRESU"],
    "EX": ["STUDYID", "DOMAIN", "USUBJID", "EXSEQ", "EXTRT", "EXDOSE", "EXDOSU", "EXDOSFRM"],
}

VAR_SPECS: Dict[str, Dict[str, Any]] = {
    "STUDYID": {"type": "character", "length": 12, "label": "Study Identifier"},
    "USUBJID": {"type": "character", "length": 40, "label": "Unique Subject Identifier"},
    "SUBJID": {"type": "character", "length": 20, "label": "Subject Identifier"},
    "SITEID": {"type": "character", "length": 12, "label": "Study Site Identifier"},
    "BRTHDTC": {"type": "character", "label": "Date/Time of Birth"},
    "AGE": {"type": "numeric", "range": (0, 150), "label": "Age"},
    "AGEU": {"type": "character", "values": ["YEARS", "MONTHS", "DAYS"], "label": "Age Units"},
    "SEX": {"type": "character", "values": ["M", "F", "U", "UNDIFFERENTIATED"], "label": "Sex"},
}

# ISO 8601, complete or right-truncated
ISO8601_RE = re.compile(r"^\d{4}(-\d{2}(-\d{2}(T\d{2}:\d{2}(:\d{2})?)?)?)?$")

STANDARD_CODELISTS: Dict[str, Dict[str, str]] = {
    "SEX": {"M": "Male", "F": "Female", "U": "Unknown"},
    "AESEV": {"MILD": "Mild", "MODERATE": "Moderate", "SEVERE": "Severe"},
    "AEREL": {"RELATED": "Related", "NOT RELATED": "Not Related", "POSSIBLY RELATED": "Possibly Related"},
    "RACE": {
        "WHITE": "White",
        "BLACK": "Black or African American",
        "ASIAN": "Asian",
        "HISPANIC": "Hispanic or Latino",
        "AMERICAN INDIAN": "American Indian or Alaska Native",
        "NATIVE HAWAIIAN": "Native Hawaiian or Other Pacific Islander",
    },
}

VISIT_NUMBERS = {
    "SCREENING": 1,
    "BASELINE": 2,
    "WEEK 2": 3,
    "WEEK 4": 4,
    "WEEK 8": 5,
    "WEEK 12": 6,
}

VS_TESTCD = {"Systolic BP": "SYSBP", "Diastolic BP": "DIABP", "Heart Rate": "PULSE"}

AE_BODSYS = {
    "Headache": "NERVOUS SYSTEM DISORDERS",
    "Dizziness": "NERVOUS SYSTEM DISORDERS",
    "Nausea": "GASTROINTESTINAL DISORDERS",
    "Fatigue": "GENERAL DISORDERS AND ADMINISTRATION SITE CONDITIONS",
}

ADAM_DESCRIPTIONS = {
    "ADSL": ("Subject-Level Analysis Dataset", "One record per subject with demographics, treatment and population flags"),
    "ADVS": ("Vital Signs Analysis Dataset", "Vital-sign values by visit with baseline and change from baseline"),
    "ADAE": ("Adverse Events Analysis Dataset", "Adverse events with numeric severity and relationship codes"),
}


@dataclass
class ValidationResult:
    """Outcome of ``validate_sdtm``. Issues fail validation, warnings do not."""

    domain: str
    total_records: int
    validation_date: dt.date
    issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.issues

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["validation_date"] = self.validation_date.isoformat()
        out["passed"] = self.passed
        return out

    def format(self) -> str:
        lines = [
            "CDISC SDTM Validation Results",
            "=============================",
            f"Domain: {self.domain}",
            f"Total Records: {self.total_records}",
            f"Validation Date: {self.validation_date.isoformat()}",
            f"Status: {'PASSED' if self.passed else 'FAILED'}",
            "",
        ]
        if self.issues:
            lines.append("Issues Found:")
            lines.extend(f"- {issue}" for issue in self.issues)
            lines.append("")
        if self.warnings:
            lines.append("Warnings:")
            lines.extend(f"- {w}" for w in self.warnings)
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.format()


def validate_sdtm(
    data: pd.DataFrame,
    domain: str,
    strict: bool = True,
    validation_date: Optional[dt.date] = None,
) -> ValidationResult:
    """
    Check an SDTM domain against required variables and basic conformance rules.

    Args:
        data: SDTM domain table
        domain: Domain code ("DM", "AE", "VS", "EX")
        strict: When False, missing required variables are reported as
            warnings instead of issues
        validation_date: Date recorded in the result (default today)

    Returns:
        ValidationResult
    """
    domain = domain.upper()
    result = ValidationResult(
        domain=domain,
        total_records=int(len(data)),
        validation_date=validation_date or dt.date.today(),
    )

    if domain in REQUIRED_VARS:
        missing = [v for v in REQUIRED_VARS[domain] if v not in data.columns]
        if missing:
            msg = f"Missing required variables: {', '.join(missing)}"
            (result.issues if strict else result.warnings).append(msg)

    for var, spec in VAR_SPECS.items():
        if var not in data.columns:
            continue
        col = data[var]
        if spec["type"] == "numeric" and not pd.api.types.is_numeric_dtype(col):
            result.issues.append(f"Variable {var} should be numeric")
        if "values" in spec:
            invalid = sorted({str(v) for v in col.dropna().unique()} - set(spec["values"]))
            if invalid:
                result.issues.append(f"Invalid values in {var}: {', '.join(invalid)}")
        if spec["type"] == "numeric" and "range" in spec and pd.api.types.is_numeric_dtype(col):
            lo, hi = spec["range"]
            if ((col < lo) | (col > hi)).fillna(False).any():
                result.warnings.append(f"Values out of range in {var}")

    if domain == "DM" and "USUBJID" in data.columns:
        dups = data.loc[data["USUBJID"].duplicated(), "USUBJID"].astype(str).unique().tolist()
        if dups:
            result.issues.append(f"Duplicate USUBJID in DM domain: {', '.join(dups)}")

    for var in [c for c in data.columns if str(c).endswith("DTC")]:
        values = data[var].dropna().astype(str)
        if (~values.str.match(ISO8601_RE)).any():
            result.warnings.append(f"Invalid date format in {var}")

    return result


def _arm_code(arm: str) -> str:
    if arm == "Placebo":
        return "PBO"
    return re.sub(r"[^A-Z0-9]", "", str(arm).upper())[:8]


def to_sdtm(
    data: Dict[str, pd.DataFrame],
    reference_date: Optional[dt.date] = None,
) -> Dict[str, pd.DataFrame]:
    """Map the clinical viewer tables (dm/vs/ae) onto SDTM DM, VS and AE domains."""
    ref_year = (reference_date or dt.date.today()).year
    dm_in, vs_in, ae_in = data["dm"], data["vs"], data["ae"]

    def usubjid(df: pd.DataFrame) -> pd.Series:
        return df[STUDY_COL].astype(str) + "-" + df[ID_COL].astype(str)

    dm = pd.DataFrame({
        "STUDYID": dm_in[STUDY_COL],
        "DOMAIN": "DM",
        "USUBJID": usubjid(dm_in),
        "SUBJID": dm_in[ID_COL],
        "SITEID": dm_in["SITEID"],
        # birth year only, a valid truncated ISO 8601 date
        "BRTHDTC": (ref_year - dm_in["AGE"].astype(int)).astype(str),
        "AGE": dm_in["AGE"],
        "AGEU": "YEARS",
        "SEX": dm_in["SEX"],
        "RACE": dm_in["RACE"],
        "ARMCD": dm_in["ARM"].map(_arm_code),
        "ARM": dm_in["ARM"],
    })

    vs = pd.DataFrame({
        "STUDYID": vs_in[STUDY_COL],
        "DOMAIN": "VS",
        "USUBJID": usubjid(vs_in),
        "VSTESTCD": vs_in["PARAM"].map(VS_TESTCD).fillna(vs_in["PARAM"].str.upper().str.replace(" ", "").str[:8]),
        "VSTEST": vs_in["PARAM"],
        "VSORRES": vs_in["VALUE"].round(1),
        "VSORRESU": vs_in["UNIT"],
        "VISIT": vs_in["VISIT"].str.upper(),
    })
    vs.insert(3, "VSSEQ", vs.groupby("USUBJID").cumcount() + 1)

    ae = pd.DataFrame({
        "STUDYID": ae_in[STUDY_COL],
        "DOMAIN": "AE",
        "USUBJID": usubjid(ae_in),
        "AETERM": ae_in["AETERM"],
        "AEBODSYS": ae_in["AETERM"].map(AE_BODSYS).fillna("UNCODED"),
        "AESEV": ae_in["SEVERITY"],
        "AEREL": np.where(ae_in["RELATED"] == "YES", "RELATED", "NOT RELATED"),
    })
    ae.insert(3, "AESEQ", ae.groupby("USUBJID").cumcount() + 1)

    return {"DM": dm, "VS": vs, "AE": ae}


def _require(sdtm: Mapping[str, pd.DataFrame], domains: List[str], target: str) -> None:
    missing = [d for d in domains if d not in sdtm]
    if missing:
        raise ValueError(f"{' and '.join(domains)} datasets required for {target} creation")


def _age_group(age: pd.Series) -> pd.Series:
    groups = pd.cut(age, bins=[-np.inf, 18, 40, 65, np.inf], right=False, labels=["<18", "18-39", "40-64", "65+"])
    return groups.astype(object).where(groups.notna(), None)


def _race_group(race: pd.Series) -> pd.Series:
    groups = {
        "WHITE": "WHITE",
        "BLACK": "BLACK",
        "ASIAN": "OTHER",
        "HISPANIC": "OTHER",
        "NATIVE HAWAIIAN": "OTHER",
        "AMERICAN INDIAN": "OTHER",
    }
    return race.map(groups)


def _dm_keys(dm: pd.DataFrame) -> List[str]:
    return [c for c in ["USUBJID", "AGE", "SEX", "ARMCD", "ARM"] if c in dm.columns]


def _build_adsl(sdtm: Mapping[str, pd.DataFrame]) -> pd.DataFrame:
    dm = sdtm["DM"]
    if "USUBJID" not in dm.columns:
        raise ValueError("DM dataset must contain USUBJID")
    keep = [c for c in ["STUDYID", "USUBJID", "SUBJID", "SITEID", "BRTHDTC", "AGE", "AGEU", "SEX",
                        "RACE", "ETHNIC", "COUNTRY", "ARMCD", "ARM"] if c in dm.columns]
    adsl = dm[keep].copy()

    if "EX" in sdtm:
        ex = sdtm["EX"].copy()
        agg: Dict[str, Any] = {"EXTRT": "first"}
        if "EXSTDTC" in ex.columns:
            ex["EXSTDTC"] = pd.to_datetime(ex["EXSTDTC"], errors="coerce")
            agg["EXSTDTC"] = "min"
        if "EXENDTC" in ex.columns:
            ex["EXENDTC"] = pd.to_datetime(ex["EXENDTC"], errors="coerce")
            agg["EXENDTC"] = "max"
        trt = ex.groupby("USUBJID").agg(agg).reset_index()
        trt = trt.rename(columns={"EXSTDTC": "TRTSDT", "EXENDTC": "TRTEDT"})
        trt["ARMCD"] = trt["EXTRT"]
        trt["ARM"] = trt["EXTRT"]
        adsl = adsl.drop(columns=[c for c in ("ARMCD", "ARM") if c in adsl.columns])
        adsl = adsl.merge(trt.drop(columns=["EXTRT"]), on="USUBJID", how="left")

    for col in ("TRTSDT", "TRTEDT"):
        if col not in adsl.columns:
            adsl[col] = pd.NaT
    adsl["TRTDURD"] = (adsl["TRTEDT"] - adsl["TRTSDT"]).dt.days + 1

    if "AGE" in adsl.columns:
        adsl["AGEGR1"] = _age_group(pd.to_numeric(adsl["AGE"], errors="coerce"))
    if "RACE" in adsl.columns:
        adsl["RACEGR1"] = _race_group(adsl["RACE"])
    adsl["SAF01FL"] = "Y"
    adsl["EFF01FL"] = "Y"
    return adsl


def _build_advs(sdtm: Mapping[str, pd.DataFrame]) -> pd.DataFrame:
    dm, vs = sdtm["DM"], sdtm["VS"]
    advs = vs.merge(dm[_dm_keys(dm)], on="USUBJID", how="left")
    advs["PARAMCD"] = advs["VSTESTCD"]
    advs["PARAM"] = advs["VSTEST"]
    advs["AVAL"] = pd.to_numeric(advs["VSORRES"], errors="coerce")
    advs["AVALC"] = advs["AVAL"].round(2).astype(str)
    visit = advs["VISIT"].astype(str).str.upper() if "VISIT" in advs.columns else pd.Series("", index=advs.index)
    advs["VISITNUM"] = visit.map(VISIT_NUMBERS)

    is_base = visit == "BASELINE"
    advs["ABLFL"] = np.where(is_base, "Y", None)
    base = (
        advs[is_base].groupby(["USUBJID", "PARAMCD"])["AVAL"].mean()
        .rename("BASE").reset_index()
    )
    advs = advs.merge(base, on=["USUBJID", "PARAMCD"], how="left")
    advs["CHG"] = np.where(advs["ABLFL"] == "Y", np.nan, advs["AVAL"] - advs["BASE"])
    advs["ANL01FL"] = "Y"
    return advs.sort_values(["USUBJID", "VISITNUM", "PARAMCD"], na_position="last").reset_index(drop=True)


def _build_adae(sdtm: Mapping[str, pd.DataFrame]) -> pd.DataFrame:
    dm, ae = sdtm["DM"], sdtm["AE"]
    adae = ae.merge(dm[_dm_keys(dm)], on="USUBJID", how="left")
    adae["AERELN"] = adae["AEREL"].map({"RELATED": 1, "NOT RELATED": 0}).astype("Int64")
    adae["AESEVN"] = adae["AESEV"].map({"MILD": 1, "MODERATE": 2, "SEVERE": 3}).astype("Int64")
    adae["ANL01FL"] = "Y"
    adae["SAFFL"] = "Y"
    sort_cols = ["USUBJID"] + (["AESEQ"] if "AESEQ" in adae.columns else [])
    return adae.sort_values(sort_cols).reset_index(drop=True)


def sdtm_to_adam(sdtm: Mapping[str, pd.DataFrame], target: str) -> pd.DataFrame:
    """
    Derive an ADaM dataset from SDTM domains.

    Args:
        sdtm: Mapping of domain code -> table (DM required; VS for ADVS,
            AE for ADAE; EX optional for ADSL treatment variables)
        target: "ADSL", "ADVS" or "ADAE"

    Returns:
        The analysis dataset
    """
    target = target.upper()
    if target == "ADSL":
        _require(sdtm, ["DM"], target)
        return _build_adsl(sdtm)
    if target == "ADVS":
        _require(sdtm, ["DM", "VS"], target)
        return _build_advs(sdtm)
    if target == "ADAE":
        _require(sdtm, ["DM", "AE"], target)
        return _build_adae(sdtm)
    raise ValueError(f"Unsupported ADaM dataset: {target}")


def apply_controlled_terminology(
    data: pd.DataFrame,
    codelist_mapping: Mapping[str, Union[str, Mapping[str, str]]],
) -> pd.DataFrame:
    """
    Add decoded ``<VAR>DEC`` columns.

    Each mapping value is either an explicit code -> decode dict or a string
    naming a standard codelist (e.g. ``{"SEX": "SEX"}``). Codes without a
    decode are carried over unchanged.
    """
    out = data.copy()
    for var, codelist in codelist_mapping.items():
        if var not in out.columns:
            continue
        if isinstance(codelist, str):
            if codelist not in STANDARD_CODELISTS:
                raise ValueError(f"No standard codelist named '{codelist}'")
            codelist = STANDARD_CODELISTS[codelist]
        out[f"{var}DEC"] = out[var].map(dict(codelist)).fillna(out[var])
    return out


def _define_datatype(series: pd.Series) -> str:
    if pd.api.types.is_bool_dtype(series):
        return "boolean"
    if pd.api.types.is_integer_dtype(series):
        return "integer"
    if pd.api.types.is_float_dtype(series):
        return "float"
    if pd.api.types.is_datetime64_any_dtype(series):
        return "datetime"
    return "text"


def generate_define_xml(
    data: pd.DataFrame,
    dataset_name: str,
    study_metadata: Optional[Mapping[str, str]] = None,
) -> str:
    """Define-XML style ODM metadata with one ItemDef per column."""
    meta = dict(study_metadata or {})
    root = ET.Element("ODM", {"xmlns": "http://www.cdisc.org/ns/odm/v1.3"})
    study = ET.SubElement(root, "Study", {"OID": str(meta.get("study_oid", ""))})
    gv = ET.SubElement(study, "GlobalVariables")
    ET.SubElement(gv, "StudyName").text = str(meta.get("study_name", ""))
    ET.SubElement(gv, "StudyDescription").text = str(meta.get("study_description", ""))
    ET.SubElement(gv, "ProtocolName").text = str(meta.get("protocol_name", ""))

    mdv = ET.SubElement(study, "MetaDataVersion", {"OID": f"MDV.{dataset_name}", "Name": dataset_name})
    for col in data.columns:
        item = ET.SubElement(mdv, "ItemDef", {
            "OID": f"IT.{dataset_name}.{col}",
            "Name": str(col),
            "DataType": _define_datatype(data[col]),
        })
        desc = ET.SubElement(item, "Description")
        label = VAR_SPECS.get(str(col), {}).get("label", str(col))
        ET.SubElement(desc, "TranslatedText").text = label

    ET.indent(root, space="  ")
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(root, encoding="unicode") + "\n"


def dataset_inventory(tables: Mapping[str, pd.DataFrame]) -> Dict[str, Dict[str, Any]]:
    """Reviewer's-guide entries (description, records, variables, purpose) per dataset."""
    out: Dict[str, Dict[str, Any]] = {}
    for name, df in tables.items():
        description, purpose = ADAM_DESCRIPTIONS.get(name.upper(), (name, ""))
        out[name] = {
            "description": description,
            "n_records": int(len(df)),
            "n_variables": int(df.shape[1]),
            "purpose": purpose,
        }
    return out


def create_sdrg_template(study_metadata: Mapping[str, str], datasets: Mapping[str, Mapping[str, Any]]) -> str:
    """Study Data Reviewer's Guide skeleton in Markdown."""
    m = study_metadata
    lines = [
        "# Study Data Review Guide",
        "",
        "## Study Information",
        f"- Study Name: {m.get('study_name', '')}",
        f"- Protocol: {m.get('protocol_name', '')}",
        f"- Sponsor: {m.get('sponsor', '')}",
        f"- Study Phase: {m.get('phase', '')}",
        f"- Indication: {m.get('indication', '')}",
        "",
        "## Dataset Overview",
        "",
    ]
    for name, info in datasets.items():
        lines.extend([
            f"### {name}",
            f"- Description: {info.get('description', '')}",
            f"- Records: {info.get('n_records', '')}",
            f"- Variables: {info.get('n_variables', '')}",
            f"- Purpose: {info.get('purpose', '')}",
            "",
        ])
    lines.extend([
        "## Review Notes",
        "",
        "This document provides guidance for reviewing the clinical study data.",
        "Please refer to the Statistical Analysis Plan for detailed methodology.",
        "",
        "## Data Quality Checks",
        "- All datasets have been validated against CDISC standards",
        "- Missing data has been documented and coded appropriately",
        "- Outliers have been reviewed and documented",
        "- Consistency checks have been performed across datasets",
        "",
    ])
    return "\n".join(lines)
