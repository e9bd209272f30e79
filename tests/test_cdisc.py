"""
Tests for CDISC SDTM validation and ADaM derivation.
"""

import datetime as dt
import xml.etree.ElementTree as ET

import numpy as np
import pandas as pd
import pytest

from pharmadash.cdisc import (
    REQUIRED_VARS,
    ValidationResult,
    apply_controlled_terminology,
    create_sdrg_template,
    dataset_inventory,
    generate_define_xml,
    sdtm_to_adam,
    to_sdtm,
    validate_sdtm,
)


@pytest.fixture
def dm():
    return pd.DataFrame({
        "STUDYID": "S1",
        "DOMAIN": "DM",
        "USUBJID": ["S1-001", "S1-002", "S1-003"],
        "SUBJID": ["001", "002", "003"],
        "SITEID": ["01", "01", "02"],
        "BRTHDTC": ["1980-05-01", "1950", "2010-02-03"],
        "AGE": [44, 70, 14],
        "AGEU": "YEARS",
        "SEX": ["M", "F", "F"],
        "RACE": ["WHITE", "ASIAN", "OTHER"],
        "ARMCD": ["PBO", "DRGA", "DRGA"],
        "ARM": ["Placebo", "Drug A", "Drug A"],
    })


@pytest.fixture
def vs():
    return pd.DataFrame({
        "STUDYID": "S1",
        "DOMAIN": "VS",
        "USUBJID": ["S1-001"] * 3 + ["S1-002"] * 2,
        "VSSEQ": [1, 2, 3, 1, 2],
        "VSTESTCD": "SYSBP",
        "VSTEST": "Systolic BP",
        "VSORRES": [120.0, 130.0, 110.0, 140.0, 135.0],
        "VSORRESU": "mmHg",
        "VISIT": ["BASELINE", "WEEK 4", "WEEK 8", "BASELINE", "WEEK 4"],
    })


@pytest.fixture
def ae():
    return pd.DataFrame({
        "STUDYID": "S1",
        "DOMAIN": "AE",
        "USUBJID": ["S1-002", "S1-001", "S1-001"],
        "AESEQ": [1, 2, 1],
        "AETERM": ["Headache", "Nausea", "Fatigue"],
        "AEBODSYS": ["NERVOUS SYSTEM DISORDERS", "GASTROINTESTINAL DISORDERS", "GENERAL DISORDERS"],
        "AESEV": ["MILD", "SEVERE", "UNKNOWN"],
        "AEREL": ["RELATED", "NOT RELATED", "RELATED"],
    })


class TestValidateSDTM:
    def test_valid_dm_passes(self, dm):
        result = validate_sdtm(dm, "DM", validation_date=dt.date(2024, 1, 1))
        assert isinstance(result, ValidationResult)
        assert result.passed
        assert result.issues == []
        assert result.total_records == 3

    def test_missing_required_variable(self, dm):
        result = validate_sdtm(dm.drop(columns=["AGEU", "SEX"]), "DM")
        assert not result.passed
        assert any("AGEU" in i and "SEX" in i for i in result.issues)

    def test_non_strict_downgrades_missing_variables(self, dm):
        result = validate_sdtm(dm.drop(columns=["AGEU"]), "dm", strict=False)
        assert result.passed
        assert any("AGEU" in w for w in result.warnings)

    def test_invalid_controlled_values(self, dm):
        bad = dm.assign(SEX=["M", "X", "F"])
        result = validate_sdtm(bad, "DM")
        assert any("Invalid values in SEX: X" in i for i in result.issues)

    def test_non_numeric_age(self, dm):
        result = validate_sdtm(dm.assign(AGE=["44", "70", "14"]), "DM")
        assert "Variable AGE should be numeric" in result.issues

    def test_age_out_of_range_is_warning(self, dm):
        result = validate_sdtm(dm.assign(AGE=[44, 200, 14]), "DM")
        assert result.passed
        assert "Values out of range in AGE" in result.warnings

    def test_duplicate_usubjid(self, dm):
        dup = pd.concat([dm, dm.iloc[[0]]], ignore_index=True)
        result = validate_sdtm(dup, "DM")
        assert any("Duplicate USUBJID" in i and "S1-001" in i for i in result.issues)

    def test_bad_date_format(self, dm):
        result = validate_sdtm(dm.assign(BRTHDTC=["01/05/1980", "1950", None]), "DM")
        assert "Invalid date format in BRTHDTC" in result.warnings

    def test_format_and_dict(self, dm):
        result = validate_sdtm(dm.assign(SEX=["M", "X", "F"]), "DM", validation_date=dt.date(2024, 1, 1))
        text = result.format()
        assert "Status: FAILED" in text
        assert "Validation Date: 2024-01-01" in text
        d = result.to_dict()
        assert d["passed"] is False
        assert d["validation_date"] == "2024-01-01"

    def test_unknown_domain_checks_common_variables(self, dm):
        result = validate_sdtm(dm, "LB")
        assert result.passed


class TestToSDTM:
    def test_domains_validate(self, clinical_data):
        sdtm = to_sdtm(clinical_data, reference_date=dt.date(2024, 6, 1))
        assert set(sdtm) == {"DM", "VS", "AE"}
        for domain, df in sdtm.items():
            assert set(REQUIRED_VARS[domain]) <= set(df.columns)
            assert validate_sdtm(df, domain).passed

    def test_identifiers_and_sequences(self, clinical_data):
        sdtm = to_sdtm(clinical_data, reference_date=dt.date(2024, 6, 1))
        dm = sdtm["DM"]
        assert (dm["USUBJID"] == "STUDY001-" + dm["SUBJID"]).all()
        assert (dm["BRTHDTC"].astype(int) == 2024 - dm["AGE"]).all()
        ae = sdtm["AE"]
        first = ae.groupby("USUBJID")["AESEQ"].min()
        assert (first == 1).all()
        assert set(sdtm["VS"]["VSTESTCD"]) <= {"SYSBP", "DIABP", "PULSE"}


class TestSDTMToADaM:
    def test_adsl(self, dm):
        adsl = sdtm_to_adam({"DM": dm}, "ADSL")
        assert adsl["AGEGR1"].tolist() == ["40-64", "65+", "<18"]
        assert adsl["RACEGR1"].iloc[0] == "WHITE"
        assert adsl["RACEGR1"].iloc[1] == "OTHER"
        assert pd.isna(adsl["RACEGR1"].iloc[2])
        assert (adsl["SAF01FL"] == "Y").all()
        assert adsl["TRTSDT"].isna().all()

    def test_adsl_uses_exposure(self, dm):
        ex = pd.DataFrame({
            "USUBJID": ["S1-001", "S1-001", "S1-002"],
            "EXTRT": ["PLACEBO", "PLACEBO", "DRUG A"],
            "EXSTDTC": ["2024-01-01", "2024-01-15", "2024-02-01"],
            "EXENDTC": ["2024-01-14", "2024-01-31", "2024-02-10"],
        })
        adsl = sdtm_to_adam({"DM": dm, "EX": ex}, "ADSL").set_index("USUBJID")
        assert adsl.loc["S1-001", "TRTSDT"] == pd.Timestamp("2024-01-01")
        assert adsl.loc["S1-001", "TRTEDT"] == pd.Timestamp("2024-01-31")
        assert adsl.loc["S1-001", "TRTDURD"] == 31
        assert adsl.loc["S1-002", "ARM"] == "DRUG A"
        assert pd.isna(adsl.loc["S1-003", "ARM"])

    def test_advs_baseline_and_change(self, dm, vs):
        advs = sdtm_to_adam({"DM": dm, "VS": vs}, "ADVS")
        s1 = advs[advs["USUBJID"] == "S1-001"].set_index("VISITNUM")
        assert s1.loc[2, "ABLFL"] == "Y"
        assert np.isnan(s1.loc[2, "CHG"])
        assert s1.loc[4, "BASE"] == 120.0
        assert s1.loc[4, "CHG"] == 10.0
        assert s1.loc[5, "CHG"] == -10.0
        assert (advs["PARAMCD"] == "SYSBP").all()
        assert advs["AGE"].notna().all()

    def test_adae_codes(self, dm, ae):
        adae = sdtm_to_adam({"DM": dm, "AE": ae}, "ADAE")
        assert adae["USUBJID"].tolist() == ["S1-001", "S1-001", "S1-002"]
        assert adae["AESEQ"].tolist() == [1, 2, 1]
        assert pd.isna(adae["AESEVN"].iloc[0])
        assert adae["AESEVN"].iloc[1] == 3
        assert adae["AERELN"].tolist() == [1, 0, 1]
        assert (adae["SAFFL"] == "Y").all()

    def test_missing_inputs(self, dm):
        with pytest.raises(ValueError, match="VS"):
            sdtm_to_adam({"DM": dm}, "ADVS")
        with pytest.raises(ValueError, match="DM"):
            sdtm_to_adam({}, "ADSL")

    def test_unknown_target(self, dm):
        with pytest.raises(ValueError, match="Unsupported"):
            sdtm_to_adam({"DM": dm}, "ADLB")


class TestMetadata:
    def test_controlled_terminology(self, dm):
        out = apply_controlled_terminology(dm, {"SEX": "SEX", "RACE": {"WHITE": "White"}, "MISSING": "SEX"})
        assert out["SEXDEC"].tolist() == ["Male", "Female", "Female"]
        assert out["RACEDEC"].tolist() == ["White", "ASIAN", "OTHER"]
        assert "MISSINGDEC" not in out.columns
        assert "SEXDEC" not in dm.columns

    def test_unknown_codelist(self, dm):
        with pytest.raises(ValueError):
            apply_controlled_terminology(dm, {"SEX": "GENDER"})

    def test_define_xml(self, dm):
        xml = generate_define_xml(dm, "DM", {"study_oid": "S1", "study_name": "Study One"})
        assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        root = ET.fromstring(xml.split("\n", 1)[1])
        ns = {"odm": "http://www.cdisc.org/ns/odm/v1.3"}
        items = root.findall(".//odm:ItemDef", ns)
        assert [i.get("Name") for i in items] == list(dm.columns)
        types = {i.get("Name"): i.get("DataType") for i in items}
        assert types["AGE"] == "integer"
        assert types["SEX"] == "text"
        assert root.find(".//odm:StudyName", ns).text == "Study One"

    def test_sdrg_template(self, dm):
        inv = dataset_inventory({"ADSL": sdtm_to_adam({"DM": dm}, "ADSL")})
        assert inv["ADSL"]["n_records"] == 3
        text = create_sdrg_template({"study_name": "Study One", "phase": "II"}, inv)
        assert text.startswith("# Study Data Review Guide")
        assert "### ADSL" in text
        assert "- Records: 3" in text
        assert "- Study Phase: II" in text
