"""
Tests for the clinical data viewer.
"""

import numpy as np
import pandas as pd
import pytest

from pharmadash.clinical import (
    ARMS,
    VITAL_PARAMS,
    VISITS,
    change_from_baseline,
    demographics_summary,
    generate_clinical_data,
    select_dataset,
    study_overview,
    subjects_by_site,
    vitals_by_visit,
)


class TestGenerateClinicalData:
    def test_table_sizes(self, clinical_data):
        assert len(clinical_data["dm"]) == 40
        assert len(clinical_data["vs"]) == 300
        assert len(clinical_data["ae"]) == 60

    def test_referential_integrity(self, clinical_data):
        ids = set(clinical_data["dm"]["SUBJID"])
        assert set(clinical_data["vs"]["SUBJID"]) <= ids
        assert set(clinical_data["ae"]["SUBJID"]) <= ids

    def test_value_domains(self, clinical_data):
        dm, vs, ae = clinical_data["dm"], clinical_data["vs"], clinical_data["ae"]
        assert dm["AGE"].between(18, 75).all()
        assert set(dm["ARM"]) <= set(ARMS)
        assert set(vs["VISIT"]) <= set(VISITS)
        assert set(ae["RELATED"]) <= {"YES", "NO"}
        assert dm["SITEID"].str.match(r"^SITE\d{2}$").all()

    def test_vital_units_match_parameter(self, clinical_data):
        vs = clinical_data["vs"]
        expected = vs["PARAM"].map({k: v[2] for k, v in VITAL_PARAMS.items()})
        assert (vs["UNIT"] == expected).all()

    def test_reproducible(self):
        a = generate_clinical_data(n_subjects=10, n_vitals=20, n_ae=5, seed=3)
        b = generate_clinical_data(n_subjects=10, n_vitals=20, n_ae=5, seed=3)
        for key in ("dm", "vs", "ae"):
            pd.testing.assert_frame_equal(a[key], b[key])

    def test_invalid_sizes(self):
        with pytest.raises(ValueError):
            generate_clinical_data(n_subjects=0)


class TestSummaries:
    def test_study_overview(self, clinical_data):
        ov = study_overview(clinical_data)
        assert ov["total_subjects"] == 40
        assert ov["total_aes"] == 60
        assert ov["total_sites"] == clinical_data["dm"]["SITEID"].nunique()
        assert ov["mean_age"] == round(clinical_data["dm"]["AGE"].mean(), 1)

    def test_demographics_summary(self, clinical_data):
        summ = demographics_summary(clinical_data["dm"])
        assert summ["n"].sum() == 40
        assert summ["pct_female"].between(0, 100).all()

    def test_subjects_by_site(self, clinical_data):
        tab = subjects_by_site(clinical_data["dm"])
        arms = [c for c in tab.columns if c not in ("SITEID", "Total")]
        assert (tab[arms].sum(axis=1) == tab["Total"]).all()
        assert tab["Total"].sum() == 40


class TestVitals:
    def test_vitals_by_visit(self, clinical_data):
        summ = vitals_by_visit(clinical_data["vs"], "Systolic BP")
        assert summ["VISIT"].tolist() == [v for v in VISITS if v in set(summ["VISIT"])]
        np.testing.assert_allclose(summ["se"], summ["sd"] / np.sqrt(summ["n"]))
        assert summ["mean"].between(90, 150).all()

    def test_unknown_parameter_is_empty(self, clinical_data):
        assert vitals_by_visit(clinical_data["vs"], "Temperature").empty

    def test_change_from_baseline(self):
        vs = pd.DataFrame({
            "SUBJID": ["S1", "S1", "S1", "S1", "S2", "S2"],
            "VISIT": ["Baseline", "Baseline", "Week 4", "Week 8", "Week 4", "Week 8"],
            "PARAM": "Heart Rate",
            "VALUE": [70.0, 74.0, 80.0, 66.0, 75.0, 77.0],
        })
        cfb = change_from_baseline(vs, "Heart Rate")
        # S2 has no baseline; S1 baseline is the mean of its two readings
        assert cfb["SUBJID"].tolist() == ["S1", "S1"]
        assert cfb["VISIT"].tolist() == ["Week 4", "Week 8"]
        assert cfb["BASE"].tolist() == [72.0, 72.0]
        assert cfb["CHG"].tolist() == [8.0, -6.0]
        assert cfb["PCHG"].iloc[0] == pytest.approx(8.0 / 72.0 * 100)


class TestSelectDataset:
    def test_known_names(self, clinical_data):
        assert select_dataset(clinical_data, "Adverse Events") is clinical_data["ae"]

    def test_unknown_name(self, clinical_data):
        with pytest.raises(KeyError):
            select_dataset(clinical_data, "Labs")
