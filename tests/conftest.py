"""
Pytest configuration and shared fixtures for pharmadash tests.
"""

import datetime as dt

import matplotlib

matplotlib.use("Agg")

import pytest

from pharmadash.clinical import generate_clinical_data
from pharmadash.compliance import generate_gxp_data
from pharmadash.regulatory import generate_regulatory_data
from pharmadash.simulate import simulate_pk_study


@pytest.fixture
def ref_date():
    """Fixed reference date for date-relative metrics."""
    return dt.date(2024, 6, 1)


@pytest.fixture
def clinical_data():
    return generate_clinical_data(n_subjects=40, n_sites=5, n_vitals=300, n_ae=60, seed=11)


@pytest.fixture
def pk_study():
    return simulate_pk_study(
        n_subjects=12,
        dose_map={"Low Dose": 50.0, "High Dose": 200.0},
        seed=7,
    )


@pytest.fixture
def regulatory_data():
    return generate_regulatory_data(seed=2023)


@pytest.fixture
def gxp_data(ref_date):
    return generate_gxp_data(seed=2024, reference_date=ref_date)
