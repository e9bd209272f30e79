"""pharmadash: pharmaceutical analytics dashboards as Python pipelines.

Pharmacokinetic modelling and non-compartmental analysis, a clinical data
viewer with SDTM/ADaM utilities, a regulatory submission tracker, a GxP
compliance tracker and a data-integration hub. Each dashboard writes its
tables, charts and reports to an output directory.
"""

__version__ = "0.1.0"

# Configuration
from .config import load_config, resolve_reference_date

# PK models and analysis
from .pk import (
    one_compartment_concentration,
    two_compartment_concentration,
    concentration_profile,
)
from .nca import (
    PKParameters,
    auc,
    calculate_pk_parameters,
    nca_by_subject,
    population_pk_summary,
)
from .pkpd import (
    emax_effect,
    indirect_response,
    simulate_dose_exposure,
    vpc_summary,
)
from .simulate import simulate_pk_study

# Dashboards
from .clinical import generate_clinical_data
from .regulatory import generate_regulatory_data, calculate_submission_metrics
from .compliance import generate_gxp_data, calculate_compliance_metrics
from .integration import (
    generate_sas_migration,
    generate_adam_inventory,
    generate_hpc_nodes,
    generate_hpc_jobs,
    generate_storage,
)
from .sas2r import convert_sas_to_r

# CDISC
from .cdisc import (
    ValidationResult,
    validate_sdtm,
    sdtm_to_adam,
    apply_controlled_terminology,
)

# Table helpers
from .tables import apply_filters, count_by

__all__ = [
    # Configuration
    "load_config",
    "resolve_reference_date",
    # PK
    "one_compartment_concentration",
    "two_compartment_concentration",
    "concentration_profile",
    "PKParameters",
    "auc",
    "calculate_pk_parameters",
    "nca_by_subject",
    "population_pk_summary",
    "emax_effect",
    "indirect_response",
    "simulate_dose_exposure",
    "vpc_summary",
    "simulate_pk_study",
    # Dashboards
    "generate_clinical_data",
    "generate_regulatory_data",
    "calculate_submission_metrics",
    "generate_gxp_data",
    "calculate_compliance_metrics",
    "generate_sas_migration",
    "generate_adam_inventory",
    "generate_hpc_nodes",
    "generate_hpc_jobs",
    "generate_storage",
    "convert_sas_to_r",
    # CDISC
    "ValidationResult",
    "validate_sdtm",
    "sdtm_to_adam",
    "apply_controlled_terminology",
    # Tables
    "apply_filters",
    "count_by",
]
