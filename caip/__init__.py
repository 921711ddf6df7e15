"""
CAIP - Capacity & Access Improvement analytics

Primary-care demand, follow-up and workforce capacity metrics
with national benchmarking.
"""

from .__version__ import __version__

# Core Engine
from .core.normalizer import parse_flexible_date, parse_number, parse_short_date
from .core.classifier import ContactRecord, DataQuality, classify_row
from .core.ingest import (
    EmptyDatasetError,
    FormatMismatchError,
    IngestionError,
    load_contact_records,
)

# Domain API
from .domains import (
    BaseDomain,
    DemandCapacityDomain,
    FollowUpDomain,
    TriageDomain,
    WorkforceDomain,
    get_domain,
)
from .domains.triage import aggregate, filter_records
from .domains.followup import (
    calculate_clinician_follow_up,
    calculate_monthly_trends,
    calculate_overall_follow_up,
    calculate_same_clinician_follow_up,
    parse_follow_up_csv,
)
from .domains.workforce import (
    calculate_capacity_model,
    calculate_capacity_pressure_score,
    calculate_fragility_flags,
    calculate_workforce_totals,
)

# Benchmarking
from .narrative.benchmarks import percentile, trend

__all__ = [
    "__version__",
    "parse_flexible_date",
    "parse_number",
    "parse_short_date",
    "ContactRecord",
    "DataQuality",
    "classify_row",
    "IngestionError",
    "FormatMismatchError",
    "EmptyDatasetError",
    "load_contact_records",
    "BaseDomain",
    "TriageDomain",
    "FollowUpDomain",
    "WorkforceDomain",
    "DemandCapacityDomain",
    "get_domain",
    "aggregate",
    "filter_records",
    "parse_follow_up_csv",
    "calculate_overall_follow_up",
    "calculate_same_clinician_follow_up",
    "calculate_clinician_follow_up",
    "calculate_monthly_trends",
    "calculate_workforce_totals",
    "calculate_fragility_flags",
    "calculate_capacity_model",
    "calculate_capacity_pressure_score",
    "percentile",
    "trend",
]
