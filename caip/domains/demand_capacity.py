"""
Demand & capacity benchmarking domain.

Per-practice monthly activity (appointments, telephony, online
consultations) -> comparable per-day / per-1000 metrics, national
arrays, and benchmark positions for one practice.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import pandas as pd

from caip.core.ingest import read_tabular_file
from caip.core.kpi_utils import safe_div, valid_numbers
from caip.core.normalizer import clean_text, parse_number
from caip.core.validator import HeaderValidator, describe_header_failure
from caip.domains.base import BaseDomain
from caip.domains.workforce import working_days_for_month
from caip.narrative.benchmarks import (
    build_benchmark_positions,
    detect_outlier,
    forecast_values,
    network_statistics,
    rank_practices,
)

log = logging.getLogger(__name__)

REQUIRED_ACTIVITY_COLUMNS = ["ods_code", "month", "list_size", "gp_appointments"]

NUMERIC_ACTIVITY_COLUMNS = [
    "list_size", "gp_appointments", "other_appointments", "total_appointments",
    "dna", "face_to_face", "telephone", "video", "home_visit", "same_day_pct",
    "inbound_calls", "answered_calls", "missed_calls",
    "oc_submissions", "oc_clinical_submissions",
]

# Metrics compared nationally, with the direction that ranks "first"
BENCHMARK_METRICS = {
    "gp_appts_per_demand": "desc",
    "gp_appts_per_1000": "desc",
    "gp_appt_or_oc_per_day_pct": "desc",
    "other_appt_per_day_pct": "desc",
    "dna_rate": "asc",
    "same_day_pct": "desc",
    "inbound_calls_per_1000": "asc",
    "missed_call_pct": "asc",
    "oc_per_1000": "asc",
    "oc_medical_pct": "asc",
}


# =====================================================
# FORMULAS
# =====================================================

def per_day_pct(count: Optional[float], population: Optional[float], working_days: int) -> Optional[float]:
    """count / (population x working days) x 100"""
    if not population or not working_days or count is None:
        return None
    return count / (population * working_days) * 100


def per_1000(value: Optional[float], population: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    return safe_div(value * 1000, population)


def appointments_per_demand_channel(
    appointments: float,
    inbound_calls: Optional[float],
    clinical_oc: Optional[float],
) -> Optional[float]:
    """Appointments per unit of phone + medical online demand."""
    return safe_div(appointments, (inbound_calls or 0) + (clinical_oc or 0))


def _share(part: float, total: float) -> Optional[float]:
    return part / total * 100 if total > 0 else None


# =====================================================
# PRACTICE METRICS
# =====================================================

def calculate_practice_metrics(activity: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Metrics for one practice-month.

    `activity` carries raw counts (see NUMERIC_ACTIVITY_COLUMNS); a
    missing count is treated as zero, a missing population makes the
    population-based metrics None.
    """
    def num(key: str) -> float:
        return activity.get(key) or 0

    population = activity.get("list_size")
    days = working_days_for_month(activity.get("month"))

    gp = num("gp_appointments")
    other = num("other_appointments")
    total = num("total_appointments") or gp + other
    inbound = num("inbound_calls")
    missed = num("missed_calls")
    oc = num("oc_submissions")
    oc_clinical = num("oc_clinical_submissions")

    has_telephony = inbound > 0
    has_oc = oc > 0

    return {
        "ods_code": activity.get("ods_code"),
        "month": activity.get("month"),
        "population": population,
        "working_days": days,

        # Per day
        "gp_appt_per_day_pct": per_day_pct(gp, population, days),
        "other_appt_per_day_pct": per_day_pct(other, population, days),
        "total_appt_per_day_pct": per_day_pct(total, population, days),
        "gp_appt_or_oc_per_day_pct": per_day_pct(gp + oc_clinical, population, days),

        # Per 1000
        "gp_appts_per_1000": per_1000(gp, population),
        "gp_appt_or_oc_per_1000": per_1000(gp + oc_clinical, population),
        "other_appts_per_1000": per_1000(other, population),
        "total_appts_per_1000": per_1000(total, population),
        "inbound_calls_per_1000": per_1000(inbound, population) if has_telephony else None,
        "missed_calls_per_1000": per_1000(missed, population) if has_telephony else None,
        "oc_per_1000": per_1000(oc, population) if has_oc else None,

        # Conversion
        "gp_appts_per_demand": appointments_per_demand_channel(gp, inbound, oc_clinical),
        "total_appts_per_demand": appointments_per_demand_channel(total, inbound, oc_clinical),

        # Rates
        "dna_rate": safe_div(num("dna") * 100, total),
        "missed_call_pct": safe_div(missed * 100, inbound),
        "oc_medical_pct": safe_div(oc_clinical * 100, oc),
        "same_day_pct": activity.get("same_day_pct"),

        # Mode shares
        "face_to_face_pct": _share(num("face_to_face"), total),
        "telephone_pct": _share(num("telephone"), total),
        "video_pct": _share(num("video"), total),
        "home_visit_pct": _share(num("home_visit"), total),

        # Raw
        "gp_appointments": gp,
        "other_appointments": other,
        "total_appointments": total,
        "inbound_calls": inbound,
        "missed_calls": missed,
        "oc_submissions": oc,
        "oc_clinical_submissions": oc_clinical,

        "has_telephony_data": has_telephony,
        "has_oc_data": has_oc,
        "has_appointment_data": total > 0,
    }


def collect_national_arrays(
    practice_metrics: Sequence[Mapping[str, Any]],
    keys: Sequence[str] = tuple(BENCHMARK_METRICS),
) -> Dict[str, List[float]]:
    """Valid values per metric across every practice."""
    return {
        key: valid_numbers(m.get(key) for m in practice_metrics)
        for key in keys
    }


# =====================================================
# ACTIVITY TABLE
# =====================================================

def activity_rows(frame: pd.DataFrame) -> List[Dict[str, Any]]:
    frame = frame.rename(columns=lambda c: str(c).strip().lower())
    passed, results = HeaderValidator(REQUIRED_ACTIVITY_COLUMNS).validate(frame.columns)
    if not passed:
        log.warning("Rejected activity table: %s", results)
        raise ValueError(describe_header_failure(results))

    rows = []
    for raw in frame.to_dict("records"):
        code = clean_text(raw.get("ods_code"))
        if not code:
            continue
        row = {"ods_code": code.upper(), "month": clean_text(raw.get("month"))}
        for key in NUMERIC_ACTIVITY_COLUMNS:
            row[key] = parse_number(raw.get(key))
        rows.append(row)
    return rows


def _month_key(month: Optional[str]):
    """Chronological sort key for month labels; unreadable labels sort last."""
    stamp = pd.NaT
    if month:
        stamp = pd.to_datetime(month, format="%B %Y", errors="coerce")
        if pd.isna(stamp):
            stamp = pd.to_datetime(month, format="mixed", errors="coerce")
    return (pd.isna(stamp), stamp if not pd.isna(stamp) else pd.Timestamp.min, month or "")


# =====================================================
# DOMAIN
# =====================================================

class DemandCapacityDomain(BaseDomain):
    name = "benchmark"
    description = "Demand and capacity benchmarking against national peers"
    required_columns = REQUIRED_ACTIVITY_COLUMNS

    def __init__(self, config: Optional[Dict[str, Any]] = None, practice: Optional[str] = None):
        super().__init__(config)
        self.practice = (practice or "").strip().upper()
        section = self.config.get("benchmark", {}) or {}
        self.outlier_threshold = float(section.get("outlier_threshold", 1.5))
        self.forecast_periods = int(section.get("forecast_periods", 3))

    def validate_data(self, data) -> bool:
        if not self.practice:
            raise ValueError("A practice ODS code is required for benchmarking")
        return True

    def preprocess(self, data: Union[str, Path, pd.DataFrame]) -> List[Dict[str, Any]]:
        frame = data if isinstance(data, pd.DataFrame) else read_tabular_file(data)
        return [calculate_practice_metrics(r) for r in activity_rows(frame)]

    def calculate_kpis(self, metrics: List[Dict[str, Any]]) -> Dict[str, Any]:
        months = sorted({m["month"] for m in metrics}, key=_month_key)
        if not months:
            raise ValueError("Activity table contains no practice rows")
        latest = months[-1]

        current = [m for m in metrics if m["month"] == latest]
        history = sorted(
            (m for m in metrics if m["ods_code"] == self.practice and m["month"] != latest),
            key=lambda m: _month_key(m["month"]),
        )

        target = next((m for m in current if m["ods_code"] == self.practice), None)
        if target is None:
            raise ValueError(f"Practice {self.practice} has no activity for {latest}")

        log.info("Benchmarking %s against %d practices for %s", self.practice, len(current), latest)

        national = collect_national_arrays(current)
        historical = {key: [h.get(key) for h in history] for key in BENCHMARK_METRICS}

        comparison = {}
        for key, direction in BENCHMARK_METRICS.items():
            stats = network_statistics(national[key])
            ranking = rank_practices({m["ods_code"]: m.get(key) for m in current}, direction)
            comparison[key] = {
                "network": stats,
                "outlier": detect_outlier(target.get(key), stats, self.outlier_threshold),
                "rank": next((r["rank"] for r in ranking if r["practice"] == self.practice), None),
                "ranked_practices": len(ranking),
                "forecast": forecast_values(
                    historical[key] + [target.get(key)], self.forecast_periods
                ),
            }

        return {
            "practice": self.practice,
            "month": latest,
            "metrics": target,
            "positions": build_benchmark_positions(target, national, historical),
            "comparison": comparison,
        }

    def generate_insights(self, metrics, kpis: Dict[str, Any]) -> List[Dict[str, Any]]:
        insights = []
        for key, block in kpis["comparison"].items():
            outlier = block["outlier"]
            if outlier and outlier["is_outlier"]:
                insights.append(self.insight(
                    "WARNING",
                    f"Outlier: {key}",
                    f"{outlier['deviations']:.1f} standard deviations {outlier['direction']} "
                    f"the national mean.",
                    "National Benchmarking",
                ))
        return insights
