"""
Workforce capacity domain.

Role totals (WTE + optional headcount) plus observed activity ->
super-group rollups, dependency-risk flags, a theoretical-vs-actual
capacity model and a 0-100 capacity pressure score.

Unknown headcount is None, never 0, at every level.
"""

import logging
import math
import re
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import pandas as pd

from caip.config.capacity_config import CapacityAssumptions, FragilityThresholds, GroupThreshold
from caip.core.ingest import read_tabular_file
from caip.core.kpi_utils import round_half_up, safe_div
from caip.core.normalizer import clean_text, parse_number
from caip.core.validator import HeaderValidator, describe_header_failure
from caip.core.workforce_schema import (
    ARRS_OTHER_FTE_FIELDS,
    ARRS_OTHER_HC_FIELDS,
    ARRS_ROLE_GROUPS,
    CLINICAL_ROLE_GROUPS,
    GP_ROLE_GROUPS,
    NON_CLINICAL_ROLE_GROUPS,
    NON_GP_CLINICAL_ROLE_GROUPS,
    ROLE_GROUP_ORDER,
    ROLE_LABELS,
    ROLE_MAPPINGS,
    RoleGroup,
    sum_fields,
)
from caip.domains.base import BaseDomain
from caip.narrative.benchmarks import percentile

log = logging.getLogger(__name__)

DEFAULT_WORKING_DAYS = 21

WORKING_DAYS_IN_MONTH = {
    "January": 22,
    "February": 20,
    "March": 21,
    "April": 21,
    "May": 21,
    "June": 21,
    "July": 23,
    "August": 21,
    "September": 21,
    "October": 22,
    "November": 21,
    "December": 20,
}

REQUIRED_WORKFORCE_COLUMNS = ["PRAC_CODE", "PRAC_NAME", "TOTAL_PATIENTS"]

_MONTH_IN_NAME = re.compile(
    r"(January|February|March|April|May|June|July|August|September|October|November|December)\s+(\d{4})",
    re.IGNORECASE,
)


# =====================================================
# INPUT TYPES
# =====================================================

@dataclass(frozen=True)
class RoleTotal:
    wte: float = 0.0
    headcount: Optional[float] = None


@dataclass
class ActivityCounts:
    """Observed activity for one practice over one period."""
    gp_appointments: float = 0
    other_appointments: float = 0
    total_appointments: Optional[float] = None
    answered_calls: float = 0
    missed_calls: float = 0
    oc_submissions: float = 0
    oc_clinical_submissions: float = 0

    @property
    def appointments(self) -> float:
        if self.total_appointments:
            return self.total_appointments
        return self.gp_appointments + self.other_appointments


# =====================================================
# MONTH HELPERS
# =====================================================

def infer_month_from_filename(filename: Optional[str]) -> Optional[str]:
    """'GPW Practice Level - November 2025.csv' -> 'November 2025'"""
    match = _MONTH_IN_NAME.search(str(filename or ""))
    if not match:
        return None
    return f"{match.group(1).title()} {match.group(2)}"


def working_days_for_month(month: Optional[str]) -> int:
    if not month:
        return DEFAULT_WORKING_DAYS
    name = str(month).split(" ")[0].strip().title()
    return WORKING_DAYS_IN_MONTH.get(name, DEFAULT_WORKING_DAYS)


# =====================================================
# ROLE TOTALS + ROLLUPS
# =====================================================

def build_role_totals(records: Iterable[Mapping[str, Any]]) -> Dict[RoleGroup, RoleTotal]:
    totals: Dict[RoleGroup, RoleTotal] = {}
    for record in records:
        group = record.get("role_group")
        if not group:
            continue
        totals[RoleGroup(group)] = RoleTotal(
            wte=record.get("wte") or 0.0,
            headcount=record.get("headcount"),
        )
    return totals


def role_wte(role_totals: Mapping[RoleGroup, RoleTotal], group: RoleGroup) -> float:
    total = role_totals.get(group)
    return total.wte if total else 0.0


def sum_wte(role_totals: Mapping[RoleGroup, RoleTotal], groups: Sequence[RoleGroup]) -> float:
    return sum(role_wte(role_totals, g) for g in groups)


def sum_headcount(role_totals: Mapping[RoleGroup, RoleTotal], groups: Sequence[RoleGroup]) -> Optional[float]:
    """
    Headcount rollup over the role groups present.

    Absent groups contribute nothing; one present group with unknown
    headcount makes the whole rollup unknown.
    """
    present = [role_totals[g] for g in groups if g in role_totals]
    if not present or any(t.headcount is None for t in present):
        return None
    return sum(t.headcount for t in present)


def calculate_workforce_totals(
    role_totals: Mapping[RoleGroup, RoleTotal],
    arrs_other_wte: float = 0.0,
    arrs_other_headcount: Optional[float] = None,
) -> Dict[str, Any]:
    arrs_roles_present = any(g in role_totals for g in ARRS_ROLE_GROUPS)
    arrs_roles_headcount = sum_headcount(role_totals, ARRS_ROLE_GROUPS)

    if arrs_roles_present and arrs_roles_headcount is None:
        arrs_headcount = None
    elif arrs_other_headcount is None:
        # other ARRS staff in post with no headcount published
        arrs_headcount = None if (arrs_other_wte or 0) > 0 else arrs_roles_headcount
    else:
        arrs_headcount = (arrs_roles_headcount or 0) + arrs_other_headcount

    return {
        "total_wte": sum_wte(role_totals, ROLE_GROUP_ORDER),
        "total_wte_gp": sum_wte(role_totals, GP_ROLE_GROUPS),
        "total_wte_clinical": sum_wte(role_totals, CLINICAL_ROLE_GROUPS),
        "total_wte_non_clinical": sum_wte(role_totals, NON_CLINICAL_ROLE_GROUPS),
        "total_wte_arrs_roles": sum_wte(role_totals, ARRS_ROLE_GROUPS),
        "arrs_other_wte": arrs_other_wte,
        "total_wte_arrs": sum_wte(role_totals, ARRS_ROLE_GROUPS) + arrs_other_wte,
        "total_headcount": sum_headcount(role_totals, ROLE_GROUP_ORDER),
        "total_headcount_gp": sum_headcount(role_totals, GP_ROLE_GROUPS),
        "total_headcount_clinical": sum_headcount(role_totals, CLINICAL_ROLE_GROUPS),
        "total_headcount_non_clinical": sum_headcount(role_totals, NON_CLINICAL_ROLE_GROUPS),
        "arrs_other_headcount": arrs_other_headcount,
        "total_headcount_arrs": arrs_headcount,
    }


def calculate_derived_metrics(totals: Mapping[str, Any], list_size: Optional[float]) -> Dict[str, Optional[float]]:
    population = list_size or 0
    gp = totals.get("total_wte_gp") or 0
    clinical = totals.get("total_wte_clinical") or 0
    non_clinical = totals.get("total_wte_non_clinical") or 0
    arrs = totals.get("total_wte_arrs") or 0

    return {
        "patients_per_gp_wte": safe_div(population, gp),
        "patients_per_clinical_wte": safe_div(population, clinical),
        "gp_wte_per_1000": safe_div(gp * 1000, population),
        "clinical_wte_per_1000": safe_div(clinical * 1000, population),
        "admin_to_clinical_ratio": safe_div(non_clinical, clinical),
        "arrs_pct_clinical": safe_div(arrs * 100, clinical),
        "skill_mix_index": safe_div(clinical - gp, clinical),
    }


# =====================================================
# DEPENDENCY RISK
# =====================================================

def _flag(label: str, wte: float, headcount: Optional[float], limits: GroupThreshold, message: str):
    if wte <= 0:
        return None
    known_low = headcount is not None and headcount <= limits.max_headcount
    if known_low or wte <= limits.min_wte:
        return {"role_group": label, "message": message, "wte": wte, "headcount": headcount}
    return None


def calculate_fragility_flags(
    role_totals: Mapping[RoleGroup, RoleTotal],
    thresholds: Optional[FragilityThresholds] = None,
) -> List[Dict[str, Any]]:
    """
    Single-point-of-failure flags for GP, nurse and reception cover.

    A group is flagged when it has WTE and either its known headcount
    is at or under the headcount limit or its WTE is at or under the
    WTE limit.
    """
    thresholds = thresholds or FragilityThresholds()

    def headcount(group: RoleGroup) -> Optional[float]:
        total = role_totals.get(group)
        return total.headcount if total else None

    candidates = [
        _flag("GP", sum_wte(role_totals, GP_ROLE_GROUPS), sum_headcount(role_totals, GP_ROLE_GROUPS),
              thresholds.gp, "Single GP dependency risk"),
        _flag(RoleGroup.NURSE.value, role_wte(role_totals, RoleGroup.NURSE), headcount(RoleGroup.NURSE),
              thresholds.nurse, "Single nurse dependency risk"),
        _flag(RoleGroup.RECEPTION.value, role_wte(role_totals, RoleGroup.RECEPTION), headcount(RoleGroup.RECEPTION),
              thresholds.reception, "Single reception dependency risk"),
    ]
    return [f for f in candidates if f]


# =====================================================
# DEMAND PER WTE
# =====================================================

def calculate_demand_metrics(
    totals: Mapping[str, Any],
    role_totals: Mapping[RoleGroup, RoleTotal],
    activity: ActivityCounts,
) -> Dict[str, Any]:
    gp = totals.get("total_wte_gp") or 0
    clinical = totals.get("total_wte_clinical") or 0
    non_gp_clinical = max(0.0, clinical - gp)
    admin = sum_wte(role_totals, [RoleGroup.ADMIN, RoleGroup.RECEPTION, RoleGroup.PRACTICE_MGR])

    return {
        "appointments_per_gp_wte": safe_div(activity.gp_appointments, gp),
        "appointments_per_clinical_wte": safe_div(activity.appointments, clinical),
        "appointments_per_non_gp_clinical_wte": safe_div(activity.other_appointments, non_gp_clinical),
        "calls_answered_per_admin_wte": safe_div(activity.answered_calls, admin),
        "calls_missed_per_admin_wte": safe_div(activity.missed_calls, admin),
        "oc_per_gp_wte": safe_div(activity.oc_submissions, gp),
        "oc_clinical_per_gp_wte": safe_div(activity.oc_clinical_submissions, gp),
        "oc_per_clinical_wte": safe_div(activity.oc_submissions, clinical),
        "admin_wte": admin,
    }


# =====================================================
# CAPACITY MODEL
# =====================================================

def distribute_by_wte(
    total: float,
    role_totals: Mapping[RoleGroup, RoleTotal],
    groups: Sequence[RoleGroup],
) -> Dict[RoleGroup, float]:
    """Split `total` across `groups` in proportion to their WTE."""
    group_wte = sum_wte(role_totals, groups)
    if not group_wte or total <= 0:
        return {g: 0.0 for g in groups}
    return {g: total * role_wte(role_totals, g) / group_wte for g in groups}


def calculate_capacity_model(
    role_totals: Mapping[RoleGroup, RoleTotal],
    activity: ActivityCounts,
    assumptions: Optional[CapacityAssumptions] = None,
    month: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Theoretical vs actual appointment throughput per clinical role.

    theoretical = WTE x appointments-per-WTE-per-day x working days

    Actual per role is an ESTIMATE: GP appointments are split across
    the GP roles, and other-staff appointments across the remaining
    clinical roles, in proportion to WTE. The source data carries no
    per-role activity, so role-level utilisation is an approximation.
    """
    assumptions = assumptions or CapacityAssumptions()
    working_days = assumptions.working_days_per_month or working_days_for_month(month)
    rates = assumptions.rates()

    gp_actuals = distribute_by_wte(activity.gp_appointments, role_totals, GP_ROLE_GROUPS)
    other_actuals = distribute_by_wte(activity.other_appointments, role_totals, NON_GP_CLINICAL_ROLE_GROUPS)

    role_capacity = {}
    total_theoretical = 0.0
    for group in CLINICAL_ROLE_GROUPS:
        wte = role_wte(role_totals, group)
        rate = float(rates.get(group, 0))
        theoretical = wte * rate * working_days
        actual = gp_actuals.get(group, other_actuals.get(group, 0.0))

        role_capacity[group.value] = {
            "label": ROLE_LABELS[group],
            "wte": wte,
            "appointments_per_wte_per_day": rate,
            "theoretical": theoretical,
            "actual": actual,
            "utilization": safe_div(actual, theoretical),
            "unused": max(0.0, theoretical - actual),
        }
        total_theoretical += theoretical

    clinical_wte = sum_wte(role_totals, CLINICAL_ROLE_GROUPS)
    total_actual = activity.gp_appointments + activity.other_appointments if clinical_wte > 0 else 0

    return {
        "working_days": working_days,
        "per_wte_per_day": {g.value: float(r) for g, r in rates.items()},
        "role_capacity": role_capacity,
        "total_theoretical": total_theoretical,
        "total_actual": total_actual,
        "utilization": safe_div(total_actual, total_theoretical),
        "unused_capacity": max(0.0, total_theoretical - total_actual),
        "attribution": "estimated: activity split across roles by WTE share",
    }


def _clamp_term(value: Optional[float], divisor: float, ceiling: float = 1.5) -> float:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return 0.0
    return max(0.0, min(ceiling, value / divisor))


def calculate_capacity_pressure_score(
    demand_capacity_ratio: Optional[float],
    missed_calls_per_admin_wte: Optional[float],
    oc_per_gp_wte: Optional[float],
) -> int:
    """
    Composite 0-100 pressure score.

    Each term is clamped to [0, 1.5] after scaling (ratio / 1.2,
    missed calls / 150, OC / 80), weighted 0.6 / 0.25 / 0.15 and
    rescaled by the 1.5 ceiling.
    """
    demand = _clamp_term(demand_capacity_ratio, 1.2)
    missed = _clamp_term(missed_calls_per_admin_wte, 150)
    oc = _clamp_term(oc_per_gp_wte, 80)

    weighted = (demand * 0.6 + missed * 0.25 + oc * 0.15) / 1.5
    return int(round_half_up(weighted * 100))


# =====================================================
# NATIONAL WORKFORCE EXTRACT
# =====================================================

def _is_unmapped(value: Optional[str]) -> bool:
    return value is not None and value.lower() in ("unmapped", "na")


def build_workforce_practice(row: Mapping[str, Any], month: Optional[str]) -> Optional[Dict[str, Any]]:
    """One practice row of the national extract, or None when unmapped."""
    ods_code = clean_text(row.get("PRAC_CODE"))
    if not ods_code or _is_unmapped(ods_code):
        return None

    name = clean_text(row.get("PRAC_NAME"))
    if not name or _is_unmapped(name):
        return None

    records = []
    for group, fields in ROLE_MAPPINGS.items():
        wte = sum_fields(row, fields["wte"])
        headcount = sum_fields(row, fields["headcount"])
        if wte is None and headcount is None:
            continue
        records.append({
            "role_group": group.value,
            "label": ROLE_LABELS[group],
            "wte": wte or 0.0,
            "headcount": headcount,
        })

    totals = calculate_workforce_totals(
        build_role_totals(records),
        arrs_other_wte=sum_fields(row, ARRS_OTHER_FTE_FIELDS) or 0.0,
        arrs_other_headcount=sum_fields(row, ARRS_OTHER_HC_FIELDS),
    )

    return {
        "ods_code": ods_code,
        "name": name,
        "pcn_code": clean_text(row.get("PCN_CODE")),
        "pcn_name": clean_text(row.get("PCN_NAME")),
        "sub_icb_code": clean_text(row.get("SUB_ICB_CODE")),
        "icb_code": clean_text(row.get("ICB_CODE")),
        "region_code": clean_text(row.get("REGION_CODE")),
        "list_size": parse_number(row.get("TOTAL_PATIENTS")) or 0,
        "month": month,
        "records": records,
        "totals": totals,
    }


def aggregate_workforce_practices(practices: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    National rollup. Per-role headcount sums the practices that report
    it; `headcount_unknown` counts the practices that did not.
    """
    wte_keys = ("total_wte", "total_wte_gp", "total_wte_clinical",
                "total_wte_non_clinical", "total_wte_arrs")
    totals = {k: 0.0 for k in wte_keys}
    role_totals: Dict[str, Dict[str, Any]] = {}

    for practice in practices:
        for key in wte_keys:
            totals[key] += practice["totals"].get(key) or 0
        for record in practice["records"]:
            entry = role_totals.setdefault(
                record["role_group"], {"wte": 0.0, "headcount": None, "headcount_unknown": 0}
            )
            entry["wte"] += record["wte"] or 0
            if record["headcount"] is None:
                entry["headcount_unknown"] += 1
            else:
                entry["headcount"] = (entry["headcount"] or 0) + record["headcount"]

    return {
        "practice_count": len(practices),
        "list_size": sum(p.get("list_size") or 0 for p in practices),
        "totals": totals,
        "role_totals": role_totals,
    }


def build_workforce_dataset(rows: Iterable[Mapping[str, Any]], month: Optional[str]) -> Dict[str, Any]:
    practices = [p for p in (build_workforce_practice(r, month) for r in rows) if p]
    log.info("Built workforce records for %d practices (%s)", len(practices), month or "month unknown")
    return {
        "month": month,
        "practices": practices,
        "national": aggregate_workforce_practices(practices),
    }


def load_workforce_dataset(path: Union[str, Path], month: Optional[str] = None) -> Dict[str, Any]:
    path = Path(path)
    frame = read_tabular_file(path)
    passed, results = HeaderValidator(REQUIRED_WORKFORCE_COLUMNS).validate(frame.columns)
    if not passed:
        log.warning("Rejected %s: %s", path.name, results)
        raise ValueError(describe_header_failure(results, path.name))
    return build_workforce_dataset(
        frame.to_dict("records"),
        month or infer_month_from_filename(path.name),
    )


# =====================================================
# PRACTICE ASSESSMENT
# =====================================================

def assess_practice(
    practice: Mapping[str, Any],
    activity: Optional[ActivityCounts] = None,
    assumptions: Optional[CapacityAssumptions] = None,
    thresholds: Optional[FragilityThresholds] = None,
) -> Dict[str, Any]:
    activity = activity or ActivityCounts()
    role_totals = build_role_totals(practice["records"])
    totals = practice["totals"]

    demand = calculate_demand_metrics(totals, role_totals, activity)
    model = calculate_capacity_model(role_totals, activity, assumptions, practice.get("month"))
    ratio = model["utilization"]

    return {
        "totals": totals,
        "derived": calculate_derived_metrics(totals, practice.get("list_size")),
        "fragility_flags": calculate_fragility_flags(role_totals, thresholds),
        "demand": demand,
        "capacity_model": model,
        "demand_capacity_ratio": ratio,
        "capacity_pressure_score": calculate_capacity_pressure_score(
            ratio,
            demand["calls_missed_per_admin_wte"],
            demand["oc_per_gp_wte"],
        ),
    }


# =====================================================
# DOMAIN
# =====================================================

class WorkforceDomain(BaseDomain):
    name = "workforce"
    description = "Workforce capacity and dependency risk"
    required_columns = REQUIRED_WORKFORCE_COLUMNS

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        practice: Optional[str] = None,
        month: Optional[str] = None,
        activity: Optional[ActivityCounts] = None,
    ):
        super().__init__(config)
        self.practice = (practice or "").strip().upper()
        self.month = month
        self.activity = activity or ActivityCounts()
        self.assumptions = self.config.get("capacity_assumptions") or CapacityAssumptions()
        self.thresholds = self.config.get("fragility_thresholds") or FragilityThresholds()

    def validate_data(self, data) -> bool:
        if not self.practice:
            raise ValueError("A practice ODS code is required for workforce analysis")
        return True

    def preprocess(self, data) -> Dict[str, Any]:
        if isinstance(data, dict) and "practices" in data:
            return data
        if isinstance(data, pd.DataFrame):
            passed, results = HeaderValidator(REQUIRED_WORKFORCE_COLUMNS).validate(data.columns)
            if not passed:
                raise ValueError(describe_header_failure(results))
            return build_workforce_dataset(data.to_dict("records"), self.month)
        return load_workforce_dataset(data, self.month)

    def calculate_kpis(self, dataset: Dict[str, Any]) -> Dict[str, Any]:
        practice = next(
            (p for p in dataset["practices"] if p["ods_code"].upper() == self.practice),
            None,
        )
        if practice is None:
            raise ValueError(f"Practice {self.practice} not found in workforce data")

        assessment = assess_practice(practice, self.activity, self.assumptions, self.thresholds)

        national_derived = [
            calculate_derived_metrics(p["totals"], p.get("list_size"))
            for p in dataset["practices"]
        ]
        positions = {
            key: {
                "value": assessment["derived"][key],
                "percentile": percentile(
                    assessment["derived"][key], [d[key] for d in national_derived]
                ),
            }
            for key in ("patients_per_gp_wte", "patients_per_clinical_wte")
        }

        return {
            "practice": {
                "ods_code": practice["ods_code"],
                "name": practice["name"],
                "list_size": practice["list_size"],
                "month": dataset.get("month"),
            },
            "activity": asdict(self.activity),
            "national_positions": positions,
            "national": dataset["national"],
            **assessment,
        }

    def generate_insights(self, dataset, kpis: Dict[str, Any]) -> List[Dict[str, Any]]:
        insights = []
        for flag in kpis["fragility_flags"]:
            insights.append(self.insight(
                "RISK",
                flag["message"],
                f"{flag['wte']:.2f} WTE covers this role group; absence leaves no cover.",
                "Workforce Resilience",
            ))

        score = kpis["capacity_pressure_score"]
        level = "CRITICAL" if score >= 70 else "WARNING" if score >= 40 else "INFO"
        insights.append(self.insight(
            level,
            "Capacity Pressure",
            f"Capacity pressure score is {score} out of 100.",
            "Capacity Model",
        ))

        utilization = kpis["capacity_model"]["utilization"]
        if utilization is not None:
            insights.append(self.insight(
                "INFO",
                "Estimated Utilisation",
                f"Observed appointments are {utilization * 100:.0f}% of theoretical clinical "
                f"capacity (role split is an estimate).",
                "Capacity Model",
            ))

        return insights
