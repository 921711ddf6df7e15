"""
Triage / online-consultation domain.

`aggregate()` is the Analysis Snapshot builder: a pure function of the
record list (and list size). It is re-run wholesale for every filter
change, never patched incrementally.
"""

import logging
from dataclasses import asdict, fields
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from caip.core.classifier import DAYS_OF_WEEK, WEEKEND_DAYS, ContactRecord, DataQuality
from caip.core.ingest import load_contact_records
from caip.core.kpi_utils import floor_median, pct, round_half_up
from caip.core.taxonomy import (
    ADVICE_GROUP,
    AGE_BAND_LABELS,
    APPOINTMENT_GROUP,
    INAPPROPRIATE_GROUP,
    OTHER_APPOINTMENT,
    OTHER_UNKNOWN,
    OUTCOME_TAXONOMY,
    PRESCRIPTION_GROUP,
    SIGNPOSTING_GROUP,
    TIMED_OUT_GROUP,
    UNKNOWN_BAND,
    TaxonomyEntry,
    group_names,
    taxonomy_from_config,
)
from caip.domains.base import BaseDomain

log = logging.getLogger(__name__)

SLA_HOURS = (2, 4, 8, 24, 48)
ROLLING_WINDOW_DAYS = 7
TOP_OUTCOME_LIMIT = 10
UNKNOWN = "Unknown"
HOURS = list(range(24))

RECORD_COLUMNS = [f.name for f in fields(ContactRecord)]


# =====================================================
# RECORD FRAME
# =====================================================

def records_frame(records: Sequence[ContactRecord]) -> pd.DataFrame:
    """
    One row per contact record plus the derived flags the snapshot
    counts on. An empty record list gives an empty, fully-columned frame.
    """
    frame = pd.DataFrame([asdict(r) for r in records], columns=RECORD_COLUMNS)
    frame["submitted"] = pd.to_datetime(frame["submitted"])

    frame["is_clinical"] = frame["type"].eq("Clinical")
    frame["is_admin"] = frame["type"].eq("Admin")
    frame["is_appointment"] = frame["outcome_group"].eq(APPOINTMENT_GROUP)
    frame["is_timed_out"] = frame["outcome_group"].eq(TIMED_OUT_GROUP)
    frame["is_completed"] = frame["completed"].notna()
    frame["has_outcome_recorded"] = frame["outcome_recorded_at"].notna()
    frame["is_weekend"] = frame["day_of_week"].isin(WEEKEND_DAYS)
    return frame


# =====================================================
# SMALL HELPERS
# =====================================================

def _unique(values: pd.Series) -> List[str]:
    """Distinct non-empty values in first-seen order."""
    return [v for v in values.dropna().unique() if v]


def _or_unknown(values: pd.Series, fill: str = UNKNOWN) -> pd.Series:
    return values.mask(values.isna() | values.eq(""), fill)


def _counts(values: pd.Series) -> Dict[str, int]:
    """Value counts in first-seen order."""
    return {k: int(n) for k, n in values.value_counts(sort=False).items()}


def _total_and_appointments(frame: pd.DataFrame, column: str) -> Dict[str, Dict[str, int]]:
    table = (
        frame.assign(key=_or_unknown(frame[column]))
        .groupby("key", sort=False)
        .agg(total=("is_appointment", "size"), appointments=("is_appointment", "sum"))
    )
    return {
        key: {"total": int(row["total"]), "appointments": int(row["appointments"])}
        for key, row in table.iterrows()
    }


def _peak(counts: pd.Series, key_name: str, cast: Callable = str) -> Optional[Dict[str, Any]]:
    # idxmax keeps the first maximum in the fixed key order
    if counts.empty or counts.max() <= 0:
        return None
    return {key_name: cast(counts.idxmax()), "count": int(counts.max())}


# =====================================================
# TIME SERIES
# =====================================================

def _by_date(dated: pd.DataFrame) -> Dict[str, Dict[str, int]]:
    if dated.empty:
        return {}
    daily = dated.groupby(dated["submitted"].dt.normalize().rename("day")).agg(
        total=("is_appointment", "size"),
        clinical=("is_clinical", "sum"),
        admin=("is_admin", "sum"),
        appointments=("is_appointment", "sum"),
    )
    return {
        day.strftime("%Y-%m-%d"): {k: int(v) for k, v in row.items()}
        for day, row in daily.iterrows()
    }


def rolling_average(by_date: Dict[str, Dict[str, int]], window: int = ROLLING_WINDOW_DAYS) -> List[Dict[str, Any]]:
    """
    Trailing calendar-window mean of daily totals.

    Starts at the `window`-th distinct data date. Each point averages
    the calendar days [d - window + 1, d]; days without data count as
    zero. Values are rounded to one decimal.
    """
    if len(by_date) < window:
        return []

    totals = pd.Series(
        {pd.Timestamp(day): counts["total"] for day, counts in by_date.items()}
    ).sort_index()

    calendar = totals.asfreq("D", fill_value=0)
    means = calendar.rolling(window).sum() / window

    return [
        {"date": day.strftime("%Y-%m-%d"), "value": round_half_up(float(means[day]), 1)}
        for day in totals.index[window - 1:]
    ]


def _by_week(dated: pd.DataFrame, groups: List[str]) -> Dict[str, Dict[str, int]]:
    if dated.empty:
        return {}
    day = dated["submitted"].dt.normalize()
    week = (day - pd.to_timedelta(day.dt.weekday, unit="D")).rename("week")

    weekly = pd.crosstab(week, dated["outcome_group"].fillna(OTHER_UNKNOWN))
    columns = groups + [g for g in weekly.columns if g not in groups]
    weekly = weekly.reindex(columns=columns, fill_value=0)
    weekly.insert(0, "total", weekly.sum(axis=1))

    return {
        start.strftime("%Y-%m-%d"): {k: int(v) for k, v in row.items()}
        for start, row in weekly.iterrows()
    }


def _heatmap(frame: pd.DataFrame) -> pd.DataFrame:
    timed = frame.dropna(subset=["day_of_week", "hour_of_day"])
    if timed.empty:
        return pd.DataFrame(0, index=list(DAYS_OF_WEEK), columns=HOURS)
    return pd.crosstab(
        timed["day_of_week"], timed["hour_of_day"].astype(int)
    ).reindex(index=list(DAYS_OF_WEEK), columns=HOURS, fill_value=0)


# =====================================================
# ANALYSIS SNAPSHOT
# =====================================================

def aggregate(
    records: Sequence[ContactRecord],
    list_size: Optional[int] = None,
    taxonomy: Sequence[TaxonomyEntry] = OUTCOME_TAXONOMY,
) -> Dict[str, Any]:
    """
    Fold contact records into an Analysis Snapshot.

    Rates use the "0 when the total is 0" policy. Medians take the
    element at floor(n/2). Every value is JSON-safe: dates are ISO
    strings, maps are plain dicts in a fixed key order.
    """
    frame = records_frame(list(records))
    total = len(frame)
    groups = group_names(taxonomy)

    log.debug("Aggregating %d contact records", total)

    # -------------------------------------------------
    # 1. RANGE + FILTER VALUES
    # -------------------------------------------------
    dated = frame[frame["submitted"].notna()]
    date_range = {
        "min": dated["submitted"].min().isoformat() if not dated.empty else None,
        "max": dated["submitted"].max().isoformat() if not dated.empty else None,
    }

    # -------------------------------------------------
    # 2. CORE COUNTS + RATES
    # -------------------------------------------------
    clinical = int(frame["is_clinical"].sum())
    admin = int(frame["is_admin"].sum())
    completed = int(frame["is_completed"].sum())
    outcome_recorded = int(frame["has_outcome_recorded"].sum())
    appointments = int(frame["is_appointment"].sum())
    weekend = int(frame["is_weekend"].sum())

    group_counts = _counts(frame["outcome_group"].fillna(OTHER_UNKNOWN))
    outcome_group_counts = {g: group_counts.get(g, 0) for g in groups}
    for g, n in group_counts.items():
        outcome_group_counts.setdefault(g, n)

    outcomes = frame.loc[frame["outcome"].fillna("").ne(""), "outcome"]
    top = outcomes.value_counts(sort=False).sort_values(ascending=False, kind="stable")
    top_outcomes = [
        {"outcome": name, "count": int(count)}
        for name, count in top.head(TOP_OUTCOME_LIMIT).items()
    ]

    booked = frame[frame["is_appointment"]]
    subtype_counts = _counts(booked["appointment_subtype"].fillna(OTHER_APPOINTMENT))

    # -------------------------------------------------
    # 3. TIMING
    # -------------------------------------------------
    to_outcome = pd.to_numeric(frame["time_to_outcome_minutes"], errors="coerce").dropna()
    to_outcome = to_outcome[to_outcome >= 0]
    sla = {
        f"within_{h}h": pct(int((to_outcome <= h * 60).sum()), len(to_outcome))
        for h in SLA_HOURS
    }

    # -------------------------------------------------
    # 4. DAY / HOUR DISTRIBUTIONS
    # -------------------------------------------------
    by_day = frame["day_of_week"].value_counts().reindex(list(DAYS_OF_WEEK), fill_value=0)
    by_hour = (
        frame["hour_of_day"].dropna().astype(int)
        .value_counts().reindex(HOURS, fill_value=0)
    )
    heatmap = _heatmap(frame)

    by_date = _by_date(dated)

    # -------------------------------------------------
    # 5. DEMOGRAPHICS
    # -------------------------------------------------
    by_age_band = (
        frame.assign(band=frame["age_band"].fillna(UNKNOWN_BAND))
        .groupby("band")
        .agg(
            total=("is_appointment", "size"),
            appointments=("is_appointment", "sum"),
            timed_out=("is_timed_out", "sum"),
        )
        .reindex(list(AGE_BAND_LABELS), fill_value=0)
    )

    def group_rate(name: str) -> float:
        return pct(group_counts.get(name, 0), total)

    return {
        "date_range": date_range,
        "unique_ods_codes": _unique(frame["ods_code"]),
        "unique_access_methods": _unique(frame["access_method"]),
        "unique_submission_sources": _unique(frame["submission_source"]),
        "unique_response_preferences": _unique(frame["response_preference"]),
        "unique_clinical_problem_types": _unique(frame["clinical_problem_type"]),
        "unique_admin_activity_types": _unique(frame["admin_activity_type"]),
        "unique_outcomes": _unique(frame["outcome"]),
        "unique_outcome_groups": _unique(frame["outcome_group"]),
        "has_admin_data": admin > 0,

        # Core counts
        "total_requests": total,
        "clinical_requests": clinical,
        "admin_requests": admin,
        "completed_requests": completed,
        "outcome_recorded_requests": outcome_recorded,
        "appointment_requests": appointments,

        # Rates
        "completion_rate": pct(completed, total),
        "outcome_rate": pct(outcome_recorded, total),
        "appointment_conversion_rate": pct(appointments, total),
        "avoided_appointment_rate": pct(total - appointments, total),
        "requests_per_1000": (total / list_size) * 1000 if list_size else None,
        "timed_out_rate": group_rate(TIMED_OUT_GROUP),
        "inappropriate_rate": group_rate(INAPPROPRIATE_GROUP),
        "signposting_rate": group_rate(SIGNPOSTING_GROUP),
        "prescription_rate": group_rate(PRESCRIPTION_GROUP),
        "advice_rate": group_rate(ADVICE_GROUP),
        "weekend_share": pct(weekend, total),

        # Outcomes
        "outcome_group_counts": outcome_group_counts,
        "top_outcomes": top_outcomes,
        "appointment_subtype_counts": subtype_counts,

        # Timing
        "median_lead_time": floor_median(frame["lead_time_minutes"].tolist()),
        "median_time_to_outcome": floor_median(to_outcome.tolist()),
        "sla_metrics": sla,

        # Time distributions
        "by_day_of_week": {d: int(n) for d, n in by_day.items()},
        "by_hour": {int(h): int(n) for h, n in by_hour.items()},
        "heatmap": {
            day: {int(h): int(n) for h, n in row.items()}
            for day, row in heatmap.iterrows()
        },
        "peak_day": _peak(by_day, "day"),
        "peak_hour": _peak(by_hour, "hour", cast=int),
        "by_date": by_date,
        "rolling_7_day": rolling_average(by_date),
        "by_week": _by_week(dated, groups),

        # Demographics
        "by_age_band": {
            band: {k: int(v) for k, v in row.items()}
            for band, row in by_age_band.iterrows()
        },
        "by_sex": _total_and_appointments(frame, "sex"),

        # Channels
        "by_access_method": _total_and_appointments(frame, "access_method"),
        "by_submission_source": _total_and_appointments(frame, "submission_source"),
        "by_response_preference": _total_and_appointments(frame, "response_preference"),
        "by_clinical_problem_type": _counts(_or_unknown(frame.loc[frame["is_clinical"], "clinical_problem_type"])),
        "by_admin_activity_type": _counts(_or_unknown(frame.loc[frame["is_admin"], "admin_activity_type"])),
    }


# =====================================================
# FILTERING
# =====================================================

def _as_date(value) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return pd.Timestamp(value).date()


def filter_records(
    records: Sequence[ContactRecord],
    start=None,
    end=None,
    types: Optional[Iterable[str]] = None,
    access_methods: Optional[Iterable[str]] = None,
    outcome_groups: Optional[Iterable[str]] = None,
    age_bands: Optional[Iterable[str]] = None,
) -> List[ContactRecord]:
    """
    Select the records a snapshot should be recomputed over.

    Date bounds are inclusive calendar days on the submission date;
    when either bound is set, undated records are dropped. Empty or
    None selections mean "no filter".
    """
    start_day, end_day = _as_date(start), _as_date(end)
    wanted = {
        "type": set(types or ()),
        "access_method": set(access_methods or ()),
        "outcome_group": set(outcome_groups or ()),
        "age_band": set(age_bands or ()),
    }

    kept = []
    for r in records:
        if start_day or end_day:
            if r.submitted is None:
                continue
            day = r.submitted.date()
            if start_day and day < start_day:
                continue
            if end_day and day > end_day:
                continue
        if any(values and getattr(r, attr) not in values for attr, values in wanted.items()):
            continue
        kept.append(r)
    return kept


# =====================================================
# DOMAIN
# =====================================================

class TriageDomain(BaseDomain):
    name = "triage"
    description = "Triage and online consultation demand analysis"

    def __init__(self, config: Optional[Dict[str, Any]] = None, list_size: Optional[int] = None):
        super().__init__(config)
        section = self.config.get("triage", {}) or {}
        self.list_size = list_size if list_size is not None else section.get("list_size")
        self.custom_mapping = section.get("custom_outcome_mapping") or {}
        self.taxonomy = taxonomy_from_config(section.get("outcome_taxonomy"))
        self.data_quality = DataQuality()

    def preprocess(self, data) -> List[ContactRecord]:
        if isinstance(data, (list, tuple)):
            return list(data)
        records, self.data_quality = load_contact_records(
            data,
            custom_mapping=self.custom_mapping,
            outcome_taxonomy=self.taxonomy,
        )
        return records

    def calculate_kpis(self, records: List[ContactRecord]) -> Dict[str, Any]:
        kpis = aggregate(records, self.list_size, self.taxonomy)
        kpis["data_quality"] = self.data_quality.to_dict()
        return kpis

    def generate_insights(self, records, kpis: Dict[str, Any]) -> List[Dict[str, Any]]:
        insights = []
        total = kpis.get("total_requests", 0)

        dq = kpis.get("data_quality", {})
        if total and dq.get("missing_dates", 0) / total > 0.05:
            insights.append(self.insight(
                "RISK",
                "Submission Dates Missing",
                "More than 5% of requests have no usable submission time; "
                "day and hour patterns under-count demand.",
                "Data Quality Assessment",
            ))

        timed_out = kpis.get("timed_out_rate", 0)
        if timed_out >= 10:
            insights.append(self.insight(
                "WARNING",
                "High Timed-Out Rate",
                f"{timed_out:.1f}% of requests timed out without a response.",
                "Outcome Analysis",
            ))

        conversion = kpis.get("appointment_conversion_rate", 0)
        if total:
            insights.append(self.insight(
                "INFO",
                "Appointment Conversion",
                f"{conversion:.1f}% of requests resulted in an appointment.",
                "Outcome Analysis",
            ))

        peak = kpis.get("peak_day")
        if peak:
            insights.append(self.insight(
                "INFO",
                "Peak Demand Day",
                f"{peak['day']} carries the most submissions ({peak['count']}).",
                "Demand Analysis",
            ))

        return insights
