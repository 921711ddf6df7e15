"""
Row classifier for triage / online-consultation extracts.

One raw row -> one de-identified ContactRecord plus a DataQuality
increment. Counters are returned, never mutated in place; callers
fold them with `+`.
"""

from dataclasses import asdict, dataclass, fields
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from caip.core.normalizer import clean_text, is_missing, parse_flexible_date, parse_int
from caip.core.taxonomy import (
    APPOINTMENT_GROUP,
    APPOINTMENT_SUBTYPE_TAXONOMY,
    OUTCOME_TAXONOMY,
    TaxonomyEntry,
    age_band,
    classify_appointment_subtype,
    classify_outcome,
)

DAYS_OF_WEEK = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
WEEKEND_DAYS = ("Saturday", "Sunday")


# =====================================================
# DATA QUALITY ACCUMULATOR
# =====================================================

@dataclass(frozen=True)
class DataQuality:
    total_rows: int = 0
    missing_dates: int = 0
    invalid_durations: int = 0
    missing_outcomes: int = 0
    missing_type: int = 0
    unparsed_dates: int = 0

    def __add__(self, other: "DataQuality") -> "DataQuality":
        if not isinstance(other, DataQuality):
            return NotImplemented
        return DataQuality(**{
            f.name: getattr(self, f.name) + getattr(other, f.name)
            for f in fields(self)
        })

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


# =====================================================
# CONTACT RECORD
# =====================================================

@dataclass(frozen=True)
class ContactRecord:
    """
    One de-identified submission. No patient ID or name is ever held.
    """
    ods_code: Optional[str]
    submitted: Optional[datetime]
    started: Optional[datetime]
    completed: Optional[datetime]
    outcome_recorded_at: Optional[datetime]

    access_method: Optional[str]
    submission_source: Optional[str]
    response_preference: Optional[str]
    type: Optional[str]
    clinical_problem_type: Optional[str]
    admin_activity_type: Optional[str]
    sex: Optional[str]
    age: Optional[int]
    age_band: str

    outcome: Optional[str]
    outcome_group: str
    appointment_subtype: Optional[str]

    lead_time_minutes: Optional[float]
    time_to_outcome_minutes: Optional[float]

    day_of_week: Optional[str]
    hour_of_day: Optional[int]

    @property
    def is_appointment(self) -> bool:
        return self.outcome_group == APPOINTMENT_GROUP

    @property
    def has_outcome(self) -> bool:
        return bool(self.outcome)

    @property
    def is_completed(self) -> bool:
        return self.completed is not None

    @property
    def has_outcome_recorded(self) -> bool:
        return self.outcome_recorded_at is not None

    @property
    def is_weekend(self) -> bool:
        return self.day_of_week in WEEKEND_DAYS

    def to_dict(self) -> Dict[str, Any]:
        out = {}
        for f in fields(self):
            value = getattr(self, f.name)
            out[f.name] = value.isoformat() if isinstance(value, datetime) else value
        out.update({
            "is_appointment": self.is_appointment,
            "has_outcome": self.has_outcome,
            "is_completed": self.is_completed,
            "has_outcome_recorded": self.has_outcome_recorded,
            "is_weekend": self.is_weekend,
        })
        return out


# =====================================================
# HELPERS
# =====================================================

def _cell(row: Sequence, idx: Optional[int]) -> Any:
    if idx is None or idx < 0 or idx >= len(row):
        return None
    return row[idx]


def _canonical_type(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    lowered = raw.lower()
    if lowered == "clinical":
        return "Clinical"
    if lowered == "admin":
        return "Admin"
    return raw


def _duration_minutes(start: Optional[datetime], end: Optional[datetime]) -> Tuple[Optional[float], bool]:
    """Return (minutes, invalid). Negative spans are discarded, never clamped."""
    if start is None or end is None:
        return None, False
    minutes = (end - start).total_seconds() / 60
    if minutes < 0:
        return None, True
    return minutes, False


# =====================================================
# ROW CLASSIFIER
# =====================================================

def classify_row(
    row: Sequence,
    columns: Mapping[str, Optional[int]],
    custom_mapping: Optional[Mapping[str, str]] = None,
    outcome_taxonomy: Sequence[TaxonomyEntry] = OUTCOME_TAXONOMY,
    subtype_taxonomy: Sequence[TaxonomyEntry] = APPOINTMENT_SUBTYPE_TAXONOMY,
) -> Tuple[ContactRecord, DataQuality]:
    """
    Classify one extract row.

    Args:
        row: cell values in header order
        columns: field -> column index (see column_resolver.TRIAGE_COLUMN_MAP);
                 missing fields may be absent or None
        custom_mapping: lowercased outcome text -> outcome group override

    Returns:
        (record, data-quality increment for this row)
    """
    unparsed = 0
    parsed_dates = {}
    for key in ("submitted", "started", "completed", "outcome_recorded"):
        raw = _cell(row, columns.get(key))
        value = parse_flexible_date(raw)
        if value is None and not is_missing(raw):
            unparsed += 1
        parsed_dates[key] = value

    submitted = parsed_dates["submitted"]

    type_value = _canonical_type(clean_text(_cell(row, columns.get("type"))))
    outcome = clean_text(_cell(row, columns.get("outcome")))

    age = parse_int(_cell(row, columns.get("age")))

    lead_time, lead_invalid = _duration_minutes(parsed_dates["started"], parsed_dates["completed"])
    to_outcome, outcome_invalid = _duration_minutes(parsed_dates["completed"], parsed_dates["outcome_recorded"])

    outcome_group = classify_outcome(outcome, custom_mapping, outcome_taxonomy)
    subtype = (
        classify_appointment_subtype(outcome, subtype_taxonomy)
        if outcome_group == APPOINTMENT_GROUP else None
    )

    record = ContactRecord(
        ods_code=clean_text(_cell(row, columns.get("ods_code"))),
        submitted=submitted,
        started=parsed_dates["started"],
        completed=parsed_dates["completed"],
        outcome_recorded_at=parsed_dates["outcome_recorded"],
        access_method=clean_text(_cell(row, columns.get("access_method"))),
        submission_source=clean_text(_cell(row, columns.get("submission_source"))),
        response_preference=clean_text(_cell(row, columns.get("response_preference"))),
        type=type_value,
        clinical_problem_type=clean_text(_cell(row, columns.get("clinical_problem_type"))),
        admin_activity_type=clean_text(_cell(row, columns.get("admin_activity_type"))),
        sex=clean_text(_cell(row, columns.get("sex"))),
        age=age,
        age_band=age_band(age),
        outcome=outcome,
        outcome_group=outcome_group,
        appointment_subtype=subtype,
        lead_time_minutes=lead_time,
        time_to_outcome_minutes=to_outcome,
        day_of_week=DAYS_OF_WEEK[submitted.weekday()] if submitted else None,
        hour_of_day=submitted.hour if submitted else None,
    )

    quality = DataQuality(
        total_rows=1,
        missing_dates=int(submitted is None),
        invalid_durations=int(lead_invalid) + int(outcome_invalid),
        missing_outcomes=int(outcome is None),
        missing_type=int(type_value is None),
        unparsed_dates=unparsed,
    )

    return record, quality
