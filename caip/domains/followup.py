"""
Follow-up cohort domain.

Answers "did this doctor visit lead to a quick return?" from an
appointment export. The source window selects which visits are
measured; the next-visit search always runs over the full history,
so a return that falls outside the window still counts.
"""

import hashlib
import io
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd
from dateutil.relativedelta import relativedelta

from caip.core.ingest import EmptyDatasetError, FormatMismatchError
from caip.core.kpi_utils import pct
from caip.core.normalizer import clean_text, parse_short_date
from caip.domains.base import BaseDomain

log = logging.getLogger(__name__)

CLINICIAN_COLUMN = "Clinician"
DATE_COLUMN = "Appointment date"
PATIENT_COLUMN = "NHS number"
ORGANISATION_COLUMN = "Organisation name"
REQUIRED_COLUMNS = (CLINICIAN_COLUMN, DATE_COLUMN, PATIENT_COLUMN)

WINDOWS = ("all", "3months", "4weeks")
MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
               "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

# (0, 7] -> 7, (7, 14] -> 14, (14, 28] -> 28; anything else is no follow-up
BUCKET_EDGES = [0, 7, 14, 28]
BUCKETS = [7, 14, 28]

EVENT_COLUMNS = ["clinician", "date", "patient", "is_doctor"]


# =====================================================
# DATA MODEL
# =====================================================

def is_doctor(clinician: Optional[str]) -> bool:
    return bool(clinician) and clinician.strip().startswith("Dr ")


def patient_key(identifier: str) -> str:
    """Opaque per-patient key. The raw identifier is never kept."""
    return hashlib.sha256(identifier.strip().encode()).hexdigest()[:16]


@dataclass(frozen=True)
class AppointmentEvent:
    clinician: str
    date: date
    patient: str
    is_doctor: bool


@dataclass
class FollowUpDataset:
    """
    Date-sorted appointment events held as a frame with columns
    clinician, date (datetime64), patient (opaque key) and is_doctor.
    """
    appointments: pd.DataFrame
    organisation: str = ""

    @property
    def events(self) -> List[AppointmentEvent]:
        return [
            AppointmentEvent(clinician, stamp.date(), patient, bool(doctor))
            for clinician, stamp, patient, doctor in self.appointments[EVENT_COLUMNS].itertuples(index=False)
        ]

    @property
    def patients(self) -> Dict[str, List[AppointmentEvent]]:
        """Per-patient visit history, each in date order."""
        histories: Dict[str, List[AppointmentEvent]] = {}
        for event in self.events:
            histories.setdefault(event.patient, []).append(event)
        return histories

    @property
    def clinicians(self) -> List[str]:
        return sorted(self.appointments["clinician"].unique())

    @property
    def doctors(self) -> List[str]:
        return [c for c in self.clinicians if is_doctor(c)]

    @property
    def date_range(self) -> Tuple[Optional[date], Optional[date]]:
        if self.appointments.empty:
            return None, None
        dates = self.appointments["date"]
        return dates.min().date(), dates.max().date()

    @property
    def total_appointments(self) -> int:
        return len(self.appointments)

    @property
    def total_patients(self) -> int:
        return int(self.appointments["patient"].nunique())

    def summary(self) -> Dict[str, Any]:
        start, end = self.date_range
        return {
            "organisation": self.organisation,
            "date_range": {
                "start": start.isoformat() if start else None,
                "end": end.isoformat() if end else None,
            },
            "total_appointments": self.total_appointments,
            "total_patients": self.total_patients,
            "clinicians": self.clinicians,
            "doctors": self.doctors,
        }


# =====================================================
# CSV MERGE + PARSE
# =====================================================

def merge_csv_texts(texts: Sequence[str]) -> str:
    """
    Merge several exports: header from the first non-empty text, data
    lines from all, duplicates dropped by exact (stripped) line text.
    """
    if not texts:
        return ""
    if len(texts) == 1:
        return texts[0]

    header = None
    seen = set()
    lines = []
    for text in texts:
        rows = [line for line in text.splitlines() if line.strip()]
        if not rows:
            continue
        if header is None:
            header = rows[0]
            lines.append(header)
        for line in rows[1:]:
            line = line.strip()
            if line not in seen:
                seen.add(line)
                lines.append(line)

    return "\n".join(lines)


def parse_follow_up_csv(text: str) -> FollowUpDataset:
    """
    Parse an appointment export into a FollowUpDataset.

    Rows missing clinician, a DD-Mon-YY date or patient identifier are
    skipped. Appointments come back date-sorted, patients keyed.

    Raises:
        EmptyDatasetError: no header or no usable rows
        FormatMismatchError: a required column is missing
    """
    if len([line for line in (text or "").splitlines() if line.strip()]) < 2:
        raise EmptyDatasetError("Appointment export has no data rows")

    frame = pd.read_csv(
        io.StringIO(text),
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        on_bad_lines="skip",
    )
    frame.columns = [str(c).strip() for c in frame.columns]

    missing = [c for c in REQUIRED_COLUMNS if c not in frame.columns]
    if missing:
        log.warning("Rejected appointment export: missing %s", ", ".join(missing))
        raise FormatMismatchError(
            f"Appointment export is missing required columns: {', '.join(missing)}"
        )

    parsed = pd.DataFrame({
        "clinician": frame[CLINICIAN_COLUMN].map(clean_text),
        "date": pd.to_datetime(frame[DATE_COLUMN].map(parse_short_date)),
        "identifier": frame[PATIENT_COLUMN].map(clean_text),
    })
    usable = parsed.notna().all(axis=1)
    if not usable.any():
        raise EmptyDatasetError("Appointment export contains no usable appointment rows")

    organisation = ""
    if ORGANISATION_COLUMN in frame.columns:
        names = frame.loc[usable, ORGANISATION_COLUMN].map(clean_text).dropna()
        organisation = names.iloc[0] if not names.empty else ""

    appointments = parsed.loc[usable, ["clinician", "date"]].assign(
        patient=parsed.loc[usable, "identifier"].map(patient_key),
        is_doctor=parsed.loc[usable, "clinician"].map(is_doctor).astype(bool),
    )
    appointments = appointments.sort_values("date", kind="stable").reset_index(drop=True)

    dataset = FollowUpDataset(appointments=appointments, organisation=organisation)

    log.info(
        "Parsed %d appointments for %d patients across %d clinicians",
        dataset.total_appointments, dataset.total_patients, len(dataset.clinicians),
    )
    return dataset


def load_follow_up_files(paths: Iterable[Union[str, Path]]) -> FollowUpDataset:
    texts = []
    for path in paths:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Input file not found: {path}")
        try:
            texts.append(path.read_text(encoding="utf-8-sig"))
        except UnicodeDecodeError:
            texts.append(path.read_text(encoding="latin-1"))
    return parse_follow_up_csv(merge_csv_texts(texts))


# =====================================================
# WINDOWING + NEXT-VISIT SEARCH
# =====================================================

def window_cutoff(latest: date, window: str) -> Optional[date]:
    if window not in WINDOWS:
        raise ValueError(f"Unknown follow-up window: {window} (expected one of {', '.join(WINDOWS)})")
    if window == "3months":
        return latest - relativedelta(months=3)
    if window == "4weeks":
        return latest - timedelta(days=28)
    return None


def _doctor_visits(dataset: FollowUpDataset) -> pd.DataFrame:
    appointments = dataset.appointments
    return appointments[appointments["is_doctor"]]


def source_visits(dataset: FollowUpDataset, window: str = "all") -> pd.DataFrame:
    """Doctor visits the cohort is measured from."""
    doctors = _doctor_visits(dataset)
    if dataset.appointments.empty:
        return doctors
    cutoff = window_cutoff(dataset.appointments["date"].max().date(), window)
    if cutoff is None:
        return doctors
    return doctors[doctors["date"] >= pd.Timestamp(cutoff)]


def with_next_gap(dataset: FollowUpDataset, sources: pd.DataFrame, keys: List[str]) -> pd.DataFrame:
    """
    Attach `gap`: days from each source visit to the next doctor visit
    on a strictly later day for the same key. The search runs over every
    doctor visit in the dataset, not only the sources; NaN means none.
    """
    columns = keys + ["date"]
    days = _doctor_visits(dataset)[columns].drop_duplicates().sort_values(columns)
    next_day = days.groupby(keys)["date"].shift(-1)
    days = days.assign(gap=(next_day - days["date"]).dt.days)
    return sources.merge(days, on=columns, how="left")


def follow_up_buckets(gaps: pd.Series) -> pd.Series:
    """7 / 14 / 28 bucket per gap in days; NaN is "no follow-up"."""
    return pd.cut(gaps.astype(float), bins=BUCKET_EDGES, labels=BUCKETS)


def _cohort_block(gaps: pd.Series) -> Dict[str, Any]:
    counts = follow_up_buckets(gaps).value_counts()
    f7, f14, f28 = (int(counts.get(b, 0)) for b in BUCKETS)
    total = len(gaps)
    no_follow_up = total - f7 - f14 - f28
    return {
        "total": total,
        "follow_up_7": f7,
        "follow_up_14": f14,
        "follow_up_28": f28,
        "no_follow_up": no_follow_up,
        "total_follow_ups": f7 + f14 + f28,
        # cumulative "within N days"
        "rate_7": pct(f7, total),
        "rate_14": pct(f7 + f14, total),
        "rate_28": pct(f7 + f14 + f28, total),
        # per bucket
        "rate_8_14": pct(f14, total),
        "rate_15_28": pct(f28, total),
        "no_follow_up_rate": pct(no_follow_up, total),
    }


# =====================================================
# COHORT VIEWS
# =====================================================

def calculate_overall_follow_up(dataset: FollowUpDataset, window: str = "all") -> Dict[str, Any]:
    """Return to ANY doctor after each doctor visit in the window."""
    sources = with_next_gap(dataset, source_visits(dataset, window), ["patient"])

    result = _cohort_block(sources["gap"])
    result.update({
        "window": window,
        "patients_with_doctor_appointments": int(sources["patient"].nunique()),
        "denominator": len(sources),
    })
    return result


def calculate_same_clinician_follow_up(dataset: FollowUpDataset, window: str = "all") -> Dict[str, Any]:
    """
    Return to the SAME doctor.

    `pairs` counts every visit with a later same-doctor visit, however
    far away; only gaps up to 28 days land in a bucket. Per-doctor
    rates divide by that doctor's source visits.
    """
    sources = with_next_gap(dataset, source_visits(dataset, window), ["patient", "clinician"])
    sources = sources.assign(paired=sources["gap"].notna())

    breakdown = []
    for name, visits in sources.groupby("clinician", sort=False):
        block = _cohort_block(visits["gap"])
        breakdown.append({
            "name": name,
            "total_visits": len(visits),
            "unique_patients": int(visits["patient"].nunique()),
            "patients_with_revisit": int(visits.loc[visits["paired"], "patient"].nunique()),
            "pairs": int(visits["paired"].sum()),
            "follow_up_7": block["follow_up_7"],
            "follow_up_14": block["follow_up_14"],
            "follow_up_28": block["follow_up_28"],
            "rate_7": block["rate_7"],
            "rate_14": block["rate_14"],
            "rate_28": block["rate_28"],
        })
    breakdown.sort(key=lambda d: (-d["total_visits"], d["name"]))

    result = _cohort_block(sources["gap"])
    result.update({
        "window": window,
        "total_pairs": int(sources["paired"].sum()),
        "total_source_appointments": len(sources),
        "doctor_breakdown": breakdown,
    })
    return result


def calculate_clinician_follow_up(dataset: FollowUpDataset, window: str = "all") -> List[Dict[str, Any]]:
    """Per doctor: how often their patients return to ANY doctor."""
    sources = with_next_gap(dataset, source_visits(dataset, window), ["patient"])

    results = []
    for clinician, visits in sources.groupby("clinician", sort=False):
        block = _cohort_block(visits["gap"])
        block.update({
            "clinician": clinician,
            "unique_patients": int(visits["patient"].nunique()),
        })
        results.append(block)

    results.sort(key=lambda r: (-r["total"], r["clinician"]))
    return results


def month_label(key: str) -> str:
    """'2026-01' -> 'Jan 26'"""
    year, month = key.split("-")
    return f"{MONTH_NAMES[int(month) - 1]} {year[2:]}"


def calculate_monthly_trends(dataset: FollowUpDataset) -> List[Dict[str, Any]]:
    """Month-ordered follow-up series; always over the full dataset."""
    visits = with_next_gap(dataset, _doctor_visits(dataset), ["patient"])
    visits = visits.assign(key=visits["date"].dt.strftime("%Y-%m"))

    series = []
    for key, month in visits.groupby("key"):
        block = _cohort_block(month["gap"])
        block.update({"key": key, "label": month_label(key)})
        series.append(block)

    return series


# =====================================================
# DOMAIN
# =====================================================

class FollowUpDomain(BaseDomain):
    name = "followup"
    description = "Doctor follow-up and continuity analysis"
    required_columns = list(REQUIRED_COLUMNS)

    def __init__(self, config: Optional[Dict[str, Any]] = None, window: Optional[str] = None):
        super().__init__(config)
        section = self.config.get("followup", {}) or {}
        self.window = window or section.get("window") or "all"

    def validate_data(self, data) -> bool:
        window_cutoff(date.today(), self.window)
        return True

    def preprocess(self, data) -> FollowUpDataset:
        if isinstance(data, FollowUpDataset):
            return data
        if isinstance(data, str):
            return parse_follow_up_csv(data)
        return load_follow_up_files(data)

    def calculate_kpis(self, dataset: FollowUpDataset) -> Dict[str, Any]:
        return {
            "dataset": dataset.summary(),
            "window": self.window,
            "overall": calculate_overall_follow_up(dataset, self.window),
            "same_clinician": calculate_same_clinician_follow_up(dataset, self.window),
            "by_clinician": calculate_clinician_follow_up(dataset, self.window),
            "monthly_trends": calculate_monthly_trends(dataset),
        }

    def generate_insights(self, dataset, kpis: Dict[str, Any]) -> List[Dict[str, Any]]:
        insights = []
        overall = kpis["overall"]
        same = kpis["same_clinician"]

        if overall["total"] == 0:
            insights.append(self.insight(
                "WARNING",
                "No Doctor Appointments In Window",
                "No appointments with a doctor fall inside the selected window.",
                "Follow-up Analysis",
            ))
            return insights

        insights.append(self.insight(
            "INFO",
            "Return Within 7 Days",
            f"{overall['rate_7']:.1f}% of doctor visits were followed by another "
            f"doctor visit within 7 days.",
            "Follow-up Analysis",
        ))

        if overall["rate_28"]:
            continuity = same["rate_28"] / overall["rate_28"] * 100
            insights.append(self.insight(
                "INFO",
                "Continuity Of Care",
                f"{continuity:.1f}% of 28-day returns were to the same doctor.",
                "Follow-up Analysis",
            ))

        return insights
