"""
Classification taxonomies (AUTHORITATIVE)
-----------------------------------------
Outcome groups and appointment subtypes are ordered data, not branches.
Classification scans entries in order and the first keyword hit wins,
so the order of each tuple below is part of the contract.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

OTHER_UNKNOWN = "Other / Unknown"
APPOINTMENT_GROUP = "Appointment"
OTHER_APPOINTMENT = "Other Appointment"
UNKNOWN_BAND = "Unknown"

TIMED_OUT_GROUP = "Timed out / No response"
INAPPROPRIATE_GROUP = "Inappropriate / Rejected"
SIGNPOSTING_GROUP = "Signposting / Redirect"
PRESCRIPTION_GROUP = "Prescription / Meds"
ADVICE_GROUP = "Advice / Self-care"


@dataclass(frozen=True)
class TaxonomyEntry:
    name: str
    keywords: Tuple[str, ...]
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
    is_default: bool = False

    def matches(self, text: str) -> bool:
        return any(kw in text for kw in self.keywords)


# =====================================================
# 1. OUTCOME GROUPS
# =====================================================
OUTCOME_TAXONOMY: Tuple[TaxonomyEntry, ...] = (
    TaxonomyEntry(
        APPOINTMENT_GROUP,
        ("appointment", "appt", "booked", "offered", "face to face", "f2f",
         "telephone", "video", "same day", "routine", "embargo", "home visit",
         "continuity", "extended hours", "nurse", "pharmacist", "physio",
         "paramedic", "gp"),
        {"color": "#22c55e"},
    ),
    TaxonomyEntry(
        ADVICE_GROUP,
        ("advice", "self care", "self-care", "information", "reassurance"),
        {"color": "#3b82f6"},
    ),
    TaxonomyEntry(
        PRESCRIPTION_GROUP,
        ("prescription", "medication", "repeat", "issued", "rx", "meds"),
        {"color": "#8b5cf6"},
    ),
    TaxonomyEntry(
        SIGNPOSTING_GROUP,
        ("signposting", "signpost", "pharmacy first", "redirect", "other service", "refer to"),
        {"color": "#f59e0b"},
    ),
    TaxonomyEntry(
        "Tests / Results / Admin",
        ("test", "result", "ice", "blood", "letter", "fit note", "med3", "sick note", "report"),
        {"color": "#06b6d4"},
    ),
    TaxonomyEntry(
        "No action required",
        ("no response required", "no action", "resolved", "self-resolved"),
        {"color": "#64748b"},
    ),
    TaxonomyEntry(
        TIMED_OUT_GROUP,
        ("timed out", "no response", "expired", "not responded"),
        {"color": "#ef4444"},
    ),
    TaxonomyEntry(
        INAPPROPRIATE_GROUP,
        ("inappropriate", "duplicate", "spam", "rejected", "invalid"),
        {"color": "#dc2626"},
    ),
    TaxonomyEntry(
        "Referral",
        ("referral", "referred", "2ww", "urgent referral"),
        {"color": "#ec4899"},
    ),
    TaxonomyEntry(OTHER_UNKNOWN, (), {"color": "#94a3b8"}, is_default=True),
)


# =====================================================
# 2. APPOINTMENT SUBTYPES (CAPACITY PLANNING)
# =====================================================
APPOINTMENT_SUBTYPE_TAXONOMY: Tuple[TaxonomyEntry, ...] = (
    TaxonomyEntry("F2F Same Day", ("face to face same day", "f2f same day", "same day face")),
    TaxonomyEntry("F2F Routine", ("face to face routine", "f2f routine", "routine face")),
    TaxonomyEntry("Telephone Same Day", ("telephone same day", "phone same day")),
    TaxonomyEntry("Telephone Routine", ("telephone routine", "phone routine")),
    TaxonomyEntry("Video", ("video",)),
    TaxonomyEntry("Home Visit", ("home visit", "visit")),
    TaxonomyEntry("Extended Hours", ("extended hours", "extended access")),
    TaxonomyEntry("Continuity", ("continuity", "usual gp")),
    TaxonomyEntry("Nurse", ("nurse",)),
    TaxonomyEntry("Pharmacist", ("pharmacist", "pharmacy")),
    TaxonomyEntry("Physio", ("physio", "physiotherapist")),
    TaxonomyEntry(OTHER_APPOINTMENT, (), is_default=True),
)


# =====================================================
# 3. AGE BANDS
# =====================================================
AGE_BANDS: Tuple[Tuple[str, int, int], ...] = (
    ("0-4", 0, 4),
    ("5-17", 5, 17),
    ("18-24", 18, 24),
    ("25-44", 25, 44),
    ("45-64", 45, 64),
    ("65-74", 65, 74),
    ("75+", 75, 999),
)

AGE_BAND_LABELS: Tuple[str, ...] = tuple(label for label, _, _ in AGE_BANDS) + (UNKNOWN_BAND,)


# =====================================================
# CLASSIFIERS
# =====================================================

def group_names(taxonomy: Sequence[TaxonomyEntry] = OUTCOME_TAXONOMY) -> List[str]:
    return [entry.name for entry in taxonomy]


def _scan(text: str, taxonomy: Sequence[TaxonomyEntry], fallback: str) -> str:
    for entry in taxonomy:
        if entry.is_default:
            continue
        if entry.matches(text):
            return entry.name
    return fallback


def classify_outcome(
    outcome: Optional[str],
    custom_mapping: Optional[Mapping[str, str]] = None,
    taxonomy: Sequence[TaxonomyEntry] = OUTCOME_TAXONOMY,
) -> str:
    """
    Map free-text outcome to an outcome group.

    1. Custom override (exact match on lowercased text)
    2. First taxonomy group with a keyword contained in the text
    3. Catch-all group
    """
    if not outcome:
        return OTHER_UNKNOWN

    text = outcome.lower().strip()
    if not text:
        return OTHER_UNKNOWN

    if custom_mapping and text in custom_mapping:
        return custom_mapping[text]

    return _scan(text, taxonomy, OTHER_UNKNOWN)


def classify_appointment_subtype(
    outcome: Optional[str],
    taxonomy: Sequence[TaxonomyEntry] = APPOINTMENT_SUBTYPE_TAXONOMY,
) -> str:
    if not outcome:
        return OTHER_APPOINTMENT
    return _scan(outcome.lower().strip(), taxonomy, OTHER_APPOINTMENT)


def age_band(age: Optional[int]) -> str:
    if age is None:
        return UNKNOWN_BAND
    for label, low, high in AGE_BANDS:
        if low <= age <= high:
            return label
    return UNKNOWN_BAND


def taxonomy_from_config(entries: Optional[Iterable[Mapping[str, Any]]]) -> Tuple[TaxonomyEntry, ...]:
    """
    Build an outcome taxonomy from config entries:
        [{"name": ..., "keywords": [...], "color": ...}, ...]

    The catch-all group is always appended last when missing.
    """
    if not entries:
        return OUTCOME_TAXONOMY

    built = []
    for item in entries:
        name = str(item.get("name", "")).strip()
        if not name:
            raise ValueError("Outcome taxonomy entries need a name")
        keywords = tuple(str(k).lower() for k in item.get("keywords", []) or [])
        metadata = {k: v for k, v in item.items() if k not in ("name", "keywords")}
        built.append(TaxonomyEntry(name, keywords, metadata, is_default=(name == OTHER_UNKNOWN)))

    if not any(entry.name == OTHER_UNKNOWN for entry in built):
        built.append(TaxonomyEntry(OTHER_UNKNOWN, (), {}, is_default=True))

    return tuple(built)
