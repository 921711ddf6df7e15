from typing import Dict, List, Optional, Sequence, Tuple

# =====================================================
# TRIAGE EXTRACT HEADER CONTRACT
# =====================================================
# Checklist used by the admission gate. Identity columns are listed
# because real extracts carry them; they are never resolved or read.

EXPECTED_TRIAGE_COLUMNS: List[str] = [
    "ID", "ODS Code", "Submitted", "Access method", "Submission source",
    "Patient name", "Age", "Sex", "Submission started", "Submission completed",
    "Type", "Clinical problem type", "Admin activity type", "Response preference",
    "Outcome", "Outcome recorded",
]

HEADER_MATCH_THRESHOLD = 0.6

# field -> header text searched for
TRIAGE_COLUMN_MAP: Dict[str, str] = {
    "ods_code": "ods code",
    "submitted": "submitted",
    "access_method": "access method",
    "submission_source": "submission source",
    "age": "age",
    "sex": "sex",
    "started": "submission started",
    "completed": "submission completed",
    "type": "type",
    "clinical_problem_type": "clinical problem type",
    "admin_activity_type": "admin activity type",
    "response_preference": "response preference",
    "outcome": "outcome",
    "outcome_recorded": "outcome recorded",
}


def _normalize(headers: Sequence) -> List[str]:
    return [str(h).strip().lower() if h is not None else "" for h in headers]


# =====================================================
# ADMISSION GATE
# =====================================================

def header_match_ratio(headers: Sequence, expected: Sequence[str] = EXPECTED_TRIAGE_COLUMNS) -> float:
    """
    Share of the expected checklist found in the observed headers.
    A header matches when either string contains the other.
    """
    if not expected:
        return 0.0

    observed = [h for h in _normalize(headers) if h]
    matched = 0
    for name in (e.lower() for e in expected):
        if any(h in name or name in h for h in observed):
            matched += 1

    return matched / len(expected)


def validate_triage_headers(
    headers: Sequence,
    expected: Sequence[str] = EXPECTED_TRIAGE_COLUMNS,
    threshold: float = HEADER_MATCH_THRESHOLD,
) -> Tuple[bool, float]:
    """Header gate: (passed, match ratio). The threshold itself passes."""
    ratio = header_match_ratio(headers, expected)
    return ratio >= threshold, ratio


# =====================================================
# COLUMN RESOLUTION ENGINE
# =====================================================

def resolve_column_index(headers: Sequence, name: str) -> Optional[int]:
    """
    Resolve a header name to its position.

    Resolution strategy:
    1. Exact match (case-insensitive)
    2. First header containing the name

    Returns None when the column is absent.
    """
    observed = _normalize(headers)
    target = name.strip().lower()

    for idx, header in enumerate(observed):
        if header == target:
            return idx

    for idx, header in enumerate(observed):
        if header and target in header:
            return idx

    return None


def resolve_columns(headers: Sequence, column_map: Dict[str, str] = TRIAGE_COLUMN_MAP) -> Dict[str, Optional[int]]:
    return {
        field: resolve_column_index(headers, name)
        for field, name in column_map.items()
    }
