"""
Ingestion / admission boundary for triage extracts.

The only place in the pipeline allowed to reject a dataset outright.
Everything downstream is total over what this module admits.
"""

import logging
from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from caip.core.classifier import ContactRecord, DataQuality, classify_row
from caip.core.column_resolver import HEADER_MATCH_THRESHOLD, resolve_columns, validate_triage_headers
from caip.core.normalizer import is_missing
from caip.core.taxonomy import APPOINTMENT_SUBTYPE_TAXONOMY, OUTCOME_TAXONOMY, TaxonomyEntry

log = logging.getLogger(__name__)


# =====================================================
# ERRORS
# =====================================================

class IngestionError(ValueError):
    """A dataset was rejected as a whole."""


class FormatMismatchError(IngestionError):
    pass


class EmptyDatasetError(IngestionError):
    pass


# =====================================================
# SAFE TABULAR LOADER
# =====================================================

def read_tabular_file(path: Union[str, Path]) -> pd.DataFrame:
    """
    Read the first sheet of an xlsx/xls workbook or a CSV file.

    CSV cells stay as text so the date strategies see the raw value;
    workbook cells keep their native types (datetimes, serials).
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")

    suffix = path.suffix.lower()

    try:
        if suffix == ".csv":
            for enc in ("utf-8-sig", "latin-1", "cp1252"):
                try:
                    return pd.read_csv(path, encoding=enc, dtype=str, keep_default_na=False)
                except UnicodeDecodeError:
                    continue

        if suffix in (".xls", ".xlsx"):
            return pd.read_excel(path, sheet_name=0, dtype=object)

    except pd.errors.EmptyDataError:
        raise EmptyDatasetError(f"{path.name} is empty")

    raise IngestionError(f"Unsupported or unreadable file: {path.name}")


def _clean_headers(columns: Sequence) -> List[str]:
    # pandas names blank header cells "Unnamed: N"
    cleaned = []
    for col in columns:
        text = "" if is_missing(col) else str(col).strip()
        cleaned.append("" if text.startswith("Unnamed:") else text)
    return cleaned


def _row_is_empty(row: Sequence) -> bool:
    return all(is_missing(cell) for cell in row)


# =====================================================
# CONTACT RECORD INGESTION
# =====================================================

def load_contact_records(
    source: Union[str, Path, pd.DataFrame],
    custom_mapping: Optional[Mapping[str, str]] = None,
    outcome_taxonomy: Sequence[TaxonomyEntry] = OUTCOME_TAXONOMY,
    subtype_taxonomy: Sequence[TaxonomyEntry] = APPOINTMENT_SUBTYPE_TAXONOMY,
) -> Tuple[List[ContactRecord], DataQuality]:
    """
    Admit a triage extract and classify every row.

    Steps:
    1. Load the frame (path or ready-made DataFrame)
    2. Header gate (>= 60% of the expected checklist)
    3. Resolve field -> column index
    4. Classify rows, skipping fully blank ones, and fold the counters

    Raises:
        FormatMismatchError: header gate failed
        EmptyDatasetError: no header or no data rows
    """

    # -------------------------------------------------
    # 1. LOAD
    # -------------------------------------------------
    if isinstance(source, pd.DataFrame):
        frame = source
        label = "dataframe"
    else:
        frame = read_tabular_file(source)
        label = Path(source).name

    if frame is None or len(frame.columns) == 0:
        log.warning("Rejected %s: no header row", label)
        raise EmptyDatasetError(f"{label} has no header row")

    # -------------------------------------------------
    # 2. HEADER GATE
    # -------------------------------------------------
    headers = _clean_headers(frame.columns)
    passed, ratio = validate_triage_headers(headers)
    if not passed:
        log.warning("Rejected %s: header match %.0f%%", label, ratio * 100)
        raise FormatMismatchError(
            f"{label} does not look like a triage extract: only {ratio:.0%} of the "
            f"expected columns were found (need {HEADER_MATCH_THRESHOLD:.0%})"
        )

    if len(frame) == 0:
        log.warning("Rejected %s: no data rows", label)
        raise EmptyDatasetError(f"{label} has a header but no data rows")

    # -------------------------------------------------
    # 3. COLUMN RESOLUTION
    # -------------------------------------------------
    columns = resolve_columns(headers)
    missing = [name for name, idx in columns.items() if idx is None]
    if missing:
        log.debug("Columns not present in %s: %s", label, ", ".join(missing))

    # -------------------------------------------------
    # 4. CLASSIFY
    # -------------------------------------------------
    records: List[ContactRecord] = []
    quality = DataQuality()

    for row in frame.itertuples(index=False, name=None):
        if _row_is_empty(row):
            continue
        record, increment = classify_row(
            row,
            columns,
            custom_mapping=custom_mapping,
            outcome_taxonomy=outcome_taxonomy,
            subtype_taxonomy=subtype_taxonomy,
        )
        records.append(record)
        quality = quality + increment

    if not records:
        log.warning("Rejected %s: every row was blank", label)
        raise EmptyDatasetError(f"{label} contains no non-empty data rows")

    log.info(
        "Ingested %d contact records from %s (missing dates=%d, invalid durations=%d, "
        "missing outcomes=%d, missing type=%d, unparsed dates=%d)",
        len(records), label, quality.missing_dates, quality.invalid_durations,
        quality.missing_outcomes, quality.missing_type, quality.unparsed_dates,
    )

    return records, quality
