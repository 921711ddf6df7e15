from datetime import datetime

import pytest

from caip.core.classifier import DataQuality, classify_row
from caip.core.column_resolver import EXPECTED_TRIAGE_COLUMNS, resolve_columns
from caip.core.taxonomy import (
    ADVICE_GROUP,
    APPOINTMENT_GROUP,
    OTHER_APPOINTMENT,
    OTHER_UNKNOWN,
    OUTCOME_TAXONOMY,
    PRESCRIPTION_GROUP,
    TIMED_OUT_GROUP,
    age_band,
    classify_appointment_subtype,
    classify_outcome,
    group_names,
    taxonomy_from_config,
)

from conftest import triage_row

COLUMNS = resolve_columns(EXPECTED_TRIAGE_COLUMNS)


def classify(**overrides):
    row = triage_row(**overrides)
    return classify_row([row[c] for c in EXPECTED_TRIAGE_COLUMNS], COLUMNS)


# -------------------------------------------------
# Taxonomy
# -------------------------------------------------

def test_first_matching_group_wins():
    # "telephone advice" hits Appointment before Advice
    assert classify_outcome("Telephone advice given") == APPOINTMENT_GROUP
    assert classify_outcome("Self care advice") == ADVICE_GROUP
    assert classify_outcome("Repeat medication issued") == PRESCRIPTION_GROUP


def test_custom_mapping_overrides_keywords():
    mapping = {"telephone advice given": ADVICE_GROUP}
    assert classify_outcome("  Telephone Advice Given ", mapping) == ADVICE_GROUP


def test_every_outcome_lands_in_exactly_one_group():
    names = group_names()
    for text in ("", None, "xyz", "Timed out", "duplicate request", "2ww referral"):
        assert classify_outcome(text) in names
    assert classify_outcome(None) == OTHER_UNKNOWN
    assert classify_outcome("Request timed out") == TIMED_OUT_GROUP


def test_appointment_subtypes():
    assert classify_appointment_subtype("Face to face same day") == "F2F Same Day"
    assert classify_appointment_subtype("Video consultation") == "Video"
    assert classify_appointment_subtype("Booked") == OTHER_APPOINTMENT


def test_age_bands():
    assert age_band(0) == "0-4"
    assert age_band(17) == "5-17"
    assert age_band(75) == "75+"
    assert age_band(None) == "Unknown"
    assert age_band(-1) == "Unknown"


def test_taxonomy_from_config_appends_catch_all():
    taxonomy = taxonomy_from_config([{"name": "Booked", "keywords": ["Appointment"]}])
    assert [e.name for e in taxonomy] == ["Booked", OTHER_UNKNOWN]
    assert classify_outcome("GP appointment", taxonomy=taxonomy) == "Booked"
    assert taxonomy_from_config(None) is OUTCOME_TAXONOMY

    with pytest.raises(ValueError):
        taxonomy_from_config([{"keywords": ["x"]}])


# -------------------------------------------------
# Row classifier
# -------------------------------------------------

def test_classify_row_builds_record():
    record, quality = classify()

    assert record.submitted == datetime(2026, 1, 12, 9, 15)
    assert record.day_of_week == "Monday"
    assert record.hour_of_day == 9
    assert record.type == "Clinical"
    assert record.outcome_group == APPOINTMENT_GROUP
    assert record.appointment_subtype == "F2F Same Day"
    assert record.lead_time_minutes == 5
    assert record.time_to_outcome_minutes == 60
    assert record.age == 34
    assert record.age_band == "25-44"
    assert record.is_appointment and not record.is_weekend

    assert quality == DataQuality(total_rows=1)


def test_record_holds_no_patient_identity():
    record, _ = classify(Patient_name="Jane Doe")
    assert "Jane Doe" not in str(record.to_dict())
    assert "patient_name" not in record.to_dict()


def test_negative_durations_are_dropped_and_counted():
    record, quality = classify(Submission_completed="12/01/2026 09:00")
    assert record.lead_time_minutes is None
    assert record.time_to_outcome_minutes == 75
    assert quality.invalid_durations == 1


def test_missing_fields_are_tallied():
    record, quality = classify(Submitted="", Outcome="", Type="")
    assert record.day_of_week is None
    assert record.outcome_group == OTHER_UNKNOWN
    assert record.appointment_subtype is None
    assert quality.missing_dates == 1
    assert quality.missing_outcomes == 1
    assert quality.missing_type == 1
    assert quality.unparsed_dates == 0


def test_unparsed_date_counted_separately():
    _, quality = classify(Submitted="yesterday-ish")
    assert quality.missing_dates == 1
    assert quality.unparsed_dates == 1


def test_type_canonicalised():
    assert classify(Type="ADMIN")[0].type == "Admin"
    assert classify(Type="Medication")[0].type == "Medication"


def test_data_quality_folds_with_add():
    total = DataQuality(total_rows=1, missing_dates=1) + DataQuality(total_rows=1, invalid_durations=2)
    assert total.to_dict() == {
        "total_rows": 2,
        "missing_dates": 1,
        "invalid_durations": 2,
        "missing_outcomes": 0,
        "missing_type": 0,
        "unparsed_dates": 0,
    }
