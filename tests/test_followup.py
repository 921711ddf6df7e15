from datetime import date

import pandas as pd
import pytest

from caip.core.ingest import EmptyDatasetError, FormatMismatchError
from caip.domains import get_domain
from caip.domains.followup import (
    calculate_clinician_follow_up,
    calculate_monthly_trends,
    calculate_overall_follow_up,
    calculate_same_clinician_follow_up,
    follow_up_buckets,
    is_doctor,
    load_follow_up_files,
    merge_csv_texts,
    month_label,
    parse_follow_up_csv,
    window_cutoff,
    with_next_gap,
)

HEADER = "Clinician,Appointment date,NHS number"


def export(*rows):
    return "\n".join([HEADER] + [",".join(r) for r in rows])


# -------------------------------------------------
# Parsing
# -------------------------------------------------

def test_parse_builds_sorted_dataset(followup_csv_text):
    dataset = parse_follow_up_csv(followup_csv_text)

    assert dataset.organisation == "Test Surgery"
    assert dataset.total_appointments == 3
    assert dataset.total_patients == 2
    assert dataset.doctors == ["Dr Alpha", "Dr Beta"]
    assert [e.date for e in dataset.events] == sorted(e.date for e in dataset.events)
    assert dataset.date_range == (date(2026, 1, 1), date(2026, 1, 5))
    assert sorted(len(history) for history in dataset.patients.values()) == [1, 2]


def test_patient_identifiers_are_not_retained(followup_csv_text):
    dataset = parse_follow_up_csv(followup_csv_text)
    for event in dataset.events:
        assert event.patient not in ("1111", "2222")
        assert len(event.patient) == 16


def test_unusable_rows_are_skipped():
    dataset = parse_follow_up_csv(export(
        ("Dr Alpha", "01-Jan-26", "1111"),
        ("Dr Alpha", "2026-01-02", "1111"),
        ("", "03-Jan-26", "1111"),
        ("Dr Alpha", "04-Jan-26", ""),
    ))
    assert dataset.total_appointments == 1


def test_missing_required_column():
    with pytest.raises(FormatMismatchError):
        parse_follow_up_csv("Clinician,Date,NHS number\nDr Alpha,01-Jan-26,1111")


def test_empty_exports():
    with pytest.raises(EmptyDatasetError):
        parse_follow_up_csv("")
    with pytest.raises(EmptyDatasetError):
        parse_follow_up_csv(export(("Dr Alpha", "not a date", "1111")))


def test_merge_drops_duplicate_lines():
    first = export(("Dr Alpha", "01-Jan-26", "1111"), ("Dr Alpha", "02-Jan-26", "2222"))
    second = export(("Dr Alpha", "02-Jan-26", "2222"), ("Dr Beta", "03-Jan-26", "3333"))

    merged = merge_csv_texts([first, "", second])
    assert merged.splitlines() == [
        HEADER,
        "Dr Alpha,01-Jan-26,1111",
        "Dr Alpha,02-Jan-26,2222",
        "Dr Beta,03-Jan-26,3333",
    ]
    assert merge_csv_texts([first]) == first


def test_load_follow_up_files(tmp_path, followup_csv_text):
    a = tmp_path / "jan.csv"
    b = tmp_path / "jan_copy.csv"
    a.write_text(followup_csv_text)
    b.write_text(followup_csv_text)

    assert load_follow_up_files([a, b]).total_appointments == 3

    with pytest.raises(FileNotFoundError):
        load_follow_up_files([tmp_path / "missing.csv"])


def test_doctor_names_and_buckets():
    assert is_doctor("Dr Alpha")
    assert not is_doctor("Nurse Dr")
    assert not is_doctor("Drew Smith")

    buckets = follow_up_buckets(pd.Series([None, 0, 1, 7, 8, 14, 15, 28, 29], dtype=float))
    assert buckets.isna().tolist() == [True, True, False, False, False, False, False, False, True]
    assert buckets.dropna().astype(int).tolist() == [7, 7, 14, 14, 28, 28]


def test_next_gap_skips_same_day_visits():
    dataset = parse_follow_up_csv(export(
        ("Dr Alpha", "01-Jan-26", "1111"),
        ("Dr Beta", "01-Jan-26", "1111"),
        ("Nurse Smith", "02-Jan-26", "1111"),
        ("Dr Alpha", "04-Jan-26", "1111"),
    ))
    doctors = dataset.appointments[dataset.appointments["is_doctor"]]
    gaps = with_next_gap(dataset, doctors, ["patient"])["gap"].tolist()

    # both 01-Jan visits return on 04-Jan; the nurse visit never counts
    assert gaps[:2] == [3, 3]
    assert pd.isna(gaps[2])


# -------------------------------------------------
# Cohort views
# -------------------------------------------------

def test_overall_follow_up(followup_csv_text):
    result = calculate_overall_follow_up(parse_follow_up_csv(followup_csv_text))

    assert result["total"] == 3
    assert result["follow_up_7"] == 1
    assert result["no_follow_up"] == 2
    assert result["rate_7"] == pytest.approx(100 / 3)
    assert result["patients_with_doctor_appointments"] == 2


def test_same_clinician_follow_up_counts_long_gaps_as_pairs():
    dataset = parse_follow_up_csv(export(
        ("Dr Alpha", "01-Jan-26", "1111"),
        ("Dr Alpha", "05-Jan-26", "1111"),
        ("Dr Alpha", "20-Mar-26", "1111"),
        ("Dr Alpha", "10-Jan-26", "2222"),
        ("Dr Alpha", "11-Jan-26", "3333"),
    ))
    result = calculate_same_clinician_follow_up(dataset)

    assert result["total"] == 5
    assert result["follow_up_7"] == 1
    assert result["total_pairs"] == 2
    assert result["rate_7"] == pytest.approx(20.0)

    (alpha,) = result["doctor_breakdown"]
    assert alpha["name"] == "Dr Alpha"
    assert alpha["total_visits"] == 5
    assert alpha["unique_patients"] == 3
    assert alpha["patients_with_revisit"] == 1
    assert alpha["pairs"] == 2


def test_same_clinician_ignores_other_doctors(followup_csv_text):
    result = calculate_same_clinician_follow_up(parse_follow_up_csv(followup_csv_text))
    assert result["total_pairs"] == 0
    assert [d["name"] for d in result["doctor_breakdown"]] == ["Dr Alpha", "Dr Beta"]


def test_clinician_follow_up_ignores_non_doctor_visits():
    dataset = parse_follow_up_csv(export(
        ("Dr Alpha", "01-Jan-26", "1111"),
        ("Nurse Smith", "03-Jan-26", "1111"),
        ("Dr Charlie", "10-Jan-26", "1111"),
    ))
    results = calculate_clinician_follow_up(dataset)

    assert [r["clinician"] for r in results] == ["Dr Alpha", "Dr Charlie"]
    alpha = results[0]
    assert alpha["follow_up_7"] == 0
    assert alpha["follow_up_14"] == 1
    assert alpha["rate_14"] == pytest.approx(100.0)

    (month,) = calculate_monthly_trends(dataset)
    assert month["key"] == "2026-01"
    assert month["label"] == "Jan 26"
    assert month["total"] == 2
    assert month["rate_14"] == pytest.approx(50.0)


def test_window_limits_sources_not_returns():
    dataset = parse_follow_up_csv(export(
        ("Dr Alpha", "28-Dec-25", "1111"),
        ("Dr Alpha", "05-Jan-26", "1111"),
        ("Dr Beta", "31-Jan-26", "2222"),
    ))

    everything = calculate_overall_follow_up(dataset, "all")
    assert everything["total"] == 3
    assert everything["follow_up_14"] == 1

    # 28-Dec falls before the cutoff (03-Jan); its return on 05-Jan is in
    # the window but only in-window visits are measured
    recent = calculate_overall_follow_up(dataset, "4weeks")
    assert recent["total"] == 2
    assert recent["total_follow_ups"] == 0


def test_window_cutoffs():
    assert window_cutoff(date(2026, 1, 31), "all") is None
    assert window_cutoff(date(2026, 1, 31), "4weeks") == date(2026, 1, 3)
    assert window_cutoff(date(2026, 5, 31), "3months") == date(2026, 2, 28)
    with pytest.raises(ValueError):
        window_cutoff(date(2026, 1, 31), "6months")


def test_month_label():
    assert month_label("2025-12") == "Dec 25"


# -------------------------------------------------
# Domain
# -------------------------------------------------

def test_followup_domain_run(followup_csv_text):
    result = get_domain("followup", window="all").run(followup_csv_text)

    kpis = result["kpis"]
    assert result["domain"] == "followup"
    assert kpis["overall"]["follow_up_7"] == 1
    assert kpis["dataset"]["organisation"] == "Test Surgery"
    assert result["insights"][0]["title"] == "Return Within 7 Days"


def test_followup_domain_rejects_unknown_window(followup_csv_text):
    with pytest.raises(ValueError):
        get_domain("followup", window="fortnight").run(followup_csv_text)
