import pandas as pd
import pytest

from caip.core.column_resolver import EXPECTED_TRIAGE_COLUMNS


def triage_row(**overrides):
    """
    One extract row with every checklist column present.
    Identity columns stay blank; they are never read.
    """
    row = {name: "" for name in EXPECTED_TRIAGE_COLUMNS}
    row.update({
        "ID": "1",
        "ODS Code": "A81001",
        "Submitted": "12/01/2026 09:15",
        "Access method": "Online",
        "Submission source": "Patient",
        "Age": "34",
        "Sex": "Female",
        "Submission started": "12/01/2026 09:10",
        "Submission completed": "12/01/2026 09:15",
        "Type": "Clinical",
        "Clinical problem type": "New problem",
        "Admin activity type": "",
        "Response preference": "Phone call",
        "Outcome": "Face to face same day appointment",
        "Outcome recorded": "12/01/2026 10:15",
    })
    for key, value in overrides.items():
        row[key.replace("_", " ")] = value
    return row


@pytest.fixture
def triage_df():
    """
    Deterministic 100-row extract.
    60 clinical rows booked face to face, 40 admin fit-note rows.
    """
    rows = []
    for i in range(60):
        rows.append(triage_row(ID=str(i)))
    for i in range(40):
        rows.append(triage_row(
            ID=str(60 + i),
            Type="Admin",
            Clinical_problem_type="",
            Admin_activity_type="Fit note",
            Outcome="Fit note sent",
        ))
    return pd.DataFrame(rows, columns=EXPECTED_TRIAGE_COLUMNS)


@pytest.fixture
def triage_csv(tmp_path, triage_df):
    path = tmp_path / "triage_extract.csv"
    triage_df.to_csv(path, index=False)
    return path


@pytest.fixture
def followup_csv_text():
    """
    Patient 1111: Dr Alpha 01-Jan, Dr Beta 05-Jan.
    Patient 2222: Dr Alpha 02-Jan.
    """
    return "\n".join([
        "Organisation name,Clinician,Appointment date,NHS number",
        "Test Surgery,Dr Alpha,01-Jan-26,1111",
        "Test Surgery,Dr Beta,05-Jan-26,1111",
        "Test Surgery,Dr Alpha,02-Jan-26,2222",
    ])


def workforce_row(code="A81001", name="Test Surgery", patients="10000", **fields):
    row = {
        "PRAC_CODE": code,
        "PRAC_NAME": name,
        "TOTAL_PATIENTS": patients,
        "PCN_CODE": "U00001",
        "ICB_CODE": "QHM",
    }
    row.update(fields)
    return row


@pytest.fixture
def workforce_df():
    return pd.DataFrame([
        workforce_row(
            TOTAL_GP_SEN_PTNR_FTE="2", TOTAL_GP_SEN_PTNR_HC="2",
            TOTAL_GP_SAL_BY_PRAC_FTE="2", TOTAL_GP_SAL_BY_PRAC_HC="3",
            TOTAL_NURSES_FTE="2", TOTAL_NURSES_HC="3",
            TOTAL_DPC_PHARMA_FTE="1", TOTAL_DPC_PHARMA_HC="1",
            TOTAL_ADMIN_RECEPT_FTE="4", TOTAL_ADMIN_RECEPT_HC="6",
        ),
        workforce_row(
            code="A81002", name="Small Practice", patients="3000",
            TOTAL_GP_SEN_PTNR_FTE="0.8", TOTAL_GP_SEN_PTNR_HC="1",
            TOTAL_ADMIN_RECEPT_FTE="1", TOTAL_ADMIN_RECEPT_HC="",
        ),
        workforce_row(code="UNMAPPED", name="Unmapped"),
    ])
