import logging

import pytest

from caip.config import (
    DEFAULT_CONFIG,
    CapacityAssumptions,
    FragilityThresholds,
    load_capacity_assumptions,
    load_config,
)
from caip.core.workforce_schema import RoleGroup
from caip.utils.logger import get_logger, run_log


def test_defaults_without_file():
    config = load_config(None)

    assert config["output_dir"] == "runs"
    assert config["followup"]["window"] == "all"
    assert isinstance(config["capacity_assumptions"], CapacityAssumptions)
    assert isinstance(config["fragility_thresholds"], FragilityThresholds)
    assert "capacity_assumptions" not in DEFAULT_CONFIG


def test_user_sections_merge_over_defaults(tmp_path):
    path = tmp_path / "caip.yaml"
    path.write_text(
        "triage:\n"
        "  list_size: 8000\n"
        "  custom_outcome_mapping:\n"
        "    'Booked With GP': Appointment\n"
        "capacity:\n"
        "  working_days_per_month: 19\n"
        "  appointments_per_wte_per_day:\n"
        "    nurse: 22\n"
        "fragility:\n"
        "  gp: {min_wte: 1.0, max_headcount: 2}\n"
        "output_dir: out\n"
    )
    config = load_config(str(path))

    assert config["triage"]["list_size"] == 8000
    assert config["triage"]["outcome_taxonomy"] is None
    assert config["triage"]["custom_outcome_mapping"] == {"booked with gp": "Appointment"}
    assert config["benchmark"]["outlier_threshold"] == 1.5
    assert config["output_dir"] == "out"

    assumptions = config["capacity_assumptions"]
    assert assumptions.working_days_per_month == 19
    assert assumptions.rate_for(RoleGroup.NURSE) == 22
    assert assumptions.rate_for(RoleGroup.GP_PARTNER) == 25
    assert config["fragility_thresholds"].gp.max_headcount == 2


def test_missing_and_malformed_config(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "missing.yaml"))

    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n")
    with pytest.raises(ValueError):
        load_config(str(path))


def test_unknown_role_group_in_capacity_config():
    with pytest.raises(ValueError, match="Unknown role group"):
        load_capacity_assumptions({"capacity": {"appointments_per_wte_per_day": {"wizard": 3}}})


def test_pipeline_logger_names():
    logger = get_logger("triage")

    assert logger.name == "caip.run.triage"
    assert logger is get_logger("triage")
    assert logger.level == logging.INFO
    assert not logger.handlers


def test_run_log_captures_package_records(tmp_path):
    with run_log("triage", tmp_path) as log:
        log.info("Running triage analysis")
        logging.getLogger("caip.core.ingest").info("Ingested 3 contact records")
        logging.getLogger("somewhere.else").warning("not ours")

    text = (tmp_path / "run.log").read_text()
    assert "INFO - caip.run.triage: Running triage analysis" in text
    assert "Ingested 3 contact records" in text
    assert "not ours" not in text
    assert not logging.getLogger("caip").handlers
