import copy
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .defaults import DEFAULT_CONFIG
from caip.config.capacity_config import (
    CapacityAssumptions,
    FragilityThresholds,
    GroupThreshold,
)
from caip.core.workforce_schema import RoleGroup


# -------------------------------------------------
# CAPACITY / FRAGILITY LOADERS
# -------------------------------------------------
def load_capacity_assumptions(cfg: Dict[str, Any]) -> CapacityAssumptions:
    section = cfg.get("capacity", {}) or {}

    rates = {}
    for key, value in (section.get("appointments_per_wte_per_day") or {}).items():
        try:
            role = RoleGroup(str(key).upper())
        except ValueError:
            raise ValueError(f"Unknown role group in capacity config: {key}")
        rates[role] = float(value)

    working_days = section.get("working_days_per_month")
    return CapacityAssumptions(
        working_days_per_month=int(working_days) if working_days else None,
        appointments_per_wte_per_day=rates,
    )


def load_fragility_thresholds(cfg: Dict[str, Any]) -> FragilityThresholds:
    section = cfg.get("fragility", {}) or {}

    def group(name: str) -> GroupThreshold:
        values = section.get(name) or {}
        return GroupThreshold(
            min_wte=float(values.get("min_wte", 0.5)),
            max_headcount=float(values.get("max_headcount", 1)),
        )

    return FragilityThresholds(
        gp=group("gp"),
        nurse=group("nurse"),
        reception=group("reception"),
    )


# -------------------------------------------------
# MAIN CONFIG LOADER
# -------------------------------------------------
def load_config(path: Optional[str]) -> dict:
    """
    Load and merge user config with framework defaults.

    Rules:
    - Defaults always win if the user omits fields
    - Every section is optional
    - output_dir always exists
    """

    # -------------------------------------------------
    # 1. Load user config (if provided)
    # -------------------------------------------------
    user_config = {}

    if path:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            user_config = yaml.safe_load(f) or {}

        if not isinstance(user_config, dict):
            raise ValueError("Config file must contain a YAML dictionary")

    # -------------------------------------------------
    # 2. Merge with defaults
    # -------------------------------------------------
    config = copy.deepcopy(DEFAULT_CONFIG)

    for key, value in user_config.items():
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            config[key].update(value)
        else:
            config[key] = value

    # -------------------------------------------------
    # 3. Enforce required invariants
    # -------------------------------------------------
    config.setdefault("output_dir", "runs")

    triage = config.setdefault("triage", {})
    triage["custom_outcome_mapping"] = {
        str(k).strip().lower(): v
        for k, v in (triage.get("custom_outcome_mapping") or {}).items()
    }

    # -------------------------------------------------
    # 4. Attach typed capacity config
    # -------------------------------------------------
    config["capacity_assumptions"] = load_capacity_assumptions(config)
    config["fragility_thresholds"] = load_fragility_thresholds(config)

    return config
