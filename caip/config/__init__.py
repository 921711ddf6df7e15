from .loader import load_config, load_capacity_assumptions, load_fragility_thresholds
from .defaults import DEFAULT_CONFIG
from .capacity_config import CapacityAssumptions, FragilityThresholds, GroupThreshold

__all__ = [
    "load_config",
    "load_capacity_assumptions",
    "load_fragility_thresholds",
    "DEFAULT_CONFIG",
    "CapacityAssumptions",
    "FragilityThresholds",
    "GroupThreshold",
]
