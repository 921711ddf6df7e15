from dataclasses import dataclass, field
from typing import Dict, Optional

from caip.core.workforce_schema import (
    DEFAULT_APPOINTMENTS_PER_WTE_DAY,
    RoleGroup,
)


# -------------------------------------------------
# CAPACITY ASSUMPTIONS
# -------------------------------------------------
@dataclass
class CapacityAssumptions:
    """
    Inputs to the theoretical capacity model.

    working_days_per_month=None means "derive from the data month".
    Rates supplied here are merged over the per-role defaults.
    """
    working_days_per_month: Optional[int] = None
    appointments_per_wte_per_day: Dict[RoleGroup, float] = field(default_factory=dict)

    def rate_for(self, role_group: RoleGroup) -> float:
        if role_group in self.appointments_per_wte_per_day:
            return float(self.appointments_per_wte_per_day[role_group])
        return float(DEFAULT_APPOINTMENTS_PER_WTE_DAY.get(role_group, 0))

    def rates(self) -> Dict[RoleGroup, float]:
        merged = dict(DEFAULT_APPOINTMENTS_PER_WTE_DAY)
        merged.update(self.appointments_per_wte_per_day)
        return merged


# -------------------------------------------------
# FRAGILITY THRESHOLDS
# -------------------------------------------------
@dataclass
class GroupThreshold:
    min_wte: float = 0.5
    max_headcount: float = 1


@dataclass
class FragilityThresholds:
    gp: GroupThreshold = field(default_factory=GroupThreshold)
    nurse: GroupThreshold = field(default_factory=GroupThreshold)
    reception: GroupThreshold = field(default_factory=GroupThreshold)
