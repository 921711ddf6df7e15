"""
Workforce role schema
---------------------
Role groups, super-group membership and the national workforce
column contract (*_FTE / *_HC fields summed per role group).
"""

from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence

from caip.core.normalizer import parse_number


class RoleGroup(str, Enum):
    GP_PARTNER = "GP_PARTNER"
    GP_SALARIED = "GP_SALARIED"
    GP_LOCUM = "GP_LOCUM"
    GP_REGISTRAR = "GP_REGISTRAR"
    NURSE = "NURSE"
    HCA = "HCA"
    PHARMACIST = "PHARMACIST"
    PHARM_TECH = "PHARM_TECH"
    PARAMEDIC = "PARAMEDIC"
    PHYSIO = "PHYSIO"
    MENTAL_HEALTH = "MENTAL_HEALTH"
    RECEPTION = "RECEPTION"
    ADMIN = "ADMIN"
    PRACTICE_MGR = "PRACTICE_MGR"
    OTHER = "OTHER"


ROLE_LABELS: Dict[RoleGroup, str] = {
    RoleGroup.GP_PARTNER: "GP Partner",
    RoleGroup.GP_SALARIED: "GP Salaried",
    RoleGroup.GP_LOCUM: "GP Locum",
    RoleGroup.GP_REGISTRAR: "GP Registrar",
    RoleGroup.NURSE: "Nurse",
    RoleGroup.HCA: "Healthcare Assistant",
    RoleGroup.PHARMACIST: "Pharmacist",
    RoleGroup.PHARM_TECH: "Pharmacy Technician",
    RoleGroup.PARAMEDIC: "Paramedic",
    RoleGroup.PHYSIO: "Physiotherapist",
    RoleGroup.MENTAL_HEALTH: "Mental Health / Talking Therapies",
    RoleGroup.RECEPTION: "Reception / Telephonist",
    RoleGroup.ADMIN: "Admin / Support",
    RoleGroup.PRACTICE_MGR: "Practice Manager",
    RoleGroup.OTHER: "Other Clinical (DPC)",
}

# =====================================================
# SUPER-GROUPS
# =====================================================

GP_ROLE_GROUPS: List[RoleGroup] = [
    RoleGroup.GP_PARTNER,
    RoleGroup.GP_SALARIED,
    RoleGroup.GP_LOCUM,
    RoleGroup.GP_REGISTRAR,
]

CLINICAL_ROLE_GROUPS: List[RoleGroup] = GP_ROLE_GROUPS + [
    RoleGroup.NURSE,
    RoleGroup.HCA,
    RoleGroup.PHARMACIST,
    RoleGroup.PHARM_TECH,
    RoleGroup.PARAMEDIC,
    RoleGroup.PHYSIO,
    RoleGroup.MENTAL_HEALTH,
    RoleGroup.OTHER,
]

NON_CLINICAL_ROLE_GROUPS: List[RoleGroup] = [
    RoleGroup.RECEPTION,
    RoleGroup.ADMIN,
    RoleGroup.PRACTICE_MGR,
]

NON_GP_CLINICAL_ROLE_GROUPS: List[RoleGroup] = [
    g for g in CLINICAL_ROLE_GROUPS if g not in GP_ROLE_GROUPS
]

ARRS_ROLE_GROUPS: List[RoleGroup] = [
    RoleGroup.PHARMACIST,
    RoleGroup.PHARM_TECH,
    RoleGroup.PARAMEDIC,
    RoleGroup.PHYSIO,
    RoleGroup.MENTAL_HEALTH,
]

ROLE_GROUP_ORDER: List[RoleGroup] = CLINICAL_ROLE_GROUPS + NON_CLINICAL_ROLE_GROUPS


# =====================================================
# NATIONAL WORKFORCE COLUMN CONTRACT
# =====================================================

def _pair(*stems: str) -> Dict[str, List[str]]:
    return {
        "wte": [f"TOTAL_{s}_FTE" for s in stems],
        "headcount": [f"TOTAL_{s}_HC" for s in stems],
    }


ROLE_MAPPINGS: Dict[RoleGroup, Dict[str, List[str]]] = {
    RoleGroup.GP_PARTNER: _pair("GP_SEN_PTNR", "GP_PTNR_PROV"),
    RoleGroup.GP_SALARIED: _pair("GP_SAL_BY_PRAC", "GP_SAL_BY_OTH"),
    RoleGroup.GP_LOCUM: _pair("GP_LOCUM_VAC", "GP_LOCUM_ABS", "GP_LOCUM_OTH"),
    RoleGroup.GP_REGISTRAR: _pair(
        "GP_TRN_GR_ST1", "GP_TRN_GR_ST2", "GP_TRN_GR_ST3",
        "GP_TRN_GR_ST4", "GP_TRN_GR_OTH", "GP_TRN_GR_F1_2",
    ),
    RoleGroup.NURSE: _pair("NURSES", "DPC_NURSE_ASSOC", "DPC_TRAINEE_NURSE_ASSOC"),
    RoleGroup.HCA: _pair("DPC_HCA", "DPC_APP_HCA"),
    RoleGroup.PHARMACIST: _pair("DPC_PHARMA", "DPC_ADV_PHARMA_PRAC", "DPC_APP_PHARMA"),
    RoleGroup.PHARM_TECH: _pair("DPC_PHARMT", "DPC_TRAINEE_PHARMT"),
    RoleGroup.PARAMEDIC: _pair("DPC_PARAMED", "DPC_ADV_PARAMED_PRAC"),
    RoleGroup.PHYSIO: _pair("DPC_PHYSIO", "DPC_ADV_PHYSIO_PRAC", "DPC_APP_PHYSIO"),
    RoleGroup.MENTAL_HEALTH: _pair(
        "DPC_NHS_TALKING_THERA", "DPC_TRAINEE_NHS_TALKING_THERA", "DPC_THERA_COU",
    ),
    RoleGroup.RECEPTION: _pair("ADMIN_RECEPT", "ADMIN_TELEPH"),
    RoleGroup.ADMIN: _pair(
        "ADMIN_MED_SECRETARY", "ADMIN_ESTATES_ANC", "ADMIN_DT_LEAD",
        "ADMIN_OTH", "ADMIN_APP",
    ),
    RoleGroup.PRACTICE_MGR: _pair("ADMIN_MANAGER", "ADMIN_MANAGE_PTNR"),
    RoleGroup.OTHER: _pair(
        "DPC_ADV_DIETICIAN_PRAC", "DPC_ADV_PODIA_PRAC", "DPC_ADV_THERA_OCC_PRAC",
        "DPC_DIETICIAN", "DPC_DISPENSER", "DPC_GPA", "DPC_OST", "DPC_PHLEB",
        "DPC_PODIA", "DPC_PHYSICIAN_ASSOC", "DPC_THERA_OCC", "DPC_THERA_OTH",
        "DPC_APP_PHLEB", "DPC_APP_PHYSICIAN_ASSOC", "DPC_APP_OTH",
        "DPC_APPRENTICE", "DPC_HLTH_SPRT_WRK", "DPC_SPLW", "DPC_OTH",
    ),
}

# "Other" direct patient care roles that are ARRS-fundable
_ARRS_OTHER = _pair(
    "DPC_ADV_DIETICIAN_PRAC", "DPC_DIETICIAN", "DPC_ADV_PODIA_PRAC", "DPC_PODIA",
    "DPC_ADV_THERA_OCC_PRAC", "DPC_THERA_OCC", "DPC_PHYSICIAN_ASSOC",
    "DPC_APP_PHYSICIAN_ASSOC", "DPC_SPLW", "DPC_HLTH_SPRT_WRK", "DPC_THERA_OTH",
)
ARRS_OTHER_FTE_FIELDS: List[str] = _ARRS_OTHER["wte"]
ARRS_OTHER_HC_FIELDS: List[str] = _ARRS_OTHER["headcount"]

DEFAULT_APPOINTMENTS_PER_WTE_DAY: Dict[RoleGroup, float] = {
    RoleGroup.GP_PARTNER: 25,
    RoleGroup.GP_SALARIED: 25,
    RoleGroup.GP_LOCUM: 25,
    RoleGroup.GP_REGISTRAR: 20,
    RoleGroup.NURSE: 18,
    RoleGroup.HCA: 12,
    RoleGroup.PHARMACIST: 18,
    RoleGroup.PHARM_TECH: 14,
    RoleGroup.PARAMEDIC: 20,
    RoleGroup.PHYSIO: 16,
    RoleGroup.MENTAL_HEALTH: 12,
    RoleGroup.OTHER: 15,
}


# =====================================================
# FIELD HELPERS
# =====================================================

def sum_fields(row: Mapping, field_names: Sequence[str]) -> Optional[float]:
    """
    Sum the parseable fields present in `row`.

    Returns None when no field carried a value, so an absent role
    stays distinguishable from a role staffed at zero.
    """
    total = 0.0
    has_value = False
    for name in field_names:
        if name not in row:
            continue
        parsed = parse_number(row[name])
        if parsed is not None:
            total += parsed
            has_value = True
    return total if has_value else None

