DEFAULT_CONFIG = {
    # -----------------------------
    # TRIAGE / ONLINE CONSULTATION EXTRACTS
    # -----------------------------
    "triage": {
        "list_size": None,                 # practice list size for per-1000 rates
        "custom_outcome_mapping": {},      # lowercased outcome text -> group
        "outcome_taxonomy": None,          # optional ordered override of groups
    },

    # -----------------------------
    # FOLLOW-UP COHORTS
    # -----------------------------
    "followup": {
        "window": "all",                   # all | 3months | 4weeks
    },

    # -----------------------------
    # WORKFORCE CAPACITY MODEL
    # -----------------------------
    "capacity": {
        "working_days_per_month": None,    # None = derive from the data month
        "appointments_per_wte_per_day": {},
    },

    # -----------------------------
    # SINGLE-POINT-OF-FAILURE THRESHOLDS
    # -----------------------------
    "fragility": {
        "gp": {"min_wte": 0.5, "max_headcount": 1},
        "nurse": {"min_wte": 0.5, "max_headcount": 1},
        "reception": {"min_wte": 0.5, "max_headcount": 1},
    },

    # -----------------------------
    # BENCHMARKING
    # -----------------------------
    "benchmark": {
        "outlier_threshold": 1.5,
        "forecast_periods": 3,
    },

    # -----------------------------
    # OUTPUT CONTROL
    # -----------------------------
    "output_dir": "runs",
}
