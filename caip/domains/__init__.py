"""
CAIP - Domains Package

This module:
- Exposes the domain contract (BaseDomain)
- Registers every domain implementation once
- Provides get_domain() for the CLI and the public API
"""

# =========================
# Core domain contract
# =========================

from caip.domains.base import BaseDomain

# =========================
# Registry
# =========================

from caip.domains.registry import registry

# =========================
# Domain implementations
# =========================

from caip.domains.triage import TriageDomain
from caip.domains.followup import FollowUpDomain
from caip.domains.workforce import WorkforceDomain
from caip.domains.demand_capacity import DemandCapacityDomain

# =========================
# Register domains (ONCE)
# =========================

registry.register(TriageDomain)
registry.register(FollowUpDomain)
registry.register(WorkforceDomain)
registry.register(DemandCapacityDomain)


def get_domain(domain_name: str, **options):
    """
    Returns a NEW domain instance, or None for an unknown name.
    """
    return registry.get_domain(domain_name, **options)


__all__ = [
    "BaseDomain",
    "TriageDomain",
    "FollowUpDomain",
    "WorkforceDomain",
    "DemandCapacityDomain",
    "registry",
    "get_domain",
]
