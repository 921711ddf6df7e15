"""
Domain Registry

Analysis name -> domain class. The four analyses ("triage",
"followup", "workforce", "benchmark") register once in
caip.domains; the CLI and the public API share this instance.
"""

from typing import Dict, List, Optional, Type

from caip.domains.base import BaseDomain


class DomainRegistry:
    def __init__(self):
        self._domains: Dict[str, Type[BaseDomain]] = {}

    def register(self, domain_cls: Type[BaseDomain], name: Optional[str] = None) -> None:
        """Register under `name`, defaulting to the class's own `name`."""
        key = (name or domain_cls.name).strip().lower()
        if key in self._domains and self._domains[key] is not domain_cls:
            raise ValueError(f"Analysis '{key}' is already registered to {self._domains[key].__name__}")
        self._domains[key] = domain_cls

    def get_domain(self, name: str, **options) -> Optional[BaseDomain]:
        domain_cls = self._domains.get(str(name or "").strip().lower())
        if not domain_cls:
            return None
        return domain_cls(**options)

    def list_domains(self) -> List[str]:
        return list(self._domains.keys())

    def describe(self) -> Dict[str, str]:
        """Analysis name -> one-line description, in registration order."""
        return {name: cls.description for name, cls in self._domains.items()}


registry = DomainRegistry()
