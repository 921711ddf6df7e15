from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class BaseDomain(ABC):
    """
    Abstract base class for every analysis domain.

    A domain owns one input shape (contact records, appointment CSVs,
    workforce rows) and turns it into a JSON-safe KPI block plus
    rule-based insights.
    """

    name: str = "generic"
    description: str = "Generic domain"
    required_columns: List[str] = []

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}

    # --------------------------------------------------
    # OPTIONAL VALIDATION (DEFAULT SAFE)
    # --------------------------------------------------

    def validate_data(self, data: Any) -> bool:
        """
        Default = always valid. Domains that read raw tables override
        this and raise on format errors.
        """
        return True

    # --------------------------------------------------
    # REQUIRED DOMAIN CONTRACTS
    # --------------------------------------------------

    @abstractmethod
    def preprocess(self, data: Any) -> Any:
        pass

    @abstractmethod
    def calculate_kpis(self, data: Any) -> Dict[str, Any]:
        pass

    @abstractmethod
    def generate_insights(self, data: Any, kpis: Dict[str, Any]) -> List[Dict[str, Any]]:
        pass

    # --------------------------------------------------
    # INSIGHT HELPER
    # --------------------------------------------------

    @staticmethod
    def insight(level: str, title: str, so_what: str, source: str = "System Analysis") -> Dict[str, Any]:
        return {
            "level": level,
            "title": title,
            "so_what": so_what,
            "source": source,
        }

    # --------------------------------------------------
    # PIPELINE
    # --------------------------------------------------

    def run(self, data: Any) -> Dict[str, Any]:
        if not self.validate_data(data):
            raise ValueError(f"Data validation failed for {self.name}")

        processed = self.preprocess(data)
        kpis = self.calculate_kpis(processed)
        insights = self.generate_insights(processed, kpis)

        return {
            "domain": self.name,
            "description": self.description,
            "kpis": kpis,
            "insights": insights,
        }
