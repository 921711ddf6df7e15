from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Sequence, Tuple

# Columns that would carry patient identity into aggregate inputs
FORBIDDEN_COLUMNS: List[str] = [
    "nhs number",
    "patient name",
    "first name",
    "surname",
    "date of birth",
    "dob",
    "postcode",
    "address",
]


@dataclass
class HeaderValidator:
    """
    Checks a header row against required and forbidden column lists.

    Matching is case-insensitive on stripped names. The validator only
    reports; callers decide whether a failure rejects the file.
    """
    required: Sequence[str] = ()
    forbidden: Sequence[str] = field(default_factory=lambda: list(FORBIDDEN_COLUMNS))

    def validate(self, columns: Iterable) -> Tuple[bool, Dict[str, Any]]:
        observed = {str(c).strip().lower() for c in columns if c is not None}

        results = {
            "columns": len(observed),
            "missing": [c for c in self.required if c.strip().lower() not in observed],
            "forbidden": [c for c in self.forbidden if c in observed],
        }

        passed = not results["missing"] and not results["forbidden"]
        return passed, results


def describe_header_failure(results: Dict[str, Any], file_name: str = "") -> str:
    where = f" in {file_name}" if file_name else ""
    if results.get("missing"):
        return f"Missing required columns{where}: {', '.join(results['missing'])}"
    return f"Patient-identifiable columns are not accepted{where}: {', '.join(results['forbidden'])}"
