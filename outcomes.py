"""Assessment configuration and CO/PO mapping data model."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

CO_KEYS: Tuple[str, ...] = tuple(f"CO{n}" for n in range(1, 13))
PO_KEYS: Tuple[str, ...] = tuple(f"PO{n}" for n in range(1, 13))

PO_NAMES: Dict[str, str] = {
    "PO1": "Engineering knowledge",
    "PO2": "Problem analysis",
    "PO3": "Design/development of solutions",
    "PO4": "Investigation",
    "PO5": "Modern tool usage",
    "PO6": "The engineer and society",
    "PO7": "Environment & sustainability",
    "PO8": "Ethics",
    "PO9": "Individual work and teamwork",
    "PO10": "Communication",
    "PO11": "Project management and finance",
    "PO12": "Life-long learning",
}

LIST_FAMILIES: Tuple[str, ...] = ("class_tests", "mid_term", "final", "assignments")
SINGLE_FAMILIES: Tuple[str, ...] = ("attendance", "performance")

# Order used when summing over assessments.
CALCULATION_ORDER: Tuple[str, ...] = LIST_FAMILIES + SINGLE_FAMILIES

# Order in which assessment columns appear in the student block of the template.
CANONICAL_COLUMN_ORDER: Tuple[str, ...] = (
    "class_tests",
    "assignments",
    "attendance",
    "performance",
    "mid_term",
    "final",
)

CO_LABEL_RX = re.compile(r"^CO(\d{1,2})$", flags=re.I)


class ConfigError(ValueError):
    """Raised when a user supplied configuration cannot be interpreted."""


def mark_key(family: str, name: str) -> str:
    return f"{family}_{name}"


def co_label(value: object) -> str:
    """Return ``CO<n>`` for an integral value in 1..12, else an empty string."""

    try:
        number = float(value)
    except (TypeError, ValueError):
        return ""
    if not number.is_integer() or not 1 <= number <= 12:
        return ""
    return f"CO{int(number)}"


@dataclass(frozen=True)
class Assessment:
    name: str
    max_marks: float
    co: str = ""


@dataclass
class AssessmentConfig:
    """Assessments grouped into the six fixed families."""

    class_tests: List[Assessment] = field(default_factory=list)
    mid_term: List[Assessment] = field(default_factory=list)
    final: List[Assessment] = field(default_factory=list)
    assignments: List[Assessment] = field(default_factory=list)
    attendance: Optional[Assessment] = None
    performance: Optional[Assessment] = None

    def family(self, name: str) -> List[Assessment]:
        """Return the assessments of *name* as a list (single slots give 0 or 1 items)."""

        value = getattr(self, name)
        if name in SINGLE_FAMILIES:
            return [value] if value is not None else []
        return list(value)

    def _iter(self, order: Iterable[str]) -> Iterator[Tuple[str, Assessment]]:
        for family in order:
            for assessment in self.family(family):
                yield family, assessment

    def iter_assessments(self) -> Iterator[Tuple[str, Assessment]]:
        return self._iter(CALCULATION_ORDER)

    def canonical_order(self) -> List[Tuple[str, Assessment]]:
        return list(self._iter(CANONICAL_COLUMN_ORDER))

    def mark_keys(self) -> List[str]:
        return [mark_key(family, a.name) for family, a in self.iter_assessments()]

    def is_empty(self) -> bool:
        return not any(True for _ in self.iter_assessments())

    def total_max_marks(self) -> float:
        return float(sum(a.max_marks for _, a in self.iter_assessments()))

    def to_dict(self) -> Dict[str, object]:
        out: Dict[str, object] = {}
        for family in LIST_FAMILIES:
            out[family] = [_assessment_to_dict(a) for a in getattr(self, family)]
        for family in SINGLE_FAMILIES:
            value = getattr(self, family)
            out[family] = _assessment_to_dict(value) if value is not None else None
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "AssessmentConfig":
        if not isinstance(data, Mapping):
            raise ConfigError("Assessment configuration must be a JSON object")
        config = cls()
        for family in LIST_FAMILIES:
            items = data.get(family) or []
            if not isinstance(items, list):
                raise ConfigError(f"'{family}' must be a list of assessments")
            seen = set()
            for item in items:
                assessment = _assessment_from_dict(item, family)
                if assessment.name in seen:
                    raise ConfigError(f"Duplicate assessment '{assessment.name}' in '{family}'")
                seen.add(assessment.name)
                getattr(config, family).append(assessment)
        for family in SINGLE_FAMILIES:
            item = data.get(family)
            if item:
                setattr(config, family, _assessment_from_dict(item, family))
        return config


def _assessment_to_dict(assessment: Assessment) -> Dict[str, object]:
    return {"name": assessment.name, "max_marks": assessment.max_marks, "co": assessment.co}


def _assessment_from_dict(item: object, family: str) -> Assessment:
    if not isinstance(item, Mapping):
        raise ConfigError(f"Entries of '{family}' must be objects")
    name = str(item.get("name") or "").strip()
    if not name:
        if family in SINGLE_FAMILIES:
            name = family.title()
        else:
            raise ConfigError(f"Assessment in '{family}' is missing a name")
    try:
        max_marks = float(item.get("max_marks", 0))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid max_marks for '{name}' in '{family}'") from exc
    co = str(item.get("co") or "").strip().upper()
    if co and not CO_LABEL_RX.match(co):
        raise ConfigError(f"Invalid CO label '{co}' for '{name}' in '{family}'")
    if co and co not in CO_KEYS:
        raise ConfigError(f"CO label '{co}' for '{name}' is outside CO1..CO12")
    return Assessment(name=name, max_marks=max_marks, co=co)


def empty_co_po_mapping() -> Dict[str, Dict[str, int]]:
    return {co: {po: 0 for po in PO_KEYS} for co in CO_KEYS}


def normalize_co_po_mapping(raw: Optional[Mapping[str, Mapping[str, object]]]) -> Dict[str, Dict[str, int]]:
    """Return a full 12x12 0/1 matrix from a possibly partial mapping.

    Cells holding 1 (or "yes"/"true"/"x") become 1; anything else is 0 and
    unknown keys are ignored, so the result can always be indexed
    ``CO1..CO12`` x ``PO1..PO12``.
    """

    mapping = empty_co_po_mapping()
    if not raw:
        return mapping
    for co, row in raw.items():
        co_key = str(co).strip().upper()
        if co_key not in mapping or not isinstance(row, Mapping):
            continue
        for po, value in row.items():
            po_key = str(po).strip().upper()
            if po_key in mapping[co_key]:
                mapping[co_key][po_key] = 1 if _truthy(value) else 0
    return mapping


def po_mapping_totals(mapping: Mapping[str, Mapping[str, object]]) -> Dict[str, int]:
    """Number of COs mapped to each PO."""

    totals = {po: 0 for po in PO_KEYS}
    for co in CO_KEYS:
        row = mapping.get(co) or {}
        for po in PO_KEYS:
            if row.get(po) == 1:
                totals[po] += 1
    return totals


def _truthy(value: object) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "1.0", "true", "yes", "y", "x"}
    try:
        return float(value) == 1
    except (TypeError, ValueError):
        return False
