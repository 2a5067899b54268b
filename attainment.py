"""CO/PO attainment calculation.

Per-student CO score::

    sum over assessments a tagged with the CO of
        (mark_a / max_a) * (max_a / total CO max) * 100

with ``max_a`` replaced by 1e-8 when it is 0. A PO score is the average of
the student's CO scores for the COs mapped to it, weighted by each CO's
total max marks. Class attainment is the share of students whose score is
strictly greater than a threshold (COUNTIF ``">"`` semantics).

Nothing in here raises for degenerate input: no students, no assessments,
zero max marks or an empty mapping all come out as 0, and a threshold that
is not a number counts nobody.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

import pandas as pd

from outcomes import CO_KEYS, PO_KEYS, PO_NAMES, AssessmentConfig, mark_key
from roster import Marks, Student

ZERO_MAX_MARKS = 0.00000001

DEFAULT_TARGET_PASS_MARKS = 40.0
DEFAULT_KPI_CO = 50.0
DEFAULT_KPI_PO = 50.0


@dataclass(frozen=True)
class OutcomeAttainment:
    pass_marks_percentage: float
    kpi_percentage: float


@dataclass
class AttainmentResult:
    student_cos: Dict[str, Dict[str, float]] = field(default_factory=dict)
    student_pos: Dict[str, Dict[str, float]] = field(default_factory=dict)
    co_attainment: Dict[str, OutcomeAttainment] = field(default_factory=dict)
    po_attainment: Dict[str, OutcomeAttainment] = field(default_factory=dict)
    target_pass_marks: float = DEFAULT_TARGET_PASS_MARKS
    kpi_co: float = DEFAULT_KPI_CO
    kpi_po: float = DEFAULT_KPI_PO

    def to_dict(self) -> Dict[str, object]:
        def outcome(table: Mapping[str, OutcomeAttainment]) -> Dict[str, Dict[str, float]]:
            return {
                key: {
                    "pass_marks_percentage": value.pass_marks_percentage,
                    "kpi_percentage": value.kpi_percentage,
                }
                for key, value in table.items()
            }

        return {
            "student_cos": {sid: dict(scores) for sid, scores in self.student_cos.items()},
            "student_pos": {sid: dict(scores) for sid, scores in self.student_pos.items()},
            "co_attainment": outcome(self.co_attainment),
            "po_attainment": outcome(self.po_attainment),
            "target_pass_marks": self.target_pass_marks,
            "kpi_co": self.kpi_co,
            "kpi_po": self.kpi_po,
        }


def _number(value: object) -> float:
    """Float value of *value*, 0 for anything missing, non-numeric or non-finite."""

    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def _assessments_for(config: AssessmentConfig, co: str) -> List[tuple]:
    return [(family, a) for family, a in config.iter_assessments() if a.co == co]


def get_co_mark_allocations(config: AssessmentConfig) -> Dict[str, float]:
    """Total max marks allocated to each of CO1..CO12."""

    allocations = {co: 0.0 for co in CO_KEYS}
    for _, assessment in config.iter_assessments():
        if assessment.co in allocations:
            allocations[assessment.co] += _number(assessment.max_marks)
    return allocations


def calculate_student_co(student_id: str, co: str, marks: Mapping, config: AssessmentConfig) -> float:
    relevant = _assessments_for(config, co)
    if not relevant:
        return 0.0
    total = sum(_number(a.max_marks) for _, a in relevant)
    if total == 0:
        return 0.0

    student_marks = (marks or {}).get(student_id) or {}
    score = 0.0
    for family, assessment in relevant:
        mark = _number(student_marks.get(mark_key(family, assessment.name), 0))
        max_marks = _number(assessment.max_marks)
        divisor = ZERO_MAX_MARKS if max_marks == 0 else max_marks
        score += (mark / divisor) * (max_marks / total)
    return score * 100


def calculate_student_po(
    po: str,
    config: AssessmentConfig,
    co_mapping: Optional[Mapping[str, Mapping[str, object]]],
    student_cos: Mapping[str, float],
    allocations: Optional[Mapping[str, float]] = None,
) -> float:
    related = [co for co in CO_KEYS if ((co_mapping or {}).get(co) or {}).get(po) == 1]
    if not related:
        return 0.0
    if allocations is None:
        allocations = get_co_mark_allocations(config)

    weighted = 0.0
    weight = 0.0
    for co in related:
        co_total = allocations.get(co, 0.0)
        if co_total > 0:
            weighted += _number((student_cos or {}).get(co, 0)) * co_total
            weight += co_total
    if weight == 0:
        return 0.0
    return weighted / weight


def calculate_all_student_cos(students: Iterable[Student], marks: Mapping, config: AssessmentConfig) -> Dict[str, Dict[str, float]]:
    return {
        student.id: {co: calculate_student_co(student.id, co, marks, config) for co in CO_KEYS}
        for student in students
    }


def calculate_all_student_pos(
    students: Iterable[Student],
    config: AssessmentConfig,
    co_mapping: Optional[Mapping[str, Mapping[str, object]]],
    student_cos: Mapping[str, Mapping[str, float]],
) -> Dict[str, Dict[str, float]]:
    allocations = get_co_mark_allocations(config)
    return {
        student.id: {
            po: calculate_student_po(po, config, co_mapping, student_cos.get(student.id, {}), allocations)
            for po in PO_KEYS
        }
        for student in students
    }


def _threshold(value: object) -> float:
    """Threshold as a float; infinities and NaN pass through, anything non-numeric counts nobody."""

    try:
        return float(value)
    except (TypeError, ValueError):
        return math.inf


def attainment_percentage(scores: Iterable[float], threshold: float) -> float:
    """Percentage of *scores* strictly above *threshold*; 0 when there are none."""

    threshold = _threshold(threshold)
    values = [_number(s) for s in scores]
    if not values:
        return 0.0
    above = sum(1 for value in values if value > threshold)
    return above / len(values) * 100


def calculate_all_attainments(
    students: List[Student],
    marks: Marks,
    config: AssessmentConfig,
    co_mapping: Optional[Mapping[str, Mapping[str, object]]],
    target_pass_marks: float = DEFAULT_TARGET_PASS_MARKS,
    kpi_co: float = DEFAULT_KPI_CO,
    kpi_po: float = DEFAULT_KPI_PO,
) -> AttainmentResult:
    """Compute every per-student and class level CO/PO figure."""

    students = list(students or [])
    config = config or AssessmentConfig()
    target_pass_marks = _threshold(target_pass_marks)
    kpi_co = _threshold(kpi_co)
    kpi_po = _threshold(kpi_po)

    student_cos = calculate_all_student_cos(students, marks, config)
    student_pos = calculate_all_student_pos(students, config, co_mapping, student_cos)

    # One entry per roster row, duplicates included.
    co_attainment = {}
    for co in CO_KEYS:
        scores = [student_cos[s.id][co] for s in students]
        co_attainment[co] = OutcomeAttainment(
            pass_marks_percentage=attainment_percentage(scores, target_pass_marks),
            kpi_percentage=attainment_percentage(scores, kpi_co),
        )

    po_attainment = {}
    for po in PO_KEYS:
        scores = [student_pos[s.id][po] for s in students]
        po_attainment[po] = OutcomeAttainment(
            pass_marks_percentage=attainment_percentage(scores, target_pass_marks),
            kpi_percentage=attainment_percentage(scores, kpi_po),
        )

    return AttainmentResult(
        student_cos=student_cos,
        student_pos=student_pos,
        co_attainment=co_attainment,
        po_attainment=po_attainment,
        target_pass_marks=target_pass_marks,
        kpi_co=kpi_co,
        kpi_po=kpi_po,
    )


def attainment_frames(result: AttainmentResult, students: Iterable[Student]) -> Dict[str, pd.DataFrame]:
    """Tabulate a result for output: student CO/PO scores and class attainment."""

    students = list(students)

    def score_table(scores: Mapping[str, Mapping[str, float]], keys: Iterable[str]) -> pd.DataFrame:
        keys = list(keys)
        rows = []
        for student in students:
            row = {"student_id": student.id, "student_name": student.name}
            row.update({key: round(scores.get(student.id, {}).get(key, 0.0), 2) for key in keys})
            rows.append(row)
        return pd.DataFrame(rows, columns=["student_id", "student_name"] + keys)

    def class_table(table: Mapping[str, OutcomeAttainment], label: str) -> pd.DataFrame:
        df = pd.DataFrame(
            [
                {
                    label: key,
                    "pass_marks_percentage": value.pass_marks_percentage,
                    "kpi_percentage": value.kpi_percentage,
                }
                for key, value in table.items()
            ],
            columns=[label, "pass_marks_percentage", "kpi_percentage"],
        )
        df["pass_marks_percentage"] = df["pass_marks_percentage"].astype(float).round(2)
        df["kpi_percentage"] = df["kpi_percentage"].astype(float).round(2)
        return df

    co_table = class_table(result.co_attainment, "co")
    po_table = class_table(result.po_attainment, "po")
    po_table.insert(1, "po_name", po_table["po"].map(PO_NAMES))

    return {
        "student_cos": score_table(result.student_cos, CO_KEYS),
        "student_pos": score_table(result.student_pos, PO_KEYS),
        "co_attainment": co_table,
        "po_attainment": po_table,
    }
