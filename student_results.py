"""Per-student totals, percentages and letter grades."""

from __future__ import annotations

from typing import Iterable, List, Mapping, Tuple

import numpy as np
import pandas as pd

from outcomes import AssessmentConfig, mark_key
from roster import Marks, Student

# (lower bound, grade), highest first.
GRADE_SCALE: Tuple[Tuple[float, str], ...] = (
    (80.0, "A+"),
    (75.0, "A"),
    (70.0, "A-"),
    (65.0, "B+"),
    (60.0, "B"),
    (55.0, "B-"),
    (50.0, "C+"),
    (45.0, "C"),
)
FAIL_GRADE = "F"
GRADE_ORDER: Iterable[str] = tuple(grade for _, grade in GRADE_SCALE) + (FAIL_GRADE,)

RESULT_COLUMNS = ["student_id", "student_name", "obtained_marks", "total_marks", "percentage", "grade"]


def calculate_grade(percentage: float) -> str:
    for lower, grade in GRADE_SCALE:
        if percentage >= lower:
            return grade
    return FAIL_GRADE


def _obtained(marks: Mapping[str, float], keys: Iterable[str]) -> float:
    total = 0.0
    for key in keys:
        try:
            total += float(marks.get(key, 0) or 0)
        except (TypeError, ValueError):
            continue
    return total


def calculate_student_results(students: Iterable[Student], marks: Marks, config: AssessmentConfig) -> pd.DataFrame:
    """Return obtained/total marks, percentage and grade for every student."""

    students = list(students)
    if not students:
        return pd.DataFrame(columns=RESULT_COLUMNS)

    keys: List[str] = [mark_key(family, a.name) for family, a in config.iter_assessments()]
    total_marks = config.total_max_marks()

    df = pd.DataFrame({
        "student_id": [s.id for s in students],
        "student_name": [s.name for s in students],
        "obtained_marks": [_obtained(marks.get(s.id, {}), keys) for s in students],
    })
    df["total_marks"] = total_marks
    df["percentage"] = np.where(
        df["total_marks"] > 0,
        (df["obtained_marks"] / total_marks * 100) if total_marks > 0 else 0.0,
        0.0,
    )
    df["grade"] = df["percentage"].map(calculate_grade)
    df["obtained_marks"] = df["obtained_marks"].round(1)
    df["total_marks"] = df["total_marks"].round(1)
    df["percentage"] = df["percentage"].round(2)
    return df[RESULT_COLUMNS]


def build_grade_summary(results: pd.DataFrame) -> pd.DataFrame:
    """Count students per grade in fixed grade order."""

    columns = ["grade", "students", "share_pct"]
    if results is None or results.empty or "grade" not in results.columns:
        return pd.DataFrame(columns=columns)

    counts = results["grade"].value_counts()
    total = int(counts.sum())
    rows = []
    for grade in GRADE_ORDER:
        count = int(counts.get(grade, 0))
        rows.append({"grade": grade, "students": count, "share_pct": round(count / total * 100, 2) if total else 0.0})
    return pd.DataFrame(rows, columns=columns)
