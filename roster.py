"""Walk the student block into a roster and a marks table."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

from cell_grid import CellGrid
from column_mapper import ColumnPlan
from outcomes import AssessmentConfig

LOGGER = logging.getLogger(__name__)

Marks = Dict[str, Dict[str, float]]


@dataclass(frozen=True)
class Student:
    id: str
    name: str


def looks_like_header(student_id: str, name: str) -> bool:
    return "id" in student_id.lower() or "name" in name.lower()


def extract_roster(
    grid: CellGrid,
    plan: ColumnPlan,
    config: AssessmentConfig,
) -> Tuple[List[Student], Marks]:
    """Read every student row below the header.

    Rows without an ID or a name, and repeated header rows, are skipped.
    IDs are not required to be numeric. Every configured assessment gets a
    mark for every student; blank, non-numeric and unmapped cells read as 0.
    Duplicate IDs stay in the roster but share one marks entry, so the last
    row wins.
    """

    students: List[Student] = []
    marks: Marks = {}
    keys = config.mark_keys()
    skipped = 0

    for idx in range(plan.data_start_row, len(grid)):
        if not grid.row(idx):
            continue
        student_id = grid.text(idx, plan.id_column)
        name = grid.text(idx, plan.name_column)
        if not student_id or not name or looks_like_header(student_id, name):
            skipped += 1
            continue

        if student_id in marks:
            LOGGER.warning("Duplicate student ID %s at row %d; later marks replace earlier ones", student_id, idx + 1)
        students.append(Student(id=student_id, name=name))

        record: Dict[str, float] = {}
        for key in keys:
            col = plan.assessment_columns.get(key)
            record[key] = grid.cell(idx, col).as_mark() if col is not None else 0.0
        marks[student_id] = record

    LOGGER.info("Extracted %d students (%d rows skipped)", len(students), skipped)
    return students, marks
