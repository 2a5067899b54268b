"""Turn a raw marks sheet into assessments, a roster and a marks table."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

import pandas as pd

from assessment_locator import (
    CANONICAL_MAX_MARKS,
    QuestionSplit,
    classify_assessments,
    locate_assessment_rows,
    split_questions,
)
from cell_grid import CellGrid
from column_mapper import DATA_SCAN_START, build_column_plan, find_first_data_row
from outcomes import AssessmentConfig
from roster import Marks, Student, extract_roster

LOGGER = logging.getLogger(__name__)

COURSE_INFO_ROWS = 10
COURSE_CODE_RX = re.compile(r"^[A-Z]{2,4}\s*\d{3}$", flags=re.I)
EXCEL_SUFFIXES = {".xlsx", ".xlsm"}


@dataclass
class CourseInfo:
    course_code: str = ""
    course_title: str = ""
    department: str = ""
    academic_year: str = ""
    semester: str = ""
    section: str = ""

    def merged(self, overrides: Optional[Mapping[str, object]]) -> "CourseInfo":
        """Copy with non-empty *overrides* applied (unknown keys ignored)."""

        values = {f.name: getattr(self, f.name) for f in fields(self)}
        for key, value in (overrides or {}).items():
            if key in values and value not in (None, ""):
                values[key] = str(value).strip()
        return CourseInfo(**values)


@dataclass
class ParsedSpreadsheet:
    assessments: AssessmentConfig
    students: List[Student]
    marks: Marks
    course_info: CourseInfo = field(default_factory=CourseInfo)
    issues: List[Dict[str, str]] = field(default_factory=list)
    block_columns: Dict[str, int] = field(default_factory=dict)

    @property
    def has_required_data(self) -> bool:
        return bool(self.students) and not self.assessments.is_empty()


def extract_course_info(grid: CellGrid) -> CourseInfo:
    """Pick the course code (e.g. ``CSE 213``) out of the first rows; last match wins."""

    info = CourseInfo()
    for idx in range(min(COURSE_INFO_ROWS, len(grid))):
        for text in grid.row_texts(idx):
            if COURSE_CODE_RX.match(text):
                info.course_code = text
    return info


def parse_spreadsheet(
    grid: Union[CellGrid, Sequence[Sequence[object]]],
    *,
    assessments: Optional[AssessmentConfig] = None,
    data_scan_start: int = DATA_SCAN_START,
    max_marks_values: Sequence[float] = CANONICAL_MAX_MARKS,
    question_split: QuestionSplit = split_questions,
) -> ParsedSpreadsheet:
    """Infer the sheet layout and extract assessments, students and marks.

    Structural problems never raise: whatever could not be found is left
    empty and described in ``issues``. Pass *assessments* to use a known
    configuration instead of the one detected in the upper block.
    """

    if not isinstance(grid, CellGrid):
        grid = CellGrid(grid)

    issues: List[Dict[str, str]] = []
    first_data_row = find_first_data_row(grid, data_scan_start)
    rows = locate_assessment_rows(grid, stop=first_data_row, max_marks_values=max_marks_values)

    block_columns: Dict[str, int] = {}
    if assessments is None:
        classification = classify_assessments(grid, rows, question_split=question_split)
        config = classification.config
        block_columns = classification.column_positions
        issues.extend(classification.issues)
    else:
        config = assessments

    if config.is_empty():
        issues.append({"stage": "assessments", "issue": "No assessments detected"})

    last_block_row = max((r for r in (rows.name_row, rows.max_marks_row, rows.co_row) if r is not None), default=-1)
    plan = build_column_plan(grid, config, data_scan_start=data_scan_start, after=last_block_row + 1)

    students: List[Student] = []
    marks: Marks = {}
    if plan is None:
        issues.append({"stage": "students", "issue": "Student data block not found"})
    else:
        if plan.used_fallback:
            issues.append({
                "stage": "columns",
                "issue": (
                    f"Only {plan.text_matched} of {plan.expected} assessment headers matched; "
                    "columns were assigned by position"
                ),
            })
        moved = [key for key, col in block_columns.items() if plan.assessment_columns.get(key) not in (None, col)]
        if moved:
            LOGGER.debug("Student block columns differ from the configuration block for: %s", ", ".join(moved))
        students, marks = extract_roster(grid, plan, config)
        if not students:
            issues.append({"stage": "students", "issue": "No student rows detected"})

    return ParsedSpreadsheet(
        assessments=config,
        students=students,
        marks=marks,
        course_info=extract_course_info(grid),
        issues=issues,
        block_columns=block_columns,
    )


def _csv_width(path: Union[str, os.PathLike]) -> int:
    with open(path, "r", encoding="utf-8-sig") as f:
        return max((line.count(",") + 1 for line in f), default=1)


def read_frame(path: Union[str, os.PathLike], sheet_name: Union[int, str] = 0) -> pd.DataFrame:
    """Read a worksheet or CSV without treating any row as a header."""

    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Marks file not found: {path}")

    suffix = path.suffix.lower()
    if suffix in EXCEL_SUFFIXES:
        return pd.read_excel(path, sheet_name=sheet_name, header=None, engine="openpyxl")
    if suffix == ".xls":
        return pd.read_excel(path, sheet_name=sheet_name, header=None)
    if suffix == ".csv":
        # Ragged rows: name enough columns for the widest line.
        return pd.read_csv(
            path,
            header=None,
            names=list(range(_csv_width(path))),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
            encoding="utf-8-sig",
        )
    raise ValueError(f"Unsupported marks file type: {suffix or path.name}")


def read_grid(path: Union[str, os.PathLike], sheet_name: Union[int, str] = 0) -> CellGrid:
    return CellGrid.from_dataframe(read_frame(path, sheet_name))


def parse_file(path: Union[str, os.PathLike], sheet_name: Union[int, str] = 0, **kwargs) -> ParsedSpreadsheet:
    grid = read_grid(path, sheet_name)
    LOGGER.info("Read %d rows x %d columns from %s", len(grid), grid.width, path)
    return parse_spreadsheet(grid, **kwargs)


def assessments_frame(config: AssessmentConfig) -> pd.DataFrame:
    """One row per configured assessment, in calculation order."""

    rows: List[Dict[str, object]] = [
        {"family": family, "name": a.name, "max_marks": a.max_marks, "co": a.co}
        for family, a in config.iter_assessments()
    ]
    return pd.DataFrame(rows, columns=["family", "name", "max_marks", "co"])


def issues_frame(issues: Iterable[Mapping[str, str]]) -> pd.DataFrame:
    return pd.DataFrame(list(issues), columns=["stage", "issue"])
