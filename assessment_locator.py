"""Locate the assessment configuration block and classify its columns.

The upper part of a marks sheet holds three rows describing the
assessments: their names (``CT-1``, ``Q3``, ``Assignment`` ...), their
maximum marks and the CO each one is tagged with. The helpers below find
those rows and turn them into an :class:`outcomes.AssessmentConfig`.

Both heuristics that are tied to one spreadsheet template live in their
own functions (:func:`is_max_marks_row` and :func:`split_questions`) so a
caller can swap them out.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from cell_grid import Cell, CellGrid
from outcomes import Assessment, AssessmentConfig, co_label, mark_key

LOGGER = logging.getLogger(__name__)

ANCHOR_SCAN_ROWS = 30
BLOCK_SCAN_ROWS = 20
ANCHOR_TOKENS = ("assessment type", "description")

# Max-mark values of the institutional template; see DESIGN.md before widening.
CANONICAL_MAX_MARKS: Tuple[float, ...] = (10, 30)
MID_TERM_QUESTIONS = 3

CT_RX = re.compile(r"^CT-\d+$")
QUESTION_RX = re.compile(r"^Q\d+$")

QuestionSplit = Callable[[Sequence[str]], List[str]]


@dataclass(frozen=True)
class AssessmentRows:
    """Row indices of the assessment block; ``None`` marks a row not found."""

    name_row: Optional[int] = None
    max_marks_row: Optional[int] = None
    co_row: Optional[int] = None

    @property
    def found(self) -> bool:
        return self.name_row is not None and self.max_marks_row is not None


@dataclass
class Classification:
    config: AssessmentConfig
    column_positions: Dict[str, int] = field(default_factory=dict)
    issues: List[Dict[str, str]] = field(default_factory=list)


def is_assessment_name(text: str) -> bool:
    token = str(text).strip().upper()
    if not token:
        return False
    return bool(
        CT_RX.match(token)
        or QUESTION_RX.match(token)
        or token == "ASSIGNMENT"
        or "ATTENDANCE" in token
        or "PERFORMANCE" in token
    )


def count_assessment_names(cells: Sequence[Cell]) -> int:
    return sum(1 for cell in cells if is_assessment_name(cell.text))


def is_max_marks_row(cells: Sequence[Cell], values: Sequence[float] = CANONICAL_MAX_MARKS) -> bool:
    """True when a numeric cell equals one of the template's max-mark values."""

    wanted = {float(v) for v in values}
    for cell in cells:
        number = cell.number
        if number is not None and number > 0 and number in wanted:
            return True
    return False


def is_co_row(cells: Sequence[Cell]) -> bool:
    return any(co_label(cell.number) for cell in cells if cell.number is not None)


def _is_student_header(text: str) -> bool:
    return "name" in text and ("id" in text or "roll" in text)


def find_anchor_row(grid: CellGrid, stop: Optional[int] = None) -> int:
    """Last row labelling the assessment block above the student header, else 0.

    The scan covers the first ``ANCHOR_SCAN_ROWS`` rows, ends early at *stop*
    and ends at the ID/Name header row once an anchor has been seen.
    """

    end = min(ANCHOR_SCAN_ROWS, len(grid))
    if stop is not None:
        end = min(end, stop)
    anchor: Optional[int] = None
    for idx in range(end):
        text = grid.row_text(idx)
        if any(token in text for token in ANCHOR_TOKENS):
            anchor = idx
        if anchor is not None and _is_student_header(text):
            break
    return anchor if anchor is not None else 0


def locate_assessment_rows(
    grid: CellGrid,
    *,
    stop: Optional[int] = None,
    max_marks_values: Sequence[float] = CANONICAL_MAX_MARKS,
) -> AssessmentRows:
    """Find the name, max-marks and CO rows of the assessment block.

    Scanning starts at the anchor row and covers at most ``BLOCK_SCAN_ROWS``
    rows, ending early at *stop* (the first student row) when given. Each
    row can fill only one role, and each role is searched for strictly after
    the previous one was found.
    """

    start = find_anchor_row(grid, stop)
    end = min(start + BLOCK_SCAN_ROWS, len(grid))
    if stop is not None:
        end = min(end, stop)

    name_row: Optional[int] = None
    max_row: Optional[int] = None
    co_row: Optional[int] = None

    for idx in range(start, end):
        cells = grid.row(idx)
        if not cells:
            continue
        if name_row is None:
            if count_assessment_names(cells):
                name_row = idx
            continue
        if max_row is None:
            if is_max_marks_row(cells, max_marks_values):
                max_row = idx
            continue
        if is_co_row(cells):
            co_row = idx
            break

    rows = AssessmentRows(name_row, max_row, co_row)
    LOGGER.debug("Assessment block rows (scan %d-%d): %s", start, end, rows)
    return rows


def split_questions(names: Sequence[str]) -> List[str]:
    """Assign each ``Q<n>`` column (in column order) to mid_term or final.

    The first three distinct question names are mid-term questions and every
    later question belongs to the final exam. This mirrors the template
    layout (three mid-term questions followed by the final paper) and does
    no semantic checking.
    """

    families: List[str] = []
    mid_term: List[str] = []
    for name in names:
        token = name.strip().upper()
        if len(mid_term) < MID_TERM_QUESTIONS and token not in mid_term:
            mid_term.append(token)
            families.append("mid_term")
        else:
            families.append("final")
    return families


def _family_for(name_upper: str) -> Optional[str]:
    if CT_RX.match(name_upper):
        return "class_tests"
    if "ASSIGNMENT" in name_upper:
        return "assignments"
    if "ATTENDANCE" in name_upper:
        return "attendance"
    if "PERFORMANCE" in name_upper:
        return "performance"
    if QUESTION_RX.match(name_upper):
        return "question"
    return None


def classify_assessments(
    grid: CellGrid,
    rows: AssessmentRows,
    *,
    question_split: QuestionSplit = split_questions,
) -> Classification:
    """Build the assessment configuration from the located rows."""

    result = Classification(config=AssessmentConfig())
    if rows.name_row is None:
        result.issues.append({"stage": "assessments", "issue": "No assessment name row found"})
        return result
    if rows.max_marks_row is None:
        result.issues.append({"stage": "assessments", "issue": "No maximum marks row found"})
        return result
    if rows.co_row is None:
        result.issues.append({"stage": "assessments", "issue": "No CO row found; assessments left unassigned"})

    found = [r for r in (rows.name_row, rows.max_marks_row, rows.co_row) if r is not None]
    width = min(len(grid.row(r)) for r in found)

    candidates: List[Tuple[int, str, str, Assessment]] = []
    for col in range(width):
        name = grid.text(rows.name_row, col)
        max_marks = grid.cell(rows.max_marks_row, col).as_mark()
        if not name or max_marks <= 0:
            continue
        co = co_label(grid.cell(rows.co_row, col).number) if rows.co_row is not None else ""
        family = _family_for(name.upper())
        if family is None:
            LOGGER.debug("Ignoring unrecognised assessment column %d (%r)", col, name)
            continue
        candidates.append((col, family, name, Assessment(name=name, max_marks=max_marks, co=co)))

    question_names = [name for _, family, name, _ in candidates if family == "question"]
    question_families = iter(question_split(question_names))

    config = result.config
    for col, family, name, assessment in candidates:
        if family == "question":
            family = next(question_families)
        if family in ("attendance", "performance"):
            previous = getattr(config, family)
            if previous is not None:
                result.column_positions.pop(mark_key(family, previous.name), None)
            setattr(config, family, assessment)
        else:
            items = getattr(config, family)
            if any(existing.name == name for existing in items):
                LOGGER.warning("Duplicate %s assessment %r in column %d skipped", family, name, col)
                result.issues.append({
                    "stage": "assessments",
                    "issue": f"Duplicate {family} assessment '{name}' in column {col + 1} skipped",
                })
                continue
            items.append(assessment)
        result.column_positions[mark_key(family, name)] = col

    LOGGER.info(
        "Detected assessments: %d class tests, %d mid-term, %d final, %d assignments%s%s",
        len(config.class_tests),
        len(config.mid_term),
        len(config.final),
        len(config.assignments),
        ", attendance" if config.attendance else "",
        ", performance" if config.performance else "",
    )
    return result
