"""Find the student block of a marks sheet and map assessments to its columns."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from cell_grid import CellGrid
from outcomes import AssessmentConfig, mark_key

LOGGER = logging.getLogger(__name__)

DATA_SCAN_START = 10
FALLBACK_RATIO = 0.5

DIGITS_RX = re.compile(r"^\d+$")
PAREN_RX = re.compile(r"\s*\([^)]*\)")
# Assessment codes as they appear in student block headers, annotations included.
HEADER_CODE_RX = re.compile(
    r"(?<![A-Z0-9])(CT\s*-?\s*\d+|CLASS TEST|Q\s*-?\s*\d+|ASSIGNMENT|ATTENDANCE|PERFORMANCE)(?![0-9])"
)
ID_RX = re.compile(r"(?<!m)id|roll")
CT_NUMBER_RX = re.compile(r"^CT-(\d+)$", flags=re.I)
Q_NUMBER_RX = re.compile(r"^Q(\d+)$", flags=re.I)


@dataclass(frozen=True)
class HeaderLocation:
    header: Tuple[str, ...]
    header_row: Optional[int]
    data_start_row: int


@dataclass(frozen=True)
class ExpectedColumn:
    key: str
    family: str
    name: str
    aliases: Tuple[str, ...]
    question: Optional[int] = None


@dataclass
class ColumnPlan:
    """Where to read the ID, name and every assessment mark of a student row."""

    id_column: int
    name_column: int
    no_column: Optional[int]
    header_row: Optional[int]
    data_start_row: int
    assessment_columns: Dict[str, int] = field(default_factory=dict)
    text_matched: int = 0
    expected: int = 0
    used_fallback: bool = False


def find_first_data_row(grid: CellGrid, start: int = DATA_SCAN_START) -> Optional[int]:
    """First row at or after *start* whose first column is a plain number."""

    for idx in range(max(start, 0), len(grid)):
        if DIGITS_RX.match(grid.text(idx, 0)):
            return idx
    return None


def _is_id_header(text: str) -> bool:
    return bool(ID_RX.search(text)) and "name" not in text


def _is_name_header(text: str) -> bool:
    return "name" in text and "id" not in text


def count_header_codes(texts: Sequence[str]) -> int:
    """Number of header cells naming an assessment (``CT-1 (CO1)``, ``Mid Q2`` ...)."""

    return sum(1 for text in texts if HEADER_CODE_RX.search(PAREN_RX.sub("", str(text)).upper()))


def find_labelled_header_row(grid: CellGrid, start: int = 0) -> Optional[int]:
    """First row holding both an ID-like and a Name-like cell."""

    for idx in range(max(start, 0), len(grid)):
        texts = [t.lower() for t in grid.row_texts(idx)]
        if any(_is_id_header(t) for t in texts) and any(_is_name_header(t) for t in texts):
            return idx
    return None


def _merge_header(upper: Sequence[str], lower: Sequence[str]) -> Tuple[str, ...]:
    width = max(len(upper), len(lower))
    merged = []
    for col in range(width):
        top = upper[col] if col < len(upper) else ""
        bottom = lower[col] if col < len(lower) else ""
        merged.append(top or bottom)
    return tuple(merged)


def locate_student_header(
    grid: CellGrid,
    *,
    data_scan_start: int = DATA_SCAN_START,
    after: int = 0,
) -> Optional[HeaderLocation]:
    """Locate the student header row and the first student row.

    The header is the row just above the first numbered student row. When
    the row above that one carries more assessment codes, the assessment
    codes sit one row higher than the ID/Name labels; that upper row is
    used, with its blanks filled from the lower row.
    """

    first = find_first_data_row(grid, data_scan_start)
    if first is not None:
        if first == 0:
            return HeaderLocation(header=(), header_row=None, data_start_row=0)
        header_idx = first - 1
        header = tuple(grid.row_texts(header_idx))
        if header_idx > 0:
            above = grid.row_texts(header_idx - 1)
            if count_header_codes(above) > count_header_codes(header):
                LOGGER.debug("Using row %d (assessment codes) above header row %d", header_idx - 1, header_idx)
                header = _merge_header(above, header)
                header_idx -= 1
        return HeaderLocation(header=header, header_row=header_idx, data_start_row=first)

    labelled = find_labelled_header_row(grid, after)
    if labelled is not None:
        LOGGER.info("No numbered student rows found; using labelled header row %d", labelled)
        return HeaderLocation(
            header=tuple(grid.row_texts(labelled)),
            header_row=labelled,
            data_start_row=labelled + 1,
        )
    return None


def identify_columns(header: Sequence[str]) -> Tuple[Optional[int], int, int]:
    """Return ``(no_column, id_column, name_column)`` for a header row."""

    no_col: Optional[int] = None
    id_col: Optional[int] = None
    name_col: Optional[int] = None

    for col, raw in enumerate(header):
        text = str(raw).strip().lower()
        if not text:
            continue
        if (text in ("no.", "no") or "number" in text) and no_col is None:
            no_col = col
        elif _is_id_header(text) and id_col is None:
            id_col = col
        elif _is_name_header(text) and name_col is None:
            name_col = col

    if id_col is None:
        id_col = no_col + 1 if no_col is not None else 0
    if name_col is None:
        used = {c for c in (no_col, id_col) if c is not None}
        name_col = id_col + 1
        if name_col in used:
            for col in range(len(header)):
                if col not in used:
                    name_col = col
                    break
    return no_col, id_col, name_col


def expected_columns(config: AssessmentConfig) -> List[ExpectedColumn]:
    """Expected assessment columns in template (canonical) order."""

    out: List[ExpectedColumn] = []
    for family, assessment in config.canonical_order():
        name_upper = assessment.name.upper()
        question = None
        if family == "class_tests":
            m = CT_NUMBER_RX.match(assessment.name)
            number = m.group(1) if m else name_upper
            aliases = (name_upper, f"CT-{number}", f"CT{number}", f"CT {number}", f"CLASS TEST {number}")
        elif family == "assignments":
            aliases = (name_upper, "ASSIGNMENT")
        elif family in ("attendance", "performance"):
            aliases = (name_upper, family.upper())
        else:
            m = Q_NUMBER_RX.match(assessment.name)
            question = int(m.group(1)) if m else None
            aliases = (name_upper,)
        out.append(ExpectedColumn(
            key=mark_key(family, assessment.name),
            family=family,
            name=assessment.name,
            aliases=aliases,
            question=question,
        ))
    return out


def _contains_token(header: str, alias: str) -> bool:
    pattern = r"(?<![A-Z0-9])" + re.escape(alias) + r"(?![0-9])"
    return re.search(pattern, header) is not None


def _alias_matches(expected: ExpectedColumn, header: str) -> bool:
    for alias in expected.aliases:
        if header == alias or _contains_token(header, alias):
            return True
    if expected.family == "class_tests":
        m = CT_NUMBER_RX.match(expected.name)
        return bool(m) and header == m.group(1)
    return False


def _question_matches(expected: ExpectedColumn, header: str, context: str) -> bool:
    if expected.question is None:
        return _alias_matches(expected, header)
    rx = re.compile(r"(?<![A-Z0-9])Q\s*-?\s*0*" + str(expected.question) + r"(?![0-9])")
    if not rx.search(header):
        return False
    is_mid = "mid" in context
    is_final = "final" in context
    if is_mid:
        return expected.family == "mid_term"
    if is_final:
        return expected.family == "final"
    # No context: pending mid-term questions come first in canonical order.
    return True


def match_header(header_text: str, pending: Sequence[ExpectedColumn]) -> Optional[ExpectedColumn]:
    """Match one header cell against the still unmatched expected columns."""

    clean = PAREN_RX.sub("", header_text).strip()
    upper = clean.upper()
    if not upper:
        return None
    context = header_text.lower()

    for expected in pending:
        if upper == expected.name.upper():
            return expected
    for expected in pending:
        if expected.family in ("mid_term", "final"):
            if _question_matches(expected, upper, context):
                return expected
        elif _alias_matches(expected, upper):
            return expected
    return None


def _fill_positionally(
    pending: Sequence[ExpectedColumn],
    assigned: Dict[str, int],
    used: set,
    start: int,
    width: int,
) -> None:
    col = start
    for expected in pending:
        while col in used and col < width:
            col += 1
        if col >= width:
            break
        assigned[expected.key] = col
        used.add(col)
        col += 1


def map_assessment_columns(
    header: Sequence[str],
    config: AssessmentConfig,
    id_col: int,
    name_col: int,
    no_col: Optional[int] = None,
    width: Optional[int] = None,
) -> Tuple[Dict[str, int], int, bool]:
    """Map every assessment mark key to a column index.

    Returns ``(columns, text_matched, used_fallback)``. Header text is tried
    first; when fewer than half of the assessments are found that way, all
    text matches are thrown away and columns are assigned in template order
    right after the ID/Name columns. Otherwise only the unmatched ones are
    filled in positionally.
    """

    expected = expected_columns(config)
    width = max(width or 0, len(header))
    base_used = {id_col, name_col}
    if no_col is not None:
        base_used.add(no_col)

    assigned: Dict[str, int] = {}
    used = set(base_used)
    for col, raw in enumerate(header):
        if col in used or not str(raw).strip():
            continue
        pending = [e for e in expected if e.key not in assigned]
        if not pending:
            break
        match = match_header(str(raw), pending)
        if match is not None:
            assigned[match.key] = col
            used.add(col)

    text_matched = len(assigned)
    start = max(id_col, name_col) + 1
    used_fallback = text_matched < len(expected) * FALLBACK_RATIO
    if used_fallback:
        LOGGER.warning(
            "Only %d of %d assessment headers matched; mapping columns by position",
            text_matched,
            len(expected),
        )
        assigned = {}
        used = set(base_used)
        pending = expected
    else:
        pending = [e for e in expected if e.key not in assigned]
        if pending:
            LOGGER.info("Filling %d unmatched assessment columns by position", len(pending))
    _fill_positionally(pending, assigned, used, start, width)
    return assigned, text_matched, used_fallback


def build_column_plan(
    grid: CellGrid,
    config: AssessmentConfig,
    *,
    data_scan_start: int = DATA_SCAN_START,
    after: int = 0,
) -> Optional[ColumnPlan]:
    """Locate the student block and resolve every column a student row needs."""

    location = locate_student_header(grid, data_scan_start=data_scan_start, after=after)
    if location is None:
        LOGGER.warning("Could not locate the student data block")
        return None

    no_col, id_col, name_col = identify_columns(location.header)
    columns, text_matched, used_fallback = map_assessment_columns(
        location.header, config, id_col, name_col, no_col, grid.width
    )
    plan = ColumnPlan(
        id_column=id_col,
        name_column=name_col,
        no_column=no_col,
        header_row=location.header_row,
        data_start_row=location.data_start_row,
        assessment_columns=columns,
        text_matched=text_matched,
        expected=len(config.mark_keys()),
        used_fallback=used_fallback,
    )
    LOGGER.debug("Column plan: %s", plan)
    return plan
