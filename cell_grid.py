"""Normalised 2-D cell grid that every parsing stage reads from."""

from __future__ import annotations

import enum
import math
import re
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

import numpy as np
import pandas as pd

NUMERIC_RX = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


class CellKind(enum.Enum):
    EMPTY = "empty"
    TEXT = "text"
    NUMBER = "number"


@dataclass(frozen=True)
class Cell:
    """A single spreadsheet value tagged as empty, text or number."""

    kind: CellKind
    value: object = None

    @classmethod
    def of(cls, raw: object) -> "Cell":
        if raw is None:
            return EMPTY_CELL
        if isinstance(raw, Cell):
            return raw
        if isinstance(raw, (bool, np.bool_)):
            return cls(CellKind.TEXT, str(bool(raw)))
        if isinstance(raw, (int, float, np.integer, np.floating)):
            number = float(raw)
            if math.isnan(number) or math.isinf(number):
                return EMPTY_CELL
            return cls(CellKind.NUMBER, number)
        if raw is pd.NaT:
            return EMPTY_CELL
        text = str(raw).replace("\u00A0", " ").strip()
        if not text:
            return EMPTY_CELL
        return cls(CellKind.TEXT, text)

    @property
    def is_empty(self) -> bool:
        return self.kind is CellKind.EMPTY

    @property
    def text(self) -> str:
        """Stripped display text; integral numbers render without a decimal part."""

        if self.kind is CellKind.EMPTY:
            return ""
        if self.kind is CellKind.NUMBER:
            number = float(self.value)
            if number.is_integer():
                return str(int(number))
            return str(number)
        return str(self.value)

    @property
    def number(self) -> Optional[float]:
        """Numeric value for number cells and numeric-looking text, else ``None``."""

        if self.kind is CellKind.NUMBER:
            return float(self.value)
        if self.kind is CellKind.TEXT and NUMERIC_RX.match(str(self.value)):
            return float(self.value)
        return None

    def as_mark(self) -> float:
        number = self.number
        return number if number is not None else 0.0


EMPTY_CELL = Cell(CellKind.EMPTY)


class CellGrid:
    """Immutable, possibly ragged, row-major grid of :class:`Cell` values.

    Any access outside a row (or outside the grid) yields an empty cell, so
    callers never have to bounds-check.
    """

    def __init__(self, rows: Iterable[Iterable[object]]):
        self._rows: Tuple[Tuple[Cell, ...], ...] = tuple(
            tuple(Cell.of(value) for value in (row or ())) for row in rows
        )

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> "CellGrid":
        """Build a grid from a frame read with ``header=None``."""

        if df is None or df.empty:
            return cls([])
        values = df.astype(object).where(pd.notna(df), None)
        return cls(values.values.tolist())

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[Tuple[Cell, ...]]:
        return iter(self._rows)

    @property
    def width(self) -> int:
        return max((len(row) for row in self._rows), default=0)

    def row(self, index: int) -> Tuple[Cell, ...]:
        if 0 <= index < len(self._rows):
            return self._rows[index]
        return ()

    def cell(self, row: int, col: int) -> Cell:
        cells = self.row(row)
        if 0 <= col < len(cells):
            return cells[col]
        return EMPTY_CELL

    def text(self, row: int, col: int) -> str:
        return self.cell(row, col).text

    def row_texts(self, index: int) -> List[str]:
        return [cell.text for cell in self.row(index)]

    def row_text(self, index: int) -> str:
        """Lower-cased, space-joined text of a whole row."""

        return " ".join(self.row_texts(index)).lower()
