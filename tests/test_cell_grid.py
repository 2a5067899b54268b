import math

import numpy as np
import pandas as pd

from cell_grid import EMPTY_CELL, Cell, CellGrid, CellKind


def test_cell_coercion():
    assert Cell.of(None).is_empty
    assert Cell.of("   ").is_empty
    assert Cell.of(float("nan")).is_empty
    assert Cell.of(np.int64(7)).kind is CellKind.NUMBER
    assert Cell.of(10.0).text == "10"
    assert Cell.of(2.5).text == "2.5"
    assert Cell.of(" CT-1 ").text == "CT-1"
    assert Cell.of("12.5").number == 12.5
    assert Cell.of("AB").number is None
    assert Cell.of(True).kind is CellKind.TEXT


def test_as_mark_defaults_to_zero():
    assert Cell.of("").as_mark() == 0.0
    assert Cell.of("absent").as_mark() == 0.0
    assert Cell.of("7").as_mark() == 7.0


def test_out_of_range_access_is_empty():
    grid = CellGrid([["a", "b"], ["c"]])
    assert grid.cell(1, 5) is EMPTY_CELL
    assert grid.cell(9, 0) is EMPTY_CELL
    assert grid.cell(-1, 0) is EMPTY_CELL
    assert grid.row(4) == ()
    assert grid.width == 2
    assert len(grid) == 2


def test_from_dataframe_blanks_nan():
    df = pd.DataFrame([["CT-1", np.nan, 10], [None, "x", math.nan]])
    grid = CellGrid.from_dataframe(df)
    assert grid.text(0, 0) == "CT-1"
    assert grid.cell(0, 1).is_empty
    assert grid.cell(0, 2).number == 10.0
    assert grid.cell(1, 0).is_empty
    assert grid.cell(1, 2).is_empty


def test_row_text_is_lowercase():
    grid = CellGrid([["Assessment Type", "Description", 3]])
    assert grid.row_text(0) == "assessment type description 3"
