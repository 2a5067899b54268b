#!/usr/bin/env python3
"""Compute CO/PO attainment from a marks workbook and write the result tables."""

from __future__ import annotations

import argparse
import json
import logging
import os
from typing import Dict, List, Mapping, Optional

import pandas as pd

from attainment import (
    DEFAULT_KPI_CO,
    DEFAULT_KPI_PO,
    DEFAULT_TARGET_PASS_MARKS,
    attainment_frames,
    calculate_all_attainments,
    get_co_mark_allocations,
)
from assessment_locator import CANONICAL_MAX_MARKS
from column_mapper import DATA_SCAN_START
from outcomes import CO_KEYS, PO_KEYS, AssessmentConfig, ConfigError, normalize_co_po_mapping, po_mapping_totals
from spreadsheet_parser import assessments_frame, issues_frame, parse_file
from student_results import build_grade_summary, calculate_student_results

HERE = os.path.dirname(os.path.abspath(__file__))
LOGGER = logging.getLogger(__name__)

WORKBOOK_NAME = "attainment_results.xlsx"
ASSESSMENTS_NAME = "assessments.json"


def load_config(path: Optional[str]) -> Dict:
    """Load the JSON config at *path*; a missing path gives an empty config."""

    if not path or not os.path.isfile(path):
        LOGGER.warning("Config file %s not found; using defaults", path)
        return {}
    with open(path, "r", encoding="utf-8") as f:
        try:
            cfg = json.load(f)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(cfg, dict):
        raise ConfigError(f"{path} must contain a JSON object")
    mapping = cfg.get("co_po_mapping")
    if mapping is not None and not isinstance(mapping, dict):
        raise ConfigError("'co_po_mapping' must be an object of CO -> {PO: 0/1}")
    return cfg


def _threshold(cli_value: Optional[float], cfg: Mapping, key: str, default: float) -> float:
    if cli_value is not None:
        return cli_value
    value = cfg.get(key, default)
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{key}' must be a number, got {value!r}") from exc


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description=__doc__)
    ap.add_argument("--input", required=True, help="Path to the marks workbook (.xlsx, .xls or .csv)")
    ap.add_argument("--sheet", default=None, help="Worksheet name (default: first sheet)")
    ap.add_argument("--config", default=os.path.join(HERE, "config.json"))
    ap.add_argument("--outdir", default="outputs")
    ap.add_argument("--target-pass-marks", type=float, default=None, help="Pass mark threshold in percent")
    ap.add_argument("--kpi-co", type=float, default=None, help="KPI threshold for COs in percent")
    ap.add_argument("--kpi-po", type=float, default=None, help="KPI threshold for POs in percent")
    ap.add_argument("--verbose", action="store_true", help="Log heuristic decisions")
    return ap.parse_args(argv)


def mapping_frame(mapping: Mapping[str, Mapping[str, int]]) -> pd.DataFrame:
    """CO x PO matrix with a closing row counting the COs mapped to each PO."""

    rows = [dict(co=co, **{po: mapping[co][po] for po in PO_KEYS}) for co in CO_KEYS]
    rows.append(dict(co="Total", **po_mapping_totals(mapping)))
    return pd.DataFrame(rows, columns=["co"] + list(PO_KEYS))


def build_tables(parsed, cfg: Mapping, args: argparse.Namespace) -> Dict[str, pd.DataFrame]:
    target = _threshold(args.target_pass_marks, cfg, "target_pass_marks", DEFAULT_TARGET_PASS_MARKS)
    kpi_co = _threshold(args.kpi_co, cfg, "kpi_co", DEFAULT_KPI_CO)
    kpi_po = _threshold(args.kpi_po, cfg, "kpi_po", DEFAULT_KPI_PO)
    mapping = normalize_co_po_mapping(cfg.get("co_po_mapping"))

    result = calculate_all_attainments(
        parsed.students,
        parsed.marks,
        parsed.assessments,
        mapping,
        target_pass_marks=target,
        kpi_co=kpi_co,
        kpi_po=kpi_po,
    )
    tables = attainment_frames(result, parsed.students)

    allocations = get_co_mark_allocations(parsed.assessments)
    tables["co_mark_allocations"] = pd.DataFrame(
        {"co": list(allocations), "total_max_marks": list(allocations.values())}
    )
    results = calculate_student_results(parsed.students, parsed.marks, parsed.assessments)
    tables["student_results"] = results
    tables["grade_summary"] = build_grade_summary(results)
    tables["assessments"] = assessments_frame(parsed.assessments)
    tables["co_po_mapping"] = mapping_frame(mapping)

    info = parsed.course_info.merged(cfg.get("course"))
    tables["course_info"] = pd.DataFrame(
        [
            ("course_code", info.course_code),
            ("course_title", info.course_title),
            ("department", info.department),
            ("academic_year", info.academic_year),
            ("semester", info.semester),
            ("section", info.section),
            ("target_pass_marks", result.target_pass_marks),
            ("kpi_co", result.kpi_co),
            ("kpi_po", result.kpi_po),
        ],
        columns=["field", "value"],
    )
    return tables


def write_outputs(
    tables: Mapping[str, pd.DataFrame],
    issues: pd.DataFrame,
    outdir: str,
    assessments: Optional[AssessmentConfig] = None,
) -> None:
    os.makedirs(outdir, exist_ok=True)
    if assessments is not None:
        # Same shape as the "assessments" key of config.json.
        with open(os.path.join(outdir, ASSESSMENTS_NAME), "w", encoding="utf-8") as f:
            json.dump(assessments.to_dict(), f, indent=2)
    with pd.ExcelWriter(os.path.join(outdir, WORKBOOK_NAME), engine="openpyxl") as w:
        for name, df in tables.items():
            df.to_excel(w, index=False, sheet_name=name)
    for name, df in tables.items():
        df.to_csv(os.path.join(outdir, f"{name}.csv"), index=False)
    issues.to_csv(os.path.join(outdir, "data_quality_report.csv"), index=False)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        cfg = load_config(args.config)
        override = cfg.get("assessments")
        parsed = parse_file(
            args.input,
            args.sheet if args.sheet is not None else 0,
            assessments=AssessmentConfig.from_dict(override) if override else None,
            data_scan_start=int(cfg.get("data_scan_start_row", DATA_SCAN_START)),
            max_marks_values=tuple(cfg.get("canonical_max_marks", CANONICAL_MAX_MARKS)),
        )
    except (FileNotFoundError, ValueError) as exc:
        raise SystemExit(str(exc)) from exc

    for issue in parsed.issues:
        LOGGER.warning("[%s] %s", issue["stage"], issue["issue"])
    if not parsed.has_required_data:
        raise SystemExit("Could not find required data (assessments and student rows) in the sheet.")

    try:
        tables = build_tables(parsed, cfg, args)
    except ConfigError as exc:
        raise SystemExit(str(exc)) from exc

    write_outputs(tables, issues_frame(parsed.issues), args.outdir, parsed.assessments)
    print("Wrote outputs to:", args.outdir)


if __name__ == "__main__":
    main()
