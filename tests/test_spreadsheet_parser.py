import pandas as pd
import pytest

from cell_grid import CellGrid
from outcomes import Assessment, AssessmentConfig
from spreadsheet_parser import (
    CourseInfo,
    assessments_frame,
    extract_course_info,
    issues_frame,
    parse_file,
    parse_spreadsheet,
    read_grid,
)

ALICE = {
    "class_tests_CT-1": 8.0,
    "class_tests_CT-2": 7.0,
    "class_tests_CT-3": 9.0,
    "assignments_Assignment": 10.0,
    "attendance_Attendance": 5.0,
    "performance_Performance": 4.0,
    "mid_term_Q1": 6.0,
    "mid_term_Q2": 7.0,
    "mid_term_Q3": 8.0,
    "final_Q1": 15.0,
    "final_Q2": 12.0,
    "final_Q3": 18.0,
    "final_Q4": 10.0,
    "final_Q5": 14.0,
}


def _check_template(parsed):
    assert parsed.has_required_data
    assert [s.id for s in parsed.students] == ["201-15-001", "201-15-002", "201-15-003"]
    assert parsed.students[0].name == "Alice Rahman"
    assert parsed.marks["201-15-001"] == ALICE
    bilal = parsed.marks["201-15-002"]
    assert bilal["class_tests_CT-3"] == 0.0
    assert bilal["final_Q3"] == 0.0
    assert bilal["final_Q4"] == 9.0
    assert parsed.course_info.course_code == "CSE 213"


def test_parse_template(template_rows):
    parsed = parse_spreadsheet(template_rows)
    _check_template(parsed)
    assert parsed.issues == []
    assert parsed.block_columns["class_tests_CT-1"] == 3
    assert [a.name for a in parsed.assessments.final] == ["Q1", "Q2", "Q3", "Q4", "Q5"]


def test_parse_csv_file(tmp_path, template_rows):
    path = tmp_path / "marks.csv"
    pd.DataFrame(template_rows).to_csv(path, header=False, index=False)
    _check_template(parse_file(path))


def test_parse_xlsx_file(tmp_path, template_rows):
    path = tmp_path / "marks.xlsx"
    pd.DataFrame(template_rows).to_excel(path, header=False, index=False, sheet_name="Marks")
    grid = read_grid(path, "Marks")
    assert grid.text(0, 1) == "CSE 213"
    _check_template(parse_file(path, "Marks"))


def test_read_grid_rejects_missing_and_unknown_files(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_grid(tmp_path / "absent.xlsx")
    other = tmp_path / "marks.txt"
    other.write_text("a,b\n")
    with pytest.raises(ValueError):
        read_grid(other)


def test_empty_grid_reports_issues():
    parsed = parse_spreadsheet(CellGrid([]))
    assert not parsed.has_required_data
    assert parsed.students == []
    assert parsed.assessments.is_empty()
    stages = {issue["stage"] for issue in parsed.issues}
    assert stages == {"assessments", "students"}


def test_known_assessments_override_detection(template_rows):
    config = AssessmentConfig(
        class_tests=[Assessment("CT-1", 10, "CO1")],
        final=[Assessment("Q2", 20, "CO2")],
    )
    parsed = parse_spreadsheet(template_rows, assessments=config)
    assert parsed.assessments is config
    assert parsed.block_columns == {}
    assert parsed.marks["201-15-001"] == {"class_tests_CT-1": 8.0, "final_Q2": 12.0}


def test_unlabelled_student_block_falls_back_to_positions(template_rows):
    rows = [list(r) for r in template_rows]
    rows[10] = ["No.", "Student ID", "Student Name"] + ["x"] * 14
    parsed = parse_spreadsheet(rows)
    assert parsed.marks["201-15-001"]["class_tests_CT-1"] == 8.0
    # Template order puts the single slots before the mid-term questions.
    assert parsed.marks["201-15-001"]["performance_Performance"] == 4.0
    assert parsed.marks["201-15-001"]["final_Q5"] == 14.0
    assert any(issue["stage"] == "columns" for issue in parsed.issues)


def test_annotated_codes_above_labels_keep_marks_in_their_columns():
    config = AssessmentConfig(
        class_tests=[Assessment("CT-1", 10, "CO1"), Assessment("CT-2", 10, "CO2")],
        assignments=[Assessment("Assignment", 10, "CO3")],
    )
    rows = [["filler"] for _ in range(8)] + [
        ["", "", "CT-2 (CO2)", "Assignment (CO3)", "CT-1 (CO1)"],
        ["Student ID", "Student Name", "", "", ""],
        [1, "Ann", 2, 3, 9],
    ]
    parsed = parse_spreadsheet(rows, assessments=config)
    assert parsed.marks["1"] == {
        "class_tests_CT-1": 9.0,
        "class_tests_CT-2": 2.0,
        "assignments_Assignment": 3.0,
    }
    assert not any(issue["stage"] == "columns" for issue in parsed.issues)


def test_course_code_last_match_wins():
    grid = CellGrid([["Course", "CSE 101"], ["Course", "EEE 205"], ["Title", "Circuits"]])
    assert extract_course_info(grid).course_code == "EEE 205"
    assert extract_course_info(CellGrid([["nothing"]])).course_code == ""


def test_course_info_overrides():
    info = CourseInfo(course_code="CSE 213").merged({"course_title": "Algorithms", "section": "", "bogus": 1})
    assert info.course_code == "CSE 213"
    assert info.course_title == "Algorithms"
    assert info.section == ""


def test_output_frames():
    config = AssessmentConfig(
        class_tests=[Assessment("CT-1", 10, "CO1")],
        attendance=Assessment("Attendance", 5, ""),
    )
    frame = assessments_frame(config)
    assert list(frame["family"]) == ["class_tests", "attendance"]
    assert list(issues_frame([]).columns) == ["stage", "issue"]
