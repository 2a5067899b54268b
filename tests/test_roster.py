from cell_grid import CellGrid
from column_mapper import ColumnPlan
from outcomes import Assessment, AssessmentConfig
from roster import Student, extract_roster


def _config():
    return AssessmentConfig(
        class_tests=[Assessment("CT-1", 10, "CO1")],
        final=[Assessment("Q1", 20, "CO1")],
        performance=Assessment("Performance", 5, ""),
    )


def _plan(columns):
    return ColumnPlan(
        id_column=0,
        name_column=1,
        no_column=None,
        header_row=0,
        data_start_row=1,
        assessment_columns=columns,
    )


def test_rows_become_students_and_marks():
    grid = CellGrid([
        ["ID", "Name", "CT-1", "Q1", "Performance"],
        ["201-15-13492", "Ann", 8, "12.5", "AB"],
        ["", "Nameless ID", 1, 1, 1],
        ["77", "", 1, 1, 1],
        ["Student ID", "Student Name", "", "", ""],
        [],
        ["78", "Ben", "", 4, 5],
    ])
    columns = {"class_tests_CT-1": 2, "final_Q1": 3, "performance_Performance": 4}
    students, marks = extract_roster(grid, _plan(columns), _config())

    assert students == [Student("201-15-13492", "Ann"), Student("78", "Ben")]
    assert marks["201-15-13492"] == {
        "class_tests_CT-1": 8.0,
        "final_Q1": 12.5,
        "performance_Performance": 0.0,
    }
    assert marks["78"]["class_tests_CT-1"] == 0.0


def test_unmapped_assessments_still_get_zero():
    grid = CellGrid([["ID", "Name"], ["1", "Ann", 9]])
    students, marks = extract_roster(grid, _plan({"class_tests_CT-1": 2}), _config())
    assert marks["1"] == {"class_tests_CT-1": 9.0, "final_Q1": 0.0, "performance_Performance": 0.0}


def test_duplicate_ids_keep_both_roster_rows_last_marks_win():
    grid = CellGrid([["ID", "Name"], ["5", "Ann", 3], ["5", "Ann again", 7]])
    students, marks = extract_roster(grid, _plan({"class_tests_CT-1": 2}), _config())
    assert [s.name for s in students] == ["Ann", "Ann again"]
    assert marks["5"]["class_tests_CT-1"] == 7.0


def test_name_containing_id_letters_is_not_a_header():
    grid = CellGrid([["ID", "Name"], ["9", "David"]])
    students, _ = extract_roster(grid, _plan({}), _config())
    assert students == [Student("9", "David")]
