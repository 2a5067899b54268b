import pytest

NAMES = ["CT-1", "CT-2", "CT-3", "Assignment", "Attendance", "Performance",
         "Q1", "Q2", "Q3", "Q1", "Q2", "Q3", "Q4", "Q5"]
MAX_MARKS = [10, 10, 10, 10, 5, 5, 10, 10, 10, 20, 20, 20, 20, 20]
COS = [1, 2, 3, 4, "", 2, 1, 2, 3, 1, 2, 3, 4, 4]
HEADER = ["No.", "Student ID", "Student Name", "CT-1 (CO1)", "CT-2 (CO2)", "CT-3 (CO3)",
          "Assignment", "Attendance", "Performance", "Mid Q1", "Mid Q2", "Mid Q3",
          "Final Q1", "Final Q2", "Final Q3", "Final Q4", "Final Q5"]

STUDENT_MARKS = {
    "201-15-001": [8, 7, 9, 10, 5, 4, 6, 7, 8, 15, 12, 18, 10, 14],
    "201-15-002": [5, 4, "", 6, 3, 3, 5, 2, 4, 8, 10, "AB", 9, 7],
    "201-15-003": [10, 10, 10, 10, 5, 5, 10, 10, 10, 20, 20, 20, 20, 20],
}
STUDENT_NAMES = {"201-15-001": "Alice Rahman", "201-15-002": "Bilal Hossain", "201-15-003": "Chen Wei"}


def build_template_rows():
    """Marks sheet in the institutional layout: course rows, assessment block, student block."""

    rows = [
        ["Course Code", "CSE 213"],
        ["Course Title", "Data Structures"],
        [],
        ["Assessment Type", "Description"],
        ["", "Assessment", ""] + NAMES,
        ["", "Max Marks", ""] + MAX_MARKS,
        ["", "CO", ""] + COS,
        [],
        [],
        [],
        HEADER,
    ]
    for serial, (student_id, marks) in enumerate(STUDENT_MARKS.items(), start=1):
        rows.append([serial, student_id, STUDENT_NAMES[student_id]] + marks)
    return rows


@pytest.fixture
def template_rows():
    return build_template_rows()
