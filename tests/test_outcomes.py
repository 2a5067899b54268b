import pytest

from outcomes import (
    CO_KEYS,
    PO_KEYS,
    Assessment,
    AssessmentConfig,
    ConfigError,
    co_label,
    normalize_co_po_mapping,
    po_mapping_totals,
)


def test_co_label():
    assert co_label(3) == "CO3"
    assert co_label("12") == "CO12"
    assert co_label(2.0) == "CO2"
    assert co_label(2.5) == ""
    assert co_label(0) == ""
    assert co_label(13) == ""
    assert co_label("x") == ""
    assert co_label(None) == ""


def test_config_round_trips_through_dict():
    config = AssessmentConfig(
        class_tests=[Assessment("CT-1", 10.0, "CO1")],
        final=[Assessment("Q1", 20.0, "CO2"), Assessment("Q2", 20.0, "")],
        performance=Assessment("Performance", 5.0, "CO3"),
    )
    data = config.to_dict()
    assert data["attendance"] is None
    assert AssessmentConfig.from_dict(data) == config


def test_calculation_and_template_orders():
    config = AssessmentConfig(
        class_tests=[Assessment("CT-1", 10)],
        mid_term=[Assessment("Q1", 10)],
        assignments=[Assessment("Assignment", 10)],
        attendance=Assessment("Attendance", 5),
    )
    assert config.mark_keys() == [
        "class_tests_CT-1",
        "mid_term_Q1",
        "assignments_Assignment",
        "attendance_Attendance",
    ]
    assert [family for family, _ in config.canonical_order()] == [
        "class_tests",
        "assignments",
        "attendance",
        "mid_term",
    ]
    assert config.total_max_marks() == 35.0
    assert AssessmentConfig().is_empty()


def test_single_slot_name_defaults_to_family():
    config = AssessmentConfig.from_dict({"attendance": {"max_marks": 5}})
    assert config.attendance == Assessment("Attendance", 5.0, "")


@pytest.mark.parametrize(
    "data",
    [
        ["not", "a", "mapping"],
        {"class_tests": {"name": "CT-1"}},
        {"class_tests": [{"max_marks": 10}]},
        {"class_tests": [{"name": "CT-1", "max_marks": "ten"}]},
        {"final": [{"name": "Q1", "max_marks": 10, "co": "PO1"}]},
        {"final": [{"name": "Q1", "max_marks": 10, "co": "CO13"}]},
        {"mid_term": [{"name": "Q1", "max_marks": 10}, {"name": "Q1", "max_marks": 5}]},
        {"assignments": ["Assignment"]},
    ],
)
def test_invalid_config_raises(data):
    with pytest.raises(ConfigError):
        AssessmentConfig.from_dict(data)


def test_normalize_mapping_fills_the_matrix():
    mapping = normalize_co_po_mapping({
        "co1": {"PO1": 1, "po2": "yes", "PO3": 0},
        "CO2": {"PO4": "1", "PO13": 1},
        "CO99": {"PO1": 1},
        "CO3": "PO1",
    })
    assert list(mapping) == list(CO_KEYS)
    assert all(list(row) == list(PO_KEYS) for row in mapping.values())
    assert mapping["CO1"]["PO1"] == 1
    assert mapping["CO1"]["PO2"] == 1
    assert mapping["CO1"]["PO3"] == 0
    assert mapping["CO2"]["PO4"] == 1
    assert sum(mapping["CO3"].values()) == 0
    assert normalize_co_po_mapping(None)["CO12"]["PO12"] == 0


def test_po_mapping_totals():
    mapping = normalize_co_po_mapping({"CO1": {"PO1": 1}, "CO2": {"PO1": 1, "PO5": 1}})
    totals = po_mapping_totals(mapping)
    assert totals["PO1"] == 2
    assert totals["PO5"] == 1
    assert totals["PO12"] == 0
