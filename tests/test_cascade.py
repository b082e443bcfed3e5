import pytest

from cascade import NO_STUDENTS_LABEL, PICK_STUDENT_LABEL, Option, classes_for, derive

ROSTER = {"1": {"M1": ["Ana Silva", "João"]}}


def roster_for(grade, class_name):
    return ROSTER.get(grade, {}).get(class_name, [])


@pytest.mark.parametrize("grade", ["", None, "4", "1ª", " 1"])
def test_unknown_grade_has_no_options(grade):
    assert classes_for(grade) == []
    state = derive(grade, None, roster_for)
    assert state.class_options == []
    assert state.student_options == []
    assert state.student_enabled is False
    assert state.class_name == ""


def test_classes_follow_table_order():
    assert classes_for("2") == ["M1", "M2", "M3", "M4"]
    state = derive("3", None, roster_for)
    assert [o.value for o in state.class_options] == ["M1", "M2", "M3", "M4", "M5", "M6"]
    assert state.class_options[0].label == "3ª M1"


def test_grade_change_selects_first_class_and_loads_its_roster():
    state = derive("1", None, roster_for)
    assert state.class_name == "M1"
    assert state.student_enabled is True
    assert state.student_options == [
        Option("", PICK_STUDENT_LABEL),
        Option("Ana Silva", "Ana Silva"),
        Option("João", "João"),
    ]


@pytest.mark.parametrize("grade,class_name", [("1", "M2"), ("2", "M1"), ("3", "M6")])
def test_empty_roster_shows_single_disabled_placeholder(grade, class_name):
    state = derive(grade, class_name, roster_for)
    assert state.class_name == class_name
    assert state.student_options == [Option("", NO_STUDENTS_LABEL, disabled=True)]
    assert state.student_enabled is False


def test_class_not_offered_for_grade_selects_nothing():
    state = derive("2", "M6", roster_for)
    assert state.class_name == ""
    assert len(state.class_options) == 4
    assert state.student_options == []
    assert state.student_enabled is False


def test_classes_for_returns_a_copy():
    classes_for("1").append("M9")
    assert classes_for("1") == ["M1", "M2", "M3", "M4", "M5"]
