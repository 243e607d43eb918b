import pytest

from college_portal.grading.scale import get_grade_point, scale_external, average, round_half_up


@pytest.mark.parametrize("total,expected", [
    (100, ("S", 10)),
    (90, ("S", 10)),
    (89.99, ("A", 9)),
    (80, ("A", 9)),
    (70, ("B", 8)),
    (60, ("C", 7)),
    (50, ("D", 6)),
    (49, ("E", 5)),
    (40, ("E", 5)),
    (39.99, ("F", 0)),
    (0, ("F", 0)),
])
def test_theory_bands(total, expected):
    assert get_grade_point(total, "THEORY") == expected


@pytest.mark.parametrize("total,expected", [
    (60, ("C", 7)),
    (55, ("D", 6)),
    (54, ("E", 5)),
    (50, ("E", 5)),
    (49, ("F", 0)),
    (40, ("F", 0)),
])
def test_practical_bands(total, expected):
    assert get_grade_point(total, "PRACTICAL") == expected


def test_both_has_no_band_table():
    assert get_grade_point(95, "BOTH") == ("F", 0)
    assert get_grade_point(45, "BOTH") == ("F", 0)
    assert get_grade_point(95, "theory") == ("S", 10)
    assert get_grade_point(95, None) == ("F", 0)


def test_external_scaled_to_seventy():
    assert scale_external(70, 100) == 49
    assert scale_external(100, 100) == 70
    assert scale_external(0, 100) == 0
    assert scale_external(40, 50) == 56


def test_external_rounds_half_up():
    # 35/100 * 70 = 24.5
    assert scale_external(35, 100) == 25
    assert round_half_up(2.5) == 3
    assert round_half_up(0.125, 2) == 0.13


def test_external_rejects_zero_total():
    with pytest.raises(ValueError):
        scale_external(10, 0)


def test_average():
    assert average(266, 38) == 7.0
    assert average(46, 6) == 7.67
    assert average(200, 24) == 8.33


def test_average_without_credit_is_zero():
    assert average(0, 0) == 0.0
    assert average(10, 0) == 0.0
