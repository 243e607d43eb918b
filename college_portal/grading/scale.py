from decimal import Decimal, ROUND_HALF_UP

THEORY = "THEORY"
PRACTICAL = "PRACTICAL"
BOTH = "BOTH"
CLASS_TYPES = (THEORY, PRACTICAL, BOTH)

# Inclusive lower bounds on internal + external total, highest band first.
THEORY_BANDS = [
    {"min": 90, "grade": "S", "gp": 10},
    {"min": 80, "grade": "A", "gp": 9},
    {"min": 70, "grade": "B", "gp": 8},
    {"min": 60, "grade": "C", "gp": 7},
    {"min": 50, "grade": "D", "gp": 6},
    {"min": 40, "grade": "E", "gp": 5},
]

# Practical D/E bands sit higher than theory (55/50 vs 50/40).
PRACTICAL_BANDS = [
    {"min": 90, "grade": "S", "gp": 10},
    {"min": 80, "grade": "A", "gp": 9},
    {"min": 70, "grade": "B", "gp": 8},
    {"min": 60, "grade": "C", "gp": 7},
    {"min": 55, "grade": "D", "gp": 6},
    {"min": 50, "grade": "E", "gp": 5},
]

FAIL_GRADE = "F"
FAIL_POINT = 0


def bands_for(class_type):
    kind = (class_type or "").upper()
    if kind == THEORY:
        return THEORY_BANDS
    if kind == PRACTICAL:
        return PRACTICAL_BANDS
    # BOTH and unknown types have no table and always grade F/0
    return []


def get_grade_point(total, class_type):
    """
    Maps a subject total (internal + external) to (grade, grade_point).
    Anything below the lowest band, or a class type without a table, is F/0.
    """
    for band in bands_for(class_type):
        if total >= band["min"]:
            return band["grade"], band["gp"]
    return FAIL_GRADE, FAIL_POINT


def _to_decimal(value):
    return Decimal(str(value))


def round_half_up(value, places=0):
    exp = Decimal(1).scaleb(-places)
    rounded = _to_decimal(value).quantize(exp, rounding=ROUND_HALF_UP)
    if places == 0:
        return int(rounded)
    return float(rounded)


def scale_external(achieved_marks, full_marks, scale=70):
    """
    Rescales a raw exam score onto the external component ceiling,
    rounded to the nearest whole mark.
    """
    full = _to_decimal(full_marks)
    if full <= 0:
        raise ValueError("Exam total marks must be positive")
    return round_half_up(_to_decimal(achieved_marks) / full * scale)


def average(quality_points, credits):
    """Credit-weighted average to 2 places; 0 when there is no credit."""
    if not credits or credits <= 0:
        return 0.0
    return round_half_up(_to_decimal(quality_points) / _to_decimal(credits), 2)
