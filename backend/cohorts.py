"""
Cohort windows and enrollment deadlines.

Every caller that needs a course's running period goes through
cohort_window(), so the 180-day default for courses without an end date
lives in exactly one place.
"""

from datetime import datetime, timedelta

from normalizer import parse_timestamp

# One course per six-month cohort cycle.
DEFAULT_COHORT_LENGTH = timedelta(days=180)


def cohort_window(course: dict) -> tuple[datetime, datetime] | None:
    """
    Return (start, end) for a course, or None when it has no start date.

    end = end_date if present, else start_date + 180 days.
    """
    start = parse_timestamp(course.get("start_date"))
    if start is None:
        return None
    end = parse_timestamp(course.get("end_date"))
    if end is None:
        end = start + DEFAULT_COHORT_LENGTH
    return start, end


def windows_overlap(a: tuple[datetime, datetime], b: tuple[datetime, datetime]) -> bool:
    # Inclusive at both ends; symmetric in a and b.
    return a[0] <= b[1] and b[0] <= a[1]


def courses_overlap(course_a: dict, course_b: dict) -> bool:
    """True when both courses have cohort windows and those windows intersect."""
    window_a = cohort_window(course_a)
    window_b = cohort_window(course_b)
    if window_a is None or window_b is None:
        return False
    return windows_overlap(window_a, window_b)


def deadline_passed(course: dict, now: datetime) -> bool:
    """Deadline defined and strictly before now. A deadline equal to now is still open."""
    deadline = parse_timestamp(course.get("enrollment_deadline"))
    if deadline is None:
        return False
    return deadline < now
