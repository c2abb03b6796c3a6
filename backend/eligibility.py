from datetime import datetime

from cohorts import cohort_window, deadline_passed, windows_overlap
from normalizer import normalize_course, normalize_enrollment, parse_timestamp
from validators import InvalidInputError, require_list


def resolve_now(now) -> datetime:
    """Evaluation time is always supplied by the caller, never read from the clock here."""
    parsed = parse_timestamp(now)
    if parsed is None:
        raise InvalidInputError("now must be a valid timestamp.")
    return parsed


def _enrolled_windows(enrollments: list) -> list[tuple[dict, tuple]]:
    """(enrolled course, window) for every enrollment whose course has a start date."""
    windows = []
    for raw in enrollments:
        course = normalize_enrollment(raw)["course"]
        window = cohort_window(course)
        if window is not None:
            windows.append((course, window))
    return windows


def _first_overlap(course: dict, enrolled_windows: list[tuple[dict, tuple]]) -> dict | None:
    window = cohort_window(course)
    if window is None:
        return None
    for enrolled_course, enrolled_window in enrolled_windows:
        if windows_overlap(window, enrolled_window):
            return enrolled_course
    return None


def resolve_eligibility(courses, enrollments, now) -> list:
    """
    Courses the student may still apply to.

    A course is kept only if both rules pass:
      - deadline: enrollment_deadline absent or not strictly before now
      - cohort overlap: its cohort window intersects no enrolled course's window

    Returns the caller's own course objects in catalog order.
    """
    courses = require_list(courses, "courses")
    enrolled_windows = _enrolled_windows(require_list(enrollments, "enrollments"))
    now = resolve_now(now)

    eligible = []
    for raw in courses:
        course = normalize_course(raw)
        open_for_applications = not deadline_passed(course, now)
        no_overlap = _first_overlap(course, enrolled_windows) is None
        if open_for_applications and no_overlap:
            eligible.append(raw)
    return eligible


def check_can_apply(course, enrollments, now) -> dict:
    """
    Explain why a single course is or is not open to this student.

    Returns:
      {
        "can_apply": bool,
        "why_not": str | None,
        "deadline_passed": bool,
        "overlapping_course": dict | None,   # the enrolled course it clashes with
      }
    """
    course = normalize_course(course)
    enrolled_windows = _enrolled_windows(require_list(enrollments, "enrollments"))
    now = resolve_now(now)

    closed = deadline_passed(course, now)
    overlapping = _first_overlap(course, enrolled_windows)

    why_not = None
    if closed:
        closed_on = course["enrollment_deadline"].strftime("%Y-%m-%d")
        why_not = f"Enrollment for this cohort closed on {closed_on}."
    elif overlapping is not None:
        label = overlapping.get("title") or overlapping.get("id") or "another course"
        why_not = (
            f'You are currently enrolled in "{label}" which runs during this period. '
            "Students can only enroll in one course per 6-month cohort cycle."
        )

    return {
        "can_apply": not closed and overlapping is None,
        "why_not": why_not,
        "deadline_passed": closed,
        "overlapping_course": overlapping,
    }
