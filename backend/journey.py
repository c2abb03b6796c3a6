"""
Student journey state: which single view a student sees on the course tab.

Branches are checked in a fixed order and the first match wins:
  1. any enrollment            -> enrolled
  2. any application           -> ready_to_pay (priority app APPROVED)
                                  awaiting_decision (anything else)
  3. neither                   -> browsing, narrowed by resolve_eligibility

View states are plain dicts tagged by "state"; match_view_state() is the
exhaustive dispatcher callers should use instead of ad-hoc if-chains.
"""

from eligibility import resolve_eligibility
from normalizer import normalize_application, normalize_course, normalize_enrollment
from payments import resolve_payment_options
from validators import InvalidInputError, require_list

STATE_ENROLLED = "enrolled"
STATE_READY_TO_PAY = "ready_to_pay"
STATE_AWAITING_DECISION = "awaiting_decision"
STATE_BROWSING = "browsing"

VIEW_STATES = (
    STATE_ENROLLED,
    STATE_READY_TO_PAY,
    STATE_AWAITING_DECISION,
    STATE_BROWSING,
)

# Lower rank wins. Statuses not listed (REJECTED, unknown) share the last rank.
_STATUS_RANK = {
    "APPROVED": 0,
    "UNDER_REVIEW": 1,
    "PENDING": 2,
}
_FALLBACK_RANK = len(_STATUS_RANK)


def pick_priority_application(applications) -> dict | None:
    """
    APPROVED > UNDER_REVIEW > PENDING > anything else.
    Ties go to the earliest application in the list.
    """
    applications = require_list(applications, "applications")
    best = None
    best_rank = None
    for raw in applications:
        status = normalize_application(raw)["status"]
        rank = _STATUS_RANK.get(status, _FALLBACK_RANK)
        if best_rank is None or rank < best_rank:
            best, best_rank = raw, rank
    return best


def select_enrollment(enrollments, enrollment_id=None) -> dict | None:
    """First enrollment by default; the caller may pick another by id."""
    enrollments = require_list(enrollments, "enrollments")
    if not enrollments:
        return None
    if enrollment_id is not None:
        for raw in enrollments:
            if str(normalize_enrollment(raw).get("id")) == str(enrollment_id):
                return raw
    return enrollments[0]


def _application_course(application: dict, courses: list) -> dict | None:
    """Embedded course snapshot first, else look the course up by course_id."""
    if isinstance(application.get("course"), dict):
        return application["course"]
    course_id = application.get("course_id")
    if not course_id:
        return None
    for raw in courses:
        if normalize_course(raw)["id"] == course_id:
            return raw
    return None


def resolve_journey_state(courses, applications, enrollments, now) -> dict:
    """Return exactly one view state for the student's current position."""
    courses = require_list(courses, "courses")
    applications = require_list(applications, "applications")
    enrollments = require_list(enrollments, "enrollments")

    if enrollments:
        return {
            "state": STATE_ENROLLED,
            "enrollment": select_enrollment(enrollments),
            "enrollments": enrollments,
        }

    if applications:
        application = pick_priority_application(applications)
        if normalize_application(application)["status"] == "APPROVED":
            course = _application_course(normalize_application(application), courses)
            return {
                "state": STATE_READY_TO_PAY,
                "application": application,
                "course": course,
                "payment_options": resolve_payment_options(course) if course is not None else [],
            }
        return {
            "state": STATE_AWAITING_DECISION,
            "application": application,
        }

    return {
        "state": STATE_BROWSING,
        "eligible_courses": resolve_eligibility(courses, enrollments, now),
    }


def match_view_state(view: dict, handlers: dict):
    """
    Dispatch a view state to handlers[view["state"]](view).

    Every state in VIEW_STATES must have a handler, so adding a state
    breaks callers loudly instead of falling through a missing branch.
    """
    missing = [state for state in VIEW_STATES if state not in handlers]
    if missing:
        raise InvalidInputError(f"No handler for view state(s): {', '.join(missing)}.")
    state = view.get("state") if isinstance(view, dict) else None
    if state not in VIEW_STATES:
        raise InvalidInputError(f"Unknown view state: {state!r}.")
    return handlers[state](view)
