import math
import re
from datetime import datetime

import pandas as pd

from validators import InvalidInputError, require_field, require_mapping

# Frontend payloads arrive camelCase; records are keyed snake_case internally.
_COURSE_ALIASES = {
    "averageRating": "average_rating",
    "enrollmentCount": "enrollment_count",
    "createdAt": "created_at",
    "enrollmentDeadline": "enrollment_deadline",
    "startDate": "start_date",
    "endDate": "end_date",
    "installmentEnabled": "installment_enabled",
    "installmentPlan": "installment_plan",
    "applicationFee": "application_fee",
    "instructorName": "instructor_name",
    "addedToWishlistAt": "added_to_wishlist_at",
}

_APPLICATION_ALIASES = {
    "courseId": "course_id",
    "submittedAt": "submitted_at",
    "reviewNotes": "review_notes",
}

_TIMESTAMP_FIELDS = (
    "created_at",
    "enrollment_deadline",
    "start_date",
    "end_date",
    "added_to_wishlist_at",
)

_MODE_SPLIT = re.compile(r"[|,;]")
_BOOL_TRUTHY = {"true", "1", "yes", "y"}


def _is_missing(value) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def _apply_aliases(raw, aliases: dict) -> dict:
    out = dict(raw)
    for alias, canonical in aliases.items():
        if alias in out:
            value = out.pop(alias)
            if canonical not in out:
                out[canonical] = value
    return out


def parse_timestamp(value) -> datetime | None:
    """
    Parse a timestamp to a naive UTC datetime.

    Accepts datetime/date objects, ISO strings ('2025-01-01',
    '2025-01-01T09:00:00Z') and epoch milliseconds. Missing or unparseable
    values return None so an optional date never blocks a record.
    """
    if _is_missing(value):
        return None
    try:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            ts = pd.Timestamp(value, unit="ms")
        else:
            ts = pd.Timestamp(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts.to_pydatetime()


def to_float(value, default: float | None = 0.0) -> float | None:
    if _is_missing(value) or isinstance(value, bool):
        return default
    try:
        out = float(value)
    except (TypeError, ValueError):
        return default
    return default if math.isnan(out) else out


def to_int(value, default: int = 0) -> int:
    out = to_float(value, None)
    return default if out is None else int(out)


def to_bool(value) -> bool:
    if _is_missing(value):
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    return str(value).strip().lower() in _BOOL_TRUTHY


def _clean_text(value) -> str:
    return "" if _is_missing(value) else str(value).strip()


def normalize_modes(value) -> list[str]:
    """'Online|Hybrid' / 'Online' / ['Online', 'Hybrid'] -> ['Online', 'Hybrid']."""
    if _is_missing(value):
        return []
    if isinstance(value, str):
        parts = _MODE_SPLIT.split(value)
    elif isinstance(value, (list, tuple, set, frozenset)):
        parts = [str(p) for p in value if not _is_missing(p)]
    else:
        parts = [str(value)]
    modes: list[str] = []
    for part in parts:
        mode = part.strip()
        if mode and mode not in modes:
            modes.append(mode)
    return modes


def _normalize_installment_plan(value) -> dict | None:
    if _is_missing(value):
        return None
    if isinstance(value, dict):
        plan = dict(value)
        upfront = to_float(plan.get("upfront"), None)
        if upfront is None:
            return None
        plan["upfront"] = int(upfront) if upfront.is_integer() else upfront
        return plan
    upfront = to_float(value, None)
    if upfront is None:
        return None
    return {"upfront": int(upfront) if upfront.is_integer() else upfront}


def _instructor_name(record: dict) -> str:
    name = record.get("instructor_name")
    if not _is_missing(name):
        return str(name).strip()
    instructor = record.get("instructor")
    if isinstance(instructor, dict):
        return _clean_text(instructor.get("name"))
    return _clean_text(instructor)


def _enrollment_count(record: dict) -> int:
    if not _is_missing(record.get("enrollment_count")):
        return to_int(record.get("enrollment_count"))
    counts = record.get("_count")
    if isinstance(counts, dict):
        return to_int(counts.get("enrollments"))
    return 0


def normalize_course(raw, require_id: bool = True) -> dict:
    """
    Return a canonical copy of a course record. The input is not modified.

    Only `id` is required (and not even that for the course snapshot
    embedded in an enrollment); every other field falls back to a default.
    Running it on an already-normalized record returns an equal record.
    """
    record = _apply_aliases(require_mapping(raw, "course"), _COURSE_ALIASES)
    if require_id:
        record["id"] = str(require_field(record, "id", "course")).strip()
    else:
        record["id"] = _clean_text(record.get("id"))
    record["title"] = _clean_text(record.get("title"))
    record["description"] = _clean_text(record.get("description"))
    record["instructor_name"] = _instructor_name(record)
    record["category"] = _clean_text(record.get("category"))
    record["difficulty"] = _clean_text(record.get("difficulty"))
    record["mode"] = normalize_modes(record.get("mode"))
    record["price"] = to_float(record.get("price"), 0.0)
    record["duration"] = to_int(record.get("duration"), 0)
    record["average_rating"] = to_float(record.get("average_rating"), None)
    record["enrollment_count"] = _enrollment_count(record)
    record["installment_enabled"] = to_bool(record.get("installment_enabled"))
    record["installment_plan"] = _normalize_installment_plan(record.get("installment_plan"))
    record["application_fee"] = to_float(record.get("application_fee"), 0.0)
    for field in _TIMESTAMP_FIELDS:
        record[field] = parse_timestamp(record.get(field))
    return record


def normalize_status(raw) -> str:
    """'under review' / 'Under_Review' -> 'UNDER_REVIEW'."""
    return re.sub(r"[\s-]+", "_", _clean_text(raw)).upper()


def normalize_application(raw) -> dict:
    record = _apply_aliases(require_mapping(raw, "application"), _APPLICATION_ALIASES)
    record["id"] = str(require_field(record, "id", "application")).strip()
    record["status"] = normalize_status(record.get("status"))
    record["submitted_at"] = parse_timestamp(record.get("submitted_at"))
    course = record.get("course")
    if isinstance(course, dict):
        record["course"] = normalize_course(course, require_id=False)
    if _is_missing(record.get("course_id")) and isinstance(record.get("course"), dict):
        record["course_id"] = record["course"]["id"]
    elif not _is_missing(record.get("course_id")):
        record["course_id"] = str(record["course_id"]).strip()
    return record


def normalize_enrollment(raw) -> dict:
    """Enrollments only matter here for their embedded course snapshot."""
    record = dict(require_mapping(raw, "enrollment"))
    course = record.get("course")
    if course is None:
        raise InvalidInputError("enrollment is missing required field 'course'.")
    record["course"] = normalize_course(course, require_id=False)
    if not _is_missing(record.get("id")):
        record["id"] = str(record["id"]).strip()
    return record
