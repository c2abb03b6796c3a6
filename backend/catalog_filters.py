"""
Course discovery: multi-criteria filtering and sorting of the catalog.

Filter state shape (all keys optional on input, defaults in DEFAULT_FILTERS):
  {
    "search":         "",            # case-insensitive, trimmed substring
    "categories":     [],            # empty = no constraint
    "difficulties":   [],
    "modes":          [],            # course kept if it offers any of these
    "price_range":    [0, 10000],    # inclusive
    "duration_range": [1, 52],       # inclusive, weeks
    "rating":         0,             # minimum average rating
    "sort_by":        "title",       # title|price|duration|rating|enrollments|createdAt
    "sort_order":     "asc",
  }

filter_and_sort() never rejects out-of-range values: an inverted range just
matches nothing. Only structurally broken input raises InvalidInputError.
"""

import copy
from datetime import datetime

from normalizer import normalize_course, to_float
from validators import InvalidInputError, require_list, require_mapping, require_number_pair

DEFAULT_PRICE_RANGE = [0, 10000]
DEFAULT_DURATION_RANGE = [1, 52]

DEFAULT_FILTERS = {
    "search": "",
    "categories": [],
    "difficulties": [],
    "modes": [],
    "price_range": list(DEFAULT_PRICE_RANGE),
    "duration_range": list(DEFAULT_DURATION_RANGE),
    "rating": 0,
    "sort_by": "title",
    "sort_order": "asc",
}

CATEGORIES = (
    "Film & Television",
    "Animation & VFX",
    "Photography",
    "Marketing",
    "Production",
    "Journalism",
    "Design",
    "Audio",
)
DIFFICULTIES = ("Beginner", "Intermediate", "Advanced")
MODES = ("Online", "Offline", "Hybrid")
SORT_OPTIONS = (
    ("title", "Title"),
    ("price", "Price"),
    ("duration", "Duration"),
    ("rating", "Rating"),
    ("enrollments", "Popularity"),
    ("createdAt", "Newest"),
)

FILTER_PRESETS = [
    {
        "name": "Popular Courses",
        "filters": {
            "search": "",
            "categories": [],
            "difficulties": [],
            "modes": [],
            "price_range": [0, 10000],
            "duration_range": [1, 52],
            "rating": 4,
            "sort_by": "enrollments",
            "sort_order": "desc",
        },
    },
    {
        "name": "Beginner Friendly",
        "filters": {
            "search": "",
            "categories": [],
            "difficulties": ["Beginner"],
            "modes": [],
            "price_range": [0, 5000],
            "duration_range": [1, 12],
            "rating": 0,
            "sort_by": "price",
            "sort_order": "asc",
        },
    },
    {
        "name": "Online Only",
        "filters": {
            "search": "",
            "categories": [],
            "difficulties": [],
            "modes": ["Online"],
            "price_range": [0, 10000],
            "duration_range": [1, 52],
            "rating": 0,
            "sort_by": "title",
            "sort_order": "asc",
        },
    },
]

SET_FILTER_KEYS = ("categories", "difficulties", "modes")

_FILTER_ALIASES = {
    "priceRange": "price_range",
    "durationRange": "duration_range",
    "sortBy": "sort_by",
    "sortOrder": "sort_order",
}

_SORT_KEY_ALIASES = {
    "title": "title",
    "price": "price",
    "duration": "duration",
    "rating": "rating",
    "average_rating": "rating",
    "averageRating": "rating",
    "enrollments": "enrollments",
    "enrollment_count": "enrollments",
    "createdAt": "createdAt",
    "created_at": "createdAt",
}


# ── Filter state ──────────────────────────────────────────────────────────────

def _normalize_set(value, name: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise InvalidInputError(f"{name} must be a list of strings.")
    out: list[str] = []
    for item in value:
        text = str(item).strip()
        if text and text not in out:
            out.append(text)
    return out


def normalize_filters(filters) -> dict:
    """Fill in defaults and canonical key names. Never mutates the input."""
    raw = dict(require_mapping(filters, "filters"))
    for alias, canonical in _FILTER_ALIASES.items():
        if alias in raw and canonical not in raw:
            raw[canonical] = raw.pop(alias)

    state = copy.deepcopy(DEFAULT_FILTERS)
    search = raw.get("search")
    state["search"] = "" if search is None else str(search)
    for key in SET_FILTER_KEYS:
        state[key] = _normalize_set(raw.get(key), key)
    for key in ("price_range", "duration_range"):
        if raw.get(key) is not None:
            state[key] = require_number_pair(raw[key], key)
    if raw.get("rating") is not None:
        rating = to_float(raw["rating"], None)
        if rating is None:
            raise InvalidInputError("rating must be a number.")
        state["rating"] = rating
    if raw.get("sort_by"):
        state["sort_by"] = str(raw["sort_by"]).strip()
    if raw.get("sort_order"):
        state["sort_order"] = str(raw["sort_order"]).strip().lower()
    return state


def reset_filters() -> dict:
    return copy.deepcopy(DEFAULT_FILTERS)


def get_preset(name: str) -> dict | None:
    for preset in FILTER_PRESETS:
        if preset["name"] == name:
            return preset
    return None


def apply_preset(preset) -> dict:
    """Total replacement: the preset's filters verbatim, nothing merged in."""
    if isinstance(preset, str):
        found = get_preset(preset)
        if found is None:
            raise InvalidInputError(f"Unknown filter preset: {preset!r}")
        preset = found
    preset = require_mapping(preset, "preset")
    return copy.deepcopy(require_mapping(preset.get("filters"), "preset.filters"))


def toggle_filter_value(filters, key: str, value: str) -> dict:
    """Add value to a set filter if absent, remove it if present."""
    if key not in SET_FILTER_KEYS:
        raise InvalidInputError(f"{key!r} is not a toggleable filter.")
    updated = copy.deepcopy(dict(require_mapping(filters, "filters")))
    current = _normalize_set(updated.get(key), key)
    if value in current:
        updated[key] = [v for v in current if v != value]
    else:
        updated[key] = current + [value]
    return updated


def active_filter_count(filters) -> int:
    """
    Number of filter dimensions that differ from their defaults.
    Sort settings never count.
    """
    state = normalize_filters(filters)
    count = 0
    if state["search"]:
        count += 1
    for key in SET_FILTER_KEYS:
        if state[key]:
            count += 1
    if list(state["price_range"]) != DEFAULT_PRICE_RANGE:
        count += 1
    if list(state["duration_range"]) != DEFAULT_DURATION_RANGE:
        count += 1
    if state["rating"] > 0:
        count += 1
    return count


# ── URL sync ──────────────────────────────────────────────────────────────────

def _format_number(value: float) -> str:
    value = float(value)
    return str(int(value)) if value.is_integer() else str(value)


def filters_to_query_params(filters) -> dict:
    """Only non-default values are emitted, so the default state is an empty query."""
    state = normalize_filters(filters)
    params: dict[str, str] = {}
    if state["search"]:
        params["search"] = state["search"]
    for key in SET_FILTER_KEYS:
        if state[key]:
            params[key] = ",".join(state[key])
    if list(state["price_range"]) != DEFAULT_PRICE_RANGE:
        params["priceMin"] = _format_number(state["price_range"][0])
        params["priceMax"] = _format_number(state["price_range"][1])
    if list(state["duration_range"]) != DEFAULT_DURATION_RANGE:
        params["durationMin"] = _format_number(state["duration_range"][0])
        params["durationMax"] = _format_number(state["duration_range"][1])
    if state["rating"] > 0:
        params["rating"] = _format_number(state["rating"])
    if state["sort_by"] != DEFAULT_FILTERS["sort_by"]:
        params["sortBy"] = state["sort_by"]
    if state["sort_order"] != DEFAULT_FILTERS["sort_order"]:
        params["sortOrder"] = state["sort_order"]
    return params


def filters_from_query_params(params) -> dict:
    """
    Rebuild a filter state from URL query parameters.

    Query strings are user-editable, so unparseable numbers fall back to the
    default instead of raising.
    """
    params = require_mapping(params, "params")
    state = reset_filters()
    state["search"] = str(params.get("search") or "")
    for key in SET_FILTER_KEYS:
        raw = params.get(key) or ""
        state[key] = [part.strip() for part in str(raw).split(",") if part.strip()]
    state["price_range"] = [
        to_float(params.get("priceMin"), DEFAULT_PRICE_RANGE[0]),
        to_float(params.get("priceMax"), DEFAULT_PRICE_RANGE[1]),
    ]
    state["duration_range"] = [
        to_float(params.get("durationMin"), DEFAULT_DURATION_RANGE[0]),
        to_float(params.get("durationMax"), DEFAULT_DURATION_RANGE[1]),
    ]
    state["rating"] = to_float(params.get("rating"), 0)
    if params.get("sortBy"):
        state["sort_by"] = str(params["sortBy"]).strip()
    if params.get("sortOrder"):
        state["sort_order"] = str(params["sortOrder"]).strip().lower()
    return state


# ── Filtering ─────────────────────────────────────────────────────────────────

def _matches_search(course: dict, needle: str) -> bool:
    if not needle:
        return True
    haystacks = (course["title"], course["description"], course["instructor_name"])
    return any(needle in text.lower() for text in haystacks)


def _in_range(value: float, bounds: list[float]) -> bool:
    return bounds[0] <= value <= bounds[1]


def _title_key(course: dict) -> tuple:
    # Exact title and id settle titles that differ only in case.
    return (course["title"].lower(), course["title"], course["id"] or "")


def _sort_key(sort_by: str):
    if sort_by == "price":
        return lambda c: c["price"]
    if sort_by == "duration":
        return lambda c: c["duration"]
    if sort_by == "rating":
        return lambda c: c["average_rating"] or 0
    if sort_by == "enrollments":
        return lambda c: c["enrollment_count"]
    if sort_by == "createdAt":
        return lambda c: c["created_at"] or datetime.min
    return _title_key


def _sort_rows(rows: list[tuple], sort_by: str, sort_order: str) -> list[tuple]:
    """
    Two stable passes: title ascending first, then the requested key.
    reverse=True keeps equal keys in their existing (title-ascending) order,
    so descending sorts still break ties by ascending title.
    """
    key = _sort_key(_SORT_KEY_ALIASES.get(sort_by, "title"))
    by_title = sorted(rows, key=lambda row: _title_key(row[1]))
    return sorted(by_title, key=lambda row: key(row[1]), reverse=(sort_order == "desc"))


def filter_and_sort(courses, filters) -> list:
    """
    Apply a filter state to a course list.

    Steps run in a fixed order: text, category/difficulty/mode, price and
    duration ranges, minimum rating, then sort. Returns a new list of the
    caller's course objects; nothing passed in is modified.
    """
    courses = require_list(courses, "courses")
    state = normalize_filters(filters)

    rows = [(raw, normalize_course(raw)) for raw in courses]

    needle = state["search"].strip().lower()
    rows = [r for r in rows if _matches_search(r[1], needle)]

    if state["categories"]:
        rows = [r for r in rows if r[1]["category"] in state["categories"]]
    if state["difficulties"]:
        rows = [r for r in rows if r[1]["difficulty"] in state["difficulties"]]
    if state["modes"]:
        wanted = set(state["modes"])
        rows = [r for r in rows if wanted.intersection(r[1]["mode"])]

    rows = [
        r for r in rows
        if _in_range(r[1]["price"], state["price_range"])
        and _in_range(r[1]["duration"], state["duration_range"])
    ]

    rows = [r for r in rows if (r[1]["average_rating"] or 0) >= state["rating"]]

    return [raw for raw, _ in _sort_rows(rows, state["sort_by"], state["sort_order"])]
