from datetime import datetime

from normalizer import normalize_course
from validators import require_list

WISHLIST_SORT_OPTIONS = ("dateAdded", "title", "price", "duration", "rating")


def _wishlist_key(sort_by: str):
    if sort_by == "title":
        return lambda c: c["title"].lower()
    if sort_by == "price":
        return lambda c: c["price"]
    if sort_by == "duration":
        return lambda c: c["duration"]
    if sort_by == "rating":
        return lambda c: c["average_rating"] or 0
    # dateAdded; courses saved before the timestamp existed sort as oldest
    return lambda c: c["added_to_wishlist_at"] or datetime.min


def sort_wishlist(courses, sort_by: str = "dateAdded", sort_order: str = "desc", category: str = "all") -> list:
    """Category filter ("all" keeps everything) followed by a stable sort."""
    rows = [(raw, normalize_course(raw)) for raw in require_list(courses, "courses")]
    if category and category != "all":
        rows = [r for r in rows if r[1]["category"] == category]
    key = _wishlist_key(sort_by)
    rows = sorted(rows, key=lambda r: key(r[1]), reverse=(sort_order == "desc"))
    return [raw for raw, _ in rows]


def wishlist_categories(courses) -> list[str]:
    seen: list[str] = []
    for raw in require_list(courses, "courses"):
        category = normalize_course(raw)["category"]
        if category and category not in seen:
            seen.append(category)
    return seen


def wishlist_summary(courses) -> dict:
    courses = require_list(courses, "courses")
    return {
        "count": len(courses),
        "total_value": sum(normalize_course(c)["price"] for c in courses),
        "categories": wishlist_categories(courses),
    }
