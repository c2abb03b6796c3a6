import os
import sys
import time
import threading
import hashlib
import json
from collections import OrderedDict
from datetime import date, datetime, timezone

# Ensure backend/ is on sys.path so sibling imports work
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException
from dotenv import load_dotenv

from validators import InvalidInputError, require_list
from catalog_filters import (
    FILTER_PRESETS,
    active_filter_count,
    filter_and_sort,
    filters_from_query_params,
    filters_to_query_params,
    normalize_filters,
)
from saved_searches import JsonSavedSearchStore, delete_search, save_search
from eligibility import check_can_apply, resolve_eligibility
from journey import STATE_BROWSING, resolve_journey_state
from payments import calculate_installment_plan, get_installment_plans, resolve_payment_options
from wishlist import sort_wishlist, wishlist_summary
from data_loader import load_data, resolve_courses_path

load_dotenv()

app = Flask(__name__)

# ── Paths ─────────────────────────────────────────────────────────────────────
BACKEND_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(BACKEND_DIR)
_DEFAULT_DATA_PATH = os.path.join(PROJECT_ROOT, "data")
_env_data_path = os.environ.get("DATA_PATH")
if not _env_data_path:
    DATA_PATH = _DEFAULT_DATA_PATH
elif not os.path.isabs(_env_data_path):
    DATA_PATH = os.path.join(PROJECT_ROOT, _env_data_path)
else:
    DATA_PATH = _env_data_path
_env_saved_path = os.environ.get("SAVED_SEARCHES_PATH")
if not _env_saved_path:
    SAVED_SEARCHES_PATH = os.path.join(PROJECT_ROOT, "data", "saved_searches.json")
elif not os.path.isabs(_env_saved_path):
    SAVED_SEARCHES_PATH = os.path.join(PROJECT_ROOT, _env_saved_path)
else:
    SAVED_SEARCHES_PATH = _env_saved_path
_data_lock = threading.Lock()
_data_mtime = None


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.environ.get(name, "")
    try:
        return max(minimum, float(raw))
    except (TypeError, ValueError):
        return default


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.environ.get(name, "")
    try:
        return max(minimum, int(raw))
    except (TypeError, ValueError):
        return default


_SLOW_REQUEST_LOG_MS = _env_float("SLOW_REQUEST_LOG_MS", 750.0, minimum=0.0)
_REQUEST_CACHE_SIZE = _env_int("REQUEST_CACHE_SIZE", 128, minimum=1)


class _LruResponseCache:
    """Thread-safe bounded in-memory cache for JSON-serializable responses."""

    def __init__(self, max_size: int):
        self.max_size = max(1, int(max_size))
        self._lock = threading.Lock()
        self._items: OrderedDict[str, dict] = OrderedDict()

    def get(self, key: str):
        with self._lock:
            if key not in self._items:
                return None
            value = self._items.pop(key)
            self._items[key] = value
            return value

    def set(self, key: str, value: dict) -> None:
        with self._lock:
            if key in self._items:
                self._items.pop(key)
            self._items[key] = value
            while len(self._items) > self.max_size:
                self._items.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


# filter_and_sort is pure, so identical (data version, query) pairs can be memoized.
_courses_response_cache = _LruResponseCache(_REQUEST_CACHE_SIZE)
_saved_search_store = JsonSavedSearchStore(SAVED_SEARCHES_PATH)


def _cache_enabled() -> bool:
    return not app.config.get("TESTING", False)


def _stable_payload_hash(payload) -> str:
    normalized = payload if payload is not None else {}
    encoded = json.dumps(
        normalized,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
    ).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def _data_version_tag() -> str:
    return "none" if _data_mtime is None else str(_data_mtime)


def _request_cache_key(prefix: str, payload) -> str:
    return f"{prefix}:{_data_version_tag()}:{_stable_payload_hash(payload)}"


def _clear_request_caches() -> None:
    _courses_response_cache.clear()


def _data_file_mtime(path: str):
    try:
        return os.path.getmtime(resolve_courses_path(path))
    except OSError:
        return None


def _json_safe(value):
    """Datetimes to ISO-8601 strings, recursively; everything else untouched."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


def _error_response(message: str, status: int = 400, error_code: str = "INVALID_INPUT"):
    return jsonify({
        "mode": "error",
        "error": {
            "error_code": error_code,
            "message": message,
        },
    }), status


# ── Startup data load ──────────────────────────────────────────────────────────
try:
    _data = load_data(DATA_PATH)
    _data_mtime = _data_file_mtime(DATA_PATH)
    print(f"[OK] Loaded {len(_data['catalog_ids'])} courses from {DATA_PATH}")
except FileNotFoundError:
    # If DATA_PATH env var is stale, fall back to the repo catalog.
    if DATA_PATH != _DEFAULT_DATA_PATH and os.path.exists(_DEFAULT_DATA_PATH):
        print(
            f"[WARN] DATA_PATH not found ({DATA_PATH}); "
            f"falling back to default catalog ({_DEFAULT_DATA_PATH}).",
            file=sys.stderr,
        )
        DATA_PATH = _DEFAULT_DATA_PATH
        _data = load_data(DATA_PATH)
        _data_mtime = _data_file_mtime(DATA_PATH)
        print(f"[OK] Loaded {len(_data['catalog_ids'])} courses from {DATA_PATH}")
    else:
        print(f"[FATAL] Data file not found: {DATA_PATH}", file=sys.stderr)
        sys.exit(1)
except Exception as exc:
    print(f"[FATAL] Failed to load data: {exc}", file=sys.stderr)
    sys.exit(1)


def _reload_data_if_changed(force: bool = False) -> bool:
    """
    Hot-reload the course catalog when the CSV under DATA_PATH changes on disk.

    Returns True when a reload occurred, else False.
    """
    global _data, _data_mtime

    candidate_mtime = _data_file_mtime(DATA_PATH)
    if not force:
        if candidate_mtime is None:
            return False
        if _data_mtime is not None and candidate_mtime <= _data_mtime:
            return False

    with _data_lock:
        latest_mtime = _data_file_mtime(DATA_PATH)
        if not force:
            if latest_mtime is None:
                return False
            if _data_mtime is not None and latest_mtime <= _data_mtime:
                return False

        try:
            new_data = load_data(DATA_PATH)
        except Exception as exc:
            print(f"[WARN] Data reload failed; keeping previous catalog: {exc}", file=sys.stderr)
            return False

        _data = new_data
        _data_mtime = latest_mtime if latest_mtime is not None else candidate_mtime
        _clear_request_caches()
        print(f"[OK] Reloaded {len(new_data['catalog_ids'])} courses from {DATA_PATH}")
        return True


def _refresh_data_if_needed() -> None:
    try:
        _reload_data_if_changed()
    except Exception as exc:
        print(f"[WARN] Data reload check failed: {exc}", file=sys.stderr)


# -- Security headers ------------------------------------------------------
@app.before_request
def _start_request_timer():
    g._request_start_time = time.perf_counter()


@app.after_request
def _add_security_headers(response):
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "same-origin"

    started = getattr(g, "_request_start_time", None)
    if started is not None:
        duration_ms = (time.perf_counter() - started) * 1000.0
        if duration_ms >= _SLOW_REQUEST_LOG_MS:
            endpoint = request.endpoint or "unknown"
            print(
                f"[SLOW] {request.method} {request.path} "
                f"endpoint={endpoint} status={response.status_code} duration_ms={duration_ms:.1f}"
            )
    return response


# ── Error handlers ─────────────────────────────────────────────────────────────
@app.errorhandler(InvalidInputError)
def handle_invalid_input(e):
    return _error_response(str(e), 400)


@app.errorhandler(Exception)
def handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return _error_response(e.description or e.name, e.code or 500, e.name.upper().replace(" ", "_"))
    print(f"[ERROR] {request.method} {request.path}: {e!r}", file=sys.stderr)
    return _error_response("An unexpected server error occurred.", 500, "SERVER_ERROR")


# -- Request helpers ---------------------------------------------------------
def _json_body():
    body = request.get_json(force=True, silent=True)
    if not isinstance(body, dict):
        raise InvalidInputError("Request body must be a JSON object.")
    return body


def _request_now(body: dict) -> datetime:
    """Clients may pin evaluation time with "now"; otherwise the server clock is used."""
    raw = body.get("now")
    if raw:
        return raw
    return datetime.now(timezone.utc)


def _request_user_id(body: dict | None = None) -> str:
    user_id = request.args.get("user_id") or (body or {}).get("user_id")
    if not user_id or not str(user_id).strip():
        raise InvalidInputError("user_id is required.")
    return str(user_id).strip()


def _catalog_courses() -> list[dict]:
    return _data["courses"]


def _courses_by_ids(course_ids) -> list[dict]:
    """Catalog records for the given ids, in request order; unknown ids are skipped."""
    course_ids = require_list(course_ids, "course_ids")
    index = _data["course_index"]
    return [index[str(cid)] for cid in course_ids if str(cid) in index]


# -- Health endpoint --------------------------------------------------------
@app.route("/health", methods=["GET"])
def health_endpoint():
    return jsonify({
        "status": "ok",
        "version": "1.0.0",
        "courses_loaded": len(_data["catalog_ids"]) if _data else 0,
    })


# ── Catalog discovery ─────────────────────────────────────────────────────────
@app.route("/api/courses", methods=["GET"])
def get_courses():
    """Filtered, sorted catalog driven by the same query params the course page keeps in its URL."""
    _refresh_data_if_needed()
    if not _data:
        return _error_response("Data not loaded", 500, "DATA_NOT_LOADED")

    query = request.args.to_dict()
    cache_key = _request_cache_key("courses", query)
    if _cache_enabled():
        cached = _courses_response_cache.get(cache_key)
        if cached is not None:
            return jsonify(cached)

    filters = filters_from_query_params(request.args)
    courses = _catalog_courses()
    results = filter_and_sort(courses, filters)
    payload = _json_safe({
        "courses": results,
        "total_courses": len(courses),
        "filtered_count": len(results),
        "active_filter_count": active_filter_count(filters),
        "filters": filters,
        "query": filters_to_query_params(filters),
    })
    if _cache_enabled():
        _courses_response_cache.set(cache_key, payload)
    return jsonify(payload)


@app.route("/api/courses/filter", methods=["POST"])
def filter_courses():
    """Same as GET /api/courses but with a JSON filter state, optionally over a subset of ids."""
    _refresh_data_if_needed()
    body = _json_body()
    filters = normalize_filters(body.get("filters") or {})
    if body.get("course_ids") is not None:
        courses = _courses_by_ids(body["course_ids"])
    else:
        courses = _catalog_courses()
    results = filter_and_sort(courses, filters)
    return jsonify(_json_safe({
        "courses": results,
        "total_courses": len(courses),
        "filtered_count": len(results),
        "active_filter_count": active_filter_count(filters),
        "query": filters_to_query_params(filters),
    }))


@app.route("/api/filter-presets", methods=["GET"])
def get_filter_presets():
    return jsonify({"presets": FILTER_PRESETS})


# ── Saved searches ────────────────────────────────────────────────────────────
@app.route("/api/saved-searches", methods=["GET"])
def list_saved_searches():
    user_id = _request_user_id()
    return jsonify({"saved_searches": _saved_search_store.load(user_id)})


@app.route("/api/saved-searches", methods=["POST"])
def create_saved_search():
    body = _json_body()
    user_id = _request_user_id(body)
    filters = normalize_filters(body.get("filters") or {})
    updated = save_search(_saved_search_store.load(user_id), body.get("name"), filters)
    _saved_search_store.save(user_id, updated)
    return jsonify({"saved_searches": updated})


@app.route("/api/saved-searches/<int(signed=True):index>", methods=["DELETE"])
def remove_saved_search(index):
    user_id = _request_user_id()
    updated = delete_search(_saved_search_store.load(user_id), index)
    _saved_search_store.save(user_id, updated)
    return jsonify({"saved_searches": updated})


# ── Student journey ───────────────────────────────────────────────────────────
@app.route("/api/eligibility", methods=["POST"])
def eligibility_endpoint():
    """Catalog courses the student can still apply to, given current enrollments."""
    _refresh_data_if_needed()
    body = _json_body()
    courses = _catalog_courses()
    eligible = resolve_eligibility(courses, body.get("enrollments") or [], _request_now(body))
    return jsonify(_json_safe({
        "courses": eligible,
        "total_courses": len(courses),
        "eligible_count": len(eligible),
    }))


@app.route("/api/can-apply", methods=["POST"])
def can_apply_endpoint():
    _refresh_data_if_needed()
    body = _json_body()
    course_id = str(body.get("course_id") or "").strip()
    if not course_id:
        raise InvalidInputError("course_id is required.")
    course = _data["course_index"].get(course_id)
    if course is None:
        return _error_response(f"{course_id} is not in the course catalog.", 404, "UNKNOWN_COURSE")

    result = check_can_apply(course, body.get("enrollments") or [], _request_now(body))
    return jsonify(_json_safe({"mode": "can_apply", "course_id": course_id, **result}))


@app.route("/api/journey", methods=["POST"])
def journey_endpoint():
    """
    Resolve the student's course tab view.

    Body: {"applications": [...], "enrollments": [...], "now"?: ..., "filters"?: {...}}
    When the student is browsing and filters are supplied, the eligible
    courses are run through the filter engine before being returned.
    """
    _refresh_data_if_needed()
    body = _json_body()
    view = resolve_journey_state(
        _catalog_courses(),
        body.get("applications") or [],
        body.get("enrollments") or [],
        _request_now(body),
    )
    if view["state"] == STATE_BROWSING and body.get("filters") is not None:
        view["eligible_courses"] = filter_and_sort(view["eligible_courses"], body["filters"])
    return jsonify(_json_safe(view))


# ── Payments ──────────────────────────────────────────────────────────────────
@app.route("/api/courses/<course_id>/payment-options", methods=["GET"])
def payment_options_endpoint(course_id):
    _refresh_data_if_needed()
    course = _data["course_index"].get(course_id)
    if course is None:
        return _error_response(f"{course_id} is not in the course catalog.", 404, "UNKNOWN_COURSE")
    return jsonify({"course_id": course_id, "payment_options": resolve_payment_options(course)})


@app.route("/api/installment-plans", methods=["GET"])
def installment_plans_endpoint():
    price = request.args.get("price")
    if price in (None, ""):
        return jsonify({"plans": get_installment_plans()})
    plans = [calculate_installment_plan(p["id"], price) for p in get_installment_plans()]
    return jsonify({"plans": plans})


# ── Wishlist ──────────────────────────────────────────────────────────────────
@app.route("/api/wishlist", methods=["POST"])
def wishlist_endpoint():
    """
    Body: {"courses": [...]} (wishlist entries with added_to_wishlist_at)
          or {"course_ids": [...]}, plus optional sort_by / sort_order / category.
    """
    _refresh_data_if_needed()
    body = _json_body()
    if body.get("courses") is not None:
        courses = require_list(body["courses"], "courses")
    else:
        courses = _courses_by_ids(body.get("course_ids") or [])
    ordered = sort_wishlist(
        courses,
        sort_by=str(body.get("sort_by") or "dateAdded"),
        sort_order=str(body.get("sort_order") or "desc"),
        category=str(body.get("category") or "all"),
    )
    return jsonify(_json_safe({"courses": ordered, **wishlist_summary(courses)}))


# -- Canonical API aliases ----------------------------------------------
app.add_url_rule("/api/health", endpoint="api_health", view_func=health_endpoint, methods=["GET"])


# -- API catch-all (404 for unknown /api/* routes) -------------------
@app.route("/api/<path:rest>", methods=["GET", "POST", "PUT", "DELETE", "PATCH"])
def api_catch_all(rest):
    return jsonify({"error": f"/api/{rest} not found"}), 404


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    debug = os.environ.get("FLASK_DEBUG", "1") == "1"
    app.run(host="0.0.0.0", port=port, debug=debug)
