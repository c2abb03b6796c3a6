import copy

import pytest
from catalog_filters import (
    DEFAULT_FILTERS,
    FILTER_PRESETS,
    active_filter_count,
    apply_preset,
    filter_and_sort,
    filters_from_query_params,
    filters_to_query_params,
    get_preset,
    normalize_filters,
    reset_filters,
    toggle_filter_value,
)
from validators import InvalidInputError


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def courses():
    return [
        {"id": "c1", "title": "Foundations of Filmmaking", "description": "Camera basics", "instructor": {"name": "Ama Mensah"},
         "category": "Film & Television", "difficulty": "Beginner", "mode": ["Online", "Hybrid"],
         "price": 2500, "duration": 12, "averageRating": 4.6, "enrollmentCount": 340, "createdAt": "2025-01-10"},
        {"id": "c2", "title": "Cinematography Lab", "description": "Lighting on set", "instructor": {"name": "Kwame Boateng"},
         "category": "Film & Television", "difficulty": "Intermediate", "mode": ["Offline"],
         "price": 4200, "duration": 16, "averageRating": 4.8, "enrollmentCount": 128, "createdAt": "2025-03-02"},
        {"id": "c3", "title": "Animation Essentials", "description": "Keyframes and timing", "instructor": {"name": "Efua Owusu"},
         "category": "Animation & VFX", "difficulty": "Beginner", "mode": ["Online"],
         "price": 1800, "duration": 10, "averageRating": 4.2, "enrollmentCount": 210, "createdAt": "2025-04-18"},
        {"id": "c4", "title": "Photography Basics", "description": "Exposure", "instructor": {"name": "Abena Darko"},
         "category": "Photography", "difficulty": "Beginner", "mode": ["Online", "Offline"],
         "price": 900, "duration": 6, "enrollmentCount": 512, "createdAt": "2024-11-20"},
        {"id": "c5", "title": "Budget Editing", "description": "Cutting on a laptop", "instructor": {"name": "Kofi Adjei"},
         "category": "Production", "difficulty": "Beginner", "mode": ["Online"],
         "price": 1800, "duration": 8, "averageRating": 4.2, "enrollmentCount": 95, "createdAt": "2025-08-14"},
    ]


def _ids(results):
    return [c["id"] for c in results]


def _filters(**overrides):
    state = copy.deepcopy(DEFAULT_FILTERS)
    state.update(overrides)
    return state


# ── Documented scenarios ──────────────────────────────────────────────────────

class TestScenarios:
    COURSE = {"id": "c1", "price": 100, "duration": 4, "category": "Design",
              "difficulty": "Beginner", "mode": ["Online"], "averageRating": 4.5}

    def test_beginner_filter_with_rating_four_keeps_course(self):
        filters = {"search": "", "categories": [], "difficulties": ["Beginner"], "modes": [],
                   "priceRange": [0, 200], "durationRange": [1, 52], "rating": 4,
                   "sortBy": "title", "sortOrder": "asc"}
        assert filter_and_sort([self.COURSE], filters) == [self.COURSE]

    def test_rating_above_course_rating_excludes_it(self):
        filters = {"search": "", "categories": [], "difficulties": ["Beginner"], "modes": [],
                   "priceRange": [0, 200], "durationRange": [1, 52], "rating": 4.6,
                   "sortBy": "title", "sortOrder": "asc"}
        assert filter_and_sort([self.COURSE], filters) == []


# ── Individual filter steps ───────────────────────────────────────────────────

class TestFilterSteps:
    def test_default_filters_keep_everything_sorted_by_title(self, courses):
        assert _ids(filter_and_sort(courses, DEFAULT_FILTERS)) == ["c3", "c5", "c2", "c1", "c4"]

    def test_search_matches_title_case_insensitively(self, courses):
        assert _ids(filter_and_sort(courses, _filters(search="  CINEMA "))) == ["c2"]

    def test_search_matches_description(self, courses):
        assert _ids(filter_and_sort(courses, _filters(search="keyframes"))) == ["c3"]

    def test_search_matches_instructor_name(self, courses):
        assert _ids(filter_and_sort(courses, _filters(search="darko"))) == ["c4"]

    def test_category_filter(self, courses):
        result = filter_and_sort(courses, _filters(categories=["Film & Television"]))
        assert _ids(result) == ["c2", "c1"]

    def test_difficulty_filter(self, courses):
        result = filter_and_sort(courses, _filters(difficulties=["Intermediate"]))
        assert _ids(result) == ["c2"]

    def test_mode_filter_is_intersection(self, courses):
        result = filter_and_sort(courses, _filters(modes=["Offline", "Hybrid"]))
        assert _ids(result) == ["c2", "c1", "c4"]

    def test_price_range_is_inclusive(self, courses):
        result = filter_and_sort(courses, _filters(price_range=[900, 1800]))
        assert _ids(result) == ["c3", "c5", "c4"]

    def test_duration_range_is_inclusive(self, courses):
        result = filter_and_sort(courses, _filters(duration_range=[10, 12]))
        assert _ids(result) == ["c3", "c1"]

    def test_missing_rating_counts_as_zero(self, courses):
        assert "c4" in _ids(filter_and_sort(courses, _filters(rating=0)))
        assert "c4" not in _ids(filter_and_sort(courses, _filters(rating=0.1)))

    def test_inverted_price_range_matches_nothing(self, courses):
        assert filter_and_sort(courses, _filters(price_range=[5000, 100])) == []

    def test_inverted_duration_range_matches_nothing(self, courses):
        assert filter_and_sort(courses, _filters(duration_range=[52, 1])) == []

    def test_partial_filter_state_uses_defaults(self, courses):
        assert _ids(filter_and_sort(courses, {"sortBy": "price"})) == ["c4", "c3", "c5", "c1", "c2"]


# ── Sorting ───────────────────────────────────────────────────────────────────

class TestSorting:
    def test_price_ascending_ties_by_title(self, courses):
        result = filter_and_sort(courses, _filters(sort_by="price"))
        assert _ids(result) == ["c4", "c3", "c5", "c1", "c2"]

    def test_price_descending_still_breaks_ties_by_ascending_title(self, courses):
        result = filter_and_sort(courses, _filters(sort_by="price", sort_order="desc"))
        assert _ids(result) == ["c2", "c1", "c3", "c5", "c4"]

    def test_rating_descending(self, courses):
        result = filter_and_sort(courses, _filters(sort_by="rating", sort_order="desc"))
        assert _ids(result) == ["c2", "c1", "c3", "c5", "c4"]

    def test_enrollments_descending(self, courses):
        result = filter_and_sort(courses, _filters(sort_by="enrollments", sort_order="desc"))
        assert _ids(result) == ["c4", "c1", "c3", "c2", "c5"]

    def test_created_at_descending(self, courses):
        result = filter_and_sort(courses, _filters(sort_by="createdAt", sort_order="desc"))
        assert _ids(result) == ["c5", "c3", "c2", "c1", "c4"]

    def test_title_descending(self, courses):
        result = filter_and_sort(courses, _filters(sort_by="title", sort_order="desc"))
        assert _ids(result) == ["c4", "c1", "c2", "c5", "c3"]

    def test_case_only_title_ties_break_on_exact_title_then_id(self):
        rows = [
            {"id": "b2", "title": "apple", "price": 10},
            {"id": "a1", "title": "Apple", "price": 10},
            {"id": "b1", "title": "apple", "price": 10},
        ]
        for ordering in (rows, rows[::-1]):
            assert _ids(filter_and_sort(ordering, _filters(sort_by="price"))) == ["a1", "b1", "b2"]
            assert _ids(filter_and_sort(ordering, _filters(sort_by="price", sort_order="desc"))) == ["a1", "b1", "b2"]

    def test_unknown_sort_key_falls_back_to_title(self, courses):
        result = filter_and_sort(courses, _filters(sort_by="popularity", sort_order="sideways"))
        assert _ids(result) == ["c3", "c5", "c2", "c1", "c4"]

    def test_output_respects_comparator_for_every_pair(self, courses):
        for sort_by, field in (("price", "price"), ("duration", "duration"), ("enrollments", "enrollmentCount")):
            for order in ("asc", "desc"):
                result = filter_and_sort(courses, _filters(sort_by=sort_by, sort_order=order))
                for a, b in zip(result, result[1:]):
                    if a[field] == b[field]:
                        assert a["title"].lower() <= b["title"].lower()
                    elif order == "asc":
                        assert a[field] < b[field]
                    else:
                        assert a[field] > b[field]


# ── Purity / properties ───────────────────────────────────────────────────────

class TestProperties:
    def test_inputs_not_mutated(self, courses):
        courses_before = copy.deepcopy(courses)
        filters = _filters(search="a", modes=["Online"], sort_by="price", sort_order="desc")
        filters_before = copy.deepcopy(filters)
        filter_and_sort(courses, filters)
        assert courses == courses_before
        assert filters == filters_before

    def test_returns_new_list_of_original_objects(self, courses):
        result = filter_and_sort(courses, DEFAULT_FILTERS)
        assert result is not courses
        assert all(any(r is c for c in courses) for r in result)

    def test_repeated_calls_are_identical(self, courses):
        filters = _filters(difficulties=["Beginner"], sort_by="rating", sort_order="desc")
        assert filter_and_sort(courses, filters) == filter_and_sort(courses, filters)

    def test_refiltering_output_is_stable(self, courses):
        filters = _filters(modes=["Online"], sort_by="price", sort_order="desc")
        once = filter_and_sort(courses, filters)
        assert filter_and_sort(once, filters) == once

    @pytest.mark.parametrize("tightened", [
        {"price_range": [1000, 5000]},
        {"duration_range": [8, 16]},
        {"rating": 4.5},
        {"categories": ["Film & Television"]},
        {"search": "lab"},
    ])
    def test_tightening_never_grows_result(self, courses, tightened):
        loose = filter_and_sort(courses, DEFAULT_FILTERS)
        tight = filter_and_sort(courses, _filters(**tightened))
        assert len(tight) <= len(loose)
        assert set(_ids(tight)) <= set(_ids(loose))

    def test_empty_catalog(self):
        assert filter_and_sort([], DEFAULT_FILTERS) == []


class TestStructuralErrors:
    def test_courses_not_a_list(self):
        with pytest.raises(InvalidInputError):
            filter_and_sort({"id": "c1"}, DEFAULT_FILTERS)

    def test_filters_not_a_mapping(self, courses):
        with pytest.raises(InvalidInputError):
            filter_and_sort(courses, ["title"])

    def test_range_not_a_pair(self, courses):
        with pytest.raises(InvalidInputError):
            filter_and_sort(courses, _filters(price_range=[100]))

    def test_range_not_numeric(self, courses):
        with pytest.raises(InvalidInputError):
            filter_and_sort(courses, _filters(price_range=["cheap", "dear"]))

    def test_course_without_id(self):
        with pytest.raises(InvalidInputError):
            filter_and_sort([{"title": "Orphan"}], DEFAULT_FILTERS)

    def test_course_without_title_is_kept(self):
        untitled = {"id": "c"}
        named = {"id": "a", "title": "Alpha"}
        assert filter_and_sort([named, untitled], DEFAULT_FILTERS) == [untitled, named]


# ── Presets, toggles, counts ──────────────────────────────────────────────────

class TestPresets:
    def test_apply_preset_is_total_replacement(self):
        preset = get_preset("Beginner Friendly")
        state = apply_preset(preset)
        assert state == preset["filters"]
        assert state is not preset["filters"]

    def test_apply_preset_by_name(self):
        assert apply_preset("Popular Courses")["sort_by"] == "enrollments"

    def test_unknown_preset_name(self):
        with pytest.raises(InvalidInputError):
            apply_preset("Cheapest")

    def test_mutating_result_leaves_preset_intact(self):
        state = apply_preset(FILTER_PRESETS[2])
        state["modes"].append("Offline")
        assert FILTER_PRESETS[2]["filters"]["modes"] == ["Online"]

    def test_popular_preset_filters_and_sorts(self, courses):
        result = filter_and_sort(courses, apply_preset("Popular Courses"))
        assert _ids(result) == ["c1", "c3", "c2", "c5"]

    def test_reset_filters_returns_fresh_defaults(self):
        state = reset_filters()
        state["categories"].append("Design")
        assert DEFAULT_FILTERS["categories"] == []


class TestToggleFilterValue:
    def test_adds_then_removes(self):
        on = toggle_filter_value(DEFAULT_FILTERS, "categories", "Design")
        assert on["categories"] == ["Design"]
        off = toggle_filter_value(on, "categories", "Design")
        assert off["categories"] == []
        assert DEFAULT_FILTERS["categories"] == []

    def test_rejects_non_set_key(self):
        with pytest.raises(InvalidInputError):
            toggle_filter_value(DEFAULT_FILTERS, "rating", "4")


class TestActiveFilterCount:
    def test_defaults_count_zero(self):
        assert active_filter_count(DEFAULT_FILTERS) == 0

    def test_sort_settings_do_not_count(self):
        assert active_filter_count(_filters(sort_by="price", sort_order="desc")) == 0

    def test_every_dimension_counts_once(self):
        filters = _filters(
            search="film",
            categories=["Design", "Audio"],
            difficulties=["Beginner"],
            modes=["Online"],
            price_range=[0, 5000],
            duration_range=[2, 52],
            rating=3,
        )
        assert active_filter_count(filters) == 7

    def test_range_wider_than_default_counts(self):
        assert active_filter_count(_filters(price_range=[0, 20000])) == 1

    def test_presets(self):
        assert active_filter_count(apply_preset("Popular Courses")) == 1
        assert active_filter_count(apply_preset("Beginner Friendly")) == 3
        assert active_filter_count(apply_preset("Online Only")) == 1


class TestQueryParams:
    def test_defaults_produce_empty_query(self):
        assert filters_to_query_params(DEFAULT_FILTERS) == {}

    def test_non_defaults_emitted(self):
        params = filters_to_query_params(_filters(
            search="film",
            categories=["Design", "Audio"],
            price_range=[100, 5000],
            rating=4.5,
            sort_by="price",
            sort_order="desc",
        ))
        assert params == {
            "search": "film",
            "categories": "Design,Audio",
            "priceMin": "100",
            "priceMax": "5000",
            "rating": "4.5",
            "sortBy": "price",
            "sortOrder": "desc",
        }

    def test_parse_back(self):
        state = filters_from_query_params({
            "categories": "Design, Audio",
            "durationMin": "4",
            "durationMax": "12",
            "sortBy": "rating",
        })
        assert state["categories"] == ["Design", "Audio"]
        assert state["duration_range"] == [4.0, 12.0]
        assert state["price_range"] == [0, 10000]
        assert state["sort_by"] == "rating"
        assert state["sort_order"] == "asc"

    def test_garbage_numbers_fall_back_to_defaults(self):
        state = filters_from_query_params({"priceMin": "abc", "rating": "lots"})
        assert state["price_range"][0] == 0
        assert state["rating"] == 0

    def test_parsed_state_is_valid_filter_input(self, courses):
        state = filters_from_query_params({"modes": "Offline"})
        assert normalize_filters(state)["modes"] == ["Offline"]
        assert _ids(filter_and_sort(courses, state)) == ["c2", "c4"]
