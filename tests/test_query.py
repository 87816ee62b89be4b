"""Tests for query state transitions and request encoding."""

from datetime import date, datetime

import pytest

from reflex_directory_grid.query import (
    FetchRequest,
    FilterKind,
    QueryState,
    SortSpec,
    describe_filters,
    row_matches,
    total_pages,
    value_matches,
)


class TestTransitions:
    """Every query change returns a new state and resets paging where it must."""

    def test_filter_change_resets_page(self):
        state = QueryState().set_page(4).set_filter("name", "Smith")
        assert state.page == 1
        assert state.filters == {"name": "Smith"}

    def test_sort_change_resets_page(self):
        state = QueryState().set_page(3).set_sort("city")
        assert state.page == 1

    def test_page_size_change_resets_page(self):
        state = QueryState().set_page(3).set_page_size(50)
        assert state.page == 1
        assert state.page_size == 50

    def test_rejects_unknown_page_size(self):
        with pytest.raises(ValueError):
            QueryState().set_page_size(20)
        with pytest.raises(ValueError):
            QueryState(page_size=7)

    def test_transitions_do_not_mutate(self):
        original = QueryState()
        original.set_filter("name", "x")
        assert original.filters == {}

    def test_sort_cycles_asc_desc_none(self):
        state = QueryState().set_sort("name")
        assert state.sort == SortSpec("name", "asc")
        state = state.set_sort("name")
        assert state.sort == SortSpec("name", "desc")
        state = state.set_sort("name")
        assert state.sort is None

    def test_new_sort_field_starts_ascending(self):
        state = QueryState().set_sort("name").set_sort("name").set_sort("city")
        assert state.sort == SortSpec("city", "asc")

    @pytest.mark.parametrize("blank", [None, "", "   ", set(), []])
    def test_empty_filter_value_removes_key(self, blank):
        state = QueryState().set_filter("name", "Smith").set_filter("name", blank)
        assert "name" not in state.filters
        assert FetchRequest.from_state(state).get("name") is None

    def test_clear_filters(self):
        state = QueryState().set_filter("name", "a").set_filter("city", "b").set_page(2)
        cleared = state.clear_filters()
        assert cleared.filters == {}
        assert cleared.page == 1

    def test_datetime_filter_is_kept_as_day(self):
        state = QueryState().set_filter("date", datetime(2024, 3, 5, 14, 30))
        assert state.filters["date"] == date(2024, 3, 5)


class TestPageClamping:

    def test_clamps_to_known_total(self):
        assert QueryState().set_page(7, total_pages=3).page == 3

    def test_never_below_one(self):
        assert QueryState().set_page(0).page == 1
        assert QueryState().set_page(-4, total_pages=2).page == 1

    def test_empty_result_clamps_to_first_page(self):
        assert QueryState().set_page(5, total_pages=0).page == 1

    @pytest.mark.parametrize(
        "count,size,expected",
        [(23, 10, 3), (20, 10, 2), (1, 100, 1), (0, 10, 0)],
    )
    def test_total_pages(self, count, size, expected):
        assert total_pages(count, size) == expected


class TestFetchRequest:
    """Request parameters are a pure, deterministic function of the state."""

    def test_base_parameters(self):
        request = FetchRequest.from_state(QueryState(page=2, page_size=25))
        assert request.params == (("page", "2"), ("limit", "25"))

    def test_sort_parameters(self):
        request = FetchRequest.from_state(QueryState().set_sort("name").set_sort("name"))
        assert request.get("sortBy") == "name"
        assert request.get("sortType") == "desc"

    def test_equal_states_encode_identically(self):
        a = QueryState().set_filter("name", "Smith").set_filter("city", "Austin")
        b = QueryState().set_filter("city", "Austin").set_filter("name", "Smith")
        assert a == b
        assert FetchRequest.from_state(a).query_string() == FetchRequest.from_state(b).query_string()

    def test_filters_follow_field_name_order(self):
        state = QueryState().set_filter("zip", "787").set_filter("city", "Austin")
        names = [name for name, _ in FetchRequest.from_state(state).params[2:]]
        assert names == ["city", "zip"]

    def test_multi_select_repeats_key_in_sorted_order(self):
        state = QueryState().set_filter("type", {"Support", "Meeting"})
        params = FetchRequest.from_state(state).params
        assert params[2:] == (("type", "Meeting"), ("type", "Support"))

    def test_date_encodes_as_iso_day(self):
        state = QueryState().set_filter("date", date(2024, 1, 9))
        assert FetchRequest.from_state(state).get("date") == "2024-01-09"

    def test_query_string(self):
        state = QueryState().set_filter("name", "Ann Lee")
        assert FetchRequest.from_state(state).query_string() == "page=1&limit=10&name=Ann+Lee"

    def test_empty_constructor_filters_are_not_encoded(self):
        state = QueryState(filters={"name": None, "city": "", "zip": "  ", "type": set()})
        assert state.filters == {}
        assert FetchRequest.from_state(state).params == (("page", "1"), ("limit", "10"))

    def test_constructor_filters_are_normalised_like_set_filter(self):
        built = QueryState(filters={"name": " Smith ", "type": ["Meeting"]})
        assert built == QueryState().set_filter("name", "Smith").set_filter("type", {"Meeting"})


class TestValueSemantics:
    """States are immutable, hashable values."""

    def test_equal_states_hash_equal(self):
        a = QueryState().set_filter("type", {"A", "B"}).set_sort("name")
        b = QueryState().set_sort("name").set_filter("type", ["B", "A"])
        assert hash(a) == hash(b)
        assert len({a, b, QueryState()}) == 2

    def test_filters_cannot_be_changed_in_place(self):
        state = QueryState().set_filter("name", "Smith")
        with pytest.raises(TypeError):
            state.filters["city"] = "Austin"
        assert FetchRequest.from_state(state).get("city") is None

    def test_constructor_does_not_alias_callers_dict(self):
        raw = {"name": "Smith"}
        state = QueryState(filters=raw)
        raw["city"] = "Austin"
        assert "city" not in state.filters


class TestDisplayFilters:

    def test_text_is_case_insensitive_substring(self):
        assert value_matches(FilterKind.TEXT, "John SMITH", "smith")
        assert not value_matches(FilterKind.TEXT, "John", "smith")
        assert not value_matches(FilterKind.TEXT, None, "a")

    def test_enum_membership(self):
        assert value_matches(FilterKind.ENUM, "Donor", frozenset({"Donor", "Grant"}))
        assert not value_matches(FilterKind.ENUM, "Volunteer", frozenset({"Donor"}))
        assert value_matches(FilterKind.ENUM, "anything", frozenset())

    def test_date_same_day(self):
        assert value_matches(FilterKind.DATE, "2024-03-05T23:59:00Z", date(2024, 3, 5))
        assert not value_matches(FilterKind.DATE, "2024-03-06", date(2024, 3, 5))
        assert not value_matches(FilterKind.DATE, "", "2024-03-05")

    def test_row_matches_all_filters(self):
        kinds = {"name": FilterKind.TEXT, "type": FilterKind.ENUM}
        state = QueryState().set_filter("name", "ann").set_filter("type", {"Meeting"})
        assert row_matches(state, {"name": "Joanne", "type": "Meeting"}, kinds)
        assert not row_matches(state, {"name": "Joanne", "type": "Other"}, kinds)

    def test_describe_filters(self):
        kinds = {"name": FilterKind.TEXT, "type": FilterKind.ENUM, "date": FilterKind.DATE}
        state = (
            QueryState()
            .set_filter("name", "Smith")
            .set_filter("type", ["Support", "Meeting"])
            .set_filter("date", date(2024, 3, 5))
        )
        assert describe_filters(state, kinds) == [
            "date on 2024-03-05",
            "name contains 'Smith'",
            "type is any of Meeting, Support",
        ]
