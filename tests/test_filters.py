import pytest
from pydantic import ValidationError

from namesearch_service.filters import (
    OTHER_CATEGORY,
    filter_results,
    get_result_stats,
    get_unique_categories,
    group_by_category,
    sort_results,
)
from namesearch_service.schemas import FilterOptions, SearchResult, SortOptions


def make_result(source, response_time=100, is_exist=True, category="", is_nsfw=False):
    return SearchResult.model_validate({
        "source": source,
        "username": "alice",
        "url": f"https://{source.lower()}.example/alice",
        "isNSFW": is_nsfw,
        "category": category,
        "tags": [],
        "checkResult": {
            "status": 200 if is_exist else 404,
            "checkType": "status_code",
            "isExist": is_exist,
            "responseTime": response_time,
        },
    })


def sources(results):
    return [result.source for result in results]


def test_filter_found_keeps_relative_order():
    results = [
        make_result("One", is_exist=True),
        make_result("Two", is_exist=False),
        make_result("Three", is_exist=True),
    ]
    options = FilterOptions(status="found", category=None, show_nsfw=True, search_query="")

    assert sources(filter_results(results, options)) == ["One", "Three"]


def test_filter_not_found():
    results = [make_result("One", is_exist=True), make_result("Two", is_exist=False)]
    assert sources(filter_results(results, FilterOptions(status="not-found"))) == ["Two"]


def test_filter_category_nsfw_and_query_combine():
    results = [
        make_result("GitHub", category="coding"),
        make_result("GitLab", category="coding", is_nsfw=True),
        make_result("Reddit", category="social"),
        make_result("Gitee", category="coding"),
    ]
    options = FilterOptions(category="coding", showNSFW=False, searchQuery="  GITH ")

    assert sources(filter_results(results, options)) == ["GitHub"]


def test_filter_result_is_a_subsequence():
    results = [make_result(name, is_exist=i % 2 == 0) for i, name in enumerate("ABCDEF")]
    filtered = filter_results(results, FilterOptions(status="found"))

    positions = [results.index(result) for result in filtered]
    assert positions == sorted(positions)


def test_default_sort_found_first_then_response_time():
    results = [
        make_result("GitHub", 150, True),
        make_result("Twitter", 300, False),
        make_result("Reddit", 200, True),
    ]
    ordered = sort_results(results, SortOptions(sort_by="default", order="asc"))

    assert sources(ordered) == ["GitHub", "Reddit", "Twitter"]


def test_default_sort_desc_keeps_found_first():
    # Descending reverses only the response-time tiebreak, never the found partition
    results = [
        make_result("GitHub", 150, True),
        make_result("Twitter", 300, False),
        make_result("Reddit", 200, True),
        make_result("Mastodon", 50, False),
    ]
    ordered = sort_results(results, SortOptions(sortBy="default", order="desc"))

    assert sources(ordered) == ["Reddit", "GitHub", "Twitter", "Mastodon"]


def test_sort_by_response_time_both_orders():
    results = [make_result("A", 300), make_result("B", 100), make_result("C", 200)]

    assert sources(sort_results(results, SortOptions(sortBy="response-time"))) == ["B", "C", "A"]
    assert sources(sort_results(results, SortOptions(sortBy="response-time", order="desc"))) == ["A", "C", "B"]


def test_sort_alphabetical_is_case_insensitive():
    results = [make_result("reddit"), make_result("GitHub"), make_result("about.me")]

    assert sources(sort_results(results, SortOptions(sortBy="alphabetical"))) == ["about.me", "GitHub", "reddit"]
    assert sources(sort_results(results, SortOptions(sortBy="alphabetical", order="desc"))) == ["reddit", "GitHub", "about.me"]


def test_sort_is_stable_and_does_not_mutate_input():
    results = [make_result("First", 100), make_result("Second", 100), make_result("Third", 50)]
    snapshot = list(results)

    ordered = sort_results(results, SortOptions(sortBy="response-time"))

    assert sources(ordered) == ["Third", "First", "Second"]
    assert results == snapshot


def test_unique_categories_sorted_without_blanks():
    results = [
        make_result("A", category="social"),
        make_result("B", category=""),
        make_result("C", category="coding"),
        make_result("D", category="social"),
    ]
    assert get_unique_categories(results) == ["coding", "social"]


def test_result_stats():
    results = [
        make_result("A", 100, True, "social"),
        make_result("B", 200, False, "social", is_nsfw=True),
        make_result("C", 300, True, "coding"),
    ]
    stats = get_result_stats(results)

    assert stats.total == 3
    assert stats.found == 2
    assert stats.not_found == 1
    assert stats.found + stats.not_found == stats.total
    assert stats.nsfw == 1
    assert stats.avg_response_time == 200
    assert stats.category_counts == {"social": 2, "coding": 1}


def test_result_stats_empty():
    stats = get_result_stats([])
    assert stats.total == 0
    assert stats.avg_response_time == 0
    assert stats.category_counts == {}


def test_group_by_category_uses_other_bucket():
    results = [make_result("A", category="social"), make_result("B"), make_result("C", category="social")]
    groups = group_by_category(results)

    assert sources(groups["social"]) == ["A", "C"]
    assert sources(groups[OTHER_CATEGORY]) == ["B"]


def mixed_results():
    return [
        make_result("GitHub", 150, True, "coding"),
        make_result("twitter", 300, False, "social", is_nsfw=True),
        make_result("Reddit", 200, True, "social"),
        make_result("about.me", 150, False),
        make_result("Gitee", 50, True, "coding", is_nsfw=True),
        make_result("reddit", 200, False, "social"),
    ]


def test_default_filter_options_keep_everything():
    results = mixed_results()

    assert filter_results(results, FilterOptions()) == results
    assert filter_results([], FilterOptions()) == []


@pytest.mark.parametrize("sort_by", ["default", "response-time", "alphabetical"])
@pytest.mark.parametrize("order", ["asc", "desc"])
def test_sort_is_an_idempotent_permutation(sort_by, order):
    results = mixed_results()
    options = SortOptions(sortBy=sort_by, order=order)

    once = sort_results(results, options)
    twice = sort_results(once, options)

    assert twice == once
    assert len(once) == len(results)
    assert sorted(id(result) for result in once) == sorted(id(result) for result in results)


def test_response_time_must_be_a_whole_non_negative_number():
    assert make_result("A", 120).check_result.response_time == 120

    for invalid in (-1, 12.5):
        with pytest.raises(ValidationError):
            make_result("A", invalid)
