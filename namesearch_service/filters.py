"""
Filtering, sorting and statistics over search results

All functions are pure: inputs are never mutated.
"""
from functools import cmp_to_key
from typing import Dict, List, Sequence

from .domain.models import ResultStats
from .schemas import FilterOptions, SearchResult, SortOptions

OTHER_CATEGORY = "Other"


def filter_results(results: Sequence[SearchResult], options: FilterOptions) -> List[SearchResult]:
    """Keep results matching every active filter, in input order"""
    query = options.search_query.strip().casefold()

    def matches(result: SearchResult) -> bool:
        is_exist = result.check_result.is_exist
        if options.status == "found" and not is_exist:
            return False
        if options.status == "not-found" and is_exist:
            return False
        if options.category and result.category != options.category:
            return False
        if not options.show_nsfw and result.is_nsfw:
            return False
        if query and query not in result.source.casefold():
            return False
        return True

    return [result for result in results if matches(result)]


def _sign(value: float) -> int:
    return (value > 0) - (value < 0)


def compare_sources(a: str, b: str) -> int:
    """Case-insensitive ordering, ties broken on the raw name"""
    key_a, key_b = a.casefold(), b.casefold()
    if key_a != key_b:
        return -1 if key_a < key_b else 1
    return (a > b) - (a < b)


def sort_results(results: Sequence[SearchResult], options: SortOptions) -> List[SearchResult]:
    """
    Return a sorted copy of the results

    The default order puts found results before not-found ones regardless of
    ``order``; descending only reverses the response-time tiebreak.
    """
    descending = options.order == "desc"

    def compare(a: SearchResult, b: SearchResult) -> int:
        if options.sort_by == "response-time":
            comparison = _sign(a.check_result.response_time - b.check_result.response_time)
        elif options.sort_by == "alphabetical":
            comparison = compare_sources(a.source, b.source)
        else:
            if a.check_result.is_exist != b.check_result.is_exist:
                return -1 if a.check_result.is_exist else 1
            comparison = _sign(a.check_result.response_time - b.check_result.response_time)
        return -comparison if descending else comparison

    return sorted(results, key=cmp_to_key(compare))


def get_unique_categories(results: Sequence[SearchResult]) -> List[str]:
    """Distinct non-empty categories, alphabetically"""
    return sorted({result.category for result in results if result.category})


def get_result_stats(results: Sequence[SearchResult]) -> ResultStats:
    total = len(results)
    found = sum(1 for result in results if result.check_result.is_exist)
    nsfw = sum(1 for result in results if result.is_nsfw)
    total_response_time = sum(result.check_result.response_time for result in results)

    category_counts: Dict[str, int] = {}
    for result in results:
        category_counts[result.category] = category_counts.get(result.category, 0) + 1

    return ResultStats(
        total=total,
        found=found,
        not_found=total - found,
        nsfw=nsfw,
        avg_response_time=total_response_time / total if total else 0,
        category_counts=category_counts,
    )


def group_by_category(results: Sequence[SearchResult]) -> Dict[str, List[SearchResult]]:
    """Bucket results by category, uncategorized ones under OTHER_CATEGORY"""
    groups: Dict[str, List[SearchResult]] = {}
    for result in results:
        groups.setdefault(result.category or OTHER_CATEGORY, []).append(result)
    return groups
