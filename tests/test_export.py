from datetime import datetime, timezone
import csv
import io
import json

import pytest

from namesearch_service.export import UTF8_BOM, export_results
from namesearch_service.schemas import SearchResult

EXPORTED_AT = datetime(2024, 3, 9, 12, 30, 0, tzinfo=timezone.utc)


def make_result(source, is_exist=True, tags=(), category="social", response_time=120, url=None):
    return SearchResult.model_validate({
        "source": source,
        "username": "alice",
        "url": url or f"https://{source.lower()}.example/alice",
        "category": category,
        "tags": list(tags),
        "checkResult": {
            "status": 200 if is_exist else 404,
            "checkType": "status_code",
            "isExist": is_exist,
            "responseTime": response_time,
        },
    })


RESULTS = [
    make_result("GitHub", tags=["dev", "code"], category="coding"),
    make_result("Twitter", is_exist=False),
    make_result('Say "Hi", Inc', response_time=80, url="https://sayhi.example/alice"),
]


def test_csv_export_contains_only_found_results():
    exported = export_results(RESULTS, "alice", "csv", now=EXPORTED_AT)

    assert exported.filename == "whatsmyname-alice-2024-03-09.csv"
    assert exported.media_type == "text/csv;charset=utf-8"
    assert exported.content.startswith(UTF8_BOM)
    assert not exported.content.endswith("\n")

    rows = list(csv.reader(io.StringIO(exported.content[len(UTF8_BOM):])))
    assert rows == [
        ["Platform", "Username", "URL", "Category", "Tags", "Response Time (ms)"],
        ["GitHub", "alice", "https://github.example/alice", "coding", "dev, code", "120"],
        ['Say "Hi", Inc', "alice", 'https://sayhi.example/alice', "social", "", "80"],
    ]


def test_csv_export_quotes_special_values():
    exported = export_results(RESULTS, "alice", "csv", now=EXPORTED_AT)
    lines = exported.content[len(UTF8_BOM):].split("\n")

    assert lines[1] == 'GitHub,alice,https://github.example/alice,coding,"dev, code",120'
    assert lines[2].startswith('"Say ""Hi"", Inc",alice,')


def test_json_export():
    exported = export_results(RESULTS, "alice", "json", now=EXPORTED_AT)
    document = json.loads(exported.content)

    assert exported.filename == "whatsmyname-alice-2024-03-09.json"
    assert document["username"] == "alice"
    assert document["exportedAt"] == "2024-03-09T12:30:00.000Z"
    assert document["totalResults"] == 2
    assert document["results"][0] == {
        "platform": "GitHub",
        "username": "alice",
        "url": "https://github.example/alice",
        "category": "coding",
        "tags": ["dev", "code"],
        "isNSFW": False,
        "responseTime": 120,
    }


def test_text_export_lists_platform_urls():
    exported = export_results(RESULTS[:2], "alice", "text", now=EXPORTED_AT)

    assert exported.filename == "whatsmyname-alice-2024-03-09.txt"
    assert exported.content == "GitHub: https://github.example/alice"


def test_export_with_nothing_found():
    exported = export_results([make_result("Twitter", is_exist=False)], "alice", "json", now=EXPORTED_AT)

    assert json.loads(exported.content)["results"] == []


def test_unknown_format_is_rejected():
    with pytest.raises(ValueError):
        export_results(RESULTS, "alice", "xml", now=EXPORTED_AT)
