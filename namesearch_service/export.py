"""
Export of found search results as CSV, JSON or plain text
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Literal, Optional, Sequence
import csv
import io
import json

from .schemas import SearchResult

ExportFormat = Literal["csv", "json", "text"]

CSV_HEADERS = ["Platform", "Username", "URL", "Category", "Tags", "Response Time (ms)"]
# Lets spreadsheet applications detect UTF-8
UTF8_BOM = "\ufeff"


@dataclass(frozen=True)
class ExportedFile:
    filename: str
    media_type: str
    content: str


def found_results(results: Sequence[SearchResult]) -> List[SearchResult]:
    return [result for result in results if result.check_result.is_exist]


def to_csv(results: Sequence[SearchResult]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for result in results:
        writer.writerow([
            result.source,
            result.username,
            result.url,
            result.category,
            ", ".join(result.tags or []),
            str(result.check_result.response_time),
        ])
    # No newline after the last row
    return UTF8_BOM + buffer.getvalue().rstrip("\n")


def to_json(results: Sequence[SearchResult], username: str, exported_at: datetime) -> str:
    document = {
        "username": username,
        "exportedAt": exported_at.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "totalResults": len(results),
        "results": [
            {
                "platform": result.source,
                "username": result.username,
                "url": result.url,
                "category": result.category,
                "tags": list(result.tags or []),
                "isNSFW": result.is_nsfw,
                "responseTime": result.check_result.response_time,
            }
            for result in results
        ],
    }
    return json.dumps(document, indent=2, ensure_ascii=False)


def to_text(results: Sequence[SearchResult]) -> str:
    return "\n".join(f"{result.source}: {result.url}" for result in results)


def export_results(
    results: Sequence[SearchResult],
    username: str,
    fmt: ExportFormat = "csv",
    now: Optional[datetime] = None,
) -> ExportedFile:
    """
    Render the found results of a search for download

    Only results whose check found an account are exported.

    Args:
        results: Search results, found and not found
        username: Username the search was for
        fmt: "csv", "json" or "text"
        now: Export time, defaults to the current UTC time

    Raises:
        ValueError: If the format is unknown
    """
    exported_at = now or datetime.now(timezone.utc)
    found = found_results(results)
    stem = f"whatsmyname-{username}-{exported_at.date().isoformat()}"

    if fmt == "csv":
        return ExportedFile(f"{stem}.csv", "text/csv;charset=utf-8", to_csv(found))
    if fmt == "json":
        return ExportedFile(f"{stem}.json", "application/json", to_json(found, username, exported_at))
    if fmt == "text":
        return ExportedFile(f"{stem}.txt", "text/plain;charset=utf-8", to_text(found))
    raise ValueError(f"Unknown export format: {fmt}")
