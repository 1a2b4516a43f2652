"""Export search results as JSON or CSV text."""

from __future__ import annotations

import csv
import io
import json
from typing import Sequence

from chemsearch.core.schema import SearchResult

EXPORT_FORMATS = ("json", "csv")

CSV_COLUMNS = ("entity_type", "id", "title", "category", "relevance_score", "matched_fields", "url")


def export_results(results: Sequence[SearchResult], fmt: str = "json") -> str:
    fmt = fmt.lower()
    if fmt == "json":
        return json.dumps([r.model_dump(mode="json") for r in results], indent=2)
    if fmt == "csv":
        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerow(CSV_COLUMNS)
        for r in results:
            writer.writerow(
                [
                    r.record.entity_type,
                    r.record.id,
                    r.record.title,
                    r.record.category,
                    f"{r.relevance_score:.4f}",
                    ";".join(r.matched_fields),
                    r.record.url,
                ]
            )
        return buf.getvalue()
    raise ValueError(f"Unsupported export format: {fmt!r} (choose from {', '.join(EXPORT_FORMATS)})")
