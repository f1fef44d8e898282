"""
CSV rendering of reports.

Reports passed in must already be scoped to the caller; nothing here
filters by visibility.
"""

import csv
import io
from typing import Iterable, List

from .reports import Report

CSV_COLUMNS = [
    "timestamp",
    "email",
    "name",
    "level",
    "operation",
    "location",
    "description",
    "lat",
    "lng",
]


def reports_to_csv(reports: Iterable[Report]) -> str:
    """
    Render reports as CSV text.

    Fixed columns come first, followed by the union of extra fields in
    sorted order.
    """
    reports = list(reports)
    extra_columns: List[str] = sorted({k for r in reports for k in r.extras} - set(CSV_COLUMNS))

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS + extra_columns)

    for r in reports:
        row = [
            r.timestamp.isoformat(),
            r.email,
            r.name,
            r.level,
            r.operation,
            r.location,
            r.description,
            "" if r.lat is None else r.lat,
            "" if r.lng is None else r.lng,
        ]
        row.extend(r.extras.get(column, "") for column in extra_columns)
        writer.writerow(row)

    return buffer.getvalue()
