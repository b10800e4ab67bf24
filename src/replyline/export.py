"""CSV and Excel export for the follow-up queue and contact overview."""

from __future__ import annotations

import csv
from pathlib import Path

from replyline.models import ContactSummary

COLUMNS = [
    "id", "name", "email", "company", "title",
    "last_communication_at", "total_event_count", "replied", "eligible_for_followup",
]

FORMATS = ("csv", "excel")


def export_summaries(
    summaries: list[ContactSummary],
    output_path: str,
    fmt: str = "csv",
    sheet_title: str = "Contacts",
) -> str:
    """Write contact summaries to CSV or Excel. Returns the path written."""
    if fmt not in FORMATS:
        raise ValueError(f"Unknown export format: {fmt!r}. Use 'csv' or 'excel'.")

    rows = [s.to_dict() for s in summaries]
    path = Path(output_path)

    if fmt == "excel":
        if path.suffix != ".xlsx":
            path = path.with_suffix(".xlsx")
        return _export_excel(rows, str(path), sheet_title)

    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(COLUMNS)
        for row in rows:
            writer.writerow(["" if row[col] is None else row[col] for col in COLUMNS])

    return str(path)


def _export_excel(rows: list[dict], output_path: str, sheet_title: str) -> str:
    """Export to Excel using openpyxl."""
    from openpyxl import Workbook

    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title

    for col_idx, col_name in enumerate(COLUMNS, 1):
        ws.cell(row=1, column=col_idx, value=col_name)

    for row_idx, row in enumerate(rows, 2):
        for col_idx, col_name in enumerate(COLUMNS, 1):
            ws.cell(row=row_idx, column=col_idx, value=row[col_name])

    wb.save(output_path)
    return output_path
