from __future__ import annotations

import csv
import io
from typing import Any

from contribforms.utils import to_iso

BASE_HEADERS = ["Submitted At", "Name", "Email"]
EXPORT_FORMATS = {
    "csv": "text/csv",
    "tsv": "text/tab-separated-values",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def response_to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return "; ".join(str(item) for item in value)
    if isinstance(value, dict):
        return str(value.get("url", ""))
    return str(value)


def export_headers_and_rows(
    submissions: list[dict[str, Any]], fields: list[dict[str, Any]]
) -> tuple[list[str], list[list[str]]]:
    headers = BASE_HEADERS + [field.get("label") or field["id"] for field in fields]
    rows: list[list[str]] = []
    for submission in submissions:
        responses = submission.get("responses", {})
        rows.append(
            [
                to_iso(submission["submitted_at"]),
                submission.get("user_name", ""),
                submission.get("user_email", ""),
                *(response_to_text(responses.get(field["id"])) for field in fields),
            ]
        )
    return headers, rows


def render_delimited(headers: list[str], rows: list[list[str]], delimiter: str = ",") -> str:
    output = io.StringIO()
    writer = csv.writer(output, delimiter=delimiter)
    writer.writerow(headers)
    writer.writerows(rows)
    return output.getvalue()


def render_xlsx(headers: list[str], rows: list[list[str]], max_width: int = 50) -> bytes:
    from openpyxl import Workbook

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Responses"
    sheet.append(headers)
    for row in rows:
        sheet.append(row)
    for index, header in enumerate(headers):
        longest = max([len(header), *(len(row[index]) for row in rows)])
        letter = sheet.cell(row=1, column=index + 1).column_letter
        sheet.column_dimensions[letter].width = min(longest + 2, max_width)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
