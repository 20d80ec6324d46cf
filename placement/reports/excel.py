from __future__ import annotations

from datetime import datetime
from io import BytesIO
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter

from placement.utils.datetime import to_display_tz, utc_now


def _auto_fit(ws) -> None:
    for col in ws.columns:
        max_len = 0
        col_letter = get_column_letter(col[0].column)
        for cell in col:
            v = "" if cell.value is None else str(cell.value)
            max_len = max(max_len, len(v))
        ws.column_dimensions[col_letter].width = min(max(12, max_len + 2), 60)


def _write_table(ws, headers: list[str], rows: list[list[Any]]) -> None:
    ws.append(headers)
    for r in rows:
        ws.append(r)

    ws.freeze_panes = "A2"
    ws.auto_filter.ref = ws.dimensions

    header_font = Font(bold=True)
    for cell in ws[1]:
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center")

    _auto_fit(ws)


def _display(value: Any, tz_name: str) -> str:
    if isinstance(value, datetime):
        return to_display_tz(value, tz_name)
    return ""


def build_applications_workbook(
    *, drive: dict[str, Any], applications: list[dict[str, Any]], funnel: dict[str, Any], timezone_display: str
) -> bytes:
    wb = Workbook()
    wb.remove(wb.active)

    meta = wb.create_sheet("Meta")
    _write_table(
        meta,
        ["key", "value"],
        [
            ["company", drive.get("company", "")],
            ["role", drive.get("role", "")],
            ["process", " > ".join(drive.get("process") or [])],
            ["applicants", len(applications)],
            ["generatedAt", to_display_tz(utc_now(), timezone_display)],
        ],
    )

    apps = wb.create_sheet("Applications")
    rows = [
        [
            a["student"]["email"],
            a["student"]["name"],
            a.get("currentStage", ""),
            a.get("status", ""),
            a.get("nextStep", ""),
            _display(a.get("appliedDate"), timezone_display),
        ]
        for a in applications
    ]
    _write_table(apps, ["email", "name", "stage", "status", "nextStep", "appliedDate"], rows)

    stages = wb.create_sheet("Funnel")
    _write_table(stages, ["stage", "count"], [[r["stage"], r["count"]] for r in funnel["byStage"]])

    with BytesIO() as bio:
        wb.save(bio)
        return bio.getvalue()
