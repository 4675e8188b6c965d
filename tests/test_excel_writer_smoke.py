from __future__ import annotations

from datetime import date, datetime, timezone
from pathlib import Path
from typing import cast

from dateutil import tz
from openpyxl import Workbook, load_workbook
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from rrj_watch import history
from rrj_watch.excel_writer import (
    ExcelLayout,
    _format_sheet,
    history_export_path,
    write_history_xlsx,
)
from rrj_watch.history import history_log_frame
from rrj_watch.model import DailyConsumptionRecord, HistoryEntry


def _entries() -> list[HistoryEntry]:
    return [
        HistoryEntry(
            timestamp=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
            temperature=25.25,
            turbidity=3.0,
            ph=7.1,
            feeding_times=(datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc),),
            ph_balancer_triggered=True,
            auto_feeding_enabled=True,
            auto_ph_enabled=True,
            consumption=DailyConsumptionRecord(
                food_level_start=80,
                food_level_end=72,
                ph_level_start=60,
                ph_level_end=58,
            ),
        ),
        HistoryEntry(
            timestamp=datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc),
            temperature=24.8,
            turbidity=None,
            ph=7.0,
        ),
    ]


def test_write_history_xlsx_happy_path_and_formatting(
    tmp_path: Path, monkeypatch
) -> None:
    """Una fila por día, el más reciente primero, con cabeceras legibles."""
    monkeypatch.setattr(history, "_LOCAL_TZ", tz.UTC)
    df = history_log_frame(_entries())
    out = tmp_path / "nested" / "out.xlsx"
    write_history_xlsx(df, out, ExcelLayout())

    wb = load_workbook(out)
    ws = cast(Worksheet, wb[ExcelLayout().sheet_name])

    headers = [cell.value for cell in ws[1]]
    assert headers[0] == "Date"
    assert "Temperature (°C)" in headers
    assert "Feeding Times" in headers
    assert "pH Activity" in headers
    assert "feeding_times" not in headers

    date_cell = ws.cell(row=2, column=1)
    assert date_cell.value.date() == date(2026, 3, 2)
    assert date_cell.number_format == "dd/mm/yyyy"

    times_col = headers.index("Feeding Times") + 1
    assert ws.cell(row=2, column=times_col).value == "No automated feeding"
    assert ws.cell(row=3, column=times_col).value == "08:00 AM"

    activity_col = headers.index("pH Activity") + 1
    assert ws.cell(row=3, column=activity_col).value == "Triggered"

    assert ws.column_dimensions["A"].width == 12
    times_letter = get_column_letter(times_col)
    assert ws.column_dimensions[times_letter].width == 22

    temp_cell = ws.cell(row=3, column=headers.index("Temperature (°C)") + 1)
    assert temp_cell.value == 25.25
    assert temp_cell.number_format == "0.0"
    level_cell = ws.cell(row=3, column=headers.index("Food Level Start") + 1)
    assert level_cell.number_format == "0"

    assert ws.cell(row=1, column=1).font.bold is True
    assert ws.cell(row=1, column=1).fill.start_color.rgb.endswith("3F51B5")


def test_write_history_xlsx_empty_frame_keeps_headers(tmp_path: Path) -> None:
    out = tmp_path / "empty.xlsx"
    write_history_xlsx(history_log_frame([]), out, ExcelLayout(sheet_name="Logs"))
    ws = load_workbook(out)["Logs"]
    assert ws.max_row == 1
    assert ws.cell(row=1, column=1).value == "Date"


def test_format_sheet_handles_missing_headers() -> None:
    wb = Workbook()
    ws = cast(Worksheet, wb.active)
    ws.append(["Solo"])
    ws.append([1])

    _format_sheet(ws)

    assert ws.cell(row=1, column=1).font.bold is True
    assert ws.cell(row=2, column=1).alignment.horizontal == "center"


def test_history_export_path(tmp_path: Path, monkeypatch) -> None:
    now = datetime(2026, 3, 1, 9, 5, 7)
    out = history_export_path(str(tmp_path), now)
    assert out == tmp_path / "historical_logs_2026-03-01_09-05-07.xlsx"

    monkeypatch.chdir(tmp_path)
    assert history_export_path("", now).parent == tmp_path / "salidas"
