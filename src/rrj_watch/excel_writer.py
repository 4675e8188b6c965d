"""Generación de Excel formateado con el historial diario del acuario."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side


@dataclass(frozen=True)
class LogColumn:
    """Cómo se exporta una columna de la tabla de logs."""

    key: str
    header: str
    width: int
    number_format: str | None = None


LOG_SHEET_COLUMNS: tuple[LogColumn, ...] = (
    LogColumn("date", "Date", 12, "dd/mm/yyyy"),
    LogColumn("temperature", "Temperature (°C)", 12, "0.0"),
    LogColumn("turbidity", "Turbidity (NTU)", 12, "0.0"),
    LogColumn("ph", "pH", 8, "0.0"),
    LogColumn("feeding_status", "Feeding Status", 12),
    LogColumn("feeding_times", "Feeding Times", 22),
    LogColumn("ph_balancer_status", "pH Balancer Status", 14),
    LogColumn("ph_activity", "pH Activity", 14),
    LogColumn("food_level_start", "Food Level Start", 10, "0"),
    LogColumn("food_level_end", "Food Level End", 10, "0"),
    LogColumn("ph_level_start", "pH Level Start", 10, "0"),
    LogColumn("ph_level_end", "pH Level End", 10, "0"),
)

_BY_HEADER = {col.header: col for col in LOG_SHEET_COLUMNS}

# Indigo (63, 81, 181)
_HEADER_FILL = PatternFill(fill_type="solid", start_color="3F51B5", end_color="3F51B5")
_HEADER_FONT = Font(bold=True, color="FFFFFF")
_THIN = Side(style="thin")
_BORDER = Border(left=_THIN, right=_THIN, top=_THIN, bottom=_THIN)
_CENTER = Alignment(horizontal="center", vertical="center", wrap_text=True)


@dataclass(frozen=True)
class ExcelLayout:
    """Layout/formatting configuration for the history sheet."""

    sheet_name: str = "Historical logs"


def write_history_xlsx(df: pd.DataFrame, out_path: Path, layout: ExcelLayout) -> None:
    """Write the history log table to a formatted Excel file.

    Args:
        df: Log table as built by ``history_log_frame``.
        out_path: Output path for the XLSX file.
        layout: Excel layout parameters.
    """
    out_path.parent.mkdir(parents=True, exist_ok=True)

    export_df = df.copy()
    if "date" in export_df.columns:
        # Fechas reales para que Excel aplique el formato dd/mm/yyyy
        export_df["date"] = pd.to_datetime(export_df["date"], errors="coerce")
    export_df = export_df.rename(
        columns={col.key: col.header for col in LOG_SHEET_COLUMNS}
    )

    with pd.ExcelWriter(out_path, engine="openpyxl") as writer:
        export_df.to_excel(writer, index=False, sheet_name=layout.sheet_name)
        _format_sheet(writer.book[layout.sheet_name])


def _format_sheet(ws: Any) -> None:
    """Style the header row and body cells, then size and format known columns.

    Headers that are not part of the log table only get borders and
    alignment.

    Args:
        ws: openpyxl worksheet.
    """
    for cell in ws[1]:
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
        cell.alignment = _CENTER
        cell.border = _BORDER

    known: list[tuple[int, LogColumn]] = []
    for idx, cell in enumerate(ws[1]):
        column = _BY_HEADER.get(str(cell.value))
        if column is None:
            continue
        ws.column_dimensions[cell.column_letter].width = column.width
        known.append((idx, column))

    for row in ws.iter_rows(min_row=2):
        for cell in row:
            cell.alignment = _CENTER
            cell.border = _BORDER
        for idx, column in known:
            if column.number_format is not None:
                row[idx].number_format = column.number_format


def history_export_path(export_dir: str, now: datetime) -> Path:
    """Timestamped XLSX path inside ``export_dir`` (``./salidas`` when empty)."""
    base = Path(export_dir).expanduser() if export_dir else Path.cwd() / "salidas"
    return base / f"historical_logs_{now.strftime('%Y-%m-%d_%H-%M-%S')}.xlsx"
