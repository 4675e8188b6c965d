"""CLI: importa telemetría del equipo, informa el estado y exporta el historial."""

from __future__ import annotations

import argparse
import logging
from datetime import datetime, timedelta
from pathlib import Path

from dateutil import tz

from rrj_watch.consumption import supply_label
from rrj_watch.excel_writer import (
    ExcelLayout,
    history_export_path,
    write_history_xlsx,
)
from rrj_watch.history import daily_averages, history_log_frame
from rrj_watch.monitor import DashboardMonitor
from rrj_watch.sources.appliance import (
    AppliancePaths,
    ApplianceSource,
    publish_snapshot,
)
from rrj_watch.storage import SQLiteStore

_LOCAL_TZ = tz.tzlocal()

logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed argparse namespace.
    """
    parser = argparse.ArgumentParser(
        description="Estado del acuario y exportación del historial diario."
    )
    parser.add_argument(
        "--db",
        default=str(Path.home() / ".rrj_watch" / "rrj_watch.sqlite3"),
        help="Base SQLite (default: ~/.rrj_watch/rrj_watch.sqlite3).",
    )
    parser.add_argument(
        "--appliance-dir",
        default=None,
        help="Carpeta con telemetry_*.json a importar antes del informe.",
    )
    parser.add_argument(
        "--out-dir",
        default=None,
        help="Carpeta de salida del Excel (default: configuración o ./salidas).",
    )
    parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Días de historial a considerar (default: configuración, 7).",
    )
    return parser.parse_args()


def main() -> int:
    """Run the report CLI.

    Returns:
        Exit code (0 on success).
    """
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    ns = parse_args()
    store = SQLiteStore(Path(ns.db).expanduser().resolve())
    config = store.load_config()

    appliance_root = ns.appliance_dir or config.appliance_root
    if appliance_root:
        src = ApplianceSource(AppliancePaths(root=Path(appliance_root).expanduser()))
        src.validate()
        telemetry_file = src.newest_json()
        snapshot = src.load_snapshot(telemetry_file)
        written = publish_snapshot(store, snapshot)
        logger.info("Imported %d documents from %s", written, telemetry_file)
        print(f"OK: Telemetry file: {telemetry_file}")

    days = ns.days or config.history_days
    monitor = DashboardMonitor(
        store,
        freshness_window=timedelta(minutes=config.freshness_minutes),
        history_limit=days,
    )
    monitor.start()
    state = monitor.state
    monitor.stop()

    for message in state.errors.values():
        print(f"WARN: {message}")
    print(f"Water: {state.safety.message}")
    food_value, food_caption = supply_label(state.supplies.food_days)
    ph_value, ph_caption = supply_label(state.supplies.ph_days)
    print(f"Food container: {food_value} {food_caption}")
    print(f"pH solution: {ph_value} {ph_caption}")
    averages = daily_averages(state.history)
    print(
        "Averages: "
        + ", ".join(
            f"{name}={'--' if value is None else value}"
            for name, value in averages.items()
        )
    )

    logs = history_log_frame(state.history)
    if logs.empty:
        print("No historical logs available.")
        return 0

    out_path = history_export_path(
        ns.out_dir or config.export_dir, datetime.now(tz=_LOCAL_TZ)
    )
    write_history_xlsx(logs, out_path, ExcelLayout())
    print(f"OK: Output: {out_path}")
    return 0
