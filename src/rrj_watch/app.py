"""App Kivy: dashboard en vivo, configuración de automatización y exportación."""

from __future__ import annotations

import traceback
from collections.abc import Callable
from datetime import date, datetime, timedelta
from pathlib import Path

import pandas as pd

from rrj_watch.automation import AutomationController, ScheduleValidationError
from rrj_watch.consumption import clamp_level, supply_label
from rrj_watch.documents import HOURLY_WATER_QUALITY, hourly_point_from_document
from rrj_watch.excel_writer import (
    ExcelLayout,
    history_export_path,
    write_history_xlsx,
)
from rrj_watch.history import (
    daily_averages,
    format_clock,
    history_log_frame,
    hourly_averages,
)
from rrj_watch.model import HourlyPoint
from rrj_watch.monitor import DashboardMonitor, DashboardState
from rrj_watch.safety import DEFAULT_RANGES
from rrj_watch.storage import AppConfig, SQLiteStore

REFRESH_SECONDS = 30
HOURLY_LIMIT = 24


def run_app() -> int:
    """Lanza la app Kivy."""
    from kivy.app import App
    from kivy.clock import Clock
    from kivy.core.window import Window
    from kivy.resources import resource_find
    from kivy.uix.boxlayout import BoxLayout
    from kivy.uix.button import Button
    from kivy.uix.checkbox import CheckBox
    from kivy.uix.filechooser import FileChooserListView
    from kivy.uix.label import Label
    from kivy.uix.popup import Popup
    from kivy.uix.tabbedpanel import TabbedPanel, TabbedPanelItem
    from kivy.uix.textinput import TextInput

    class RRJWatchApp(App):
        """Main Kivy app."""

        def __init__(self, **kwargs: object) -> None:
            super().__init__(**kwargs)
            self.store = SQLiteStore(Path.cwd() / "rrj_watch.sqlite3")
            self.app_config = self.store.load_config()
            self.automation = AutomationController(self.store)
            self.monitor = DashboardMonitor(
                self.store,
                freshness_window=timedelta(minutes=self.app_config.freshness_minutes),
                history_limit=self.app_config.history_days,
            )
            self.hourly: list[HourlyPoint] = []
            self._unsubscribe_hourly = None
            self.water: Label | None = None
            self.containers: Label | None = None
            self.averages: Label | None = None
            self.preview: TextInput | None = None
            self.status: Label | None = None
            self._preview_font = resource_find("data/fonts/RobotoMono-Regular.ttf")

        def build(self) -> BoxLayout:
            Window.bind(on_key_down=self._on_key_down)

            root = BoxLayout(orientation="vertical", spacing=8, padding=10)
            root.add_widget(
                Label(
                    text="RRJ Watch: estado del acuario en vivo.",
                    size_hint_y=None,
                    height=36,
                )
            )

            actions = BoxLayout(
                orientation="horizontal",
                spacing=8,
                size_hint_y=None,
                height=40,
            )
            settings_btn = Button(text="Automatizacion")
            config_btn = Button(text="Configuracion")
            export_btn = Button(text="Exportar Excel")
            exit_btn = Button(text="Salir")
            settings_btn.bind(on_press=self._open_automation_popup)
            config_btn.bind(on_press=self._open_config_popup)
            export_btn.bind(on_press=self._on_export)
            exit_btn.bind(on_press=lambda *_args: self.stop())
            actions.add_widget(settings_btn)
            actions.add_widget(config_btn)
            actions.add_widget(export_btn)
            actions.add_widget(exit_btn)
            root.add_widget(actions)

            self.status = Label(text="", size_hint_y=None, height=30)
            root.add_widget(self.status)

            panels = BoxLayout(
                orientation="horizontal", spacing=8, size_hint_y=None, height=140
            )
            self.water = Label(text="", markup=True, halign="left", valign="top")
            self.containers = Label(text="", halign="left", valign="top")
            self.averages = Label(text="", halign="left", valign="top")
            for label in (self.water, self.containers, self.averages):
                label.bind(size=label.setter("text_size"))
                panels.add_widget(label)
            root.add_widget(panels)

            self.preview = TextInput(
                readonly=True,
                text="",
                multiline=True,
                do_wrap=False,
            )
            if self._preview_font:
                self.preview.font_name = self._preview_font
            root.add_widget(self.preview)

            self.monitor.add_listener(self._render)
            self.monitor.start()
            self._unsubscribe_hourly = self.store.subscribe_recent(
                HOURLY_WATER_QUALITY,
                HOURLY_LIMIT,
                on_change=self._on_hourly,
            )
            Clock.schedule_interval(self._on_tick, REFRESH_SECONDS)
            return root

        def on_stop(self) -> None:
            self.monitor.stop()
            if self._unsubscribe_hourly is not None:
                self._unsubscribe_hourly()

        def _on_tick(self, _dt: float) -> None:
            try:
                self.store.sync()
            except Exception as exc:
                self._show_error("sincronizar", exc)
                return
            # Sin pushes nuevos, el sensor puede haber quedado sin datos.
            self.monitor.refresh()

        def _on_hourly(self, docs: list[dict[str, object]]) -> None:
            self.hourly = [hourly_point_from_document(d) for d in docs]
            self._render(self.monitor.state)

        def _on_key_down(
            self,
            _window: object,
            keycode: int,
            _scancode: int,
            _text: str,
            _modifiers: list[str],
        ) -> bool:
            # Esc: salir de fullscreen o cerrar app.
            if keycode != 27:
                return False
            if Window.fullscreen:
                Window.fullscreen = False
            else:
                self.stop()
            return True

        def _render(self, state: DashboardState) -> None:
            if self.water is not None:
                self.water.text = _water_text(state)
            if self.containers is not None:
                self.containers.text = _containers_text(state)
            if self.averages is not None:
                self.averages.text = _averages_text(state, self.hourly)
            if self.status is not None:
                errors = list(state.errors.values())
                self.status.text = " | ".join(errors) if errors else ""
            self._refresh_preview(state)

        def _refresh_preview(self, state: DashboardState) -> None:
            if self.preview is None:
                return
            logs = history_log_frame(state.history)
            if logs.empty:
                self.preview.text = "No historical logs available."
                return
            self.preview.text = _display_frame(logs).to_string(
                index=False,
                max_colwidth=28,
            )

        def _open_automation_popup(self, _: object) -> None:
            try:
                settings = self.automation.load()
            except Exception as exc:
                self._show_error("leer configuracion", exc)
                return

            panel = TabbedPanel(do_default_tab=False)

            feeding = TabbedPanelItem(text="Alimentador")
            feeding_box = BoxLayout(orientation="vertical", spacing=8, padding=8)
            feeding_box.add_widget(
                self._make_toggle_row(
                    "Automated feeding",
                    settings.feeding_enabled,
                    self.automation.set_feeding_enabled,
                )
            )
            for schedule in settings.schedules:
                feeding_box.add_widget(
                    self._make_schedule_row(
                        schedule.slot,
                        schedule.time.astimezone().strftime("%H:%M")
                        if schedule.time
                        else "",
                        f"{schedule.grams:g}" if schedule.grams > 0 else "",
                    )
                )
            feeding_box.add_widget(
                Label(
                    text="Last triggered: "
                    + (format_clock(settings.feeding_last_triggered) or "N/A"),
                    size_hint_y=None,
                    height=30,
                )
            )
            feeding.add_widget(feeding_box)
            panel.add_widget(feeding)

            balancer = TabbedPanelItem(text="Balanceador pH")
            balancer_box = BoxLayout(orientation="vertical", spacing=8, padding=8)
            balancer_box.add_widget(
                self._make_toggle_row(
                    "pH balancer",
                    settings.ph_balancer_enabled,
                    self.automation.set_ph_balancer_enabled,
                )
            )
            balancer_box.add_widget(
                Label(
                    text="Last triggered: "
                    + (format_clock(settings.ph_last_triggered) or "N/A"),
                    size_hint_y=None,
                    height=30,
                )
            )
            balancer.add_widget(balancer_box)
            panel.add_widget(balancer)

            close_btn = Button(text="Cerrar", size_hint_y=None, height=42)
            content = BoxLayout(orientation="vertical")
            content.add_widget(panel)
            content.add_widget(close_btn)
            popup = Popup(
                title="Automatizacion",
                content=content,
                size_hint=(0.92, 0.92),
            )
            close_btn.bind(on_press=lambda *_args: popup.dismiss())
            popup.open()

        def _make_toggle_row(
            self, label: str, active: bool, action: Callable[[bool], str]
        ) -> BoxLayout:
            row = BoxLayout(orientation="horizontal", size_hint_y=None, height=36)
            chk = CheckBox(active=active, size_hint_x=0.2)

            def on_active(_chk: object, value: bool) -> None:
                self._run_action("actualizar", lambda: action(value))

            chk.bind(active=on_active)
            row.add_widget(chk)
            row.add_widget(Label(text=label))
            return row

        def _make_schedule_row(
            self, slot: int, time_text: str, grams: str
        ) -> BoxLayout:
            row = BoxLayout(orientation="horizontal", size_hint_y=None, height=36)
            row.add_widget(Label(text=f"Schedule {slot}", size_hint_x=0.25))
            time_inp = TextInput(text=time_text, hint_text="HH:MM", multiline=False)
            grams_inp = TextInput(text=grams, hint_text="g", multiline=False)
            row.add_widget(time_inp)
            row.add_widget(grams_inp)
            save_btn = Button(text="Guardar", size_hint_x=0.2)
            clear_btn = Button(text="Borrar", size_hint_x=0.2)
            save_btn.bind(
                on_press=lambda *_args: self._run_action(
                    "guardar horario",
                    lambda: self.automation.update_schedule(
                        slot, time_inp.text, grams_inp.text
                    ),
                )
            )

            def clear(*_args: object) -> None:
                time_inp.text = ""
                grams_inp.text = ""
                self._run_action(
                    "borrar horario", lambda: self.automation.clear_schedule(slot)
                )

            clear_btn.bind(on_press=clear)
            row.add_widget(save_btn)
            row.add_widget(clear_btn)
            return row

        def _run_action(self, action: str, call: Callable[[], str]) -> None:
            try:
                message = call()
            except ScheduleValidationError as exc:
                if self.status is not None:
                    self.status.text = str(exc)
                return
            except Exception as exc:
                self._show_error(action, exc)
                return
            if self.status is not None:
                self.status.text = message

        def _open_config_popup(self, _: object) -> None:
            inputs: dict[str, TextInput] = {}

            def make_row(label: str, key: str, initial: str, browse: bool) -> BoxLayout:
                row = BoxLayout(orientation="horizontal", size_hint_y=None, height=36)
                row.add_widget(Label(text=label, size_hint_x=0.3))
                inp = TextInput(text=initial, multiline=False)
                row.add_widget(inp)
                if browse:
                    browse_btn = Button(text="Browse", size_hint_x=0.2)
                    browse_btn.bind(
                        on_press=lambda *_args: self._open_path_chooser(inp)
                    )
                    row.add_widget(browse_btn)
                inputs[key] = inp
                return row

            config = self.app_config
            box = BoxLayout(orientation="vertical", spacing=8, padding=8)
            box.add_widget(
                make_row("Path salida", "export_dir", config.export_dir, True)
            )
            box.add_widget(
                make_row("Path equipo", "appliance_root", config.appliance_root, True)
            )
            box.add_widget(
                make_row(
                    "Dias historial", "history_days", str(config.history_days), False
                )
            )
            box.add_widget(
                make_row(
                    "Minutos sin datos",
                    "freshness_minutes",
                    str(config.freshness_minutes),
                    False,
                )
            )

            footer = BoxLayout(orientation="horizontal", size_hint_y=None, height=42)
            cancel_btn = Button(text="Cancelar")
            save_btn = Button(text="Guardar")
            footer.add_widget(cancel_btn)
            footer.add_widget(save_btn)
            box.add_widget(footer)

            popup = Popup(title="Configuracion", content=box, size_hint=(0.9, 0.7))
            cancel_btn.bind(on_press=lambda *_args: popup.dismiss())
            save_btn.bind(
                on_press=lambda *_args: self._save_popup_config(popup, inputs)
            )
            popup.open()

        def _open_path_chooser(self, target: TextInput) -> None:
            current = Path(target.text.strip()).expanduser()
            chooser = FileChooserListView(
                path=str(current if current.is_dir() else Path.home()),
                dirselect=True,
            )
            content = BoxLayout(orientation="vertical")
            content.add_widget(chooser)
            popup = Popup(title="Carpeta", content=content, size_hint=(0.9, 0.9))

            def pick(*_args: object) -> None:
                target.text = (chooser.selection or [chooser.path])[0]
                popup.dismiss()

            pick_btn = Button(text="Usar", size_hint_y=None, height=40)
            pick_btn.bind(on_press=pick)
            chooser.bind(on_submit=pick)
            content.add_widget(pick_btn)
            popup.open()

        def _save_popup_config(
            self, popup: Popup, inputs: dict[str, TextInput]
        ) -> None:
            self.app_config = AppConfig(
                export_dir=inputs["export_dir"].text.strip(),
                appliance_root=inputs["appliance_root"].text.strip(),
                history_days=_positive_int(
                    inputs["history_days"].text, self.app_config.history_days
                ),
                freshness_minutes=_positive_int(
                    inputs["freshness_minutes"].text,
                    self.app_config.freshness_minutes,
                ),
            )
            self.store.save_config(self.app_config)
            popup.dismiss()
            if self.status is not None:
                self.status.text = (
                    "Configuracion guardada (historial y ventana aplican al reiniciar)."
                )

        def _on_export(self, _: object) -> None:
            logs = history_log_frame(self.monitor.state.history)
            if logs.empty:
                if self.status is not None:
                    self.status.text = "No historical logs available."
                return
            out_path = history_export_path(self.app_config.export_dir, datetime.now())
            try:
                write_history_xlsx(logs, out_path, ExcelLayout())
            except Exception as exc:
                self._show_error("exportar", exc)
                return
            if self.status is not None:
                self.status.text = f"Excel generado: {out_path}"

        def _show_error(self, action: str, exc: Exception) -> None:
            error_type = type(exc).__name__
            if self.status is not None:
                self.status.text = f"Error al {action} ({error_type}): {exc}"
            if self.preview is not None:
                self.preview.text = traceback.format_exc()

    RRJWatchApp().run()
    return 0


def _format_reading(value: float | None, unit: str = "") -> str:
    if value is None:
        return "--"
    text = f"{value:.1f}"
    return f"{text} {unit}" if unit else text


def _level_band(level: float) -> str:
    """Banda de color del contenedor: >50 alto, >20 medio, resto bajo."""
    if level > 50:
        return "high"
    if level > 20:
        return "medium"
    return "low"


def _water_text(state: DashboardState) -> str:
    reading = state.reading
    color = "3399ff" if state.safety.safe else "ff3333"
    lines = [
        "Live Water Quality",
        "Temperature: "
        + _format_reading(reading.temperature if reading else None, "°C"),
        "Turbidity: "
        + _format_reading(reading.turbidity if reading else None, "NTU"),
        "pH Level: " + _format_reading(reading.ph if reading else None),
        f"[color={color}]{state.safety.message}[/color]",
    ]
    return "\n".join(lines)


def _containers_text(state: DashboardState) -> str:
    lines = ["Container Levels & Supply"]
    food = clamp_level(state.status.food_level if state.status else 0)
    ph = clamp_level(state.status.ph_solution_level if state.status else 0)
    for label, level, days in (
        ("Food Container", food, state.supplies.food_days),
        ("pH Solution", ph, state.supplies.ph_days),
    ):
        value, caption = supply_label(days)
        lines.append(f"{label}: {level:g}% ({_level_band(level)})")
        lines.append(f"  Est. Remaining: {value} {caption}")
    return "\n".join(lines)


def _averages_text(state: DashboardState, hourly: list[HourlyPoint]) -> str:
    daily = daily_averages(state.history)
    last_day = hourly_averages(hourly)
    ranges = DEFAULT_RANGES
    return "\n".join(
        [
            f"{len(state.history)}-Day Averages / 24h",
            f"Avg. Temp: {_format_reading(daily['temperature'])}"
            f" / {_format_reading(last_day['temperature'])} °C"
            f" ({ranges.temperature.min:g}-{ranges.temperature.max:g})",
            f"Avg. Turbidity: {_format_reading(daily['turbidity'])}"
            f" / {_format_reading(last_day['turbidity'])} NTU"
            f" ({ranges.turbidity.min:g}-{ranges.turbidity.max:g})",
            f"Avg. pH: {_format_reading(daily['ph'])}"
            f" / {_format_reading(last_day['ph'])}"
            f" ({ranges.ph.min:g}-{ranges.ph.max:g})",
        ]
    )


def _positive_int(raw: str, default: int) -> int:
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    return value if value > 0 else default


def _display_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Prepare a string-renderable DataFrame for aligned preview."""
    if df.empty:
        return df.copy()
    out = df.copy()
    for col in out.columns:
        out[col] = out[col].map(_format_preview_value)
    return out


def _format_preview_value(value: object) -> str:
    """Texto de una celda del preview: N/A si falta, sin notación científica."""
    if value is None or pd.isna(value):
        return "N/A"
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    if isinstance(value, float):
        return f"{value:g}" if abs(value) < 1e6 else f"{value:.0f}"
    return str(value)
