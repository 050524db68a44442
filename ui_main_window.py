"""
Game Cover Enricher
Main window: load a game list, run the enrichment, review, export and announce.
"""
import sys
import threading
from pathlib import Path
from queue import Queue
from typing import List, Optional

import yaml
from PySide6.QtCore import QMetaObject, QObject, Qt, Signal, Slot
from PySide6.QtWidgets import (
    QApplication, QFileDialog, QHBoxLayout, QLabel, QListWidget, QListWidgetItem,
    QMainWindow, QMessageBox, QPlainTextEdit, QProgressBar, QPushButton, QSplitter,
    QVBoxLayout, QWidget,
)

from activity_log import ActivityLog
from app_config import get_int, load_config, save_ui_preference, section, step_delay_seconds
from app_paths import get_config_path, get_default_export_path
from csv_io import load_games_csv, write_export_csv
from enrichment_engine import EnrichmentEngine
from errors import ConfigError, CoverToolError
from game_models import Item, ItemStatus, RunMode
from notifications import WhatsAppNotifier
from providers import build_providers
from translation import DescriptionTranslator

DARK_STYLESHEET = """
QWidget { background-color: #212529; color: #E9E9E9; }
QPushButton { background-color: #2D3238; border: 1px solid #3A4048; border-radius: 6px; padding: 6px 14px; }
QPushButton:hover { border-color: #00DDFF; }
QPushButton:disabled { color: #6C757D; }
QListWidget, QPlainTextEdit { background-color: #1A1D21; border: 1px solid #3A4048; }
QProgressBar { border: 1px solid #3A4048; border-radius: 6px; text-align: center; }
QProgressBar::chunk { background-color: #00B4D8; border-radius: 6px; }
"""

LIGHT_STYLESHEET = """
QWidget { background-color: #F5F5F7; color: #1D1D1F; }
QPushButton { background-color: #FFFFFF; border: 1px solid #C7C7CC; border-radius: 6px; padding: 6px 14px; }
QPushButton:hover { border-color: #0071E3; }
QPushButton:disabled { color: #AEAEB2; }
QListWidget, QPlainTextEdit { background-color: #FFFFFF; border: 1px solid #C7C7CC; }
QProgressBar { border: 1px solid #C7C7CC; border-radius: 6px; text-align: center; }
QProgressBar::chunk { background-color: #0071E3; border-radius: 6px; }
"""

STATUS_BADGES = {
    ItemStatus.COMPLETED: "✓",
    ItemStatus.NO_RESULTS: "✗",
    ItemStatus.ERRORED: "✗",
    ItemStatus.PENDING: "•",
}


class EngineCallbacks(QObject):
    """Qt signals for engine callbacks."""
    log = Signal(str)
    progress = Signal(int, int)  # done, total
    state = Signal(str)  # RunMode value
    item = Signal(object)  # Item
    finished = Signal(object)  # merged List[Item]
    current_item = Signal(str, int, int)  # name, position, total
    worker_done = Signal(str)  # RunMode value when run() returned


class MainWindow(QMainWindow):
    def __init__(self, config_path: Optional[Path] = None):
        super().__init__()
        self.setWindowTitle("Game Cover Enricher")
        self.setMinimumSize(1100, 750)

        self.config_path = Path(config_path) if config_path else get_config_path()
        self.cfg = self._load_config()
        ui_cfg = section(self.cfg, "ui")
        self._dark_mode = bool(ui_cfg.get("dark_mode", True))

        self.activity = ActivityLog(display_limit=get_int(ui_cfg, "log_display_limit", 50))
        self.items: List[Item] = []
        self._input_path: Optional[Path] = None
        self.results: List[Item] = []
        self.engine: Optional[EnrichmentEngine] = None
        self._worker_thread: Optional[threading.Thread] = None
        self._pending_broker = None
        self._dialog_result: Optional[Queue] = None

        self.signals = EngineCallbacks()
        self.signals.log.connect(self._on_log)
        self.signals.progress.connect(self._on_progress)
        self.signals.state.connect(self._on_state)
        self.signals.item.connect(self._on_item)
        self.signals.finished.connect(self._on_finished)
        self.signals.current_item.connect(self._on_current_item)
        self.signals.worker_done.connect(self._on_worker_done)

        self._setup_ui()
        self._load_theme()
        self._update_buttons(RunMode.IDLE)

    def _load_config(self) -> dict:
        try:
            return load_config(self.config_path)
        except ConfigError as e:
            QMessageBox.warning(self, "Configuration", f"{e}\n\nUsing default settings.")
            return load_config(None)

    def _setup_ui(self):
        central = QWidget()
        self.setCentralWidget(central)
        layout = QVBoxLayout(central)
        layout.setContentsMargins(20, 15, 20, 15)
        layout.setSpacing(10)

        # Header with title and theme toggle
        header_layout = QHBoxLayout()
        title = QLabel("Game Cover Enricher")
        title.setStyleSheet("font-size: 20px; font-weight: bold;")
        header_layout.addWidget(title)
        header_layout.addStretch(1)
        self.btn_theme = QPushButton()
        self.btn_theme.setFixedSize(40, 40)
        self._update_theme_button()
        self.btn_theme.clicked.connect(self._toggle_theme)
        header_layout.addWidget(self.btn_theme)
        layout.addLayout(header_layout)

        # Input file
        file_layout = QHBoxLayout()
        self.btn_load = QPushButton("Load CSV...")
        self.btn_load.clicked.connect(self._load_csv)
        file_layout.addWidget(self.btn_load)
        self.file_label = QLabel("No game list loaded")
        file_layout.addWidget(self.file_label, 1)
        layout.addLayout(file_layout)

        # Run controls
        controls = QHBoxLayout()
        self.btn_start = QPushButton("Start")
        self.btn_start.clicked.connect(self._start)
        self.btn_pause = QPushButton("Pause")
        self.btn_pause.clicked.connect(self._pause)
        self.btn_resume = QPushButton("Resume")
        self.btn_resume.clicked.connect(self._resume)
        self.btn_stop = QPushButton("Stop")
        self.btn_stop.clicked.connect(self._stop)
        self.btn_reset = QPushButton("Reset")
        self.btn_reset.clicked.connect(self._reset)
        for btn in (self.btn_start, self.btn_pause, self.btn_resume, self.btn_stop, self.btn_reset):
            controls.addWidget(btn)
        controls.addStretch(1)
        layout.addLayout(controls)

        self.progress = QProgressBar()
        self.progress.setRange(0, 100)
        self.progress.setValue(0)
        layout.addWidget(self.progress)
        self.status_label = QLabel("Idle")
        layout.addWidget(self.status_label)

        # Results and log side by side
        splitter = QSplitter(Qt.Horizontal)
        results_box = QWidget()
        results_layout = QVBoxLayout(results_box)
        results_layout.setContentsMargins(0, 0, 0, 0)
        results_layout.addWidget(QLabel("Games"))
        self.results_list = QListWidget()
        results_layout.addWidget(self.results_list, 1)
        splitter.addWidget(results_box)

        log_box = QWidget()
        log_layout = QVBoxLayout(log_box)
        log_layout.setContentsMargins(0, 0, 0, 0)
        self.log_header = QLabel("Activity")
        log_layout.addWidget(self.log_header)
        self.log_view = QPlainTextEdit()
        self.log_view.setReadOnly(True)
        log_layout.addWidget(self.log_view, 1)
        splitter.addWidget(log_box)
        splitter.setSizes([450, 650])
        layout.addWidget(splitter, 1)

        # Output actions
        actions = QHBoxLayout()
        actions.addStretch(1)
        self.btn_export = QPushButton("Export CSV...")
        self.btn_export.clicked.connect(self._export_csv)
        actions.addWidget(self.btn_export)
        self.btn_whatsapp = QPushButton("Send to WhatsApp")
        self.btn_whatsapp.setToolTip("Open one pre-filled WhatsApp message per completed game")
        self.btn_whatsapp.clicked.connect(self._send_whatsapp)
        actions.addWidget(self.btn_whatsapp)
        layout.addLayout(actions)

    # ---------- Theme ----------
    def _load_theme(self):
        self.setStyleSheet(DARK_STYLESHEET if self._dark_mode else LIGHT_STYLESHEET)

    def _update_theme_button(self):
        if self._dark_mode:
            self.btn_theme.setText("☀")
            self.btn_theme.setToolTip("Switch to Light Mode")
        else:
            self.btn_theme.setText("🌙")
            self.btn_theme.setToolTip("Switch to Dark Mode")

    def _toggle_theme(self):
        """Toggle between light and dark themes."""
        self._dark_mode = not self._dark_mode
        self._load_theme()
        self._update_theme_button()
        try:
            save_ui_preference(self.config_path, "dark_mode", self._dark_mode)
        except (OSError, yaml.YAMLError) as e:
            self._on_log(f"[ERROR] Failed to save theme preference: {e}")

    # ---------- Input ----------
    def _load_csv(self):
        path, _ = QFileDialog.getOpenFileName(self, "Open game list", "", "CSV files (*.csv)")
        if not path:
            return
        try:
            items = load_games_csv(Path(path))
        except CoverToolError as e:
            QMessageBox.warning(self, "Game list", str(e))
            return

        if self.engine is not None and self.engine.run_mode != RunMode.IDLE:
            self.engine.reset()
        self.engine = None
        self.items = items
        self.results = list(items)
        self._input_path = Path(path)
        self.file_label.setText(f"{Path(path).name}: {len(items)} games")
        self._on_log(f"[INFO] CSV loaded with {len(items)} games")
        self._refresh_results()
        self.progress.setValue(0)
        self._update_buttons(RunMode.IDLE)

    # ---------- Run controls ----------
    def _callbacks(self) -> dict:
        return {
            "log": lambda m: self.signals.log.emit(str(m)),
            "progress": lambda done, total: self.signals.progress.emit(done, total),
            "state": lambda mode: self.signals.state.emit(mode.value),
            "item": lambda item: self.signals.item.emit(item),
            "finished": lambda merged: self.signals.finished.emit(merged),
            "current_item": lambda name, pos, total: self.signals.current_item.emit(name, pos, total),
            "request_disambiguation": self._request_disambiguation,
        }

    def _build_engine(self) -> EnrichmentEngine:
        callbacks = self._callbacks()
        return EnrichmentEngine(
            build_providers(self.cfg, callbacks),
            step_delay=step_delay_seconds(self.cfg),
            callbacks=callbacks,
            translator=DescriptionTranslator.from_config(self.cfg, callbacks),
        )

    def _start(self):
        if not self.items:
            return
        try:
            if self.engine is None:
                self.engine = self._build_engine()
            elif self.engine.run_mode != RunMode.IDLE:
                self.engine.reset()
            self.engine.start(self.items)
        except CoverToolError as e:
            QMessageBox.warning(self, "Cannot start", str(e))
            return
        self.results = list(self.items)
        self._refresh_results()
        self._spawn_worker()

    def _pause(self):
        if self.engine is None:
            return
        try:
            self.engine.pause()
        except CoverToolError as e:
            # The run can finish between the click and the call
            self._on_log(f"[INFO] {e}")

    def _resume(self):
        if self.engine is None:
            return
        try:
            self.engine.resume()
        except CoverToolError as e:
            QMessageBox.warning(self, "Cannot resume", str(e))
            return
        self._spawn_worker()

    def _stop(self):
        if self.engine is not None and self.engine.run_mode not in (RunMode.IDLE, RunMode.STOPPED):
            self.engine.stop()
            self.results = self.engine.results()
            self._refresh_results()

    def _reset(self):
        if self.engine is None:
            return
        self.engine.reset()
        self.results = list(self.items)
        self._refresh_results()
        self.progress.setValue(0)
        self.status_label.setText("Idle")

    def _spawn_worker(self):
        """Run the engine on a worker thread unless one is still going."""
        if self._worker_thread is not None and self._worker_thread.is_alive():
            return
        engine = self.engine

        def _run():
            try:
                mode = engine.run()
            except Exception as e:
                self.signals.log.emit(f"[ERROR] Worker failed: {e}")
                mode = engine.run_mode
            self.signals.worker_done.emit(mode.value)

        self._worker_thread = threading.Thread(target=_run, daemon=True)
        self._worker_thread.start()

    # ---------- Disambiguation ----------
    def _request_disambiguation(self, broker):
        """
        Called from the worker thread. Blocks it until the dialog on the main
        thread has applied a decision through the broker.
        """
        self._pending_broker = broker
        self._dialog_result = Queue()

        # Use QMetaObject.invokeMethod to run on main thread
        QMetaObject.invokeMethod(
            self,
            "_show_selector_on_main_thread",
            Qt.ConnectionType.BlockingQueuedConnection
        )
        self._dialog_result.get()

    @Slot()
    def _show_selector_on_main_thread(self):
        """Show dialog on main thread - called via invokeMethod."""
        from game_selector_dialog import GameSelectorDialog
        broker = self._pending_broker
        try:
            dialog = GameSelectorDialog(broker, parent=self)
            dialog.exec()
        except CoverToolError as e:
            self._on_log(f"[ERROR] Selection failed: {e}")
        finally:
            if not broker.is_resolved and self.engine is not None \
                    and self.engine.run_mode == RunMode.AWAITING_DISAMBIGUATION:
                broker.skip()
            self._dialog_result.put(True)

    # ---------- Engine signals ----------
    def _on_log(self, msg: str):
        entry = self.activity.add(msg)
        # Print to console as well
        print(entry)
        self.log_view.setPlainText("\n".join(self.activity.displayed()))
        self.log_view.verticalScrollBar().setValue(self.log_view.verticalScrollBar().maximum())
        if self.activity.is_truncated:
            self.log_header.setText(f"Activity (last {len(self.activity.displayed())} of {self.activity.total})")
        else:
            self.log_header.setText("Activity")

    def _on_progress(self, done: int, total: int):
        if total > 0:
            pct = int((done / total) * 100)
            self.progress.setValue(pct)
            self.progress.setFormat(f"{done}/{total} ({pct}%)")

    def _on_current_item(self, name: str, position: int, total: int):
        # Truncate long titles for display
        display_name = name if len(name) <= 50 else name[:47] + "..."
        self.status_label.setText(f"Processing {position}/{total}: {display_name}")

    def _on_state(self, mode_value: str):
        mode = RunMode(mode_value)
        self._update_buttons(mode)
        if mode == RunMode.PAUSED:
            self.status_label.setText("Paused")
        elif mode == RunMode.STOPPED:
            self.status_label.setText("Stopped")
        elif mode == RunMode.AWAITING_DISAMBIGUATION:
            self.status_label.setText("Waiting for your selection")

    def _on_item(self, item: Item):
        for index, existing in enumerate(self.results):
            if existing.name == item.name:
                self.results[index] = item
                break
        self._refresh_results()

    def _on_finished(self, merged: List[Item]):
        self.results = list(merged)
        self._refresh_results()
        done = sum(1 for i in merged if i.status == ItemStatus.COMPLETED)
        self.status_label.setText(f"Complete: {done}/{len(merged)} games with data")
        self.progress.setFormat("Complete")
        self.progress.setValue(100)

    def _on_worker_done(self, mode_value: str):
        self._update_buttons(RunMode(mode_value))

    def _refresh_results(self):
        self.results_list.clear()
        for item in self.results:
            text = f"{STATUS_BADGES.get(item.status, '•')} {item.display_name_override or item.name}"
            if item.release_year:
                text += f" ({item.release_year})"
            entry = QListWidgetItem(text)
            entry.setToolTip(item.cover_url or item.status.value)
            self.results_list.addItem(entry)

    def _update_buttons(self, mode: RunMode):
        has_items = bool(self.items)
        self.btn_load.setEnabled(mode in (RunMode.IDLE, RunMode.STOPPED))
        self.btn_start.setEnabled(has_items and mode in (RunMode.IDLE, RunMode.STOPPED))
        self.btn_pause.setEnabled(mode == RunMode.RUNNING)
        self.btn_resume.setEnabled(mode == RunMode.PAUSED)
        self.btn_stop.setEnabled(mode in (RunMode.RUNNING, RunMode.PAUSED, RunMode.AWAITING_DISAMBIGUATION))
        self.btn_reset.setEnabled(self.engine is not None and mode != RunMode.IDLE)
        self.btn_export.setEnabled(has_items and mode != RunMode.RUNNING)
        self.btn_whatsapp.setEnabled(any(i.status == ItemStatus.COMPLETED for i in self.results))

    # ---------- Output ----------
    def _current_results(self) -> List[Item]:
        return self.engine.results() if self.engine is not None else list(self.items)

    def _export_csv(self):
        default = str(get_default_export_path(self._input_path or Path("games.csv")))
        path, _ = QFileDialog.getSaveFileName(self, "Export CSV", default, "CSV files (*.csv)")
        if not path:
            return
        try:
            count = write_export_csv(self._current_results(), Path(path))
        except OSError as e:
            QMessageBox.warning(self, "Export", f"Failed to write {path}: {e}")
            return
        self._on_log(f"[INFO] Exported {count} games to {path}")

    def _send_whatsapp(self):
        notifier = WhatsAppNotifier.from_config(self.cfg, {"log": lambda m: self.signals.log.emit(str(m))})
        notifier.send_all(self._current_results())


def main():
    app = QApplication(sys.argv)
    w = MainWindow()
    w.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
