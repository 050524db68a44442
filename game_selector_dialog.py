"""
Game selector dialog.
Shows the similar games a provider returned for one title, then the covers of
the game the user clicks, and applies the choice through the broker.
"""

import threading
from io import BytesIO
from typing import Dict, List, Optional

import requests
from PIL import Image
from PySide6.QtCore import QObject, Qt, QUrl, Signal
from PySide6.QtGui import QDesktopServices, QPixmap
from PySide6.QtWidgets import (
    QButtonGroup, QDialog, QFrame, QGridLayout, QHBoxLayout, QLabel,
    QLineEdit, QListWidget, QListWidgetItem, QMessageBox, QPushButton, QRadioButton,
    QScrollArea, QSplitter, QVBoxLayout, QWidget,
)

from disambiguation import DisambiguationBroker
from errors import ProviderError
from game_models import Cover, DetailResult
from providers import USER_AGENT

THUMB_SIZE = (150, 225)
THUMB_TIMEOUT_S = 15

# Session-only thumbnail cache, url -> encoded PNG bytes
_thumb_cache: Dict[str, bytes] = {}


def fetch_thumbnail(url: str) -> Optional[bytes]:
    if url in _thumb_cache:
        return _thumb_cache[url]
    try:
        r = requests.get(url, headers={"User-Agent": USER_AGENT}, timeout=THUMB_TIMEOUT_S)
        r.raise_for_status()
        pil_img = Image.open(BytesIO(r.content))
        # Convert to RGB if needed
        if pil_img.mode != 'RGB':
            pil_img = pil_img.convert('RGB')
        pil_img.thumbnail(THUMB_SIZE)
        img_bytes = BytesIO()
        pil_img.save(img_bytes, format='PNG')
    except (requests.RequestException, OSError, ValueError):
        return None
    _thumb_cache[url] = img_bytes.getvalue()
    return _thumb_cache[url]


class SelectorSignals(QObject):
    """Results from the dialog's worker threads, tagged with the request that asked."""
    detail_loaded = Signal(int, object)  # request id, DetailResult
    detail_failed = Signal(int, str)
    thumbnail_ready = Signal(int, int, object)  # request id, cover index, PNG bytes or None


class CoverOption(QFrame):
    """Widget displaying a single cover with radio button. The thumbnail arrives later."""

    def __init__(self, cover: Cover, index: int, parent=None):
        super().__init__(parent)
        self.cover = cover
        self.index = index

        self.setFrameShape(QFrame.Box)
        self.setLineWidth(2)
        self.setStyleSheet("""
            CoverOption {
                border: 2px solid #3A4048;
                border-radius: 8px;
                padding: 6px;
            }
            CoverOption:hover {
                border-color: #00DDFF;
            }
        """)

        layout = QVBoxLayout(self)
        layout.setSpacing(6)

        self.image_label = QLabel("Loading...")
        self.image_label.setFixedSize(*THUMB_SIZE)
        self.image_label.setAlignment(Qt.AlignCenter)
        layout.addWidget(self.image_label, alignment=Qt.AlignCenter)

        info = f"{cover.dimensions}  ·  {cover.score:g}"
        if cover.style:
            info += f"\n{cover.style}"
        info_label = QLabel(info)
        info_label.setAlignment(Qt.AlignCenter)
        layout.addWidget(info_label)

        self.radio = QRadioButton(f"#{index + 1}")
        layout.addWidget(self.radio, alignment=Qt.AlignCenter)

    def set_thumbnail(self, data: Optional[bytes]):
        if data:
            pixmap = QPixmap()
            pixmap.loadFromData(data)
            self.image_label.setPixmap(pixmap)
        else:
            self.image_label.setText("No preview")

    def mousePressEvent(self, event):
        """Allow clicking anywhere on the widget to select it."""
        if event.button() == Qt.LeftButton:
            self.radio.setChecked(True)
        super().mousePressEvent(event)


class GameSelectorDialog(QDialog):
    """
    Modal dialog for one ambiguous title. Closing it any way other than a
    selection, a manual URL or Stop Run skips the title.
    """

    def __init__(self, broker: DisambiguationBroker, parent=None):
        super().__init__(parent)
        self.broker = broker
        self._detail: Optional[DetailResult] = None
        self._cover_widgets: List[CoverOption] = []
        # Bumped on every candidate change; worker results for older ids are dropped
        self._request_id = 0

        # No parent: the workers keep it alive if they outlast the dialog
        self.signals = SelectorSignals()
        self.signals.detail_loaded.connect(self._on_detail_loaded)
        self.signals.detail_failed.connect(self._on_detail_failed)
        self.signals.thumbnail_ready.connect(self._on_thumbnail_ready)

        self.setWindowTitle(f"Select Game - {broker.item.name}")
        self.setMinimumSize(1000, 700)
        self._setup_ui()

    def _setup_ui(self):
        layout = QVBoxLayout(self)
        layout.setSpacing(12)

        provider = self.broker.provider
        source = provider.display_name if provider is not None else self.broker.provider_id
        header = QLabel(f"<b>{self.broker.item.name}</b>")
        header.setStyleSheet("font-size: 16px;")
        layout.addWidget(header)
        info = QLabel(f"No exact match on {source}. {len(self.broker.candidates)} similar game(s), pick one:")
        info.setStyleSheet("color: #B0B0B0;")
        layout.addWidget(info)

        splitter = QSplitter(Qt.Horizontal)

        # Candidates
        left = QWidget()
        left_layout = QVBoxLayout(left)
        left_layout.setContentsMargins(0, 0, 0, 0)
        self.candidate_list = QListWidget()
        for cand in self.broker.candidates:
            text = cand.display_name + (f" ({cand.year})" if cand.year else "")
            entry = QListWidgetItem(text)
            entry.setData(Qt.UserRole, cand.id)
            if cand.description:
                entry.setToolTip(cand.description[:400])
            self.candidate_list.addItem(entry)
        self.candidate_list.currentRowChanged.connect(self._on_candidate_changed)
        left_layout.addWidget(self.candidate_list, 1)
        self.description_label = QLabel("")
        self.description_label.setWordWrap(True)
        self.description_label.setStyleSheet("color: #B0B0B0;")
        left_layout.addWidget(self.description_label)
        splitter.addWidget(left)

        # Covers
        scroll_area = QScrollArea()
        scroll_area.setWidgetResizable(True)
        scroll_area.setFrameShape(QFrame.NoFrame)
        scroll_area.setHorizontalScrollBarPolicy(Qt.ScrollBarAlwaysOff)
        self.grid_widget = QWidget()
        self.grid_layout = QGridLayout(self.grid_widget)
        self.grid_layout.setSpacing(12)
        self.grid_layout.setAlignment(Qt.AlignLeft | Qt.AlignTop)
        scroll_area.setWidget(self.grid_widget)
        splitter.addWidget(scroll_area)
        splitter.setSizes([300, 700])
        layout.addWidget(splitter, 1)

        self.cover_status = QLabel("Select a game to see its covers")
        layout.addWidget(self.cover_status)
        self.button_group = QButtonGroup(self)

        # Manual URL
        manual_layout = QHBoxLayout()
        manual_layout.addWidget(QLabel("Cover URL:"))
        self.url_edit = QLineEdit()
        self.url_edit.setPlaceholderText("https://...")
        manual_layout.addWidget(self.url_edit, 1)
        btn_url = QPushButton("Use URL")
        btn_url.clicked.connect(self._use_manual_url)
        manual_layout.addWidget(btn_url)
        btn_search = QPushButton(f"Search on {source}")
        btn_search.setToolTip("Open the website search in the browser")
        btn_search.clicked.connect(self._open_search_site)
        btn_search.setEnabled(bool(self.broker.search_url()))
        manual_layout.addWidget(btn_search)
        layout.addLayout(manual_layout)

        # Dialog buttons
        button_layout = QHBoxLayout()
        button_layout.addStretch()

        btn_skip = QPushButton("Skip This Game")
        btn_skip.setToolTip("Leave this game without a cover and continue")
        btn_skip.clicked.connect(self.reject)
        button_layout.addWidget(btn_skip)

        self.btn_select = QPushButton("Use Selected Cover")
        self.btn_select.setDefault(True)
        self.btn_select.setEnabled(False)
        self.btn_select.clicked.connect(self.accept)
        button_layout.addWidget(self.btn_select)

        btn_stop = QPushButton("Stop Run")
        btn_stop.setToolTip("Stop processing; the rest of the list stays pending")
        btn_stop.clicked.connect(self._stop_run)
        button_layout.addWidget(btn_stop)

        layout.addLayout(button_layout)

        if self.broker.candidates:
            self.candidate_list.setCurrentRow(0)

    def _clear_covers(self):
        for widget in self._cover_widgets:
            self.button_group.removeButton(widget.radio)
            self.grid_layout.removeWidget(widget)
            widget.deleteLater()
        self._cover_widgets = []

    def _on_candidate_changed(self, row: int):
        self._request_id += 1
        self._clear_covers()
        self._detail = None
        self.btn_select.setEnabled(False)
        if row < 0:
            return
        cand = self.broker.candidates[row]
        self.cover_status.setText(f"Loading covers for {cand.display_name}...")

        request_id = self._request_id
        broker = self.broker
        signals = self.signals

        def _load():
            try:
                detail = broker.load_candidate(cand.id)
            except ProviderError as e:
                signals.detail_failed.emit(request_id, str(e))
                return
            signals.detail_loaded.emit(request_id, detail)

        threading.Thread(target=_load, daemon=True).start()

    def _on_detail_failed(self, request_id: int, message: str):
        if request_id != self._request_id:
            return
        self.cover_status.setText(f"Failed to load covers: {message}")

    def _on_detail_loaded(self, request_id: int, detail: DetailResult):
        if request_id != self._request_id:
            return
        self._detail = detail
        cand = self.broker.candidates[self.candidate_list.currentRow()]

        metadata = detail.metadata
        description = (metadata.description if metadata is not None else None) or cand.description or ""
        self.description_label.setText(description[:600])

        covers = detail.covers
        num_columns = 4
        for i, cover in enumerate(covers):
            widget = CoverOption(cover, i, parent=self.grid_widget)
            self.grid_layout.addWidget(widget, i // num_columns, i % num_columns)
            self.button_group.addButton(widget.radio, i)
            self._cover_widgets.append(widget)

        if self._cover_widgets:
            self._cover_widgets[0].radio.setChecked(True)
            self.cover_status.setText(f"{len(covers)} cover(s) for {cand.display_name}")
            self._load_thumbnails(request_id, [c.thumb_url for c in covers])
        else:
            self.cover_status.setText(f"No covers for {cand.display_name}")
        # Without covers the candidate's year and description can still be taken
        self.btn_select.setEnabled(bool(self._cover_widgets) or metadata is not None)

    def _load_thumbnails(self, request_id: int, urls: List[str]):
        signals = self.signals

        def _fetch():
            for i, url in enumerate(urls):
                if request_id != self._request_id:
                    return
                signals.thumbnail_ready.emit(request_id, i, fetch_thumbnail(url))

        threading.Thread(target=_fetch, daemon=True).start()

    def _on_thumbnail_ready(self, request_id: int, index: int, data: Optional[bytes]):
        if request_id != self._request_id or index >= len(self._cover_widgets):
            return
        self._cover_widgets[index].set_thumbnail(data)

    def _use_manual_url(self):
        url = self.url_edit.text().strip()
        if not url:
            QMessageBox.warning(self, "Cover URL", "Enter a cover URL first.")
            return
        self.broker.manual_url(url)
        super().accept()

    def _open_search_site(self):
        url = self.broker.search_url()
        if url:
            QDesktopServices.openUrl(QUrl(url))

    def _stop_run(self):
        self.broker.stop_run()
        super().reject()

    def accept(self):
        """Apply the selected cover and close."""
        if self._detail is None:
            return
        checked_id = self.button_group.checkedId()
        cover = self._detail.covers[checked_id] if 0 <= checked_id < len(self._detail.covers) else None
        if cover is None and self._detail.metadata is None:
            return
        self.broker.select_cover(cover, self._detail.metadata)
        super().accept()

    def reject(self):
        """Skip unless a decision was already applied."""
        if not self.broker.is_resolved:
            self.broker.skip()
        super().reject()

    def done(self, result):
        # Stops any thumbnail worker still running for this dialog
        self._request_id += 1
        super().done(result)
