"""
WhatsApp announcements for enriched games.

Each completed game becomes one pre-filled wa.me link opened in the browser;
the user still presses send. Runs on its own daemon thread and never touches
engine state.
"""
import threading
import time
import webbrowser
from typing import Any, Callable, Dict, Iterable, List, Optional
from urllib.parse import quote

from activity_log import emit_log
from app_config import get_int, section
from game_models import Item, ItemStatus

DEFAULT_HEADLINE = "🌟🌟🌟 ESTRENO 🌟🌟🌟"
WHATSAPP_URL = "https://wa.me/?text={text}"

GENRE_KEYS = ("genre", "género", "genero")
SIZE_KEYS = ("size", "tamaño", "tamano")


def _extra_value(item: Item, keys: tuple) -> Optional[str]:
    for key, value in item.extra.items():
        if key.strip().lower() in keys and value and value.strip():
            return value.strip()
    return None


def format_announcement(item: Item, headline: str = DEFAULT_HEADLINE) -> str:
    lines = []
    if item.cover_url:
        lines += [item.cover_url, ""]
    lines.append(headline)
    lines.append(f"NOMBRE: {item.display_name_override or item.name}")
    genre = _extra_value(item, GENRE_KEYS)
    if genre:
        lines.append(f"GÉNERO: {genre}")
    size = _extra_value(item, SIZE_KEYS)
    if size:
        lines.append(f"TAMAÑO: {size}")
    if item.release_year:
        lines.append(f"AÑO: {item.release_year}")
    return "\n".join(lines)


def whatsapp_url(message: str) -> str:
    return WHATSAPP_URL.format(text=quote(message, safe=""))


class WhatsAppNotifier:
    def __init__(self, message_delay_s: float = 2.0, headline: str = DEFAULT_HEADLINE,
                 opener: Callable[[str], Any] = webbrowser.open, callbacks=None,
                 sleep: Callable[[float], None] = time.sleep):
        self.message_delay_s = message_delay_s
        self.headline = headline
        self.opener = opener
        self.callbacks = callbacks
        self._sleep = sleep

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], callbacks=None, **kwargs) -> "WhatsAppNotifier":
        nt = section(cfg, "notifications")
        return cls(
            message_delay_s=get_int(nt, "message_delay_ms", 2000) / 1000.0,
            headline=str(nt.get("headline", DEFAULT_HEADLINE)),
            callbacks=callbacks,
            **kwargs,
        )

    def send_all(self, items: Iterable[Item], wait: bool = False) -> int:
        """
        Announce every COMPLETED item, one at a time with a fixed delay.

        Returns the number of announcements queued. With wait=True the call
        blocks until all hand-offs are done.
        """
        completed = [i for i in items if i.status == ItemStatus.COMPLETED]
        if not completed:
            emit_log(self.callbacks, "[INFO] No completed games to announce")
            return 0

        emit_log(self.callbacks, f"[INFO] Sending {len(completed)} messages to WhatsApp...")
        t = threading.Thread(target=self._send_loop, args=(completed,), daemon=True)
        t.start()
        if wait:
            t.join()
        return len(completed)

    def _send_loop(self, items: List[Item]) -> None:
        total = len(items)
        for index, item in enumerate(items, start=1):
            if index > 1 and self.message_delay_s > 0:
                self._sleep(self.message_delay_s)
            try:
                self.opener(whatsapp_url(format_announcement(item, self.headline)))
            except Exception as e:
                emit_log(self.callbacks, f"[ERROR] WhatsApp hand-off failed for {item.name}: {e}")
                continue
            emit_log(self.callbacks, f"[INFO] Message {index}/{total} sent to WhatsApp: {item.name}")
