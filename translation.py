"""
Optional description localization through the MyMemory public API.

Best effort only: any failure returns the text unchanged.
"""
from typing import Any, Dict, Optional

import requests

from activity_log import emit_log
from app_config import get_int, section

MYMEMORY_URL = "https://api.mymemory.translated.net/get"


class DescriptionTranslator:
    def __init__(self, enabled: bool = False, source_language: str = "en", target_language: str = "es",
                 base_url: str = MYMEMORY_URL, timeout_s: int = 15, max_chars: int = 500, callbacks=None):
        self.enabled = enabled
        self.source_language = source_language
        self.target_language = target_language
        self.base_url = base_url
        self.timeout_s = timeout_s
        self.max_chars = max_chars
        self.callbacks = callbacks

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], callbacks=None) -> "DescriptionTranslator":
        tr = section(cfg, "translation")
        return cls(
            enabled=bool(tr.get("enabled", False)),
            source_language=str(tr.get("source_language", "en")),
            target_language=str(tr.get("target_language", "es")),
            base_url=tr.get("base_url", MYMEMORY_URL),
            timeout_s=get_int(tr, "request_timeout_seconds", 15),
            max_chars=get_int(tr, "max_chars", 500),
            callbacks=callbacks,
        )

    def translate(self, text: Optional[str]) -> Optional[str]:
        """Translated text, or the input unchanged when disabled or on any failure."""
        if not self.enabled or not text or not text.strip():
            return text

        params = {
            "q": text[:self.max_chars],
            "langpair": f"{self.source_language}|{self.target_language}",
        }
        try:
            r = requests.get(self.base_url, params=params, timeout=self.timeout_s)
            r.raise_for_status()
            data = r.json()
            translated = (data.get("responseData") or {}).get("translatedText")
        except (requests.RequestException, ValueError, AttributeError) as e:
            emit_log(self.callbacks, f"[DEBUG] Translation failed, keeping original text: {e}")
            return text

        if not translated or not str(translated).strip():
            emit_log(self.callbacks, "[DEBUG] Translation returned nothing, keeping original text")
            return text
        return str(translated)
