"""Simple JSON-based config store and the model/language catalogs."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from models import StreamParams

logger = logging.getLogger(__name__)

SUPPORTED_MODELS = {
    "nova-2": "Nova 2 (Latest)",
    "nova": "Nova",
    "enhanced": "Enhanced",
    "base": "Base",
}

SUPPORTED_LANGUAGES = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "nl": "Dutch",
    "ru": "Russian",
    "ja": "Japanese",
    "zh": "Chinese (Mandarin)",
    "hi": "Hindi",
}

DEFAULTS: dict[str, Any] = {
    "api_key": "",
    "hotkey": "Key.alt_r",
    "model": "nova-2",
    "language": "en",
    "punctuate": True,
    "smart_format": True,
}


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "presstalk" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_api_key(self) -> str:
        value = str(self._get("api_key"))
        return value or os.getenv("DEEPGRAM_API_KEY", "")

    def set_api_key(self, key: str) -> None:
        self._set("api_key", key)

    def get_hotkey(self) -> str:
        return str(self._get("hotkey"))

    def set_hotkey(self, hotkey: str) -> None:
        self._set("hotkey", hotkey)

    def get_model(self) -> str:
        return str(self._get("model"))

    def set_model(self, model: str) -> None:
        if model not in SUPPORTED_MODELS:
            raise ValueError(f"unsupported model: {model}")
        self._set("model", model)

    def get_language(self) -> str:
        return str(self._get("language"))

    def set_language(self, language: str) -> None:
        if language not in SUPPORTED_LANGUAGES:
            raise ValueError(f"unsupported language: {language}")
        self._set("language", language)

    def stream_params(self) -> StreamParams:
        return StreamParams(
            model=self.get_model(),
            language=self.get_language(),
            punctuate=bool(self._get("punctuate")),
            smart_format=bool(self._get("smart_format")),
        )

    def _get(self, key: str) -> Any:
        return self._read_all().get(key, DEFAULTS[key])

    def _set(self, key: str, value: Any) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            logger.warning("config at %s is unreadable, using defaults", self._path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
