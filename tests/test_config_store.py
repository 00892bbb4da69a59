from __future__ import annotations

from pathlib import Path

import pytest

from config import SUPPORTED_LANGUAGES, SUPPORTED_MODELS, JsonConfigStore
from models import StreamParams


def test_config_read_write(tmp_path: Path, monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.delenv("DEEPGRAM_API_KEY", raising=False)
    path = tmp_path / "config.json"
    store = JsonConfigStore(path=path)

    assert store.get_api_key() == ""
    assert store.get_hotkey() == "Key.alt_r"

    store.set_api_key("abc")
    store.set_hotkey("Key.f9")
    store.set_model("nova")
    store.set_language("ja")

    reloaded = JsonConfigStore(path=path)
    assert reloaded.get_api_key() == "abc"
    assert reloaded.get_hotkey() == "Key.f9"
    assert reloaded.stream_params() == StreamParams(model="nova", language="ja")


def test_api_key_falls_back_to_environment(tmp_path: Path, monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setenv("DEEPGRAM_API_KEY", "from-env")
    store = JsonConfigStore(path=tmp_path / "config.json")

    assert store.get_api_key() == "from-env"
    store.set_api_key("from-file")
    assert store.get_api_key() == "from-file"


def test_config_invalid_json_fallback(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{invalid", encoding="utf-8")

    store = JsonConfigStore(path=path)
    assert store.get_hotkey() == "Key.alt_r"
    assert store.stream_params() == StreamParams()


def test_unknown_model_and_language_are_rejected(tmp_path: Path) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")

    with pytest.raises(ValueError):
        store.set_model("whisper-xl")
    with pytest.raises(ValueError):
        store.set_language("tlh")
    assert store.get_model() == "nova-2"


def test_catalogs_cover_defaults() -> None:
    defaults = StreamParams()
    assert defaults.model in SUPPORTED_MODELS
    assert defaults.language in SUPPORTED_LANGUAGES
