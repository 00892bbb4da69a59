"""Global hold-to-talk hotkey based on pynput."""

from __future__ import annotations

import threading
from typing import Callable, Optional

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

Gesture = Callable[[], None]


class HoldHotkey:
    """Turns key-down/key-up of one key into a single press/release pair.

    Auto-repeat key-down events while held are swallowed, and ``release_now``
    lets other signals (focus loss) end the hold without a key-up.
    """

    def __init__(self, hotkey_name: str = "Key.alt_r") -> None:
        self._hotkey_name = hotkey_name
        self._listener: Optional[object] = None
        self._held = False
        self._lock = threading.Lock()
        self._on_press: Optional[Gesture] = None
        self._on_release: Optional[Gesture] = None

    @property
    def held(self) -> bool:
        return self._held

    def start(self, on_press: Gesture, on_release: Gesture) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        self._on_press = on_press
        self._on_release = on_release
        self._listener = keyboard.Listener(
            on_press=self._handle_key_down, on_release=self._handle_key_up
        )
        self._listener.start()

    def stop(self) -> None:
        listener, self._listener = self._listener, None
        if listener is not None:
            listener.stop()
        self.release_now()

    def release_now(self) -> None:
        with self._lock:
            if not self._held:
                return
            self._held = False
        if self._on_release:
            self._on_release()

    def _handle_key_down(self, key: object) -> None:
        if str(key) != self._hotkey_name:
            return
        with self._lock:
            if self._held:
                return
            self._held = True
        if self._on_press:
            self._on_press()

    def _handle_key_up(self, key: object) -> None:
        if str(key) != self._hotkey_name:
            return
        self.release_now()
