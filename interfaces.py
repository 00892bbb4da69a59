"""Protocol interfaces used by RecordingSessionController."""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol

from errors import DeviceError
from models import AudioFrame, RecognitionEvent, StreamParams, StreamState

BlockCallback = Callable[[Any], None]
FrameCallback = Callable[[AudioFrame], None]
EventCallback = Callable[[RecognitionEvent], None]
DeviceErrorCallback = Callable[[DeviceError], None]


class AudioCapture(Protocol):
    def start(
        self, on_block: BlockCallback, on_error: Optional[DeviceErrorCallback] = None
    ) -> None: ...

    def stop(self) -> None: ...


class FrameEncoder(Protocol):
    def start(self, on_frame: FrameCallback) -> None: ...

    def submit(self, block: Any) -> None: ...

    def stop(self) -> None: ...


class StreamingClient(Protocol):
    @property
    def state(self) -> StreamState: ...

    def open(self, params: StreamParams, on_event: EventCallback) -> None: ...

    def send(self, frame: AudioFrame) -> None: ...

    def close(self) -> None: ...


class Timer(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[..., Timer]


class ClipboardService(Protocol):
    def copy_text(self, text: str) -> bool: ...


class ConfigStore(Protocol):
    def get_api_key(self) -> str: ...

    def set_api_key(self, key: str) -> None: ...

    def get_hotkey(self) -> str: ...

    def set_hotkey(self, hotkey: str) -> None: ...

    def stream_params(self) -> StreamParams: ...
