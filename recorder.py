"""Microphone capture adapter."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

from errors import (
    CaptureUnsupportedError,
    DeviceError,
    DeviceNotFoundError,
    PermissionDeniedError,
)
from interfaces import BlockCallback, DeviceErrorCallback
from models import CHANNELS, SAMPLE_RATE

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaptureProfile:
    sample_rate: int = SAMPLE_RATE
    channels: int = CHANNELS
    block_ms: int = 100
    echo_cancellation: bool = True
    noise_suppression: bool = True
    auto_gain_control: bool = True

    @property
    def blocksize(self) -> int:
        return int(self.sample_rate * (self.block_ms / 1000.0))


class SoundDeviceCapture:
    """Float32 input stream; forwards each device block to ``on_block``.

    Blocks are copied out of the PortAudio buffer before being handed
    downstream, so the consumer owns them. If the stream finishes while
    still running (device unplugged, host API abort) ``on_error`` gets a
    ``DeviceNotFoundError`` from a helper thread, so the handler may call
    ``stop``.
    """

    def __init__(self, profile: CaptureProfile | None = None) -> None:
        self.profile = profile or CaptureProfile()
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self._on_block: Optional[BlockCallback] = None
        self._on_error: Optional[DeviceErrorCallback] = None
        self.overflow_count = 0

    @property
    def running(self) -> bool:
        return self._running

    def start(
        self, on_block: BlockCallback, on_error: Optional[DeviceErrorCallback] = None
    ) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None:
                raise CaptureUnsupportedError("sounddevice is not installed")
            self._on_block = on_block
            self._on_error = on_error
            logger.debug(
                "opening input stream rate=%d channels=%d aec=%s ns=%s agc=%s",
                self.profile.sample_rate,
                self.profile.channels,
                self.profile.echo_cancellation,
                self.profile.noise_suppression,
                self.profile.auto_gain_control,
            )
            try:
                stream = sd.InputStream(
                    samplerate=self.profile.sample_rate,
                    channels=self.profile.channels,
                    dtype="float32",
                    blocksize=self.profile.blocksize,
                    callback=self._on_audio,
                    finished_callback=self._on_finished,
                )
                stream.start()
            except Exception as exc:
                self._on_block = None
                self._on_error = None
                raise _to_device_error(exc) from exc
            self._stream = stream
            self._running = True

    def stop(self) -> None:
        with self._lock:
            self._running = False
            stream, self._stream = self._stream, None
            self._on_block = None
            self._on_error = None
        if stream is not None:
            try:
                stream.stop()
            finally:
                stream.close()

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if status:
            self.overflow_count += 1
            logger.warning("input stream status: %s", status)
        on_block = self._on_block
        if not self._running or on_block is None:
            return
        block = np.array(indata, dtype=np.float32, copy=True)
        if block.ndim > 1:
            block = block[:, 0].copy()
        on_block(block)

    def _on_finished(self) -> None:
        # Runs on the PortAudio thread; the stream itself is closed by stop().
        with self._lock:
            if not self._running:
                return
            self._running = False
            on_error, self._on_error = self._on_error, None
            self._on_block = None
        logger.error("input stream finished while recording")
        if on_error is None:
            return
        error = DeviceNotFoundError("input stream stopped unexpectedly")
        threading.Thread(
            target=on_error, args=(error,), name="capture-error", daemon=True
        ).start()


def _to_device_error(exc: Exception) -> DeviceError:
    """Map a PortAudio/sounddevice failure to a DeviceError variant."""
    message = str(exc)
    low = message.lower()
    if "permission" in low or "not authorized" in low or "access denied" in low:
        return PermissionDeniedError(message)
    if (
        "no input device" in low
        or "device unavailable" in low
        or "invalid device" in low
        or "no default input" in low
        or "not found" in low
    ):
        return DeviceNotFoundError(message)
    return CaptureUnsupportedError(message)
