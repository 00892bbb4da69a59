"""Float32 to PCM16 encoding on a dedicated worker thread."""

from __future__ import annotations

import logging
import threading
import time
from queue import Empty, Full, Queue
from typing import Any, Optional

import numpy as np

from interfaces import FrameCallback
from models import CHANNELS, SAMPLE_RATE, AudioFrame

logger = logging.getLogger(__name__)

_STOP = object()
_POLL_S = 0.1


def encode_pcm16(samples: Any) -> bytes:
    """Clamp to [-1, 1] and scale asymmetrically to int16 little-endian.

    Negative samples scale by 32768 and positive ones by 32767, so the full
    negative range is used without overflowing the positive one. Halves
    round up (``floor(x + 0.5)``), so -1.5 becomes -1 and 1.5 becomes 2.
    """
    data = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0)
    scaled = np.where(data < 0, data * 32768.0, data * 32767.0)
    return np.floor(scaled + 0.5).astype("<i2").tobytes()


def encode_sample(sample: float) -> int:
    return int(np.frombuffer(encode_pcm16([sample]), dtype="<i2")[0])


class PCMEncoder:
    """Encodes submitted sample blocks into AudioFrames, one per block.

    ``submit`` only enqueues and never blocks, so it is safe to call from the
    audio device callback. Frames reach ``on_frame`` from the worker thread
    in submission order.
    """

    def __init__(
        self,
        sample_rate: int = SAMPLE_RATE,
        channels: int = CHANNELS,
        queue_maxsize: int = 512,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self._queue: Queue[Any] = Queue(maxsize=queue_maxsize)
        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._on_frame: Optional[FrameCallback] = None
        self._lock = threading.Lock()
        self._seq = 0
        self.overflow_blocks = 0

    def start(self, on_frame: FrameCallback) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            self._on_frame = on_frame
            self._seq = 0
            self._queue = Queue(maxsize=self._queue.maxsize)
            self._stopping = threading.Event()
            self._thread = threading.Thread(
                target=self._worker,
                args=(self._queue, self._stopping),
                name="pcm-encoder",
                daemon=True,
            )
            self._thread.start()

    def submit(self, block: Any) -> None:
        try:
            self._queue.put_nowait(block)
        except Full:
            self.overflow_blocks += 1
            logger.error("encoder queue full, %d blocks lost", self.overflow_blocks)

    def stop(self, timeout_s: float = 1.0) -> None:
        """Drain what was submitted, then end the worker.

        Never waits longer than about ``timeout_s`` twice over, even when the
        frame consumer is stuck and the queue is full.
        """
        with self._lock:
            thread, self._thread = self._thread, None
        if thread is None:
            return
        self._stopping.set()
        try:
            self._queue.put(_STOP, timeout=timeout_s)
        except Full:
            logger.warning("encoder queue still full at stop, worker left to drain")
        if thread is not threading.current_thread():
            thread.join(timeout=timeout_s)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _worker(self, queue: Queue[Any], stopping: threading.Event) -> None:
        on_frame = self._on_frame
        while True:
            try:
                item = queue.get(timeout=_POLL_S)
            except Empty:
                if stopping.is_set():
                    return
                continue
            if item is _STOP:
                return
            if not isinstance(item, np.ndarray):
                logger.debug("skipping non-audio message on encoder queue: %r", item)
                continue
            frame = AudioFrame(
                pcm16_bytes=encode_pcm16(item),
                sample_rate=self.sample_rate,
                channels=self.channels,
                timestamp_ms=int(time.time() * 1000),
                seq=self._seq,
            )
            self._seq += 1
            if on_frame is None:
                continue
            try:
                on_frame(frame)
            except Exception:
                logger.exception("frame consumer failed on frame %d", frame.seq)
