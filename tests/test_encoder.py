"""Tests for PCM16 encoding and the PCMEncoder worker."""

from __future__ import annotations

import math
import threading
import time

import numpy as np
import pytest

from encoder import PCMEncoder, encode_pcm16, encode_sample
from models import AudioFrame


class _FrameSink:
    def __init__(self, expected: int) -> None:
        self.frames: list[AudioFrame] = []
        self._expected = expected
        self.done = threading.Event()

    def __call__(self, frame: AudioFrame) -> None:
        self.frames.append(frame)
        if len(self.frames) >= self._expected:
            self.done.set()


# ---------------------------------------------------------------
# Sample conversion
# ---------------------------------------------------------------

def test_encode_sample_endpoints() -> None:
    assert encode_sample(-1.0) == -32768
    assert encode_sample(1.0) == 32767
    assert encode_sample(0.0) == 0


def test_encode_sample_clamps_out_of_range() -> None:
    assert encode_sample(-3.5) == -32768
    assert encode_sample(2.0) == 32767


@pytest.mark.parametrize("sample", [-0.75, -0.5, -0.001, 0.001, 0.3, 0.5, 0.999])
def test_encode_sample_asymmetric_scaling(sample: float) -> None:
    scaled = sample * 32768 if sample < 0 else sample * 32767
    expected = math.floor(scaled + 0.5)
    assert encode_sample(sample) == expected


def test_encode_sample_rounds_halves_up() -> None:
    assert encode_sample(-3 / 65536) == -1
    assert encode_sample(-1 / 65536) == 0
    assert encode_sample(-5 / 65536) == -2


def test_encode_pcm16_is_little_endian_int16() -> None:
    payload = encode_pcm16(np.array([1.0, -1.0, 0.0], dtype=np.float32))

    assert len(payload) == 6
    assert payload[:2] == b"\xff\x7f"
    assert payload[2:4] == b"\x00\x80"
    assert payload[4:] == b"\x00\x00"


# ---------------------------------------------------------------
# Worker
# ---------------------------------------------------------------

def test_one_frame_per_block_in_order() -> None:
    sink = _FrameSink(expected=20)
    encoder = PCMEncoder()
    encoder.start(sink)

    for i in range(20):
        encoder.submit(np.full(160, i / 100.0, dtype=np.float32))

    assert sink.done.wait(timeout=2.0)
    encoder.stop()

    assert [f.seq for f in sink.frames] == list(range(20))
    for i, frame in enumerate(sink.frames):
        assert frame.sample_rate == 16000
        assert frame.channels == 1
        assert len(frame.pcm16_bytes) == 320
        assert frame.pcm16_bytes == encode_pcm16(np.full(160, i / 100.0, dtype=np.float32))


def test_stop_drains_submitted_blocks() -> None:
    sink = _FrameSink(expected=5)
    encoder = PCMEncoder()
    encoder.start(sink)

    for _ in range(5):
        encoder.submit(np.zeros(160, dtype=np.float32))
    encoder.stop()

    assert len(sink.frames) == 5


def test_control_messages_are_not_encoded() -> None:
    sink = _FrameSink(expected=2)
    encoder = PCMEncoder()
    encoder.start(sink)

    encoder.submit(np.zeros(160, dtype=np.float32))
    encoder.submit({"type": "debug", "level": 0.2})
    encoder.submit("flush")
    encoder.submit(np.zeros(80, dtype=np.float32))

    assert sink.done.wait(timeout=2.0)
    encoder.stop()

    assert [len(f.pcm16_bytes) for f in sink.frames] == [320, 160]


def test_stop_is_idempotent() -> None:
    encoder = PCMEncoder()
    encoder.stop()
    encoder.start(lambda frame: None)
    encoder.stop()
    encoder.stop()


def test_full_queue_counts_overflow() -> None:
    encoder = PCMEncoder(queue_maxsize=2)
    # Not started: nothing drains the queue.
    for _ in range(3):
        encoder.submit(np.zeros(160, dtype=np.float32))

    assert encoder.overflow_blocks == 1


def test_consumer_failure_does_not_stop_worker() -> None:
    received: list[int] = []
    done = threading.Event()

    def flaky(frame: AudioFrame) -> None:
        if frame.seq == 0:
            raise RuntimeError("boom")
        received.append(frame.seq)
        done.set()

    encoder = PCMEncoder()
    encoder.start(flaky)
    encoder.submit(np.zeros(160, dtype=np.float32))
    encoder.submit(np.zeros(160, dtype=np.float32))

    assert done.wait(timeout=2.0)
    encoder.stop()
    assert received == [1]


def test_stop_returns_when_consumer_is_stuck_and_queue_full() -> None:
    release = threading.Event()
    encoder = PCMEncoder(queue_maxsize=1)
    encoder.start(lambda frame: release.wait(timeout=5.0))

    while encoder.overflow_blocks == 0:
        encoder.submit(np.zeros(160, dtype=np.float32))

    started = time.monotonic()
    encoder.stop(timeout_s=0.1)
    elapsed = time.monotonic() - started
    release.set()

    assert elapsed < 1.0
