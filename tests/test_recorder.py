"""Tests for SoundDeviceCapture."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from errors import (
    CaptureUnsupportedError,
    DeviceError,
    DeviceNotFoundError,
    PermissionDeniedError,
)
from recorder import CaptureProfile, SoundDeviceCapture


class _PortAudioError(Exception):
    pass


# ---------------------------------------------------------------
# Basic start / stop
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_start_opens_float32_mono_16k_stream(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream

    capture = SoundDeviceCapture()
    capture.start(lambda block: None)

    kwargs = mock_sd.InputStream.call_args.kwargs
    assert kwargs["samplerate"] == 16000
    assert kwargs["channels"] == 1
    assert kwargs["dtype"] == "float32"
    assert kwargs["blocksize"] == 1600
    mock_stream.start.assert_called_once()

    capture.stop()
    mock_stream.stop.assert_called_once()
    mock_stream.close.assert_called_once()


@patch("recorder.sd")
def test_start_is_idempotent(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    capture = SoundDeviceCapture()
    capture.start(lambda block: None)
    capture.start(lambda block: None)

    assert mock_sd.InputStream.call_count == 1
    capture.stop()


@patch("recorder.sd")
def test_stop_is_idempotent_and_safe_before_start(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream

    capture = SoundDeviceCapture()
    capture.stop()

    capture.start(lambda block: None)
    capture.stop()
    capture.stop()

    mock_stream.close.assert_called_once()
    assert capture.running is False


# ---------------------------------------------------------------
# Audio callback forwards blocks
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_callback_forwards_channel_zero_copy(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()
    blocks: list[np.ndarray] = []

    capture = SoundDeviceCapture(CaptureProfile(block_ms=100))
    capture.start(blocks.append)

    indata = np.full((1600, 1), 0.25, dtype=np.float32)
    capture._on_audio(indata, frames=1600, time_info=None, status=None)
    indata[:] = 0.0

    assert len(blocks) == 1
    assert blocks[0].shape == (1600,)
    assert blocks[0].dtype == np.float32
    assert float(blocks[0][0]) == pytest.approx(0.25)

    capture.stop()


@patch("recorder.sd")
def test_callback_counts_status_flags(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()
    blocks: list[np.ndarray] = []

    capture = SoundDeviceCapture()
    capture.start(blocks.append)
    capture._on_audio(np.zeros((160, 1), dtype=np.float32), 160, None, "input overflow")

    assert capture.overflow_count == 1
    assert len(blocks) == 1
    capture.stop()


@patch("recorder.sd")
def test_callback_after_stop_is_noop(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()
    blocks: list[np.ndarray] = []

    capture = SoundDeviceCapture()
    capture.start(blocks.append)
    capture.stop()

    capture._on_audio(np.zeros((1600, 1), dtype=np.float32), 1600, None, None)
    assert blocks == []


# ---------------------------------------------------------------
# Stream ending underneath a running capture
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_stream_finishing_while_running_reports_device_error(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream
    errors: list[DeviceError] = []
    reported = threading.Event()

    def on_error(error: DeviceError) -> None:
        errors.append(error)
        reported.set()

    capture = SoundDeviceCapture()
    capture.start(lambda block: None, on_error=on_error)
    finished = mock_sd.InputStream.call_args.kwargs["finished_callback"]
    finished()

    assert reported.wait(timeout=2.0)
    assert len(errors) == 1
    assert isinstance(errors[0], DeviceNotFoundError)
    assert capture.running is False

    capture.stop()
    mock_stream.close.assert_called_once()


@patch("recorder.sd")
def test_stream_finishing_after_stop_is_silent(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()
    errors: list[DeviceError] = []

    capture = SoundDeviceCapture()
    capture.start(lambda block: None, on_error=errors.append)
    finished = mock_sd.InputStream.call_args.kwargs["finished_callback"]
    capture.stop()
    finished()

    assert errors == []


# ---------------------------------------------------------------
# Failure mapping
# ---------------------------------------------------------------

def test_start_raises_without_sounddevice(monkeypatch) -> None:  # noqa: ANN001
    import recorder as rec_mod
    monkeypatch.setattr(rec_mod, "sd", None)

    capture = SoundDeviceCapture()
    with pytest.raises(CaptureUnsupportedError, match="sounddevice is not installed"):
        capture.start(lambda block: None)


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("Error opening InputStream: Permission denied", PermissionDeniedError),
        ("No input device matching ''", DeviceNotFoundError),
        ("Error querying device -1: Device unavailable", DeviceNotFoundError),
        ("Error opening InputStream: Invalid sample rate", CaptureUnsupportedError),
    ],
)
@patch("recorder.sd")
def test_open_failure_maps_to_device_error(mock_sd: MagicMock, message: str, expected: type) -> None:
    mock_sd.InputStream.side_effect = _PortAudioError(message)

    capture = SoundDeviceCapture()
    with pytest.raises(expected) as info:
        capture.start(lambda block: None)

    assert isinstance(info.value.__cause__, _PortAudioError)
    assert capture.running is False
