"""State-machine based recording session orchestration."""

from __future__ import annotations

import functools
import logging
import threading
import time
from dataclasses import replace
from datetime import datetime
from queue import Queue
from typing import Any, Callable, Optional

from accumulator import TranscriptAccumulator
from errors import (
    ASR_PROTOCOL_ERROR,
    ERROR_MESSAGES,
    HOLD_TOO_SHORT,
    DeviceError,
    TranscriptionError,
)
from history import TranscriptHistory
from interfaces import AudioCapture, FrameEncoder, StreamingClient, Timer, TimerFactory
from models import (
    HistoryEntry,
    RecognitionEvent,
    RecognitionKind,
    RecordingSession,
    SessionState,
    StreamParams,
)

logger = logging.getLogger(__name__)

StateCallback = Callable[[SessionState, SessionState], None]
TranscriptCallback = Callable[[str, str, float], None]
NoticeCallback = Callable[[Optional[str]], None]
ErrorCallback = Callable[[str, str], None]
HistoryCallback = Callable[[tuple[HistoryEntry, ...]], None]

DEBOUNCE_S = 0.25
NOTICE_S = 3.0


class RecordingSessionController:
    """Press-and-hold recording sessions, one at a time.

    ``press`` arms a debounce timer; only when it elapses are the microphone
    and the streaming connection acquired. ``release`` either disarms (too
    short, nothing acquired) or stops the running session and commits its
    final text to history. Capture, encoder and client are built fresh for
    every session from the given factories.
    """

    def __init__(
        self,
        capture_factory: Callable[[], AudioCapture],
        encoder_factory: Callable[[], FrameEncoder],
        client_factory: Callable[[], StreamingClient],
        params: Optional[StreamParams] = None,
        history: Optional[TranscriptHistory] = None,
        debounce_s: float = DEBOUNCE_S,
        notice_s: float = NOTICE_S,
        timer_factory: TimerFactory = threading.Timer,
        clock: Callable[[], float] = time.time,
        on_state_change: Optional[StateCallback] = None,
        on_transcript: Optional[TranscriptCallback] = None,
        on_notice: Optional[NoticeCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_history: Optional[HistoryCallback] = None,
    ) -> None:
        self._capture_factory = capture_factory
        self._encoder_factory = encoder_factory
        self._client_factory = client_factory
        self._params = params or StreamParams()
        self._history = history or TranscriptHistory()
        self._debounce_s = debounce_s
        self._notice_s = notice_s
        self._timer_factory = timer_factory
        self._clock = clock
        self._on_state_change = on_state_change
        self._on_transcript = on_transcript
        self._on_notice = on_notice
        self._on_error = on_error
        self._on_history = on_history

        self._lock = threading.RLock()
        self._accumulator = TranscriptAccumulator()
        self._session = RecordingSession()
        self._session_id = 0
        self._notice_id = 0
        self._debounce_timer: Optional[Timer] = None
        self._notice_timer: Optional[Timer] = None
        self._capture: Optional[AudioCapture] = None
        self._encoder: Optional[FrameEncoder] = None
        self._client: Optional[StreamingClient] = None

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def session(self) -> RecordingSession:
        with self._lock:
            return replace(self._session)

    @property
    def history(self) -> tuple[HistoryEntry, ...]:
        return self._history.entries

    @property
    def params(self) -> StreamParams:
        return self._params

    def update_settings(self, **changes: Any) -> None:
        """Apply model/language/flag changes to the next session."""
        with self._lock:
            self._params = replace(self._params, **changes)

    # ------------------------------------------------------------------
    # Gestures
    # ------------------------------------------------------------------

    def press(self) -> bool:
        with self._lock:
            if self._session.state != SessionState.IDLE:
                return False
            self._dismiss_notice()
            self._session_id += 1
            self._session = replace(self._session, armed_at=self._clock())
            self._transition(SessionState.ARMING)
            self._debounce_timer = self._start_timer(
                self._debounce_s, self._on_debounce_elapsed, self._session_id
            )
            return True

    def release(self) -> Optional[HistoryEntry]:
        with self._lock:
            state = self._session.state
            if state == SessionState.ARMING:
                self._cancel_debounce()
                self._transition(SessionState.IDLE)
                self._show_notice(ERROR_MESSAGES[HOLD_TOO_SHORT])
                return None
            if state != SessionState.RECORDING:
                return None
            self._transition(SessionState.STOPPING)
            resources = self._detach_resources()

        self._release_resources(*resources)

        with self._lock:
            session = self._session
            entry = self._history.commit(
                session.final_text,
                session.confidence,
                timestamp=datetime.fromtimestamp(self._clock()),
            )
            self._session = replace(session, live_text="")
            self._emit_transcript()
            self._transition(SessionState.IDLE)
            if entry is not None:
                self._emit_history()
            return entry

    def clear(self) -> None:
        with self._lock:
            self._session = self._accumulator.clear(self._session)
            self._emit_transcript()

    def clear_history(self) -> None:
        self._history.clear()
        self._emit_history()

    def shutdown(self) -> None:
        """Drop any session in progress without committing history."""
        with self._lock:
            self._dismiss_notice()
            state = self._session.state
            if state == SessionState.ARMING:
                self._cancel_debounce()
                self._transition(SessionState.IDLE)
                return
            if state != SessionState.RECORDING:
                return
            self._transition(SessionState.STOPPING)
            resources = self._detach_resources()
        self._release_resources(*resources)
        with self._lock:
            self._transition(SessionState.IDLE)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _on_debounce_elapsed(self, session_id: int) -> None:
        with self._lock:
            if session_id != self._session_id or self._session.state != SessionState.ARMING:
                return
            self._debounce_timer = None
            self._session = self._accumulator.clear(self._session)
            self._transition(SessionState.RECORDING)
            self._emit_transcript()
            capture = self._capture = self._capture_factory()
            encoder = self._encoder = self._encoder_factory()
            client = self._client = self._client_factory()
            params = self._params
        self._begin_recording(session_id, capture, encoder, client, params)

    def _begin_recording(
        self,
        session_id: int,
        capture: AudioCapture,
        encoder: FrameEncoder,
        client: StreamingClient,
        params: StreamParams,
    ) -> None:
        # Runs without the lock: the handshake may take up to the open timeout.
        failure: Optional[tuple[str, str]] = None
        try:
            encoder.start(client.send)
            capture.start(
                encoder.submit, functools.partial(self._handle_capture_error, session_id)
            )
            client.open(params, functools.partial(self._handle_stream_event, session_id))
        except TranscriptionError as exc:
            logger.warning("session %d failed to start: %s", session_id, exc.message)
            failure = (exc.code, exc.message)
        except Exception as exc:
            logger.exception("session %d failed to start", session_id)
            failure = (ASR_PROTOCOL_ERROR, f"start failed: {exc}")

        with self._lock:
            current = session_id == self._session_id and self._client is client
        if not current:
            logger.info("session %d ended while starting", session_id)
            self._release_resources(capture, encoder, client)
            return
        if failure is not None:
            self._fail(session_id, *failure)

    def _handle_capture_error(self, session_id: int, error: DeviceError) -> None:
        logger.warning("session %d lost its input device: %s", session_id, error.message)
        self._fail(session_id, error.code, error.message)

    def _handle_stream_event(self, session_id: int, event: RecognitionEvent) -> None:
        with self._lock:
            if session_id != self._session_id:
                return
            state = self._session.state
            kind = event.kind
            if kind == RecognitionKind.RESULT.value and event.segment is not None:
                # Results flushed while stopping still count.
                if state not in (SessionState.RECORDING, SessionState.STOPPING):
                    return
                self._session = self._accumulator.apply(self._session, event.segment)
                self._emit_transcript()
                return
            if state != SessionState.RECORDING:
                return
            if kind == RecognitionKind.CLOSED.value and not event.code:
                logger.info("session %d: stream ended by the service", session_id)
                return
        if kind in (RecognitionKind.ERROR.value, RecognitionKind.CLOSED.value):
            self._fail(session_id, event.code or ASR_PROTOCOL_ERROR, event.message)

    def _fail(self, session_id: int, code: str, message: str) -> None:
        with self._lock:
            if session_id != self._session_id or self._session.state != SessionState.RECORDING:
                return
            resources = self._detach_resources()
            self._transition(SessionState.IDLE)
            self._session = self._accumulator.clear(self._session)
            self._emit_transcript()
            self._emit_error(code, message)
        self._release_resources(*resources)

    def _detach_resources(
        self,
    ) -> tuple[Optional[AudioCapture], Optional[FrameEncoder], Optional[StreamingClient]]:
        resources = (self._capture, self._encoder, self._client)
        self._capture = self._encoder = self._client = None
        return resources

    def _release_resources(
        self,
        capture: Optional[AudioCapture],
        encoder: Optional[FrameEncoder],
        client: Optional[StreamingClient],
    ) -> None:
        if capture is not None:
            self._safe_call("capture stop", capture.stop)
        if encoder is not None:
            self._safe_call("encoder stop", encoder.stop)
        if client is not None:
            self._safe_call("client close", client.close)

    @staticmethod
    def _safe_call(what: str, fn: Callable[[], None]) -> None:
        try:
            fn()
        except Exception:
            logger.warning("%s failed", what, exc_info=True)

    def _start_timer(self, interval: float, fn: Callable[..., None], *args: Any) -> Timer:
        timer = self._timer_factory(interval, fn, args=args)
        timer.daemon = True  # type: ignore[attr-defined]
        timer.start()
        return timer

    def _cancel_debounce(self) -> None:
        timer, self._debounce_timer = self._debounce_timer, None
        if timer is not None:
            timer.cancel()

    def _show_notice(self, text: str) -> None:
        self._dismiss_notice()
        self._notice_id += 1
        if self._on_notice:
            self._on_notice(text)
        self._notice_timer = self._start_timer(
            self._notice_s, self._on_notice_elapsed, self._notice_id
        )

    def _dismiss_notice(self) -> None:
        timer, self._notice_timer = self._notice_timer, None
        if timer is None:
            return
        timer.cancel()
        if self._on_notice:
            self._on_notice(None)

    def _on_notice_elapsed(self, notice_id: int) -> None:
        with self._lock:
            if notice_id != self._notice_id or self._notice_timer is None:
                return
            self._notice_timer = None
            if self._on_notice:
                self._on_notice(None)

    def _emit_transcript(self) -> None:
        if self._on_transcript:
            session = self._session
            self._on_transcript(session.final_text, session.live_text, session.confidence)

    def _emit_error(self, code: str, message: str) -> None:
        if self._on_error:
            self._on_error(code, message)

    def _emit_history(self) -> None:
        if self._on_history:
            self._on_history(self._history.entries)

    def _transition(self, to_state: SessionState) -> None:
        from_state = self._session.state
        if from_state == to_state:
            return
        self._session.state = to_state
        logger.debug("session %d: %s -> %s", self._session_id, from_state.value, to_state.value)
        if self._on_state_change:
            self._on_state_change(from_state, to_state)


class GestureQueue:
    """Runs press/release calls one at a time, in the order they arrived.

    Release may block on device and socket teardown, so gestures are kept
    off the UI and hotkey threads; a single worker keeps a quick click's
    release from landing after the next press.
    """

    def __init__(self) -> None:
        self._queue: Queue[Optional[Callable[[], Any]]] = Queue()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._worker, name="gestures", daemon=True)
        self._thread.start()

    def submit(self, fn: Callable[[], Any]) -> None:
        self._queue.put(fn)

    def stop(self, timeout_s: float = 5.0) -> None:
        thread, self._thread = self._thread, None
        if thread is None:
            return
        self._queue.put(None)
        thread.join(timeout=timeout_s)

    def _worker(self) -> None:
        while True:
            fn = self._queue.get()
            if fn is None:
                return
            try:
                fn()
            except Exception:
                logger.exception("gesture handler failed")
