"""Live transcription client for the Deepgram streaming endpoint.

One websocket per ``open``. Audio goes out as raw binary PCM16 frames;
``Results`` and ``Error`` JSON envelopes come back on a receiver thread and
are delivered to the observer registered with ``open`` as
``RecognitionEvent`` values.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from typing import Any, Callable, Optional
from urllib.parse import urlencode

from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidStatus, InvalidURI
from websockets.sync.client import connect as ws_connect
from websockets.typing import Subprotocol

from errors import (
    ASR_PROTOCOL_ERROR,
    NETWORK_ERROR,
    ConnectionTimeout,
    CredentialMissing,
    CredentialRejected,
    StreamConnectionError,
)
from interfaces import EventCallback
from models import (
    AudioFrame,
    RecognitionEvent,
    RecognitionKind,
    StreamingSession,
    StreamParams,
    StreamState,
    TranscriptSegment,
)

logger = logging.getLogger(__name__)

DEEPGRAM_LISTEN_URL = "wss://api.deepgram.com/v1/listen"
NORMAL_CLOSE_CODES = (1000, 1005)


class DeepgramStreamingClient:
    def __init__(
        self,
        api_key: str,
        url: str = DEEPGRAM_LISTEN_URL,
        open_timeout_s: float = 10.0,
        close_timeout_s: float = 2.0,
        connect: Callable[..., Any] = ws_connect,
    ) -> None:
        self._api_key = api_key
        self._url = url
        self._open_timeout_s = open_timeout_s
        self._close_timeout_s = close_timeout_s
        self._connect = connect
        self._lock = threading.Lock()
        self._ws: Any = None
        self._generation = 0
        self._state = StreamState.CLOSED
        self._session: Optional[StreamingSession] = None
        self._receiver: Optional[threading.Thread] = None

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def session(self) -> Optional[StreamingSession]:
        return self._session

    def open(self, params: StreamParams, on_event: EventCallback) -> None:
        if self._state in (StreamState.OPEN, StreamState.CONNECTING):
            self.close()

        with self._lock:
            self._generation += 1
            generation = self._generation
            self._session = StreamingSession(params=params, created_at=time.time())
            self._set_state(StreamState.CONNECTING)

        api_key = self._api_key or os.getenv("DEEPGRAM_API_KEY", "")
        if not api_key:
            self._mark_failed(generation)
            raise CredentialMissing("No API key configured")

        url = f"{self._url}?{urlencode(params.query())}"
        logger.info("connecting to %s", url)
        try:
            ws = self._connect(
                url,
                subprotocols=[Subprotocol("token"), Subprotocol(api_key)],
                open_timeout=self._open_timeout_s,
                close_timeout=self._close_timeout_s,
                max_size=None,
            )
        except TimeoutError as exc:
            self._mark_failed(generation)
            raise ConnectionTimeout(
                f"no connection within {self._open_timeout_s:g}s"
            ) from exc
        except InvalidStatus as exc:
            self._mark_failed(generation)
            status = exc.response.status_code
            if status in (401, 403):
                raise CredentialRejected(f"handshake rejected with HTTP {status}") from exc
            raise StreamConnectionError(f"handshake rejected with HTTP {status}") from exc
        except (InvalidHandshake, InvalidURI, OSError) as exc:
            self._mark_failed(generation)
            raise StreamConnectionError(str(exc)) from exc

        with self._lock:
            if generation != self._generation:
                ws.close()
                raise StreamConnectionError("connection closed while opening")
            self._ws = ws
            self._set_state(StreamState.OPEN)
            self._receiver = threading.Thread(
                target=self._receive_loop,
                args=(ws, on_event),
                name="stream-receiver",
                daemon=True,
            )
            self._receiver.start()
        logger.info("stream open model=%s language=%s", params.model, params.language)

    def send(self, frame: AudioFrame) -> None:
        ws = self._ws
        if self._state != StreamState.OPEN or ws is None:
            return
        try:
            ws.send(frame.pcm16_bytes)
        except ConnectionClosed:
            logger.debug("dropped frame %d, connection already closed", frame.seq)

    def close(self) -> None:
        """Finish the stream and release the transport.

        An open stream is asked to flush with ``CloseStream`` first; results
        the service sends while flushing are still delivered, for at most
        ``close_timeout_s``.
        """
        with self._lock:
            ws, receiver = self._ws, self._receiver
            flush = ws is not None and self._state == StreamState.OPEN
            if ws is not None:
                self._set_state(StreamState.CLOSING)
        if flush:
            self._flush(ws, receiver)
        with self._lock:
            self._generation += 1
            self._ws = None
        try:
            if ws is not None:
                ws.close()
        finally:
            with self._lock:
                self._set_state(StreamState.CLOSED)
                self._receiver = None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _flush(self, ws: Any, receiver: Optional[threading.Thread]) -> None:
        try:
            ws.send(json.dumps({"type": "CloseStream"}))
        except ConnectionClosed:
            return
        if receiver is not None and receiver is not threading.current_thread():
            receiver.join(timeout=self._close_timeout_s)
            if receiver.is_alive():
                logger.warning("no close from the service within %gs", self._close_timeout_s)

    def _receive_loop(self, ws: Any, on_event: EventCallback) -> None:
        while True:
            try:
                raw = ws.recv()
            except ConnectionClosed as exc:
                self._on_remote_close(ws, exc, on_event)
                return
            event = parse_message(raw)
            if event is None:
                continue
            if event.kind == RecognitionKind.ERROR.value:
                if self._detach(ws, StreamState.FAILED):
                    ws.close()
                    on_event(event)
                return
            if self._ws is not ws:
                return
            on_event(event)

    def _on_remote_close(
        self, ws: Any, exc: ConnectionClosed, on_event: EventCallback
    ) -> None:
        code = exc.rcvd.code if exc.rcvd is not None else None
        with self._lock:
            if self._ws is not ws:
                return
            requested = self._state == StreamState.CLOSING
            self._ws = None
            self._set_state(StreamState.CLOSED)
        if code in NORMAL_CLOSE_CODES:
            logger.info("stream closed with code %s", code)
        else:
            logger.warning("stream closed unexpectedly with code %s", code)
        if requested:
            return
        if code in NORMAL_CLOSE_CODES:
            on_event(RecognitionEvent(kind=RecognitionKind.CLOSED.value))
            return
        on_event(
            RecognitionEvent(
                kind=RecognitionKind.CLOSED.value,
                code=NETWORK_ERROR,
                message=f"connection closed with code {code}",
            )
        )

    def _detach(self, ws: Any, state: StreamState) -> bool:
        with self._lock:
            if self._ws is not ws:
                return False
            self._ws = None
            self._set_state(state)
            return True

    def _mark_failed(self, generation: int) -> None:
        with self._lock:
            if generation == self._generation:
                self._set_state(StreamState.FAILED)

    def _set_state(self, state: StreamState) -> None:
        self._state = state
        if self._session is not None:
            self._session.state = state


def parse_message(raw: Any) -> Optional[RecognitionEvent]:
    """Turn one inbound message into an event, or None to skip it."""
    if isinstance(raw, (bytes, bytearray)):
        logger.debug("ignoring %d bytes of binary inbound data", len(raw))
        return None
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("skipping malformed message: %.200r", raw)
        return None
    if not isinstance(payload, dict):
        logger.warning("skipping non-object message: %.200r", raw)
        return None

    kind = payload.get("type")
    if kind == "Results":
        return _parse_results(payload)
    if kind == "Error":
        message = str(payload.get("error") or payload.get("message") or "unknown error")
        return RecognitionEvent(
            kind=RecognitionKind.ERROR.value,
            code=ASR_PROTOCOL_ERROR,
            message=message,
        )
    logger.debug("ignoring %s envelope", kind)
    return None


def _parse_results(payload: dict) -> Optional[RecognitionEvent]:
    try:
        alternative = payload["channel"]["alternatives"][0]
        text = str(alternative.get("transcript") or "")
        confidence = float(alternative.get("confidence") or 0.0)
    except (KeyError, IndexError, TypeError, ValueError, AttributeError):
        logger.warning("skipping results envelope without alternatives")
        return None
    if not text:
        return None
    segment = TranscriptSegment(
        text=text,
        confidence=min(max(confidence, 0.0), 1.0),
        is_final=bool(payload.get("is_final", False)),
    )
    return RecognitionEvent(kind=RecognitionKind.RESULT.value, segment=segment)
