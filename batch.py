"""Single-shot transcription of a complete recording.

The whole clip is uploaded in one ``POST`` to the Deepgram REST endpoint and
the best alternative of the first channel is returned. Raw PCM16 can be
wrapped into WAV with ``pcm_to_wav`` first.
"""

from __future__ import annotations

import io
import logging
import os
import wave
from typing import Optional

import httpx

from models import CHANNELS, SAMPLE_RATE, BatchResult, StreamParams, query_flag

logger = logging.getLogger(__name__)

DEEPGRAM_REST_URL = "https://api.deepgram.com/v1/listen"
MIN_AUDIO_BYTES = 100
TOO_SHORT_MESSAGE = "Audio too short. Please speak for at least 1 second."


def pcm_to_wav(
    pcm: bytes,
    sample_rate: int = SAMPLE_RATE,
    channels: int = CHANNELS,
    sample_width: int = 2,
) -> bytes:
    """Wrap raw PCM bytes in a WAV container."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return buf.getvalue()


class DeepgramBatchTranscriber:
    def __init__(
        self,
        api_key: str,
        url: str = DEEPGRAM_REST_URL,
        timeout_s: float = 30.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._api_key = api_key
        self._url = url
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(timeout_s, connect=10.0)
        )

    def transcribe(
        self,
        audio: bytes,
        params: Optional[StreamParams] = None,
        content_type: str = "audio/wav",
        diarize: bool = False,
        utterances: bool = True,
    ) -> BatchResult:
        if len(audio) < MIN_AUDIO_BYTES:
            return BatchResult(success=False, error=TOO_SHORT_MESSAGE)

        api_key = self._api_key or os.getenv("DEEPGRAM_API_KEY", "")
        if not api_key:
            return BatchResult(success=False, error="No API key configured")

        params = params or StreamParams()
        query = {
            "model": params.model,
            "language": params.language,
            "punctuate": query_flag(params.punctuate),
            "smart_format": query_flag(params.smart_format),
            "diarize": query_flag(diarize),
            "utterances": query_flag(utterances),
        }
        logger.info("uploading %d bytes of %s", len(audio), content_type)
        try:
            response = self._client.post(
                self._url,
                params=query,
                headers={
                    "Authorization": f"Token {api_key}",
                    "Content-Type": content_type,
                },
                content=audio,
            )
        except httpx.HTTPError as exc:
            logger.warning("batch request failed: %s", exc)
            return BatchResult(success=False, error=str(exc))

        if response.is_error:
            message = _error_message(response)
            logger.warning("batch request rejected (%d): %s", response.status_code, message)
            return BatchResult(
                success=False,
                error=f"Deepgram API Error ({response.status_code}): {message}",
            )

        try:
            payload = response.json()
        except ValueError:
            return BatchResult(success=False, error="response is not JSON")
        transcript, confidence = _extract_best(payload)
        return BatchResult(
            success=True,
            transcript=transcript,
            confidence=confidence,
            raw=payload if isinstance(payload, dict) else {},
        )

    def close(self) -> None:
        self._client.close()


def _extract_best(payload: object) -> tuple[str, float]:
    try:
        alternative = payload["results"]["channels"][0]["alternatives"][0]  # type: ignore[index]
    except (KeyError, IndexError, TypeError):
        return "", 0.0
    transcript = str(alternative.get("transcript") or "")
    confidence = float(alternative.get("confidence") or 0.0)
    return transcript, confidence


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(payload, dict):
        message = payload.get("msg") or payload.get("message")
        if message:
            return str(message)
    return response.text or response.reason_phrase
