"""Merge interim and final transcript segments into session text."""

from __future__ import annotations

from dataclasses import replace

from models import RecordingSession, TranscriptSegment


class TranscriptAccumulator:
    """Pure reducer: every method returns a new RecordingSession."""

    @staticmethod
    def apply(session: RecordingSession, segment: TranscriptSegment) -> RecordingSession:
        if not segment.is_final:
            # Interim hypotheses supersede each other.
            return replace(session, live_text=segment.text)
        if session.final_text:
            final_text = f"{session.final_text} {segment.text}"
        else:
            final_text = segment.text
        return replace(
            session,
            final_text=final_text,
            live_text="",
            confidence=min(max(segment.confidence, 0.0), 1.0),
        )

    @staticmethod
    def clear(session: RecordingSession) -> RecordingSession:
        return replace(session, final_text="", live_text="", confidence=0.0)
