from __future__ import annotations

from accumulator import TranscriptAccumulator
from models import RecordingSession, SessionState, TranscriptSegment


def test_interim_replaces_live_text() -> None:
    session = RecordingSession()
    session = TranscriptAccumulator.apply(session, TranscriptSegment("hel"))
    session = TranscriptAccumulator.apply(session, TranscriptSegment("hello wor"))

    assert session.live_text == "hello wor"
    assert session.final_text == ""


def test_finals_append_with_single_space() -> None:
    session = RecordingSession()
    session = TranscriptAccumulator.apply(session, TranscriptSegment("hello", 0.9, True))
    session = TranscriptAccumulator.apply(session, TranscriptSegment("wor", 0.4))
    session = TranscriptAccumulator.apply(session, TranscriptSegment("world", 0.8, True))

    assert session.final_text == "hello world"
    assert session.live_text == ""
    assert session.confidence == 0.8


def test_latest_final_confidence_wins() -> None:
    session = RecordingSession()
    session = TranscriptAccumulator.apply(session, TranscriptSegment("a", 0.99, True))
    session = TranscriptAccumulator.apply(session, TranscriptSegment("b", 0.5, True))

    assert session.confidence == 0.5


def test_apply_does_not_mutate_input() -> None:
    session = RecordingSession(state=SessionState.RECORDING)
    updated = TranscriptAccumulator.apply(session, TranscriptSegment("hi", 0.7, True))

    assert session.final_text == ""
    assert updated.final_text == "hi"
    assert updated.state == SessionState.RECORDING


def test_clear_resets_text_and_confidence() -> None:
    session = RecordingSession(final_text="hello", live_text="wor", confidence=0.9)
    cleared = TranscriptAccumulator.clear(session)

    assert cleared.final_text == ""
    assert cleared.live_text == ""
    assert cleared.confidence == 0.0
