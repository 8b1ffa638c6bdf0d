"""End-to-end scenarios: controller, segment recorder, queue and sink together."""

from __future__ import annotations

import random

from config import PipelineConfig
from errors import NETWORK_ERROR, TranscriptionError
from fakes import FakeCapture, FakeClock, FakeFormatter, FakeTranscriber
from models import FailureStage, ProcessingArtifact, ProcessingFailure, RecordingMode, SessionState
from processing_queue import ProcessingQueue
from result_sink import ResultSink
from session_controller import SessionController

KEY = "sk-test-key-123"


def _make_pipeline(mode: RecordingMode):
    capture = FakeCapture()
    clock = FakeClock()
    transcriber = FakeTranscriber()
    formatter = FakeFormatter()
    sink = ResultSink()
    queue = ProcessingQueue(transcriber, formatter, sink)
    segments = []
    controller = SessionController(
        capture=capture,
        queue=queue,
        config=PipelineConfig(mode=mode, credential=KEY),
        clock=clock,
        on_segment=segments.append,
    )
    return controller, capture, clock, queue, sink, transcriber, segments


def test_single_shot_five_seconds() -> None:
    controller, capture, clock, queue, sink, _, segments = _make_pipeline(RecordingMode.SINGLE)

    controller.start()
    for _ in range(50):
        capture.emit()
        clock.advance(0.1)
    controller.stop()

    assert len(segments) == 1
    assert abs(segments[0].duration_s - 5.0) < 1e-6
    assert sink.wait_for(1, timeout=2.0)
    assert queue.wait_idle(timeout=1.0)
    [record] = sink.entries()
    assert isinstance(record, ProcessingArtifact)
    assert record.segment_id == segments[0].segment_id
    queue.close(timeout=1.0)


def test_continuous_session_with_two_marks() -> None:
    controller, capture, clock, queue, sink, _, segments = _make_pipeline(RecordingMode.CONTINUOUS)

    controller.start()
    for t in range(1, 11):
        capture.emit()
        clock.advance(1)
        if t in (4, 7):
            controller.mark_boundary()
    controller.stop()

    assert [(s.start_s, s.end_s) for s in segments] == [(0, 4), (4, 7), (7, 10)]
    assert sink.wait_for(3, timeout=2.0)
    assert [r.segment_id for r in sink.entries()] == [s.segment_id for s in segments]
    assert all(isinstance(r, ProcessingArtifact) for r in sink.entries())
    queue.close(timeout=1.0)


def test_mark_sequences_partition_the_session() -> None:
    rng = random.Random(7)
    for _ in range(20):
        controller, capture, clock, queue, sink, _, segments = _make_pipeline(RecordingMode.CONTINUOUS)
        controller.start()
        for _ in range(rng.randint(0, 8)):
            capture.emit()
            clock.advance(rng.uniform(0.1, 3.0))
            controller.mark_boundary()
        capture.emit()
        clock.advance(rng.uniform(0.1, 3.0))
        final_stop = controller.elapsed
        controller.stop()

        assert segments[0].start_s == 0
        assert segments[-1].end_s == final_stop
        for previous, current in zip(segments, segments[1:]):
            assert current.start_s == previous.end_s
            assert current.index == previous.index + 1
        assert all(s.end_s > s.start_s for s in segments)
        queue.close(timeout=1.0)


def test_cancel_before_finalize_produces_nothing() -> None:
    controller, capture, clock, queue, sink, transcriber, segments = _make_pipeline(RecordingMode.CONTINUOUS)

    controller.start()
    capture.emit(12)
    clock.advance(3)
    controller.cancel()

    assert segments == []
    assert queue.pending() == []
    assert queue.wait_idle(timeout=0.5)
    assert len(sink) == 0
    assert transcriber.calls == []


def test_empty_segment_never_reaches_sink() -> None:
    controller, capture, clock, queue, sink, transcriber, segments = _make_pipeline(RecordingMode.CONTINUOUS)

    controller.start()
    clock.advance(2)
    controller.mark_boundary()  # nothing captured yet
    capture.emit()
    clock.advance(2)
    controller.stop()

    assert len(segments) == 1
    assert (segments[0].start_s, segments[0].end_s) == (2, 4)
    assert sink.wait_for(1, timeout=2.0)
    assert queue.wait_idle(timeout=1.0)
    assert len(sink) == 1
    queue.close(timeout=1.0)


def test_transcription_failure_then_success() -> None:
    controller, capture, clock, queue, sink, transcriber, segments = _make_pipeline(RecordingMode.CONTINUOUS)
    transcriber.failures = {0: TranscriptionError(NETWORK_ERROR, "offline")}

    controller.start()
    capture.emit()
    clock.advance(1)
    controller.mark_boundary()
    capture.emit()
    clock.advance(1)
    controller.stop()

    assert sink.wait_for(2, timeout=2.0)
    failure, artifact = sink.entries()
    assert isinstance(failure, ProcessingFailure)
    assert failure.stage == FailureStage.TRANSCRIPTION
    assert failure.segment_id == segments[0].segment_id
    assert isinstance(artifact, ProcessingArtifact)
    assert artifact.segment_id == segments[1].segment_id
    queue.close(timeout=1.0)


def test_new_session_records_while_worker_drains() -> None:
    controller, capture, clock, queue, sink, transcriber, segments = _make_pipeline(RecordingMode.SINGLE)
    transcriber.delays = {0: 0.2}

    controller.start()
    capture.emit()
    clock.advance(1)
    controller.stop()

    assert controller.start() is True
    assert controller.state == SessionState.RECORDING
    capture.emit()
    clock.advance(1)
    controller.stop()

    assert sink.wait_for(2, timeout=2.0)
    assert [r.segment_id for r in sink.entries()] == [s.segment_id for s in segments]
    queue.close(timeout=1.0)
