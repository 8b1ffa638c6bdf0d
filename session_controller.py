"""State-machine based recording session orchestration."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from config import PipelineConfig, validate_credential
from errors import (
    PERMISSION_DENIED,
    ConcurrentActionRejected,
    DeviceError,
    EmptySegmentError,
    PipelineError,
)
from interfaces import CaptureDevice, CaptureHandle
from models import AudioFrame, AudioSegment, RecordingMode, SessionState
from processing_queue import ProcessingQueue
from segment_recorder import SegmentRecorder

logger = logging.getLogger(__name__)

StateCallback = Callable[[SessionState, SessionState], None]
ErrorCallback = Callable[[str, str], None]
LevelCallback = Callable[[float], None]
SegmentCallback = Callable[[AudioSegment], None]


@dataclass
class RecordingSession:
    session_id: int
    mode: RecordingMode
    credential: str
    started_at: float
    contextual_settings: Dict[str, str] = field(default_factory=dict)
    model: Optional[str] = None
    segment_start_offset: float = 0.0
    segments_enqueued: int = 0
    cancel_requested: bool = False
    handle: Optional[CaptureHandle] = None


class SessionController:
    def __init__(
        self,
        capture: CaptureDevice,
        queue: ProcessingQueue,
        config: Optional[PipelineConfig] = None,
        recorder: Optional[SegmentRecorder] = None,
        clock: Callable[[], float] = time.monotonic,
        on_state_change: Optional[StateCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_level: Optional[LevelCallback] = None,
        on_segment: Optional[SegmentCallback] = None,
    ) -> None:
        self._capture = capture
        self._queue = queue
        self._config = config or PipelineConfig()
        self._recorder = recorder or SegmentRecorder()
        self._clock = clock
        self._on_state_change = on_state_change
        self._on_error = on_error
        self._on_level = on_level
        self._on_segment = on_segment

        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._session: Optional[RecordingSession] = None
        self._session_counter = 0
        self._permission_blocked = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Optional[RecordingSession]:
        return self._session

    @property
    def mode(self) -> RecordingMode:
        session = self._session
        return session.mode if session else self._config.mode

    @property
    def elapsed(self) -> float:
        session = self._session
        if session is None or self._state != SessionState.RECORDING:
            return 0.0
        return self._clock() - session.started_at

    @property
    def permission_blocked(self) -> bool:
        return self._permission_blocked

    def update_config(self, config: PipelineConfig) -> None:
        """Takes effect for the next session; a live one keeps its snapshot."""
        with self._lock:
            self._config = config

    def grant_permission(self) -> None:
        """Clear a remembered microphone denial after the user re-grants it."""
        with self._lock:
            self._permission_blocked = False

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def start(self, mode: Optional[RecordingMode] = None) -> bool:
        with self._action():
            if self._state != SessionState.IDLE:
                logger.info("Session already live (%s), ignoring start", self._state.value)
                return False
            config = self._config
            credential = validate_credential(config.credential)
            if self._permission_blocked:
                raise DeviceError(PERMISSION_DENIED)
            self._session_counter += 1
            session = RecordingSession(
                session_id=self._session_counter,
                mode=RecordingMode(mode or config.mode),
                credential=credential,
                started_at=self._clock(),
                contextual_settings=dict(config.contextual_settings),
                model=config.model,
            )
            self._session = session
            self._transition(SessionState.INITIALIZING)

        # Acquire outside the action lock so cancel can interrupt initialization.
        sid = session.session_id
        try:
            handle = self._capture.acquire(
                on_chunk=lambda frame: self._handle_chunk(sid, frame),
                on_level=self._handle_level,
                on_error=lambda exc: self._handle_device_error(sid, exc),
            )
        except Exception as exc:
            error = exc if isinstance(exc, DeviceError) else DeviceError(message=str(exc))
            with self._lock:
                if error.code == PERMISSION_DENIED:
                    self._permission_blocked = True
                if self._session is session:
                    self._session = None
                    self._transition(SessionState.IDLE)
            logger.error("Session %d could not start: %s", sid, error)
            if error is exc:
                raise
            raise error from exc

        with self._lock:
            if session.cancel_requested or self._session is not session:
                logger.info("Session %d cancelled during initialization", sid)
                self._safe_release(handle)
                return False
            session.handle = handle
            session.started_at = self._clock()
            session.segment_start_offset = 0.0
            self._recorder.open(sid)
            self._transition(SessionState.RECORDING)
        logger.info("Session %d recording (%s)", sid, session.mode.value)
        return True

    def mark_boundary(self) -> Optional[AudioSegment]:
        with self._action():
            session = self._session
            if self._state != SessionState.RECORDING or session is None:
                logger.info("Not recording, ignoring mark")
                return None
            if session.mode == RecordingMode.SINGLE:
                return self._stop_locked(session)
            end = self._clock() - session.started_at
            segment = self._finalize_and_enqueue(session, end)
            session.segment_start_offset = end
            return segment

    def stop(self) -> Optional[AudioSegment]:
        with self._action():
            session = self._session
            if self._state != SessionState.RECORDING or session is None:
                logger.info("Not recording, ignoring stop")
                return None
            return self._stop_locked(session)

    def cancel(self, reason: str = "") -> bool:
        with self._action():
            session = self._session
            if session is None or self._state not in (SessionState.RECORDING, SessionState.INITIALIZING):
                return False
            session.cancel_requested = True
            self._transition(SessionState.CANCELLED)
            self._recorder.discard()
            self._recorder.close()
            self._safe_release(session.handle)
            self._session = None
            self._transition(SessionState.IDLE)
        logger.info("Session %d cancelled%s", session.session_id, f": {reason}" if reason else "")
        return True

    # ------------------------------------------------------------------
    # Device events
    # ------------------------------------------------------------------

    def _handle_chunk(self, session_id: int, frame: AudioFrame) -> None:
        session = self._session
        if session is None or session.session_id != session_id or session.cancel_requested:
            return
        self._recorder.append(frame, session_id=session_id)

    def _handle_level(self, level: float) -> None:
        if self._on_level:
            self._on_level(level)

    def _handle_device_error(self, session_id: int, error: DeviceError) -> None:
        with self._lock:
            session = self._session
            if session is None or session.session_id != session_id or session.cancel_requested:
                logger.debug("Ignoring device error from stale session %d", session_id)
                return
            logger.error("Device failed during session %d: %s", session_id, error)
            self._recorder.discard()
            self._recorder.close()
            self._safe_release(session.handle)
            self._session = None
            self._transition(SessionState.IDLE)
        self._emit_error(error.code, error.message)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _action(self) -> "_ActionGuard":
        return _ActionGuard(self._lock)

    def _stop_locked(self, session: RecordingSession) -> Optional[AudioSegment]:
        self._transition(SessionState.STOPPING_FINAL)
        try:
            end = self._clock() - session.started_at
            return self._finalize_and_enqueue(session, end)
        finally:
            self._recorder.close()
            self._safe_release(session.handle)
            self._session = None
            self._transition(SessionState.IDLE)

    def _finalize_and_enqueue(self, session: RecordingSession, end: float) -> Optional[AudioSegment]:
        if session.cancel_requested:
            return None
        try:
            segment = self._recorder.finalize(session.segment_start_offset, end)
        except EmptySegmentError:
            logger.info(
                "Empty segment [%.2f, %.2f) in session %d dropped",
                session.segment_start_offset, end, session.session_id,
            )
            return None
        try:
            self._queue.enqueue(
                segment,
                session.credential,
                contextual_settings=session.contextual_settings,
                model=session.model,
            )
        except PipelineError as exc:
            logger.error("Segment %s not queued: %s", segment.segment_id, exc)
            self._emit_error(exc.code, exc.message)
            return None
        session.segments_enqueued += 1
        if self._on_segment:
            self._on_segment(segment)
        return segment

    def _emit_error(self, code: str, message: str) -> None:
        if self._on_error:
            self._on_error(code, message)

    def _safe_release(self, handle: Optional[CaptureHandle]) -> None:
        if handle is None:
            return
        try:
            handle.release()
        except Exception:
            logger.exception("Releasing capture device failed")

    def _transition(self, to_state: SessionState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        logger.debug("Session state %s -> %s", from_state.value, to_state.value)
        if self._on_state_change:
            try:
                self._on_state_change(from_state, to_state)
            except Exception:
                logger.exception("State listener failed on %s -> %s", from_state.value, to_state.value)


class _ActionGuard:
    """Holds the controller lock for one action, rejecting contention."""

    def __init__(self, lock: threading.RLock) -> None:
        self._lock = lock

    def __enter__(self) -> None:
        if not self._lock.acquire(blocking=False):
            raise ConcurrentActionRejected()

    def __exit__(self, *exc_info: object) -> None:
        self._lock.release()
