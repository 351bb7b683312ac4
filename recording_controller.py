"""State-machine based recording orchestration.

Idle -> Recording -> Transcribing -> [Polishing] -> ClipboardReady -> Idle.
Only one recording is in flight per process; requests that do not fit the
current state are ignored rather than queued.
"""

from __future__ import annotations

import logging
import time
from threading import Lock
from typing import Callable, Optional

from errors import (
    CAPTURE_FAILED,
    UNEXPECTED_ERROR,
    DeliveryError,
    StateError,
    Talk2TextError,
)
from interfaces import AudioSource, DeliverySink, Encoder
from models import (
    CHANNELS,
    SAMPLE_RATE,
    DeliveryResult,
    RecordingState,
    StatusResponse,
    TranscriptionOutcome,
)
from pipeline import TranscriptionPipeline
from sample_buffer import SampleBuffer
from state import RecordingStatus, StateCallback

log = logging.getLogger(__name__)

ErrorCallback = Callable[[str, str], None]


class RecordingController:
    def __init__(
        self,
        audio_source: AudioSource,
        encoder: Encoder,
        pipeline: TranscriptionPipeline,
        delivery: DeliverySink,
        backend_name: str = "openai",
        language: Optional[str] = None,
        on_state_change: Optional[StateCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_warning: Optional[ErrorCallback] = None,
    ) -> None:
        self._source = audio_source
        self._encoder = encoder
        self._pipeline = pipeline
        self._delivery = delivery
        self.backend_name = backend_name
        self.language = language
        self._on_error = on_error
        self._on_warning = on_warning

        self._status = RecordingStatus()
        if on_state_change:
            self._status.subscribe(on_state_change)
        self._session_lock = Lock()
        self._buffer: Optional[SampleBuffer] = None
        self._started_at = 0.0

    @property
    def state(self) -> RecordingState:
        return self._status.current

    def status(self) -> StatusResponse:
        return StatusResponse(
            state=self._status.current,
            config_valid=self._pipeline.config_valid(self.backend_name),
        )

    def subscribe(self, callback: StateCallback) -> Callable[[], None]:
        return self._status.subscribe(callback)

    def toggle(self) -> Optional[TranscriptionOutcome]:
        state = self._status.current
        if state == RecordingState.IDLE:
            self.start_recording()
            return None
        if state == RecordingState.RECORDING:
            return self.stop_recording()
        log.debug("toggle ignored while %s", state.value)
        return None

    def start_recording(self) -> bool:
        with self._session_lock:
            try:
                self._status.transition(RecordingState.RECORDING, expect=RecordingState.IDLE)
            except StateError as exc:
                log.debug("start ignored: %s", exc.message)
                return False
            self._buffer = SampleBuffer()
            self._started_at = time.monotonic()
            try:
                self._source.start(self._buffer.append)
            except Exception as exc:
                log.error("audio capture failed to start: %s", exc)
                self._buffer = None
                self._emit_error(CAPTURE_FAILED, str(exc))
                self._reset_to_idle()
                return False
        log.info("recording started")
        return True

    def stop_recording(self) -> Optional[TranscriptionOutcome]:
        """Stop capture and run the transcription synchronously.

        Returns None when there was no recording to stop. Otherwise the
        controller is back in Idle by the time this returns, and the outcome
        holds either the delivered text or the fatal error.
        """
        with self._session_lock:
            try:
                self._status.transition(RecordingState.TRANSCRIBING, expect=RecordingState.RECORDING)
            except StateError as exc:
                log.debug("stop ignored: %s", exc.message)
                return None
        try:
            with self._session_lock:
                self._safe_stop_source()
                buffer, self._buffer = self._buffer, None
                samples = buffer.drain() if buffer is not None else None
            log.info("recording stopped after %.1fs", time.monotonic() - self._started_at)
            return self._process(samples)
        finally:
            self._reset_to_idle()

    def cancel_recording(self, reason: str = "") -> None:
        with self._session_lock:
            try:
                self._status.transition(RecordingState.IDLE, expect=RecordingState.RECORDING)
            except StateError:
                return
            self._safe_stop_source()
            if self._buffer is not None:
                self._buffer.drain()
                self._buffer = None
        log.info("recording cancelled%s", f": {reason}" if reason else "")

    def _process(self, samples) -> TranscriptionOutcome:  # noqa: ANN001
        outcome = TranscriptionOutcome()
        try:
            self._pipeline.check_config(self.backend_name)
            if samples is None or len(samples) == 0:
                payload = b""
            else:
                payload = self._encoder.encode(samples, SAMPLE_RATE, CHANNELS)
            text = self._pipeline.transcribe(
                payload,
                self.backend_name,
                language=self.language,
                extension=self._encoder.extension,
                mime_type=self._encoder.mime_type,
                header_size=self._encoder.header_size,
            )
        except Talk2TextError as exc:
            return self._fail(outcome, exc)
        except Exception as exc:  # noqa: BLE001
            log.exception("transcription crashed")
            return self._fail(outcome, Talk2TextError(str(exc), code=UNEXPECTED_ERROR))

        outcome.raw_text = text
        if not text.strip():
            log.info("empty transcript, nothing to deliver")
            return outcome

        preset = self._pipeline.active_preset()
        if preset is not None:
            self._status.transition(RecordingState.POLISHING)
            text, warning = self._pipeline.refine(text, preset)
            if warning is not None:
                self._warn(outcome, warning.code, warning.message)

        self._status.transition(RecordingState.CLIPBOARD_READY)
        outcome.text = text
        result = self._run_delivery(text)
        outcome.delivered = result.success
        if not result.success:
            warning = DeliveryError(result.reason)
            self._warn(outcome, warning.code, warning.message)
        log.info("transcript of %d characters ready", len(text))
        return outcome

    def _fail(self, outcome: TranscriptionOutcome, exc: Talk2TextError) -> TranscriptionOutcome:
        log.error("transcription failed: %s", exc)
        outcome.error = exc
        outcome.text = ""
        self._emit_error(exc.code, exc.message)
        return outcome

    def _warn(self, outcome: TranscriptionOutcome, code: str, message: str) -> None:
        outcome.warnings.append((code, message))
        if self._on_warning:
            self._on_warning(code, message)

    def _run_delivery(self, text: str) -> DeliveryResult:
        try:
            return self._delivery.deliver_text(text)
        except Exception as exc:  # noqa: BLE001
            return DeliveryResult(success=False, reason=str(exc))

    def _emit_error(self, code: str, message: str) -> None:
        if self._on_error:
            self._on_error(code, message)

    def _safe_stop_source(self) -> None:
        try:
            self._source.stop()
        except Exception as exc:  # noqa: BLE001
            log.warning("audio capture did not stop cleanly: %s", exc)

    def _reset_to_idle(self) -> None:
        if self._status.current == RecordingState.IDLE:
            return
        try:
            self._status.transition(RecordingState.IDLE)
        except StateError:  # pragma: no cover - every non-idle state may return to idle
            pass
