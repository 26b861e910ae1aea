"""
Conversation session controller.

Coordinates three independently completing activities (speech capture, the
reply request and speech playback) behind a single SessionStatus and a single
transcript. Every handler runs on the event loop without yielding between
reading and writing session state, so no locks are needed; logical races are
handled with cancellable timers, a serialized reply queue and generation
tokens on playback callbacks.
"""

import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, Iterable, Optional, Set, Union

from .interfaces import SpeechCaptureInterface, PlaybackInterface, ReplyInterface
from .config_models import SessionConfig
from .models.data_models import (
    CaptureEvent,
    CaptureEventKind,
    HistoryEntry,
    Message,
    MessageSender,
    PersonaProfile,
    SessionStatus,
    map_history,
)
from .personas import Persona, get_profile, resolve_persona
from .transcript_store import TranscriptStore
from .utils.error_handling import (
    ComponentError,
    ErrorHandler,
    ErrorSeverity,
    PlaybackError,
    RecognitionError,
    ReplyServiceError,
    UnsupportedCapability,
    safe_cleanup,
)
from .utils.logging_config import get_logger
from .utils.state_machine import SessionStateMachine, StatusListener


logger = get_logger("controller")


@dataclass
class _Turn:
    """A committed user utterance waiting for its reply."""
    text: str
    spoken: bool


class ConversationController:
    """
    Finite-state machine for one voice chat session.

    Usage:
        async with ConversationController(capture, playback, reply) as session:
            await session.start_listening()
            ...
    """

    def __init__(
        self,
        capture: SpeechCaptureInterface,
        playback: PlaybackInterface,
        reply: ReplyInterface,
        session_config: Optional[SessionConfig] = None,
        persona_id: Optional[str] = None,
        store: Optional[TranscriptStore] = None,
        error_handler: Optional[ErrorHandler] = None,
        on_utterance: Optional[Callable[[str], None]] = None,
        on_notice: Optional[Callable[[ComponentError], None]] = None,
        on_status_change: Optional[StatusListener] = None,
        on_interim_change: Optional[Callable[[str], None]] = None,
    ):
        self.config = session_config or SessionConfig()
        self._capture = capture
        self._playback = playback
        self._reply = reply

        self.store = store or TranscriptStore()
        self.error_handler = error_handler or ErrorHandler()
        if on_notice:
            self.error_handler.add_listener(on_notice)
        self.state_machine = SessionStateMachine(on_change=on_status_change)

        self._on_utterance = on_utterance
        self._on_interim_change = on_interim_change

        self._persona = resolve_persona(persona_id or self.config.persona)
        self._interim = ""
        self._speaking = False
        self._playback_generation = 0

        self._debounce_task: Optional[asyncio.Task] = None
        self._interim_clear_handle: Optional[asyncio.TimerHandle] = None
        self._pending: Deque[_Turn] = deque()
        self._reply_task: Optional[asyncio.Task] = None
        self._pump_task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()

        self._unsupported_notified: Set[str] = set()
        self._closed = False

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return self.state_machine.current_state

    @property
    def interim_transcript(self) -> str:
        return self._interim

    @property
    def is_speaking(self) -> bool:
        return self._speaking

    @property
    def persona(self) -> PersonaProfile:
        return get_profile(self._persona)

    @property
    def messages(self):
        return self.store.all()

    @property
    def is_closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Start consuming capture events."""
        self._ensure_pump()

    async def close(self) -> None:
        """
        Tear the session down: cancel timers, disarm capture, stop playback,
        then cancel in-flight work. Safe to call more than once.
        """
        if self._closed:
            return
        self._closed = True
        logger.info("👋 Closing conversation session")

        self._cancel_debounce()
        self._cancel_interim_clear()

        await safe_cleanup(
            self._capture.stop,
            self._halt_playback,
            self._cancel_tasks,
        )
        self._pending.clear()
        self.state_machine.reset("session closed")

    async def cleanup(self) -> None:
        """Close the session and release provider resources."""
        await self.close()
        await safe_cleanup(
            self._capture.cleanup,
            self._playback.cleanup,
            self._reply.cleanup,
        )

    async def __aenter__(self) -> 'ConversationController':
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def select_persona(self, persona_id: Optional[Union[str, Persona]]) -> PersonaProfile:
        """Switch persona; unknown ids select the default persona."""
        self._persona = resolve_persona(persona_id)
        logger.info(f"{self.persona.avatar} Persona: {self.persona.display_name}")
        return self.persona

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    async def start_listening(self) -> bool:
        """
        Arm speech capture.

        Stops any active playback first. Rejected while a reply is being
        fetched.

        Returns:
            True if the session is listening afterwards
        """
        if self._closed:
            return False

        if self.status == SessionStatus.LISTENING:
            return True
        if self.status == SessionStatus.PROCESSING:
            logger.info("⏳ Reply in flight, not listening yet")
            return False

        if self.status == SessionStatus.SPEAKING or self._speaking or self._playback.is_playing:
            logger.info("🛑 Stopping playback to start listening")
            self._halt_playback()
            if self.status == SessionStatus.SPEAKING:
                self.state_machine.transition_to(SessionStatus.IDLE, "playback interrupted")

        self._ensure_pump()

        try:
            await self._capture.start()
        except UnsupportedCapability as e:
            self._report_unsupported("capture", e)
            return False
        except RecognitionError as e:
            self._report("capture", ErrorSeverity.RECOVERABLE, "Could not start speech capture", e)
            return False

        if self._closed or self.status != SessionStatus.IDLE:
            # A deferred commit or close happened while capture was starting
            await self._capture.stop()
            return False

        self._cancel_interim_clear()
        self._set_interim("")
        self.state_machine.transition_to(SessionStatus.LISTENING, "user requested listening")
        logger.info("👂 Listening...")
        return True

    async def stop_listening(self) -> None:
        """Disarm speech capture. A pending debounced commit still fires."""
        if self.status == SessionStatus.LISTENING:
            self.state_machine.transition_to(SessionStatus.IDLE, "user stopped listening")
        await self._capture.stop()

    async def toggle_listening(self) -> bool:
        """Mic button behaviour: stop if listening, otherwise start."""
        if self.status == SessionStatus.LISTENING:
            await self.stop_listening()
            return False
        return await self.start_listening()

    async def send_message(self, text: str) -> bool:
        """
        Commit a typed utterance.

        It joins the same serialized reply queue as spoken utterances. If the
        reply fails, the typed-turn apology is shown but not spoken.
        """
        if self._closed or not text or not text.strip():
            return False
        await self._commit_utterance(text, spoken=False)
        return True

    async def greet(self) -> bool:
        """Say the persona's greeting. Only from IDLE."""
        if self._closed or self.status != SessionStatus.IDLE:
            return False
        greeting = self.persona.greeting
        self.store.append(Message(text=greeting, sender=MessageSender.ASSISTANT))
        self._speak(greeting)
        return True

    def sync_history(self, history: Iterable[Union[HistoryEntry, Dict[str, Any]]]) -> bool:
        """
        Replace the transcript with a host-supplied history.

        An empty history is ignored. A non-empty one replaces the transcript
        unconditionally, even while a turn is in flight.
        """
        entries = list(history or [])
        if not entries:
            return False
        self.store.replace_all(map_history(entries))
        logger.debug(f"📚 Transcript replaced from external history ({len(entries)} messages)")
        return True

    # ------------------------------------------------------------------
    # Capture events
    # ------------------------------------------------------------------

    def handle_capture_event(self, event: CaptureEvent) -> None:
        """Apply one normalized capture event."""
        if event.kind in (CaptureEventKind.ERROR, CaptureEventKind.ENDED):
            self._handle_capture_stopped(event)
            return

        if self.status != SessionStatus.LISTENING:
            logger.debug(f"Dropping {event.kind.value} event while {self.status.name}")
            return

        if event.kind == CaptureEventKind.INTERIM:
            self._set_interim(event.text)
        elif event.kind == CaptureEventKind.FINAL:
            # Show the settled text right away, commit after the debounce window
            self._set_interim(event.text)
            self._schedule_finalize(event.text)

    def _handle_capture_stopped(self, event: CaptureEvent) -> None:
        if self.status != SessionStatus.LISTENING:
            logger.debug(f"Ignoring capture {event.kind.value} while {self.status.name}")
            return

        if event.kind == CaptureEventKind.ERROR:
            error = event.error if event.error is not None else RecognitionError("speech recognition failed")
            self._report("capture", ErrorSeverity.RECOVERABLE, "Speech recognition error", error)
        else:
            logger.info("🔚 Speech capture ended")

        self.state_machine.transition_to(SessionStatus.IDLE, f"capture {event.kind.value}")
        self._track(self._capture.stop())

    async def _pump_capture_events(self) -> None:
        async for event in self._capture.events():
            try:
                self.handle_capture_event(event)
            except Exception as e:
                logger.exception(f"Failed to handle capture event {event.kind.value}: {e}")

    # ------------------------------------------------------------------
    # Debounce and commit
    # ------------------------------------------------------------------

    def _schedule_finalize(self, text: str) -> None:
        self._cancel_debounce()
        self._debounce_task = asyncio.get_running_loop().create_task(self._finalize_after_delay(text))

    async def _finalize_after_delay(self, text: str) -> None:
        await asyncio.sleep(self.config.debounce_delay)
        # Past this point a newer final must not cancel the commit
        self._debounce_task = None
        await self._commit_utterance(text, spoken=True)

    async def _commit_utterance(self, text: str, spoken: bool) -> None:
        if self._closed or not text.strip():
            return

        self.state_machine.transition_to(SessionStatus.PROCESSING, "utterance committed")
        self.store.append(Message(text=text, sender=MessageSender.USER))
        logger.info(f"🗣️  User: {text}")

        if self._on_utterance:
            try:
                self._on_utterance(text)
            except Exception as e:
                logger.exception(f"Utterance listener failed: {e}")

        if spoken:
            self._schedule_interim_clear()

        self._pending.append(_Turn(text=text, spoken=spoken))
        self._ensure_reply_worker()

        if self._capture.is_armed:
            await self._capture.stop()

    # ------------------------------------------------------------------
    # Reply flow
    # ------------------------------------------------------------------

    def _ensure_reply_worker(self) -> None:
        if self._reply_task is None or self._reply_task.done():
            self._reply_task = asyncio.get_running_loop().create_task(self._reply_worker())

    async def _reply_worker(self) -> None:
        """Serve queued turns one at a time so only one request is ever outstanding."""
        while self._pending:
            turn = self._pending.popleft()
            self.state_machine.transition_to(SessionStatus.PROCESSING, "awaiting reply")

            try:
                reply = await self._reply.request(turn.text, self.persona.id)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if not isinstance(e, ReplyServiceError):
                    e = ReplyServiceError(f"Unexpected reply failure: {e}")
                self._report("reply", ErrorSeverity.RECOVERABLE, "Failed to get a reply", e)
                self._deliver_failure(turn)
                continue

            text = reply if reply and reply.strip() else self.config.empty_reply_text
            self.store.append(Message(text=text, sender=MessageSender.ASSISTANT))
            logger.info(f"{self.persona.avatar} {self.persona.display_name}: {text}")
            self._speak(text)

        self._reply_task = None

    def _deliver_failure(self, turn: _Turn) -> None:
        if turn.spoken:
            self.store.append(Message(text=self.config.fallback_text, sender=MessageSender.ASSISTANT))
            self._speak(self.config.fallback_text)
            return

        self.store.append(Message(text=self.config.text_fallback_text, sender=MessageSender.ASSISTANT))
        if not self._pending:
            self._settle()

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def _speak(self, text: str) -> None:
        previous_generation = self._playback_generation
        self._playback_generation += 1
        generation = self._playback_generation

        def on_start() -> None:
            if generation == self._playback_generation:
                self._speaking = True

        def on_end() -> None:
            self._playback_finished(generation)

        def on_error(error: BaseException) -> None:
            self._playback_finished(generation, error)

        self.state_machine.transition_to(SessionStatus.SPEAKING, "playing reply")

        try:
            accepted = self._playback.play(text, on_start, on_end, on_error, persona_id=self.persona.id)
        except UnsupportedCapability as e:
            self._playback_generation = previous_generation
            self._report_unsupported("playback", e)
            self._settle()
            return

        if not accepted:
            # The earlier playback still owns the speaker; keep its callbacks live
            self._playback_generation = previous_generation
            logger.info("🔇 Playback busy, reply shown but not spoken")
            self._settle()

    def _playback_finished(self, generation: int, error: Optional[BaseException] = None) -> None:
        if generation != self._playback_generation:
            logger.debug("Ignoring callback from a superseded playback")
            return

        self._speaking = False

        if error is not None:
            if isinstance(error, UnsupportedCapability):
                self._report_unsupported("playback", error)
            else:
                if not isinstance(error, PlaybackError):
                    error = PlaybackError(str(error))
                self._report("playback", ErrorSeverity.WARNING, "Playback failed", error)

        if self.status == SessionStatus.SPEAKING:
            self.state_machine.transition_to(SessionStatus.IDLE, "playback finished")

    def _halt_playback(self) -> None:
        # Invalidate callbacks first so the end reported by stop() is ignored
        self._playback_generation += 1
        self._playback.stop()
        self._speaking = False

    def _settle(self) -> None:
        """Leave PROCESSING/SPEAKING for whatever the speaker is doing now."""
        if self._playback.is_playing:
            self.state_machine.transition_to(SessionStatus.SPEAKING, "earlier playback still active")
        elif self.status in (SessionStatus.PROCESSING, SessionStatus.SPEAKING):
            self.state_machine.transition_to(SessionStatus.IDLE, "turn finished")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _set_interim(self, text: str) -> None:
        if text == self._interim:
            return
        self._interim = text
        if self._on_interim_change:
            try:
                self._on_interim_change(text)
            except Exception as e:
                logger.exception(f"Interim listener failed: {e}")

    def _schedule_interim_clear(self) -> None:
        self._cancel_interim_clear()
        loop = asyncio.get_running_loop()
        self._interim_clear_handle = loop.call_later(self.config.grace_delay, self._clear_interim)

    def _clear_interim(self) -> None:
        self._interim_clear_handle = None
        self._set_interim("")

    def _cancel_interim_clear(self) -> None:
        if self._interim_clear_handle is not None:
            self._interim_clear_handle.cancel()
            self._interim_clear_handle = None

    def _cancel_debounce(self) -> None:
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = None

    def _ensure_pump(self) -> None:
        if self._pump_task is None or self._pump_task.done():
            self._pump_task = asyncio.get_running_loop().create_task(self._pump_capture_events())

    def _track(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _cancel_tasks(self) -> None:
        tasks = [t for t in (self._reply_task, self._pump_task, *self._background) if t is not None]
        current = asyncio.current_task()
        tasks = [t for t in tasks if t is not current and not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._reply_task = None
        self._pump_task = None

    def _report(self, component: str, severity: ErrorSeverity, message: str,
                exception: Optional[BaseException] = None) -> None:
        self.error_handler.handle_error(ComponentError(
            component=component,
            severity=severity,
            message=message,
            exception=exception,
            context={'status': self.status.name, 'persona': self.persona.id}
        ))

    def _report_unsupported(self, component: str, error: UnsupportedCapability) -> None:
        """Surface a missing capability once per session."""
        if component in self._unsupported_notified:
            logger.debug(f"{component} still unsupported: {error}")
            return
        self._unsupported_notified.add(component)
        self._report(component, ErrorSeverity.WARNING, str(error), error)

    def get_status(self) -> Dict[str, Any]:
        """Get session status."""
        return {
            'status': self.status.name,
            'speaking': self._speaking,
            'interim': self._interim,
            'persona': self.persona.id,
            'messages': len(self.store),
            'pending_turns': len(self._pending),
            'reply_in_flight': self._reply_task is not None and not self._reply_task.done(),
            'capture_armed': self._capture.is_armed,
            'playback_active': self._playback.is_playing,
            'state': self.state_machine.get_status(),
            'errors': self.error_handler.get_error_summary(),
        }
