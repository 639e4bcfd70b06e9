"""
Push-to-talk session loop.

One cycle per press of the talk key:

    IDLE -> LISTENING -> PROCESSING -> SPEAKING -> IDLE

Cycles run strictly one after another on the calling thread. Any fault
inside a cycle is logged and announced, then the loop carries on; only the
quit key (or Ctrl+C) ends it.
"""

import logging
import time
from contextlib import ExitStack, contextmanager
from enum import Enum
from typing import Any, Callable, Iterator, Optional

from rich.console import Console
from rich.markup import escape

from grok_talk.assistant import AssistantClient, AssistantErrorKind, AssistantResult
from grok_talk.hotkeys import HotkeyMonitor, create_hotkey_monitor
from grok_talk.settings import Settings
from grok_talk.speech import Speaker
from grok_talk.transcriber import Transcriber
from grok_talk.voice_logger import console as default_console

logger = logging.getLogger("grok_talk.session")

QUOTA_MESSAGE: str = "Sorry, the Grok account is out of API credits. Please top up your x.AI account."
NETWORK_MESSAGE: str = "Sorry, I can't reach the Grok servers. Please check your internet connection."
OTHER_MESSAGE: str = "Sorry, Grok couldn't answer that right now. Please try again."
FALLBACK_MESSAGE: str = "Sorry, something went wrong. Please try again."


class LoopState(Enum):
    IDLE = "idle"
    LISTENING = "listening"
    PROCESSING = "processing"
    SPEAKING = "speaking"
    TERMINATED = "terminated"


def message_for_error(kind: AssistantErrorKind) -> str:
    """Spoken sentence for a failed Grok request."""
    if kind is AssistantErrorKind.QUOTA_EXCEEDED:
        return QUOTA_MESSAGE
    if kind is AssistantErrorKind.NETWORK_UNREACHABLE:
        return NETWORK_MESSAGE
    if kind is AssistantErrorKind.OTHER:
        return OTHER_MESSAGE
    raise ValueError(f"Unhandled assistant error kind: {kind}")


class SessionLoop:
    """Drives hotkey polling and the listen/ask/speak cycle.

    Attributes:
        state: Current LoopState.
        running: False once the loop has been asked to stop.
        cycles: Number of press cycles started so far.
    """

    def __init__(
        self,
        monitor: HotkeyMonitor,
        transcriber: Transcriber,
        assistant: AssistantClient,
        speaker: Speaker,
        *,
        poll_interval: float = 0.1,
        listen_timeout: float = 15.0,
        release_poll_interval: float = 0.01,
        greeting: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
        console: Optional[Console] = None,
    ) -> None:
        self.monitor = monitor
        self.transcriber = transcriber
        self.assistant = assistant
        self.speaker = speaker
        self.poll_interval = poll_interval
        self.listen_timeout = listen_timeout
        self.release_poll_interval = release_poll_interval
        self.greeting = greeting
        self._sleep = sleep
        self._console = console if console is not None else default_console

        self.state: LoopState = LoopState.IDLE
        self.running: bool = False
        self.cycles: int = 0

    def _set_state(self, state: LoopState) -> None:
        if state is not self.state:
            logger.debug(f"State: {self.state.value} -> {state.value}")
            self.state = state

    def stop(self) -> None:
        self.running = False

    def run(self) -> None:
        """Poll the hotkeys until quit is requested."""
        self.running = True
        self._set_state(LoopState.IDLE)
        logger.info("Session started")

        was_down = False
        try:
            if self.greeting:
                self.speaker.speak(self.greeting)

            while self.running:
                if self.monitor.poll_quit_requested():
                    logger.info("Quit key pressed")
                    break

                is_down = self.monitor.is_talk_key_down()
                if is_down and not was_down:
                    self.run_cycle()
                    self._wait_for_release()
                    self.monitor.drain_input()
                    is_down = False
                was_down = is_down

                self._sleep(self.poll_interval)
        except KeyboardInterrupt:
            logger.info("Interrupted")
        finally:
            self.running = False
            self._set_state(LoopState.TERMINATED)
            logger.info(f"Session ended after {self.cycles} cycle(s)")

    def run_cycle(self) -> None:
        """Listen for one utterance, ask Grok, speak the answer."""
        self.cycles += 1
        try:
            self._set_state(LoopState.LISTENING)
            logger.info("Listening...")
            utterance = self.transcriber.listen(self.listen_timeout)
            if utterance is None:
                logger.info("No speech detected")
                return

            self._console.print(f"[bold cyan]You:[/] {escape(utterance)}")
            logger.info(f"You: {utterance}")

            self._set_state(LoopState.PROCESSING)
            text = self._reply_text(self.assistant.ask(utterance))

            self._set_state(LoopState.SPEAKING)
            self.speaker.speak(text)
        except Exception as e:
            logger.error(f"Unexpected error during cycle: {e}", exc_info=True)
            self._console.print(f"[red]Error:[/] {escape(str(e))}")
            self.speaker.speak(FALLBACK_MESSAGE)
        finally:
            self._set_state(LoopState.IDLE)

    def _reply_text(self, result: AssistantResult) -> str:
        if result.ok:
            self._console.print(f"[bold green]Grok:[/] {escape(result.reply)}")
            logger.info(f"Grok: {result.reply}")
            return result.reply

        error = result.error
        message = message_for_error(error.kind)
        self._console.print(f"[red]Grok error ({error.kind.value}):[/] {escape(message)}")
        logger.warning(f"Grok error ({error.kind.value}): {error.message}")
        return message

    def _wait_for_release(self) -> None:
        # Holding the key past the end of a cycle must not start another one
        while self.monitor.is_talk_key_down():
            self._sleep(self.release_poll_interval)


def _dispose(name: str, close: Callable[[], Any]) -> None:
    try:
        close()
    except Exception as e:
        logger.error(f"Failed to release {name}: {e}", exc_info=True)


@contextmanager
def open_session(
    settings: Settings,
    *,
    speaker_factory: Callable[..., Speaker] = Speaker,
    transcriber_factory: Callable[..., Transcriber] = Transcriber,
    monitor_factory: Callable[..., HotkeyMonitor] = create_hotkey_monitor,
    assistant_factory: Callable[..., AssistantClient] = AssistantClient,
    sleep: Callable[[float], None] = time.sleep,
) -> Iterator[SessionLoop]:
    """Acquire every collaborator and yield a ready :class:`SessionLoop`.

    Whatever was acquired is released exactly once on exit, including when
    a later acquisition fails (e.g. NoInputDeviceError).
    """
    with ExitStack() as stack:
        speaker = speaker_factory(
            rate=settings.speech_rate,
            volume=settings.speech_volume,
            voice=settings.voice,
        )
        stack.callback(_dispose, "speech output", speaker.close)

        transcriber = transcriber_factory(
            initial_silence_timeout=settings.initial_silence_timeout,
            language=settings.language,
            device_index=settings.input_device,
            calibrate_seconds=settings.calibrate_seconds,
        )
        stack.callback(_dispose, "transcription session", transcriber.close)

        monitor = monitor_factory(settings.talk_key, settings.quit_key)
        stack.callback(_dispose, "hotkey monitor", monitor.close)
        monitor.start()

        assistant = assistant_factory(
            api_key=settings.api_key,
            model=settings.model,
            base_url=settings.base_url,
            timeout=settings.api_timeout,
        )
        stack.callback(_dispose, "assistant client", assistant.close)

        yield SessionLoop(
            monitor,
            transcriber,
            assistant,
            speaker,
            poll_interval=settings.poll_interval,
            listen_timeout=settings.listen_timeout,
            greeting=settings.greeting,
            sleep=sleep,
        )
