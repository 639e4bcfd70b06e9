from __future__ import annotations

from typing import Optional

from grok_talk.assistant import AssistantResult
from grok_talk.hotkeys import HotkeyMonitor


class FakeMonitor(HotkeyMonitor):
    """Replays a scripted sequence of talk-key samples, then requests quit."""

    def __init__(self, talk_states: list[bool]) -> None:
        super().__init__("ctrl_r", "esc")
        self.talk_states = list(talk_states)
        self.drains = 0
        self.closed = 0

    def is_talk_key_down(self) -> bool:
        if not self.talk_states:
            return False
        return self.talk_states.pop(0)

    def poll_quit_requested(self) -> bool:
        return not self.talk_states

    def drain_input(self) -> None:
        self.drains += 1

    def close(self) -> None:
        self.closed += 1


class FakeTranscriber:
    def __init__(self, utterances: Optional[list[Optional[str]]] = None, error: Exception | None = None) -> None:
        self.utterances = list(utterances or [])
        self.error = error
        self.calls: list[float] = []
        self.closed = 0

    def listen(self, timeout: float) -> Optional[str]:
        self.calls.append(timeout)
        if self.error is not None:
            raise self.error
        return self.utterances.pop(0) if self.utterances else None

    def close(self) -> None:
        self.closed += 1


class FakeAssistant:
    def __init__(self, result: AssistantResult | None = None, error: Exception | None = None) -> None:
        self.result = result or AssistantResult(reply="Hello from Grok")
        self.error = error
        self.asked: list[str] = []
        self.closed = 0

    def ask(self, utterance: str) -> AssistantResult:
        self.asked.append(utterance)
        if self.error is not None:
            raise self.error
        return self.result

    def close(self) -> None:
        self.closed += 1


class FakeSpeaker:
    def __init__(self, close_error: Exception | None = None) -> None:
        self.spoken: list[str] = []
        self.close_error = close_error
        self.closed = 0

    def speak(self, text: str) -> None:
        self.spoken.append(text)

    def close(self) -> None:
        self.closed += 1
        if self.close_error is not None:
            raise self.close_error

