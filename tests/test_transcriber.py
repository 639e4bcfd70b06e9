from __future__ import annotations

import pytest
import speech_recognition as sr

from grok_talk import transcriber as transcriber_module
from grok_talk.errors import NoInputDeviceError, TranscriptionError
from grok_talk.transcriber import Transcriber


class _FakeMicrophone:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.entered = 0
        self.exited = 0

    def __enter__(self):
        if self.fail:
            raise OSError("No Default Input Device Available")
        self.entered += 1
        return "source"

    def __exit__(self, *exc_info) -> None:
        self.exited += 1


class _FakeRecognizer:
    def __init__(self, listen_error: Exception | None = None) -> None:
        self.listen_error = listen_error
        self.listen_calls: list[dict] = []
        self.calibrations: list[float] = []
        self.energy_threshold = 300.0

    def adjust_for_ambient_noise(self, source, duration: float) -> None:
        self.calibrations.append(duration)

    def listen(self, source, timeout=None, phrase_time_limit=None):
        self.listen_calls.append({"source": source, "timeout": timeout, "phrase_time_limit": phrase_time_limit})
        if self.listen_error is not None:
            raise self.listen_error
        return "audio"


@pytest.fixture(autouse=True)
def _device_present(monkeypatch) -> None:
    monkeypatch.setattr(transcriber_module, "ensure_input_device", lambda index=None: "Test Mic")


def _transcriber(recognizer=None, microphone=None, recognize=lambda audio: "hello grok", **kwargs) -> Transcriber:
    return Transcriber(
        initial_silence_timeout=kwargs.pop("initial_silence_timeout", 4.0),
        recognizer=recognizer or _FakeRecognizer(),
        microphone=microphone or _FakeMicrophone(),
        recognize=recognize,
        **kwargs,
    )


def test_listen_returns_recognized_text() -> None:
    recognizer = _FakeRecognizer()
    t = _transcriber(recognizer=recognizer, recognize=lambda audio: "  what's new  ")

    assert t.listen(12.0) == "what's new"
    assert recognizer.listen_calls == [{"source": "source", "timeout": 4.0, "phrase_time_limit": 12.0}]


def test_listen_timeout_returns_none() -> None:
    t = _transcriber(recognizer=_FakeRecognizer(listen_error=sr.WaitTimeoutError("timed out")))

    assert t.listen(10.0) is None


def test_unintelligible_speech_returns_none() -> None:
    def recognize(audio):
        raise sr.UnknownValueError()

    assert _transcriber(recognize=recognize).listen(10.0) is None


def test_blank_transcript_returns_none() -> None:
    assert _transcriber(recognize=lambda audio: "   ").listen(10.0) is None


def test_service_failure_raises_transcription_error() -> None:
    def recognize(audio):
        raise sr.RequestError("recognition connection failed")

    with pytest.raises(TranscriptionError):
        _transcriber(recognize=recognize).listen(10.0)


def test_calibrates_once_at_startup() -> None:
    recognizer = _FakeRecognizer()
    _transcriber(recognizer=recognizer, calibrate_seconds=0.25)

    assert recognizer.calibrations == [0.25]


def test_microphone_open_failure_is_no_input_device() -> None:
    with pytest.raises(NoInputDeviceError):
        _transcriber(microphone=_FakeMicrophone(fail=True))


def test_missing_input_device_is_fatal(monkeypatch) -> None:
    def no_device(index=None):
        raise NoInputDeviceError("No audio input device available")

    monkeypatch.setattr(transcriber_module, "ensure_input_device", no_device)
    microphone = _FakeMicrophone()

    with pytest.raises(NoInputDeviceError):
        _transcriber(microphone=microphone)
    assert microphone.entered == 0


def test_close_releases_microphone_once() -> None:
    microphone = _FakeMicrophone()
    t = _transcriber(microphone=microphone)

    t.close()
    t.close()

    assert microphone.exited == 1
    with pytest.raises(TranscriptionError):
        t.listen(5.0)
