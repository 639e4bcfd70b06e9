from __future__ import annotations

from types import SimpleNamespace

from grok_talk.speech import Speaker


class _FakeEngine:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.said: list[str] = []
        self.properties: dict = {"rate": 200, "voices": []}
        self.runs = 0
        self.stops = 0

    def getProperty(self, name):
        return self.properties.get(name)

    def setProperty(self, name, value) -> None:
        self.properties[name] = value

    def say(self, text: str) -> None:
        if self.fail:
            raise RuntimeError("audio device busy")
        self.said.append(text)

    def runAndWait(self) -> None:
        self.runs += 1

    def stop(self) -> None:
        self.stops += 1


def test_speak_blocks_until_spoken() -> None:
    engine = _FakeEngine()
    speaker = Speaker(engine=engine)

    speaker.speak("Hello\n  there,   Bruce.")

    assert engine.said == ["Hello there, Bruce."]
    assert engine.runs == 1


def test_speak_skips_empty_text() -> None:
    engine = _FakeEngine()

    Speaker(engine=engine).speak("  \n ")

    assert engine.said == []
    assert engine.runs == 0


def test_speak_never_raises() -> None:
    speaker = Speaker(engine=_FakeEngine(fail=True))

    speaker.speak("this will fail")


def test_rate_volume_and_voice_are_applied() -> None:
    engine = _FakeEngine()
    engine.properties["voices"] = [
        SimpleNamespace(id="com.apple.voice.alex", name="Alex"),
        SimpleNamespace(id="com.apple.voice.samantha", name="Samantha"),
    ]

    Speaker(rate=180, volume=1.5, voice="samantha", engine=engine)

    assert engine.properties["rate"] == 180
    assert engine.properties["volume"] == 1.0
    assert engine.properties["voice"] == "com.apple.voice.samantha"


def test_close_stops_engine_once() -> None:
    engine = _FakeEngine()
    speaker = Speaker(engine=engine)

    speaker.close()
    speaker.close()
    speaker.speak("ignored after close")

    assert engine.stops == 1
    assert engine.said == []
