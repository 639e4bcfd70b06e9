"""Exceptions shared across grok-talk."""


class GrokTalkError(Exception):
    """Base class for grok-talk errors."""


class NoInputDeviceError(GrokTalkError):
    """No usable microphone; the assistant cannot start."""


class TranscriptionError(GrokTalkError):
    """The speech recognition service failed to process captured audio."""
