"""
Speech-to-text session built on the SpeechRecognition library.

The microphone is opened once at startup and held until close(); each
press of the talk key makes exactly one listen() call.
"""

import logging
from typing import Any, Callable, List, Optional, Tuple

import speech_recognition as sr
from rich.table import Table

from grok_talk.errors import NoInputDeviceError, TranscriptionError
from grok_talk.voice_logger import console

logger = logging.getLogger("grok_talk.transcriber")


def ensure_input_device(device_index: Optional[int] = None) -> str:
    """Return the name of the input device, or raise if there is none.

    Raises:
        NoInputDeviceError: If no input device is available.
    """
    try:
        import sounddevice as sd

        info = sd.query_devices(device_index, kind="input")
    except Exception as e:
        raise NoInputDeviceError(f"No audio input device available: {e}") from e
    if not info or info.get("max_input_channels", 0) <= 0:
        raise NoInputDeviceError(f"Device {device_index} has no input channels")
    return info["name"]


def list_input_devices() -> List[Tuple[int, dict]]:
    """List all available input audio devices.

    Prints a table with index, name, channel count, sample rate and the
    default device marker.

    Returns:
        List of tuples (device_index, device_info) for all input devices.
    """
    try:
        import sounddevice as sd

        infos = sd.query_devices()
        default = sd.default.device
    except Exception as e:
        logger.error(f"Could not query devices: {e}", exc_info=True)
        return []

    inputs: List[Tuple[int, dict]] = []
    table = Table(title="Available Input Devices")
    table.add_column("Index", style="cyan")
    table.add_column("Device Name", style="green")
    table.add_column("Channels", justify="right", style="yellow")
    table.add_column("Sample Rate", justify="right", style="magenta")
    table.add_column("Status", style="blue")

    for i, info in enumerate(infos):
        if info.get("max_input_channels", 0) > 0:
            inputs.append((i, info))
            status = "[DEFAULT]" if isinstance(default, (tuple, list)) and default[0] == i else ""
            table.add_row(
                str(i),
                info["name"],
                str(info.get("max_input_channels")),
                f"{info.get('default_samplerate', 0):.0f} Hz",
                status,
            )

    console.print(table)
    return inputs


class Transcriber:
    """Listens on the microphone and turns one spoken phrase into text.

    Attributes:
        initial_silence_timeout: Seconds to wait for speech to begin before
            giving up with "nothing heard"; applies to every listen() call.
        language: Recognition language tag, e.g. "en-US".
    """

    def __init__(
        self,
        initial_silence_timeout: float = 5.0,
        language: str = "en-US",
        device_index: Optional[int] = None,
        calibrate_seconds: float = 0.5,
        recognizer: Optional[sr.Recognizer] = None,
        microphone: Any = None,
        recognize: Optional[Callable[[sr.AudioData], str]] = None,
    ) -> None:
        """Open the microphone and prepare the recognizer.

        Raises:
            NoInputDeviceError: If no microphone can be opened.
        """
        device_name = ensure_input_device(device_index)
        logger.info(f"Input device: {device_name}")

        self.initial_silence_timeout = initial_silence_timeout
        self.language = language
        self._recognizer = recognizer if recognizer is not None else sr.Recognizer()
        self._recognize = recognize if recognize is not None else self._recognize_google

        try:
            self._microphone = microphone if microphone is not None else sr.Microphone(device_index=device_index)
            self._source = self._microphone.__enter__()
        except (OSError, AttributeError) as e:
            # AttributeError: SpeechRecognition reports a missing PyAudio this way
            raise NoInputDeviceError(f"Could not open microphone: {e}") from e
        self._closed = False

        if calibrate_seconds > 0:
            try:
                self._recognizer.adjust_for_ambient_noise(self._source, duration=calibrate_seconds)
                logger.debug(f"Energy threshold calibrated to {self._recognizer.energy_threshold:.0f}")
            except Exception as e:
                logger.warning(f"Ambient noise calibration failed: {e}")

    def _recognize_google(self, audio: sr.AudioData) -> str:
        return self._recognizer.recognize_google(audio, language=self.language)

    def listen(self, timeout: float) -> Optional[str]:
        """Capture one phrase and return its text.

        Args:
            timeout: Longest phrase to capture, in seconds.

        Returns:
            The recognized text, or None if nothing intelligible was heard.

        Raises:
            TranscriptionError: If the recognition service fails.
        """
        if self._closed:
            raise TranscriptionError("Transcriber is closed")

        try:
            audio = self._recognizer.listen(
                self._source,
                timeout=self.initial_silence_timeout,
                phrase_time_limit=timeout,
            )
        except sr.WaitTimeoutError:
            logger.debug("No speech before the silence timeout")
            return None

        try:
            text = self._recognize(audio)
        except sr.UnknownValueError:
            logger.debug("Speech was not intelligible")
            return None
        except sr.RequestError as e:
            raise TranscriptionError(f"Speech recognition service failed: {e}") from e

        text = (text or "").strip()
        return text or None

    def close(self) -> None:
        """Release the microphone. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._microphone.__exit__(None, None, None)
        logger.debug("Microphone released")

    def __enter__(self) -> "Transcriber":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
