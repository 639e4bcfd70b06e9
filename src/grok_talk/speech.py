"""Text-to-speech output via pyttsx3 (offline, uses the OS voices)."""

import logging
import re
from typing import Any, Optional

import pyttsx3

logger = logging.getLogger("grok_talk.speech")


class Speaker:
    """Speaks text synchronously; failures are logged, never raised."""

    def __init__(
        self,
        rate: Optional[int] = None,
        volume: Optional[float] = None,
        voice: Optional[str] = None,
        engine: Any = None,
    ) -> None:
        self.engine = engine if engine is not None else pyttsx3.init()
        if rate:
            self.engine.setProperty("rate", int(rate))
        if volume is not None:
            self.engine.setProperty("volume", max(0.0, min(1.0, float(volume))))
        if voice:
            self._select_voice(voice)
        self._closed = False

    def _select_voice(self, wanted: str) -> None:
        """Pick the first installed voice whose id or name contains ``wanted``."""
        wanted = wanted.lower()
        for v in self.engine.getProperty("voices") or []:
            if wanted in (v.id or "").lower() or wanted in (v.name or "").lower():
                self.engine.setProperty("voice", v.id)
                logger.debug(f"Using voice: {v.name}")
                return
        logger.warning(f"Voice not found: {wanted}; using the default voice")

    @staticmethod
    def _normalize(text: str) -> str:
        # Newlines and runs of spaces trip up some engines
        return re.sub(r"\s+", " ", text or "").strip()

    def speak(self, text: str) -> None:
        """Say ``text`` and return once it has been spoken."""
        text = self._normalize(text)
        if not text or self._closed:
            return
        try:
            self.engine.say(text)
            self.engine.runAndWait()
        except Exception as e:
            logger.error(f"Speech output failed: {e}", exc_info=True)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.engine.stop()
        logger.debug("Speech engine stopped")
