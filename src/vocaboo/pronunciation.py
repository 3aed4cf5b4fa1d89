import logging
import threading

import pyttsx3

from .config import settings

logger = logging.getLogger(__name__)


class Pronouncer:
    """Best-effort text-to-speech. Never raises, never blocks the caller."""

    def __init__(
        self,
        enabled: bool = settings.TTS_ENABLED,
        rate: int = settings.TTS_RATE,
        voice_lang: str = settings.TTS_VOICE_LANG,
    ):
        self.enabled = enabled
        self.rate = rate
        self.voice_lang = voice_lang

    def speak(self, text: str) -> None:
        if not self.enabled or not isinstance(text, str) or not text.strip():
            return
        thread = threading.Thread(target=self._speak, args=(text.strip(),), daemon=True)
        thread.start()

    def _speak(self, text: str) -> None:
        engine = None
        try:
            # The engine is created inside the worker thread and stopped there.
            engine = pyttsx3.init()
            engine.setProperty("rate", self.rate)
            for voice in engine.getProperty("voices") or []:
                if self.voice_lang in voice.id.lower() or self.voice_lang in voice.name.lower():
                    engine.setProperty("voice", voice.id)
                    break
            engine.say(text)
            engine.runAndWait()
        except Exception as e:
            logger.warning(f"Speech failed for '{text}': {e}")
        finally:
            if engine is not None:
                try:
                    engine.stop()
                except Exception as e:
                    logger.debug(f"Speech engine stop failed: {e}")
