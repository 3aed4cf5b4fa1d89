import os
from typing import Dict


class Settings:
    PROJECT_NAME: str = "vocaboo"
    DEBUG: bool = False
    LOG_DIR: str = "log"
    LOG_FILE: str = "vocaboo.log"
    REDIS_URL: str = os.environ.get("VOCABOO_REDIS_URL", "redis://localhost:6379/0")
    KEY_PREFIX: str = "vocaboo"
    VOCAB_DIR: str = "vocabulary"
    SESSION_TIMEOUT_MINUTES: int = 120

    # Training
    CHOICE_DISTRACTORS: int = 3
    HISTORY_LIMIT: int = 200
    ADVANCE_DELAY_SECONDS: float = 0.8
    FOLD_RULES: Dict[str, str] = {"ё": "е"}
    SPEAK_ON_REVEAL: bool = True

    # Enrichment
    PEXELS_URL: str = "https://api.pexels.com/v1/search"
    PEXELS_API_KEY: str = os.environ.get("PEXELS_API_KEY", "")
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Translation suggestions
    TRANSLATE_URL: str = "https://api.mymemory.translated.net/get"
    SOURCE_LANG: str = "ru"
    TARGET_LANG: str = "en"
    TRANSLATE_DEBOUNCE_SECONDS: float = 0.4
    TRANSLATE_MAX_RESULTS: int = 10

    # Pronunciation
    TTS_ENABLED: bool = False
    TTS_RATE: int = 150
    TTS_VOICE_LANG: str = "en"


settings = Settings()
