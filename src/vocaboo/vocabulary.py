import glob
import logging
import os
from datetime import timedelta
from typing import Any, Dict, List, Optional

import pandas as pd
from pydantic import TypeAdapter
import redis
from redis import Redis

from .config import settings
from .errors import WordNotFoundError
from .models import ProgressAggregate, SessionState, WordPair, WordStats
from .strings import normalize

logger = logging.getLogger(__name__)

_WORD_LIST = TypeAdapter(List[WordPair])


def get_redis() -> Redis:
    return redis.from_url(settings.REDIS_URL, decode_responses=True)


DUMMY_WORDS = [
    ("собака", "dog"),
    ("кошка", "cat"),
    ("дерево", "tree"),
    ("дом", "house"),
    ("вода", "water"),
]

# Column pairs accepted in CSV files, newest layout first.
CSV_COLUMNS = [("source", "target"), ("word", "translation")]


def _pair_key(source: Any, target: Any) -> str:
    return f"{normalize(source)}|{normalize(target)}"


# --- Storage Layer: Vocabulary ---
class VocabularyStore:
    """Ordered word pairs kept as a single JSON document in Redis."""

    def __init__(self, redis_client: Redis, prefix: str = settings.KEY_PREFIX):
        self.redis = redis_client
        self.key = f"{prefix}:words"

    def get_all(self) -> List[WordPair]:
        raw = self.redis.get(self.key)
        if not raw:
            return []
        return _WORD_LIST.validate_json(raw)

    def get(self, word_id: str) -> WordPair:
        for word in self.get_all():
            if word.id == word_id:
                return word
        raise WordNotFoundError(word_id)

    def upsert(self, word_id: str, fields: Dict[str, Any]) -> WordPair:
        words = self.get_all()
        for i, word in enumerate(words):
            if word.id == word_id:
                merged = {**word.model_dump(), **fields, "id": word_id}
                words[i] = WordPair.model_validate(merged)
                self._save(words)
                return words[i]
        created = WordPair.model_validate({**fields, "id": word_id})
        words.append(created)
        self._save(words)
        return created

    def patch_stats(self, word_id: str, stats: WordStats) -> WordPair:
        if not any(word.id == word_id for word in self.get_all()):
            raise WordNotFoundError(word_id)
        return self.upsert(word_id, {"stats": stats.model_dump()})

    def remove(self, word_id: str) -> None:
        words = self.get_all()
        remaining = [word for word in words if word.id != word_id]
        if len(remaining) == len(words):
            raise WordNotFoundError(word_id)
        self._save(remaining)

    def add(self, source: str, target: str) -> Optional[WordPair]:
        """Append a new pair unless the same pair (normalized) already exists."""
        added = self.extend([(source, target)])
        return added[0] if added else None

    def extend(self, pairs: List[tuple]) -> List[WordPair]:
        words = self.get_all()
        existing = {_pair_key(w.source, w.target) for w in words}
        added = []
        for source, target in pairs:
            source, target = str(source).strip(), str(target).strip()
            key = _pair_key(source, target)
            if not source or not target or key in existing:
                continue
            existing.add(key)
            added.append(WordPair(source=source, target=target))
        if added:
            self._save(words + added)
        return added

    def import_csv(self, file_path: str) -> List[WordPair]:
        df = pd.read_csv(file_path, encoding="utf-8")
        for source_col, target_col in CSV_COLUMNS:
            if source_col in df.columns and target_col in df.columns:
                df = df[[source_col, target_col]].dropna()
                return self.extend(list(df.itertuples(index=False, name=None)))
        raise ValueError(f"{file_path}: missing source/target columns")

    def load_directory(self, directory: str = settings.VOCAB_DIR) -> int:
        """Import every CSV in ``directory``; seed dummy words if still empty."""
        if not os.path.exists(directory):
            os.makedirs(directory)
            logger.warning(f"Created directory {directory}. Please add CSV files.")

        for file_path in sorted(glob.glob(os.path.join(directory, "*.csv"))):
            try:
                added = self.import_csv(file_path)
                logger.info(f"Loaded {len(added)} new words from {file_path}")
            except (OSError, ValueError) as e:
                logger.error(f"Failed to load {file_path}: {e}")

        if not self.get_all():
            logger.warning("No vocabulary found. Loading dummy data.")
            self.extend(DUMMY_WORDS)
        return len(self.get_all())

    def _save(self, words: List[WordPair]) -> None:
        self.redis.set(self.key, _WORD_LIST.dump_json(words))


# --- Storage Layer: Progress ---
class ProgressStore:
    def __init__(self, redis_client: Redis, prefix: str = settings.KEY_PREFIX):
        self.redis = redis_client
        self.key = f"{prefix}:progress"

    def get(self) -> ProgressAggregate:
        raw = self.redis.get(self.key)
        if not raw:
            return ProgressAggregate()
        return ProgressAggregate.model_validate_json(raw)

    def set(self, progress: ProgressAggregate) -> None:
        self.redis.set(self.key, progress.model_dump_json())


# --- Storage Layer: resumable session ---
class SessionStateStore:
    def __init__(
        self,
        redis_client: Redis,
        prefix: str = settings.KEY_PREFIX,
        timeout_minutes: int = settings.SESSION_TIMEOUT_MINUTES,
    ):
        self.redis = redis_client
        self.key = f"{prefix}:session"
        self.timeout = timedelta(minutes=timeout_minutes)

    def get(self) -> Optional[SessionState]:
        raw = self.redis.get(self.key)
        if not raw:
            return None
        return SessionState.model_validate_json(raw)

    def set(self, state: SessionState) -> None:
        self.redis.set(self.key, state.model_dump_json(), ex=self.timeout)

    def delete(self) -> None:
        self.redis.delete(self.key)
