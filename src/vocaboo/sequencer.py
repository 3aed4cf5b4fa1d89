import logging
import random
from typing import List, Optional

from .errors import EmptyVocabularyError
from .models import SessionState

logger = logging.getLogger(__name__)


def shuffled_indices(size: int, rng: random.Random) -> List[int]:
    """Uniform random permutation of ``range(size)``."""
    order = list(range(size))
    # random.shuffle is Fisher-Yates; every permutation is equally likely.
    rng.shuffle(order)
    return order


class SessionSequencer:
    """Owns the shuffled traversal order and the current position."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self.order: List[int] = []
        self.position = 0

    @property
    def started(self) -> bool:
        return bool(self.order)

    def start(self, vocabulary_size: int) -> None:
        if vocabulary_size <= 0:
            self.order = []
            self.position = 0
            raise EmptyVocabularyError("Cannot start a session without words")
        self._reshuffle(vocabulary_size)

    def advance(self, vocabulary_size: int) -> Optional[int]:
        """Move to the next card, starting a new pass after the last one."""
        if vocabulary_size <= 0:
            self.order = []
            self.position = 0
            return None
        if not self.started or self.position + 1 >= len(self.order):
            self._reshuffle(vocabulary_size)
        else:
            self.position += 1
        return self.current_index(vocabulary_size)

    def current_index(self, vocabulary_size: int) -> Optional[int]:
        if vocabulary_size <= 0 or not self.started:
            return None
        if self.position >= len(self.order) or self.order[self.position] >= vocabulary_size:
            # A word was removed under us; the pass no longer matches.
            logger.info(
                f"Order out of range (position {self.position}, size {vocabulary_size}), reshuffling"
            )
            self._reshuffle(vocabulary_size)
        return self.order[self.position]

    def restore(self, state: SessionState) -> None:
        self.order = list(state.order)
        self.position = state.position if state.position < len(state.order) else 0

    def _reshuffle(self, vocabulary_size: int) -> None:
        self.order = shuffled_indices(vocabulary_size, self.rng)
        self.position = 0
