import random
from typing import Callable, Dict, Optional, Sequence

from .config import settings
from .models import ChoiceSet
from .strings import normalize


# --- Multiple choice: distractor generation ---
class ChoiceGenerator:
    """Builds the answer buttons for one card from the whole vocabulary."""

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        normalizer: Callable[[str], str] = normalize,
        distractors: int = settings.CHOICE_DISTRACTORS,
    ):
        self.rng = rng or random.Random()
        self.normalizer = normalizer
        self.distractors = distractors

    def build(
        self, correct_answer: str, all_answers: Sequence[str], exclude_index: int
    ) -> ChoiceSet:
        correct = (correct_answer or "").strip()
        pool = self._candidate_pool(correct, all_answers, exclude_index)

        count = min(self.distractors, len(pool))
        incorrect = self.rng.sample(pool, count) if count else []

        options = [correct] + incorrect
        self.rng.shuffle(options)
        return ChoiceSet(correct=correct, distractors=incorrect, display_order=options)

    def _candidate_pool(
        self, correct: str, all_answers: Sequence[str], exclude_index: int
    ) -> list:
        """Non-empty answers, one per normalized form, never the correct one."""
        unique: Dict[str, str] = {self.normalizer(correct): correct}
        pool = []
        for index, answer in enumerate(all_answers):
            if index == exclude_index:
                continue
            text = (answer or "").strip()
            key = self.normalizer(text)
            if not key or key in unique:
                continue
            unique[key] = text
            pool.append(text)
        return pool
