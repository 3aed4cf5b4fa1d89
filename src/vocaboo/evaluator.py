from typing import Callable, NamedTuple

from .config import settings
from .models import HistoryEntry, ProgressAggregate, SessionState, WordPair, WordStats
from .strings import normalize


def apply_word_stats(stats: WordStats, correct: bool) -> WordStats:
    return WordStats(
        seen=stats.seen + 1,
        correct=stats.correct + (1 if correct else 0),
        wrong=stats.wrong + (0 if correct else 1),
    )


def apply_progress(
    progress: ProgressAggregate,
    correct: bool,
    ts: int,
    limit: int = settings.HISTORY_LIMIT,
) -> ProgressAggregate:
    """Fold one answer into the global aggregate; history is FIFO-bounded."""
    history = list(progress.history) + [HistoryEntry(ts=ts, correct=correct)]
    if len(history) > limit:
        history = history[-limit:]
    return ProgressAggregate(
        total_answered=progress.total_answered + 1,
        total_correct=progress.total_correct + (1 if correct else 0),
        streak=progress.streak + 1 if correct else 0,
        history=history,
    )


class Evaluation(NamedTuple):
    accepted: bool
    is_correct: bool
    state: SessionState
    stats: WordStats
    progress: ProgressAggregate


class AnswerEvaluator:
    """Scores submissions and reduces them into new stats and session state.

    Nothing here touches a store: ``evaluate`` returns every change as one
    value and the caller persists it.
    """

    def __init__(
        self,
        normalizer: Callable[[str], str] = normalize,
        history_limit: int = settings.HISTORY_LIMIT,
    ):
        self.normalizer = normalizer
        self.history_limit = history_limit

    def is_correct(self, selected: str, word: WordPair) -> bool:
        return self.normalizer(selected) == self.normalizer(word.target)

    def evaluate(
        self,
        state: SessionState,
        selected: str,
        word: WordPair,
        progress: ProgressAggregate,
        ts: int,
    ) -> Evaluation:
        correct = self.is_correct(selected, word)

        if state.revealed and not state.pending_correct_only:
            # Already answered correctly, waiting for the next card.
            return Evaluation(False, correct, state, word.stats, progress)
        if state.pending_correct_only and not correct:
            # Repeated mis-clicks on a revealed card are not scored again.
            return Evaluation(False, False, state, word.stats, progress)

        new_state = state.model_copy(
            update={"revealed": True, "pending_correct_only": not correct}
        )
        return Evaluation(
            accepted=True,
            is_correct=correct,
            state=new_state,
            stats=apply_word_stats(word.stats, correct),
            progress=apply_progress(progress, correct, ts, self.history_limit),
        )
