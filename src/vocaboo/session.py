import asyncio
import logging
import random
import time
from typing import Callable, List, Optional

from .config import settings
from .enrichment import EnrichmentCoordinator
from .errors import EmptyVocabularyError, WordNotFoundError
from .evaluator import AnswerEvaluator
from .models import AnswerRecord, CardImage, CardView, ChoiceSet, SessionState, WordPair
from .pronunciation import Pronouncer
from .quiz import ChoiceGenerator
from .sequencer import SessionSequencer
from .strings import normalize, title_case
from .vocabulary import ProgressStore, SessionStateStore, VocabularyStore

logger = logging.getLogger(__name__)


class TrainingSession:
    """One learner's quiz over the whole vocabulary.

    State only changes through the event methods (``on_start``,
    ``on_advance``, ``on_vocabulary_changed``, ``submit``). Each one runs to
    completion synchronously; the only deferred work is the illustration
    lookup and the pause before moving on after a correct answer.
    """

    def __init__(
        self,
        vocabulary: VocabularyStore,
        progress: ProgressStore,
        state_store: Optional[SessionStateStore] = None,
        enrichment: Optional[EnrichmentCoordinator] = None,
        pronouncer: Optional[Pronouncer] = None,
        rng: Optional[random.Random] = None,
        normalizer: Callable[[str], str] = normalize,
        advance_delay: float = settings.ADVANCE_DELAY_SECONDS,
        speak_on_reveal: bool = settings.SPEAK_ON_REVEAL,
        clock: Callable[[], float] = time.time,
    ):
        self.vocabulary = vocabulary
        self.progress = progress
        self.state_store = state_store
        self.enrichment = enrichment
        self.pronouncer = pronouncer
        self.rng = rng or random.Random()
        self.sequencer = SessionSequencer(self.rng)
        self.choices = ChoiceGenerator(self.rng, normalizer)
        self.evaluator = AnswerEvaluator(normalizer)
        self.advance_delay = advance_delay
        self.speak_on_reveal = speak_on_reveal
        self.clock = clock

        self.words: List[WordPair] = []
        self.revealed = False
        self.pending_correct_only = False
        self.choice_set: Optional[ChoiceSet] = None
        self._index: Optional[int] = None
        self._advance_handle: Optional[asyncio.TimerHandle] = None

    @property
    def state(self) -> SessionState:
        return SessionState(
            order=list(self.sequencer.order),
            position=self.sequencer.position,
            revealed=self.revealed,
            pending_correct_only=self.pending_correct_only,
        )

    @property
    def current_word(self) -> Optional[WordPair]:
        if self._index is None:
            return None
        return self.words[self._index]

    @property
    def advance_pending(self) -> bool:
        return self._advance_handle is not None

    # --- Events ---
    def on_start(self, resume: bool = False) -> Optional[CardView]:
        self._cancel_advance()
        self.words = self.vocabulary.get_all()

        saved = self.state_store.get() if resume and self.state_store else None
        if saved and saved.order and len(saved.order) == len(self.words):
            self.sequencer.restore(saved)
            self.revealed = saved.revealed
            self.pending_correct_only = saved.pending_correct_only
            logger.info(f"Resumed session at card {self.sequencer.position + 1}/{len(saved.order)}")
            if self.revealed and not self.pending_correct_only:
                # The pause after the last correct answer never finished.
                return self.on_advance()
        else:
            self._restart()
            logger.info(f"New session over {len(self.words)} words")

        self._enter_card()
        return self.current_card()

    def on_advance(self) -> Optional[CardView]:
        self._cancel_advance()
        self.words = self.vocabulary.get_all()
        self.revealed = False
        self.pending_correct_only = False

        if len(self.words) != len(self.sequencer.order):
            self._restart()
        else:
            self.sequencer.advance(len(self.words))
        self._enter_card()
        return self.current_card()

    def on_vocabulary_changed(self) -> Optional[CardView]:
        previous = self.current_word
        self.words = self.vocabulary.get_all()

        if len(self.words) != len(self.sequencer.order):
            self._cancel_advance()
            self._restart()
            self._enter_card()
            return self.current_card()

        index = self.sequencer.current_index(len(self.words))
        word = self.words[index] if index is not None else None
        if previous is not None and word is not None and word.id == previous.id:
            # Same card; only the answer pool may have changed.
            self._index = index
            self.choice_set = self._build_choices(index)
            norm = self.evaluator.normalizer
            changed = norm(word.target) != norm(previous.target)
            if changed and self.enrichment:
                self.enrichment.on_card_changed(word.target)
            return self.current_card()

        self._cancel_advance()
        self.revealed = False
        self.pending_correct_only = False
        self._enter_card()
        return self.current_card()

    def submit(self, selected: str) -> Optional[AnswerRecord]:
        word = self.current_word
        if word is None:
            return None

        ts = int(self.clock() * 1000)
        result = self.evaluator.evaluate(self.state, selected, word, self.progress.get(), ts)
        advance = result.accepted and result.is_correct

        if result.accepted:
            try:
                updated = self.vocabulary.patch_stats(word.id, result.stats)
            except WordNotFoundError:
                logger.warning(f"Answered word {word.id} no longer exists")
                self.on_vocabulary_changed()
                return None
            self.words[self._index] = updated
            self.progress.set(result.progress)
            self.revealed = result.state.revealed
            self.pending_correct_only = result.state.pending_correct_only
            self._save_state()

            if self.speak_on_reveal and self.pronouncer:
                self.pronouncer.speak(word.target)

        record = AnswerRecord(
            word_id=word.id,
            word=word.source,
            user_answer=selected or "",
            correct_answer=word.target,
            is_correct=result.is_correct,
            accepted=result.accepted,
            advance=advance,
            stats=result.stats,
            progress=result.progress,
        )
        if advance:
            self._schedule_advance()
        return record

    def report_image_error(self, token: int) -> None:
        if self.enrichment:
            self.enrichment.report_image_error(token)

    def close(self, discard: bool = False) -> None:
        """Leave the training view: nothing deferred may fire afterwards.

        With ``discard`` the saved position is dropped and the next start
        begins a fresh pass.
        """
        self._cancel_advance()
        if self.enrichment:
            self.enrichment.clear()
        if not self.state_store:
            return
        if discard:
            self.state_store.delete()
        else:
            self._save_state()

    # --- Views ---
    def current_card(self) -> Optional[CardView]:
        word = self.current_word
        if word is None or self.choice_set is None:
            return None
        return CardView(
            position=self.sequencer.position,
            total=len(self.sequencer.order),
            word_id=word.id,
            source=word.source,
            title=title_case(word.source),
            choices=list(self.choice_set.display_order),
            labels=[title_case(c) for c in self.choice_set.display_order],
            revealed=self.revealed,
            pending_correct_only=self.pending_correct_only,
            image=self.enrichment.image if self.enrichment else CardImage(),
        )

    # --- Internals ---
    def _restart(self) -> None:
        self.revealed = False
        self.pending_correct_only = False
        try:
            self.sequencer.start(len(self.words))
        except EmptyVocabularyError:
            logger.info("Vocabulary is empty, nothing to train")

    def _enter_card(self) -> None:
        self._index = self.sequencer.current_index(len(self.words))
        if self._index is None:
            self.choice_set = None
            if self.enrichment:
                self.enrichment.clear()
        else:
            self.choice_set = self._build_choices(self._index)
            if self.enrichment:
                self.enrichment.on_card_changed(self.words[self._index].target)
        self._save_state()

    def _build_choices(self, index: int) -> ChoiceSet:
        answers = [w.target for w in self.words]
        return self.choices.build(answers[index], answers, index)

    def _schedule_advance(self) -> None:
        self._cancel_advance()
        if self.advance_delay <= 0:
            self.on_advance()
            return
        loop = asyncio.get_running_loop()
        self._advance_handle = loop.call_later(self.advance_delay, self.on_advance)

    def _cancel_advance(self) -> None:
        if self._advance_handle is not None:
            self._advance_handle.cancel()
            self._advance_handle = None

    def _save_state(self) -> None:
        if self.state_store:
            self.state_store.set(self.state)
