"""
Tests for the TrainingSession engine.
Run: python -m pytest tests/test_session.py -v
"""

import asyncio
import random

from vocaboo.enrichment import EnrichmentCoordinator, ImageProvider
from vocaboo.models import ImageStatus, WordStats
from vocaboo.session import TrainingSession
from vocaboo.vocabulary import VocabularyStore


class RecordingPronouncer:
    def __init__(self):
        self.spoken = []

    def speak(self, text):
        self.spoken.append(text)


class SlowProvider(ImageProvider):
    def __init__(self):
        self.gates = {}

    async def fetch_image(self, word):
        gate = self.gates.setdefault(word, asyncio.Event())
        await asyncio.shield(gate.wait())
        return f"https://images.test/{word}.jpg"


def _session(vocabulary, progress_store, rng, **kwargs):
    kwargs.setdefault("advance_delay", 0)
    return TrainingSession(vocabulary, progress_store, rng=rng, **kwargs)


def _move_to(session, word_id):
    for _ in range(len(session.words) * 2):
        if session.current_word.id == word_id:
            return
        session.on_advance()
    raise AssertionError(f"word {word_id} never came up")


class TestTrainingSession:
    def test_start_builds_card(self, vocabulary, progress_store, rng):
        session = _session(vocabulary, progress_store, rng)

        card = session.on_start()

        assert card.total == 4
        assert len(card.choices) == 4
        assert session.current_word.target in card.choices
        assert not card.revealed

    def test_repeated_wrong_click_scenario(self, vocabulary, progress_store, rng):
        session = _session(vocabulary, progress_store, rng)
        session.on_start()
        _move_to(session, "1")

        first = session.submit("dog")
        assert first.accepted and not first.is_correct
        assert vocabulary.get("1").stats == WordStats(seen=1, correct=0, wrong=1)
        assert session.current_word.id == "1"
        assert session.current_card().pending_correct_only

        second = session.submit("dog")
        assert not second.accepted
        assert vocabulary.get("1").stats == WordStats(seen=1, correct=0, wrong=1)

        third = session.submit("cat")
        assert third.accepted and third.is_correct and third.advance
        assert vocabulary.get("1").stats == WordStats(seen=2, correct=1, wrong=1)

        progress = progress_store.get()
        assert progress.total_answered == 2
        assert progress.total_correct == 1
        assert progress.streak == 1
        assert [h.correct for h in progress.history] == [False, True]

    def test_correct_answer_advances(self, vocabulary, progress_store, rng):
        session = _session(vocabulary, progress_store, rng)
        session.on_start()
        first_id = session.current_word.id

        record = session.submit(session.current_word.target.upper())

        assert record.is_correct
        assert session.sequencer.position == 1
        assert session.current_word.id != first_id
        assert not session.revealed

    def test_full_pass_then_reshuffle(self, vocabulary, progress_store, rng):
        session = _session(vocabulary, progress_store, rng)
        session.on_start()
        seen = []
        for _ in range(4):
            seen.append(session.current_word.id)
            session.submit(session.current_word.target)

        assert sorted(seen) == ["1", "2", "3", "4"]
        assert session.sequencer.position == 0
        assert sorted(session.sequencer.order) == [0, 1, 2, 3]

    def test_seen_matches_answers_over_random_play(self, vocabulary, progress_store):
        rng = random.Random(5)
        session = _session(vocabulary, progress_store, rng)
        session.on_start()
        for _ in range(200):
            session.submit(rng.choice(session.current_card().choices))

        for word in vocabulary.get_all():
            assert word.stats.seen == word.stats.correct + word.stats.wrong
        progress = progress_store.get()
        assert progress.total_answered == sum(w.stats.seen for w in vocabulary.get_all())
        assert len(progress.history) <= 200

    def test_every_accepted_answer_speaks_correct_word(self, vocabulary, progress_store, rng):
        pronouncer = RecordingPronouncer()
        session = _session(vocabulary, progress_store, rng, pronouncer=pronouncer)
        session.on_start()
        _move_to(session, "1")

        session.submit("dog")
        session.submit("dog")
        session.submit("cat")

        assert pronouncer.spoken == ["cat", "cat"]

    def test_correct_first_try_speaks_once(self, vocabulary, progress_store, rng):
        pronouncer = RecordingPronouncer()
        session = _session(vocabulary, progress_store, rng, pronouncer=pronouncer)
        session.on_start()
        _move_to(session, "2")

        session.submit("dog")

        assert pronouncer.spoken == ["dog"]

    def test_card_title_and_labels_are_display_only(self, redis_client, progress_store, rng):
        store = VocabularyStore(redis_client, prefix="display")
        store.add("мороженое", "ice-cream")
        store.add("кот", "cat")
        session = _session(store, progress_store, rng)
        session.on_start()
        _move_to(session, store.get_all()[0].id)

        card = session.current_card()
        assert card.title == "Мороженое"
        assert card.source == "мороженое"
        assert sorted(card.choices) == ["cat", "ice-cream"]
        assert card.labels == [{"cat": "Cat", "ice-cream": "Ice-Cream"}[c] for c in card.choices]

        assert session.submit("ice-cream").is_correct

    def test_close_keeps_saved_position(self, vocabulary, progress_store, state_store, rng):
        session = _session(vocabulary, progress_store, rng, state_store=state_store)
        session.on_start()
        session.submit(session.current_word.target)

        session.close()

        assert state_store.get().position == 1

    def test_close_with_discard_drops_saved_position(self, vocabulary, progress_store, state_store, rng):
        session = _session(vocabulary, progress_store, rng, state_store=state_store)
        session.on_start()
        session.submit(session.current_word.target)

        session.close(discard=True)
        assert state_store.get() is None

        card = _session(vocabulary, progress_store, rng, state_store=state_store).on_start(resume=True)
        assert card.position == 0

    def test_empty_vocabulary_degrades(self, redis_client, progress_store, rng):
        session = _session(VocabularyStore(redis_client, prefix="empty"), progress_store, rng)

        assert session.on_start() is None
        assert session.current_card() is None
        assert session.submit("cat") is None
        assert session.on_advance() is None

    def test_single_word_vocabulary(self, redis_client, progress_store, rng):
        store = VocabularyStore(redis_client, prefix="single")
        store.add("кот", "cat")
        session = _session(store, progress_store, rng)

        card = session.on_start()
        assert card.choices == ["cat"]

        assert session.submit("cat").is_correct
        assert session.current_card().choices == ["cat"]

    def test_vocabulary_growth_rebuilds_order(self, vocabulary, progress_store, rng):
        session = _session(vocabulary, progress_store, rng)
        session.on_start()
        session.submit(session.current_word.target)

        vocabulary.add("корова", "cow")
        card = session.on_vocabulary_changed()

        assert card.total == 5
        assert card.position == 0
        assert sorted(session.sequencer.order) == list(range(5))

    def test_deleting_current_word_moves_on(self, vocabulary, progress_store, rng):
        session = _session(vocabulary, progress_store, rng)
        session.on_start()
        current = session.current_word.id

        vocabulary.remove(current)
        card = session.on_vocabulary_changed()

        assert card.total == 3
        assert card.word_id != current

    def test_deleted_word_detected_on_submit(self, vocabulary, progress_store, rng):
        session = _session(vocabulary, progress_store, rng)
        session.on_start()
        current = session.current_word.id
        vocabulary.remove(current)

        assert session.submit(session.current_word.target) is None
        assert progress_store.get().total_answered == 0
        assert session.current_word.id != current

    def test_edit_keeps_card_and_refreshes_choices(self, vocabulary, progress_store, rng):
        session = _session(vocabulary, progress_store, rng)
        session.on_start()
        current = session.current_word
        other = next(w for w in vocabulary.get_all() if w.id != current.id)

        vocabulary.upsert(other.id, {"target": "whale"})
        card = session.on_vocabulary_changed()

        assert card.word_id == current.id
        assert "whale" in card.choices

    def test_resume_restores_position(self, vocabulary, progress_store, state_store, rng):
        session = _session(vocabulary, progress_store, rng, state_store=state_store)
        session.on_start()
        session.submit(session.current_word.target)
        session.submit("definitely wrong")
        saved = state_store.get()

        resumed = _session(vocabulary, progress_store, random.Random(0), state_store=state_store)
        card = resumed.on_start(resume=True)

        assert resumed.sequencer.order == saved.order
        assert card.position == 1
        assert card.pending_correct_only

    def test_resume_after_unfinished_pause_moves_on(self, vocabulary, progress_store, state_store, rng):
        session = _session(vocabulary, progress_store, rng, state_store=state_store, advance_delay=5)

        async def answer():
            session.on_start()
            session.submit(session.current_word.target)
            session.close()

        asyncio.run(answer())
        assert state_store.get().revealed

        resumed = _session(vocabulary, progress_store, rng, state_store=state_store)
        card = resumed.on_start(resume=True)

        assert card.position == 1
        assert not card.revealed


class TestAsyncTrainingSession:
    def test_advance_waits_for_feedback_pause(self, vocabulary, progress_store, rng):
        async def scenario():
            session = _session(vocabulary, progress_store, rng, advance_delay=0.02)
            session.on_start()
            record = session.submit(session.current_word.target)
            assert record.advance
            assert session.advance_pending
            assert session.sequencer.position == 0
            # Clicking again during the pause scores nothing.
            assert not session.submit(session.current_word.target).accepted
            await asyncio.sleep(0.05)
            return session

        session = asyncio.run(scenario())
        assert session.sequencer.position == 1
        assert not session.advance_pending
        assert progress_store.get().total_answered == 1

    def test_close_cancels_pending_advance(self, vocabulary, progress_store, rng):
        async def scenario():
            session = _session(vocabulary, progress_store, rng, advance_delay=0.02)
            session.on_start()
            session.submit(session.current_word.target)
            session.close()
            await asyncio.sleep(0.05)
            return session

        session = asyncio.run(scenario())
        assert session.sequencer.position == 0
        assert not session.advance_pending

    def test_image_for_previous_card_is_discarded(self, vocabulary, progress_store, rng):
        provider = SlowProvider()

        async def scenario():
            session = _session(
                vocabulary, progress_store, rng, enrichment=EnrichmentCoordinator(provider)
            )
            session.on_start()
            first = session.current_word.target
            await asyncio.sleep(0)
            session.submit(first)
            second = session.current_word.target
            assert session.current_card().image.status == ImageStatus.FETCHING

            provider.gates[first].set()
            await asyncio.sleep(0.01)
            assert session.current_card().image.status == ImageStatus.FETCHING

            await asyncio.sleep(0)
            provider.gates[second].set()
            await session.enrichment.wait()
            return session.current_card(), second

        card, second = asyncio.run(scenario())
        assert card.image.status == ImageStatus.RESOLVED
        assert card.image.url == f"https://images.test/{second}.jpg"

    def test_replaced_card_survives_stale_advance(self, vocabulary, progress_store, rng):
        async def scenario():
            session = _session(vocabulary, progress_store, rng, advance_delay=0.02)
            session.on_start()
            answered = session.current_word.id
            session.submit(session.current_word.target)
            assert session.advance_pending

            vocabulary.remove(answered)
            vocabulary.add("корова", "cow")
            card = session.on_vocabulary_changed()
            assert card.word_id != answered
            assert not session.advance_pending

            await asyncio.sleep(0.05)
            return session, card

        session, card = asyncio.run(scenario())
        after = session.current_card()
        assert after.word_id == card.word_id
        assert after.position == card.position
        assert not after.revealed

    def test_close_leaves_image_idle(self, vocabulary, progress_store, rng):
        provider = SlowProvider()

        async def scenario():
            session = _session(
                vocabulary, progress_store, rng, enrichment=EnrichmentCoordinator(provider)
            )
            session.on_start()
            assert session.current_card().image.status == ImageStatus.FETCHING
            session.close()
            await asyncio.sleep(0.01)
            return session

        session = asyncio.run(scenario())
        assert session.current_card().image.status == ImageStatus.IDLE
