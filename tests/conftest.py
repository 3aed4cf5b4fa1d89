import random

import fakeredis
import pytest

from vocaboo.models import WordPair
from vocaboo.vocabulary import ProgressStore, SessionStateStore, VocabularyStore

ANIMALS = [
    WordPair(id="1", source="кот", target="cat"),
    WordPair(id="2", source="собака", target="dog"),
    WordPair(id="3", source="птица", target="bird"),
    WordPair(id="4", source="рыба", target="fish"),
]


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def vocabulary(redis_client):
    store = VocabularyStore(redis_client)
    for word in ANIMALS:
        store.upsert(word.id, word.model_dump())
    return store


@pytest.fixture
def progress_store(redis_client):
    return ProgressStore(redis_client)


@pytest.fixture
def state_store(redis_client):
    return SessionStateStore(redis_client)


@pytest.fixture
def rng():
    return random.Random(1234)
