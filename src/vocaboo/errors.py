class VocabooError(Exception):
    """Base class for vocaboo errors."""


class EmptyVocabularyError(VocabooError):
    """Raised when a session is started over an empty vocabulary."""


class WordNotFoundError(VocabooError):
    def __init__(self, word_id: str):
        super().__init__(f"Word not found: {word_id}")
        self.word_id = word_id
