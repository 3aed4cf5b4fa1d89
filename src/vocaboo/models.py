import uuid
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


# --- Vocabulary ---
class WordStats(BaseModel):
    seen: int = 0
    correct: int = 0
    wrong: int = 0


class WordPair(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    source: str
    target: str
    stats: WordStats = Field(default_factory=WordStats)


class WordCreate(BaseModel):
    source: str
    target: str


# --- Progress ---
class HistoryEntry(BaseModel):
    ts: int
    correct: bool


class ProgressAggregate(BaseModel):
    total_answered: int = 0
    total_correct: int = 0
    streak: int = 0
    history: List[HistoryEntry] = Field(default_factory=list)

    @property
    def accuracy(self) -> int:
        if not self.total_answered:
            return 0
        return round(100 * self.total_correct / self.total_answered)


# --- Session ---
class SessionState(BaseModel):
    order: List[int] = Field(default_factory=list)
    position: int = 0
    revealed: bool = False
    pending_correct_only: bool = False


class ChoiceSet(BaseModel):
    correct: str
    distractors: List[str]
    display_order: List[str]


class ImageStatus(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    RESOLVED = "resolved"
    FAILED = "failed"


class CardImage(BaseModel):
    status: ImageStatus = ImageStatus.IDLE
    url: Optional[str] = None
    token: int = 0


class CardView(BaseModel):
    position: int
    total: int
    word_id: str
    source: str
    title: str
    choices: List[str]
    labels: List[str]
    revealed: bool
    pending_correct_only: bool
    image: CardImage


class AnswerRecord(BaseModel):
    word_id: str
    word: str
    user_answer: str
    correct_answer: str
    is_correct: bool
    accepted: bool
    advance: bool
    stats: WordStats
    progress: ProgressAggregate
