import logging
import os
import random
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI, Form, Request
from fastapi.responses import JSONResponse
from redis import Redis

from .config import settings
from .enrichment import EnrichmentCoordinator, ImageProvider, PexelsImageProvider
from .errors import WordNotFoundError
from .models import AnswerRecord, WordCreate
from .pronunciation import Pronouncer
from .session import TrainingSession
from .translate import DebouncedLookup, MyMemoryTranslationProvider
from .vocabulary import ProgressStore, SessionStateStore, VocabularyStore, get_redis

logger = logging.getLogger(__name__)


# --- Logging Setup ---
def configure_logging() -> None:
    package_logger = logging.getLogger("vocaboo")
    package_logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    if any(isinstance(h, RotatingFileHandler) for h in package_logger.handlers):
        return

    if not os.path.exists(settings.LOG_DIR):
        os.makedirs(settings.LOG_DIR)
    log_path = os.path.join(settings.LOG_DIR, settings.LOG_FILE)
    file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    )
    package_logger.addHandler(file_handler)


def create_app(
    redis_client: Optional[Redis] = None,
    image_provider: Optional[ImageProvider] = None,
    translator: Optional[MyMemoryTranslationProvider] = None,
    rng: Optional[random.Random] = None,
    advance_delay: float = settings.ADVANCE_DELAY_SECONDS,
    vocab_dir: Optional[str] = settings.VOCAB_DIR,
    translate_delay: float = settings.TRANSLATE_DEBOUNCE_SECONDS,
) -> FastAPI:
    redis_client = redis_client if redis_client is not None else get_redis()
    image_provider = image_provider or PexelsImageProvider()
    translator = translator or MyMemoryTranslationProvider()
    suggestions = DebouncedLookup(translator, delay=translate_delay)

    vocabulary = VocabularyStore(redis_client)
    session = TrainingSession(
        vocabulary,
        ProgressStore(redis_client),
        state_store=SessionStateStore(redis_client),
        enrichment=EnrichmentCoordinator(image_provider),
        pronouncer=Pronouncer(),
        rng=rng,
        advance_delay=advance_delay,
    )

    # --- Lifecycle ---
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        if vocab_dir:
            vocabulary.load_directory(vocab_dir)
        session.on_start(resume=True)
        yield
        session.close()
        suggestions.close()
        await image_provider.aclose()
        await translator.aclose()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )
    app.state.vocabulary = vocabulary
    app.state.session = session
    app.state.suggestions = suggestions

    # --- Dependencies ---
    def get_session(request: Request) -> TrainingSession:
        return request.app.state.session

    def get_vocabulary(request: Request) -> VocabularyStore:
        return request.app.state.vocabulary

    def no_card() -> JSONResponse:
        return JSONResponse({"error": "No words to train"}, status_code=404)

    # --- Training ---
    @app.post("/api/train/start")
    async def start_training(
        resume: bool = Form(False),
        session: TrainingSession = Depends(get_session),
    ):
        card = session.on_start(resume=resume)
        return card if card else no_card()

    @app.get("/api/train/card")
    async def get_card(session: TrainingSession = Depends(get_session)):
        card = session.current_card()
        return card if card else no_card()

    @app.post("/api/train/answer", response_model=AnswerRecord)
    async def submit_answer(
        selected: str = Form(...),
        session: TrainingSession = Depends(get_session),
    ):
        record = session.submit(selected)
        return record if record else no_card()

    @app.post("/api/train/image-error")
    async def image_error(
        token: int = Form(...),
        session: TrainingSession = Depends(get_session),
    ):
        session.report_image_error(token)
        return {"status": "success"}

    @app.post("/api/train/stop")
    async def stop_training(
        discard: bool = Form(False),
        session: TrainingSession = Depends(get_session),
    ):
        session.close(discard=discard)
        return {"status": "success"}

    @app.get("/api/progress")
    def get_progress(session: TrainingSession = Depends(get_session)):
        progress = session.progress.get()
        return {**progress.model_dump(), "accuracy": progress.accuracy}

    # --- Vocabulary ---
    @app.get("/api/words")
    def list_words(vocabulary: VocabularyStore = Depends(get_vocabulary)):
        return vocabulary.get_all()

    @app.post("/api/words")
    async def add_word(
        payload: WordCreate,
        vocabulary: VocabularyStore = Depends(get_vocabulary),
        session: TrainingSession = Depends(get_session),
    ):
        word = vocabulary.add(payload.source, payload.target)
        if word is None:
            return JSONResponse({"error": "Word already exists"}, status_code=409)
        logger.info(f"Added word {word.id} [{word.source} -> {word.target}]")
        session.on_vocabulary_changed()
        return word

    @app.delete("/api/words/{word_id}")
    async def remove_word(
        word_id: str,
        vocabulary: VocabularyStore = Depends(get_vocabulary),
        session: TrainingSession = Depends(get_session),
    ):
        try:
            vocabulary.remove(word_id)
        except WordNotFoundError as e:
            return JSONResponse({"error": str(e)}, status_code=404)
        logger.info(f"Removed word {word_id}")
        session.on_vocabulary_changed()
        return {"status": "success"}

    @app.get("/api/translate")
    async def translate(q: str, request: Request):
        found = await request.app.state.suggestions.lookup(q)
        if found is None:
            return JSONResponse(
                {"error": "Superseded by a newer query", "query": q}, status_code=409
            )
        return {"query": q, "suggestions": found}

    return app


app = create_app()


def run() -> None:
    uvicorn.run("vocaboo.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)


if __name__ == "__main__":
    run()
