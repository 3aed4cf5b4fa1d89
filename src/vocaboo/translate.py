import asyncio
import logging
import re
from typing import Any, Callable, Dict, List, Optional

import httpx

from .config import settings

logger = logging.getLogger(__name__)

_QUOTES = re.compile(r"^[\"'«»„“”]+|[\"'«»„“”]+$")
_SPACES = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"[.,!?;:/()\[\]{}]")
_LATIN_WORD = re.compile(r"^[A-Za-z-]+$")

MIN_MATCH = 0.3
MIN_QUALITY = 40
MAX_WORD_LENGTH = 24


class MyMemoryTranslationProvider:
    """Translation suggestions for the add-word form, ranked best first."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        url: str = settings.TRANSLATE_URL,
        max_results: int = settings.TRANSLATE_MAX_RESULTS,
    ):
        self.url = url
        self.max_results = max_results
        self.client = client or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)

    async def fetch_translations(
        self,
        query: str,
        source: str = settings.SOURCE_LANG,
        target: str = settings.TARGET_LANG,
    ) -> List[str]:
        raw = (query or "").strip()
        if not raw:
            return []

        try:
            response = await self.client.get(
                self.url,
                params={"q": raw, "langpair": f"{source}|{target}", "of": "json"},
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Translation fetch failed for '{raw}': {e}")
            return []

        single_word = not _SPACES.search(raw)
        candidates = self._collect(data, single_word)
        ranked = sorted(
            self._filter(candidates),
            key=lambda c: self._score(c, target),
            reverse=True,
        )
        return [c["text"] for c in ranked][: self.max_results]

    def _collect(self, data: Any, single_word: bool) -> List[Dict[str, Any]]:
        if not isinstance(data, dict):
            return []
        candidates = []

        response_data = data.get("responseData")
        if isinstance(response_data, dict):
            self._push(
                candidates,
                response_data.get("translatedText"),
                single_word,
                match=1,
                quality=100,
            )

        matches = data.get("matches")
        if isinstance(matches, list):
            for m in matches:
                if not isinstance(m, dict):
                    continue
                self._push(
                    candidates,
                    m.get("translation"),
                    single_word,
                    match=_number(m.get("match")),
                    quality=_number(m.get("quality")),
                )
        return candidates

    @staticmethod
    def _push(candidates: list, text: Any, single_word: bool, **meta) -> None:
        if not isinstance(text, str):
            return
        s = _QUOTES.sub("", text.strip())
        s = _SPACES.sub(" ", s).strip()
        if not s:
            return
        if single_word:
            if " " in s or _PUNCTUATION.search(s) or len(s) > MAX_WORD_LENGTH:
                return
        candidates.append({"text": s, **meta})

    @staticmethod
    def _filter(candidates: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        seen = set()
        unique = []
        for c in candidates:
            key = c["text"].lower()
            if key in seen:
                continue
            seen.add(key)
            unique.append(c)
        return [c for c in unique if c["match"] >= MIN_MATCH or c["quality"] >= MIN_QUALITY]

    @staticmethod
    def _score(candidate: Dict[str, Any], target: str) -> float:
        text = candidate["text"]
        score = candidate["match"] * 2 + candidate["quality"] / 100
        if target == "en" and _LATIN_WORD.match(text):
            score += 0.25
        if 2 <= len(text) <= 16:
            score += 0.1
        if len(text) > MAX_WORD_LENGTH:
            score -= 0.5
        return score

    async def aclose(self) -> None:
        await self.client.aclose()


def _number(value: Any) -> float:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0


class DebouncedLookup:
    """Runs a suggestion lookup once typing settles.

    Every ``submit`` drops the pending timer and any request still in
    flight; only the newest query can produce results.
    """

    def __init__(
        self,
        provider: MyMemoryTranslationProvider,
        on_result: Optional[Callable[[str, List[str]], None]] = None,
        delay: float = settings.TRANSLATE_DEBOUNCE_SECONDS,
    ):
        self.provider = provider
        self.on_result = on_result
        self.delay = delay
        self.generation = 0
        self._task: Optional[asyncio.Task] = None

    def submit(self, query: str) -> Optional[asyncio.Task]:
        self.cancel()
        self.generation += 1
        if not (query or "").strip():
            return None
        self._task = asyncio.get_running_loop().create_task(
            self._run(self.generation, query)
        )
        return self._task

    async def lookup(self, query: str) -> Optional[List[str]]:
        """Suggestions for ``query``, or None once a newer query replaced it."""
        task = self.submit(query)
        if task is None:
            return []
        await asyncio.wait([task])
        if task.cancelled():
            return None
        return task.result()

    async def _run(self, generation: int, query: str) -> Optional[List[str]]:
        await asyncio.sleep(self.delay)
        results = await self.provider.fetch_translations(query)
        if generation != self.generation:
            return None
        if self.on_result:
            self.on_result(query, results)
        return results

    async def wait(self) -> None:
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait([task])

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def close(self) -> None:
        self.cancel()
        self.generation += 1
