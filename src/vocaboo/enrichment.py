import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional
from urllib.parse import urlsplit

import httpx

from .config import settings
from .models import CardImage, ImageStatus

logger = logging.getLogger(__name__)


def is_valid_http_url(url: Any) -> bool:
    """Only absolute http(s) URLs coming back from a provider are trusted."""
    if not isinstance(url, str) or not url.strip():
        return False
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


# --- Providers ---
class ImageProvider(ABC):
    """Looks up one illustration URL for a display word."""

    @abstractmethod
    async def fetch_image(self, word: str) -> Optional[str]:
        pass

    async def aclose(self) -> None:
        pass


class PexelsImageProvider(ImageProvider):
    """Illustrations from the Pexels search API."""

    def __init__(
        self,
        api_key: str = settings.PEXELS_API_KEY,
        client: Optional[httpx.AsyncClient] = None,
        url: str = settings.PEXELS_URL,
    ):
        self.api_key = api_key
        self.url = url
        self.client = client or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)

    async def fetch_image(self, word: str) -> Optional[str]:
        term = (word or "").strip()
        if not term or not self.api_key:
            return None

        try:
            response = await self.client.get(
                self.url,
                params={"query": term, "per_page": 1, "orientation": "square"},
                headers={"Authorization": self.api_key},
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Pexels fetch failed for '{term}': {e}")
            return None

        return self._pick_url(data)

    @staticmethod
    def _pick_url(data: Any) -> Optional[str]:
        photos = data.get("photos") if isinstance(data, dict) else None
        photo = photos[0] if isinstance(photos, list) and photos else None
        src = photo.get("src") if isinstance(photo, dict) else None
        if not isinstance(src, dict):
            return None
        url = src.get("large") or src.get("medium") or src.get("original")
        return url.strip() if is_valid_http_url(url) else None

    async def aclose(self) -> None:
        await self.client.aclose()


# --- Coordinator ---
class EnrichmentCoordinator:
    """Fetches the illustration for the card on screen.

    Every card change bumps ``token``. A lookup captures the token it was
    started with and its result is applied only while that token is still
    current, so a slow answer for an old card can never land on a new one.
    """

    def __init__(self, provider: ImageProvider):
        self.provider = provider
        self.token = 0
        self.image = CardImage()
        self._task: Optional[asyncio.Task] = None

    def on_card_changed(self, word: str) -> int:
        self._cancel()
        self.token += 1
        token = self.token

        term = (word or "").strip()
        if not term:
            self.image = CardImage(status=ImageStatus.FAILED, token=token)
            return token

        self.image = CardImage(status=ImageStatus.FETCHING, token=token)
        self._task = asyncio.get_running_loop().create_task(self._lookup(token, term))
        return token

    def report_image_error(self, token: int) -> None:
        """The client could not display a resolved URL."""
        if token != self.token:
            return
        self.image = CardImage(status=ImageStatus.FAILED, token=token)

    def clear(self) -> None:
        self._cancel()
        self.token += 1
        self.image = CardImage(token=self.token)

    async def wait(self) -> None:
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait([task])

    async def _lookup(self, token: int, word: str) -> None:
        try:
            url = await self.provider.fetch_image(word)
        except Exception as e:
            logger.warning(f"Image lookup for '{word}' failed: {e}")
            url = None
        self._resolve(token, url)

    def _resolve(self, token: int, url: Optional[str]) -> None:
        if token != self.token:
            logger.debug(f"Discarding stale image result (token {token}, current {self.token})")
            return
        if is_valid_http_url(url):
            self.image = CardImage(status=ImageStatus.RESOLVED, url=url.strip(), token=token)
        else:
            self.image = CardImage(status=ImageStatus.FAILED, token=token)

    def _cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
