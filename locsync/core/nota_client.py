"""
Translation platform client
===========================

``BaseNotaClient`` is the narrow interface the engine consumes.
``NotaHttpClient`` implements it over the platform's JSON bridge API with
aiohttp. Requests are never retried here; failures surface as
``RemoteError`` to the operator.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, Iterator, List, Optional

import aiohttp

from locsync.core.exceptions import AuthenticationError, RemoteError
from locsync.core.models import (
    ChapterStatus, Fragment, parse_fragment_original, parse_fragment_translation,
)


@dataclass
class ChapterFragmentFetcher:
    """Lazily produced page downloads of one chapter."""
    total: int
    iterator: Iterator[Awaitable[List[Fragment]]]


class BaseNotaClient(ABC):

    @abstractmethod
    async def login(self, username: str, password: str) -> None: ...

    @abstractmethod
    async def fetch_all_chapter_statuses(self) -> Dict[str, ChapterStatus]: ...

    @abstractmethod
    async def fetch_chapter_page(self, status: ChapterStatus, page: int) -> List[Fragment]: ...

    def create_chapter_fragment_fetcher(self, status: ChapterStatus) -> ChapterFragmentFetcher:
        def pages() -> Iterator[Awaitable[List[Fragment]]]:
            for page in range(1, status.pages + 1):
                yield self.fetch_chapter_page(status, page)
        return ChapterFragmentFetcher(total=status.pages, iterator=pages())

    @abstractmethod
    async def add_fragment_original(self, chapter_id: str, order_number: int, raw_content: str) -> str:
        """Create a fragment and return its id."""

    @abstractmethod
    async def edit_fragment_original(self, chapter_id: str, fragment_id: str,
                                     order_number: int, raw_content: str) -> None: ...

    @abstractmethod
    async def delete_fragment_original(self, chapter_id: str, fragment_id: str) -> None: ...

    @abstractmethod
    async def add_fragment_translation(self, chapter_id: str, fragment_id: str, text: str) -> str:
        """Post a translation and return its id."""

    @abstractmethod
    async def delete_fragment_translation(self, chapter_id: str, fragment_id: str,
                                          translation_id: str) -> None: ...

    async def close(self) -> None:
        pass


class NotaHttpClient(BaseNotaClient):
    """JSON bridge client. One aiohttp session is reused for all requests."""

    def __init__(self, base_url: str, book_id: str, timeout: int = 30, connection_limit: int = 32):
        self.base_url = base_url.rstrip('/')
        self.book_id = book_id
        self.timeout = timeout
        self.connection_limit = connection_limit
        self.logger = logging.getLogger(self.__class__.__name__)
        self._session: Optional[aiohttp.ClientSession] = None
        self._connector: Optional[aiohttp.TCPConnector] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._connector = aiohttp.TCPConnector(limit=self.connection_limit, ttl_dns_cache=300)
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(connector=self._connector, timeout=timeout)
        return self._session

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None
            self._connector = None

    def _chapter_url(self, chapter_id: str) -> str:
        return f"{self.base_url}/api/books/{self.book_id}/chapters/{chapter_id}"

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        session = await self._get_session()
        try:
            async with session.request(method, url, **kwargs) as resp:
                if resp.status in (401, 403):
                    raise AuthenticationError(f"{method} {url}: HTTP {resp.status}")
                if resp.status >= 400:
                    raise RemoteError(f"{method} {url}: HTTP {resp.status}")
                if resp.status == 204:
                    return None
                try:
                    return await resp.json(content_type=None)
                except ValueError as e:
                    raise RemoteError(f"{method} {url}: invalid JSON response: {e}") from e
        except aiohttp.ClientError as e:
            raise RemoteError(f"{method} {url}: {e}") from e

    @staticmethod
    def _field(data: Any, key: str, what: str) -> Any:
        try:
            return data[key]
        except (KeyError, TypeError) as e:
            raise RemoteError(f"{what}: malformed response, missing '{key}'") from e

    async def login(self, username: str, password: str) -> None:
        await self._request(
            'POST', f"{self.base_url}/api/login",
            json={'username': username, 'password': password},
        )
        self.logger.info(f"Logged in as {username}")

    async def fetch_all_chapter_statuses(self) -> Dict[str, ChapterStatus]:
        data = await self._request('GET', f"{self.base_url}/api/books/{self.book_id}/chapters")
        statuses: Dict[str, ChapterStatus] = {}
        for chapter in self._field(data, 'chapters', "Chapter list"):
            try:
                status = ChapterStatus.from_dict(chapter)
            except (KeyError, TypeError, ValueError) as e:
                raise RemoteError(f"Chapter list: malformed chapter {chapter!r}: {e}") from e
            statuses[status.name] = status
        return statuses

    async def fetch_chapter_page(self, status: ChapterStatus, page: int) -> List[Fragment]:
        data = await self._request(
            'GET', f"{self._chapter_url(status.id)}/fragments", params={'page': page},
        )
        items = self._field(data, 'fragments', f"Chapter {status.name} page {page}")
        return [self._decode_fragment(status.id, item) for item in items]

    def _decode_fragment(self, chapter_id: str, item: Dict[str, Any]) -> Fragment:
        try:
            return Fragment(
                id=str(item['id']),
                chapter_id=chapter_id,
                order_number=int(item['order_number']),
                original=parse_fragment_original(item['original']),
                translations=[
                    parse_fragment_translation(t['id'], t['text']) for t in item.get('translations', [])
                ],
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            fragment_id = item.get('id') if isinstance(item, dict) else None
            raise RemoteError(f"Fragment {fragment_id} in chapter {chapter_id}: {e}") from e

    async def add_fragment_original(self, chapter_id: str, order_number: int, raw_content: str) -> str:
        data = await self._request(
            'POST', f"{self._chapter_url(chapter_id)}/fragments",
            json={'order_number': order_number, 'original': raw_content},
        )
        return str(self._field(data, 'id', "Created object"))

    async def edit_fragment_original(self, chapter_id: str, fragment_id: str,
                                     order_number: int, raw_content: str) -> None:
        await self._request(
            'PUT', f"{self._chapter_url(chapter_id)}/fragments/{fragment_id}",
            json={'order_number': order_number, 'original': raw_content},
        )

    async def delete_fragment_original(self, chapter_id: str, fragment_id: str) -> None:
        await self._request('DELETE', f"{self._chapter_url(chapter_id)}/fragments/{fragment_id}")

    async def add_fragment_translation(self, chapter_id: str, fragment_id: str, text: str) -> str:
        data = await self._request(
            'POST', f"{self._chapter_url(chapter_id)}/fragments/{fragment_id}/translations",
            json={'text': text},
        )
        return str(self._field(data, 'id', "Created object"))

    async def delete_fragment_translation(self, chapter_id: str, fragment_id: str,
                                          translation_id: str) -> None:
        await self._request(
            'DELETE',
            f"{self._chapter_url(chapter_id)}/fragments/{fragment_id}/translations/{translation_id}",
        )
