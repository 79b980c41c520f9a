"""
Download pass
=============

Mirrors the translation platform into the local fragment store. Chapters
whose modification timestamp did not change are read from disk; the rest
are re-downloaded page by page.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional, Awaitable

from locsync.core.concurrency import FETCH_CONCURRENCY, limit_concurrency
from locsync.core.corpus import Corpus
from locsync.core.fragment_store import FragmentStore
from locsync.core.models import ChapterStatus, Fragment
from locsync.core.nota_client import BaseNotaClient
from locsync.core.progress import ProgressSink


class SyncEngine:
    def __init__(self, client: BaseNotaClient, store: FragmentStore,
                 progress: Optional[ProgressSink] = None,
                 fetch_connections: int = FETCH_CONCURRENCY):
        self.logger = logging.getLogger(__name__)
        self.client = client
        self.store = store
        self.progress = progress or ProgressSink()
        self.fetch_connections = fetch_connections

    def needs_update(self, status: ChapterStatus, prev_status: Optional[ChapterStatus]) -> bool:
        if prev_status is None:
            return True
        if status.modification_timestamp != prev_status.modification_timestamp:
            return True
        # a manifest entry without its chapter file cannot be trusted
        return not self.store.chapter_file(status.name).exists()

    async def download_translations(self, force: bool = False) -> Corpus:
        self.progress.report_progress("Downloading chapter statuses...")
        statuses = await self.client.fetch_all_chapter_statuses()
        prev_statuses = await self.store.read_chapter_statuses()

        chapters_with_updates: List[ChapterStatus] = []
        chapters_without_updates: List[ChapterStatus] = []
        for status in statuses.values():
            if force or self.needs_update(status, prev_statuses.get(status.name)):
                chapters_with_updates.append(status)
            else:
                chapters_without_updates.append(status)

        self.logger.info(
            f"{len(chapters_with_updates)} chapter(s) to download, "
            f"{len(chapters_without_updates)} unchanged"
        )

        chapter_fragments: Dict[str, List[Fragment]] = {}
        for i, status in enumerate(chapters_without_updates):
            self.logger.debug(f"loading {status.name} from disk")
            self.progress.report_progress(
                f"Reading chapter '{status.name}' from disk...", i, len(chapters_without_updates)
            )
            chapter_fragments[status.name] = await self.store.read_fragments(status.name)

        # Only chapters whose local file is current go into the manifest, so an
        # interrupted run re-downloads whatever it did not finish.
        current_statuses: Dict[str, ChapterStatus] = {
            status.name: status for status in chapters_without_updates
        }

        total_pages = sum(status.pages for status in chapters_with_updates)
        fetched_pages = 0

        for i, status in enumerate(chapters_with_updates):
            self.logger.info(f"[{i + 1}/{len(chapters_with_updates)}] downloading chapter {status.name}")
            fragments: List[Fragment] = []
            fetcher = self.client.create_chapter_fragment_fetcher(status)

            async def collect_page(page: Awaitable[List[Fragment]], chapter_name: str = status.name) -> None:
                nonlocal fetched_pages
                fragments.extend(await page)
                fetched_pages += 1
                self.progress.report_progress(
                    f"Downloading chapter '{chapter_name}'...", fetched_pages, total_pages
                )

            def operations() -> Iterator[Awaitable[None]]:
                for page in fetcher.iterator:
                    yield collect_page(page)

            await limit_concurrency(operations(), self.fetch_connections)

            fragments.sort(key=lambda f: f.order_number)
            chapter_fragments[status.name] = fragments
            await self.store.write_fragments(status.name, fragments)

            current_statuses[status.name] = status
            await self.store.write_chapter_statuses(current_statuses)

        # Final manifest in the platform's chapter order, dropping deleted chapters
        await self.store.write_chapter_statuses(dict(statuses))

        self.progress.done("Translations downloaded successfully")
        return Corpus(
            statuses=dict(statuses),
            chapters={name: chapter_fragments[name] for name in statuses},
        )
