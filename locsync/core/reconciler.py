"""
Reconciliation Engine
=====================

Compares the fragments stored locally against the strings currently shipped
with the game and repairs the translation platform accordingly:

- FRESH: asset text equals the stored original, nothing to do.
- STALE: asset text changed; the fragment gets an ERR_STALE_ORIGINAL
  annotation and its original is rewritten.
- REMOVED: the asset is gone; the fragment gets an ERR_REMOVED_FROM_GAME
  annotation and is left for the migration pass.
- NEW: an asset string without a fragment; one is created at the end of
  its chapter.

Local fragments are updated as remote mutations succeed and each chapter is
written back once its batch is over, so a repeated pass is a no-op.
"""

from __future__ import annotations

import logging
from difflib import SequenceMatcher
from typing import Awaitable, Dict, Iterator, List, Optional, Set, Tuple

from locsync.core.asset_scanner import AssetScanner, is_lang_label_ignored
from locsync.core.concurrency import FIXUP_CONCURRENCY, limit_concurrency
from locsync.core.corpus import Corpus
from locsync.core.exceptions import ScanError
from locsync.core.fragment_store import FragmentStore
from locsync.core.models import (
    ERR_REMOVED_FROM_GAME, ERR_STALE_ORIGINAL, IGNORE_IN_MOD_TAG, INJECTED_IN_MOD_TAG,
    Fragment, LocalizableStringData, Translation, get_chapter_name_of_file, make_original,
    parse_fragment_translation, stringify_fragment_original, stringify_fragment_translation,
)
from locsync.core.nota_client import BaseNotaClient
from locsync.core.progress import ProgressSink


class OrderCounter:
    """Running order number of one chapter."""

    def __init__(self, start: int = 0):
        self.value = start

    def next(self) -> int:
        self.value += 1
        return self.value


def compute_word_diff(old: str, new: str) -> str:
    """wdiff-style word diff: ``[-removed-]`` and ``{+added+}`` markers."""
    a = old.split()
    b = new.split()
    out: List[str] = []
    for tag, i1, i2, j1, j2 in SequenceMatcher(None, a, b, autojunk=False).get_opcodes():
        if tag == 'equal':
            out.extend(a[i1:i2])
            continue
        if i2 > i1:
            out.append('[-' + ' '.join(a[i1:i2]) + '-]')
        if j2 > j1:
            out.append('{+' + ' '.join(b[j1:j2]) + '+}')
    return ' '.join(out)


class Reconciler:
    def __init__(self, client: BaseNotaClient, store: FragmentStore, scanner: AssetScanner,
                 progress: Optional[ProgressSink] = None,
                 fixup_connections: int = FIXUP_CONCURRENCY):
        self.logger = logging.getLogger(__name__)
        self.client = client
        self.store = store
        self.scanner = scanner
        self.progress = progress or ProgressSink()
        self.fixup_connections = fixup_connections
        self.mutations = 0

    async def _load(self, corpus: Optional[Corpus]) -> Corpus:
        if corpus is not None:
            return corpus
        return await Corpus.load(self.store, self.progress)

    async def _add_translation(self, corpus: Corpus, chapter_name: str, f: Fragment, text: str) -> Translation:
        translation_id = await self.client.add_fragment_translation(f.chapter_id, f.id, text)
        self.mutations += 1
        translation = parse_fragment_translation(translation_id, text)
        f.translations.append(translation)
        corpus.mark_dirty(chapter_name)
        return translation

    async def _run_per_chapter(self, corpus: Corpus, operation, task: str) -> None:
        """
        Run ``operation(chapter_name, fragment)`` for every fragment, chapter by
        chapter, saving each chapter even when its batch fails.
        """
        total = corpus.fragment_count
        processed = 0

        for chapter_name in list(corpus.chapters):
            fragments = list(corpus.chapters[chapter_name])

            def operations() -> Iterator[Awaitable[None]]:
                nonlocal processed
                for f in fragments:
                    self.progress.report_progress(f"{task}: {chapter_name}", processed, total)
                    yield operation(chapter_name, f)
                    processed += 1

            try:
                await limit_concurrency(operations(), self.fixup_connections)
            finally:
                await corpus.save_chapter(self.store, chapter_name)

        self.progress.done()

    def _labels_of(self, file_path: str) -> List[LocalizableStringData]:
        try:
            return [
                label for label in self.scanner.iter_lang_labels(file_path)
                if not is_lang_label_ignored(label, file_path)
            ]
        except ScanError as e:
            self.logger.error(f"{file_path}: {e}")
            return []

    # ------------------------------------------------------------------
    # Drift
    # ------------------------------------------------------------------

    async def fix_fragment_originals(self, word_diff: bool = False,
                                     corpus: Optional[Corpus] = None) -> int:
        """Tag STALE and REMOVED fragments and rewrite stale originals."""
        corpus = await self._load(corpus)
        start = self.mutations

        async def fix_original(chapter_name: str, f: Fragment) -> None:
            original = f.original
            if IGNORE_IN_MOD_TAG in original.description_text:
                return
            if not self.scanner.checks_injected_strings and INJECTED_IN_MOD_TAG in original.description_text:
                return

            try:
                label = self.scanner.lookup(original.file, original.json_path)
            except ScanError as e:
                self.logger.warning(f"{f.location}: {e}")
                label = None

            if label is None:
                if f.has_error_tag(ERR_REMOVED_FROM_GAME):
                    return
                self.logger.warning(f"{f.location}: removed from game")
                await self._add_translation(corpus, chapter_name, f, ERR_REMOVED_FROM_GAME)
                return

            original.lang_uid = label.lang_uid
            original.description_text = '\n'.join(label.description or [])

            if original.text != label.text:
                self.logger.warning(f"{f.location}: stale original")
                diff = compute_word_diff(original.text, label.text) if word_diff else original.text
                await self._add_translation(corpus, chapter_name, f, f"{ERR_STALE_ORIGINAL}\n\n{diff}")
                original.text = label.text

            new_raw_content = stringify_fragment_original(original)
            if new_raw_content != original.raw_content:
                await self.client.edit_fragment_original(f.chapter_id, f.id, f.order_number, new_raw_content)
                self.mutations += 1
                original.raw_content = new_raw_content
                corpus.mark_dirty(chapter_name)

        await self._run_per_chapter(corpus, fix_original, "Checking originals")
        return self.mutations - start

    async def upload_new_fragments(self, corpus: Optional[Corpus] = None) -> int:
        """Create fragments for asset strings the platform does not track yet."""
        corpus = await self._load(corpus)
        start = self.mutations

        counters: Dict[str, OrderCounter] = {
            name: OrderCounter(max((f.order_number for f in fragments), default=0))
            for name, fragments in corpus.chapters.items()
        }
        known: Set[Tuple[str, str]] = {f.key for _, f in corpus.iter_fragments()}
        missing_chapters: Set[str] = set()

        file_paths = self.scanner.scannable_files()
        try:
            for i, file_path in enumerate(file_paths):
                self.progress.report_progress(file_path, i, len(file_paths))

                chapter_name = get_chapter_name_of_file(file_path)
                status = corpus.statuses.get(chapter_name)

                for label in self._labels_of(file_path):
                    key = (file_path, label.json_path_str)
                    if key in known:
                        continue
                    if status is None:
                        if chapter_name not in missing_chapters:
                            missing_chapters.add(chapter_name)
                            self.logger.error(f"{file_path}: Please create chapter '{chapter_name}'")
                        continue

                    original = make_original(file_path, label, '\n'.join(label.description or []))
                    order_number = counters.setdefault(chapter_name, OrderCounter()).next()
                    self.logger.warning(f"{file_path} {label.json_path_str}: new fragment")
                    fragment_id = await self.client.add_fragment_original(
                        status.id, order_number, original.raw_content,
                    )
                    self.mutations += 1
                    corpus.chapters.setdefault(chapter_name, []).append(
                        Fragment(id=fragment_id, chapter_id=status.id,
                                 order_number=order_number, original=original)
                    )
                    corpus.mark_dirty(chapter_name)
                    known.add(key)
        finally:
            await corpus.save_dirty(self.store)
            self.progress.done()

        return self.mutations - start

    # ------------------------------------------------------------------
    # Order
    # ------------------------------------------------------------------

    async def fix_fragment_order(self, corpus: Optional[Corpus] = None) -> int:
        """
        Renumber every chapter densely from 1 in asset walk order. Fragments
        the walk does not reach keep their relative order after the rest.
        Only fragments whose number changed are edited remotely.
        """
        corpus = await self._load(corpus)
        start = self.mutations

        prev_order: Dict[int, int] = {}
        index: Dict[str, Dict[Tuple[str, str], Fragment]] = {}
        for chapter_name, fragments in corpus.chapters.items():
            chapter_index = index.setdefault(chapter_name, {})
            for f in fragments:
                prev_order[id(f)] = f.order_number
                if f.key in chapter_index:
                    self.logger.error(f"{f.location}: duplicate fragment in chapter '{chapter_name}'")
                    continue
                chapter_index[f.key] = f

        counters = {name: OrderCounter() for name in corpus.chapters}
        visited: Set[int] = set()

        file_paths = self.scanner.scannable_files()
        for i, file_path in enumerate(file_paths):
            self.progress.report_progress(file_path, i, len(file_paths))
            chapter_name = get_chapter_name_of_file(file_path)
            chapter_index = index.get(chapter_name)
            if chapter_index is None:
                continue
            for label in self._labels_of(file_path):
                f = chapter_index.get((file_path, label.json_path_str))
                if f is None:
                    self.logger.error(f"{file_path} {label.json_path_str}: unknown fragment")
                    continue
                f.order_number = counters[chapter_name].next()
                visited.add(id(f))

        changed: Dict[str, List[Fragment]] = {}
        for chapter_name, fragments in corpus.chapters.items():
            leftovers = sorted(
                (f for f in fragments if id(f) not in visited),
                key=lambda f: prev_order[id(f)],
            )
            for f in leftovers:
                f.order_number = counters[chapter_name].next()
            fragments.sort(key=lambda f: f.order_number)
            changed[chapter_name] = [f for f in fragments if f.order_number != prev_order[id(f)]]

        total = sum(len(fragments) for fragments in changed.values())
        fixed = 0
        for chapter_name, fragments in changed.items():
            if not fragments:
                continue

            async def push_order(f: Fragment, chapter_name: str = chapter_name) -> None:
                self.logger.info(f"{chapter_name}: {f.location} {f.order_number}")
                await self.client.edit_fragment_original(
                    f.chapter_id, f.id, f.order_number, f.original.raw_content,
                )
                self.mutations += 1

            def operations(fragments: List[Fragment] = fragments) -> Iterator[Awaitable[None]]:
                nonlocal fixed
                for f in fragments:
                    self.progress.report_progress(f"Fixing order: {chapter_name}", fixed, total)
                    yield push_order(f)
                    fixed += 1

            corpus.mark_dirty(chapter_name)
            try:
                await limit_concurrency(operations(), self.fixup_connections)
            finally:
                await corpus.save_chapter(self.store, chapter_name)

        self.progress.done()
        return self.mutations - start

    # ------------------------------------------------------------------
    # Chapters
    # ------------------------------------------------------------------

    async def resplit_chapters(self, corpus: Optional[Corpus] = None) -> int:
        """
        Move fragments whose asset belongs to another chapter. The platform
        cannot move fragments, so each one is recreated in the target chapter
        with all its translations and deleted from the source.
        """
        corpus = await self._load(corpus)
        start = self.mutations
        missing_chapters: Set[str] = set()

        async def move_fragment(chapter_name: str, f: Fragment) -> None:
            target_name = get_chapter_name_of_file(f.original.file)
            target = corpus.statuses.get(target_name)
            if target is None:
                if target_name not in missing_chapters:
                    missing_chapters.add(target_name)
                    self.logger.error(f"{f.location}: Please create chapter '{target_name}'")
                return
            if target.id == f.chapter_id:
                return

            self.logger.warning(f"{f.location}: moving to chapter '{target_name}'")
            raw_content = stringify_fragment_original(f.original)
            new_id = await self.client.add_fragment_original(target.id, f.order_number, raw_content)
            self.mutations += 1
            moved = Fragment(id=new_id, chapter_id=target.id, order_number=f.order_number,
                             original=f.original)
            moved.original.raw_content = raw_content
            corpus.chapters.setdefault(target_name, []).append(moved)
            corpus.mark_dirty(target_name)

            for t in f.translations:
                translation_id = await self.client.add_fragment_translation(
                    target.id, new_id, stringify_fragment_translation(t),
                )
                self.mutations += 1
                moved.translations.append(Translation(id=translation_id, text=t.text, raw_text=t.raw_text))

            await self.client.delete_fragment_original(f.chapter_id, f.id)
            self.mutations += 1
            corpus.remove_fragment(chapter_name, f)

        try:
            await self._run_per_chapter(corpus, move_fragment, "Re-chaptering")
        finally:
            await corpus.save_dirty(self.store)
        return self.mutations - start

    async def delete_ignored_lang_labels(self, corpus: Optional[Corpus] = None) -> int:
        """Delete fragments of labels that the ignore rules exclude."""
        corpus = await self._load(corpus)
        start = self.mutations

        async def delete_fragment(chapter_name: str, f: Fragment) -> None:
            label = LocalizableStringData(
                json_path=tuple(f.original.json_path.split('/')),
                lang_uid=f.original.lang_uid,
                text=f.original.text,
            )
            if not is_lang_label_ignored(label, f.original.file):
                return
            self.logger.warning(f"{f.location}: ignored, deleting")
            await self.client.delete_fragment_original(f.chapter_id, f.id)
            self.mutations += 1
            corpus.remove_fragment(chapter_name, f)

        await self._run_per_chapter(corpus, delete_fragment, "Deleting ignored labels")
        return self.mutations - start

    async def run_full_pass(self, word_diff: bool = False, corpus: Optional[Corpus] = None) -> int:
        """All reconciliation passes in dependency order; returns the mutation count."""
        corpus = await self._load(corpus)
        start = self.mutations
        await self.delete_ignored_lang_labels(corpus)
        await self.fix_fragment_originals(word_diff, corpus)
        await self.upload_new_fragments(corpus)
        await self.resplit_chapters(corpus)
        await self.fix_fragment_order(corpus)
        total = self.mutations - start
        self.logger.info(f"Reconciliation finished with {total} remote mutation(s)")
        return total
