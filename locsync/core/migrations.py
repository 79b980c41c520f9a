"""
Migration heuristics
====================

Second pass over fragments that the reconciler annotated. Only fragments with
exactly one error annotation and exactly one real translation are touched;
everything else is reported and left alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Dict, Iterator, List, Optional, Set

from locsync.core.concurrency import FIXUP_CONCURRENCY, limit_concurrency
from locsync.core.corpus import Corpus
from locsync.core.fragment_store import FragmentStore
from locsync.core.models import (
    ERR_REMOVED_FROM_GAME, ERR_STALE_ORIGINAL, Fragment, Translation,
    parse_fragment_translation, stringify_fragment_translation,
)
from locsync.core.nota_client import BaseNotaClient
from locsync.core.progress import ProgressSink


COMMON_PHRASES: Dict[str, str] = {
    '???': '???',
    '????': '????',
    '...': '...',
    r'.\..\..': r'.\..\..',
    '...!': '...!',
    '...!!': '...!!',
    '...?': '...?',
    '...?!': '...?!',
    '...!?': '...!?',
    '[nods]': '[кивает]',
    '[shakes head]': '[мотает головой]',
    'Hi!': 'Привет!',
    'Hi?': 'Привет?',
    'Hi.': 'Привет.',
    'Hi...': 'Привет...',
    'Hi!!': 'Привет!!',
    'Hi!!!': 'Привет!!!',
    'Why?': 'Почему?',
    'How?': 'Как?',
    'Bye!': 'Пока!',
    'Bye.': 'Пока.',
    'Bye?': 'Пока?',
    'Thanks!': 'Спасибо!',
    'Lea!': 'Лея!',
    '[yes]': '[да]',
    '[no]': '[нет]',
    'Up': 'Наверх',
    'Down': 'Вниз',
    'Meet': 'Встреча',
    'Yes': 'Да',
    'No': 'Нет',
    'Logout': 'Выход из игры',
    'Login': 'Инициализация',
    'What?': 'Что?',
    'Who?': 'Кто?',
    'Where?': 'Где?',
}

# outcomes of a lookup table query
LOOKUP_APPLIED = 'applied'
LOOKUP_AMBIGUOUS = 'ambiguous'
LOOKUP_MISSING = 'missing'


@dataclass
class MigrationOutcome:
    location: str
    reason: str


@dataclass
class MigrationReport:
    resolved: List[MigrationOutcome] = field(default_factory=list)
    unresolved: List[MigrationOutcome] = field(default_factory=list)

    def summary(self) -> str:
        return f"{len(self.resolved)} resolved, {len(self.unresolved)} unresolved"


class MigrationEngine:
    def __init__(self, client: BaseNotaClient, store: FragmentStore,
                 progress: Optional[ProgressSink] = None,
                 fixup_connections: int = FIXUP_CONCURRENCY):
        self.logger = logging.getLogger(__name__)
        self.client = client
        self.store = store
        self.progress = progress or ProgressSink()
        self.fixup_connections = fixup_connections
        self.mutations = 0

    async def _load(self, corpus: Optional[Corpus]) -> Corpus:
        if corpus is not None:
            return corpus
        return await Corpus.load(self.store, self.progress)

    # ------------------------------------------------------------------
    # Lookup table
    # ------------------------------------------------------------------

    async def compile_migration_lookup_table(self, corpus: Optional[Corpus] = None) -> Dict[str, List[str]]:
        """Map every original text to the distinct translations recorded for it."""
        corpus = await self._load(corpus)
        table: Dict[str, Set[str]] = {}
        for _, f in corpus.iter_fragments():
            real, _ = f.split_translations()
            if not real:
                continue
            table.setdefault(f.original.text, set()).update(t.raw_text for t in real)

        result = {text: sorted(translations) for text, translations in table.items()}
        await self.store.write_lookup_table(result)
        ambiguous = sum(1 for translations in result.values() if len(translations) > 1)
        self.logger.info(f"Lookup table compiled: {len(result)} texts, {ambiguous} ambiguous")
        return result

    # ------------------------------------------------------------------
    # Migrations
    # ------------------------------------------------------------------

    async def perform_migrations(self, dangerous_lookup: bool = False, cross_file: bool = False,
                                 corpus: Optional[Corpus] = None) -> MigrationReport:
        corpus = await self._load(corpus)
        lookup_table: Optional[Dict[str, List[str]]] = None
        if dangerous_lookup:
            self.progress.report_progress("Reading the lookup table...")
            lookup_table = await self.store.read_lookup_table()

        report = MigrationReport()
        start = self.mutations

        def resolved(f: Fragment, reason: str) -> None:
            self.logger.warning(f"{f.location}: {reason}")
            report.resolved.append(MigrationOutcome(f.location, reason))

        def unresolved(f: Fragment, reason: str) -> None:
            self.logger.error(f"{f.location}: {reason}")
            report.unresolved.append(MigrationOutcome(f.location, reason))

        async def migrate_fragment(chapter_name: str, f: Fragment) -> None:
            real, errors = f.split_translations()
            if not errors:
                return
            if len(errors) > 1:
                unresolved(f, "multiple errors on a single fragment")
                return
            if not real:
                unresolved(f, "no translations, nothing to migrate")
                return
            if len(real) > 1:
                unresolved(f, "multiple translations, can't resolve such conflict")
                return

            error, translation = errors[0], real[0]

            if error.text.startswith(ERR_REMOVED_FROM_GAME):
                common_translation = COMMON_PHRASES.get(f.original.text)
                if common_translation is not None and translation.text == common_translation:
                    await self._delete_fragment(corpus, chapter_name, f)
                    resolved(f, "common phrase, deleted fragment")
                    return

                untranslated: List[Fragment] = []
                translated: List[Fragment] = []
                for _, f2 in corpus.iter_fragments():
                    if f2 is f or not self._is_similar(f, f2, cross_file):
                        continue
                    if not f2.translations:
                        untranslated.append(f2)
                    elif all(t.text == translation.text for t in f2.translations):
                        translated.append(f2)

                if translated:
                    await self._delete_fragment(corpus, chapter_name, f)
                    resolved(f, "fragment has already been translated elsewhere, deleted")
                    return
                if len(untranslated) > 1:
                    unresolved(f, "multiple similar fragments found, can't migrate")
                    return
                if len(untranslated) == 1:
                    target = untranslated[0]
                    await self._move_translation(corpus, chapter_name, f, translation, target)
                    resolved(f, f"migrated to {target.location}")
                    return

                if lookup_table is None:
                    unresolved(f, "couldn't find a similar fragment, can't rename")
                    return
                outcome = await self._apply_lookup(corpus, chapter_name, f, lookup_table)
                if outcome == LOOKUP_APPLIED:
                    resolved(f, "found an exact match in the lookup table")
                elif outcome == LOOKUP_AMBIGUOUS:
                    unresolved(f, "ambiguous lookup results")
                else:
                    unresolved(f, "couldn't find a similar fragment, can't rename")

            elif error.text.startswith(ERR_STALE_ORIGINAL):
                if lookup_table is None:
                    unresolved(f, "can't handle stale originals without the lookup table")
                    return
                outcome = await self._apply_lookup(corpus, chapter_name, f, lookup_table)
                if outcome == LOOKUP_APPLIED:
                    resolved(f, "found an exact match in the lookup table")
                elif outcome == LOOKUP_AMBIGUOUS:
                    unresolved(f, "ambiguous lookup results")
                else:
                    unresolved(f, "no match in the lookup table")

            else:
                unresolved(f, f"unknown error: {error.text.splitlines()[0]}")

        total = corpus.fragment_count
        processed = 0
        try:
            for chapter_name in list(corpus.chapters):
                fragments = list(corpus.chapters[chapter_name])

                def operations() -> Iterator[Awaitable[None]]:
                    nonlocal processed
                    for f in fragments:
                        self.progress.report_progress(f"Migrating: {chapter_name}", processed, total)
                        yield migrate_fragment(chapter_name, f)
                        processed += 1

                try:
                    await limit_concurrency(operations(), self.fixup_connections)
                finally:
                    await corpus.save_chapter(self.store, chapter_name)
        finally:
            # migrations write into other chapters too
            await corpus.save_dirty(self.store)

        self.progress.done(report.summary())
        self.logger.info(f"Migrations: {report.summary()}, {self.mutations - start} remote mutation(s)")
        return report

    @staticmethod
    def _is_similar(f: Fragment, f2: Fragment, cross_file: bool) -> bool:
        a, b = f.original, f2.original
        if not cross_file and a.file != b.file:
            return False
        return (
            a.lang_uid == b.lang_uid
            and a.description_text == b.description_text
            and a.text == b.text
        )

    async def _delete_fragment(self, corpus: Corpus, chapter_name: str, f: Fragment) -> None:
        await self.client.delete_fragment_original(f.chapter_id, f.id)
        self.mutations += 1
        corpus.remove_fragment(chapter_name, f)

    async def _move_translation(self, corpus: Corpus, chapter_name: str, f: Fragment,
                                translation: Translation, target: Fragment) -> None:
        target_chapter = corpus.chapter_name_by_id(target.chapter_id) or chapter_name
        raw_text = stringify_fragment_translation(translation)
        # claimed before the first await so no other migration picks the same target
        moved = parse_fragment_translation('', raw_text)
        target.translations.append(moved)
        corpus.mark_dirty(target_chapter)

        try:
            moved.id = await self.client.add_fragment_translation(target.chapter_id, target.id, raw_text)
        except BaseException:
            # release the claim, the target is still untranslated remotely
            target.translations = [t for t in target.translations if t is not moved]
            raise
        self.mutations += 1
        await self._delete_fragment(corpus, chapter_name, f)

    async def _apply_lookup(self, corpus: Corpus, chapter_name: str, f: Fragment,
                            lookup_table: Dict[str, List[str]]) -> str:
        possible = lookup_table.get(f.original.text, [])
        if len(possible) > 1:
            return LOOKUP_AMBIGUOUS
        if not possible:
            return LOOKUP_MISSING

        value = possible[0]
        kept = [t for t in f.translations if not t.is_error and t.raw_text == value]
        stale = [t for t in f.translations if not any(t is k for k in kept)]
        if not kept:
            translation_id = await self.client.add_fragment_translation(f.chapter_id, f.id, value)
            self.mutations += 1
            kept.append(parse_fragment_translation(translation_id, value))
        for t in stale:
            await self.client.delete_fragment_translation(f.chapter_id, f.id, t.id)
            self.mutations += 1
        f.translations = kept
        corpus.mark_dirty(chapter_name)
        return LOOKUP_APPLIED

    # ------------------------------------------------------------------
    # Auto translation
    # ------------------------------------------------------------------

    async def _auto_translate(self, corpus: Corpus, task: str, choose) -> int:
        total = corpus.fragment_count
        processed = 0
        translated = 0
        for chapter_name, fragments in corpus.chapters.items():
            try:
                for f in list(fragments):
                    self.progress.report_progress(f"{task}: {chapter_name}", processed, total)
                    processed += 1
                    if f.translations:
                        continue
                    text = choose(f)
                    if text is None:
                        continue
                    translation_id = await self.client.add_fragment_translation(f.chapter_id, f.id, text)
                    self.mutations += 1
                    f.translations.append(parse_fragment_translation(translation_id, text))
                    corpus.mark_dirty(chapter_name)
                    translated += 1
            finally:
                await corpus.save_chapter(self.store, chapter_name)
        self.progress.done()
        return translated

    async def auto_translate_common_phrases(self, corpus: Optional[Corpus] = None) -> int:
        """Give untranslated common phrases their curated translation."""
        corpus = await self._load(corpus)

        def choose(f: Fragment) -> Optional[str]:
            text = COMMON_PHRASES.get(f.original.text)
            if text is not None:
                self.logger.warning(f"{f.location}: common phrase")
            return text

        return await self._auto_translate(corpus, "Common phrases", choose)

    async def auto_translate_with_lookup_table(self, corpus: Optional[Corpus] = None) -> int:
        """Translate fragments whose original has exactly one recorded translation."""
        corpus = await self._load(corpus)
        lookup_table = await self.store.read_lookup_table()

        def choose(f: Fragment) -> Optional[str]:
            possible = lookup_table.get(f.original.text, [])
            if len(possible) != 1:
                return None
            self.logger.warning(f"{f.location}: found an exact match in the lookup table")
            return possible[0]

        return await self._auto_translate(corpus, "Lookup table", choose)
