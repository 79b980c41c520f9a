# -*- coding: utf-8 -*-
"""
locsync CLI Main Module
"""

import sys
import os
import argparse
import asyncio
import getpass
import logging
from pathlib import Path
from typing import Optional

from locsync.utils.config import ConfigManager
from locsync.core.exceptions import LocSyncError
from locsync.core.asset_scanner import AssetScanner, create_scanner
from locsync.core.corpus import Corpus
from locsync.core.fragment_store import FragmentStore
from locsync.core.migrations import MigrationEngine
from locsync.core.nota_client import BaseNotaClient, NotaHttpClient
from locsync.core.pack_compiler import PackCompiler, PoExporter
from locsync.core.progress import ConsoleProgressSink, LoggingProgressSink, ProgressSink
from locsync.core.reconciler import Reconciler
from locsync.core.sync_engine import SyncEngine
from locsync.version import VERSION

logger = logging.getLogger("locsync.cli")


def setup_logging(verbose: bool):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )


def load_secret_option(value: str) -> str:
    """``@secret`` is taken literally, anything else is a file holding the secret."""
    if value.startswith('@'):
        return value[1:]
    try:
        return Path(value).read_text(encoding='utf-8').strip()
    except OSError as e:
        raise argparse.ArgumentTypeError(f"can't read {value}: {e}")


def create_progress(enabled: bool) -> ProgressSink:
    if enabled:
        return ConsoleProgressSink()
    return LoggingProgressSink()


class Session:
    """Everything one command needs, built from the settings file."""

    def __init__(self, config: ConfigManager, progress: ProgressSink, data_dir: Optional[str] = None):
        self.config = config
        self.progress = progress
        self.store = FragmentStore(data_dir or config.path_settings.data_dir)
        self.client: BaseNotaClient = NotaHttpClient(
            config.nota_base_url(),
            config.remote_settings.book_id,
            timeout=config.remote_settings.timeout,
        )
        self._scanner: Optional[AssetScanner] = None

    @property
    def scanner(self) -> AssetScanner:
        if self._scanner is None:
            paths = self.config.path_settings
            self._scanner = create_scanner(
                self.config.sync_settings.use_scan_db, paths.assets_dir, paths.scan_db_file,
            )
        return self._scanner

    def sync_engine(self, fetch_connections: Optional[int] = None) -> SyncEngine:
        return SyncEngine(
            self.client, self.store, self.progress,
            fetch_connections=fetch_connections or self.config.sync_settings.fetch_connections,
        )

    def reconciler(self) -> Reconciler:
        return Reconciler(
            self.client, self.store, self.scanner, self.progress,
            fixup_connections=self.config.sync_settings.fixup_connections,
        )

    def migration_engine(self) -> MigrationEngine:
        return MigrationEngine(
            self.client, self.store, self.progress,
            fixup_connections=self.config.sync_settings.fixup_connections,
        )

    async def login(self, username: Optional[str], password: Optional[str]) -> None:
        if username and password:
            await self.client.login(username, password)

    async def close(self) -> None:
        await self.client.close()


# ============================================================================
# COMMANDS
# ============================================================================

async def write_packs(session: Session, corpus: Optional[Corpus] = None) -> int:
    if corpus is None:
        corpus = await Corpus.load(session.store, session.progress)
    paths = session.config.path_settings
    compiler = PackCompiler(session.progress)
    compiler.compile(corpus)
    mapping = await asyncio.to_thread(compiler.write, paths.packs_dir, paths.mapping_file)
    print(f"\n  Wrote {len(mapping)} translation packs to {paths.packs_dir}")
    return 0


async def write_po(session: Session, languages) -> int:
    corpus = await Corpus.load(session.store, session.progress)
    translation_language = session.config.sync_settings.translation_language
    exporter = PoExporter(session.progress)
    written = await asyncio.to_thread(
        exporter.export, corpus, session.config.path_settings.po_dir,
        languages or [translation_language], translation_language,
    )
    print(f"\n  Wrote {len(written)} PO files")
    return 0


async def run_command(args, session: Session) -> int:
    command = args.command
    sync = session.config.sync_settings

    if command in ('headless', 'update'):
        corpus = await session.sync_engine(getattr(args, 'fetch_connections', None)).download_translations(
            force=args.force,
        )
        if command == 'update':
            return await write_packs(session, corpus)
        return 0

    if command == 'packs':
        return await write_packs(session)
    if command == 'po':
        return await write_po(session, args.languages)

    if command == 'fix-originals':
        count = await session.reconciler().fix_fragment_originals(word_diff=args.wdiff or sync.word_diff)
    elif command == 'upload-new':
        count = await session.reconciler().upload_new_fragments()
    elif command == 'fix-order':
        count = await session.reconciler().fix_fragment_order()
    elif command == 'resplit':
        count = await session.reconciler().resplit_chapters()
    elif command == 'delete-ignored':
        count = await session.reconciler().delete_ignored_lang_labels()
    elif command == 'reconcile':
        count = await session.reconciler().run_full_pass(word_diff=args.wdiff or sync.word_diff)
    elif command == 'compile-lut':
        table = await session.migration_engine().compile_migration_lookup_table()
        print(f"\n  Lookup table: {len(table)} original texts")
        return 0
    elif command == 'migrate':
        report = await session.migration_engine().perform_migrations(
            dangerous_lookup=args.dangerous,
            cross_file=args.cross_file or sync.allow_cross_file_migrations,
        )
        print(f"\n  Migrations: {report.summary()}")
        for outcome in report.unresolved:
            print(f"    {outcome.location}: {outcome.reason}")
        return 0
    elif command == 'common-phrases':
        count = await session.migration_engine().auto_translate_common_phrases()
    elif command == 'lut-translate':
        count = await session.migration_engine().auto_translate_with_lookup_table()
    else:
        raise LocSyncError(f"Unknown command: {command}")

    print(f"\n  {command}: {count} change(s)")
    return 0


def execute(args, config: ConfigManager, progress: ProgressSink,
            username: Optional[str] = None, password: Optional[str] = None) -> int:
    """Run one command to completion, reporting aborts instead of raising."""
    session = Session(config, progress, getattr(args, 'output', None))

    async def runner() -> int:
        try:
            await session.login(username, password)
            return await run_command(args, session)
        finally:
            await session.close()

    try:
        return asyncio.run(runner())
    except LocSyncError as e:
        logger.error(f"{args.command} failed: {e}")
        progress.report_error(e)
        return 1


# ============================================================================
# INTERACTIVE MODE
# ============================================================================

def clear_screen():
    """Clear the terminal screen."""
    os.system('cls' if os.name == 'nt' else 'clear')


def print_header():
    """Print the CLI header."""
    print("\n" + "="*60)
    print(f"       locsync CLI v{VERSION}")
    print("       Notabenoid translation sync tool")
    print("="*60)


def print_menu(title: str, options: list, show_back: bool = True) -> int:
    """Display a menu and get user selection."""
    print(f"\n  {title}")
    print("  " + "-"*40)
    for i, option in enumerate(options, 1):
        print(f"    [{i}] {option}")
    if show_back:
        print(f"    [0] Back")
    print()

    while True:
        try:
            choice = input("  Your choice: ").strip()
            if choice == '0' and show_back:
                return 0
            num = int(choice)
            if 1 <= num <= len(options):
                return num
            print("  Invalid choice")
        except ValueError:
            print("  Please enter a number")


def get_input(prompt: str, default: str = "") -> str:
    """Get text input from user with optional default."""
    if default:
        result = input(f"  {prompt} [{default}]: ").strip()
        return result if result else default
    return input(f"  {prompt}: ").strip()


def yes_no(prompt: str, default: bool = False) -> bool:
    answer = get_input(f"{prompt} (y/n)", "y" if default else "n").lower()
    return answer in ("y", "yes")


INTERACTIVE_ACTIONS = [
    ("Download translations and generate packs", 'update'),
    ("Check originals against the game", 'fix-originals'),
    ("Upload new fragments", 'upload-new'),
    ("Fix fragment order", 'fix-order'),
    ("Move fragments to their chapters", 'resplit'),
    ("Delete ignored lang labels", 'delete-ignored'),
    ("Full reconciliation pass", 'reconcile'),
    ("Compile the migration lookup table", 'compile-lut'),
    ("Perform migrations", 'migrate'),
    ("Translate common phrases", 'common-phrases'),
    ("Translate with the lookup table", 'lut-translate'),
    ("Generate PO files", 'po'),
]


def settings_menu(config: ConfigManager) -> None:
    toggles = [
        ("Use notabridge", 'sync.use_notabridge'),
        ("Use the scan database", 'sync.use_scan_db'),
        ("Update on launch", 'sync.auto_open'),
        ("Word diff for stale originals", 'sync.word_diff'),
        ("Allow cross-file migrations", 'sync.allow_cross_file_migrations'),
    ]
    while True:
        options = [f"{label}: {'ON' if config.get_setting(key) else 'OFF'}" for label, key in toggles]
        choice = print_menu("SETTINGS", options)
        if choice == 0:
            return
        _, key = toggles[choice - 1]
        config.set_setting(key, not config.get_setting(key))


def interactive_mode(config: ConfigManager) -> int:
    """Text menu over the same commands, with live progress."""
    clear_screen()
    print_header()

    username = get_input("Notabenoid username (empty to skip login)")
    password = getpass.getpass("  Password: ") if username else None
    progress = ConsoleProgressSink()

    def action(command: str, **options) -> int:
        args = argparse.Namespace(
            command=command, force=False, wdiff=False, dangerous=False, cross_file=False,
            languages=None, output=None, fetch_connections=None,
        )
        for key, value in options.items():
            setattr(args, key, value)
        return execute(args, config, progress, username, password)

    if config.sync_settings.auto_open:
        action('update')

    labels = [label for label, _ in INTERACTIVE_ACTIONS] + ["Settings", "Exit"]
    while True:
        choice = print_menu("MAIN MENU", labels, show_back=False)
        if choice == len(labels):
            print("\n  Goodbye!\n")
            return 0
        if choice == len(labels) - 1:
            settings_menu(config)
            continue

        _, command = INTERACTIVE_ACTIONS[choice - 1]
        options = {}
        if command == 'update':
            options['force'] = yes_no("Download all chapters even if unchanged")
        elif command in ('fix-originals', 'reconcile'):
            options['wdiff'] = yes_no("Word diff for stale originals", config.sync_settings.word_diff)
        elif command == 'migrate':
            options['dangerous'] = yes_no("Use the lookup table (dangerous)")
            options['cross_file'] = yes_no(
                "Allow cross-file migrations", config.sync_settings.allow_cross_file_migrations,
            )
        elif command == 'po':
            languages = get_input("Languages", config.sync_settings.translation_language)
            options['languages'] = languages.split()

        code = action(command, **options)
        print(f"\n  {'Done' if code == 0 else 'Failed, see the log above'}")


# ============================================================================
# ENTRY POINT
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default="config.json", help="Path to the settings file (default: config.json)")
    common.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    common.add_argument("--progress", "-s", action="store_true", help="Report progress")
    common.add_argument("--username", "-u", type=load_secret_option,
                        help="Notabenoid.org username, @literal or a file")
    common.add_argument("--password", "-p", type=load_secret_option,
                        help="Notabenoid.org password, @literal or a file")

    parser = argparse.ArgumentParser(description=f"locsync v{VERSION} CLI")
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    headless_parser = subparsers.add_parser('headless', parents=[common], help='Download translations only')
    headless_parser.add_argument("--output", "-o", required=True, help="Path to the local database dir")
    headless_parser.add_argument("--force", "-f", action="store_true",
                                 help="Download all chapters even if some were unchanged")
    headless_parser.add_argument("--fetch-connections", "-j", type=int, default=None,
                                 help="Number of parallel connections for fetching chapters (default: sync_settings.fetch_connections)")

    update_parser = subparsers.add_parser('update', parents=[common],
                                          help='Download translations and generate packs')
    update_parser.add_argument("--force", "-f", action="store_true",
                               help="Download all chapters even if some were unchanged")

    fix_parser = subparsers.add_parser('fix-originals', parents=[common], help='Check originals against the game')
    fix_parser.add_argument("--wdiff", action="store_true", help="Annotate stale originals with a word diff")

    subparsers.add_parser('upload-new', parents=[common], help='Upload strings missing from the platform')
    subparsers.add_parser('fix-order', parents=[common], help='Renumber fragments in asset order')
    subparsers.add_parser('resplit', parents=[common], help='Move fragments to their chapters')
    subparsers.add_parser('delete-ignored', parents=[common], help='Delete fragments of ignored lang labels')

    reconcile_parser = subparsers.add_parser('reconcile', parents=[common], help='Run every reconciliation pass')
    reconcile_parser.add_argument("--wdiff", action="store_true", help="Annotate stale originals with a word diff")

    subparsers.add_parser('compile-lut', parents=[common], help='Compile the migration lookup table')

    migrate_parser = subparsers.add_parser('migrate', parents=[common], help='Perform migrations')
    migrate_parser.add_argument("--dangerous", action="store_true", help="Resolve with the lookup table")
    migrate_parser.add_argument("--cross-file", action="store_true", help="Match fragments across files")

    subparsers.add_parser('common-phrases', parents=[common], help='Translate common phrases')
    subparsers.add_parser('lut-translate', parents=[common], help='Translate with the lookup table')
    subparsers.add_parser('packs', parents=[common], help='Generate Localize Me packs from the local store')

    po_parser = subparsers.add_parser('po', parents=[common], help='Generate PO files')
    po_parser.add_argument("languages", nargs='*', help="Languages (default: the translation language)")

    subparsers.add_parser('interactive', parents=[common], help='Run in interactive menu mode')
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    setup_logging(args.verbose)
    config = ConfigManager(args.config)

    if args.command == 'headless' and not (args.username and args.password):
        parser.error("headless requires --username and --password")

    try:
        if args.command == 'interactive':
            return interactive_mode(config)
        return execute(args, config, create_progress(args.progress), args.username, args.password)
    except KeyboardInterrupt:
        print("\n  Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
